"""Timestamp resolution cascade."""

import logging
from dataclasses import dataclass
from datetime import datetime
from functools import partial
from pathlib import Path
from typing import Callable, List, Optional

from .config import ProcessingConfig
from .errors import ErrorCategory, ErrorLog, ErrorSeverity
from .extractors import (
    ExtractionResult,
    extract_embedded_timestamp,
    extract_filesystem_timestamp,
    extract_folder_name_timestamp,
)
from .filename_patterns import extract_filename_timestamp
from .models import AccuracyRank, DiscoveredFile, MediaItem
from .sidecar import extract_sidecar_timestamp

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Resolution:
    date_taken: Optional[datetime] = None
    accuracy: Optional[AccuracyRank] = None

    @property
    def resolved(self) -> bool:
        return self.date_taken is not None


UNRESOLVED = Resolution()


@dataclass(frozen=True)
class CascadeStep:
    rank: AccuracyRank
    name: str
    extract: Callable[[Path], ExtractionResult]


class TimestampResolver:
    """
    Runs the extractors in fixed priority order and stops at the first hit.

    The rank of the step that succeeded is returned with the timestamp; later
    steps are never attempted once one has succeeded.
    """

    def __init__(self, config: Optional[ProcessingConfig] = None,
                 error_log: Optional[ErrorLog] = None):
        self.error_log = error_log
        self.steps = self._build_steps(config)

    @staticmethod
    def _build_steps(config: Optional[ProcessingConfig]) -> List[CascadeStep]:
        max_file_size = config.max_file_size if config else 64 * 1024 * 1024
        max_name_length = config.sidecar_max_name_length if config else 51
        recent_days = config.recent_modification_days if config else 30

        steps = [
            CascadeStep(AccuracyRank.SIDECAR_METADATA, 'sidecar',
                        partial(extract_sidecar_timestamp, relaxed=False,
                                max_name_length=max_name_length)),
            CascadeStep(AccuracyRank.EMBEDDED_METADATA, 'exif',
                        partial(extract_embedded_timestamp, max_file_size=max_file_size)),
            CascadeStep(AccuracyRank.FILENAME_PATTERN, 'filename',
                        extract_filename_timestamp),
            CascadeStep(AccuracyRank.SIDECAR_METADATA_RELAXED, 'sidecar-relaxed',
                        partial(extract_sidecar_timestamp, relaxed=True,
                                max_name_length=max_name_length)),
            CascadeStep(AccuracyRank.FILESYSTEM_ATTRIBUTE, 'filesystem',
                        partial(extract_filesystem_timestamp,
                                recent_modification_days=recent_days)),
        ]
        if config is not None and config.guess_from_folder_name:
            steps.append(CascadeStep(AccuracyRank.FOLDER_NAME, 'folder-name',
                                     extract_folder_name_timestamp))
        return steps

    def resolve(self, file_path: Path) -> Resolution:
        for step in self.steps:
            try:
                result = step.extract(file_path)
            except Exception as e:
                result = ExtractionResult.failed(f"{step.name} extractor raised {e!r}")

            if result.is_found:
                logger.debug(f"{file_path}: {result.timestamp} via {step.name} (rank {int(step.rank)})")
                return Resolution(result.timestamp, step.rank)

            if result.is_failed and self.error_log is not None:
                self.error_log.log_error(
                    message=f"{step.name} extraction failed: {result.reason}",
                    file_path=str(file_path),
                    severity=ErrorSeverity.INFO,
                    category=(ErrorCategory.CORRUPTED_FILE if result.corrupted
                              else ErrorCategory.METADATA_EXTRACTION),
                )

        return UNRESOLVED

    def resolve_item(self, discovered: DiscoveredFile) -> MediaItem:
        resolution = self.resolve(discovered.path)
        item = MediaItem.from_discovered(discovered)
        if not resolution.resolved:
            return item
        return item.with_timestamp(resolution.date_taken, resolution.accuracy)
