"""Four-phase processing pipeline: discovery, resolve, deduplicate, organize."""

import logging
import threading
import time
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from tqdm import tqdm

from .config import ProcessingConfig
from .duplicates import ConsolidationResult, ContentHasher, DuplicateConsolidator
from .errors import (
    DiscoveryError,
    ErrorCategory,
    ErrorLog,
    ErrorSeverity,
    ProcessingCancelled,
    ProcessingError,
    categorize_exception,
)
from .models import DiscoveredFile, MediaItem, OrganizedFile, PhaseCounts
from .mover import Mover
from .organizer import OrganizationPlanner
from .progress import Phase, ProgressReporter, ProgressSink
from .reporter import RunLogWriter
from .resolver import TimestampResolver
from .scanner import MediaScanner
from .utils import process_in_order

logger = logging.getLogger(__name__)


@dataclass
class ProcessingResult:
    """Terminal result of a run."""
    success: bool
    total_files: int = 0
    processed_files: int = 0
    unique_files: int = 0
    organized_files: int = 0
    failed_files: int = 0
    duplicates_removed: int = 0
    warnings: List[ProcessingError] = field(default_factory=list)
    errors: List[ProcessingError] = field(default_factory=list)
    error_message: Optional[str] = None
    organized: List[OrganizedFile] = field(default_factory=list)
    run_log_path: Optional[Path] = None
    elapsed_seconds: float = 0.0


class PipelineOrchestrator:
    """
    Runs Discovery -> Resolve -> Deduplicate -> Organize for one configuration.

    Per-item failures are logged to the error log and never abort a phase.
    The run stops early only when discovery finds nothing to process, when
    discovery itself fails, or when `cancel()` is called.
    """

    def __init__(self, config: ProcessingConfig,
                 progress_sink: Optional[ProgressSink] = None,
                 error_log: Optional[ErrorLog] = None):
        self.config = config
        self.error_log = error_log or ErrorLog()
        self.progress = ProgressReporter(progress_sink)

        self.scanner = MediaScanner(config.input_directory, config.extensions)
        self.resolver = TimestampResolver(config, self.error_log)
        self.consolidator = DuplicateConsolidator(
            hasher=ContentHasher(config.max_file_size),
            error_log=self.error_log,
            parallel_jobs=config.parallel_jobs,
            show_progress=config.show_progress,
        )
        self.planner = OrganizationPlanner(
            config.output_directory,
            config.organization_mode,
            config.preserve_original_filename,
        )
        self.mover = Mover(self.error_log)

        self._cancel_event = threading.Event()
        self._started: Optional[float] = None
        self._finished: Optional[float] = None
        self._streak_warned = False

    def cancel(self) -> None:
        """Request cancellation; honoured between items or batches."""
        logger.info("Cancellation requested")
        self._cancel_event.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    def _check_cancelled(self) -> None:
        if self._cancel_event.is_set():
            raise ProcessingCancelled()

    def _check_error_streak(self) -> None:
        if not self._streak_warned and self.error_log.should_stop_operation():
            self._streak_warned = True
            logger.warning(
                f"{self.error_log.MAX_CONSECUTIVE_ERRORS} errors in a row; "
                f"check the input and output directories"
            )

    def run(self) -> ProcessingResult:
        self._started = time.monotonic()
        self._finished = None
        self._streak_warned = False
        # Each run reports only its own entries and reservations
        self.error_log.clear()
        self.planner.clear_reservations()
        self.progress = ProgressReporter(self.progress.sink, self.progress.every)
        counts = PhaseCounts()
        duplicates_removed = 0

        logger.info(f"Processing {self.config.input_directory} -> {self.config.output_directory} "
                    f"({self.config.organization_mode.value})")
        try:
            discovered = self._discover()
            counts.total_files = len(discovered)
            if not discovered:
                message = "No media files found in the specified directory"
                self.error_log.log_error(
                    message=message,
                    file_path=str(self.config.input_directory),
                    severity=ErrorSeverity.ERROR,
                    category=ErrorCategory.FILE_ACCESS,
                )
                return self._finish(False, counts, duplicates_removed, message)

            items = self._resolve(discovered)
            counts.processed_files = len(items)

            consolidation = self._deduplicate(items)
            counts.unique_files = len(consolidation.items)
            duplicates_removed = consolidation.duplicates_removed

            self._organize(consolidation.items, counts)

        except ProcessingCancelled:
            logger.warning("Processing cancelled")
            return self._finish(False, counts, duplicates_removed, "Processing cancelled")
        except DiscoveryError as e:
            self.error_log.log_error(
                message=str(e),
                file_path=str(self.config.input_directory),
                severity=ErrorSeverity.ERROR,
                category=ErrorCategory.FILE_ACCESS,
                exception=e,
            )
            return self._finish(False, counts, duplicates_removed, str(e))
        except Exception as e:
            logger.exception(f"Processing failed: {e}")
            self.error_log.log_error(
                message=f"Processing failed: {e}",
                file_path=str(self.config.input_directory),
                severity=ErrorSeverity.ERROR,
                category=categorize_exception(e),
                exception=e,
            )
            return self._finish(False, counts, duplicates_removed, f"Processing failed: {e}")

        self.progress.finish(Phase.ORGANIZE, f"Organized {counts.organized_files} files")
        return self._finish(True, counts, duplicates_removed)

    def _discover(self) -> List[DiscoveredFile]:
        self.progress.start(Phase.DISCOVERY, "Scanning for media files...")
        discovered = self.scanner.discover()
        self.progress.finish(Phase.DISCOVERY, f"Found {len(discovered)} media files")
        return discovered

    def _resolve(self, discovered: List[DiscoveredFile]) -> List[MediaItem]:
        total = len(discovered)
        self.progress.start(Phase.RESOLVE, "Starting timestamp extraction...")
        bar = tqdm(total=total, desc="Resolving timestamps", unit="files",
                   disable=not self.config.show_progress)

        def _on_done(done: int, total: int):
            bar.update(1)
            self.progress.item(Phase.RESOLVE, done, total,
                               f"Processed {done}/{total} files for timestamps")

        try:
            outcomes = process_in_order(
                self.resolver.resolve_item,
                discovered,
                parallel_jobs=self.config.parallel_jobs,
                should_stop=self._cancel_event.is_set,
                on_done=_on_done,
            )
        finally:
            bar.close()

        items: List[MediaItem] = []
        unresolved = 0
        for found, (item, error) in zip(discovered, outcomes):
            if error is not None:
                self.error_log.log_error(
                    message=f"Failed to process file: {error}",
                    file_path=str(found.path),
                    severity=ErrorSeverity.ERROR,
                    category=ErrorCategory.PROCESSING,
                    exception=error,
                )
                self._check_error_streak()
                continue

            if not item.has_timestamp:
                unresolved += 1
                self.error_log.log_error(
                    message="No timestamp could be extracted",
                    file_path=str(found.path),
                    severity=ErrorSeverity.WARNING,
                    category=ErrorCategory.METADATA_EXTRACTION,
                )
            items.append(item)

        logger.info(f"Resolved timestamps for {len(items) - unresolved} of {total} files "
                    f"({unresolved} without a date)")
        self.progress.finish(Phase.RESOLVE, f"Extracted timestamps for {len(items)} files")
        return items

    def _deduplicate(self, items: List[MediaItem]) -> ConsolidationResult:
        self.progress.start(Phase.DEDUPLICATE, "Detecting duplicates...")
        consolidation = self.consolidator.consolidate(
            items,
            should_stop=self._cancel_event.is_set,
            on_progress=lambda done, total: self.progress.item(Phase.DEDUPLICATE, done, total,
                                                               f"Hashed {done}/{total} files"),
        )
        self.progress.finish(Phase.DEDUPLICATE,
                             f"Processed duplicates, {len(consolidation.items)} unique files")
        return consolidation

    def _organize(self, items: List[MediaItem], counts: PhaseCounts) -> None:
        total = len(items)
        self.progress.start(Phase.ORGANIZE, "Organizing files...")
        self.config.output_directory.mkdir(parents=True, exist_ok=True)

        for index, item in enumerate(tqdm(items, desc="Organizing", unit="files",
                                          disable=not self.config.show_progress)):
            self._check_cancelled()
            target = None
            try:
                target = self.planner.reserve(item)
                organized = self.mover.place(item, target)
            except Exception as e:
                if target is not None:
                    self.planner.release(target)
                counts.failed_files += 1
                self.error_log.log_error(
                    message=f"Failed to organize: {e}",
                    file_path=str(item.primary_file),
                    severity=ErrorSeverity.ERROR,
                    category=categorize_exception(e),
                    exception=e,
                    context={'target': str(target)} if target else None,
                )
                self._check_error_streak()
            else:
                counts.organized.append(organized)
                counts.organized_files += 1

            self.progress.item(Phase.ORGANIZE, index + 1, total,
                               f"Organized {index + 1}/{total} files")

        logger.info(f"Organized {counts.organized_files} files, {counts.failed_files} failed")

    def _write_run_log(self) -> Optional[Path]:
        if not self.config.write_run_log:
            return None
        try:
            return RunLogWriter(self.config.output_directory).write(self.error_log.errors)
        except OSError as e:
            logger.warning(f"Could not write run log: {e}")
            return None

    def _finish(self, success: bool, counts: PhaseCounts, duplicates_removed: int,
                error_message: Optional[str] = None) -> ProcessingResult:
        self._finished = time.monotonic()
        result = ProcessingResult(
            success=success,
            total_files=counts.total_files,
            processed_files=counts.processed_files,
            unique_files=counts.unique_files,
            organized_files=counts.organized_files,
            failed_files=counts.failed_files,
            duplicates_removed=duplicates_removed,
            warnings=self.error_log.get_errors_by_severity(ErrorSeverity.WARNING),
            errors=self.error_log.get_errors_by_severity(ErrorSeverity.ERROR),
            error_message=error_message,
            organized=list(counts.organized),
            run_log_path=self._write_run_log(),
            elapsed_seconds=self.elapsed_seconds,
        )
        if success:
            logger.info(f"Run complete: {result.organized_files} of {result.total_files} files organized")
        else:
            logger.error(f"Run failed: {error_message}")
        return result

    @property
    def elapsed_seconds(self) -> float:
        if self._started is None:
            return 0.0
        end = self._finished if self._finished is not None else time.monotonic()
        return end - self._started

    def get_stats(self) -> Dict[str, Any]:
        """Current run statistics: elapsed time, progress and error counts."""
        return {
            'is_processing': self._started is not None and self._finished is None,
            'cancelled': self.cancelled,
            'elapsed_seconds': self.elapsed_seconds,
            'percentage': self.progress.percentage,
            'errors': asdict(self.error_log.get_stats()),
        }
