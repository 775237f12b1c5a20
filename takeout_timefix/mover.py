"""Physical placement of organized files."""

import logging
import os
import shutil
from datetime import datetime
from pathlib import Path
from typing import Optional

from .errors import ErrorCategory, ErrorLog, ErrorSeverity, InsufficientSpaceError, PlacementError
from .models import MediaItem, OrganizedFile
from .organizer import next_free_path
from .utils import format_bytes, get_available_space

logger = logging.getLogger(__name__)


class Mover:
    """
    Moves an item's primary file to its planned target.

    The target is claimed with an exclusive create before anything is
    written, so an existing file is never overwritten. A rename is tried
    first; when it fails (typically across volumes) the file is copied and
    the source is left in place.
    """

    def __init__(self, error_log: Optional[ErrorLog] = None):
        self.error_log = error_log

    def place(self, item: MediaItem, target: Path) -> OrganizedFile:
        source = item.primary_file
        target.parent.mkdir(parents=True, exist_ok=True)

        claimed = self._claim(target)
        try:
            method = self._transfer(source, claimed)
        except BaseException:
            self._discard(claimed)
            raise

        if item.date_taken is not None:
            self._set_modification_time(claimed, item.date_taken)

        logger.debug(f"{method}: {source} -> {claimed}")
        return OrganizedFile(
            source_file=source,
            target_file=claimed,
            date_taken=item.date_taken,
            accuracy=item.accuracy,
            method=method,
        )

    @staticmethod
    def _try_create(path: Path) -> bool:
        try:
            fd = os.open(str(path), os.O_CREAT | os.O_EXCL | os.O_WRONLY)
        except FileExistsError:
            return False
        os.close(fd)
        return True

    def _claim(self, target: Path) -> Path:
        """Atomically create an empty placeholder at the first free variant of `target`."""
        if self._try_create(target):
            return target

        logger.warning(f"Target appeared on disk before placement: {target}")
        for _ in range(1000):
            candidate = next_free_path(target, lambda p: p.exists())
            if self._try_create(candidate):
                return candidate
        raise PlacementError(f"Could not claim a free name next to {target}")

    def _transfer(self, source: Path, target: Path) -> str:
        try:
            os.replace(source, target)
            return 'rename'
        except OSError as e:
            logger.debug(f"Rename of {source} failed ({e}), falling back to copy")

        size = source.stat().st_size
        available = get_available_space(target.parent)
        if size > available:
            raise InsufficientSpaceError(
                f"Need {format_bytes(size)} for {source.name}, "
                f"only {format_bytes(available)} free"
            )

        shutil.copy2(source, target)
        return 'copy'

    @staticmethod
    def _discard(path: Path) -> None:
        try:
            path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.error(f"Failed to remove placeholder {path}: {e}")

    def _set_modification_time(self, target: Path, date_taken: datetime) -> None:
        try:
            stamp = date_taken.timestamp()
            os.utime(target, (stamp, stamp))
        except (OSError, OverflowError, ValueError) as e:
            message = f"Could not set modification time to {date_taken.isoformat()}: {e}"
            if self.error_log is not None:
                self.error_log.log_error(
                    message=message,
                    file_path=str(target),
                    severity=ErrorSeverity.WARNING,
                    category=ErrorCategory.FILE_ACCESS,
                    exception=e,
                )
            else:
                logger.warning(f"{target}: {message}")
