"""Error taxonomy, exception hierarchy and the shared error log."""

import errno
import json
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


class TimeFixError(Exception):
    """Base exception for all timestamp restoration errors."""
    pass


class DiscoveryError(TimeFixError):
    """Raised when the input directory cannot be scanned at all."""
    pass


class InsufficientSpaceError(TimeFixError):
    """Raised when a copy would not fit on the target volume."""
    pass


class PlacementError(TimeFixError):
    """Raised when a file cannot be placed at its target path."""
    pass


class ProcessingCancelled(TimeFixError):
    """Raised between items once cancellation has been requested."""
    pass


class ErrorCategory(Enum):
    FILE_ACCESS = 'fileAccess'
    CORRUPTED_FILE = 'corruptedFile'
    METADATA_EXTRACTION = 'metadataExtraction'
    DISK_SPACE = 'diskSpace'
    PROCESSING = 'processing'
    UNKNOWN = 'unknown'


class ErrorSeverity(Enum):
    INFO = 'info'
    WARNING = 'warning'
    ERROR = 'error'


_LOG_LEVELS = {
    ErrorSeverity.INFO: logging.DEBUG,
    ErrorSeverity.WARNING: logging.WARNING,
    ErrorSeverity.ERROR: logging.ERROR,
}


_NO_SPACE_ERRNOS = {errno.ENOSPC, getattr(errno, 'EDQUOT', errno.ENOSPC)}


@dataclass(frozen=True)
class ProcessingError:
    """One recorded problem, tied to the file it concerns."""
    message: str
    file_path: str
    severity: ErrorSeverity
    category: ErrorCategory
    timestamp: datetime
    exception: Optional[str] = None
    context: Dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        return f"[{self.severity.value}/{self.category.value}] {self.file_path}: {self.message}"


@dataclass
class ErrorStats:
    total_errors: int
    critical_errors: int
    warnings: int
    info: int
    consecutive_errors: int
    should_stop: bool


def categorize_exception(exc: BaseException) -> ErrorCategory:
    """Map an exception raised while handling one file to an error category."""
    if isinstance(exc, InsufficientSpaceError):
        return ErrorCategory.DISK_SPACE
    if isinstance(exc, OSError) and exc.errno in _NO_SPACE_ERRNOS:
        return ErrorCategory.DISK_SPACE
    if isinstance(exc, (json.JSONDecodeError, UnicodeDecodeError)):
        return ErrorCategory.CORRUPTED_FILE
    if isinstance(exc, OSError):
        return ErrorCategory.FILE_ACCESS
    if isinstance(exc, TimeFixError):
        return ErrorCategory.PROCESSING
    if isinstance(exc, (ValueError, TypeError, KeyError)):
        return ErrorCategory.PROCESSING
    return ErrorCategory.UNKNOWN


class ErrorLog:
    """
    Collects ProcessingError entries for a run.

    Safe to share between worker threads. Each entry is mirrored to the
    module logger so the console and log file see it as it happens.
    """

    MAX_CONSECUTIVE_ERRORS = 10

    def __init__(self):
        self._entries: List[ProcessingError] = []
        self._consecutive_errors = 0
        self._lock = threading.Lock()

    def log_error(self, message: str, file_path: str,
                  severity: ErrorSeverity = ErrorSeverity.WARNING,
                  category: ErrorCategory = ErrorCategory.PROCESSING,
                  exception: Optional[BaseException] = None,
                  context: Optional[Dict[str, Any]] = None) -> ProcessingError:
        entry = ProcessingError(
            message=message,
            file_path=str(file_path),
            severity=severity,
            category=category,
            timestamp=datetime.now(),
            exception=repr(exception) if exception is not None else None,
            context=dict(context or {}),
        )
        with self._lock:
            self._entries.append(entry)
            if severity == ErrorSeverity.ERROR:
                self._consecutive_errors += 1
            else:
                self._consecutive_errors = 0

        logger.log(_LOG_LEVELS[severity], f"{category.value}: {file_path}: {message}")
        return entry

    @property
    def errors(self) -> List[ProcessingError]:
        with self._lock:
            return list(self._entries)

    def get_errors_by_severity(self, severity: ErrorSeverity) -> List[ProcessingError]:
        return [e for e in self.errors if e.severity == severity]

    def get_errors_for_file(self, file_path: str) -> List[ProcessingError]:
        return [e for e in self.errors if e.file_path == str(file_path)]

    def should_stop_operation(self) -> bool:
        with self._lock:
            return self._consecutive_errors >= self.MAX_CONSECUTIVE_ERRORS

    def get_stats(self) -> ErrorStats:
        entries = self.errors
        return ErrorStats(
            total_errors=len(entries),
            critical_errors=sum(1 for e in entries if e.severity == ErrorSeverity.ERROR),
            warnings=sum(1 for e in entries if e.severity == ErrorSeverity.WARNING),
            info=sum(1 for e in entries if e.severity == ErrorSeverity.INFO),
            consecutive_errors=self._consecutive_errors,
            should_stop=self.should_stop_operation(),
        )

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._consecutive_errors = 0

    def __len__(self) -> int:
        return len(self.errors)
