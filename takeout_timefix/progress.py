"""Phase-aware progress reporting."""

import logging
import threading
from enum import Enum
from typing import Callable, Optional

logger = logging.getLogger(__name__)

# Any callable taking (percentage 0-100, status message)
ProgressSink = Callable[[int, str], None]


class Phase(Enum):
    DISCOVERY = ('Discovery', 0, 20)
    RESOLVE = ('Resolve', 20, 50)
    DEDUPLICATE = ('Deduplicate', 50, 70)
    ORGANIZE = ('Organize', 70, 100)

    def __init__(self, label: str, start: int, end: int):
        self.label = label
        self.start = start
        self.end = end

    def percentage(self, done: int, total: int) -> int:
        if total <= 0:
            return self.start
        fraction = min(max(done / total, 0.0), 1.0)
        return self.start + round(fraction * (self.end - self.start))


class ProgressReporter:
    """
    Maps per-phase item counts onto one 0-100 scale and forwards them to a sink.

    Item updates are throttled to every `every` items plus the last one.
    Reported percentages never go backwards. Safe to call from worker threads.
    """

    def __init__(self, sink: Optional[ProgressSink] = None, every: int = 10):
        self.sink = sink
        self.every = max(1, every)
        self._lock = threading.Lock()
        self._last_percentage = 0

    @property
    def percentage(self) -> int:
        return self._last_percentage

    def _emit(self, percentage: int, message: str) -> None:
        with self._lock:
            percentage = max(percentage, self._last_percentage)
            self._last_percentage = percentage
        logger.debug(f"[{percentage:3d}%] {message}")
        if self.sink is None:
            return
        try:
            self.sink(percentage, message)
        except Exception as e:
            logger.warning(f"Progress sink failed: {e}")

    def start(self, phase: Phase, message: str) -> None:
        self._emit(phase.start, message)

    def item(self, phase: Phase, done: int, total: int, message: Optional[str] = None) -> None:
        if done % self.every != 0 and done != total:
            return
        self._emit(phase.percentage(done, total),
                   message or f"{phase.label}: {done}/{total} files")

    def finish(self, phase: Phase, message: str) -> None:
        self._emit(phase.end, message)
