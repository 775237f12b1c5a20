"""Target path planning for organized output."""

import logging
from pathlib import Path
from typing import Callable, Iterable, List, Set

from .config import OrganizationMode
from .models import MediaItem

logger = logging.getLogger(__name__)

MONTH_NAMES = [
    'January', 'February', 'March', 'April', 'May', 'June',
    'July', 'August', 'September', 'October', 'November', 'December',
]

UNKNOWN_DATE_DIRECTORY = 'date-unknown'


def disambiguated(target: Path, counter: int) -> Path:
    """photo.jpg, 2 -> photo(2).jpg"""
    return target.with_name(f"{target.stem}({counter}){target.suffix}")


def next_free_path(target: Path, is_taken: Callable[[Path], bool]) -> Path:
    """Return `target` or the first `name(n).ext` variant for which `is_taken` is False."""
    if not is_taken(target):
        return target
    counter = 1
    while is_taken(disambiguated(target, counter)):
        counter += 1
    return disambiguated(target, counter)


class OrganizationPlanner:
    """
    Computes the target path of each canonical item.

    Paths handed out by `reserve` are remembered for the rest of the run, so
    two items never get the same path even before either has been written.
    Not thread-safe; the organize phase runs on a single thread.
    """

    def __init__(self, output_directory: Path,
                 mode: OrganizationMode = OrganizationMode.YEAR_MONTH,
                 preserve_original_filename: bool = False):
        self.output_directory = Path(output_directory)
        self.mode = OrganizationMode(mode)
        self.preserve_original_filename = preserve_original_filename
        self._reserved: Set[Path] = set()

    def target_directory(self, item: MediaItem) -> Path:
        if item.date_taken is None:
            return self.output_directory / UNKNOWN_DATE_DIRECTORY

        if self.mode == OrganizationMode.SINGLE_FOLDER:
            return self.output_directory

        date_taken = item.date_taken
        month_folder = f"{date_taken.month:02d}-{MONTH_NAMES[date_taken.month - 1]}"
        return self.output_directory / f"{date_taken.year:04d}" / month_folder

    def target_name(self, item: MediaItem) -> str:
        source = item.primary_file
        if self.preserve_original_filename:
            return source.name
        if item.date_taken is None:
            return f"{source.stem}_no_date{source.suffix}"
        return item.date_taken.strftime('%Y%m%d_%H%M%S') + source.suffix

    def plan(self, item: MediaItem) -> Path:
        """Desired target path, before collision handling."""
        return self.target_directory(item) / self.target_name(item)

    def is_taken(self, path: Path) -> bool:
        return path in self._reserved or path.exists()

    def resolve_collision(self, target: Path) -> Path:
        return next_free_path(target, self.is_taken)

    def reserve(self, item: MediaItem) -> Path:
        """Plan a collision-free target and hold it for this run."""
        desired = self.plan(item)
        target = self.resolve_collision(desired)
        if target != desired:
            logger.debug(f"{desired.name} already taken, using {target.name}")
        self._reserved.add(target)
        return target

    def release(self, target: Path) -> None:
        self._reserved.discard(target)

    def clear_reservations(self) -> None:
        self._reserved.clear()

    def preview(self, items: Iterable[MediaItem]) -> List[str]:
        """Sorted relative target paths the items would get, without touching disk state."""
        structure = set()
        for item in items:
            structure.add(self.plan(item).relative_to(self.output_directory).as_posix())
        return sorted(structure)

