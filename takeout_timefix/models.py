"""Data model shared by the resolve, deduplicate and organize phases."""

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import IntEnum
from pathlib import Path
from typing import Dict, Optional, Union


class AccuracyRank(IntEnum):
    """Trust ordering of timestamp sources. Lower is more trustworthy."""
    SIDECAR_METADATA = 0
    EMBEDDED_METADATA = 1
    FILENAME_PATTERN = 2
    SIDECAR_METADATA_RELAXED = 3
    FILESYSTEM_ATTRIBUTE = 4
    FOLDER_NAME = 5

    @property
    def description(self) -> str:
        return _RANK_DESCRIPTIONS[self]


_RANK_DESCRIPTIONS = {
    AccuracyRank.SIDECAR_METADATA: 'JSON metadata',
    AccuracyRank.EMBEDDED_METADATA: 'EXIF data',
    AccuracyRank.FILENAME_PATTERN: 'Filename pattern',
    AccuracyRank.SIDECAR_METADATA_RELAXED: 'JSON metadata (relaxed match)',
    AccuracyRank.FILESYSTEM_ATTRIBUTE: 'File system date',
    AccuracyRank.FOLDER_NAME: 'Folder name',
}


def describe_accuracy(accuracy: Optional[AccuracyRank]) -> str:
    """Human-readable label for an optional rank."""
    return accuracy.description if accuracy is not None else 'Unknown'


@dataclass(frozen=True)
class DiscoveredFile:
    """A candidate file handed over by discovery, before any resolution."""
    path: Path
    album: Optional[str] = None


@dataclass(frozen=True)
class MediaItem:
    """
    The unit of work.

    `albums` maps an album name (or None for files outside any album) to the
    file filed under it. Instances are never mutated; each phase produces
    new items with `with_timestamp` / `merged_with` style replacements.
    """
    albums: Dict[Optional[str], Path]
    date_taken: Optional[datetime] = None
    accuracy: Optional[AccuracyRank] = None

    def __post_init__(self):
        if not self.albums:
            raise ValueError("MediaItem requires at least one file")
        if self.accuracy is not None and self.date_taken is None:
            raise ValueError("accuracy set without date_taken")

    @classmethod
    def from_discovered(cls, discovered: DiscoveredFile) -> 'MediaItem':
        return cls(albums={discovered.album: discovered.path})

    @property
    def primary_file(self) -> Path:
        """First-registered file; used for size, hashing and reading."""
        return next(iter(self.albums.values()))

    @property
    def has_timestamp(self) -> bool:
        return self.date_taken is not None and self.accuracy is not None

    def with_timestamp(self, date_taken: Optional[datetime],
                       accuracy: Optional[AccuracyRank]) -> 'MediaItem':
        return replace(self, date_taken=date_taken, accuracy=accuracy)


@dataclass(frozen=True)
class Hashed:
    """Content digest of a fully read file."""
    hexdigest: str


@dataclass(frozen=True, eq=False)
class TooLargeToHash:
    """
    Marker for files above the hashing ceiling.

    Compares by identity, so two oversized files never look alike.
    """
    size: int


ContentDigest = Union[Hashed, TooLargeToHash]


@dataclass(frozen=True)
class OrganizedFile:
    """Immutable record of one placement made by the mover."""
    source_file: Path
    target_file: Path
    date_taken: Optional[datetime] = None
    accuracy: Optional[AccuracyRank] = None
    method: str = 'rename'

    @property
    def date_source(self) -> str:
        return describe_accuracy(self.accuracy)


@dataclass
class PhaseCounts:
    """Running counters the orchestrator fills in while phases complete."""
    total_files: int = 0
    processed_files: int = 0
    unique_files: int = 0
    organized_files: int = 0
    failed_files: int = 0
    organized: list = field(default_factory=list)
