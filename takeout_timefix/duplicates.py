"""Content hashing and duplicate consolidation."""

import logging
from collections import OrderedDict
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

from tqdm import tqdm

from .errors import ErrorCategory, ErrorLog, ErrorSeverity, categorize_exception
from .models import ContentDigest, Hashed, MediaItem, TooLargeToHash
from .utils import calculate_sha256, format_bytes, process_in_order

logger = logging.getLogger(__name__)

MAX_HASH_SIZE = 64 * 1024 * 1024


class ContentHasher:
    """SHA256 of the full file content, skipped above a size ceiling."""

    def __init__(self, max_file_size: int = MAX_HASH_SIZE):
        self.max_file_size = max_file_size

    def digest(self, file_path: Path, size: Optional[int] = None) -> ContentDigest:
        if size is None:
            size = file_path.stat().st_size
        if size > self.max_file_size:
            return TooLargeToHash(size)
        return Hashed(calculate_sha256(file_path))


def merge_items(members: List[MediaItem]) -> MediaItem:
    """
    Collapse byte-identical items into one canonical item.

    Album maps are unioned (first file wins per album key, so the primary file
    stays the first member's). The timestamp with the lowest accuracy rank
    survives; ties keep the first seen.
    """
    albums: Dict[Optional[str], Path] = {}
    for member in members:
        for album, path in member.albums.items():
            albums.setdefault(album, path)

    best: Optional[MediaItem] = None
    for member in members:
        if not member.has_timestamp:
            continue
        if best is None or member.accuracy < best.accuracy:
            best = member

    if best is None:
        return MediaItem(albums=albums)
    return MediaItem(albums=albums, date_taken=best.date_taken, accuracy=best.accuracy)


@dataclass
class ConsolidationResult:
    items: List[MediaItem]
    duplicate_groups: int = 0
    duplicates_removed: int = 0
    oversized_files: int = 0
    unreadable_files: int = 0
    bytes_saved: int = 0


class DuplicateConsolidator:
    """
    Finds byte-identical items and merges them.

    Items are bucketed by size first; only sizes shared by several items are
    hashed. Oversized items receive TooLargeToHash and are always kept as
    unique items. Output keeps the input order, each canonical item taking
    the position of its first member.
    """

    def __init__(self, hasher: Optional[ContentHasher] = None,
                 error_log: Optional[ErrorLog] = None,
                 parallel_jobs: int = 1,
                 show_progress: bool = False):
        self.hasher = hasher or ContentHasher()
        self.error_log = error_log
        self.parallel_jobs = parallel_jobs
        self.show_progress = show_progress

    def _log(self, message: str, item: MediaItem, severity: ErrorSeverity,
             category: ErrorCategory, exception: Optional[Exception] = None):
        if self.error_log is not None:
            self.error_log.log_error(message=message, file_path=str(item.primary_file),
                                     severity=severity, category=category, exception=exception)
        else:
            logger.warning(f"{item.primary_file}: {message}")

    def consolidate(self, items: List[MediaItem],
                    should_stop: Optional[Callable[[], bool]] = None,
                    on_progress: Optional[Callable[[int, int], None]] = None) -> ConsolidationResult:
        result = ConsolidationResult(items=[])
        if not items:
            return result

        # Level 1: bucket by exact size
        sizes: Dict[int, int] = {}
        size_buckets: Dict[int, List[int]] = OrderedDict()
        unique_positions: List[int] = []
        for position, item in enumerate(items):
            try:
                size = item.primary_file.stat().st_size
            except OSError as e:
                self._log(f"Could not stat file, treating as unique: {e}", item,
                          ErrorSeverity.WARNING, categorize_exception(e), e)
                result.unreadable_files += 1
                unique_positions.append(position)
                continue
            sizes[position] = size
            size_buckets.setdefault(size, []).append(position)

        to_hash: List[int] = []
        for positions in size_buckets.values():
            if len(positions) == 1:
                unique_positions.extend(positions)
            else:
                to_hash.extend(positions)

        logger.info(f"Hashing {len(to_hash)} of {len(items)} files sharing a size with another file")

        # Level 2: hash only the shared-size candidates
        progress = tqdm(total=len(to_hash), desc="Hashing", unit="files",
                        disable=not self.show_progress)

        def _on_done(done: int, total: int):
            progress.update(1)
            if on_progress:
                on_progress(done, total)

        try:
            outcomes = process_in_order(
                lambda position: self.hasher.digest(items[position].primary_file, sizes[position]),
                to_hash,
                parallel_jobs=self.parallel_jobs,
                should_stop=should_stop,
                on_done=_on_done,
            )
        finally:
            progress.close()

        digest_buckets: Dict[Tuple[int, str], List[int]] = OrderedDict()
        for position, (digest, error) in zip(to_hash, outcomes):
            item = items[position]
            if error is not None:
                self._log(f"Could not hash file, treating as unique: {error}", item,
                          ErrorSeverity.WARNING, categorize_exception(error), error)
                result.unreadable_files += 1
                unique_positions.append(position)
            elif isinstance(digest, TooLargeToHash):
                self._log(f"File too large to hash ({format_bytes(digest.size)}), "
                          f"excluded from duplicate matching", item,
                          ErrorSeverity.INFO, ErrorCategory.PROCESSING)
                result.oversized_files += 1
                unique_positions.append(position)
            else:
                digest_buckets.setdefault((sizes[position], digest.hexdigest), []).append(position)

        # Merge, serialized on this thread
        canonical: Dict[int, MediaItem] = {position: items[position] for position in unique_positions}
        for (size, hexdigest), positions in digest_buckets.items():
            if len(positions) == 1:
                canonical[positions[0]] = items[positions[0]]
                continue

            members = [items[position] for position in positions]
            canonical[positions[0]] = merge_items(members)
            result.duplicate_groups += 1
            result.duplicates_removed += len(positions) - 1
            result.bytes_saved += size * (len(positions) - 1)
            logger.debug(f"Merged {len(positions)} copies of {hexdigest[:8]} "
                         f"into {members[0].primary_file}")

        result.items = [canonical[position] for position in sorted(canonical)]

        logger.info(f"Found {result.duplicate_groups} duplicate groups, "
                    f"{result.duplicates_removed} duplicates merged, "
                    f"{len(result.items)} unique items")
        return result
