"""Utility functions for takeout timestamp restoration."""

import hashlib
import os
import psutil
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Callable, Generator, List, Optional, Sequence, Tuple, TypeVar
import logging

from .errors import ProcessingCancelled

logger = logging.getLogger(__name__)

T = TypeVar('T')
R = TypeVar('R')


def calculate_sha256(file_path: Path, chunk_size: int = 65536) -> str:
    """
    Calculate SHA256 hash of a file.

    Unlike a best-effort checksum, read errors propagate so the caller can
    decide how the item is treated.

    Args:
        file_path: Path to file
        chunk_size: Size of chunks to read at a time

    Returns:
        SHA256 hash as hexadecimal string
    """
    hasher = hashlib.sha256()
    with open(file_path, 'rb') as f:
        while chunk := f.read(chunk_size):
            hasher.update(chunk)
    return hasher.hexdigest()


def format_bytes(bytes_value: int) -> str:
    """
    Format bytes as human-readable string.

    Args:
        bytes_value: Size in bytes

    Returns:
        Formatted string like "1.2GB"
    """
    if bytes_value == 0:
        return "0B"

    units = ['B', 'KB', 'MB', 'GB', 'TB']
    unit_index = 0
    size = float(bytes_value)

    while size >= 1024.0 and unit_index < len(units) - 1:
        size /= 1024.0
        unit_index += 1

    return f"{size:.1f}{units[unit_index]}"


def get_available_space(path: Path) -> int:
    """
    Get available disk space for a path in bytes.

    The nearest existing ancestor is measured, so a target directory that
    has not been created yet still reports its volume.
    """
    probe = path
    while not probe.exists() and probe != probe.parent:
        probe = probe.parent
    try:
        return psutil.disk_usage(str(probe)).free
    except OSError as e:
        logger.error(f"Failed to get disk space for {path}: {e}")
        return 0


def is_media_file(file_path: Path, supported_extensions: List[str]) -> bool:
    """
    Check if file is a supported media file.

    Args:
        file_path: Path to file
        supported_extensions: List of supported extensions (without dots)

    Returns:
        True if file is supported media type
    """
    if not file_path.is_file():
        return False

    extension = file_path.suffix.lower().lstrip('.')
    return extension in [ext.lower() for ext in supported_extensions]


def find_media_files(directory: Path, supported_extensions: List[str]) -> Generator[Path, None, None]:
    """
    Recursively find all media files in a directory.

    Hidden files and directories are skipped. Results are yielded in a
    stable, sorted order so repeated runs see the same sequence.
    """
    for dirpath, dirnames, filenames in os.walk(str(directory)):
        dirnames[:] = sorted(d for d in dirnames if not d.startswith('.'))
        for filename in sorted(filenames):
            if filename.startswith('.'):
                continue
            file_path = Path(dirpath) / filename
            if is_media_file(file_path, supported_extensions):
                yield file_path


def process_in_order(
    func: Callable[[T], R],
    items: Sequence[T],
    parallel_jobs: int = 1,
    should_stop: Optional[Callable[[], bool]] = None,
    on_done: Optional[Callable[[int, int], None]] = None,
) -> List[Tuple[Optional[R], Optional[Exception]]]:
    """
    Apply `func` to every item and return (result, error) pairs in input order.

    An exception raised for one item is captured in its pair and never stops
    the others. With `parallel_jobs` > 1 items run on a thread pool in
    batches; `should_stop` is checked between items (sequential) or between
    batches (parallel) and raises ProcessingCancelled when it returns True.
    """
    total = len(items)
    outcomes: List[Tuple[Optional[R], Optional[Exception]]] = []

    def _call(item: T) -> Tuple[Optional[R], Optional[Exception]]:
        try:
            return func(item), None
        except Exception as e:
            return None, e

    if parallel_jobs <= 1:
        for item in items:
            if should_stop and should_stop():
                raise ProcessingCancelled()
            outcomes.append(_call(item))
            if on_done:
                on_done(len(outcomes), total)
        return outcomes

    batch_size = parallel_jobs * 4
    with ThreadPoolExecutor(max_workers=parallel_jobs) as executor:
        for start in range(0, total, batch_size):
            if should_stop and should_stop():
                raise ProcessingCancelled()
            futures = [executor.submit(_call, item) for item in items[start:start + batch_size]]
            for future in futures:
                outcomes.append(future.result())
                if on_done:
                    on_done(len(outcomes), total)
    return outcomes


def get_relative_path(file_path: Path, base_path: Path) -> Path:
    """
    Get relative path from base path.

    Args:
        file_path: Full file path
        base_path: Base path to make relative to

    Returns:
        Relative path
    """
    try:
        return file_path.relative_to(base_path)
    except ValueError:
        # If paths don't have common base, return the file name
        return Path(file_path.name)
