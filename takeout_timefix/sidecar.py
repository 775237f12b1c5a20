"""Locate and read the JSON sidecar exported next to a media file."""

import json
import logging
import re
import unicodedata
from datetime import datetime
from pathlib import Path
from typing import Iterator, List, Optional

from .extractors import ExtractionResult

logger = logging.getLogger(__name__)

DEFAULT_MAX_NAME_LENGTH = 51

SIDECAR_SUFFIXES = ('.json', '.supplemental-metadata.json')

# Lowercase "edited" markers appended by the export, per language.
EDITED_SUFFIXES = [
    '-edited',
    '-effects',
    '-smile',
    '-mix',
    '-edytowane',   # PL
    '-bearbeitet',  # DE
    '-bewerkt',     # NL
    '-編集済み',     # JA
    '-modificato',  # IT
    '-modifié',     # FR
    '-ha editado',  # ES
    '-editat',      # CA
]

# Album-level and archive-level JSON files, never per-item sidecars.
NON_ITEM_SIDECARS = {
    'metadata.json',
    'album.json',
    'archive_browser.json',
    'user_generated_memory.json',
    'print-subscriptions.json',
    'shared_album_comments.json',
}

_DIGIT_BRACKET = re.compile(r'\(\d+\)\.')
_RELAXED_EXTRA = re.compile(r'(?P<extra>-[A-Za-zÀ-ÖØ-öø-ÿ]+(?:\(\d+\))?)\.\w+$')


def _replace_last(text: str, old: str, new: str) -> str:
    index = text.rfind(old)
    if index == -1:
        return text
    return text[:index] + new + text[index + len(old):]


def _strip_extension(name: str) -> str:
    stem, dot, _ = name.rpartition('.')
    return stem if dot else name


def _without_edited_suffix(name: str) -> List[str]:
    stems = []
    lowered = name.lower()
    for suffix in EDITED_SUFFIXES:
        index = lowered.rfind(suffix)
        if index != -1:
            cleaned = name[:index] + name[index + len(suffix):]
            stems.extend([cleaned, _strip_extension(cleaned)])
    return stems


def _bracket_swap(name: str) -> Optional[str]:
    """image(11).jpg -> image.jpg(11)"""
    matches = list(_DIGIT_BRACKET.finditer(name))
    if not matches:
        return None
    bracket = matches[-1].group(0)[:-1]
    return _replace_last(name, bracket, '') + bracket


def _without_digit_brackets(name: str) -> Optional[str]:
    if not _DIGIT_BRACKET.search(name):
        return None
    return _DIGIT_BRACKET.sub('.', name)


def _without_relaxed_extra(name: str) -> Optional[str]:
    match = _RELAXED_EXTRA.search(name)
    if not match:
        return None
    return _replace_last(name, match.group('extra'), '')


def candidate_stems(name: str, relaxed: bool = False) -> List[str]:
    """
    Sidecar stems to try for a media file name, in priority order.

    A stem gets a sidecar suffix appended, e.g. "photo.jpg" -> "photo.jpg.json".
    Relaxed mode yields only the extra, more aggressive candidates.
    """
    if relaxed:
        normalized = unicodedata.normalize('NFC', name)
        stems = []
        stripped = _without_relaxed_extra(normalized)
        if stripped:
            stems.append(stripped)
            no_digits = _without_digit_brackets(stripped)
            if no_digits:
                stems.append(no_digits)
        no_digits = _without_digit_brackets(normalized)
        if no_digits:
            stripped = _without_relaxed_extra(no_digits)
            if stripped:
                stems.append(stripped)
    else:
        stems = [name, _strip_extension(name)]
        stems.extend(_without_edited_suffix(name))
        swapped = _bracket_swap(name)
        if swapped:
            stems.append(swapped)
        no_digits = _without_digit_brackets(name)
        if no_digits:
            stems.append(no_digits)

    unique = []
    for stem in stems:
        if stem and stem not in unique:
            unique.append(stem)
    return unique


def candidate_names(name: str, relaxed: bool = False,
                    max_name_length: int = DEFAULT_MAX_NAME_LENGTH) -> Iterator[str]:
    """Sidecar file names to probe: exact names first, then truncated ones."""
    stems = candidate_stems(name, relaxed)
    seen = set()

    def _emit(candidate: str):
        if candidate not in seen and candidate.lower() not in NON_ITEM_SIDECARS:
            seen.add(candidate)
            return True
        return False

    for stem in stems:
        for suffix in SIDECAR_SUFFIXES:
            if _emit(stem + suffix):
                yield stem + suffix

    # The export truncates long sidecar names, suffix included
    for stem in stems:
        for suffix in SIDECAR_SUFFIXES:
            full = stem + suffix
            if len(full) <= max_name_length:
                continue
            truncated = full[:-len('.json')][:max_name_length - len('.json')] + '.json'
            if _emit(truncated):
                yield truncated

    # Older exports cut the extension-less basename instead
    basename = _strip_extension(name)
    if len(basename) > max_name_length:
        truncated = basename[:max_name_length] + '.json'
        if _emit(truncated):
            yield truncated


def find_sidecar(file_path: Path, relaxed: bool = False,
                 max_name_length: int = DEFAULT_MAX_NAME_LENGTH) -> Optional[Path]:
    """Return the first existing sidecar for `file_path`, if any."""
    directory = file_path.parent
    for candidate in candidate_names(file_path.name, relaxed, max_name_length):
        sidecar = directory / candidate
        if sidecar.is_file() and sidecar != file_path:
            return sidecar
    return None


def read_photo_taken_time(sidecar: Path) -> ExtractionResult:
    """Read photoTakenTime.timestamp (seconds since epoch) from a sidecar."""
    try:
        with open(sidecar, 'r', encoding='utf-8') as f:
            metadata = json.load(f)
    except OSError as e:
        return ExtractionResult.failed(f"Unreadable sidecar {sidecar.name}: {e}")
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        return ExtractionResult.failed(f"Malformed sidecar {sidecar.name}: {e}", corrupted=True)

    taken = metadata.get('photoTakenTime') if isinstance(metadata, dict) else None
    if not isinstance(taken, dict) or taken.get('timestamp') in (None, ''):
        return ExtractionResult.not_found(f"No photoTakenTime in {sidecar.name}")

    try:
        return ExtractionResult.found(datetime.fromtimestamp(int(taken['timestamp'])))
    except (TypeError, ValueError, OverflowError, OSError) as e:
        return ExtractionResult.failed(f"Bad photoTakenTime in {sidecar.name}: {e}")


def extract_sidecar_timestamp(file_path: Path, relaxed: bool = False,
                              max_name_length: int = DEFAULT_MAX_NAME_LENGTH) -> ExtractionResult:
    try:
        sidecar = find_sidecar(file_path, relaxed, max_name_length)
    except OSError as e:
        return ExtractionResult.failed(f"Could not probe for sidecar: {e}")

    if sidecar is None:
        return ExtractionResult.not_found("no sidecar")

    logger.debug(f"Sidecar for {file_path.name}: {sidecar.name}")
    return read_photo_taken_time(sidecar)
