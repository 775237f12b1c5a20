"""Dates embedded in camera, phone and messaging-app file names."""

import logging
import re
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Callable, List, Optional, Tuple

from .extractors import ExtractionResult, is_plausible_year

logger = logging.getLogger(__name__)

_Y = r'(?P<year>(?:19|20)\d{2})'
_M = r'(?P<month>0[1-9]|1[0-2])'
_D = r'(?P<day>0[1-9]|[12]\d|3[01])'
_H = r'(?P<hour>\d{2})'
_MIN = r'(?P<minute>\d{2})'
_S = r'(?P<second>\d{2})'


def _date_and_time(match: re.Match) -> datetime:
    return datetime(
        int(match.group('year')), int(match.group('month')), int(match.group('day')),
        int(match.group('hour')), int(match.group('minute')), int(match.group('second')),
    )


def _date_at_noon(match: re.Match) -> datetime:
    return datetime(
        int(match.group('year')), int(match.group('month')), int(match.group('day')),
        12, 0, 0,
    )


@dataclass(frozen=True)
class FilenamePattern:
    """One naming convention and how its match becomes a datetime."""
    name: str
    example: str
    regex: re.Pattern
    build: Callable[[re.Match], datetime]

    def decode(self, filename: str) -> Optional[datetime]:
        match = self.regex.search(filename)
        if not match:
            return None
        try:
            candidate = self.build(match)
        except ValueError:
            # e.g. Feb 30th or hour 25
            return None
        if not is_plausible_year(candidate.year):
            return None
        return candidate


def _pattern(name: str, example: str, regex: str,
             build: Callable[[re.Match], datetime] = _date_and_time) -> FilenamePattern:
    return FilenamePattern(name, example, re.compile(regex), build)


FILENAME_PATTERNS: List[FilenamePattern] = [
    _pattern('whatsapp_with_time', 'WhatsApp Image 2021-03-14 at 17.35.22.jpeg',
             rf'{_Y}-{_M}-{_D} at {_H}\.{_MIN}\.{_S}'),
    _pattern('whatsapp_date_only', 'IMG-20190101-WA0001.jpg',
             rf'(?:IMG|VID|AUD|PTT|STK)-{_Y}{_M}{_D}-WA\d+', _date_at_noon),
    _pattern('screenshot_compact', 'Screenshot_20190919-053857_Camera-edited.jpg',
             rf'{_Y}{_M}{_D}-{_H}{_MIN}{_S}'),
    _pattern('camera_underscore', 'IMG_20190509_154733.jpg',
             rf'{_Y}{_M}{_D}_{_H}{_MIN}{_S}'),
    _pattern('dashed_full', 'Screenshot_2019-04-16-11-19-37-232_com.google.a.jpg',
             rf'{_Y}-{_M}-{_D}-{_H}-{_MIN}-{_S}'),
    _pattern('signal', 'signal-2020-10-26-163832.jpg',
             rf'{_Y}-{_M}-{_D}-{_H}{_MIN}{_S}'),
    _pattern('compact_burst', '00004XTR_00004_BURST20190216172030.jpg',
             rf'{_Y}{_M}{_D}{_H}{_MIN}{_S}'),
    _pattern('underscored_full', '2016_01_30_11_49_15.mp4',
             rf'{_Y}_{_M}_{_D}_{_H}_{_MIN}_{_S}'),
]


def match_filename(filename: str) -> Optional[Tuple[FilenamePattern, datetime]]:
    """Return the first pattern that yields a valid datetime for `filename`."""
    for pattern in FILENAME_PATTERNS:
        decoded = pattern.decode(filename)
        if decoded is not None:
            return pattern, decoded
    return None


def extract_filename_timestamp(file_path: Path) -> ExtractionResult:
    matched = match_filename(file_path.name)
    if matched is None:
        return ExtractionResult.not_found("no filename pattern matched")

    pattern, decoded = matched
    logger.debug(f"{file_path.name} matched {pattern.name}")
    return ExtractionResult.found(decoded)
