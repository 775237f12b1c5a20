"""
Single-source timestamp extractors.

Every extractor is a pure function over one file and returns an
ExtractionResult. Expected misses are `not_found`; I/O or decoding problems
are `failed` with a reason. Nothing raises past this layer.
"""

import logging
import mimetypes
import re
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from pathlib import Path
from typing import Optional

import exifread

logger = logging.getLogger(__name__)

MAX_FILE_SIZE = 64 * 1024 * 1024

# Priority order: captured-original, digitized, generic.
EXIF_DATE_TAGS = ('EXIF DateTimeOriginal', 'EXIF DateTimeDigitized', 'Image DateTime')

MIN_YEAR = 1900
MAX_YEAR = 2100

# Camera raw and HEIF types the platform mime table may not know
RAW_IMAGE_TYPES = {
    '.dng': 'image/x-adobe-dng',
    '.arw': 'image/x-sony-arw',
    '.cr2': 'image/x-canon-cr2',
    '.nef': 'image/x-nikon-nef',
    '.raw': 'image/x-panasonic-raw',
    '.heic': 'image/heic',
    '.heif': 'image/heif',
}

for _extension, _mime_type in RAW_IMAGE_TYPES.items():
    mimetypes.add_type(_mime_type, _extension)


class ExtractionStatus(Enum):
    FOUND = 'found'
    NOT_FOUND = 'not_found'
    FAILED = 'failed'


@dataclass(frozen=True)
class ExtractionResult:
    status: ExtractionStatus
    timestamp: Optional[datetime] = None
    reason: str = ''
    corrupted: bool = False

    @classmethod
    def found(cls, timestamp: datetime) -> 'ExtractionResult':
        return cls(ExtractionStatus.FOUND, timestamp)

    @classmethod
    def not_found(cls, reason: str = '') -> 'ExtractionResult':
        return cls(ExtractionStatus.NOT_FOUND, reason=reason)

    @classmethod
    def failed(cls, reason: str, corrupted: bool = False) -> 'ExtractionResult':
        return cls(ExtractionStatus.FAILED, reason=reason, corrupted=corrupted)

    @property
    def is_found(self) -> bool:
        return self.status is ExtractionStatus.FOUND

    @property
    def is_failed(self) -> bool:
        return self.status is ExtractionStatus.FAILED


def is_plausible_year(year: int) -> bool:
    return MIN_YEAR <= year <= MAX_YEAR


# ---------------------------------------------------------------------------
# Embedded metadata (EXIF)
# ---------------------------------------------------------------------------

_EXIF_SEPARATORS = re.compile(r'[-/.\\]')
_EXIF_TEMPLATE = '1970:01:01 00:00:00'


def parse_exif_datetime(raw: str) -> Optional[datetime]:
    """
    Parse an EXIF date string written by an arbitrary camera or app.

    Separators are normalized to ':' and stray spaces inside the time part
    are treated as leading zeros ("12: 5:00" -> "12:05:00"). Values longer
    than a full timestamp are truncated; a date without a time is padded
    with midnight.
    """
    text = raw.replace('\x00', '').strip()
    text = re.sub(r'\s+', ' ', text)
    text = _EXIF_SEPARATORS.sub(':', text)
    text = text.replace(' :', ':').replace(': ', ':0')
    text = text[:len(_EXIF_TEMPLATE)]
    if len(text) < 10:
        return None
    text = text + _EXIF_TEMPLATE[len(text):]

    try:
        parsed = datetime.strptime(text, '%Y:%m:%d %H:%M:%S')
    except ValueError:
        return None
    if not is_plausible_year(parsed.year):
        return None
    return parsed


def extract_embedded_timestamp(file_path: Path, max_file_size: int = MAX_FILE_SIZE) -> ExtractionResult:
    """Read the capture date from EXIF tags of an image file."""
    mime_type, _ = mimetypes.guess_type(file_path.name)
    if not mime_type or not mime_type.startswith('image/'):
        return ExtractionResult.not_found(f"not an image ({mime_type})")

    try:
        if file_path.stat().st_size > max_file_size:
            return ExtractionResult.not_found("file above EXIF size ceiling")
        with open(file_path, 'rb') as f:
            tags = exifread.process_file(f, stop_tag='DateTimeDigitized', details=False)
    except OSError as e:
        return ExtractionResult.failed(f"Could not open file for EXIF: {e}")
    except Exception as e:
        # exifread raises a wide range of errors on malformed headers
        return ExtractionResult.failed(f"Could not read EXIF: {e}", corrupted=True)

    for tag_name in EXIF_DATE_TAGS:
        tag = tags.get(tag_name)
        if tag is None:
            continue
        parsed = parse_exif_datetime(str(tag))
        if parsed is not None:
            return ExtractionResult.found(parsed)
        logger.debug(f"Unparseable {tag_name} '{tag}' in {file_path}")

    return ExtractionResult.not_found("no usable EXIF date tag")


# ---------------------------------------------------------------------------
# Filesystem attributes
# ---------------------------------------------------------------------------

def extract_filesystem_timestamp(file_path: Path, recent_modification_days: float = 30,
                                 now: Optional[datetime] = None) -> ExtractionResult:
    """
    Last resort: the file's status-change time.

    A file modified within `recent_modification_days` of `now` was most likely
    touched by the export or copy itself, so no timestamp is returned.
    """
    try:
        stat = file_path.stat()
    except OSError as e:
        return ExtractionResult.failed(f"Could not stat file: {e}")

    now = now or datetime.now()
    modified = datetime.fromtimestamp(stat.st_mtime)
    if now - modified < timedelta(days=recent_modification_days):
        return ExtractionResult.not_found("modified recently, likely by the export")

    return ExtractionResult.found(datetime.fromtimestamp(stat.st_ctime))


# ---------------------------------------------------------------------------
# Ancestor folder names
# ---------------------------------------------------------------------------

_FOLDER_DATE = re.compile(
    r'(?<!\d)(?P<year>(?:19|20)\d{2})(?:[-_. ](?P<month>0[1-9]|1[0-2]))?(?!\d)'
)


def extract_folder_name_timestamp(file_path: Path, depth: int = 2) -> ExtractionResult:
    """Guess a date from a year (and optional month) in a parent folder name."""
    for ancestor in list(file_path.parents)[:depth]:
        match = _FOLDER_DATE.search(ancestor.name)
        if not match:
            continue
        year = int(match.group('year'))
        month = int(match.group('month') or 1)
        if is_plausible_year(year):
            return ExtractionResult.found(datetime(year, month, 1, 12, 0, 0))

    return ExtractionResult.not_found("no year in folder names")
