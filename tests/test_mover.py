"""Tests for physical placement of files."""

import errno
from datetime import datetime
from unittest.mock import patch

import pytest

from takeout_timefix.errors import ErrorCategory, ErrorLog, InsufficientSpaceError
from takeout_timefix.models import AccuracyRank, MediaItem
from takeout_timefix.mover import Mover

TAKEN = datetime(2019, 9, 19, 5, 38, 57)


def _item(path, date_taken=TAKEN):
    accuracy = AccuracyRank.SIDECAR_METADATA if date_taken else None
    return MediaItem(albums={None: path}, date_taken=date_taken, accuracy=accuracy)


def _cross_device(*args, **kwargs):
    raise OSError(errno.EXDEV, 'Invalid cross-device link')


class TestPlacement:

    def test_rename_moves_file_and_sets_mtime(self, create_media, output_root):
        source = create_media('photo.jpg', b'pixels')
        target = output_root / '2019' / '09-September' / '20190919_053857.jpg'

        organized = Mover().place(_item(source), target)

        assert organized.method == 'rename'
        assert organized.target_file == target
        assert organized.source_file == source
        assert organized.accuracy == AccuracyRank.SIDECAR_METADATA
        assert not source.exists()
        assert target.read_bytes() == b'pixels'
        assert target.stat().st_mtime == pytest.approx(TAKEN.timestamp())

    def test_copy_fallback_when_rename_fails(self, create_media, output_root):
        source = create_media('photo.jpg', b'pixels')
        target = output_root / 'photo.jpg'

        with patch('takeout_timefix.mover.os.replace', side_effect=_cross_device):
            organized = Mover().place(_item(source), target)

        assert organized.method == 'copy'
        assert source.exists()
        assert target.read_bytes() == b'pixels'
        assert target.stat().st_mtime == pytest.approx(TAKEN.timestamp())

    def test_unresolved_item_keeps_its_mtime(self, create_media, output_root, old_mtime):
        source = create_media('photo.jpg', mtime=old_mtime)
        target = output_root / 'date-unknown' / 'photo_no_date.jpg'

        Mover().place(_item(source, None), target)

        assert target.stat().st_mtime == pytest.approx(old_mtime)

    def test_existing_target_is_never_overwritten(self, create_media, output_root):
        source = create_media('photo.jpg', b'new')
        target = output_root / 'IMG001.jpg'
        target.parent.mkdir(parents=True)
        target.write_bytes(b'old')

        organized = Mover().place(_item(source), target)

        assert target.read_bytes() == b'old'
        assert organized.target_file == output_root / 'IMG001(1).jpg'
        assert organized.target_file.read_bytes() == b'new'


class TestPlacementFailures:

    def test_insufficient_space_for_copy(self, create_media, output_root):
        source = create_media('photo.jpg', b'pixels')
        target = output_root / 'photo.jpg'

        with patch('takeout_timefix.mover.os.replace', side_effect=_cross_device), \
                patch('takeout_timefix.mover.get_available_space', return_value=0):
            with pytest.raises(InsufficientSpaceError):
                Mover().place(_item(source), target)

        assert source.exists()
        assert not target.exists(), "placeholder must be removed after a failed placement"

    def test_missing_source_releases_placeholder(self, tmp_path, output_root):
        target = output_root / 'photo.jpg'
        with pytest.raises(FileNotFoundError):
            Mover().place(_item(tmp_path / 'gone.jpg'), target)
        assert not target.exists()

    def test_mtime_failure_is_logged_not_fatal(self, create_media, output_root):
        error_log = ErrorLog()
        source = create_media('photo.jpg', b'pixels')
        target = output_root / 'photo.jpg'

        with patch('takeout_timefix.mover.os.utime', side_effect=PermissionError('read-only')):
            organized = Mover(error_log).place(_item(source), target)

        assert organized.target_file.read_bytes() == b'pixels'
        assert len(error_log) == 1
        assert error_log.errors[0].category == ErrorCategory.FILE_ACCESS
