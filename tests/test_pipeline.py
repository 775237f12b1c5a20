"""End-to-end tests for the four-phase pipeline."""

from datetime import datetime
from unittest.mock import patch

import pytest

from takeout_timefix.config import OrganizationMode, ProcessingConfig
from takeout_timefix.errors import ErrorCategory, ErrorSeverity
from takeout_timefix.models import AccuracyRank
from takeout_timefix.organizer import MONTH_NAMES, UNKNOWN_DATE_DIRECTORY
from takeout_timefix.pipeline import PipelineOrchestrator
from takeout_timefix.reporter import RUN_LOG_NAME

SIDECAR_TS = 1577880000


@pytest.fixture(autouse=True)
def no_exif():
    with patch('takeout_timefix.extractors.exifread.process_file', return_value={}):
        yield


def _sidecar_target(output_root, suffix='.jpg', counter=None):
    taken = datetime.fromtimestamp(SIDECAR_TS)
    name = taken.strftime('%Y%m%d_%H%M%S')
    if counter:
        name += f'({counter})'
    month = f"{taken.month:02d}-{MONTH_NAMES[taken.month - 1]}"
    return output_root / f"{taken.year:04d}" / month / f"{name}{suffix}"


def _by_name(result):
    return {f.source_file.name: f for f in result.organized}


class TestFullRun:

    def test_should_organize_by_date_when_takeout_has_mixed_sources(
            self, takeout_root, output_root, processing_config, create_media, create_sidecar, old_mtime):
        """Should place each file under the date of its most trusted source."""

        # Given a sidecar-dated photo, a filename-dated photo filed in two places and an old file
        create_media('Trip/a.jpg', content=b'sidecar-dated')
        create_sidecar('Trip/a.jpg.json', SIDECAR_TS)
        create_media('Photos from 2019/IMG_20190102_030405.jpg', content=b'same-bytes')
        create_media('Trip/IMG_20190102_030405.jpg', content=b'same-bytes')
        create_media('Trip/old.png', content=b'only-filesystem', mtime=old_mtime)

        # When running the pipeline
        result = PipelineOrchestrator(processing_config).run()

        # Should organize three unique files
        assert result.success
        assert result.total_files == 4
        assert result.processed_files == 4
        assert result.unique_files == 3
        assert result.duplicates_removed == 1
        assert result.organized_files == 3
        assert result.failed_files == 0

        organized = _by_name(result)
        assert organized['a.jpg'].target_file == _sidecar_target(output_root)
        assert organized['a.jpg'].accuracy == AccuracyRank.SIDECAR_METADATA
        assert organized['IMG_20190102_030405.jpg'].target_file == \
            output_root / '2019' / '01-January' / '20190102_030405.jpg'
        assert organized['IMG_20190102_030405.jpg'].accuracy == AccuracyRank.FILENAME_PATTERN
        assert organized['old.png'].accuracy == AccuracyRank.FILESYSTEM_ATTRIBUTE

        # Should move the primary copy and leave the duplicate in place
        assert not (takeout_root / 'Photos from 2019' / 'IMG_20190102_030405.jpg').exists()
        assert (takeout_root / 'Trip' / 'IMG_20190102_030405.jpg').exists()
        assert _sidecar_target(output_root).read_bytes() == b'sidecar-dated'

    def test_should_keep_undated_files_when_no_source_matches(
            self, output_root, processing_config, create_media):
        """Should file undated media under date-unknown and warn about it."""
        create_media('Trip/mystery.jpg')

        result = PipelineOrchestrator(processing_config).run()

        assert result.success
        assert result.organized[0].target_file == output_root / UNKNOWN_DATE_DIRECTORY / 'mystery_no_date.jpg'
        assert result.organized[0].accuracy is None
        assert [w.message for w in result.warnings] == ['No timestamp could be extracted']
        assert result.warnings[0].category == ErrorCategory.METADATA_EXTRACTION

    def test_single_folder_mode(self, takeout_root, output_root, create_media, create_sidecar):
        create_media('a.jpg', content=b'a')
        create_sidecar('a.jpg.json', SIDECAR_TS)
        config = ProcessingConfig(takeout_root, output_root,
                                  organization_mode=OrganizationMode.SINGLE_FOLDER)

        result = PipelineOrchestrator(config).run()

        expected = output_root / datetime.fromtimestamp(SIDECAR_TS).strftime('%Y%m%d_%H%M%S.jpg')
        assert result.organized[0].target_file == expected
        assert expected.exists()

    def test_preserve_original_filename(self, takeout_root, output_root, create_media, create_sidecar):
        create_media('Trip/a.jpg', content=b'a')
        create_sidecar('Trip/a.jpg.json', SIDECAR_TS)
        config = ProcessingConfig(takeout_root, output_root, preserve_original_filename=True)

        result = PipelineOrchestrator(config).run()

        assert result.organized[0].target_file == _sidecar_target(output_root).with_name('a.jpg')

    def test_same_timestamp_gets_numbered_names(self, output_root, processing_config,
                                                create_media, create_sidecar):
        create_media('Trip/a.jpg', content=b'first')
        create_sidecar('Trip/a.jpg.json', SIDECAR_TS)
        create_media('Trip/b.jpg', content=b'second')
        create_sidecar('Trip/b.jpg.json', SIDECAR_TS)

        result = PipelineOrchestrator(processing_config).run()

        organized = _by_name(result)
        assert organized['a.jpg'].target_file == _sidecar_target(output_root)
        assert organized['b.jpg'].target_file == _sidecar_target(output_root, counter=1)

    def test_rerun_never_overwrites_existing_output(self, output_root, processing_config,
                                                    create_media, create_sidecar):
        create_media('Trip/a.jpg', content=b'first run')
        create_sidecar('Trip/a.jpg.json', SIDECAR_TS)
        PipelineOrchestrator(processing_config).run()

        create_media('Trip/c.jpg', content=b'second run')
        create_sidecar('Trip/c.jpg.json', SIDECAR_TS)
        result = PipelineOrchestrator(processing_config).run()

        assert result.organized[0].target_file == _sidecar_target(output_root, counter=1)
        assert _sidecar_target(output_root).read_bytes() == b'first run'
        assert _sidecar_target(output_root, counter=1).read_bytes() == b'second run'

    def test_should_report_only_own_entries_when_orchestrator_reused(
            self, processing_config, create_media):
        """Should start each run with an empty error log and full progress range."""
        create_media('Trip/first.jpg', content=b'first')
        orchestrator = PipelineOrchestrator(processing_config)
        first = orchestrator.run()
        assert [w.file_path for w in first.warnings] == [str(first.organized[0].source_file)]

        create_media('Trip/second.jpg', content=b'second')
        updates = []
        orchestrator.progress.sink = lambda pct, msg: updates.append(pct)
        second = orchestrator.run()

        assert second.success
        assert len(second.warnings) == 1
        assert second.warnings[0].file_path.endswith('second.jpg')
        assert updates[0] == 0
        assert updates[-1] == 100

    def test_parallel_resolution_matches_sequential(self, takeout_root, tmp_path, create_media):
        for i in range(12):
            create_media(f'Trip/IMG_201901{i + 10:02d}_120000.jpg', content=f'file-{i}'.encode())

        sequential = PipelineOrchestrator(ProcessingConfig(takeout_root, tmp_path / 'seq')).run()
        # the first run moved everything out, so put it back
        for i in range(12):
            create_media(f'Trip/IMG_201901{i + 10:02d}_120000.jpg', content=f'file-{i}'.encode())
        parallel = PipelineOrchestrator(ProcessingConfig(takeout_root, tmp_path / 'par',
                                                         parallel_jobs=4)).run()

        assert [f.target_file.name for f in sequential.organized] == \
            [f.target_file.name for f in parallel.organized]
        assert parallel.organized_files == 12


class TestFailures:

    def test_should_fail_when_no_media_found(self, processing_config):
        """Should report failure when the takeout directory is empty."""
        result = PipelineOrchestrator(processing_config).run()

        assert not result.success
        assert result.error_message == 'No media files found in the specified directory'
        assert len(result.errors) == 1
        assert result.errors[0].category == ErrorCategory.FILE_ACCESS

    def test_should_fail_when_input_directory_missing(self, tmp_path, output_root):
        """Should report failure instead of raising when discovery cannot start."""
        config = ProcessingConfig(tmp_path / 'missing', output_root)

        result = PipelineOrchestrator(config).run()

        assert not result.success
        assert result.error_message
        assert result.errors[0].severity == ErrorSeverity.ERROR

    def test_should_isolate_organize_failure_when_one_item_fails(
            self, output_root, processing_config, create_media, create_sidecar):
        """Should keep organizing other files when one placement fails."""
        create_media('Trip/a.jpg', content=b'a')
        create_sidecar('Trip/a.jpg.json', SIDECAR_TS)
        create_media('Trip/b.jpg', content=b'b')
        create_sidecar('Trip/b.jpg.json', SIDECAR_TS)

        orchestrator = PipelineOrchestrator(processing_config)
        original_place = orchestrator.mover.place

        def flaky_place(item, target):
            if item.primary_file.name == 'a.jpg':
                raise PermissionError('denied')
            return original_place(item, target)

        with patch.object(orchestrator.mover, 'place', side_effect=flaky_place):
            result = orchestrator.run()

        assert result.success
        assert result.organized_files == 1
        assert result.failed_files == 1
        assert result.errors[0].category == ErrorCategory.FILE_ACCESS
        assert result.errors[0].context == {'target': str(_sidecar_target(output_root))}
        # the released name is reused by the next item
        assert result.organized[0].target_file == _sidecar_target(output_root)

    def test_unexpected_exception_becomes_failure_result(self, processing_config, create_media):
        create_media('a.jpg')
        orchestrator = PipelineOrchestrator(processing_config)

        with patch.object(orchestrator.consolidator, 'consolidate', side_effect=RuntimeError('boom')):
            result = orchestrator.run()

        assert not result.success
        assert result.error_message == 'Processing failed: boom'
        assert result.processed_files == 1

    def test_cancelled_run(self, processing_config, create_media):
        create_media('a.jpg')
        orchestrator = PipelineOrchestrator(processing_config)
        orchestrator.cancel()

        result = orchestrator.run()

        assert not result.success
        assert result.error_message == 'Processing cancelled'
        assert result.total_files == 1
        assert result.organized_files == 0


class TestRunReporting:

    def test_run_log_written_to_output_root(self, output_root, processing_config, create_media):
        create_media('Trip/mystery.jpg')

        result = PipelineOrchestrator(processing_config).run()

        assert result.run_log_path == output_root / RUN_LOG_NAME
        text = result.run_log_path.read_text(encoding='utf-8')
        assert '=== WARNING ===' in text
        assert 'No timestamp could be extracted' in text

    def test_run_log_can_be_disabled(self, takeout_root, output_root, create_media):
        create_media('Trip/mystery.jpg')
        config = ProcessingConfig(takeout_root, output_root, write_run_log=False)

        result = PipelineOrchestrator(config).run()

        assert result.run_log_path is None
        assert not (output_root / RUN_LOG_NAME).exists()

    def test_progress_reaches_hundred(self, processing_config, create_media):
        create_media('a.jpg', content=b'a')
        create_media('b.jpg', content=b'b')
        updates = []

        PipelineOrchestrator(processing_config, progress_sink=lambda pct, msg: updates.append(pct)).run()

        assert updates[0] == 0
        assert updates[-1] == 100
        assert updates == sorted(updates)

    def test_stats_after_run(self, processing_config, create_media):
        create_media('Trip/mystery.jpg')
        orchestrator = PipelineOrchestrator(processing_config)

        assert orchestrator.get_stats()['is_processing'] is False
        orchestrator.run()
        stats = orchestrator.get_stats()

        assert stats['is_processing'] is False
        assert stats['cancelled'] is False
        assert stats['percentage'] == 100
        assert stats['elapsed_seconds'] > 0
        assert stats['errors']['warnings'] == 1
