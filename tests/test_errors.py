"""Tests for the error taxonomy and the shared error log."""

import errno
import json
import threading

import pytest

from takeout_timefix.errors import (
    DiscoveryError,
    ErrorCategory,
    ErrorLog,
    ErrorSeverity,
    InsufficientSpaceError,
    categorize_exception,
)


class TestCategorizeException:

    @pytest.mark.parametrize('exc, category', [
        (InsufficientSpaceError('full'), ErrorCategory.DISK_SPACE),
        (OSError(errno.ENOSPC, 'No space left on device'), ErrorCategory.DISK_SPACE),
        (PermissionError('denied'), ErrorCategory.FILE_ACCESS),
        (FileNotFoundError('gone'), ErrorCategory.FILE_ACCESS),
        (json.JSONDecodeError('bad', '{', 0), ErrorCategory.CORRUPTED_FILE),
        (DiscoveryError('nope'), ErrorCategory.PROCESSING),
        (ValueError('odd'), ErrorCategory.PROCESSING),
        (ZeroDivisionError(), ErrorCategory.UNKNOWN),
    ])
    def test_mapping(self, exc, category):
        assert categorize_exception(exc) == category


class TestErrorLog:

    def test_log_and_query(self):
        log = ErrorLog()
        log.log_error('no date', '/a.jpg', ErrorSeverity.WARNING, ErrorCategory.METADATA_EXTRACTION)
        log.log_error('bad json', '/b.jpg', ErrorSeverity.INFO, ErrorCategory.CORRUPTED_FILE)
        log.log_error('copy failed', '/a.jpg', ErrorSeverity.ERROR, ErrorCategory.DISK_SPACE,
                      exception=OSError('full'), context={'target': '/out/a.jpg'})

        assert len(log) == 3
        assert [e.message for e in log.get_errors_for_file('/a.jpg')] == ['no date', 'copy failed']
        assert len(log.get_errors_by_severity(ErrorSeverity.INFO)) == 1

        stats = log.get_stats()
        assert (stats.total_errors, stats.critical_errors, stats.warnings, stats.info) == (3, 1, 1, 1)

        failed = log.get_errors_by_severity(ErrorSeverity.ERROR)[0]
        assert failed.exception == "OSError('full')"
        assert failed.context == {'target': '/out/a.jpg'}

    def test_consecutive_errors_trigger_stop_hint(self):
        log = ErrorLog()
        for i in range(ErrorLog.MAX_CONSECUTIVE_ERRORS - 1):
            log.log_error('fail', f'/{i}.jpg', ErrorSeverity.ERROR)
        assert not log.should_stop_operation()

        log.log_error('fail', '/last.jpg', ErrorSeverity.ERROR)
        assert log.should_stop_operation()

    def test_non_error_entry_resets_streak(self):
        log = ErrorLog()
        for i in range(ErrorLog.MAX_CONSECUTIVE_ERRORS - 1):
            log.log_error('fail', f'/{i}.jpg', ErrorSeverity.ERROR)
        log.log_error('just a warning', '/w.jpg', ErrorSeverity.WARNING)
        log.log_error('fail', '/x.jpg', ErrorSeverity.ERROR)
        assert not log.should_stop_operation()
        assert log.get_stats().consecutive_errors == 1

    def test_clear(self):
        log = ErrorLog()
        log.log_error('fail', '/a.jpg', ErrorSeverity.ERROR)
        log.clear()
        assert len(log) == 0
        assert log.get_stats().consecutive_errors == 0

    def test_entries_are_immutable_snapshots(self):
        log = ErrorLog()
        log.log_error('fail', '/a.jpg')
        snapshot = log.errors
        snapshot.clear()
        assert len(log) == 1

    def test_thread_safe_logging(self):
        log = ErrorLog()

        def worker(n):
            for i in range(200):
                log.log_error('w', f'/{n}/{i}.jpg', ErrorSeverity.WARNING)

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(5)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(log) == 1000

    def test_entry_string_form(self):
        entry = ErrorLog().log_error('no date', '/a.jpg', ErrorSeverity.WARNING,
                                     ErrorCategory.METADATA_EXTRACTION)
        assert str(entry) == '[warning/metadataExtraction] /a.jpg: no date'
