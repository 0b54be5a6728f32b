"""
Unit tests for logging setup, timing and error messages.
"""

import logging
import time
from types import SimpleNamespace

import pytest

from procurement_ai.logic.logging_utils import (
    LOG_FILE_NAME,
    log_error,
    log_performance,
    record_count,
    setup_logging,
    timed,
)


@pytest.fixture
def restore_root():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    for handler in root.handlers:
        handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


class TestRecordCount:
    def test_snapshot_uses_total_records(self):
        assert record_count(SimpleNamespace(total_records=42)) == 42

    def test_row_collections_use_length(self):
        assert record_count([{"a": 1}, {"a": 2}]) == 2
        assert record_count({"invoice_lines": []}) == 1

    def test_other_results_have_no_count(self):
        assert record_count("done") is None
        assert record_count(None) is None


class TestTimed:
    def test_logs_elapsed_time_and_records(self, caplog):
        @timed
        def load():
            return [1, 2, 3]

        caplog.set_level(logging.INFO)
        assert load() == [1, 2, 3]
        assert "load took" in caplog.text
        assert "over 3 records" in caplog.text

    def test_result_without_count(self, caplog):
        @timed
        def ping():
            return "pong"

        caplog.set_level(logging.INFO)
        ping()
        assert "ping took" in caplog.text
        assert "records" not in caplog.text


class TestLogPerformance:
    def test_includes_records(self, caplog):
        caplog.set_level(logging.INFO, logger="procurement_ai.performance")
        log_performance("Parsing uploads", time.perf_counter() - 0.5, records=10)

        assert "Parsing uploads:" in caplog.text
        assert "10 records" in caplog.text


class TestLogError:
    def test_detail_stays_in_the_log(self, caplog):
        caplog.set_level(logging.ERROR)
        try:
            raise ValueError("secret path /tmp/x")
        except ValueError as e:
            message = log_error(e, "reading the upload")

        assert message == "Could not finish reading the upload; see the log for details."
        assert "secret" not in message
        assert "ValueError: secret path /tmp/x" in caplog.text


class TestSetupLogging:
    def test_console_only_by_default(self, restore_root):
        setup_logging(logging.WARNING)

        assert len(restore_root.handlers) == 1
        assert restore_root.level == logging.WARNING

    def test_file_handler_writes_under_log_dir(self, restore_root, tmp_path):
        setup_logging(log_to_file=True, log_dir=str(tmp_path / "logs"))
        logging.getLogger("procurement_ai.test").info("file line")
        for handler in restore_root.handlers:
            handler.flush()

        assert len(restore_root.handlers) == 2
        assert "file line" in (tmp_path / "logs" / LOG_FILE_NAME).read_text(encoding="utf-8")
