"""Tests for craftscript.utils.log — log callback helpers."""
import io
import logging

from craftscript.utils.log import console_log_fn, logging_log_fn, null_log_fn


class TestConsoleLogFn:
    def test_format(self):
        out = io.StringIO()
        console_log_fn(out)("SUCCESS", "Run completed")
        line = out.getvalue()
        assert line.startswith("[")
        assert "SUCCESS Run completed" in line

    def test_min_level(self):
        out = io.StringIO()
        log = console_log_fn(out, min_level="WARNING")
        log("INFO", "hidden")
        log("DEBUG", "hidden")
        log("ERROR", "shown")
        assert "hidden" not in out.getvalue()
        assert "shown" in out.getvalue()

    def test_unknown_level_is_printed(self):
        out = io.StringIO()
        console_log_fn(out, min_level="ERROR")("TRACE", "odd")
        assert "odd" in out.getvalue()


class TestLoggingLogFn:
    def test_success_maps_to_info(self, caplog):
        with caplog.at_level(logging.DEBUG, logger="craftscript.test"):
            log = logging_log_fn("craftscript.test")
            log("SUCCESS", "done")
            log("WARNING", "careful")
        levels = [(r.levelno, r.getMessage()) for r in caplog.records]
        assert levels == [(logging.INFO, "done"), (logging.WARNING, "careful")]

    def test_null(self):
        assert null_log_fn("INFO", "ignored") is None
