"""Tests for structured logging."""

import json
import logging

from studiosync.infrastructure.observability.logging import (
    CompactExceptionFormatter,
    CorrelationIdFilter,
    CustomJsonFormatter,
    configure_logging,
    get_correlation_id,
    set_correlation_id,
)


class TestCorrelationId:
    """Test correlation ID functionality."""

    def test_set_and_get_correlation_id(self):
        """Test setting and getting correlation ID."""
        test_id = "test-123-abc"
        result = set_correlation_id(test_id)
        assert result == test_id
        assert get_correlation_id() == test_id

    def test_set_correlation_id_generates_uuid_when_none(self):
        """Test that setting None generates a UUID."""
        result = set_correlation_id(None)
        assert result is not None
        assert len(result) == 36
        assert get_correlation_id() == result

    def test_filter_copies_id_onto_record(self):
        set_correlation_id("corr-42")
        record = logging.LogRecord("x", logging.INFO, __file__, 1, "hi", None, None)

        assert CorrelationIdFilter().filter(record) is True
        assert record.correlation_id == "corr-42"


class TestLoggingConfiguration:
    """Test logging configuration."""

    def test_configure_logging_debug_level(self):
        configure_logging(log_level="DEBUG", json_format=False, app_name="test-app")
        assert logging.getLogger("test").getEffectiveLevel() <= logging.DEBUG

    def test_configure_logging_info_level(self):
        configure_logging(log_level="INFO", json_format=False, app_name="test-app")
        assert logging.getLogger("test").getEffectiveLevel() == logging.INFO

    def test_configure_logging_replaces_handlers(self):
        """Calling configure twice must not stack handlers."""
        configure_logging(log_level="INFO", json_format=False)
        configure_logging(log_level="INFO", json_format=True)
        root_logger = logging.getLogger()

        assert len(root_logger.handlers) == 1
        assert isinstance(root_logger.handlers[0].formatter, CustomJsonFormatter)

    def test_text_format_uses_compact_formatter(self):
        configure_logging(log_level="INFO", json_format=False)
        handler = logging.getLogger().handlers[0]

        assert isinstance(handler.formatter, CompactExceptionFormatter)

    def test_noisy_libraries_are_quieted(self):
        configure_logging(log_level="DEBUG", json_format=False)
        assert logging.getLogger("httpx").level == logging.WARNING


class TestFormatters:
    def test_json_output_carries_correlation_id(self):
        formatter = CustomJsonFormatter("%(timestamp)s %(level)s %(name)s %(message)s")
        record = logging.LogRecord(
            "studiosync.sync", logging.INFO, __file__, 10, "synced %d", (3,), None
        )
        record.correlation_id = "corr-json"

        payload = json.loads(formatter.format(record))

        assert payload["message"] == "synced 3"
        assert payload["level"] == "INFO"
        assert payload["logger"] == "studiosync.sync"
        assert payload["correlation_id"] == "corr-json"

    def test_compact_formatter_lists_root_cause_first(self):
        formatter = CompactExceptionFormatter()
        try:
            try:
                raise KeyError("inner")
            except KeyError as inner:
                raise RuntimeError("outer") from inner
        except RuntimeError as exc:
            text = formatter.formatException((type(exc), exc, exc.__traceback__))

        lines = [line for line in text.splitlines() if line.startswith("╰─►")]
        assert lines[0].startswith("╰─► KeyError")
        assert lines[1] == "╰─► RuntimeError: outer"
