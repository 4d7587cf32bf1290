"""
Tests for structured logging
"""

import json
import logging

from investment_platform.logging_config import (
    JSONFormatter, ContextTextFormatter, log_action, setup_logging
)


def _record(logger_name="platform.test", **context):
    record = logging.LogRecord(logger_name, logging.INFO, __file__, 1, "balance credited", (), None)
    for key, value in context.items():
        setattr(record, key, value)
    return record


class TestFormatters:

    def test_json_includes_only_present_context(self):
        line = JSONFormatter().format(_record(user_id="u-1", action="credit"))
        payload = json.loads(line)

        assert payload["message"] == "balance credited"
        assert payload["level"] == "INFO"
        assert payload["user_id"] == "u-1"
        assert payload["action"] == "credit"
        assert "resource" not in payload
        assert "extra" not in payload

    def test_text_appends_context(self):
        line = ContextTextFormatter().format(
            _record(resource="loan_order:1", extra={"amount": "10.00"})
        )

        assert "balance credited" in line
        assert "resource=loan_order:1" in line
        assert 'extra={"amount": "10.00"}' in line


class TestLogAction:

    def test_attaches_context_fields(self, caplog):
        logger = logging.getLogger("platform.test.actions")
        logger.propagate = True

        with caplog.at_level(logging.INFO, logger="platform.test.actions"):
            log_action(logger, "info", "Bonus credited", user_id="u-1",
                       action="bonus_credited", resource="bonus:b-1",
                       extra={"amount": "25"})

        record = caplog.records[-1]
        assert record.getMessage() == "Bonus credited"
        assert record.user_id == "u-1"
        assert record.resource == "bonus:b-1"
        assert record.extra == {"amount": "25"}

    def test_below_threshold_is_dropped(self, caplog):
        logger = logging.getLogger("platform.test.quiet")
        logger.propagate = True

        with caplog.at_level(logging.WARNING, logger="platform.test.quiet"):
            log_action(logger, "info", "ignored")

        assert caplog.records == []


def test_setup_logging_replaces_handlers():
    logger = setup_logging("DEBUG", "text", logger_name="platform.test.setup")
    setup_logging("DEBUG", "json", logger_name="platform.test.setup")

    assert len(logger.handlers) == 1
    assert isinstance(logger.handlers[0].formatter, JSONFormatter)
    assert logger.level == logging.DEBUG
