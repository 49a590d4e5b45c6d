"""Unit tests for structured logging processors and helpers."""

from unittest.mock import MagicMock

import pytest
import structlog

from chatstream.core.config.constants import Stage
from chatstream.core.logging import (
    clear_request_id,
    get_logger,
    get_request_id,
    log_stage,
    set_request_id,
    setup_logging,
)
from chatstream.core.logging.logger import (
    add_log_level_name,
    add_request_id,
    redact_secrets,
)


@pytest.fixture(autouse=True)
def reset_request_id():
    yield
    clear_request_id()


@pytest.mark.unit
class TestProcessors:

    def test_redacts_provider_keys(self):
        event = {
            "event": "Calling with sk-or-v1-abc123 and AIzaSyD-example_key",
            "count": 3,
        }

        result = redact_secrets(None, "info", event)

        assert result["event"] == "Calling with [REDACTED] and [REDACTED]"
        assert result["count"] == 3

    def test_request_id_added_from_context(self):
        set_request_id("req-42")

        assert add_request_id(None, "info", {"event": "x"})["request_id"] == "req-42"

    def test_explicit_request_id_wins(self):
        set_request_id("req-42")

        result = add_request_id(None, "info", {"event": "x", "request_id": "other"})

        assert result["request_id"] == "other"

    def test_no_request_id_outside_a_request(self):
        assert "request_id" not in add_request_id(None, "info", {"event": "x"})

    def test_level_uppercased(self):
        assert add_log_level_name(None, "info", {"level": "warning"})["level"] == "WARNING"


@pytest.mark.unit
class TestHelpers:

    def test_request_id_context(self):
        set_request_id("req-1")
        assert get_request_id() == "req-1"

        clear_request_id()
        assert get_request_id() is None

    def test_log_stage_uses_stage_value_and_level(self):
        logger = MagicMock()

        log_stage(logger, Stage.FAILOVER, "Switching", level="warning", provider="openrouter")

        logger.warning.assert_called_once_with(
            "Switching", stage=Stage.FAILOVER.value, provider="openrouter"
        )

    def test_log_stage_accepts_plain_strings(self):
        logger = MagicMock()

        log_stage(logger, "CUSTOM", "Hello")

        logger.info.assert_called_once_with("Hello", stage="CUSTOM")

    def test_setup_logging_configures_structlog(self):
        setup_logging(log_level="INFO", log_format="json")

        assert structlog.is_configured()
        get_logger("test").info("configured", stage=Stage.CLEANUP.value)
