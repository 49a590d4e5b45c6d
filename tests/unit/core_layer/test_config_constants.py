"""
Unit Tests for Configuration Constants

Tests the enumerations and limits shared across the service.
"""

import pytest

from chatstream.core.config.constants import (
    CHARS_PER_TOKEN,
    DEFAULT_MAX_CONTEXT_TOKENS,
    DEFAULT_RESPONSE_RESERVE_TOKENS,
    RATE_LIMIT_MARKERS,
    TITLE_MAX_LENGTH,
    ErrorKind,
    EventType,
    MessageStatus,
    Stage,
)


@pytest.mark.unit
class TestEnumerations:

    def test_stage_values_are_unique(self):
        values = [stage.value for stage in Stage]

        assert len(values) == len(set(values))

    def test_event_names_match_wire_format(self):
        assert {e.value for e in EventType} == {
            "token", "citation", "info", "title", "done", "error",
        }

    def test_enums_compare_as_strings(self):
        assert ErrorKind.RATE_LIMITED == "rate_limited"
        assert MessageStatus.STREAMING == "streaming"


@pytest.mark.unit
class TestLimits:

    def test_default_budget_leaves_room_for_context(self):
        assert DEFAULT_RESPONSE_RESERVE_TOKENS < DEFAULT_MAX_CONTEXT_TOKENS

    def test_token_estimate_ratio(self):
        assert CHARS_PER_TOKEN == 4

    def test_rate_limit_markers(self):
        assert "429" in RATE_LIMIT_MARKERS
        assert "RESOURCE_EXHAUSTED" in RATE_LIMIT_MARKERS

    def test_title_length(self):
        assert TITLE_MAX_LENGTH == 100
