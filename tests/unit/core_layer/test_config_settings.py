"""Unit tests for Settings validation and grouped views."""

import pytest
from pydantic import ValidationError

from chatstream.core.config.constants import DEFAULT_MAX_CONTEXT_TOKENS, DEFAULT_RAG_TOP_K
from chatstream.core.config.settings import Settings


def make_settings(**overrides) -> Settings:
    return Settings(_env_file=None, **overrides)


@pytest.mark.unit
class TestSettings:

    def test_defaults(self):
        settings = make_settings()

        assert settings.LLM_PROVIDER == "gemini"
        assert settings.MAX_CONTEXT_TOKENS == DEFAULT_MAX_CONTEXT_TOKENS
        assert settings.RAG_TOP_K == DEFAULT_RAG_TOP_K
        assert settings.STORE_BACKEND == "memory"

    def test_log_level_normalized(self):
        assert make_settings(LOG_LEVEL="debug").LOG_LEVEL == "DEBUG"

    def test_invalid_log_level(self):
        with pytest.raises(ValidationError):
            make_settings(LOG_LEVEL="verbose")

    def test_reserve_must_leave_context(self):
        with pytest.raises(ValidationError):
            make_settings(MAX_CONTEXT_TOKENS=1000, RESPONSE_RESERVE_TOKENS=1000)

    def test_unknown_provider_rejected(self):
        with pytest.raises(ValidationError):
            make_settings(LLM_PROVIDER="anthropic")

    def test_environment_variables(self, monkeypatch):
        monkeypatch.setenv("LLM_PROVIDER", "fake")
        monkeypatch.setenv("RAG_TOP_K", "8")

        settings = make_settings()

        assert settings.LLM_PROVIDER == "fake"
        assert settings.RAG_TOP_K == 8

    def test_grouped_views(self):
        settings = make_settings(
            OPENROUTER_API_KEY="sk-or-test", MAX_CONTEXT_TOKENS=2000, RESPONSE_RESERVE_TOKENS=500,
            REDIS_HOST="redis.internal",
        )

        assert settings.llm.OPENROUTER_API_KEY == "sk-or-test"
        assert settings.context.MAX_CONTEXT_TOKENS == 2000
        assert settings.context.RESPONSE_RESERVE_TOKENS == 500
        assert settings.redis.REDIS_HOST == "redis.internal"
        assert settings.app.ENVIRONMENT == "development"
