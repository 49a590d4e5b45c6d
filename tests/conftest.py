"""
Pytest Configuration and Shared Test Fixtures

This module provides pytest configuration and reusable fixtures for all tests.
All fixtures defined here are automatically available to all test files.
"""

import os
import sys
from unittest.mock import MagicMock

import pytest

# Add project root to sys.path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from chatstream.core.config.settings import Settings  # noqa: E402
from chatstream.core.observability import MetricsCollector  # noqa: E402
from chatstream.llm_stream.providers import ProviderGateway  # noqa: E402
from chatstream.llm_stream.services import StreamOrchestrator, StreamRegistry  # noqa: E402
from chatstream.persistence import InMemoryMessageStore  # noqa: E402
from tests.test_fixtures import FakeRedis  # noqa: E402


# ============================================================================
# Pytest Configuration
# ============================================================================

# pytest-asyncio runs in auto mode (see pyproject.toml); async fixtures need no marker


# ============================================================================
# Configuration Fixtures
# ============================================================================


@pytest.fixture
def test_settings():
    """
    Real settings for testing, isolated from any local .env file.

    The fake provider needs no credentials.
    """
    return Settings(
        _env_file=None,
        LLM_PROVIDER="fake",
        GEMINI_API_KEY=None,
        OPENROUTER_API_KEY=None,
        ENVIRONMENT="test",
        APP_VERSION="1.0.0-test",
        LOG_FORMAT="console",
    )


@pytest.fixture
def mock_metrics():
    """MetricsCollector mock for asserting on recorded metrics."""
    return MagicMock(spec=MetricsCollector)


# ============================================================================
# Persistence Fixtures
# ============================================================================


@pytest.fixture
def store():
    return InMemoryMessageStore()


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
async def conversation(store):
    """A fresh, untitled conversation owned by ``user-1``."""
    return await store.create_conversation(user_id="user-1")


# ============================================================================
# Orchestration Fixtures
# ============================================================================


@pytest.fixture
def registry():
    return StreamRegistry()


@pytest.fixture
def make_orchestrator(store, registry):
    """
    Build an orchestrator around the shared store and registry.

    Usage:
        orchestrator = make_orchestrator(primary, fallback, title_generator=...)
    """

    def _make(primary, fallback=None, **kwargs) -> StreamOrchestrator:
        return StreamOrchestrator(
            gateway=ProviderGateway(primary, fallback),
            store=store,
            registry=registry,
            **kwargs,
        )

    return _make
