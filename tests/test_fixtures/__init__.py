"""
Test Fixtures Package

Shared test utilities and helpers for consistent testing across all modules.
"""

from .embedding_factory import FakeEmbedder
from .provider_factory import BlockingProvider, ProviderTestFactory, ScriptedProvider, collect
from .redis_factory import FakeRedis

__all__ = [
    "ProviderTestFactory",
    "ScriptedProvider",
    "BlockingProvider",
    "FakeEmbedder",
    "FakeRedis",
    "collect",
]
