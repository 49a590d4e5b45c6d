"""
Chat Providers Module

Provides the abstraction layer over language-model backends and the gateway
that pairs a primary provider with an optional fallback.
"""

from .base_provider import BaseProvider, ProviderConfig
from .fake_provider import FakeProvider
from .gateway import ProviderGateway, build_gateway, is_rate_limited
from .gemini_provider import GeminiProvider
from .openrouter_provider import OpenRouterProvider

__all__ = [
    "BaseProvider",
    "ProviderConfig",
    "FakeProvider",
    "GeminiProvider",
    "OpenRouterProvider",
    "ProviderGateway",
    "build_gateway",
    "is_rate_limited",
]
