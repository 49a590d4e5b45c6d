"""
Centralized Configuration Module using Pydantic Settings

This module provides type-safe, environment-based configuration for the chat
streaming service. All configuration is centralized here so that providers,
the context assembler, retrieval and persistence read from one source.

- Environment variable loading with .env support
- Type validation at startup (fail fast on misconfiguration)
- Grouped read-only views (settings.llm, settings.context, ...) over one flat model
"""

from typing import Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from chatstream.core.config.constants import (
    DEFAULT_EMBEDDING_BATCH_CONCURRENCY,
    DEFAULT_MAX_CONTEXT_TOKENS,
    DEFAULT_MAX_TOKENS,
    DEFAULT_RAG_TOP_K,
    DEFAULT_RESPONSE_RESERVE_TOKENS,
    DEFAULT_TEMPERATURE,
)


class LLMProviderSettings(BaseSettings):
    """
    Language-model provider configuration.

    STAGE-0.1: Primary (Gemini / OpenRouter / fake) and fallback (OpenRouter)
    """

    LLM_PROVIDER: Literal["gemini", "openrouter", "fake"] = Field(default="gemini")
    GEMINI_API_KEY: str | None = Field(default=None)
    GEMINI_MODEL: str = Field(default="gemini-2.5-flash")
    GEMINI_EMBEDDING_MODEL: str = Field(default="models/text-embedding-004")
    OPENROUTER_API_KEY: str | None = Field(default=None)
    OPENROUTER_MODEL: str = Field(default="meta-llama/llama-3.1-8b-instruct:free")
    OPENROUTER_BASE_URL: str = Field(default="https://openrouter.ai/api/v1")
    PROVIDER_TIMEOUT: int = Field(default=60)

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class ContextSettings(BaseSettings):
    """
    Context window budgeting and generation defaults.

    STAGE-1.1: Budget = MAX_CONTEXT_TOKENS - RESPONSE_RESERVE_TOKENS
    """

    MAX_CONTEXT_TOKENS: int = Field(default=DEFAULT_MAX_CONTEXT_TOKENS)
    RESPONSE_RESERVE_TOKENS: int = Field(default=DEFAULT_RESPONSE_RESERVE_TOKENS)
    DEFAULT_TEMPERATURE: float = Field(default=DEFAULT_TEMPERATURE)
    DEFAULT_MAX_TOKENS: int = Field(default=DEFAULT_MAX_TOKENS)

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class RetrievalSettings(BaseSettings):
    """
    Document retrieval configuration.

    STAGE-1.2: Top-K and embedding batching
    """

    RAG_TOP_K: int = Field(default=DEFAULT_RAG_TOP_K)
    EMBEDDING_BATCH_CONCURRENCY: int = Field(default=DEFAULT_EMBEDDING_BATCH_CONCURRENCY)
    EMBEDDING_MAX_RETRIES: int = Field(default=3)

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class RedisSettings(BaseSettings):
    """Redis connection used by the Redis message store."""

    REDIS_HOST: str = Field(default="localhost")
    REDIS_PORT: int = Field(default=6379)
    REDIS_DB: int = Field(default=0)
    REDIS_PASSWORD: str | None = Field(default=None)
    REDIS_SOCKET_TIMEOUT: int = Field(default=5)

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class LoggingSettings(BaseSettings):
    """Logging configuration for structured logging."""

    LOG_LEVEL: str = Field(default="INFO")
    LOG_FORMAT: Literal["json", "console"] = Field(default="json")

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class ApplicationSettings(BaseSettings):
    """General application settings."""

    ENVIRONMENT: Literal["development", "staging", "production", "test"] = Field(
        default="development"
    )
    APP_NAME: str = Field(default="Chat Stream Service")
    APP_VERSION: str = Field(default="1.0.0")
    API_HOST: str = Field(default="0.0.0.0")
    API_PORT: int = Field(default=8000)
    CORS_ORIGINS: list[str] = Field(default=["*"])

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class Settings(BaseSettings):
    """
    Main settings class that aggregates all configuration sections.

    STAGE-0: Centralized configuration initialization

    Usage:
        from chatstream.core.config.settings import get_settings

        settings = get_settings()
        budget = settings.context.MAX_CONTEXT_TOKENS
        fallback_model = settings.llm.OPENROUTER_MODEL
    """

    # LLM providers
    LLM_PROVIDER: Literal["gemini", "openrouter", "fake"] = Field(
        default="gemini", description="Primary chat backend"
    )
    GEMINI_API_KEY: str | None = Field(default=None, description="Google Gemini API key")
    GEMINI_MODEL: str = Field(default="gemini-2.5-flash", description="Default chat model")
    GEMINI_EMBEDDING_MODEL: str = Field(
        default="models/text-embedding-004", description="Embedding model"
    )
    OPENROUTER_API_KEY: str | None = Field(
        default=None, description="OpenRouter API key (enables fallback)"
    )
    OPENROUTER_MODEL: str = Field(
        default="meta-llama/llama-3.1-8b-instruct:free", description="Fallback chat model"
    )
    OPENROUTER_BASE_URL: str = Field(
        default="https://openrouter.ai/api/v1", description="OpenRouter base URL"
    )
    PROVIDER_TIMEOUT: int = Field(default=60, description="Provider request timeout in seconds")

    # Context budget
    MAX_CONTEXT_TOKENS: int = Field(default=DEFAULT_MAX_CONTEXT_TOKENS, gt=0)
    RESPONSE_RESERVE_TOKENS: int = Field(default=DEFAULT_RESPONSE_RESERVE_TOKENS, ge=0)
    DEFAULT_TEMPERATURE: float = Field(default=DEFAULT_TEMPERATURE, ge=0.0, le=2.0)
    DEFAULT_MAX_TOKENS: int = Field(default=DEFAULT_MAX_TOKENS, gt=0)

    # Retrieval
    RAG_TOP_K: int = Field(default=DEFAULT_RAG_TOP_K, gt=0)
    EMBEDDING_BATCH_CONCURRENCY: int = Field(default=DEFAULT_EMBEDDING_BATCH_CONCURRENCY, gt=0)
    EMBEDDING_MAX_RETRIES: int = Field(default=3, gt=0)

    # Persistence
    STORE_BACKEND: Literal["memory", "redis"] = Field(default="memory")
    REDIS_HOST: str = Field(default="localhost")
    REDIS_PORT: int = Field(default=6379)
    REDIS_DB: int = Field(default=0)
    REDIS_PASSWORD: str | None = Field(default=None)
    REDIS_SOCKET_TIMEOUT: int = Field(default=5)

    # Logging
    LOG_LEVEL: str = Field(default="INFO", description="Logging level")
    LOG_FORMAT: Literal["json", "console"] = Field(default="json", description="Log output format")

    # Application
    ENVIRONMENT: Literal["development", "staging", "production", "test"] = Field(
        default="development"
    )
    APP_NAME: str = Field(default="Chat Stream Service")
    APP_VERSION: str = Field(default="1.0.0")
    API_HOST: str = Field(default="0.0.0.0")
    API_PORT: int = Field(default=8000)
    CORS_ORIGINS: list[str] = Field(default=["*"])

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"LOG_LEVEL must be one of {valid_levels}")
        return v.upper()

    @model_validator(mode="after")
    def validate_budget(self):
        """The response reserve must leave room for at least one token of context."""
        if self.RESPONSE_RESERVE_TOKENS >= self.MAX_CONTEXT_TOKENS:
            raise ValueError("RESPONSE_RESERVE_TOKENS must be smaller than MAX_CONTEXT_TOKENS")
        return self

    @property
    def llm(self) -> LLMProviderSettings:
        """Get LLM provider settings."""
        return LLMProviderSettings(
            LLM_PROVIDER=self.LLM_PROVIDER,
            GEMINI_API_KEY=self.GEMINI_API_KEY,
            GEMINI_MODEL=self.GEMINI_MODEL,
            GEMINI_EMBEDDING_MODEL=self.GEMINI_EMBEDDING_MODEL,
            OPENROUTER_API_KEY=self.OPENROUTER_API_KEY,
            OPENROUTER_MODEL=self.OPENROUTER_MODEL,
            OPENROUTER_BASE_URL=self.OPENROUTER_BASE_URL,
            PROVIDER_TIMEOUT=self.PROVIDER_TIMEOUT,
        )

    @property
    def context(self) -> ContextSettings:
        """Get context budget settings."""
        return ContextSettings(
            MAX_CONTEXT_TOKENS=self.MAX_CONTEXT_TOKENS,
            RESPONSE_RESERVE_TOKENS=self.RESPONSE_RESERVE_TOKENS,
            DEFAULT_TEMPERATURE=self.DEFAULT_TEMPERATURE,
            DEFAULT_MAX_TOKENS=self.DEFAULT_MAX_TOKENS,
        )

    @property
    def retrieval(self) -> RetrievalSettings:
        """Get retrieval settings."""
        return RetrievalSettings(
            RAG_TOP_K=self.RAG_TOP_K,
            EMBEDDING_BATCH_CONCURRENCY=self.EMBEDDING_BATCH_CONCURRENCY,
            EMBEDDING_MAX_RETRIES=self.EMBEDDING_MAX_RETRIES,
        )

    @property
    def redis(self) -> RedisSettings:
        """Get Redis settings."""
        return RedisSettings(
            REDIS_HOST=self.REDIS_HOST,
            REDIS_PORT=self.REDIS_PORT,
            REDIS_DB=self.REDIS_DB,
            REDIS_PASSWORD=self.REDIS_PASSWORD,
            REDIS_SOCKET_TIMEOUT=self.REDIS_SOCKET_TIMEOUT,
        )

    @property
    def logging(self) -> LoggingSettings:
        """Get logging settings."""
        return LoggingSettings(LOG_LEVEL=self.LOG_LEVEL, LOG_FORMAT=self.LOG_FORMAT)

    @property
    def app(self) -> ApplicationSettings:
        """Get application settings."""
        return ApplicationSettings(
            ENVIRONMENT=self.ENVIRONMENT,
            APP_NAME=self.APP_NAME,
            APP_VERSION=self.APP_VERSION,
            API_HOST=self.API_HOST,
            API_PORT=self.API_PORT,
            CORS_ORIGINS=self.CORS_ORIGINS,
        )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )


# Global settings instance (singleton pattern)
_settings: Settings | None = None


def get_settings() -> Settings:
    """
    Get the global settings instance (singleton).

    STAGE-0.3: Settings initialization

    Returns:
        Settings: Global settings instance
    """
    global _settings

    if _settings is None:
        _settings = Settings()

    return _settings


def reload_settings() -> Settings:
    """
    Reload settings (useful for testing).

    Returns:
        Settings: New settings instance
    """
    global _settings
    _settings = Settings()
    return _settings
