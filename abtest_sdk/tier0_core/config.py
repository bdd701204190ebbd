"""
abtest_sdk.tier0_core.config
──────────────────────────────
Typed engine configuration with env layering. Reads from .env → environment
variables. All fields are typed via Pydantic; invalid values fail at
construction, not on the first request.

Minimal stack: pydantic-settings + python-dotenv
"""
from __future__ import annotations

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class EngineConfig(BaseSettings):
    """
    Deployment-wide configuration. Exploration (epsilon) lives here rather
    than on individual experiments.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # ── Application ───────────────────────────────────────────────────────────
    app_name: str = Field(default="abtest", alias="APP_NAME")
    environment: str = Field(default="development", alias="APP_ENV")

    # ── Reallocation ──────────────────────────────────────────────────────────
    epsilon: float = Field(default=0.1, alias="ABTEST_EPSILON")

    # ── Read-modify-write discipline ──────────────────────────────────────────
    max_attempts: int = Field(default=5, alias="ABTEST_MAX_ATTEMPTS")
    retry_min_wait: float = Field(default=0.01, alias="ABTEST_RETRY_MIN_WAIT")
    retry_max_wait: float = Field(default=0.5, alias="ABTEST_RETRY_MAX_WAIT")
    retry_jitter: float = Field(default=0.01, alias="ABTEST_RETRY_JITTER")
    store_timeout: float = Field(default=2.0, alias="ABTEST_STORE_TIMEOUT")

    # ── Storage ───────────────────────────────────────────────────────────────
    repository_backend: str = Field(default="memory", alias="ABTEST_REPOSITORY_BACKEND")
    database_url: str = Field(
        default="sqlite+aiosqlite:///./abtest.db",
        alias="DATABASE_URL",
    )
    sticky_backend: str = Field(default="memory", alias="ABTEST_STICKY_BACKEND")
    redis_url: str = Field(default="redis://localhost:6379/0", alias="REDIS_URL")
    sticky_ttl: int | None = Field(default=None, alias="ABTEST_STICKY_TTL")

    # ── Logging ───────────────────────────────────────────────────────────────
    log_level: str = Field(default="INFO", alias="ABTEST_LOG_LEVEL")
    log_format: str = Field(default="json", alias="ABTEST_LOG_FORMAT")

    # ── Error reporting ───────────────────────────────────────────────────────
    error_backend: str = Field(default="none", alias="ABTEST_ERROR_BACKEND")

    # ── Variant suggestions ───────────────────────────────────────────────────
    suggestion_provider: str = Field(default="mock", alias="ABTEST_SUGGESTION_PROVIDER")
    suggestion_model: str = Field(default="gpt-4o-mini", alias="ABTEST_SUGGESTION_MODEL")

    @field_validator("environment")
    @classmethod
    def validate_env(cls, v: str) -> str:
        allowed = {"development", "staging", "production", "test"}
        if v.lower() not in allowed:
            raise ValueError(f"environment must be one of {allowed}, got {v!r}")
        return v.lower()

    @field_validator("epsilon")
    @classmethod
    def validate_epsilon(cls, v: float) -> float:
        if not 0.0 <= v <= 1.0:
            raise ValueError(f"epsilon must be within [0, 1], got {v}")
        return v

    @field_validator("max_attempts")
    @classmethod
    def validate_max_attempts(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"max_attempts must be at least 1, got {v}")
        return v

    @field_validator("repository_backend")
    @classmethod
    def validate_repository_backend(cls, v: str) -> str:
        if v.lower() not in {"memory", "sql"}:
            raise ValueError(f"repository_backend must be memory or sql, got {v!r}")
        return v.lower()

    @field_validator("sticky_backend")
    @classmethod
    def validate_sticky_backend(cls, v: str) -> str:
        if v.lower() not in {"memory", "redis"}:
            raise ValueError(f"sticky_backend must be memory or redis, got {v!r}")
        return v.lower()

    @property
    def is_test(self) -> bool:
        return self.environment == "test"


@lru_cache(maxsize=1)
def get_config() -> EngineConfig:
    """
    Return the singleton engine config. Cached after first call.
    Call _reset_config() in tests to pick up new env vars.
    """
    return EngineConfig()


def _reset_config() -> None:
    """For tests: clear the config cache."""
    get_config.cache_clear()


__all__ = ["EngineConfig", "get_config"]
