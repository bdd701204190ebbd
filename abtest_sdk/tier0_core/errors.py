"""
abtest_sdk.tier0_core.errors
─────────────────────────────
Error taxonomy for the allocation engine. Every error carries a stable
machine-readable code, a user-safe message, and an HTTP status code so the
API layer can map failures without inspecting internals.

Validation errors (NotFound, NoVariants, Validation) are never retried.
Transient errors (StoreUnavailable) are retryable by the caller;
ConcurrentUpdateConflict is retried internally and never escapes the service.

Optional capture: ABTEST_ERROR_BACKEND=sentry|none
"""
from __future__ import annotations

import os
from typing import Any


# ── Base error ────────────────────────────────────────────────────────────────

class EngineError(Exception):
    """
    Base class for all engine errors. Every error has:
    - code: stable machine-readable string (snake_case)
    - user_message: safe to surface to callers, never names storage internals
    - detail: internal context for logs
    - status_code: HTTP status code for API responses
    - retryable: whether the caller may retry with backoff
    - captured: whether the error is forwarded to ABTEST_ERROR_BACKEND
    """

    status_code: int = 500
    code: str = "internal_error"
    retryable: bool = False
    captured: bool = True

    def __init__(
        self,
        code: str | None = None,
        user_message: str = "An unexpected error occurred.",
        detail: str | None = None,
        **metadata: Any,
    ) -> None:
        self.code = code or self.__class__.code
        self.user_message = user_message
        self.detail = detail or user_message
        self.metadata = metadata
        super().__init__(self.detail)
        _capture(self)

    def to_dict(self) -> dict:
        return {
            "error": {
                "code": self.code,
                "message": self.user_message,
            }
        }


# ── Typed error classes ───────────────────────────────────────────────────────

class NotFoundError(EngineError):
    """Experiment or variant id does not exist."""
    status_code = 404
    code = "not_found"

    def __init__(
        self,
        code: str | None = None,
        user_message: str = "Experiment or variant not found.",
        detail: str | None = None,
        **metadata: Any,
    ) -> None:
        super().__init__(code, user_message, detail, **metadata)


class NoVariantsError(EngineError):
    """Experiment is configured with zero variants."""
    status_code = 422
    code = "no_variants"

    def __init__(
        self,
        code: str | None = None,
        user_message: str = "Experiment has no variants.",
        detail: str | None = None,
        **metadata: Any,
    ) -> None:
        super().__init__(code, user_message, detail, **metadata)


class ValidationError(EngineError):
    """Input validation failure."""
    status_code = 422
    code = "validation_error"

    def __init__(
        self,
        code: str | None = None,
        user_message: str = "Validation failed.",
        fields: dict | None = None,
        **metadata: Any,
    ) -> None:
        self.fields = fields or {}
        super().__init__(code, user_message, **metadata)

    def to_dict(self) -> dict:
        d = super().to_dict()
        if self.fields:
            d["error"]["fields"] = self.fields
        return d


class ConflictError(EngineError):
    """Resource state conflict (e.g., duplicate creation)."""
    status_code = 409
    code = "conflict"


class ConcurrentUpdateConflict(ConflictError):
    """Optimistic-lock failure on save: the stored version moved underneath us."""
    code = "concurrent_update_conflict"
    retryable = True
    captured = False


class StoreUnavailableError(EngineError):
    """Repository I/O failure, timeout, or exhausted conflict retries."""
    status_code = 503
    code = "store_unavailable"
    retryable = True

    def __init__(
        self,
        code: str | None = None,
        user_message: str = "Experiment store is temporarily unavailable.",
        detail: str | None = None,
        **metadata: Any,
    ) -> None:
        super().__init__(code, user_message, detail, **metadata)


class UpstreamError(EngineError):
    """Upstream service failure (content generation)."""
    status_code = 502
    code = "upstream_error"


class ConfigurationError(EngineError):
    """Misconfiguration detected at startup."""
    status_code = 500
    code = "configuration_error"


# ── Error capture backend ─────────────────────────────────────────────────────

def _capture(error: EngineError) -> None:
    """Send error to configured backend. Called automatically by EngineError.__init__."""
    if not error.captured:
        return
    backend = os.getenv("ABTEST_ERROR_BACKEND", "none").lower()
    if backend == "sentry":
        _capture_sentry(error)


def _capture_sentry(error: EngineError) -> None:
    import sentry_sdk

    if error.status_code >= 500:
        sentry_sdk.capture_exception(error)
    else:
        sentry_sdk.capture_message(
            str(error),
            level="warning",
        )


__all__ = [
    "EngineError", "NotFoundError", "NoVariantsError", "ValidationError",
    "ConflictError", "ConcurrentUpdateConflict", "StoreUnavailableError",
    "UpstreamError", "ConfigurationError",
]
