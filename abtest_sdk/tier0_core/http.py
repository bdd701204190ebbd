"""
abtest_sdk.tier0_core.http
─────────────────────────────
HTTP primitives: the status codes the service API uses and a typed response
envelope, so any transport (ASGI app, RPC handler, queue consumer) can map
engine results the same way.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

T = TypeVar("T")


# ── Status code constants ──────────────────────────────────────────────────

class HTTP:
    """Status codes used by the service API."""

    OK = 200
    CREATED = 201
    NO_CONTENT = 204

    BAD_REQUEST = 400
    NOT_FOUND = 404
    CONFLICT = 409
    UNPROCESSABLE_ENTITY = 422

    INTERNAL_SERVER_ERROR = 500
    BAD_GATEWAY = 502
    SERVICE_UNAVAILABLE = 503


# ── Response envelope ─────────────────────────────────────────────────────

@dataclass
class ApiResponse(Generic[T]):
    """Typed response envelope returned by every API handler."""
    data: T | None = None
    error: dict[str, Any] | None = None
    status_code: int = HTTP.OK
    meta: dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.error is None

    def as_dict(self) -> dict[str, Any]:
        return {
            "data": self.data,
            "error": self.error,
            "meta": self.meta,
        }


def ok(data: T, status_code: int = HTTP.OK, **meta: Any) -> ApiResponse[T]:
    """Return a successful ApiResponse."""
    return ApiResponse(data=data, status_code=status_code, meta=dict(meta))


def no_content(**meta: Any) -> ApiResponse[None]:
    """Return an empty 204 ApiResponse."""
    return ApiResponse(status_code=HTTP.NO_CONTENT, meta=dict(meta))


def err(error: dict[str, Any], status_code: int, **meta: Any) -> ApiResponse[None]:
    """Return an error ApiResponse."""
    return ApiResponse(error=error, status_code=status_code, meta=dict(meta))


__all__ = ["HTTP", "ApiResponse", "ok", "no_content", "err"]
