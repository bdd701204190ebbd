"""
abtest_sdk.tier2_reliability.sticky
───────────────────────────────────────
Sticky-token store: (experiment_id, visitor_token) → variant_id.
In-process dict (dev) or Redis (prod). The mapping is owned by the embedding
system; the engine reads it when choosing and writes new assignments, but
never expires or evicts entries. A TTL, if any, is a deployment choice.

Select via: ABTEST_STICKY_BACKEND=memory|redis, REDIS_URL, ABTEST_STICKY_TTL
"""
from __future__ import annotations

from typing import Protocol, runtime_checkable

from abtest_sdk.tier0_core.config import get_config
from abtest_sdk.tier0_core.errors import ConfigurationError, StoreUnavailableError


@runtime_checkable
class StickyStore(Protocol):
    async def get(self, experiment_id: str, token: str) -> str | None: ...

    async def set(self, experiment_id: str, token: str, variant_id: str) -> None: ...


class MemoryStickyStore:
    """In-process mapping for development and tests."""

    def __init__(self) -> None:
        self._store: dict[tuple[str, str], str] = {}

    async def get(self, experiment_id: str, token: str) -> str | None:
        return self._store.get((experiment_id, token))

    async def set(self, experiment_id: str, token: str, variant_id: str) -> None:
        self._store[(experiment_id, token)] = variant_id

    async def clear(self) -> None:
        self._store.clear()

    def __len__(self) -> int:
        return len(self._store)


class RedisStickyStore:
    """Redis-backed mapping using the async redis client."""

    def __init__(self, url: str, ttl: int | None = None, prefix: str = "abtest:sticky") -> None:
        import redis.asyncio as aioredis
        from redis.exceptions import RedisError

        self._redis = aioredis.from_url(url, decode_responses=True)
        self._errors = RedisError
        self._ttl = ttl
        self._prefix = prefix

    def _key(self, experiment_id: str, token: str) -> str:
        return f"{self._prefix}:{experiment_id}:{token}"

    async def get(self, experiment_id: str, token: str) -> str | None:
        try:
            return await self._redis.get(self._key(experiment_id, token))
        except self._errors as exc:
            raise StoreUnavailableError(detail=f"sticky lookup failed: {exc}") from exc

    async def set(self, experiment_id: str, token: str, variant_id: str) -> None:
        key = self._key(experiment_id, token)
        try:
            if self._ttl:
                await self._redis.setex(key, self._ttl, variant_id)
            else:
                await self._redis.set(key, variant_id)
        except self._errors as exc:
            raise StoreUnavailableError(detail=f"sticky write failed: {exc}") from exc


# ── Provider registry ─────────────────────────────────────────────────────────

_store: StickyStore | None = None


def get_sticky_store() -> StickyStore:
    global _store
    if _store is not None:
        return _store

    config = get_config()
    if config.sticky_backend == "memory":
        _store = MemoryStickyStore()
    elif config.sticky_backend == "redis":
        _store = RedisStickyStore(config.redis_url, ttl=config.sticky_ttl)
    else:
        raise ConfigurationError(
            detail=(
                f"Unknown ABTEST_STICKY_BACKEND: {config.sticky_backend!r}. "
                "Supported: memory, redis"
            ),
        )
    return _store


def _reset_sticky_store() -> None:
    global _store
    _store = None


__all__ = ["StickyStore", "MemoryStickyStore", "RedisStickyStore", "get_sticky_store"]
