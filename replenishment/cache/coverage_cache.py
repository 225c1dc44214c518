"""Coverage result cache with per-key TTL.

Two implementations of ``CoverageCache``:
- InMemoryCoverageCache: process-local dict, for tests and single-worker runs
- RedisCoverageCache: shared cache on redis.asyncio, keys ``stock_coverage:<sku>``

Writes are last-write-wins per SKU. Cache failures are logged and treated as
misses so a broken cache never fails a calculation.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import Protocol

import redis.asyncio as aioredis
from pydantic import ValidationError
from redis.exceptions import RedisError

from replenishment.core.config import Settings
from replenishment.core.logging import get_logger
from replenishment.core.metrics import record_error
from replenishment.domain.coverage.types import StockCoverageResult

log = get_logger("replenishment.cache")

KEY_PREFIX = "stock_coverage:"


class CoverageCache(Protocol):
    """Key-value cache of coverage results keyed by SKU."""

    async def get(self, sku: str) -> StockCoverageResult | None: ...

    async def set(self, sku: str, result: StockCoverageResult, ttl_seconds: int) -> None: ...

    async def invalidate(self, sku: str) -> None: ...

    async def invalidate_all(self) -> None: ...


class InMemoryCoverageCache:
    """Dict-backed cache with monotonic-clock expiry."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._entries: dict[str, tuple[StockCoverageResult, float]] = {}

    async def get(self, sku: str) -> StockCoverageResult | None:
        entry = self._entries.get(sku)
        if entry is None:
            return None
        result, expires_at = entry
        if self._clock() >= expires_at:
            del self._entries[sku]
            return None
        return result

    async def set(self, sku: str, result: StockCoverageResult, ttl_seconds: int) -> None:
        self._entries[sku] = (result, self._clock() + ttl_seconds)

    async def invalidate(self, sku: str) -> None:
        self._entries.pop(sku, None)

    async def invalidate_all(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


class RedisCoverageCache:
    """Redis-backed cache storing results as JSON with SETEX."""

    def __init__(self, client: aioredis.Redis, prefix: str = KEY_PREFIX):
        self.client = client
        self.prefix = prefix

    @classmethod
    def from_url(cls, redis_url: str, prefix: str = KEY_PREFIX) -> RedisCoverageCache:
        return cls(aioredis.from_url(redis_url, decode_responses=True), prefix=prefix)

    def _key(self, sku: str) -> str:
        return f"{self.prefix}{sku}"

    async def get(self, sku: str) -> StockCoverageResult | None:
        key = self._key(sku)
        try:
            raw = await self.client.get(key)
        except RedisError as e:
            log.warning("coverage_cache_get_failed", extra={"sku": sku, "error": str(e)})
            record_error("CACHE_ERROR", "cache")
            return None
        if raw is None:
            return None
        try:
            return StockCoverageResult.model_validate_json(raw)
        except ValidationError:
            log.warning("coverage_cache_entry_corrupt", extra={"sku": sku})
            await self.invalidate(sku)
            return None

    async def set(self, sku: str, result: StockCoverageResult, ttl_seconds: int) -> None:
        try:
            await self.client.setex(self._key(sku), ttl_seconds, result.model_dump_json())
        except RedisError as e:
            log.warning("coverage_cache_set_failed", extra={"sku": sku, "error": str(e)})
            record_error("CACHE_ERROR", "cache")

    async def invalidate(self, sku: str) -> None:
        try:
            await self.client.delete(self._key(sku))
        except RedisError as e:
            log.warning("coverage_cache_invalidate_failed", extra={"sku": sku, "error": str(e)})
            record_error("CACHE_ERROR", "cache")

    async def invalidate_all(self) -> None:
        try:
            keys = [key async for key in self.client.scan_iter(match=f"{self.prefix}*")]
            if keys:
                await self.client.delete(*keys)
        except RedisError as e:
            log.warning("coverage_cache_flush_failed", extra={"error": str(e)})
            record_error("CACHE_ERROR", "cache")
            return
        log.info("coverage_cache_flushed", extra={"keys": len(keys)})


def build_coverage_cache(settings: Settings) -> CoverageCache:
    """Redis cache when redis_url is configured, otherwise in-process."""
    if settings.redis_url:
        return RedisCoverageCache.from_url(settings.redis_url)
    return InMemoryCoverageCache()
