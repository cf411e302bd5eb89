"""
Redis cache-aside layer for paginated list queries.
"""

import json
from typing import Any, Awaitable, Callable, Optional, Sequence, TYPE_CHECKING
from dataclasses import dataclass

import redis.asyncio as redis
from pydantic import BaseModel

from shared.logging import get_logger
from shared.errors import AccessLayerException

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


DEFAULT_LIST_TTL = 300  # 5 minutes

Loader = Callable[[], Awaitable[Sequence[Any]]]


@dataclass(frozen=True)
class ListPayload:
    """Serialized JSON list and where it came from."""
    body: str
    cache_hit: bool


class QueryCache:
    """Cache-aside wrapper around list queries.

    Entries expire after a fixed TTL and are never invalidated by writes, so a
    listing may be stale for up to ``ttl_seconds`` after a mutation. Redis
    being unreachable degrades to a plain store read.
    """

    def __init__(
        self,
        redis_url: str,
        ttl_seconds: int = DEFAULT_LIST_TTL,
        *,
        metrics: Optional["MetricsCollector"] = None
    ):
        self.redis_url = redis_url
        self.ttl_seconds = ttl_seconds
        self.metrics = metrics
        self.logger = get_logger("tickets.cache.redis")
        self.redis: Optional[redis.Redis] = None

    async def start(self):
        """Start the Redis cache."""
        try:
            self.redis = redis.from_url(
                self.redis_url,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
                health_check_interval=30
            )

            await self.redis.ping()

            self.logger.info("Redis cache started")

        except Exception as e:
            self.logger.error("Failed to start Redis cache", error=str(e))
            raise AccessLayerException("REDIS_START_FAILED", str(e))

    async def stop(self):
        """Stop the Redis cache."""
        if self.redis:
            await self.redis.aclose()
            self.logger.info("Redis cache stopped")

    @staticmethod
    def build_key(path: str, *parts: Any) -> str:
        """Route path followed by the raw scope values, ``:``-separated.

        Values are used exactly as received, so ``page_id=01`` and
        ``page_id=1`` are different entries.
        """
        return ":".join([path, *("" if part is None else str(part) for part in parts)])

    async def cached_list(self, key: str, loader: Loader, cache_type: str = "list") -> ListPayload:
        """Return the cached list for ``key`` or load, store and return it."""
        cached = await self._read(key)
        if cached is not None:
            self.logger.info("Cached resource", source="cache", cache_key=key)
            self._count("cache_hits_total", cache_type=cache_type)
            return ListPayload(body=cached, cache_hit=True)

        self._count("cache_misses_total", cache_type=cache_type)
        items = await loader()
        body = self.serialize(items)
        await self._write(key, body)
        return ListPayload(body=body, cache_hit=False)

    @staticmethod
    def serialize(items: Sequence[Any]) -> str:
        return json.dumps([
            item.model_dump(mode="json") if isinstance(item, BaseModel) else item
            for item in items
        ])

    async def _read(self, key: str) -> Optional[str]:
        if self.redis is None:
            return None

        try:
            cached = await self.redis.get(key)
        except Exception as e:
            self.logger.warning("Cache read failed, falling back to store", cache_key=key, error=str(e))
            self._count("cache_errors_total", operation="get")
            return None

        if cached is None:
            return None

        try:
            decoded = json.loads(cached)
        except ValueError as e:
            self.logger.warning("Discarding undecodable cache entry", cache_key=key, error=str(e))
            return None
        if not isinstance(decoded, list):
            self.logger.warning("Discarding non-list cache entry", cache_key=key)
            return None

        return cached

    async def _write(self, key: str, body: str) -> None:
        if self.redis is None:
            return

        try:
            await self.redis.setex(key, self.ttl_seconds, body)
            self.logger.debug("Cached list result", cache_key=key, ttl=self.ttl_seconds)
        except Exception as e:
            # The loaded result is still returned to the caller
            self.logger.error("Cache write failed", cache_key=key, error=str(e))
            self._count("cache_errors_total", operation="set")

    def _count(self, metric_name: str, **labels):
        if self.metrics is not None:
            self.metrics.increment_counter(metric_name, **labels)

    async def health_check(self) -> bool:
        """Check Redis health."""
        if self.redis is None:
            return False
        try:
            await self.redis.ping()
            return True
        except Exception:
            return False
