"""
Redis-based cache for aggregate search results.

Caching is strictly an optimization: when Redis is unreachable every read is
a miss and every write is a logged no-op. Nothing here raises to callers.
"""

import hashlib
import json
import re
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

import redis.asyncio as redis
import structlog

from ..core import config
from ..models.search import AggregateResult
from ..utils.date_utils import now_ms

logger = structlog.get_logger(__name__)

SEARCH_KEY_PREFIX = "search"

_WHITESPACE_RE = re.compile(r"\s+")


def normalize_query(query: str) -> str:
    """Lower-case, trim and collapse internal whitespace."""
    return _WHITESPACE_RE.sub(" ", (query or "").strip().lower())


def search_cache_key(query: str) -> str:
    """Fixed-length key, stable under case and whitespace variation."""
    digest = hashlib.md5(normalize_query(query).encode("utf-8")).hexdigest()
    return f"{SEARCH_KEY_PREFIX}:{digest}"


class CacheManager:
    """Manages Redis caching of aggregate search results"""

    def __init__(
        self,
        redis_url: Optional[str] = None,
        *,
        default_ttl: int = config.SEARCH_CACHE_TTL_SEC,
        client: Optional[Any] = None,
    ):
        self.redis_url = redis_url or config.REDIS_URL
        self.default_ttl = default_ttl
        self.redis_pool: Optional[redis.ConnectionPool] = None
        # Test seam: a pre-built client is used as-is and never closed here
        self._client = client
        self.hit_count = 0
        self.miss_count = 0

    async def initialize(self) -> bool:
        """Initialize Redis connection pool and verify connectivity"""
        try:
            self._ensure_pool()
            async with self.get_client() as client:
                await client.ping()
            logger.info("Redis connection established successfully")
            return True
        except Exception as e:
            logger.error(f"Failed to connect to Redis: {str(e)}")
            return False

    def _ensure_pool(self) -> None:
        if self._client is None and self.redis_pool is None:
            self.redis_pool = redis.ConnectionPool.from_url(
                self.redis_url,
                max_connections=20,
                decode_responses=True,
                socket_timeout=config.REDIS_SOCKET_TIMEOUT_SEC,
                socket_connect_timeout=config.REDIS_SOCKET_TIMEOUT_SEC,
            )

    async def close(self):
        """Close Redis connection pool"""
        if self.redis_pool:
            await self.redis_pool.disconnect()
            self.redis_pool = None

    @asynccontextmanager
    async def get_client(self):
        """Context manager for Redis client"""
        if self._client is not None:
            yield self._client
            return

        self._ensure_pool()
        client = redis.Redis(connection_pool=self.redis_pool)
        try:
            yield client
        finally:
            await client.aclose()

    def generate_cache_key(self, query: str) -> str:
        return search_cache_key(query)

    async def get_search_results(self, query: str) -> Optional[AggregateResult]:
        """Cached aggregate for ``query`` annotated with its age, or None."""
        cache_key = self.generate_cache_key(query)

        try:
            async with self.get_client() as client:
                cached_data = await client.get(cache_key)

            if not cached_data:
                self.miss_count += 1
                logger.info("Cache MISS for search", query=query[:50], cache_key=cache_key)
                return None

            entry = json.loads(cached_data)
            result = AggregateResult.from_dict(entry["result"])
            age_ms = max(0, now_ms() - int(entry.get("cachedAtMs") or 0))
            self.hit_count += 1
            logger.info(
                "Cache HIT for search",
                query=query[:50],
                results_count=len(result.results),
                cache_age_ms=age_ms,
            )
            return result.with_cache_metadata(age_ms)

        except Exception as e:
            self.miss_count += 1
            logger.error(f"Cache get error: {str(e)}", cache_key=cache_key)
            return None

    async def set_search_results(
        self,
        query: str,
        result: AggregateResult,
        ttl: Optional[int] = None,
    ) -> bool:
        """Cache an aggregate; returns False (never raises) on store failure."""
        cache_key = self.generate_cache_key(query)
        entry = {
            "cachedAtMs": now_ms(),
            "query": normalize_query(query),
            "result": result.to_dict(),
        }

        try:
            async with self.get_client() as client:
                await client.setex(
                    cache_key,
                    int(ttl or self.default_ttl),
                    json.dumps(entry, default=str),
                )
            logger.info(
                "Cached search results",
                query=query[:50],
                results_count=len(result.results),
                ttl=int(ttl or self.default_ttl),
            )
            return True
        except Exception as e:
            logger.error(f"Cache set error: {str(e)}", cache_key=cache_key)
            return False

    async def invalidate(self, query: str) -> bool:
        try:
            async with self.get_client() as client:
                removed = await client.delete(self.generate_cache_key(query))
            return bool(removed)
        except Exception as e:
            logger.error(f"Cache invalidate error: {str(e)}")
            return False

    async def clear_search_cache(self) -> int:
        """Delete every cached search aggregate; returns the number removed."""
        removed = 0
        try:
            async with self.get_client() as client:
                keys = [key async for key in client.scan_iter(match=f"{SEARCH_KEY_PREFIX}:*")]
                if keys:
                    removed = int(await client.delete(*keys))
            logger.info("Cleared search cache", removed=removed)
        except Exception as e:
            logger.error(f"Cache clear error: {str(e)}")
        return removed

    async def ping(self) -> bool:
        try:
            async with self.get_client() as client:
                return bool(await client.ping())
        except Exception as e:
            logger.warning("Redis ping failed", error=str(e))
            return False

    async def get_cache_stats(self) -> Dict[str, Any]:
        """Get cache performance statistics"""
        total_requests = self.hit_count + self.miss_count
        hit_rate = (self.hit_count / total_requests * 100) if total_requests > 0 else 0
        stats: Dict[str, Any] = {
            "hit_count": self.hit_count,
            "miss_count": self.miss_count,
            "hit_rate_percent": round(hit_rate, 2),
        }

        try:
            async with self.get_client() as client:
                info = await client.info("memory")
                cached = 0
                async for _ in client.scan_iter(match=f"{SEARCH_KEY_PREFIX}:*"):
                    cached += 1
            stats.update(
                {
                    "cached_searches": cached,
                    "memory_used": info.get("used_memory_human", "Unknown"),
                }
            )
        except Exception as e:
            logger.error(f"Stats retrieval error: {str(e)}")
            stats["error"] = str(e)
        return stats
