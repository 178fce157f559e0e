"""
Redis caching service for the server listing.

CACHING STRATEGY
================

What we cache:
  - The server listing response (servers with derived status and the
    booking currently occupying each one), JSON-serialized
  - Cache key: "servers:list"

Why:
  - The dashboard polls the listing far more often than anything changes
  - Deriving status walks every server's bookings; serving from Redis skips it

Invalidation strategy:
  - On booking create/extend/cancel: the derived status may have changed
  - On server create/update/delete: the inventory changed
  - Short TTL as safety net, which also covers the status flip at midnight
    when a booking starts or ends without any write happening

Stale reads for up to one TTL are acceptable for the listing. Nothing that
decides whether a booking may be created ever reads from this cache.
"""

import json
from typing import Optional

import redis.asyncio as redis
from labbook.core.config import get_settings
from labbook.core.logging import get_logger
from labbook.core.metrics import record_cache_operation

logger = get_logger(__name__)
settings = get_settings()

SERVER_LIST_KEY = "servers:list"
SERVER_KEY_PATTERN = "servers:*"

_redis_client: Optional[redis.Redis] = None


async def get_redis() -> Optional[redis.Redis]:
    """Get or create Redis connection. Returns None if Redis is disabled."""
    global _redis_client

    if not settings.REDIS_ENABLED:
        return None

    if _redis_client is None:
        try:
            _redis_client = redis.from_url(
                settings.REDIS_URL,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
                retry_on_timeout=True,
            )
            # Test connection
            await _redis_client.ping()
            logger.info("redis_connected", url=settings.REDIS_URL)
        except Exception as e:
            logger.error("redis_connection_failed", error=str(e))
            _redis_client = None
            return None

    return _redis_client


async def close_redis() -> None:
    """Close Redis connection on shutdown."""
    global _redis_client
    if _redis_client:
        await _redis_client.aclose()
        _redis_client = None


async def get_cached_servers() -> Optional[list]:
    """Retrieve the cached server listing."""
    client = await get_redis()
    if not client:
        return None

    try:
        data = await client.get(SERVER_LIST_KEY)
        record_cache_operation("get", hit=bool(data))
        if data:
            logger.debug("cache_hit", key=SERVER_LIST_KEY)
            return json.loads(data)
        logger.debug("cache_miss", key=SERVER_LIST_KEY)
    except Exception as e:
        logger.error("cache_get_error", key=SERVER_LIST_KEY, error=str(e))

    return None


async def set_cached_servers(data: list) -> None:
    """Cache the server listing with TTL."""
    client = await get_redis()
    if not client:
        return

    try:
        await client.setex(SERVER_LIST_KEY, settings.REDIS_CACHE_TTL, json.dumps(data, default=str))
        logger.debug("cache_set", key=SERVER_LIST_KEY, ttl=settings.REDIS_CACHE_TTL)
    except Exception as e:
        logger.error("cache_set_error", key=SERVER_LIST_KEY, error=str(e))


async def invalidate_server_cache() -> None:
    """
    Invalidate all cached server views.
    Uses SCAN to find and delete all keys matching the prefix.
    """
    client = await get_redis()
    if not client:
        return

    try:
        deleted = 0
        async for key in client.scan_iter(match=SERVER_KEY_PATTERN, count=100):
            await client.delete(key)
            deleted += 1
        logger.info("cache_invalidated", keys_deleted=deleted)
    except Exception as e:
        logger.error("cache_invalidation_error", error=str(e))


async def get_cache_stats() -> dict:
    """Get Redis cache statistics for monitoring."""
    client = await get_redis()
    if not client:
        return {"status": "disabled"}

    try:
        info = await client.info("stats")
        hits = info.get("keyspace_hits", 0)
        misses = info.get("keyspace_misses", 0)
        return {
            "status": "connected",
            "hits": hits,
            "misses": misses,
            "hit_rate": round(hits / max(hits + misses, 1) * 100, 2),
        }
    except Exception as e:
        return {"status": "error", "error": str(e)}
