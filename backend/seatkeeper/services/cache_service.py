"""
Redis caching service for seat listings.

CACHING STRATEGY
================

What we cache:
  - Seat map responses per room (JSON-serialized)
  - Cache key pattern: "seats:list:room={room}"

Why:
  - The seat map is polled by every open reservation page
  - Writes are comparatively rare (a reserve or release per user session)

Invalidation strategy:
  - Every registry write (reserve, release, reclaim with a non-zero count,
    reinitialize) deletes all "seats:list:*" keys
  - A short TTL bounds staleness if an invalidation is lost

  Known gap: a listing that read the registry before a write can store its
  result after that write's invalidation ran. The stale map then survives
  until SEAT_CACHE_TTL expires. With a TTL of seconds this is accepted
  rather than versioning the keys.

  The cache only serves the read-only listing. Reserve and release always
  read the registry, so a stale map can show a seat as free but can never
  cause a double booking.

Redis failures are logged and degrade to uncached reads.
"""

import json
from typing import Optional

import redis.asyncio as redis
from seatkeeper.core.config import get_settings
from seatkeeper.core.logging import get_logger
from seatkeeper.core.metrics import record_cache_operation, redis_connection_errors

logger = get_logger(__name__)

SEAT_LIST_PREFIX = "seats:list:"

_redis_client: Optional[redis.Redis] = None


async def get_redis() -> Optional[redis.Redis]:
    """Get or create Redis connection. Returns None if Redis is disabled or down."""
    global _redis_client
    settings = get_settings()

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
            await _redis_client.ping()
            logger.info("redis_connected", url=settings.REDIS_URL)
        except Exception as e:
            redis_connection_errors.inc()
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


def _make_seat_list_key(room: Optional[str]) -> str:
    return f"{SEAT_LIST_PREFIX}room={room or 'all'}"


async def get_cached_seats(room: Optional[str]) -> Optional[list[dict]]:
    client = await get_redis()
    if not client:
        return None

    key = _make_seat_list_key(room)
    try:
        data = await client.get(key)
        record_cache_operation("get", hit=data is not None)
        if data:
            return json.loads(data)
    except Exception as e:
        logger.error("cache_get_error", key=key, error=str(e))

    return None


async def set_cached_seats(room: Optional[str], seats: list[dict]) -> None:
    client = await get_redis()
    if not client:
        return

    key = _make_seat_list_key(room)
    ttl = get_settings().SEAT_CACHE_TTL
    try:
        await client.setex(key, ttl, json.dumps(seats, default=str))
        logger.debug("cache_set", key=key, ttl=ttl)
    except Exception as e:
        logger.error("cache_set_error", key=key, error=str(e))


async def invalidate_seat_cache() -> None:
    client = await get_redis()
    if not client:
        return

    try:
        deleted = 0
        async for key in client.scan_iter(match=f"{SEAT_LIST_PREFIX}*", count=100):
            await client.delete(key)
            deleted += 1
        logger.debug("cache_invalidated", keys_deleted=deleted)
    except Exception as e:
        logger.error("cache_invalidation_error", error=str(e))


async def get_cache_stats() -> dict:
    """Redis statistics for the health endpoint."""
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
