"""
Redis caching service for taxi search results.

CACHING STRATEGY
================

What we cache:
  - Availability search responses (JSON-serialized)
  - Cache key pattern: "taxis:search:source={s}&destination={d}&date={date}"

Why:
  - Search is the most frequent read and costs one booking lookup per route
  - Results only change when a booking is created or cancelled

Invalidation strategy:
  - BookingCreated / BookingCancelled events delete every "taxis:search:*" key
    after the booking transaction has committed
  - TTL-based expiry as safety net (REDIS_CACHE_TTL)

  A stale hit can still show a route that was just booked; createBooking
  re-checks the slot, so the worst case is a ConflictError, never a double
  booking.

All Redis failures degrade to uncached behaviour and are logged.
"""

import json
from typing import Optional

from redis.exceptions import RedisError

from taxi_booking.core.config import get_settings
from taxi_booking.core.events import BookingCancelled, BookingCreated, EventBus
from taxi_booking.core.logging import get_logger
from taxi_booking.core.metrics import record_cache_operation
from taxi_booking.infrastructure.redis_client import get_redis

logger = get_logger(__name__)
settings = get_settings()

SEARCH_KEY_PREFIX = "taxis:search:"


def _make_search_key(source: str, destination: str, ride_date: str) -> str:
    return (
        f"{SEARCH_KEY_PREFIX}source={source.strip().lower()}"
        f"&destination={destination.strip().lower()}&date={ride_date}"
    )


async def get_cached_search(source: str, destination: str, ride_date: str) -> Optional[dict]:
    """Retrieve a cached search response."""
    client = await get_redis()
    if not client:
        return None

    key = _make_search_key(source, destination, ride_date)
    try:
        data = await client.get(key)
    except RedisError as e:
        logger.error("cache_get_error", key=key, error=str(e))
        return None

    record_cache_operation("get", hit=bool(data))
    if data:
        logger.debug("cache_hit", key=key)
        return json.loads(data)
    logger.debug("cache_miss", key=key)
    return None


async def set_cached_search(source: str, destination: str, ride_date: str, data: dict) -> None:
    """Cache a search response with TTL."""
    client = await get_redis()
    if not client:
        return

    key = _make_search_key(source, destination, ride_date)
    try:
        await client.setex(key, settings.REDIS_CACHE_TTL, json.dumps(data, default=str))
        logger.debug("cache_set", key=key, ttl=settings.REDIS_CACHE_TTL)
    except RedisError as e:
        logger.error("cache_set_error", key=key, error=str(e))


async def invalidate_search_cache(event: object = None) -> None:
    """
    Invalidate all cached search results.
    Uses SCAN to find and delete all keys matching the prefix.
    """
    client = await get_redis()
    if not client:
        return

    try:
        deleted = 0
        async for key in client.scan_iter(match=f"{SEARCH_KEY_PREFIX}*", count=100):
            await client.delete(key)
            deleted += 1
        logger.info("cache_invalidated", keys_deleted=deleted, trigger=type(event).__name__)
    except RedisError as e:
        logger.error("cache_invalidation_error", error=str(e))


async def get_cache_stats() -> dict:
    """Get Redis cache statistics for monitoring."""
    client = await get_redis()
    if not client:
        return {"status": "disabled"}

    try:
        info = await client.info("stats")
    except RedisError as e:
        return {"status": "error", "error": str(e)}

    hits = info.get("keyspace_hits", 0)
    misses = info.get("keyspace_misses", 0)
    return {
        "status": "connected",
        "hits": hits,
        "misses": misses,
        "hit_rate": round(hits / max(hits + misses, 1) * 100, 2),
    }


def subscribe_cache_invalidation(bus: EventBus) -> None:
    bus.subscribe(BookingCreated, invalidate_search_cache)
    bus.subscribe(BookingCancelled, invalidate_search_cache)
