"""
Redis caching service for projected available slots.

CACHING STRATEGY
================

What we cache:
  - Available-slot projections for the member booking view (JSON list)
  - Cache key pattern:
    "slots:available:coaches={ids}&from={date}&to={date}&at={minute}"

Why:
  - The booking view re-renders the same weeks for every member
  - A projection loads templates, blocks and sessions for every coach in
    range; serving from Redis skips all of that

Invalidation strategy:
  - Any write that can change a projection (session created or cancelled,
    booking made or released, template/addition/block edited, generation
    run) deletes every "slots:available:*" key
  - TTL-based expiry as safety net (REDIS_CACHE_TTL)
  - The key carries `now` truncated to the minute, so a cached projection
    never outlives the "starts after now" filter by more than a minute

Failure mode:
  - Redis down or disabled -> every call degrades to "miss" and the
    projection is computed from the database
"""

import json
from typing import Iterable, List, Optional
from datetime import date, datetime

import redis.asyncio as redis
from gymbook.core.config import get_settings
from gymbook.core.logging import get_logger
from gymbook.core.metrics import record_cache_operation

logger = get_logger(__name__)
settings = get_settings()

SLOT_CACHE_PREFIX = "slots:available:"

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


def make_slot_key(
    coach_ids: Optional[Iterable[int]],
    start_date: date,
    end_date: date,
    now: datetime,
) -> str:
    coaches = "all" if coach_ids is None else ",".join(str(c) for c in sorted(set(coach_ids)))
    return (
        f"{SLOT_CACHE_PREFIX}coaches={coaches}&from={start_date.isoformat()}"
        f"&to={end_date.isoformat()}&at={now.strftime('%Y-%m-%dT%H:%M')}"
    )


async def get_cached_slots(key: str) -> Optional[List[dict]]:
    """Retrieve a cached projection."""
    client = await get_redis()
    if not client:
        return None

    try:
        data = await client.get(key)
        if data:
            logger.debug("cache_hit", key=key)
            record_cache_operation("get", hit=True)
            return json.loads(data)
        logger.debug("cache_miss", key=key)
        record_cache_operation("get", hit=False)
    except Exception as e:
        logger.error("cache_get_error", key=key, error=str(e))

    return None


async def set_cached_slots(key: str, slots: List[dict]) -> None:
    """Cache a projection with TTL."""
    client = await get_redis()
    if not client:
        return

    try:
        await client.setex(key, settings.REDIS_CACHE_TTL, json.dumps(slots, default=str))
        logger.debug("cache_set", key=key, ttl=settings.REDIS_CACHE_TTL)
    except Exception as e:
        logger.error("cache_set_error", key=key, error=str(e))


async def invalidate_slot_cache() -> None:
    """
    Invalidate all cached projections.
    Uses SCAN to find and delete all keys matching the prefix.
    """
    client = await get_redis()
    if not client:
        return

    try:
        deleted = 0
        async for key in client.scan_iter(match=f"{SLOT_CACHE_PREFIX}*", count=100):
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
        keyspace = await client.info("keyspace")
        hits = info.get("keyspace_hits", 0)
        misses = info.get("keyspace_misses", 0)
        return {
            "status": "connected",
            "hits": hits,
            "misses": misses,
            "hit_rate": round(hits / max(hits + misses, 1) * 100, 2),
            "keys": keyspace,
        }
    except Exception as e:
        return {"status": "error", "error": str(e)}
