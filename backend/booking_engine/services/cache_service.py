"""
Redis caching service for catalog service listings.

CACHING STRATEGY
================

What we cache:
  - Service listings per celebrity (JSON-serialized, add-ons included)
  - Cache key pattern: "catalog:services:celebrity={celebrity_id}&active={active_only}"

Why:
  - Service listings back every booking form and quote preview
  - Catalog data changes rarely (only when management edits pricing)

Invalidation strategy:
  - On service or add-on creation: delete all catalog listing keys
  - TTL-based expiry as safety net (REDIS_CACHE_TTL)

  All keys share the "catalog:services:" prefix so they can be SCANned
  and deleted together.

Why NOT cache quotes or availability:
  - Quotes are priced from the catalog row at creation time and then frozen
  - Availability must be exact; confirmation re-checks under the lock anyway
"""

import json
from typing import Optional

from redis.exceptions import RedisError

from booking_engine.core.config import get_settings
from booking_engine.core.logging import get_logger
from booking_engine.core.metrics import record_cache_operation, redis_connection_errors
from booking_engine.infrastructure.redis_client import get_redis

logger = get_logger(__name__)
settings = get_settings()

KEY_PREFIX = "catalog:services:"


def _make_service_list_key(celebrity_id: str, active_only: bool) -> str:
    return f"{KEY_PREFIX}celebrity={celebrity_id}&active={active_only}"


async def get_cached_services(celebrity_id: str, active_only: bool) -> Optional[dict]:
    """Retrieve cached service listing."""
    client = await get_redis()
    if not client:
        return None

    key = _make_service_list_key(celebrity_id, active_only)
    try:
        data = await client.get(key)
        if data:
            record_cache_operation("get", hit=True)
            logger.debug("cache_hit", key=key)
            return json.loads(data)
        record_cache_operation("get", hit=False)
        logger.debug("cache_miss", key=key)
    except RedisError as e:
        redis_connection_errors.inc()
        logger.error("cache_get_error", key=key, error=str(e))

    return None


async def set_cached_services(celebrity_id: str, active_only: bool, data: dict) -> None:
    """Cache service listing with TTL."""
    client = await get_redis()
    if not client:
        return

    key = _make_service_list_key(celebrity_id, active_only)
    try:
        await client.setex(key, settings.REDIS_CACHE_TTL, json.dumps(data, default=str))
        logger.debug("cache_set", key=key, ttl=settings.REDIS_CACHE_TTL)
    except RedisError as e:
        redis_connection_errors.inc()
        logger.error("cache_set_error", key=key, error=str(e))


async def invalidate_catalog_cache() -> None:
    """
    Invalidate all cached service listings.
    Uses SCAN to find and delete all keys matching the prefix.
    """
    client = await get_redis()
    if not client:
        return

    try:
        deleted = 0
        async for key in client.scan_iter(match=f"{KEY_PREFIX}*", count=100):
            await client.delete(key)
            deleted += 1
        logger.info("cache_invalidated", keys_deleted=deleted)
    except RedisError as e:
        redis_connection_errors.inc()
        logger.error("cache_invalidation_error", error=str(e))


async def get_cache_stats() -> dict:
    """Get Redis cache statistics for monitoring."""
    client = await get_redis()
    if not client:
        return {"status": "disabled"}

    try:
        info = await client.info("stats")
        keyspace = await client.info("keyspace")
        return {
            "status": "connected",
            "hits": info.get("keyspace_hits", 0),
            "misses": info.get("keyspace_misses", 0),
            "hit_rate": (
                round(
                    info.get("keyspace_hits", 0)
                    / max(info.get("keyspace_hits", 0) + info.get("keyspace_misses", 0), 1)
                    * 100,
                    2,
                )
            ),
            "keys": keyspace,
        }
    except RedisError as e:
        return {"status": "error", "error": str(e)}
