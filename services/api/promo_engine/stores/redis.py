"""Redis store for caching.

Handles:
- Caching with TTL policies
- The active offer catalog snapshot (read once per evaluation)

TTL policies:
- Active offer catalog: OFFER_CATALOG_CACHE_TTL (default 60 seconds)

Callers treat RuntimeError from this module as "cache unavailable" and fall
back to Postgres.
"""

import json
import logging
from typing import Any

import redis.asyncio as redis

from promo_engine.settings import get_settings

# Key prefixes
PREFIX_OFFERS = "offers:"
KEY_ACTIVE_OFFERS = f"{PREFIX_OFFERS}active"

# Redis client (initialized on startup)
_redis: redis.Redis | None = None
logger = logging.getLogger("uvicorn.error")


async def init_redis() -> None:
    """Initialize Redis connection."""
    global _redis
    settings = get_settings()
    client = redis.from_url(
        settings.redis_url,
        encoding="utf-8",
        decode_responses=True,
        socket_connect_timeout=5,
        socket_timeout=5,
    )
    # Validate connectivity early; an unreachable Redis leaves caching disabled.
    await client.ping()
    _redis = client
    logger.info("Redis connected")


async def close_redis() -> None:
    """Close Redis connection."""
    global _redis
    if _redis:
        await _redis.aclose()
        _redis = None


def _get_redis() -> redis.Redis:
    """Get Redis client instance."""
    if _redis is None:
        raise RuntimeError("Redis not initialized. Call init_redis() first.")
    return _redis


# ============================================================
# Generic cache operations
# ============================================================


async def cache_get(key: str) -> str | None:
    """Get value from cache.

    Args:
        key: Cache key.

    Returns:
        Cached value or None if not found.
    """
    return await _get_redis().get(key)


async def cache_set(key: str, value: str, ttl: int) -> None:
    """Set value in cache with TTL.

    Args:
        key: Cache key.
        value: Value to cache.
        ttl: Time-to-live in seconds.
    """
    await _get_redis().setex(key, ttl, value)


async def cache_delete(key: str) -> None:
    await _get_redis().delete(key)


async def cache_get_json(key: str) -> dict[str, Any] | None:
    """Get JSON value from cache (None if missing)."""
    value = await cache_get(key)
    if value:
        return json.loads(value)
    return None


async def cache_set_json(key: str, value: dict[str, Any], ttl: int) -> None:
    """Set JSON value in cache."""
    await cache_set(key, json.dumps(value), ttl)


# ============================================================
# Active offer catalog
# ============================================================


async def get_offer_catalog_cache() -> dict[str, Any] | None:
    """Get cached active offer catalog payload."""
    return await cache_get_json(KEY_ACTIVE_OFFERS)


async def set_offer_catalog_cache(payload: dict[str, Any], ttl: int) -> None:
    """Cache the active offer catalog payload."""
    await cache_set_json(KEY_ACTIVE_OFFERS, payload, ttl)


async def invalidate_offer_catalog_cache() -> None:
    """Drop the cached catalog (e.g. after offers were edited)."""
    await cache_delete(KEY_ACTIVE_OFFERS)
