"""
Redis client for the latest-reading cache.

Provides helpers to read and write the cached ``/api/current-data``
payload. The collector overwrites the key with every new reading; the
endpoint only fills an empty key (``SET NX``). A request that read the
store just before a tick therefore cannot replace the newer reading
with its stale one. Every operation is best-effort: when
``REDIS_URL`` is unset the helpers are no-ops, and Redis failures are
logged but never propagate, so callers fall through to the store.

CHANGELOG:
- 2026-10-06: Initial creation (STORY-009)
- 2026-10-18: Collector writes through instead of invalidating; reads fill with NX

TODO:
- None
"""

import json
import logging

import redis.asyncio as redis

from energy_monitor.config import get_settings

logger = logging.getLogger(__name__)

CURRENT_READING_KEY = "energy:current"


async def get_redis() -> redis.Redis | None:
    """Create an async Redis client from application settings.

    Returns:
        redis.Redis or None: Client, or None when caching is disabled.
    """
    settings = get_settings()
    if not settings.REDIS_URL:
        return None
    return redis.from_url(settings.REDIS_URL)


async def get_cached_current() -> dict | None:
    """Return the cached latest-reading payload, or None on miss/failure."""
    try:
        client = await get_redis()
        if client is None:
            return None
        try:
            raw = await client.get(CURRENT_READING_KEY)
            if raw is not None:
                return json.loads(raw)
        finally:
            await client.aclose()
    except Exception:
        logger.warning("Redis cache read failed", exc_info=True)
    return None


async def set_cached_current(data: dict, *, only_if_absent: bool = False) -> None:
    """Cache the latest-reading payload for ``CACHE_TTL_S`` seconds.

    Args:
        data: Reading payload as returned by ``Reading.to_dict()``.
        only_if_absent: Leave an existing entry untouched (``SET NX``).
    """
    try:
        settings = get_settings()
        client = await get_redis()
        if client is None:
            return
        try:
            await client.set(
                CURRENT_READING_KEY,
                json.dumps(data),
                ex=settings.CACHE_TTL_S,
                nx=only_if_absent,
            )
        finally:
            await client.aclose()
    except Exception:
        logger.warning("Redis cache write failed", exc_info=True)


async def ping_redis() -> str:
    """Ping Redis for the health check.

    Returns:
        ``"ok"``, ``"disabled"`` when no REDIS_URL is configured, or
        ``"error"``.
    """
    try:
        client = await get_redis()
        if client is None:
            return "disabled"
        try:
            await client.ping()
            return "ok"
        finally:
            await client.aclose()
    except Exception:
        logger.warning("Health check: Redis ping failed", exc_info=True)
        return "error"
