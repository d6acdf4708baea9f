"""
System status and health endpoints.

``/api/system-status`` reports reading and error counters for the
dashboard. ``/health`` checks the store and Redis and returns HTTP 200
when all configured components are healthy, or HTTP 503 when any is
degraded. Redis reports ``disabled`` when no ``REDIS_URL`` is set,
which does not count as degraded.

CHANGELOG:
- 2026-10-08: Initial creation (STORY-008, STORY-012)

TODO:
- None
"""

import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from energy_monitor.api.deps import StartedAt, Store
from energy_monitor.cache.redis_client import ping_redis
from energy_monitor.errors import StoreError
from energy_monitor.services.aggregation import system_status

logger = logging.getLogger(__name__)

router = APIRouter(tags=["status"])


@router.get("/api/system-status")
async def get_system_status(store: Store, started_at: StartedAt) -> dict:
    """Total readings, last reading time, error count, uptime and liveness."""
    return await system_status(store, started_at)


@router.get("/health")
async def health_check(store: Store) -> JSONResponse:
    """Check the database and Redis.

    Returns:
        JSONResponse: JSON with status, db, and redis fields.
            HTTP 200 when all components are ok, HTTP 503 when degraded.
    """
    try:
        await store.ping()
        db_status = "ok"
    except StoreError:
        logger.warning("Health check: DB ping failed", exc_info=True)
        db_status = "error"
    redis_status = await ping_redis()

    all_ok = db_status == "ok" and redis_status in ("ok", "disabled")
    return JSONResponse(
        status_code=200 if all_ok else 503,
        content={
            "status": "ok" if all_ok else "degraded",
            "db": db_status,
            "redis": redis_status,
        },
    )
