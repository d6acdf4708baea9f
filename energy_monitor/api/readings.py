"""
Raw reading endpoints: latest, recent, date range and single date.

``/current-data`` uses Redis as a read-through cache with TTL-based
expiry when ``REDIS_URL`` is configured. On a miss the store result is
written only if the key is still empty, because the collector may have
cached a newer reading in the meantime. Cache operations are
best-effort: Redis failures fall through to the store.

CHANGELOG:
- 2026-10-05: Initial creation (STORY-006)
- 2026-10-06: Cache current-data in Redis (STORY-009)
- 2026-10-18: Normalize historical-data bounds to UTC; bare end dates include the final second

TODO:
- None
"""

import logging
from datetime import UTC, date, datetime, time

from fastapi import APIRouter, Query
from pydantic import BaseModel, ConfigDict

from energy_monitor.api.deps import Store
from energy_monitor.cache.redis_client import get_cached_current, set_cached_current
from energy_monitor.db.models import format_timestamp
from energy_monitor.errors import ValidationError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["readings"])

RECENT_LIMIT = 10

# Returned by /current-data before the first reading exists.
EMPTY_READING = {"power": 0, "voltage": 0, "current": 0, "power_factor": 0}


class ReadingResponse(BaseModel):
    """Schema for a stored reading."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    timestamp: str
    power: float
    voltage: float
    current: float
    power_factor: float


def _validate_date(value: str, name: str) -> str:
    """Ensure *value* is a ``YYYY-MM-DD`` date."""
    try:
        date.fromisoformat(value)
    except ValueError:
        raise ValidationError(f"Invalid {name}: {value!r}. Expected YYYY-MM-DD.") from None
    return value


def _range_bound(value: str, name: str, *, end: bool = False) -> str:
    """Normalize a historical-data bound to the stored timestamp format.

    A bare ``YYYY-MM-DD`` covers the whole UTC day: as a start it means
    midnight, as an end the last microsecond of that day. A full
    timestamp without an offset is taken as UTC; one with an offset is
    converted, so the text comparison in the store stays chronological.
    """
    if len(value) == 10:
        day = date.fromisoformat(_validate_date(value, name))
        bound = datetime.combine(day, time.max if end else time.min, tzinfo=UTC)
        return format_timestamp(bound)
    try:
        ts = datetime.fromisoformat(value)
    except ValueError:
        raise ValidationError(f"Invalid {name}: {value!r}.") from None
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=UTC)
    return format_timestamp(ts)


@router.get("/current-data")
async def get_current_data(store: Store) -> dict:
    """Return the latest reading, or a zero-valued object when none exist.

    Checks the Redis cache first; on miss, reads the store and caches
    the result.
    """
    cached = await get_cached_current()
    if cached is not None:
        return cached

    latest = await store.get_latest()
    if latest is None:
        return dict(EMPTY_READING)

    data = latest.to_dict()
    await set_cached_current(data, only_if_absent=True)
    return data


@router.get("/recent-readings", response_model=list[ReadingResponse])
async def get_recent_readings(store: Store) -> list[ReadingResponse]:
    """Return the 10 most recent readings, newest first."""
    readings = await store.get_recent(RECENT_LIMIT)
    return [ReadingResponse.model_validate(r) for r in readings]


@router.get("/historical-data", response_model=list[ReadingResponse])
async def get_historical_data(
    store: Store,
    start_date: str = Query(..., alias="startDate"),
    end_date: str = Query(..., alias="endDate"),
) -> list[ReadingResponse]:
    """Return readings between ``startDate`` and ``endDate`` inclusive, oldest first.

    Bare ``YYYY-MM-DD`` bounds cover whole UTC days, so a bare
    ``endDate`` includes every reading of that day. Full timestamps are
    converted to UTC before comparison.

    Raises:
        ValidationError: 400 if either bound is not a valid date/time.
    """
    start = _range_bound(start_date, "startDate")
    end = _range_bound(end_date, "endDate", end=True)

    readings = await store.get_range(start, end)
    return [ReadingResponse.model_validate(r) for r in readings]


@router.get("/date-data/{day}", response_model=list[ReadingResponse])
async def get_date_data(day: str, store: Store) -> list[ReadingResponse]:
    """Return every reading of one calendar date, oldest first.

    A date without readings yields an empty list.

    Raises:
        ValidationError: 400 if *day* is not ``YYYY-MM-DD``.
    """
    _validate_date(day, "date")
    readings = await store.get_by_date(day)
    return [ReadingResponse.model_validate(r) for r in readings]
