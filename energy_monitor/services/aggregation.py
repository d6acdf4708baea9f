"""
Aggregation engine: usage, cost and rollups derived from raw readings.

Read-only computations over the reading store:
- hourly average power over the trailing 24 hours,
- energy usage (kWh) for today, the current month or any window,
- monthly cost estimates, per month for all time,
- per-date min/max/avg/sum rollups,
- system status counters.

Energy is computed by left-endpoint rectangle integration: for each
consecutive pair ``(prev, curr)`` ordered by timestamp, add
``curr.power / 1000 * (curr.ts - prev.ts) / 3600`` kWh. The first
reading of a window contributes nothing. The error against true energy
depends on the sampling cadence versus load volatility and is small at
the default one-second cadence. The same method is used for every
window, including the all-time monthly cost breakdown.

Hours without readings are omitted from the hourly average rather than
zero-filled. Its buckets are ordered by the hour-of-day text "00" to
"23", not by time: when the trailing window crosses midnight the early
hours of today are listed before the late hours of yesterday.

CHANGELOG:
- 2026-10-05: Initial creation (STORY-006)
- 2026-10-07: Cost analysis integrates per month instead of summing raw power (STORY-007)
- 2026-10-08: Add system_status (STORY-008)
- 2026-10-18: Document hour-of-day ordering of hourly_average

TODO:
- None
"""

import calendar
import time
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from energy_monitor.db.models import ERROR_EVENT, format_timestamp
from energy_monitor.db.store import ReadingStore

_TRAILING_WINDOW = timedelta(hours=24)


@dataclass(frozen=True)
class UsageSummary:
    """Energy used over a window.

    Attributes:
        kwh: Integrated energy in kWh.
        readings: Number of readings in the window.
    """

    kwh: float
    readings: int


def parse_timestamp(value: str) -> datetime:
    """Parse a stored ISO-8601 timestamp into an aware datetime (UTC if naive)."""
    ts = datetime.fromisoformat(value)
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=UTC)
    return ts


def integrate_energy_kwh(samples: Iterable[tuple[datetime, float]]) -> float:
    """Integrate power samples into kWh with the left-endpoint rectangle rule.

    Args:
        samples: ``(timestamp, power_w)`` pairs ordered by timestamp.

    Returns:
        Energy in kWh; 0.0 for fewer than two samples.
    """
    total = 0.0
    prev_ts: datetime | None = None
    for ts, power in samples:
        if prev_ts is not None:
            delta_h = (ts - prev_ts).total_seconds() / 3600
            total += (power / 1000) * delta_h
        prev_ts = ts
    return total


def estimate_cost(kwh: float, unit_price: float) -> float:
    """Return the cost of *kwh* at *unit_price* per kWh."""
    return kwh * unit_price


def _get_date_range(range_type: str, now: datetime) -> tuple[datetime, datetime]:
    """Compute the start (inclusive) and end (exclusive) of a UTC range.

    Args:
        range_type: ``today`` or ``current_month``.
        now: Reference instant.

    Returns:
        Tuple of (start, end) datetimes in UTC.
    """
    now = now.astimezone(UTC)

    if range_type == "today":
        start = now.replace(hour=0, minute=0, second=0, microsecond=0)
        return start, start + timedelta(days=1)

    if range_type == "current_month":
        start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
        _, last_day = calendar.monthrange(now.year, now.month)
        end = start.replace(day=last_day) + timedelta(days=1)
        return start, end

    raise ValueError(f"Unknown range type: {range_type!r}")


async def usage_between(
    store: ReadingStore,
    start: datetime,
    end: datetime,
) -> UsageSummary:
    """Integrate the energy used in ``[start, end)``."""
    rows = await store.get_power_series(format_timestamp(start), format_timestamp(end))
    kwh = integrate_energy_kwh((parse_timestamp(ts), power) for ts, power in rows)
    return UsageSummary(kwh=kwh, readings=len(rows))


async def today_usage(store: ReadingStore, now: datetime | None = None) -> UsageSummary:
    """Energy used since midnight UTC."""
    start, end = _get_date_range("today", now or datetime.now(tz=UTC))
    return await usage_between(store, start, end)


async def monthly_usage(store: ReadingStore, now: datetime | None = None) -> UsageSummary:
    """Energy used in the current UTC calendar month."""
    start, end = _get_date_range("current_month", now or datetime.now(tz=UTC))
    return await usage_between(store, start, end)


async def hourly_average(store: ReadingStore, now: datetime | None = None) -> list[dict]:
    """Average power per hour-of-day over the trailing 24 hours.

    Returns:
        ``[{"hour": "HH", "avgPower": float}]`` ordered by the hour
        string, only for hours that have readings. A window that spans
        midnight is not in chronological order: ``"00"`` of today sorts
        ahead of ``"23"`` of yesterday.
    """
    since = (now or datetime.now(tz=UTC)) - _TRAILING_WINDOW
    groups = await store.get_grouped("hour", since=format_timestamp(since))
    return [{"hour": g["bucket"], "avgPower": g["avg_power"]} for g in groups]


async def cost_analysis(store: ReadingStore, unit_price: float) -> list[dict]:
    """Integrated usage and cost for every calendar month with readings.

    Readings are streamed in timestamp order and integrated per
    ``YYYY-MM``; the first reading of each month starts a new window.

    Returns:
        ``[{"month", "year", "readings", "totalPower", "totalCost"}]``
        oldest month first. ``totalPower`` is kWh.
    """
    months: dict[str, list] = {}
    prev_ts: datetime | None = None
    current_key: str | None = None

    async for ts_text, power in store.stream_power_series():
        key = ts_text[:7]
        ts = parse_timestamp(ts_text)
        if key != current_key:
            current_key = key
            prev_ts = None
            months[key] = [0.0, 0]
        bucket = months[key]
        if prev_ts is not None:
            bucket[0] += (power / 1000) * (ts - prev_ts).total_seconds() / 3600
        bucket[1] += 1
        prev_ts = ts

    result = []
    for key, (kwh, count) in months.items():
        year, month = key.split("-")
        result.append({
            "month": month,
            "year": year,
            "readings": count,
            "totalPower": round(kwh, 3),
            "totalCost": f"{estimate_cost(kwh, unit_price):.2f}",
        })
    return result


async def daily_rollup(store: ReadingStore) -> list[dict]:
    """Count, min, max, average and sum of power per calendar date, newest first."""
    groups = await store.get_grouped("date", descending=True)
    return [
        {
            "date": g["bucket"],
            "readings": g["readings"],
            "minPower": g["min_power"],
            "maxPower": g["max_power"],
            "avgPower": g["avg_power"],
            "totalPower": g["total_power"],
        }
        for g in groups
    ]


async def system_status(store: ReadingStore, started_at: float) -> dict:
    """Reading count, last reading time, error count and uptime.

    Args:
        store: Reading store.
        started_at: ``time.monotonic()`` value captured at process start.
    """
    total = await store.count_readings()
    latest = await store.get_latest()
    errors = await store.count_events(ERROR_EVENT)
    return {
        "totalReadings": total,
        "lastReading": latest.timestamp if latest is not None else None,
        "errorCount": errors,
        "uptime": round(time.monotonic() - started_at, 3),
        "serverOnline": True,
    }
