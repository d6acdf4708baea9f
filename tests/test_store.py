"""
Tests for the reading store against a temporary SQLite database.

Tests verify:
- Schema creation is idempotent.
- Inserts assign increasing ids and store fixed-width UTC timestamps.
- Latest / recent / range / by-date reads and their ordering.
- Grouped aggregates per hour, date and month.
- Command and event logs, counters, and StoreError translation.

CHANGELOG:
- 2026-10-04: Initial creation (STORY-003)
- 2026-10-05: Cover get_grouped and stream_power_series (STORY-006)

TODO:
- None
"""

import json
from datetime import UTC, datetime, timedelta, timezone

import pytest
from sqlalchemy import select

from energy_monitor.db.models import DeviceCommand, format_timestamp
from energy_monitor.db.store import ReadingStore
from energy_monitor.errors import StoreError

T0 = datetime(2026, 10, 17, 10, 0, 0, tzinfo=UTC)


class TestFormatTimestamp:
    """format_timestamp yields fixed-width UTC text."""

    def test_whole_second_keeps_microseconds(self) -> None:
        """Microseconds are always rendered so lexical order is chronological."""
        assert format_timestamp(T0) == "2026-10-17T10:00:00.000000+00:00"

    def test_converts_to_utc(self) -> None:
        """Non-UTC inputs are converted."""
        local = datetime(2026, 10, 17, 12, 0, 0, tzinfo=timezone(timedelta(hours=2)))

        assert format_timestamp(local) == "2026-10-17T10:00:00.000000+00:00"


class TestInsertAndRead:
    """Insert and basic reads."""

    @pytest.mark.asyncio()
    async def test_init_is_idempotent(self, store: ReadingStore) -> None:
        """Calling init() twice keeps existing data."""
        await store.insert_reading(T0, power=5)
        await store.init()

        assert await store.count_readings() == 1

    @pytest.mark.asyncio()
    async def test_insert_assigns_increasing_ids(self, store: ReadingStore) -> None:
        """Each insert gets a larger id than the previous one."""
        first = await store.insert_reading(T0, power=100)
        second = await store.insert_reading(T0 + timedelta(seconds=1), power=200)

        assert first.id is not None
        assert second.id > first.id
        assert first.timestamp == "2026-10-17T10:00:00.000000+00:00"

    @pytest.mark.asyncio()
    async def test_insert_defaults_to_zero(self, store: ReadingStore) -> None:
        """Omitted measurements are stored as 0."""
        reading = await store.insert_reading(T0)

        assert (reading.power, reading.voltage, reading.current, reading.power_factor) == (
            0.0, 0.0, 0.0, 0.0,
        )

    @pytest.mark.asyncio()
    async def test_get_latest_empty_store(self, store: ReadingStore) -> None:
        """get_latest returns None when there are no readings."""
        assert await store.get_latest() is None

    @pytest.mark.asyncio()
    async def test_get_latest_returns_highest_id(self, store: ReadingStore) -> None:
        """The most recently inserted row is the latest."""
        await store.insert_reading(T0, power=1)
        await store.insert_reading(T0 + timedelta(seconds=1), power=2)

        latest = await store.get_latest()

        assert latest.power == 2

    @pytest.mark.asyncio()
    async def test_get_recent_limits_and_orders_desc(self, store: ReadingStore) -> None:
        """get_recent returns at most N rows, newest first."""
        for i in range(12):
            await store.insert_reading(T0 + timedelta(seconds=i), power=i)

        recent = await store.get_recent(10)

        assert [r.power for r in recent] == [float(i) for i in range(11, 1, -1)]

    @pytest.mark.asyncio()
    async def test_get_range_is_inclusive_and_ascending(self, store: ReadingStore) -> None:
        """Range bounds are inclusive; rows come back oldest first."""
        await store.insert_reading(datetime(2026, 10, 15, 23, 59, tzinfo=UTC), power=1)
        await store.insert_reading(datetime(2026, 10, 17, 8, 0, tzinfo=UTC), power=3)
        await store.insert_reading(datetime(2026, 10, 16, 0, 0, tzinfo=UTC), power=2)
        await store.insert_reading(datetime(2026, 10, 18, 0, 0, tzinfo=UTC), power=4)

        rows = await store.get_range("2026-10-16", "2026-10-17T23:59:59")

        assert [r.power for r in rows] == [2.0, 3.0]

    @pytest.mark.asyncio()
    async def test_get_by_date(self, store: ReadingStore) -> None:
        """Only readings of the requested calendar date are returned."""
        await store.insert_reading(datetime(2026, 10, 16, 23, 59, 59, tzinfo=UTC), power=1)
        await store.insert_reading(datetime(2026, 10, 17, 0, 0, 0, tzinfo=UTC), power=2)
        await store.insert_reading(datetime(2026, 10, 17, 23, 0, 0, tzinfo=UTC), power=3)

        rows = await store.get_by_date("2026-10-17")

        assert [r.power for r in rows] == [2.0, 3.0]
        assert await store.get_by_date("2026-01-01") == []

    @pytest.mark.asyncio()
    async def test_get_power_series_half_open(self, store: ReadingStore) -> None:
        """get_power_series includes start and excludes end."""
        await store.insert_reading(T0, power=1)
        await store.insert_reading(T0 + timedelta(hours=1), power=2)

        series = await store.get_power_series(
            format_timestamp(T0), format_timestamp(T0 + timedelta(hours=1)),
        )

        assert series == [(format_timestamp(T0), 1.0)]

    @pytest.mark.asyncio()
    async def test_stream_power_series_in_timestamp_order(self, store: ReadingStore) -> None:
        """Streaming yields every pair ordered by timestamp, not by id."""
        await store.insert_reading(T0 + timedelta(seconds=5), power=2)
        await store.insert_reading(T0, power=1)

        pairs = [pair async for pair in store.stream_power_series()]

        assert [p for _, p in pairs] == [1.0, 2.0]


class TestGrouped:
    """get_grouped aggregates power per bucket."""

    @pytest.mark.asyncio()
    async def test_group_by_date_statistics(self, store: ReadingStore) -> None:
        """COUNT/MIN/MAX/AVG/SUM per calendar date."""
        for hour, power in [(1, 100), (2, 300), (3, 200)]:
            await store.insert_reading(datetime(2026, 10, 16, hour, tzinfo=UTC), power=power)
        await store.insert_reading(datetime(2026, 10, 17, 1, tzinfo=UTC), power=50)

        groups = await store.get_grouped("date", descending=True)

        assert [g["bucket"] for g in groups] == ["2026-10-17", "2026-10-16"]
        older = groups[1]
        assert older["readings"] == 3
        assert older["min_power"] == 100
        assert older["max_power"] == 300
        assert older["avg_power"] == pytest.approx(200)
        assert older["total_power"] == pytest.approx(600)

    @pytest.mark.asyncio()
    async def test_group_by_hour_with_since(self, store: ReadingStore) -> None:
        """Hour buckets are two-digit strings and respect the lower bound."""
        await store.insert_reading(datetime(2026, 10, 16, 9, tzinfo=UTC), power=999)
        await store.insert_reading(datetime(2026, 10, 17, 9, 10, tzinfo=UTC), power=100)
        await store.insert_reading(datetime(2026, 10, 17, 9, 50, tzinfo=UTC), power=300)
        await store.insert_reading(datetime(2026, 10, 17, 11, tzinfo=UTC), power=40)

        groups = await store.get_grouped("hour", since="2026-10-17")

        assert [(g["bucket"], g["avg_power"]) for g in groups] == [("09", 200), ("11", 40)]

    @pytest.mark.asyncio()
    async def test_group_by_month(self, store: ReadingStore) -> None:
        """Month buckets are YYYY-MM."""
        await store.insert_reading(datetime(2026, 9, 30, tzinfo=UTC), power=1)
        await store.insert_reading(datetime(2026, 10, 1, tzinfo=UTC), power=1)

        groups = await store.get_grouped("month")

        assert [g["bucket"] for g in groups] == ["2026-09", "2026-10"]

    @pytest.mark.asyncio()
    async def test_unknown_granularity_raises(self, store: ReadingStore) -> None:
        """Only hour, date and month are supported."""
        with pytest.raises(ValueError, match="Invalid granularity"):
            await store.get_grouped("week")


class TestLogsAndCounters:
    """Command log, event log and counters."""

    @pytest.mark.asyncio()
    async def test_insert_command_serializes_value(self, store: ReadingStore) -> None:
        """Command values are stored as JSON text."""
        await store.insert_command("switch_1", False, success=True)

        async with store._session_factory() as session:
            row = (await session.execute(select(DeviceCommand))).scalar_one()

        assert row.command == "switch_1"
        assert json.loads(row.value) is False
        assert row.success is True

    @pytest.mark.asyncio()
    async def test_count_events_by_type(self, store: ReadingStore) -> None:
        """count_events counts only the requested type."""
        await store.insert_event("ERROR", "Device API error: timeout")
        await store.insert_event("ERROR", "Device API error: refused")
        await store.insert_event("INFO", "started")

        assert await store.count_events("ERROR") == 2
        assert await store.count_events("WARNING") == 0

    @pytest.mark.asyncio()
    async def test_ping(self, store: ReadingStore) -> None:
        """ping succeeds on a reachable database."""
        await store.ping()


class TestStoreErrors:
    """SQLAlchemy failures surface as StoreError."""

    @pytest.mark.asyncio()
    async def test_missing_schema_raises_store_error(self, tmp_path) -> None:
        """Reading before init() fails with StoreError, not a raw DB error."""
        bare = ReadingStore(f"sqlite+aiosqlite:///{tmp_path / 'bare.db'}")
        try:
            with pytest.raises(StoreError, match="count readings failed"):
                await bare.count_readings()
        finally:
            await bare.close()

    @pytest.mark.asyncio()
    async def test_unreachable_database_raises_store_error(self, tmp_path) -> None:
        """A database path that cannot be opened fails with StoreError."""
        broken = ReadingStore(f"sqlite+aiosqlite:///{tmp_path / 'missing-dir' / 'x.db'}")
        try:
            with pytest.raises(StoreError):
                await broken.init()
        finally:
            await broken.close()
