"""
Reading store: async engine lifecycle plus every read/write the app needs.

Wraps a SQLAlchemy 2.x async engine and session factory. The store is
the only owner of the ``energy_data``, ``device_commands`` and
``system_events`` tables; the collector, aggregation engine and API
layer go through the methods below.

Each operation opens its own session, so an insert is committed and
visible to every later read once the coroutine returns. Any
``SQLAlchemyError`` is re-raised as :class:`StoreError`.

Operations:
- insert_reading / insert_command / insert_event: append one row.
- get_latest / get_recent / get_range / get_by_date: fetch readings.
- get_power_series / stream_power_series: ordered (timestamp, power) pairs.
- get_grouped: COUNT/MIN/MAX/AVG/SUM of power per hour, date or month.
- count_readings / count_events: row counts.
- ping: connectivity check used by /health.

CHANGELOG:
- 2026-10-04: Initial creation (STORY-003)
- 2026-10-05: Add get_grouped and stream_power_series (STORY-006)
- 2026-10-08: Add ping for /health (STORY-012)

TODO:
- None
"""

import json
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import func, select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from energy_monitor.db.models import (
    Base,
    DeviceCommand,
    Reading,
    SystemEvent,
    format_timestamp,
)
from energy_monitor.errors import StoreError

logger = logging.getLogger(__name__)

# substr() positions within the fixed-width ISO timestamp text.
GROUP_EXPRESSIONS = {
    "hour": "substr(timestamp, 12, 2)",
    "date": "substr(timestamp, 1, 10)",
    "month": "substr(timestamp, 1, 7)",
}


class ReadingStore:
    """Async relational store for readings, commands and system events.

    Args:
        database_url: SQLAlchemy async URL, e.g.
            ``sqlite+aiosqlite:///./energy.db``.
        **engine_kwargs: Extra keyword arguments for
            ``create_async_engine`` (``poolclass``, ``echo``, ...).
    """

    def __init__(self, database_url: str, **engine_kwargs: Any) -> None:
        self.database_url = database_url
        self._engine: AsyncEngine = create_async_engine(database_url, **engine_kwargs)
        self._session_factory: async_sessionmaker[AsyncSession] = async_sessionmaker(
            self._engine, class_=AsyncSession, expire_on_commit=False,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def init(self) -> None:
        """Create all tables that do not exist yet."""
        try:
            async with self._engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to initialize schema: {exc}") from exc
        logger.info("Reading store ready at %s", self._engine.url.render_as_string())

    async def close(self) -> None:
        """Dispose of the engine and its pooled connections."""
        await self._engine.dispose()

    @asynccontextmanager
    async def _session(self, operation: str) -> AsyncIterator[AsyncSession]:
        """Yield a session, translating SQLAlchemy failures to StoreError."""
        try:
            async with self._session_factory() as session:
                yield session
        except SQLAlchemyError as exc:
            raise StoreError(f"{operation} failed: {exc}") from exc

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def insert_reading(
        self,
        timestamp: datetime,
        power: float = 0.0,
        voltage: float = 0.0,
        current: float = 0.0,
        power_factor: float = 0.0,
    ) -> Reading:
        """Append one reading and return it with its assigned id.

        Args:
            timestamp: Collection time; must be timezone-aware.
            power: Active power in watts.
            voltage: Voltage.
            current: Current.
            power_factor: Power factor.

        Returns:
            Reading: The persisted row.
        """
        reading = Reading(
            timestamp=format_timestamp(timestamp),
            power=power,
            voltage=voltage,
            current=current,
            power_factor=power_factor,
        )
        async with self._session("insert reading") as session:
            session.add(reading)
            await session.commit()
        return reading

    async def insert_command(self, command: str, value: Any, success: bool) -> None:
        """Append a device command log entry.

        Args:
            command: Command code sent to the device.
            value: Command value; stored JSON-serialized.
            success: Whether the Device API accepted the command.
        """
        entry = DeviceCommand(
            timestamp=format_timestamp(datetime.now(tz=UTC)),
            command=command,
            value=json.dumps(value),
            success=success,
        )
        async with self._session("insert command") as session:
            session.add(entry)
            await session.commit()

    async def insert_event(self, event_type: str, message: str) -> None:
        """Append a system event such as ``ERROR``."""
        event = SystemEvent(
            timestamp=format_timestamp(datetime.now(tz=UTC)),
            event_type=event_type,
            message=message,
        )
        async with self._session("insert event") as session:
            session.add(event)
            await session.commit()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_latest(self) -> Reading | None:
        """Return the most recently inserted reading, or None."""
        async with self._session("get latest reading") as session:
            result = await session.execute(
                select(Reading).order_by(Reading.id.desc()).limit(1)
            )
            return result.scalar_one_or_none()

    async def get_recent(self, limit: int) -> list[Reading]:
        """Return up to *limit* readings, newest id first."""
        async with self._session("get recent readings") as session:
            result = await session.execute(
                select(Reading).order_by(Reading.id.desc()).limit(limit)
            )
            return list(result.scalars())

    async def get_range(self, start: str, end: str) -> list[Reading]:
        """Return readings with ``start <= timestamp <= end``, oldest first.

        Bounds are compared as ISO-8601 text, so a bare date such as
        ``2026-10-01`` sorts before every timestamp of that day.
        """
        async with self._session("get reading range") as session:
            result = await session.execute(
                select(Reading)
                .where(Reading.timestamp.between(start, end))
                .order_by(Reading.timestamp, Reading.id)
            )
            return list(result.scalars())

    async def get_by_date(self, date: str) -> list[Reading]:
        """Return all readings of one calendar date (``YYYY-MM-DD``), oldest first."""
        async with self._session("get readings by date") as session:
            result = await session.execute(
                select(Reading)
                .where(func.substr(Reading.timestamp, 1, 10) == date)
                .order_by(Reading.timestamp, Reading.id)
            )
            return list(result.scalars())

    async def get_power_series(self, start: str, end: str) -> list[tuple[str, float]]:
        """Return ``(timestamp, power)`` pairs with ``start <= timestamp < end``.

        Ordered by timestamp so consecutive pairs can be integrated.
        """
        async with self._session("get power series") as session:
            result = await session.execute(
                select(Reading.timestamp, Reading.power)
                .where(Reading.timestamp >= start, Reading.timestamp < end)
                .order_by(Reading.timestamp, Reading.id)
            )
            return [(row.timestamp, row.power) for row in result]

    async def stream_power_series(self) -> AsyncIterator[tuple[str, float]]:
        """Yield every ``(timestamp, power)`` pair in timestamp order.

        Rows are streamed from the database instead of being loaded
        into memory at once.
        """
        async with self._session("stream power series") as session:
            result = await session.stream(
                select(Reading.timestamp, Reading.power).order_by(
                    Reading.timestamp, Reading.id,
                )
            )
            async for row in result:
                yield row.timestamp, row.power

    async def get_grouped(
        self,
        granularity: str,
        since: str | None = None,
        descending: bool = False,
    ) -> list[dict]:
        """Aggregate power per hour-of-day, calendar date or year-month.

        Args:
            granularity: One of ``hour``, ``date``, ``month``.
            since: Optional inclusive lower bound on the timestamp.
            descending: Order buckets newest/highest first.

        Returns:
            List of dicts with ``bucket``, ``readings``, ``min_power``,
            ``max_power``, ``avg_power`` and ``total_power``.

        Raises:
            ValueError: If *granularity* is unknown.
        """
        if granularity not in GROUP_EXPRESSIONS:
            raise ValueError(
                f"Invalid granularity: {granularity}. "
                f"Must be one of: {', '.join(GROUP_EXPRESSIONS)}"
            )
        expr = GROUP_EXPRESSIONS[granularity]
        params: dict = {}

        sql = (
            f"SELECT {expr} AS bucket, "
            "COUNT(*) AS readings, "
            "MIN(power) AS min_power, "
            "MAX(power) AS max_power, "
            "AVG(power) AS avg_power, "
            "SUM(power) AS total_power "
            "FROM energy_data"
        )
        if since is not None:
            sql += " WHERE timestamp >= :since"
            params["since"] = since
        sql += f" GROUP BY {expr} ORDER BY bucket"
        if descending:
            sql += " DESC"

        async with self._session(f"group readings by {granularity}") as session:
            result = await session.execute(text(sql), params)
            rows = result.fetchall()

        return [
            {
                "bucket": row._mapping["bucket"],
                "readings": row._mapping["readings"],
                "min_power": row._mapping["min_power"],
                "max_power": row._mapping["max_power"],
                "avg_power": row._mapping["avg_power"],
                "total_power": row._mapping["total_power"],
            }
            for row in rows
        ]

    async def count_readings(self) -> int:
        """Return the total number of readings."""
        async with self._session("count readings") as session:
            result = await session.execute(select(func.count()).select_from(Reading))
            return result.scalar_one()

    async def count_events(self, event_type: str) -> int:
        """Return the number of system events of *event_type*."""
        async with self._session("count events") as session:
            result = await session.execute(
                select(func.count())
                .select_from(SystemEvent)
                .where(SystemEvent.event_type == event_type)
            )
            return result.scalar_one()

    async def ping(self) -> None:
        """Run ``SELECT 1``; raises StoreError when the database is unreachable."""
        async with self._session("ping") as session:
            await session.execute(text("SELECT 1"))
