"""
Collector tick and the recurring ticker that drives it.

Each tick:
1. Fetch the device status through the device client.
2. Extract power, voltage, current and power factor (0 when missing).
3. Stamp the current UTC time and insert one reading.

When the fetch or extraction fails, an ``ERROR`` system event is
recorded and an all-zero reading is inserted instead, so the series
stays gap-free for the kWh integration downstream. A failed insert is
recorded as an ``ERROR`` event too. A tick never raises.

:class:`Ticker` fires a coroutine every ``interval_s`` seconds until
stopped. Every firing runs as its own task, so a slow tick overlaps the
next one instead of delaying or dropping it.

CHANGELOG:
- 2026-10-04: Initial creation (STORY-005)
- 2026-10-06: Invalidate current-reading cache after insert (STORY-009)
- 2026-10-10: Ticker.stop() waits for in-flight ticks
- 2026-10-18: Write the new reading through to the cache instead of invalidating

TODO:
- None
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime

from energy_monitor.cache.redis_client import set_cached_current
from energy_monitor.db.models import ERROR_EVENT, Reading
from energy_monitor.db.store import ReadingStore
from energy_monitor.device.tuya_client import DeviceClient
from energy_monitor.errors import StoreError
from energy_monitor.services.normalizer import ZERO_METRICS, extract_metrics

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


class Collector:
    """Polls the device once per tick and stores exactly one reading.

    Args:
        store: Reading store to write to.
        client: Device client to poll.
        clock: Returns the collection timestamp; injectable for tests.
    """

    def __init__(
        self,
        store: ReadingStore,
        client: DeviceClient,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._store = store
        self._client = client
        self._clock = clock

    async def tick(self) -> Reading | None:
        """Run one collection cycle.

        Returns:
            The inserted reading, or None when the insert itself failed.
        """
        try:
            status = await self._client.fetch_status()
            metrics = extract_metrics(status)
        except Exception as exc:
            logger.warning("Device API error: %s", exc)
            await self._record_error(f"Device API error: {exc}")
            metrics = dict(ZERO_METRICS)

        ts = self._clock()
        try:
            reading = await self._store.insert_reading(ts, **metrics)
        except StoreError as exc:
            logger.error("Failed to save energy data: %s", exc)
            await self._record_error(f"Failed to save energy data: {exc}")
            return None

        logger.debug("Reading %d stored at %s: %s W", reading.id, reading.timestamp, reading.power)
        await set_cached_current(reading.to_dict())
        return reading

    async def _record_error(self, message: str) -> None:
        """Write an ERROR system event, logging if even that fails."""
        try:
            await self._store.insert_event(ERROR_EVENT, message)
        except StoreError:
            logger.exception("Failed to record system event")


class Ticker:
    """Cancellable fixed-cadence scheduler for a coroutine function.

    Args:
        interval_s: Seconds between firings.
        callback: Coroutine function invoked on every firing.
        name: Task name used in logs.
    """

    def __init__(
        self,
        interval_s: float,
        callback: Callable[[], Awaitable[object]],
        name: str = "collector-ticker",
    ) -> None:
        if interval_s <= 0:
            raise ValueError("interval_s must be > 0")
        self.interval_s = interval_s
        self._callback = callback
        self._name = name
        self._stop = asyncio.Event()
        self._task: asyncio.Task | None = None
        self._inflight: set[asyncio.Task] = set()

    @property
    def running(self) -> bool:
        """Whether the ticker loop is active."""
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start firing on the running event loop."""
        if self.running:
            return
        self._stop.clear()
        self._task = asyncio.create_task(self._run(), name=self._name)
        logger.info("%s started, interval %.3fs", self._name, self.interval_s)

    async def stop(self, timeout: float = 5.0) -> None:
        """Stop firing and wait up to *timeout* seconds for in-flight runs."""
        self._stop.set()
        if self._task is not None:
            await self._task
            self._task = None
        if self._inflight:
            done, pending = await asyncio.wait(self._inflight, timeout=timeout)
            for task in pending:
                task.cancel()
            if pending:
                logger.warning("%s cancelled %d unfinished run(s)", self._name, len(pending))
        logger.info("%s stopped", self._name)

    async def _run(self) -> None:
        loop = asyncio.get_running_loop()
        next_at = loop.time()
        while not self._stop.is_set():
            self._fire()
            next_at += self.interval_s
            try:
                await asyncio.wait_for(
                    self._stop.wait(), timeout=max(next_at - loop.time(), 0.0),
                )
            except TimeoutError:
                pass

    def _fire(self) -> None:
        task = asyncio.create_task(self._callback())
        self._inflight.add(task)
        task.add_done_callback(self._on_done)

    def _on_done(self, task: asyncio.Task) -> None:
        self._inflight.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(
                "%s run failed", self._name, exc_info=task.exception(),
            )
