"""
Shared test fixtures for the energy monitor test suite.

The app module reads settings at import time (CORS origins), so the
required Tuya variables get placeholder values before any test module
imports it. Each test then runs in ``tmp_path`` with a clean environment
so no ``.env`` file is picked up.

CHANGELOG:
- 2026-10-03: Initial creation (STORY-001)
- 2026-10-05: Add store and API client fixtures (STORY-006)

TODO:
- None
"""

import asyncio
import os
from collections.abc import AsyncIterator, Iterator
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from sqlalchemy.pool import NullPool

from energy_monitor.db.store import ReadingStore

_BASE_ENV = {
    "TUYA_ACCESS_ID": "test-access-id",
    "TUYA_ACCESS_KEY": "test-access-key",
    "TUYA_DEVICE_ID": "test-device",
}

for _key, _value in _BASE_ENV.items():
    os.environ.setdefault(_key, _value)

# Optional settings variables, removed before each test.
_OPTIONAL_ENV_VARS = (
    "TUYA_REGION",
    "DEVICE_API_TIMEOUT_S",
    "DATABASE_URL",
    "REDIS_URL",
    "CACHE_TTL_S",
    "COLLECT_INTERVAL_S",
    "COLLECTOR_ENABLED",
    "UNIT_PRICE_PER_KWH",
    "CORS_ORIGINS",
    "LOG_LEVEL",
    "HOST",
    "PORT",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    """Reset environment variables and isolate from .env files before each test."""
    for var in _OPTIONAL_ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    for key, value in _BASE_ENV.items():
        monkeypatch.setenv(key, value)
    monkeypatch.chdir(tmp_path)


def _make_store(tmp_path) -> ReadingStore:
    # NullPool: every operation opens a fresh connection on the running
    # event loop, so sync TestClient tests and asyncio.run() can share it.
    return ReadingStore(
        f"sqlite+aiosqlite:///{tmp_path / 'energy-test.db'}",
        poolclass=NullPool,
    )


@pytest_asyncio.fixture()
async def store(tmp_path) -> AsyncIterator[ReadingStore]:
    """Initialized ReadingStore on a temporary SQLite file (async tests)."""
    reading_store = _make_store(tmp_path)
    await reading_store.init()
    yield reading_store
    await reading_store.close()


@pytest.fixture()
def sync_store(tmp_path) -> Iterator[ReadingStore]:
    """Initialized ReadingStore for synchronous TestClient tests.

    Seed it with ``asyncio.run(sync_store.insert_reading(...))``.
    """
    reading_store = _make_store(tmp_path)
    asyncio.run(reading_store.init())
    yield reading_store
    asyncio.run(reading_store.close())


@pytest.fixture()
def device_client() -> AsyncMock:
    """Mock device client with the fetch_status/send_command contract."""
    client = AsyncMock()
    client.fetch_status.return_value = {
        "cur_power": 1200,
        "cur_voltage": 2301,
        "cur_current": 520,
        "power_factor": 98,
    }
    client.send_command.return_value = True
    return client


@pytest.fixture()
def client(sync_store: ReadingStore, device_client: AsyncMock):
    """TestClient with the store and device client dependencies overridden.

    The lifespan is not entered, so no collector runs during API tests.
    """
    from energy_monitor.api.deps import get_device_client, get_store
    from energy_monitor.main import app

    app.dependency_overrides[get_store] = lambda: sync_store
    app.dependency_overrides[get_device_client] = lambda: device_client

    yield TestClient(app)

    app.dependency_overrides.clear()
