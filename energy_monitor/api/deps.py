"""
FastAPI dependency injection providers.

The reading store, device client and process start time are created in
the application lifespan and kept on ``app.state``; these providers
hand them to route handlers. Tests replace them through
``app.dependency_overrides``.

CHANGELOG:
- 2026-10-05: Initial creation (STORY-006)
- 2026-10-08: Add Settings and start-time dependencies (STORY-008)

TODO:
- None
"""

from typing import Annotated

from fastapi import Depends, Request

from energy_monitor.config import Settings, get_settings
from energy_monitor.db.store import ReadingStore
from energy_monitor.device.tuya_client import DeviceClient


def get_store(request: Request) -> ReadingStore:
    """Return the process-wide reading store."""
    return request.app.state.store


def get_device_client(request: Request) -> DeviceClient:
    """Return the process-wide device client."""
    return request.app.state.device_client


def get_started_at(request: Request) -> float:
    """Return the ``time.monotonic()`` value captured when the app was built."""
    return request.app.state.started_at


# Type aliases for injecting dependencies via FastAPI Depends().
# Usage in route handlers:
#   async def my_route(store: Store):
#       latest = await store.get_latest()
Store = Annotated[ReadingStore, Depends(get_store)]
Device = Annotated[DeviceClient, Depends(get_device_client)]
AppSettings = Annotated[Settings, Depends(get_settings)]
StartedAt = Annotated[float, Depends(get_started_at)]
