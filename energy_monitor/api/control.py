"""
Device control endpoint.

Accepts ``POST /api/control-device`` with ``{"command": {"code", "value"}}``,
forwards the command to the Device API and records the outcome in the
command log. A request without ``command`` is rejected with 400 before
any Device API call. Device API failures return 500 with
``{"success": false, "error": ...}``.

CHANGELOG:
- 2026-10-09: Initial creation (STORY-010)

TODO:
- None
"""

import logging
from typing import Any

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from energy_monitor.api.deps import Device, Store
from energy_monitor.db.store import ReadingStore
from energy_monitor.errors import DeviceApiError, StoreError, ValidationError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["control"])


# ---------------------------------------------------------------------------
# Pydantic request schemas
# ---------------------------------------------------------------------------


class DeviceCommandRequest(BaseModel):
    """A single Tuya data-point command, e.g. ``{"code": "switch_1", "value": false}``."""

    code: str
    value: Any = None


class ControlRequest(BaseModel):
    """Schema for the control request body."""

    command: DeviceCommandRequest | None = None


# ---------------------------------------------------------------------------
# Route
# ---------------------------------------------------------------------------


async def _log_command(store: ReadingStore, command: DeviceCommandRequest, success: bool) -> None:
    """Best-effort write to the command log."""
    try:
        await store.insert_command(command.code, command.value, success)
    except StoreError:
        logger.warning("Command logging failed for %s", command.code, exc_info=True)


@router.post("/control-device")
async def control_device(body: ControlRequest, client: Device, store: Store):
    """Send a control command to the device.

    Returns:
        ``{"success": true, "message": ..., "response": <Device API result>}``
        or a 500 JSONResponse ``{"success": false, "error": ...}``.

    Raises:
        ValidationError: 400 when ``command`` is missing.
    """
    command = body.command
    if command is None:
        raise ValidationError("Command is required")

    try:
        result = await client.send_command(command.code, command.value)
    except DeviceApiError as exc:
        logger.error("Device control error: %s", exc)
        await _log_command(store, command, success=False)
        return JSONResponse(
            status_code=500,
            content={"success": False, "error": str(exc)},
        )

    await _log_command(store, command, success=True)
    return {
        "success": True,
        "message": "Command sent successfully",
        "response": result,
    }
