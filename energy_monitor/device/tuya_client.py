"""
Tuya cloud client for the monitored smart plug.

Wraps ``tinytuya.Cloud``, which handles request signing and the access
token (including refresh after expiry). ``tinytuya`` is synchronous, so
every call runs in a worker thread via ``asyncio.to_thread`` and is
bounded by the configured timeout.

The Cloud object authenticates when it is built, so it is created
lazily on the first call rather than at app startup. When tinytuya
returns an error payload (for example a failed token request) the
session is discarded and rebuilt, and so re-authenticated, on the
next call.

The client does not retry. Network failures, timeouts and unreadable
responses raise :class:`TransportError`; error payloads from tinytuya
or ``success: false`` responses raise :class:`DeviceError`.

CHANGELOG:
- 2026-10-03: Initial creation (STORY-002)
- 2026-10-09: Rebuild the Cloud session after a tinytuya error payload
- 2026-10-18: Use tinytuya.Cloud instead of hand-signed OpenAPI requests

TODO:
- None
"""

import asyncio
import logging
from collections.abc import Callable
from typing import Any, Protocol

import requests
import tinytuya

from energy_monitor.errors import DeviceError, TransportError

logger = logging.getLogger(__name__)

# Default request timeout in seconds.
_DEFAULT_TIMEOUT: float = 5.0


class DeviceClient(Protocol):
    """Contract the collector and the control endpoint depend on."""

    async def fetch_status(self) -> dict[str, float]: ...

    async def send_command(self, code: str, value: Any) -> Any: ...


def status_to_metrics(result: list[dict] | None) -> dict[str, float]:
    """Convert a Tuya status list into a metric-code to number mapping.

    Entries whose value is not numeric (switch states, strings) are
    dropped; booleans are not treated as numbers.

    Args:
        result: ``result`` field of the status response, a list of
            ``{"code": ..., "value": ...}`` dicts.

    Returns:
        Mapping of metric code to numeric value.
    """
    metrics: dict[str, float] = {}
    for item in result or []:
        code = item.get("code")
        value = item.get("value")
        if code is None or isinstance(value, bool):
            continue
        if isinstance(value, (int, float)):
            metrics[code] = value
    return metrics


def _error_code(raw: Any) -> int | None:
    try:
        return int(raw)
    except (TypeError, ValueError):
        return None


class TuyaCloudClient:
    """Async facade over ``tinytuya.Cloud`` bound to a single device.

    Args:
        access_id: Tuya cloud project client id.
        access_key: Tuya cloud project secret.
        device_id: Identifier of the smart plug.
        region: Data-center code, e.g. ``us`` or ``eu``.
        timeout: Seconds to wait for one Device API call.
        cloud_factory: Builds the Cloud session; defaults to
            ``tinytuya.Cloud``. Tests pass a factory returning a mock.
    """

    def __init__(
        self,
        *,
        access_id: str,
        access_key: str,
        device_id: str,
        region: str = "us",
        timeout: float = _DEFAULT_TIMEOUT,
        cloud_factory: Callable[..., Any] | None = None,
    ) -> None:
        self._access_id = access_id
        self._access_key = access_key
        self._device_id = device_id
        self._region = region
        self._timeout = timeout
        self._cloud_factory = cloud_factory or tinytuya.Cloud
        self._cloud: Any = None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def fetch_status(self) -> dict[str, float]:
        """Return the device's current numeric status values by metric code."""
        result = await self._call("getstatus", lambda cloud: cloud.getstatus(self._device_id))
        if not isinstance(result, list):
            raise DeviceError(f"Unexpected status payload: {result!r}")
        return status_to_metrics(result)

    async def send_command(self, code: str, value: Any) -> Any:
        """Send one ``{code, value}`` command and return the API result."""
        commands = {"commands": [{"code": code, "value": value}]}
        return await self._call(
            "sendcommand", lambda cloud: cloud.sendcommand(self._device_id, commands),
        )

    async def aclose(self) -> None:
        """Drop the Cloud session."""
        self._cloud = None

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _session(self) -> Any:
        """Return the Cloud session, building (and authenticating) it if needed."""
        if self._cloud is None:
            self._cloud = self._cloud_factory(
                apiRegion=self._region,
                apiKey=self._access_id,
                apiSecret=self._access_key,
                apiDeviceID=self._device_id,
            )
            logger.info("Tuya cloud session opened (region %s)", self._region)
        return self._cloud

    async def _call(self, operation: str, action: Callable[[Any], Any]) -> Any:
        """Run *action* against the Cloud session in a thread.

        Returns:
            The ``result`` field of the response.

        Raises:
            TransportError: On network errors, timeouts or a response
                that is not a JSON object.
            DeviceError: On a tinytuya error payload or ``success: false``.
        """
        try:
            payload = await asyncio.wait_for(
                asyncio.to_thread(lambda: action(self._session())),
                timeout=self._timeout,
            )

        except TimeoutError as exc:
            raise TransportError(
                f"Device API timeout for {operation} after {self._timeout}s"
            ) from exc

        except requests.RequestException as exc:
            raise TransportError(f"Device API connection error for {operation}: {exc}") from exc

        except ValueError as exc:
            raise TransportError(f"Device API returned invalid JSON for {operation}") from exc

        if not isinstance(payload, dict):
            raise TransportError(f"Device API returned an unexpected body for {operation}")

        if "Error" in payload:
            # tinytuya error_json(): {"Error": msg, "Err": code, "Payload": ...}
            self._cloud = None
            raise DeviceError(
                f"Device API {operation} failed: {payload['Error']}",
                code=_error_code(payload.get("Err")),
            )

        if not payload.get("success"):
            raise DeviceError(
                f"Device API rejected {operation}: {payload.get('msg', 'unknown error')}",
                code=_error_code(payload.get("code")),
            )
        return payload.get("result")
