"""
Error taxonomy shared by the device client, store, collector and API.

CHANGELOG:
- 2026-10-03: Initial creation (STORY-002)

TODO:
- None
"""


class EnergyMonitorError(Exception):
    """Base class for all energy monitor errors."""


class DeviceApiError(EnergyMonitorError):
    """A Device API call did not produce a usable result."""


class TransportError(DeviceApiError):
    """The Device API was unreachable, timed out or answered with a bad HTTP status."""


class DeviceError(DeviceApiError):
    """The Device API was reachable but rejected the request.

    Attributes:
        code: Error code reported by the Device API, if any.
    """

    def __init__(self, message: str, code: int | None = None) -> None:
        super().__init__(message)
        self.code = code


class StoreError(EnergyMonitorError):
    """A persistence operation on the reading store failed."""


class ValidationError(EnergyMonitorError):
    """A request was malformed and was rejected before any I/O."""
