"""
Device package: Tuya cloud client for the monitored smart plug.

CHANGELOG:
- 2026-10-03: Initial creation (STORY-002)

TODO:
- None
"""

from energy_monitor.device.tuya_client import DeviceClient, TuyaCloudClient

__all__ = ["DeviceClient", "TuyaCloudClient"]
