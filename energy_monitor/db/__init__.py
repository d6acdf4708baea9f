"""
Database package for SQLAlchemy models and the reading store.

CHANGELOG:
- 2026-10-04: Initial creation (STORY-003)

TODO:
- None
"""

from energy_monitor.db.models import (
    Base,
    DeviceCommand,
    Reading,
    SystemEvent,
    format_timestamp,
)
from energy_monitor.db.store import ReadingStore

__all__ = [
    "Base",
    "DeviceCommand",
    "Reading",
    "ReadingStore",
    "SystemEvent",
    "format_timestamp",
]
