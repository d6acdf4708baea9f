"""
SQLAlchemy ORM models for the energy monitor database.

Defines the three tables owned by the reading store: raw energy readings,
the device command log, and the system event log.

Timestamps are stored as fixed-width ISO-8601 UTC text (see
:func:`format_timestamp`). Lexical order of that text equals chronological
order, so range filters and ``substr()`` bucketing behave the same on
SQLite and PostgreSQL.

CHANGELOG:
- 2026-10-04: Initial creation (STORY-003)

TODO:
- None
"""

from datetime import UTC, datetime

from sqlalchemy import Boolean, Double, Integer, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# event_type of system events that count as errors in status reporting.
ERROR_EVENT = "ERROR"


def format_timestamp(ts: datetime) -> str:
    """Render *ts* as fixed-width ISO-8601 UTC text.

    Args:
        ts: Timezone-aware datetime.

    Returns:
        String like ``2026-10-17T12:00:00.000000+00:00``.
    """
    return ts.astimezone(UTC).isoformat(timespec="microseconds")


class Base(DeclarativeBase):
    """SQLAlchemy declarative base for all energy monitor ORM models."""

    pass


class Reading(Base):
    """One telemetry sample from the smart plug.

    Attributes:
        id: Monotonic row id assigned by the store.
        timestamp: Collection time (ISO-8601 UTC text).
        power: Active power in watts.
        voltage: Voltage as reported by the device.
        current: Current as reported by the device.
        power_factor: Power factor as reported by the device.
    """

    __tablename__ = "energy_data"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    timestamp: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    power: Mapped[float] = mapped_column(Double, nullable=False, default=0.0)
    voltage: Mapped[float] = mapped_column(Double, nullable=False, default=0.0)
    current: Mapped[float] = mapped_column(Double, nullable=False, default=0.0)
    power_factor: Mapped[float] = mapped_column(Double, nullable=False, default=0.0)

    def to_dict(self) -> dict:
        """Return the reading as a JSON-serializable dict."""
        return {
            "id": self.id,
            "timestamp": self.timestamp,
            "power": self.power,
            "voltage": self.voltage,
            "current": self.current,
            "power_factor": self.power_factor,
        }

    def __repr__(self) -> str:
        """Return string representation of the Reading."""
        return (
            f"Reading(id={self.id!r}, timestamp={self.timestamp!r}, "
            f"power={self.power!r})"
        )


class DeviceCommand(Base):
    """A control command sent to the device and whether it was accepted."""

    __tablename__ = "device_commands"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    timestamp: Mapped[str] = mapped_column(Text, nullable=False)
    command: Mapped[str] = mapped_column(Text, nullable=False)
    value: Mapped[str] = mapped_column(Text, nullable=False)
    success: Mapped[bool] = mapped_column(Boolean, nullable=False)


class SystemEvent(Base):
    """Free-form operational event such as a Device API failure."""

    __tablename__ = "system_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    timestamp: Mapped[str] = mapped_column(Text, nullable=False)
    event_type: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    message: Mapped[str] = mapped_column(Text, nullable=False)
