"""
Energy monitor configuration loaded from environment variables.

Uses Pydantic BaseSettings for automatic env var loading and validation.
Tuya cloud credentials and the device id are required; everything else
has a default suitable for a single-plug home deployment.

``COLLECT_INTERVAL_S`` is the sampling cadence of the collector. It sets
the granularity of every downstream aggregation (hourly averages, kWh
integration), so change it with care.

CHANGELOG:
- 2026-10-03: Initial creation (STORY-001)
- 2026-10-06: Add REDIS_URL / CACHE_TTL_S for the current-data cache (STORY-009)
- 2026-10-08: Add CORS_ORIGINS (STORY-012)

TODO:
- None
"""

import logging

from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Attributes:
        TUYA_ACCESS_ID: Tuya cloud project client id.
        TUYA_ACCESS_KEY: Tuya cloud project secret.
        TUYA_DEVICE_ID: Identifier of the monitored smart plug.
        TUYA_REGION: Tuya data-center suffix (``us``, ``eu``, ``cn``, ``in``).
        DEVICE_API_TIMEOUT_S: HTTP timeout for Device API calls.
        DATABASE_URL: SQLAlchemy async connection string.
        REDIS_URL: Redis connection string; the cache is disabled when unset.
        CACHE_TTL_S: TTL of the cached latest reading in seconds.
        COLLECT_INTERVAL_S: Seconds between collector ticks.
        COLLECTOR_ENABLED: Whether the app lifespan starts the collector.
        UNIT_PRICE_PER_KWH: Electricity price used for cost estimates.
        CORS_ORIGINS: Comma-separated list of allowed browser origins.
        LOG_LEVEL: Root logging level name.
        HOST: Bind address for the HTTP server.
        PORT: Bind port for the HTTP server.
    """

    TUYA_ACCESS_ID: str
    TUYA_ACCESS_KEY: str
    TUYA_DEVICE_ID: str
    TUYA_REGION: str = "us"
    DEVICE_API_TIMEOUT_S: float = 5.0
    DATABASE_URL: str = "sqlite+aiosqlite:///./energy.db"
    REDIS_URL: str | None = None
    CACHE_TTL_S: int = 1
    COLLECT_INTERVAL_S: float = 1.0
    COLLECTOR_ENABLED: bool = True
    UNIT_PRICE_PER_KWH: float = 0.12
    CORS_ORIGINS: str = "*"
    LOG_LEVEL: str = "INFO"
    HOST: str = "0.0.0.0"
    PORT: int = 3000

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    @field_validator("COLLECT_INTERVAL_S", "DEVICE_API_TIMEOUT_S")
    @classmethod
    def must_be_positive(cls, v: float) -> float:
        """Validate that intervals and timeouts are strictly positive."""
        if v <= 0:
            raise ValueError("must be > 0")
        return v

    @field_validator("UNIT_PRICE_PER_KWH")
    @classmethod
    def price_must_not_be_negative(cls, v: float) -> float:
        """Validate the unit price is zero or more."""
        if v < 0:
            raise ValueError("UNIT_PRICE_PER_KWH must be >= 0")
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def log_level_must_be_known(cls, v: str) -> str:
        """Normalize LOG_LEVEL and reject names logging does not know."""
        level = v.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown LOG_LEVEL: {v!r}")
        return level

    @property
    def cors_origin_list(self) -> list[str]:
        """CORS_ORIGINS split into a clean list."""
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]


def get_settings() -> Settings:
    """Create and return a Settings instance.

    Returns:
        Settings: Validated configuration from environment variables.
    """
    return Settings()
