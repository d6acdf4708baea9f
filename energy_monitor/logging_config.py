"""
Structured JSON logging for the energy monitor.

Every record becomes one JSON line with ``timestamp``, ``level``,
``logger`` and ``message``; records logged with a traceback also carry
``exc_info``. ``setup_logging()`` installs that format on the root
logger and pins the loggers of the Tuya HTTP stack (tinytuya, urllib3)
to WARNING, so a DEBUG root level does not log every 1 Hz poll.

CHANGELOG:
- 2026-10-03: Initial creation (STORY-001)
- 2026-10-07: Include formatted exc_info for logger.exception() calls
- 2026-10-11: Quiet HTTP client request logging at the 1 Hz poll rate
- 2026-10-18: Quiet tinytuya and urllib3 instead of httpx

TODO:
- None
"""

import json
import logging
import sys
from datetime import UTC, datetime
from typing import TextIO

# Third-party loggers that log every Device API request at DEBUG.
_CHATTY_LOGGERS = ("tinytuya", "urllib3")


class JSONFormatter(logging.Formatter):
    """Render each log record as a single-line JSON object."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            entry["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def setup_logging(level: int | str = logging.INFO, stream: TextIO | None = None) -> None:
    """Route all logging through one JSON handler on the root logger.

    Safe to call repeatedly: previously installed root handlers are
    replaced, not stacked.

    Args:
        level: Root level, as an int or a name such as ``"DEBUG"``.
        stream: Output stream; defaults to ``sys.stderr``.
    """
    root = logging.getLogger()
    root.setLevel(level)
    for existing in list(root.handlers):
        root.removeHandler(existing)

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(JSONFormatter())
    root.addHandler(handler)

    for name in _CHATTY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
