"""
Metric extraction for Tuya smart-plug status readings.

Pure function that maps the Device API's metric codes onto reading
fields. No side effects, no I/O, no clock: the collector stamps the
timestamp itself.

CHANGELOG:
- 2026-10-04: Initial creation (STORY-004)

TODO:
- None
"""

from collections.abc import Mapping

# Reading field -> Tuya metric code.
METRIC_CODES: dict[str, str] = {
    "power": "cur_power",
    "voltage": "cur_voltage",
    "current": "cur_current",
    "power_factor": "power_factor",
}

ZERO_METRICS: dict[str, float] = {field: 0.0 for field in METRIC_CODES}


def extract_metrics(status: Mapping[str, float]) -> dict[str, float]:
    """Pick the reading fields out of a device status mapping.

    Missing metric codes default to 0.

    Args:
        status: Mapping of Tuya metric code to numeric value.

    Returns:
        Dict with ``power``, ``voltage``, ``current`` and ``power_factor``.

    Raises:
        ValueError: If a present metric is not numeric.
    """
    metrics: dict[str, float] = {}
    for field, code in METRIC_CODES.items():
        value = status.get(code, 0)
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValueError(f"Metric {code!r} is not numeric: {value!r}")
        metrics[field] = float(value)
    return metrics
