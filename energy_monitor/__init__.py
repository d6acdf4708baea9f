"""
Energy monitor package: smart-plug telemetry collection and usage API.

CHANGELOG:
- 2026-10-03: Initial creation (STORY-001)

TODO:
- None
"""

__version__ = "0.1.0"
