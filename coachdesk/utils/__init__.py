"""
Utilities package for CoachDesk.

This package contains utility functions and constants used throughout the application.
"""
from .time_utils import now_ts, now_ms, with_timeout, OperationTimeout
from .constants import (
    APP_TITLE, MIN_ZONE_SIZE, ZONE_COLORS, READ_TIMEOUT_SECONDS,
    WRITE_TIMEOUT_SECONDS, MAX_RETRIES, BASE_RETRY_DELAY_SECONDS
)

__all__ = [
    "now_ts", "now_ms", "with_timeout", "OperationTimeout", "APP_TITLE",
    "MIN_ZONE_SIZE", "ZONE_COLORS", "READ_TIMEOUT_SECONDS",
    "WRITE_TIMEOUT_SECONDS", "MAX_RETRIES", "BASE_RETRY_DELAY_SECONDS"
]
