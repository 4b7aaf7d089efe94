"""Shared utilities."""

from .helpers import (
    TIMEFRAME_MS,
    bucket_start,
    format_volume,
    get_timeframe_ms,
    ms_to_datetime,
    round_to_tick,
    tick_decimals,
    timestamp_ms,
)
from .logging import get_logger, setup_logging
from .retry import RetryPolicy

__all__ = [
    "TIMEFRAME_MS",
    "RetryPolicy",
    "bucket_start",
    "format_volume",
    "get_logger",
    "get_timeframe_ms",
    "ms_to_datetime",
    "round_to_tick",
    "setup_logging",
    "tick_decimals",
    "timestamp_ms",
]
