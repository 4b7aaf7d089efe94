"""Time, tick and number helpers shared across the package."""

from __future__ import annotations

import math
import time
from datetime import datetime, timezone
from decimal import Decimal

# Candle timeframes and their length in milliseconds. "1M" is a fixed 30 days,
# matching the chart's time axis rather than calendar months.
TIMEFRAME_MS: dict[str, int] = {
    "1m": 60_000,
    "5m": 5 * 60_000,
    "15m": 15 * 60_000,
    "30m": 30 * 60_000,
    "1h": 3_600_000,
    "4h": 4 * 3_600_000,
    "12h": 12 * 3_600_000,
    "1d": 86_400_000,
    "1w": 7 * 86_400_000,
    "1M": 30 * 86_400_000,
}


def timestamp_ms() -> int:
    """Current UTC time in epoch milliseconds."""
    return int(time.time() * 1000)


def ms_to_datetime(ts_ms: int) -> datetime:
    """Convert epoch milliseconds to an aware UTC datetime."""
    return datetime.fromtimestamp(ts_ms / 1000.0, tz=timezone.utc)


def get_timeframe_ms(timeframe: str) -> int:
    """Return the length of ``timeframe`` in milliseconds."""
    try:
        return TIMEFRAME_MS[timeframe]
    except KeyError:
        raise ValueError(
            f"Unsupported timeframe '{timeframe}'. Expected one of: {', '.join(TIMEFRAME_MS)}"
        ) from None


def bucket_start(ts_ms: int, timeframe_ms: int) -> int:
    """Align a timestamp down to the start of its timeframe bucket."""
    if timeframe_ms <= 0:
        raise ValueError("timeframe_ms must be > 0")
    return (int(ts_ms) // timeframe_ms) * timeframe_ms


def tick_decimals(tick_size: float) -> int:
    """Number of decimal places carried by a tick size (0.01 -> 2, 10 -> 0)."""
    exponent = Decimal(str(tick_size)).normalize().as_tuple().exponent
    return max(0, -int(exponent))


def round_to_tick(price: float, tick_size: float) -> float:
    """Quantize ``price`` to the nearest multiple of ``tick_size`` (half rounds up).

    The result is re-rounded to the tick's decimal places so that the same
    level always produces the same float key (100.1, never 100.10000000000001).
    """
    if tick_size <= 0:
        raise ValueError("tick_size must be > 0")
    steps = math.floor(float(price) / tick_size + 0.5)
    return round(steps * tick_size, tick_decimals(tick_size))


def format_volume(num: float, decimals: int = 1) -> str:
    """Format a volume for display with k/M/B suffixes.

    Values under 1000 are shown without suffix: whole numbers (and anything
    >= 100) without decimals, smaller fractional values with up to two decimals
    so that coin-denominated volumes such as 0.25 stay readable.
    """
    abs_num = abs(float(num))
    sign = "-" if num < 0 else ""

    if abs_num >= 1_000_000_000:
        return f"{sign}{abs_num / 1_000_000_000:.{decimals}f}B"
    if abs_num >= 1_000_000:
        return f"{sign}{abs_num / 1_000_000:.{decimals}f}M"
    if abs_num >= 1_000:
        return f"{sign}{abs_num / 1_000:.{decimals}f}k"
    if abs_num >= 100 or abs_num.is_integer():
        text = f"{abs_num:.0f}"
    else:
        text = f"{abs_num:.2f}".rstrip("0").rstrip(".")
    if text == "0":
        return "0"
    return f"{sign}{text}"
