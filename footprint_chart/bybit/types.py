"""Bybit v5 market data types and wire parsing."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any

from footprint_chart.errors import MalformedTradeError
from footprint_chart.orderflow.models import OHLCVBar, Side, Trade

# Timeframe name -> Bybit v5 kline interval
BYBIT_INTERVALS: dict[str, str] = {
    "1m": "1",
    "5m": "5",
    "15m": "15",
    "30m": "30",
    "1h": "60",
    "4h": "240",
    "12h": "720",
    "1d": "D",
    "1w": "W",
    "1M": "M",
}


def to_bybit_interval(timeframe: str) -> str:
    try:
        return BYBIT_INTERVALS[timeframe]
    except KeyError:
        raise ValueError(f"Unsupported timeframe: {timeframe}") from None


@dataclass
class Kline:
    """Kline row from ``/v5/market/kline``."""

    symbol: str
    interval: str
    open_time: int
    open: float
    high: float
    low: float
    close: float
    volume: float
    turnover: float

    def to_bar(self) -> OHLCVBar:
        return OHLCVBar(
            open_time=self.open_time,
            open=self.open,
            high=self.high,
            low=self.low,
            close=self.close,
            volume=self.volume,
        )


def parse_kline(row: list[Any], symbol: str, interval: str) -> Kline:
    """Parse ``[startTime, open, high, low, close, volume, turnover]``.

    Raises ValueError, TypeError or IndexError for rows that are not a
    well-formed kline.
    """
    kline = Kline(
        symbol=symbol,
        interval=interval,
        open_time=int(row[0]),
        open=float(row[1]),
        high=float(row[2]),
        low=float(row[3]),
        close=float(row[4]),
        volume=float(row[5]),
        turnover=float(row[6]) if len(row) > 6 else 0.0,
    )
    values = (kline.open, kline.high, kline.low, kline.close, kline.volume)
    if not all(math.isfinite(v) for v in values):
        raise ValueError(f"non-finite kline value in {row!r}")
    if kline.high < kline.low or kline.volume < 0:
        raise ValueError(f"inconsistent kline {row!r}")
    return kline


def parse_trade(raw: Any) -> Trade:
    """Parse one row of a ``publicTrade`` message.

    Bybit sends strings for price and size: ``{"T": 1700000000000, "p": "105000.5",
    "v": "0.010", "S": "Buy", ...}``.
    """
    if not isinstance(raw, dict):
        raise MalformedTradeError("trade row is not an object", raw=raw)
    try:
        return Trade(
            timestamp=int(raw["T"]),
            price=float(raw["p"]),
            volume=float(raw["v"]),
            side=Side.parse(raw["S"]),
        )
    except (KeyError, TypeError, ValueError) as e:
        raise MalformedTradeError(f"cannot parse trade: {e}", raw=raw) from e
