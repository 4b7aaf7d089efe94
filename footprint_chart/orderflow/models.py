"""Order-flow data model.

Readers (renderer, statistics, API) only ever see the frozen types in this
module. The aggregator mutates a private :class:`~footprint_chart.orderflow.candle.Candle`
and publishes a fresh :class:`CandleSnapshot` after every trade.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any


class Side(str, Enum):
    """Aggressor side of a trade."""

    BUY = "Buy"
    SELL = "Sell"

    @classmethod
    def parse(cls, value: Any) -> "Side":
        if isinstance(value, Side):
            return value
        text = str(value).strip().lower()
        if text in ("buy", "b", "bid"):
            return cls.BUY
        if text in ("sell", "s", "ask"):
            return cls.SELL
        raise ValueError(f"Unknown trade side: {value!r}")


@dataclass(frozen=True)
class Trade:
    timestamp: int
    price: float
    volume: float
    side: Side

    def __post_init__(self) -> None:
        if not (math.isfinite(self.price) and self.price > 0):
            raise ValueError(f"Trade price must be finite and > 0, got {self.price!r}")
        if not (math.isfinite(self.volume) and self.volume > 0):
            raise ValueError(f"Trade volume must be finite and > 0, got {self.volume!r}")


@dataclass(frozen=True)
class PriceLevel:
    """Accumulated bid (buy) and ask (sell) volume at one price."""

    price: float
    bid_volume: float = 0.0
    ask_volume: float = 0.0

    @property
    def delta(self) -> float:
        return self.bid_volume - self.ask_volume

    @property
    def total_volume(self) -> float:
        return self.bid_volume + self.ask_volume

    def to_dict(self) -> dict[str, float]:
        return {
            "price": self.price,
            "bidVolume": self.bid_volume,
            "askVolume": self.ask_volume,
            "delta": self.delta,
        }


@dataclass(frozen=True)
class OHLCVBar:
    """Historical kline without trade-level detail."""

    open_time: int
    open: float
    high: float
    low: float
    close: float
    volume: float

    def __post_init__(self) -> None:
        if self.high < self.low:
            raise ValueError(f"Bar high {self.high} is below low {self.low}")
        if self.volume < 0:
            raise ValueError("Bar volume must be >= 0")


@dataclass(frozen=True)
class CandleSnapshot:
    """Immutable view of a candle at one point in time.

    ``delta`` and ``volume`` are derived from ``levels`` on construction and
    cannot be passed in. ``cvd`` depends on history, so the producer supplies it.
    """

    open_time: int
    open: float
    high: float
    low: float
    close: float
    levels: tuple[PriceLevel, ...] = ()
    cvd: float = 0.0
    closed: bool = False
    estimated: bool = False
    delta: float = field(init=False)
    volume: float = field(init=False)

    def __post_init__(self) -> None:
        ordered = tuple(sorted(self.levels, key=lambda lvl: lvl.price))
        object.__setattr__(self, "levels", ordered)
        object.__setattr__(self, "delta", sum(lvl.delta for lvl in ordered))
        object.__setattr__(self, "volume", sum(lvl.total_volume for lvl in ordered))

    @property
    def is_bullish(self) -> bool:
        return self.close > self.open

    def levels_in_range(self, *, descending: bool = True) -> list[PriceLevel]:
        """Levels whose price lies within [low, high], sorted by price."""
        inside = [lvl for lvl in self.levels if self.low <= lvl.price <= self.high]
        if descending:
            inside.reverse()
        return inside

    def as_closed(self) -> "CandleSnapshot":
        return self if self.closed else replace(self, closed=True)

    def to_dict(self, include_levels: bool = True) -> dict[str, Any]:
        out: dict[str, Any] = {
            "openTime": self.open_time,
            "open": self.open,
            "high": self.high,
            "low": self.low,
            "close": self.close,
            "delta": self.delta,
            "volume": self.volume,
            "cvd": self.cvd,
            "closed": self.closed,
            "estimated": self.estimated,
        }
        if include_levels:
            out["levels"] = [lvl.to_dict() for lvl in self.levels]
        return out
