"""Host chart coordinate API and a linear, server-side implementation.

The renderer never draws candle bodies or axes itself. It asks a host chart
(anything implementing :class:`ChartCoordinates`) where a time or price sits on
screen. Every lookup may return ``None`` while the chart has no layout yet.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Callable, Protocol, Sequence, runtime_checkable

from footprint_chart.orderflow.models import CandleSnapshot

RangeListener = Callable[[], None]


@dataclass(frozen=True)
class TimeRange:
    """Visible open times in epoch ms, inclusive."""

    start: int
    end: int


@dataclass(frozen=True)
class LogicalRange:
    """Visible span on the bar-index axis (fractional)."""

    start: float
    end: float

    @property
    def bars(self) -> float:
        return self.end - self.start


@runtime_checkable
class ChartCoordinates(Protocol):
    def time_to_pixel(self, open_time: int) -> float | None: ...

    def price_to_pixel(self, price: float) -> float | None: ...

    def visible_time_range(self) -> TimeRange | None: ...

    def visible_logical_range(self) -> LogicalRange | None: ...

    def time_scale_pixel_width(self) -> float: ...

    def subscribe_visible_range_change(self, callback: RangeListener) -> Callable[[], None]: ...


class LinearChartViewport:
    """Bars on an index axis, prices on a linear vertical axis.

    ``x = (i - start + 0.5) * width / (end - start)`` puts bar ``i`` in the
    middle of its slot. Prices map onto ``[height, 0]``; without a fixed
    ``price_range`` the range is fitted to the visible candles' highs and lows
    plus ``price_margin`` on both sides.
    """

    def __init__(
        self,
        width: float,
        height: float,
        *,
        price_range: tuple[float, float] | None = None,
        price_margin: float = 0.1,
    ):
        if width <= 0 or height <= 0:
            raise ValueError("viewport width and height must be > 0")
        self.width = float(width)
        self.height = float(height)
        self.price_margin = float(price_margin)
        self._fixed_price_range = price_range
        self._candles: tuple[CandleSnapshot, ...] = ()
        self._index: dict[int, int] = {}
        self._logical: LogicalRange | None = None
        self._fitted: tuple[float, float] | None = None
        self._listeners: list[RangeListener] = []

    # ------------------------------------------------------------------
    # Data / state
    # ------------------------------------------------------------------

    def set_data(self, candles: Sequence[CandleSnapshot]) -> None:
        self._candles = tuple(candles)
        self._index = {c.open_time: i for i, c in enumerate(self._candles)}
        self._fitted = None

    def set_price_range(self, price_range: tuple[float, float] | None) -> None:
        self._fixed_price_range = price_range
        self._fitted = None

    def set_logical_range(self, start: float, end: float) -> None:
        if end <= start:
            raise ValueError("logical range end must be greater than start")
        self._logical = LogicalRange(float(start), float(end))
        self._fitted = None
        self._notify()

    def scroll_to_end(self, bars: int = 30) -> None:
        """Show the last ``bars`` slots, like a live chart pinned to the right edge."""
        if bars <= 0:
            raise ValueError("bars must be > 0")
        end = max(len(self._candles), bars)
        self.set_logical_range(end - bars, end)

    def resize(self, width: float, height: float) -> None:
        if width <= 0 or height <= 0:
            raise ValueError("viewport width and height must be > 0")
        self.width = float(width)
        self.height = float(height)
        self._notify()

    def subscribe_visible_range_change(self, callback: RangeListener) -> Callable[[], None]:
        self._listeners.append(callback)

        def unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    def _notify(self) -> None:
        for callback in list(self._listeners):
            callback()

    # ------------------------------------------------------------------
    # Coordinates
    # ------------------------------------------------------------------

    def _visible_indexes(self) -> tuple[int, int] | None:
        if self._logical is None or not self._candles:
            return None
        first = max(0, math.ceil(self._logical.start - 0.5))
        last = min(len(self._candles) - 1, math.floor(self._logical.end - 0.5))
        if first > last:
            return None
        return first, last

    def visible_logical_range(self) -> LogicalRange | None:
        return self._logical

    def visible_time_range(self) -> TimeRange | None:
        indexes = self._visible_indexes()
        if indexes is None:
            return None
        first, last = indexes
        return TimeRange(self._candles[first].open_time, self._candles[last].open_time)

    def time_scale_pixel_width(self) -> float:
        return self.width

    def time_to_pixel(self, open_time: int) -> float | None:
        idx = self._index.get(open_time)
        if idx is None or self._logical is None:
            return None
        bar_width = self.width / self._logical.bars
        return (idx - self._logical.start + 0.5) * bar_width

    def _price_range(self) -> tuple[float, float] | None:
        if self._fixed_price_range is not None:
            return self._fixed_price_range
        if self._fitted is None:
            indexes = self._visible_indexes()
            if indexes is None:
                return None
            first, last = indexes
            visible = self._candles[first:last + 1]
            low = min(c.low for c in visible)
            high = max(c.high for c in visible)
            pad = (high - low) * self.price_margin or max(abs(high) * 0.001, 1.0)
            self._fitted = (low - pad, high + pad)
        return self._fitted

    def price_to_pixel(self, price: float) -> float | None:
        price_range = self._price_range()
        if price_range is None:
            return None
        low, high = price_range
        if high <= low:
            return None
        return self.height - (price - low) / (high - low) * self.height
