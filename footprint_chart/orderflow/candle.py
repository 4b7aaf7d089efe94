"""The aggregator's private, mutable candle."""

from __future__ import annotations

from .models import CandleSnapshot, Trade
from .price_levels import PriceLevelTable


class Candle:
    """Candle that is still accumulating trades.

    ``base_cvd`` is the CVD of the previous closed candle; this candle's CVD is
    always ``base_cvd + delta`` with delta recomputed from the level table.
    """

    __slots__ = ("open_time", "open", "high", "low", "close", "levels", "base_cvd", "estimated")

    def __init__(self, open_time: int, price: float, *, base_cvd: float = 0.0):
        self.open_time = int(open_time)
        self.open = self.high = self.low = self.close = float(price)
        self.levels = PriceLevelTable()
        self.base_cvd = float(base_cvd)
        self.estimated = False

    @classmethod
    def from_snapshot(cls, snapshot: CandleSnapshot) -> "Candle":
        """Reopen a published candle so live trades can continue it."""
        candle = cls(snapshot.open_time, snapshot.open, base_cvd=snapshot.cvd - snapshot.delta)
        candle.high = snapshot.high
        candle.low = snapshot.low
        candle.close = snapshot.close
        candle.levels = PriceLevelTable.from_levels(snapshot.levels)
        candle.estimated = snapshot.estimated
        return candle

    @property
    def delta(self) -> float:
        return self.levels.delta

    @property
    def volume(self) -> float:
        return self.levels.volume

    @property
    def cvd(self) -> float:
        return self.base_cvd + self.levels.delta

    def apply(self, trade: Trade, level_price: float) -> None:
        self.high = max(self.high, trade.price)
        self.low = min(self.low, trade.price)
        self.close = trade.price
        self.levels.add_trade(level_price, trade.volume, trade.side)

    def snapshot(self, *, closed: bool = False) -> CandleSnapshot:
        return CandleSnapshot(
            open_time=self.open_time,
            open=self.open,
            high=self.high,
            low=self.low,
            close=self.close,
            levels=tuple(self.levels.levels()),
            cvd=self.cvd,
            closed=closed,
            estimated=self.estimated,
        )
