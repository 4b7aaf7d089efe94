"""Synthetic footprints for historical bars.

Klines carry OHLC and total volume but no trades, so the per-level bid/ask
split produced here is an *estimate* for display only. Every candle built by
this module is flagged ``estimated=True``.

The estimate:

- Levels sit at ``low + i * price_step`` for ``i = 0 .. floor((high - low) / price_step)``,
  so every level lies within ``[low, high]``.
- Each level receives an equal share of the bar's volume, so the levels always
  sum back to ``bar.volume``.
- The bid share depends on where the level sits in the bar's range
  (``p = 0`` at the low, ``1`` at the high):

  * bullish bar (close > open): ``0.4 + (1 - p) * 0.4``, buying concentrated low
    in the range pushed price up
  * bearish bar (close < open): ``0.2 + (1 - p) * 0.4``, selling concentrated
    high in the range pushed price down
  * doji: an even 0.5 split
"""

from __future__ import annotations

import math
from typing import Iterable

from footprint_chart.utils import bucket_start, get_logger, tick_decimals

from .models import CandleSnapshot, OHLCVBar, PriceLevel


def bid_ratio(position: float, *, bullish: bool, bearish: bool) -> float:
    """Estimated share of a level's volume that was bought (0-1)."""
    if bullish:
        return 0.4 + (1.0 - position) * 0.4
    if bearish:
        return 0.2 + (1.0 - position) * 0.4
    return 0.5


class HistoricalBackfill:
    """Turn OHLCV bars into estimated footprint candles."""

    def __init__(self, price_step: float):
        if price_step <= 0:
            raise ValueError("price_step must be > 0")
        self.price_step = float(price_step)
        self._decimals = tick_decimals(self.price_step)
        self.logger = get_logger("orderflow.backfill")

    def synthesize_levels(self, bar: OHLCVBar) -> list[PriceLevel]:
        """Estimate the bid/ask split per level for a single bar."""
        if bar.volume <= 0:
            return []
        price_range = bar.high - bar.low
        # The small epsilon keeps float noise from dropping the top level.
        count = int(math.floor(price_range / self.price_step + 1e-9)) + 1

        per_level = bar.volume / count
        bullish = bar.close > bar.open
        bearish = bar.close < bar.open
        # Levels are offsets from the bar's own low, so keep its precision too
        decimals = max(self._decimals, tick_decimals(bar.low))

        levels: list[PriceLevel] = []
        for i in range(count):
            price = min(max(round(bar.low + i * self.price_step, decimals), bar.low), bar.high)
            position = (price - bar.low) / price_range if price_range > 0 else 0.0
            bid = per_level * bid_ratio(position, bullish=bullish, bearish=bearish)
            levels.append(PriceLevel(price=price, bid_volume=bid, ask_volume=per_level - bid))
        return levels

    def seed(self, bars: Iterable[OHLCVBar], timeframe_ms: int) -> list[CandleSnapshot]:
        """Build closed, estimated candles with a running CVD starting at 0.

        Bars are sorted by open time; a later bar with the same aligned open
        time replaces the earlier one.
        """
        by_time: dict[int, OHLCVBar] = {}
        for bar in bars:
            by_time[bucket_start(bar.open_time, timeframe_ms)] = bar

        candles: list[CandleSnapshot] = []
        cvd = 0.0
        for open_time in sorted(by_time):
            bar = by_time[open_time]
            levels = self.synthesize_levels(bar)
            delta = sum(lvl.delta for lvl in levels)
            cvd += delta
            candles.append(
                CandleSnapshot(
                    open_time=open_time,
                    open=bar.open,
                    high=bar.high,
                    low=bar.low,
                    close=bar.close,
                    levels=tuple(levels),
                    cvd=cvd,
                    closed=True,
                    estimated=True,
                )
            )

        self.logger.debug(
            "backfill_seeded",
            bars=len(candles),
            price_step=self.price_step,
            cvd_end=cvd,
        )
        return candles
