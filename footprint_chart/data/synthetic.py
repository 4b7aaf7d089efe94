"""Random-walk footprint candles for when the exchange is unreachable.

Used only as a fallback so the chart has something to show. Every candle is
flagged ``estimated=True``. Pass ``seed`` for reproducible output.
"""

from __future__ import annotations

import math
import random

from footprint_chart.orderflow.models import CandleSnapshot, PriceLevel
from footprint_chart.utils import bucket_start, get_logger, tick_decimals, timestamp_ms


class SyntheticCandleGenerator:
    """Generate plausible-looking footprint candles."""

    def __init__(self, base_price: float = 105_000.0, price_step: float = 10.0, seed: int | None = None):
        if price_step <= 0:
            raise ValueError("price_step must be > 0")
        self.base_price = float(base_price)
        self.price_step = float(price_step)
        self._decimals = tick_decimals(self.price_step)
        self._rng = random.Random(seed)
        self.logger = get_logger("data.synthetic")

    def _snap(self, price: float) -> float:
        return round(round(price / self.price_step) * self.price_step, self._decimals)

    def _levels(self, high: float, low: float) -> list[PriceLevel]:
        rng = self._rng
        count = int(math.ceil((high - low) / self.price_step))
        levels: list[PriceLevel] = []
        for i in range(count + 1):
            price = round(low + i * self.price_step, self._decimals)
            if price > high:
                break
            base = rng.randint(500, 5499)
            roll = rng.random()
            # Roughly 30% strong bid, 30% strong ask, the rest balanced
            if roll > 0.7:
                bid = base * (2 + rng.random() * 2)
                ask = base * (0.3 + rng.random() * 0.4)
            elif roll < 0.3:
                bid = base * (0.3 + rng.random() * 0.4)
                ask = base * (2 + rng.random() * 2)
            else:
                bid = base * (0.8 + rng.random() * 0.4)
                ask = base * (0.8 + rng.random() * 0.4)
            levels.append(PriceLevel(price=price, bid_volume=float(round(bid)), ask_volume=float(round(ask))))
        return levels

    def _candle(self, open_time: int, prev_close: float, prev_cvd: float) -> CandleSnapshot:
        rng = self._rng
        step = self.price_step
        open_ = prev_close
        close = open_ + (rng.random() - 0.5) * 1000 * step / 10.0
        wick = (200 + rng.random() * 300) * step / 10.0
        high = max(open_, close) + wick
        low = min(open_, close) - wick

        # Snap OHLC to the level grid so every level lies in [low, high]
        open_, close, high, low = (self._snap(p) for p in (open_, close, high, low))
        low = max(low, step)
        high = max(high, open_, close, low)
        low = min(low, open_, close)

        levels = self._levels(high, low)
        delta = sum(lvl.delta for lvl in levels)
        return CandleSnapshot(
            open_time=open_time,
            open=open_,
            high=high,
            low=low,
            close=close,
            levels=tuple(levels),
            cvd=prev_cvd + delta,
            closed=True,
            estimated=True,
        )

    def generate_history(self, timeframe_ms: int, bars: int = 100, now_ms: int | None = None) -> list[CandleSnapshot]:
        """Build ``bars`` consecutive candles ending at the current bucket, CVD from 0."""
        if bars <= 0:
            return []
        last_open = bucket_start(now_ms if now_ms is not None else timestamp_ms(), timeframe_ms)
        price = self.base_price
        cvd = 0.0
        candles: list[CandleSnapshot] = []
        for i in range(bars - 1, -1, -1):
            candle = self._candle(last_open - i * timeframe_ms, price, cvd)
            candles.append(candle)
            price = candle.close
            cvd = candle.cvd
        self.logger.info("synthetic_history_generated", bars=len(candles), timeframe_ms=timeframe_ms)
        return candles

    def generate_next(self, last: CandleSnapshot, timeframe_ms: int) -> CandleSnapshot:
        """The candle after ``last``, continuing its close and CVD."""
        return self._candle(last.open_time + timeframe_ms, last.close, last.cvd)
