"""Historical kline backfill.

The trade stream only provides data from *now* onward, so on (re)load the chart
is seeded from REST klines. Klines have no trade detail: the footprint levels
come from :class:`~footprint_chart.orderflow.backfill.HistoricalBackfill` and
are estimates.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from footprint_chart.orderflow.backfill import HistoricalBackfill
from footprint_chart.orderflow.models import CandleSnapshot, OHLCVBar
from footprint_chart.utils import get_logger, get_timeframe_ms, timestamp_ms

if TYPE_CHECKING:
    from footprint_chart.bybit.rest_client import BybitRestClient


@dataclass
class BackfillResult:
    symbol: str
    timeframe: str
    bars: list[OHLCVBar]
    candles: list[CandleSnapshot]
    elapsed_ms: int

    @property
    def cvd_end(self) -> float:
        return self.candles[-1].cvd if self.candles else 0.0


class KlineBackfiller:
    """Fetch klines over REST and turn them into estimated footprint candles."""

    def __init__(self, rest_client: "BybitRestClient", backfill: HistoricalBackfill):
        self.rest = rest_client
        self.backfill = backfill
        self.logger = get_logger("data.backfill")

    async def fetch(self, symbol: str, timeframe: str, limit: int = 100) -> tuple[list[OHLCVBar], list[CandleSnapshot]]:
        """Return ``(bars, candles)`` for the most recent ``limit`` klines.

        Transport failures and malformed kline payloads both propagate as
        :class:`~footprint_chart.errors.TransportError`.
        """
        result = await self.run(symbol, timeframe, limit)
        return result.bars, result.candles

    async def run(self, symbol: str, timeframe: str, limit: int = 100) -> BackfillResult:
        started = timestamp_ms()
        timeframe_ms = get_timeframe_ms(timeframe)
        self.logger.info("backfill_start", symbol=symbol, timeframe=timeframe, limit=limit)

        klines = await self.rest.get_klines(symbol, timeframe, limit=limit)
        bars = [k.to_bar() for k in klines]
        candles = self.backfill.seed(bars, timeframe_ms)

        result = BackfillResult(
            symbol=symbol,
            timeframe=timeframe,
            bars=bars,
            candles=candles,
            elapsed_ms=timestamp_ms() - started,
        )
        self.logger.info(
            "backfill_done",
            symbol=symbol,
            timeframe=timeframe,
            bars=len(bars),
            candles=len(candles),
            cvd_end=result.cvd_end,
            elapsed_ms=result.elapsed_ms,
        )
        return result
