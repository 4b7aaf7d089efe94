"""Trade-to-candle order-flow aggregator.

One aggregator per (symbol, timeframe). It resolves each trade to its
timeframe bucket, accumulates volume into the open candle's price level, and
publishes an immutable snapshot to the shared :class:`CandleSequence` after
every trade.

Bucket policy:

- bucket > open candle: the open candle is closed (``candle_closed`` fires)
  and a new one starts at the trade price.
- bucket == open candle: accumulate.
- bucket < open candle: the trade is late and dropped. Closed candles are never
  rewritten, so a feed with real reordering loses those prints
  (see ``late_trades_dropped``).
"""

from __future__ import annotations

from typing import Callable, Iterable

from footprint_chart.data.sequence import CandleSequence
from footprint_chart.utils import bucket_start, get_logger, get_timeframe_ms, round_to_tick, timestamp_ms

from .backfill import HistoricalBackfill
from .candle import Candle
from .models import CandleSnapshot, OHLCVBar, Trade

CandleListener = Callable[[CandleSnapshot], None]


class TradeAggregator:
    """Aggregate trades into footprint candles for one symbol and timeframe."""

    def __init__(
        self,
        *,
        timeframe: str,
        tick_size: float,
        symbol: str = "",
        sequence: CandleSequence | None = None,
        backfill: HistoricalBackfill | None = None,
    ):
        if tick_size <= 0:
            raise ValueError("tick_size must be > 0")
        self.symbol = symbol.upper()
        self.timeframe = timeframe
        self.timeframe_ms = get_timeframe_ms(timeframe)
        self.tick_size = float(tick_size)
        self.sequence = sequence if sequence is not None else CandleSequence()
        self.backfill = backfill or HistoricalBackfill(price_step=tick_size)
        self.logger = get_logger("orderflow.aggregator").bind(symbol=self.symbol, timeframe=timeframe)

        self._open: Candle | None = None
        # CVD of the most recently closed candle; the open candle builds on it.
        self._closed_cvd = 0.0
        self._updated_listeners: list[CandleListener] = []
        self._closed_listeners: list[CandleListener] = []

        self.trades_processed = 0
        self.late_trades_dropped = 0

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def on_candle_updated(self, handler: CandleListener) -> CandleListener:
        """Register a handler called with the open candle's snapshot after every trade."""
        self._updated_listeners.append(handler)
        return handler

    def on_candle_closed(self, handler: CandleListener) -> CandleListener:
        """Register a handler called with the final snapshot when a candle rolls over."""
        self._closed_listeners.append(handler)
        return handler

    def _emit(self, listeners: list[CandleListener], candle: CandleSnapshot) -> None:
        for handler in list(listeners):
            try:
                handler(candle)
            except Exception:
                self.logger.exception("candle_listener_failed", open_time=candle.open_time)

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def open_candle(self) -> CandleSnapshot | None:
        return self._open.snapshot() if self._open is not None else None

    @property
    def cvd(self) -> float:
        """Current running CVD, including the open candle."""
        return self._open.cvd if self._open is not None else self._closed_cvd

    def reset(self) -> None:
        """Forget all candles and restart CVD at 0."""
        self._open = None
        self._closed_cvd = 0.0
        self.sequence.clear()

    # ------------------------------------------------------------------
    # Trade ingestion
    # ------------------------------------------------------------------

    def on_trade(self, trade: Trade) -> CandleSnapshot | None:
        """Apply one trade. Returns the updated snapshot, or None if it was dropped."""
        bucket = bucket_start(trade.timestamp, self.timeframe_ms)

        if self._open is not None and bucket < self._open.open_time:
            self.late_trades_dropped += 1
            self.logger.debug(
                "late_trade_dropped",
                trade_ts=trade.timestamp,
                bucket=bucket,
                open_time=self._open.open_time,
            )
            return None

        if self._open is None or bucket > self._open.open_time:
            if self._open is not None:
                self._finalize_open()
            self._open = Candle(bucket, trade.price, base_cvd=self._closed_cvd)

        level_price = round_to_tick(trade.price, self.tick_size)
        self._open.apply(trade, level_price)
        self.trades_processed += 1

        snapshot = self._open.snapshot()
        self.sequence.upsert(snapshot)
        self._emit(self._updated_listeners, snapshot)
        return snapshot

    def on_trades(self, trades: Iterable[Trade]) -> int:
        """Apply a batch of trades in order. Returns how many were accepted.

        Listeners still see one ``candle_updated`` per accepted trade.
        """
        accepted = 0
        for trade in trades:
            if self.on_trade(trade) is not None:
                accepted += 1
        return accepted

    def _finalize_open(self) -> CandleSnapshot:
        assert self._open is not None
        final = self._open.snapshot(closed=True)
        self._closed_cvd = final.cvd
        self._open = None
        self.sequence.upsert(final)
        self.logger.info(
            "candle_closed",
            open_time=final.open_time,
            volume=final.volume,
            delta=final.delta,
            cvd=final.cvd,
            levels=len(final.levels),
        )
        self._emit(self._closed_listeners, final)
        return final

    # ------------------------------------------------------------------
    # History / reconnect
    # ------------------------------------------------------------------

    def on_kline_seed(self, bars: Iterable[OHLCVBar], *, now_ms: int | None = None) -> list[CandleSnapshot]:
        """Replace history with estimated candles built from ``bars``.

        The last seeded candle is then handed to :meth:`resume`, so live trades
        either continue it (same bucket) or start a new candle with its CVD
        carried forward.
        """
        return self.load_history(self.backfill.seed(bars, self.timeframe_ms), now_ms=now_ms)

    def load_history(self, candles: list[CandleSnapshot], *, now_ms: int | None = None) -> list[CandleSnapshot]:
        """Replace history with already-built candles and resume from the last one."""
        self._open = None
        self._closed_cvd = 0.0
        self.sequence.replace_all(candles)
        self.logger.info("history_seeded", candles=len(candles))
        if candles:
            self.resume(candles[-1], now_ms=now_ms)
        return candles

    def resume(self, last_candle: CandleSnapshot | None, *, now_ms: int | None = None) -> None:
        """Continue from ``last_candle`` after a (re)connect.

        If its bucket is still the current one it becomes the open candle
        again, otherwise it is finalized and its CVD carried forward.
        """
        if last_candle is None:
            return
        current_bucket = bucket_start(now_ms if now_ms is not None else timestamp_ms(), self.timeframe_ms)

        if last_candle.open_time >= current_bucket:
            self._open = Candle.from_snapshot(last_candle)
            self._closed_cvd = self._open.base_cvd
            self.sequence.upsert(self._open.snapshot())
            self.logger.info("resumed_open_candle", open_time=last_candle.open_time, cvd=last_candle.cvd)
            return

        final = last_candle.as_closed()
        self._open = None
        self._closed_cvd = final.cvd
        self.sequence.upsert(final)
        self.logger.info("resumed_after_rollover", open_time=final.open_time, cvd=final.cvd)
        self._emit(self._closed_listeners, final)
