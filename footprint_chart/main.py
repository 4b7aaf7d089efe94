"""Main entry point for the footprint chart service."""

from __future__ import annotations

import asyncio
import signal
import sys
from typing import Any, Callable

import uvicorn
from dotenv import load_dotenv

from footprint_chart import __version__
from footprint_chart.api import create_app
from footprint_chart.bybit import BybitRestClient, BybitTradeStream, ConnectionStatus
from footprint_chart.config import Settings, get_settings
from footprint_chart.data import CandleSequence, KlineBackfiller, SyntheticCandleGenerator
from footprint_chart.errors import TransportError
from footprint_chart.orderflow import CandleSnapshot, HistoricalBackfill, Trade, TradeAggregator
from footprint_chart.render import FootprintRenderer, StatisticsProjector
from footprint_chart.utils import get_logger, get_timeframe_ms, setup_logging, timestamp_ms

StreamFactory = Callable[[str], BybitTradeStream]


class FootprintService:
    """Owns the candle pipeline for one symbol: history, live trades, subscribers.

    Switching timeframe tears the pipeline down and reloads it. Every load is
    tagged with a generation number, so a history fetch that completes after
    a teardown or a newer load is discarded instead of overwriting fresh state.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        rest_client: BybitRestClient | None = None,
        stream_factory: StreamFactory | None = None,
        synthetic: SyntheticCandleGenerator | None = None,
    ):
        self.settings = settings or get_settings()
        self.logger = get_logger("server")
        self.symbol = self.settings.normalized_symbol
        self.timeframe: str = self.settings.default_timeframe
        self.tick_size = self.settings.get_tick_size(self.symbol)

        self.rest_client = rest_client or BybitRestClient(self.settings)
        self._stream_factory = stream_factory or (lambda symbol: BybitTradeStream(symbol, self.settings))
        self.stream: BybitTradeStream | None = None

        self.sequence = CandleSequence(self.settings.max_candles)
        self.historical = HistoricalBackfill(self.settings.get_backfill_price_step(self.symbol))
        self.backfiller = KlineBackfiller(self.rest_client, self.historical)
        self.synthetic = synthetic or SyntheticCandleGenerator(
            base_price=self.settings.synthetic_base_price,
            price_step=self.settings.get_backfill_price_step(self.symbol),
        )
        self.renderer = FootprintRenderer(imbalance_ratio=self.settings.imbalance_ratio_threshold)
        self.statistics = StatisticsProjector()
        self.aggregator = self._build_aggregator()

        self.connection_status = ConnectionStatus.DISCONNECTED
        self.data_source = "none"
        self.last_error: str | None = None

        self._generation = 0
        self._load_task: asyncio.Task | None = None
        self._subscribers: set[asyncio.Queue] = set()
        self._running = False

    def _build_aggregator(self) -> TradeAggregator:
        aggregator = TradeAggregator(
            timeframe=self.timeframe,
            tick_size=self.tick_size,
            symbol=self.symbol,
            sequence=self.sequence,
            backfill=self.historical,
        )
        aggregator.on_candle_updated(self._publish_candle)
        aggregator.on_candle_closed(self._publish_candle)
        return aggregator

    # ------------------------------------------------------------------
    # Subscribers (SSE)
    # ------------------------------------------------------------------

    def subscribe(self) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue(maxsize=self.settings.sse_queue_size)
        self._subscribers.add(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue) -> None:
        self._subscribers.discard(queue)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def _publish(self, event: str, data: dict[str, Any]) -> None:
        """Fan out to subscribers. A slow subscriber loses its oldest message."""
        msg = {"event": event, "data": data}
        for queue in list(self._subscribers):
            try:
                queue.put_nowait(msg)
            except asyncio.QueueFull:
                try:
                    queue.get_nowait()
                except asyncio.QueueEmpty:
                    pass
                try:
                    queue.put_nowait(msg)
                except asyncio.QueueFull:
                    self.logger.warning("sse_queue_full_drop", event=event)

    def _publish_candle(self, candle: CandleSnapshot) -> None:
        self._publish("candle", candle.to_dict())

    def _publish_reset(self) -> None:
        self._publish(
            "reset",
            {"timeframe": self.timeframe, "dataSource": self.data_source, "candles": len(self.sequence)},
        )

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    def _handle_trade(self, trade: Trade) -> None:
        self.aggregator.on_trade(trade)

    def _handle_status(self, status: ConnectionStatus) -> None:
        previous = self.connection_status
        self.connection_status = status
        if status is ConnectionStatus.CONNECTED and self.stream is not None and self.stream.reconnects > 0:
            # Finalize the open candle if its bucket passed while disconnected.
            self.aggregator.resume(self.sequence.last)
            self.logger.info("stream_resumed", previous=previous.value, candles=len(self.sequence))
        self._publish("status", {"connectionStatus": status.value, "dataSource": self.data_source})

    async def _load_history(self, generation: int) -> None:
        """Seed candles from REST klines, then start the live stream.

        On a transport failure the chart falls back to synthetic candles.
        """
        try:
            _, candles = await self.backfiller.fetch(self.symbol, self.timeframe, self.settings.backfill_bars)
        except TransportError as e:
            if generation != self._generation:
                return
            self.last_error = str(e)
            self.connection_status = ConnectionStatus.ERROR
            self.logger.warning("history_load_failed", error=str(e), timeframe=self.timeframe)
            if self.settings.synthetic_fallback_enabled:
                candles = self.synthetic.generate_history(
                    get_timeframe_ms(self.timeframe), self.settings.backfill_bars
                )
                self.aggregator.reset()
                self.sequence.replace_all(candles)
                self.data_source = "synthetic"
                self.logger.info("synthetic_fallback_loaded", candles=len(candles))
            self._publish_reset()
            return

        if generation != self._generation:
            self.logger.debug("history_load_discarded", generation=generation, current=self._generation)
            return

        # Backfiller and aggregator share ``self.historical``, so the candles are already seeded
        self.aggregator.load_history(candles, now_ms=timestamp_ms())
        self.data_source = "live"
        self.last_error = None
        self._publish_reset()
        await self._start_stream()

    async def _start_stream(self) -> None:
        stream = self._stream_factory(self.symbol)
        stream.on_trade(self._handle_trade)
        stream.on_status(self._handle_status)
        self.stream = stream
        try:
            await stream.start()
        except Exception as e:
            self.logger.warning("websocket_start_skipped", error=str(e))

    async def _teardown(self) -> None:
        """Invalidate in-flight loads and stop the stream."""
        self._generation += 1
        task, self._load_task = self._load_task, None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        stream, self.stream = self.stream, None
        if stream is not None:
            await stream.stop()
        self.connection_status = ConnectionStatus.DISCONNECTED

    def _launch_load(self) -> None:
        self._load_task = asyncio.create_task(self._load_history(self._generation))

    async def start(self) -> None:
        """Start loading history in the background. Does not block on the network."""
        self.logger.info(
            "starting_server",
            symbol=self.symbol,
            timeframe=self.timeframe,
            port=self.settings.api_port,
            version=__version__,
        )
        self._running = True
        self.connection_status = ConnectionStatus.CONNECTING
        self._launch_load()
        self.logger.info("server_started")

    async def stop(self) -> None:
        self.logger.info("stopping_server")
        self._running = False
        await self._teardown()
        await self.rest_client.close()
        self.logger.info("server_stopped")

    async def set_timeframe(self, timeframe: str) -> None:
        """Switch timeframe: tear down the stream, clear history and reload."""
        get_timeframe_ms(timeframe)
        if timeframe == self.timeframe:
            return
        self.logger.info("timeframe_changed", previous=self.timeframe, timeframe=timeframe)
        await self._teardown()
        self.aggregator.reset()
        self.timeframe = timeframe
        self.aggregator = self._build_aggregator()
        self.data_source = "none"
        self._publish_reset()
        if self._running:
            self.connection_status = ConnectionStatus.CONNECTING
            self._launch_load()

    def health(self) -> dict[str, Any]:
        stream = self.stream
        return {
            "status": "ok" if self._running else "stopped",
            "version": __version__,
            "symbol": self.symbol,
            "timeframe": self.timeframe,
            "connectionStatus": self.connection_status.value,
            "dataSource": self.data_source,
            "candles": len(self.sequence),
            "tradesProcessed": self.aggregator.trades_processed,
            "lateTradesDropped": self.aggregator.late_trades_dropped,
            "malformedTrades": stream.malformed_trades if stream else 0,
            "reconnects": stream.reconnects if stream else 0,
            "lastError": self.last_error,
            "timestamp": timestamp_ms(),
        }


def main():
    """Main entry point."""
    load_dotenv()

    settings = get_settings()
    setup_logging()
    logger = get_logger("main")

    service = FootprintService(settings)
    app = create_app(service)

    def signal_handler(sig, frame):
        logger.info("shutdown_signal_received", signal=sig)
        sys.exit(0)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    logger.info("starting_uvicorn", host=settings.api_host, port=settings.api_port)

    uvicorn.run(
        app,
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower(),
        access_log=settings.debug,
    )


if __name__ == "__main__":
    main()
