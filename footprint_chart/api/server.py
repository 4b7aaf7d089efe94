"""HTTP API for the footprint chart.

JSON endpoints return candles, rendered footprint frames and statistics.
``/stream`` is a Server-Sent Events feed with one ``candle`` event per candle
update or close, plus ``status`` and ``reset`` events when the connection or
the loaded history changes.
"""

from __future__ import annotations

import asyncio
import json
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from sse_starlette.sse import EventSourceResponse, ServerSentEvent

from footprint_chart import __version__
from footprint_chart.config import TimeframeName
from footprint_chart.utils import TIMEFRAME_MS, get_logger

from .views import candles_view, footprint_view, imbalances_view, statistics_view

if TYPE_CHECKING:
    from footprint_chart.main import FootprintService


def create_app(service: "FootprintService", manage_service: bool = True) -> FastAPI:
    """Create the FastAPI app around ``service``.

    With ``manage_service`` the app starts and stops the service in its
    lifespan.
    """
    settings = service.settings
    logger = get_logger("api")

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if manage_service:
            await service.start()
        try:
            yield
        finally:
            if manage_service:
                await service.stop()

    app = FastAPI(
        title="Footprint Chart",
        description="Order-flow footprint candles from the Bybit public trade stream",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    def _ping_message() -> ServerSentEvent:
        return ServerSentEvent(event="ping", data="{}")

    @app.get("/health")
    async def health_check():
        return service.health()

    @app.get("/")
    async def root():
        return {
            "name": "Footprint Chart",
            "version": __version__,
            "symbol": service.symbol,
            "timeframe": service.timeframe,
            "timeframes": list(TIMEFRAME_MS),
            "endpoints": {
                "health": "/health",
                "candles": "/candles",
                "footprint": "/footprint",
                "statistics": "/statistics",
                "imbalances": "/imbalances",
                "stream": "/stream",
                "timeframe": "/timeframe/{timeframe}",
            },
        }

    @app.get("/candles")
    async def get_candles(
        limit: int | None = Query(None, ge=1),
        levels: bool = Query(True, description="Include per-level bid/ask volume"),
    ):
        return candles_view(service.sequence.candles, limit, include_levels=levels)

    @app.get("/footprint")
    async def get_footprint(
        width: float = Query(1200.0, gt=0),
        height: float = Query(600.0, gt=0),
        bars: int = Query(30, ge=1, le=500),
        end_index: int | None = Query(None, description="Exclusive end of the visible slots"),
        left_offset: float = Query(0.0),
    ):
        view = footprint_view(
            service.sequence.candles,
            service.renderer,
            service.statistics,
            width=width,
            height=height,
            bars=bars,
            end_index=end_index,
            left_offset_px=left_offset,
        )
        view["timeframe"] = service.timeframe
        view["dataSource"] = service.data_source
        return view

    @app.get("/statistics")
    async def get_statistics(
        start_index: int = Query(0),
        end_index: int | None = Query(None),
    ):
        return statistics_view(service.sequence.candles, service.statistics, start_index, end_index)

    @app.get("/imbalances")
    async def get_imbalances(
        index: int = Query(-1, description="Candle index; negative counts from the end"),
        min_consecutive: int | None = Query(None, ge=1),
    ):
        candles = service.sequence.candles
        if not candles:
            raise HTTPException(status_code=404, detail="No candles loaded")
        try:
            candle = candles[index]
        except IndexError:
            raise HTTPException(status_code=404, detail=f"No candle at index {index}") from None
        return imbalances_view(
            candle,
            ratio=settings.imbalance_ratio_threshold,
            min_consecutive=min_consecutive or settings.imbalance_consecutive_levels,
        )

    @app.post("/timeframe/{timeframe}")
    async def set_timeframe(timeframe: TimeframeName):
        await service.set_timeframe(timeframe)
        return {"timeframe": service.timeframe, "dataSource": service.data_source}

    @app.get("/stream")
    async def stream(request: Request):
        queue = service.subscribe()
        logger.info("sse_connection_started", subscribers=service.subscriber_count)

        async def event_generator():
            try:
                yield ServerSentEvent(
                    event="status",
                    data=json.dumps(
                        {
                            "connectionStatus": service.connection_status.value,
                            "dataSource": service.data_source,
                            "timeframe": service.timeframe,
                        },
                        separators=(",", ":"),
                    ),
                    retry=3000,
                )
                while True:
                    if await request.is_disconnected():
                        break
                    try:
                        msg = await asyncio.wait_for(queue.get(), timeout=settings.sse_ping_interval_sec)
                    except asyncio.TimeoutError:
                        yield _ping_message()
                        continue
                    yield ServerSentEvent(
                        event=msg["event"],
                        data=json.dumps(msg["data"], separators=(",", ":")),
                    )
            finally:
                service.unsubscribe(queue)
                logger.info("sse_connection_closed")

        return EventSourceResponse(
            event_generator(),
            ping=settings.sse_ping_interval_sec,
            ping_message_factory=_ping_message,
            headers={
                "Cache-Control": "no-cache",
                "X-Accel-Buffering": "no",
            },
        )

    return app
