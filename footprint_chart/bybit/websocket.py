"""Bybit v5 public trade stream.

Subscribes to ``publicTrade.{symbol}`` and hands each parsed trade to the
registered handlers in arrival order. The connection loop runs as one
``asyncio.Task``: on disconnect it waits according to a :class:`RetryPolicy`
and reconnects, and ``stop()`` cancels it (including a pending reconnect wait).
"""

from __future__ import annotations

import asyncio
import inspect
import json
from enum import Enum
from typing import Any, Awaitable, Callable, Union

import aiohttp

from footprint_chart.config import Settings, get_settings
from footprint_chart.errors import MalformedTradeError, TransportError
from footprint_chart.orderflow.models import Trade
from footprint_chart.utils import RetryPolicy, get_logger

from .types import parse_trade


class ConnectionStatus(str, Enum):
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    ERROR = "error"


TradeHandler = Callable[[Trade], Union[None, Awaitable[None]]]
StatusHandler = Callable[[ConnectionStatus], Union[None, Awaitable[None]]]


class BybitTradeStream:
    """Reconnecting WebSocket client for one symbol's public trades."""

    def __init__(
        self,
        symbol: str,
        settings: Settings | None = None,
        retry_policy: RetryPolicy | None = None,
    ):
        self.settings = settings or get_settings()
        self.symbol = symbol.upper()
        self.url = self.settings.bybit_ws_url
        self.topic = f"publicTrade.{self.symbol}"
        self.retry_policy = retry_policy or RetryPolicy.from_settings(self.settings)
        self.logger = get_logger("bybit.ws").bind(symbol=self.symbol)

        self._trade_handlers: list[TradeHandler] = []
        self._status_handlers: list[StatusHandler] = []
        self._session: aiohttp.ClientSession | None = None
        self._task: asyncio.Task | None = None
        self._running = False

        self.status = ConnectionStatus.DISCONNECTED
        self.messages_received = 0
        self.trades_received = 0
        self.malformed_trades = 0
        self.reconnects = 0

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    def on_trade(self, handler: TradeHandler) -> None:
        self._trade_handlers.append(handler)

    def on_status(self, handler: StatusHandler) -> None:
        self._status_handlers.append(handler)

    async def _dispatch(self, handlers: list, value: Any) -> None:
        for handler in list(handlers):
            try:
                result = handler(value)
                if inspect.isawaitable(result):
                    await result
            except asyncio.CancelledError:
                raise
            except Exception:
                self.logger.exception("ws_handler_failed", handler=getattr(handler, "__name__", repr(handler)))

    async def _set_status(self, status: ConnectionStatus) -> None:
        if status == self.status:
            return
        self.status = status
        self.logger.info("ws_status_changed", status=status.value)
        await self._dispatch(self._status_handlers, status)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Start the connection loop in the background."""
        if self.is_running:
            return
        self._running = True
        await self._set_status(ConnectionStatus.CONNECTING)
        self._task = asyncio.create_task(self._run(), name=f"bybit-ws-{self.symbol}")

    async def stop(self) -> None:
        """Cancel the connection loop and close the session."""
        self._running = False
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None
        self.status = ConnectionStatus.DISCONNECTED
        self.logger.info("ws_stopped")

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
        return self._session

    async def _run(self) -> None:
        attempt = 0
        while self._running:
            try:
                if await self._connect_once():
                    attempt = 0
            except asyncio.CancelledError:
                raise
            except (aiohttp.ClientError, asyncio.TimeoutError, TransportError) as e:
                self.logger.warning("ws_connection_failed", error=str(e), attempt=attempt + 1)

            if not self._running:
                break

            attempt += 1
            delay = self.retry_policy.delay_for(attempt)
            if delay is None:
                self.logger.error("ws_reconnect_exhausted", attempts=attempt - 1)
                await self._set_status(ConnectionStatus.ERROR)
                self._running = False
                return

            await self._set_status(ConnectionStatus.DISCONNECTED)
            self.logger.info("ws_reconnect_scheduled", attempt=attempt, delay_sec=delay)
            await asyncio.sleep(delay)
            self.reconnects += 1
            await self._set_status(ConnectionStatus.CONNECTING)

    async def _connect_once(self) -> bool:
        """Run one connection until it closes. Returns True if it got subscribed."""
        session = await self._get_session()
        connected = False
        async with session.ws_connect(self.url, heartbeat=self.settings.ws_heartbeat_sec) as ws:
            await ws.send_json({"op": "subscribe", "args": [self.topic]})
            connected = True
            await self._set_status(ConnectionStatus.CONNECTED)
            self.logger.info("ws_subscribed", url=self.url, topic=self.topic)

            async for msg in ws:
                if msg.type == aiohttp.WSMsgType.TEXT:
                    await self.handle_message(msg.data)
                elif msg.type == aiohttp.WSMsgType.ERROR:
                    raise TransportError(f"websocket error: {ws.exception()}", endpoint=self.url)
                elif msg.type in (aiohttp.WSMsgType.CLOSE, aiohttp.WSMsgType.CLOSING, aiohttp.WSMsgType.CLOSED):
                    break

        self.logger.info("ws_closed", code=ws.close_code)
        return connected

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    async def handle_message(self, raw: str | bytes | dict) -> int:
        """Parse one stream message and dispatch its trades.

        Returns the number of trades dispatched. Malformed rows are counted in
        ``malformed_trades`` and skipped; the rest of the message still goes out.
        """
        self.messages_received += 1
        if isinstance(raw, (str, bytes)):
            try:
                message = json.loads(raw)
            except ValueError:
                self.logger.warning("ws_invalid_json", raw=str(raw)[:200])
                return 0
        else:
            message = raw

        if not isinstance(message, dict):
            return 0
        if message.get("topic") != self.topic:
            # Subscription acks and pongs
            if message.get("op") == "subscribe" and not message.get("success", True):
                self.logger.error("ws_subscribe_rejected", ret_msg=message.get("ret_msg"))
            return 0

        rows = message.get("data") or []
        dispatched = 0
        for row in rows:
            try:
                trade = parse_trade(row)
            except MalformedTradeError as e:
                self.malformed_trades += 1
                self.logger.warning("malformed_trade", error=str(e), raw=str(e.raw)[:200])
                continue
            self.trades_received += 1
            dispatched += 1
            await self._dispatch(self._trade_handlers, trade)
        return dispatched
