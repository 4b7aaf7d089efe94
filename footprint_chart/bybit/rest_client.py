"""Bybit v5 REST client for public market data.

Only the kline endpoint is needed: live footprints come from the trade stream,
history is seeded from klines.

Requests are paced by a client-side token bucket (continuous refill, capacity
``REST_RATE_LIMIT_PER_MIN``). Exchange-side limits are still honoured through
429 handling. Bybit also reports errors in the body (``retCode != 0``) with an
HTTP 200, so both layers are checked.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any

import aiohttp

from footprint_chart.config import Settings, get_settings
from footprint_chart.errors import TransportError
from footprint_chart.utils import RetryPolicy, get_logger

from .types import Kline, parse_kline, to_bybit_interval

KLINE_ENDPOINT = "/v5/market/kline"
MAX_KLINE_LIMIT = 1000


class BybitRestClient:
    """Async REST client for the Bybit v5 public API."""

    def __init__(self, settings: Settings | None = None, max_attempts: int = 5):
        self.settings = settings or get_settings()
        self.base_url = self.settings.bybit_rest_url.rstrip("/")
        self.category = self.settings.bybit_category
        self.max_attempts = max(1, int(max_attempts))
        self.backoff = RetryPolicy(delay_sec=2.0, max_attempts=self.max_attempts, backoff_factor=2.0, max_delay_sec=60.0)
        self.logger = get_logger("bybit.rest")
        self._session: aiohttp.ClientSession | None = None

        # Token bucket: capacity = REST_RATE_LIMIT_PER_MIN, refill = capacity / 60 per second.
        self._rate_capacity = max(1, int(self.settings.rest_rate_limit_per_min))
        self._rate_tokens = float(self._rate_capacity)
        self._rate_refill_per_sec = float(self._rate_capacity) / 60.0
        self._rate_last_refill = time.monotonic()
        self._rate_lock = asyncio.Lock()

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=30)
            self._session = aiohttp.ClientSession(timeout=timeout)
        return self._session

    async def close(self) -> None:
        """Close the session."""
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None

    async def _acquire_rate_limit(self, weight: int = 1) -> None:
        """Wait for a local rate-limit token. Waiting never consumes retry attempts."""
        weight = max(1, int(weight))

        while True:
            async with self._rate_lock:
                now = time.monotonic()
                elapsed = now - self._rate_last_refill
                if elapsed > 0:
                    self._rate_tokens = min(
                        float(self._rate_capacity),
                        self._rate_tokens + elapsed * self._rate_refill_per_sec,
                    )
                    self._rate_last_refill = now

                if self._rate_tokens >= weight:
                    self._rate_tokens -= weight
                    return

                missing = float(weight) - self._rate_tokens
                wait_seconds = max(0.05, missing / self._rate_refill_per_sec)

            # Sleep outside the lock
            if wait_seconds >= 1.0:
                self.logger.warning("rate_limit_wait", wait_seconds=wait_seconds)
            else:
                self.logger.debug("rate_limit_wait", wait_seconds=wait_seconds)
            await asyncio.sleep(wait_seconds)

    async def _request(
        self,
        method: str,
        endpoint: str,
        params: dict[str, Any] | None = None,
    ) -> Any:
        """Make an API request with retry/backoff and return the ``result`` payload.

        429 and 5xx responses, connection errors and timeouts are retried.
        Other HTTP errors, an unparseable body, a non-zero ``retCode`` or
        exhausting the attempts raise :class:`TransportError`.
        """
        session = await self._get_session()
        url = f"{self.base_url}{endpoint}"

        for attempt in range(1, self.max_attempts + 1):
            await self._acquire_rate_limit(weight=1)

            try:
                async with session.request(method, url, params=params) as response:
                    if response.status in (418, 429):
                        retry_after = response.headers.get("Retry-After")
                        try:
                            wait = float(retry_after) if retry_after else 0.0
                        except ValueError:
                            wait = 0.0
                        if wait <= 0:
                            wait = self.backoff.delay_for(attempt) or 0.0
                        self.logger.warning("rate_limited", status=response.status, wait_seconds=wait, attempt=attempt)
                        await asyncio.sleep(wait)
                        continue

                    if 500 <= response.status < 600:
                        wait = self.backoff.delay_for(attempt) or 0.0
                        self.logger.warning("server_error_retry", status=response.status, wait_seconds=wait, attempt=attempt)
                        await asyncio.sleep(wait)
                        continue

                    if response.status >= 400:
                        body = await response.text()
                        self.logger.error(
                            "request_failed",
                            endpoint=endpoint,
                            status=response.status,
                            params=params,
                            body=body[:2000],
                        )
                        raise TransportError(
                            f"Bybit API error {response.status} for {endpoint}: {body[:2000]}",
                            endpoint=endpoint,
                            status=response.status,
                        )

                    try:
                        payload = await response.json(content_type=None)
                    except ValueError as e:
                        self.logger.error("invalid_json_body", endpoint=endpoint, error=str(e))
                        raise TransportError(f"Bybit returned invalid JSON for {endpoint}", endpoint=endpoint) from e

            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                wait = self.backoff.delay_for(attempt) or 0.0
                self.logger.warning("client_error_retry", endpoint=endpoint, error=str(e), attempt=attempt, wait_seconds=wait)
                await asyncio.sleep(wait)
                continue

            ret_code = payload.get("retCode", 0) if isinstance(payload, dict) else None
            if ret_code != 0:
                ret_msg = payload.get("retMsg") if isinstance(payload, dict) else None
                self.logger.error("api_error", endpoint=endpoint, ret_code=ret_code, ret_msg=ret_msg)
                raise TransportError(
                    f"Bybit retCode {ret_code} for {endpoint}: {ret_msg}",
                    endpoint=endpoint,
                )
            return payload.get("result") or {}

        raise TransportError(
            f"Bybit request failed after {self.max_attempts} attempts: {endpoint}",
            endpoint=endpoint,
        )

    async def get_klines(
        self,
        symbol: str,
        timeframe: str,
        start_time: int | None = None,
        end_time: int | None = None,
        limit: int = 200,
    ) -> list[Kline]:
        """Get klines in ascending open-time order.

        Args:
            symbol: Trading pair symbol, e.g. ``BTCUSDT``
            timeframe: One of ``1m 5m 15m 30m 1h 4h 12h 1d 1w 1M``
            start_time: Start time in milliseconds
            end_time: End time in milliseconds
            limit: Number of klines (max 1000)
        """
        symbol = symbol.upper()
        interval = to_bybit_interval(timeframe)
        params: dict[str, Any] = {
            "category": self.category,
            "symbol": symbol,
            "interval": interval,
            "limit": max(1, min(int(limit), MAX_KLINE_LIMIT)),
        }
        if start_time:
            params["start"] = int(start_time)
        if end_time:
            params["end"] = int(end_time)

        result = await self._request("GET", KLINE_ENDPOINT, params)
        try:
            rows = result.get("list") or []
            klines = [parse_kline(row, symbol, interval) for row in rows]
        except (AttributeError, IndexError, KeyError, TypeError, ValueError) as e:
            self.logger.error("malformed_klines", symbol=symbol, timeframe=timeframe, error=str(e))
            raise TransportError(f"Malformed kline payload for {symbol}: {e}", endpoint=KLINE_ENDPOINT) from e
        # Bybit returns newest first
        klines.sort(key=lambda k: k.open_time)
        self.logger.debug("klines_fetched", symbol=symbol, timeframe=timeframe, count=len(klines))
        return klines
