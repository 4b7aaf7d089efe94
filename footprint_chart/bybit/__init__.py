"""Bybit v5 market data clients."""

from .rest_client import BybitRestClient
from .types import BYBIT_INTERVALS, Kline, parse_kline, parse_trade, to_bybit_interval
from .websocket import BybitTradeStream, ConnectionStatus

__all__ = [
    "BYBIT_INTERVALS",
    "BybitRestClient",
    "BybitTradeStream",
    "ConnectionStatus",
    "Kline",
    "parse_kline",
    "parse_trade",
    "to_bybit_interval",
]
