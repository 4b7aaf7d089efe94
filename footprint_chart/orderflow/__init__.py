"""Order-flow aggregation: trades in, footprint candles out."""

from .models import CandleSnapshot, OHLCVBar, PriceLevel, Side, Trade
from .price_levels import PriceLevelTable
from .candle import Candle
from .backfill import HistoricalBackfill, bid_ratio
from .aggregator import TradeAggregator

__all__ = [
    "Candle",
    "CandleSnapshot",
    "HistoricalBackfill",
    "OHLCVBar",
    "PriceLevel",
    "PriceLevelTable",
    "Side",
    "Trade",
    "TradeAggregator",
    "bid_ratio",
]
