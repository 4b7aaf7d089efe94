"""Configuration management for the footprint chart service."""

from __future__ import annotations

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

TimeframeName = Literal["1m", "5m", "15m", "30m", "1h", "4h", "12h", "1d", "1w", "1M"]


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_ignore_empty=True,
    )

    # HTTP API
    api_host: str = Field(default="0.0.0.0", description="API server host")
    api_port: int = Field(default=8030, description="API server port")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="INFO")
    debug: bool = Field(default=False)
    sse_ping_interval_sec: int = Field(default=15, ge=1)
    sse_queue_size: int = Field(default=1000, ge=1)

    # Bybit v5 public market data
    bybit_rest_url: str = Field(default="https://api.bybit.com")
    bybit_ws_url: str = Field(default="wss://stream.bybit.com/v5/public/linear")
    bybit_category: Literal["linear", "inverse", "spot"] = Field(default="linear")

    symbol: str = Field(default="BTCUSDT")
    default_timeframe: TimeframeName = Field(default="15m")

    # ------------------------------------------------------------------
    # Footprint aggregation
    #
    # Live trades are quantized to the symbol's tick size. Historical bars have
    # no trade detail, so their synthetic levels use a coarser price step.
    # ------------------------------------------------------------------
    tick_size_btc: float = Field(default=1.0, gt=0)
    tick_size_eth: float = Field(default=0.1, gt=0)
    tick_size_default: float = Field(default=0.01, gt=0)
    backfill_price_step_btc: float = Field(default=10.0, gt=0)
    backfill_price_step_eth: float = Field(default=1.0, gt=0)

    imbalance_ratio_threshold: float = Field(
        default=3.0,
        gt=1.0,
        description="One side must be at least this multiple of the other to count as imbalanced.",
    )
    imbalance_consecutive_levels: int = Field(default=3, ge=2)

    # Retained candles (oldest dropped first) and how many bars to backfill.
    max_candles: int = Field(default=200, ge=1)
    backfill_bars: int = Field(default=100, ge=1, le=1000)

    # Rate limiting / reconnect
    rest_rate_limit_per_min: int = Field(default=600)
    ws_reconnect_delay_sec: float = Field(default=5.0, ge=0)
    ws_max_reconnect_attempts: int = Field(
        default=0,
        ge=0,
        description="0 means reconnect forever.",
    )
    ws_heartbeat_sec: float = Field(default=20.0, gt=0)

    # Fallback when the exchange cannot be reached
    synthetic_fallback_enabled: bool = Field(default=True)
    synthetic_base_price: float = Field(default=105_000.0, gt=0)

    @property
    def normalized_symbol(self) -> str:
        return self.symbol.strip().upper()

    def get_tick_size(self, symbol: str) -> float:
        """Get tick size for live footprint aggregation based on symbol."""
        symbol = symbol.upper()
        if "BTC" in symbol:
            return float(self.tick_size_btc)
        if "ETH" in symbol:
            return float(self.tick_size_eth)
        return float(self.tick_size_default)

    def get_backfill_price_step(self, symbol: str) -> float:
        """Get the level spacing used for synthetic historical footprints.

        This is deliberately coarser than the live tick size: a kline carries
        no trade detail, so fine-grained synthetic levels only add noise.
        """
        symbol = symbol.upper()
        if "BTC" in symbol:
            return float(self.backfill_price_step_btc)
        if "ETH" in symbol:
            return float(self.backfill_price_step_eth)
        base_tick = float(self.get_tick_size(symbol))
        return base_tick * 10.0


# Global settings instance
settings = Settings()


def get_settings() -> Settings:
    """Get settings instance."""
    return settings
