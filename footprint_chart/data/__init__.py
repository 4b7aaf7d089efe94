"""Candle storage, history backfill and the synthetic fallback."""

from .sequence import CandleSequence
from .backfill import BackfillResult, KlineBackfiller
from .synthetic import SyntheticCandleGenerator

__all__ = ["BackfillResult", "CandleSequence", "KlineBackfiller", "SyntheticCandleGenerator"]
