"""Per-candle statistics for the table under the chart.

The table follows the chart's visible range: rows are sliced with the same
``VisibleRange`` the renderer reports, so each column sits under its candle.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal, Sequence

from footprint_chart.orderflow.models import CandleSnapshot
from footprint_chart.utils import format_volume, ms_to_datetime

from .renderer import VisibleRange

Tone = Literal["positive", "negative", "neutral"]

# Relative strength within +/- this many percent reads as neutral.
RS_NEUTRAL_BAND = 10.0


def tone(value: float, neutral_band: float = 0.0) -> Tone:
    if value > neutral_band:
        return "positive"
    if value < -neutral_band:
        return "negative"
    return "neutral"


def format_signed(value: float) -> str:
    text = format_volume(value)
    return f"+{text}" if value > 0 else text


@dataclass(frozen=True)
class StatRow:
    open_time: int
    timestamp_label: str
    volume: float
    delta: float
    relative_strength: float
    cvd: float

    @property
    def delta_tone(self) -> Tone:
        return tone(self.delta)

    @property
    def relative_strength_tone(self) -> Tone:
        return tone(self.relative_strength, RS_NEUTRAL_BAND)

    @property
    def cvd_tone(self) -> Tone:
        return tone(self.cvd)

    def to_dict(self, display: bool = True) -> dict[str, Any]:
        out: dict[str, Any] = {
            "openTime": self.open_time,
            "timestamp": self.timestamp_label,
            "volume": self.volume,
            "delta": self.delta,
            "relativeStrength": self.relative_strength,
            "cvd": self.cvd,
        }
        if display:
            out["display"] = {
                "volume": format_volume(self.volume),
                "delta": format_signed(self.delta),
                "relativeStrength": f"{self.relative_strength:.1f}%",
                "cvd": format_signed(self.cvd),
                "deltaTone": self.delta_tone,
                "relativeStrengthTone": self.relative_strength_tone,
                "cvdTone": self.cvd_tone,
            }
        return out


class StatisticsProjector:
    def __init__(self, label_format: str = "%H:%M"):
        self.label_format = label_format

    @staticmethod
    def slice_bounds(length: int, start_index: int = 0, end_index: int | None = None) -> tuple[int, int]:
        """``start..end`` clamped to ``[0, length]``. An unset or non-positive end means all."""
        start = min(max(start_index, 0), length)
        end = end_index
        if end is None or end <= 0:
            end = length
        end = min(max(end, 0), length)
        return start, max(start, end)

    def project(self, candles: Sequence[CandleSnapshot], visible_range: VisibleRange | None = None) -> list[StatRow]:
        if visible_range is None:
            return [self.row(candle) for candle in candles]
        start, end = self.slice_bounds(len(candles), visible_range.start_index, visible_range.end_index)
        return [self.row(candle) for candle in candles[start:end]]

    def row(self, candle: CandleSnapshot) -> StatRow:
        volume = candle.volume
        relative_strength = candle.delta / volume * 100.0 if volume > 0 else 0.0
        return StatRow(
            open_time=candle.open_time,
            timestamp_label=ms_to_datetime(candle.open_time).strftime(self.label_format),
            volume=volume,
            delta=candle.delta,
            relative_strength=relative_strength,
            cvd=candle.cvd,
        )
