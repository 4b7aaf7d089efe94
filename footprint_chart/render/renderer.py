"""Footprint overlay renderer.

Turns visible candles into draw primitives: per row a bid label on the left of
the candle's x, an ask label on the right, a highlight behind the imbalanced
side and, on wide candles, a separator between the two.

Rendering is a pure function of (candles, chart state). Missing coordinates
(layout not ready) and candles too short for a single row are skip paths
counted on the frame, never errors.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Sequence

from footprint_chart.orderflow.models import CandleSnapshot
from footprint_chart.utils import format_volume, get_logger

from .bucketer import LevelBucketer
from .chart import ChartCoordinates
from .imbalance import IMBALANCE_RATIO, Imbalance, classify_imbalance
from .primitives import (
    ASK_COLOR,
    ASK_HIGHLIGHT,
    BID_COLOR,
    BID_HIGHLIGHT,
    HIGHLIGHT_TEXT,
    SEPARATOR_COLOR,
    FillRect,
    LineSegment,
    Primitive,
    TextLabel,
)

# Below this candle width (px) labels are illegible, so no footprint is drawn.
MIN_CANDLE_WIDTH_PX = 15.0
# Separator lines only on candles wider than this.
SEPARATOR_MIN_WIDTH_PX = 80.0
# Rows whose y is this far outside the candle's high/low span are dropped.
ROW_TOLERANCE_PX = 5.0

MIN_FONT_PX = 7.0
MAX_FONT_PX = 14.0
MIN_ROW_PX = 10.0


@dataclass(frozen=True)
class VisibleRange:
    """Which slice of the sequence is on screen. ``end_index`` is exclusive."""

    start_index: int
    end_index: int
    candle_width_px: float
    left_offset_px: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "startIndex": self.start_index,
            "endIndex": self.end_index,
            "candleWidthPx": self.candle_width_px,
            "leftOffsetPx": self.left_offset_px,
        }


@dataclass(frozen=True)
class FootprintFrame:
    primitives: tuple[Primitive, ...] = ()
    visible_range: VisibleRange | None = None
    candles_drawn: int = 0
    skipped_layout: int = 0
    skipped_underflow: int = 0
    font_size: float | None = field(default=None, compare=False)
    row_height: float | None = field(default=None, compare=False)

    def to_dict(self) -> dict[str, Any]:
        return {
            "primitives": [p.to_dict() for p in self.primitives],
            "visibleRange": self.visible_range.to_dict() if self.visible_range else None,
            "candlesDrawn": self.candles_drawn,
            "skippedLayout": self.skipped_layout,
            "skippedUnderflow": self.skipped_underflow,
            "fontSize": self.font_size,
            "rowHeight": self.row_height,
        }


def row_metrics(candle_width: float) -> tuple[float, float]:
    """Font size and row height (px) for a candle ``candle_width`` pixels wide."""
    font_size = min(max(candle_width * 0.15, MIN_FONT_PX), MAX_FONT_PX)
    return font_size, max(font_size + 4.0, MIN_ROW_PX)


class FootprintRenderer:
    def __init__(self, imbalance_ratio: float = IMBALANCE_RATIO, bucketer: LevelBucketer | None = None):
        self.imbalance_ratio = float(imbalance_ratio)
        self.bucketer = bucketer or LevelBucketer()
        self.logger = get_logger("render.footprint")

    def render(
        self,
        candles: Sequence[CandleSnapshot],
        chart: ChartCoordinates,
        *,
        left_offset_px: float = 0.0,
    ) -> FootprintFrame:
        time_range = chart.visible_time_range()
        logical = chart.visible_logical_range()
        if time_range is None or logical is None or logical.bars <= 0:
            self.logger.debug("footprint_layout_not_ready", reason="no_visible_range")
            return FootprintFrame(skipped_layout=1)

        visible = [
            (idx, candle)
            for idx, candle in enumerate(candles)
            if time_range.start <= candle.open_time <= time_range.end
        ]
        if not visible:
            return FootprintFrame()

        candle_width = chart.time_scale_pixel_width() / logical.bars
        visible_range = VisibleRange(
            start_index=visible[0][0],
            end_index=visible[-1][0] + 1,
            candle_width_px=candle_width,
            left_offset_px=left_offset_px,
        )
        if candle_width < MIN_CANDLE_WIDTH_PX:
            return FootprintFrame(visible_range=visible_range)

        font_size, row_height = row_metrics(candle_width)
        primitives: list[Primitive] = []
        drawn = skipped_layout = skipped_underflow = 0

        for _, candle in visible:
            x = chart.time_to_pixel(candle.open_time)
            y_high = chart.price_to_pixel(candle.high)
            y_low = chart.price_to_pixel(candle.low)
            if x is None or y_high is None or y_low is None:
                skipped_layout += 1
                continue

            top, bottom = min(y_high, y_low), max(y_high, y_low)
            max_rows = self.bucketer.max_rows(bottom - top, row_height)
            if max_rows <= 0:
                skipped_underflow += 1
                continue

            buckets = self.bucketer.bucket(candle.levels_in_range(descending=True), max_rows)
            for bucket in buckets:
                y = chart.price_to_pixel(bucket.price)
                if y is None or y < top - ROW_TOLERANCE_PX or y > bottom + ROW_TOLERANCE_PX:
                    continue
                primitives.extend(
                    self._row(x, y, candle_width, font_size, row_height, bucket.bid_volume, bucket.ask_volume)
                )
            drawn += 1

        if skipped_layout or skipped_underflow:
            self.logger.debug(
                "footprint_candles_skipped",
                layout=skipped_layout,
                underflow=skipped_underflow,
            )

        return FootprintFrame(
            primitives=tuple(primitives),
            visible_range=visible_range,
            candles_drawn=drawn,
            skipped_layout=skipped_layout,
            skipped_underflow=skipped_underflow,
            font_size=font_size,
            row_height=row_height,
        )

    def _row(
        self,
        x: float,
        y: float,
        width: float,
        font_size: float,
        row_height: float,
        bid_volume: float,
        ask_volume: float,
    ) -> list[Primitive]:
        side = classify_imbalance(bid_volume, ask_volume, self.imbalance_ratio)
        text_y = y + font_size / 3
        cell_top = y - row_height / 2
        out: list[Primitive] = []

        if side is Imbalance.BID:
            out.append(FillRect(x - width * 0.4, cell_top, width * 0.38, row_height, BID_HIGHLIGHT))
        out.append(
            TextLabel(
                x - width * 0.02,
                text_y,
                format_volume(bid_volume),
                "right",
                font_size,
                HIGHLIGHT_TEXT if side is Imbalance.BID else BID_COLOR,
            )
        )

        if side is Imbalance.ASK:
            out.append(FillRect(x + width * 0.02, cell_top, width * 0.38, row_height, ASK_HIGHLIGHT))
        out.append(
            TextLabel(
                x + width * 0.02,
                text_y,
                format_volume(ask_volume),
                "left",
                font_size,
                HIGHLIGHT_TEXT if side is Imbalance.ASK else ASK_COLOR,
            )
        )

        if width > SEPARATOR_MIN_WIDTH_PX:
            out.append(LineSegment(x, cell_top, x, cell_top + row_height, SEPARATOR_COLOR))
        return out
