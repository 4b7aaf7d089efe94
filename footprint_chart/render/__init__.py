"""Footprint rendering: coordinates, row bucketing, imbalance, draw primitives, statistics."""

from .bucketer import LevelBucketer, RenderBucket
from .chart import ChartCoordinates, LinearChartViewport, LogicalRange, TimeRange
from .imbalance import IMBALANCE_RATIO, Imbalance, StackedImbalance, classify_imbalance, find_stacked_imbalances
from .primitives import FillRect, LineSegment, Primitive, TextLabel
from .renderer import FootprintFrame, FootprintRenderer, VisibleRange, row_metrics
from .overlay import FootprintOverlay
from .statistics import StatisticsProjector, StatRow

__all__ = [
    "ChartCoordinates",
    "FillRect",
    "FootprintFrame",
    "FootprintOverlay",
    "FootprintRenderer",
    "IMBALANCE_RATIO",
    "Imbalance",
    "LevelBucketer",
    "LineSegment",
    "LinearChartViewport",
    "LogicalRange",
    "Primitive",
    "RenderBucket",
    "StackedImbalance",
    "StatRow",
    "StatisticsProjector",
    "TextLabel",
    "TimeRange",
    "VisibleRange",
    "classify_imbalance",
    "find_stacked_imbalances",
    "row_metrics",
]
