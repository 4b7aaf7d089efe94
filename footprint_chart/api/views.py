"""Response builders for the HTTP API.

Kept separate from the route table so they can be tested without an ASGI
client.
"""

from __future__ import annotations

from typing import Any, Sequence

from footprint_chart.orderflow.models import CandleSnapshot
from footprint_chart.render import (
    FootprintOverlay,
    FootprintRenderer,
    LinearChartViewport,
    StatisticsProjector,
    find_stacked_imbalances,
)


def candles_view(candles: Sequence[CandleSnapshot], limit: int | None = None, include_levels: bool = True) -> dict[str, Any]:
    if limit is not None and limit > 0:
        candles = candles[-limit:]
    return {
        "count": len(candles),
        "candles": [c.to_dict(include_levels=include_levels) for c in candles],
    }


def footprint_view(
    candles: Sequence[CandleSnapshot],
    renderer: FootprintRenderer,
    statistics: StatisticsProjector,
    *,
    width: float,
    height: float,
    bars: int = 30,
    end_index: int | None = None,
    left_offset_px: float = 0.0,
) -> dict[str, Any]:
    """Render ``candles`` on a ``width`` x ``height`` linear viewport.

    Shows ``bars`` slots ending at ``end_index`` (exclusive), or pinned to the
    latest candle when no end is given. The statistics rows follow the
    frame's visible range.
    """
    viewport = LinearChartViewport(width, height)
    viewport.set_data(candles)
    if end_index is None:
        viewport.scroll_to_end(bars)
    else:
        viewport.set_logical_range(end_index - bars, end_index)

    overlay = FootprintOverlay(renderer, lambda: candles, left_offset_px=left_offset_px)
    frame = overlay.attach(viewport)
    overlay.detach()

    rows = statistics.project(candles, frame.visible_range) if frame.visible_range else []
    return {
        "frame": frame.to_dict(),
        "statistics": [row.to_dict() for row in rows],
    }


def statistics_view(
    candles: Sequence[CandleSnapshot],
    statistics: StatisticsProjector,
    start_index: int = 0,
    end_index: int | None = None,
) -> dict[str, Any]:
    start, end = statistics.slice_bounds(len(candles), start_index, end_index)
    rows = [statistics.row(c) for c in candles[start:end]]
    return {
        "startIndex": start,
        "endIndex": end,
        "rows": [row.to_dict() for row in rows],
    }


def imbalances_view(candle: CandleSnapshot, ratio: float, min_consecutive: int) -> dict[str, Any]:
    stacks = find_stacked_imbalances(candle.levels_in_range(), ratio=ratio, min_consecutive=min_consecutive)
    return {
        "openTime": candle.open_time,
        "estimated": candle.estimated,
        "ratio": ratio,
        "minConsecutive": min_consecutive,
        "stacked": [s.to_dict() for s in stacks],
    }

