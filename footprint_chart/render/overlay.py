"""Keeps a footprint frame in sync with a host chart."""

from __future__ import annotations

from typing import Callable, Sequence

from footprint_chart.orderflow.models import CandleSnapshot
from footprint_chart.utils import get_logger

from .chart import ChartCoordinates
from .renderer import FootprintFrame, FootprintRenderer, VisibleRange

FrameListener = Callable[[FootprintFrame], None]
RangeReportListener = Callable[[VisibleRange], None]


class FootprintOverlay:
    """Re-render on pan/zoom, data change and resize.

    ``source`` returns the current candles (typically ``sequence.candles``).
    Each render is handed to frame listeners, and its visible range to range
    listeners so a statistics table can follow the chart.
    """

    def __init__(
        self,
        renderer: FootprintRenderer,
        source: Callable[[], Sequence[CandleSnapshot]],
        *,
        left_offset_px: float = 0.0,
    ):
        self.renderer = renderer
        self.source = source
        self.left_offset_px = left_offset_px
        self.logger = get_logger("render.overlay")
        self._chart: ChartCoordinates | None = None
        self._unsubscribe: Callable[[], None] | None = None
        self._frame_listeners: list[FrameListener] = []
        self._range_listeners: list[RangeReportListener] = []
        self.last_frame: FootprintFrame | None = None
        self.renders = 0

    def on_frame(self, handler: FrameListener) -> None:
        self._frame_listeners.append(handler)

    def on_visible_range(self, handler: RangeReportListener) -> None:
        self._range_listeners.append(handler)

    @property
    def attached(self) -> bool:
        return self._chart is not None

    def attach(self, chart: ChartCoordinates) -> FootprintFrame:
        """Subscribe to ``chart``'s range changes and render once."""
        self.detach()
        self._chart = chart
        self._unsubscribe = chart.subscribe_visible_range_change(self._on_range_change)
        return self._render()

    def detach(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
        self._unsubscribe = None
        self._chart = None

    def refresh(self) -> FootprintFrame | None:
        """Re-render after the candle data changed."""
        return self._render() if self._chart is not None else None

    def resize(self) -> FootprintFrame | None:
        """Re-render after the container was resized."""
        return self._render() if self._chart is not None else None

    def _on_range_change(self) -> None:
        self._render()

    def _render(self) -> FootprintFrame:
        assert self._chart is not None
        frame = self.renderer.render(self.source(), self._chart, left_offset_px=self.left_offset_px)
        self.last_frame = frame
        self.renders += 1

        for handler in list(self._frame_listeners):
            try:
                handler(frame)
            except Exception:
                self.logger.exception("frame_listener_failed")
        if frame.visible_range is not None:
            for handler in list(self._range_listeners):
                try:
                    handler(frame.visible_range)
                except Exception:
                    self.logger.exception("range_listener_failed")
        return frame
