"""Tests for the linear chart viewport and the overlay that follows it."""

from unittest.mock import MagicMock

import pytest

from footprint_chart.render import (
    ChartCoordinates,
    FootprintOverlay,
    FootprintRenderer,
    LinearChartViewport,
    VisibleRange,
)

T0 = 1_704_067_200_000
MIN = 60_000


@pytest.fixture
def candles(make_candle):
    return [make_candle(T0 + i * MIN, low=100, high=110) for i in range(5)]


class TestLinearChartViewport:
    def test_satisfies_protocol(self):
        assert isinstance(LinearChartViewport(100, 100), ChartCoordinates)

    def test_not_ready_returns_none(self, candles):
        chart = LinearChartViewport(1000, 500)
        assert chart.visible_time_range() is None
        chart.set_data(candles)
        assert chart.time_to_pixel(T0) is None
        assert chart.price_to_pixel(105) is None

    def test_time_to_pixel_centers_bar_in_slot(self, candles):
        chart = LinearChartViewport(1000, 500)
        chart.set_data(candles)
        chart.set_logical_range(0, 10)

        assert chart.time_to_pixel(T0) == pytest.approx(50)
        assert chart.time_to_pixel(T0 + 2 * MIN) == pytest.approx(250)
        assert chart.time_to_pixel(T0 + 30_000) is None

    def test_price_range_fitted_with_margin(self, candles):
        chart = LinearChartViewport(1000, 500)
        chart.set_data(candles)
        chart.set_logical_range(0, 5)

        assert chart.price_to_pixel(99) == pytest.approx(500)
        assert chart.price_to_pixel(111) == pytest.approx(0)
        assert chart.price_to_pixel(105) == pytest.approx(250)

    def test_fixed_price_range(self, candles):
        chart = LinearChartViewport(1000, 400, price_range=(0.0, 200.0))
        assert chart.price_to_pixel(50) == pytest.approx(300)

    def test_visible_time_range_rounds_to_whole_bars(self, candles):
        chart = LinearChartViewport(1000, 500)
        chart.set_data(candles)
        chart.set_logical_range(0.7, 3.2)
        time_range = chart.visible_time_range()
        assert (time_range.start, time_range.end) == (T0 + MIN, T0 + 2 * MIN)

    def test_scroll_to_end_pins_right_edge(self, candles):
        chart = LinearChartViewport(1000, 500)
        chart.set_data(candles)
        chart.scroll_to_end(bars=3)
        logical = chart.visible_logical_range()
        assert (logical.start, logical.end) == (2, 5)

        chart.scroll_to_end(bars=30)
        assert chart.visible_logical_range().start == 0

    def test_range_change_notifies_until_unsubscribed(self, candles):
        chart = LinearChartViewport(1000, 500)
        listener = MagicMock()
        unsubscribe = chart.subscribe_visible_range_change(listener)

        chart.set_logical_range(0, 5)
        chart.resize(800, 400)
        assert listener.call_count == 2

        unsubscribe()
        chart.set_logical_range(0, 6)
        assert listener.call_count == 2

    def test_invalid_ranges(self):
        chart = LinearChartViewport(1000, 500)
        with pytest.raises(ValueError):
            chart.set_logical_range(5, 5)
        with pytest.raises(ValueError):
            chart.resize(0, 100)
        with pytest.raises(ValueError):
            LinearChartViewport(0, 100)


class TestFootprintOverlay:
    def test_attach_renders_and_follows_range(self, candles):
        chart = LinearChartViewport(1000, 500)
        chart.set_data(candles)
        chart.set_logical_range(0, 5)
        overlay = FootprintOverlay(FootprintRenderer(), lambda: candles)
        ranges = []
        overlay.on_visible_range(ranges.append)

        frame = overlay.attach(chart)
        assert overlay.attached
        assert frame.candles_drawn == 5
        assert overlay.renders == 1

        chart.set_logical_range(3, 5)
        assert overlay.renders == 2
        assert ranges[-1] == VisibleRange(3, 5, 500.0)

    def test_detach_stops_updates(self, candles):
        chart = LinearChartViewport(1000, 500)
        chart.set_data(candles)
        chart.set_logical_range(0, 5)
        overlay = FootprintOverlay(FootprintRenderer(), lambda: candles)
        overlay.attach(chart)
        overlay.detach()

        chart.set_logical_range(1, 5)
        assert overlay.renders == 1
        assert overlay.refresh() is None
        assert overlay.resize() is None

    def test_refresh_picks_up_new_data(self, candles, make_candle):
        data = list(candles[:2])
        chart = LinearChartViewport(1000, 500)
        chart.set_data(data)
        chart.set_logical_range(0, 5)
        overlay = FootprintOverlay(FootprintRenderer(), lambda: data)
        assert overlay.attach(chart).candles_drawn == 2

        data.append(candles[2])
        chart.set_data(data)
        assert overlay.refresh().candles_drawn == 3
        assert overlay.last_frame.candles_drawn == 3

    def test_failing_listener_is_isolated(self, candles):
        chart = LinearChartViewport(1000, 500)
        chart.set_data(candles)
        chart.set_logical_range(0, 5)
        overlay = FootprintOverlay(FootprintRenderer(), lambda: candles)
        seen = []
        overlay.on_frame(MagicMock(side_effect=RuntimeError("boom")))
        overlay.on_frame(seen.append)

        overlay.attach(chart)
        assert len(seen) == 1
