"""Tests for shared helpers and the reconnect policy."""

import pytest

from footprint_chart.utils import (
    RetryPolicy,
    bucket_start,
    format_volume,
    get_timeframe_ms,
    round_to_tick,
    tick_decimals,
)


class TestFormatVolume:
    @pytest.mark.parametrize(
        "value,expected",
        [
            (0, "0"),
            (42, "42"),
            (0.25, "0.25"),
            (123.4, "123"),
            (1500, "1.5k"),
            (-1500, "-1.5k"),
            (2_500_000, "2.5M"),
            (3_000_000_000, "3.0B"),
        ],
    )
    def test_format(self, value, expected):
        assert format_volume(value) == expected


class TestTicks:
    def test_round_half_up(self):
        assert round_to_tick(100.25, 0.5) == 100.5
        assert round_to_tick(100.24, 0.5) == 100.0
        assert round_to_tick(42_000.4, 1) == 42_000
        assert round_to_tick(100.13, 0.1) == 100.1

    def test_decimals(self):
        assert tick_decimals(0.01) == 2
        assert tick_decimals(10) == 0
        assert tick_decimals(0.5) == 1

    def test_invalid_tick(self):
        with pytest.raises(ValueError):
            round_to_tick(100, 0)


class TestTimeframes:
    def test_bucket_alignment(self):
        t0 = 1_704_067_200_000
        assert bucket_start(t0 + 14 * 60_000 + 59_999, get_timeframe_ms("15m")) == t0
        assert bucket_start(t0 + 15 * 60_000, get_timeframe_ms("15m")) == t0 + 15 * 60_000

    def test_unknown_timeframe(self):
        with pytest.raises(ValueError, match="Unsupported timeframe"):
            get_timeframe_ms("2m")


class TestRetryPolicy:
    def test_fixed_delay(self):
        policy = RetryPolicy(delay_sec=5, max_attempts=3)
        assert [policy.delay_for(n) for n in (1, 2, 3, 4)] == [5, 5, 5, None]

    def test_backoff_capped(self):
        policy = RetryPolicy(delay_sec=1, backoff_factor=2, max_delay_sec=5)
        assert [policy.delay_for(n) for n in (1, 2, 3, 4)] == [1, 2, 4, 5]

    def test_unbounded(self):
        assert RetryPolicy(max_attempts=None).delay_for(1000) == 5.0

    def test_from_settings_zero_is_unbounded(self):
        class _Settings:
            ws_reconnect_delay_sec = 2
            ws_max_reconnect_attempts = 0

        policy = RetryPolicy.from_settings(_Settings())
        assert policy.max_attempts is None
        assert policy.delay_sec == 2.0

    def test_invalid(self):
        with pytest.raises(ValueError):
            RetryPolicy(delay_sec=-1)
        with pytest.raises(ValueError):
            RetryPolicy().delay_for(0)
