"""Tests for price-level bucketing."""

import math

import pytest

from footprint_chart.orderflow import PriceLevel
from footprint_chart.render import LevelBucketer


def _levels(n):
    return [PriceLevel(float(200 - i), float(i + 1), 1.0) for i in range(n)]


class TestLevelBucketer:
    def test_fits_verbatim(self):
        levels = _levels(4)
        buckets = LevelBucketer().bucket(levels, max_rows=10)
        assert [b.price for b in buckets] == [lvl.price for lvl in levels]
        assert all(b.level_count == 1 for b in buckets)

    def test_compression_conserves_volume(self):
        levels = _levels(25)
        buckets = LevelBucketer().bucket(levels, max_rows=10)

        assert len(buckets) == math.ceil(25 / math.ceil(25 / 10))
        assert len(buckets) <= 10
        assert sum(b.bid_volume for b in buckets) == sum(lvl.bid_volume for lvl in levels)
        assert sum(b.ask_volume for b in buckets) == sum(lvl.ask_volume for lvl in levels)
        assert sum(b.level_count for b in buckets) == 25

    def test_group_uses_middle_price_and_keeps_order(self):
        levels = _levels(6)
        buckets = LevelBucketer().bucket(levels, max_rows=2)
        assert [b.level_count for b in buckets] == [3, 3]
        assert [b.price for b in buckets] == [199.0, 196.0]

    def test_no_rows(self):
        assert LevelBucketer().bucket(_levels(3), max_rows=0) == []
        assert LevelBucketer().bucket([], max_rows=5) == []

    def test_max_rows(self):
        assert LevelBucketer.max_rows(100, 12) == 8
        assert LevelBucketer.max_rows(5, 12) == 0
        with pytest.raises(ValueError):
            LevelBucketer.max_rows(100, 0)
