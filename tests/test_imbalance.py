"""Tests for bid/ask imbalance detection."""

import pytest

from footprint_chart.orderflow import PriceLevel
from footprint_chart.render import Imbalance, classify_imbalance, find_stacked_imbalances


class TestClassifyImbalance:
    @pytest.mark.parametrize(
        "bid,ask,expected",
        [
            (30, 10, Imbalance.BID),
            (10, 30, Imbalance.ASK),
            (10, 10, Imbalance.NONE),
            (29, 10, Imbalance.NONE),
            (5, 0, Imbalance.BID),
            (0, 5, Imbalance.ASK),
            (0, 0, Imbalance.NONE),
        ],
    )
    def test_default_ratio(self, bid, ask, expected):
        assert classify_imbalance(bid, ask) is expected

    def test_custom_ratio(self):
        assert classify_imbalance(20, 10, ratio=2.0) is Imbalance.BID
        assert classify_imbalance(20, 10, ratio=2.5) is Imbalance.NONE


class TestStackedImbalances:
    def test_run_of_three_bid_levels(self):
        levels = [
            PriceLevel(100, 30, 10),
            PriceLevel(101, 40, 10),
            PriceLevel(102, 31, 10),
            PriceLevel(103, 10, 10),
        ]
        stacks = find_stacked_imbalances(levels)

        assert len(stacks) == 1
        stack = stacks[0]
        assert stack.side is Imbalance.BID
        assert (stack.high_price, stack.low_price, stack.level_count) == (102, 100, 3)
        assert stack.volume == 131
        assert stack.to_dict()["side"] == "bid"

    def test_short_runs_ignored(self):
        levels = [PriceLevel(100, 30, 10), PriceLevel(101, 30, 10), PriceLevel(102, 1, 10)]
        assert find_stacked_imbalances(levels) == []

    def test_side_change_breaks_run(self):
        levels = [PriceLevel(100 + i, 1, 10) for i in range(3)] + [PriceLevel(103 + i, 10, 1) for i in range(3)]
        stacks = find_stacked_imbalances(levels)
        assert [s.side for s in stacks] == [Imbalance.BID, Imbalance.ASK]
        assert stacks[0].high_price == 105

    def test_min_consecutive_validated(self):
        with pytest.raises(ValueError):
            find_stacked_imbalances([], min_consecutive=0)
