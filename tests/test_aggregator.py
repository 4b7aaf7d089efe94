"""Tests for trade-to-candle aggregation."""

import pytest

from footprint_chart.data import CandleSequence
from footprint_chart.orderflow import (
    CandleSnapshot,
    HistoricalBackfill,
    OHLCVBar,
    PriceLevel,
    PriceLevelTable,
    Side,
    TradeAggregator,
)

T0 = 1_704_067_200_000  # 2024-01-01T00:00:00Z
MIN = 60_000


def _aggregator(timeframe="15m", tick=1.0, **kwargs):
    return TradeAggregator(timeframe=timeframe, tick_size=tick, symbol="btcusdt", **kwargs)


class TestPriceLevelTable:
    """Level accounting."""

    def test_buy_adds_bid_sell_adds_ask(self):
        table = PriceLevelTable()
        table.add_trade(100.0, 2.0, Side.BUY)
        table.add_trade(100.0, 0.5, Side.SELL)
        table.add_trade(101.0, 1.0, Side.SELL)

        assert table.get(100.0) == PriceLevel(100.0, 2.0, 0.5)
        assert table.get(101.0) == PriceLevel(101.0, 0.0, 1.0)
        assert table.delta == pytest.approx(0.5)
        assert table.volume == pytest.approx(4.5)
        assert len(table) == 2

    def test_negative_amount_rejected(self):
        table = PriceLevelTable()
        with pytest.raises(ValueError):
            table.add(100.0, bid_volume=-1.0)

    def test_levels_sorted(self):
        table = PriceLevelTable.from_levels([PriceLevel(102.0, 1, 0), PriceLevel(100.0, 1, 0), PriceLevel(101.0, 1, 0)])
        assert [lvl.price for lvl in table.levels()] == [100.0, 101.0, 102.0]
        assert [lvl.price for lvl in table.levels(descending=True)] == [102.0, 101.0, 100.0]

    def test_copy_is_independent(self):
        table = PriceLevelTable()
        table.add(100.0, bid_volume=1.0)
        clone = table.copy()
        clone.add(100.0, bid_volume=1.0)
        assert table.get(100.0).bid_volume == 1.0
        assert clone.get(100.0).bid_volume == 2.0


class TestTradeAggregation:
    def test_first_trade_opens_candle(self, make_trade):
        agg = _aggregator()
        snap = agg.on_trade(make_trade(T0 + 5 * MIN, 42_000.4, 0.5, "Buy"))

        assert snap.open_time == T0
        assert snap.open == snap.high == snap.low == snap.close == 42_000.4
        assert snap.levels == (PriceLevel(42_000.0, 0.5, 0.0),)
        assert not snap.closed
        assert agg.trades_processed == 1

    def test_volume_and_delta_recomputed_from_levels(self, make_trade):
        agg = _aggregator()
        for price, vol, side in [(100, 2, "Buy"), (101, 1, "Sell"), (100, 3, "Sell"), (102, 4, "Buy")]:
            snap = agg.on_trade(make_trade(T0, price, vol, side))

        assert snap.volume == sum(lvl.bid_volume + lvl.ask_volume for lvl in snap.levels) == 10
        assert snap.delta == sum(lvl.bid_volume - lvl.ask_volume for lvl in snap.levels) == 2
        assert (snap.high, snap.low, snap.close) == (102, 100, 102)

    def test_price_quantized_half_up(self, make_trade):
        agg = _aggregator(tick=0.5)
        agg.on_trade(make_trade(T0, 100.24, 1, "Buy"))
        agg.on_trade(make_trade(T0, 100.25, 1, "Buy"))
        snap = agg.on_trade(make_trade(T0, 100.26, 1, "Sell"))

        assert {lvl.price: (lvl.bid_volume, lvl.ask_volume) for lvl in snap.levels} == {
            100.0: (1.0, 0.0),
            100.5: (1.0, 1.0),
        }

    def test_rollover_produces_two_candles(self, make_trade):
        """Trades at t, t+1, t+15m give one closed and one open candle."""
        agg = _aggregator()
        closed = []
        agg.on_candle_closed(closed.append)

        agg.on_trade(make_trade(T0, 100, 1, "Buy"))
        agg.on_trade(make_trade(T0 + 1, 105, 2, "Sell"))
        agg.on_trade(make_trade(T0 + 15 * MIN, 103, 1, "Buy"))

        candles = agg.sequence.candles
        assert len(candles) == 2
        first, second = candles
        assert first.closed and first.volume == 3 and first.close == 105
        assert closed == [first]
        assert not second.closed
        assert second.open_time == T0 + 15 * MIN
        assert second.open == second.high == second.low == second.close == 103

    def test_cvd_continuity(self, make_trade):
        agg = _aggregator(timeframe="1m")
        agg.on_trade(make_trade(T0, 100, 3, "Buy"))
        agg.on_trade(make_trade(T0, 100, 1, "Sell"))
        agg.on_trade(make_trade(T0 + MIN, 100, 5, "Sell"))
        agg.on_trade(make_trade(T0 + 3 * MIN, 100, 4, "Buy"))

        candles = agg.sequence.candles
        assert [c.delta for c in candles] == [2, -5, 4]
        assert candles[0].cvd == candles[0].delta
        for prev, cur in zip(candles, candles[1:]):
            assert cur.cvd == prev.cvd + cur.delta
        assert agg.cvd == 1

    def test_late_trade_dropped(self, make_trade):
        agg = _aggregator(timeframe="1m")
        agg.on_trade(make_trade(T0, 100, 1, "Buy"))
        agg.on_trade(make_trade(T0 + MIN, 100, 1, "Buy"))

        assert agg.on_trade(make_trade(T0 + 30_000, 90, 7, "Sell")) is None
        assert agg.late_trades_dropped == 1
        assert agg.trades_processed == 2
        first = agg.sequence.candles[0]
        assert first.volume == 1 and first.low == 100

    def test_updated_fires_once_per_trade(self, make_trade):
        agg = _aggregator()
        updates = []
        agg.on_candle_updated(updates.append)

        accepted = agg.on_trades(make_trade(T0 + i, 100 + i, 1, "Buy") for i in range(5))

        assert accepted == 5
        assert len(updates) == 5
        assert [u.volume for u in updates] == [1, 2, 3, 4, 5]

    def test_listener_error_does_not_stop_aggregation(self, make_trade):
        agg = _aggregator()
        seen = []

        def broken(_candle):
            raise RuntimeError("boom")

        agg.on_candle_updated(broken)
        agg.on_candle_updated(seen.append)
        agg.on_trade(make_trade(T0, 100, 1, "Buy"))

        assert len(seen) == 1
        assert agg.sequence.last.volume == 1

    def test_snapshots_are_not_mutated_by_later_trades(self, make_trade):
        agg = _aggregator()
        first = agg.on_trade(make_trade(T0, 100, 1, "Buy"))
        agg.on_trade(make_trade(T0, 100, 1, "Buy"))
        assert first.volume == 1
        assert first.levels[0].bid_volume == 1

    def test_sequence_trimmed_to_max_candles(self, make_trade):
        agg = _aggregator(timeframe="1m", sequence=CandleSequence(max_candles=3))
        for i in range(5):
            agg.on_trade(make_trade(T0 + i * MIN, 100, 1, "Buy"))
        assert [c.open_time for c in agg.sequence] == [T0 + 2 * MIN, T0 + 3 * MIN, T0 + 4 * MIN]

    def test_invalid_construction(self):
        with pytest.raises(ValueError):
            _aggregator(tick=0)
        with pytest.raises(ValueError):
            _aggregator(timeframe="2m")

    def test_reset_clears_history_and_cvd(self, make_trade):
        agg = _aggregator()
        agg.on_trade(make_trade(T0, 100, 2, "Buy"))
        agg.reset()
        assert len(agg.sequence) == 0
        assert agg.open_candle is None
        snap = agg.on_trade(make_trade(T0 + 15 * MIN, 100, 1, "Sell"))
        assert snap.cvd == -1


class TestResume:
    def _last(self):
        return CandleSnapshot(
            open_time=T0,
            open=100,
            high=104,
            low=99,
            close=103,
            levels=(PriceLevel(100, 4, 1), PriceLevel(103, 2, 1)),
            cvd=10,
        )

    def test_resume_current_bucket_continues_candle(self, make_trade):
        agg = _aggregator()
        last = self._last()
        agg.resume(last, now_ms=T0 + 5 * MIN)

        snap = agg.on_trade(make_trade(T0 + 6 * MIN, 105, 1, "Buy"))

        assert len(agg.sequence) == 1
        assert snap.open_time == T0
        assert snap.open == 100 and snap.high == 105 and snap.low == 99
        assert snap.delta == 5
        assert snap.volume == 9
        assert snap.cvd == 11
        # The caller's snapshot is untouched
        assert last.volume == 8

    def test_resume_stale_bucket_finalizes_and_carries_cvd(self, make_trade):
        agg = _aggregator()
        closed = []
        agg.on_candle_closed(closed.append)
        agg.resume(self._last(), now_ms=T0 + 20 * MIN)

        assert len(closed) == 1 and closed[0].closed
        assert agg.open_candle is None
        assert agg.cvd == 10

        snap = agg.on_trade(make_trade(T0 + 20 * MIN, 101, 2, "Sell"))
        assert snap.open_time == T0 + 15 * MIN
        assert snap.cvd == 8
        assert len(agg.sequence) == 2

    def test_resume_none_is_noop(self):
        agg = _aggregator()
        agg.resume(None)
        assert len(agg.sequence) == 0


class TestKlineSeed:
    def test_seed_then_live_trades_continue_cvd(self, make_trade):
        agg = _aggregator(backfill=HistoricalBackfill(price_step=10))
        bars = [OHLCVBar(T0 + i * 15 * MIN, 100, 110, 90, 105, 1000) for i in range(3)]

        candles = agg.on_kline_seed(bars, now_ms=T0 + 60 * MIN)

        assert len(candles) == 3
        assert all(c.estimated and c.closed for c in agg.sequence)
        seeded_cvd = candles[-1].cvd

        snap = agg.on_trade(make_trade(T0 + 60 * MIN, 106, 1, "Buy"))
        assert snap.cvd == pytest.approx(seeded_cvd + 1)
        assert len(agg.sequence) == 4

    def test_seed_with_current_last_bar_keeps_it_open(self, make_trade):
        agg = _aggregator(backfill=HistoricalBackfill(price_step=10))
        bars = [OHLCVBar(T0, 100, 110, 90, 105, 1000), OHLCVBar(T0 + 15 * MIN, 105, 110, 100, 108, 500)]

        agg.on_kline_seed(bars, now_ms=T0 + 20 * MIN)
        assert not agg.sequence.last.closed

        snap = agg.on_trade(make_trade(T0 + 21 * MIN, 109, 2, "Sell"))
        assert snap.open_time == T0 + 15 * MIN
        assert snap.volume == pytest.approx(502)
        assert len(agg.sequence) == 2

    def test_load_history_uses_candles_as_given(self):
        backfill = HistoricalBackfill(price_step=10)
        candles = backfill.seed([OHLCVBar(T0 + i * 15 * MIN, 100, 110, 90, 95, 600) for i in range(2)], 15 * MIN)
        agg = _aggregator(backfill=backfill)

        agg.load_history(candles, now_ms=T0 + 45 * MIN)

        assert [c.open_time for c in agg.sequence] == [T0, T0 + 15 * MIN]
        assert agg.sequence.last.levels == candles[-1].levels
        assert agg.open_candle is None
        assert agg.cvd == pytest.approx(candles[-1].cvd)
