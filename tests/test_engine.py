"""
Tests for signals/engine.py – signal evaluation, exits, entries and the
per-symbol cycle, against a real SQLite store and the paper broker.
"""
from datetime import datetime, timedelta

import pytest

from conftest import RUN_AT, FailingBroker
from core.errors import InvalidInput, OrderError
from core.types import (
    ExitReason,
    Position,
    SentimentReading,
    Signal,
    SignalSnapshot,
)
from signals import engine
from signals.config import StrategyConfig
from signals.engine import (
    apply_breakeven_ratchet,
    check_for_entry,
    entry_suppressed,
    evaluate_symbol,
    exit_reason_for,
    handle_existing_position,
    normalize_symbol,
    process_symbol,
)

_CFG = StrategyConfig()


def _snapshot(signal, value=0.0, count=3, rsi=28.0):
    return SignalSnapshot(
        signal=signal,
        rsi=rsi,
        sentiment=SentimentReading(avg_sentiment=value, news_count=count),
    )


def _position(buy=100.0, stop=95.0, target=110.0):
    return Position(
        symbol="AAA",
        buy_price=buy,
        quantity=20,
        buy_date=RUN_AT,
        stop_loss=stop,
        target=target,
        signal_strength=Signal.BUY,
    )


# ── symbol / evaluation ────────────────────────────────────────────────────────

class TestNormalizeSymbol:

    @pytest.mark.parametrize("raw,expected", [
        (" reliance ", "RELIANCE"),
        ("M&M", "M&M"),
        ("BAJAJ-AUTO", "BAJAJ-AUTO"),
    ])
    def test_valid(self, raw, expected):
        assert normalize_symbol(raw) == expected

    @pytest.mark.parametrize("raw", ["", "  ", "AB CD", "$AAA", None, 42])
    def test_malformed(self, raw):
        with pytest.raises(InvalidInput):
            normalize_symbol(raw)


class TestEvaluateSymbol:

    def test_oversold_with_bullish_news_is_buy(self, ctx, market, store):
        market.closes["AAA"] = [float(p) for p in range(130, 100, -1)]  # RSI 0
        for i in range(3):
            store.add_news("AAA", f"h{i}", 0.5, RUN_AT)

        snap = evaluate_symbol(ctx, "AAA", RUN_AT.date())
        assert snap.signal == Signal.BUY
        assert snap.rsi == pytest.approx(0.0)
        assert snap.sentiment.news_count == 3

    def test_no_history_is_hold(self, ctx):
        snap = evaluate_symbol(ctx, "AAA", RUN_AT.date())
        assert snap.signal == Signal.HOLD
        assert snap.rsi is None

    def test_short_rsi_series_is_hold(self, ctx, market):
        # 16 closes → 2 RSI values, fewer than min_rsi_points
        market.closes["AAA"] = [100.0 - i for i in range(16)]
        assert evaluate_symbol(ctx, "AAA", RUN_AT.date()).signal == Signal.HOLD

    def test_unexpected_error_is_hold(self, ctx, market, monkeypatch):
        market.closes["AAA"] = [100.0] * 30

        def boom(*a, **k):
            raise RuntimeError("boom")

        monkeypatch.setattr(engine, "decide", boom)
        assert evaluate_symbol(ctx, "AAA", RUN_AT.date()).signal == Signal.HOLD


# ── exits ──────────────────────────────────────────────────────────────────────

class TestExitReason:

    @pytest.mark.parametrize("price,signal,value,expected", [
        (94.0, Signal.SELL, -0.9, ExitReason.STOP_LOSS),   # stop beats sell signal
        (95.0, Signal.HOLD, 0.0, ExitReason.STOP_LOSS),    # touching the stop
        (110.0, Signal.HOLD, 0.0, ExitReason.TARGET_HIT),
        (111.0, Signal.STRONG_SELL, -0.9, ExitReason.TARGET_HIT),
        (100.0, Signal.SELL, -0.4, ExitReason.STRATEGY),
        (100.0, Signal.SELL, -0.6, ExitReason.STRATEGY_NEWS),
        (100.0, Signal.STRONG_SELL, -0.6, ExitReason.STRATEGY),
        (100.0, Signal.STRONG_SELL, -0.85, ExitReason.STRATEGY_NEWS),
        (100.0, Signal.HOLD, -0.9, None),
        (100.0, Signal.BUY, 0.5, None),
    ])
    def test_priority(self, price, signal, value, expected):
        assert exit_reason_for(_position(), price, signal, value, _CFG) == expected


class TestBreakevenRatchet:

    def test_moves_stop_above_trigger(self):
        pos = _position()
        assert apply_breakeven_ratchet(pos, 104.0, _CFG) is True
        assert pos.stop_loss == pytest.approx(100.0)

    def test_trigger_is_strict(self):
        pos = _position()
        assert apply_breakeven_ratchet(pos, 103.0, _CFG) is False
        assert pos.stop_loss == pytest.approx(95.0)

    def test_never_lowers_stop(self):
        pos = _position(stop=101.0)
        assert apply_breakeven_ratchet(pos, 105.0, _CFG) is False
        assert pos.stop_loss == pytest.approx(101.0)


# ── entries ────────────────────────────────────────────────────────────────────

@pytest.mark.parametrize("signal,value,expected", [
    (Signal.BUY, -0.79, False),
    (Signal.BUY, -0.85, True),
    (Signal.STRONG_BUY, -0.85, False),
    (Signal.STRONG_BUY, -0.95, True),
    (Signal.HOLD, -1.0, False),
])
def test_entry_suppressed(signal, value, expected):
    assert entry_suppressed(signal, value, _CFG) is expected


class TestCheckForEntry:

    def test_buy_opens_position_and_trade(self, ctx, store):
        pos = check_for_entry(ctx, "AAA", 100.0, _snapshot(Signal.BUY, 0.3), RUN_AT)

        assert pos is not None and pos.id is not None
        assert pos.quantity == 20
        assert pos.stop_loss == pytest.approx(95.0)
        assert pos.target == pytest.approx(110.0)

        stored = store.find_open_position("AAA")
        assert stored.quantity == 20
        trades = store.trades_between(RUN_AT, RUN_AT + timedelta(seconds=1))
        assert [t.action for t in trades] == ["BUY"]
        assert trades[0].rsi_at_entry == pytest.approx(28.0)
        assert trades[0].capital_used == pytest.approx(2_000.0)
        assert [o.request.side for o in ctx.broker.orders] == ["BUY"]

    def test_strong_buy_sizes_up_and_tightens_bands(self, ctx):
        pos = check_for_entry(ctx, "AAA", 100.0, _snapshot(Signal.STRONG_BUY, 0.6), RUN_AT)
        assert pos.quantity == 30
        assert pos.stop_loss == pytest.approx(96.0)
        assert pos.target == pytest.approx(112.0)

    def test_hold_does_nothing(self, ctx, store):
        assert check_for_entry(ctx, "AAA", 100.0, _snapshot(Signal.HOLD), RUN_AT) is None
        assert store.list_positions() == []
        assert ctx.broker.orders == []

    def test_suppressed_by_negative_news(self, ctx, store):
        assert check_for_entry(ctx, "AAA", 100.0, _snapshot(Signal.BUY, -0.85), RUN_AT) is None
        assert store.list_positions() == []

    def test_zero_quantity_skips(self, ctx, store):
        assert check_for_entry(ctx, "AAA", 5_000.0, _snapshot(Signal.BUY, 0.3), RUN_AT) is None
        assert store.list_positions() == []

    def test_existing_position_blocks_entry(self, ctx, store):
        check_for_entry(ctx, "AAA", 100.0, _snapshot(Signal.BUY, 0.3), RUN_AT)
        assert check_for_entry(ctx, "AAA", 99.0, _snapshot(Signal.BUY, 0.3), RUN_AT) is None
        assert len(store.list_positions(sold=False)) == 1

    def test_order_failure_leaves_store_untouched(self, ctx, store):
        ctx.broker = FailingBroker()
        with pytest.raises(OrderError):
            check_for_entry(ctx, "AAA", 100.0, _snapshot(Signal.BUY, 0.3), RUN_AT)
        assert store.list_positions() == []
        assert store.trades_between(RUN_AT, RUN_AT + timedelta(days=1)) == []


# ── lifecycle ──────────────────────────────────────────────────────────────────

class TestLifecycle:

    def test_ratchet_then_stop_out_at_breakeven(self, ctx, store):
        check_for_entry(ctx, "AAA", 100.0, _snapshot(Signal.BUY, 0.3), RUN_AT)

        day2 = RUN_AT + timedelta(days=1)
        pos = store.find_open_position("AAA")
        assert handle_existing_position(ctx, pos, 104.0, _snapshot(Signal.HOLD), day2) is None
        assert store.find_open_position("AAA").stop_loss == pytest.approx(100.0)

        day3 = RUN_AT + timedelta(days=2)
        pos = store.find_open_position("AAA")
        reason = handle_existing_position(ctx, pos, 99.0, _snapshot(Signal.HOLD), day3)

        assert reason == ExitReason.STOP_LOSS
        assert store.find_open_position("AAA") is None
        closed = store.list_positions(sold=True)[0]
        assert closed.sell_price == pytest.approx(99.0)
        assert closed.profit_loss == pytest.approx(-20.0)
        assert closed.exit_reason == ExitReason.STOP_LOSS

        sell = store.trades_between(day3, day3 + timedelta(seconds=1))[0]
        assert sell.action == "SELL"
        assert sell.profit_loss_percent == pytest.approx(-1.0)

    def test_target_hit_round_trip(self, ctx, store):
        check_for_entry(ctx, "AAA", 100.0, _snapshot(Signal.BUY, 0.3), RUN_AT)
        later = RUN_AT + timedelta(days=5)
        pos = store.find_open_position("AAA")

        reason = handle_existing_position(ctx, pos, 110.0, _snapshot(Signal.HOLD), later)

        assert reason == ExitReason.TARGET_HIT
        assert store.list_positions(sold=True)[0].profit_loss == pytest.approx(200.0)
        assert [o.request.side for o in ctx.broker.orders] == ["BUY", "SELL"]

    def test_strong_buy_exits_exactly_at_target(self, ctx, store):
        check_for_entry(ctx, "AAA", 100.0, _snapshot(Signal.STRONG_BUY, 0.6), RUN_AT)
        pos = store.find_open_position("AAA")
        assert pos.target == 112.0

        reason = handle_existing_position(ctx, pos, 112.0, _snapshot(Signal.HOLD), RUN_AT)
        assert reason == ExitReason.TARGET_HIT

    def test_sell_order_failure_keeps_position_open(self, ctx, store):
        check_for_entry(ctx, "AAA", 100.0, _snapshot(Signal.BUY, 0.3), RUN_AT)
        ctx.broker = FailingBroker()
        pos = store.find_open_position("AAA")

        with pytest.raises(OrderError):
            handle_existing_position(ctx, pos, 90.0, _snapshot(Signal.HOLD), RUN_AT)

        assert store.find_open_position("AAA") is not None
        assert len(store.trades_between(RUN_AT, RUN_AT + timedelta(days=1))) == 1


# ── process_symbol ─────────────────────────────────────────────────────────────

class TestProcessSymbol:

    def test_no_price_is_skipped(self, ctx):
        result = process_symbol(ctx, "AAA", RUN_AT)
        assert result.skipped_reason == "no price"
        assert result.signal == Signal.HOLD

    @pytest.mark.parametrize("price", [float("nan"), 0.0, -5.0, "abc"])
    def test_bad_price_raises(self, ctx, market, price):
        market.prices["AAA"] = price
        with pytest.raises(InvalidInput):
            process_symbol(ctx, "AAA", RUN_AT)

    def test_enters_on_buy(self, ctx, market, monkeypatch):
        market.prices["AAA"] = 100.0
        monkeypatch.setattr(engine, "evaluate_symbol", lambda c, s, d: _snapshot(Signal.BUY, 0.3))

        result = process_symbol(ctx, "aaa", RUN_AT)
        assert result.symbol == "AAA"
        assert result.entered is True
        assert result.price == pytest.approx(100.0)

    def test_exit_then_reentry_same_run(self, ctx, store, market, monkeypatch):
        check_for_entry(ctx, "AAA", 100.0, _snapshot(Signal.BUY, 0.3), RUN_AT - timedelta(days=1))
        market.prices["AAA"] = 111.0
        monkeypatch.setattr(engine, "evaluate_symbol", lambda c, s, d: _snapshot(Signal.BUY, 0.3))

        result = process_symbol(ctx, "AAA", RUN_AT)

        assert result.exit_reason == ExitReason.TARGET_HIT
        assert result.entered is True
        assert store.find_open_position("AAA").buy_price == pytest.approx(111.0)
