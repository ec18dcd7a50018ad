"""
Unit tests for core/indicators.py – Wilder RSI and RSI trend labels.
"""
import pytest

from core.errors import DataUnavailable
from core.indicators import classify_rsi_trend, compute_rsi
from core.types import RSITrend


class TestComputeRsi:

    def test_hand_computed_series(self):
        # diffs [1, -1, 1]; seed gain/loss 0.5/0.5 → 50
        # next: gain (0.5+1)/2 = 0.75, loss 0.5/2 = 0.25 → RS 3 → 75
        rsi = compute_rsi([1.0, 2.0, 1.0, 2.0], period=2)
        assert rsi == pytest.approx([50.0, 75.0])

    def test_output_length(self):
        closes = [100 + (i % 3) for i in range(40)]
        assert len(compute_rsi(closes, period=14)) == 40 - 14

    def test_too_few_closes_raises(self):
        with pytest.raises(DataUnavailable):
            compute_rsi([1.0] * 10, period=14)

    def test_exactly_period_closes_gives_empty_series(self):
        assert compute_rsi([1.0] * 14, period=14) == []

    def test_flat_series_is_fifty(self):
        assert compute_rsi([100.0] * 20, period=14) == pytest.approx([50.0] * 6)

    def test_only_gains_is_hundred(self):
        rsi = compute_rsi([float(i) for i in range(1, 21)], period=14)
        assert all(v == pytest.approx(100.0) for v in rsi)

    def test_only_losses_is_zero(self):
        rsi = compute_rsi([float(i) for i in range(20, 0, -1)], period=14)
        assert all(v == pytest.approx(0.0) for v in rsi)

    def test_values_bounded(self):
        closes = [100, 130, 90, 140, 80, 150, 70, 160, 60, 170, 50, 180, 40, 190, 30, 200, 20]
        assert all(0.0 <= v <= 100.0 for v in compute_rsi(closes, period=3))


@pytest.mark.parametrize("recent,expected", [
    ([30, 32, 36], RSITrend.STRONGLY_BULLISH),
    ([30, 31, 33], RSITrend.BULLISH),
    ([40, 38, 34], RSITrend.STRONGLY_BEARISH),
    ([40, 39, 37], RSITrend.BEARISH),
    ([30, 32, 35, 38, 40], RSITrend.STRONGLY_BULLISH),
    ([50, 45, 40, 42, 30], RSITrend.STRONGLY_BEARISH),
    ([50, 62, 51], RSITrend.VOLATILE),
    ([50, 52, 51], RSITrend.NEUTRAL),
    ([50], RSITrend.UNKNOWN),
    ([], RSITrend.UNKNOWN),
])
def test_classify_rsi_trend(recent, expected):
    assert classify_rsi_trend(recent) == expected


def test_boundaries_are_strict():
    # change of exactly 5 is BULLISH, not STRONGLY_BULLISH
    assert classify_rsi_trend([40, 45]) == RSITrend.BULLISH
    # change of exactly 2 is NEUTRAL
    assert classify_rsi_trend([40, 42]) == RSITrend.NEUTRAL
    # range of exactly 10 is not VOLATILE
    assert classify_rsi_trend([40, 50, 41]) == RSITrend.NEUTRAL


def test_direction_beats_range():
    # net +6 with a 20-point range → directional label wins
    assert classify_rsi_trend([40, 60, 46]) == RSITrend.STRONGLY_BULLISH
