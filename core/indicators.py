from typing import List, Sequence

import numpy as np

from core.errors import DataUnavailable
from core.types import RSITrend


def compute_rsi(closes: Sequence[float], period: int = 14) -> List[float]:
    """
    Wilder RSI over a close series (oldest first).

    The first average gain/loss is the simple mean of the first `period`
    changes; later values use Wilder smoothing. Returns one value per close
    after the seed window, i.e. len(closes) - period values.
    """
    values = np.asarray(closes, dtype=float)
    if values.size < period:
        raise DataUnavailable(f"Not enough data points ({values.size}) for RSI({period})")

    deltas = np.diff(values)
    if deltas.size < period:
        return []

    gains = np.clip(deltas, 0, None)
    losses = np.clip(-deltas, 0, None)

    avg_gain = float(gains[:period].mean())
    avg_loss = float(losses[:period].mean())
    rsi = [_rsi_value(avg_gain, avg_loss)]

    for gain, loss in zip(gains[period:], losses[period:]):
        avg_gain = (avg_gain * (period - 1) + gain) / period
        avg_loss = (avg_loss * (period - 1) + loss) / period
        rsi.append(_rsi_value(avg_gain, avg_loss))

    return rsi


def _rsi_value(avg_gain: float, avg_loss: float) -> float:
    if avg_loss == 0:
        return 50.0 if avg_gain == 0 else 100.0
    rs = avg_gain / avg_loss
    return float(np.clip(100.0 - 100.0 / (1.0 + rs), 0.0, 100.0))


def classify_rsi_trend(recent: Sequence[float]) -> RSITrend:
    """
    Label the direction of the last few RSI readings.

    Net change wins over range: a series with both a moderate net move and a
    wide range gets the directional label, not VOLATILE.
    """
    if len(recent) < 2:
        return RSITrend.UNKNOWN

    change = recent[-1] - recent[0]
    if change > 5:
        return RSITrend.STRONGLY_BULLISH
    if change > 2:
        return RSITrend.BULLISH
    if change < -5:
        return RSITrend.STRONGLY_BEARISH
    if change < -2:
        return RSITrend.BEARISH
    if max(recent) - min(recent) > 10:
        return RSITrend.VOLATILE
    return RSITrend.NEUTRAL
