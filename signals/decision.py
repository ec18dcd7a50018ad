"""
Ordered rule table fusing the RSI state with the news-sentiment state.

Conditions overlap, so rules are checked in a fixed order and the first match
wins:

  1. STRONG_BUY   strongly oversold + strong bullish news + bullish RSI trend
  2. BUY          oversold + (bullish news or improving sentiment)
  3. STRONG_SELL  strongly overbought + strong bearish news + bearish RSI trend
  4. SELL         overbought + (bearish news or deteriorating sentiment)
  5. BUY          strongly bullish RSI trend + improving sentiment + heavy news
  6. SELL         strongly bearish RSI trend + deteriorating sentiment + heavy news
  7. HOLD

Rules 1–4 need `min_news_count` headlines today; 5–6 need
`high_volume_news_count`.
"""
from __future__ import annotations

from core.types import RSITrend, SentimentReading, SentimentTrend, Signal
from signals.config import StrategyConfig


def decide(
    rsi_value: float,
    rsi_trend: RSITrend,
    sentiment: SentimentReading,
    cfg: StrategyConfig = StrategyConfig(),
) -> Signal:
    """Pure: same inputs always give the same signal."""
    strongly_oversold = rsi_value < cfg.strongly_oversold
    oversold = rsi_value < cfg.oversold
    strongly_overbought = rsi_value > cfg.strongly_overbought
    overbought = rsi_value > cfg.overbought

    value = sentiment.avg_sentiment
    strong_bullish = value > cfg.strong_bullish_sentiment
    bullish = value > cfg.bullish_sentiment
    strong_bearish = value < cfg.strong_bearish_sentiment
    bearish = value < cfg.bearish_sentiment

    sufficient_news = sentiment.news_count >= cfg.min_news_count
    high_volume_news = sentiment.news_count >= cfg.high_volume_news_count

    improving = sentiment.trend == SentimentTrend.IMPROVING
    deteriorating = sentiment.trend == SentimentTrend.DETERIORATING

    if strongly_oversold and strong_bullish and sufficient_news and rsi_trend.is_bullish:
        return Signal.STRONG_BUY

    if oversold and sufficient_news and (bullish or improving):
        return Signal.BUY

    if strongly_overbought and strong_bearish and sufficient_news and rsi_trend.is_bearish:
        return Signal.STRONG_SELL

    if overbought and sufficient_news and (bearish or deteriorating):
        return Signal.SELL

    # Trend confirmation, independent of the RSI level
    if rsi_trend == RSITrend.STRONGLY_BULLISH and improving and high_volume_news:
        return Signal.BUY

    if rsi_trend == RSITrend.STRONGLY_BEARISH and deteriorating and high_volume_news:
        return Signal.SELL

    return Signal.HOLD
