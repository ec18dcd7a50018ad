"""Daily news-sentiment aggregation per symbol."""

from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta
from typing import Tuple

from core.types import SentimentReading, SentimentTrend

TREND_DELTA = 0.3


def day_window(day: date) -> Tuple[datetime, datetime]:
    """[day 00:00, next day 00:00)"""
    start = datetime.combine(day, time.min)
    return start, start + timedelta(days=1)


def sentiment_trend(today_avg: float, yesterday_avg: float, delta: float = TREND_DELTA) -> SentimentTrend:
    if today_avg > yesterday_avg + delta:
        return SentimentTrend.IMPROVING
    if today_avg < yesterday_avg - delta:
        return SentimentTrend.DETERIORATING
    return SentimentTrend.NEUTRAL


def get_sentiment(store, symbol: str, as_of: date, delta: float = TREND_DELTA) -> SentimentReading:
    """
    Average sentiment and headline count for `symbol` on `as_of`, with the
    trend against the previous day. Empty windows count as 0 / 0.
    """
    today_start, today_end = day_window(as_of)
    yesterday_start, _ = day_window(as_of - timedelta(days=1))

    today_avg, today_count = store.sentiment_window(symbol, today_start, today_end)
    yesterday_avg, _ = store.sentiment_window(symbol, yesterday_start, today_start)

    today_avg = float(today_avg or 0.0)
    yesterday_avg = float(yesterday_avg or 0.0)
    trend = sentiment_trend(today_avg, yesterday_avg, delta)

    logging.debug(
        "%s sentiment: today=%.2f (%d items), yesterday=%.2f → %s",
        symbol, today_avg, today_count or 0, yesterday_avg, trend.value,
    )
    return SentimentReading(avg_sentiment=today_avg, news_count=int(today_count or 0), trend=trend)
