from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class StrategyConfig:

    """
    RSI + news-sentiment strategy configuration.

    Key design:
      - RSI levels classify the indicator state (oversold / overbought).
      - Average news sentiment in [-1, 1] classifies the news state.
      - A symbol needs at least `min_news_count` headlines today before any
        level-based rule may fire; the trend-confirmation rules need
        `high_volume_news_count`.

    These defaults are the canonical threshold set. Earlier draft variants
    with diverging thresholds are not supported.
    """

    # ------------------------------------------------------------------
    # Indicator
    # ------------------------------------------------------------------
    rsi_period: int = 14
    rsi_lookback_days: int = 90      # calendar days of closes fetched for RSI
    trend_window: int = 5            # last N RSI values used for the trend
    min_rsi_points: int = 3

    # RSI levels
    strongly_oversold: float = 25.0
    oversold: float = 30.0
    overbought: float = 70.0
    strongly_overbought: float = 75.0

    # ------------------------------------------------------------------
    # Sentiment
    # ------------------------------------------------------------------
    strong_bullish_sentiment: float = 0.5
    bullish_sentiment: float = 0.2
    bearish_sentiment: float = -0.2
    strong_bearish_sentiment: float = -0.5
    sentiment_trend_delta: float = 0.3

    min_news_count: int = 3
    high_volume_news_count: int = 5

    # ------------------------------------------------------------------
    # Position lifecycle
    # ------------------------------------------------------------------
    buy_multiplier: float = 1.0
    strong_buy_multiplier: float = 1.5

    buy_stop_loss_pct: float = 0.95
    buy_target_pct: float = 1.10
    strong_buy_stop_loss_pct: float = 0.96
    strong_buy_target_pct: float = 1.12

    # Move the stop to breakeven once price trades above buy_price * trigger
    breakeven_trigger: float = 1.03

    # Exit on a sell signal is labelled STRATEGY_NEWS below these
    sell_news_exit_sentiment: float = -0.5
    strong_sell_news_exit_sentiment: float = -0.8

    # Buy signals are ignored below these
    buy_suppress_sentiment: float = -0.8
    strong_buy_suppress_sentiment: float = -0.9

    def __post_init__(self) -> None:
        errors = []

        # --- Indicator ---
        if self.rsi_period < 2:
            errors.append(f"rsi_period must be >= 2, got {self.rsi_period}")
        if self.rsi_lookback_days < self.rsi_period:
            errors.append(
                f"rsi_lookback_days ({self.rsi_lookback_days}) must be >= rsi_period ({self.rsi_period})"
            )
        if self.trend_window < 2:
            errors.append(f"trend_window must be >= 2, got {self.trend_window}")
        if self.min_rsi_points < 1:
            errors.append(f"min_rsi_points must be >= 1, got {self.min_rsi_points}")

        # --- RSI levels ---
        if not (0.0 < self.strongly_oversold <= self.oversold < self.overbought
                <= self.strongly_overbought < 100.0):
            errors.append(
                "RSI levels must satisfy 0 < strongly_oversold <= oversold < overbought "
                f"<= strongly_overbought < 100, got {self.strongly_oversold}/{self.oversold}/"
                f"{self.overbought}/{self.strongly_overbought}"
            )

        # --- Sentiment levels ---
        if not (-1.0 <= self.strong_bearish_sentiment <= self.bearish_sentiment < 0.0
                < self.bullish_sentiment <= self.strong_bullish_sentiment <= 1.0):
            errors.append(
                "sentiment levels must satisfy -1 <= strong_bearish <= bearish < 0 < bullish "
                "<= strong_bullish <= 1"
            )
        if self.sentiment_trend_delta < 0:
            errors.append(f"sentiment_trend_delta must be >= 0, got {self.sentiment_trend_delta}")

        if self.min_news_count < 0:
            errors.append(f"min_news_count must be >= 0, got {self.min_news_count}")
        if self.high_volume_news_count < self.min_news_count:
            errors.append(
                f"high_volume_news_count ({self.high_volume_news_count}) must be >= "
                f"min_news_count ({self.min_news_count})"
            )

        # --- Sizing ---
        if self.buy_multiplier <= 0:
            errors.append(f"buy_multiplier must be > 0, got {self.buy_multiplier}")
        if self.strong_buy_multiplier < self.buy_multiplier:
            errors.append(
                f"strong_buy_multiplier ({self.strong_buy_multiplier}) must be >= "
                f"buy_multiplier ({self.buy_multiplier})"
            )

        # --- Risk bands ---
        for name in ("buy_stop_loss_pct", "strong_buy_stop_loss_pct"):
            value = getattr(self, name)
            if not (0.0 < value < 1.0):
                errors.append(f"{name} must be in (0, 1), got {value}")
        for name in ("buy_target_pct", "strong_buy_target_pct", "breakeven_trigger"):
            value = getattr(self, name)
            if value <= 1.0:
                errors.append(f"{name} must be > 1, got {value}")

        # --- Sentiment gates ---
        for name in (
            "sell_news_exit_sentiment",
            "strong_sell_news_exit_sentiment",
            "buy_suppress_sentiment",
            "strong_buy_suppress_sentiment",
        ):
            value = getattr(self, name)
            if not (-1.0 <= value <= 0.0):
                errors.append(f"{name} must be in [-1, 0], got {value}")

        if errors:
            raise ValueError(
                "Invalid StrategyConfig:\n" + "\n".join(f"  • {e}" for e in errors)
            )
