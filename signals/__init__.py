"""
signals package

RSI + news-sentiment paper-trading strategy:
- Strategy thresholds (StrategyConfig)
- Ordered decision rules fusing RSI state with news sentiment
- Per-symbol position lifecycle (entry, breakeven stop, exits)
- Headline ingestion and portfolio reporting
"""
