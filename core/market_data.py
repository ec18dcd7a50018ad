"""Daily quotes from Yahoo Finance via yfinance."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import List, Optional

import pandas as pd
import yfinance as yf

from core.errors import DataUnavailable, ExternalServiceError


class MarketDataProvider:
    """
    Thin yfinance wrapper. Every request uses `timeout` seconds; network and
    parsing failures surface as ExternalServiceError so the runner can
    isolate the symbol.
    """

    def __init__(self, symbol_suffix: str = ".NS", timeout: float = 10.0):
        self.symbol_suffix = symbol_suffix
        self.timeout = timeout

    def _yahoo_symbol(self, symbol: str) -> str:
        return f"{symbol}{self.symbol_suffix}"

    def _history(self, symbol: str, **kwargs) -> pd.DataFrame:
        try:
            data = yf.Ticker(self._yahoo_symbol(symbol)).history(
                interval="1d", timeout=self.timeout, **kwargs
            )
        except Exception as e:
            raise ExternalServiceError(f"{symbol}: price request failed – {e}") from e
        if data is None:
            return pd.DataFrame()
        return data[~data.index.duplicated(keep="last")]

    def get_current_price(self, symbol: str) -> Optional[float]:
        """Latest close (intraday last during market hours); None when Yahoo has nothing."""
        data = self._history(symbol, period="5d")
        if data.empty or "Close" not in data.columns:
            logging.warning("%s: no quote returned", symbol)
            return None
        closes = data["Close"].dropna()
        if closes.empty:
            return None
        return float(closes.iloc[-1])

    def get_historical_closes(self, symbol: str, lookback_days: int = 90) -> List[float]:
        """Daily closes for the last `lookback_days` calendar days, oldest first."""
        end = datetime.today() + timedelta(days=1)
        start = end - timedelta(days=lookback_days + 1)
        data = self._history(
            symbol,
            start=start.strftime("%Y-%m-%d"),
            end=end.strftime("%Y-%m-%d"),
        )
        if data.empty or "Close" not in data.columns:
            raise DataUnavailable(f"{symbol}: no price history available")
        closes = data["Close"].dropna().sort_index()
        return [float(c) for c in closes.to_numpy()]
