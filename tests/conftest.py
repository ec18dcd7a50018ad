"""
conftest.py – shared fixtures.

Tests never touch the network: market data comes from FakeMarketData and
orders go to the in-memory PaperBroker. Each test gets a fresh SQLite file
under tmp_path.
"""
from datetime import datetime

import pytest

from core.broker import PaperBroker
from core.errors import DataUnavailable, OrderError
from core.settings import Settings
from core.storage import TradeStore
from signals.config import StrategyConfig
from signals.engine import RunContext

# Monday
RUN_AT = datetime(2024, 1, 8, 9, 15)


class FakeMarketData:
    """Prices and close histories served from dicts."""

    def __init__(self, prices=None, closes=None):
        self.prices = dict(prices or {})
        self.closes = dict(closes or {})

    def get_current_price(self, symbol):
        return self.prices.get(symbol)

    def get_historical_closes(self, symbol, lookback_days=90):
        if symbol not in self.closes:
            raise DataUnavailable(f"{symbol}: no price history available")
        return list(self.closes[symbol])


class FailingBroker(PaperBroker):
    def place_order(self, order):
        raise OrderError(f"{order.symbol}: broker unavailable")


@pytest.fixture
def store(tmp_path):
    s = TradeStore(tmp_path / "bot.db")
    s.init_db()
    return s


@pytest.fixture
def settings(tmp_path):
    return Settings(
        capital=100_000.0,
        risk_percent=2.0,
        watchlist=("AAA", "BBB"),
        db_path=str(tmp_path / "bot.db"),
        news_file=None,
    )


@pytest.fixture
def market():
    return FakeMarketData()


@pytest.fixture
def ctx(settings, store, market):
    return RunContext(
        settings=settings,
        store=store,
        market=market,
        broker=PaperBroker(),
        cfg=StrategyConfig(),
    )
