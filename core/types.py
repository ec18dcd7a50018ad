"""Core data types shared by the signal engine, storage and jobs."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional


class Signal(str, Enum):
    STRONG_BUY = "STRONG_BUY"
    BUY = "BUY"
    HOLD = "HOLD"
    SELL = "SELL"
    STRONG_SELL = "STRONG_SELL"

    @property
    def is_buy(self) -> bool:
        return self in (Signal.BUY, Signal.STRONG_BUY)

    @property
    def is_sell(self) -> bool:
        return self in (Signal.SELL, Signal.STRONG_SELL)


class RSITrend(str, Enum):
    STRONGLY_BULLISH = "STRONGLY_BULLISH"
    BULLISH = "BULLISH"
    NEUTRAL = "NEUTRAL"
    VOLATILE = "VOLATILE"
    BEARISH = "BEARISH"
    STRONGLY_BEARISH = "STRONGLY_BEARISH"
    UNKNOWN = "UNKNOWN"

    @property
    def is_bullish(self) -> bool:
        return self in (RSITrend.BULLISH, RSITrend.STRONGLY_BULLISH)

    @property
    def is_bearish(self) -> bool:
        return self in (RSITrend.BEARISH, RSITrend.STRONGLY_BEARISH)


class SentimentTrend(str, Enum):
    IMPROVING = "IMPROVING"
    DETERIORATING = "DETERIORATING"
    NEUTRAL = "NEUTRAL"


class ExitReason(str, Enum):
    STOP_LOSS = "STOP_LOSS"
    TARGET_HIT = "TARGET_HIT"
    STRATEGY = "STRATEGY"
    STRATEGY_NEWS = "STRATEGY_NEWS"


@dataclass(frozen=True)
class SentimentReading:
    """Today's average sentiment and news count, plus the day-over-day trend."""
    avg_sentiment: float = 0.0
    news_count: int = 0
    trend: SentimentTrend = SentimentTrend.NEUTRAL


@dataclass(frozen=True)
class SignalSnapshot:
    """Everything the decision was based on, kept for trade records."""
    signal: Signal
    rsi: Optional[float] = None
    rsi_trend: RSITrend = RSITrend.UNKNOWN
    sentiment: SentimentReading = field(default_factory=SentimentReading)

    @classmethod
    def hold(cls) -> "SignalSnapshot":
        return cls(signal=Signal.HOLD)


@dataclass
class Position:
    """Simulated holding. Unsold positions are unique per symbol."""
    symbol: str
    buy_price: float
    quantity: int
    buy_date: datetime
    stop_loss: float
    target: float
    signal_strength: Signal
    sold: bool = False
    sell_price: Optional[float] = None
    sell_date: Optional[datetime] = None
    exit_reason: Optional[ExitReason] = None
    profit_loss: Optional[float] = None
    id: Optional[int] = None

    def unrealized_pnl(self, current_price: float) -> float:
        return (current_price - self.buy_price) * self.quantity

    def pnl_percent(self, current_price: float) -> float:
        return (current_price / self.buy_price - 1.0) * 100.0

    @property
    def capital_used(self) -> float:
        return self.buy_price * self.quantity


@dataclass(frozen=True)
class Trade:
    """Append-only ledger row for a BUY (entry) or SELL (exit)."""
    symbol: str
    action: str
    price: float
    quantity: int
    news_sentiment: float
    capital_used: float
    signal_strength: Signal
    timestamp: datetime
    exit_reason: Optional[ExitReason] = None
    rsi_at_entry: Optional[float] = None
    profit_loss: Optional[float] = None
    profit_loss_percent: Optional[float] = None
    id: Optional[int] = None


@dataclass(frozen=True)
class OrderRequest:
    symbol: str
    side: str
    quantity: int
    order_type: str = "MARKET"
    product: str = "MIS"
    exchange: str = "NSE"


@dataclass(frozen=True)
class OrderAck:
    order_id: str
    request: OrderRequest
    placed_at: datetime


@dataclass
class SymbolResult:
    """Outcome of one symbol in a daily run."""
    symbol: str
    price: Optional[float] = None
    signal: Signal = Signal.HOLD
    exit_reason: Optional[ExitReason] = None
    entered: bool = False
    skipped_reason: Optional[str] = None
    error: Optional[str] = None


@dataclass
class RunSummary:
    run_at: datetime
    results: List[SymbolResult] = field(default_factory=list)
    open_positions: List[Position] = field(default_factory=list)
    unrealized_pnl: float = 0.0
    capital_deployed: float = 0.0
    capital_utilization_pct: float = 0.0
    trades_today: List[Trade] = field(default_factory=list)
