from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from typing import Optional, Tuple

from core.broker import PaperBroker
from core.errors import DataUnavailable, InsufficientData, InvalidInput, TradingError
from core.indicators import classify_rsi_trend, compute_rsi
from core.market_data import MarketDataProvider
from core.risk import risk_bands, size_position
from core.sentiment import get_sentiment
from core.settings import Settings
from core.storage import TradeStore
from core.types import (
    ExitReason,
    OrderRequest,
    Position,
    Signal,
    SignalSnapshot,
    SymbolResult,
    Trade,
)
from signals.config import StrategyConfig
from signals.decision import decide

_SYMBOL_RE = re.compile(r"^[A-Z0-9][A-Z0-9&\-.]{0,19}$")


@dataclass
class RunContext:
    """Collaborators for one daily run. Built at run start, dropped at run end."""
    settings: Settings
    store: TradeStore
    market: MarketDataProvider
    broker: PaperBroker
    cfg: StrategyConfig = field(default_factory=StrategyConfig)


def normalize_symbol(symbol) -> str:
    if not isinstance(symbol, str):
        raise InvalidInput(f"symbol must be a string, got {symbol!r}")
    cleaned = symbol.strip().upper()
    if not _SYMBOL_RE.match(cleaned):
        raise InvalidInput(f"malformed symbol '{symbol}'")
    return cleaned


def _validate_price(symbol: str, price) -> float:
    try:
        value = float(price)
    except (TypeError, ValueError):
        raise InvalidInput(f"{symbol}: non-numeric price {price!r}")
    if math.isnan(value) or value <= 0:
        raise InvalidInput(f"{symbol}: invalid price {price!r}")
    return value


# ── signal ─────────────────────────────────────────────────────────────────────

def evaluate_symbol(ctx: RunContext, symbol: str, as_of: date) -> SignalSnapshot:
    """
    RSI trend + news sentiment → Signal.

    Never raises: missing data or any other failure degrades to HOLD.
    """
    cfg = ctx.cfg
    try:
        closes = ctx.market.get_historical_closes(symbol, cfg.rsi_lookback_days)
        rsi_series = compute_rsi(closes, cfg.rsi_period)
        if len(rsi_series) < cfg.min_rsi_points:
            raise InsufficientData(
                f"Insufficient RSI data available for {symbol} ({len(rsi_series)} points)"
            )

        current_rsi = rsi_series[-1]
        rsi_trend = classify_rsi_trend(rsi_series[-cfg.trend_window:])
        sentiment = get_sentiment(ctx.store, symbol, as_of, cfg.sentiment_trend_delta)
        signal = decide(current_rsi, rsi_trend, sentiment, cfg)

    except DataUnavailable as e:
        logging.warning("%s: %s – HOLD", symbol, e)
        return SignalSnapshot.hold()
    except TradingError as e:
        logging.error("%s: evaluation failed – %s – HOLD", symbol, e)
        return SignalSnapshot.hold()
    except Exception:
        logging.exception("%s: unexpected evaluation error – HOLD", symbol)
        return SignalSnapshot.hold()

    logging.info(
        "%s signal for %s (RSI: %.2f %s, Sentiment: %.2f over %d items, %s)",
        signal.value, symbol, current_rsi, rsi_trend.value,
        sentiment.avg_sentiment, sentiment.news_count, sentiment.trend.value,
    )
    return SignalSnapshot(signal=signal, rsi=current_rsi, rsi_trend=rsi_trend, sentiment=sentiment)


# ── exits ──────────────────────────────────────────────────────────────────────

def apply_breakeven_ratchet(position: Position, price: float, cfg: StrategyConfig = StrategyConfig()) -> bool:
    """Raise the stop to the buy price once in enough profit. Returns True if it moved."""
    if price > position.buy_price * cfg.breakeven_trigger and position.stop_loss < position.buy_price:
        position.stop_loss = max(position.stop_loss, position.buy_price)
        return True
    return False


def exit_reason_for(
    position: Position,
    price: float,
    signal: Signal,
    sentiment_value: float,
    cfg: StrategyConfig = StrategyConfig(),
) -> Optional[ExitReason]:
    """Stop-loss, then target, then a sell signal; first match wins."""
    if price <= position.stop_loss:
        return ExitReason.STOP_LOSS
    if price >= position.target:
        return ExitReason.TARGET_HIT
    if signal == Signal.SELL:
        if sentiment_value < cfg.sell_news_exit_sentiment:
            return ExitReason.STRATEGY_NEWS
        return ExitReason.STRATEGY
    if signal == Signal.STRONG_SELL:
        if sentiment_value < cfg.strong_sell_news_exit_sentiment:
            return ExitReason.STRATEGY_NEWS
        return ExitReason.STRATEGY
    return None


def handle_existing_position(
    ctx: RunContext,
    position: Position,
    price: float,
    snapshot: SignalSnapshot,
    now: datetime,
) -> Optional[ExitReason]:
    """
    Ratchet the stop, then exit if a rule fires.

    The sell order goes out before anything is written; if it fails the
    position stays open for the next run.
    """
    symbol = position.symbol
    logging.info(
        "%s position: %d @ %.2f, P&L: %.2f%%",
        symbol, position.quantity, position.buy_price, position.pnl_percent(price),
    )

    if apply_breakeven_ratchet(position, price, ctx.cfg):
        ctx.store.save_position(position)
        logging.info("%s: stop loss moved to breakeven (%.2f)", symbol, position.stop_loss)

    reason = exit_reason_for(
        position, price, snapshot.signal, snapshot.sentiment.avg_sentiment, ctx.cfg
    )
    if reason is None:
        return None

    ctx.broker.place_order(OrderRequest(
        symbol=symbol,
        side="SELL",
        quantity=position.quantity,
        exchange=ctx.settings.exchange,
        product=ctx.settings.product,
    ))

    profit_loss = position.unrealized_pnl(price)
    profit_loss_pct = position.pnl_percent(price)

    closed = replace(
        position,
        sold=True,
        sell_price=price,
        sell_date=now,
        exit_reason=reason,
        profit_loss=profit_loss,
    )
    trade = Trade(
        symbol=symbol,
        action="SELL",
        price=price,
        quantity=position.quantity,
        exit_reason=reason,
        rsi_at_entry=snapshot.rsi,
        news_sentiment=snapshot.sentiment.avg_sentiment,
        capital_used=position.capital_used,
        profit_loss=profit_loss,
        profit_loss_percent=profit_loss_pct,
        signal_strength=snapshot.signal,
        timestamp=now,
    )
    ctx.store.close_position_with_trade(closed, trade)

    logging.info("Exited %s position: %s, P&L: %.2f (%.2f%%)", symbol, reason.value, profit_loss, profit_loss_pct)
    return reason


# ── entries ────────────────────────────────────────────────────────────────────

def position_multiplier(signal: Signal, cfg: StrategyConfig = StrategyConfig()) -> float:
    if signal == Signal.STRONG_BUY:
        return cfg.strong_buy_multiplier
    if signal == Signal.BUY:
        return cfg.buy_multiplier
    raise InvalidInput(f"no position size for signal {signal.value}")


def entry_bands(price: float, signal: Signal, cfg: StrategyConfig = StrategyConfig()) -> Tuple[float, float]:
    """(stop_loss, target) for a new entry; STRONG_BUY gets a tighter stop and higher target."""
    if signal == Signal.STRONG_BUY:
        return risk_bands(price, cfg.strong_buy_stop_loss_pct, cfg.strong_buy_target_pct)
    if signal == Signal.BUY:
        return risk_bands(price, cfg.buy_stop_loss_pct, cfg.buy_target_pct)
    raise InvalidInput(f"no risk bands for signal {signal.value}")


def entry_suppressed(signal: Signal, sentiment_value: float, cfg: StrategyConfig = StrategyConfig()) -> bool:
    """Very negative news vetoes a buy signal."""
    if signal == Signal.STRONG_BUY:
        return sentiment_value < cfg.strong_buy_suppress_sentiment
    if signal == Signal.BUY:
        return sentiment_value < cfg.buy_suppress_sentiment
    return False


def check_for_entry(
    ctx: RunContext,
    symbol: str,
    price: float,
    snapshot: SignalSnapshot,
    now: datetime,
) -> Optional[Position]:
    """Open a position on BUY / STRONG_BUY when none is open. Returns the new position."""
    if ctx.store.find_open_position(symbol) is not None:
        logging.debug("Already have position in %s. Skipping buy check.", symbol)
        return None

    signal = snapshot.signal
    if not signal.is_buy:
        return None

    sentiment_value = snapshot.sentiment.avg_sentiment
    if entry_suppressed(signal, sentiment_value, ctx.cfg):
        logging.info(
            "%s: %s suppressed by negative news sentiment (%.2f)", symbol, signal.value, sentiment_value
        )
        return None

    quantity = size_position(
        price,
        ctx.settings.capital,
        ctx.settings.risk_percent,
        position_multiplier(signal, ctx.cfg),
    )
    if quantity <= 0:
        logging.info("%s buy signal, but quantity would be 0. Skipping.", symbol)
        return None

    ctx.broker.place_order(OrderRequest(
        symbol=symbol,
        side="BUY",
        quantity=quantity,
        exchange=ctx.settings.exchange,
        product=ctx.settings.product,
    ))

    stop_loss, target = entry_bands(price, signal, ctx.cfg)
    position = Position(
        symbol=symbol,
        buy_price=price,
        quantity=quantity,
        buy_date=now,
        stop_loss=stop_loss,
        target=target,
        signal_strength=signal,
    )
    trade = Trade(
        symbol=symbol,
        action="BUY",
        price=price,
        quantity=quantity,
        rsi_at_entry=snapshot.rsi,
        news_sentiment=sentiment_value,
        capital_used=price * quantity,
        signal_strength=signal,
        timestamp=now,
    )
    ctx.store.open_position_with_trade(position, trade)

    logging.info(
        "Entered %s position: %d shares @ %.2f (stop %.2f, target %.2f, %s)",
        symbol, quantity, price, stop_loss, target, signal.value,
    )
    return position


# ── per-symbol cycle ───────────────────────────────────────────────────────────

def process_symbol(ctx: RunContext, symbol: str, now: datetime) -> SymbolResult:
    """
    One symbol of the daily run:
      1) current price (skip when unavailable)
      2) RSI + sentiment → Signal
      3) exit check on the open position
      4) entry check when no position is open

    TradingErrors propagate to the runner, which isolates them.
    """
    symbol = normalize_symbol(symbol)
    logging.info("Processing %s", symbol)

    raw_price = ctx.market.get_current_price(symbol)
    if raw_price is None:
        logging.warning("Unable to get price for %s. Skipping.", symbol)
        return SymbolResult(symbol=symbol, skipped_reason="no price")
    price = _validate_price(symbol, raw_price)

    snapshot = evaluate_symbol(ctx, symbol, now.date())
    result = SymbolResult(symbol=symbol, price=price, signal=snapshot.signal)

    position = ctx.store.find_open_position(symbol)
    if position is not None:
        result.exit_reason = handle_existing_position(ctx, position, price, snapshot, now)

    result.entered = check_for_entry(ctx, symbol, price, snapshot, now) is not None
    return result
