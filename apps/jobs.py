import logging
import os
import socket
import sys
import threading
import uuid
from datetime import datetime, timedelta
from typing import Dict, List, Optional

import pandas_market_calendars as mcal

from .alert import send
from core.broker import PaperBroker
from core.errors import DataUnavailable, TradingError
from core.market_data import MarketDataProvider
from core.settings import Settings, load_settings
from core.storage import TradeStore
from core.types import RunSummary, SymbolResult
from signals.config import StrategyConfig
from signals.engine import RunContext, process_symbol
from signals.news import process_news_file
from signals.reporting import build_portfolio_summary, format_summary, take_snapshot

# One daily run at a time: the position store is read-then-written per symbol.
# The thread lock covers this process, the store lock every process sharing
# the database (scheduler and bot listener).
_RUN_LOCK = threading.Lock()
RUN_LOCK_NAME = "daily_run"


def local_now(settings: Settings) -> datetime:
    """Current market-local wall-clock time (naive, as stored in the DB)."""
    return datetime.now(settings.tz).replace(tzinfo=None)


def is_trading_day(day, calendar_name: Optional[str] = None) -> bool:
    """Weekdays only; with a calendar name, exchange holidays are skipped too."""
    if day.weekday() >= 5:
        return False
    if calendar_name:
        cal = mcal.get_calendar(calendar_name)
        sched = cal.schedule(start_date=day, end_date=day)
        return not sched.empty
    return True


def build_context(settings: Optional[Settings] = None, cfg: Optional[StrategyConfig] = None) -> RunContext:
    """Wire collaborators for a run. Raises FatalError if the store is unreachable."""
    settings = settings or load_settings()
    store = TradeStore(settings.db_path)
    store.init_db()
    return RunContext(
        settings=settings,
        store=store,
        market=MarketDataProvider(settings.symbol_suffix, settings.request_timeout),
        broker=PaperBroker(),
        cfg=cfg or StrategyConfig(),
    )


def watchlist_for(ctx: RunContext) -> List[str]:
    """Symbols added through the bot take precedence over the configured list."""
    stored = ctx.store.get_watchlist()
    return stored if stored else list(ctx.settings.watchlist)


def run_daily_cycle(
    ctx: Optional[RunContext] = None,
    *,
    now: Optional[datetime] = None,
    stop_event: Optional[threading.Event] = None,
    notify: bool = True,
) -> Optional[RunSummary]:
    """
    Entry point for both the scheduler and manual triggers.

    Returns None when skipped (weekend / holiday / another run in flight,
    in this process or in any other process sharing the database).
    Per-symbol failures are logged and treated as HOLD; only FatalError from
    building the context escapes.
    """
    if not _RUN_LOCK.acquire(blocking=False):
        logging.warning("Daily run already in progress – skipping this trigger.")
        return None
    try:
        ctx = ctx or build_context()
        now = now or local_now(ctx.settings)

        if not is_trading_day(now.date(), ctx.settings.trading_calendar):
            logging.info("Market closed today (%s) – skipping trades.", now.strftime("%A"))
            return None

        holder = f"{socket.gethostname()}:{os.getpid()}:{uuid.uuid4().hex[:8]}"
        try:
            locked = ctx.store.acquire_run_lock(RUN_LOCK_NAME, holder)
        except TradingError as e:
            logging.error("Cannot take the run lock – skipping this trigger: %s", e)
            return None
        if not locked:
            logging.warning(
                "Daily run held by %s – skipping this trigger.",
                ctx.store.run_lock_holder(RUN_LOCK_NAME),
            )
            return None

        try:
            return _run_locked(ctx, now, stop_event, notify)
        finally:
            try:
                ctx.store.release_run_lock(RUN_LOCK_NAME, holder)
            except TradingError as e:
                logging.error("Failed to release the run lock (expires after 6h): %s", e)
    finally:
        _RUN_LOCK.release()


def _ingest_news(ctx: RunContext, now: datetime) -> None:
    try:
        process_news_file(ctx.store, ctx.settings.news_file, watchlist_for(ctx), now)
    except TradingError as e:
        logging.error("News ingestion failed – continuing with stored sentiment: %s", e)
    except Exception:
        logging.exception("News ingestion failed – continuing with stored sentiment")


def _run_locked(
    ctx: RunContext,
    now: datetime,
    stop_event: Optional[threading.Event],
    notify: bool,
) -> RunSummary:
    logging.info("Starting daily trading execution")

    if ctx.settings.news_file:
        _ingest_news(ctx, now)

    results: List[SymbolResult] = []
    prices: Dict[str, float] = {}

    for symbol in watchlist_for(ctx):
        if stop_event is not None and stop_event.is_set():
            logging.warning("Stop requested – ending run before %s", symbol)
            break
        try:
            result = process_symbol(ctx, symbol, now)
        except DataUnavailable as e:
            logging.warning("%s: %s – HOLD", symbol, e)
            result = SymbolResult(symbol=symbol, error=str(e))
        except TradingError as e:
            logging.error("%s: symbol failed – %s – HOLD", symbol, e)
            result = SymbolResult(symbol=symbol, error=str(e))
        except Exception as e:
            logging.exception("%s: unexpected failure – HOLD", symbol)
            result = SymbolResult(symbol=symbol, error=str(e))

        if result.price is not None:
            prices[result.symbol] = result.price
        results.append(result)

    # Trades are committed by now; reporting problems must not fail the run.
    try:
        summary = build_portfolio_summary(
            ctx.store, prices, ctx.settings.capital, now.date(), run_at=now, results=results
        )
    except Exception:
        logging.exception("Portfolio summary failed – reporting symbol results only")
        summary = RunSummary(run_at=now, results=results)

    logging.info(
        "Daily trading execution completed: %d symbols, %d open positions, unrealized P&L %.2f",
        len(results), len(summary.open_positions), summary.unrealized_pnl,
    )
    if notify:
        try:
            send(format_summary(summary), ctx.settings)
        except Exception:
            logging.exception("Run summary alert failed")
    return summary


def snapshot_job(ctx: Optional[RunContext] = None, now: Optional[datetime] = None) -> Dict:
    """Nightly mark-to-market snapshot of open positions."""
    ctx = ctx or build_context()
    now = now or local_now(ctx.settings)
    return take_snapshot(ctx.store, ctx.market, now)


def positions_text(ctx: RunContext) -> str:
    positions = ctx.store.list_positions(sold=False)
    if not positions:
        return "[PAPER] Position report: FLAT (no open positions)."
    lines = ["[PAPER] Open positions:"]
    for p in positions:
        lines.append(
            f"- {p.symbol}: {p.signal_strength.value} | qty={p.quantity} | "
            f"entry={p.buy_price:.2f} | stop={p.stop_loss:.2f} | target={p.target:.2f} | "
            f"since {p.buy_date:%Y-%m-%d}"
        )
    return "\n".join(lines)


def trades_text(ctx: RunContext, days: int = 1, now: Optional[datetime] = None) -> str:
    now = now or local_now(ctx.settings)
    start = datetime.combine(now.date() - timedelta(days=days - 1), datetime.min.time())
    trades = ctx.store.trades_between(start, now + timedelta(seconds=1))
    if not trades:
        return f"No trades in the last {days} day(s)."
    lines = [f"Trades (last {days} day(s)):"]
    for t in trades:
        line = f"- {t.timestamp:%Y-%m-%d %H:%M} {t.action} {t.symbol} x{t.quantity} @ {t.price:.2f}"
        if t.exit_reason:
            line += f" | {t.exit_reason.value} | P&L {t.profit_loss:.2f} ({t.profit_loss_percent:.2f}%)"
        lines.append(line)
    return "\n".join(lines)


def summary_text(ctx: RunContext, now: Optional[datetime] = None) -> str:
    now = now or local_now(ctx.settings)
    prices: Dict[str, float] = {}
    for pos in ctx.store.list_positions(sold=False):
        try:
            price = ctx.market.get_current_price(pos.symbol)
        except TradingError as e:
            logging.warning("%s: price unavailable for summary – %s", pos.symbol, e)
            continue
        if price is not None:
            prices[pos.symbol] = price
    summary = build_portfolio_summary(ctx.store, prices, ctx.settings.capital, now.date(), run_at=now)
    return format_summary(summary)


HELP_TEXT = (
    "Available Commands:\n\n"
    "/run             – Run the daily paper-trading cycle now.\n"
    "/positions       – Show open paper positions.\n"
    "/trades [DAYS]   – Show recent trades (default: today).\n"
    "/summary         – Unrealized P&L, capital utilization, today's trades.\n"
    "/add SYMBOL      – Add a symbol to the watchlist.\n"
    "/remove SYMBOL   – Remove a symbol from the watchlist.\n"
    "/watchlist       – Show the current watchlist.\n"
    "/help            – Show this message.\n\n"
    "Note: paper trading only, not investment advice."
)


def _cli():
    job = sys.argv[1] if len(sys.argv) > 1 else None

    if job == "run":
        run_daily_cycle()
    elif job == "snapshot":
        snapshot_job()
    elif job == "positions":
        print(positions_text(build_context()))
    elif job == "trades":
        days = int(sys.argv[2]) if len(sys.argv) > 2 else 1
        print(trades_text(build_context(), days))
    elif job == "summary":
        print(summary_text(build_context()))
    elif job == "ingest":
        ctx = build_context()
        n = process_news_file(
            ctx.store, ctx.settings.news_file, watchlist_for(ctx), local_now(ctx.settings)
        )
        print(f"Stored {n} news items.")
    else:
        print("Usage: jobs.py [run|snapshot|positions|trades [DAYS]|summary|ingest]")


if __name__ == "__main__":
    from core.logging import configure_logging

    configure_logging(load_settings().log_file)
    _cli()
