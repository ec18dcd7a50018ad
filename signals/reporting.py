"""Read-only portfolio views: run summary, alert text, nightly snapshot."""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Dict, List, Optional

from core.errors import TradingError
from core.sentiment import day_window
from core.types import Position, RunSummary, SymbolResult


def build_portfolio_summary(
    store,
    prices: Dict[str, float],
    capital: float,
    day: date,
    run_at: Optional[datetime] = None,
    results: Optional[List[SymbolResult]] = None,
) -> RunSummary:
    """
    Aggregate unrealized P&L, deployed capital and today's trades.

    Open positions without a fresh price in `prices` are valued at their buy
    price (zero unrealized P&L).
    """
    open_positions = store.list_positions(sold=False)

    unrealized = 0.0
    deployed = 0.0
    for pos in open_positions:
        price = prices.get(pos.symbol, pos.buy_price)
        unrealized += pos.unrealized_pnl(price)
        deployed += pos.capital_used

    start, end = day_window(day)
    return RunSummary(
        run_at=run_at or datetime.combine(day, datetime.min.time()),
        results=list(results or []),
        open_positions=open_positions,
        unrealized_pnl=unrealized,
        capital_deployed=deployed,
        capital_utilization_pct=(deployed / capital * 100.0) if capital > 0 else 0.0,
        trades_today=store.trades_between(start, end),
    )


def format_summary(summary: RunSummary) -> str:
    lines = [f"[PAPER] Daily run {summary.run_at:%Y-%m-%d %H:%M}"]

    for r in summary.results:
        if r.error:
            lines.append(f"- {r.symbol}: HOLD (error: {r.error})")
        elif r.skipped_reason:
            lines.append(f"- {r.symbol}: skipped ({r.skipped_reason})")
        else:
            extra = ""
            if r.exit_reason:
                extra += f" | exit {r.exit_reason.value}"
            if r.entered:
                extra += " | entered"
            price = f"{r.price:.2f}" if r.price is not None else "n/a"
            lines.append(f"- {r.symbol}: {r.signal.value} @ {price}{extra}")

    lines.append("")
    if not summary.open_positions:
        lines.append("Positions: FLAT")
    else:
        lines.append(f"Open positions: {len(summary.open_positions)}")
        for p in summary.open_positions:
            lines.append(
                f"  {p.symbol}: {p.quantity} @ {p.buy_price:.2f} | "
                f"stop={p.stop_loss:.2f} | target={p.target:.2f}"
            )
    lines.append(f"Unrealized P&L: {summary.unrealized_pnl:.2f}")
    lines.append(
        f"Capital deployed: {summary.capital_deployed:.2f} "
        f"({summary.capital_utilization_pct:.1f}%)"
    )

    lines.append(f"Trades today: {len(summary.trades_today)}")
    for t in summary.trades_today:
        detail = f"  {t.timestamp:%H:%M} {t.action} {t.symbol} x{t.quantity} @ {t.price:.2f}"
        if t.exit_reason:
            detail += f" ({t.exit_reason.value}, P&L {t.profit_loss:.2f})"
        lines.append(detail)
    return "\n".join(lines)


def take_snapshot(store, market, as_of: datetime) -> Dict:
    """
    Mark open positions to market and store the totals.

    Symbols whose price cannot be fetched are valued at buy price.
    """
    holdings = []
    total_value = 0.0
    total_pnl = 0.0
    positions: List[Position] = store.list_positions(sold=False)

    for pos in positions:
        try:
            price = market.get_current_price(pos.symbol)
        except TradingError as e:
            logging.warning("%s: snapshot price unavailable – %s", pos.symbol, e)
            price = None
        if price is None:
            price = pos.buy_price

        pnl = pos.unrealized_pnl(price)
        total_value += price * pos.quantity
        total_pnl += pnl
        holdings.append({"symbol": pos.symbol, "quantity": pos.quantity, "price": price, "pnl": pnl})

    store.save_snapshot(as_of, total_value, total_pnl, holdings)
    return {"ts": as_of, "total_value": total_value, "total_pnl": total_pnl, "holdings": holdings}
