# core/storage.py
import json
import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timedelta
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Tuple

from core.errors import ExternalServiceError, FatalError
from core.types import ExitReason, Position, Signal, Trade

_SCHEMA = """
CREATE TABLE IF NOT EXISTS positions (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  symbol TEXT NOT NULL,
  buy_price REAL NOT NULL,
  quantity INTEGER NOT NULL,
  buy_date TEXT NOT NULL,
  stop_loss REAL NOT NULL,
  target REAL NOT NULL,
  signal_strength TEXT NOT NULL,
  sold INTEGER NOT NULL DEFAULT 0,
  sell_price REAL,
  sell_date TEXT,
  exit_reason TEXT,
  profit_loss REAL
);

-- at most one unsold position per symbol
CREATE UNIQUE INDEX IF NOT EXISTS ux_positions_open
  ON positions(symbol) WHERE sold = 0;

CREATE TABLE IF NOT EXISTS trades (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  ts TEXT NOT NULL,
  symbol TEXT NOT NULL,
  action TEXT NOT NULL,
  price REAL NOT NULL,
  quantity INTEGER NOT NULL,
  exit_reason TEXT,
  rsi_at_entry REAL,
  news_sentiment REAL,
  capital_used REAL,
  profit_loss REAL,
  profit_loss_percent REAL,
  signal_strength TEXT
);

CREATE TABLE IF NOT EXISTS news (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  ts TEXT NOT NULL,
  symbol TEXT,
  headline TEXT NOT NULL,
  sentiment REAL NOT NULL
);

CREATE INDEX IF NOT EXISTS ix_news_symbol_ts ON news(symbol, ts);

CREATE TABLE IF NOT EXISTS watchlist (
  symbol TEXT PRIMARY KEY,
  added_at TEXT
);

CREATE TABLE IF NOT EXISTS portfolio_snapshots (
  ts TEXT PRIMARY KEY,
  total_value REAL,
  total_pnl REAL,
  holdings_json TEXT
);

-- one row per held lock; shared by every process using this database
CREATE TABLE IF NOT EXISTS run_locks (
  name TEXT PRIMARY KEY,
  holder TEXT NOT NULL,
  acquired_at TEXT NOT NULL
);
"""

_POSITION_COLUMNS = (
    "id, symbol, buy_price, quantity, buy_date, stop_loss, target, signal_strength, "
    "sold, sell_price, sell_date, exit_reason, profit_loss"
)


def _ts(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _dt(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def _row_to_position(row: sqlite3.Row) -> Position:
    return Position(
        id=row["id"],
        symbol=row["symbol"],
        buy_price=row["buy_price"],
        quantity=row["quantity"],
        buy_date=_dt(row["buy_date"]),
        stop_loss=row["stop_loss"],
        target=row["target"],
        signal_strength=Signal(row["signal_strength"]),
        sold=bool(row["sold"]),
        sell_price=row["sell_price"],
        sell_date=_dt(row["sell_date"]),
        exit_reason=ExitReason(row["exit_reason"]) if row["exit_reason"] else None,
        profit_loss=row["profit_loss"],
    )


def _row_to_trade(row: sqlite3.Row) -> Trade:
    return Trade(
        id=row["id"],
        timestamp=_dt(row["ts"]),
        symbol=row["symbol"],
        action=row["action"],
        price=row["price"],
        quantity=row["quantity"],
        exit_reason=ExitReason(row["exit_reason"]) if row["exit_reason"] else None,
        rsi_at_entry=row["rsi_at_entry"],
        news_sentiment=row["news_sentiment"],
        capital_used=row["capital_used"],
        profit_loss=row["profit_loss"],
        profit_loss_percent=row["profit_loss_percent"],
        signal_strength=Signal(row["signal_strength"]),
    )


def _trade_params(trade: Trade) -> Dict:
    return {
        "ts": _ts(trade.timestamp),
        "symbol": trade.symbol,
        "action": trade.action,
        "price": trade.price,
        "quantity": trade.quantity,
        "exit_reason": trade.exit_reason.value if trade.exit_reason else None,
        "rsi_at_entry": trade.rsi_at_entry,
        "news_sentiment": trade.news_sentiment,
        "capital_used": trade.capital_used,
        "profit_loss": trade.profit_loss,
        "profit_loss_percent": trade.profit_loss_percent,
        "signal_strength": trade.signal_strength.value,
    }


def _position_params(pos: Position) -> Dict:
    return {
        "id": pos.id,
        "symbol": pos.symbol,
        "buy_price": pos.buy_price,
        "quantity": pos.quantity,
        "buy_date": _ts(pos.buy_date),
        "stop_loss": pos.stop_loss,
        "target": pos.target,
        "signal_strength": pos.signal_strength.value,
        "sold": int(pos.sold),
        "sell_price": pos.sell_price,
        "sell_date": _ts(pos.sell_date),
        "exit_reason": pos.exit_reason.value if pos.exit_reason else None,
        "profit_loss": pos.profit_loss,
    }


_INSERT_TRADE = """INSERT INTO trades
   (ts, symbol, action, price, quantity, exit_reason, rsi_at_entry,
    news_sentiment, capital_used, profit_loss, profit_loss_percent, signal_strength)
   VALUES(:ts, :symbol, :action, :price, :quantity, :exit_reason, :rsi_at_entry,
          :news_sentiment, :capital_used, :profit_loss, :profit_loss_percent, :signal_strength)"""

_INSERT_POSITION = """INSERT INTO positions
   (symbol, buy_price, quantity, buy_date, stop_loss, target, signal_strength, sold)
   VALUES(:symbol, :buy_price, :quantity, :buy_date, :stop_loss, :target, :signal_strength, 0)"""

_UPDATE_POSITION = """UPDATE positions SET
   stop_loss = :stop_loss, target = :target, sold = :sold, sell_price = :sell_price,
   sell_date = :sell_date, exit_reason = :exit_reason, profit_loss = :profit_loss
   WHERE id = :id AND sold = 0"""


class TradeStore:
    """
    SQLite-backed position store, trade ledger, news samples and watchlist.

    Timestamps are stored as naive ISO strings in market-local time so that
    day windows compare as plain strings.
    """

    def __init__(self, db_path):
        self.db_path = Path(db_path)

    @contextmanager
    def _conn(self) -> Iterator[sqlite3.Connection]:
        try:
            conn = sqlite3.connect(self.db_path)
        except sqlite3.Error as e:
            raise ExternalServiceError(f"cannot open {self.db_path}: {e}") from e
        conn.row_factory = sqlite3.Row
        try:
            with conn:
                yield conn
        except sqlite3.Error as e:
            raise ExternalServiceError(f"storage error: {e}") from e
        finally:
            conn.close()

    def init_db(self) -> None:
        try:
            with self._conn() as c:
                c.execute("PRAGMA journal_mode=WAL")
                c.executescript(_SCHEMA)
        except ExternalServiceError as e:
            raise FatalError(f"trade store unavailable: {e}") from e

    # ── positions ────────────────────────────────────────────────────────────
    def find_open_position(self, symbol: str) -> Optional[Position]:
        with self._conn() as c:
            row = c.execute(
                f"SELECT {_POSITION_COLUMNS} FROM positions WHERE symbol = ? AND sold = 0",
                (symbol.upper(),),
            ).fetchone()
        return _row_to_position(row) if row else None

    def list_positions(self, sold: Optional[bool] = None) -> List[Position]:
        query = f"SELECT {_POSITION_COLUMNS} FROM positions"
        params: Tuple = ()
        if sold is not None:
            query += " WHERE sold = ?"
            params = (int(sold),)
        with self._conn() as c:
            rows = c.execute(query + " ORDER BY id", params).fetchall()
        return [_row_to_position(r) for r in rows]

    def save_position(self, pos: Position) -> None:
        """Persist changes to an open position (stop-loss ratchet). Sold rows are frozen."""
        if pos.id is None:
            raise ValueError("save_position needs a persisted position")
        with self._conn() as c:
            cur = c.execute(_UPDATE_POSITION, _position_params(pos))
            if cur.rowcount != 1:
                raise ExternalServiceError(f"{pos.symbol}: position {pos.id} is not open")

    def open_position_with_trade(self, pos: Position, trade: Trade) -> Position:
        """Insert a new open position and its BUY trade atomically."""
        with self._conn() as c:
            cur = c.execute(_INSERT_POSITION, _position_params(pos))
            pos.id = cur.lastrowid
            c.execute(_INSERT_TRADE, _trade_params(trade))
        return pos

    def close_position_with_trade(self, pos: Position, trade: Trade) -> None:
        """Mark a position sold and append its SELL trade atomically."""
        with self._conn() as c:
            cur = c.execute(_UPDATE_POSITION, _position_params(pos))
            if cur.rowcount != 1:
                raise ExternalServiceError(f"{pos.symbol}: position {pos.id} is not open")
            c.execute(_INSERT_TRADE, _trade_params(trade))

    # ── trade ledger ─────────────────────────────────────────────────────────
    def append_trade(self, trade: Trade) -> None:
        with self._conn() as c:
            c.execute(_INSERT_TRADE, _trade_params(trade))

    def trades_between(self, start: datetime, end: datetime) -> List[Trade]:
        with self._conn() as c:
            rows = c.execute(
                "SELECT * FROM trades WHERE ts >= ? AND ts < ? ORDER BY ts, id",
                (_ts(start), _ts(end)),
            ).fetchall()
        return [_row_to_trade(r) for r in rows]

    # ── news / sentiment samples ─────────────────────────────────────────────
    def add_news(self, symbol: Optional[str], headline: str, sentiment: float, ts: datetime) -> None:
        with self._conn() as c:
            c.execute(
                "INSERT INTO news (ts, symbol, headline, sentiment) VALUES (?, ?, ?, ?)",
                (_ts(ts), symbol.upper() if symbol else None, headline, float(sentiment)),
            )

    def replace_news(
        self,
        start: datetime,
        end: datetime,
        rows: List[Tuple[Optional[str], str, float, datetime]],
    ) -> None:
        """Drop headlines stored in [start, end) and insert `rows` (symbol, headline, sentiment, ts)."""
        with self._conn() as c:
            c.execute("DELETE FROM news WHERE ts >= ? AND ts < ?", (_ts(start), _ts(end)))
            c.executemany(
                "INSERT INTO news (ts, symbol, headline, sentiment) VALUES (?, ?, ?, ?)",
                [(_ts(ts), s.upper() if s else None, h, float(v)) for s, h, v, ts in rows],
            )

    def sentiment_window(self, symbol: str, start: datetime, end: datetime) -> Tuple[float, int]:
        """(average sentiment, count) of headlines in [start, end); (0.0, 0) if none."""
        with self._conn() as c:
            avg, count = c.execute(
                "SELECT AVG(sentiment), COUNT(*) FROM news WHERE symbol = ? AND ts >= ? AND ts < ?",
                (symbol.upper(), _ts(start), _ts(end)),
            ).fetchone()
        return (float(avg) if avg is not None else 0.0), int(count)

    # ── watchlist ────────────────────────────────────────────────────────────
    def add_to_watchlist(self, symbol: str) -> None:
        with self._conn() as c:
            c.execute(
                "INSERT OR IGNORE INTO watchlist (symbol, added_at) VALUES (?, ?)",
                (symbol.upper(), datetime.now().isoformat()),
            )

    def remove_from_watchlist(self, symbol: str) -> None:
        with self._conn() as c:
            c.execute("DELETE FROM watchlist WHERE symbol = ?", (symbol.upper(),))

    def get_watchlist(self) -> List[str]:
        with self._conn() as c:
            rows = c.execute("SELECT symbol FROM watchlist ORDER BY added_at, symbol").fetchall()
        return [r[0] for r in rows]

    # ── run locks ────────────────────────────────────────────────────────────
    def acquire_run_lock(
        self,
        name: str,
        holder: str,
        now: Optional[datetime] = None,
        stale_after: timedelta = timedelta(hours=6),
    ) -> bool:
        """
        Take the named lock unless another holder has it. Locks older than
        `stale_after` (a crashed run) are taken over.
        """
        now = now or datetime.now()
        with self._conn() as c:
            c.execute("BEGIN IMMEDIATE")
            c.execute(
                "DELETE FROM run_locks WHERE name = ? AND acquired_at < ?",
                (name, _ts(now - stale_after)),
            )
            cur = c.execute(
                "INSERT OR IGNORE INTO run_locks (name, holder, acquired_at) VALUES (?, ?, ?)",
                (name, holder, _ts(now)),
            )
            return cur.rowcount == 1

    def release_run_lock(self, name: str, holder: str) -> None:
        with self._conn() as c:
            c.execute("DELETE FROM run_locks WHERE name = ? AND holder = ?", (name, holder))

    def run_lock_holder(self, name: str) -> Optional[str]:
        with self._conn() as c:
            row = c.execute("SELECT holder FROM run_locks WHERE name = ?", (name,)).fetchone()
        return row[0] if row else None

    # ── snapshots ────────────────────────────────────────────────────────────
    def save_snapshot(self, ts: datetime, total_value: float, total_pnl: float, holdings: List[Dict]) -> None:
        with self._conn() as c:
            c.execute(
                "INSERT OR REPLACE INTO portfolio_snapshots VALUES (?, ?, ?, ?)",
                (_ts(ts), float(total_value), float(total_pnl), json.dumps(holdings)),
            )
        logging.info("Portfolio snapshot saved (value=%.2f, pnl=%.2f)", total_value, total_pnl)

    def latest_snapshot(self) -> Optional[Dict]:
        with self._conn() as c:
            row = c.execute(
                "SELECT * FROM portfolio_snapshots ORDER BY ts DESC LIMIT 1"
            ).fetchone()
        if row is None:
            return None
        return {
            "ts": _dt(row["ts"]),
            "total_value": row["total_value"],
            "total_pnl": row["total_pnl"],
            "holdings": json.loads(row["holdings_json"] or "[]"),
        }
