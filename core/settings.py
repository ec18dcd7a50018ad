"""
Runtime settings loaded from config.toml.

    [trading]
    capital = 10000
    risk_percent = 2
    watchlist = ["RELIANCE", "TCS"]
    db_path = "bot.db"
    ...

    [telegram]
    bot_token = "..."
    chat_id = "..."

WATCHLIST (comma separated) and RISK_PERCENT environment variables override
the file.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import toml

DEFAULT_CONFIG = Path(__file__).resolve().parent.parent / "config.toml"

DEFAULT_WATCHLIST = ("RELIANCE", "TCS", "HDFCBANK", "INFY", "ICICIBANK")


@dataclass(frozen=True)
class Settings:
    capital: float = 10_000.0
    risk_percent: float = 2.0
    watchlist: Tuple[str, ...] = field(default=DEFAULT_WATCHLIST)

    db_path: str = "bot.db"
    symbol_suffix: str = ".NS"
    exchange: str = "NSE"
    product: str = "MIS"

    timezone: str = "Asia/Kolkata"
    schedule_time: str = "09:15"
    snapshot_time: str = "23:59"
    trading_calendar: Optional[str] = None

    request_timeout: float = 10.0
    news_file: Optional[str] = "news.txt"
    log_file: str = "logs/trading_log.txt"

    telegram_token: Optional[str] = None
    telegram_chat_id: Optional[str] = None

    def __post_init__(self) -> None:
        errors = []

        if self.capital <= 0:
            errors.append(f"capital must be > 0, got {self.capital}")
        if not (0.0 < self.risk_percent <= 100.0):
            errors.append(f"risk_percent must be in (0, 100], got {self.risk_percent}")
        if self.request_timeout <= 0:
            errors.append(f"request_timeout must be > 0, got {self.request_timeout}")

        for name in ("schedule_time", "snapshot_time"):
            value = getattr(self, name)
            try:
                hour, minute = (int(p) for p in value.split(":"))
                if not (0 <= hour < 24 and 0 <= minute < 60):
                    raise ValueError
            except ValueError:
                errors.append(f"{name} must be HH:MM, got '{value}'")

        try:
            ZoneInfo(self.timezone)
        except (ZoneInfoNotFoundError, ValueError):
            errors.append(f"unknown timezone '{self.timezone}'")

        if errors:
            raise ValueError(
                "Invalid Settings:\n" + "\n".join(f"  • {e}" for e in errors)
            )

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    @property
    def schedule_hour_minute(self) -> Tuple[int, int]:
        hour, minute = self.schedule_time.split(":")
        return int(hour), int(minute)

    @property
    def snapshot_hour_minute(self) -> Tuple[int, int]:
        hour, minute = self.snapshot_time.split(":")
        return int(hour), int(minute)


def _parse_watchlist(raw) -> Tuple[str, ...]:
    if isinstance(raw, str):
        raw = raw.split(",")
    return tuple(s.strip().upper() for s in raw if s and s.strip())


def load_settings(path: Optional[Path] = None) -> Settings:
    """
    Read config.toml (if present) and apply environment overrides.
    Unknown keys are ignored with a warning.
    """
    cfg_path = Path(path) if path is not None else DEFAULT_CONFIG
    values = {}

    if cfg_path.exists():
        data = toml.load(cfg_path)
        known = {f.name for f in fields(Settings)}
        for key, value in data.get("trading", {}).items():
            if key in known:
                values[key] = value
            else:
                logging.warning("config: ignoring unknown [trading] key '%s'", key)
        telegram = data.get("telegram", {})
        if "bot_token" in telegram:
            values["telegram_token"] = str(telegram["bot_token"])
        if "chat_id" in telegram:
            values["telegram_chat_id"] = str(telegram["chat_id"])
    else:
        logging.info("config: %s not found – using defaults", cfg_path)

    if "watchlist" in values:
        values["watchlist"] = _parse_watchlist(values["watchlist"])

    env_watchlist = os.environ.get("WATCHLIST")
    if env_watchlist:
        values["watchlist"] = _parse_watchlist(env_watchlist)
    env_risk = os.environ.get("RISK_PERCENT")
    if env_risk:
        values["risk_percent"] = float(env_risk)

    return replace(Settings(), **values)
