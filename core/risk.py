"""
Risk & position-sizing utilities.

Sizing is a fixed fraction of simulated capital, scaled up for high-conviction
signals:

    risk_amount = capital * risk_percent / 100
    quantity    = floor(risk_amount * multiplier / price)

A zero quantity means "capital too small for this price" and is not an error.
"""

from __future__ import annotations

import math
from typing import Tuple

from core.errors import InvalidInput


def size_position(
    price: float,
    capital: float,
    risk_percent: float,
    multiplier: float = 1.0,
) -> int:
    """
    Parameters
    ----------
    price : float
        Current price, must be > 0.
    capital : float
        Simulated account capital.
    risk_percent : float
        Percent of capital committed per new entry (2 → 2 %).
    multiplier : float
        Signal-strength multiplier (1.5 for STRONG_BUY by default).

    Returns
    -------
    int
        Whole shares, never negative.
    """
    if not isinstance(price, (int, float)) or math.isnan(price) or price <= 0:
        raise InvalidInput(f"price must be a positive number, got {price!r}")

    risk_amount = capital * risk_percent / 100.0
    quantity = math.floor(risk_amount * multiplier / price)
    return max(0, int(quantity))


def risk_bands(price: float, stop_pct: float, target_pct: float, precision: int = 2) -> Tuple[float, float]:
    """
    (stop_loss, target) as fractions of the entry price, rounded to tick
    precision so a quote printed at the target compares equal to it.
    """
    return round(price * stop_pct, precision), round(price * target_pct, precision)
