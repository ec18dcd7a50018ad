"""
Error taxonomy for the trading bot.

Everything a single symbol can raise derives from TradingError so the daily
runner can isolate it. FatalError is the only one allowed to abort a run.
"""


class TradingError(Exception):
    """Base class for per-symbol failures."""


class DataUnavailable(TradingError):
    """No price / empty indicator series."""


class InsufficientData(DataUnavailable):
    """Indicator series too short to classify."""


class ExternalServiceError(TradingError):
    """Broker, store or network failure."""


class OrderError(ExternalServiceError):
    """Order rejected or not acknowledged by the broker."""


class InvalidInput(TradingError):
    """Malformed symbol, non-numeric price and similar."""


class FatalError(Exception):
    """Startup dependency unavailable; aborts the whole process."""
