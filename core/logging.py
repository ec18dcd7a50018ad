import logging
import os
from logging.handlers import TimedRotatingFileHandler

_NOISY_LOGGERS = ("yfinance", "urllib3", "peewee", "httpx", "apscheduler.executors.default")


def configure_logging(log_file="logs/trading_log.txt", level=logging.INFO):
    """
    Configure root logger with a timed rotating file handler and console output.
    Rotates logs at midnight and keeps 7 days of backups.
    """
    # Ensure log directory exists
    log_dir = os.path.dirname(log_file)
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)

    # Timed rotating file handler: rotate at midnight, keep 7 backups
    handler = TimedRotatingFileHandler(
        log_file,
        when="midnight",
        backupCount=7,
        encoding="utf-8"
    )
    handler.setLevel(level)
    formatter = logging.Formatter("%(asctime)s %(levelname)s %(name)s – %(message)s")
    handler.setFormatter(formatter)

    # Console handler
    console = logging.StreamHandler()
    console.setLevel(level)
    console.setFormatter(formatter)

    # Apply handlers (force: replace anything a library installed earlier)
    logging.basicConfig(
        level=level,
        handlers=[handler, console],
        force=True,
    )

    # yfinance/urllib3 log every request; the telegram client polls via httpx
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
