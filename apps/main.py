"""apps/main.py

Manual trigger: runs one daily cycle with the same code path the scheduler
uses, then exits. Weekend / holiday gating and the run lock still apply.
"""

from __future__ import annotations

import logging

from apps.jobs import run_daily_cycle
from core.logging import configure_logging
from core.settings import load_settings


def main() -> None:
    settings = load_settings()
    configure_logging(settings.log_file)
    summary = run_daily_cycle()
    if summary is None:
        logging.info("No run performed.")


if __name__ == "__main__":
    main()
