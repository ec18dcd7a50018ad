"""
APScheduler entrypoint for the scheduler container.

Schedules (market timezone from config.toml, defaults to Asia/Kolkata):
  Mon–Fri 09:15  →  run_daily_cycle()   (news ingestion + paper trades)
  Daily   23:59  →  snapshot_job()      (mark-to-market of open positions)

run_daily_cycle() checks the trading day and the run lock itself, so the
scheduler and manual triggers behave identically.
"""
import logging

from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.cron import CronTrigger

from apps.jobs import run_daily_cycle, snapshot_job
from core.logging import configure_logging
from core.settings import load_settings


def build_scheduler(settings=None) -> BlockingScheduler:
    settings = settings or load_settings()
    hour, minute = settings.schedule_hour_minute
    snap_hour, snap_minute = settings.snapshot_hour_minute

    scheduler = BlockingScheduler(timezone=settings.timezone)

    scheduler.add_job(
        run_daily_cycle,
        CronTrigger(day_of_week="mon-fri", hour=hour, minute=minute, timezone=settings.timezone),
        id="daily_trade",
        name="Daily paper-trading cycle",
        max_instances=1,
        coalesce=True,
    )

    scheduler.add_job(
        snapshot_job,
        CronTrigger(hour=snap_hour, minute=snap_minute, timezone=settings.timezone),
        id="nightly_snapshot",
        name="Nightly portfolio snapshot",
    )
    return scheduler


if __name__ == "__main__":
    settings = load_settings()
    configure_logging(settings.log_file)
    scheduler = build_scheduler(settings)
    logging.info(
        "Scheduler starting – trades@%s, snapshot@%s (%s)",
        settings.schedule_time, settings.snapshot_time, settings.timezone,
    )
    try:
        scheduler.start()
    except (KeyboardInterrupt, SystemExit):
        logging.info("Scheduler stopped.")
