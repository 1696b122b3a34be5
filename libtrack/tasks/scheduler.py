# libtrack/tasks/scheduler.py
from __future__ import annotations

import atexit
import os

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger


def start_scheduler(app):
    """
    Daily penalty checks at PENALTY_CHECK_HOUR (UTC).
    - Skipped when SCHEDULER_ENABLED is false (tests, CLI).
    - Debug reloader runs two processes; only the real one schedules.
    """
    if not app.config.get("SCHEDULER_ENABLED", True):
        app.logger.info("[scheduler] Disabled by config.")
        return None

    if app.debug and os.environ.get("WERKZEUG_RUN_MAIN") != "true":
        app.logger.info("[scheduler] Debug reloader secondary process: scheduler skipped.")
        return None

    # job module imports services; keep it out of module import time
    from libtrack.tasks.penalty_check import run_daily_penalty_checks

    hour = int(app.config.get("PENALTY_CHECK_HOUR", 9))
    scheduler = BackgroundScheduler(timezone="UTC")

    def _job_wrapper():
        try:
            run_daily_penalty_checks(app)
        except Exception as ex:
            app.logger.exception(f"[scheduler] daily_penalty_checks error: {ex}")

    scheduler.add_job(
        func=_job_wrapper,
        trigger=CronTrigger(hour=hour, minute=0),
        id="daily_penalty_checks",
        replace_existing=True,
        max_instances=1,         # never overlap two runs
        coalesce=True,           # missed runs collapse into one
        misfire_grace_time=3600,
    )

    scheduler.start()
    app.logger.info(f"[scheduler] Daily penalty checks scheduled at {hour:02d}:00 UTC.")

    app.extensions["apscheduler"] = scheduler
    atexit.register(shutdown_scheduler, app)
    return scheduler


def shutdown_scheduler(app):
    sch = app.extensions.get("apscheduler")
    if sch and getattr(sch, "running", False):
        sch.shutdown(wait=False)
        app.logger.info("[scheduler] Scheduler shutdown.")
