# sigb/tasks/scheduler.py
from __future__ import annotations

import atexit
import os

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger


def start_scheduler(app):
    """
    Starts the periodic late check (overdue scan + fine accrual).
    - SCHEDULER_ENABLED=0 turns it off (tests, one-off CLI runs).
    - Only the real process starts it under the debug reloader.
    - The job runs inside an app context.
    """
    if not app.config.get("SCHEDULER_ENABLED", True):
        app.logger.info("[scheduler] Disabled by config.")
        return None

    # Werkzeug reloader: WERKZEUG_RUN_MAIN=true marks the serving process
    if app.debug and os.environ.get("WERKZEUG_RUN_MAIN") != "true":
        app.logger.info("[scheduler] Debug reloader secondary process: scheduler skipped.")
        return None

    from sigb.tasks.late_check import run_late_check_job

    minutes = int(app.config.get("LATE_CHECK_INTERVAL_MINUTES", 60))
    scheduler = BackgroundScheduler(timezone="UTC")

    def _job_wrapper():
        try:
            run_late_check_job(app)
        except Exception as ex:
            app.logger.exception(f"[scheduler] late_check_job error: {ex}")

    scheduler.add_job(
        func=_job_wrapper,
        trigger=IntervalTrigger(minutes=minutes),
        id="late_check_job",
        replace_existing=True,
        max_instances=1,        # never overlap two runs
        coalesce=True,          # missed runs collapse into one
        misfire_grace_time=120
    )

    scheduler.start()
    app.logger.info(f"[scheduler] Late check job started (every {minutes} minutes).")

    app.extensions["apscheduler"] = scheduler
    atexit.register(lambda: scheduler.shutdown(wait=False) if scheduler.running else None)
    return scheduler
