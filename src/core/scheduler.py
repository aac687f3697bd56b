"""Scheduler for the daily close-out job."""

import logging
from datetime import UTC, datetime
from typing import Any

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from src.agents.base import Deps
from src.core.config import settings
from src.services.submission_service import close_overdue_days


logger = logging.getLogger(__name__)

CLOSE_OUT_JOB_ID = "daily_close_out"

# Global scheduler instance
scheduler = AsyncIOScheduler(timezone=UTC)

# Last outcome of each job, served by /health/scheduler
job_status: dict[str, dict[str, Any]] = {}


def _record_job_result(job_name: str, *, error: str | None = None) -> None:
    status = job_status.setdefault(job_name, {"last_success": None, "consecutive_failures": 0, "last_error": None})
    if error is None:
        status["last_success"] = datetime.now(UTC).isoformat()
        status["consecutive_failures"] = 0
        status["last_error"] = None
    else:
        status["consecutive_failures"] += 1
        status["last_error"] = error


async def run_daily_close_out(deps: Deps) -> None:
    """Close every day whose date has passed.

    Runs daily at ``DAILY_CLOSE_OUT_HOUR`` (UTC). A day nobody submitted is
    closed with whatever was saved for it, so the shortfall moves forward.
    """
    logger.info("Running daily close-out job")

    try:
        closed = await close_overdue_days(deps=deps)
    except Exception as e:
        logger.error(f"Error in daily close-out job: {e}")
        _record_job_result(CLOSE_OUT_JOB_ID, error=str(e))
        return

    _record_job_result(CLOSE_OUT_JOB_ID)
    logger.info("Completed daily close-out job: %d days closed", closed)


def start_scheduler(deps: Deps) -> None:
    """Start the scheduler and register all jobs.

    This should be called during FastAPI app startup.
    """
    logger.info("Starting scheduler")

    scheduler.add_job(
        run_daily_close_out,
        trigger=CronTrigger(hour=settings.daily_close_out_hour, minute=0),
        args=[deps],
        id=CLOSE_OUT_JOB_ID,
        name="Close Overdue Writing Days",
        replace_existing=True,
    )
    logger.info(f"Scheduled daily close-out job: daily at {settings.daily_close_out_hour}:00")

    scheduler.start()
    logger.info("Scheduler started successfully")


def stop_scheduler() -> None:
    """Stop the scheduler.

    This should be called during FastAPI app shutdown.
    """
    if not scheduler.running:
        return
    logger.info("Stopping scheduler")
    scheduler.shutdown(wait=True)
    logger.info("Scheduler stopped")
