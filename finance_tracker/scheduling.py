"""
Scheduler Service

Fires the budget check on an interval using APScheduler.

The BudgetMonitor knows nothing about time; this module is the external
trigger. max_instances=1 keeps ticks from overlapping, and a failed run
is logged here so the next tick proceeds on its own.
"""

from datetime import datetime, timezone
from typing import Optional

import structlog
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from finance_tracker.monitor import (
    BudgetMonitor,
    MonitorBusyError,
    MonitorRunFailure,
    MonitorRunResult,
)


BUDGET_CHECK_JOB_ID = "budget_check"

logger = structlog.get_logger(__name__)


async def budget_check_job(monitor: BudgetMonitor) -> Optional[MonitorRunResult]:
    """Job function: run one budget check, never let a failure escape."""
    try:
        return await monitor.run()
    except MonitorBusyError:
        logger.warning("budget_check_skipped", reason="previous run still in progress")
    except MonitorRunFailure as e:
        logger.error("budget_check_job_failed", run_id=str(e.run_id), error=str(e))
    return None


def create_scheduler(
    monitor: BudgetMonitor,
    interval_minutes: int,
    run_immediately: bool = False,
) -> AsyncIOScheduler:
    """
    Build a scheduler with the budget check job registered.

    The scheduler is returned unstarted; call start() from inside a
    running event loop.
    """
    scheduler = AsyncIOScheduler()
    job_options = {}
    if run_immediately:
        job_options["next_run_time"] = datetime.now(timezone.utc)
    scheduler.add_job(
        budget_check_job,
        args=[monitor],
        trigger=IntervalTrigger(minutes=interval_minutes),
        id=BUDGET_CHECK_JOB_ID,
        name="Daily Budget Check",
        max_instances=1,
        coalesce=True,
        replace_existing=True,
        **job_options,
    )
    logger.info("budget_check_scheduled", interval_minutes=interval_minutes)
    return scheduler


def stop_scheduler(scheduler: AsyncIOScheduler) -> None:
    """Stop the scheduler without waiting for a running check."""
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("scheduler_stopped")


def get_scheduler_status(scheduler: Optional[AsyncIOScheduler]) -> dict:
    """Get current scheduler status."""
    if scheduler is None:
        return {"running": False, "jobs": []}

    jobs = []
    for job in scheduler.get_jobs():
        next_run = getattr(job, "next_run_time", None)
        jobs.append({
            "id": job.id,
            "name": job.name,
            "next_run": str(next_run) if next_run else None,
        })

    return {
        "running": scheduler.running,
        "jobs": jobs,
    }
