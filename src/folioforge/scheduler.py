"""Scheduler configuration using APScheduler.

Provides periodic maintenance: expired throttle records, expired
revocation entries and uploads past their retention date.
"""

import structlog
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from folioforge.context import SecurityCore

logger = structlog.get_logger()


def sweep_throttle_records(core: SecurityCore) -> int:
    removed = core.rate_limiter.sweep()
    if removed:
        logger.info("Throttle records swept", count=removed)
    return removed


def cleanup_revocations(core: SecurityCore) -> int:
    removed = core.revocations.cleanup_expired()
    if removed:
        logger.info("Expired revocations removed", count=removed)
    return removed


async def purge_expired_uploads(core: SecurityCore) -> int:
    return await core.uploads.purge_expired()


def create_maintenance_scheduler(
    core: SecurityCore,
    interval_minutes: int = 15,
) -> AsyncIOScheduler:
    """Create and configure the maintenance scheduler.

    Reason: Using factory function for dependency injection and testability.

    Args:
        core: Security core whose state is maintained.
        interval_minutes: Minutes between runs of each job.

    Returns:
        Configured AsyncIOScheduler (not started).
    """
    scheduler = AsyncIOScheduler()
    trigger = IntervalTrigger(minutes=interval_minutes)

    scheduler.add_job(
        sweep_throttle_records,
        trigger=trigger,
        args=[core],
        id="throttle_sweep",
        name="Sweep expired throttle records",
        replace_existing=True,
    )
    scheduler.add_job(
        cleanup_revocations,
        trigger=trigger,
        args=[core],
        id="revocation_cleanup",
        name="Drop expired refresh-token revocations",
        replace_existing=True,
    )
    scheduler.add_job(
        purge_expired_uploads,
        trigger=trigger,
        args=[core],
        id="retention_purge",
        name="Purge uploads past retention",
        replace_existing=True,
        misfire_grace_time=3600,
    )

    logger.info(
        "Scheduler configured",
        jobs=[job.id for job in scheduler.get_jobs()],
        interval_minutes=interval_minutes,
    )

    return scheduler
