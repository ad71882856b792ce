"""
Scheduler for GoChart maintenance jobs.

Standalone Usage:
    python -m app.infrastructure.scheduler.main
"""

import asyncio
import logging
import signal
from datetime import timezone

from apscheduler.jobstores.sqlalchemy import SQLAlchemyJobStore
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from app.core.config import scheduler_logger, settings
from app.infrastructure.scheduler.jobs import (
    expire_premium_subscriptions,
    sweep_expired_sessions,
)


logging.getLogger("apscheduler").setLevel(logging.INFO)

JOBSTORE = "maintenance"
SESSION_SWEEP_JOB_ID = "sweep_expired_sessions_job"
SUBSCRIPTION_EXPIRY_JOB_ID = "expire_premium_subscriptions_job"


def _sync_database_url(url: str | None = None) -> str:
    """Convert the async DATABASE_URL to a synchronous one for APScheduler.

    Only the driver part of the scheme (before ://) changes, so the rest of
    the URL, including any percent-encoded password, is preserved exactly.
    """
    scheme, rest = (url or settings.DATABASE_URL).split("://", 1)
    for driver in ("+asyncpg", "+aiosqlite"):
        scheme = scheme.replace(driver, "")
    return f"{scheme}://{rest}"


scheduler = AsyncIOScheduler(
    jobstores={
        JOBSTORE: SQLAlchemyJobStore(
            url=_sync_database_url(),
            tablename="scheduler_maintenance_jobs",
        ),
    },
    job_defaults={"coalesce": True, "max_instances": 1},
    timezone=timezone.utc,
)


def schedule_session_sweep_job(hour: int = settings.SESSION_CLEANUP_HOUR) -> None:
    """
    Schedule the session sweep daily at ``hour``:00 UTC.
    """
    scheduler_logger.info(
        f"Scheduling 'sweep_expired_sessions' job to run daily at {hour:02d}:00 UTC"
    )
    scheduler.add_job(
        sweep_expired_sessions,
        trigger=CronTrigger(hour=hour, minute=0, timezone=timezone.utc),
        replace_existing=True,
        id=SESSION_SWEEP_JOB_ID,
        jobstore=JOBSTORE,
        misfire_grace_time=60 * 60,  # 1 hour grace time
    )
    scheduler_logger.info("'sweep_expired_sessions' job scheduled successfully.")


def schedule_subscription_expiry_job(
    interval_hours: int = settings.SUBSCRIPTION_CHECK_INTERVAL_HOURS,
) -> None:
    """
    Schedule the subscription expiry check every ``interval_hours``.
    """
    scheduler_logger.info(
        f"Scheduling 'expire_premium_subscriptions' job to run every {interval_hours} hours"
    )
    scheduler.add_job(
        expire_premium_subscriptions,
        trigger=IntervalTrigger(hours=interval_hours, timezone=timezone.utc),
        replace_existing=True,
        id=SUBSCRIPTION_EXPIRY_JOB_ID,
        jobstore=JOBSTORE,
        misfire_grace_time=60 * 30,  # 30 minutes grace time
    )
    scheduler_logger.info("'expire_premium_subscriptions' job scheduled successfully.")


def initialize_scheduler() -> None:
    """
    Register every maintenance job.

    Call after the scheduler has started.
    """
    schedule_session_sweep_job(hour=settings.SESSION_CLEANUP_HOUR)
    schedule_subscription_expiry_job(
        interval_hours=settings.SUBSCRIPTION_CHECK_INTERVAL_HOURS
    )


async def main() -> None:
    """
    Main entry point for standalone scheduler execution.

    Starts the scheduler and runs until SIGINT or SIGTERM. Shutdown waits
    for a running job to finish.
    """
    shutdown_event = asyncio.Event()

    def handle_shutdown(signum, frame):
        scheduler_logger.info(f"Received signal {signum}, initiating shutdown...")
        shutdown_event.set()

    signal.signal(signal.SIGINT, handle_shutdown)
    signal.signal(signal.SIGTERM, handle_shutdown)

    scheduler_logger.info("Starting standalone scheduler...")

    try:
        scheduler.start()
        scheduler_logger.info("Scheduler started successfully. Waiting for jobs...")
        initialize_scheduler()
        await shutdown_event.wait()

    except Exception as e:
        scheduler_logger.exception(f"Scheduler error: {e}")
        raise

    finally:
        scheduler_logger.info("Shutting down scheduler...")
        if scheduler.running:
            scheduler.shutdown(wait=True)
            scheduler_logger.info("Scheduler stopped successfully.")
        scheduler_logger.info("Scheduler shutdown complete.")


if __name__ == "__main__":
    asyncio.run(main())
