"""
Periodic maintenance jobs.

Each job opens its own session, calls one service operation and never
raises: a failure is logged and the next scheduled run tries again.
"""

from app.core.config import scheduler_logger
from app.core.db import AsyncSessionLocal
from app.core.services.session import session_service
from app.core.services.subscription import subscription_service


async def sweep_expired_sessions() -> int:
    """
    Delete expired sessions and those logged out beyond the retention window.

    Returns:
        int: Sessions deleted, 0 if the run failed.
    """
    scheduler_logger.info("Starting session sweep")
    try:
        async with AsyncSessionLocal() as session:
            deleted = await session_service.sweep_expired(session)
    except Exception as e:
        scheduler_logger.exception(f"Session sweep failed: {e}")
        return 0
    scheduler_logger.info(f"Completed session sweep. Deleted {deleted} session(s).")
    return deleted


async def expire_premium_subscriptions() -> int:
    """
    Downgrade premium users whose subscription end date has passed.

    Returns:
        int: Users downgraded, 0 if the run failed.
    """
    scheduler_logger.info("Starting subscription expiry check")
    try:
        async with AsyncSessionLocal() as session:
            expired = await subscription_service.expire_subscriptions(session)
    except Exception as e:
        scheduler_logger.exception(f"Subscription expiry check failed: {e}")
        return 0
    scheduler_logger.info(
        f"Completed subscription expiry check. Expired {expired} subscription(s)."
    )
    return expired
