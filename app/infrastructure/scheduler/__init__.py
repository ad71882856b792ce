from app.infrastructure.scheduler.jobs import (
    expire_premium_subscriptions,
    sweep_expired_sessions,
)
from app.infrastructure.scheduler.main import (
    initialize_scheduler,
    schedule_session_sweep_job,
    schedule_subscription_expiry_job,
    scheduler,
)

__all__ = [
    "expire_premium_subscriptions",
    "initialize_scheduler",
    "schedule_session_sweep_job",
    "schedule_subscription_expiry_job",
    "scheduler",
    "sweep_expired_sessions",
]
