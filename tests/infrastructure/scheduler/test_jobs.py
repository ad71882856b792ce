"""
Test suite for scheduler jobs.

The jobs open their own database session; tests point ``AsyncSessionLocal``
at the test database so the real services run against it.

Run tests:
    pytest tests/infrastructure/scheduler/test_jobs.py -v

Run with coverage:
    pytest tests/infrastructure/scheduler/test_jobs.py --cov=app.infrastructure.scheduler.jobs --cov-report=term-missing -v
"""

from contextlib import asynccontextmanager
from datetime import timedelta
from unittest.mock import AsyncMock, patch

import pytest

from app.core.db.crud import user_session_db
from app.core.enums import SubscriptionStatus
from app.core.services.device import DeviceFingerprint, parse_user_agent
from app.core.services.session_policy import new_session_fields
from app.core.utils import utc_now
from app.infrastructure.scheduler.jobs import (
    expire_premium_subscriptions,
    sweep_expired_sessions,
)
from conftest import DESKTOP_UA


DEVICE = DeviceFingerprint(user_agent=DESKTOP_UA, ip_address="198.51.100.1")


@pytest.fixture
def job_session(db_session):
    """Make the jobs' session factory hand out the test session."""

    @asynccontextmanager
    async def _session_factory():
        yield db_session

    with patch(
        "app.infrastructure.scheduler.jobs.AsyncSessionLocal",
        side_effect=_session_factory,
    ):
        yield db_session


class TestSweepExpiredSessions:

    async def test_deletes_expired_sessions(self, job_session, make_user):
        user = await make_user()
        now = utc_now()
        for started in (now, now - timedelta(days=2)):
            await user_session_db.create(
                job_session,
                new_session_fields(
                    user.id, user.email, DEVICE, parse_user_agent(DEVICE.user_agent), started
                ),
            )

        deleted = await sweep_expired_sessions()

        assert deleted == 1
        remaining = await user_session_db.get_by_conditions(
            job_session, [user_session_db.model.user_id == user.id]
        )
        assert len(remaining) == 1

    async def test_nothing_to_sweep(self, job_session):
        assert await sweep_expired_sessions() == 0

    async def test_failure_is_logged_not_raised(self):
        with (
            patch("app.infrastructure.scheduler.jobs.AsyncSessionLocal"),
            patch("app.infrastructure.scheduler.jobs.session_service") as mock_service,
            patch("app.infrastructure.scheduler.jobs.scheduler_logger") as mock_logger,
        ):
            mock_service.sweep_expired = AsyncMock(side_effect=RuntimeError("db down"))

            result = await sweep_expired_sessions()

            assert result == 0
            mock_logger.exception.assert_called_once()
            assert "db down" in mock_logger.exception.call_args[0][0]


class TestExpirePremiumSubscriptions:

    async def test_downgrades_lapsed_users(self, job_session, make_user):
        lapsed = await make_user(
            is_premium=True,
            is_subscription_active=True,
            subscription_status=SubscriptionStatus.PAID,
            premium_end_date=utc_now() - timedelta(hours=1),
        )

        expired = await expire_premium_subscriptions()

        assert expired == 1
        await job_session.refresh(lapsed)
        assert lapsed.is_premium is False
        assert lapsed.subscription_status == SubscriptionStatus.CANCEL

    async def test_failure_is_logged_not_raised(self):
        with (
            patch("app.infrastructure.scheduler.jobs.AsyncSessionLocal"),
            patch("app.infrastructure.scheduler.jobs.subscription_service") as mock_service,
            patch("app.infrastructure.scheduler.jobs.scheduler_logger") as mock_logger,
        ):
            mock_service.expire_subscriptions = AsyncMock(side_effect=RuntimeError("boom"))

            assert await expire_premium_subscriptions() == 0
            mock_logger.exception.assert_called_once()
