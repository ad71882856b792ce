"""
Unit tests for the management CLI.

Run tests:
    pytest tests/test_manage.py -v
"""

from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, patch

import pytest
import typer
from typer.testing import CliRunner

from app.core.enums import UserRole
from app.core.utils import verify_password
from manage import app, create_admin_task, email_validator


runner = CliRunner()


@pytest.fixture
def cli_session(db_session):
    """Make ``manage`` open the test database session."""

    @asynccontextmanager
    async def _session_factory():
        yield db_session

    with patch("manage.AsyncSessionLocal", side_effect=_session_factory):
        yield db_session


class TestCreateAdminCommand:

    def test_help(self):
        result = runner.invoke(app, ["createadmin", "--help"])

        assert result.exit_code == 0
        assert "--password" in result.output

    def test_invalid_email_rejected(self):
        with patch("manage.create_admin_task", new_callable=AsyncMock) as mock_task:
            result = runner.invoke(app, ["createadmin", "not-an-email"])

        assert result.exit_code != 0
        mock_task.assert_not_awaited()

    def test_passes_normalized_arguments(self):
        with patch("manage.create_admin_task", new_callable=AsyncMock) as mock_task:
            result = runner.invoke(
                app, ["createadmin", "Ops@Example.com", "--password", "S3cretPass!", "--name", "Ops"]
            )

        assert result.exit_code == 0
        mock_task.assert_awaited_once_with("ops@example.com", "S3cretPass!", "Ops")

    def test_email_validator_lowercases(self):
        assert email_validator("Jane@Example.COM") == "jane@example.com"


class TestCreateAdminTask:

    async def test_creates_new_admin(self, cli_session):
        from app.core.db.crud import user_db

        await create_admin_task("ops@example.com", "S3cretPass!", "Ops")

        admin = await user_db.get_by_email(cli_session, "ops@example.com")
        assert admin.role == UserRole.ADMIN
        assert admin.is_active is True
        assert admin.is_email_verified is True
        assert verify_password("S3cretPass!", admin.password_hash)

    async def test_promotes_existing_user(self, cli_session, make_user):
        user = await make_user()

        await create_admin_task(user.email, None, "Ignored")

        await cli_session.refresh(user)
        assert user.role == UserRole.ADMIN

    async def test_new_account_needs_password(self, cli_session):
        with pytest.raises(typer.Exit):
            await create_admin_task("ghost@example.com", None, "Admin")


class TestMaintenanceCommands:

    def test_sweepsessions(self):
        with patch(
            "app.infrastructure.scheduler.jobs.sweep_expired_sessions",
            new_callable=AsyncMock,
            return_value=3,
        ):
            result = runner.invoke(app, ["sweepsessions"])

        assert result.exit_code == 0
        assert "3 session(s) deleted" in result.output

    def test_expiresubscriptions(self):
        with patch(
            "app.infrastructure.scheduler.jobs.expire_premium_subscriptions",
            new_callable=AsyncMock,
            return_value=2,
        ):
            result = runner.invoke(app, ["expiresubscriptions"])

        assert result.exit_code == 0
        assert "2 subscription(s) expired" in result.output
