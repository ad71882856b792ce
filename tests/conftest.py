"""
Pytest configuration and core fixtures.

Integration tests run against a fresh in-memory SQLite database per test
(tables created from the models), so services and CRUD code run their real
SQL. Outbound email is always mocked.
"""

import os
from datetime import datetime, timezone
from typing import AsyncGenerator
from unittest.mock import AsyncMock, patch

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.pool import StaticPool


TEST_PASSWORD = "SecurePass123"
DESKTOP_UA = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
IPHONE_UA = (
    "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/17.0 Mobile/15E148 Safari/604.1"
)
FIREFOX_UA = "Mozilla/5.0 (X11; Linux x86_64; rv:121.0) Gecko/20100101 Firefox/121.0"


def pytest_configure(config):
    """Configure the environment before any app module is imported."""
    os.environ["ENVIRONMENT"] = "test"
    os.environ["ENABLE_SCHEDULER"] = "false"
    os.environ.setdefault(
        "DATABASE_URL",
        os.environ.get("TEST_DATABASE_URL", "sqlite+aiosqlite:///:memory:"),
    )

    config.addinivalue_line(
        "markers",
        "integration: marks tests that use the database",
    )
    config.addinivalue_line(
        "markers",
        "real_email: do not mock EmailManagerService send methods",
    )


@pytest.fixture
def now() -> datetime:
    """Current UTC time at whole-second resolution, like token `iat`."""
    return datetime.now(timezone.utc).replace(microsecond=0)


@pytest.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Provide a session on a brand-new in-memory database.

    StaticPool keeps the single in-memory connection alive for the whole
    test; the database disappears when the engine is disposed.
    """
    from app.core.db import Base
    import app.core.db.models  # noqa: F401

    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session = AsyncSession(bind=engine, expire_on_commit=False, autoflush=False)
    try:
        yield session
    finally:
        await session.close()
        await engine.dispose()


@pytest.fixture(autouse=True)
def mock_email_service(request):
    """Auto-mock every outbound email; each mock reports a successful send.

    Tests read sent codes from ``mock_email_service["otp"].call_args``.
    Tests marked ``real_email`` exercise the real send methods instead.
    """
    if request.node.get_closest_marker("real_email"):
        yield None
        return

    from app.core.services.email_manager import EmailManagerService

    with patch.object(
        EmailManagerService, "send_otp_email", new_callable=AsyncMock, return_value=True
    ) as otp, patch.object(
        EmailManagerService, "send_welcome_email", new_callable=AsyncMock, return_value=True
    ) as welcome, patch.object(
        EmailManagerService,
        "send_password_changed_email",
        new_callable=AsyncMock,
        return_value=True,
    ) as changed, patch.object(
        EmailManagerService,
        "send_password_reset_link_email",
        new_callable=AsyncMock,
        return_value=True,
    ) as reset_link:
        yield {
            "otp": otp,
            "welcome": welcome,
            "password_changed": changed,
            "reset_link": reset_link,
        }


@pytest.fixture
def make_user(db_session: AsyncSession):
    """Factory creating users directly through the CRUD layer.

    Defaults to an active, verified, regular user with ``TEST_PASSWORD``.
    """
    from app.core.db.crud import user_db
    from app.core.utils import hash_password

    password_hash = hash_password(TEST_PASSWORD)
    counter = {"n": 0}

    async def _make(**overrides):
        counter["n"] += 1
        data = {
            "email": f"user{counter['n']}@example.com",
            "name": f"User {counter['n']}",
            "phone": f"+1555010{counter['n']:04d}",
            "password_hash": password_hash,
            "is_active": True,
            "is_email_verified": True,
        }
        data.update(overrides)
        return await user_db.create(db_session, data)

    return _make


@pytest.fixture
def app():
    """Create FastAPI application for testing."""
    from app.main import app as fastapi_app

    return fastapi_app


@pytest.fixture
async def client(app, db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Provide an async HTTP client whose requests use ``db_session``."""
    from app.core.dependencies import get_async_session

    # No rollback on failure: it would expire the objects tests still hold
    async def override_get_session():
        yield db_session

    app.dependency_overrides[get_async_session] = override_get_session

    try:
        async with AsyncClient(
            transport=ASGITransport(app=app),
            base_url="http://test",
        ) as ac:
            yield ac
    finally:
        app.dependency_overrides.pop(get_async_session, None)


async def login_as(
    client: AsyncClient,
    email: str,
    password: str = TEST_PASSWORD,
    user_agent: str = DESKTOP_UA,
    ip_address: str = "203.0.113.10",
    force: bool = False,
):
    """POST /auth/login from a given device and return the raw response."""
    return await client.post(
        "/auth/force-login" if force else "/auth/login",
        json={"email": email, "password": password},
        headers={"User-Agent": user_agent, "X-Forwarded-For": ip_address},
    )


def bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}
