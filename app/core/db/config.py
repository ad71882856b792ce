from typing import Any

from sqlalchemy.ext.asyncio import (
    create_async_engine,
    AsyncEngine,
    async_sessionmaker,
    AsyncAttrs,
)
from sqlalchemy.orm import DeclarativeBase

from app.core.config import database_logger, settings

ASYNC_SQLALCHEMY_DATABASE_URL = settings.DATABASE_URL


def _engine_options(url: str) -> dict[str, Any]:
    """Pool settings only apply to server databases, not to SQLite."""
    options: dict[str, Any] = {"echo": settings.DEBUG}
    if not url.startswith("sqlite"):
        options.update(
            pool_size=20,
            max_overflow=30,
            pool_pre_ping=True,  # Validate connections before use
            pool_recycle=3600,
        )
    return options


async_engine: AsyncEngine = create_async_engine(
    ASYNC_SQLALCHEMY_DATABASE_URL,
    **_engine_options(ASYNC_SQLALCHEMY_DATABASE_URL),
)

AsyncSessionLocal = async_sessionmaker(
    bind=async_engine,
    autoflush=False,
    expire_on_commit=False,
    autobegin=True,
)


class Base(AsyncAttrs, DeclarativeBase):
    pass


async def init_db() -> None:
    """
    Create every table registered on the declarative metadata.

    Production schemas are managed by Alembic; this is for local
    development and tests.
    """
    # Register the models on Base.metadata before create_all
    import app.core.db.models  # noqa: F401

    async with async_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    database_logger.info("Database tables created")


async def dispose_db() -> None:
    """Dispose the engine's connection pool."""
    await async_engine.dispose()
    database_logger.info("Database engine disposed")
