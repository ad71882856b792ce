from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.db import AsyncSessionLocal


async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """
    One session per request.

    Services commit their own work; anything still pending when the request
    fails is rolled back before the session is closed.

    Yields:
        AsyncSession: The request's database session.
    """
    async with AsyncSessionLocal() as async_session:
        try:
            yield async_session
        except Exception:
            await async_session.rollback()
            raise
