"""
Account management outside authentication.

- Recent chart history per user (newest first, capped)
- Admin user listing with search and pagination
- Admin deletion of an account and its sessions
"""

from datetime import datetime
from typing import Sequence
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import user_logger
from app.core.db.crud import user_db, user_session_db
from app.core.db.models import User
from app.core.enums import SubscriptionStatus
from app.core.exceptions.types import UserNotFoundException
from app.core.utils import utc_now


__all__ = ["RECENT_CHARTS_LIMIT", "UserService", "user_service"]


RECENT_CHARTS_LIMIT = 5


class UserService:
    def __init__(self, user_store=user_db, session_store=user_session_db):
        self.users = user_store
        self.sessions = session_store

    def get_chart_history(self, user: User) -> list[dict]:
        return list(user.recent_charts or [])[:RECENT_CHARTS_LIMIT]

    async def add_chart_history_entry(
        self,
        session: AsyncSession,
        user: User,
        symbol: str,
        title: str,
        path: str,
        now: datetime | None = None,
        commit_self: bool = True,
    ) -> list[dict]:
        """
        Put a chart at the front of the user's history.

        Any earlier entry for the same ``path`` or the same ``symbol`` is
        replaced, and only the newest ``RECENT_CHARTS_LIMIT`` entries are kept.

        Returns:
            list[dict]: The updated history.
        """
        entry = {
            "symbol": symbol,
            "title": title,
            "path": path,
            "opened_at": (now or utc_now()).isoformat(),
        }
        kept = [
            e
            for e in (user.recent_charts or [])
            if e.get("path") != path and e.get("symbol") != symbol
        ]
        history = [entry, *kept][:RECENT_CHARTS_LIMIT]

        updated = await self.users.update(
            session, user.id, {"recent_charts": history}, commit_self=commit_self
        )
        if updated is None:
            raise UserNotFoundException()
        return list(updated.recent_charts)

    async def list_users(
        self,
        session: AsyncSession,
        search: str | None = None,
        status: SubscriptionStatus | None = None,
        page: int = 1,
        limit: int = 10,
    ) -> tuple[Sequence[User], int]:
        return await self.users.search(
            session,
            search=search,
            status=status,
            offset=(page - 1) * limit,
            limit=limit,
        )

    async def delete_user(
        self, session: AsyncSession, user_id: UUID, commit_self: bool = True
    ) -> None:
        """
        Permanently delete an account together with its login sessions.

        Raises:
            UserNotFoundException: No user has ``user_id``.
        """
        user = await self.users.get_by_id(session, user_id)
        if user is None:
            raise UserNotFoundException()
        email = user.email

        removed = await self.sessions.delete_all_for_user(
            session, user_id, commit_self=False
        )
        await self.users.delete_by_id(session, user_id, commit_self=commit_self)
        user_logger.info(f"User deleted: {email} ({removed} session(s) removed)")


user_service = UserService()
