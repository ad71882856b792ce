"""
CRUD operations for the UserSession model.

- Loading a user's live (active and unexpired) sessions
- Looking sessions up by their opaque id
- Applying invalidation/activity writes described by the session policy
- Sweeping expired and long-inactive sessions
"""

from datetime import datetime
from typing import Sequence
from uuid import UUID

from sqlalchemy import and_, or_
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.db.crud.base import BaseDB
from app.core.db.models.session import UserSession


class UserSessionDB(BaseDB[UserSession]):
    """
    Database operations for UserSession.

    Example:
        >>> db = UserSessionDB()
        >>> live = await db.get_live_for_user(session, user.id, now)
    """

    def __init__(self):
        super().__init__(model=UserSession)

    def _live_conditions(self, now: datetime) -> list:
        return [
            self.model.is_active == True,  # noqa: E712
            self.model.expires_at > now,
        ]

    async def get_by_session_id(
        self, session: AsyncSession, session_id: str
    ) -> UserSession | None:
        return await self.get_one_by_conditions(
            session=session,
            conditions=[self.model.session_id == session_id],
        )

    async def get_live_for_user(
        self, session: AsyncSession, user_id: UUID, now: datetime
    ) -> Sequence[UserSession]:
        """
        Return the user's active, unexpired sessions, most recently active first.
        """
        return await self.get_by_conditions(
            session=session,
            conditions=[self.model.user_id == user_id, *self._live_conditions(now)],
            order_by=[self.model.last_activity.desc()],
        )

    async def update_by_session_id(
        self,
        session: AsyncSession,
        session_id: str,
        updates: dict,
        commit_self: bool = True,
        user_id: UUID | None = None,
    ) -> int:
        """
        Apply ``updates`` to one session, optionally scoped to its owner.

        Returns:
            int: 1 if the session was updated, 0 if it does not exist (or is
            not owned by ``user_id``).
        """
        conditions = [self.model.session_id == session_id]
        if user_id is not None:
            conditions.append(self.model.user_id == user_id)
        return await self.update_by_conditions(
            session=session,
            conditions=conditions,
            updates=updates,
            commit_self=commit_self,
        )

    async def update_all_for_user(
        self,
        session: AsyncSession,
        user_id: UUID,
        updates: dict,
        except_session_id: str | None = None,
        commit_self: bool = True,
    ) -> int:
        """Apply ``updates`` to every active session of a user, minus one."""
        conditions = [
            self.model.user_id == user_id,
            self.model.is_active == True,  # noqa: E712
        ]
        if except_session_id is not None:
            conditions.append(self.model.session_id != except_session_id)
        return await self.update_by_conditions(
            session=session,
            conditions=conditions,
            updates=updates,
            commit_self=commit_self,
        )

    async def delete_all_for_user(
        self, session: AsyncSession, user_id: UUID, commit_self: bool = True
    ) -> int:
        return await self.delete_by_conditions(
            session=session,
            conditions=[self.model.user_id == user_id],
            commit_self=commit_self,
        )

    async def delete_stale(
        self,
        session: AsyncSession,
        now: datetime,
        retention_cutoff: datetime,
        commit_self: bool = True,
    ) -> int:
        """
        Permanently delete sessions that expired, or were logged out before
        ``retention_cutoff``.

        Returns:
            int: Number of sessions deleted.
        """
        return await self.delete_by_conditions(
            session=session,
            conditions=[
                or_(
                    self.model.expires_at < now,
                    and_(
                        self.model.is_active == False,  # noqa: E712
                        self.model.logout_time < retention_cutoff,
                    ),
                )
            ],
            commit_self=commit_self,
        )

    async def count_online_users(self, session: AsyncSession, now: datetime) -> int:
        """Number of distinct users holding at least one live, online session."""
        sessions = await self.get_by_conditions(
            session=session,
            conditions=[
                *self._live_conditions(now),
                self.model.is_online == True,  # noqa: E712
            ],
        )
        return len({s.user_id for s in sessions})
