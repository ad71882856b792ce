from datetime import datetime
from typing import Sequence
from uuid import UUID

from sqlalchemy import or_
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.db.crud.base import BaseDB
from app.core.db.models.user import User
from app.core.enums import PaymentType, SubscriptionStatus


def _like_pattern(term: str) -> str:
    """Substring pattern with LIKE wildcards in ``term`` taken literally."""
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


class UserDB(BaseDB[User]):
    def __init__(self):
        super().__init__(model=User)

    async def get_by_email(self, session: AsyncSession, email: str) -> User | None:
        """Look a user up by email (stored lower-case)."""
        return await self.get_one_by_conditions(
            session=session,
            conditions=[self.model.email == email.strip().lower()],
        )

    async def get_by_phone(self, session: AsyncSession, phone: str) -> User | None:
        return await self.get_one_by_conditions(
            session=session,
            conditions=[self.model.phone == phone],
        )

    async def get_by_reset_token_hash(
        self, session: AsyncSession, token_hash: str, now: datetime
    ) -> User | None:
        """Find the user whose password reset token matches and is unexpired."""
        return await self.get_one_by_conditions(
            session=session,
            conditions=[
                self.model.password_reset_token_hash == token_hash,
                self.model.password_reset_expires_at > now,
            ],
        )

    async def search(
        self,
        session: AsyncSession,
        search: str | None = None,
        status: SubscriptionStatus | None = None,
        offset: int = 0,
        limit: int = 10,
    ) -> tuple[Sequence[User], int]:
        """
        Page through users, newest first.

        ``search`` matches a case-insensitive substring of name, email or
        phone; ``status`` filters on the subscription status.

        Returns:
            tuple[Sequence[User], int]: The page and the total number of matches.
        """
        conditions = []
        if search:
            pattern = _like_pattern(search.strip())
            conditions.append(
                or_(
                    self.model.name.ilike(pattern, escape="\\"),
                    self.model.email.ilike(pattern, escape="\\"),
                    self.model.phone.ilike(pattern, escape="\\"),
                )
            )
        if status is not None:
            conditions.append(self.model.subscription_status == status)
        return await self.get_page(
            session,
            conditions,
            order_by=[self.model.created_at.desc()],
            offset=offset,
            limit=limit,
        )

    async def get_payments(
        self,
        session: AsyncSession,
        status: SubscriptionStatus | None = None,
        payment_type: PaymentType | None = None,
        offset: int = 0,
        limit: int = 10,
    ) -> tuple[Sequence[User], int]:
        """Page through users who have submitted a payment, newest first."""
        conditions = [self.model.payment_amount.is_not(None)]
        if status is not None:
            conditions.append(self.model.subscription_status == status)
        if payment_type is not None:
            conditions.append(self.model.payment_type == payment_type)
        return await self.get_page(
            session,
            conditions,
            order_by=[self.model.created_at.desc()],
            offset=offset,
            limit=limit,
        )

    async def delete_by_id(
        self, session: AsyncSession, id: UUID, commit_self: bool = True
    ) -> bool:
        count = await self.delete_by_conditions(
            session=session,
            conditions=[self.model.id == id],
            commit_self=commit_self,
        )
        return count > 0

    async def lock_for_update(self, session: AsyncSession, id: UUID) -> User | None:
        """
        Re-read a user under a row lock so concurrent logins for the same user
        run their session decision one at a time.
        """
        return await self.get_by_id(session=session, id=id, for_update=True)

    async def record_failed_login(
        self,
        session: AsyncSession,
        id: UUID,
        max_attempts: int,
        lock_until: datetime,
        restart: bool = False,
        commit_self: bool = True,
    ) -> User | None:
        """
        Count one failed password attempt.

        The increment is computed by the database in the UPDATE statement, so
        concurrent failures for the same user are never lost. When ``restart``
        is set (a previous lock has elapsed) the counter starts again at 1 and
        the stale lock is cleared instead of compounding.

        Returns:
            User | None: The updated user.
        """
        if restart:
            updates = {"login_attempts": 1, "is_locked": False, "lock_until": None}
            return await self.update(session, id, updates, commit_self=commit_self)

        user = await self.update(
            session,
            id,
            {"login_attempts": self.model.login_attempts + 1},
            commit_self=False,
        )
        if user is not None and user.login_attempts >= max_attempts:
            user = await self.update(
                session,
                id,
                {"is_locked": True, "lock_until": lock_until},
                commit_self=False,
            )
        await self._finish(session, commit_self)
        return user

    async def record_successful_login(
        self,
        session: AsyncSession,
        id: UUID,
        now: datetime,
        ip_address: str | None,
        user_agent: str | None,
        commit_self: bool = True,
    ) -> User | None:
        return await self.update(
            session,
            id,
            {
                "login_attempts": 0,
                "is_locked": False,
                "lock_until": None,
                "last_login": now,
                "last_activity": now,
                "ip_address": ip_address,
                "user_agent": user_agent,
            },
            commit_self=commit_self,
        )

    async def expire_premium_subscriptions(
        self, session: AsyncSession, now: datetime, commit_self: bool = True
    ) -> int:
        """
        Downgrade every premium user whose end date has passed.

        Already-cancelled subscriptions are left untouched, so running this
        twice is harmless.

        Returns:
            int: Number of users downgraded.
        """
        return await self.update_by_conditions(
            session=session,
            conditions=[
                self.model.is_premium == True,  # noqa: E712
                self.model.premium_end_date < now,
                or_(
                    self.model.subscription_status.is_(None),
                    self.model.subscription_status != SubscriptionStatus.CANCEL,
                ),
            ],
            updates={
                "is_premium": False,
                "is_subscription_active": False,
                "subscription_status": SubscriptionStatus.CANCEL,
            },
            commit_self=commit_self,
        )
