"""
Premium subscription lifecycle.

A user submits a payment reference (status ``pending``), an admin approves
(``paid``, premium on) or declines (``cancel``), and a periodic sweep
downgrades subscriptions whose end date has passed.
"""

import calendar
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Sequence
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import subscription_logger
from app.core.db.crud import user_db
from app.core.db.models import User
from app.core.enums import PaymentType, SubscriptionStatus
from app.core.exceptions.types import BadRequestException, UserNotFoundException
from app.core.utils import as_utc, utc_now


__all__ = ["SubscriptionService", "add_months", "subscription_service"]


def add_months(start: datetime, months: int) -> datetime:
    """Same day ``months`` calendar months later, clamped to the month's end."""
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return start.replace(year=year, month=month, day=day)


class SubscriptionService:
    def __init__(self, user_store=user_db):
        self.users = user_store

    async def _get_user(self, session: AsyncSession, user_id: UUID) -> User:
        user = await self.users.get_by_id(session, user_id)
        if user is None:
            raise UserNotFoundException()
        return user

    async def _apply(
        self,
        session: AsyncSession,
        user_id: UUID,
        updates: dict[str, Any],
        commit_self: bool,
    ) -> User:
        user = await self.users.update(session, user_id, updates, commit_self=commit_self)
        if user is None:
            raise UserNotFoundException()
        return user

    async def submit_payment(
        self,
        session: AsyncSession,
        user: User,
        utr_no: str,
        months: int,
        amount: Decimal | float | str,
        payment_type: PaymentType | str,
        payment_plan_id: str | None = None,
        commit_self: bool = True,
    ) -> User:
        """
        Record a payment for admin review.

        Premium access is switched off until the payment is approved.

        Raises:
            BadRequestException: Missing reference, non-positive months or
                amount, or unknown payment type.
        """
        utr_no = (utr_no or "").strip()
        if not utr_no:
            raise BadRequestException("Payment reference (UTR number) is required.")
        if months is None or int(months) < 1:
            raise BadRequestException("Subscription months must be at least 1.")
        try:
            amount = Decimal(str(amount))
        except InvalidOperation as e:
            raise BadRequestException("Invalid payment amount.") from e
        if amount <= 0:
            raise BadRequestException("Payment amount must be positive.")
        try:
            payment_type = PaymentType(payment_type)
        except ValueError as e:
            raise BadRequestException(
                "Invalid payment type. Must be crypto or regular."
            ) from e

        updated = await self._apply(
            session,
            user.id,
            {
                "utr_no": utr_no,
                "subscription_status": SubscriptionStatus.PENDING,
                "subscription_months": int(months),
                "payment_type": payment_type,
                "payment_amount": amount,
                "payment_plan_id": payment_plan_id,
                "is_premium": False,
                "is_subscription_active": False,
            },
            commit_self,
        )
        subscription_logger.info(
            f"Payment submitted: {user.email} - UTR: {utr_no} - Amount: {amount} - Type: {payment_type.value}"
        )
        return updated

    async def approve(
        self,
        session: AsyncSession,
        user_id: UUID,
        premium_end_date: datetime | None = None,
        transaction_id: str | None = None,
        now: datetime | None = None,
        commit_self: bool = True,
    ) -> User:
        """
        Approve a payment and switch premium on from ``now``.

        The end date is ``premium_end_date`` when given, else the start plus
        the submitted number of months (open-ended if none were submitted).
        A ``transaction_id`` from the payment provider is recorded when given.
        """
        now = now or utc_now()
        user = await self._get_user(session, user_id)

        end_date = as_utc(premium_end_date)
        if end_date is None and user.subscription_months:
            end_date = add_months(now, user.subscription_months)

        updates: dict[str, Any] = {
            "subscription_status": SubscriptionStatus.PAID,
            "is_premium": True,
            "is_subscription_active": True,
            "premium_start_date": now,
            "premium_end_date": end_date,
        }
        if transaction_id:
            updates["transaction_id"] = transaction_id

        updated = await self._apply(session, user_id, updates, commit_self)
        subscription_logger.info(
            f"Subscription approved: {user.email} until {end_date.isoformat() if end_date else 'open-ended'}"
        )
        return updated

    async def decline(
        self, session: AsyncSession, user_id: UUID, commit_self: bool = True
    ) -> User:
        user = await self._get_user(session, user_id)
        updated = await self._apply(
            session,
            user_id,
            {
                "subscription_status": SubscriptionStatus.CANCEL,
                "is_premium": False,
                "is_subscription_active": False,
                "premium_start_date": None,
                "premium_end_date": None,
                "subscription_months": 0,
                "utr_no": None,
            },
            commit_self,
        )
        subscription_logger.info(f"Subscription declined: {user.email}")
        return updated

    async def change_subscription_months(
        self,
        session: AsyncSession,
        user_id: UUID,
        months: int,
        commit_self: bool = True,
    ) -> User:
        """
        Recompute the end date as start date plus ``months``.

        Raises:
            BadRequestException: ``months`` < 1, or the user has no start date.
        """
        if months is None or int(months) < 1:
            raise BadRequestException("Subscription months must be at least 1.")
        user = await self._get_user(session, user_id)
        start = as_utc(user.premium_start_date)
        if start is None:
            raise BadRequestException("User does not have a premium start date.")

        updated = await self._apply(
            session,
            user_id,
            {
                "subscription_months": int(months),
                "premium_end_date": add_months(start, int(months)),
            },
            commit_self,
        )
        subscription_logger.info(
            f"Subscription months updated for {user.email}: {months} months"
        )
        return updated

    async def get_payment_info(self, session: AsyncSession, user_id: UUID) -> User:
        return await self._get_user(session, user_id)

    async def list_payments(
        self,
        session: AsyncSession,
        status: SubscriptionStatus | None = None,
        payment_type: PaymentType | None = None,
        page: int = 1,
        limit: int = 10,
    ) -> tuple[Sequence[User], int]:
        """
        One page of submitted payments, newest account first.

        Returns:
            tuple[Sequence[User], int]: The page and the total number of payments.
        """
        return await self.users.get_payments(
            session,
            status=status,
            payment_type=payment_type,
            offset=(page - 1) * limit,
            limit=limit,
        )

    async def expire_subscriptions(
        self, session: AsyncSession, now: datetime | None = None
    ) -> int:
        """Downgrade every premium subscription past its end date."""
        count = await self.users.expire_premium_subscriptions(session, now or utc_now())
        subscription_logger.info(f"Premium status check completed. {count} users updated")
        return count


subscription_service = SubscriptionService()
