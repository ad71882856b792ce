"""
User model: identity, credentials, verification, lockout and premium state.
"""

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import JSON, Boolean, DateTime, Enum, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.db.models.base import BaseModel
from app.core.enums import PaymentType, SubscriptionStatus, UserRole
from app.core.utils import as_utc, utc_now

if TYPE_CHECKING:
    from app.core.db.models.session import UserSession


class User(BaseModel):
    """
    A GoChart account.

    A record is created inactive and unverified when a registration OTP is
    requested, and is promoted to active + verified once the OTP is
    confirmed. Login is allowed only for active, verified, unlocked users.

    OTP and password reset secrets are stored as SHA-256 digests only.
    """

    __tablename__ = "users"

    # Identity
    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        index=True,
        nullable=False,
    )

    phone: Mapped[str | None] = mapped_column(
        String(32),
        unique=True,
        index=True,
        nullable=True,
    )

    name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )

    role: Mapped[UserRole] = mapped_column(
        Enum(UserRole, native_enum=False, name="user_role"),
        default=UserRole.USER,
        nullable=False,
    )

    # Credential
    password_hash: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )

    password_changed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )

    # Verification
    is_email_verified: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )

    otp_hash: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
    )

    otp_expires_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    password_reset_token_hash: Mapped[str | None] = mapped_column(
        String(64),
        index=True,
        nullable=True,
    )

    password_reset_expires_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    # Lockout
    login_attempts: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
    )

    is_locked: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )

    lock_until: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    # Activity
    last_login: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    last_activity: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    ip_address: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
    )

    user_agent: Mapped[str | None] = mapped_column(
        String(512),
        nullable=True,
    )

    # Premium subscription
    is_premium: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )

    is_subscription_active: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )

    subscription_status: Mapped[SubscriptionStatus | None] = mapped_column(
        Enum(SubscriptionStatus, native_enum=False, name="subscription_status"),
        nullable=True,
        index=True,
    )

    premium_start_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    premium_end_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        index=True,
    )

    subscription_months: Mapped[int | None] = mapped_column(
        Integer,
        nullable=True,
    )

    payment_type: Mapped[PaymentType | None] = mapped_column(
        Enum(PaymentType, native_enum=False, name="payment_type"),
        nullable=True,
    )

    payment_amount: Mapped[Decimal | None] = mapped_column(
        Numeric(12, 2),
        nullable=True,
    )

    payment_plan_id: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
    )

    transaction_id: Mapped[str | None] = mapped_column(
        String(128),
        nullable=True,
    )

    utr_no: Mapped[str | None] = mapped_column(
        String(128),
        nullable=True,
    )

    # Most recently opened charts, newest first: [{symbol, title, path, opened_at}]
    recent_charts: Mapped[list[dict]] = mapped_column(
        JSON,
        default=list,
        nullable=False,
    )

    sessions: Mapped[list["UserSession"]] = relationship(
        "UserSession",
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return (
            f"<User(id={self.id}, email={self.email}, "
            f"active={self.is_active}, verified={self.is_email_verified})>"
        )

    def is_locked_at(self, now: datetime | None = None) -> bool:
        """A lock whose ``lock_until`` has passed no longer counts."""
        now = now or utc_now()
        lock_until = as_utc(self.lock_until)
        return bool(self.is_locked and lock_until is not None and lock_until > now)
