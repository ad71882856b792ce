"""
Session model for server-recorded logins.

"""

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import Boolean, DateTime, Enum, ForeignKey, Index, String
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.db.models.base import BaseModel
from app.core.enums import DeviceType
from app.core.utils import as_utc, utc_now

if TYPE_CHECKING:
    from app.core.db.models.user import User


class UserSession(BaseModel):
    """
    One login on one device.

    A session is distinct from the JWT that references it: the token carries
    ``sid`` and every authenticated request checks that this row is still
    active and unexpired. At most two live sessions may exist per user.

    Attributes:
        session_id: Opaque, URL-safe identifier embedded in tokens.
        user_id: Owner of the session.
        email: Owner's email, denormalized for display and sweeps.
        is_active: False after logout, eviction or termination.
        is_online: Whether the device is considered connected.
        expires_at: Hard expiry; refreshed on activity.
        user_agent / ip_address: The device fingerprint used for
            same-device detection.
        platform / browser / device_type: Parsed from the user agent,
            for display only.
    """

    __tablename__ = "user_sessions"

    session_id: Mapped[str] = mapped_column(
        String(64),
        unique=True,
        index=True,
        nullable=False,
    )

    user_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    email: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )

    is_online: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )

    user_agent: Mapped[str] = mapped_column(
        String(512),
        default="",
        nullable=False,
    )

    ip_address: Mapped[str] = mapped_column(
        String(64),
        default="",
        nullable=False,
    )

    platform: Mapped[str] = mapped_column(
        String(32),
        default="unknown",
        nullable=False,
    )

    browser: Mapped[str] = mapped_column(
        String(32),
        default="unknown",
        nullable=False,
    )

    device_type: Mapped[DeviceType] = mapped_column(
        Enum(DeviceType, native_enum=False, name="device_type"),
        default=DeviceType.DESKTOP,
        nullable=False,
    )

    login_time: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    last_activity: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    logout_time: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        index=True,
    )

    user: Mapped["User"] = relationship(
        "User",
        back_populates="sessions",
    )

    __table_args__ = (Index("ix_user_sessions_user_active", "user_id", "is_active"),)

    def __repr__(self) -> str:
        return (
            f"<UserSession(session_id={self.session_id}, user_id={self.user_id}, "
            f"active={self.is_active}, expires_at={self.expires_at})>"
        )

    def is_live_at(self, now: datetime | None = None) -> bool:
        """Active and not yet expired."""
        now = now or utc_now()
        expires_at = as_utc(self.expires_at)
        return bool(self.is_active and expires_at is not None and expires_at > now)
