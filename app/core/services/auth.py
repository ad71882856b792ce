"""
Authentication Service for account state transitions.

This module handles:
- Registration by email OTP (pending placeholder -> active, verified user)
- Email verification and resending verification codes
- Credential checks with automatic lockout after repeated failures
- Password change, reset by OTP, and reset by emailed single-use link
- Profile updates

Writes go through the injected user/session stores; the OTP engine and
token issuer are pure. Mutating methods take ``commit_self`` like the CRUD
layer: True commits, False leaves the transaction to the caller. Methods
that email a code commit before sending, so a delivery failure never
leaves the account in a half-written state.

Example usage:
    from app.core.services.auth import auth_service

    user = await auth_service.register_pending(session, name="Jane", email="jane@example.com")
    user, token = await auth_service.complete_registration(
        session,
        email="jane@example.com",
        otp="123456",
        phone="+15550100",
        password="Str0ngPass!",
    )
"""

from datetime import datetime, timedelta
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import auth_logger, settings
from app.core.db.crud import user_db, user_session_db
from app.core.db.models import User
from app.core.enums import OTPPurpose
from app.core.exceptions.types import (
    AccountLockedException,
    AuthenticationException,
    BadRequestException,
    EmailDeliveryException,
    InvalidCredentialsException,
    OTPInvalidException,
    PhoneAlreadyRegisteredException,
    TokenInvalidException,
    UserAlreadyExistsException,
    UserNotFoundException,
)
from app.core.services.email_manager import EmailManagerService
from app.core.services.otp import OTPEngine, otp_engine
from app.core.services.session_policy import invalidation_updates
from app.core.services.tokens import TokenIssuer, token_issuer
from app.core.utils import as_utc, hash_password, mask_otp, utc_now, verify_password


__all__ = ["AuthService", "auth_service", "normalize_email"]


def normalize_email(email: str) -> str:
    return email.strip().lower()


class AuthService:
    """
    Stateless authentication operations over injected stores.

    Args:
        user_store: CRUD handle for users (``UserDB`` interface).
        session_store: CRUD handle for login sessions (``UserSessionDB``).
        otp: OTP engine.
        tokens: Token issuer.
        mailer: Email collaborator; send methods return bool.
        max_login_attempts: Failures before the account is locked.
        lock_duration: How long a lock lasts.
    """

    def __init__(
        self,
        user_store=user_db,
        session_store=user_session_db,
        otp: OTPEngine = otp_engine,
        tokens: TokenIssuer = token_issuer,
        mailer=EmailManagerService,
        max_login_attempts: int = settings.MAX_LOGIN_ATTEMPTS,
        lock_duration: timedelta = timedelta(hours=settings.ACCOUNT_LOCK_HOURS),
    ):
        self.users = user_store
        self.sessions = session_store
        self.otp = otp
        self.tokens = tokens
        self.mailer = mailer
        self.max_login_attempts = max_login_attempts
        self.lock_duration = lock_duration

    # =========================================================================
    # Helpers
    # =========================================================================

    async def _finish(self, session: AsyncSession, commit_self: bool) -> None:
        if commit_self:
            await session.commit()

    async def _deliver_otp(self, user: User, code: str, purpose: OTPPurpose) -> None:
        """Send a code; the caller cannot proceed without it, so failure raises."""
        sent = await self.mailer.send_otp_email(
            email=user.email,
            otp_code=code,
            purpose=purpose,
            user_name=user.name,
        )
        if not sent:
            auth_logger.error(
                f"OTP delivery failed: email={user.email}, purpose={purpose.value}"
            )
            raise EmailDeliveryException(
                "Failed to send verification code. Please request a new one."
            )
        auth_logger.info(
            f"OTP sent: email={user.email}, purpose={purpose.value}, code={mask_otp(code)}"
        )

    async def _notify(self, send, email: str, name: str | None, what: str) -> None:
        """Fire-and-log email: a failure is logged, never raised."""
        if not await send(email=email, user_name=name):
            auth_logger.warning(f"{what} email not delivered to {email}")

    async def revoke_all_sessions(
        self,
        session: AsyncSession,
        user_id,
        now: datetime | None = None,
        commit_self: bool = True,
    ) -> int:
        """Invalidate every active login session of a user."""
        count = await self.sessions.update_all_for_user(
            session,
            user_id,
            invalidation_updates(now or utc_now()),
            commit_self=False,
        )
        await self._finish(session, commit_self)
        auth_logger.info(f"Revoked {count} session(s) for user {user_id}")
        return count

    # =========================================================================
    # Registration
    # =========================================================================

    async def register_pending(
        self,
        session: AsyncSession,
        name: str,
        email: str,
        now: datetime | None = None,
    ) -> User:
        """
        Start registration: attach a fresh OTP to an inactive placeholder.

        Any inactive record for the email is reused as the placeholder: its
        pending code is overwritten and it is marked unverified again, so
        registration can always be finished through ``complete_registration``.
        The OTP is committed before it is emailed.

        Raises:
            UserAlreadyExistsException: An active account owns the email.
            EmailDeliveryException: The code could not be emailed.
        """
        email = normalize_email(email)
        existing = await self.users.get_by_email(session, email)

        if existing is not None and existing.is_active:
            auth_logger.warning(f"Registration OTP refused: email already registered {email}")
            raise UserAlreadyExistsException()

        issued = self.otp.issue(now)
        if existing is None:
            user = await self.users.create(
                session,
                {
                    "name": name,
                    "email": email,
                    "is_active": False,
                    "is_email_verified": False,
                    **issued.updates,
                },
                commit_self=False,
            )
        else:
            user = await self.users.update(
                session,
                existing.id,
                {"name": name, "is_email_verified": False, **issued.updates},
                commit_self=False,
            )

        await session.commit()
        await self._deliver_otp(user, issued.code, OTPPurpose.EMAIL_VERIFICATION)
        auth_logger.info(f"Registration pending: email={email}")
        return user

    async def complete_registration(
        self,
        session: AsyncSession,
        email: str,
        otp: str,
        phone: str,
        password: str,
        name: str | None = None,
        now: datetime | None = None,
        commit_self: bool = True,
    ) -> tuple[User, str]:
        """
        Finish registration: verify the OTP and activate the account.

        All checks run before anything is written.

        Returns:
            tuple[User, str]: The activated user and a 24-hour access token.

        Raises:
            OTPInvalidException: No pending registration, or the code is wrong or expired.
            PhoneAlreadyRegisteredException: Another active account owns ``phone``.
        """
        email = normalize_email(email)
        now = now or utc_now()
        user = await self.users.get_by_email(session, email)

        if user is None or user.is_active:
            auth_logger.warning(f"Registration failed: no pending registration for {email}")
            raise OTPInvalidException()

        if not self.otp.verify(user, otp, now):
            auth_logger.warning(f"Registration failed: invalid OTP for {email}")
            raise OTPInvalidException()

        phone_owner = await self.users.get_by_phone(session, phone)
        if phone_owner is not None and phone_owner.id != user.id:
            if phone_owner.is_active:
                auth_logger.warning(f"Registration failed: phone already registered {phone}")
                raise PhoneAlreadyRegisteredException()
            # Phone is unique: take it over from the inactive record
            await self.users.update(
                session, phone_owner.id, {"phone": None}, commit_self=False
            )

        updates: dict[str, Any] = {
            "phone": phone,
            "password_hash": hash_password(password),
            "is_active": True,
            "is_email_verified": True,
            **self.otp.clear_updates(),
        }
        if name:
            updates["name"] = name

        user = await self.users.update(session, user.id, updates, commit_self=False)
        await self._finish(session, commit_self)

        token = self.tokens.issue_access_token(user, now=now)
        await self._notify(self.mailer.send_welcome_email, user.email, user.name, "Welcome")
        auth_logger.info(f"Registration complete: email={email}")
        return user, token

    async def verify_email(
        self,
        session: AsyncSession,
        email: str,
        otp: str,
        now: datetime | None = None,
        commit_self: bool = True,
    ) -> tuple[User, str]:
        """
        Verify the email of an existing, not yet verified account.

        Raises:
            OTPInvalidException: Unknown email, or wrong/expired code.
            BadRequestException: The email is already verified, or it belongs
                to a registration placeholder that must be finished through
                ``complete_registration``.
        """
        email = normalize_email(email)
        now = now or utc_now()
        user = await self.users.get_by_email(session, email)

        if user is None:
            raise OTPInvalidException()
        if not user.is_active and user.password_hash is None:
            auth_logger.warning(f"Email verification refused: registration pending for {email}")
            raise BadRequestException(
                "Registration is not complete. Submit the code with your phone and password to register."
            )
        if user.is_email_verified:
            raise BadRequestException("Email is already verified.")
        if not self.otp.verify(user, otp, now):
            auth_logger.warning(f"Email verification failed: invalid OTP for {email}")
            raise OTPInvalidException()

        user = await self.users.update(
            session,
            user.id,
            {"is_email_verified": True, **self.otp.clear_updates()},
            commit_self=False,
        )
        await self._finish(session, commit_self)

        token = self.tokens.issue_access_token(user, now=now)
        await self._notify(self.mailer.send_welcome_email, user.email, user.name, "Welcome")
        auth_logger.info(f"Email verified: email={email}")
        return user, token

    async def resend_verification(
        self, session: AsyncSession, email: str, now: datetime | None = None
    ) -> None:
        """
        Re-issue a verification code.

        Unknown or already verified addresses are a silent no-op so the
        endpoint cannot be used to discover which emails are registered.
        """
        email = normalize_email(email)
        user = await self.users.get_by_email(session, email)
        if user is None or user.is_email_verified:
            auth_logger.info(f"Resend verification skipped for {email}")
            return

        issued = self.otp.issue(now)
        user = await self.users.update(session, user.id, issued.updates, commit_self=False)
        await session.commit()
        await self._deliver_otp(user, issued.code, OTPPurpose.EMAIL_VERIFICATION)

    # =========================================================================
    # Credentials
    # =========================================================================

    async def authenticate(
        self,
        session: AsyncSession,
        email: str,
        password: str,
        now: datetime | None = None,
    ) -> User:
        """
        Check email and password, enforcing the lockout rule.

        A wrong password is always recorded and committed before the
        exception propagates, so the failure counter survives the caller's
        rollback. A successful check resets the counter (flushed only; the
        caller commits).

        Raises:
            InvalidCredentialsException: Unknown email or wrong password.
            AuthenticationException: Deactivated or unverified account.
            AccountLockedException: Locked; carries ``lock_until``.
        """
        email = normalize_email(email)
        now = now or utc_now()
        user = await self.users.get_by_email(session, email)

        if user is None:
            auth_logger.warning(f"Login failed: user not found {email}")
            raise InvalidCredentialsException()

        if not user.is_active:
            auth_logger.warning(f"Login failed: account deactivated {email}")
            raise AuthenticationException("Account has been deactivated.")

        if not user.is_email_verified:
            auth_logger.warning(f"Login failed: email not verified {email}")
            raise AuthenticationException(
                "Please verify your email before logging in."
            )

        if user.is_locked_at(now):
            auth_logger.warning(f"Login failed: account locked {email}")
            raise AccountLockedException(as_utc(user.lock_until))

        if not verify_password(password, user.password_hash):
            # An elapsed lock restarts the count instead of compounding
            lock_elapsed = user.lock_until is not None and as_utc(user.lock_until) <= now
            updated = await self.users.record_failed_login(
                session,
                user.id,
                max_attempts=self.max_login_attempts,
                lock_until=now + self.lock_duration,
                restart=lock_elapsed,
                commit_self=True,
            )
            attempts = updated.login_attempts if updated is not None else "?"
            auth_logger.warning(
                f"Login failed: wrong password {email} (attempt {attempts})"
            )
            raise InvalidCredentialsException()

        if user.login_attempts or user.is_locked or user.lock_until is not None:
            user = await self.users.update(
                session,
                user.id,
                {"login_attempts": 0, "is_locked": False, "lock_until": None},
                commit_self=False,
            )

        return user

    async def change_password(
        self,
        session: AsyncSession,
        user: User,
        current_password: str,
        new_password: str,
        now: datetime | None = None,
        commit_self: bool = True,
    ) -> User:
        """
        Change a password after re-checking the current one.

        Stamps ``password_changed_at`` (which invalidates every earlier
        token) and signs out every session.

        Raises:
            InvalidCredentialsException: ``current_password`` is wrong.
        """
        now = now or utc_now()
        if not verify_password(current_password, user.password_hash):
            auth_logger.warning(f"Password change failed: wrong current password {user.email}")
            raise InvalidCredentialsException("Current password is incorrect.")

        updated = await self._set_password(session, user, new_password, now)
        await self._finish(session, commit_self)
        await self._notify(
            self.mailer.send_password_changed_email, updated.email, updated.name, "Password change"
        )
        auth_logger.info(f"Password changed: email={updated.email}")
        return updated

    async def _set_password(
        self,
        session: AsyncSession,
        user: User,
        new_password: str,
        now: datetime,
        extra: dict[str, Any] | None = None,
    ) -> User:
        updated = await self.users.update(
            session,
            user.id,
            {
                "password_hash": hash_password(new_password),
                "password_changed_at": now,
                "login_attempts": 0,
                "is_locked": False,
                "lock_until": None,
                **(extra or {}),
            },
            commit_self=False,
        )
        await self.revoke_all_sessions(session, user.id, now, commit_self=False)
        return updated

    # =========================================================================
    # Password reset by OTP
    # =========================================================================

    async def request_password_reset_otp(
        self, session: AsyncSession, email: str, now: datetime | None = None
    ) -> None:
        """
        Email a password reset code.

        Unknown addresses are a silent no-op.

        Raises:
            AuthenticationException: The account's email is not verified.
            EmailDeliveryException: The code could not be emailed.
        """
        email = normalize_email(email)
        user = await self.users.get_by_email(session, email)
        if user is None:
            auth_logger.info(f"Password reset OTP skipped: unknown email {email}")
            return
        if not user.is_email_verified:
            raise AuthenticationException(
                "Please verify your email before resetting your password."
            )

        issued = self.otp.issue(now)
        user = await self.users.update(session, user.id, issued.updates, commit_self=False)
        await session.commit()
        await self._deliver_otp(user, issued.code, OTPPurpose.PASSWORD_RESET)

    async def reset_with_otp(
        self,
        session: AsyncSession,
        email: str,
        otp: str,
        new_password: str,
        now: datetime | None = None,
        commit_self: bool = True,
    ) -> User:
        """
        Set a new password after verifying a reset code.

        The code is consumed, ``password_changed_at`` is stamped and all
        sessions are signed out.

        Raises:
            OTPInvalidException: Unknown email, or wrong/expired code.
        """
        email = normalize_email(email)
        now = now or utc_now()
        user = await self.users.get_by_email(session, email)
        if user is None or not self.otp.verify(user, otp, now):
            auth_logger.warning(f"Password reset failed: invalid OTP for {email}")
            raise OTPInvalidException()

        updated = await self._set_password(
            session, user, new_password, now, extra=self.otp.clear_updates()
        )
        await self._finish(session, commit_self)
        await self._notify(
            self.mailer.send_password_changed_email, updated.email, updated.name, "Password change"
        )
        auth_logger.info(f"Password reset by OTP: email={email}")
        return updated

    # =========================================================================
    # Password reset by link
    # =========================================================================

    async def forgot_password(
        self, session: AsyncSession, email: str, now: datetime | None = None
    ) -> None:
        """
        Email a single-use reset link valid for a short window.

        Only the token digest is stored. Unknown addresses are a silent no-op.
        """
        email = normalize_email(email)
        user = await self.users.get_by_email(session, email)
        if user is None:
            auth_logger.info(f"Forgot password skipped: unknown email {email}")
            return

        reset = self.tokens.create_password_reset_token(now)
        await self.users.update(
            session,
            user.id,
            {
                "password_reset_token_hash": reset.token_hash,
                "password_reset_expires_at": reset.expires_at,
            },
            commit_self=False,
        )
        await session.commit()

        sent = await self.mailer.send_password_reset_link_email(
            email=user.email, reset_token=reset.token, user_name=user.name
        )
        if not sent:
            await self.users.update(
                session,
                user.id,
                {"password_reset_token_hash": None, "password_reset_expires_at": None},
            )
            raise EmailDeliveryException("Failed to send password reset email.")
        auth_logger.info(f"Password reset link sent: email={email}")

    async def reset_password(
        self,
        session: AsyncSession,
        token: str,
        new_password: str,
        now: datetime | None = None,
        commit_self: bool = True,
    ) -> User:
        """
        Set a new password using a reset link token.

        The token is cleared on success, so it works once.

        Raises:
            TokenInvalidException: Unknown, used or expired token.
        """
        now = now or utc_now()
        user = await self.users.get_by_reset_token_hash(
            session, self.tokens.hash_token(token), now
        )
        if user is None:
            auth_logger.warning("Password reset failed: invalid or expired token")
            raise TokenInvalidException("Password reset token is invalid or has expired.")

        updated = await self._set_password(
            session,
            user,
            new_password,
            now,
            extra={"password_reset_token_hash": None, "password_reset_expires_at": None},
        )
        await self._finish(session, commit_self)
        await self._notify(
            self.mailer.send_password_changed_email, updated.email, updated.name, "Password change"
        )
        auth_logger.info(f"Password reset by link: email={updated.email}")
        return updated

    # =========================================================================
    # Profile
    # =========================================================================

    async def update_profile(
        self,
        session: AsyncSession,
        user: User,
        name: str | None = None,
        phone: str | None = None,
        commit_self: bool = True,
    ) -> User:
        """
        Raises:
            PhoneAlreadyRegisteredException: Another account owns ``phone``.
            UserNotFoundException: The user vanished mid-request.
        """
        updates: dict[str, Any] = {}
        if name:
            updates["name"] = name
        if phone and phone != user.phone:
            owner = await self.users.get_by_phone(session, phone)
            if owner is not None and owner.id != user.id:
                raise PhoneAlreadyRegisteredException()
            updates["phone"] = phone

        if not updates:
            return user

        updated = await self.users.update(session, user.id, updates, commit_self=False)
        if updated is None:
            raise UserNotFoundException()
        await self._finish(session, commit_self)
        auth_logger.info(f"Profile updated: email={user.email}, fields={sorted(updates)}")
        return updated


auth_service = AuthService()
