"""
Session Service: login under the concurrent-session cap, and request auth.

The decision of what a login does lives in ``session_policy`` (pure); this
module loads state, takes the per-user lock, applies the decision's writes
and mints the session-bound token.

Every protected request goes through ``authenticate_request``: the token
must verify, reference a live session owned by its subject, belong to an
active user whose password has not changed since the token was issued.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Sequence
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import session_logger, settings
from app.core.db.crud import user_db, user_session_db
from app.core.db.models import User, UserSession
from app.core.enums import LoginAction, TokenType
from app.core.exceptions.types import (
    AuthenticationException,
    SessionNotFoundException,
    TokenInvalidException,
)
from app.core.services.auth import AuthService, auth_service
from app.core.services.device import DeviceFingerprint, parse_user_agent
from app.core.services.session_policy import (
    activity_updates,
    decide_login,
    invalidation_updates,
    is_live,
    new_session_fields,
)
from app.core.services.tokens import TokenIssuer, token_issuer
from app.core.utils import utc_now


__all__ = [
    "LoginResult",
    "Principal",
    "SessionLimitExceeded",
    "SessionService",
    "session_service",
]


@dataclass
class LoginResult:
    """A successful login."""

    user: User
    token: str
    session: UserSession
    action: LoginAction
    evicted_session_ids: list[str] = field(default_factory=list)


@dataclass
class SessionLimitExceeded:
    """Login refused because the cap is reached by other devices."""

    max_sessions: int
    active_sessions: list[UserSession]


@dataclass
class Principal:
    """The authenticated caller of a protected request."""

    user_id: UUID
    email: str
    role: str
    session_id: str
    user: User


class SessionService:
    def __init__(
        self,
        user_store=user_db,
        session_store=user_session_db,
        auth: AuthService = auth_service,
        tokens: TokenIssuer = token_issuer,
        max_sessions: int = settings.MAX_ACTIVE_SESSIONS,
        duration: timedelta = timedelta(hours=settings.SESSION_DURATION_HOURS),
        retention: timedelta = timedelta(days=settings.SESSION_RETENTION_DAYS),
    ):
        self.users = user_store
        self.sessions = session_store
        self.auth = auth
        self.tokens = tokens
        self.max_sessions = max_sessions
        self.duration = duration
        self.retention = retention

    async def _finish(self, session: AsyncSession, commit_self: bool) -> None:
        if commit_self:
            await session.commit()

    # =========================================================================
    # Login
    # =========================================================================

    async def login(
        self,
        session: AsyncSession,
        email: str,
        password: str,
        fingerprint: DeviceFingerprint,
        force_login: bool = False,
        now: datetime | None = None,
    ) -> LoginResult | SessionLimitExceeded:
        """
        Authenticate and open (or reuse) a session for ``fingerprint``.

        Credentials are checked first; failures raise from ``AuthService``.
        The user row is then locked so that concurrent logins for the same
        user decide one after another against fresh session state.

        Returns:
            LoginResult: The session and its 24-hour token.
            SessionLimitExceeded: The cap is reached by other devices and
                ``force_login`` was not set.
        """
        now = now or utc_now()
        user = await self.auth.authenticate(session, email, password, now)
        await self.users.lock_for_update(session, user.id)

        live = await self.sessions.get_live_for_user(session, user.id, now)
        decision = decide_login(
            live,
            fingerprint,
            force_login,
            now,
            max_sessions=self.max_sessions,
            duration=self.duration,
        )

        if decision.action == LoginAction.REJECT:
            # Keeps the counter reset from a correct password
            await session.commit()
            session_logger.info(
                f"Login rejected: session limit reached for {user.email} "
                f"({len(decision.active_sessions)} active)"
            )
            return SessionLimitExceeded(
                max_sessions=self.max_sessions,
                active_sessions=list(decision.active_sessions),
            )

        evicted: list[str] = []
        if decision.action == LoginAction.ADMIT_SAME_DEVICE:
            target = decision.target
            await self.sessions.update_by_session_id(
                session, target.session_id, decision.updates, commit_self=False
            )
            record = await self.sessions.get_by_session_id(session, target.session_id)
        else:
            for target in decision.targets:
                await self.sessions.update_by_session_id(
                    session, target.session_id, decision.updates, commit_self=False
                )
                evicted.append(target.session_id)
            record = await self.sessions.create(
                session,
                new_session_fields(
                    user.id,
                    user.email,
                    fingerprint,
                    parse_user_agent(fingerprint.user_agent),
                    now,
                    duration=self.duration,
                ),
                commit_self=False,
            )

        user = await self.users.record_successful_login(
            session,
            user.id,
            now,
            ip_address=fingerprint.ip_address,
            user_agent=fingerprint.user_agent,
            commit_self=False,
        )
        await session.commit()

        token = self.tokens.issue_session_token(user, record.session_id, now=now)
        session_logger.info(
            f"Login {decision.action.value}: email={user.email}, "
            f"session={record.session_id[:8]}..., evicted={len(evicted)}"
        )
        return LoginResult(
            user=user,
            token=token,
            session=record,
            action=decision.action,
            evicted_session_ids=evicted,
        )

    # =========================================================================
    # Request authentication
    # =========================================================================

    async def authenticate_request(
        self,
        session: AsyncSession,
        token: str | None,
        now: datetime | None = None,
    ) -> Principal:
        """
        Resolve a bearer token into a principal and refresh session activity.

        Raises:
            TokenExpiredException: The token's own expiry has passed.
            TokenInvalidException: Bad token, or not bound to a session.
            AuthenticationException: Session ended or expired, user inactive,
                or password changed after the token was issued.
        """
        now = now or utc_now()
        claims = self.tokens.verify(token)

        session_id = claims.get("sid")
        subject = claims.get("sub")
        if not session_id or not subject or claims.get("type") != TokenType.SESSION.value:
            raise TokenInvalidException()

        record = await self.sessions.get_by_session_id(session, session_id)
        if record is None or str(record.user_id) != str(subject) or not is_live(record, now):
            session_logger.info(f"Rejected token for ended session {session_id[:8]}...")
            raise AuthenticationException("Session has expired. Please log in again.")

        user = await self.users.get_by_id(session, record.user_id)
        if user is None or not user.is_active:
            await self.sessions.update_by_session_id(
                session, session_id, invalidation_updates(now)
            )
            session_logger.warning(f"Session {session_id[:8]}... closed: user inactive")
            raise AuthenticationException("Account has been deactivated.")

        if self.tokens.password_changed_after(user, claims.get("iat")):
            session_logger.info(f"Rejected token issued before password change: {user.email}")
            raise AuthenticationException(
                "Password was changed recently. Please log in again."
            )

        await self.sessions.update_by_session_id(
            session, session_id, activity_updates(now, self.duration)
        )
        return Principal(
            user_id=user.id,
            email=user.email,
            role=getattr(user.role, "value", user.role),
            session_id=session_id,
            user=user,
        )

    # =========================================================================
    # Ending sessions
    # =========================================================================

    async def logout(
        self,
        session: AsyncSession,
        session_id: str,
        now: datetime | None = None,
        commit_self: bool = True,
    ) -> bool:
        """End one session. Returns False if it did not exist."""
        count = await self.sessions.update_by_session_id(
            session, session_id, invalidation_updates(now or utc_now()), commit_self=False
        )
        await self._finish(session, commit_self)
        session_logger.info(f"Logout: session={session_id[:8]}..., found={bool(count)}")
        return bool(count)

    async def terminate_session(
        self,
        session: AsyncSession,
        session_id: str,
        user_id: UUID,
        now: datetime | None = None,
        commit_self: bool = True,
    ) -> None:
        """
        End one of the caller's own sessions.

        Raises:
            SessionNotFoundException: No such session owned by ``user_id``.
        """
        count = await self.sessions.update_by_session_id(
            session,
            session_id,
            invalidation_updates(now or utc_now()),
            commit_self=False,
            user_id=user_id,
        )
        if not count:
            raise SessionNotFoundException()
        await self._finish(session, commit_self)
        session_logger.info(f"Session {session_id[:8]}... terminated by user {user_id}")

    async def terminate_all_other_sessions(
        self,
        session: AsyncSession,
        user_id: UUID,
        except_session_id: str,
        now: datetime | None = None,
        commit_self: bool = True,
    ) -> int:
        count = await self.sessions.update_all_for_user(
            session,
            user_id,
            invalidation_updates(now or utc_now()),
            except_session_id=except_session_id,
            commit_self=False,
        )
        await self._finish(session, commit_self)
        session_logger.info(f"Terminated {count} other session(s) for user {user_id}")
        return count

    async def revoke_all(
        self,
        session: AsyncSession,
        user_id: UUID,
        now: datetime | None = None,
        commit_self: bool = True,
    ) -> int:
        return await self.auth.revoke_all_sessions(
            session, user_id, now=now, commit_self=commit_self
        )

    # =========================================================================
    # Queries and maintenance
    # =========================================================================

    async def list_sessions(
        self,
        session: AsyncSession,
        user_id: UUID,
        current_session_id: str | None = None,
        now: datetime | None = None,
    ) -> list[dict[str, Any]]:
        """Live sessions, most recently active first, flagged ``is_current``."""
        live: Sequence[UserSession] = await self.sessions.get_live_for_user(
            session, user_id, now or utc_now()
        )
        return [
            {
                "session_id": s.session_id,
                "user_agent": s.user_agent,
                "ip_address": s.ip_address,
                "platform": s.platform,
                "browser": s.browser,
                "device_type": s.device_type,
                "is_online": s.is_online,
                "login_time": s.login_time,
                "last_activity": s.last_activity,
                "expires_at": s.expires_at,
                "is_current": s.session_id == current_session_id,
            }
            for s in live
        ]

    async def sweep_expired(
        self, session: AsyncSession, now: datetime | None = None
    ) -> int:
        """
        Delete expired sessions and those logged out longer than the
        retention window. Safe to run repeatedly.
        """
        now = now or utc_now()
        deleted = await self.sessions.delete_stale(
            session, now=now, retention_cutoff=now - self.retention
        )
        session_logger.info(f"Session sweep removed {deleted} session(s)")
        return deleted

    async def online_users_count(
        self, session: AsyncSession, now: datetime | None = None
    ) -> int:
        return await self.sessions.count_online_users(session, now or utc_now())


session_service = SessionService()
