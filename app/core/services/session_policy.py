"""
Session policy: how many concurrent logins a user may hold.

Everything here is pure. ``decide_login`` looks at the user's live sessions
and the incoming device and returns a ``LoginDecision`` describing what to
do and which store writes to apply; ``SessionService`` carries the writes
out. Keeping the decision free of I/O lets it be tested exhaustively.

Rules (MAX = 2 by default):

1. Fewer than MAX live sessions: ADMIT a new session.
2. At the cap, a live session with the exact same (user agent, IP):
   ADMIT_SAME_DEVICE, refreshing that session in place.
3. At the cap, no match, no force: REJECT with the live session list so
   the user can pick a device to sign out.
4. At the cap, no match, force: EVICT_OLDEST_AND_ADMIT. The session with
   the smallest ``last_activity`` is invalidated before a new one is made.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
import secrets
from typing import Any, Protocol, Sequence
from uuid import UUID

from app.core.config import settings
from app.core.enums import LoginAction
from app.core.services.device import DeviceFingerprint, DeviceInfo
from app.core.utils import as_utc


__all__ = [
    "LoginDecision",
    "SessionLike",
    "activity_updates",
    "decide_login",
    "generate_session_id",
    "invalidation_updates",
    "is_live",
    "new_session_fields",
    "refresh_updates",
]

MAX_ACTIVE_SESSIONS = settings.MAX_ACTIVE_SESSIONS
SESSION_DURATION = timedelta(hours=settings.SESSION_DURATION_HOURS)


class SessionLike(Protocol):
    session_id: str
    user_agent: str
    ip_address: str
    is_active: bool
    last_activity: datetime
    expires_at: datetime


@dataclass(frozen=True)
class LoginDecision:
    """
    Outcome of ``decide_login``.

    Attributes:
        action: What the caller must do.
        active_sessions: The live sessions the decision was based on,
            most recently active first.
        targets: Existing sessions the ``updates`` apply to: the matching
            session for ADMIT_SAME_DEVICE, the evicted ones for
            EVICT_OLDEST_AND_ADMIT, empty otherwise.
        updates: Column values to write on every target.
    """

    action: LoginAction
    active_sessions: tuple[SessionLike, ...] = ()
    targets: tuple[SessionLike, ...] = ()
    updates: dict[str, Any] = field(default_factory=dict)

    @property
    def creates_session(self) -> bool:
        return self.action in (LoginAction.ADMIT, LoginAction.EVICT_OLDEST_AND_ADMIT)

    @property
    def target(self) -> SessionLike | None:
        return self.targets[0] if self.targets else None


def is_live(session: SessionLike, now: datetime) -> bool:
    expires_at = as_utc(session.expires_at)
    return bool(session.is_active and expires_at is not None and expires_at > now)


def generate_session_id() -> str:
    """32 URL-safe characters (24 random bytes)."""
    return secrets.token_urlsafe(24)


def invalidation_updates(now: datetime) -> dict[str, Any]:
    """Write applied on logout, termination and eviction."""
    return {"is_active": False, "is_online": False, "logout_time": now}


def activity_updates(now: datetime, duration: timedelta = SESSION_DURATION) -> dict[str, Any]:
    """Write applied on each authenticated request."""
    return {"last_activity": now, "is_online": True, "expires_at": now + duration}


def refresh_updates(now: datetime, duration: timedelta = SESSION_DURATION) -> dict[str, Any]:
    """Write applied when the same device logs in again at the cap."""
    return {**activity_updates(now, duration), "login_time": now}


def new_session_fields(
    user_id: UUID,
    email: str,
    fingerprint: DeviceFingerprint,
    device: DeviceInfo,
    now: datetime,
    duration: timedelta = SESSION_DURATION,
    session_id: str | None = None,
) -> dict[str, Any]:
    """Column values for a freshly admitted session."""
    return {
        "session_id": session_id or generate_session_id(),
        "user_id": user_id,
        "email": email.lower(),
        "is_active": True,
        "is_online": True,
        "user_agent": fingerprint.user_agent,
        "ip_address": fingerprint.ip_address,
        "platform": device.platform,
        "browser": device.browser,
        "device_type": device.device_type,
        "login_time": now,
        "last_activity": now,
        "logout_time": None,
        "expires_at": now + duration,
    }


def decide_login(
    active_sessions: Sequence[SessionLike],
    fingerprint: DeviceFingerprint,
    force_login: bool,
    now: datetime,
    max_sessions: int = MAX_ACTIVE_SESSIONS,
    duration: timedelta = SESSION_DURATION,
) -> LoginDecision:
    """
    Decide whether a login from ``fingerprint`` may proceed.

    Args:
        active_sessions: The user's sessions as loaded from the store. Only
            those active and unexpired at ``now`` are considered.
        fingerprint: The incoming device.
        force_login: Whether the user asked to evict their oldest session.
        now: Decision time (UTC).
        max_sessions: Concurrent session cap.
        duration: Lifetime given to admitted or refreshed sessions.

    Returns:
        LoginDecision: The action plus the writes it implies.
    """
    live = sorted(
        (s for s in active_sessions if is_live(s, now)),
        key=lambda s: as_utc(s.last_activity),
        reverse=True,
    )
    snapshot = tuple(live)

    if len(live) < max_sessions:
        return LoginDecision(action=LoginAction.ADMIT, active_sessions=snapshot)

    for existing in live:
        if fingerprint.matches(existing.user_agent, existing.ip_address):
            return LoginDecision(
                action=LoginAction.ADMIT_SAME_DEVICE,
                active_sessions=snapshot,
                targets=(existing,),
                updates=refresh_updates(now, duration),
            )

    if not force_login:
        return LoginDecision(action=LoginAction.REJECT, active_sessions=snapshot)

    # Oldest activity goes first; evict enough that the new session fits
    overflow = len(live) - max_sessions + 1
    oldest_first = sorted(live, key=lambda s: as_utc(s.last_activity))
    return LoginDecision(
        action=LoginAction.EVICT_OLDEST_AND_ADMIT,
        active_sessions=snapshot,
        targets=tuple(oldest_first[:overflow]),
        updates=invalidation_updates(now),
    )
