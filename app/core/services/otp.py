"""
OTP engine: generate, hash and verify one-time email codes.

The engine never touches storage. ``issue`` returns the plaintext code
together with the column values the caller must write on the user record,
and ``verify`` is a pure predicate over the record it is given. Clearing a
code after a successful verification is the caller's job (see
``clear_updates``), which keeps the code single-use.

Example usage:
    engine = OTPEngine(expiry_minutes=10)
    issued = engine.issue()
    await user_db.update(session, user.id, issued.updates, commit_self=False)
    await mailer.send_otp_email(email=user.email, otp_code=issued.code, ...)

    if engine.verify(user, candidate):
        await user_db.update(session, user.id, engine.clear_updates(), ...)
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
import secrets
from typing import Any, Protocol

from app.core.config import settings
from app.core.utils import as_utc, digests_match, sha256_hex, utc_now


__all__ = ["IssuedOTP", "OTPEngine", "OTPHolder", "otp_engine"]


class OTPHolder(Protocol):
    """Anything carrying a pending OTP digest and its expiry (a User)."""

    otp_hash: str | None
    otp_expires_at: datetime | None


@dataclass(frozen=True)
class IssuedOTP:
    """A freshly generated code and the write that stores its digest."""

    code: str
    expires_at: datetime
    updates: dict[str, Any] = field(default_factory=dict)


class OTPEngine:
    def __init__(
        self,
        expiry_minutes: int = settings.OTP_EXPIRY_MINUTES,
        length: int = settings.OTP_LENGTH,
    ):
        self.expiry = timedelta(minutes=expiry_minutes)
        self.length = length

    def generate_code(self) -> str:
        """Uniformly random numeric code, zero padded (e.g. ``"004217"``)."""
        return f"{secrets.randbelow(10**self.length):0{self.length}d}"

    @staticmethod
    def hash_code(code: str) -> str:
        return sha256_hex(code)

    def issue(self, now: datetime | None = None) -> IssuedOTP:
        """
        Generate a code and describe how to store it.

        Issuing replaces any pending code, so at most one code per user is
        ever valid.

        Args:
            now: Issue time; defaults to the current UTC time.

        Returns:
            IssuedOTP: The plaintext code (for out-of-band delivery only) and
            the ``otp_hash`` / ``otp_expires_at`` updates for the user record.
        """
        now = now or utc_now()
        code = self.generate_code()
        expires_at = now + self.expiry
        return IssuedOTP(
            code=code,
            expires_at=expires_at,
            updates={"otp_hash": self.hash_code(code), "otp_expires_at": expires_at},
        )

    def verify(
        self, holder: OTPHolder, candidate: str | None, now: datetime | None = None
    ) -> bool:
        """
        Check a candidate code against the pending one.

        Fails if no code is pending, if it has expired, or if the digests
        differ. Never mutates ``holder``.
        """
        if not candidate or not holder.otp_hash or holder.otp_expires_at is None:
            return False

        now = now or utc_now()
        if now > as_utc(holder.otp_expires_at):
            return False

        return digests_match(self.hash_code(candidate), holder.otp_hash)

    @staticmethod
    def clear_updates() -> dict[str, Any]:
        """The write that consumes the pending code."""
        return {"otp_hash": None, "otp_expires_at": None}


otp_engine = OTPEngine()
