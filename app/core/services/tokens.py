"""
Token issuer: signed JWTs plus opaque reset-token helpers.

- Session-bound login tokens (24 hours) carrying ``sid``; every request
  re-checks the referenced session. Only these open protected endpoints.
- Access tokens (24 hours, no ``sid``) handed out when registration or
  email verification completes. They identify the account but cannot
  call protected endpoints; the client logs in to get a session token.

``verify`` checks signature and expiry only. Session liveness and the
``password_changed_at`` rule are applied by ``SessionService``.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
import secrets
from typing import Any
import uuid

import jwt

from app.core.config import auth_logger, settings
from app.core.enums import TokenType
from app.core.exceptions.types import TokenExpiredException, TokenInvalidException
from app.core.utils import as_utc, sha256_hex, utc_now


__all__ = ["PasswordResetToken", "TokenIssuer", "token_issuer"]


@dataclass(frozen=True)
class PasswordResetToken:
    """Plaintext goes to the user once; only ``token_hash`` is stored."""

    token: str
    token_hash: str
    expires_at: datetime


class TokenIssuer:
    def __init__(
        self,
        secret: str = settings.JWT_SECRET_KEY,
        algorithm: str = settings.JWT_ALGORITHM,
    ):
        self._secret = secret
        self._algorithm = algorithm

    def issue(
        self,
        claims: dict[str, Any],
        ttl: timedelta,
        now: datetime | None = None,
    ) -> str:
        """
        Sign ``claims`` with ``exp``, ``iat`` and a unique ``jti`` added.

        Args:
            claims: Payload; must not be None.
            ttl: Lifetime from ``now``.
            now: Issue time, defaults to the current UTC time.

        Returns:
            str: The encoded JWT.
        """
        if claims is None:
            raise ValueError("Claims cannot be None")

        now = now or utc_now()
        payload = {
            **claims,
            "exp": now + ttl,
            "iat": now,
            "jti": str(uuid.uuid4()),
        }
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)

    def verify(self, token: str | None) -> dict[str, Any]:
        """
        Decode a token, checking signature and expiry.

        Raises:
            TokenExpiredException: The token's expiry has passed.
            TokenInvalidException: Missing, malformed or wrongly signed token.
        """
        if not token:
            raise TokenInvalidException()

        try:
            return jwt.decode(token, self._secret, algorithms=[self._algorithm])
        except jwt.ExpiredSignatureError as e:
            auth_logger.info("Token rejected: expired")
            raise TokenExpiredException() from e
        except jwt.InvalidTokenError as e:
            auth_logger.warning(f"Token rejected: {type(e).__name__}")
            raise TokenInvalidException() from e

    @staticmethod
    def _user_claims(user, token_type: TokenType) -> dict[str, Any]:
        role = getattr(user.role, "value", user.role)
        return {
            "sub": str(user.id),
            "email": user.email,
            "role": role,
            "type": token_type.value,
        }

    def issue_session_token(
        self, user, session_id: str, now: datetime | None = None
    ) -> str:
        """24-hour token bound to one server-side session."""
        claims = {**self._user_claims(user, TokenType.SESSION), "sid": session_id}
        return self.issue(
            claims, timedelta(hours=settings.SESSION_TOKEN_EXPIRE_HOURS), now=now
        )

    def issue_access_token(
        self,
        user,
        ttl: timedelta | None = None,
        now: datetime | None = None,
    ) -> str:
        """Token not bound to a session (returned on registration)."""
        return self.issue(
            self._user_claims(user, TokenType.ACCESS),
            ttl or timedelta(hours=settings.SESSION_TOKEN_EXPIRE_HOURS),
            now=now,
        )

    @staticmethod
    def generate_secure_token(nbytes: int = 32) -> str:
        return secrets.token_hex(nbytes)

    @staticmethod
    def hash_token(token: str) -> str:
        return sha256_hex(token)

    def create_password_reset_token(
        self, now: datetime | None = None
    ) -> PasswordResetToken:
        now = now or utc_now()
        token = self.generate_secure_token()
        return PasswordResetToken(
            token=token,
            token_hash=self.hash_token(token),
            expires_at=now + timedelta(minutes=settings.PASSWORD_RESET_EXPIRY_MINUTES),
        )

    @staticmethod
    def password_changed_after(user, issued_at: int | float | None) -> bool:
        """
        True if the user's password changed after the token's ``iat``.

        Compared at whole-second resolution, like ``iat`` itself.
        """
        changed_at = as_utc(getattr(user, "password_changed_at", None))
        if changed_at is None or issued_at is None:
            return False
        return int(changed_at.timestamp()) > int(issued_at)


token_issuer = TokenIssuer()
