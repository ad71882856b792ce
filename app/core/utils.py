"""
Utility functions for the application.

- Password hashing and verification using bcrypt
- One-way SHA-256 digests for OTPs and reset tokens
- Timezone helpers (every timestamp in the system is UTC-aware)
- OTP masking for log output
"""

from datetime import datetime, timezone
import hashlib
import hmac

import bcrypt

from app.core.config import utils_logger

# bcrypt only looks at the first 72 bytes of its input
_BCRYPT_MAX_BYTES = 72


def _password_bytes(password: str) -> bytes:
    password_bytes = password.encode("utf-8")
    if len(password_bytes) > _BCRYPT_MAX_BYTES:
        utils_logger.debug(
            f"Password exceeds {_BCRYPT_MAX_BYTES} bytes ({len(password_bytes)} bytes), truncating"
        )
        password_bytes = password_bytes[:_BCRYPT_MAX_BYTES]
    return password_bytes


def hash_password(password: str | None) -> str:
    """
    Hash a password using bcrypt with a fresh random salt.

    Args:
        password: The plain text password. Cannot be None.

    Returns:
        str: The 60-character bcrypt hash.

    Raises:
        ValueError: If password is None.

    Examples:
        >>> hashed = hash_password("MySecurePassword123")
        >>> hashed.startswith("$2b$")
        True
    """
    if password is None:
        utils_logger.error("Attempted to hash None password")
        raise ValueError("Password cannot be None")

    hashed = bcrypt.hashpw(_password_bytes(password), bcrypt.gensalt())
    return hashed.decode("utf-8")


def verify_password(password: str | None, hashed_password: str | None) -> bool:
    """
    Check a plain text password against a bcrypt hash in constant time.

    Returns False for missing values or a malformed hash instead of raising,
    so callers can treat every failure the same way.
    """
    if password is None or hashed_password is None:
        return False

    try:
        return bcrypt.checkpw(_password_bytes(password), hashed_password.encode("utf-8"))
    except (ValueError, AttributeError) as e:
        utils_logger.warning(
            f"Password verification failed due to invalid hash format: {type(e).__name__}"
        )
        return False


def sha256_hex(value: str) -> str:
    """
    Return the hex SHA-256 digest of a string.

    Used for OTP codes and password reset tokens: the stored digest is
    deterministic so it can be looked up, but the plaintext is never kept.

    Examples:
        >>> len(sha256_hex("123456"))
        64
    """
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


def digests_match(left: str | None, right: str | None) -> bool:
    """Constant-time comparison of two hex digests; False if either is missing."""
    if not left or not right:
        return False
    return hmac.compare_digest(left, right)


def mask_otp(otp: str) -> str:
    """
    Mask an OTP code for logging, keeping only its first and last digit.

    Examples:
        >>> mask_otp("123456")
        '1****6'
        >>> mask_otp("12")
        '12'
    """
    if len(otp) <= 2:
        return otp

    return f"{otp[0]}{'*' * (len(otp) - 2)}{otp[-1]}"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    """
    Normalize a datetime to an aware UTC value.

    Some backends (SQLite) hand timestamps back without tzinfo even though
    they were written as UTC; those are interpreted as UTC.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
