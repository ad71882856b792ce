from enum import Enum


class UserRole(str, Enum):
    """Role of a user account."""

    USER = "user"
    ADMIN = "admin"


class OTPPurpose(str, Enum):
    """What a pending OTP is meant to prove."""

    EMAIL_VERIFICATION = "email_verification"
    PASSWORD_RESET = "password_reset"


class SubscriptionStatus(str, Enum):
    """Payment/approval state of a premium subscription."""

    PENDING = "pending"  # Payment submitted, awaiting admin review
    PAID = "paid"  # Approved by an admin
    CANCEL = "cancel"  # Declined or expired


class PaymentType(str, Enum):
    """How the user paid for premium access."""

    CRYPTO = "crypto"
    REGULAR = "regular"


class DeviceType(str, Enum):
    """Coarse device classification derived from the user agent."""

    DESKTOP = "desktop"
    MOBILE = "mobile"
    TABLET = "tablet"


class TokenType(str, Enum):
    """Value of the ``type`` claim in issued JWTs."""

    SESSION = "session"
    ACCESS = "access"


class LoginAction(str, Enum):
    """Outcome of the login policy for a new device."""

    ADMIT = "admit"
    ADMIT_SAME_DEVICE = "admit_same_device"
    EVICT_OLDEST_AND_ADMIT = "evict_oldest_and_admit"
    REJECT = "reject"


__all__ = [
    "DeviceType",
    "LoginAction",
    "OTPPurpose",
    "PaymentType",
    "SubscriptionStatus",
    "TokenType",
    "UserRole",
]
