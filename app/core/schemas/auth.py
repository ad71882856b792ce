"""
Authentication schemas for request validation and response serialization.

- Registration by email OTP
- Login and force login
- Password change and reset (OTP or emailed link)
- Profile management
"""

from datetime import datetime
from typing import Annotated
from uuid import UUID

from pydantic import (
    BaseModel,
    ConfigDict,
    EmailStr,
    Field,
    StringConstraints,
)

from app.core.enums import SubscriptionStatus, UserRole

PasswordStr = Annotated[
    str,
    StringConstraints(min_length=8, max_length=50),
    Field(description="Password (8-50 characters)"),
]

NameStr = Annotated[
    str,
    StringConstraints(
        strip_whitespace=True, min_length=2, max_length=50, pattern=r"^[a-zA-Z\s]+$"
    ),
    Field(description="Letters and spaces only"),
]

PhoneStr = Annotated[
    str,
    StringConstraints(strip_whitespace=True, pattern=r"^[+]?[1-9][\d]{9,14}$"),
    Field(description="Phone number, optional leading +"),
]

OTPCodeStr = Annotated[
    str,
    StringConstraints(min_length=6, max_length=6, pattern=r"^\d{6}$"),
    Field(description="6-digit verification code"),
]


class MessageResponse(BaseModel):
    """Generic message response."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {"message": "Operation completed successfully", "success": True}
        }
    )

    message: str
    success: bool = True


# =============================================================================
# Registration
# =============================================================================


class RegistrationOTPRequest(BaseModel):
    model_config = ConfigDict(
        json_schema_extra={"example": {"name": "Jane Doe", "email": "jane@example.com"}}
    )

    name: NameStr
    email: EmailStr


class RegisterRequest(BaseModel):
    """Completes a registration started with a registration OTP."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "name": "Jane Doe",
                "email": "jane@example.com",
                "phone": "+15550100000",
                "password": "SecurePass123",
                "otp": "123456",
            }
        }
    )

    name: NameStr | None = None
    email: EmailStr
    phone: PhoneStr
    password: PasswordStr
    otp: OTPCodeStr


class VerifyEmailRequest(BaseModel):
    email: EmailStr
    otp: OTPCodeStr


class EmailRequest(BaseModel):
    """Body carrying only an email (resend, forgot password, reset OTP)."""

    email: EmailStr


# =============================================================================
# Login
# =============================================================================


class LoginRequest(BaseModel):
    model_config = ConfigDict(
        json_schema_extra={
            "example": {"email": "jane@example.com", "password": "SecurePass123"}
        }
    )

    email: EmailStr
    password: Annotated[str, StringConstraints(min_length=1)]
    force_login: bool = False


class UserResponse(BaseModel):
    """Public view of a user; never includes secrets."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    email: EmailStr
    phone: str | None = None
    role: UserRole
    is_active: bool
    is_email_verified: bool
    is_premium: bool
    is_subscription_active: bool
    subscription_status: SubscriptionStatus | None = None
    premium_start_date: datetime | None = None
    premium_end_date: datetime | None = None
    last_login: datetime | None = None
    created_at: datetime


class AuthTokenResponse(BaseModel):
    """
    Returned on registration and email verification.

    ``token`` is not bound to a session, so protected endpoints reject it.
    """

    message: str
    token: str
    token_type: str = "bearer"
    user: UserResponse


class LoginResponse(BaseModel):
    message: str = "Login successful"
    token: str
    token_type: str = "bearer"
    session_id: str
    action: str
    user: UserResponse


# =============================================================================
# Password
# =============================================================================


class ChangePasswordRequest(BaseModel):
    current_password: Annotated[str, StringConstraints(min_length=1)]
    new_password: PasswordStr


class ResetPasswordRequest(BaseModel):
    """Reset with the token from an emailed link."""

    token: Annotated[str, StringConstraints(min_length=1)]
    password: PasswordStr


class ResetWithOTPRequest(BaseModel):
    email: EmailStr
    otp: OTPCodeStr
    new_password: PasswordStr


# =============================================================================
# Profile
# =============================================================================


class ProfileUpdateRequest(BaseModel):
    name: NameStr | None = None
    phone: PhoneStr | None = None


__all__ = [
    "AuthTokenResponse",
    "ChangePasswordRequest",
    "EmailRequest",
    "LoginRequest",
    "LoginResponse",
    "MessageResponse",
    "ProfileUpdateRequest",
    "RegisterRequest",
    "RegistrationOTPRequest",
    "ResetPasswordRequest",
    "ResetWithOTPRequest",
    "UserResponse",
    "VerifyEmailRequest",
]
