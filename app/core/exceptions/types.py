from datetime import datetime

from fastapi import status


class AppException(Exception):
    """Base application exception."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        details: dict | None = None,
    ):
        self.message = message
        self.status_code = status_code or status.HTTP_500_INTERNAL_SERVER_ERROR
        self.details = details
        super().__init__(message)


class DatabaseException(AppException):
    """Exception raised for database-related errors."""

    def __init__(self, message: str = "A database error occurred."):
        super().__init__(message, status.HTTP_500_INTERNAL_SERVER_ERROR)


class BadRequestException(AppException):
    """Exception raised for bad request errors."""

    def __init__(self, message: str = "Bad request.", details: dict | None = None):
        super().__init__(message, status.HTTP_400_BAD_REQUEST, details)


class AuthenticationException(AppException):
    """Exception raised for authentication-related errors."""

    def __init__(self, message: str = "Authentication failed.", details: dict | None = None):
        super().__init__(message, status.HTTP_401_UNAUTHORIZED, details)


class InvalidCredentialsException(AuthenticationException):
    """Exception raised when provided credentials are invalid."""

    def __init__(self, message: str = "Invalid email or password."):
        super().__init__(message)


class AccountLockedException(AuthenticationException):
    """Raised while a lockout is in force; deliberately reveals the unlock time."""

    def __init__(self, lock_until: datetime):
        self.lock_until = lock_until
        super().__init__(
            f"Account is temporarily locked due to too many failed login attempts. "
            f"Try again after {lock_until.isoformat()}.",
            details={"lock_until": lock_until.isoformat()},
        )


class TokenExpiredException(AuthenticationException):
    """The token signature is valid but its expiry has passed."""

    def __init__(self, message: str = "Token has expired."):
        super().__init__(message)


class TokenInvalidException(AuthenticationException):
    """The token is malformed, tampered with, or no longer honoured."""

    def __init__(self, message: str = "Invalid token."):
        super().__init__(message)


class OTPInvalidException(AuthenticationException):
    """Wrong, missing or expired OTP."""

    def __init__(self, message: str = "Invalid or expired OTP."):
        super().__init__(message)


class ForbiddenException(AppException):
    """Exception raised when access is forbidden."""

    def __init__(self, message: str = "Access forbidden."):
        super().__init__(message, status.HTTP_403_FORBIDDEN)


class NotFoundException(AppException):
    """Exception raised when a resource is not found."""

    def __init__(self, message: str = "Resource not found."):
        super().__init__(message, status.HTTP_404_NOT_FOUND)


class UserNotFoundException(NotFoundException):
    """Exception raised when a user is not found."""

    def __init__(self, message: str = "User not found."):
        super().__init__(message)


class SessionNotFoundException(NotFoundException):
    """The session does not exist or belongs to someone else."""

    def __init__(self, message: str = "Session not found."):
        super().__init__(message)


class ConflictException(AppException):
    """Exception raised when there's a conflict with existing resources."""

    def __init__(self, message: str = "Resource conflict.", details: dict | None = None):
        super().__init__(message, status.HTTP_409_CONFLICT, details)


class UserAlreadyExistsException(ConflictException):
    """Exception raised when a user already exists."""

    def __init__(self, message: str = "User with this email already exists."):
        super().__init__(message)


class PhoneAlreadyRegisteredException(ConflictException):
    """The phone number is owned by another active account."""

    def __init__(self, message: str = "Phone number is already registered."):
        super().__init__(message)


class EmailDeliveryException(AppException):
    """An email the caller depends on (an OTP) could not be delivered."""

    def __init__(
        self, message: str = "Failed to send email. Please try again later."
    ):
        super().__init__(message, status.HTTP_502_BAD_GATEWAY)


__all__ = [
    "AppException",
    "DatabaseException",
    "BadRequestException",
    "AuthenticationException",
    "InvalidCredentialsException",
    "AccountLockedException",
    "TokenExpiredException",
    "TokenInvalidException",
    "OTPInvalidException",
    "ForbiddenException",
    "NotFoundException",
    "UserNotFoundException",
    "SessionNotFoundException",
    "ConflictException",
    "UserAlreadyExistsException",
    "PhoneAlreadyRegisteredException",
    "EmailDeliveryException",
]
