from fastapi import Request, status
from fastapi.responses import JSONResponse

from app.core.config import request_logger
from app.core.exceptions.types import (
    AppException,
    AuthenticationException,
    BadRequestException,
    ConflictException,
    DatabaseException,
    EmailDeliveryException,
    ForbiddenException,
    NotFoundException,
)


def _error_body(exc: AppException, detail: str | None = None) -> dict:
    body: dict = {"detail": detail if detail is not None else str(exc)}
    if exc.details:
        body.update(exc.details)
    return body


async def general_exception_handler(request: Request, exc: AppException):
    """
    Handles any AppException not covered by a more specific handler.

    Returns:
        JSONResponse: The error message with the exception's status code.
    """
    request_logger.error(f"GeneralException: {exc}")
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(exc, f"An unexpected error occurred.\n{str(exc)}"),
    )


async def database_exception_handler(request: Request, exc: DatabaseException):
    """
    Handles database exceptions. The underlying driver error is logged but
    not echoed back to the client.
    """
    request_logger.error(f"DatabaseException: {exc}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": "A database error occurred."},
    )


async def authentication_exception_handler(
    request: Request, exc: AuthenticationException
):
    """
    Handles authentication exceptions (credentials, tokens, OTPs, lockout).

    Returns:
        JSONResponse: 401 with a Bearer challenge header.
    """
    request_logger.warning(f"{type(exc).__name__}: {exc}")
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(exc),
        headers={"WWW-Authenticate": "Bearer"},
    )


async def client_error_exception_handler(request: Request, exc: AppException):
    """
    Handles 4xx application errors (bad request, forbidden, not found, conflict).
    """
    request_logger.warning(f"{type(exc).__name__}: {exc}")
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(exc),
    )


async def email_delivery_exception_handler(
    request: Request, exc: EmailDeliveryException
):
    request_logger.error(f"EmailDeliveryException: {exc}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": str(exc)},
    )


# Most specific first; AppException is the catch-all
EXCEPTION_HANDLERS = [
    (AuthenticationException, authentication_exception_handler),
    (ForbiddenException, client_error_exception_handler),
    (NotFoundException, client_error_exception_handler),
    (ConflictException, client_error_exception_handler),
    (BadRequestException, client_error_exception_handler),
    (EmailDeliveryException, email_delivery_exception_handler),
    (DatabaseException, database_exception_handler),
    (AppException, general_exception_handler),
]


exception_schema = {
    status.HTTP_500_INTERNAL_SERVER_ERROR: {
        "description": "Internal Server Error",
        "content": {
            "application/json": {
                "example": {"detail": "A database error occurred."},
            }
        },
    },
    status.HTTP_401_UNAUTHORIZED: {
        "description": "Authentication Error",
        "content": {
            "application/json": {
                "example": {"detail": "Invalid email or password."},
            }
        },
    },
}


__all__ = [
    "general_exception_handler",
    "database_exception_handler",
    "authentication_exception_handler",
    "client_error_exception_handler",
    "email_delivery_exception_handler",
    "EXCEPTION_HANDLERS",
    "exception_schema",
]
