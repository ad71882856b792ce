"""
Test suite for exception handlers.

Run tests:
    pytest tests/core/exceptions/test_handlers.py -v

Run with coverage:
    pytest tests/core/exceptions/test_handlers.py --cov=app.core.exceptions.handlers --cov-report=term-missing -v
"""

from datetime import datetime, timezone
import json
from unittest.mock import MagicMock, patch

import pytest
from fastapi import status

from app.core.exceptions.handlers import (
    EXCEPTION_HANDLERS,
    authentication_exception_handler,
    client_error_exception_handler,
    database_exception_handler,
    email_delivery_exception_handler,
    exception_schema,
    general_exception_handler,
)
from app.core.exceptions.types import (
    AccountLockedException,
    AppException,
    AuthenticationException,
    ConflictException,
    DatabaseException,
    EmailDeliveryException,
    ForbiddenException,
    InvalidCredentialsException,
    SessionNotFoundException,
)


class TestGeneralExceptionHandler:
    """Test suite for general_exception_handler."""

    async def test_general_exception_handler_returns_json_response(self):
        mock_request = MagicMock()
        exc = AppException("Test error", status_code=status.HTTP_400_BAD_REQUEST)

        with patch("app.core.exceptions.handlers.request_logger") as mock_logger:
            response = await general_exception_handler(mock_request, exc)

            mock_logger.error.assert_called_once()
            assert "GeneralException" in str(mock_logger.error.call_args[0][0])

            assert response.status_code == status.HTTP_400_BAD_REQUEST
            assert b"An unexpected error occurred" in response.body
            assert b"Test error" in response.body

    async def test_general_exception_handler_with_default_500_status(self):
        with patch("app.core.exceptions.handlers.request_logger"):
            response = await general_exception_handler(MagicMock(), AppException("Internal error"))

            assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR


class TestDatabaseExceptionHandler:

    async def test_driver_error_is_not_echoed(self):
        """The logged message carries the cause; the response body does not."""
        exc = DatabaseException("Connection lost")

        with patch("app.core.exceptions.handlers.request_logger") as mock_logger:
            response = await database_exception_handler(MagicMock(), exc)

            mock_logger.error.assert_called_once()
            assert "Connection lost" in str(mock_logger.error.call_args[0][0])

            assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
            assert json.loads(response.body) == {"detail": "A database error occurred."}


class TestAuthenticationExceptionHandler:

    async def test_returns_401_with_bearer_challenge(self):
        with patch("app.core.exceptions.handlers.request_logger") as mock_logger:
            response = await authentication_exception_handler(
                MagicMock(), InvalidCredentialsException()
            )

            mock_logger.warning.assert_called_once()
            assert response.status_code == status.HTTP_401_UNAUTHORIZED
            assert response.headers["WWW-Authenticate"] == "Bearer"
            assert json.loads(response.body) == {"detail": "Invalid email or password."}

    async def test_lock_details_are_merged_into_body(self):
        lock_until = datetime(2026, 5, 1, 12, 0, tzinfo=timezone.utc)

        with patch("app.core.exceptions.handlers.request_logger"):
            response = await authentication_exception_handler(
                MagicMock(), AccountLockedException(lock_until)
            )

            body = json.loads(response.body)
            assert body["lock_until"] == lock_until.isoformat()
            assert "temporarily locked" in body["detail"]


class TestClientErrorHandler:

    @pytest.mark.parametrize(
        "exc, expected_status",
        [
            (ForbiddenException("Admin access required."), 403),
            (SessionNotFoundException(), 404),
            (ConflictException("Taken.", details={"field": "phone"}), 409),
        ],
    )
    async def test_status_and_detail(self, exc, expected_status):
        with patch("app.core.exceptions.handlers.request_logger"):
            response = await client_error_exception_handler(MagicMock(), exc)

            assert response.status_code == expected_status
            body = json.loads(response.body)
            assert body["detail"] == str(exc)
            if exc.details:
                assert body["field"] == "phone"


class TestEmailDeliveryHandler:

    async def test_returns_502(self):
        with patch("app.core.exceptions.handlers.request_logger"):
            response = await email_delivery_exception_handler(
                MagicMock(), EmailDeliveryException("Failed to send verification email.")
            )

            assert response.status_code == status.HTTP_502_BAD_GATEWAY
            assert json.loads(response.body)["detail"] == "Failed to send verification email."


class TestHandlerRegistry:

    def test_most_specific_handlers_come_first(self):
        exception_types = [exc_type for exc_type, _ in EXCEPTION_HANDLERS]

        assert exception_types[-1] is AppException
        assert exception_types.index(AuthenticationException) < exception_types.index(
            AppException
        )

    def test_exception_schema_structure(self):
        assert status.HTTP_500_INTERNAL_SERVER_ERROR in exception_schema
        schema_entry = exception_schema[status.HTTP_500_INTERNAL_SERVER_ERROR]
        assert "example" in schema_entry["content"]["application/json"]
