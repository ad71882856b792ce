"""
Authentication router.

This module provides endpoints for:
- Registration with email OTP verification
- Login and force login under the two-device session cap
- Logout and the current user's profile
- Password change and reset (by OTP or by emailed link)

All endpoints are prefixed with /auth when mounted in the main app.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import auth_logger
from app.core.dependencies import CurrentPrincipal, CurrentUser, get_async_session
from app.core.schemas.auth import (
    AuthTokenResponse,
    ChangePasswordRequest,
    EmailRequest,
    LoginRequest,
    LoginResponse,
    MessageResponse,
    ProfileUpdateRequest,
    RegisterRequest,
    RegistrationOTPRequest,
    ResetPasswordRequest,
    ResetWithOTPRequest,
    UserResponse,
    VerifyEmailRequest,
)
from app.core.schemas.session import SessionLimitResponse, SessionResponse
from app.core.services.auth import auth_service
from app.core.services.device import DeviceFingerprint
from app.core.services.session import SessionLimitExceeded, session_service


router = APIRouter()

SESSION_LIMIT_CODE = "SESSION_LIMIT_EXCEEDED"


# =============================================================================
# Helper Functions
# =============================================================================


def fingerprint_from_request(request: Request) -> DeviceFingerprint:
    """
    Build the ``(user agent, IP)`` pair compared for same-device logins.

    The first ``X-Forwarded-For`` hop wins over the socket peer so logins
    behind a proxy are still told apart.
    """
    user_agent = request.headers.get("User-Agent", "")
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        ip_address = forwarded.split(",")[0].strip()
    else:
        ip_address = request.client.host if request.client else ""
    return DeviceFingerprint(user_agent=user_agent, ip_address=ip_address)


def session_limit_response(result: SessionLimitExceeded) -> JSONResponse:
    body = SessionLimitResponse(
        detail=(
            f"Maximum {result.max_sessions} active sessions allowed. "
            "Log out from another device or force login."
        ),
        code=SESSION_LIMIT_CODE,
        max_sessions=result.max_sessions,
        active_sessions=[
            SessionResponse.model_validate(s) for s in result.active_sessions
        ],
    )
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content=body.model_dump(mode="json"),
    )


async def _login(
    request: Request,
    request_data: LoginRequest,
    session: AsyncSession,
    force_login: bool,
):
    result = await session_service.login(
        session,
        email=request_data.email,
        password=request_data.password,
        fingerprint=fingerprint_from_request(request),
        force_login=force_login,
    )
    if isinstance(result, SessionLimitExceeded):
        return session_limit_response(result)

    return LoginResponse(
        token=result.token,
        session_id=result.session.session_id,
        action=result.action.value,
        user=UserResponse.model_validate(result.user),
    )


# =============================================================================
# Registration
# =============================================================================


@router.post(
    "/send-registration-otp",
    response_model=MessageResponse,
    summary="Start registration",
    description="""
## Start Registration

Sends a **6-digit code** (valid for 10 minutes) to the email. Requesting a
new code replaces any pending one.

| Status | Reason |
|--------|--------|
| `409 Conflict` | Email already registered |
| `502 Bad Gateway` | The code could not be emailed; request a new one |
""",
)
async def send_registration_otp(
    request_data: RegistrationOTPRequest,
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> MessageResponse:
    await auth_service.register_pending(
        session, name=request_data.name, email=request_data.email
    )
    return MessageResponse(message="Verification code sent to your email")


@router.post(
    "/register",
    response_model=AuthTokenResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Complete registration",
)
async def register(
    request_data: RegisterRequest,
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> AuthTokenResponse:
    """
    Verify the registration code and activate the account.

    The returned token is an account token, not a session token: it is not
    accepted by protected endpoints such as `/auth/me`. Call `/auth/login`
    to open a session.

    Raises:
        OTPInvalidException: Wrong or expired code, or nothing pending.
        PhoneAlreadyRegisteredException: Phone taken by another active account.
    """
    user, token = await auth_service.complete_registration(
        session,
        email=request_data.email,
        otp=request_data.otp,
        phone=request_data.phone,
        password=request_data.password,
        name=request_data.name,
    )
    return AuthTokenResponse(
        message="Registration successful",
        token=token,
        user=UserResponse.model_validate(user),
    )


@router.post(
    "/verify-email-otp",
    response_model=AuthTokenResponse,
    summary="Verify email",
)
async def verify_email_otp(
    request_data: VerifyEmailRequest,
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> AuthTokenResponse:
    """
    Verify the email of an account that already finished registration.

    Like `/auth/register`, the returned token does not open a session;
    protected endpoints need the token from `/auth/login`.
    """
    user, token = await auth_service.verify_email(
        session, email=request_data.email, otp=request_data.otp
    )
    return AuthTokenResponse(
        message="Email verified successfully",
        token=token,
        user=UserResponse.model_validate(user),
    )


@router.post(
    "/resend-verification",
    response_model=MessageResponse,
    summary="Resend verification code",
)
async def resend_verification(
    request_data: EmailRequest,
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> MessageResponse:
    # Same answer whether or not the email exists
    await auth_service.resend_verification(session, email=request_data.email)
    return MessageResponse(
        message="If the email is registered and unverified, a new code has been sent"
    )


# =============================================================================
# Login
# =============================================================================


@router.post(
    "/login",
    response_model=LoginResponse,
    summary="Log in",
    description="""
## Log In

At most **2 sessions** may be active per user.

| Situation | Result |
|-----------|--------|
| Fewer than 2 active sessions | New session |
| At the cap, same user agent and IP as an active session | That session is refreshed |
| At the cap, new device | `409` with `code: SESSION_LIMIT_EXCEEDED` and the active session list |

After a `409`, log out a device via `DELETE /auth/sessions/{session_id}` or
retry with `POST /auth/force-login`, which ends the least recently active
session.

Five wrong passwords lock the account for **2 hours**.
""",
    responses={
        409: {"model": SessionLimitResponse, "description": "Session limit reached"},
    },
)
async def login(
    request_data: LoginRequest,
    request: Request,
    session: Annotated[AsyncSession, Depends(get_async_session)],
):
    return await _login(request, request_data, session, request_data.force_login)


@router.post(
    "/force-login",
    response_model=LoginResponse,
    summary="Log in, ending the oldest session if needed",
)
async def force_login(
    request_data: LoginRequest,
    request: Request,
    session: Annotated[AsyncSession, Depends(get_async_session)],
):
    return await _login(request, request_data, session, True)


@router.post("/logout", response_model=MessageResponse, summary="Log out")
async def logout(
    principal: CurrentPrincipal,
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> MessageResponse:
    await session_service.logout(session, principal.session_id)
    auth_logger.info(f"User logged out: {principal.email}")
    return MessageResponse(message="Logged out successfully")


# =============================================================================
# Profile
# =============================================================================


@router.get("/me", response_model=UserResponse, summary="Current user")
async def me(user: CurrentUser) -> UserResponse:
    return UserResponse.model_validate(user)


@router.put("/profile", response_model=UserResponse, summary="Update profile")
async def update_profile(
    request_data: ProfileUpdateRequest,
    user: CurrentUser,
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> UserResponse:
    updated = await auth_service.update_profile(
        session, user, name=request_data.name, phone=request_data.phone
    )
    return UserResponse.model_validate(updated)


# =============================================================================
# Password
# =============================================================================


@router.put(
    "/change-password",
    response_model=MessageResponse,
    summary="Change password",
)
async def change_password(
    request_data: ChangePasswordRequest,
    user: CurrentUser,
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> MessageResponse:
    """
    Change the password; every session (this one included) is signed out.
    """
    await auth_service.change_password(
        session,
        user,
        current_password=request_data.current_password,
        new_password=request_data.new_password,
    )
    return MessageResponse(message="Password changed. Please log in again.")


@router.post(
    "/forgot-password",
    response_model=MessageResponse,
    summary="Email a password reset link",
)
async def forgot_password(
    request_data: EmailRequest,
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> MessageResponse:
    await auth_service.forgot_password(session, email=request_data.email)
    return MessageResponse(
        message="If the email is registered, a password reset link has been sent"
    )


@router.post(
    "/reset-password",
    response_model=MessageResponse,
    summary="Reset password with a link token",
)
async def reset_password(
    request_data: ResetPasswordRequest,
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> MessageResponse:
    await auth_service.reset_password(
        session, token=request_data.token, new_password=request_data.password
    )
    return MessageResponse(message="Password reset successfully. Please log in.")


@router.post(
    "/send-reset-otp",
    response_model=MessageResponse,
    summary="Email a password reset code",
)
async def send_reset_otp(
    request_data: EmailRequest,
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> MessageResponse:
    await auth_service.request_password_reset_otp(session, email=request_data.email)
    return MessageResponse(
        message="If the email is registered, a password reset code has been sent"
    )


@router.post(
    "/verify-otp-reset",
    response_model=MessageResponse,
    summary="Reset password with a code",
)
async def verify_otp_reset(
    request_data: ResetWithOTPRequest,
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> MessageResponse:
    await auth_service.reset_with_otp(
        session,
        email=request_data.email,
        otp=request_data.otp,
        new_password=request_data.new_password,
    )
    return MessageResponse(message="Password reset successfully. Please log in.")
