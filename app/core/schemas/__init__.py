"""
Shared schemas for API request validation and response serialization.
"""

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
from app.core.schemas.session import (
    SessionLimitResponse,
    SessionListResponse,
    SessionResponse,
    TerminatedSessionsResponse,
)
from app.core.schemas.subscription import (
    ApproveRequest,
    OnlineUsersResponse,
    PaymentInfoResponse,
    PaymentListResponse,
    PaymentRequest,
    PremiumCheckResponse,
    SubscriptionMonthsRequest,
    SubscriptionResponse,
)
from app.core.schemas.user import (
    ChartHistoryEntry,
    ChartHistoryRequest,
    ChartHistoryResponse,
    Pagination,
    UserListResponse,
)

__all__ = [
    # Auth
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
    # Sessions
    "SessionLimitResponse",
    "SessionListResponse",
    "SessionResponse",
    "TerminatedSessionsResponse",
    # Subscriptions
    "ApproveRequest",
    "OnlineUsersResponse",
    "PaymentInfoResponse",
    "PaymentListResponse",
    "PaymentRequest",
    "PremiumCheckResponse",
    "SubscriptionMonthsRequest",
    "SubscriptionResponse",
    # Users
    "ChartHistoryEntry",
    "ChartHistoryRequest",
    "ChartHistoryResponse",
    "Pagination",
    "UserListResponse",
]
