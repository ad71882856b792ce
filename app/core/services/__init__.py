from app.core.services.auth import AuthService, auth_service
from app.core.services.brevo import BrevoService
from app.core.services.device import DeviceFingerprint, DeviceInfo, parse_user_agent
from app.core.services.email_manager import EmailManagerService
from app.core.services.otp import OTPEngine, otp_engine
from app.core.services.session import (
    LoginResult,
    Principal,
    SessionLimitExceeded,
    SessionService,
    session_service,
)
from app.core.services.subscription import SubscriptionService, subscription_service
from app.core.services.template import Renderer
from app.core.services.tokens import TokenIssuer, token_issuer
from app.core.services.user import UserService, user_service

__all__ = [
    # Core services
    "AuthService",
    "SessionService",
    "SubscriptionService",
    "UserService",
    "auth_service",
    "session_service",
    "subscription_service",
    "user_service",
    # Building blocks
    "DeviceFingerprint",
    "DeviceInfo",
    "OTPEngine",
    "TokenIssuer",
    "otp_engine",
    "parse_user_agent",
    "token_issuer",
    # Results
    "LoginResult",
    "Principal",
    "SessionLimitExceeded",
    # Email
    "BrevoService",
    "EmailManagerService",
    "Renderer",
]
