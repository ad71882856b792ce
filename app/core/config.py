from functools import lru_cache
import logging

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from app.core.logger import setup_logger, init_sentry


class Settings(BaseSettings):
    # Application settings
    ENVIRONMENT: str = "development"  # Options: development, production
    API_DOMAIN: str = "http://localhost:8000"
    FRONTEND_URL: str = "http://localhost:3000"
    APP_NAME: str = "GoChart"
    APP_VERSION: str = "1.0.0"
    APP_DESCRIPTION: str = """
GoChart Accounts is the user-account and subscription backend of the GoChart market-analysis product.

## Key Capabilities

| Area | Description |
|------|-------------|
| **Registration** | Email OTP verification before an account becomes active. |
| **Sessions** | At most two concurrent device sessions per user, with same-device reuse and forced eviction of the least recently active session. |
| **Passwords** | Lockout after repeated failures, change, and reset by OTP or emailed link. |
| **Subscriptions** | Payment submission, admin approval, and automatic expiry. |

## Authentication

Protected endpoints require a **Bearer JWT** obtained via `/auth/login`. The token is bound to a server-side session which must still be active.
"""
    DEBUG: bool = False

    # CORS settings
    CORS_ALLOW_ORIGINS: list[str] = ["http://localhost:3000"]
    CORS_ALLOW_CREDENTIALS: bool = True

    # JWT settings
    JWT_SECRET_KEY: str = "another_supersecret_key"
    JWT_ALGORITHM: str = "HS256"
    SESSION_TOKEN_EXPIRE_HOURS: int = 24
    PASSWORD_RESET_EXPIRY_MINUTES: int = 10

    # Database settings
    DATABASE_URL: str
    TEST_DATABASE_URL: str = "sqlite+aiosqlite:///:memory:"

    # OTP settings
    OTP_LENGTH: int = 6
    OTP_EXPIRY_MINUTES: int = 10

    # Session policy settings
    MAX_ACTIVE_SESSIONS: int = 2
    SESSION_DURATION_HOURS: int = 24
    SESSION_RETENTION_DAYS: int = 7

    # Lockout settings
    MAX_LOGIN_ATTEMPTS: int = 5
    ACCOUNT_LOCK_HOURS: int = 2

    # Brevo settings
    BREVO_API_KEY: str = "your_brevo_api_key"
    BREVO_BASE_URL: str = "https://api.brevo.com/v3"
    BREVO_SENDER_EMAIL: str = "your_brevo_sender_email"
    BREVO_SENDER_NAME: str = "your_brevo_sender_name"

    # Scheduler settings
    ENABLE_SCHEDULER: bool = True
    SUBSCRIPTION_CHECK_INTERVAL_HOURS: int = 6
    SESSION_CLEANUP_HOUR: int = 2  # UTC

    # Sentry settings
    SENTRY_DSN: str = ""
    SENTRY_ENVIRONMENT: str = "development"
    SENTRY_TRACES_SAMPLE_RATE: float = 0.1

    # Admin settings
    ADMIN_ALERT_EMAIL: str | None = None

    model_config: SettingsConfigDict = SettingsConfigDict(  # type: ignore
        env_file=".env",
        extra="ignore",
    )

    @model_validator(mode="after")
    def _validate_production_secrets(self) -> "Settings":
        """Refuse to start in production with the placeholder secrets."""
        if self.ENVIRONMENT != "production":
            return self

        insecure_defaults: dict[str, str] = {
            "JWT_SECRET_KEY": "another_supersecret_key",
            "BREVO_API_KEY": "your_brevo_api_key",
        }

        still_default = [
            name
            for name, default_val in insecure_defaults.items()
            if getattr(self, name) == default_val
        ]

        if still_default:
            raise ValueError(
                f"ENVIRONMENT is 'production' but the following secrets still "
                f"have their insecure default values: {', '.join(still_default)}. "
                f"Set them via environment variables or .env file."
            )

        return self


@lru_cache()
def get_settings() -> Settings:
    return Settings()  # type: ignore


settings = get_settings()

if not settings.DEBUG:
    init_sentry(
        dsn=settings.SENTRY_DSN,
        environment=settings.SENTRY_ENVIRONMENT,
        traces_sample_rate=settings.SENTRY_TRACES_SAMPLE_RATE,
    )

# One logger per component, each with its own file and Sentry tag
app_logger = setup_logger(
    name="app_logger",
    log_file="logs/app.log",
    level=logging.INFO,
    sentry_tag="app",
)
database_logger = setup_logger(
    name="database_logger",
    log_file="logs/database.log",
    level=logging.INFO,
    sentry_tag="database",
)
request_logger = setup_logger(
    name="request_logger",
    log_file="logs/requests.log",
    level=logging.INFO,
    sentry_tag="request",
)
brevo_logger = setup_logger(
    name="brevo_logger",
    log_file="logs/brevo.log",
    level=logging.INFO,
    sentry_tag="email",
)
scheduler_logger = setup_logger(
    name="scheduler_logger",
    log_file="logs/scheduler.log",
    level=logging.INFO,
    sentry_tag="scheduler",
)
utils_logger = setup_logger(
    name="utils_logger",
    log_file="logs/utils.log",
    level=logging.INFO,
    sentry_tag="utils",
)
auth_logger = setup_logger(
    name="auth_logger",
    log_file="logs/auth.log",
    level=logging.INFO,
    sentry_tag="auth",
)
session_logger = setup_logger(
    name="session_logger",
    log_file="logs/session.log",
    level=logging.INFO,
    sentry_tag="session",
)
subscription_logger = setup_logger(
    name="subscription_logger",
    log_file="logs/subscription.log",
    level=logging.INFO,
    sentry_tag="subscription",
)
user_logger = setup_logger(
    name="user_logger",
    log_file="logs/user.log",
    level=logging.INFO,
    sentry_tag="user",
)
email_manager_logger = setup_logger(
    name="email_manager_logger",
    log_file="logs/email_manager.log",
    level=logging.INFO,
    sentry_tag="email_manager",
)

__all__ = [
    "settings",
    "app_logger",
    "database_logger",
    "request_logger",
    "brevo_logger",
    "scheduler_logger",
    "utils_logger",
    "auth_logger",
    "session_logger",
    "subscription_logger",
    "user_logger",
    "email_manager_logger",
]
