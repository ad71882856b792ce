"""
Email Manager Service for account emails.

Renders Jinja2 templates and hands them to BrevoService. Every send method
returns a bool instead of raising: callers decide whether a failed send is
fatal (OTP delivery) or only worth a log line (welcome and notices).

Example usage:
    EmailManagerService.init()

    sent = await EmailManagerService.send_otp_email(
        email="user@example.com",
        otp_code="123456",
        purpose=OTPPurpose.EMAIL_VERIFICATION,
        user_name="Jane",
    )
"""

from datetime import datetime, timezone
from typing import Any

from app.core.config import email_manager_logger, settings
from app.core.enums import OTPPurpose
from app.core.services.brevo import BrevoService, Contact, ListContact
from app.core.services.template import Renderer


__all__ = ["EmailManagerService"]


class EmailManagerService:
    _initialized: bool = False

    @classmethod
    def init(cls) -> None:
        """Mark the service ready; call after BrevoService and Renderer."""
        cls._initialized = True
        email_manager_logger.info("EmailManagerService initialized")

    @classmethod
    def is_initialized(cls) -> bool:
        return cls._initialized

    @classmethod
    def _base_context(cls, user_name: str | None) -> dict[str, Any]:
        return {
            "app_name": settings.APP_NAME,
            "user_name": user_name or "User",
            "year": datetime.now().year,
        }

    @classmethod
    async def send_email(
        cls,
        email: str,
        subject: str,
        html_template: str,
        context: dict[str, Any],
        text_template: str | None = None,
        recipient_name: str | None = None,
    ) -> bool:
        """
        Render the templates and send them.

        Returns:
            bool: True if the email was handed to Brevo, False on any failure.
        """
        try:
            html_content = await Renderer.render_template(html_template, context=context)
            text_content = None
            if text_template:
                text_content = await Renderer.render_template(
                    text_template, context=context
                )

            await BrevoService.send_transactional_email(
                to=ListContact(to=[Contact(email=email, name=recipient_name)]),
                subject=subject,
                htmlContent=html_content,
                textContent=text_content,
            )
        except Exception as e:
            email_manager_logger.error(
                f"Failed to send email: subject='{subject}', to='{email}', error={e}"
            )
            return False

        email_manager_logger.info(f"Email sent: subject='{subject}', to='{email}'")
        return True

    @classmethod
    async def send_otp_email(
        cls,
        email: str,
        otp_code: str,
        purpose: OTPPurpose,
        user_name: str | None = None,
    ) -> bool:
        """
        Send a one-time code for email verification or password reset.

        Returns:
            bool: True if sent.
        """
        if purpose == OTPPurpose.PASSWORD_RESET:
            subject = f"Password Reset Code - {settings.APP_NAME}"
            purpose_text = "reset your password"
        else:
            subject = f"Verify Your Email - {settings.APP_NAME}"
            purpose_text = "verify your email address"

        context = {
            **cls._base_context(user_name),
            "otp_code": otp_code,
            "expiry_minutes": settings.OTP_EXPIRY_MINUTES,
            "purpose": purpose_text,
        }
        return await cls.send_email(
            email=email,
            subject=subject,
            html_template="otp_email.html",
            text_template="otp_email.txt",
            context=context,
            recipient_name=user_name,
        )

    @classmethod
    async def send_welcome_email(cls, email: str, user_name: str | None = None) -> bool:
        return await cls.send_email(
            email=email,
            subject=f"Welcome to {settings.APP_NAME}!",
            html_template="welcome_email.html",
            text_template="welcome_email.txt",
            context={**cls._base_context(user_name), "login_url": settings.FRONTEND_URL},
            recipient_name=user_name,
        )

    @classmethod
    async def send_password_changed_email(
        cls, email: str, user_name: str | None = None
    ) -> bool:
        """Security notice sent after any password change or reset."""
        return await cls.send_email(
            email=email,
            subject=f"Your Password Was Changed - {settings.APP_NAME}",
            html_template="password_changed_email.html",
            text_template="password_changed_email.txt",
            context={
                **cls._base_context(user_name),
                "changed_at": datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M UTC"),
            },
            recipient_name=user_name,
        )

    @classmethod
    async def send_password_reset_link_email(
        cls, email: str, reset_token: str, user_name: str | None = None
    ) -> bool:
        reset_url = f"{settings.FRONTEND_URL.rstrip('/')}/reset-password/{reset_token}"
        return await cls.send_email(
            email=email,
            subject=f"Reset Your Password - {settings.APP_NAME}",
            html_template="password_reset_link_email.html",
            text_template="password_reset_link_email.txt",
            context={
                **cls._base_context(user_name),
                "reset_url": reset_url,
                "expiry_minutes": settings.PASSWORD_RESET_EXPIRY_MINUTES,
            },
            recipient_name=user_name,
        )
