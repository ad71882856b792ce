import asyncio
import random
from typing import Any

from fastapi import status as http_status
import httpx
from pydantic import BaseModel

from app.core.config import brevo_logger, settings
from app.core.exceptions.types import AppException


class Contact(BaseModel):
    email: str
    name: str | None = None


class ListContact(BaseModel):
    to: list[Contact]


class BrevoService:
    """
    Minimal client for Brevo's transactional email endpoint.

    Retries with exponential backoff live here and only here: 5xx, 429 and
    network errors are retried a bounded number of times, other 4xx
    responses fail immediately.
    """

    _base_url: str = settings.BREVO_BASE_URL
    _api_key: str = settings.BREVO_API_KEY
    _sender_email: str = settings.BREVO_SENDER_EMAIL
    _sender_name: str = settings.BREVO_SENDER_NAME
    _client: httpx.AsyncClient | None = None

    _BACKOFF_BASE: float = 3.0
    _BACKOFF_MAX: float = 60.0
    _JITTER: float = 0.2  # +/-20%

    @classmethod
    def _init_client(cls) -> None:
        if cls._client is None:
            cls._client = httpx.AsyncClient(
                base_url=cls._base_url,
                timeout=httpx.Timeout(30.0),
            )
            brevo_logger.info("Brevo HTTP client initialized")

    @classmethod
    async def aclose(cls) -> None:
        """Close the shared HTTP client, if open."""
        if cls._client is not None:
            try:
                await cls._client.aclose()
            finally:
                cls._client = None
                brevo_logger.info("Brevo HTTP client closed")

    @classmethod
    async def init(
        cls,
        api_key: str | None = None,
        sender_email: str | None = None,
        sender_name: str | None = None,
    ) -> None:
        """
        Configure credentials and sender, then (re)open the HTTP client.

        Arguments left as None keep their current value.
        """
        if api_key is not None:
            cls._api_key = api_key
        if sender_email is not None:
            cls._sender_email = sender_email
        if sender_name is not None:
            cls._sender_name = sender_name
        await cls.aclose()
        cls._init_client()

    @classmethod
    def _compute_backoff(
        cls, attempt: int, err_headers: httpx.Headers | None = None
    ) -> float:
        """
        Seconds to wait before retry number ``attempt`` (1-based).

        Honours Brevo's ``x-sib-ratelimit-reset`` header when present,
        otherwise exponential backoff with multiplicative jitter, capped at
        ``_BACKOFF_MAX``.
        """
        if err_headers and "x-sib-ratelimit-reset" in err_headers:
            try:
                return float(err_headers["x-sib-ratelimit-reset"])
            except ValueError:
                pass
        base = min(cls._BACKOFF_BASE * (2 ** (attempt - 1)), cls._BACKOFF_MAX)
        return base * random.uniform(1 - cls._JITTER, 1 + cls._JITTER)

    @classmethod
    def _auth_headers(cls) -> dict[str, str]:
        return {
            "api-key": cls._api_key,
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    @classmethod
    async def _request(
        cls,
        method: str,
        endpoint: str,
        *,
        json: dict[str, Any] | None = None,
        max_attempts: int = 3,
    ) -> dict[str, Any] | str:
        """
        Perform one API call with bounded retries.

        Returns:
            dict[str, Any] | str: The JSON body, or raw text if not JSON.

        Raises:
            AppException: On a non-retriable 4xx, or once retries for 5xx,
                429 or network errors are exhausted.
        """
        if cls._client is None:
            cls._init_client()
        assert cls._client is not None

        for attempt in range(1, max_attempts + 1):
            try:
                resp = await cls._client.request(
                    method, endpoint, headers=cls._auth_headers(), json=json
                )
                resp.raise_for_status()
                try:
                    body = resp.json()
                except ValueError:
                    body = resp.text
                brevo_logger.info(f"Brevo response: {body}")
                return body

            except httpx.HTTPStatusError as exc:
                status = exc.response.status_code
                err_body = exc.response.text

                retriable = status >= 500 or status == 429
                if not retriable:
                    brevo_logger.error(f"4xx error {status}: {err_body}")
                    raise AppException(
                        message=f"HTTP error {status}: {err_body}", status_code=status
                    ) from exc

                wait = cls._compute_backoff(
                    attempt, exc.response.headers if status == 429 else None
                )
                brevo_logger.warning(
                    f"Brevo returned {status}; attempt {attempt}/{max_attempts}; wait={wait:.1f}s"
                )
                if attempt < max_attempts:
                    await asyncio.sleep(wait)
                    continue
                brevo_logger.error(f"Brevo error after retries: {status}: {err_body}")
                raise AppException(
                    message=f"Brevo error after retries: {status}",
                    status_code=status,
                ) from exc

            except (httpx.TimeoutException, httpx.TransportError) as exc:
                wait = cls._compute_backoff(attempt)
                brevo_logger.warning(
                    f"Timeout/transport error; attempt {attempt}/{max_attempts}; wait={wait:.1f}s; err={exc}"
                )
                if attempt < max_attempts:
                    await asyncio.sleep(wait)
                    continue
                brevo_logger.error(f"Network error after retries: {exc}")
                raise AppException(
                    message="Brevo network error after retries",
                    status_code=http_status.HTTP_503_SERVICE_UNAVAILABLE,
                ) from exc

        raise AppException(
            message="Unexpected state: no response after all attempts",
            status_code=http_status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    @classmethod
    async def send_transactional_email(
        cls,
        subject: str,
        to: ListContact,
        htmlContent: str | None = None,
        textContent: str | None = None,
        sender: Contact | None = None,
    ) -> dict[str, Any] | str:
        """
        Send one transactional email.

        Raises:
            ValueError: If neither HTML nor text content is given.
            AppException: If the API call ultimately fails.
        """
        if not htmlContent and not textContent:
            raise ValueError("Either htmlContent or textContent must be provided")

        sender = sender or Contact(email=cls._sender_email, name=cls._sender_name)
        payload: dict[str, Any] = {
            "sender": sender.model_dump(exclude_none=True),
            "subject": subject,
            **to.model_dump(exclude_none=True),
        }
        if htmlContent:
            payload["htmlContent"] = htmlContent
        if textContent:
            payload["textContent"] = textContent

        return await cls._request("POST", "/smtp/email", json=payload)
