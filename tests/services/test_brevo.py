"""
Test suite for BrevoService.

HTTP traffic goes through ``httpx.MockTransport`` so the real client code
runs without the network; ``asyncio.sleep`` is patched out of the retries.

Run tests:
    pytest tests/services/test_brevo.py -v

Run with coverage:
    pytest tests/services/test_brevo.py --cov=app.core.services.brevo --cov-report=term-missing -v
"""

import json
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from app.core.exceptions.types import AppException
from app.core.services.brevo import BrevoService, Contact, ListContact


@pytest.fixture(autouse=True)
async def reset_client():
    yield
    await BrevoService.aclose()


@pytest.fixture
def no_sleep():
    with patch("app.core.services.brevo.asyncio.sleep", new_callable=AsyncMock) as sleep:
        yield sleep


def use_transport(handler) -> list[httpx.Request]:
    """Route BrevoService through ``handler`` and record every request."""
    seen: list[httpx.Request] = []

    def _record(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return handler(request, len(seen))

    BrevoService._client = httpx.AsyncClient(
        base_url=BrevoService._base_url, transport=httpx.MockTransport(_record)
    )
    return seen


class TestClientLifecycle:

    def test_init_client_only_initializes_once(self):
        BrevoService._init_client()
        first = BrevoService._client

        BrevoService._init_client()

        assert BrevoService._client is first
        assert isinstance(first, httpx.AsyncClient)

    async def test_aclose_resets_client(self):
        BrevoService._init_client()

        await BrevoService.aclose()
        await BrevoService.aclose()

        assert BrevoService._client is None

    async def test_init_partial_update(self):
        original = (BrevoService._api_key, BrevoService._sender_email, BrevoService._sender_name)
        try:
            await BrevoService.init(api_key="new-key")

            assert BrevoService._api_key == "new-key"
            assert BrevoService._sender_email == original[1]
            assert BrevoService._client is not None
        finally:
            BrevoService._api_key, BrevoService._sender_email, BrevoService._sender_name = original


class TestBackoff:

    def test_grows_exponentially_within_jitter(self):
        for attempt, base in [(1, 3.0), (2, 6.0), (3, 12.0)]:
            wait = BrevoService._compute_backoff(attempt)
            assert base * 0.8 <= wait <= base * 1.2

    def test_capped(self):
        assert BrevoService._compute_backoff(20) <= 60.0 * 1.2

    def test_rate_limit_header_wins(self):
        headers = httpx.Headers({"x-sib-ratelimit-reset": "7"})

        assert BrevoService._compute_backoff(1, headers) == 7.0

    def test_bad_rate_limit_header_falls_back(self):
        headers = httpx.Headers({"x-sib-ratelimit-reset": "soon"})

        assert 2.4 <= BrevoService._compute_backoff(1, headers) <= 3.6


class TestRequest:

    async def test_success_returns_json_and_sends_api_key(self):
        seen = use_transport(lambda req, n: httpx.Response(201, json={"messageId": "m1"}))

        result = await BrevoService._request("POST", "/smtp/email", json={"a": 1})

        assert result == {"messageId": "m1"}
        assert seen[0].headers["api-key"] == BrevoService._api_key
        assert json.loads(seen[0].content) == {"a": 1}

    async def test_non_json_body_returned_as_text(self):
        use_transport(lambda req, n: httpx.Response(200, text="accepted"))

        assert await BrevoService._request("GET", "/account") == "accepted"

    async def test_retries_server_errors_then_succeeds(self, no_sleep):
        seen = use_transport(
            lambda req, n: httpx.Response(503) if n < 3 else httpx.Response(200, json={})
        )

        assert await BrevoService._request("POST", "/smtp/email", json={}) == {}
        assert len(seen) == 3
        assert no_sleep.await_count == 2

    async def test_gives_up_after_max_attempts(self, no_sleep):
        seen = use_transport(lambda req, n: httpx.Response(500, text="oops"))

        with pytest.raises(AppException) as exc_info:
            await BrevoService._request("POST", "/smtp/email", json={}, max_attempts=2)

        assert exc_info.value.status_code == 500
        assert len(seen) == 2

    async def test_rate_limit_uses_reset_header(self, no_sleep):
        use_transport(
            lambda req, n: httpx.Response(429, headers={"x-sib-ratelimit-reset": "4"})
            if n == 1
            else httpx.Response(200, json={"ok": True})
        )

        assert await BrevoService._request("POST", "/smtp/email", json={}) == {"ok": True}
        no_sleep.assert_awaited_once_with(4.0)

    async def test_client_error_not_retried(self, no_sleep):
        seen = use_transport(lambda req, n: httpx.Response(400, text="bad sender"))

        with pytest.raises(AppException) as exc_info:
            await BrevoService._request("POST", "/smtp/email", json={})

        assert exc_info.value.status_code == 400
        assert "bad sender" in str(exc_info.value)
        assert len(seen) == 1
        no_sleep.assert_not_awaited()

    async def test_network_errors_become_503(self, no_sleep):
        def _fail(request, n):
            raise httpx.ConnectError("refused", request=request)

        use_transport(_fail)

        with pytest.raises(AppException) as exc_info:
            await BrevoService._request("POST", "/smtp/email", json={})

        assert exc_info.value.status_code == 503


class TestSendTransactionalEmail:

    async def test_payload_uses_default_sender(self):
        with patch.object(BrevoService, "_request", new_callable=AsyncMock) as mock_request:
            mock_request.return_value = {"messageId": "m1"}

            result = await BrevoService.send_transactional_email(
                subject="Verify Your Email",
                to=ListContact(to=[Contact(email="jane@example.com", name="Jane")]),
                htmlContent="<p>123456</p>",
                textContent="123456",
            )

        assert result == {"messageId": "m1"}
        method, endpoint = mock_request.call_args.args
        payload = mock_request.call_args.kwargs["json"]
        assert (method, endpoint) == ("POST", "/smtp/email")
        assert payload["sender"] == {
            "email": BrevoService._sender_email,
            "name": BrevoService._sender_name,
        }
        assert payload["to"] == [{"email": "jane@example.com", "name": "Jane"}]
        assert payload["htmlContent"] == "<p>123456</p>"
        assert payload["textContent"] == "123456"

    async def test_custom_sender_and_nameless_recipient(self):
        with patch.object(BrevoService, "_request", new_callable=AsyncMock) as mock_request:
            await BrevoService.send_transactional_email(
                subject="Hi",
                to=ListContact(to=[Contact(email="jane@example.com")]),
                textContent="Hi",
                sender=Contact(email="support@gochart.example"),
            )

        payload = mock_request.call_args.kwargs["json"]
        assert payload["sender"] == {"email": "support@gochart.example"}
        assert payload["to"] == [{"email": "jane@example.com"}]
        assert "htmlContent" not in payload

    async def test_content_required(self):
        with pytest.raises(ValueError, match="htmlContent or textContent"):
            await BrevoService.send_transactional_email(
                subject="Empty", to=ListContact(to=[Contact(email="jane@example.com")])
            )
