"""
Test suite for the authentication router.

Uses the ``client`` fixture (httpx over ASGI) with the request database
session pointed at the test's in-memory database. Devices are told apart
by User-Agent and X-Forwarded-For headers.

Run tests:
    pytest tests/core/routers/test_auth_router.py -v
"""

from datetime import timedelta

import pytest

from app.core.utils import verify_password
from conftest import (
    DESKTOP_UA,
    FIREFOX_UA,
    IPHONE_UA,
    TEST_PASSWORD,
    bearer,
    login_as,
)


NEW_PASSWORD = "BrandNewPass456"


class TestRegistrationEndpoints:

    async def test_full_registration_flow(self, client, mock_email_service):
        response = await client.post(
            "/auth/send-registration-otp",
            json={"name": "Jane Doe", "email": "Jane@Example.com"},
        )
        assert response.status_code == 200
        assert response.json()["message"] == "Verification code sent to your email"
        code = mock_email_service["otp"].call_args.kwargs["otp_code"]

        response = await client.post(
            "/auth/register",
            json={
                "email": "jane@example.com",
                "phone": "+15550109999",
                "password": TEST_PASSWORD,
                "otp": code,
            },
        )

        assert response.status_code == 201
        data = response.json()
        assert data["message"] == "Registration successful"
        assert data["token_type"] == "bearer"
        assert data["user"]["email"] == "jane@example.com"
        assert data["user"]["is_active"] is True
        assert data["user"]["is_email_verified"] is True
        assert "password_hash" not in data["user"]
        assert "otp_hash" not in data["user"]

        login = await login_as(client, "jane@example.com")
        assert login.status_code == 200

    async def test_registration_token_does_not_open_protected_endpoints(
        self, client, mock_email_service
    ):
        await client.post(
            "/auth/send-registration-otp",
            json={"name": "Jane Doe", "email": "jane@example.com"},
        )
        code = mock_email_service["otp"].call_args.kwargs["otp_code"]
        registered = await client.post(
            "/auth/register",
            json={
                "email": "jane@example.com",
                "phone": "+15550109999",
                "password": TEST_PASSWORD,
                "otp": code,
            },
        )

        response = await client.get("/auth/me", headers=bearer(registered.json()["token"]))

        assert response.status_code == 401

        login = await login_as(client, "jane@example.com")
        response = await client.get("/auth/me", headers=bearer(login.json()["token"]))
        assert response.status_code == 200

    async def test_verify_email_before_registering_keeps_email_available(
        self, client, mock_email_service
    ):
        await client.post(
            "/auth/send-registration-otp",
            json={"name": "Jane Doe", "email": "jane@example.com"},
        )
        code = mock_email_service["otp"].call_args.kwargs["otp_code"]

        response = await client.post(
            "/auth/verify-email-otp", json={"email": "jane@example.com", "otp": code}
        )
        assert response.status_code == 400

        response = await client.post(
            "/auth/send-registration-otp",
            json={"name": "Jane Doe", "email": "jane@example.com"},
        )
        assert response.status_code == 200

    async def test_registration_otp_for_registered_email(self, client, make_user):
        user = await make_user()

        response = await client.post(
            "/auth/send-registration-otp", json={"name": "Someone", "email": user.email}
        )

        assert response.status_code == 409

    async def test_registration_otp_delivery_failure(self, client, mock_email_service):
        mock_email_service["otp"].return_value = False

        response = await client.post(
            "/auth/send-registration-otp",
            json={"name": "Jane Doe", "email": "jane@example.com"},
        )

        assert response.status_code == 502

    @pytest.mark.parametrize(
        "payload",
        [
            {"name": "J", "email": "jane@example.com"},
            {"name": "Jane 2", "email": "jane@example.com"},
            {"name": "Jane Doe", "email": "not-an-email"},
        ],
    )
    async def test_registration_otp_validation(self, client, payload):
        response = await client.post("/auth/send-registration-otp", json=payload)

        assert response.status_code == 422

    async def test_register_with_wrong_code(self, client, mock_email_service):
        await client.post(
            "/auth/send-registration-otp",
            json={"name": "Jane Doe", "email": "jane@example.com"},
        )
        code = mock_email_service["otp"].call_args.kwargs["otp_code"]
        wrong = "000000" if code != "000000" else "111111"

        response = await client.post(
            "/auth/register",
            json={
                "email": "jane@example.com",
                "phone": "+15550109999",
                "password": TEST_PASSWORD,
                "otp": wrong,
            },
        )

        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid or expired OTP."

    @pytest.mark.parametrize(
        "field, value",
        [
            ("phone", "12345"),
            ("password", "short"),
            ("otp", "12ab56"),
        ],
    )
    async def test_register_validation(self, client, field, value):
        payload = {
            "email": "jane@example.com",
            "phone": "+15550109999",
            "password": TEST_PASSWORD,
            "otp": "123456",
        }
        payload[field] = value

        response = await client.post("/auth/register", json=payload)

        assert response.status_code == 422

    async def test_verify_email_and_resend(self, client, make_user, mock_email_service):
        user = await make_user(is_email_verified=False)

        response = await client.post("/auth/resend-verification", json={"email": user.email})
        assert response.status_code == 200
        code = mock_email_service["otp"].call_args.kwargs["otp_code"]

        response = await client.post(
            "/auth/verify-email-otp", json={"email": user.email, "otp": code}
        )

        assert response.status_code == 200
        assert response.json()["user"]["is_email_verified"] is True

    async def test_resend_for_unknown_email_looks_the_same(self, client, mock_email_service):
        response = await client.post(
            "/auth/resend-verification", json={"email": "ghost@example.com"}
        )

        assert response.status_code == 200
        mock_email_service["otp"].assert_not_awaited()


class TestLoginEndpoints:

    async def test_login_success(self, client, make_user):
        user = await make_user()

        response = await login_as(client, user.email)

        assert response.status_code == 200
        data = response.json()
        assert data["message"] == "Login successful"
        assert data["action"] == "admit"
        assert data["token"]
        assert data["session_id"]
        assert data["user"]["id"] == str(user.id)

    async def test_login_wrong_password(self, client, make_user):
        user = await make_user()

        response = await login_as(client, user.email, password="WrongPass999")

        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid email or password."
        assert response.headers["WWW-Authenticate"] == "Bearer"

    async def test_login_unknown_email_matches_wrong_password(self, client):
        response = await login_as(client, "ghost@example.com")

        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid email or password."

    async def test_lockout_after_five_failures(self, client, make_user):
        user = await make_user()
        for _ in range(5):
            response = await login_as(client, user.email, password="WrongPass999")
            assert response.status_code == 401

        response = await login_as(client, user.email)

        assert response.status_code == 401
        data = response.json()
        assert "temporarily locked" in data["detail"]
        assert "lock_until" in data

    async def test_third_device_gets_session_limit(self, client, make_user):
        user = await make_user()
        await login_as(client, user.email, user_agent=DESKTOP_UA, ip_address="198.51.100.1")
        await login_as(client, user.email, user_agent=IPHONE_UA, ip_address="198.51.100.2")

        response = await login_as(
            client, user.email, user_agent=FIREFOX_UA, ip_address="198.51.100.3"
        )

        assert response.status_code == 409
        data = response.json()
        assert data["code"] == "SESSION_LIMIT_EXCEEDED"
        assert data["max_sessions"] == 2
        assert len(data["active_sessions"]) == 2
        assert {s["ip_address"] for s in data["active_sessions"]} == {
            "198.51.100.1",
            "198.51.100.2",
        }
        assert {"session_id", "browser", "device_type", "last_activity"} <= set(
            data["active_sessions"][0]
        )

    async def test_same_device_at_cap_is_admitted(self, client, make_user):
        user = await make_user()
        first = await login_as(client, user.email, ip_address="198.51.100.1")
        await login_as(client, user.email, user_agent=IPHONE_UA, ip_address="198.51.100.2")

        response = await login_as(client, user.email, ip_address="198.51.100.1")

        assert response.status_code == 200
        assert response.json()["action"] == "admit_same_device"
        assert response.json()["session_id"] == first.json()["session_id"]

    async def test_force_login_evicts_oldest(self, client, make_user):
        user = await make_user()
        first = await login_as(client, user.email, ip_address="198.51.100.1")
        second = await login_as(
            client, user.email, user_agent=IPHONE_UA, ip_address="198.51.100.2"
        )
        # Touch the first session so the second becomes the idle one
        await client.get("/auth/me", headers=bearer(first.json()["token"]))

        response = await login_as(
            client,
            user.email,
            user_agent=FIREFOX_UA,
            ip_address="198.51.100.3",
            force=True,
        )

        assert response.status_code == 200
        assert response.json()["action"] == "evict_oldest_and_admit"
        evicted = await client.get("/auth/me", headers=bearer(second.json()["token"]))
        assert evicted.status_code == 401
        kept = await client.get("/auth/me", headers=bearer(first.json()["token"]))
        assert kept.status_code == 200

    async def test_force_login_flag_on_login(self, client, make_user):
        user = await make_user()
        await login_as(client, user.email, ip_address="198.51.100.1")
        await login_as(client, user.email, user_agent=IPHONE_UA, ip_address="198.51.100.2")

        response = await client.post(
            "/auth/login",
            json={"email": user.email, "password": TEST_PASSWORD, "force_login": True},
            headers={"User-Agent": FIREFOX_UA, "X-Forwarded-For": "198.51.100.3"},
        )

        assert response.status_code == 200
        assert response.json()["action"] == "evict_oldest_and_admit"

    async def test_forwarded_for_uses_first_hop(self, client, make_user):
        user = await make_user()

        response = await client.post(
            "/auth/login",
            json={"email": user.email, "password": TEST_PASSWORD},
            headers={"User-Agent": DESKTOP_UA, "X-Forwarded-For": "203.0.113.7, 10.0.0.1"},
        )

        sessions = await client.get("/auth/sessions", headers=bearer(response.json()["token"]))
        assert sessions.json()["sessions"][0]["ip_address"] == "203.0.113.7"
        assert sessions.json()["sessions"][0]["browser"] == "Chrome"


class TestLogoutAndProfile:

    async def test_logout_ends_session(self, client, make_user):
        user = await make_user()
        token = (await login_as(client, user.email)).json()["token"]

        response = await client.post("/auth/logout", headers=bearer(token))
        assert response.status_code == 200

        response = await client.get("/auth/me", headers=bearer(token))
        assert response.status_code == 401
        assert response.json()["detail"] == "Session has expired. Please log in again."

    async def test_me_requires_token(self, client):
        response = await client.get("/auth/me")

        assert response.status_code in (401, 403)

    async def test_me_rejects_garbage_token(self, client):
        response = await client.get("/auth/me", headers=bearer("not-a-token"))

        assert response.status_code == 401

    async def test_me(self, client, make_user):
        user = await make_user()
        token = (await login_as(client, user.email)).json()["token"]

        response = await client.get("/auth/me", headers=bearer(token))

        assert response.status_code == 200
        assert response.json()["email"] == user.email
        assert response.json()["role"] == "user"

    async def test_update_profile(self, client, make_user):
        user = await make_user()
        token = (await login_as(client, user.email)).json()["token"]

        response = await client.put(
            "/auth/profile",
            json={"name": "New Name", "phone": "+15550107777"},
            headers=bearer(token),
        )

        assert response.status_code == 200
        assert response.json()["name"] == "New Name"
        assert response.json()["phone"] == "+15550107777"

    async def test_update_profile_phone_conflict(self, client, make_user):
        other = await make_user()
        user = await make_user()
        token = (await login_as(client, user.email)).json()["token"]

        response = await client.put(
            "/auth/profile", json={"phone": other.phone}, headers=bearer(token)
        )

        assert response.status_code == 409


class TestPasswordEndpoints:

    async def test_change_password_signs_out_everywhere(self, client, make_user):
        user = await make_user()
        first = (await login_as(client, user.email, ip_address="198.51.100.1")).json()
        second = (
            await login_as(client, user.email, user_agent=IPHONE_UA, ip_address="198.51.100.2")
        ).json()

        response = await client.put(
            "/auth/change-password",
            json={"current_password": TEST_PASSWORD, "new_password": NEW_PASSWORD},
            headers=bearer(first["token"]),
        )

        assert response.status_code == 200
        for token in (first["token"], second["token"]):
            assert (await client.get("/auth/me", headers=bearer(token))).status_code == 401
        assert (await login_as(client, user.email)).status_code == 401
        assert (await login_as(client, user.email, password=NEW_PASSWORD)).status_code == 200

    async def test_change_password_wrong_current(self, client, make_user):
        user = await make_user()
        token = (await login_as(client, user.email)).json()["token"]

        response = await client.put(
            "/auth/change-password",
            json={"current_password": "WrongPass999", "new_password": NEW_PASSWORD},
            headers=bearer(token),
        )

        assert response.status_code == 401
        assert response.json()["detail"] == "Current password is incorrect."

    async def test_reset_with_link(self, client, make_user, mock_email_service, db_session):
        user = await make_user()

        response = await client.post("/auth/forgot-password", json={"email": user.email})
        assert response.status_code == 200
        token = mock_email_service["reset_link"].call_args.kwargs["reset_token"]

        response = await client.post(
            "/auth/reset-password", json={"token": token, "password": NEW_PASSWORD}
        )
        assert response.status_code == 200

        response = await client.post(
            "/auth/reset-password", json={"token": token, "password": "AnotherPass789"}
        )
        assert response.status_code == 401

        await db_session.refresh(user)
        assert verify_password(NEW_PASSWORD, user.password_hash)

    async def test_forgot_password_unknown_email(self, client, mock_email_service):
        response = await client.post(
            "/auth/forgot-password", json={"email": "ghost@example.com"}
        )

        assert response.status_code == 200
        mock_email_service["reset_link"].assert_not_awaited()

    async def test_reset_with_otp(self, client, make_user, mock_email_service):
        user = await make_user()

        response = await client.post("/auth/send-reset-otp", json={"email": user.email})
        assert response.status_code == 200
        code = mock_email_service["otp"].call_args.kwargs["otp_code"]

        response = await client.post(
            "/auth/verify-otp-reset",
            json={"email": user.email, "otp": code, "new_password": NEW_PASSWORD},
        )

        assert response.status_code == 200
        assert (await login_as(client, user.email, password=NEW_PASSWORD)).status_code == 200

    async def test_reset_code_is_single_use(self, client, make_user, mock_email_service):
        user = await make_user()
        await client.post("/auth/send-reset-otp", json={"email": user.email})
        code = mock_email_service["otp"].call_args.kwargs["otp_code"]
        payload = {"email": user.email, "otp": code, "new_password": NEW_PASSWORD}

        first = await client.post("/auth/verify-otp-reset", json=payload)
        second = await client.post("/auth/verify-otp-reset", json=payload)

        assert first.status_code == 200
        assert second.status_code == 401


class TestExpiredLock:

    async def test_expired_lock_is_not_reported(self, client, make_user, now):
        user = await make_user(
            is_locked=True, login_attempts=5, lock_until=now - timedelta(minutes=1)
        )

        response = await login_as(client, user.email)

        assert response.status_code == 200
