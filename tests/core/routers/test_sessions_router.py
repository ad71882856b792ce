"""
Test suite for the session management endpoints under /auth/sessions.

Run tests:
    pytest tests/core/routers/test_sessions_router.py -v
"""

from conftest import DESKTOP_UA, IPHONE_UA, bearer, login_as


async def _two_devices(client, email):
    desktop = (
        await login_as(client, email, user_agent=DESKTOP_UA, ip_address="198.51.100.1")
    ).json()
    phone = (
        await login_as(client, email, user_agent=IPHONE_UA, ip_address="198.51.100.2")
    ).json()
    return desktop, phone


class TestListSessions:

    async def test_lists_live_sessions_with_current_flag(self, client, make_user):
        user = await make_user()
        desktop, phone = await _two_devices(client, user.email)

        response = await client.get("/auth/sessions", headers=bearer(phone["token"]))

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 2
        current = [s for s in data["sessions"] if s["is_current"]]
        assert len(current) == 1
        assert current[0]["session_id"] == phone["session_id"]
        assert current[0]["device_type"] == "mobile"
        assert current[0]["is_online"] is True

    async def test_most_recently_active_first(self, client, make_user):
        user = await make_user()
        desktop, phone = await _two_devices(client, user.email)

        response = await client.get("/auth/sessions", headers=bearer(desktop["token"]))

        # Listing refreshed the desktop session before it was read
        assert response.json()["sessions"][0]["session_id"] == desktop["session_id"]

    async def test_requires_token(self, client):
        response = await client.get("/auth/sessions")

        assert response.status_code in (401, 403)

    async def test_other_users_sessions_not_listed(self, client, make_user):
        user = await make_user()
        other = await make_user()
        await login_as(client, other.email, ip_address="198.51.100.9")
        token = (await login_as(client, user.email)).json()["token"]

        response = await client.get("/auth/sessions", headers=bearer(token))

        assert response.json()["total"] == 1


class TestTerminateSessions:

    async def test_terminate_one_device(self, client, make_user):
        user = await make_user()
        desktop, phone = await _two_devices(client, user.email)

        response = await client.delete(
            f"/auth/sessions/{phone['session_id']}", headers=bearer(desktop["token"])
        )

        assert response.status_code == 200
        assert response.json()["message"] == "Session terminated successfully"
        assert (await client.get("/auth/me", headers=bearer(phone["token"]))).status_code == 401
        assert (await client.get("/auth/me", headers=bearer(desktop["token"]))).status_code == 200

    async def test_terminated_slot_frees_a_login(self, client, make_user):
        user = await make_user()
        desktop, phone = await _two_devices(client, user.email)
        await client.delete(
            f"/auth/sessions/{phone['session_id']}", headers=bearer(desktop["token"])
        )

        response = await login_as(
            client, user.email, user_agent=IPHONE_UA, ip_address="198.51.100.3"
        )

        assert response.status_code == 200
        assert response.json()["action"] == "admit"

    async def test_unknown_session_is_404(self, client, make_user):
        user = await make_user()
        token = (await login_as(client, user.email)).json()["token"]

        response = await client.delete("/auth/sessions/does-not-exist", headers=bearer(token))

        assert response.status_code == 404
        assert response.json()["detail"] == "Session not found."

    async def test_cannot_end_another_users_session(self, client, make_user):
        owner = await make_user()
        intruder = await make_user()
        owner_login = (await login_as(client, owner.email, ip_address="198.51.100.1")).json()
        intruder_token = (
            await login_as(client, intruder.email, ip_address="198.51.100.2")
        ).json()["token"]

        response = await client.delete(
            f"/auth/sessions/{owner_login['session_id']}", headers=bearer(intruder_token)
        )

        assert response.status_code == 404
        assert (
            await client.get("/auth/me", headers=bearer(owner_login["token"]))
        ).status_code == 200

    async def test_terminate_others_keeps_current(self, client, make_user):
        user = await make_user()
        desktop, phone = await _two_devices(client, user.email)

        response = await client.delete("/auth/sessions/others", headers=bearer(desktop["token"]))

        assert response.status_code == 200
        assert response.json()["terminated"] == 1
        assert response.json()["message"] == "Logged out from 1 other device(s)"
        assert (await client.get("/auth/me", headers=bearer(desktop["token"]))).status_code == 200
        assert (await client.get("/auth/me", headers=bearer(phone["token"]))).status_code == 401

    async def test_terminate_others_with_single_session(self, client, make_user):
        user = await make_user()
        token = (await login_as(client, user.email)).json()["token"]

        response = await client.delete("/auth/sessions/others", headers=bearer(token))

        assert response.json()["terminated"] == 0
