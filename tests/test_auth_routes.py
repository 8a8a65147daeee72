"""
tests/test_auth_routes.py -- Integration tests for /api/v1/auth/*.

These tests exercise the full stack: FastAPI routing -> auth service ->
AuthStore -> response models and the error envelope.

Coverage:
  - register: 201, 400 messages, 409 on duplicate email
  - login: token in body, no-store header, identical 401 for unknown email
    and wrong password
  - me: 401 "No token provided" vs "Invalid or expired token", profile on success
  - logout: always 200
  - forgot/reset password: identical replies, single-use token, sessions ended
  - rate limits: 429 with Retry-After once login or forgot-password exceed the budget

Fixtures used (from conftest.py):
  - api_client: (client, token, uid)
"""

from __future__ import annotations

from fastapi.testclient import TestClient

from api.limiter import AUTH_RATE_LIMIT
from conftest import ADMIN_PASSWORD
from core.config import get_settings


def _register(client: TestClient, email: str, password: str = "secret1"):
    return client.post(
        "/api/v1/auth/register",
        json={"email": email, "password": password, "first_name": "Route", "last_name": "Tester"},
    )


class TestRegister:
    def test_register_returns_201(self, api_client: tuple[TestClient, str, int]) -> None:
        client, _token, _uid = api_client
        resp = _register(client, "fresh@stockify.test")
        assert resp.status_code == 201
        body = resp.json()
        assert body["message"] == "User registered successfully"
        assert isinstance(body["user_id"], int)

    def test_duplicate_email_is_409(self, api_client: tuple[TestClient, str, int]) -> None:
        client, _token, _uid = api_client
        assert _register(client, "twice@stockify.test").status_code == 201
        resp = _register(client, "twice@stockify.test")
        assert resp.status_code == 409
        assert resp.json()["error"]["message"] == "Email already registered"

    def test_missing_fields_is_400(self, api_client: tuple[TestClient, str, int]) -> None:
        client, _token, _uid = api_client
        resp = client.post("/api/v1/auth/register", json={"email": "x@stockify.test"})
        assert resp.status_code == 400
        assert resp.json()["error"] == {"code": "validation_error", "message": "All fields are required"}

    def test_bad_email_is_400(self, api_client: tuple[TestClient, str, int]) -> None:
        client, _token, _uid = api_client
        resp = _register(client, "nope")
        assert resp.status_code == 400
        assert resp.json()["error"]["message"] == "Invalid email format"

    def test_short_password_is_400(self, api_client: tuple[TestClient, str, int]) -> None:
        client, _token, _uid = api_client
        resp = _register(client, "short@stockify.test", password="123")
        assert resp.status_code == 400
        assert resp.json()["error"]["message"] == "Password must be at least 6 characters long"


class TestLogin:
    def test_login_returns_token(self, api_client: tuple[TestClient, str, int]) -> None:
        client, _token, uid = api_client
        resp = client.post("/api/v1/auth/login", json={"email": "admin@stockify.test", "password": ADMIN_PASSWORD})
        assert resp.status_code == 200
        assert resp.headers["cache-control"] == "no-store"
        body = resp.json()
        assert body["message"] == "Login successful"
        assert body["token_type"] == "bearer"
        assert body["user"]["id"] == uid
        assert body["expires_in"] == 7 * 24 * 3600
        me = client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {body['token']}"})
        assert me.status_code == 200

    def test_unknown_email_and_wrong_password_match(self, api_client: tuple[TestClient, str, int]) -> None:
        client, _token, _uid = api_client
        wrong = client.post("/api/v1/auth/login", json={"email": "admin@stockify.test", "password": "wrong-pass"})
        unknown = client.post("/api/v1/auth/login", json={"email": "ghost@stockify.test", "password": "wrong-pass"})
        assert wrong.status_code == unknown.status_code == 401
        assert wrong.content == unknown.content
        assert wrong.json()["error"]["message"] == "Invalid credentials"

    def test_missing_credentials_is_400(self, api_client: tuple[TestClient, str, int]) -> None:
        client, _token, _uid = api_client
        resp = client.post("/api/v1/auth/login", json={})
        assert resp.status_code == 400
        assert resp.json()["error"]["message"] == "Email and password are required"


class TestMe:
    def test_no_token(self, api_client: tuple[TestClient, str, int]) -> None:
        client, _token, _uid = api_client
        resp = client.get("/api/v1/auth/me")
        assert resp.status_code == 401
        assert resp.json()["error"]["message"] == "No token provided"

    def test_invalid_token(self, api_client: tuple[TestClient, str, int]) -> None:
        client, _token, _uid = api_client
        resp = client.get("/api/v1/auth/me", headers={"Authorization": "Bearer not.a.token"})
        assert resp.status_code == 401
        assert resp.json()["error"]["message"] == "Invalid or expired token"

    def test_profile(self, api_client: tuple[TestClient, str, int]) -> None:
        client, token, uid = api_client
        resp = client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 200
        body = resp.json()
        assert body["id"] == uid
        assert body["email"] == "admin@stockify.test"
        assert body["role_name"] == "Admin"
        assert "password_hash" not in body


class TestLogout:
    def test_logout_without_token(self, api_client: tuple[TestClient, str, int]) -> None:
        client, _token, _uid = api_client
        resp = client.post("/api/v1/auth/logout")
        assert resp.status_code == 200
        assert resp.json() == {"message": "Logout successful"}

    def test_logout_with_garbage_token(self, api_client: tuple[TestClient, str, int]) -> None:
        client, _token, _uid = api_client
        resp = client.post("/api/v1/auth/logout", headers={"Authorization": "Bearer garbage"})
        assert resp.status_code == 200

    def test_logout_removes_session_record(self, api_client: tuple[TestClient, str, int]) -> None:
        client, _token, uid = api_client
        store = client.app.state.auth_store
        token = client.post(
            "/api/v1/auth/login", json={"email": "admin@stockify.test", "password": ADMIN_PASSWORD}
        ).json()["token"]
        assert store.has_session(uid, token)
        resp = client.post("/api/v1/auth/logout", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 200
        assert not store.has_session(uid, token)


class TestPasswordReset:
    def test_forgot_password_replies_identically(self, api_client: tuple[TestClient, str, int]) -> None:
        client, _token, _uid = api_client
        _register(client, "forgot@stockify.test")
        store = client.app.state.auth_store
        client.app.state.sent_resets.clear()

        known = client.post("/api/v1/auth/forgot-password", json={"email": "forgot@stockify.test"})
        unknown = client.post("/api/v1/auth/forgot-password", json={"email": "nobody@stockify.test"})

        assert known.status_code == unknown.status_code == 200
        assert known.content == unknown.content
        assert known.json()["message"] == "If the email exists, a reset link has been sent"
        assert len(store.list_password_resets("forgot@stockify.test")) == 1
        assert store.list_password_resets("nobody@stockify.test") == []
        assert [email for email, _ in client.app.state.sent_resets] == ["forgot@stockify.test"]

    def test_forgot_password_requires_email(self, api_client: tuple[TestClient, str, int]) -> None:
        client, _token, _uid = api_client
        resp = client.post("/api/v1/auth/forgot-password", json={})
        assert resp.status_code == 400
        assert resp.json()["error"]["message"] == "Email is required"

    def test_reset_once_then_rejected(self, api_client: tuple[TestClient, str, int]) -> None:
        client, _token, _uid = api_client
        _register(client, "once@stockify.test", password="oldpass1")
        login = client.post("/api/v1/auth/login", json={"email": "once@stockify.test", "password": "oldpass1"})
        user_id = login.json()["user"]["id"]
        store = client.app.state.auth_store
        assert store.list_sessions(user_id)

        client.app.state.sent_resets.clear()
        client.post("/api/v1/auth/forgot-password", json={"email": "once@stockify.test"})
        ((_, reset_token),) = client.app.state.sent_resets

        first = client.post("/api/v1/auth/reset-password", json={"token": reset_token, "new_password": "newpass1"})
        assert first.status_code == 200
        assert first.json() == {"message": "Password reset successfully"}
        assert store.list_sessions(user_id) == []

        second = client.post("/api/v1/auth/reset-password", json={"token": reset_token, "new_password": "newpass2"})
        assert second.status_code == 400
        assert second.json()["error"]["message"] == "Invalid or expired reset token"

        ok = client.post("/api/v1/auth/login", json={"email": "once@stockify.test", "password": "newpass1"})
        assert ok.status_code == 200

    def test_reset_requires_fields(self, api_client: tuple[TestClient, str, int]) -> None:
        client, _token, _uid = api_client
        resp = client.post("/api/v1/auth/reset-password", json={"token": "abc"})
        assert resp.status_code == 400
        assert resp.json()["error"]["message"] == "Token and new password are required"


class TestSessionRevocation:
    """With SESSION_REVOCATION on, API identity checks also require a live session record."""

    def _enable(self, monkeypatch) -> None:
        revoking = get_settings().model_copy(update={"session_revocation": True})
        monkeypatch.setattr("auth.dependencies.get_settings", lambda: revoking)

    def test_token_without_record_is_rejected(self, api_client: tuple[TestClient, str, int], monkeypatch) -> None:
        client, token, _uid = api_client
        self._enable(monkeypatch)
        resp = client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 401
        assert resp.json()["error"]["message"] == "Invalid or expired token"

    def test_logout_revokes_token(self, api_client: tuple[TestClient, str, int], monkeypatch) -> None:
        client, _token, _uid = api_client
        self._enable(monkeypatch)
        _register(client, "revoke@stockify.test")
        token = client.post(
            "/api/v1/auth/login", json={"email": "revoke@stockify.test", "password": "secret1"}
        ).json()["token"]
        headers = {"Authorization": f"Bearer {token}"}
        assert client.get("/api/v1/auth/me", headers=headers).status_code == 200
        client.post("/api/v1/auth/logout", headers=headers)
        assert client.get("/api/v1/auth/me", headers=headers).status_code == 401

    def test_guard_stays_stateless(self, api_client: tuple[TestClient, str, int], monkeypatch) -> None:
        client, token, _uid = api_client
        self._enable(monkeypatch)
        resp = client.get("/dashboard", headers={"Authorization": f"Bearer {token}"}, follow_redirects=False)
        assert resp.status_code == 200


class TestRateLimit:
    """login and forgot-password share LOGIN_RATE_LIMIT per client address."""

    def _limit(self) -> int:
        return int(AUTH_RATE_LIMIT.split("/")[0])

    def test_login_limited(self, api_client: tuple[TestClient, str, int]) -> None:
        client, _token, _uid = api_client
        limit = self._limit()
        responses = [
            client.post("/api/v1/auth/login", json={"email": "ghost@stockify.test", "password": "wrong-pass"})
            for _ in range(limit + 2)
        ]
        assert [r.status_code for r in responses[:limit]] == [401] * limit
        assert [r.status_code for r in responses[limit:]] == [429, 429]
        blocked = responses[-1]
        assert blocked.headers["Retry-After"]
        assert blocked.json()["error"]["code"] == "rate_limited"

    def test_forgot_password_limited(self, api_client: tuple[TestClient, str, int]) -> None:
        client, _token, _uid = api_client
        limit = self._limit()
        statuses = [
            client.post("/api/v1/auth/forgot-password", json={"email": "nobody@stockify.test"}).status_code
            for _ in range(limit + 1)
        ]
        assert statuses == [200] * limit + [429]

    def test_other_routes_not_limited(self, api_client: tuple[TestClient, str, int]) -> None:
        client, _token, _uid = api_client
        statuses = {client.post("/api/v1/auth/logout").status_code for _ in range(self._limit() + 1)}
        assert statuses == {200}
