"""
tests/test_guard.py -- Edge guard and dashboard page tests.

Run through the real ASGI stack with follow_redirects=False so the redirect
Location is visible.

Coverage:
  - path classification (protected prefixes, exclusions)
  - missing, tampered and expired tokens all get the same 302 to /
  - a valid token (header or cookie) reaches the page with identity headers
  - client-supplied x-user-* headers never survive the guard
  - /, /login and /api/* are never intercepted
  - dashboard sections backed by a module need read permission on it
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from auth.guard import is_protected_path
from auth.tokens import identity_for, issue_token
from conftest import bearer, create_user

PREFIXES = ["/dashboard"]
EXCLUSIONS = ["/api", "/static", "/favicon.ico", "/icon", "/login"]


@pytest.mark.parametrize(
    ("path", "expected"),
    [
        ("/dashboard", True),
        ("/dashboard/", True),
        ("/dashboard/products/42", True),
        ("/dashboards", False),
        ("/", False),
        ("/login", False),
        ("/api/v1/auth/me", False),
        ("/static/app.css", False),
        ("/favicon.ico", False),
    ],
)
def test_is_protected_path(path: str, expected: bool) -> None:
    assert is_protected_path(path, PREFIXES, EXCLUSIONS) is expected


def test_exclusion_wins_over_prefix() -> None:
    assert not is_protected_path("/dashboard/static/x", ["/dashboard"], ["/dashboard/static"])


class TestRedirects:
    def test_no_token_redirects_to_entry(self, web_client: tuple[TestClient, str, int]) -> None:
        client, _token, _uid = web_client
        resp = client.get("/dashboard/x")
        assert resp.status_code == 302
        assert resp.headers["location"] == "/"

    def test_tampered_token_redirects(self, web_client: tuple[TestClient, str, int]) -> None:
        client, token, _uid = web_client
        header, payload, signature = token.split(".")
        mid = len(signature) // 2
        forged = ".".join((header, payload, signature[:mid] + ("A" if signature[mid] != "A" else "B") + signature[mid + 1 :]))
        resp = client.get("/dashboard", headers={"Authorization": f"Bearer {forged}"})
        assert resp.status_code == 302
        assert resp.headers["location"] == "/"

    def test_expired_token_redirects(self, web_client: tuple[TestClient, str, int]) -> None:
        client, _token, _uid = web_client
        user = client.app.state.auth_store.get_by_email("web@stockify.test")
        stale = issue_token(identity_for(user), now=datetime.now(timezone.utc) - timedelta(days=8))
        resp = client.get("/dashboard", headers={"Authorization": f"Bearer {stale}"})
        assert resp.status_code == 302
        assert resp.headers["location"] == "/"

    def test_redirects_are_identical(self, web_client: tuple[TestClient, str, int]) -> None:
        client, _token, _uid = web_client
        missing = client.get("/dashboard")
        garbage = client.get("/dashboard", headers={"Authorization": "Bearer garbage"})
        assert missing.status_code == garbage.status_code == 302
        assert missing.headers["location"] == garbage.headers["location"]
        assert missing.content == garbage.content


class TestAuthenticatedNavigation:
    def test_bearer_header_reaches_page(self, web_client: tuple[TestClient, str, int]) -> None:
        client, token, uid = web_client
        resp = client.get("/dashboard/x", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 200
        assert f'<span id="user-id">{uid}</span>' in resp.text
        assert '<span id="user-email">web@stockify.test</span>' in resp.text
        assert 'data-section="x"' in resp.text

    def test_cookie_reaches_page(self, web_client: tuple[TestClient, str, int]) -> None:
        client, token, uid = web_client
        client.cookies.set("authToken", token)
        try:
            resp = client.get("/dashboard")
        finally:
            client.cookies.clear()
        assert resp.status_code == 200
        assert f'<span id="user-id">{uid}</span>' in resp.text

    def test_spoofed_identity_headers_are_replaced(self, web_client: tuple[TestClient, str, int]) -> None:
        client, token, uid = web_client
        resp = client.get(
            "/dashboard",
            headers={
                "Authorization": f"Bearer {token}",
                "x-user-id": "999999",
                "x-user-email": "attacker@evil.test",
            },
        )
        assert resp.status_code == 200
        assert f'<span id="user-id">{uid}</span>' in resp.text
        assert "attacker@evil.test" not in resp.text

    def test_spoofed_headers_without_token_still_redirect(self, web_client: tuple[TestClient, str, int]) -> None:
        client, _token, _uid = web_client
        resp = client.get("/dashboard", headers={"x-user-id": "1", "x-user-email": "a@b.io"})
        assert resp.status_code == 302


class TestPublicPaths:
    @pytest.mark.parametrize("path", ["/", "/login"])
    def test_login_page_is_public(self, web_client: tuple[TestClient, str, int], path: str) -> None:
        client, _token, _uid = web_client
        resp = client.get(path)
        assert resp.status_code == 200
        assert 'id="login-form"' in resp.text

    def test_api_is_not_redirected(self, web_client: tuple[TestClient, str, int]) -> None:
        client, _token, _uid = web_client
        resp = client.get("/api/v1/auth/me")
        assert resp.status_code == 401
        assert "location" not in resp.headers


class TestSectionPermissions:
    def test_admin_sees_every_section(self, web_client: tuple[TestClient, str, int]) -> None:
        client, token, _uid = web_client
        resp = client.get("/dashboard/suppliers", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 200
        assert 'href="/dashboard/users"' in resp.text

    def test_user_without_role_is_refused_module_sections(self, web_client: tuple[TestClient, str, int]) -> None:
        client, _token, _uid = web_client
        user = create_user(client.app.state.auth_store, "plain@stockify.test")
        resp = client.get("/dashboard/suppliers", headers=bearer(user))
        assert resp.status_code == 403
        assert "You do not have access" in resp.text
        home = client.get("/dashboard", headers=bearer(user))
        assert home.status_code == 200
        assert 'href="/dashboard/users"' not in home.text
