"""
auth/guard.py -- Edge guard for dashboard navigation.

Pattern: Interceptor. dashboard_guard runs once per request before routing
(registered with @app.middleware("http") in api/main.py).

  1. Classify: only paths under Settings.protected_prefixes are gated, and
     anything under Settings.guard_exclusions (API tree, static files, icons,
     the login page) is never gated. API handlers authorize themselves via
     auth/dependencies.py.
  2. Extract the token (Bearer header, then authToken cookie) and verify it.
  3. Missing or invalid -> 302 to the public entry path. The redirect is the
     same for missing, tampered, malformed and expired tokens.
  4. Valid -> forward with x-user-id and x-user-email set from the claims.
     Any client-supplied copies of those headers are dropped first, so
     downstream handlers can trust them.

The guard holds no state of its own and never touches the database; it reads
only the settings singleton and the signing secret.

Layer rule: no imports from api/, web/, or inventory/.
"""

from __future__ import annotations

from collections.abc import Iterable

from fastapi import Request
from fastapi.responses import RedirectResponse

from auth.models import Identity
from auth.tokens import decode_token, extract_token
from core.config import get_settings

USER_ID_HEADER = "x-user-id"
USER_EMAIL_HEADER = "x-user-email"

_IDENTITY_HEADERS = {USER_ID_HEADER.encode(), USER_EMAIL_HEADER.encode()}


def _is_under(path: str, prefix: str) -> bool:
    prefix = prefix.rstrip("/") or "/"
    if prefix == "/":
        return True
    return path == prefix or path.startswith(prefix + "/")


def is_protected_path(path: str, prefixes: Iterable[str], exclusions: Iterable[str]) -> bool:
    """Return True if path must carry a valid token to proceed."""
    if any(_is_under(path, excluded) for excluded in exclusions):
        return False
    return any(_is_under(path, prefix) for prefix in prefixes)


def _with_identity_headers(raw_headers: list[tuple[bytes, bytes]], identity: Identity) -> list[tuple[bytes, bytes]]:
    headers = [(k, v) for k, v in raw_headers if k.lower() not in _IDENTITY_HEADERS]
    headers.append((USER_ID_HEADER.encode(), str(identity.user_id).encode("latin-1")))
    headers.append((USER_EMAIL_HEADER.encode(), identity.email.encode("utf-8")))
    return headers


async def dashboard_guard(request: Request, call_next):
    """Redirect unauthenticated dashboard traffic; annotate authenticated traffic."""
    settings = get_settings()
    if not is_protected_path(request.url.path, settings.protected_prefixes, settings.guard_exclusions):
        return await call_next(request)

    token = extract_token(request.headers, request.cookies)
    identity = decode_token(token) if token else None
    if identity is None:
        return RedirectResponse(settings.public_entry_path, status_code=302)

    # call_next hands this same scope dict to the router.
    request.scope["headers"] = _with_identity_headers(list(request.scope["headers"]), identity)
    return await call_next(request)
