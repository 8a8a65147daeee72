"""
auth/dependencies.py -- FastAPI Depends() helpers for API-level identity and permissions.

The edge guard (auth/guard.py) only protects dashboard navigation. API routes
establish identity themselves through these dependencies:

  get_current_identity() -- verifies the bearer token (header, then cookie).
      Unlike the guard, it reports "No token provided" and "Invalid or expired
      token" separately; it never says why a token was invalid.
  get_current_user()     -- identity plus a fresh User row (404 if deleted).
  require_permission()   -- factory: identity plus a role-permission check
      for one (module, action) pair. Raises 403 when the grid denies it.

With SESSION_REVOCATION=true, get_current_identity also requires a live
session record for the token, so logout and password reset take effect
before the token's natural expiry.

Layer rule: no imports from web/ or inventory/. This module may import from
fastapi because it is part of the dependency injection system.
"""

from __future__ import annotations

from collections.abc import Callable

from fastapi import Depends, Request

from auth.models import Identity, User
from auth.permissions import ACTIONS, MODULES, has_permission
from auth.store import AuthStore
from auth.tokens import decode_token, extract_token
from core.config import get_settings
from core.errors import AuthenticationError, NotFoundError, PermissionDeniedError


def get_current_identity(request: Request) -> Identity:
    """Require a valid token. Raises AuthenticationError (401) otherwise.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(identity: Identity = Depends(get_current_identity)): ...
    """
    token = extract_token(request.headers, request.cookies)
    if not token:
        raise AuthenticationError("No token provided", code="no_token")
    identity = decode_token(token)
    if identity is None:
        raise AuthenticationError("Invalid or expired token", code="invalid_token")
    if get_settings().session_revocation:
        store: AuthStore = request.app.state.auth_store
        if not store.has_session(identity.user_id, token):
            raise AuthenticationError("Invalid or expired token", code="invalid_token")
    return identity


def get_current_user(request: Request, identity: Identity = Depends(get_current_identity)) -> User:
    """Require a valid token whose user still exists."""
    store: AuthStore = request.app.state.auth_store
    user = store.get_by_id(identity.user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user


def require_permission(module: str, action: str) -> Callable[..., Identity]:
    """Return a dependency that admits only callers whose role grants module:action.

    Use on routers or individual routes:
        @router.post("/categories", dependencies=[Depends(require_permission("categories", "create"))])
    """
    if module not in MODULES or action not in ACTIONS:
        raise ValueError(f"Unknown capability {module}:{action}")

    def _check(request: Request, identity: Identity = Depends(get_current_identity)) -> Identity:
        store: AuthStore = request.app.state.auth_store
        grid = store.get_permissions_for_user(identity.user_id)
        if not has_permission(grid, module, action):
            raise PermissionDeniedError(module, action)
        return identity

    _check.__name__ = f"require_{module}_{action}"
    return _check
