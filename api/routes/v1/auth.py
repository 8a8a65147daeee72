"""
api/routes/v1/auth.py -- Registration, login, session and password-reset endpoints.

Routes:
  POST /api/v1/auth/register         -- create an account; 201
  POST /api/v1/auth/login            -- password login; token in the body
  POST /api/v1/auth/logout           -- best-effort session removal; always 200
  GET  /api/v1/auth/me               -- current user profile (requires token)
  POST /api/v1/auth/forgot-password  -- issue a reset token; same reply for every email
  POST /api/v1/auth/reset-password   -- spend a reset token; ends all sessions

Security:
  login and forgot-password share Settings.login_rate_limit per IP.
  auth.service.login() goes through authenticate_user(), which equalizes
  timing between unknown emails and wrong passwords.
  Cache-Control: no-store on responses that carry a token.
  Anti-enumeration: login failures and forgot-password acknowledgments are
  byte-identical regardless of whether the email is registered.

All flows live in auth/service.py; handlers only translate between the
transport models and the service calls. Errors raised by the service reach
the StockifyError handler in api/main.py.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.limiter import AUTH_RATE_LIMIT, limiter
from api.models import (
    ForgotPasswordRequest,
    LoginRequest,
    LoginResponse,
    MessageResponse,
    ProfileResponse,
    RegisterRequest,
    RegisterResponse,
    ResetPasswordRequest,
    UserSummary,
)
from auth import service
from auth.dependencies import get_current_user
from auth.models import User
from auth.store import AuthStore
from auth.tokens import extract_token, token_lifetime
from core.config import get_settings

logger = logging.getLogger("stockify.api")

# Auth policy:
# - POST /api/v1/auth/register:         public
# - POST /api/v1/auth/login:            public, rate-limited
# - POST /api/v1/auth/logout:           public -- succeeds with or without a valid token
# - GET  /api/v1/auth/me:               requires token (get_current_user)
# - POST /api/v1/auth/forgot-password:  public, rate-limited
# - POST /api/v1/auth/reset-password:   public -- the reset token is the credential
router = APIRouter()

_RESET_ACK = "If the email exists, a reset link has been sent"


@router.post("/auth/register", response_model=RegisterResponse, status_code=201)
def register(request: Request, body: RegisterRequest) -> RegisterResponse:
    """Create a self-registered account. Duplicate emails get 409, not 500."""
    store: AuthStore = request.app.state.auth_store
    user_id = service.register_user(store, body.email, body.password, body.first_name, body.last_name)
    return RegisterResponse(message="User registered successfully", user_id=user_id)


@router.post("/auth/login", response_model=LoginResponse)
@limiter.limit(AUTH_RATE_LIMIT)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with email and password; return a bearer token.

    Unknown email and wrong password raise the same AuthenticationError, so
    both produce the same 401 body.
    """
    store: AuthStore = request.app.state.auth_store
    result = service.login(store, body.email, body.password)
    user = result.user
    resp = JSONResponse(
        status_code=200,
        content=LoginResponse(
            token=result.token,
            expires_in=int(token_lifetime().total_seconds()),
            user=UserSummary(id=user.id, email=user.email, first_name=user.first_name, last_name=user.last_name),
        ).model_dump(),
    )
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.post("/auth/logout", response_model=MessageResponse)
def logout(request: Request) -> JSONResponse:
    """Drop the caller's session record if there is one. Always reports success."""
    store: AuthStore = request.app.state.auth_store
    service.logout(store, extract_token(request.headers, request.cookies))
    resp = JSONResponse(content=MessageResponse(message="Logout successful").model_dump())
    resp.delete_cookie(get_settings().auth_cookie_name)
    return resp


@router.get("/auth/me", response_model=ProfileResponse)
def me(current_user: User = Depends(get_current_user)) -> ProfileResponse:
    """Return a fresh profile for the token's user."""
    return ProfileResponse.from_user(current_user)


@router.post("/auth/forgot-password", response_model=MessageResponse)
@limiter.limit(AUTH_RATE_LIMIT)
def forgot_password(request: Request, body: ForgotPasswordRequest) -> MessageResponse:
    """Start a password reset.

    The reply is the same for registered and unknown emails. Only a registered
    email gets a reset row, which is then handed to the reset notifier.
    Notifier failures are logged and never change the reply.
    """
    store: AuthStore = request.app.state.auth_store
    token = service.request_password_reset(store, body.email)
    if token is not None:
        try:
            request.app.state.reset_notifier(body.email.strip(), token)
        except Exception:
            logger.exception("Reset notifier failed")
    return MessageResponse(message=_RESET_ACK)


@router.post("/auth/reset-password", response_model=MessageResponse)
def reset_password(request: Request, body: ResetPasswordRequest) -> MessageResponse:
    """Set a new password with a reset token. The token works once."""
    store: AuthStore = request.app.state.auth_store
    service.reset_password(store, body.token, body.new_password)
    return MessageResponse(message="Password reset successfully")
