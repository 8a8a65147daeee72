"""
auth/service.py -- Registration, login, logout and password-reset flows.

Plain functions over an AuthStore. Each one validates its input, performs the
store calls and raises a core.errors exception on failure; the API layer maps
those to responses. Keeping the flows here (not in route handlers) means the
anti-enumeration rules are testable without an HTTP client.

Anti-enumeration:
  login()                  -- unknown email and wrong password raise the same
                              AuthenticationError("Invalid credentials").
  request_password_reset() -- returns None for unknown emails; the route
                              sends the same acknowledgment either way.

Layer rule: no imports from api/, web/, or inventory/.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from auth.models import PasswordReset, SessionRecord, User
from auth.store import AuthStore
from auth.tokens import (
    authenticate_user,
    decode_token,
    generate_reset_token,
    hash_password,
    identity_for,
    issue_token,
    token_lifetime,
)
from core.config import get_settings
from core.database import to_iso
from core.errors import AuthenticationError, ConflictError, ValidationError

logger = logging.getLogger("stockify.auth")

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
MIN_PASSWORD_LENGTH = 6


@dataclass(frozen=True)
class LoginResult:
    token: str
    user: User
    expires_at: datetime


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


def _blank(value: str | None) -> bool:
    return value is None or not value.strip()


def validate_email(email: str, message: str = "Invalid email format") -> None:
    if not EMAIL_PATTERN.match(email):
        raise ValidationError(message)


def validate_password(password: str) -> None:
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")


# ---------------------------------------------------------------------------
# Registration and login
# ---------------------------------------------------------------------------


def register_user(
    store: AuthStore,
    email: str | None,
    password: str | None,
    first_name: str | None,
    last_name: str | None,
) -> int:
    """Create a self-registered account and return its ID.

    The UNIQUE constraint on users.email decides duplicate sign-ups, including
    concurrent ones; the resulting IntegrityError becomes ConflictError.
    """
    if any(_blank(v) for v in (email, password, first_name, last_name)):
        raise ValidationError("All fields are required")
    email = email.strip()
    validate_email(email)
    validate_password(password)

    user = User(
        email=email,
        first_name=first_name.strip(),
        last_name=last_name.strip(),
        password_hash=hash_password(password),
        is_verified=True,
    )
    try:
        user_id = store.create_user(user)
    except IntegrityError as exc:
        raise ConflictError("Email already registered", code="email_taken") from exc
    logger.info("Registered user id=%d", user_id)
    return user_id


def login(store: AuthStore, email: str | None, password: str | None, now: datetime | None = None) -> LoginResult:
    """Check credentials, issue a token and record the session.

    The session record is bookkeeping for revocation. If writing it fails the
    login still succeeds; the failure is logged.
    """
    if _blank(email) or not password:
        raise ValidationError("Email and password are required")
    user = authenticate_user(store, email.strip(), password)
    if user is None:
        raise AuthenticationError("Invalid credentials", code="bad_credentials")

    issued_at = now or datetime.now(timezone.utc)
    expires_at = issued_at + token_lifetime()
    token = issue_token(identity_for(user), now=issued_at)
    try:
        store.record_session(SessionRecord(user_id=user.id, token=token, expires_at=to_iso(expires_at)))
    except SQLAlchemyError:
        logger.warning("Session record for user id=%d could not be written", user.id, exc_info=True)
    return LoginResult(token=token, user=user, expires_at=expires_at)


def logout(store: AuthStore, token: str | None) -> None:
    """Best-effort removal of the caller's session record. Never raises.

    The client discards its token regardless, so a missing token, a token that
    fails verification, or an absent record are all treated as done.
    """
    if not token:
        return
    identity = decode_token(token)
    if identity is None:
        return
    try:
        store.delete_session(identity.user_id, token)
    except SQLAlchemyError:
        logger.warning("Session record for user id=%d could not be deleted", identity.user_id, exc_info=True)


# ---------------------------------------------------------------------------
# Password reset
# ---------------------------------------------------------------------------


def request_password_reset(store: AuthStore, email: str | None, now: datetime | None = None) -> str | None:
    """Create a reset token for email if it belongs to a user.

    Returns the raw token so the caller can deliver it, or None when the email
    is unknown. Callers must respond identically in both cases.
    """
    if _blank(email):
        raise ValidationError("Email is required")
    email = email.strip()
    if store.get_by_email(email) is None:
        return None
    issued_at = now or datetime.now(timezone.utc)
    expires_at = issued_at + timedelta(seconds=get_settings().reset_token_expire_seconds)
    token = generate_reset_token()
    store.create_password_reset(PasswordReset(email=email, token=token, expires_at=to_iso(expires_at)))
    return token


def log_reset_notifier(email: str, token: str) -> None:
    """Default reset delivery: log that a token was issued.

    The token itself is logged only in DEBUG mode so local development can
    complete a reset without a mail server.
    """
    if get_settings().debug:
        logger.info("Password reset token for %s: %s", email, token)
    else:
        logger.info("Password reset token issued for %s", email)


def reset_password(store: AuthStore, token: str | None, new_password: str | None) -> None:
    """Spend a reset token, set the new password and end every session of the user.

    A token works once. Unknown, spent and expired tokens all raise the same
    ValidationError.
    """
    if _blank(token) or not new_password:
        raise ValidationError("Token and new password are required")
    validate_password(new_password)
    if not store.consume_password_reset(token.strip(), hash_password(new_password)):
        raise ValidationError("Invalid or expired reset token", code="invalid_reset_token")
    logger.info("Password reset completed; all sessions for the account were removed")
