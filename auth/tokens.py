"""
auth/tokens.py -- Session tokens, password hashing, and token extraction.

Security design decisions:
  JWT: python-jose with HS256. Tokens are signed with SECRET_KEY and carry
       userId, email, firstName, lastName, iat and exp. decode_token() returns
       None on every failure (bad signature, malformed, expired, wrong claim
       types) so no caller can tell the failure kinds apart.

  Passwords: bcrypt with a configurable cost factor (default 12). The
       _DUMMY_HASH constant enables timing equalization in authenticate_user()
       so response time does not reveal whether an email is registered.

  Reset tokens: secrets.token_hex(32) gives 256 bits of entropy.

  Transport: the Authorization: Bearer header wins over the authToken cookie.
       A request with neither simply has no token; the caller decides what
       that means.

Layer rule: no imports from api/, web/, or inventory/. Import from core/
is allowed -- core/ is the kernel and has no reverse dependencies.
"""

from __future__ import annotations

import secrets
from collections.abc import Mapping
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

import bcrypt
from jose import JWTError, jwt

from auth.models import Identity
from core.config import get_settings

if TYPE_CHECKING:
    from auth.models import User
    from auth.store import AuthStore


# ---------------------------------------------------------------------------
# Config -- read once at module load via the lru_cache singleton
# ---------------------------------------------------------------------------

_settings = get_settings()

_ALGORITHM = "HS256"

# ---------------------------------------------------------------------------
# Password hashing (bcrypt -- direct usage, no passlib wrapper)
# ---------------------------------------------------------------------------


def hash_password(plain: str) -> str:
    """Return a salted bcrypt hash of the given plaintext password.

    Passwords longer than 72 bytes are truncated by bcrypt. The API layer caps
    password fields at 255 characters, so inputs stay within a sane range.
    """
    salt = bcrypt.gensalt(rounds=_settings.password_hash_rounds)
    return bcrypt.hashpw(plain.encode("utf-8"), salt).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash.

    bcrypt.checkpw compares in constant time. A corrupt stored hash raises
    ValueError inside bcrypt; that is a failed match, not a server error.
    """
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        return False


# Timing equalization dummy hash.
# Computed once at module load so the first login attempt is not measurably
# slower than subsequent ones.
_DUMMY_HASH: str = hash_password("stockify_timing_dummy")


def authenticate_user(store: AuthStore, email: str, password: str) -> User | None:
    """Authenticate an email/password pair with timing equalization.

    Always runs bcrypt whether or not the email exists:
    - Unknown email: bcrypt runs against _DUMMY_HASH (same cost as real check)
    - Wrong password: bcrypt runs against the real hash (same cost)

    Returns the User on success, None on any failure.
    """
    user = store.get_by_email(email)
    if user is None or not user.password_hash:
        verify_password(password, _DUMMY_HASH)
        return None
    if not verify_password(password, user.password_hash):
        return None
    return user


# ---------------------------------------------------------------------------
# JWT encode / decode
# ---------------------------------------------------------------------------


def token_lifetime(expire_seconds: int = 0) -> timedelta:
    """Return the lifetime to use for a token; 0 means the configured default."""
    duration = expire_seconds if expire_seconds > 0 else _settings.token_expire_seconds
    return timedelta(seconds=duration)


def issue_token(identity: Identity, expire_seconds: int = 0, now: datetime | None = None) -> str:
    """Encode a signed JWT carrying the identity claims.

    Args:
        identity:       Claims to embed.
        expire_seconds: Token lifetime in seconds. 0 (default) uses
                        Settings.token_expire_seconds (7 days).
        now:            Issue instant. Defaults to the current UTC time; pass
                        the same value used for the session record so both
                        expire together.
    """
    issued_at = now or datetime.now(timezone.utc)
    payload = {
        "userId": identity.user_id,
        "email": identity.email,
        "firstName": identity.first_name,
        "lastName": identity.last_name,
        "iat": int(issued_at.timestamp()),
        "exp": int((issued_at + token_lifetime(expire_seconds)).timestamp()),
    }
    return jwt.encode(payload, _settings.secret_key, algorithm=_ALGORITHM)


def decode_token(token: str) -> Identity | None:
    """Verify a JWT and return its Identity, or None on any failure.

    Signature mismatch, malformed structure, expiry and wrong claim types all
    collapse to None. Callers that must report a reason (API identity checks)
    only distinguish "no token" from "this token", never why it failed.
    """
    try:
        payload = jwt.decode(
            token,
            _settings.secret_key,
            algorithms=[_ALGORITHM],
            options={"require_exp": True, "require_iat": True},
        )
    except JWTError:
        return None
    return _payload_to_identity(payload)


def _payload_to_identity(payload: Mapping) -> Identity | None:
    user_id = payload.get("userId")
    if not isinstance(user_id, int) or isinstance(user_id, bool):
        return None
    fields = (payload.get("email"), payload.get("firstName"), payload.get("lastName"))
    if not all(isinstance(value, str) for value in fields):
        return None
    email, first_name, last_name = fields
    return Identity(user_id=user_id, email=email, first_name=first_name, last_name=last_name)


def identity_for(user: User) -> Identity:
    """Build the token claims for a stored user."""
    return Identity(user_id=user.id, email=user.email, first_name=user.first_name, last_name=user.last_name)


# ---------------------------------------------------------------------------
# Token extraction
# ---------------------------------------------------------------------------


def extract_token(headers: Mapping[str, str], cookies: Mapping[str, str]) -> str | None:
    """Return the bearer token from the Authorization header, else the auth cookie.

    headers must be case-insensitive (Starlette Headers is). Returns None when
    neither source carries a token; absence is not an error here.
    """
    auth_header = headers.get("authorization", "")
    scheme, _, value = auth_header.partition(" ")
    if scheme.lower() == "bearer" and value.strip():
        return value.strip()
    cookie = cookies.get(_settings.auth_cookie_name)
    return cookie or None


# ---------------------------------------------------------------------------
# Password reset tokens
# ---------------------------------------------------------------------------


def generate_reset_token() -> str:
    """Return a 64-hex-char (256-bit) single-use reset token."""
    return secrets.token_hex(32)
