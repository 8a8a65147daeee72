"""
auth/models.py -- Domain dataclasses for authentication and authorization entities.

Pattern: Data class (pure data container, zero logic). Stores decode rows into
these types, services and routes work with them, and nothing outside the store
touches a raw row.

Layer rule: no imports from api/, web/, or inventory/.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class User:
    """A Stockify account.

    role_id is None for self-registered users until an administrator assigns
    a role. A user without a role has an all-false permission grid.
    """

    email: str
    first_name: str
    last_name: str
    id: int | None = None
    password_hash: str | None = None
    address: str = ""
    is_verified: bool = True
    role_id: int | None = None
    role_name: str | None = None  # filled by joins, never written
    created_at: str | None = None
    updated_at: str | None = None


@dataclass(frozen=True)
class Identity:
    """Claims carried by a session token.

    Frozen so it can be compared and shared across the request without anyone
    mutating the caller's identity mid-flight.
    """

    user_id: int
    email: str
    first_name: str
    last_name: str


@dataclass
class SessionRecord:
    """Server-side shadow of an issued token, kept for explicit revocation."""

    user_id: int
    token: str
    expires_at: str
    id: int | None = None
    created_at: str | None = None


@dataclass
class PasswordReset:
    """Single-use reset token; 256-bit hex, one hour lifetime by default."""

    email: str
    token: str
    expires_at: str
    id: int | None = None
    created_at: str | None = None


@dataclass(frozen=True)
class ModulePermission:
    """The four capability flags a role holds on one module."""

    create: bool = False
    read: bool = False
    update: bool = False
    delete: bool = False


@dataclass
class Role:
    """A named role with its complete per-module permission grid."""

    name: str
    id: int | None = None
    description: str = ""
    permissions: dict[str, ModulePermission] = field(default_factory=dict)
    created_at: str | None = None
    updated_at: str | None = None


@dataclass(frozen=True)
class SessionContext:
    """Identity of the caller as established by the edge guard.

    Built once per dashboard request from the guard's x-user-* headers and
    passed explicitly to whatever needs it, instead of being read from ambient
    client-side storage.
    """

    user_id: int
    email: str
    permissions: dict[str, ModulePermission] = field(default_factory=dict)
