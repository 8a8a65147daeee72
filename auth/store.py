"""
auth/store.py -- SQLAlchemy Core persistence layer for auth entities.

Pattern: Repository + Data Mapper. AuthStore is the repository for users,
session records, password-reset tokens, roles and role permissions; the
_row_to_* functions are the mappers. Route and service code never touches SQL
directly.

Transactions:
  Every multi-statement operation runs inside `with self.engine.begin() as conn`.
  One pooled connection is checked out, the block commits only if it exits
  cleanly, any exception (including the domain errors raised for failed
  checks) rolls the whole unit back, and the connection is returned to the
  pool on every exit path.

Uniqueness:
  users.email and roles.name carry UNIQUE constraints. Pre-checks inside the
  transaction give a precise error message; the constraint arbitrates races
  and surfaces as IntegrityError, which is translated to ConflictError.

Security:
  All queries use bound parameters. No f-strings in SQL.

Layer rule: no imports from api/, web/, or inventory/.
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

from sqlalchemy import (
    Boolean,
    Column,
    ForeignKey,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    UniqueConstraint,
    func,
    select,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from auth.models import ModulePermission, PasswordReset, Role, SessionRecord, User
from auth.permissions import MODULES, empty_grid
from core.database import create_db_engine, now_iso, to_iso
from core.errors import ConflictError, NotFoundError, RoleInUseError, RowDecodeError, ValidationError

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).parent / 'stockify_auth.db'}"

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

_roles = Table(
    "roles",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(100), nullable=False, unique=True),
    Column("description", Text, nullable=False, server_default=""),
    Column("created_at", String(40), nullable=False),
    Column("updated_at", String(40), nullable=False),
)

_role_permissions = Table(
    "role_permissions",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("role_id", Integer, ForeignKey("roles.id"), nullable=False),
    Column("module_name", String(30), nullable=False),
    Column("can_create", Boolean, nullable=False, server_default="0"),
    Column("can_read", Boolean, nullable=False, server_default="0"),
    Column("can_update", Boolean, nullable=False, server_default="0"),
    Column("can_delete", Boolean, nullable=False, server_default="0"),
    Column("updated_at", String(40), nullable=False),
    UniqueConstraint("role_id", "module_name", name="uq_role_module"),
)

_users = Table(
    "users",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("password_hash", Text, nullable=False),
    Column("first_name", String(100), nullable=False),
    Column("last_name", String(100), nullable=False),
    Column("address", Text, nullable=False, server_default=""),
    Column("is_verified", Boolean, nullable=False, server_default="1"),
    Column("role_id", Integer, ForeignKey("roles.id")),
    Column("created_at", String(40), nullable=False),
    Column("updated_at", String(40), nullable=False),
)

_sessions = Table(
    "sessions",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", Integer, ForeignKey("users.id"), nullable=False),
    Column("token", Text, nullable=False),
    Column("expires_at", String(40), nullable=False),
    Column("created_at", String(40), nullable=False),
)

_password_resets = Table(
    "password_resets",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("email", String(255), nullable=False),
    Column("token", String(64), nullable=False, unique=True),
    Column("expires_at", String(40), nullable=False),
    Column("created_at", String(40), nullable=False),
)


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class AuthStore:
    """Repository for the credential store, session registry and permission matrix.

    Usage:
        store = AuthStore()
        role_id = store.create_role("Admin", full_grid())
        user_id = store.create_user(User(email="a@b.io", first_name="A", last_name="B",
                                         password_hash=hash_password("secret"), role_id=role_id))
        store.close()
    """

    def __init__(self, db_url: str = _DEFAULT_DB_URL) -> None:
        self.engine: Engine = create_db_engine(db_url)
        metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def create_user(self, user: User) -> int:
        """Insert a new user and return its assigned database ID.

        Raises sqlalchemy.exc.IntegrityError if the email already exists. The
        registration service catches it and reports "already registered", so
        concurrent sign-ups with the same email are settled by the constraint.
        """
        now = now_iso()
        with self.engine.begin() as conn:
            result = conn.execute(
                _users.insert().values(
                    email=user.email,
                    password_hash=user.password_hash,
                    first_name=user.first_name,
                    last_name=user.last_name,
                    address=user.address or "",
                    is_verified=user.is_verified,
                    role_id=user.role_id,
                    created_at=now,
                    updated_at=now,
                )
            )
            return result.inserted_primary_key[0]

    def create_user_with_role(self, user: User) -> int:
        """Insert a user after checking email uniqueness and role existence in one transaction."""
        now = now_iso()
        try:
            with self.engine.begin() as conn:
                if conn.execute(select(_users.c.id).where(_users.c.email == user.email)).first():
                    raise ConflictError("Email already exists")
                if user.role_id is not None and not _role_exists(conn, user.role_id):
                    raise ValidationError("Invalid role selected")
                result = conn.execute(
                    _users.insert().values(
                        email=user.email,
                        password_hash=user.password_hash,
                        first_name=user.first_name,
                        last_name=user.last_name,
                        address=user.address or "",
                        is_verified=user.is_verified,
                        role_id=user.role_id,
                        created_at=now,
                        updated_at=now,
                    )
                )
                return result.inserted_primary_key[0]
        except IntegrityError as exc:
            raise ConflictError("Email already exists") from exc

    def get_by_email(self, email: str) -> User | None:
        """Look up a user by exact email. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_user_query().where(_users.c.email == email)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_id(self, user_id: int) -> User | None:
        with self.engine.connect() as conn:
            row = conn.execute(_user_query().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def list_users(self) -> list[User]:
        """Return all users with their role names, newest first."""
        with self.engine.connect() as conn:
            rows = conn.execute(_user_query().order_by(_users.c.created_at.desc(), _users.c.id.desc())).fetchall()
        return [_row_to_user(r) for r in rows]

    def update_profile(
        self,
        user_id: int,
        *,
        email: str,
        first_name: str,
        last_name: str,
        address: str,
        role_id: int | None,
    ) -> None:
        """Update a user's profile and role after uniqueness and role checks.

        Raises NotFoundError, ConflictError (email taken by another user) or
        ValidationError (unknown role). Nothing is written unless all pass.
        """
        try:
            with self.engine.begin() as conn:
                if not conn.execute(select(_users.c.id).where(_users.c.id == user_id)).first():
                    raise NotFoundError("User not found")
                taken = conn.execute(
                    select(_users.c.id).where((_users.c.email == email) & (_users.c.id != user_id))
                ).first()
                if taken:
                    raise ConflictError("Email already exists")
                if role_id is not None and not _role_exists(conn, role_id):
                    raise ValidationError("Invalid role selected")
                conn.execute(
                    _users.update()
                    .where(_users.c.id == user_id)
                    .values(
                        email=email,
                        first_name=first_name,
                        last_name=last_name,
                        address=address,
                        role_id=role_id,
                        updated_at=now_iso(),
                    )
                )
        except IntegrityError as exc:
            raise ConflictError("Email already exists") from exc

    def delete_user(self, user_id: int) -> bool:
        """Delete a user and their session records. Returns False if the user did not exist."""
        with self.engine.begin() as conn:
            conn.execute(_sessions.delete().where(_sessions.c.user_id == user_id))
            result = conn.execute(_users.delete().where(_users.c.id == user_id))
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Session registry
    # ------------------------------------------------------------------

    def record_session(self, record: SessionRecord) -> int:
        with self.engine.begin() as conn:
            result = conn.execute(
                _sessions.insert().values(
                    user_id=record.user_id,
                    token=record.token,
                    expires_at=record.expires_at,
                    created_at=now_iso(),
                )
            )
            return result.inserted_primary_key[0]

    def delete_session(self, user_id: int, token: str) -> bool:
        """Remove the record for one (user, token) pair. Returns True if a row was deleted."""
        with self.engine.begin() as conn:
            result = conn.execute(
                _sessions.delete().where((_sessions.c.user_id == user_id) & (_sessions.c.token == token))
            )
        return result.rowcount > 0

    def delete_sessions_for_user(self, user_id: int) -> int:
        with self.engine.begin() as conn:
            result = conn.execute(_sessions.delete().where(_sessions.c.user_id == user_id))
        return result.rowcount

    def has_session(self, user_id: int, token: str) -> bool:
        """Return True if an unexpired session record exists for (user, token)."""
        with self.engine.connect() as conn:
            row = conn.execute(
                select(_sessions.c.id).where(
                    (_sessions.c.user_id == user_id)
                    & (_sessions.c.token == token)
                    & (_sessions.c.expires_at > now_iso())
                )
            ).first()
        return row is not None

    def list_sessions(self, user_id: int) -> list[SessionRecord]:
        with self.engine.connect() as conn:
            rows = conn.execute(
                _sessions.select().where(_sessions.c.user_id == user_id).order_by(_sessions.c.id)
            ).fetchall()
        return [_row_to_session(r) for r in rows]

    # ------------------------------------------------------------------
    # Password resets
    # ------------------------------------------------------------------

    def create_password_reset(self, reset: PasswordReset) -> int:
        with self.engine.begin() as conn:
            result = conn.execute(
                _password_resets.insert().values(
                    email=reset.email,
                    token=reset.token,
                    expires_at=reset.expires_at,
                    created_at=now_iso(),
                )
            )
            return result.inserted_primary_key[0]

    def list_password_resets(self, email: str) -> list[PasswordReset]:
        with self.engine.connect() as conn:
            rows = conn.execute(
                _password_resets.select().where(_password_resets.c.email == email).order_by(_password_resets.c.id)
            ).fetchall()
        return [_row_to_reset(r) for r in rows]

    def consume_password_reset(self, token: str, password_hash: str) -> bool:
        """Spend a reset token: set the new hash and drop every session of its user.

        The token row is deleted first with an expiry condition. Exactly one
        deleted row means this call owns the token; zero means it was never
        issued, already spent, or expired, and the transaction is abandoned.
        Returns False in that case. All three writes commit together.
        """
        now = now_iso()
        with self.engine.begin() as conn:
            row = conn.execute(
                select(_password_resets.c.email).where(
                    (_password_resets.c.token == token) & (_password_resets.c.expires_at > now)
                )
            ).first()
            if row is None:
                return False
            deleted = conn.execute(
                _password_resets.delete().where(
                    (_password_resets.c.token == token) & (_password_resets.c.expires_at > now)
                )
            )
            if deleted.rowcount != 1:
                return False
            user_id = conn.execute(select(_users.c.id).where(_users.c.email == row.email)).scalar()
            if user_id is None:
                return False
            conn.execute(
                _users.update().where(_users.c.id == user_id).values(password_hash=password_hash, updated_at=now)
            )
            conn.execute(_sessions.delete().where(_sessions.c.user_id == user_id))
        return True

    def purge_expired(self, now: datetime | None = None) -> tuple[int, int]:
        """Delete expired session records and reset tokens. Returns (sessions, resets) removed."""
        cutoff = to_iso(now or datetime.now(timezone.utc))
        with self.engine.begin() as conn:
            sessions = conn.execute(_sessions.delete().where(_sessions.c.expires_at <= cutoff)).rowcount
            resets = conn.execute(_password_resets.delete().where(_password_resets.c.expires_at <= cutoff)).rowcount
        return sessions, resets

    # ------------------------------------------------------------------
    # Roles and the permission matrix
    # ------------------------------------------------------------------

    def create_role(self, name: str, grid: dict[str, ModulePermission], description: str | None = None) -> int:
        """Insert a role plus one permission row per module, atomically.

        grid should come from normalize_permissions(); any module it lacks is
        written as all-false so the role always owns a complete grid.
        """
        now = now_iso()
        try:
            with self.engine.begin() as conn:
                if conn.execute(select(_roles.c.id).where(_roles.c.name == name)).first():
                    raise ConflictError("A role with this name already exists")
                result = conn.execute(
                    _roles.insert().values(
                        name=name,
                        description=description if description is not None else f"Role: {name}",
                        created_at=now,
                        updated_at=now,
                    )
                )
                role_id = result.inserted_primary_key[0]
                _write_grid(conn, role_id, grid, now)
                return role_id
        except IntegrityError as exc:
            raise ConflictError("A role with this name already exists") from exc

    def update_role(self, role_id: int, name: str, grid: dict[str, ModulePermission]) -> None:
        """Rename a role and replace its whole permission grid in one transaction.

        Raises NotFoundError or ConflictError; on any failure neither the name
        nor a single permission row changes.
        """
        now = now_iso()
        try:
            with self.engine.begin() as conn:
                if not _role_exists(conn, role_id):
                    raise NotFoundError("Role not found")
                taken = conn.execute(
                    select(_roles.c.id).where((_roles.c.name == name) & (_roles.c.id != role_id))
                ).first()
                if taken:
                    raise ConflictError("A role with this name already exists")
                conn.execute(_roles.update().where(_roles.c.id == role_id).values(name=name, updated_at=now))
                conn.execute(_role_permissions.delete().where(_role_permissions.c.role_id == role_id))
                _write_grid(conn, role_id, grid, now)
        except IntegrityError as exc:
            raise ConflictError("A role with this name already exists") from exc

    def delete_role(self, role_id: int) -> None:
        """Delete a role and its permission rows.

        Raises NotFoundError if the role does not exist and RoleInUseError
        (carrying the count) if any user still references it.
        """
        with self.engine.begin() as conn:
            if not _role_exists(conn, role_id):
                raise NotFoundError("Role not found")
            user_count = _count_users_with_role(conn, role_id)
            if user_count > 0:
                raise RoleInUseError(user_count)
            conn.execute(_role_permissions.delete().where(_role_permissions.c.role_id == role_id))
            conn.execute(_roles.delete().where(_roles.c.id == role_id))

    def get_role(self, role_id: int) -> Role | None:
        with self.engine.connect() as conn:
            row = conn.execute(_roles.select().where(_roles.c.id == role_id)).fetchone()
            if row is None:
                return None
            perm_rows = conn.execute(
                _role_permissions.select().where(_role_permissions.c.role_id == role_id)
            ).fetchall()
        return _row_to_role(row, perm_rows)

    def get_role_by_name(self, name: str) -> Role | None:
        with self.engine.connect() as conn:
            role_id = conn.execute(select(_roles.c.id).where(_roles.c.name == name)).scalar()
        return self.get_role(role_id) if role_id is not None else None

    def list_roles(self) -> list[Role]:
        """Return every role with its permission grid, newest first. Two queries total."""
        with self.engine.connect() as conn:
            rows = conn.execute(_roles.select().order_by(_roles.c.created_at.desc(), _roles.c.id.desc())).fetchall()
            perm_rows = conn.execute(
                _role_permissions.select().order_by(_role_permissions.c.role_id, _role_permissions.c.module_name)
            ).fetchall()
        by_role: dict[int, list] = {}
        for perm in perm_rows:
            by_role.setdefault(perm.role_id, []).append(perm)
        return [_row_to_role(r, by_role.get(r.id, [])) for r in rows]

    def count_users_with_role(self, role_id: int) -> int:
        with self.engine.connect() as conn:
            return _count_users_with_role(conn, role_id)

    def count_permission_rows(self, role_id: int) -> int:
        with self.engine.connect() as conn:
            result = conn.execute(
                select(func.count()).select_from(_role_permissions).where(_role_permissions.c.role_id == role_id)
            ).scalar()
        return result or 0

    def get_permissions_for_user(self, user_id: int) -> dict[str, ModulePermission]:
        """Return the permission grid of the user's role; all-false if the user has no role."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                select(_role_permissions)
                .join(_users, _users.c.role_id == _role_permissions.c.role_id)
                .where(_users.c.id == user_id)
            ).fetchall()
        grid = empty_grid()
        for row in rows:
            module, flags = _row_to_permission(row)
            if module in grid:
                grid[module] = flags
        return grid

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Query helpers (connection-scoped so callers can reuse an open transaction)
# ---------------------------------------------------------------------------


def _user_query():
    return select(_users, _roles.c.name.label("role_name")).select_from(
        _users.outerjoin(_roles, _users.c.role_id == _roles.c.id)
    )


def _role_exists(conn, role_id: int) -> bool:
    return conn.execute(select(_roles.c.id).where(_roles.c.id == role_id)).first() is not None


def _count_users_with_role(conn, role_id: int) -> int:
    result = conn.execute(select(func.count()).select_from(_users).where(_users.c.role_id == role_id)).scalar()
    return result or 0


def _write_grid(conn, role_id: int, grid: dict[str, ModulePermission], now: str) -> None:
    blank = ModulePermission()
    conn.execute(
        _role_permissions.insert(),
        [
            {
                "role_id": role_id,
                "module_name": module,
                "can_create": grid.get(module, blank).create,
                "can_read": grid.get(module, blank).read,
                "can_update": grid.get(module, blank).update,
                "can_delete": grid.get(module, blank).delete,
                "updated_at": now,
            }
            for module in MODULES
        ],
    )


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
#
# Each mapper checks that the columns it reads are present and rejects the
# row with RowDecodeError otherwise, instead of trusting field presence.
# ---------------------------------------------------------------------------


def _require(row, entity: str, *columns: str) -> dict:
    mapping = row._mapping
    missing = [c for c in columns if c not in mapping]
    if missing:
        raise RowDecodeError(f"{entity} row is missing column(s): {', '.join(missing)}")
    return {c: mapping[c] for c in columns}


def _row_to_user(row) -> User:
    data = _require(
        row,
        "user",
        "id",
        "email",
        "password_hash",
        "first_name",
        "last_name",
        "address",
        "is_verified",
        "role_id",
        "created_at",
        "updated_at",
    )
    role_name = row._mapping.get("role_name")
    return User(
        id=data["id"],
        email=data["email"],
        password_hash=data["password_hash"],
        first_name=data["first_name"],
        last_name=data["last_name"],
        address=data["address"] or "",
        is_verified=bool(data["is_verified"]),
        role_id=data["role_id"],
        role_name=role_name,
        created_at=data["created_at"],
        updated_at=data["updated_at"],
    )


def _row_to_session(row) -> SessionRecord:
    data = _require(row, "session", "id", "user_id", "token", "expires_at", "created_at")
    return SessionRecord(**data)


def _row_to_reset(row) -> PasswordReset:
    data = _require(row, "password_reset", "id", "email", "token", "expires_at", "created_at")
    return PasswordReset(**data)


def _row_to_permission(row) -> tuple[str, ModulePermission]:
    data = _require(row, "role_permission", "module_name", "can_create", "can_read", "can_update", "can_delete")
    return data["module_name"], ModulePermission(
        create=bool(data["can_create"]),
        read=bool(data["can_read"]),
        update=bool(data["can_update"]),
        delete=bool(data["can_delete"]),
    )


def _row_to_role(row, perm_rows) -> Role:
    data = _require(row, "role", "id", "name", "description", "created_at", "updated_at")
    grid = empty_grid()
    for perm in perm_rows:
        module, flags = _row_to_permission(perm)
        if module in grid:
            grid[module] = flags
    return Role(permissions=grid, **data)
