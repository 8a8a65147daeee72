"""
core/errors.py -- Domain exception hierarchy for Stockify.

Services and stores raise these; api/main.py owns the single exception handler
that turns them into the {"error": {...}} envelope. Nothing below imports from
FastAPI, so auth/ and inventory/ can raise them without touching the HTTP layer.

status_code is carried on the class so the handler does not need a mapping
table. code is the machine-readable error key; message is safe to show to the
caller; details holds structured extras (e.g. user_count for RoleInUseError).

Layer rule: core/ is the kernel. No imports from api/, web/, auth/, inventory/.
"""

from typing import Any, Optional


class StockifyError(Exception):
    """Base class for every error a request handler may translate to a response."""

    status_code: int = 500
    default_code: str = "internal_error"

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.details = details or {}


class ValidationError(StockifyError):
    """Missing or malformed input."""

    status_code = 400
    default_code = "validation_error"


class AuthenticationError(StockifyError):
    """Missing, malformed, tampered or expired credentials."""

    status_code = 401
    default_code = "unauthorized"


class PermissionDeniedError(StockifyError):
    """The caller's role does not grant the requested capability."""

    status_code = 403
    default_code = "forbidden"

    def __init__(self, module: str, action: str) -> None:
        super().__init__(
            f"You do not have {action} permission on {module}.",
            details={"module": module, "action": action},
        )


class NotFoundError(StockifyError):
    status_code = 404
    default_code = "not_found"


class ConflictError(StockifyError):
    """A uniqueness rule (email, role name, category code, ...) would be broken."""

    status_code = 409
    default_code = "conflict"


class RoleInUseError(StockifyError):
    """Raised when deleting a role that users still reference."""

    status_code = 400
    default_code = "role_in_use"

    def __init__(self, user_count: int) -> None:
        super().__init__(
            f"Cannot delete role. {user_count} user(s) are assigned to this role. Please reassign users first.",
            details={"user_count": user_count},
        )
        self.user_count = user_count


class RowDecodeError(StockifyError):
    """A database row did not have the shape its mapper expects."""

    default_code = "row_decode_error"
