"""
auth/permissions.py -- The role-permission matrix.

A role owns one ModulePermission per module in MODULES. The grid is always
complete: normalize_permissions() fills every module the caller did not send
with all-false flags, so "absent" never means "unchanged".

Pure functions only. Persistence lives in auth/store.py; enforcement lives in
auth/dependencies.py (require_permission).

Layer rule: no imports from api/, web/, or inventory/.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from auth.models import ModulePermission
from core.errors import ValidationError

MODULES: tuple[str, ...] = (
    "dashboard",
    "products",
    "users",
    "orders",
    "stocks",
    "sales",
    "reports",
    "suppliers",
    "categories",
)

ACTIONS: tuple[str, ...] = ("create", "read", "update", "delete")

_NO_ACCESS = ModulePermission()
_FULL_ACCESS = ModulePermission(create=True, read=True, update=True, delete=True)


def empty_grid() -> dict[str, ModulePermission]:
    """Return a grid with every module set to all-false."""
    return {module: _NO_ACCESS for module in MODULES}


def full_grid() -> dict[str, ModulePermission]:
    """Return a grid with every capability granted. Used to seed the admin role."""
    return {module: _FULL_ACCESS for module in MODULES}


def _coerce_flags(module: str, value: Any) -> ModulePermission:
    if isinstance(value, ModulePermission):
        return value
    if hasattr(value, "model_dump"):
        value = value.model_dump()
    if not isinstance(value, Mapping):
        raise ValidationError(f"Permissions for module '{module}' must be an object.")
    unknown = set(value) - set(ACTIONS)
    if unknown:
        raise ValidationError(f"Unknown permission flag(s) for '{module}': {', '.join(sorted(unknown))}")
    return ModulePermission(**{action: bool(value.get(action, False)) for action in ACTIONS})


def normalize_permissions(payload: Mapping[str, Any] | None) -> dict[str, ModulePermission]:
    """Expand a partial {module: {create, read, update, delete}} payload into a full grid.

    Modules missing from the payload get all-false flags. Unknown module names
    raise ValidationError rather than being silently dropped.
    """
    payload = payload or {}
    unknown = set(payload) - set(MODULES)
    if unknown:
        raise ValidationError(f"Unknown module(s): {', '.join(sorted(unknown))}")
    grid = empty_grid()
    for module in MODULES:
        if module in payload and payload[module] is not None:
            grid[module] = _coerce_flags(module, payload[module])
    return grid


def has_permission(grid: Mapping[str, ModulePermission], module: str, action: str) -> bool:
    """Return True if the grid grants action on module. Missing rows read as all-false."""
    if module not in MODULES or action not in ACTIONS:
        raise ValueError(f"Unknown capability {module}:{action}")
    return bool(getattr(grid.get(module, _NO_ACCESS), action))


def grid_to_dict(grid: Mapping[str, ModulePermission]) -> dict[str, dict[str, bool]]:
    """Serialize a grid in MODULES order for JSON responses."""
    result: dict[str, dict[str, bool]] = {}
    for module in MODULES:
        flags = grid.get(module, _NO_ACCESS)
        result[module] = {action: getattr(flags, action) for action in ACTIONS}
    return result
