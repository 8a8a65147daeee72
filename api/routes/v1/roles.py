"""
api/routes/v1/roles.py -- Role and permission-matrix administration.

Routes:
  GET    /roles          -- every role with its full permission grid
  POST   /roles          -- create a role; writes one permission row per module
  GET    /roles/{id}     -- one role
  PUT    /roles/{id}     -- rename and replace the whole grid atomically
  DELETE /roles/{id}     -- refused while users hold the role (reports the count)

Roles are part of user administration, so every route is gated on the
"users" module of the caller's own role.
"""

from fastapi import APIRouter, Depends, Request

from api.models import MessageResponse, RoleCreatedResponse, RoleResponse, RoleWrite
from auth.dependencies import require_permission
from auth.permissions import normalize_permissions
from auth.store import AuthStore
from core.errors import NotFoundError

router = APIRouter()


@router.get("/roles", response_model=list[RoleResponse], dependencies=[Depends(require_permission("users", "read"))])
def list_roles(request: Request) -> list[RoleResponse]:
    store: AuthStore = request.app.state.auth_store
    return [RoleResponse.from_role(r) for r in store.list_roles()]


@router.post(
    "/roles",
    response_model=RoleCreatedResponse,
    status_code=201,
    dependencies=[Depends(require_permission("users", "create"))],
)
def create_role(request: Request, body: RoleWrite) -> RoleCreatedResponse:
    """Create a role. Modules left out of the payload are stored as all-false."""
    store: AuthStore = request.app.state.auth_store
    role_id = store.create_role(body.name, normalize_permissions(body.permissions))
    return RoleCreatedResponse(role_id=role_id)


@router.get(
    "/roles/{role_id}",
    response_model=RoleResponse,
    dependencies=[Depends(require_permission("users", "read"))],
)
def get_role(request: Request, role_id: int) -> RoleResponse:
    store: AuthStore = request.app.state.auth_store
    role = store.get_role(role_id)
    if role is None:
        raise NotFoundError("Role not found")
    return RoleResponse.from_role(role)


@router.put(
    "/roles/{role_id}",
    response_model=MessageResponse,
    dependencies=[Depends(require_permission("users", "update"))],
)
def update_role(request: Request, role_id: int, body: RoleWrite) -> MessageResponse:
    """Rename a role and replace its grid. Either everything changes or nothing does."""
    store: AuthStore = request.app.state.auth_store
    store.update_role(role_id, body.name, normalize_permissions(body.permissions))
    return MessageResponse(message="Role updated successfully")


@router.delete(
    "/roles/{role_id}",
    response_model=MessageResponse,
    dependencies=[Depends(require_permission("users", "delete"))],
)
def delete_role(request: Request, role_id: int) -> MessageResponse:
    """Delete a role and its permission rows. 400 with user_count while users hold it."""
    store: AuthStore = request.app.state.auth_store
    store.delete_role(role_id)
    return MessageResponse(message="Role deleted successfully")
