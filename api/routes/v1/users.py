"""
api/routes/v1/users.py -- User administration.

Routes:
  GET    /users        -- all users with role names, newest first
  POST   /users        -- create a user with a role
  PUT    /users/{id}   -- update profile and role
  DELETE /users/{id}   -- delete a user and their session records

Gated on the "users" module. Email shape and password length use the same
rules as self-registration (auth/service.py); uniqueness and role existence
are checked by the store inside the write transaction.
"""

from fastapi import APIRouter, Depends, Request

from api.models import MessageResponse, UserCreate, UserCreatedResponse, UserResponse, UserUpdate
from auth.dependencies import require_permission
from auth.models import Identity, User
from auth.service import validate_email, validate_password
from auth.store import AuthStore
from auth.tokens import hash_password
from core.errors import NotFoundError, ValidationError

router = APIRouter()

_BAD_EMAIL = "Please enter a valid email address"


@router.get("/users", response_model=list[UserResponse], dependencies=[Depends(require_permission("users", "read"))])
def list_users(request: Request) -> list[UserResponse]:
    store: AuthStore = request.app.state.auth_store
    return [UserResponse.from_user(u) for u in store.list_users()]


@router.post(
    "/users",
    response_model=UserCreatedResponse,
    status_code=201,
    dependencies=[Depends(require_permission("users", "create"))],
)
def create_user(request: Request, body: UserCreate) -> UserCreatedResponse:
    store: AuthStore = request.app.state.auth_store
    validate_email(body.email, _BAD_EMAIL)
    validate_password(body.password)
    user = User(
        email=body.email,
        first_name=body.first_name,
        last_name=body.last_name,
        address=body.address,
        password_hash=hash_password(body.password),
        role_id=body.role_id,
    )
    user_id = store.create_user_with_role(user)
    return UserCreatedResponse(user_id=user_id)


@router.put("/users/{user_id}", response_model=MessageResponse)
def update_user(
    request: Request,
    user_id: int,
    body: UserUpdate,
    _identity: Identity = Depends(require_permission("users", "update")),
) -> MessageResponse:
    store: AuthStore = request.app.state.auth_store
    validate_email(body.email, _BAD_EMAIL)
    store.update_profile(
        user_id,
        email=body.email,
        first_name=body.first_name,
        last_name=body.last_name,
        address=body.address,
        role_id=body.role_id,
    )
    return MessageResponse(message="User updated successfully")


@router.delete("/users/{user_id}", response_model=MessageResponse)
def delete_user(
    request: Request,
    user_id: int,
    identity: Identity = Depends(require_permission("users", "delete")),
) -> MessageResponse:
    """Delete a user. Administrators cannot delete their own account."""
    if identity.user_id == user_id:
        raise ValidationError("You cannot delete your own account.", code="self_deletion")
    store: AuthStore = request.app.state.auth_store
    if not store.delete_user(user_id):
        raise NotFoundError("User not found")
    return MessageResponse(message="User deleted successfully")
