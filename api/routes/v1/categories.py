"""
api/routes/v1/categories.py -- Product category CRUD.

Routes:
  GET    /categories
  POST   /categories
  GET    /categories/{id}
  PUT    /categories/{id}
  DELETE /categories/{id}

Gated on the "categories" module. Name and code are each unique; a clash
on either is a 409.
"""

from fastapi import APIRouter, Depends, Request

from api.models import CategoryResponse, CategoryWrite, MessageResponse
from auth.dependencies import require_permission
from core.errors import NotFoundError
from inventory.store import InventoryStore

router = APIRouter()


@router.get(
    "/categories",
    response_model=list[CategoryResponse],
    dependencies=[Depends(require_permission("categories", "read"))],
)
def list_categories(request: Request) -> list[CategoryResponse]:
    store: InventoryStore = request.app.state.inventory
    return [CategoryResponse.from_category(c) for c in store.list_categories()]


@router.post(
    "/categories",
    response_model=CategoryResponse,
    status_code=201,
    dependencies=[Depends(require_permission("categories", "create"))],
)
def create_category(request: Request, body: CategoryWrite) -> CategoryResponse:
    store: InventoryStore = request.app.state.inventory
    category_id = store.create_category(body.to_domain())
    return CategoryResponse.from_category(store.get_category(category_id))


@router.get(
    "/categories/{category_id}",
    response_model=CategoryResponse,
    dependencies=[Depends(require_permission("categories", "read"))],
)
def get_category(request: Request, category_id: int) -> CategoryResponse:
    store: InventoryStore = request.app.state.inventory
    category = store.get_category(category_id)
    if category is None:
        raise NotFoundError("Category not found")
    return CategoryResponse.from_category(category)


@router.put(
    "/categories/{category_id}",
    response_model=CategoryResponse,
    dependencies=[Depends(require_permission("categories", "update"))],
)
def update_category(request: Request, category_id: int, body: CategoryWrite) -> CategoryResponse:
    store: InventoryStore = request.app.state.inventory
    store.update_category(category_id, body.to_domain())
    return CategoryResponse.from_category(store.get_category(category_id))


@router.delete(
    "/categories/{category_id}",
    response_model=MessageResponse,
    dependencies=[Depends(require_permission("categories", "delete"))],
)
def delete_category(request: Request, category_id: int) -> MessageResponse:
    store: InventoryStore = request.app.state.inventory
    if not store.delete_category(category_id):
        raise NotFoundError("Category not found")
    return MessageResponse(message="Category deleted successfully")
