"""
api/routes/v1/stock.py -- Stock record CRUD, one record per SKU.

Routes:
  GET    /stock
  POST   /stock
  GET    /stock/{id}
  PUT    /stock/{id}
  DELETE /stock/{id}

Gated on the "stocks" module. SKU is unique; a clash is a 409. Quantities
also grow when a purchase order is fulfilled (see api/routes/v1/orders.py).
"""

from fastapi import APIRouter, Depends, Request

from api.models import MessageResponse, StockResponse, StockWrite
from auth.dependencies import require_permission
from core.errors import NotFoundError
from inventory.store import InventoryStore

router = APIRouter()


@router.get(
    "/stock",
    response_model=list[StockResponse],
    dependencies=[Depends(require_permission("stocks", "read"))],
)
def list_stock(request: Request) -> list[StockResponse]:
    store: InventoryStore = request.app.state.inventory
    return [StockResponse.from_stock(s) for s in store.list_stock()]


@router.post(
    "/stock",
    response_model=StockResponse,
    status_code=201,
    dependencies=[Depends(require_permission("stocks", "create"))],
)
def create_stock(request: Request, body: StockWrite) -> StockResponse:
    store: InventoryStore = request.app.state.inventory
    stock_id = store.create_stock(body.to_domain())
    return StockResponse.from_stock(store.get_stock(stock_id))


@router.get(
    "/stock/{stock_id}",
    response_model=StockResponse,
    dependencies=[Depends(require_permission("stocks", "read"))],
)
def get_stock(request: Request, stock_id: int) -> StockResponse:
    store: InventoryStore = request.app.state.inventory
    item = store.get_stock(stock_id)
    if item is None:
        raise NotFoundError("Stock record not found")
    return StockResponse.from_stock(item)


@router.put(
    "/stock/{stock_id}",
    response_model=StockResponse,
    dependencies=[Depends(require_permission("stocks", "update"))],
)
def update_stock(request: Request, stock_id: int, body: StockWrite) -> StockResponse:
    store: InventoryStore = request.app.state.inventory
    store.update_stock(stock_id, body.to_domain())
    return StockResponse.from_stock(store.get_stock(stock_id))


@router.delete(
    "/stock/{stock_id}",
    response_model=MessageResponse,
    dependencies=[Depends(require_permission("stocks", "delete"))],
)
def delete_stock(request: Request, stock_id: int) -> MessageResponse:
    store: InventoryStore = request.app.state.inventory
    if not store.delete_stock(stock_id):
        raise NotFoundError("Stock record not found")
    return MessageResponse(message="Stock record deleted successfully")
