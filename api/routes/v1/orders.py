"""
api/routes/v1/orders.py -- Purchase order CRUD.

Routes:
  GET    /orders          -- newest order_date first
  POST   /orders
  GET    /orders/{id}
  PUT    /orders/{id}
  DELETE /orders/{id}

Gated on the "orders" module. Creating an order as fulfilled, or moving one
to fulfilled, adds its items to the stock record for its SKU in the same
transaction; the caller does not also need "stocks" permissions. Fulfilled
orders are final and further updates get a 400.
"""

import logging

from fastapi import APIRouter, Depends, Request

from api.models import MessageResponse, OrderResponse, OrderWrite
from auth.dependencies import require_permission
from core.errors import NotFoundError
from inventory.store import InventoryStore

logger = logging.getLogger("stockify.api")

router = APIRouter()


@router.get(
    "/orders",
    response_model=list[OrderResponse],
    dependencies=[Depends(require_permission("orders", "read"))],
)
def list_orders(request: Request) -> list[OrderResponse]:
    store: InventoryStore = request.app.state.inventory
    return [OrderResponse.from_order(o) for o in store.list_orders()]


@router.post(
    "/orders",
    response_model=OrderResponse,
    status_code=201,
    dependencies=[Depends(require_permission("orders", "create"))],
)
def create_order(request: Request, body: OrderWrite) -> OrderResponse:
    store: InventoryStore = request.app.state.inventory
    order_id = store.create_order(body.to_domain())
    logger.info("Order %d created with status %s", order_id, body.status.value)
    return OrderResponse.from_order(store.get_order(order_id))


@router.get(
    "/orders/{order_id}",
    response_model=OrderResponse,
    dependencies=[Depends(require_permission("orders", "read"))],
)
def get_order(request: Request, order_id: int) -> OrderResponse:
    store: InventoryStore = request.app.state.inventory
    order = store.get_order(order_id)
    if order is None:
        raise NotFoundError("Order not found")
    return OrderResponse.from_order(order)


@router.put(
    "/orders/{order_id}",
    response_model=OrderResponse,
    dependencies=[Depends(require_permission("orders", "update"))],
)
def update_order(request: Request, order_id: int, body: OrderWrite) -> OrderResponse:
    store: InventoryStore = request.app.state.inventory
    store.update_order(order_id, body.to_domain())
    return OrderResponse.from_order(store.get_order(order_id))


@router.delete(
    "/orders/{order_id}",
    response_model=MessageResponse,
    dependencies=[Depends(require_permission("orders", "delete"))],
)
def delete_order(request: Request, order_id: int) -> MessageResponse:
    store: InventoryStore = request.app.state.inventory
    if not store.delete_order(order_id):
        raise NotFoundError("Order not found")
    return MessageResponse(message="Order deleted successfully")
