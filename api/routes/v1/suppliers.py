"""
api/routes/v1/suppliers.py -- Supplier CRUD.

Gated on the "suppliers" module. Supplier email is unique; a clash is a 409.
"""

from fastapi import APIRouter, Depends, Request

from api.models import MessageResponse, SupplierResponse, SupplierWrite
from auth.dependencies import require_permission
from auth.service import validate_email
from core.errors import NotFoundError
from inventory.models import Location, Supplier
from inventory.store import InventoryStore

router = APIRouter()


def _to_domain(body: SupplierWrite) -> Supplier:
    validate_email(body.email, "Please enter a valid email address")
    loc = body.company_location
    return Supplier(
        name=body.name,
        email=body.email.lower(),
        phone=body.phone,
        location=Location(street=loc.street, city=loc.city, state=loc.state, zip=loc.zip, country=loc.country),
        gstin=body.gstin or None,
        category=body.category or "Other",
        website=body.website or None,
        status=body.status.value,
    )


@router.get(
    "/suppliers",
    response_model=list[SupplierResponse],
    dependencies=[Depends(require_permission("suppliers", "read"))],
)
def list_suppliers(request: Request) -> list[SupplierResponse]:
    store: InventoryStore = request.app.state.inventory
    return [SupplierResponse.from_supplier(s) for s in store.list_suppliers()]


@router.post(
    "/suppliers",
    response_model=SupplierResponse,
    status_code=201,
    dependencies=[Depends(require_permission("suppliers", "create"))],
)
def create_supplier(request: Request, body: SupplierWrite) -> SupplierResponse:
    store: InventoryStore = request.app.state.inventory
    supplier_id = store.create_supplier(_to_domain(body))
    return SupplierResponse.from_supplier(store.get_supplier(supplier_id))


@router.get(
    "/suppliers/{supplier_id}",
    response_model=SupplierResponse,
    dependencies=[Depends(require_permission("suppliers", "read"))],
)
def get_supplier(request: Request, supplier_id: int) -> SupplierResponse:
    store: InventoryStore = request.app.state.inventory
    supplier = store.get_supplier(supplier_id)
    if supplier is None:
        raise NotFoundError("Supplier not found")
    return SupplierResponse.from_supplier(supplier)


@router.put(
    "/suppliers/{supplier_id}",
    response_model=SupplierResponse,
    dependencies=[Depends(require_permission("suppliers", "update"))],
)
def update_supplier(request: Request, supplier_id: int, body: SupplierWrite) -> SupplierResponse:
    store: InventoryStore = request.app.state.inventory
    store.update_supplier(supplier_id, _to_domain(body))
    return SupplierResponse.from_supplier(store.get_supplier(supplier_id))


@router.delete(
    "/suppliers/{supplier_id}",
    response_model=MessageResponse,
    dependencies=[Depends(require_permission("suppliers", "delete"))],
)
def delete_supplier(request: Request, supplier_id: int) -> MessageResponse:
    store: InventoryStore = request.app.state.inventory
    if not store.delete_supplier(supplier_id):
        raise NotFoundError("Supplier not found")
    return MessageResponse(message="Supplier deleted successfully")
