"""
inventory/store.py -- SQLAlchemy-backed persistence for categories, suppliers, stock and orders.

Pattern: Repository + Data Mapper, like auth/store.py. InventoryStore is the
repository; _row_to_* are the mappers.

Every create and update runs its uniqueness pre-checks and the write in one
`engine.begin()` block: the check results cannot be acted on by a partial
write, a failed check rolls back, and the connection goes back to the pool on
every path. UNIQUE constraints back the checks for concurrent writers.

Receiving a fulfilled order into stock happens in the same transaction as the
order write, so an order is never marked fulfilled without its stock.

Usage:
    store = InventoryStore()
    category_id = store.create_category(Category(name="Beverages", code="BEV"))
    store.list_categories()
    store.close()
"""

import logging
from pathlib import Path
from typing import Optional

from sqlalchemy import Column, Float, Integer, MetaData, String, Table, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from core.database import create_db_engine, now_iso
from core.errors import ConflictError, NotFoundError, RowDecodeError, ValidationError
from inventory.models import Category, Location, PurchaseOrder, StockItem, Supplier

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).parent / 'stockify_inventory.db'}"

logger = logging.getLogger("stockify.inventory")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

_categories = Table(
    "categories",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(100), nullable=False, unique=True),
    Column("code", String(20), nullable=False, unique=True),
    Column("status", String(20), nullable=False, server_default="active"),
    Column("created_at", String(40), nullable=False),
    Column("updated_at", String(40), nullable=False),
)

_suppliers = Table(
    "suppliers",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(255), nullable=False),
    Column("email", String(255), nullable=False, unique=True),
    Column("phone", String(50), nullable=False),
    Column("street", String(255), nullable=False),
    Column("city", String(100), nullable=False),
    Column("state", String(100), nullable=False),
    Column("zip", String(20), nullable=False),
    Column("country", String(100), nullable=False),
    Column("gstin", String(20)),
    Column("category", String(100), nullable=False, server_default="Other"),
    Column("website", String(255)),
    Column("status", String(20), nullable=False, server_default="active"),
    Column("created_at", String(40), nullable=False),
    Column("updated_at", String(40), nullable=False),
)

_stocks = Table(
    "stocks",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("sku", String(64), nullable=False, unique=True),
    Column("product_name", String(255), nullable=False),
    Column("category", String(100), nullable=False),
    Column("quantity_available", Integer, nullable=False, server_default="0"),
    Column("minimum_stock_level", Integer, nullable=False, server_default="0"),
    Column("maximum_stock_level", Integer, nullable=False),
    Column("unit_cost", Float, nullable=False, server_default="0"),
    Column("supplier", String(255), nullable=False),
    Column("status", String(20), nullable=False, server_default="active"),
    Column("created_at", String(40), nullable=False),
    Column("updated_at", String(40), nullable=False),
)

_orders = Table(
    "orders",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("order_date", String(10), nullable=False),
    Column("name", String(255), nullable=False),
    Column("sku", String(64), nullable=False, index=True),
    Column("supplier", String(255), nullable=False),
    Column("category", String(100), nullable=False),
    Column("number_of_items", Integer, nullable=False),
    Column("status", String(20), nullable=False, server_default="new"),
    Column("expected_delivery_date", String(10), nullable=False),
    Column("total_amount", Float, nullable=False),
    Column("created_at", String(40), nullable=False),
    Column("updated_at", String(40), nullable=False),
)

_CATEGORY_NAME_TAKEN = "Category with this name already exists"
_CATEGORY_CODE_TAKEN = "Category with this code already exists"
_SUPPLIER_EMAIL_TAKEN = "Supplier with this email already exists"
_SKU_TAKEN = "Stock record already exists for this SKU"
_ORDER_FULFILLED = "Fulfilled orders cannot be modified"

# Defaults for a stock record created by receiving an order for an unknown SKU.
_RECEIVED_MAXIMUM_LEVEL = 1000


class InventoryStore:
    def __init__(self, db_url: str = _DEFAULT_DB_URL) -> None:
        self.engine: Engine = create_db_engine(db_url)
        metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Categories
    # ------------------------------------------------------------------

    def create_category(self, category: Category) -> int:
        """Insert a category after checking name and code are free.

        Raises ConflictError naming the clashing field.
        """
        now = now_iso()
        try:
            with self.engine.begin() as conn:
                self._check_category_unique(conn, category)
                result = conn.execute(
                    _categories.insert().values(
                        name=category.name,
                        code=category.code,
                        status=category.status,
                        created_at=now,
                        updated_at=now,
                    )
                )
                return result.inserted_primary_key[0]
        except IntegrityError as exc:
            raise ConflictError(_CATEGORY_NAME_TAKEN) from exc

    def update_category(self, category_id: int, category: Category) -> None:
        try:
            with self.engine.begin() as conn:
                if not conn.execute(select(_categories.c.id).where(_categories.c.id == category_id)).first():
                    raise NotFoundError("Category not found")
                self._check_category_unique(conn, category, exclude_id=category_id)
                conn.execute(
                    _categories.update()
                    .where(_categories.c.id == category_id)
                    .values(name=category.name, code=category.code, status=category.status, updated_at=now_iso())
                )
        except IntegrityError as exc:
            raise ConflictError(_CATEGORY_NAME_TAKEN) from exc

    @staticmethod
    def _check_category_unique(conn, category: Category, exclude_id: Optional[int] = None) -> None:
        others = [_categories.c.id != exclude_id] if exclude_id is not None else []
        if conn.execute(select(_categories.c.id).where(_categories.c.name == category.name, *others)).first():
            raise ConflictError(_CATEGORY_NAME_TAKEN)
        if conn.execute(select(_categories.c.id).where(_categories.c.code == category.code, *others)).first():
            raise ConflictError(_CATEGORY_CODE_TAKEN)

    def get_category(self, category_id: int) -> Optional[Category]:
        with self.engine.connect() as conn:
            row = conn.execute(_categories.select().where(_categories.c.id == category_id)).fetchone()
        return _row_to_category(row) if row is not None else None

    def list_categories(self) -> list[Category]:
        with self.engine.connect() as conn:
            rows = conn.execute(
                _categories.select().order_by(_categories.c.created_at.desc(), _categories.c.id.desc())
            ).fetchall()
        return [_row_to_category(r) for r in rows]

    def delete_category(self, category_id: int) -> bool:
        with self.engine.begin() as conn:
            result = conn.execute(_categories.delete().where(_categories.c.id == category_id))
        if result.rowcount:
            logger.info("Deleted category id=%d", category_id)
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Suppliers
    # ------------------------------------------------------------------

    def create_supplier(self, supplier: Supplier) -> int:
        now = now_iso()
        try:
            with self.engine.begin() as conn:
                if conn.execute(select(_suppliers.c.id).where(_suppliers.c.email == supplier.email)).first():
                    raise ConflictError(_SUPPLIER_EMAIL_TAKEN)
                result = conn.execute(
                    _suppliers.insert().values(created_at=now, updated_at=now, **_supplier_values(supplier))
                )
                return result.inserted_primary_key[0]
        except IntegrityError as exc:
            raise ConflictError(_SUPPLIER_EMAIL_TAKEN) from exc

    def update_supplier(self, supplier_id: int, supplier: Supplier) -> None:
        try:
            with self.engine.begin() as conn:
                if not conn.execute(select(_suppliers.c.id).where(_suppliers.c.id == supplier_id)).first():
                    raise NotFoundError("Supplier not found")
                taken = conn.execute(
                    select(_suppliers.c.id).where(
                        (_suppliers.c.email == supplier.email) & (_suppliers.c.id != supplier_id)
                    )
                ).first()
                if taken:
                    raise ConflictError(_SUPPLIER_EMAIL_TAKEN)
                conn.execute(
                    _suppliers.update()
                    .where(_suppliers.c.id == supplier_id)
                    .values(updated_at=now_iso(), **_supplier_values(supplier))
                )
        except IntegrityError as exc:
            raise ConflictError(_SUPPLIER_EMAIL_TAKEN) from exc

    def get_supplier(self, supplier_id: int) -> Optional[Supplier]:
        with self.engine.connect() as conn:
            row = conn.execute(_suppliers.select().where(_suppliers.c.id == supplier_id)).fetchone()
        return _row_to_supplier(row) if row is not None else None

    def list_suppliers(self) -> list[Supplier]:
        with self.engine.connect() as conn:
            rows = conn.execute(
                _suppliers.select().order_by(_suppliers.c.created_at.desc(), _suppliers.c.id.desc())
            ).fetchall()
        return [_row_to_supplier(r) for r in rows]

    def delete_supplier(self, supplier_id: int) -> bool:
        with self.engine.begin() as conn:
            result = conn.execute(_suppliers.delete().where(_suppliers.c.id == supplier_id))
        if result.rowcount:
            logger.info("Deleted supplier id=%d", supplier_id)
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Stock
    # ------------------------------------------------------------------

    def create_stock(self, item: StockItem) -> int:
        now = now_iso()
        try:
            with self.engine.begin() as conn:
                if conn.execute(select(_stocks.c.id).where(_stocks.c.sku == item.sku)).first():
                    raise ConflictError(_SKU_TAKEN)
                result = conn.execute(_stocks.insert().values(created_at=now, updated_at=now, **_stock_values(item)))
                return result.inserted_primary_key[0]
        except IntegrityError as exc:
            raise ConflictError(_SKU_TAKEN) from exc

    def update_stock(self, stock_id: int, item: StockItem) -> None:
        try:
            with self.engine.begin() as conn:
                if not conn.execute(select(_stocks.c.id).where(_stocks.c.id == stock_id)).first():
                    raise NotFoundError("Stock record not found")
                taken = conn.execute(
                    select(_stocks.c.id).where((_stocks.c.sku == item.sku) & (_stocks.c.id != stock_id))
                ).first()
                if taken:
                    raise ConflictError(_SKU_TAKEN)
                conn.execute(
                    _stocks.update().where(_stocks.c.id == stock_id).values(updated_at=now_iso(), **_stock_values(item))
                )
        except IntegrityError as exc:
            raise ConflictError(_SKU_TAKEN) from exc

    def get_stock(self, stock_id: int) -> Optional[StockItem]:
        with self.engine.connect() as conn:
            row = conn.execute(_stocks.select().where(_stocks.c.id == stock_id)).fetchone()
        return _row_to_stock(row) if row is not None else None

    def get_stock_by_sku(self, sku: str) -> Optional[StockItem]:
        with self.engine.connect() as conn:
            row = conn.execute(_stocks.select().where(_stocks.c.sku == sku)).fetchone()
        return _row_to_stock(row) if row is not None else None

    def list_stock(self) -> list[StockItem]:
        with self.engine.connect() as conn:
            rows = conn.execute(_stocks.select().order_by(_stocks.c.category.asc(), _stocks.c.sku.asc())).fetchall()
        return [_row_to_stock(r) for r in rows]

    def delete_stock(self, stock_id: int) -> bool:
        with self.engine.begin() as conn:
            result = conn.execute(_stocks.delete().where(_stocks.c.id == stock_id))
        if result.rowcount:
            logger.info("Deleted stock record id=%d", stock_id)
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Purchase orders
    # ------------------------------------------------------------------

    def create_order(self, order: PurchaseOrder) -> int:
        """Insert an order dated today unless order_date is given.

        An order created as fulfilled is received into stock in the same
        transaction as the insert.
        """
        now = now_iso()
        try:
            with self.engine.begin() as conn:
                result = conn.execute(
                    _orders.insert().values(
                        order_date=order.order_date or now[:10],
                        created_at=now,
                        updated_at=now,
                        **_order_values(order),
                    )
                )
                if order.status == "fulfilled":
                    self._receive_into_stock(conn, order, now)
                return result.inserted_primary_key[0]
        except IntegrityError as exc:
            raise ConflictError(_SKU_TAKEN) from exc

    def update_order(self, order_id: int, order: PurchaseOrder) -> None:
        """Replace an order's fields, keeping its order_date unless a new one is given.

        Moving an order to fulfilled receives the updated order into stock in
        the same transaction. A fulfilled order is final: any further update
        raises ValidationError and nothing is written.
        """
        now = now_iso()
        try:
            with self.engine.begin() as conn:
                current = conn.execute(
                    select(_orders.c.status, _orders.c.order_date).where(_orders.c.id == order_id)
                ).first()
                if current is None:
                    raise NotFoundError("Order not found")
                if current.status == "fulfilled":
                    raise ValidationError(_ORDER_FULFILLED, code="order_fulfilled")
                conn.execute(
                    _orders.update()
                    .where(_orders.c.id == order_id)
                    .values(order_date=order.order_date or current.order_date, updated_at=now, **_order_values(order))
                )
                if order.status == "fulfilled":
                    self._receive_into_stock(conn, order, now)
        except IntegrityError as exc:
            raise ConflictError(_SKU_TAKEN) from exc

    @staticmethod
    def _receive_into_stock(conn, order: PurchaseOrder, now: str) -> None:
        """Add the order's items to the stock record for its SKU, creating one if none exists."""
        result = conn.execute(
            _stocks.update()
            .where(_stocks.c.sku == order.sku)
            .values(quantity_available=_stocks.c.quantity_available + order.number_of_items, updated_at=now)
        )
        if result.rowcount == 0:
            conn.execute(
                _stocks.insert().values(
                    sku=order.sku,
                    product_name=order.name,
                    category=order.category,
                    quantity_available=order.number_of_items,
                    minimum_stock_level=0,
                    maximum_stock_level=_RECEIVED_MAXIMUM_LEVEL,
                    unit_cost=0.0,
                    supplier=order.supplier,
                    status="active",
                    created_at=now,
                    updated_at=now,
                )
            )
        logger.info("Received %d item(s) into stock for SKU %s", order.number_of_items, order.sku)

    def get_order(self, order_id: int) -> Optional[PurchaseOrder]:
        with self.engine.connect() as conn:
            row = conn.execute(_orders.select().where(_orders.c.id == order_id)).fetchone()
        return _row_to_order(row) if row is not None else None

    def list_orders(self) -> list[PurchaseOrder]:
        with self.engine.connect() as conn:
            rows = conn.execute(_orders.select().order_by(_orders.c.order_date.desc(), _orders.c.id.desc())).fetchall()
        return [_row_to_order(r) for r in rows]

    def delete_order(self, order_id: int) -> bool:
        """Delete an order. Stock already received from it stays on hand."""
        with self.engine.begin() as conn:
            result = conn.execute(_orders.delete().where(_orders.c.id == order_id))
        if result.rowcount:
            logger.info("Deleted order id=%d", order_id)
        return result.rowcount > 0

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers
# ---------------------------------------------------------------------------


def _supplier_values(supplier: Supplier) -> dict:
    loc = supplier.location
    return {
        "name": supplier.name,
        "email": supplier.email,
        "phone": supplier.phone,
        "street": loc.street,
        "city": loc.city,
        "state": loc.state,
        "zip": loc.zip,
        "country": loc.country,
        "gstin": supplier.gstin,
        "category": supplier.category,
        "website": supplier.website,
        "status": supplier.status,
    }


def _stock_values(item: StockItem) -> dict:
    return {
        "sku": item.sku,
        "product_name": item.product_name,
        "category": item.category,
        "quantity_available": item.quantity_available,
        "minimum_stock_level": item.minimum_stock_level,
        "maximum_stock_level": item.maximum_stock_level,
        "unit_cost": item.unit_cost,
        "supplier": item.supplier,
        "status": item.status,
    }


def _order_values(order: PurchaseOrder) -> dict:
    """Writable order columns except order_date, which create and update default differently."""
    return {
        "name": order.name,
        "sku": order.sku,
        "supplier": order.supplier,
        "category": order.category,
        "number_of_items": order.number_of_items,
        "status": order.status,
        "expected_delivery_date": order.expected_delivery_date,
        "total_amount": order.total_amount,
    }


def _columns(row, entity: str, table: Table) -> dict:
    mapping = row._mapping
    missing = [c.name for c in table.columns if c.name not in mapping]
    if missing:
        raise RowDecodeError(f"{entity} row is missing column(s): {', '.join(missing)}")
    return {c.name: mapping[c.name] for c in table.columns}


def _row_to_category(row) -> Category:
    data = _columns(row, "category", _categories)
    return Category(**data)


def _row_to_supplier(row) -> Supplier:
    data = _columns(row, "supplier", _suppliers)
    location = Location(
        street=data.pop("street"),
        city=data.pop("city"),
        state=data.pop("state"),
        zip=data.pop("zip"),
        country=data.pop("country"),
    )
    return Supplier(location=location, **data)


def _row_to_stock(row) -> StockItem:
    return StockItem(**_columns(row, "stock", _stocks))


def _row_to_order(row) -> PurchaseOrder:
    return PurchaseOrder(**_columns(row, "order", _orders))
