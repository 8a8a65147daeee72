"""
inventory/models.py -- Domain dataclasses for categories, suppliers, stock and purchase orders.

Pure data containers. Uniqueness rules, stock receipt and persistence live in
inventory/store.py.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass
class Category:
    """A product category. code is upper-case alphanumeric and unique, as is name."""

    name: str
    code: str
    status: str = "active"  # "active" | "inactive"
    id: Optional[int] = None
    created_at: str = ""
    updated_at: str = ""


@dataclass
class Location:
    street: str
    city: str
    state: str
    zip: str
    country: str


@dataclass
class Supplier:
    """A supplier of stock. email is unique across suppliers."""

    name: str
    email: str
    phone: str
    location: Location
    gstin: Optional[str] = None
    category: str = "Other"
    website: Optional[str] = None
    status: str = "active"
    id: Optional[int] = None
    created_at: str = ""
    updated_at: str = ""


@dataclass
class StockItem:
    """On-hand stock for one SKU. sku is unique across stock records."""

    sku: str
    product_name: str
    category: str
    quantity_available: int
    minimum_stock_level: int
    maximum_stock_level: int
    unit_cost: float
    supplier: str
    status: str = "active"
    id: Optional[int] = None
    created_at: str = ""
    updated_at: str = ""


# An order moves new -> pending -> fulfilled, or to cancelled. Fulfilling an
# order receives its items into stock, so a fulfilled order is final.
ORDER_STATUSES = ("new", "pending", "fulfilled", "cancelled")


@dataclass
class PurchaseOrder:
    """A purchase order for number_of_items units of one SKU from a supplier."""

    name: str
    sku: str
    supplier: str
    category: str
    number_of_items: int
    expected_delivery_date: str
    total_amount: float
    order_date: str = ""
    status: str = "new"
    id: Optional[int] = None
    created_at: str = ""
    updated_at: str = ""
