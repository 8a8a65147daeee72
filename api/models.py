"""
API request and response models for Stockify REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py and
inventory/models.py, which own the internal domain representation. Route
handlers map between the two.

Auth request bodies declare every field Optional: presence, email shape and
password length are checked by auth/service.py so the caller gets the same
400 messages whichever client sent the request. CRUD bodies use Field
constraints and fail with the 422 validation envelope.
"""

from datetime import date
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from auth.models import Role, User
from auth.permissions import grid_to_dict
from inventory.models import Category, PurchaseOrder, StockItem, Supplier

CATEGORY_CODE_PATTERN = r"^[A-Z0-9]+$"


# ---------------------------------------------------------------------------
# Envelopes
# ---------------------------------------------------------------------------


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None
    details: Optional[dict] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Auth -- requests
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    email: Optional[str] = Field(default=None, max_length=255)
    password: Optional[str] = Field(default=None, max_length=255)
    first_name: Optional[str] = Field(default=None, max_length=100)
    last_name: Optional[str] = Field(default=None, max_length=100)


class LoginRequest(BaseModel):
    email: Optional[str] = Field(default=None, max_length=255)
    password: Optional[str] = Field(default=None, max_length=255)


class ForgotPasswordRequest(BaseModel):
    email: Optional[str] = Field(default=None, max_length=255)


class ResetPasswordRequest(BaseModel):
    token: Optional[str] = Field(default=None, max_length=128)
    new_password: Optional[str] = Field(default=None, max_length=255)


# ---------------------------------------------------------------------------
# Auth -- responses
# ---------------------------------------------------------------------------


class RegisterResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str
    user_id: int


class UserSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    email: str
    first_name: str
    last_name: str


class LoginResponse(BaseModel):
    """Token is returned in the body; clients send it back as Authorization: Bearer."""

    model_config = ConfigDict(frozen=True)

    message: str = "Login successful"
    token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserSummary


class ProfileResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    email: str
    first_name: str
    last_name: str
    is_verified: bool
    role_id: Optional[int]
    role_name: Optional[str]
    created_at: str

    @classmethod
    def from_user(cls, user: User) -> "ProfileResponse":
        return cls(
            id=user.id,
            email=user.email,
            first_name=user.first_name,
            last_name=user.last_name,
            is_verified=user.is_verified,
            role_id=user.role_id,
            role_name=user.role_name,
            created_at=user.created_at or "",
        )


# ---------------------------------------------------------------------------
# Roles and permissions
# ---------------------------------------------------------------------------


class PermissionFlags(BaseModel):
    model_config = ConfigDict(extra="forbid")

    create: bool = False
    read: bool = False
    update: bool = False
    delete: bool = False


class RoleWrite(BaseModel):
    """Request body for POST /roles and PUT /roles/{id}.

    Modules missing from permissions are stored as all-false; the role's grid
    is always replaced in full.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=1, max_length=100)
    permissions: dict[str, PermissionFlags]


class RoleResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    description: str
    permissions: dict[str, PermissionFlags]
    created_at: str
    updated_at: str

    @classmethod
    def from_role(cls, role: Role) -> "RoleResponse":
        return cls(
            id=role.id,
            name=role.name,
            description=role.description,
            permissions={m: PermissionFlags(**flags) for m, flags in grid_to_dict(role.permissions).items()},
            created_at=role.created_at or "",
            updated_at=role.updated_at or "",
        )


class RoleCreatedResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str = "Role created successfully"
    role_id: int


# ---------------------------------------------------------------------------
# User administration
# ---------------------------------------------------------------------------


class UserCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    email: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1, max_length=255)
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    address: str = Field(default="", max_length=500)
    role_id: int


class UserUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    email: str = Field(min_length=1, max_length=255)
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    address: str = Field(default="", max_length=500)
    role_id: int


class UserResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    email: str
    first_name: str
    last_name: str
    address: str
    role_id: Optional[int]
    role: str
    status: str
    created_at: str
    updated_at: str

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(
            id=user.id,
            email=user.email,
            first_name=user.first_name,
            last_name=user.last_name,
            address=user.address,
            role_id=user.role_id,
            role=(user.role_name or "user").lower(),
            status="active" if user.is_verified else "inactive",
            created_at=user.created_at or "",
            updated_at=user.updated_at or "",
        )


class UserCreatedResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str = "User created successfully"
    user_id: int


# ---------------------------------------------------------------------------
# Inventory -- categories and suppliers
# ---------------------------------------------------------------------------


class StatusEnum(str, Enum):
    active = "active"
    inactive = "inactive"


class CategoryWrite(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=1, max_length=100)
    code: str = Field(min_length=1, max_length=20, pattern=CATEGORY_CODE_PATTERN)
    status: StatusEnum = StatusEnum.active

    @field_validator("code", mode="before")
    @classmethod
    def upper_code(cls, value):
        return value.strip().upper() if isinstance(value, str) else value

    def to_domain(self) -> Category:
        return Category(name=self.name, code=self.code, status=self.status.value)


class CategoryResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    code: str
    status: str
    created_at: str
    updated_at: str

    @classmethod
    def from_category(cls, category: Category) -> "CategoryResponse":
        return cls(
            id=category.id,
            name=category.name,
            code=category.code,
            status=category.status,
            created_at=category.created_at,
            updated_at=category.updated_at,
        )


class LocationModel(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    street: str = Field(min_length=1, max_length=255)
    city: str = Field(min_length=1, max_length=100)
    state: str = Field(min_length=1, max_length=100)
    zip: str = Field(min_length=1, max_length=20)
    country: str = Field(min_length=1, max_length=100)


class SupplierWrite(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=1, max_length=255)
    email: str = Field(min_length=3, max_length=255)
    phone: str = Field(min_length=1, max_length=50)
    company_location: LocationModel
    gstin: Optional[str] = Field(default=None, max_length=20)
    category: str = Field(default="Other", max_length=100)
    website: Optional[str] = Field(default=None, max_length=255)
    status: StatusEnum = StatusEnum.active


class SupplierResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    email: str
    phone: str
    company_location: LocationModel
    gstin: Optional[str]
    category: str
    website: Optional[str]
    status: str
    created_at: str
    updated_at: str

    @classmethod
    def from_supplier(cls, supplier: Supplier) -> "SupplierResponse":
        loc = supplier.location
        return cls(
            id=supplier.id,
            name=supplier.name,
            email=supplier.email,
            phone=supplier.phone,
            company_location=LocationModel(
                street=loc.street, city=loc.city, state=loc.state, zip=loc.zip, country=loc.country
            ),
            gstin=supplier.gstin,
            category=supplier.category,
            website=supplier.website,
            status=supplier.status,
            created_at=supplier.created_at,
            updated_at=supplier.updated_at,
        )


# ---------------------------------------------------------------------------
# Inventory -- stock and purchase orders
# ---------------------------------------------------------------------------


class StockWrite(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    sku: str = Field(min_length=1, max_length=64)
    product_name: str = Field(min_length=1, max_length=255)
    category: str = Field(min_length=1, max_length=100)
    quantity_available: int = Field(ge=0)
    minimum_stock_level: int = Field(ge=0)
    maximum_stock_level: int = Field(ge=0)
    unit_cost: float = Field(ge=0)
    supplier: str = Field(min_length=1, max_length=255)
    status: StatusEnum = StatusEnum.active

    @model_validator(mode="after")
    def check_levels(self) -> "StockWrite":
        if self.minimum_stock_level > self.maximum_stock_level:
            raise ValueError("minimum_stock_level cannot exceed maximum_stock_level")
        return self

    def to_domain(self) -> StockItem:
        return StockItem(
            sku=self.sku,
            product_name=self.product_name,
            category=self.category,
            quantity_available=self.quantity_available,
            minimum_stock_level=self.minimum_stock_level,
            maximum_stock_level=self.maximum_stock_level,
            unit_cost=self.unit_cost,
            supplier=self.supplier,
            status=self.status.value,
        )


class StockResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    sku: str
    product_name: str
    category: str
    quantity_available: int
    minimum_stock_level: int
    maximum_stock_level: int
    unit_cost: float
    supplier: str
    status: str
    created_at: str
    updated_at: str

    @classmethod
    def from_stock(cls, item: StockItem) -> "StockResponse":
        return cls(
            id=item.id,
            sku=item.sku,
            product_name=item.product_name,
            category=item.category,
            quantity_available=item.quantity_available,
            minimum_stock_level=item.minimum_stock_level,
            maximum_stock_level=item.maximum_stock_level,
            unit_cost=item.unit_cost,
            supplier=item.supplier,
            status=item.status,
            created_at=item.created_at,
            updated_at=item.updated_at,
        )


class OrderStatusEnum(str, Enum):
    new = "new"
    pending = "pending"
    fulfilled = "fulfilled"
    cancelled = "cancelled"


class OrderWrite(BaseModel):
    """Request body for POST /orders and PUT /orders/{id}.

    order_date defaults to today on create and is kept on update when omitted.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=1, max_length=255)
    sku: str = Field(min_length=1, max_length=64)
    supplier: str = Field(min_length=1, max_length=255)
    category: str = Field(min_length=1, max_length=100)
    number_of_items: int = Field(ge=1)
    expected_delivery_date: date
    total_amount: float = Field(ge=0)
    order_date: Optional[date] = None
    status: OrderStatusEnum = OrderStatusEnum.new

    def to_domain(self) -> PurchaseOrder:
        return PurchaseOrder(
            name=self.name,
            sku=self.sku,
            supplier=self.supplier,
            category=self.category,
            number_of_items=self.number_of_items,
            expected_delivery_date=self.expected_delivery_date.isoformat(),
            total_amount=self.total_amount,
            order_date=self.order_date.isoformat() if self.order_date else "",
            status=self.status.value,
        )


class OrderResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    order_date: str
    name: str
    sku: str
    supplier: str
    category: str
    number_of_items: int
    status: str
    expected_delivery_date: str
    total_amount: float
    created_at: str
    updated_at: str

    @classmethod
    def from_order(cls, order: PurchaseOrder) -> "OrderResponse":
        return cls(
            id=order.id,
            order_date=order.order_date,
            name=order.name,
            sku=order.sku,
            supplier=order.supplier,
            category=order.category,
            number_of_items=order.number_of_items,
            status=order.status,
            expected_delivery_date=order.expected_delivery_date,
            total_amount=order.total_amount,
            created_at=order.created_at,
            updated_at=order.updated_at,
        )
