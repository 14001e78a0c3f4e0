# provide dataclass models

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional


class DiscountType(str, Enum):
    PERCENT = "percent"
    FIXED = "fixed"


class OrderStatus(str, Enum):
    PLACED = "Bestellt"
    SHIPPED = "Versendet"
    DELIVERED = "Zugestellt"
    REFUNDED = "Erstattet"
    CANCELLED = "Storniert"

    @property
    def is_terminal(self) -> bool:
        return self in (OrderStatus.REFUNDED, OrderStatus.CANCELLED)


class PaymentStatus(str, Enum):
    PENDING = "Ausstehend"
    PAID = "Bezahlt"
    REFUNDED = "Erstattet"


class Rejection(str, Enum):
    """Why a mutation did not happen."""

    OUT_OF_STOCK = "out_of_stock"
    UNIQUE_ITEM = "unique_item"
    INVALID_QUANTITY = "invalid_quantity"
    NOT_IN_CART = "not_in_cart"
    NOT_FOUND = "not_found"
    EMPTY_CART = "empty_cart"
    INVALID_CUSTOMER = "invalid_customer"
    INVALID_COUPON = "invalid_coupon"
    INVALID_PRODUCT = "invalid_product"
    INVALID_REVIEW = "invalid_review"
    INVALID_TRACKING = "invalid_tracking"
    INVALID_STATUS = "invalid_status"
    EXHAUSTED = "exhausted"
    PERSISTENCE = "persistence"


class CouponRejection(str, Enum):
    EMPTY = "empty"
    NOT_FOUND = "not_found"
    INACTIVE = "inactive"
    EXPIRED = "expired"
    EXHAUSTED = "exhausted"
    BELOW_MINIMUM = "below_minimum"


@dataclass(frozen=True)
class Category:
    id: str
    name: str
    created_at: datetime


@dataclass(frozen=True)
class Product:
    id: str
    name: str
    price: float
    quantity: int  # live stock, already net of cart reservations
    is_unique: bool = False
    is_favorite: bool = False
    category_id: Optional[str] = None
    category_name: Optional[str] = None
    descr: str = ""
    created_at: Optional[datetime] = None

    @property
    def in_stock(self) -> bool:
        return self.quantity > 0


@dataclass(frozen=True)
class ProductImage:
    id: str
    product_id: str
    location: str
    sort_order: int


@dataclass(frozen=True)
class Review:
    id: str
    product_id: str
    rating: int
    body: str
    author_name: str
    created_at: datetime


@dataclass(frozen=True)
class CartLine:
    id: str
    cart_id: str
    product: Product
    quantity: int

    @property
    def line_total(self) -> float:
        return self.product.price * self.quantity


@dataclass(frozen=True)
class Coupon:
    id: str
    code: str
    discount_type: DiscountType
    discount_value: float
    minimum_order_amount: float = 0.0
    max_usage: int = 0  # 0 = unlimited
    usage_count: int = 0
    is_active: bool = True
    expiry_date: Optional[datetime] = None
    created_at: Optional[datetime] = None

    @property
    def is_exhausted(self) -> bool:
        return self.max_usage > 0 and self.usage_count >= self.max_usage


@dataclass(frozen=True)
class CustomerInfo:
    first_name: str
    last_name: str
    email: str
    street: str
    zip: str
    city: str
    phone: Optional[str] = None

    REQUIRED = ("first_name", "last_name", "email", "street", "zip", "city")

    def missing_fields(self) -> List[str]:
        return [f for f in self.REQUIRED if not (getattr(self, f) or "").strip()]


@dataclass(frozen=True)
class Order:
    id: str
    created_at: datetime
    total_amount: float
    status: OrderStatus
    payment_status: PaymentStatus
    customer: CustomerInfo
    coupon_code: Optional[str] = None
    discount_amount: float = 0.0
    carrier: Optional[str] = None
    tracking_number: Optional[str] = None

    @property
    def has_tracking(self) -> bool:
        return bool(self.tracking_number)


@dataclass(frozen=True)
class OrderLine:
    id: str
    order_id: str
    product_id: Optional[str]  # None once the product is deleted
    product_name: str
    price_at_purchase: float
    quantity: int

    @property
    def line_total(self) -> float:
        return self.price_at_purchase * self.quantity


@dataclass(frozen=True)
class Outcome:
    """Result of a mutation; business-rule failures are reported, not raised."""

    ok: bool
    rejection: Optional[Rejection] = None
    message: Optional[str] = None
    id: Optional[str] = None  # id of the entity a create produced

    def __bool__(self) -> bool:
        return self.ok


@dataclass(frozen=True)
class CouponCheck:
    is_valid: bool
    applied: Optional[Coupon] = None
    message: Optional[str] = None
    discount: float = 0.0
    rejection: Optional[CouponRejection] = None


@dataclass(frozen=True)
class PlacedOrder:
    ok: bool
    order: Optional[Order] = None
    lines: List[OrderLine] = field(default_factory=list)
    rejection: Optional[Rejection] = None
    message: Optional[str] = None


@dataclass(frozen=True)
class SalesSummary:
    order_count: int
    revenue: float
    units_sold: int
    discount_total: float
    open_orders: int
