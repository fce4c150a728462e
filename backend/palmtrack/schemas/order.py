"""Pydantic schemas for customers, orders, payments, receipts and deliveries."""

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, field_validator, model_validator

from palmtrack.schemas.common import require_not_blank, require_positive

ORDER_CATEGORIES = ("BLOCKS", "CEMENT", "PALM_FRUIT")
DELIVERY_STATUSES = ("PENDING", "PARTIALLY_DELIVERED", "DELIVERED", "CANCELLED")
PAYMENT_METHODS = ("CASH", "MOMO", "BANK", "CHEQUE")


def _non_negative(v: Decimal | None, label: str) -> Decimal | None:
    if v is not None and v < 0:
        raise ValueError(f"{label} cannot be negative")
    return v


# ── Customers ────────────────────────────────────────────────

class CustomerCreate(BaseModel):
    full_name: str
    phone: str | None = None
    delivery_address: str | None = None
    notes: str | None = None

    @field_validator("full_name")
    @classmethod
    def name_required(cls, v: str) -> str:
        return require_not_blank(v, "Full name")


class CustomerUpdate(BaseModel):
    full_name: str | None = None
    phone: str | None = None
    delivery_address: str | None = None
    notes: str | None = None

    @field_validator("full_name")
    @classmethod
    def name_required(cls, v: str | None) -> str | None:
        return require_not_blank(v, "Full name")


class CustomerOut(BaseModel):
    id: str
    full_name: str
    phone: str | None = None
    delivery_address: str | None = None
    notes: str | None = None
    created_at: datetime

    model_config = {"from_attributes": True}


# ── Order items ──────────────────────────────────────────────

class OrderItemIn(BaseModel):
    item_type: str
    description: str | None = None
    quantity: Decimal = Decimal("0")
    unit_price: Decimal
    weight_kg: Decimal | None = None

    @field_validator("item_type")
    @classmethod
    def type_required(cls, v: str) -> str:
        return require_not_blank(v, "Item type").upper()

    @field_validator("quantity")
    @classmethod
    def quantity_non_negative(cls, v: Decimal) -> Decimal:
        return _non_negative(v, "Quantity")

    @field_validator("unit_price")
    @classmethod
    def price_non_negative(cls, v: Decimal) -> Decimal:
        return _non_negative(v, "Unit price")

    @field_validator("weight_kg")
    @classmethod
    def weight_non_negative(cls, v: Decimal | None) -> Decimal | None:
        return _non_negative(v, "Weight")


class OrderItemOut(BaseModel):
    id: str
    item_type: str
    description: str | None = None
    quantity: Decimal
    unit_price: Decimal
    weight_kg: Decimal | None = None
    line_total: Decimal

    model_config = {"from_attributes": True}


# ── Orders ───────────────────────────────────────────────────

class OrderCreate(BaseModel):
    customer_id: str
    order_category: str
    order_date: date
    items: list[OrderItemIn]
    discount: Decimal = Decimal("0")
    amount_paid: Decimal = Decimal("0")
    payment_method: str = "CASH"
    notes: str | None = None

    @field_validator("order_category")
    @classmethod
    def valid_category(cls, v: str) -> str:
        v = v.upper()
        if v not in ORDER_CATEGORIES:
            raise ValueError(f"order_category must be one of {', '.join(ORDER_CATEGORIES)}")
        return v

    @field_validator("items")
    @classmethod
    def at_least_one(cls, v: list[OrderItemIn]) -> list[OrderItemIn]:
        if not v:
            raise ValueError("At least one item is required")
        return v

    @field_validator("discount")
    @classmethod
    def discount_non_negative(cls, v: Decimal) -> Decimal:
        return _non_negative(v, "Discount")

    @field_validator("amount_paid")
    @classmethod
    def paid_non_negative(cls, v: Decimal) -> Decimal:
        return _non_negative(v, "Amount paid")

    @field_validator("payment_method")
    @classmethod
    def valid_method(cls, v: str) -> str:
        v = v.upper()
        if v not in PAYMENT_METHODS:
            raise ValueError(f"payment_method must be one of {', '.join(PAYMENT_METHODS)}")
        return v


class OrderUpdate(BaseModel):
    order_date: date | None = None
    notes: str | None = None
    discount: Decimal | None = None
    items: list[OrderItemIn] | None = None

    @field_validator("discount")
    @classmethod
    def discount_non_negative(cls, v: Decimal | None) -> Decimal | None:
        return _non_negative(v, "Discount")

    @field_validator("items")
    @classmethod
    def at_least_one(cls, v: list[OrderItemIn] | None) -> list[OrderItemIn] | None:
        if v is not None and not v:
            raise ValueError("At least one item is required")
        return v


class OrderOut(BaseModel):
    id: str
    customer_id: str
    customer_name: str | None = None
    order_category: str
    order_date: date
    notes: str | None = None
    subtotal: Decimal
    discount: Decimal
    total_amount: Decimal
    amount_paid: Decimal
    balance_due: Decimal
    delivery_status: str
    delivery_date: date | None = None
    delivered_by: str | None = None
    created_at: datetime

    model_config = {"from_attributes": True}


# ── Payments ─────────────────────────────────────────────────

class PaymentCreate(BaseModel):
    payment_date: date
    amount: Decimal
    method: str = "CASH"
    received_by: str | None = None
    reference: str | None = None

    @field_validator("amount")
    @classmethod
    def amount_positive(cls, v: Decimal) -> Decimal:
        return require_positive(v, "Amount")

    @field_validator("method")
    @classmethod
    def valid_method(cls, v: str) -> str:
        v = v.upper()
        if v not in PAYMENT_METHODS:
            raise ValueError(f"method must be one of {', '.join(PAYMENT_METHODS)}")
        return v


class PaymentOut(BaseModel):
    id: str
    order_id: str
    payment_date: date
    amount: Decimal
    method: str
    received_by: str | None = None
    reference: str | None = None
    created_at: datetime

    model_config = {"from_attributes": True}


# ── Receipts ─────────────────────────────────────────────────

class ReceiptOut(BaseModel):
    id: str
    order_id: str
    receipt_number: str
    issued_at: datetime
    voided_at: datetime | None = None
    void_reason: str | None = None
    is_active: bool

    model_config = {"from_attributes": True}


class ReceiptVoid(BaseModel):
    reason: str | None = None


# ── Delivery ─────────────────────────────────────────────────

class DeliveryUpdate(BaseModel):
    status: str
    delivery_date: date | None = None
    delivered_by: str | None = None
    notes: str | None = None

    @field_validator("status")
    @classmethod
    def valid_status(cls, v: str) -> str:
        v = v.upper()
        if v not in DELIVERY_STATUSES:
            raise ValueError(f"status must be one of {', '.join(DELIVERY_STATUSES)}")
        return v

    @model_validator(mode="after")
    def delivered_needs_date(self):
        if self.status == "DELIVERED" and self.delivery_date is None:
            raise ValueError("delivery_date is required when status is DELIVERED")
        return self


class DeliveryEventOut(BaseModel):
    id: str
    status: str
    event_date: date
    delivered_by: str | None = None
    notes: str | None = None
    created_at: datetime

    model_config = {"from_attributes": True}


class OrderDetail(OrderOut):
    items: list[OrderItemOut] = []
    payments: list[PaymentOut] = []
    receipts: list[ReceiptOut] = []
    delivery_events: list[DeliveryEventOut] = []
