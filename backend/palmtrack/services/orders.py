"""Order lifecycle: totals, payments, receipts and delivery tracking.

Money rules
    line_total    weight_kg × unit_price for PALM_FRUIT_BUNCHES,
                  quantity × unit_price for everything else
    subtotal      Σ line_total
    total_amount  max(0, subtotal − discount)
    amount_paid   Σ payments
    balance_due   total_amount − amount_paid

amount_paid and balance_due are recomputed from the payment rows inside
the same transaction as every payment write, so they never drift.

Delivery transitions
    PENDING              → PARTIALLY_DELIVERED | DELIVERED | CANCELLED
    PARTIALLY_DELIVERED  → DELIVERED | CANCELLED
    DELIVERED, CANCELLED → (terminal)

Re-posting the current non-terminal status is accepted and logged as a
progress event.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from palmtrack.middleware.exceptions import (
    BusinessLogicError,
    ConflictError,
    ResourceNotFoundError,
)
from palmtrack.models.customer import Customer
from palmtrack.models.order import DeliveryEvent, Order, OrderItem, Payment, Receipt
from palmtrack.models.user import User
from palmtrack.schemas.order import (
    DeliveryUpdate,
    OrderCreate,
    OrderItemIn,
    OrderUpdate,
    PaymentCreate,
)
from palmtrack.utils.activity import log_activity
from palmtrack.utils.numbering import generate_receipt_number

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
CENT = Decimal("0.01")

WEIGHT_PRICED_ITEMS = {"PALM_FRUIT_BUNCHES"}

TERMINAL_STATUSES = {"DELIVERED", "CANCELLED"}
ALLOWED_TRANSITIONS: dict[str, set[str]] = {
    "PENDING": {"PARTIALLY_DELIVERED", "DELIVERED", "CANCELLED"},
    "PARTIALLY_DELIVERED": {"DELIVERED", "CANCELLED"},
    "DELIVERED": set(),
    "CANCELLED": set(),
}


def money(value: Decimal) -> Decimal:
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


# ── Pure rules ───────────────────────────────────────────────

def line_total(
    item_type: str,
    quantity: Decimal | None,
    unit_price: Decimal,
    weight_kg: Decimal | None = None,
) -> Decimal:
    if item_type.upper() in WEIGHT_PRICED_ITEMS:
        return money((weight_kg or ZERO) * unit_price)
    return money((quantity or ZERO) * unit_price)


def order_totals(line_totals: list[Decimal], discount: Decimal) -> tuple[Decimal, Decimal]:
    """Return (subtotal, total_amount)."""
    subtotal = money(sum(line_totals, ZERO))
    return subtotal, max(ZERO, money(subtotal - (discount or ZERO)))


def check_transition(current: str, target: str) -> None:
    if target == current and current not in TERMINAL_STATUSES:
        return
    if target not in ALLOWED_TRANSITIONS.get(current, set()):
        raise BusinessLogicError(
            f"Cannot move order from {current} to {target}",
            error_code="INVALID_TRANSITION",
        )


# ── Loading ──────────────────────────────────────────────────

async def get_order(db: AsyncSession, order_id: str) -> Order:
    order = (
        await db.execute(select(Order).where(Order.id == order_id))
    ).scalar_one_or_none()
    if not order:
        raise ResourceNotFoundError("Order", order_id)
    return order


@dataclass
class OrderBundle:
    order: Order
    payments: list[Payment] = field(default_factory=list)
    receipts: list[Receipt] = field(default_factory=list)
    delivery_events: list[DeliveryEvent] = field(default_factory=list)


async def load_order_bundle(db: AsyncSession, order: Order) -> OrderBundle:
    """Order plus its payments, receipts and delivery events.

    Sequential awaits: one AsyncSession cannot run statements
    concurrently.
    """
    payments = (await db.execute(
        select(Payment)
        .where(Payment.order_id == order.id)
        .order_by(Payment.payment_date, Payment.created_at)
    )).scalars().all()
    receipts = (await db.execute(
        select(Receipt)
        .where(Receipt.order_id == order.id)
        .order_by(Receipt.issued_at.desc())
    )).scalars().all()
    events = (await db.execute(
        select(DeliveryEvent)
        .where(DeliveryEvent.order_id == order.id)
        .order_by(DeliveryEvent.created_at)
    )).scalars().all()
    return OrderBundle(
        order=order,
        payments=list(payments),
        receipts=list(receipts),
        delivery_events=list(events),
    )


# ── Orders ───────────────────────────────────────────────────

def _build_items(items: list[OrderItemIn]) -> list[OrderItem]:
    return [
        OrderItem(
            item_type=item.item_type,
            description=item.description,
            quantity=item.quantity,
            unit_price=item.unit_price,
            weight_kg=item.weight_kg,
            line_total=line_total(item.item_type, item.quantity, item.unit_price, item.weight_kg),
        )
        for item in items
    ]


def _apply_totals(order: Order) -> None:
    order.subtotal, order.total_amount = order_totals(
        [item.line_total for item in order.items], order.discount
    )
    order.balance_due = money(order.total_amount - (order.amount_paid or ZERO))


async def recompute_balance(db: AsyncSession, order: Order) -> None:
    """amount_paid ← Σ payments; balance_due ← total − amount_paid."""
    await db.flush()
    paid = (await db.execute(
        select(func.coalesce(func.sum(Payment.amount), 0)).where(Payment.order_id == order.id)
    )).scalar_one()
    order.amount_paid = money(Decimal(str(paid)))
    order.balance_due = money(order.total_amount - order.amount_paid)


async def create_order(db: AsyncSession, body: OrderCreate, user: User) -> Order:
    customer = (
        await db.execute(select(Customer).where(Customer.id == body.customer_id))
    ).scalar_one_or_none()
    if not customer:
        raise ResourceNotFoundError("Customer", body.customer_id)

    order = Order(
        customer_id=customer.id,
        order_category=body.order_category,
        order_date=body.order_date,
        notes=body.notes,
        discount=money(body.discount),
        amount_paid=ZERO,
        delivery_status="PENDING",
        created_by=user.id,
        items=_build_items(body.items),
    )
    _apply_totals(order)
    db.add(order)
    await db.flush()

    if body.amount_paid > 0:
        db.add(Payment(
            order_id=order.id,
            payment_date=body.order_date,
            amount=money(body.amount_paid),
            method=body.payment_method,
            created_by=user.id,
        ))
    await recompute_balance(db, order)
    await db.refresh(order, attribute_names=["customer"])

    await log_activity(
        db, user,
        action="created",
        entity_type="order",
        entity_id=order.id,
        summary=f"{order.order_category} order for {customer.full_name}: {order.total_amount}",
    )
    return order


async def update_order(db: AsyncSession, order: Order, body: OrderUpdate, user: User) -> Order:
    if order.delivery_status in TERMINAL_STATUSES and (
        body.items is not None or body.discount is not None
    ):
        raise BusinessLogicError(
            f"Cannot change items of a {order.delivery_status.lower()} order",
            error_code="ORDER_LOCKED",
        )

    if body.order_date is not None:
        order.order_date = body.order_date
    if body.notes is not None:
        order.notes = body.notes
    if body.discount is not None:
        order.discount = money(body.discount)
    if body.items is not None:
        order.items = _build_items(body.items)

    _apply_totals(order)
    await recompute_balance(db, order)
    await log_activity(
        db, user,
        action="updated",
        entity_type="order",
        entity_id=order.id,
        summary=f"Order updated; total {order.total_amount}, balance {order.balance_due}",
    )
    return order


async def delete_order(db: AsyncSession, order: Order, user: User) -> None:
    active = (await db.execute(
        select(func.count(Receipt.id)).where(
            Receipt.order_id == order.id, Receipt.voided_at.is_(None)
        )
    )).scalar_one()
    if active:
        raise ConflictError(
            "Void the order's receipt before deleting it", error_code="RECEIPT_EXISTS"
        )
    await log_activity(
        db, user,
        action="deleted",
        entity_type="order",
        entity_id=order.id,
        summary=f"Deleted {order.order_category} order of {order.order_date}",
    )
    await db.delete(order)
    await db.flush()


# ── Payments ─────────────────────────────────────────────────

async def add_payment(
    db: AsyncSession, order: Order, body: PaymentCreate, user: User
) -> Payment:
    if order.delivery_status == "CANCELLED":
        raise BusinessLogicError(
            "Cannot record a payment on a cancelled order", error_code="ORDER_CANCELLED"
        )
    payment = Payment(
        order_id=order.id,
        payment_date=body.payment_date,
        amount=money(body.amount),
        method=body.method,
        received_by=body.received_by,
        reference=body.reference,
        created_by=user.id,
    )
    db.add(payment)
    await recompute_balance(db, order)
    await log_activity(
        db, user,
        action="payment_added",
        entity_type="order",
        entity_id=order.id,
        summary=f"Payment of {payment.amount} ({payment.method}); balance {order.balance_due}",
    )
    return payment


async def delete_payment(
    db: AsyncSession, order: Order, payment_id: str, user: User
) -> None:
    payment = (await db.execute(
        select(Payment).where(Payment.id == payment_id, Payment.order_id == order.id)
    )).scalar_one_or_none()
    if not payment:
        raise ResourceNotFoundError("Payment", payment_id)

    await db.delete(payment)
    await recompute_balance(db, order)
    await log_activity(
        db, user,
        action="payment_deleted",
        entity_type="order",
        entity_id=order.id,
        summary=f"Removed payment of {payment.amount}; balance {order.balance_due}",
    )


# ── Delivery ─────────────────────────────────────────────────

async def update_delivery(
    db: AsyncSession, order: Order, body: DeliveryUpdate, user: User
) -> DeliveryEvent:
    """Move the delivery snapshot and append the matching event."""
    previous = order.delivery_status
    check_transition(previous, body.status)
    if body.status == "DELIVERED" and body.delivery_date is None:
        raise BusinessLogicError("delivery_date is required when status is DELIVERED")

    order.delivery_status = body.status
    if body.status == "DELIVERED":
        order.delivery_date = body.delivery_date
        order.delivered_by = body.delivered_by
    else:
        order.delivery_date = None
        order.delivered_by = None

    event = DeliveryEvent(
        order_id=order.id,
        status=body.status,
        event_date=body.delivery_date or date.today(),
        delivered_by=body.delivered_by,
        notes=body.notes,
        created_by=user.id,
    )
    db.add(event)
    await db.flush()
    await log_activity(
        db, user,
        action="status_changed",
        entity_type="order",
        entity_id=order.id,
        summary=f"Delivery {previous} → {body.status}",
        details={"from": previous, "to": body.status},
    )
    return event


# ── Receipts ─────────────────────────────────────────────────

async def issue_receipt(
    db: AsyncSession, order: Order, user: User, issued_at: datetime | None = None
) -> Receipt:
    """Issue the order's receipt; at most one active receipt per order."""
    active = (await db.execute(
        select(Receipt).where(Receipt.order_id == order.id, Receipt.voided_at.is_(None))
    )).scalar_one_or_none()
    if active:
        raise ConflictError(
            f"Order already has receipt {active.receipt_number}",
            error_code="RECEIPT_EXISTS",
        )

    issued_at = issued_at or datetime.utcnow()
    receipt = Receipt(
        order_id=order.id,
        receipt_number=await generate_receipt_number(db, issued_at.year),
        issued_at=issued_at,
        issued_by=user.id,
    )
    db.add(receipt)
    # A concurrent issuer with the same number fails here on the unique index
    await db.flush()

    await log_activity(
        db, user,
        action="receipt_issued",
        entity_type="receipt",
        entity_id=receipt.id,
        entity_code=receipt.receipt_number,
        summary=f"Issued {receipt.receipt_number} for order {order.id}",
    )
    logger.info("Receipt %s issued for order %s", receipt.receipt_number, order.id)
    return receipt


async def void_receipt(
    db: AsyncSession, order: Order, receipt_id: str, user: User, reason: str | None = None
) -> Receipt:
    receipt = (await db.execute(
        select(Receipt).where(Receipt.id == receipt_id, Receipt.order_id == order.id)
    )).scalar_one_or_none()
    if not receipt:
        raise ResourceNotFoundError("Receipt", receipt_id)
    if receipt.voided_at is not None:
        raise ConflictError(f"Receipt {receipt.receipt_number} is already void")

    receipt.voided_at = datetime.utcnow()
    receipt.void_reason = reason
    await db.flush()
    await log_activity(
        db, user,
        action="receipt_voided",
        entity_type="receipt",
        entity_id=receipt.id,
        entity_code=receipt.receipt_number,
        summary=f"Voided {receipt.receipt_number}" + (f": {reason}" if reason else ""),
    )
    return receipt
