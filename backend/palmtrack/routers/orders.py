"""Order routes: orders, payments, delivery tracking and receipts.

Route overview:
  GET    /                                  — list, filter by category / status / customer / dates
  POST   /                                  — create with items and an optional initial payment
  GET    /{id}                              — detail with payments, receipts, delivery events
  PATCH  /{id}                              — edit date, notes, discount, items
  DELETE /{id}                              — delete (no active receipt)
  POST   /{id}/payments                     — record a payment
  DELETE /{id}/payments/{payment_id}        — remove a payment
  POST   /{id}/delivery                     — move the delivery status
  POST   /{id}/receipts                     — issue the receipt
  POST   /{id}/receipts/{receipt_id}/void   — void a receipt
  GET    /{id}/receipts/{receipt_id}/pdf    — receipt PDF
  GET    /{id}/delivery-note.pdf            — delivery note PDF
"""

from datetime import date

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import Response
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from palmtrack.auth.deps import require_permission
from palmtrack.database import get_db
from palmtrack.exports.documents import delivery_note_document, receipt_document
from palmtrack.exports.pdf_render import render_pdf
from palmtrack.middleware.exceptions import ResourceNotFoundError
from palmtrack.models.order import Order
from palmtrack.models.user import User
from palmtrack.schemas.common import PaginatedResponse
from palmtrack.schemas.order import (
    DeliveryEventOut,
    DeliveryUpdate,
    OrderCreate,
    OrderDetail,
    OrderOut,
    OrderUpdate,
    PaymentCreate,
    PaymentOut,
    ReceiptOut,
    ReceiptVoid,
)
from palmtrack.services import orders as order_service

router = APIRouter()


async def _detail(db: AsyncSession, order: Order) -> OrderDetail:
    bundle = await order_service.load_order_bundle(db, order)
    out = OrderDetail.model_validate(order)
    out.payments = [PaymentOut.model_validate(p) for p in bundle.payments]
    out.receipts = [ReceiptOut.model_validate(r) for r in bundle.receipts]
    out.delivery_events = [DeliveryEventOut.model_validate(e) for e in bundle.delivery_events]
    return out


def _pdf(content: bytes, filename: str) -> Response:
    return Response(
        content=content,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/", response_model=PaginatedResponse[OrderOut])
async def list_orders(
    category: str | None = Query(None),
    delivery_status: str | None = Query(None),
    customer_id: str | None = Query(None),
    date_from: date | None = Query(None),
    date_to: date | None = Query(None),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(require_permission("orders.read")),
):
    stmt = select(Order)
    if category:
        stmt = stmt.where(Order.order_category == category.upper())
    if delivery_status:
        stmt = stmt.where(Order.delivery_status == delivery_status.upper())
    if customer_id:
        stmt = stmt.where(Order.customer_id == customer_id)
    if date_from:
        stmt = stmt.where(Order.order_date >= date_from)
    if date_to:
        stmt = stmt.where(Order.order_date <= date_to)

    total = await db.scalar(select(func.count()).select_from(stmt.subquery())) or 0
    result = await db.execute(
        stmt.order_by(Order.order_date.desc(), Order.created_at.desc())
        .limit(limit).offset(offset)
    )
    return PaginatedResponse(
        items=[OrderOut.model_validate(o) for o in result.scalars().all()],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.post("/", response_model=OrderDetail, status_code=status.HTTP_201_CREATED)
async def create_order(
    body: OrderCreate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_permission("orders.write")),
):
    order = await order_service.create_order(db, body, user)
    return await _detail(db, order)


@router.get("/{order_id}", response_model=OrderDetail)
async def get_order(
    order_id: str,
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(require_permission("orders.read")),
):
    order = await order_service.get_order(db, order_id)
    return await _detail(db, order)


@router.patch("/{order_id}", response_model=OrderDetail)
async def update_order(
    order_id: str,
    body: OrderUpdate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_permission("orders.write")),
):
    order = await order_service.get_order(db, order_id)
    order = await order_service.update_order(db, order, body, user)
    return await _detail(db, order)


@router.delete("/{order_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_order(
    order_id: str,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_permission("orders.write")),
):
    order = await order_service.get_order(db, order_id)
    await order_service.delete_order(db, order, user)


# ── Payments ─────────────────────────────────────────────────

@router.post(
    "/{order_id}/payments",
    response_model=OrderDetail,
    status_code=status.HTTP_201_CREATED,
)
async def add_payment(
    order_id: str,
    body: PaymentCreate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_permission("orders.write")),
):
    order = await order_service.get_order(db, order_id)
    await order_service.add_payment(db, order, body, user)
    return await _detail(db, order)


@router.delete("/{order_id}/payments/{payment_id}", response_model=OrderDetail)
async def delete_payment(
    order_id: str,
    payment_id: str,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_permission("orders.write")),
):
    order = await order_service.get_order(db, order_id)
    await order_service.delete_payment(db, order, payment_id, user)
    return await _detail(db, order)


# ── Delivery ─────────────────────────────────────────────────

@router.post("/{order_id}/delivery", response_model=OrderDetail)
async def update_delivery(
    order_id: str,
    body: DeliveryUpdate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_permission("orders.write")),
):
    order = await order_service.get_order(db, order_id)
    await order_service.update_delivery(db, order, body, user)
    return await _detail(db, order)


@router.get("/{order_id}/delivery-note.pdf")
async def delivery_note_pdf(
    order_id: str,
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(require_permission("orders.read")),
):
    order = await order_service.get_order(db, order_id)
    bundle = await order_service.load_order_bundle(db, order)
    content = render_pdf(delivery_note_document(bundle))
    return _pdf(content, f"delivery-note-{order.id[:8]}.pdf")


# ── Receipts ─────────────────────────────────────────────────

@router.post(
    "/{order_id}/receipts",
    response_model=ReceiptOut,
    status_code=status.HTTP_201_CREATED,
)
async def issue_receipt(
    order_id: str,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_permission("orders.write")),
):
    order = await order_service.get_order(db, order_id)
    receipt = await order_service.issue_receipt(db, order, user)
    return ReceiptOut.model_validate(receipt)


@router.post("/{order_id}/receipts/{receipt_id}/void", response_model=ReceiptOut)
async def void_receipt(
    order_id: str,
    receipt_id: str,
    body: ReceiptVoid,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_permission("orders.write")),
):
    order = await order_service.get_order(db, order_id)
    receipt = await order_service.void_receipt(db, order, receipt_id, user, body.reason)
    return ReceiptOut.model_validate(receipt)


@router.get("/{order_id}/receipts/{receipt_id}/pdf")
async def receipt_pdf(
    order_id: str,
    receipt_id: str,
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(require_permission("orders.read")),
):
    order = await order_service.get_order(db, order_id)
    bundle = await order_service.load_order_bundle(db, order)
    receipt = next((r for r in bundle.receipts if r.id == receipt_id), None)
    if receipt is None:
        raise ResourceNotFoundError("Receipt", receipt_id)
    content = render_pdf(receipt_document(bundle, receipt))
    return _pdf(content, f"{receipt.receipt_number}.pdf")
