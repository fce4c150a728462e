"""Customer CRUD for the orders module."""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from palmtrack.auth.deps import require_permission
from palmtrack.database import get_db
from palmtrack.middleware.exceptions import ConflictError, ResourceNotFoundError
from palmtrack.models.customer import Customer
from palmtrack.models.order import Order
from palmtrack.models.user import User
from palmtrack.schemas.common import PaginatedResponse
from palmtrack.schemas.order import CustomerCreate, CustomerOut, CustomerUpdate
from palmtrack.utils.activity import log_activity

router = APIRouter()


async def _get_customer(db: AsyncSession, customer_id: str) -> Customer:
    customer = (
        await db.execute(select(Customer).where(Customer.id == customer_id))
    ).scalar_one_or_none()
    if not customer:
        raise ResourceNotFoundError("Customer", customer_id)
    return customer


@router.get("/", response_model=PaginatedResponse[CustomerOut])
async def list_customers(
    search: str | None = Query(None),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(require_permission("orders.read")),
):
    stmt = select(Customer)
    if search:
        pattern = f"%{search}%"
        stmt = stmt.where(or_(Customer.full_name.ilike(pattern), Customer.phone.ilike(pattern)))

    total = await db.scalar(select(func.count()).select_from(stmt.subquery())) or 0
    result = await db.execute(stmt.order_by(Customer.full_name).limit(limit).offset(offset))
    return PaginatedResponse(
        items=[CustomerOut.model_validate(c) for c in result.scalars().all()],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.post("/", response_model=CustomerOut, status_code=status.HTTP_201_CREATED)
async def create_customer(
    body: CustomerCreate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_permission("orders.write")),
):
    customer = Customer(**body.model_dump(), created_by=user.id)
    db.add(customer)
    await db.flush()
    await log_activity(
        db, user, action="created", entity_type="customer", entity_id=customer.id,
        summary=f"Added customer {customer.full_name}",
    )
    return CustomerOut.model_validate(customer)


@router.get("/{customer_id}", response_model=CustomerOut)
async def get_customer(
    customer_id: str,
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(require_permission("orders.read")),
):
    return CustomerOut.model_validate(await _get_customer(db, customer_id))


@router.patch("/{customer_id}", response_model=CustomerOut)
async def update_customer(
    customer_id: str,
    body: CustomerUpdate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_permission("orders.write")),
):
    customer = await _get_customer(db, customer_id)
    updates = body.model_dump(exclude_unset=True)
    for key, value in updates.items():
        setattr(customer, key, value)
    await db.flush()
    await log_activity(
        db, user, action="updated", entity_type="customer", entity_id=customer.id,
        details={"fields": sorted(updates)},
    )
    return CustomerOut.model_validate(customer)


@router.delete("/{customer_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_customer(
    customer_id: str,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_permission("orders.write")),
):
    customer = await _get_customer(db, customer_id)
    orders = await db.scalar(
        select(func.count(Order.id)).where(Order.customer_id == customer.id)
    )
    if orders:
        raise ConflictError(
            f"Customer has {orders} order(s) and cannot be deleted",
            error_code="CUSTOMER_HAS_ORDERS",
        )
    await log_activity(
        db, user, action="deleted", entity_type="customer", entity_id=customer.id,
        summary=f"Deleted customer {customer.full_name}",
    )
    await db.delete(customer)
    await db.flush()
