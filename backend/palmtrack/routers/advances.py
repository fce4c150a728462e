"""Cash advance routes.

Route overview:
  GET    /       — list, filter by agent and date range (inclusive)
  POST   /       — record an advance
  GET    /{id}   — detail
  PATCH  /{id}   — update
  DELETE /{id}   — delete
"""

from datetime import date

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from palmtrack.auth.deps import get_scope, require_permission
from palmtrack.auth.scope import AccessScope
from palmtrack.database import get_db
from palmtrack.middleware.exceptions import ResourceNotFoundError
from palmtrack.models.agent import Agent
from palmtrack.models.cash_advance import CashAdvance
from palmtrack.models.user import User
from palmtrack.schemas.advance import AdvanceCreate, AdvanceOut, AdvanceUpdate
from palmtrack.schemas.common import PaginatedResponse
from palmtrack.utils.activity import log_activity

router = APIRouter()


async def _get_advance(db: AsyncSession, advance_id: str, scope: AccessScope) -> CashAdvance:
    stmt = scope.restrict(
        select(CashAdvance).where(CashAdvance.id == advance_id), CashAdvance.agent_id
    )
    advance = (await db.execute(stmt)).scalar_one_or_none()
    if not advance:
        raise ResourceNotFoundError("Cash advance", advance_id)
    return advance


@router.get("/", response_model=PaginatedResponse[AdvanceOut])
async def list_advances(
    agent_id: str | None = Query(None),
    date_from: date | None = Query(None),
    date_to: date | None = Query(None),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(require_permission("advances.read")),
    scope: AccessScope = Depends(get_scope),
):
    stmt = scope.restrict(select(CashAdvance), CashAdvance.agent_id)
    if agent_id:
        stmt = stmt.where(CashAdvance.agent_id == agent_id)
    if date_from:
        stmt = stmt.where(CashAdvance.advance_date >= date_from)
    if date_to:
        stmt = stmt.where(CashAdvance.advance_date <= date_to)

    total = await db.scalar(select(func.count()).select_from(stmt.subquery())) or 0
    result = await db.execute(
        stmt.order_by(CashAdvance.advance_date.desc(), CashAdvance.created_at.desc())
        .limit(limit).offset(offset)
    )
    return PaginatedResponse(
        items=[AdvanceOut.model_validate(a) for a in result.scalars().all()],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.post("/", response_model=AdvanceOut, status_code=status.HTTP_201_CREATED)
async def create_advance(
    body: AdvanceCreate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_permission("advances.write")),
):
    agent = (await db.execute(select(Agent).where(Agent.id == body.agent_id))).scalar_one_or_none()
    if not agent:
        raise ResourceNotFoundError("Agent", body.agent_id)

    advance = CashAdvance(**body.model_dump(), created_by=user.id)
    db.add(advance)
    await db.flush()
    await db.refresh(advance, attribute_names=["agent"])
    await log_activity(
        db, user, action="created", entity_type="advance", entity_id=advance.id,
        summary=f"Advance of {advance.amount} to {agent.full_name}",
    )
    return AdvanceOut.model_validate(advance)


@router.get("/{advance_id}", response_model=AdvanceOut)
async def get_advance(
    advance_id: str,
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(require_permission("advances.read")),
    scope: AccessScope = Depends(get_scope),
):
    return AdvanceOut.model_validate(await _get_advance(db, advance_id, scope))


@router.patch("/{advance_id}", response_model=AdvanceOut)
async def update_advance(
    advance_id: str,
    body: AdvanceUpdate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_permission("advances.write")),
    scope: AccessScope = Depends(get_scope),
):
    advance = await _get_advance(db, advance_id, scope)
    updates = body.model_dump(exclude_unset=True)
    for key, value in updates.items():
        setattr(advance, key, value)
    await db.flush()
    await log_activity(
        db, user, action="updated", entity_type="advance", entity_id=advance.id,
        details={"fields": sorted(updates)},
    )
    return AdvanceOut.model_validate(advance)


@router.delete("/{advance_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_advance(
    advance_id: str,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_permission("advances.write")),
    scope: AccessScope = Depends(get_scope),
):
    advance = await _get_advance(db, advance_id, scope)
    await log_activity(
        db, user, action="deleted", entity_type="advance", entity_id=advance.id,
        summary=f"Deleted advance of {advance.amount} dated {advance.advance_date}",
    )
    await db.delete(advance)
    await db.flush()
