"""Monthly reconciliation routes.

Route overview:
  GET   /               — list, filter by agent / month / status
  POST  /generate       — create or refresh one agent's month (admin)
  POST  /generate-all   — every ACTIVE agent for a month (admin)
  GET   /{id}           — detail
  PATCH /{id}           — set status and comments (admin)
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from palmtrack.auth.deps import get_scope, require_permission
from palmtrack.auth.scope import AccessScope
from palmtrack.database import get_db
from palmtrack.models.reconciliation import MonthlyReconciliation
from palmtrack.models.user import User
from palmtrack.schemas.common import PaginatedResponse
from palmtrack.schemas.reconciliation import (
    ReconciliationGenerate,
    ReconciliationOut,
    ReconciliationStatusUpdate,
)
from palmtrack.services import reconciliation as reconciliation_service

router = APIRouter()


@router.get("/", response_model=PaginatedResponse[ReconciliationOut])
async def list_reconciliations(
    agent_id: str | None = Query(None),
    month: str | None = Query(None, description="YYYY-MM"),
    status: str | None = Query(None),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(require_permission("reconciliation.read")),
    scope: AccessScope = Depends(get_scope),
):
    stmt = scope.restrict(select(MonthlyReconciliation), MonthlyReconciliation.agent_id)
    if agent_id:
        stmt = stmt.where(MonthlyReconciliation.agent_id == agent_id)
    if month:
        month_start = reconciliation_service.month_from_query(month)
        stmt = stmt.where(MonthlyReconciliation.month == month_start)
    if status:
        stmt = stmt.where(MonthlyReconciliation.status == status.upper())

    total = await db.scalar(select(func.count()).select_from(stmt.subquery())) or 0
    result = await db.execute(
        stmt.order_by(MonthlyReconciliation.month.desc()).limit(limit).offset(offset)
    )
    return PaginatedResponse(
        items=[ReconciliationOut.model_validate(r) for r in result.scalars().all()],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.post("/generate", response_model=ReconciliationOut)
async def generate_reconciliation(
    body: ReconciliationGenerate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_permission("reconciliation.write")),
):
    row = await reconciliation_service.generate_reconciliation(
        db, body.agent_id, body.month, user
    )
    return ReconciliationOut.model_validate(row)


@router.post("/generate-all", response_model=list[ReconciliationOut])
async def generate_all(
    month: str = Query(..., description="YYYY-MM"),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_permission("reconciliation.write")),
):
    month_start = reconciliation_service.month_from_query(month)
    rows = await reconciliation_service.generate_for_active_agents(db, month_start, user)
    return [ReconciliationOut.model_validate(r) for r in rows]


@router.get("/{reconciliation_id}", response_model=ReconciliationOut)
async def get_reconciliation(
    reconciliation_id: str,
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(require_permission("reconciliation.read")),
    scope: AccessScope = Depends(get_scope),
):
    row = await reconciliation_service.get_reconciliation(db, reconciliation_id, scope)
    return ReconciliationOut.model_validate(row)


@router.patch("/{reconciliation_id}", response_model=ReconciliationOut)
async def update_status(
    reconciliation_id: str,
    body: ReconciliationStatusUpdate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_permission("reconciliation.write")),
    scope: AccessScope = Depends(get_scope),
):
    row = await reconciliation_service.get_reconciliation(db, reconciliation_id, scope)
    row = await reconciliation_service.update_reconciliation_status(
        db, row, body.status, body.comments, user
    )
    await db.refresh(row)
    return ReconciliationOut.model_validate(row)
