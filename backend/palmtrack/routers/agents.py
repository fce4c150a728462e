"""Agent routes — CRUD, archive-on-delete, photos.

Route overview:
  GET    /                   — list (archived hidden unless include_archived)
  POST   /                   — create
  GET    /{id}               — detail
  PATCH  /{id}               — update
  DELETE /{id}               — archive if the agent has history, else delete
  POST   /{id}/photo         — upload photo (JPEG/PNG/WebP, ≤ 5 MB)
  DELETE /{id}/photo         — remove photo
  GET    /{id}/photo-url     — time-limited signed URL for the photo
"""

from datetime import datetime
from decimal import Decimal

from fastapi import APIRouter, Depends, File, Query, UploadFile
from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from palmtrack.auth.deps import get_scope, require_permission
from palmtrack.auth.scope import AccessScope
from palmtrack.config import settings
from palmtrack.database import get_db
from palmtrack.middleware.exceptions import ResourceNotFoundError
from palmtrack.models.agent import Agent
from palmtrack.models.cash_advance import CashAdvance
from palmtrack.models.expense import AgentExpense
from palmtrack.models.fruit_collection import FruitCollection
from palmtrack.models.price_change import FruitPriceChange
from palmtrack.models.reconciliation import MonthlyReconciliation
from palmtrack.models.user import User
from palmtrack.schemas.agent import (
    AgentCreate,
    AgentDeleteResult,
    AgentOut,
    AgentSummary,
    AgentUpdate,
    PhotoUrlOut,
)
from palmtrack.schemas.common import PaginatedResponse
from palmtrack.services.storage import (
    delete_after_commit,
    delete_after_rollback,
    get_storage,
    photo_key,
    read_photo,
)
from palmtrack.utils.activity import log_activity

router = APIRouter()


# ── Helpers ──────────────────────────────────────────────────

def _agent_out(agent: Agent) -> AgentOut:
    return AgentOut.model_validate(agent)


async def _get_agent(db: AsyncSession, agent_id: str, scope: AccessScope) -> Agent:
    stmt = scope.restrict(select(Agent).where(Agent.id == agent_id), Agent.id)
    agent = (await db.execute(stmt)).scalar_one_or_none()
    if not agent:
        raise ResourceNotFoundError("Agent", agent_id)
    return agent


async def _has_history(db: AsyncSession, agent_id: str) -> bool:
    for model in (CashAdvance, AgentExpense, FruitCollection):
        found = await db.scalar(select(model.id).where(model.agent_id == agent_id).limit(1))
        if found:
            return True
    return False


# ── Routes ───────────────────────────────────────────────────

@router.get("/", response_model=PaginatedResponse[AgentSummary])
async def list_agents(
    include_archived: bool = Query(False),
    search: str | None = Query(None),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(require_permission("agents.read")),
    scope: AccessScope = Depends(get_scope),
):
    """Agents with lifetime advance and collection-weight totals."""
    advance_totals = (
        select(
            CashAdvance.agent_id,
            func.coalesce(func.sum(CashAdvance.amount), 0).label("total_advances"),
        )
        .group_by(CashAdvance.agent_id)
        .subquery()
    )
    weight_totals = (
        select(
            FruitCollection.agent_id,
            func.coalesce(
                func.sum(func.coalesce(FruitCollection.total_weight_kg, FruitCollection.weight_kg)), 0
            ).label("total_weight_kg"),
        )
        .group_by(FruitCollection.agent_id)
        .subquery()
    )

    base = scope.restrict(select(Agent), Agent.id)
    if not include_archived:
        base = base.where(Agent.archived_at.is_(None))
    if search:
        pattern = f"%{search.strip()}%"
        base = base.where(or_(
            Agent.full_name.ilike(pattern),
            Agent.phone.ilike(pattern),
            Agent.location.ilike(pattern),
        ))

    total = await db.scalar(select(func.count()).select_from(base.subquery())) or 0

    stmt = (
        base.add_columns(advance_totals.c.total_advances, weight_totals.c.total_weight_kg)
        .outerjoin(advance_totals, advance_totals.c.agent_id == Agent.id)
        .outerjoin(weight_totals, weight_totals.c.agent_id == Agent.id)
        .order_by(Agent.full_name)
        .limit(limit)
        .offset(offset)
    )
    rows = (await db.execute(stmt)).all()

    items = []
    for agent, total_advances, total_weight in rows:
        items.append(AgentSummary(
            **_agent_out(agent).model_dump(),
            total_advances=Decimal(str(total_advances or 0)),
            total_weight_kg=Decimal(str(total_weight or 0)),
        ))
    return PaginatedResponse(items=items, total=total, limit=limit, offset=offset)


@router.post("/", response_model=AgentOut, status_code=201)
async def create_agent(
    body: AgentCreate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_permission("agents.write")),
):
    agent = Agent(**body.model_dump(), status="ACTIVE")
    db.add(agent)
    await db.flush()
    await log_activity(
        db, user, action="created", entity_type="agent",
        entity_id=agent.id, entity_code=agent.full_name,
    )
    return _agent_out(agent)


@router.get("/{agent_id}", response_model=AgentOut)
async def get_agent(
    agent_id: str,
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(require_permission("agents.read")),
    scope: AccessScope = Depends(get_scope),
):
    return _agent_out(await _get_agent(db, agent_id, scope))


@router.patch("/{agent_id}", response_model=AgentOut)
async def update_agent(
    agent_id: str,
    body: AgentUpdate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_permission("agents.write")),
    scope: AccessScope = Depends(get_scope),
):
    agent = await _get_agent(db, agent_id, scope)
    updates = body.model_dump(exclude_unset=True)
    for key, value in updates.items():
        setattr(agent, key, value)
    if updates.get("status") == "ACTIVE":
        agent.archived_at = None

    await db.flush()
    await log_activity(
        db, user, action="updated", entity_type="agent",
        entity_id=agent.id, entity_code=agent.full_name,
        details={"fields": sorted(updates)},
    )
    return _agent_out(agent)


@router.delete("/{agent_id}", response_model=AgentDeleteResult)
async def delete_agent(
    agent_id: str,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_permission("agents.delete")),
    scope: AccessScope = Depends(get_scope),
):
    """Archive agents with advances/expenses/collections; delete the rest."""
    agent = await _get_agent(db, agent_id, scope)

    if await _has_history(db, agent.id):
        agent.status = "INACTIVE"
        agent.archived_at = datetime.utcnow()
        await db.flush()
        await log_activity(
            db, user, action="archived", entity_type="agent",
            entity_id=agent.id, entity_code=agent.full_name,
        )
        return AgentDeleteResult(id=agent.id, outcome="archived")

    photo_path = agent.photo_path
    await db.execute(delete(FruitPriceChange).where(FruitPriceChange.agent_id == agent.id))
    await db.execute(delete(MonthlyReconciliation).where(MonthlyReconciliation.agent_id == agent.id))
    await db.execute(update(User).where(User.agent_id == agent.id).values(agent_id=None))
    await log_activity(
        db, user, action="deleted", entity_type="agent",
        entity_id=agent.id, entity_code=agent.full_name,
    )
    await db.delete(agent)
    await db.flush()
    if photo_path:
        delete_after_commit(db, photo_path)
    return AgentDeleteResult(id=agent_id, outcome="deleted")


# ── Photos ───────────────────────────────────────────────────

@router.post("/{agent_id}/photo", response_model=AgentOut)
async def upload_photo(
    agent_id: str,
    file: UploadFile = File(...),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_permission("agents.write")),
    scope: AccessScope = Depends(get_scope),
):
    agent = await _get_agent(db, agent_id, scope)
    key = photo_key(agent.id, file.content_type or "")
    data = await read_photo(file)

    get_storage().save(key, data)
    delete_after_rollback(db, key)
    old_path, agent.photo_path = agent.photo_path, key
    await db.flush()
    if old_path:
        delete_after_commit(db, old_path)

    await log_activity(
        db, user, action="photo_uploaded", entity_type="agent",
        entity_id=agent.id, entity_code=agent.full_name,
    )
    return _agent_out(agent)


@router.delete("/{agent_id}/photo", response_model=AgentOut)
async def remove_photo(
    agent_id: str,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_permission("agents.write")),
    scope: AccessScope = Depends(get_scope),
):
    agent = await _get_agent(db, agent_id, scope)
    if agent.photo_path:
        delete_after_commit(db, agent.photo_path)
        agent.photo_path = None
        await db.flush()
        await log_activity(
            db, user, action="photo_removed", entity_type="agent",
            entity_id=agent.id, entity_code=agent.full_name,
        )
    return _agent_out(agent)


@router.get("/{agent_id}/photo-url", response_model=PhotoUrlOut)
async def photo_url(
    agent_id: str,
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(require_permission("agents.read")),
    scope: AccessScope = Depends(get_scope),
):
    agent = await _get_agent(db, agent_id, scope)
    if not agent.photo_path:
        return PhotoUrlOut(url=None)
    return PhotoUrlOut(
        url=get_storage().signed_url(agent.photo_path),
        expires_in=settings.signed_url_expire_seconds,
    )
