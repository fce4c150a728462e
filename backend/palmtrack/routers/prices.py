"""Agent fruit-price ledger.

Mounted under /api/agents:
  GET  /{agent_id}/prices  — history, newest first, plus the current price
  POST /{agent_id}/prices  — append a price change (admin)

The current price is the newest entry's price.
"""

from datetime import datetime

from fastapi import APIRouter, Depends, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from palmtrack.auth.deps import get_scope, require_permission
from palmtrack.auth.scope import AccessScope
from palmtrack.database import get_db
from palmtrack.middleware.exceptions import ResourceNotFoundError
from palmtrack.models.agent import Agent
from palmtrack.models.price_change import FruitPriceChange
from palmtrack.models.user import User
from palmtrack.schemas.price_change import PriceChangeCreate, PriceChangeOut, PriceHistoryOut
from palmtrack.utils.activity import log_activity

router = APIRouter()


def current_price(history: list[FruitPriceChange]):
    return history[0].price_per_kg if history else None


@router.get("/{agent_id}/prices", response_model=PriceHistoryOut)
async def get_price_history(
    agent_id: str,
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(require_permission("prices.read")),
    scope: AccessScope = Depends(get_scope),
):
    scope.require_agent(agent_id)
    result = await db.execute(
        select(FruitPriceChange)
        .where(FruitPriceChange.agent_id == agent_id)
        .order_by(FruitPriceChange.effective_at.desc(), FruitPriceChange.created_at.desc())
    )
    history = list(result.scalars().all())
    return PriceHistoryOut(
        agent_id=agent_id,
        current_price=current_price(history),
        history=[PriceChangeOut.model_validate(h) for h in history],
    )


@router.post(
    "/{agent_id}/prices",
    response_model=PriceChangeOut,
    status_code=status.HTTP_201_CREATED,
)
async def add_price_change(
    agent_id: str,
    body: PriceChangeCreate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_permission("prices.write")),
):
    agent = (await db.execute(select(Agent).where(Agent.id == agent_id))).scalar_one_or_none()
    if not agent:
        raise ResourceNotFoundError("Agent", agent_id)

    change = FruitPriceChange(
        agent_id=agent.id,
        price_per_kg=body.price_per_kg,
        effective_at=body.effective_at or datetime.utcnow(),
        carryover_kg=body.carryover_kg,
        note=body.note,
        created_by=user.id,
    )
    db.add(change)
    await db.flush()
    await log_activity(
        db, user,
        action="price_changed",
        entity_type="agent",
        entity_id=agent.id,
        summary=f"{agent.full_name} price set to {change.price_per_kg}/kg",
        details={"carryover_kg": change.carryover_kg, "effective_at": change.effective_at},
    )
    return PriceChangeOut.model_validate(change)
