"""Monthly agent reconciliation.

For one agent and one calendar month, totals the cash advanced and the
fruit weight collected and stores them on the (agent, month) row,
creating it on first generation and updating it afterwards.

Regeneration and status:
    New rows always start OPEN.  For an existing row the configured
    RegenerationStatusPolicy decides:
        reset     → status goes back to OPEN
        preserve  → RENDERED / CLOSED survive regeneration
"""

from __future__ import annotations

import calendar
import enum
import logging
from datetime import date
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from palmtrack.auth.scope import AccessScope
from palmtrack.config import settings
from palmtrack.middleware.exceptions import BusinessLogicError, ResourceNotFoundError
from palmtrack.models.agent import Agent
from palmtrack.models.cash_advance import CashAdvance
from palmtrack.models.fruit_collection import FruitCollection
from palmtrack.models.reconciliation import MonthlyReconciliation
from palmtrack.models.user import User
from palmtrack.schemas.reconciliation import parse_month
from palmtrack.utils.activity import log_activity

logger = logging.getLogger(__name__)


class RegenerationStatusPolicy(str, enum.Enum):
    RESET = "reset"
    PRESERVE = "preserve"


def default_policy() -> RegenerationStatusPolicy:
    return RegenerationStatusPolicy(settings.reconciliation_status_policy.lower())


def month_bounds(month: date) -> tuple[date, date]:
    """First and last day of the calendar month containing `month`."""
    last_day = calendar.monthrange(month.year, month.month)[1]
    return month.replace(day=1), month.replace(day=last_day)


def month_from_query(text: str) -> date:
    """Parse a YYYY-MM query value, raising INVALID_MONTH on bad input."""
    try:
        return parse_month(text)
    except ValueError:
        raise BusinessLogicError(
            f"Invalid month '{text}', expected YYYY-MM", error_code="INVALID_MONTH"
        )


async def month_totals(db: AsyncSession, agent_id: str, month: date) -> tuple[Decimal, Decimal]:
    """Return (total_advance, total_weight_kg) for the agent's month."""
    start, end = month_bounds(month)

    advance_total = (await db.execute(
        select(func.coalesce(func.sum(CashAdvance.amount), 0)).where(
            CashAdvance.agent_id == agent_id,
            CashAdvance.advance_date >= start,
            CashAdvance.advance_date <= end,
        )
    )).scalar_one()

    weight_total = (await db.execute(
        select(func.coalesce(
            func.sum(func.coalesce(FruitCollection.total_weight_kg, FruitCollection.weight_kg)),
            0,
        )).where(
            FruitCollection.agent_id == agent_id,
            FruitCollection.collection_date >= start,
            FruitCollection.collection_date <= end,
        )
    )).scalar_one()

    return Decimal(str(advance_total)), Decimal(str(weight_total))


async def generate_reconciliation(
    db: AsyncSession,
    agent_id: str,
    month: date,
    user: User,
    policy: RegenerationStatusPolicy | None = None,
) -> MonthlyReconciliation:
    """Create or refresh the (agent, month) reconciliation row."""
    policy = policy or default_policy()
    month_start, _ = month_bounds(month)

    agent = (await db.execute(select(Agent).where(Agent.id == agent_id))).scalar_one_or_none()
    if not agent:
        raise ResourceNotFoundError("Agent", agent_id)

    total_advance, total_weight = await month_totals(db, agent_id, month_start)

    row = (await db.execute(
        select(MonthlyReconciliation).where(
            MonthlyReconciliation.agent_id == agent_id,
            MonthlyReconciliation.month == month_start,
        )
    )).scalar_one_or_none()

    if row is None:
        row = MonthlyReconciliation(
            agent_id=agent_id,
            month=month_start,
            status="OPEN",
            created_by=user.id,
        )
        db.add(row)
        action = "created"
    else:
        if policy == RegenerationStatusPolicy.RESET:
            row.status = "OPEN"
        action = "regenerated"

    row.total_advance = total_advance
    row.total_weight_kg = total_weight
    await db.flush()
    await db.refresh(row, attribute_names=["agent"])

    await log_activity(
        db, user,
        action=action,
        entity_type="reconciliation",
        entity_id=row.id,
        entity_code=month_start.strftime("%Y-%m"),
        summary=(
            f"{agent.full_name} {month_start:%Y-%m}: advances {total_advance}, "
            f"weight {total_weight} kg"
        ),
        details={"policy": policy.value, "status": row.status},
    )
    return row


async def generate_for_active_agents(
    db: AsyncSession,
    month: date,
    user: User,
    policy: RegenerationStatusPolicy | None = None,
) -> list[MonthlyReconciliation]:
    agent_ids = (await db.execute(
        select(Agent.id).where(Agent.status == "ACTIVE").order_by(Agent.full_name)
    )).scalars().all()
    rows = []
    for agent_id in agent_ids:
        rows.append(await generate_reconciliation(db, agent_id, month, user, policy))
    logger.info("Generated %d reconciliations for %s", len(rows), month.strftime("%Y-%m"))
    return rows


async def get_reconciliation(
    db: AsyncSession, reconciliation_id: str, scope: AccessScope
) -> MonthlyReconciliation:
    stmt = scope.restrict(
        select(MonthlyReconciliation).where(MonthlyReconciliation.id == reconciliation_id),
        MonthlyReconciliation.agent_id,
    )
    row = (await db.execute(stmt)).scalar_one_or_none()
    if not row:
        raise ResourceNotFoundError("Reconciliation", reconciliation_id)
    return row


async def update_reconciliation_status(
    db: AsyncSession,
    row: MonthlyReconciliation,
    status: str,
    comments: str | None,
    user: User,
) -> MonthlyReconciliation:
    previous = row.status
    row.status = status
    if comments is not None:
        row.comments = comments
    await db.flush()
    await log_activity(
        db, user,
        action="status_changed",
        entity_type="reconciliation",
        entity_id=row.id,
        entity_code=row.month.strftime("%Y-%m"),
        summary=f"Reconciliation {previous} → {status}",
        details={"from": previous, "to": status},
    )
    return row
