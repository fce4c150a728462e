"""Agent expense routes.

Route overview:
  GET    /               — list, filter by agent and date range
  POST   /batch          — several expense lines for one agent at once
  GET    /recent-types   — expense types the agent used recently
  PATCH  /{id}           — update
  DELETE /{id}           — delete
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
from palmtrack.models.expense import AgentExpense
from palmtrack.models.user import User
from palmtrack.schemas.common import PaginatedResponse
from palmtrack.schemas.expense import ExpenseBatchCreate, ExpenseOut, ExpenseUpdate
from palmtrack.utils.activity import log_activity

router = APIRouter()

RECENT_WINDOW = 20
RECENT_LIMIT = 10


async def _get_expense(db: AsyncSession, expense_id: str, scope: AccessScope) -> AgentExpense:
    stmt = scope.restrict(
        select(AgentExpense).where(AgentExpense.id == expense_id), AgentExpense.agent_id
    )
    expense = (await db.execute(stmt)).scalar_one_or_none()
    if not expense:
        raise ResourceNotFoundError("Expense", expense_id)
    return expense


async def recent_expense_types(db: AsyncSession, agent_id: str) -> list[str]:
    """Distinct types among the agent's latest expenses, newest first."""
    result = await db.execute(
        select(AgentExpense.expense_type)
        .where(AgentExpense.agent_id == agent_id)
        .order_by(AgentExpense.created_at.desc())
        .limit(RECENT_WINDOW)
    )
    types: list[str] = []
    for expense_type in result.scalars().all():
        if expense_type and expense_type not in types:
            types.append(expense_type)
    return types[:RECENT_LIMIT]


@router.get("/", response_model=PaginatedResponse[ExpenseOut])
async def list_expenses(
    agent_id: str | None = Query(None),
    date_from: date | None = Query(None),
    date_to: date | None = Query(None),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(require_permission("expenses.read")),
    scope: AccessScope = Depends(get_scope),
):
    stmt = scope.restrict(select(AgentExpense), AgentExpense.agent_id)
    if agent_id:
        stmt = stmt.where(AgentExpense.agent_id == agent_id)
    if date_from:
        stmt = stmt.where(AgentExpense.expense_date >= date_from)
    if date_to:
        stmt = stmt.where(AgentExpense.expense_date <= date_to)

    total = await db.scalar(select(func.count()).select_from(stmt.subquery())) or 0
    result = await db.execute(
        stmt.order_by(AgentExpense.expense_date.desc(), AgentExpense.created_at.desc())
        .limit(limit).offset(offset)
    )
    return PaginatedResponse(
        items=[ExpenseOut.model_validate(e) for e in result.scalars().all()],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.post("/batch", response_model=list[ExpenseOut], status_code=status.HTTP_201_CREATED)
async def create_expenses(
    body: ExpenseBatchCreate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_permission("expenses.write")),
    scope: AccessScope = Depends(get_scope),
):
    """All lines are inserted in one transaction, or none are."""
    scope.require_agent(body.agent_id)
    agent = (await db.execute(select(Agent).where(Agent.id == body.agent_id))).scalar_one_or_none()
    if not agent:
        raise ResourceNotFoundError("Agent", body.agent_id)

    expenses = [
        AgentExpense(
            agent_id=agent.id,
            expense_type=line.expense_type,
            amount=line.amount,
            expense_date=body.expense_date,
            created_by=user.id,
        )
        for line in body.lines
    ]
    db.add_all(expenses)
    await db.flush()
    for expense in expenses:
        await db.refresh(expense, attribute_names=["agent"])

    await log_activity(
        db, user, action="created", entity_type="expense", entity_id=expenses[0].id,
        summary=f"{len(expenses)} expense line(s) for {agent.full_name}",
        details={"ids": [e.id for e in expenses]},
    )
    return [ExpenseOut.model_validate(e) for e in expenses]


@router.get("/recent-types", response_model=list[str])
async def get_recent_types(
    agent_id: str = Query(...),
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(require_permission("expenses.read")),
    scope: AccessScope = Depends(get_scope),
):
    scope.require_agent(agent_id)
    return await recent_expense_types(db, agent_id)


@router.patch("/{expense_id}", response_model=ExpenseOut)
async def update_expense(
    expense_id: str,
    body: ExpenseUpdate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_permission("expenses.write")),
    scope: AccessScope = Depends(get_scope),
):
    expense = await _get_expense(db, expense_id, scope)
    updates = body.model_dump(exclude_unset=True)
    for key, value in updates.items():
        setattr(expense, key, value)
    await db.flush()
    await log_activity(
        db, user, action="updated", entity_type="expense", entity_id=expense.id,
        details={"fields": sorted(updates)},
    )
    return ExpenseOut.model_validate(expense)


@router.delete("/{expense_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_expense(
    expense_id: str,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_permission("expenses.write")),
    scope: AccessScope = Depends(get_scope),
):
    expense = await _get_expense(db, expense_id, scope)
    await log_activity(
        db, user, action="deleted", entity_type="expense", entity_id=expense.id,
        summary=f"Deleted {expense.expense_type} expense of {expense.amount}",
    )
    await db.delete(expense)
    await db.flush()
