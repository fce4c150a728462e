"""Report inputs: load source rows and normalize them into records.

This is the only place that knows about legacy field names.  Rows may be
ORM objects or plain mappings (imports, fixtures); both go through the
same `_field` lookup and come out as the canonical records defined in
aggregation.py.

Legacy shapes handled here:
    - items reference their parent as collection_id or fruit_collection_id
    - collection amount lives in total_amount_spent, total_amount or
      amount_spent (first non-zero wins)
    - collection weight lives in total_weight_kg, else weight_kg
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any, Iterable, Mapping

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import lazyload

from palmtrack.auth.scope import AccessScope
from palmtrack.middleware.exceptions import ReportSourceError
from palmtrack.models.cash_advance import CashAdvance
from palmtrack.models.expense import AgentExpense
from palmtrack.models.fruit_collection import CollectionItem, FruitCollection
from palmtrack.services.aggregation import (
    ZERO,
    AdvanceRecord,
    CollectionRecord,
    ExpenseRecord,
    ItemRecord,
    to_decimal,
)

logger = logging.getLogger(__name__)

_MISSING = object()


@dataclass
class ReportInputs:
    advances: list[AdvanceRecord] = field(default_factory=list)
    expenses: list[ExpenseRecord] = field(default_factory=list)
    collections: list[CollectionRecord] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.advances or self.expenses or self.collections)


# ── Field access ─────────────────────────────────────────────

def _field(row: Any, name: str, default=None):
    if isinstance(row, Mapping):
        return row.get(name, default)
    value = getattr(row, name, _MISSING)
    return default if value is _MISSING else value


def _first_field(row: Any, *names: str):
    for name in names:
        value = _field(row, name)
        if value is not None:
            return value
    return None


def _agent_name(row: Any) -> str | None:
    name = _field(row, "agent_name")
    if name:
        return name
    for rel in ("agent", "agents"):
        agent = _field(row, rel)
        if agent is not None:
            return _field(agent, "full_name")
    return None


def _as_str(value) -> str:
    return "" if value is None else str(value)


# ── Normalizers ──────────────────────────────────────────────

def normalize_advance(row: Any) -> AdvanceRecord:
    return AdvanceRecord(
        id=_as_str(_field(row, "id")),
        agent_id=_as_str(_field(row, "agent_id")),
        agent_name=_agent_name(row),
        date=_first_field(row, "advance_date", "date"),
        amount=to_decimal(_field(row, "amount")),
        payment_method=_field(row, "payment_method"),
        signed_by=_field(row, "signed_by"),
    )


def normalize_expense(row: Any) -> ExpenseRecord:
    return ExpenseRecord(
        id=_as_str(_field(row, "id")),
        agent_id=_as_str(_field(row, "agent_id")),
        agent_name=_agent_name(row),
        date=_first_field(row, "expense_date", "date"),
        expense_type=_field(row, "expense_type") or "",
        amount=to_decimal(_field(row, "amount")),
    )


def normalize_item(row: Any) -> ItemRecord:
    return ItemRecord(
        collection_id=_as_str(_first_field(row, "collection_id", "fruit_collection_id")),
        weight_kg=to_decimal(_field(row, "weight_kg")),
        price_per_kg=to_decimal(_field(row, "price_per_kg")),
    )


def stored_collection_amount(row: Any) -> Decimal:
    """First non-zero of the legacy amount fields, else 0."""
    for name in ("total_amount_spent", "total_amount", "amount_spent"):
        value = _field(row, name)
        if value is None:
            continue
        amount = to_decimal(value)
        if amount:
            return amount
    return ZERO


def normalize_collection(row: Any, items: Iterable[ItemRecord] = ()) -> CollectionRecord:
    weight = _field(row, "total_weight_kg")
    if weight is None:
        weight = _field(row, "weight_kg")
    return CollectionRecord(
        id=_as_str(_field(row, "id")),
        agent_id=_as_str(_field(row, "agent_id")),
        agent_name=_agent_name(row),
        date=_first_field(row, "collection_date", "date"),
        weight_kg=to_decimal(weight),
        driver_name=_field(row, "driver_name"),
        stored_amount=stored_collection_amount(row),
        items=tuple(items),
    )


def group_items(items: Iterable[ItemRecord]) -> dict[str, list[ItemRecord]]:
    grouped: dict[str, list[ItemRecord]] = {}
    for item in items:
        grouped.setdefault(item.collection_id, []).append(item)
    return grouped


# ── Loading ──────────────────────────────────────────────────

def _filtered(stmt, date_col, agent_col, scope, date_from, date_to, agent_id):
    stmt = scope.restrict(stmt, agent_col)
    if agent_id:
        stmt = stmt.where(agent_col == agent_id)
    if date_from:
        stmt = stmt.where(date_col >= date_from)
    if date_to:
        stmt = stmt.where(date_col <= date_to)
    return stmt


async def _fetch(db: AsyncSession, source: str, stmt) -> list:
    try:
        result = await db.execute(stmt)
    except SQLAlchemyError as exc:
        logger.error("Report source %s failed", source, exc_info=True)
        raise ReportSourceError(source, exc.__class__.__name__) from exc
    return list(result.scalars().all())


async def load_report_inputs(
    db: AsyncSession,
    scope: AccessScope,
    date_from: date | None = None,
    date_to: date | None = None,
    agent_id: str | None = None,
) -> ReportInputs:
    """Fetch advances, expenses and collections (both dates inclusive).

    A failure on any of the three main sources aborts the report.  A
    failure loading collection items only degrades each collection to
    its stored amount.
    """
    if agent_id:
        scope.require_agent(agent_id)
    window = dict(scope=scope, date_from=date_from, date_to=date_to, agent_id=agent_id)

    advances = await _fetch(db, "cash advances", _filtered(
        select(CashAdvance).order_by(CashAdvance.advance_date),
        CashAdvance.advance_date, CashAdvance.agent_id, **window,
    ))
    expenses = await _fetch(db, "expenses", _filtered(
        select(AgentExpense).order_by(AgentExpense.expense_date),
        AgentExpense.expense_date, AgentExpense.agent_id, **window,
    ))
    collections = await _fetch(db, "fruit collections", _filtered(
        select(FruitCollection)
        .options(lazyload(FruitCollection.items))
        .order_by(FruitCollection.collection_date),
        FruitCollection.collection_date, FruitCollection.agent_id, **window,
    ))

    items_by_collection: dict[str, list[ItemRecord]] = {}
    collection_ids = [c.id for c in collections]
    if collection_ids:
        try:
            result = await db.execute(
                select(CollectionItem).where(CollectionItem.collection_id.in_(collection_ids))
            )
            items_by_collection = group_items(
                normalize_item(item) for item in result.scalars().all()
            )
        except SQLAlchemyError:
            logger.warning(
                "Could not load collection items; using stored amounts", exc_info=True
            )

    return ReportInputs(
        advances=[normalize_advance(a) for a in advances],
        expenses=[normalize_expense(e) for e in expenses],
        collections=[
            normalize_collection(c, items_by_collection.get(c.id, ()))
            for c in collections
        ],
    )
