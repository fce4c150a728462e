"""Consolidated net-position aggregation.

Pure functions over already-normalized records (see report_data.py);
nothing here touches the database.

Per agent and overall:

    net = advances − (expenses + fruit_spend)

A positive net means the agent still holds company cash (surplus); a
negative net means the agent spent more than was advanced (deficit).

Fruit spend of one collection:
    - items present  → Σ(weight_kg × price_per_kg)
    - no items       → the stored amount resolved at normalization, or 0
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Iterable, Sequence

ZERO = Decimal("0")

SURPLUS_LABEL = "CASH BALANCE (SURPLUS)"
DEFICIT_LABEL = "DEFICIT (OVERDRAWN)"

DEFICIT_NOTE = (
    "Deficit agents: Follow up on receipts/collections and confirm whether "
    "expenses were correctly recorded or additional advances are required."
)
SURPLUS_NOTE = (
    "Surplus agents: Request cash return or confirm remaining balance is "
    "carried forward for approved next operations."
)
FORMULA_NOTE = (
    "Formula: Net = Advances − (Expenses + Fruit Spend). Fruit Spend is "
    "calculated from items as weight_kg × price_per_kg (fallbacks apply if "
    "items are missing)."
)


# ── Records ──────────────────────────────────────────────────

@dataclass(frozen=True)
class AdvanceRecord:
    id: str
    agent_id: str
    agent_name: str | None
    date: date | None
    amount: Decimal
    payment_method: str | None = None
    signed_by: str | None = None


@dataclass(frozen=True)
class ExpenseRecord:
    id: str
    agent_id: str
    agent_name: str | None
    date: date | None
    expense_type: str
    amount: Decimal


@dataclass(frozen=True)
class ItemRecord:
    collection_id: str
    weight_kg: Decimal
    price_per_kg: Decimal

    @property
    def line_total(self) -> Decimal:
        return self.weight_kg * self.price_per_kg


@dataclass(frozen=True)
class CollectionRecord:
    id: str
    agent_id: str
    agent_name: str | None
    date: date | None
    weight_kg: Decimal
    driver_name: str | None = None
    stored_amount: Decimal = ZERO
    items: tuple[ItemRecord, ...] = ()


@dataclass(frozen=True)
class PriceBucket:
    price_per_kg: Decimal
    weight_kg: Decimal
    amount: Decimal


@dataclass(frozen=True)
class PriceBreakdown:
    buckets: list[PriceBucket]
    total_weight: Decimal
    total_amount: Decimal


@dataclass
class AgentPosition:
    agent_id: str
    agent_name: str
    advances: Decimal = ZERO
    expenses: Decimal = ZERO
    fruit_spend: Decimal = ZERO

    @property
    def net(self) -> Decimal:
        return self.advances - (self.expenses + self.fruit_spend)


@dataclass
class ConsolidatedTotals:
    total_advances: Decimal
    total_expenses: Decimal
    fruit_spend: Decimal
    total_collection_weight: Decimal
    agents: list[AgentPosition] = field(default_factory=list)

    @property
    def total_outflow(self) -> Decimal:
        return self.total_advances + self.total_expenses + self.fruit_spend

    @property
    def net(self) -> Decimal:
        return self.total_advances - (self.total_expenses + self.fruit_spend)

    @property
    def is_surplus(self) -> bool:
        return self.net >= 0

    @property
    def status_label(self) -> str:
        return SURPLUS_LABEL if self.is_surplus else DEFICIT_LABEL

    @property
    def display_amount(self) -> Decimal:
        return abs(self.net)


# ── Coercion ─────────────────────────────────────────────────

def to_decimal(value) -> Decimal:
    """Best-effort numeric coercion; anything unusable becomes 0."""
    if value is None or isinstance(value, bool):
        return ZERO
    if isinstance(value, Decimal):
        return value if value.is_finite() else ZERO
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, float):
        return Decimal(str(value)) if math.isfinite(value) else ZERO
    if isinstance(value, str):
        try:
            parsed = Decimal(value.strip())
        except InvalidOperation:
            return ZERO
        return parsed if parsed.is_finite() else ZERO
    return ZERO


# ── Per-collection figures ───────────────────────────────────

def collection_fruit_spend(collection: CollectionRecord) -> Decimal:
    if collection.items:
        return sum((item.line_total for item in collection.items), ZERO)
    return collection.stored_amount or ZERO


def price_breakdown(items: Iterable[ItemRecord]) -> PriceBreakdown:
    """Group weight slices by price, highest price first."""
    grouped: dict[Decimal, list[Decimal]] = {}
    for item in items:
        # Decimal hashing is value-based, so 2.5 and 2.50 share a bucket
        weight_amount = grouped.setdefault(item.price_per_kg, [ZERO, ZERO])
        weight_amount[0] += item.weight_kg
        weight_amount[1] += item.line_total

    buckets = [
        PriceBucket(price_per_kg=price, weight_kg=weight, amount=amount)
        for price, (weight, amount) in grouped.items()
    ]
    buckets.sort(key=lambda b: b.price_per_kg, reverse=True)
    return PriceBreakdown(
        buckets=buckets,
        total_weight=sum((b.weight_kg for b in buckets), ZERO),
        total_amount=sum((b.amount for b in buckets), ZERO),
    )


# ── Aggregation ──────────────────────────────────────────────

def aggregate(
    advances: Sequence[AdvanceRecord],
    expenses: Sequence[ExpenseRecord],
    collections: Sequence[CollectionRecord],
) -> ConsolidatedTotals:
    """Fold the three streams into overall and per-agent totals.

    Overall totals include every row; per-agent rows skip records with
    no agent id.
    """
    positions: dict[str, AgentPosition] = {}

    def _position(agent_id: str, agent_name: str | None) -> AgentPosition:
        pos = positions.get(agent_id)
        if pos is None:
            pos = AgentPosition(agent_id=agent_id, agent_name=agent_name or "Unknown")
            positions[agent_id] = pos
        elif pos.agent_name == "Unknown" and agent_name:
            pos.agent_name = agent_name
        return pos

    total_advances = ZERO
    for adv in advances:
        total_advances += adv.amount
        if adv.agent_id:
            _position(adv.agent_id, adv.agent_name).advances += adv.amount

    total_expenses = ZERO
    for exp in expenses:
        total_expenses += exp.amount
        if exp.agent_id:
            _position(exp.agent_id, exp.agent_name).expenses += exp.amount

    fruit_spend = ZERO
    total_weight = ZERO
    for col in collections:
        spend = collection_fruit_spend(col)
        fruit_spend += spend
        total_weight += col.weight_kg
        if col.agent_id:
            _position(col.agent_id, col.agent_name).fruit_spend += spend

    agents = sorted(
        positions.values(), key=lambda p: (-abs(p.net), p.agent_name.lower())
    )
    return ConsolidatedTotals(
        total_advances=total_advances,
        total_expenses=total_expenses,
        fruit_spend=fruit_spend,
        total_collection_weight=total_weight,
        agents=agents,
    )


def top_deficits(positions: Iterable[AgentPosition], limit: int = 5) -> list[AgentPosition]:
    """Most overdrawn agents first."""
    return sorted((p for p in positions if p.net < 0), key=lambda p: p.net)[:limit]


def top_surpluses(positions: Iterable[AgentPosition], limit: int = 5) -> list[AgentPosition]:
    """Agents holding the most unspent cash first."""
    return sorted(
        (p for p in positions if p.net > 0), key=lambda p: p.net, reverse=True
    )[:limit]


def action_notes(positions: Sequence[AgentPosition]) -> list[str]:
    notes = []
    if any(p.net < 0 for p in positions):
        notes.append(DEFICIT_NOTE)
    if any(p.net > 0 for p in positions):
        notes.append(SURPLUS_NOTE)
    if positions:
        notes.append(FORMULA_NOTE)
    return notes
