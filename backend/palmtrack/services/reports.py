"""Report assembly: consolidated net position, agent statements and the
monthly reconciliation report.

Loading goes through report_data.load_report_inputs; everything after
that is pure, so the same typed report feeds JSON, CSV and PDF output.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from palmtrack.auth.scope import AccessScope
from palmtrack.middleware.exceptions import ResourceNotFoundError
from palmtrack.models.agent import Agent
from palmtrack.models.reconciliation import MonthlyReconciliation
from palmtrack.services.aggregation import (
    ZERO,
    AgentPosition,
    CollectionRecord,
    ConsolidatedTotals,
    PriceBreakdown,
    PriceBucket,
    action_notes,
    aggregate,
    collection_fruit_spend,
    price_breakdown,
    top_deficits,
    top_surpluses,
)
from palmtrack.services.reconciliation import month_bounds
from palmtrack.services.report_data import ReportInputs, load_report_inputs

ALL_AGENTS = "All Agents"


@dataclass(frozen=True)
class CollectionLine:
    record: CollectionRecord
    fruit_spend: Decimal
    breakdown: PriceBreakdown


@dataclass
class ConsolidatedReport:
    date_from: date | None
    date_to: date | None
    agent_label: str
    inputs: ReportInputs
    totals: ConsolidatedTotals
    deficits: list[AgentPosition] = field(default_factory=list)
    surpluses: list[AgentPosition] = field(default_factory=list)
    notes: list[str] = field(default_factory=list)
    collections: list[CollectionLine] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return self.inputs.is_empty

    @property
    def price_buckets(self) -> list[PriceBucket]:
        """Period-wide price breakdown over every itemized collection."""
        return price_breakdown(
            item for c in self.inputs.collections for item in c.items
        ).buckets


@dataclass
class AgentStatement:
    agent: Agent
    date_from: date | None
    date_to: date | None
    inputs: ReportInputs
    totals: ConsolidatedTotals
    collections: list[CollectionLine] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return self.inputs.is_empty


def collection_lines(collections: list[CollectionRecord]) -> list[CollectionLine]:
    return [
        CollectionLine(
            record=c,
            fruit_spend=collection_fruit_spend(c),
            breakdown=price_breakdown(c.items),
        )
        for c in collections
    ]


def build_consolidated_report(
    inputs: ReportInputs,
    date_from: date | None,
    date_to: date | None,
    agent_label: str = ALL_AGENTS,
) -> ConsolidatedReport:
    totals = aggregate(inputs.advances, inputs.expenses, inputs.collections)
    return ConsolidatedReport(
        date_from=date_from,
        date_to=date_to,
        agent_label=agent_label,
        inputs=inputs,
        totals=totals,
        deficits=top_deficits(totals.agents),
        surpluses=top_surpluses(totals.agents),
        notes=action_notes(totals.agents),
        collections=collection_lines(inputs.collections),
    )


async def _get_agent(db: AsyncSession, agent_id: str) -> Agent:
    agent = (await db.execute(select(Agent).where(Agent.id == agent_id))).scalar_one_or_none()
    if not agent:
        raise ResourceNotFoundError("Agent", agent_id)
    return agent


async def consolidated_report(
    db: AsyncSession,
    scope: AccessScope,
    date_from: date | None = None,
    date_to: date | None = None,
    agent_id: str | None = None,
) -> ConsolidatedReport:
    # Agent logins always report on themselves
    if agent_id is None and not scope.is_admin:
        agent_id = scope.agent_id
    label = ALL_AGENTS
    if agent_id:
        scope.require_agent(agent_id)
        label = (await _get_agent(db, agent_id)).full_name
    inputs = await load_report_inputs(db, scope, date_from, date_to, agent_id)
    return build_consolidated_report(inputs, date_from, date_to, label)


async def agent_statement(
    db: AsyncSession,
    scope: AccessScope,
    agent_id: str,
    date_from: date | None = None,
    date_to: date | None = None,
) -> AgentStatement:
    scope.require_agent(agent_id)
    agent = await _get_agent(db, agent_id)
    inputs = await load_report_inputs(db, scope, date_from, date_to, agent_id)
    return AgentStatement(
        agent=agent,
        date_from=date_from,
        date_to=date_to,
        inputs=inputs,
        totals=aggregate(inputs.advances, inputs.expenses, inputs.collections),
        collections=collection_lines(inputs.collections),
    )


# ── Monthly reconciliation report ────────────────────────────

@dataclass(frozen=True)
class ReconciliationLine:
    """A stored reconciliation row plus the month's spend figures."""

    reconciliation: MonthlyReconciliation
    fruit_spend: Decimal
    expenses: Decimal

    @property
    def cash_balance(self) -> Decimal:
        return self.reconciliation.total_advance - (self.expenses + self.fruit_spend)


@dataclass
class ReconciliationReport:
    month: date
    agent_label: str
    lines: list[ReconciliationLine] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.lines

    @property
    def total_advance(self) -> Decimal:
        return sum((line.reconciliation.total_advance for line in self.lines), ZERO)

    @property
    def total_weight_kg(self) -> Decimal:
        return sum((line.reconciliation.total_weight_kg for line in self.lines), ZERO)


async def reconciliation_report(
    db: AsyncSession,
    scope: AccessScope,
    month: date,
    agent_id: str | None = None,
) -> ReconciliationReport:
    """Reconciliation rows for one month, with fruit spend and expenses
    recomputed from that month's records."""
    if agent_id is None and not scope.is_admin:
        agent_id = scope.agent_id
    label = ALL_AGENTS
    if agent_id:
        scope.require_agent(agent_id)
        label = (await _get_agent(db, agent_id)).full_name

    start, end = month_bounds(month)
    stmt = scope.restrict(
        select(MonthlyReconciliation)
        .join(Agent, Agent.id == MonthlyReconciliation.agent_id)
        .where(MonthlyReconciliation.month == start)
        .order_by(Agent.full_name),
        MonthlyReconciliation.agent_id,
    )
    if agent_id:
        stmt = stmt.where(MonthlyReconciliation.agent_id == agent_id)
    rows = (await db.execute(stmt)).scalars().all()

    lines = []
    if rows:
        inputs = await load_report_inputs(db, scope, start, end, agent_id)
        positions = {
            p.agent_id: p
            for p in aggregate(inputs.advances, inputs.expenses, inputs.collections).agents
        }
        for row in rows:
            pos = positions.get(row.agent_id)
            lines.append(ReconciliationLine(
                reconciliation=row,
                fruit_spend=pos.fruit_spend if pos else ZERO,
                expenses=pos.expenses if pos else ZERO,
            ))
    return ReconciliationReport(month=start, agent_label=label, lines=lines)
