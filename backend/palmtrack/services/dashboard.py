"""Admin dashboard — all-time KPIs, outstanding agents, pending orders, alerts.

Money totals reuse the report loader, so the dashboard cash balance is
the same advances − (expenses + fruit spend) the consolidated report
shows for an unbounded period.

Alert rules (evaluated against `today`):
    warning  advance in the last 7 days, no collection in the last 7 days
    error    advances outstanding and no activity for 14 days or more
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from palmtrack.auth.scope import AccessScope
from palmtrack.models.agent import Agent
from palmtrack.models.order import Order, Payment
from palmtrack.services.aggregation import ZERO, aggregate
from palmtrack.services.report_data import ReportInputs, load_report_inputs

logger = logging.getLogger(__name__)

OUTSTANDING_DELIVERY = ("PENDING", "PARTIALLY_DELIVERED")
RECENT_DAYS = 7
IDLE_DAYS = 14
TOP_OUTSTANDING = 5
PENDING_ORDERS_LIMIT = 10


@dataclass
class DashboardKpis:
    total_advances: Decimal = ZERO
    total_expenses: Decimal = ZERO
    fruit_spend: Decimal = ZERO
    cash_balance: Decimal = ZERO
    total_weight_kg: Decimal = ZERO
    active_agents: int = 0
    agents_with_outstanding: int = 0
    outstanding_deliveries: int = 0
    delivered_orders: int = 0
    total_received: Decimal = ZERO


@dataclass
class OutstandingAgent:
    agent_id: str
    agent_name: str
    status: str
    total_advances: Decimal
    total_weight_kg: Decimal
    last_activity: date | None


@dataclass
class DashboardAlert:
    agent_id: str
    agent_name: str
    severity: str
    reason: str


@dataclass
class Dashboard:
    kpis: DashboardKpis
    outstanding_agents: list[OutstandingAgent] = field(default_factory=list)
    pending_orders: list[Order] = field(default_factory=list)
    alerts: list[DashboardAlert] = field(default_factory=list)


def _activity_by_agent(inputs: ReportInputs):
    """agent_id → (advance total, weight total, last advance, last collection)."""
    stats: dict[str, list] = {}
    for adv in inputs.advances:
        s = stats.setdefault(adv.agent_id, [ZERO, ZERO, None, None])
        s[0] += adv.amount
        if adv.date and (s[2] is None or adv.date > s[2]):
            s[2] = adv.date
    for col in inputs.collections:
        s = stats.setdefault(col.agent_id, [ZERO, ZERO, None, None])
        s[1] += col.weight_kg
        if col.date and (s[3] is None or col.date > s[3]):
            s[3] = col.date
    return stats


def agent_alerts(
    agents: list[Agent], inputs: ReportInputs, today: date
) -> list[DashboardAlert]:
    recent_from = today - timedelta(days=RECENT_DAYS)
    recent_advance = {a.agent_id for a in inputs.advances if a.date and a.date >= recent_from}
    recent_collection = {
        c.agent_id for c in inputs.collections if c.date and c.date >= recent_from
    }
    stats = _activity_by_agent(inputs)

    alerts = []
    for agent in agents:
        if agent.id in recent_advance and agent.id not in recent_collection:
            alerts.append(DashboardAlert(
                agent_id=agent.id,
                agent_name=agent.full_name,
                severity="warning",
                reason="Received advance in last 7 days but no collections recorded",
            ))
        advances, _, last_advance, last_collection = stats.get(
            agent.id, [ZERO, ZERO, None, None]
        )
        last_activity = max((d for d in (last_advance, last_collection) if d), default=None)
        if advances > 0 and last_activity:
            idle = (today - last_activity).days
            if idle >= IDLE_DAYS:
                alerts.append(DashboardAlert(
                    agent_id=agent.id,
                    agent_name=agent.full_name,
                    severity="error",
                    reason=f"No activity for {idle} days with outstanding advances",
                ))
    return alerts


async def load_dashboard(
    db: AsyncSession, scope: AccessScope, today: date | None = None
) -> Dashboard:
    today = today or date.today()
    inputs = await load_report_inputs(db, scope)
    totals = aggregate(inputs.advances, inputs.expenses, inputs.collections)

    agents = list((await db.execute(select(Agent).order_by(Agent.full_name))).scalars().all())
    stats = _activity_by_agent(inputs)

    outstanding = []
    for agent in agents:
        advances, weight, last_advance, last_collection = stats.get(
            agent.id, [ZERO, ZERO, None, None]
        )
        outstanding.append(OutstandingAgent(
            agent_id=agent.id,
            agent_name=agent.full_name,
            status=agent.status,
            total_advances=advances,
            total_weight_kg=weight,
            last_activity=max((d for d in (last_advance, last_collection) if d), default=None),
        ))
    outstanding.sort(key=lambda a: a.total_advances, reverse=True)

    status_counts = dict((await db.execute(
        select(Order.delivery_status, func.count(Order.id)).group_by(Order.delivery_status)
    )).all())
    total_received = (await db.execute(
        select(func.coalesce(func.sum(Payment.amount), 0))
    )).scalar_one()

    pending = (await db.execute(
        select(Order)
        .where(Order.delivery_status.in_(OUTSTANDING_DELIVERY))
        .order_by(Order.order_date.desc(), Order.created_at.desc())
        .limit(PENDING_ORDERS_LIMIT)
    )).scalars().all()

    kpis = DashboardKpis(
        total_advances=totals.total_advances,
        total_expenses=totals.total_expenses,
        fruit_spend=totals.fruit_spend,
        cash_balance=totals.net,
        total_weight_kg=totals.total_collection_weight,
        active_agents=sum(1 for a in agents if a.status == "ACTIVE"),
        agents_with_outstanding=sum(1 for a in outstanding if a.total_advances > 0),
        outstanding_deliveries=sum(status_counts.get(s, 0) for s in OUTSTANDING_DELIVERY),
        delivered_orders=status_counts.get("DELIVERED", 0),
        total_received=Decimal(str(total_received)),
    )
    logger.debug(
        "Dashboard: %d agents, %d pending orders", len(agents), kpis.outstanding_deliveries
    )
    return Dashboard(
        kpis=kpis,
        outstanding_agents=outstanding[:TOP_OUTSTANDING],
        pending_orders=list(pending),
        alerts=agent_alerts(agents, inputs, today),
    )
