"""Response schemas for reports, agent statements and the admin dashboard.

Built with from_attributes straight from the report dataclasses in
services/aggregation.py and services/reports.py.
"""

import datetime as dt
from decimal import Decimal

from pydantic import BaseModel

from palmtrack.schemas.collection import PriceBucketOut

_ATTRS = {"from_attributes": True}


class AgentPositionOut(BaseModel):
    agent_id: str
    agent_name: str
    advances: Decimal
    expenses: Decimal
    fruit_spend: Decimal
    net: Decimal

    model_config = _ATTRS


class TotalsOut(BaseModel):
    total_advances: Decimal
    total_expenses: Decimal
    fruit_spend: Decimal
    total_collection_weight: Decimal
    total_outflow: Decimal
    net: Decimal
    status_label: str
    display_amount: Decimal

    model_config = _ATTRS


class AdvanceRowOut(BaseModel):
    id: str
    agent_id: str
    agent_name: str | None = None
    date: dt.date | None = None
    amount: Decimal
    payment_method: str | None = None
    signed_by: str | None = None

    model_config = _ATTRS


class ExpenseRowOut(BaseModel):
    id: str
    agent_id: str
    agent_name: str | None = None
    date: dt.date | None = None
    expense_type: str
    amount: Decimal

    model_config = _ATTRS


class CollectionRowOut(BaseModel):
    id: str
    agent_id: str
    agent_name: str | None = None
    date: dt.date | None = None
    weight_kg: Decimal
    driver_name: str | None = None
    fruit_spend: Decimal
    breakdown: list[PriceBucketOut]


class ConsolidatedReportOut(BaseModel):
    date_from: dt.date | None = None
    date_to: dt.date | None = None
    agent_label: str
    totals: TotalsOut
    agents: list[AgentPositionOut]
    top_deficits: list[AgentPositionOut]
    top_surpluses: list[AgentPositionOut]
    action_notes: list[str]
    advances: list[AdvanceRowOut]
    expenses: list[ExpenseRowOut]
    collections: list[CollectionRowOut]


class AgentStatementOut(BaseModel):
    agent_id: str
    agent_name: str
    date_from: dt.date | None = None
    date_to: dt.date | None = None
    totals: TotalsOut
    advances: list[AdvanceRowOut]
    expenses: list[ExpenseRowOut]
    collections: list[CollectionRowOut]


# ── Monthly reconciliation report ────────────────────────────

class ReconciliationReportRowOut(BaseModel):
    reconciliation_id: str
    agent_id: str
    agent_name: str | None = None
    month: dt.date
    total_advance: Decimal
    total_weight_kg: Decimal
    fruit_spend: Decimal
    expenses: Decimal
    cash_balance: Decimal
    status: str


class ReconciliationReportOut(BaseModel):
    month: dt.date
    agent_label: str
    total_advance: Decimal
    total_weight_kg: Decimal
    rows: list[ReconciliationReportRowOut]


# ── Admin dashboard ──────────────────────────────────────────

class DashboardKpisOut(BaseModel):
    total_advances: Decimal
    total_expenses: Decimal
    fruit_spend: Decimal
    cash_balance: Decimal
    total_weight_kg: Decimal
    active_agents: int
    agents_with_outstanding: int
    outstanding_deliveries: int
    delivered_orders: int
    total_received: Decimal

    model_config = _ATTRS


class OutstandingAgentOut(BaseModel):
    agent_id: str
    agent_name: str
    status: str
    total_advances: Decimal
    total_weight_kg: Decimal
    last_activity: dt.date | None = None

    model_config = _ATTRS


class PendingOrderOut(BaseModel):
    id: str
    order_date: dt.date
    order_category: str
    delivery_status: str
    customer_name: str | None = None
    total_amount: Decimal
    amount_paid: Decimal
    balance_due: Decimal

    model_config = _ATTRS


class DashboardAlertOut(BaseModel):
    agent_id: str
    agent_name: str
    severity: str
    reason: str

    model_config = _ATTRS


class DashboardOut(BaseModel):
    kpis: DashboardKpisOut
    outstanding_agents: list[OutstandingAgentOut]
    pending_orders: list[PendingOrderOut]
    alerts: list[DashboardAlertOut]
