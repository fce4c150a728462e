"""Reports: dashboard, consolidated net position, period listings,
monthly reconciliation and per-agent statements.

Route overview:
  GET /dashboard                 — all-time KPIs, pending orders, alerts (admin)
  GET /consolidated              — JSON
  GET /consolidated.csv          — SUMMARY section as CSV
  GET /consolidated.pdf          — PDF
  GET /advances.csv|.pdf         — every advance in the period
  GET /collections.csv|.pdf      — every collection in the period
  GET /cash-balance.pdf          — advances, expenses and fruit spend detail
  GET /fruit-spend.pdf           — collections with amounts and price buckets
  GET /reconciliation            — one month's reconciliations, JSON
  GET /reconciliation.csv|.pdf   — the same as CSV / PDF
  GET /agents/{agent_id}.csv     — one CSV per table, zipped when several
  GET /agents/{agent_id}.pdf     — PDF statement
  GET /agents/{agent_id}         — JSON statement

AGENT users always get their own figures.
"""

import logging
from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from palmtrack.auth.deps import get_scope, require_permission, require_role
from palmtrack.auth.scope import AccessScope
from palmtrack.database import get_db
from palmtrack.exports.csv_export import (
    agent_statement_tables,
    consolidated_csv,
    consolidated_filename,
    period_advances_csv,
    period_collections_csv,
    period_filename,
    reconciliation_csv,
    reconciliation_filename,
    zip_tables,
)
from palmtrack.exports.documents import (
    advances_document,
    agent_statement_document,
    cash_balance_document,
    collections_document,
    consolidated_document,
    fruit_spend_document,
    reconciliation_document,
)
from palmtrack.exports.pdf_render import render_pdf
from palmtrack.models.user import User, UserRole
from palmtrack.schemas.collection import PriceBucketOut
from palmtrack.schemas.report import (
    AdvanceRowOut,
    AgentPositionOut,
    AgentStatementOut,
    CollectionRowOut,
    ConsolidatedReportOut,
    DashboardAlertOut,
    DashboardKpisOut,
    DashboardOut,
    ExpenseRowOut,
    OutstandingAgentOut,
    PendingOrderOut,
    ReconciliationReportOut,
    ReconciliationReportRowOut,
    TotalsOut,
)
from palmtrack.services import dashboard as dashboard_service
from palmtrack.services import reports as report_service
from palmtrack.services.reconciliation import month_from_query
from palmtrack.services.reports import CollectionLine

logger = logging.getLogger(__name__)

router = APIRouter()

NO_DATA = "No data to export"


def _collection_rows(lines: list[CollectionLine]) -> list[CollectionRowOut]:
    return [
        CollectionRowOut(
            id=line.record.id,
            agent_id=line.record.agent_id,
            agent_name=line.record.agent_name,
            date=line.record.date,
            weight_kg=line.record.weight_kg,
            driver_name=line.record.driver_name,
            fruit_spend=line.fruit_spend,
            breakdown=[PriceBucketOut.model_validate(b) for b in line.breakdown.buckets],
        )
        for line in lines
    ]


def _attachment(content, media_type: str, filename: str) -> Response:
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


# ── Dashboard ────────────────────────────────────────────────

@router.get("/dashboard", response_model=DashboardOut)
async def get_dashboard(
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(require_role(UserRole.ADMIN)),
    scope: AccessScope = Depends(get_scope),
):
    dashboard = await dashboard_service.load_dashboard(db, scope)
    return DashboardOut(
        kpis=DashboardKpisOut.model_validate(dashboard.kpis),
        outstanding_agents=[
            OutstandingAgentOut.model_validate(a) for a in dashboard.outstanding_agents
        ],
        pending_orders=[PendingOrderOut.model_validate(o) for o in dashboard.pending_orders],
        alerts=[DashboardAlertOut.model_validate(a) for a in dashboard.alerts],
    )


# ── Consolidated ─────────────────────────────────────────────

@router.get("/consolidated", response_model=ConsolidatedReportOut)
async def get_consolidated(
    date_from: date | None = Query(None),
    date_to: date | None = Query(None),
    agent_id: str | None = Query(None),
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(require_permission("reports.read")),
    scope: AccessScope = Depends(get_scope),
):
    report = await report_service.consolidated_report(db, scope, date_from, date_to, agent_id)
    return ConsolidatedReportOut(
        date_from=report.date_from,
        date_to=report.date_to,
        agent_label=report.agent_label,
        totals=TotalsOut.model_validate(report.totals),
        agents=[AgentPositionOut.model_validate(a) for a in report.totals.agents],
        top_deficits=[AgentPositionOut.model_validate(a) for a in report.deficits],
        top_surpluses=[AgentPositionOut.model_validate(a) for a in report.surpluses],
        action_notes=report.notes,
        advances=[AdvanceRowOut.model_validate(a) for a in report.inputs.advances],
        expenses=[ExpenseRowOut.model_validate(e) for e in report.inputs.expenses],
        collections=_collection_rows(report.collections),
    )


@router.get("/consolidated.csv")
async def export_consolidated_csv(
    date_from: date | None = Query(None),
    date_to: date | None = Query(None),
    agent_id: str | None = Query(None),
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(require_permission("reports.export")),
    scope: AccessScope = Depends(get_scope),
):
    report = await report_service.consolidated_report(db, scope, date_from, date_to, agent_id)
    if report.is_empty:
        raise HTTPException(status_code=404, detail=NO_DATA)
    return _attachment(
        consolidated_csv(report), "text/csv; charset=utf-8", consolidated_filename(report)
    )


@router.get("/consolidated.pdf")
async def export_consolidated_pdf(
    date_from: date | None = Query(None),
    date_to: date | None = Query(None),
    agent_id: str | None = Query(None),
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(require_permission("reports.export")),
    scope: AccessScope = Depends(get_scope),
):
    report = await report_service.consolidated_report(db, scope, date_from, date_to, agent_id)
    content = render_pdf(consolidated_document(report))
    return _attachment(content, "application/pdf", consolidated_filename(report, "pdf"))


# ── Period listings ──────────────────────────────────────────

@router.get("/advances.csv")
async def export_advances_csv(
    date_from: date | None = Query(None),
    date_to: date | None = Query(None),
    agent_id: str | None = Query(None),
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(require_permission("reports.export")),
    scope: AccessScope = Depends(get_scope),
):
    report = await report_service.consolidated_report(db, scope, date_from, date_to, agent_id)
    if not report.inputs.advances:
        raise HTTPException(status_code=404, detail=NO_DATA)
    return _attachment(
        period_advances_csv(report), "text/csv; charset=utf-8",
        period_filename("advances", report),
    )


@router.get("/advances.pdf")
async def export_advances_pdf(
    date_from: date | None = Query(None),
    date_to: date | None = Query(None),
    agent_id: str | None = Query(None),
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(require_permission("reports.export")),
    scope: AccessScope = Depends(get_scope),
):
    report = await report_service.consolidated_report(db, scope, date_from, date_to, agent_id)
    content = render_pdf(advances_document(report))
    return _attachment(content, "application/pdf", period_filename("advances", report, "pdf"))


@router.get("/collections.csv")
async def export_collections_csv(
    date_from: date | None = Query(None),
    date_to: date | None = Query(None),
    agent_id: str | None = Query(None),
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(require_permission("reports.export")),
    scope: AccessScope = Depends(get_scope),
):
    report = await report_service.consolidated_report(db, scope, date_from, date_to, agent_id)
    if not report.collections:
        raise HTTPException(status_code=404, detail=NO_DATA)
    return _attachment(
        period_collections_csv(report), "text/csv; charset=utf-8",
        period_filename("collections", report),
    )


@router.get("/collections.pdf")
async def export_collections_pdf(
    date_from: date | None = Query(None),
    date_to: date | None = Query(None),
    agent_id: str | None = Query(None),
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(require_permission("reports.export")),
    scope: AccessScope = Depends(get_scope),
):
    report = await report_service.consolidated_report(db, scope, date_from, date_to, agent_id)
    content = render_pdf(collections_document(report))
    return _attachment(
        content, "application/pdf", period_filename("collections", report, "pdf")
    )


@router.get("/cash-balance.pdf")
async def export_cash_balance_pdf(
    date_from: date | None = Query(None),
    date_to: date | None = Query(None),
    agent_id: str | None = Query(None),
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(require_permission("reports.export")),
    scope: AccessScope = Depends(get_scope),
):
    report = await report_service.consolidated_report(db, scope, date_from, date_to, agent_id)
    content = render_pdf(cash_balance_document(report))
    return _attachment(
        content, "application/pdf", period_filename("cash-balance", report, "pdf")
    )


@router.get("/fruit-spend.pdf")
async def export_fruit_spend_pdf(
    date_from: date | None = Query(None),
    date_to: date | None = Query(None),
    agent_id: str | None = Query(None),
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(require_permission("reports.export")),
    scope: AccessScope = Depends(get_scope),
):
    report = await report_service.consolidated_report(db, scope, date_from, date_to, agent_id)
    content = render_pdf(fruit_spend_document(report))
    return _attachment(
        content, "application/pdf", period_filename("fruit-spend", report, "pdf")
    )


# ── Monthly reconciliation ───────────────────────────────────

@router.get("/reconciliation", response_model=ReconciliationReportOut)
async def get_reconciliation_report(
    month: str = Query(..., description="YYYY-MM"),
    agent_id: str | None = Query(None),
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(require_permission("reports.read")),
    scope: AccessScope = Depends(get_scope),
):
    report = await report_service.reconciliation_report(
        db, scope, month_from_query(month), agent_id
    )
    return ReconciliationReportOut(
        month=report.month,
        agent_label=report.agent_label,
        total_advance=report.total_advance,
        total_weight_kg=report.total_weight_kg,
        rows=[
            ReconciliationReportRowOut(
                reconciliation_id=line.reconciliation.id,
                agent_id=line.reconciliation.agent_id,
                agent_name=line.reconciliation.agent_name,
                month=line.reconciliation.month,
                total_advance=line.reconciliation.total_advance,
                total_weight_kg=line.reconciliation.total_weight_kg,
                fruit_spend=line.fruit_spend,
                expenses=line.expenses,
                cash_balance=line.cash_balance,
                status=line.reconciliation.status,
            )
            for line in report.lines
        ],
    )


@router.get("/reconciliation.csv")
async def export_reconciliation_csv(
    month: str = Query(..., description="YYYY-MM"),
    agent_id: str | None = Query(None),
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(require_permission("reports.export")),
    scope: AccessScope = Depends(get_scope),
):
    report = await report_service.reconciliation_report(
        db, scope, month_from_query(month), agent_id
    )
    if report.is_empty:
        raise HTTPException(status_code=404, detail=NO_DATA)
    return _attachment(
        reconciliation_csv(report), "text/csv; charset=utf-8", reconciliation_filename(report)
    )


@router.get("/reconciliation.pdf")
async def export_reconciliation_pdf(
    month: str = Query(..., description="YYYY-MM"),
    agent_id: str | None = Query(None),
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(require_permission("reports.export")),
    scope: AccessScope = Depends(get_scope),
):
    report = await report_service.reconciliation_report(
        db, scope, month_from_query(month), agent_id
    )
    content = render_pdf(reconciliation_document(report))
    return _attachment(content, "application/pdf", reconciliation_filename(report, "pdf"))


# ── Agent statement ──────────────────────────────────────────

@router.get("/agents/{agent_id}.csv")
async def export_agent_csv(
    agent_id: str,
    date_from: date | None = Query(None),
    date_to: date | None = Query(None),
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(require_permission("reports.export")),
    scope: AccessScope = Depends(get_scope),
):
    statement = await report_service.agent_statement(db, scope, agent_id, date_from, date_to)
    tables = agent_statement_tables(statement)
    if not tables:
        raise HTTPException(status_code=404, detail=NO_DATA)
    if len(tables) == 1:
        (filename, text), = tables.items()
        return _attachment(text, "text/csv; charset=utf-8", filename)

    logger.debug("Zipping %d statement tables for agent %s", len(tables), agent_id)
    return _attachment(
        zip_tables(tables), "application/zip", f"agent-statement-{agent_id[:8]}.zip"
    )


@router.get("/agents/{agent_id}.pdf")
async def export_agent_pdf(
    agent_id: str,
    date_from: date | None = Query(None),
    date_to: date | None = Query(None),
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(require_permission("reports.export")),
    scope: AccessScope = Depends(get_scope),
):
    statement = await report_service.agent_statement(db, scope, agent_id, date_from, date_to)
    content = render_pdf(agent_statement_document(statement))
    return _attachment(content, "application/pdf", f"agent-statement-{agent_id[:8]}.pdf")


@router.get("/agents/{agent_id}", response_model=AgentStatementOut)
async def get_agent_statement(
    agent_id: str,
    date_from: date | None = Query(None),
    date_to: date | None = Query(None),
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(require_permission("reports.read")),
    scope: AccessScope = Depends(get_scope),
):
    statement = await report_service.agent_statement(db, scope, agent_id, date_from, date_to)
    return AgentStatementOut(
        agent_id=statement.agent.id,
        agent_name=statement.agent.full_name,
        date_from=statement.date_from,
        date_to=statement.date_to,
        totals=TotalsOut.model_validate(statement.totals),
        advances=[AdvanceRowOut.model_validate(a) for a in statement.inputs.advances],
        expenses=[ExpenseRowOut.model_validate(e) for e in statement.inputs.expenses],
        collections=_collection_rows(statement.collections),
    )
