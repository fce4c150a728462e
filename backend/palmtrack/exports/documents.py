"""Printable document model and builders.

A `ReportDocument` is a plain description of a printed page: title,
summary pairs, tables and notes.  Builders here turn typed report and
order data into documents; pdf_render.py draws them.  Keeping the two
apart lets the content be tested without parsing PDF bytes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal

from palmtrack.config import settings
from palmtrack.models.order import Receipt
from palmtrack.services.orders import OrderBundle
from palmtrack.services.reports import (
    AgentStatement,
    ConsolidatedReport,
    ReconciliationReport,
)

ORDER_CATEGORY_LABELS = {
    "BLOCKS": "Blocks",
    "CEMENT": "Cement",
    "PALM_FRUIT": "Palm Fruit",
}


@dataclass
class DocumentTable:
    title: str
    headers: list[str]
    rows: list[list[str]]
    # Column indexes rendered right-aligned (amounts, weights)
    numeric_columns: tuple[int, ...] = ()
    empty_text: str = "No records"


@dataclass
class ReportDocument:
    title: str
    subtitle: str | None = None
    summary: list[tuple[str, str]] = field(default_factory=list)
    sections: list[DocumentTable] = field(default_factory=list)
    notes: list[str] = field(default_factory=list)
    footer: str | None = None


# ── Formatting ───────────────────────────────────────────────

def format_money(value: Decimal | int | float | None) -> str:
    """GH₵ 1,234.56 (negative amounts get a leading minus)."""
    amount = Decimal(str(value or 0))
    sign = "-" if amount < 0 else ""
    return f"{sign}{settings.currency_symbol} {abs(amount):,.2f}"


def format_kg(value: Decimal | None) -> str:
    return f"{Decimal(str(value or 0)):,.2f} kg"


def format_date(value: date | datetime | None) -> str:
    if value is None:
        return "-"
    return value.strftime("%d %b %Y")


def _period(date_from: date | None, date_to: date | None) -> str:
    if not date_from and not date_to:
        return "All dates"
    return f"{format_date(date_from)} to {format_date(date_to)}"


def _footer() -> str:
    return f"{settings.company_name} · Generated {datetime.utcnow():%d %b %Y %H:%M} UTC"


# ── Consolidated report ──────────────────────────────────────

def _position_table(title: str, positions) -> DocumentTable:
    return DocumentTable(
        title=title,
        headers=["Agent", "Advances", "Expenses", "Fruit Spend", "Net"],
        rows=[
            [
                p.agent_name,
                format_money(p.advances),
                format_money(p.expenses),
                format_money(p.fruit_spend),
                format_money(p.net),
            ]
            for p in positions
        ],
        numeric_columns=(1, 2, 3, 4),
        empty_text="None",
    )


def consolidated_document(report: ConsolidatedReport) -> ReportDocument:
    t = report.totals
    return ReportDocument(
        title=f"{settings.company_name}: Consolidated Report",
        subtitle=f"{report.agent_label} · {_period(report.date_from, report.date_to)}",
        summary=[
            ("Total Advances", format_money(t.total_advances)),
            ("Total Expenses", format_money(t.total_expenses)),
            ("Total Amount Spent on Fruit", format_money(t.fruit_spend)),
            ("Total Outflow", format_money(t.total_outflow)),
            ("Total Collection Weight", format_kg(t.total_collection_weight)),
            (t.status_label, format_money(t.display_amount)),
        ],
        sections=[
            _position_table("Agent Positions", t.agents),
            _position_table("Top Deficits", report.deficits),
            _position_table("Top Surpluses", report.surpluses),
        ],
        notes=list(report.notes),
        footer=_footer(),
    )


# ── Agent statement ──────────────────────────────────────────

def agent_statement_document(statement: AgentStatement) -> ReportDocument:
    t = statement.totals
    agent = statement.agent
    location = agent.location or ", ".join(p for p in (agent.community, agent.region) if p)

    collection_rows = []
    for line in statement.collections:
        c = line.record
        prices = ", ".join(
            f"{format_kg(b.weight_kg)} @ {format_money(b.price_per_kg)}"
            for b in line.breakdown.buckets
        ) or "-"
        collection_rows.append([
            format_date(c.date), c.driver_name or "-", format_kg(c.weight_kg),
            prices, format_money(line.fruit_spend),
        ])

    return ReportDocument(
        title=f"Agent Statement: {agent.full_name}",
        subtitle=" · ".join(
            part for part in (location, agent.phone, _period(statement.date_from, statement.date_to))
            if part
        ),
        summary=[
            ("Total Advances", format_money(t.total_advances)),
            ("Total Expenses", format_money(t.total_expenses)),
            ("Fruit Spend", format_money(t.fruit_spend)),
            ("Total Weight", format_kg(t.total_collection_weight)),
            (t.status_label, format_money(t.display_amount)),
        ],
        sections=[
            DocumentTable(
                title="Cash Advances",
                headers=["Date", "Amount", "Method", "Signed By"],
                rows=[
                    [format_date(a.date), format_money(a.amount), a.payment_method or "-", a.signed_by or "-"]
                    for a in statement.inputs.advances
                ],
                numeric_columns=(1,),
            ),
            DocumentTable(
                title="Fruit Collections",
                headers=["Date", "Driver", "Weight", "Price Breakdown", "Amount"],
                rows=collection_rows,
                numeric_columns=(2, 4),
            ),
            DocumentTable(
                title="Expenses",
                headers=["Date", "Type", "Amount"],
                rows=[
                    [format_date(e.date), e.expense_type, format_money(e.amount)]
                    for e in statement.inputs.expenses
                ],
                numeric_columns=(2,),
            ),
        ],
        footer=_footer(),
    )


# ── Period listings and detail reports ───────────────────────

def _advance_rows(report: ConsolidatedReport) -> list[list[str]]:
    return [
        [format_date(a.date), a.agent_name or "Unknown", format_money(a.amount),
         a.payment_method or "-", a.signed_by or "-"]
        for a in report.inputs.advances
    ]


def _spend_rows(report: ConsolidatedReport) -> list[list[str]]:
    return [
        [format_date(line.record.date), line.record.agent_name or "Unknown",
         format_kg(line.record.weight_kg), format_money(line.fruit_spend)]
        for line in report.collections
    ]


def advances_document(report: ConsolidatedReport) -> ReportDocument:
    return ReportDocument(
        title=f"{settings.company_name}: Cash Advances Report",
        subtitle=f"{report.agent_label} · {_period(report.date_from, report.date_to)}",
        summary=[
            ("Total Records", str(len(report.inputs.advances))),
            ("Total Amount", format_money(report.totals.total_advances)),
        ],
        sections=[
            DocumentTable(
                title="Cash Advances",
                headers=["Date", "Agent", "Amount", "Method", "Signed By"],
                rows=_advance_rows(report),
                numeric_columns=(2,),
            ),
        ],
        footer=_footer(),
    )


def collections_document(report: ConsolidatedReport) -> ReportDocument:
    return ReportDocument(
        title=f"{settings.company_name}: Fruit Collections Report",
        subtitle=f"{report.agent_label} · {_period(report.date_from, report.date_to)}",
        summary=[
            ("Total Records", str(len(report.collections))),
            ("Total Weight", format_kg(report.totals.total_collection_weight)),
        ],
        sections=[
            DocumentTable(
                title="Fruit Collections",
                headers=["Date", "Agent", "Weight", "Driver"],
                rows=[
                    [format_date(line.record.date), line.record.agent_name or "Unknown",
                     format_kg(line.record.weight_kg), line.record.driver_name or "-"]
                    for line in report.collections
                ],
                numeric_columns=(2,),
            ),
        ],
        footer=_footer(),
    )


def cash_balance_document(report: ConsolidatedReport) -> ReportDocument:
    """Every advance, expense and collection behind the cash balance."""
    t = report.totals
    return ReportDocument(
        title=f"{settings.company_name}: Cash Balance Details",
        subtitle=f"{report.agent_label} · {_period(report.date_from, report.date_to)}",
        summary=[
            ("Total Advances", format_money(t.total_advances)),
            ("Total Expenses", format_money(t.total_expenses)),
            ("Amount Spent on Fruit", format_money(t.fruit_spend)),
            ("Cash Balance", format_money(t.net)),
        ],
        sections=[
            DocumentTable(
                title=f"Advances ({len(report.inputs.advances)} items)",
                headers=["Date", "Agent", "Amount", "Method", "Signed By"],
                rows=_advance_rows(report),
                numeric_columns=(2,),
            ),
            DocumentTable(
                title=f"Expenses ({len(report.inputs.expenses)} items)",
                headers=["Date", "Agent", "Type", "Amount"],
                rows=[
                    [format_date(e.date), e.agent_name or "Unknown", e.expense_type,
                     format_money(e.amount)]
                    for e in report.inputs.expenses
                ],
                numeric_columns=(3,),
            ),
            DocumentTable(
                title=f"Amount Spent On Fruit ({len(report.collections)} items)",
                headers=["Date", "Agent", "Weight", "Amount"],
                rows=_spend_rows(report),
                numeric_columns=(2, 3),
            ),
        ],
        footer=_footer(),
    )


def fruit_spend_document(report: ConsolidatedReport) -> ReportDocument:
    return ReportDocument(
        title=f"{settings.company_name}: Amount Spent on Fruit Details",
        subtitle=f"{report.agent_label} · {_period(report.date_from, report.date_to)}",
        summary=[
            ("Total Collections", str(len(report.collections))),
            ("Total Amount Spent", format_money(report.totals.fruit_spend)),
        ],
        sections=[
            DocumentTable(
                title="Fruit Collections",
                headers=["Date", "Agent", "Weight", "Amount"],
                rows=_spend_rows(report),
                numeric_columns=(2, 3),
            ),
            DocumentTable(
                title="Price Breakdown",
                headers=["Price per kg", "Weight", "Amount"],
                rows=[
                    [format_money(b.price_per_kg), format_kg(b.weight_kg), format_money(b.amount)]
                    for b in report.price_buckets
                ],
                numeric_columns=(0, 1, 2),
            ),
        ],
        footer=_footer(),
    )


# ── Monthly reconciliation ───────────────────────────────────

def reconciliation_document(report: ReconciliationReport) -> ReportDocument:
    return ReportDocument(
        title=f"{settings.company_name}: Monthly Reconciliation Statement",
        subtitle=f"{report.agent_label} · {report.month:%B %Y}",
        summary=[
            ("Total Agents", str(len(report.lines))),
            ("Total Advances", format_money(report.total_advance)),
            ("Total Weight Collected", format_kg(report.total_weight_kg)),
        ],
        sections=[
            DocumentTable(
                title="Agents",
                headers=["Agent", "Advances", "Weight", "Fruit Spend", "Expenses",
                         "Cash Balance", "Status"],
                rows=[
                    [
                        line.reconciliation.agent_name or "Unknown",
                        format_money(line.reconciliation.total_advance),
                        format_kg(line.reconciliation.total_weight_kg),
                        format_money(line.fruit_spend),
                        format_money(line.expenses),
                        format_money(line.cash_balance),
                        line.reconciliation.status,
                    ]
                    for line in report.lines
                ],
                numeric_columns=(1, 2, 3, 4, 5),
            ),
        ],
        footer=_footer(),
    )


# ── Orders ───────────────────────────────────────────────────

def _item_rows(bundle: OrderBundle) -> list[list[str]]:
    rows = []
    for item in bundle.order.items:
        qty = format_kg(item.weight_kg) if item.weight_kg else f"{item.quantity:,.0f}"
        rows.append([
            item.description or item.item_type,
            qty,
            format_money(item.unit_price),
            format_money(item.line_total),
        ])
    return rows


def _customer_summary(bundle: OrderBundle) -> list[tuple[str, str]]:
    customer = bundle.order.customer
    pairs = [("Customer", customer.full_name if customer else "-")]
    if customer and customer.phone:
        pairs.append(("Phone", customer.phone))
    if customer and customer.delivery_address:
        pairs.append(("Delivery Address", customer.delivery_address))
    return pairs


def receipt_document(bundle: OrderBundle, receipt: Receipt) -> ReportDocument:
    order = bundle.order
    summary = [
        ("Receipt Number", receipt.receipt_number),
        ("Date Issued", format_date(receipt.issued_at)),
        *_customer_summary(bundle),
        ("Category", ORDER_CATEGORY_LABELS.get(order.order_category, order.order_category)),
        ("Subtotal", format_money(order.subtotal)),
    ]
    if order.discount:
        summary.append(("Discount", format_money(order.discount)))
    summary += [
        ("Total", format_money(order.total_amount)),
        ("Amount Paid", format_money(order.amount_paid)),
        ("Balance Due", format_money(order.balance_due)),
    ]
    notes = [f"VOID: {receipt.void_reason or 'voided'}"] if receipt.voided_at else []
    return ReportDocument(
        title=settings.company_name,
        subtitle="Official Receipt",
        summary=summary,
        sections=[
            DocumentTable(
                title="Items",
                headers=["Description", "Qty / Weight", "Unit Price", "Amount"],
                rows=_item_rows(bundle),
                numeric_columns=(1, 2, 3),
            ),
            DocumentTable(
                title="Payments",
                headers=["Date", "Method", "Reference", "Amount"],
                rows=[
                    [format_date(p.payment_date), p.method, p.reference or "-", format_money(p.amount)]
                    for p in bundle.payments
                ],
                numeric_columns=(3,),
            ),
        ],
        notes=notes,
        footer="Thank you for your business.",
    )


def delivery_note_document(bundle: OrderBundle) -> ReportDocument:
    order = bundle.order
    notes = [e.notes for e in bundle.delivery_events if e.notes]
    return ReportDocument(
        title=settings.company_name,
        subtitle="Delivery Note",
        summary=[
            ("Order Date", format_date(order.order_date)),
            *_customer_summary(bundle),
            ("Status", order.delivery_status.replace("_", " ").title()),
            ("Delivery Date", format_date(order.delivery_date)),
            ("Delivered By", order.delivered_by or "-"),
        ],
        sections=[
            DocumentTable(
                title="Items",
                headers=["Description", "Qty / Weight"],
                rows=[row[:2] for row in _item_rows(bundle)],
                numeric_columns=(1,),
            ),
        ],
        notes=notes,
        footer="Received in good condition: ____________________  Date: __________",
    )
