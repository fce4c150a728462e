"""CSV export for reports.

Writing goes through csv.writer (QUOTE_MINIMAL):
    - header row first
    - a value containing a comma, double quote, CR or LF is wrapped in
      double quotes, with embedded quotes doubled
    - None becomes an empty cell
    - rows are joined with "\n"

Multi-table exports (agent statements) are bundled as a zip archive.
"""

import csv
import io
import zipfile
from datetime import date
from decimal import Decimal
from typing import Any, Iterable, Sequence

from palmtrack.services.reports import (
    AgentStatement,
    ConsolidatedReport,
    ReconciliationReport,
)


def _csv_line(values: Sequence[Any]) -> str:
    # CRLF terminator so a bare CR inside a value is always quoted
    buf = io.StringIO()
    csv.writer(buf, lineterminator="\r\n").writerow(values)
    return buf.getvalue()[:-2]


def escape_csv_value(value: Any) -> str:
    if value is None or value == "":
        return ""
    return _csv_line([value])


def to_csv(headers: Sequence[str], rows: Iterable[Sequence[Any]]) -> str:
    lines = [_csv_line(headers)]
    lines.extend(_csv_line(row) for row in rows)
    return "\n".join(lines)


def parse_csv_text(text: str) -> list[list[str]]:
    """Parse CSV text produced by `to_csv` back into rows of strings."""
    return [row for row in csv.reader(io.StringIO(text, newline=""))]


def _fixed(value: Decimal) -> str:
    return f"{value:.2f}"


def _iso(value: date | None) -> str:
    return value.isoformat() if value else ""


# ── Consolidated ─────────────────────────────────────────────

def consolidated_summary_rows(report: ConsolidatedReport) -> list[tuple[str, str, str]]:
    t = report.totals
    return [
        ("SUMMARY", "Agent", report.agent_label),
        ("SUMMARY", "From", _iso(report.date_from)),
        ("SUMMARY", "To", _iso(report.date_to)),
        ("SUMMARY", "Total Advances", _fixed(t.total_advances)),
        ("SUMMARY", "Total Expenses", _fixed(t.total_expenses)),
        ("SUMMARY", "Total Amount Spent on Fruit", _fixed(t.fruit_spend)),
        ("SUMMARY", "Total Outflow", _fixed(t.total_outflow)),
        ("SUMMARY", "Total Collection Weight (kg)", _fixed(t.total_collection_weight)),
    ]


def consolidated_csv(report: ConsolidatedReport) -> str:
    return to_csv(["Section", "Field", "Value"], consolidated_summary_rows(report))


def consolidated_filename(report: ConsolidatedReport, ext: str = "csv") -> str:
    return f"edical-consolidated-{_iso(report.date_from)}-{_iso(report.date_to)}.{ext}"


# ── Agent statement ──────────────────────────────────────────

def advances_csv(statement: AgentStatement) -> str:
    return to_csv(
        ["Date", "Amount (GHS)", "Payment Method", "Signed By"],
        (
            [_iso(a.date), _fixed(a.amount), a.payment_method, a.signed_by or "-"]
            for a in statement.inputs.advances
        ),
    )


def collections_csv(statement: AgentStatement) -> str:
    """One row per priced item; collections without items get one row."""
    rows = []
    for line in statement.collections:
        c = line.record
        tail = [_fixed(c.weight_kg), _fixed(line.fruit_spend)]
        if c.items:
            for item in c.items:
                rows.append([
                    _iso(c.date), c.driver_name or "-",
                    _fixed(item.weight_kg), _fixed(item.price_per_kg),
                    _fixed(item.line_total), *tail,
                ])
        else:
            rows.append([_iso(c.date), c.driver_name or "-", _fixed(c.weight_kg), "", "", *tail])
    return to_csv(
        [
            "Date", "Driver", "Item Weight (kg)", "Item Price (GHS/kg)",
            "Line Total (GHS)", "Collection Total Weight (kg)",
            "Collection Total Amount (GHS)",
        ],
        rows,
    )


def expenses_csv(statement: AgentStatement) -> str:
    return to_csv(
        ["Date", "Expense Type", "Amount (GHS)"],
        ([_iso(e.date), e.expense_type, _fixed(e.amount)] for e in statement.inputs.expenses),
    )


def agent_statement_tables(statement: AgentStatement) -> dict[str, str]:
    """filename → CSV text for every non-empty table."""
    slug = statement.agent.full_name.strip().lower().replace(" ", "-") or statement.agent.id
    period = f"{_iso(statement.date_from)}-{_iso(statement.date_to)}"
    tables = {}
    if statement.inputs.advances:
        tables[f"{slug}-advances-{period}.csv"] = advances_csv(statement)
    if statement.inputs.collections:
        tables[f"{slug}-collections-{period}.csv"] = collections_csv(statement)
    if statement.inputs.expenses:
        tables[f"{slug}-expenses-{period}.csv"] = expenses_csv(statement)
    return tables


def zip_tables(tables: dict[str, str]) -> bytes:
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w", zipfile.ZIP_DEFLATED) as zf:
        for name, text in tables.items():
            zf.writestr(name, text)
    return buf.getvalue()


# ── Period listings (all agents) ─────────────────────────────

def period_filename(kind: str, report: ConsolidatedReport, ext: str = "csv") -> str:
    return f"edical-{kind}-{_iso(report.date_from)}-{_iso(report.date_to)}.{ext}"


def period_advances_csv(report: ConsolidatedReport) -> str:
    return to_csv(
        ["Date", "Agent Name", "Amount", "Payment Method", "Signed By"],
        (
            [_iso(a.date), a.agent_name or "Unknown", _fixed(a.amount),
             a.payment_method, a.signed_by or "-"]
            for a in report.inputs.advances
        ),
    )


def period_collections_csv(report: ConsolidatedReport) -> str:
    return to_csv(
        ["Date", "Agent Name", "Weight (kg)", "Driver", "Amount Spent (GHS)"],
        (
            [_iso(line.record.date), line.record.agent_name or "Unknown",
             _fixed(line.record.weight_kg), line.record.driver_name or "-",
             _fixed(line.fruit_spend)]
            for line in report.collections
        ),
    )


# ── Monthly reconciliation ───────────────────────────────────

def reconciliation_csv(report: ReconciliationReport) -> str:
    return to_csv(
        [
            "Month", "Agent", "Total Advance (GHS)", "Total Weight (kg)",
            "Total Amount Spent On Fruit (GHS)", "Total Expenses (GHS)",
            "Cash Balance (GHS)", "Status",
        ],
        (
            [
                line.reconciliation.month.strftime("%Y-%m"),
                line.reconciliation.agent_name or "Unknown",
                _fixed(line.reconciliation.total_advance),
                _fixed(line.reconciliation.total_weight_kg),
                _fixed(line.fruit_spend),
                _fixed(line.expenses),
                _fixed(line.cash_balance),
                line.reconciliation.status,
            ]
            for line in report.lines
        ),
    )


def reconciliation_filename(report: ReconciliationReport, ext: str = "csv") -> str:
    return f"edical-reconciliation-{report.month:%Y-%m}.{ext}"
