"""Tests for the dashboard, consolidated and period reports, the monthly
reconciliation report and agent statements."""

import io
import zipfile
from decimal import Decimal

import pytest
import pytest_asyncio
from httpx import AsyncClient
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from palmtrack.models.agent import Agent
from palmtrack.models.customer import Customer

PERIOD = {"date_from": "2026-01-01", "date_to": "2026-01-31"}


@pytest_asyncio.fixture
async def ledger(client: AsyncClient, admin_headers: dict, test_agent: Agent, other_agent: Agent):
    """Kwame overspends by 150; Ama holds 500 of unspent cash."""
    for agent_id, amount in ((test_agent.id, "1000"), (other_agent.id, "500")):
        await client.post(
            "/api/advances/",
            headers=admin_headers,
            json={"agent_id": agent_id, "advance_date": "2026-01-05", "amount": amount},
        )
    await client.post(
        "/api/expenses/batch",
        headers=admin_headers,
        json={
            "agent_id": test_agent.id,
            "expense_date": "2026-01-06",
            "lines": [{"expense_type": "Fuel, diesel", "amount": "150"}],
        },
    )
    await client.post(
        "/api/collections/",
        headers=admin_headers,
        json={
            "agent_id": test_agent.id, "collection_date": "2026-01-07",
            "pricing_mode": "breakdown",
            "rows": [
                {"weight_kg": "300", "price_per_kg": "2.50"},
                {"weight_kg": "100", "price_per_kg": "2.50"},
            ],
        },
    )


@pytest.mark.api
@pytest.mark.asyncio
class TestConsolidated:

    async def test_totals_and_positions(
        self, client: AsyncClient, admin_headers: dict, ledger, test_agent: Agent, other_agent: Agent
    ):
        response = await client.get("/api/reports/consolidated", params=PERIOD, headers=admin_headers)
        assert response.status_code == 200
        data = response.json()
        totals = data["totals"]
        assert data["agent_label"] == "All Agents"
        assert Decimal(totals["total_advances"]) == Decimal("1500")
        assert Decimal(totals["total_expenses"]) == Decimal("150")
        assert Decimal(totals["fruit_spend"]) == Decimal("1000")
        assert Decimal(totals["total_outflow"]) == Decimal("2650")
        assert Decimal(totals["total_collection_weight"]) == Decimal("400")
        assert totals["status_label"] == "CASH BALANCE (SURPLUS)"
        assert Decimal(totals["display_amount"]) == Decimal("350")

        assert [p["agent_id"] for p in data["agents"]] == [other_agent.id, test_agent.id]
        assert [p["agent_id"] for p in data["top_deficits"]] == [test_agent.id]
        assert [p["agent_id"] for p in data["top_surpluses"]] == [other_agent.id]
        assert len(data["action_notes"]) == 3

        collection = data["collections"][0]
        assert len(collection["breakdown"]) == 1
        assert Decimal(collection["breakdown"][0]["weight_kg"]) == Decimal("400")

    async def test_date_range_excludes_other_months(
        self, client: AsyncClient, admin_headers: dict, ledger
    ):
        response = await client.get(
            "/api/reports/consolidated",
            params={"date_from": "2026-02-01", "date_to": "2026-02-28"},
            headers=admin_headers,
        )
        totals = response.json()["totals"]
        assert Decimal(totals["total_advances"]) == Decimal("0")
        assert response.json()["action_notes"] == []

    async def test_agent_login_defaults_to_itself(
        self, client: AsyncClient, agent_headers: dict, ledger
    ):
        response = await client.get("/api/reports/consolidated", headers=agent_headers)
        data = response.json()
        assert data["agent_label"] == "Kwame Mensah"
        assert data["totals"]["status_label"] == "DEFICIT (OVERDRAWN)"
        assert Decimal(data["totals"]["display_amount"]) == Decimal("150")

    async def test_agent_login_cannot_pick_another_agent(
        self, client: AsyncClient, agent_headers: dict, other_agent: Agent
    ):
        response = await client.get(
            "/api/reports/consolidated", params={"agent_id": other_agent.id}, headers=agent_headers
        )
        assert response.status_code == 403

    async def test_csv_export(self, client: AsyncClient, admin_headers: dict, ledger):
        response = await client.get("/api/reports/consolidated.csv", params=PERIOD, headers=admin_headers)
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        assert "edical-consolidated-2026-01-01-2026-01-31.csv" in response.headers["content-disposition"]
        lines = response.text.split("\n")
        assert lines[0] == "Section,Field,Value"
        assert "SUMMARY,Total Outflow,2650.00" in lines

    async def test_csv_export_without_data(self, client: AsyncClient, admin_headers: dict):
        response = await client.get("/api/reports/consolidated.csv", headers=admin_headers)
        assert response.status_code == 404
        assert response.json()["error"]["message"] == "No data to export"

    async def test_pdf_export(self, client: AsyncClient, admin_headers: dict, ledger):
        response = await client.get("/api/reports/consolidated.pdf", params=PERIOD, headers=admin_headers)
        assert response.status_code == 200
        assert response.headers["content-type"] == "application/pdf"
        assert response.content.startswith(b"%PDF")


@pytest.mark.api
@pytest.mark.asyncio
class TestAgentStatement:

    async def test_json_statement(
        self, client: AsyncClient, admin_headers: dict, ledger, test_agent: Agent
    ):
        response = await client.get(
            f"/api/reports/agents/{test_agent.id}", params=PERIOD, headers=admin_headers
        )
        assert response.status_code == 200
        data = response.json()
        assert data["agent_name"] == "Kwame Mensah"
        assert len(data["advances"]) == 1
        assert data["expenses"][0]["expense_type"] == "Fuel, diesel"
        assert Decimal(data["collections"][0]["fruit_spend"]) == Decimal("1000")
        assert Decimal(data["totals"]["net"]) == Decimal("-150")

    async def test_csv_tables_zipped(
        self, client: AsyncClient, admin_headers: dict, ledger, test_agent: Agent
    ):
        response = await client.get(
            f"/api/reports/agents/{test_agent.id}.csv", params=PERIOD, headers=admin_headers
        )
        assert response.status_code == 200
        assert response.headers["content-type"] == "application/zip"
        with zipfile.ZipFile(io.BytesIO(response.content)) as archive:
            names = sorted(archive.namelist())
            expenses = archive.read("kwame-mensah-expenses-2026-01-01-2026-01-31.csv").decode()
        assert names == [
            "kwame-mensah-advances-2026-01-01-2026-01-31.csv",
            "kwame-mensah-collections-2026-01-01-2026-01-31.csv",
            "kwame-mensah-expenses-2026-01-01-2026-01-31.csv",
        ]
        assert expenses.split("\n")[1] == '2026-01-06,"Fuel, diesel",150.00'

    async def test_single_table_is_plain_csv(
        self, client: AsyncClient, admin_headers: dict, ledger, other_agent: Agent
    ):
        response = await client.get(
            f"/api/reports/agents/{other_agent.id}.csv", params=PERIOD, headers=admin_headers
        )
        assert response.headers["content-type"].startswith("text/csv")
        assert "ama-owusu-advances-2026-01-01-2026-01-31.csv" in response.headers["content-disposition"]
        assert response.text.split("\n")[1].startswith("2026-01-05,500.00,CASH")

    async def test_csv_without_data(
        self, client: AsyncClient, admin_headers: dict, test_agent: Agent
    ):
        response = await client.get(f"/api/reports/agents/{test_agent.id}.csv", headers=admin_headers)
        assert response.status_code == 404

    async def test_pdf_statement(
        self, client: AsyncClient, agent_headers: dict, ledger, test_agent: Agent
    ):
        response = await client.get(f"/api/reports/agents/{test_agent.id}.pdf", headers=agent_headers)
        assert response.status_code == 200
        assert response.content.startswith(b"%PDF")

    async def test_agent_cannot_read_other_statement(
        self, client: AsyncClient, agent_headers: dict, other_agent: Agent
    ):
        response = await client.get(f"/api/reports/agents/{other_agent.id}", headers=agent_headers)
        assert response.status_code == 403

    async def test_unknown_agent(self, client: AsyncClient, admin_headers: dict):
        response = await client.get("/api/reports/agents/missing", headers=admin_headers)
        assert response.status_code == 404


def _fail_reads(monkeypatch, table_name: str) -> None:
    """Make every SELECT over `table_name` raise OperationalError."""
    original = AsyncSession.execute

    async def execute(self, statement, *args, **kwargs):
        froms = statement.get_final_froms() if hasattr(statement, "get_final_froms") else []
        if any(getattr(f, "name", None) == table_name for f in froms):
            raise OperationalError(str(statement), {}, Exception("connection reset"))
        return await original(self, statement, *args, **kwargs)

    monkeypatch.setattr(AsyncSession, "execute", execute)


@pytest.mark.api
@pytest.mark.asyncio
class TestReportSources:

    @pytest.mark.parametrize("table_name, source", [
        ("cash_advances", "cash advances"),
        ("agent_expenses", "expenses"),
        ("fruit_collections", "fruit collections"),
    ])
    async def test_source_failure_aborts_report(
        self, client: AsyncClient, admin_headers: dict, ledger, monkeypatch, table_name, source
    ):
        _fail_reads(monkeypatch, table_name)
        response = await client.get("/api/reports/consolidated", params=PERIOD, headers=admin_headers)
        assert response.status_code == 502
        error = response.json()["error"]
        assert error["code"] == "REPORT_SOURCE_ERROR"
        assert error["message"].startswith(f"Failed to load {source}")

    async def test_item_failure_falls_back_to_stored_amount(
        self, client: AsyncClient, admin_headers: dict, ledger, monkeypatch
    ):
        _fail_reads(monkeypatch, "fruit_collection_items")
        response = await client.get("/api/reports/consolidated", params=PERIOD, headers=admin_headers)
        assert response.status_code == 200
        data = response.json()
        assert Decimal(data["totals"]["fruit_spend"]) == Decimal("1000")
        assert data["collections"][0]["breakdown"] == []
        assert Decimal(data["collections"][0]["fruit_spend"]) == Decimal("1000")


@pytest.mark.api
@pytest.mark.asyncio
class TestPeriodExports:

    async def test_advances_csv(self, client: AsyncClient, admin_headers: dict, ledger):
        response = await client.get("/api/reports/advances.csv", params=PERIOD, headers=admin_headers)
        assert response.status_code == 200
        assert "edical-advances-2026-01-01-2026-01-31.csv" in response.headers["content-disposition"]
        lines = response.text.split("\n")
        assert lines[0] == "Date,Agent Name,Amount,Payment Method,Signed By"
        assert sorted(lines[1:]) == [
            "2026-01-05,Ama Owusu,500.00,CASH,-",
            "2026-01-05,Kwame Mensah,1000.00,CASH,-",
        ]

    async def test_collections_csv(self, client: AsyncClient, admin_headers: dict, ledger):
        response = await client.get("/api/reports/collections.csv", params=PERIOD, headers=admin_headers)
        lines = response.text.split("\n")
        assert lines[0] == "Date,Agent Name,Weight (kg),Driver,Amount Spent (GHS)"
        assert lines[1:] == ["2026-01-07,Kwame Mensah,400.00,-,1000.00"]

    async def test_listing_without_data(self, client: AsyncClient, admin_headers: dict):
        response = await client.get("/api/reports/collections.csv", headers=admin_headers)
        assert response.status_code == 404
        assert response.json()["error"]["message"] == "No data to export"

    @pytest.mark.parametrize("kind", ["advances", "collections", "cash-balance", "fruit-spend"])
    async def test_pdfs(self, client: AsyncClient, admin_headers: dict, ledger, kind):
        response = await client.get(f"/api/reports/{kind}.pdf", params=PERIOD, headers=admin_headers)
        assert response.status_code == 200
        assert f"edical-{kind}-2026-01-01-2026-01-31.pdf" in response.headers["content-disposition"]
        assert response.content.startswith(b"%PDF")


@pytest_asyncio.fixture
async def january_reconciled(client: AsyncClient, admin_headers: dict, ledger):
    response = await client.post(
        "/api/reconciliations/generate-all", params={"month": "2026-01"}, headers=admin_headers
    )
    assert response.status_code == 200


@pytest.mark.api
@pytest.mark.asyncio
class TestReconciliationReport:

    async def test_json_rows(
        self, client: AsyncClient, admin_headers: dict, january_reconciled, test_agent: Agent
    ):
        response = await client.get(
            "/api/reports/reconciliation", params={"month": "2026-01"}, headers=admin_headers
        )
        assert response.status_code == 200
        data = response.json()
        assert data["month"] == "2026-01-01"
        assert Decimal(data["total_advance"]) == Decimal("1500")
        assert Decimal(data["total_weight_kg"]) == Decimal("400")
        assert [r["agent_name"] for r in data["rows"]] == ["Ama Owusu", "Kwame Mensah"]
        kwame = data["rows"][1]
        assert kwame["agent_id"] == test_agent.id
        assert Decimal(kwame["fruit_spend"]) == Decimal("1000")
        assert Decimal(kwame["expenses"]) == Decimal("150")
        assert Decimal(kwame["cash_balance"]) == Decimal("-150")
        assert kwame["status"] == "OPEN"

    async def test_csv(self, client: AsyncClient, admin_headers: dict, january_reconciled):
        response = await client.get(
            "/api/reports/reconciliation.csv", params={"month": "2026-01"}, headers=admin_headers
        )
        assert response.status_code == 200
        assert "edical-reconciliation-2026-01.csv" in response.headers["content-disposition"]
        lines = response.text.split("\n")
        assert lines[0] == (
            "Month,Agent,Total Advance (GHS),Total Weight (kg),"
            "Total Amount Spent On Fruit (GHS),Total Expenses (GHS),Cash Balance (GHS),Status"
        )
        assert lines[1:] == [
            "2026-01,Ama Owusu,500.00,0.00,0.00,0.00,500.00,OPEN",
            "2026-01,Kwame Mensah,1000.00,400.00,1000.00,150.00,-150.00,OPEN",
        ]

    async def test_pdf(self, client: AsyncClient, admin_headers: dict, january_reconciled):
        response = await client.get(
            "/api/reports/reconciliation.pdf", params={"month": "2026-01"}, headers=admin_headers
        )
        assert response.status_code == 200
        assert response.content.startswith(b"%PDF")

    async def test_empty_month_csv(self, client: AsyncClient, admin_headers: dict, january_reconciled):
        response = await client.get(
            "/api/reports/reconciliation.csv", params={"month": "2026-02"}, headers=admin_headers
        )
        assert response.status_code == 404

    async def test_invalid_month(self, client: AsyncClient, admin_headers: dict):
        response = await client.get(
            "/api/reports/reconciliation", params={"month": "2026-13"}, headers=admin_headers
        )
        assert response.status_code == 422
        assert response.json()["error"]["code"] == "INVALID_MONTH"

    async def test_agent_sees_own_row(
        self, client: AsyncClient, agent_headers: dict, january_reconciled
    ):
        response = await client.get(
            "/api/reports/reconciliation", params={"month": "2026-01"}, headers=agent_headers
        )
        data = response.json()
        assert data["agent_label"] == "Kwame Mensah"
        assert [r["agent_name"] for r in data["rows"]] == ["Kwame Mensah"]


@pytest.mark.api
@pytest.mark.asyncio
class TestDashboard:

    async def test_kpis(
        self,
        client: AsyncClient,
        admin_headers: dict,
        ledger,
        test_customer: Customer,
        test_agent: Agent,
        other_agent: Agent,
    ):
        response = await client.post(
            "/api/orders/",
            headers=admin_headers,
            json={
                "customer_id": test_customer.id,
                "order_category": "CEMENT",
                "order_date": "2026-04-01",
                "items": [{"item_type": "cement", "quantity": "10", "unit_price": "95"}],
                "amount_paid": "400",
            },
        )
        assert response.status_code == 201

        response = await client.get("/api/reports/dashboard", headers=admin_headers)
        assert response.status_code == 200
        data = response.json()
        kpis = data["kpis"]
        assert Decimal(kpis["total_advances"]) == Decimal("1500")
        assert Decimal(kpis["total_expenses"]) == Decimal("150")
        assert Decimal(kpis["fruit_spend"]) == Decimal("1000")
        assert Decimal(kpis["cash_balance"]) == Decimal("350")
        assert Decimal(kpis["total_weight_kg"]) == Decimal("400")
        assert kpis["active_agents"] == 2
        assert kpis["agents_with_outstanding"] == 2
        assert kpis["outstanding_deliveries"] == 1
        assert kpis["delivered_orders"] == 0
        assert Decimal(kpis["total_received"]) == Decimal("400")

        assert [a["agent_id"] for a in data["outstanding_agents"]] == [test_agent.id, other_agent.id]
        assert data["outstanding_agents"][0]["last_activity"] == "2026-01-07"
        assert data["pending_orders"][0]["customer_name"] == "Yaw Boateng"
        assert Decimal(data["pending_orders"][0]["balance_due"]) == Decimal("550")

    async def test_admin_only(self, client: AsyncClient, agent_headers: dict):
        response = await client.get("/api/reports/dashboard", headers=agent_headers)
        assert response.status_code == 403
