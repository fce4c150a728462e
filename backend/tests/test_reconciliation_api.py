"""Tests for monthly agent reconciliation."""

from decimal import Decimal

import pytest
from httpx import AsyncClient

from palmtrack.config import settings
from palmtrack.models.agent import Agent


async def _seed_month(client, headers, agent_id):
    for day, amount in (("2026-01-05", "300"), ("2026-01-31", "200"), ("2026-02-01", "999")):
        await client.post(
            "/api/advances/",
            headers=headers,
            json={"agent_id": agent_id, "advance_date": day, "amount": amount},
        )
    await client.post(
        "/api/collections/",
        headers=headers,
        json={
            "agent_id": agent_id, "collection_date": "2026-01-10",
            "pricing_mode": "breakdown",
            "rows": [
                {"weight_kg": "100", "price_per_kg": "2"},
                {"weight_kg": "50", "price_per_kg": "3"},
            ],
        },
    )


async def _generate(client, headers, agent_id, month="2026-01"):
    response = await client.post(
        "/api/reconciliations/generate",
        headers=headers,
        json={"agent_id": agent_id, "month": month},
    )
    assert response.status_code == 200, response.text
    return response.json()


@pytest.mark.api
@pytest.mark.asyncio
class TestGenerate:

    async def test_totals_for_calendar_month(
        self, client: AsyncClient, admin_headers: dict, test_agent: Agent
    ):
        await _seed_month(client, admin_headers, test_agent.id)
        row = await _generate(client, admin_headers, test_agent.id)
        assert row["month"] == "2026-01-01"
        assert row["status"] == "OPEN"
        assert Decimal(row["total_advance"]) == Decimal("500")
        assert Decimal(row["total_weight_kg"]) == Decimal("150")

    async def test_any_day_normalizes_to_month(
        self, client: AsyncClient, admin_headers: dict, test_agent: Agent
    ):
        row = await _generate(client, admin_headers, test_agent.id, month="2026-01-17")
        assert row["month"] == "2026-01-01"

    async def test_regenerate_updates_same_row(
        self, client: AsyncClient, admin_headers: dict, test_agent: Agent
    ):
        first = await _generate(client, admin_headers, test_agent.id)
        await _seed_month(client, admin_headers, test_agent.id)
        second = await _generate(client, admin_headers, test_agent.id)

        assert second["id"] == first["id"]
        assert Decimal(second["total_advance"]) == Decimal("500")
        listing = await client.get("/api/reconciliations/", headers=admin_headers)
        assert listing.json()["total"] == 1

    async def test_preserve_policy_keeps_status(
        self, client: AsyncClient, admin_headers: dict, test_agent: Agent, monkeypatch
    ):
        monkeypatch.setattr(settings, "reconciliation_status_policy", "preserve")
        row = await _generate(client, admin_headers, test_agent.id)
        await client.patch(
            f"/api/reconciliations/{row['id']}", headers=admin_headers, json={"status": "closed"}
        )
        again = await _generate(client, admin_headers, test_agent.id)
        assert again["status"] == "CLOSED"

    async def test_reset_policy_reopens(
        self, client: AsyncClient, admin_headers: dict, test_agent: Agent, monkeypatch
    ):
        monkeypatch.setattr(settings, "reconciliation_status_policy", "reset")
        row = await _generate(client, admin_headers, test_agent.id)
        await client.patch(
            f"/api/reconciliations/{row['id']}", headers=admin_headers, json={"status": "RENDERED"}
        )
        again = await _generate(client, admin_headers, test_agent.id)
        assert again["status"] == "OPEN"

    async def test_generate_all_skips_inactive_agents(
        self,
        client: AsyncClient,
        admin_headers: dict,
        test_agent: Agent,
        other_agent: Agent,
    ):
        await client.patch(
            f"/api/agents/{other_agent.id}", headers=admin_headers, json={"status": "INACTIVE"}
        )
        response = await client.post(
            "/api/reconciliations/generate-all", params={"month": "2026-01"}, headers=admin_headers
        )
        assert response.status_code == 200
        assert [r["agent_id"] for r in response.json()] == [test_agent.id]

    async def test_invalid_month(self, client: AsyncClient, admin_headers: dict):
        response = await client.post(
            "/api/reconciliations/generate-all", params={"month": "2026-13"}, headers=admin_headers
        )
        assert response.status_code == 422
        assert response.json()["error"]["code"] == "INVALID_MONTH"

    async def test_unknown_agent(self, client: AsyncClient, admin_headers: dict):
        response = await client.post(
            "/api/reconciliations/generate",
            headers=admin_headers,
            json={"agent_id": "missing", "month": "2026-01"},
        )
        assert response.status_code == 404


@pytest.mark.api
@pytest.mark.asyncio
class TestStatusAndScope:

    async def test_status_update_with_comments(
        self, client: AsyncClient, admin_headers: dict, test_agent: Agent
    ):
        row = await _generate(client, admin_headers, test_agent.id)
        response = await client.patch(
            f"/api/reconciliations/{row['id']}",
            headers=admin_headers,
            json={"status": "RENDERED", "comments": "Receipts checked"},
        )
        assert response.status_code == 200
        assert response.json()["status"] == "RENDERED"
        assert response.json()["comments"] == "Receipts checked"

        listing = await client.get(
            "/api/reconciliations/", params={"status": "rendered"}, headers=admin_headers
        )
        assert listing.json()["total"] == 1

    async def test_rejects_unknown_status(
        self, client: AsyncClient, admin_headers: dict, test_agent: Agent
    ):
        row = await _generate(client, admin_headers, test_agent.id)
        response = await client.patch(
            f"/api/reconciliations/{row['id']}", headers=admin_headers, json={"status": "DONE"}
        )
        assert response.status_code == 422

    async def test_agent_reads_own_rows_only(
        self,
        client: AsyncClient,
        admin_headers: dict,
        agent_headers: dict,
        test_agent: Agent,
        other_agent: Agent,
    ):
        await _generate(client, admin_headers, test_agent.id)
        other = await _generate(client, admin_headers, other_agent.id)

        response = await client.get("/api/reconciliations/", headers=agent_headers)
        assert [r["agent_id"] for r in response.json()["items"]] == [test_agent.id]
        response = await client.get(f"/api/reconciliations/{other['id']}", headers=agent_headers)
        assert response.status_code == 404

    async def test_agent_cannot_generate(
        self, client: AsyncClient, agent_headers: dict, test_agent: Agent
    ):
        response = await client.post(
            "/api/reconciliations/generate",
            headers=agent_headers,
            json={"agent_id": test_agent.id, "month": "2026-01"},
        )
        assert response.status_code == 403
