"""Tests for fruit collection entry and its price breakdown."""

from decimal import Decimal

import pytest
from httpx import AsyncClient

from palmtrack.models.agent import Agent


def _breakdown_body(agent_id: str, rows, **extra) -> dict:
    return {
        "agent_id": agent_id,
        "collection_date": "2026-03-02",
        "pricing_mode": "breakdown",
        "rows": [{"weight_kg": w, "price_per_kg": p} for w, p in rows],
        **extra,
    }


@pytest.mark.api
@pytest.mark.asyncio
class TestCreateCollection:

    async def test_same_price(self, client: AsyncClient, admin_headers: dict, test_agent: Agent):
        response = await client.post(
            "/api/collections/",
            headers=admin_headers,
            json={
                "agent_id": test_agent.id,
                "collection_date": "2026-03-01",
                "pricing_mode": "same",
                "weight_kg": "400",
                "price_per_kg": "2.50",
                "driver_name": "Kojo",
            },
        )
        assert response.status_code == 201, response.text
        data = response.json()
        assert data["has_price_breakdown"] is False
        assert data["agent_name"] == "Kwame Mensah"
        assert Decimal(data["total_weight_kg"]) == Decimal("400")
        assert Decimal(data["total_amount_spent"]) == Decimal("1000")
        assert len(data["items"]) == 1
        assert Decimal(data["fruit_spend"]) == Decimal("1000")

    async def test_breakdown_groups_by_price(
        self, client: AsyncClient, admin_headers: dict, test_agent: Agent
    ):
        response = await client.post(
            "/api/collections/",
            headers=admin_headers,
            json=_breakdown_body(
                test_agent.id, [("100", "2.50"), ("50", "3"), ("20", "2.5")]
            ),
        )
        assert response.status_code == 201, response.text
        data = response.json()
        assert data["has_price_breakdown"] is True
        assert Decimal(data["weight_kg"]) == Decimal("170")
        assert Decimal(data["fruit_spend"]) == Decimal("450")

        buckets = [
            (Decimal(b["price_per_kg"]), Decimal(b["weight_kg"]), Decimal(b["amount"]))
            for b in data["breakdown"]
        ]
        assert buckets == [
            (Decimal("3"), Decimal("50"), Decimal("150")),
            (Decimal("2.5"), Decimal("120"), Decimal("300")),
        ]

    async def test_items_keep_entry_order(
        self, client: AsyncClient, admin_headers: dict, test_agent: Agent
    ):
        created = await client.post(
            "/api/collections/",
            headers=admin_headers,
            json=_breakdown_body(test_agent.id, [("10", "1"), ("20", "3"), ("30", "2")]),
        )
        response = await client.get(f"/api/collections/{created.json()['id']}", headers=admin_headers)
        weights = [Decimal(i["weight_kg"]) for i in response.json()["items"]]
        assert weights == [Decimal("10"), Decimal("20"), Decimal("30")]

    async def test_breakdown_requires_rows(
        self, client: AsyncClient, admin_headers: dict, test_agent: Agent
    ):
        response = await client.post(
            "/api/collections/",
            headers=admin_headers,
            json=_breakdown_body(test_agent.id, []),
        )
        assert response.status_code == 422

    async def test_rejects_non_positive_row(
        self, client: AsyncClient, admin_headers: dict, test_agent: Agent
    ):
        response = await client.post(
            "/api/collections/",
            headers=admin_headers,
            json=_breakdown_body(test_agent.id, [("10", "2"), ("0", "2")]),
        )
        assert response.status_code == 422
        listing = await client.get("/api/collections/", headers=admin_headers)
        assert listing.json()["total"] == 0

    async def test_unknown_agent(self, client: AsyncClient, admin_headers: dict):
        response = await client.post(
            "/api/collections/",
            headers=admin_headers,
            json=_breakdown_body("missing-agent", [("10", "2")]),
        )
        assert response.status_code == 404


@pytest.mark.api
@pytest.mark.asyncio
class TestUpdateCollection:

    async def test_pricing_payload_replaces_items(
        self, client: AsyncClient, admin_headers: dict, test_agent: Agent
    ):
        created = await client.post(
            "/api/collections/",
            headers=admin_headers,
            json=_breakdown_body(test_agent.id, [("100", "2"), ("100", "3")]),
        )
        collection_id = created.json()["id"]

        response = await client.patch(
            f"/api/collections/{collection_id}",
            headers=admin_headers,
            json={"pricing_mode": "same", "weight_kg": "80", "price_per_kg": "2.25"},
        )
        assert response.status_code == 200, response.text
        data = response.json()
        assert len(data["items"]) == 1
        assert data["has_price_breakdown"] is False
        assert Decimal(data["total_amount_spent"]) == Decimal("180")

    async def test_header_edit_keeps_items(
        self, client: AsyncClient, admin_headers: dict, test_agent: Agent
    ):
        created = await client.post(
            "/api/collections/",
            headers=admin_headers,
            json=_breakdown_body(test_agent.id, [("100", "2"), ("100", "3")]),
        )
        response = await client.patch(
            f"/api/collections/{created.json()['id']}",
            headers=admin_headers,
            json={"driver_name": "Yaw"},
        )
        data = response.json()
        assert data["driver_name"] == "Yaw"
        assert len(data["items"]) == 2
        assert Decimal(data["fruit_spend"]) == Decimal("500")

    async def test_delete(self, client: AsyncClient, admin_headers: dict, test_agent: Agent):
        created = await client.post(
            "/api/collections/",
            headers=admin_headers,
            json=_breakdown_body(test_agent.id, [("10", "2")]),
        )
        collection_id = created.json()["id"]
        response = await client.delete(f"/api/collections/{collection_id}", headers=admin_headers)
        assert response.status_code == 204
        response = await client.get(f"/api/collections/{collection_id}", headers=admin_headers)
        assert response.status_code == 404


@pytest.mark.api
@pytest.mark.asyncio
class TestCollectionScope:

    async def test_agent_records_for_itself(
        self, client: AsyncClient, agent_headers: dict, test_agent: Agent
    ):
        response = await client.post(
            "/api/collections/",
            headers=agent_headers,
            json=_breakdown_body(test_agent.id, [("30", "2")]),
        )
        assert response.status_code == 201

    async def test_agent_cannot_record_for_another(
        self, client: AsyncClient, agent_headers: dict, other_agent: Agent
    ):
        response = await client.post(
            "/api/collections/",
            headers=agent_headers,
            json=_breakdown_body(other_agent.id, [("30", "2")]),
        )
        assert response.status_code == 403

    async def test_agent_lists_own_collections(
        self,
        client: AsyncClient,
        admin_headers: dict,
        agent_headers: dict,
        test_agent: Agent,
        other_agent: Agent,
    ):
        await client.post(
            "/api/collections/", headers=admin_headers,
            json=_breakdown_body(test_agent.id, [("30", "2")]),
        )
        other = await client.post(
            "/api/collections/", headers=admin_headers,
            json=_breakdown_body(other_agent.id, [("40", "2")]),
        )
        response = await client.get("/api/collections/", headers=agent_headers)
        assert [c["agent_id"] for c in response.json()["items"]] == [test_agent.id]
        response = await client.get(f"/api/collections/{other.json()['id']}", headers=agent_headers)
        assert response.status_code == 404
