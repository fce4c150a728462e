"""Tests for agents, cash advances, expenses and the price ledger."""

from decimal import Decimal

import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from palmtrack.middleware.exceptions import BusinessLogicError
from palmtrack.models.agent import Agent
from palmtrack.models.user import User
from palmtrack.routers import agents as agents_router
from palmtrack.services.storage import MAX_PHOTO_BYTES, read_photo

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


async def _advance(client, headers, agent_id, amount, day="2026-02-03"):
    response = await client.post(
        "/api/advances/",
        headers=headers,
        json={"agent_id": agent_id, "advance_date": day, "amount": amount, "payment_method": "momo"},
    )
    assert response.status_code == 201, response.text
    return response.json()


@pytest.mark.api
@pytest.mark.asyncio
class TestAgents:

    async def test_create_and_get(self, client: AsyncClient, admin_headers: dict):
        response = await client.post(
            "/api/agents/",
            headers=admin_headers,
            json={"full_name": "Esi Darko", "phone": "0555000000", "region": "Eastern"},
        )
        assert response.status_code == 201
        agent_id = response.json()["id"]
        assert response.json()["status"] == "ACTIVE"

        response = await client.get(f"/api/agents/{agent_id}", headers=admin_headers)
        assert response.json()["region"] == "Eastern"
        assert response.json()["has_photo"] is False

    async def test_list_carries_lifetime_totals(
        self, client: AsyncClient, admin_headers: dict, test_agent: Agent, other_agent: Agent
    ):
        await _advance(client, admin_headers, test_agent.id, "300")
        await _advance(client, admin_headers, test_agent.id, "200.50")
        await client.post(
            "/api/collections/",
            headers=admin_headers,
            json={
                "agent_id": test_agent.id, "collection_date": "2026-02-04",
                "weight_kg": "120", "price_per_kg": "2",
            },
        )

        response = await client.get("/api/agents/", headers=admin_headers)
        assert response.status_code == 200
        rows = {row["id"]: row for row in response.json()["items"]}
        assert Decimal(rows[test_agent.id]["total_advances"]) == Decimal("500.50")
        assert Decimal(rows[test_agent.id]["total_weight_kg"]) == Decimal("120")
        assert Decimal(rows[other_agent.id]["total_advances"]) == Decimal("0")

    async def test_agent_login_sees_only_itself(
        self, client: AsyncClient, agent_headers: dict, test_agent: Agent, other_agent: Agent
    ):
        response = await client.get("/api/agents/", headers=agent_headers)
        assert [row["id"] for row in response.json()["items"]] == [test_agent.id]

        response = await client.get(f"/api/agents/{other_agent.id}", headers=agent_headers)
        assert response.status_code == 404

    async def test_delete_archives_agent_with_history(
        self, client: AsyncClient, admin_headers: dict, test_agent: Agent
    ):
        await _advance(client, admin_headers, test_agent.id, "100")
        response = await client.delete(f"/api/agents/{test_agent.id}", headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["outcome"] == "archived"

        listing = await client.get("/api/agents/", headers=admin_headers)
        assert test_agent.id not in [row["id"] for row in listing.json()["items"]]
        listing = await client.get(
            "/api/agents/", params={"include_archived": True}, headers=admin_headers
        )
        archived = next(r for r in listing.json()["items"] if r["id"] == test_agent.id)
        assert archived["status"] == "INACTIVE"
        assert archived["archived_at"] is not None

        # Reactivating clears the archive marker
        response = await client.patch(
            f"/api/agents/{test_agent.id}", headers=admin_headers, json={"status": "ACTIVE"}
        )
        assert response.json()["archived_at"] is None

    async def test_delete_without_history_removes_agent(
        self,
        client: AsyncClient,
        admin_headers: dict,
        test_agent: Agent,
        agent_user: User,
        db_session: AsyncSession,
    ):
        response = await client.delete(f"/api/agents/{test_agent.id}", headers=admin_headers)
        assert response.json()["outcome"] == "deleted"
        assert (await client.get(f"/api/agents/{test_agent.id}", headers=admin_headers)).status_code == 404

        login = await db_session.scalar(
            select(User.agent_id).where(User.id == agent_user.id).execution_options(populate_existing=True)
        )
        assert login is None

    async def test_agent_cannot_delete(
        self, client: AsyncClient, agent_headers: dict, test_agent: Agent
    ):
        response = await client.delete(f"/api/agents/{test_agent.id}", headers=agent_headers)
        assert response.status_code == 403


@pytest.mark.api
@pytest.mark.asyncio
class TestAgentPhotos:

    async def test_upload_sign_and_download(
        self, client: AsyncClient, admin_headers: dict, test_agent: Agent
    ):
        response = await client.post(
            f"/api/agents/{test_agent.id}/photo",
            headers=admin_headers,
            files={"file": ("face.png", PNG_BYTES, "image/png")},
        )
        assert response.status_code == 200
        assert response.json()["has_photo"] is True

        response = await client.get(f"/api/agents/{test_agent.id}/photo-url", headers=admin_headers)
        url = response.json()["url"]
        assert url.startswith("/api/files/")

        download = await client.get(url)
        assert download.status_code == 200
        assert download.content == PNG_BYTES
        assert download.headers["content-type"] == "image/png"

    async def test_rejects_unsupported_type(
        self, client: AsyncClient, admin_headers: dict, test_agent: Agent
    ):
        response = await client.post(
            f"/api/agents/{test_agent.id}/photo",
            headers=admin_headers,
            files={"file": ("notes.txt", b"hello", "text/plain")},
        )
        assert response.status_code == 422
        assert response.json()["error"]["code"] == "UNSUPPORTED_MEDIA"

    async def test_remove_photo(
        self, client: AsyncClient, admin_headers: dict, test_agent: Agent, storage_dir
    ):
        await client.post(
            f"/api/agents/{test_agent.id}/photo",
            headers=admin_headers,
            files={"file": ("face.png", PNG_BYTES, "image/png")},
        )
        response = await client.delete(f"/api/agents/{test_agent.id}/photo", headers=admin_headers)
        assert response.json()["has_photo"] is False
        assert not any(p.is_file() for p in storage_dir.rglob("*"))

        response = await client.get(f"/api/agents/{test_agent.id}/photo-url", headers=admin_headers)
        assert response.json()["url"] is None

    async def test_failed_replace_keeps_old_photo(
        self, client: AsyncClient, admin_headers: dict, test_agent: Agent, storage_dir, monkeypatch
    ):
        url = f"/api/agents/{test_agent.id}/photo"
        await client.post(url, headers=admin_headers, files={"file": ("face.png", PNG_BYTES, "image/png")})
        before = sorted(p for p in storage_dir.rglob("*") if p.is_file())
        assert len(before) == 1

        async def failing_log(*args, **kwargs):
            raise BusinessLogicError("Activity log unavailable")

        monkeypatch.setattr(agents_router, "log_activity", failing_log)
        response = await client.post(
            url, headers=admin_headers, files={"file": ("new.png", PNG_BYTES, "image/png")}
        )
        assert response.status_code == 422

        # New file removed on rollback; the committed photo is untouched
        assert sorted(p for p in storage_dir.rglob("*") if p.is_file()) == before
        response = await client.get(f"/api/agents/{test_agent.id}/photo-url", headers=admin_headers)
        download = await client.get(response.json()["url"])
        assert download.status_code == 200

    async def test_failed_remove_keeps_file(
        self, client: AsyncClient, admin_headers: dict, test_agent: Agent, storage_dir, monkeypatch
    ):
        await client.post(
            f"/api/agents/{test_agent.id}/photo",
            headers=admin_headers,
            files={"file": ("face.png", PNG_BYTES, "image/png")},
        )

        async def failing_log(*args, **kwargs):
            raise BusinessLogicError("Activity log unavailable")

        monkeypatch.setattr(agents_router, "log_activity", failing_log)
        response = await client.delete(f"/api/agents/{test_agent.id}/photo", headers=admin_headers)
        assert response.status_code == 422
        assert any(p.is_file() for p in storage_dir.rglob("*"))

        response = await client.get(f"/api/agents/{test_agent.id}", headers=admin_headers)
        assert response.json()["has_photo"] is True

    async def test_rejects_oversized_photo(
        self, client: AsyncClient, admin_headers: dict, test_agent: Agent, storage_dir
    ):
        big = PNG_BYTES + b"\x00" * MAX_PHOTO_BYTES
        response = await client.post(
            f"/api/agents/{test_agent.id}/photo",
            headers=admin_headers,
            files={"file": ("big.png", big, "image/png")},
        )
        assert response.status_code == 422
        assert response.json()["error"]["code"] == "UPLOAD_TOO_LARGE"
        assert not any(p.is_file() for p in storage_dir.rglob("*"))

    async def test_bad_file_token(self, client: AsyncClient):
        response = await client.get("/api/files/not-a-token")
        assert response.status_code == 404


@pytest.mark.api
@pytest.mark.asyncio
class TestAdvances:

    async def test_create_filter_update_delete(
        self, client: AsyncClient, admin_headers: dict, test_agent: Agent
    ):
        first = await _advance(client, admin_headers, test_agent.id, "100", "2026-01-31")
        await _advance(client, admin_headers, test_agent.id, "250", "2026-02-01")
        assert first["payment_method"] == "MOMO"
        assert first["agent_name"] == "Kwame Mensah"

        response = await client.get(
            "/api/advances/",
            headers=admin_headers,
            params={"date_from": "2026-02-01", "date_to": "2026-02-28"},
        )
        assert response.json()["total"] == 1
        assert Decimal(response.json()["items"][0]["amount"]) == Decimal("250")

        response = await client.patch(
            f"/api/advances/{first['id']}", headers=admin_headers, json={"amount": "120"}
        )
        assert Decimal(response.json()["amount"]) == Decimal("120")

        response = await client.delete(f"/api/advances/{first['id']}", headers=admin_headers)
        assert response.status_code == 204
        assert (await client.get(f"/api/advances/{first['id']}", headers=admin_headers)).status_code == 404

    async def test_amount_must_be_positive(
        self, client: AsyncClient, admin_headers: dict, test_agent: Agent
    ):
        response = await client.post(
            "/api/advances/",
            headers=admin_headers,
            json={"agent_id": test_agent.id, "advance_date": "2026-02-01", "amount": "0"},
        )
        assert response.status_code == 422
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    async def test_agent_sees_own_advances_only(
        self,
        client: AsyncClient,
        admin_headers: dict,
        agent_headers: dict,
        test_agent: Agent,
        other_agent: Agent,
    ):
        await _advance(client, admin_headers, test_agent.id, "100")
        other = await _advance(client, admin_headers, other_agent.id, "900")

        response = await client.get("/api/advances/", headers=agent_headers)
        assert [row["agent_id"] for row in response.json()["items"]] == [test_agent.id]
        response = await client.get(f"/api/advances/{other['id']}", headers=agent_headers)
        assert response.status_code == 404

    async def test_agent_cannot_record_advances(
        self, client: AsyncClient, agent_headers: dict, test_agent: Agent
    ):
        response = await client.post(
            "/api/advances/",
            headers=agent_headers,
            json={"agent_id": test_agent.id, "advance_date": "2026-02-01", "amount": "50"},
        )
        assert response.status_code == 403


@pytest.mark.api
@pytest.mark.asyncio
class TestExpenses:

    async def test_batch_create(self, client: AsyncClient, agent_headers: dict, test_agent: Agent):
        response = await client.post(
            "/api/expenses/batch",
            headers=agent_headers,
            json={
                "agent_id": test_agent.id,
                "expense_date": "2026-02-05",
                "lines": [
                    {"expense_type": "Fuel", "amount": "80"},
                    {"expense_type": "Loading", "amount": "40.50"},
                ],
            },
        )
        assert response.status_code == 201
        assert [e["expense_type"] for e in response.json()] == ["Fuel", "Loading"]

    async def test_batch_is_all_or_nothing(
        self, client: AsyncClient, admin_headers: dict, test_agent: Agent
    ):
        response = await client.post(
            "/api/expenses/batch",
            headers=admin_headers,
            json={
                "agent_id": test_agent.id,
                "expense_date": "2026-02-05",
                "lines": [
                    {"expense_type": "Fuel", "amount": "80"},
                    {"expense_type": "  ", "amount": "10"},
                ],
            },
        )
        assert response.status_code == 422
        listing = await client.get("/api/expenses/", headers=admin_headers)
        assert listing.json()["total"] == 0

    async def test_agent_cannot_post_for_another_agent(
        self, client: AsyncClient, agent_headers: dict, other_agent: Agent
    ):
        response = await client.post(
            "/api/expenses/batch",
            headers=agent_headers,
            json={
                "agent_id": other_agent.id,
                "expense_date": "2026-02-05",
                "lines": [{"expense_type": "Fuel", "amount": "80"}],
            },
        )
        assert response.status_code == 403
        assert response.json()["error"]["code"] == "PERMISSION_DENIED"

    async def test_recent_types_distinct_newest_first(
        self, client: AsyncClient, admin_headers: dict, test_agent: Agent
    ):
        for expense_type in ("Fuel", "Loading", "Fuel", "Tolls"):
            await client.post(
                "/api/expenses/batch",
                headers=admin_headers,
                json={
                    "agent_id": test_agent.id,
                    "expense_date": "2026-02-05",
                    "lines": [{"expense_type": expense_type, "amount": "5"}],
                },
            )
        response = await client.get(
            "/api/expenses/recent-types", params={"agent_id": test_agent.id}, headers=admin_headers
        )
        assert response.json() == ["Tolls", "Fuel", "Loading"]


@pytest.mark.api
@pytest.mark.asyncio
class TestPriceLedger:

    async def test_history_newest_first(
        self, client: AsyncClient, admin_headers: dict, agent_headers: dict, test_agent: Agent
    ):
        for price, when in (("2.20", "2026-01-01T08:00:00"), ("2.50", "2026-02-01T08:00:00")):
            response = await client.post(
                f"/api/agents/{test_agent.id}/prices",
                headers=admin_headers,
                json={"price_per_kg": price, "effective_at": when, "carryover_kg": "35"},
            )
            assert response.status_code == 201

        response = await client.get(f"/api/agents/{test_agent.id}/prices", headers=agent_headers)
        data = response.json()
        assert Decimal(data["current_price"]) == Decimal("2.50")
        assert [Decimal(h["price_per_kg"]) for h in data["history"]] == [Decimal("2.5"), Decimal("2.2")]

    async def test_agent_cannot_change_prices(
        self, client: AsyncClient, agent_headers: dict, test_agent: Agent
    ):
        response = await client.post(
            f"/api/agents/{test_agent.id}/prices",
            headers=agent_headers,
            json={"price_per_kg": "3"},
        )
        assert response.status_code == 403

    async def test_negative_carryover_rejected(
        self, client: AsyncClient, admin_headers: dict, test_agent: Agent
    ):
        response = await client.post(
            f"/api/agents/{test_agent.id}/prices",
            headers=admin_headers,
            json={"price_per_kg": "3", "carryover_kg": "-1"},
        )
        assert response.status_code == 422


class _RecordingUpload:
    def __init__(self, data: bytes):
        self.data = data
        self.requested: list[int] = []

    async def read(self, size: int = -1) -> bytes:
        self.requested.append(size)
        return self.data if size < 0 else self.data[:size]


@pytest.mark.unit
@pytest.mark.asyncio
class TestReadPhoto:

    async def test_reads_one_byte_past_limit(self):
        upload = _RecordingUpload(b"\x00" * (MAX_PHOTO_BYTES * 2))
        with pytest.raises(BusinessLogicError) as exc:
            await read_photo(upload)
        assert exc.value.error_code == "UPLOAD_TOO_LARGE"
        assert upload.requested == [MAX_PHOTO_BYTES + 1]

    async def test_accepts_photo_within_limit(self):
        assert await read_photo(_RecordingUpload(PNG_BYTES)) == PNG_BYTES

    async def test_rejects_empty_upload(self):
        with pytest.raises(BusinessLogicError) as exc:
            await read_photo(_RecordingUpload(b""))
        assert exc.value.error_code == "EMPTY_UPLOAD"
