"""Tests for the management CLI."""

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from palmtrack import cli
from palmtrack.auth.password import verify_password
from palmtrack.models.agent import Agent
from palmtrack.models.reconciliation import MonthlyReconciliation
from palmtrack.models.user import User, UserRole


@pytest.fixture(autouse=True)
def cli_sessions(monkeypatch, session_factory):
    monkeypatch.setattr(cli, "async_session", session_factory)


@pytest.mark.unit
@pytest.mark.asyncio
class TestCreateAdmin:

    async def test_with_password(self, db_session: AsyncSession):
        assert await cli.create_admin("Boss@Edical.com", "Office Boss", "boss-password-1") == 0
        user = await db_session.scalar(select(User).where(User.email == "boss@edical.com"))
        assert user.role == UserRole.ADMIN
        assert user.must_change_password is False
        assert verify_password("boss-password-1", user.hashed_password)

    async def test_temporary_password(self, db_session: AsyncSession, capsys):
        assert await cli.create_admin("temp@edical.com", "Temp Admin") == 0
        assert "Temporary password:" in capsys.readouterr().out
        user = await db_session.scalar(select(User).where(User.email == "temp@edical.com"))
        assert user.must_change_password is True

    async def test_existing_email(self, admin_user: User):
        assert await cli.create_admin(admin_user.email, "Again", "whatever-123") == 1


@pytest.mark.unit
@pytest.mark.asyncio
class TestGenerateReconciliations:

    async def test_generates_for_active_agents(
        self,
        db_session: AsyncSession,
        admin_user: User,
        test_agent: Agent,
        other_agent: Agent,
        capsys,
    ):
        assert await cli.generate_reconciliations("2026-01") == 0
        rows = (await db_session.execute(select(MonthlyReconciliation))).scalars().all()
        assert {r.agent_id for r in rows} == {test_agent.id, other_agent.id}
        assert all(r.created_by == admin_user.id for r in rows)
        assert "2 reconciliation(s) for 2026-01" in capsys.readouterr().out

    async def test_requires_an_admin(self, test_agent: Agent):
        assert await cli.generate_reconciliations("2026-01") == 1

    async def test_invalid_month(self):
        assert await cli.generate_reconciliations("January") == 1


@pytest.mark.unit
def test_usage(capsys):
    assert cli.main(["cli"]) == 2
    assert "Usage" in capsys.readouterr().out
