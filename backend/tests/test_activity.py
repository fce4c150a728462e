"""Tests for the audit trail writer."""

from datetime import date, datetime
from decimal import Decimal

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from palmtrack.models.activity_log import ActivityLog
from palmtrack.models.user import User, UserRole
from palmtrack.utils.activity import json_safe, log_activity


@pytest.mark.unit
class TestJsonSafe:

    def test_converts_money_dates_and_enums(self):
        value = {
            "amount": Decimal("150.50"),
            "day": date(2026, 1, 6),
            "at": datetime(2026, 1, 6, 8, 30),
            "role": UserRole.AGENT,
            "ids": ("a", "b"),
        }
        assert json_safe(value) == {
            "amount": "150.50",
            "day": "2026-01-06",
            "at": "2026-01-06T08:30:00",
            "role": "AGENT",
            "ids": ["a", "b"],
        }


@pytest.mark.unit
@pytest.mark.asyncio
class TestLogActivity:

    async def test_entry_commits_with_session(self, db_session: AsyncSession, admin_user: User):
        await log_activity(
            db_session, admin_user,
            action="price_changed", entity_type="agent", entity_id="ag-1",
            details={"carryover_kg": Decimal("35.000")},
        )
        await db_session.commit()

        entry = await db_session.scalar(select(ActivityLog))
        assert entry.user_name == "Office Admin"
        assert entry.details == {"carryover_kg": "35.000"}
        assert entry.summary == "price_changed agent"

    async def test_summary_from_entity_code(self, db_session: AsyncSession, admin_user: User):
        entry = await log_activity(
            db_session, admin_user,
            action="receipt_voided", entity_type="receipt", entity_code="EDC-REC-2026-000004",
        )
        assert entry.summary == "receipt_voided receipt EDC-REC-2026-000004"
        assert entry.details is None

    async def test_rollback_discards_entry(self, db_session: AsyncSession, admin_user: User):
        await log_activity(db_session, admin_user, action="created", entity_type="order")
        await db_session.rollback()
        assert await db_session.scalar(select(ActivityLog)) is None
