"""Audit trail writer for PalmTrack actions.

Every money movement, fruit intake, order change and user-management
step calls `log_activity` inside the request's session, so the entry
commits or rolls back with the change it describes.

`details` may carry Decimal amounts, dates and enums; they are stored
as strings in the JSON column.  When no summary is given, one is built
from the action and the entity label, e.g. "receipt_voided receipt
EDC-REC-2026-000004".
"""

from __future__ import annotations

import enum
import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from palmtrack.models.activity_log import ActivityLog
from palmtrack.models.user import User

logger = logging.getLogger(__name__)


def json_safe(value: Any) -> Any:
    if isinstance(value, dict):
        return {str(k): json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [json_safe(v) for v in value]
    if isinstance(value, enum.Enum):
        return json_safe(value.value)
    if isinstance(value, (Decimal, date, datetime)):
        return value.isoformat() if isinstance(value, (date, datetime)) else str(value)
    return value


def default_summary(action: str, entity_type: str, entity_code: str | None) -> str:
    return " ".join(part for part in (action, entity_type, entity_code) if part)


async def log_activity(
    db: AsyncSession,
    user: User,
    *,
    action: str,
    entity_type: str,
    entity_id: str | None = None,
    entity_code: str | None = None,
    summary: str | None = None,
    details: dict | None = None,
) -> ActivityLog:
    entry = ActivityLog(
        user_id=user.id,
        user_name=user.full_name,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        entity_code=entity_code,
        summary=summary or default_summary(action, entity_type, entity_code),
        details=json_safe(details) if details else None,
    )
    db.add(entry)
    logger.debug("Audit %s %s %s by %s", action, entity_type, entity_id, user.id)
    return entry
