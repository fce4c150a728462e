"""Pydantic schemas for monthly agent reconciliations."""

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, field_validator

RECONCILIATION_STATUSES = ("OPEN", "RENDERED", "CLOSED")


def parse_month(v) -> date:
    """Accept YYYY-MM or any date; normalize to the first of the month."""
    if isinstance(v, str) and len(v) == 7:
        year, _, month = v.partition("-")
        return date(int(year), int(month), 1)
    if isinstance(v, str):
        v = date.fromisoformat(v)
    if isinstance(v, datetime):
        v = v.date()
    if isinstance(v, date):
        return v.replace(day=1)
    raise ValueError("month must be YYYY-MM")


class ReconciliationGenerate(BaseModel):
    agent_id: str
    month: date

    @field_validator("month", mode="before")
    @classmethod
    def first_of_month(cls, v) -> date:
        return parse_month(v)


class ReconciliationStatusUpdate(BaseModel):
    status: str
    comments: str | None = None

    @field_validator("status")
    @classmethod
    def valid_status(cls, v: str) -> str:
        v = v.upper()
        if v not in RECONCILIATION_STATUSES:
            raise ValueError(f"status must be one of {', '.join(RECONCILIATION_STATUSES)}")
        return v


class ReconciliationOut(BaseModel):
    id: str
    agent_id: str
    agent_name: str | None = None
    month: date
    total_advance: Decimal
    total_weight_kg: Decimal
    status: str
    comments: str | None = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
