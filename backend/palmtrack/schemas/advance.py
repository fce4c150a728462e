"""Pydantic schemas for cash advances."""

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, field_validator

from palmtrack.schemas.common import require_positive

PAYMENT_METHODS = ("CASH", "MOMO", "BANK")


class AdvanceCreate(BaseModel):
    agent_id: str
    advance_date: date
    amount: Decimal
    payment_method: str = "CASH"
    signed_by: str | None = None
    notes: str | None = None

    @field_validator("amount")
    @classmethod
    def amount_positive(cls, v: Decimal) -> Decimal:
        return require_positive(v, "Amount")

    @field_validator("payment_method")
    @classmethod
    def valid_method(cls, v: str) -> str:
        v = v.upper()
        if v not in PAYMENT_METHODS:
            raise ValueError(f"payment_method must be one of {', '.join(PAYMENT_METHODS)}")
        return v


class AdvanceUpdate(BaseModel):
    advance_date: date | None = None
    amount: Decimal | None = None
    payment_method: str | None = None
    signed_by: str | None = None
    notes: str | None = None

    @field_validator("amount")
    @classmethod
    def amount_positive(cls, v: Decimal | None) -> Decimal | None:
        return require_positive(v, "Amount")

    @field_validator("payment_method")
    @classmethod
    def valid_method(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.upper()
        if v not in PAYMENT_METHODS:
            raise ValueError(f"payment_method must be one of {', '.join(PAYMENT_METHODS)}")
        return v


class AdvanceOut(BaseModel):
    id: str
    agent_id: str
    agent_name: str | None = None
    advance_date: date
    amount: Decimal
    payment_method: str
    signed_by: str | None = None
    notes: str | None = None
    created_at: datetime

    model_config = {"from_attributes": True}
