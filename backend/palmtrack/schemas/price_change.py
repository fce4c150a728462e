"""Pydantic schemas for the agent fruit-price ledger."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, field_validator

from palmtrack.schemas.common import require_positive


class PriceChangeCreate(BaseModel):
    price_per_kg: Decimal
    effective_at: datetime | None = None
    carryover_kg: Decimal = Decimal("0")
    note: str | None = None

    @field_validator("price_per_kg")
    @classmethod
    def price_positive(cls, v: Decimal) -> Decimal:
        return require_positive(v, "Price per kg")

    @field_validator("carryover_kg")
    @classmethod
    def carryover_non_negative(cls, v: Decimal) -> Decimal:
        if v < 0:
            raise ValueError("Carryover cannot be negative")
        return v


class PriceChangeOut(BaseModel):
    id: str
    agent_id: str
    price_per_kg: Decimal
    effective_at: datetime
    carryover_kg: Decimal
    note: str | None = None
    created_at: datetime

    model_config = {"from_attributes": True}


class PriceHistoryOut(BaseModel):
    agent_id: str
    current_price: Decimal | None = None
    history: list[PriceChangeOut]
