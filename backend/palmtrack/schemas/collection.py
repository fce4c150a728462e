"""Pydantic schemas for fruit collections and their priced weight slices."""

from datetime import date, datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, field_validator, model_validator

from palmtrack.schemas.common import require_positive


class PriceRowIn(BaseModel):
    weight_kg: Decimal
    price_per_kg: Decimal

    @field_validator("weight_kg")
    @classmethod
    def weight_positive(cls, v: Decimal) -> Decimal:
        return require_positive(v, "Weight")

    @field_validator("price_per_kg")
    @classmethod
    def price_positive(cls, v: Decimal) -> Decimal:
        return require_positive(v, "Price per kg")


class _PricingFields(BaseModel):
    """`same` → one weight at one price; `breakdown` → one or more rows."""
    pricing_mode: Literal["same", "breakdown"] | None = None
    weight_kg: Decimal | None = None
    price_per_kg: Decimal | None = None
    rows: list[PriceRowIn] | None = None

    @field_validator("weight_kg")
    @classmethod
    def weight_positive(cls, v: Decimal | None) -> Decimal | None:
        return require_positive(v, "Weight")

    @field_validator("price_per_kg")
    @classmethod
    def price_positive(cls, v: Decimal | None) -> Decimal | None:
        return require_positive(v, "Price per kg")

    @model_validator(mode="after")
    def pricing_complete(self):
        if self.pricing_mode == "same":
            if self.weight_kg is None or self.price_per_kg is None:
                raise ValueError("weight_kg and price_per_kg are required")
        elif self.pricing_mode == "breakdown":
            if not self.rows:
                raise ValueError("At least one price row is required")
        return self

    def price_rows(self) -> list[PriceRowIn] | None:
        """The priced slices to store, or None when pricing is untouched."""
        if self.pricing_mode == "same":
            return [PriceRowIn(weight_kg=self.weight_kg, price_per_kg=self.price_per_kg)]
        if self.pricing_mode == "breakdown":
            return list(self.rows)
        return None


class CollectionCreate(_PricingFields):
    agent_id: str
    collection_date: date
    driver_name: str | None = None
    notes: str | None = None
    pricing_mode: Literal["same", "breakdown"] = "same"


class CollectionUpdate(_PricingFields):
    """Header edits; supplying pricing_mode replaces every item."""
    collection_date: date | None = None
    driver_name: str | None = None
    notes: str | None = None


class CollectionItemOut(BaseModel):
    id: str
    weight_kg: Decimal
    price_per_kg: Decimal
    line_total: Decimal

    model_config = {"from_attributes": True}


class PriceBucketOut(BaseModel):
    price_per_kg: Decimal
    weight_kg: Decimal
    amount: Decimal

    model_config = {"from_attributes": True}


class CollectionOut(BaseModel):
    id: str
    agent_id: str
    agent_name: str | None = None
    collection_date: date
    driver_name: str | None = None
    notes: str | None = None
    weight_kg: Decimal
    total_weight_kg: Decimal | None = None
    total_amount_spent: Decimal | None = None
    has_price_breakdown: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class CollectionDetail(CollectionOut):
    items: list[CollectionItemOut] = []
    breakdown: list[PriceBucketOut] = []
    fruit_spend: Decimal = Decimal("0")
