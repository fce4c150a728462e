"""Pydantic schemas for field agents."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, field_validator

from palmtrack.schemas.common import require_not_blank


class AgentCreate(BaseModel):
    full_name: str
    phone: str | None = None
    location: str | None = None
    region: str | None = None
    community: str | None = None

    @field_validator("full_name")
    @classmethod
    def name_required(cls, v: str) -> str:
        return require_not_blank(v, "Full name")


class AgentUpdate(BaseModel):
    full_name: str | None = None
    phone: str | None = None
    location: str | None = None
    region: str | None = None
    community: str | None = None
    status: str | None = None

    @field_validator("full_name")
    @classmethod
    def name_required(cls, v: str | None) -> str | None:
        return require_not_blank(v, "Full name")

    @field_validator("status")
    @classmethod
    def valid_status(cls, v: str | None) -> str | None:
        if v is not None and v not in ("ACTIVE", "INACTIVE"):
            raise ValueError("status must be 'ACTIVE' or 'INACTIVE'")
        return v


class AgentOut(BaseModel):
    id: str
    full_name: str
    phone: str | None = None
    location: str | None = None
    region: str | None = None
    community: str | None = None
    status: str
    archived_at: datetime | None = None
    has_photo: bool = False
    created_at: datetime

    model_config = {"from_attributes": True}


class AgentSummary(AgentOut):
    """List row with lifetime totals."""
    total_advances: Decimal = Decimal("0")
    total_weight_kg: Decimal = Decimal("0")


class AgentDeleteResult(BaseModel):
    id: str
    # "archived" when history exists, else "deleted"
    outcome: str


class PhotoUrlOut(BaseModel):
    url: str | None
    expires_in: int | None = None
