"""Pydantic schemas for agent expenses."""

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, field_validator

from palmtrack.schemas.common import require_not_blank, require_positive


class ExpenseLine(BaseModel):
    expense_type: str
    amount: Decimal

    @field_validator("expense_type")
    @classmethod
    def type_required(cls, v: str) -> str:
        return require_not_blank(v, "Expense type")

    @field_validator("amount")
    @classmethod
    def amount_positive(cls, v: Decimal) -> Decimal:
        return require_positive(v, "Amount")


class ExpenseBatchCreate(BaseModel):
    """Several expense lines for one agent on one date."""
    agent_id: str
    expense_date: date
    lines: list[ExpenseLine]

    @field_validator("lines")
    @classmethod
    def at_least_one(cls, v: list[ExpenseLine]) -> list[ExpenseLine]:
        if not v:
            raise ValueError("At least one expense line is required")
        return v


class ExpenseUpdate(BaseModel):
    expense_type: str | None = None
    amount: Decimal | None = None
    expense_date: date | None = None

    @field_validator("expense_type")
    @classmethod
    def type_required(cls, v: str | None) -> str | None:
        return require_not_blank(v, "Expense type")

    @field_validator("amount")
    @classmethod
    def amount_positive(cls, v: Decimal | None) -> Decimal | None:
        return require_positive(v, "Amount")


class ExpenseOut(BaseModel):
    id: str
    agent_id: str
    agent_name: str | None = None
    expense_type: str
    amount: Decimal
    expense_date: date
    created_at: datetime

    model_config = {"from_attributes": True}
