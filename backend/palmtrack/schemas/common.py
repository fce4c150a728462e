"""Common schemas used across the application."""

from decimal import Decimal
from typing import Generic, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class PaginatedResponse(BaseModel, Generic[T]):
    """Generic paginated response wrapper.

    Usage:
        response_model=PaginatedResponse[AdvanceOut]
    """
    items: list[T]
    total: int
    limit: int
    offset: int


def require_positive(v: Decimal | None, label: str = "Value") -> Decimal | None:
    if v is not None and v <= 0:
        raise ValueError(f"{label} must be greater than 0")
    return v


def require_not_blank(v: str | None, label: str = "Value") -> str | None:
    if v is not None:
        v = v.strip()
        if not v:
            raise ValueError(f"{label} is required")
    return v
