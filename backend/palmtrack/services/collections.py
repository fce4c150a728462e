"""Fruit collection entry with per-price weight breakdown.

A delivery is stored as one FruitCollection header plus one
CollectionItem per priced slice.  Header totals are derived from the
slices and written in the same flush, so header and items commit or
roll back together.

`PriceRows` is the editable row list behind the entry form.  Cells hold
whatever the operator typed; validation happens on demand and totals
treat unusable cells as 0.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from palmtrack.auth.scope import AccessScope
from palmtrack.middleware.exceptions import BusinessLogicError, ResourceNotFoundError
from palmtrack.models.agent import Agent
from palmtrack.models.fruit_collection import CollectionItem, FruitCollection
from palmtrack.models.user import User
from palmtrack.schemas.collection import CollectionCreate, CollectionUpdate, PriceRowIn
from palmtrack.services.aggregation import (
    ZERO,
    PriceBreakdown,
    collection_fruit_spend,
    price_breakdown,
    to_decimal,
)
from palmtrack.services.report_data import normalize_collection, normalize_item
from palmtrack.utils.activity import log_activity

logger = logging.getLogger(__name__)


# ── Editable row list ────────────────────────────────────────

@dataclass
class PriceRow:
    weight_kg: object = ""
    price_per_kg: object = ""
    id: str = field(default_factory=lambda: uuid.uuid4().hex)


@dataclass(frozen=True)
class RowTotals:
    weight_kg: Decimal
    amount: Decimal


def _positive(value) -> Decimal | None:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    number = to_decimal(value)
    return number if number > 0 else None


class PriceRows:
    """Ordered, never-empty list of (weight, price) rows."""

    def __init__(self, rows: list[PriceRow] | None = None):
        self._rows: list[PriceRow] = list(rows) if rows else [PriceRow()]

    @property
    def rows(self) -> list[PriceRow]:
        return list(self._rows)

    def __len__(self) -> int:
        return len(self._rows)

    def _index(self, row_id: str) -> int:
        for i, row in enumerate(self._rows):
            if row.id == row_id:
                return i
        raise ResourceNotFoundError("Price row", row_id)

    def add(self, weight_kg="", price_per_kg="") -> PriceRow:
        row = PriceRow(weight_kg=weight_kg, price_per_kg=price_per_kg)
        self._rows.append(row)
        return row

    def remove(self, row_id: str) -> None:
        index = self._index(row_id)
        if len(self._rows) == 1:
            raise BusinessLogicError("At least one row is required")
        del self._rows[index]

    def duplicate(self, row_id: str) -> PriceRow:
        index = self._index(row_id)
        source = self._rows[index]
        copy = PriceRow(weight_kg=source.weight_kg, price_per_kg=source.price_per_kg)
        self._rows.insert(index + 1, copy)
        return copy

    def clear(self) -> None:
        self._rows = [PriceRow()]

    def update(self, row_id: str, **cells) -> PriceRow:
        row = self._rows[self._index(row_id)]
        for name in ("weight_kg", "price_per_kg"):
            if name in cells:
                setattr(row, name, cells.pop(name))
        if cells:
            raise BusinessLogicError(f"Unknown row field(s): {', '.join(sorted(cells))}")
        return row

    def validate(self) -> dict[str, dict[str, str]]:
        """Per-row error messages; empty dict means every row is valid."""
        errors: dict[str, dict[str, str]] = {}
        for row in self._rows:
            row_errors = {}
            if _positive(row.weight_kg) is None:
                row_errors["weight_kg"] = "Weight must be greater than 0"
            if _positive(row.price_per_kg) is None:
                row_errors["price_per_kg"] = "Price must be greater than 0"
            if row_errors:
                errors[row.id] = row_errors
        return errors

    def totals(self) -> RowTotals:
        weight = amount = ZERO
        for row in self._rows:
            w = _positive(row.weight_kg) or ZERO
            p = _positive(row.price_per_kg) or ZERO
            weight += w
            amount += w * p
        return RowTotals(weight_kg=weight, amount=amount)

    def to_price_rows(self) -> list[PriceRowIn]:
        """Validated rows ready for CollectionCreate(pricing_mode="breakdown")."""
        errors = self.validate()
        if errors:
            raise BusinessLogicError(
                f"{len(errors)} price row(s) are invalid", error_code="INVALID_PRICE_ROWS"
            )
        return [
            PriceRowIn(weight_kg=to_decimal(r.weight_kg), price_per_kg=to_decimal(r.price_per_kg))
            for r in self._rows
        ]


# ── Persistence ──────────────────────────────────────────────

def _build_items(rows: list[PriceRowIn]) -> list[CollectionItem]:
    return [
        CollectionItem(
            weight_kg=row.weight_kg,
            price_per_kg=row.price_per_kg,
            line_total=row.weight_kg * row.price_per_kg,
            position=i,
        )
        for i, row in enumerate(rows)
    ]


def _apply_totals(collection: FruitCollection, rows: list[PriceRowIn]) -> None:
    weight = sum((r.weight_kg for r in rows), ZERO)
    collection.weight_kg = weight
    collection.total_weight_kg = weight
    collection.total_amount_spent = sum((r.weight_kg * r.price_per_kg for r in rows), ZERO)
    collection.has_price_breakdown = len(rows) > 1


async def _require_agent(db: AsyncSession, agent_id: str) -> Agent:
    agent = (
        await db.execute(select(Agent).where(Agent.id == agent_id))
    ).scalar_one_or_none()
    if not agent:
        raise ResourceNotFoundError("Agent", agent_id)
    return agent


async def get_collection(
    db: AsyncSession, collection_id: str, scope: AccessScope
) -> FruitCollection:
    stmt = scope.restrict(
        select(FruitCollection).where(FruitCollection.id == collection_id),
        FruitCollection.agent_id,
    )
    collection = (await db.execute(stmt)).scalar_one_or_none()
    if not collection:
        raise ResourceNotFoundError("Collection", collection_id)
    return collection


async def create_collection(
    db: AsyncSession,
    body: CollectionCreate,
    user: User,
    scope: AccessScope,
) -> FruitCollection:
    """Insert the header and its priced items as one unit."""
    scope.require_agent(body.agent_id)
    agent = await _require_agent(db, body.agent_id)

    rows = body.price_rows()
    collection = FruitCollection(
        agent_id=agent.id,
        collection_date=body.collection_date,
        driver_name=body.driver_name,
        notes=body.notes,
        created_by=user.id,
        items=_build_items(rows),
    )
    _apply_totals(collection, rows)
    db.add(collection)
    await db.flush()
    await db.refresh(collection, attribute_names=["agent"])

    await log_activity(
        db, user,
        action="created",
        entity_type="collection",
        entity_id=collection.id,
        summary=(
            f"Recorded {collection.total_weight_kg} kg from {agent.full_name} "
            f"({len(rows)} price row{'s' if len(rows) != 1 else ''})"
        ),
    )
    logger.info("Collection %s created for agent %s", collection.id, agent.id)
    return collection


async def update_collection(
    db: AsyncSession,
    collection: FruitCollection,
    body: CollectionUpdate,
    user: User,
) -> FruitCollection:
    """Edit the header; a pricing payload replaces all items."""
    updates = body.model_dump(
        exclude_unset=True,
        include={"collection_date", "driver_name", "notes"},
    )
    for field_name, value in updates.items():
        setattr(collection, field_name, value)

    rows = body.price_rows()
    if rows is not None:
        collection.items = _build_items(rows)
        _apply_totals(collection, rows)

    await db.flush()
    await log_activity(
        db, user,
        action="updated",
        entity_type="collection",
        entity_id=collection.id,
        summary="Updated collection" + (" and replaced price rows" if rows else ""),
        details={"fields": sorted(updates)},
    )
    return collection


async def delete_collection(db: AsyncSession, collection: FruitCollection, user: User) -> None:
    await log_activity(
        db, user,
        action="deleted",
        entity_type="collection",
        entity_id=collection.id,
        summary=f"Deleted collection of {collection.collection_date}",
    )
    await db.delete(collection)
    await db.flush()


def collection_breakdown(collection: FruitCollection) -> tuple[PriceBreakdown, Decimal]:
    """Price buckets and fruit spend for one stored collection."""
    items = [normalize_item(item) for item in collection.items]
    record = normalize_collection(collection, items)
    return price_breakdown(items), collection_fruit_spend(record)
