"""Fruit collection routes.

Route overview:
  GET    /       — list, filter by agent and date range
  POST   /       — record a collection ("same" price or a breakdown)
  GET    /{id}   — detail with items, price buckets and fruit spend
  PATCH  /{id}   — update header; a pricing payload replaces all items
  DELETE /{id}   — delete with its items
"""

from datetime import date

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from palmtrack.auth.deps import get_scope, require_permission
from palmtrack.auth.scope import AccessScope
from palmtrack.database import get_db
from palmtrack.models.fruit_collection import FruitCollection
from palmtrack.models.user import User
from palmtrack.schemas.collection import (
    CollectionCreate,
    CollectionDetail,
    CollectionOut,
    CollectionUpdate,
    PriceBucketOut,
)
from palmtrack.schemas.common import PaginatedResponse
from palmtrack.services import collections as collection_service

router = APIRouter()


def _detail(collection: FruitCollection) -> CollectionDetail:
    breakdown, spend = collection_service.collection_breakdown(collection)
    out = CollectionDetail.model_validate(collection)
    out.breakdown = [PriceBucketOut.model_validate(b) for b in breakdown.buckets]
    out.fruit_spend = spend
    return out


@router.get("/", response_model=PaginatedResponse[CollectionOut])
async def list_collections(
    agent_id: str | None = Query(None),
    date_from: date | None = Query(None),
    date_to: date | None = Query(None),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(require_permission("collections.read")),
    scope: AccessScope = Depends(get_scope),
):
    stmt = scope.restrict(select(FruitCollection), FruitCollection.agent_id)
    if agent_id:
        stmt = stmt.where(FruitCollection.agent_id == agent_id)
    if date_from:
        stmt = stmt.where(FruitCollection.collection_date >= date_from)
    if date_to:
        stmt = stmt.where(FruitCollection.collection_date <= date_to)

    total = await db.scalar(select(func.count()).select_from(stmt.subquery())) or 0
    result = await db.execute(
        stmt.order_by(
            FruitCollection.collection_date.desc(), FruitCollection.created_at.desc()
        ).limit(limit).offset(offset)
    )
    return PaginatedResponse(
        items=[CollectionOut.model_validate(c) for c in result.scalars().all()],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.post("/", response_model=CollectionDetail, status_code=status.HTTP_201_CREATED)
async def create_collection(
    body: CollectionCreate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_permission("collections.write")),
    scope: AccessScope = Depends(get_scope),
):
    collection = await collection_service.create_collection(db, body, user, scope)
    return _detail(collection)


@router.get("/{collection_id}", response_model=CollectionDetail)
async def get_collection(
    collection_id: str,
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(require_permission("collections.read")),
    scope: AccessScope = Depends(get_scope),
):
    collection = await collection_service.get_collection(db, collection_id, scope)
    return _detail(collection)


@router.patch("/{collection_id}", response_model=CollectionDetail)
async def update_collection(
    collection_id: str,
    body: CollectionUpdate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_permission("collections.write")),
    scope: AccessScope = Depends(get_scope),
):
    collection = await collection_service.get_collection(db, collection_id, scope)
    collection = await collection_service.update_collection(db, collection, body, user)
    await db.refresh(collection, attribute_names=["items"])
    return _detail(collection)


@router.delete("/{collection_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_collection(
    collection_id: str,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_permission("collections.write")),
    scope: AccessScope = Depends(get_scope),
):
    collection = await collection_service.get_collection(db, collection_id, scope)
    await collection_service.delete_collection(db, collection, user)
