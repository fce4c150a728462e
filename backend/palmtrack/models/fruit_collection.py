"""FruitCollection + CollectionItem — one delivery of fruit from an agent.

A collection owns one or more priced weight slices.  A single physical
delivery can be billed at several prices (part at the old price, part at
the new one); each slice is one CollectionItem.

Header totals (total_weight_kg, total_amount_spent) are written from the
items at save time.  Older rows that predate items only carry weight_kg
and, sometimes, a stored amount.
"""

import uuid
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import Boolean, Date, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from palmtrack.database import Base


class FruitCollection(Base):
    __tablename__ = "fruit_collections"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    agent_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("agents.id", ondelete="CASCADE"), nullable=False, index=True
    )
    collection_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    driver_name: Mapped[str | None] = mapped_column(String(255))
    notes: Mapped[str | None] = mapped_column(Text)

    # ── Totals ───────────────────────────────────────────────
    weight_kg: Mapped[Decimal] = mapped_column(Numeric(14, 3), default=0)
    total_weight_kg: Mapped[Decimal | None] = mapped_column(Numeric(14, 3))
    total_amount_spent: Mapped[Decimal | None] = mapped_column(Numeric(16, 2))
    has_price_breakdown: Mapped[bool] = mapped_column(Boolean, default=False)

    created_by: Mapped[str | None] = mapped_column(String(36))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    agent = relationship("Agent", lazy="selectin")
    items = relationship(
        "CollectionItem",
        back_populates="collection",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="CollectionItem.position",
    )

    @property
    def agent_name(self) -> str | None:
        return self.agent.full_name if self.agent else None


class CollectionItem(Base):
    __tablename__ = "fruit_collection_items"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    collection_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("fruit_collections.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    weight_kg: Mapped[Decimal] = mapped_column(Numeric(14, 3), nullable=False)
    price_per_kg: Mapped[Decimal] = mapped_column(Numeric(12, 4), nullable=False)
    line_total: Mapped[Decimal] = mapped_column(Numeric(16, 4), nullable=False)
    # Entry order within the collection
    position: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    collection = relationship("FruitCollection", back_populates="items")
