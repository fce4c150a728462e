"""FruitPriceChange — append-only ledger of an agent's buying price.

carryover_kg records the "fruit on ground" still owed at the old price
when the price changes.  Nothing allocates it into collections; the
operator splits the next collection by hand using the price breakdown.
"""

import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, ForeignKey, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from palmtrack.database import Base


class FruitPriceChange(Base):
    __tablename__ = "agent_fruit_price_changes"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    agent_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("agents.id", ondelete="CASCADE"), nullable=False, index=True
    )
    price_per_kg: Mapped[Decimal] = mapped_column(Numeric(12, 4), nullable=False)
    effective_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False, index=True
    )
    carryover_kg: Mapped[Decimal] = mapped_column(Numeric(14, 3), default=0)
    note: Mapped[str | None] = mapped_column(Text)

    created_by: Mapped[str | None] = mapped_column(String(36))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
