"""MonthlyReconciliation — per-agent, per-month settlement snapshot.

Unique on (agent_id, month); regeneration updates the existing row.

Lifecycle:  OPEN → RENDERED → CLOSED
"""

import uuid
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import Date, DateTime, ForeignKey, Numeric, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from palmtrack.database import Base


class MonthlyReconciliation(Base):
    __tablename__ = "monthly_reconciliations"
    __table_args__ = (
        UniqueConstraint("agent_id", "month", name="uq_reconciliation_agent_month"),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    agent_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("agents.id", ondelete="CASCADE"), nullable=False, index=True
    )
    # First day of the month, e.g. 2026-01-01
    month: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    total_advance: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=0)
    total_weight_kg: Mapped[Decimal] = mapped_column(Numeric(14, 3), default=0)
    # OPEN | RENDERED | CLOSED
    status: Mapped[str] = mapped_column(String(20), default="OPEN")
    comments: Mapped[str | None] = mapped_column(Text)

    created_by: Mapped[str | None] = mapped_column(String(36))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    agent = relationship("Agent", lazy="selectin")

    @property
    def agent_name(self) -> str | None:
        return self.agent.full_name if self.agent else None
