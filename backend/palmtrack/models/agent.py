"""Agent — a field collector buying palm fruit on the company's behalf.

Agents with transactional history are archived (status INACTIVE +
archived_at) rather than deleted, so past advances and collections keep
their owner.
"""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from palmtrack.database import Base


class Agent(Base):
    __tablename__ = "agents"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    full_name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    phone: Mapped[str | None] = mapped_column(String(30))
    location: Mapped[str | None] = mapped_column(String(255))
    # Older records carry region/community instead of location
    region: Mapped[str | None] = mapped_column(String(100))
    community: Mapped[str | None] = mapped_column(String(100))

    # Storage path of the agent photo (see services/storage.py)
    photo_path: Mapped[str | None] = mapped_column(String(500))

    # ACTIVE | INACTIVE
    status: Mapped[str] = mapped_column(String(20), default="ACTIVE", index=True)
    archived_at: Mapped[datetime | None] = mapped_column(DateTime)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    @property
    def is_archived(self) -> bool:
        return self.archived_at is not None

    @property
    def has_photo(self) -> bool:
        return bool(self.photo_path)
