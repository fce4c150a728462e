"""Database engine, session factory, and declarative base.

Single-tenant: every table lives in one schema.  Each request gets one
session via `get_db()`; the session commits when the route returns and
rolls back on any exception, so a multi-step write (payment + order
balance, collection + items, reconciliation upsert) is all-or-nothing.
"""

from sqlalchemy.ext.asyncio import (
    AsyncSession,
    create_async_engine,
    async_sessionmaker,
)
from sqlalchemy.orm import DeclarativeBase

from palmtrack.config import settings

_engine_kwargs = {"echo": False}
if settings.database_url.startswith("postgresql"):
    _engine_kwargs.update(pool_size=20, max_overflow=10)

engine = create_async_engine(settings.database_url, **_engine_kwargs)

async_session = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)


class Base(DeclarativeBase):
    """Base class for all PalmTrack models."""
    pass


# ── Session dependency ──────────────────────────────────────

async def get_db() -> AsyncSession:
    """Yield a session for the duration of one request."""
    async with async_session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
