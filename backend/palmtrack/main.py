import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from palmtrack.auth.revocation import close_redis
from palmtrack.config import settings
from palmtrack.database import engine
from palmtrack.middleware.exceptions import register_exception_handlers
from palmtrack.routers import (
    admin,
    advances,
    agents,
    auth,
    collections,
    customers,
    expenses,
    files,
    health,
    orders,
    prices,
    reconciliation,
    reports,
)

logger = logging.getLogger("palmtrack")


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("PalmTrack starting (%s)", settings.environment)
    try:
        yield
    finally:
        await close_redis()
        await engine.dispose()
        logger.info("PalmTrack stopped")


app = FastAPI(
    title="PalmTrack",
    description="Palm fruit agent operations: advances, collections, reconciliation and sales",
    version="0.1.0",
    lifespan=lifespan,
)

# ── Exception Handlers ───────────────────────────────────────
register_exception_handlers(app)

# ── Middleware ───────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition"],
)

# ── Routers ──────────────────────────────────────────────────
app.include_router(health.router)
app.include_router(auth.router, prefix="/api/auth", tags=["auth"])
app.include_router(admin.router, prefix="/api/admin", tags=["admin"])
app.include_router(files.router, prefix="/api/files", tags=["files"])

app.include_router(agents.router, prefix="/api/agents", tags=["agents"])
app.include_router(prices.router, prefix="/api/agents", tags=["prices"])
app.include_router(advances.router, prefix="/api/advances", tags=["advances"])
app.include_router(expenses.router, prefix="/api/expenses", tags=["expenses"])
app.include_router(collections.router, prefix="/api/collections", tags=["collections"])
app.include_router(
    reconciliation.router, prefix="/api/reconciliations", tags=["reconciliation"]
)
app.include_router(customers.router, prefix="/api/customers", tags=["customers"])
app.include_router(orders.router, prefix="/api/orders", tags=["orders"])
app.include_router(reports.router, prefix="/api/reports", tags=["reports"])
