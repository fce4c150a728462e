"""Aggregate model imports for Alembic auto-detection."""

# Identity
from palmtrack.models.user import User, UserRole  # noqa: F401

# Field operations
from palmtrack.models.agent import Agent  # noqa: F401
from palmtrack.models.cash_advance import CashAdvance  # noqa: F401
from palmtrack.models.expense import AgentExpense  # noqa: F401
from palmtrack.models.fruit_collection import CollectionItem, FruitCollection  # noqa: F401
from palmtrack.models.price_change import FruitPriceChange  # noqa: F401
from palmtrack.models.reconciliation import MonthlyReconciliation  # noqa: F401

# Sales
from palmtrack.models.customer import Customer  # noqa: F401
from palmtrack.models.order import (  # noqa: F401
    DeliveryEvent,
    Order,
    OrderItem,
    Payment,
    Receipt,
)

# Audit
from palmtrack.models.activity_log import ActivityLog  # noqa: F401
