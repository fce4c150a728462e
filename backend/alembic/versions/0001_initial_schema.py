"""Initial schema — identity, agents, field operations, orders, audit.

Revision ID: 0001
Revises: (none)
Create Date: 2026-10-19

Run with:
    alembic upgrade head
"""

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None

from alembic import op
import sqlalchemy as sa


def _id() -> sa.Column:
    return sa.Column("id", sa.String(36), primary_key=True)


def _agent_fk(**kw) -> sa.Column:
    return sa.Column(
        "agent_id", sa.String(36),
        sa.ForeignKey("agents.id", ondelete="CASCADE"), nullable=False, **kw
    )


def _order_fk() -> sa.Column:
    return sa.Column(
        "order_id", sa.String(36),
        sa.ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True,
    )


def upgrade() -> None:
    # ── Agents & identity ────────────────────────────────────

    op.create_table(
        "agents",
        _id(),
        sa.Column("full_name", sa.String(255), nullable=False, index=True),
        sa.Column("phone", sa.String(30)),
        sa.Column("location", sa.String(255)),
        sa.Column("region", sa.String(100)),
        sa.Column("community", sa.String(100)),
        sa.Column("photo_path", sa.String(500)),
        sa.Column("status", sa.String(20), server_default="ACTIVE", index=True),
        sa.Column("archived_at", sa.DateTime()),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
    )

    op.create_table(
        "users",
        _id(),
        sa.Column("email", sa.String(255), nullable=False, unique=True, index=True),
        sa.Column("hashed_password", sa.String(255), nullable=False),
        sa.Column("full_name", sa.String(255), nullable=False),
        sa.Column("role", sa.Enum("ADMIN", "AGENT", name="userrole"), server_default="AGENT"),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true()),
        sa.Column(
            "agent_id", sa.String(36),
            sa.ForeignKey("agents.id", ondelete="SET NULL"), unique=True,
        ),
        sa.Column("must_change_password", sa.Boolean(), server_default=sa.false()),
        sa.Column("created_by", sa.String(36)),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
    )

    # ── Field operations ─────────────────────────────────────

    op.create_table(
        "cash_advances",
        _id(),
        _agent_fk(index=True),
        sa.Column("advance_date", sa.Date(), nullable=False, index=True),
        sa.Column("amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("payment_method", sa.String(10), server_default="CASH"),
        sa.Column("signed_by", sa.String(255)),
        sa.Column("notes", sa.Text()),
        sa.Column("created_by", sa.String(36)),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
    )

    op.create_table(
        "agent_expenses",
        _id(),
        _agent_fk(index=True),
        sa.Column("expense_type", sa.String(100), nullable=False),
        sa.Column("amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("expense_date", sa.Date(), nullable=False, index=True),
        sa.Column("created_by", sa.String(36)),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now(), index=True),
    )

    op.create_table(
        "fruit_collections",
        _id(),
        _agent_fk(index=True),
        sa.Column("collection_date", sa.Date(), nullable=False, index=True),
        sa.Column("driver_name", sa.String(255)),
        sa.Column("notes", sa.Text()),
        sa.Column("weight_kg", sa.Numeric(14, 3), server_default="0"),
        sa.Column("total_weight_kg", sa.Numeric(14, 3)),
        sa.Column("total_amount_spent", sa.Numeric(16, 2)),
        sa.Column("has_price_breakdown", sa.Boolean(), server_default=sa.false()),
        sa.Column("created_by", sa.String(36)),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
    )

    op.create_table(
        "fruit_collection_items",
        _id(),
        sa.Column(
            "collection_id", sa.String(36),
            sa.ForeignKey("fruit_collections.id", ondelete="CASCADE"),
            nullable=False, index=True,
        ),
        sa.Column("weight_kg", sa.Numeric(14, 3), nullable=False),
        sa.Column("price_per_kg", sa.Numeric(12, 4), nullable=False),
        sa.Column("line_total", sa.Numeric(16, 4), nullable=False),
        sa.Column("position", sa.Integer(), server_default="0"),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
    )

    op.create_table(
        "agent_fruit_price_changes",
        _id(),
        _agent_fk(index=True),
        sa.Column("price_per_kg", sa.Numeric(12, 4), nullable=False),
        sa.Column(
            "effective_at", sa.DateTime(), nullable=False,
            server_default=sa.func.now(), index=True,
        ),
        sa.Column("carryover_kg", sa.Numeric(14, 3), server_default="0"),
        sa.Column("note", sa.Text()),
        sa.Column("created_by", sa.String(36)),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
    )

    op.create_table(
        "monthly_reconciliations",
        _id(),
        _agent_fk(index=True),
        sa.Column("month", sa.Date(), nullable=False, index=True),
        sa.Column("total_advance", sa.Numeric(14, 2), server_default="0"),
        sa.Column("total_weight_kg", sa.Numeric(14, 3), server_default="0"),
        sa.Column("status", sa.String(20), server_default="OPEN"),
        sa.Column("comments", sa.Text()),
        sa.Column("created_by", sa.String(36)),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
        sa.UniqueConstraint("agent_id", "month", name="uq_reconciliation_agent_month"),
    )

    # ── Sales ────────────────────────────────────────────────

    op.create_table(
        "customers",
        _id(),
        sa.Column("full_name", sa.String(255), nullable=False, index=True),
        sa.Column("phone", sa.String(30)),
        sa.Column("delivery_address", sa.Text()),
        sa.Column("notes", sa.Text()),
        sa.Column("created_by", sa.String(36)),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
    )

    op.create_table(
        "orders",
        _id(),
        sa.Column(
            "customer_id", sa.String(36),
            sa.ForeignKey("customers.id"), nullable=False, index=True,
        ),
        sa.Column("order_category", sa.String(20), nullable=False, index=True),
        sa.Column("order_date", sa.Date(), nullable=False, index=True),
        sa.Column("notes", sa.Text()),
        sa.Column("subtotal", sa.Numeric(14, 2), server_default="0"),
        sa.Column("discount", sa.Numeric(14, 2), server_default="0"),
        sa.Column("total_amount", sa.Numeric(14, 2), server_default="0"),
        sa.Column("amount_paid", sa.Numeric(14, 2), server_default="0"),
        sa.Column("balance_due", sa.Numeric(14, 2), server_default="0"),
        sa.Column("delivery_status", sa.String(30), server_default="PENDING", index=True),
        sa.Column("delivery_date", sa.Date()),
        sa.Column("delivered_by", sa.String(255)),
        sa.Column("created_by", sa.String(36)),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
    )

    op.create_table(
        "order_items",
        _id(),
        _order_fk(),
        sa.Column("item_type", sa.String(50), nullable=False),
        sa.Column("description", sa.String(255)),
        sa.Column("quantity", sa.Numeric(14, 3), server_default="0"),
        sa.Column("unit_price", sa.Numeric(14, 4), nullable=False),
        sa.Column("weight_kg", sa.Numeric(14, 3)),
        sa.Column("line_total", sa.Numeric(16, 2), server_default="0"),
    )

    op.create_table(
        "payments",
        _id(),
        _order_fk(),
        sa.Column("payment_date", sa.Date(), nullable=False),
        sa.Column("amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("method", sa.String(20), server_default="CASH"),
        sa.Column("received_by", sa.String(255)),
        sa.Column("reference", sa.String(100)),
        sa.Column("created_by", sa.String(36)),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
    )

    op.create_table(
        "receipts",
        _id(),
        _order_fk(),
        sa.Column("receipt_number", sa.String(50), nullable=False, unique=True, index=True),
        sa.Column("issued_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("issued_by", sa.String(36)),
        sa.Column("voided_at", sa.DateTime()),
        sa.Column("void_reason", sa.Text()),
    )

    op.create_table(
        "delivery_events",
        _id(),
        _order_fk(),
        sa.Column("status", sa.String(30), nullable=False),
        sa.Column("event_date", sa.Date(), nullable=False),
        sa.Column("delivered_by", sa.String(255)),
        sa.Column("notes", sa.Text()),
        sa.Column("created_by", sa.String(36)),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
    )

    # ── Audit ────────────────────────────────────────────────

    op.create_table(
        "activity_logs",
        _id(),
        sa.Column("user_id", sa.String(36), nullable=False, index=True),
        sa.Column("user_name", sa.String(200), nullable=False),
        sa.Column("action", sa.String(50), nullable=False, index=True),
        sa.Column("entity_type", sa.String(50), nullable=False, index=True),
        sa.Column("entity_id", sa.String(36)),
        sa.Column("entity_code", sa.String(100)),
        sa.Column("summary", sa.Text()),
        sa.Column("details", sa.JSON()),
        sa.Column(
            "created_at", sa.DateTime(), nullable=False,
            server_default=sa.func.now(), index=True,
        ),
    )


def downgrade() -> None:
    for table in (
        "activity_logs",
        "delivery_events",
        "receipts",
        "payments",
        "order_items",
        "orders",
        "customers",
        "monthly_reconciliations",
        "agent_fruit_price_changes",
        "fruit_collection_items",
        "fruit_collections",
        "agent_expenses",
        "cash_advances",
        "users",
        "agents",
    ):
        op.drop_table(table)
    sa.Enum(name="userrole").drop(op.get_bind(), checkfirst=True)
