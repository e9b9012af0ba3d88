"""initial wallet fulfillment schema

Revision ID: 20261017_initial
Revises:
Create Date: 2026-10-17 00:00:00.000000

Creates:
- orders: one row per storefront order, unique on source_order_id / order_number
- order_line_items: wallets and accessories with claim/complete lifecycle
- daily_points: per-sewer, per-day points ledger, unique on (staff_id, date)
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261017_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "orders",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("order_number", sa.String(64), nullable=False),
        sa.Column("source_order_id", sa.String(64), nullable=False),
        sa.Column("status", sa.String(16), nullable=False, server_default="pending"),
        sa.Column("orderer_name", sa.String(255), nullable=False, server_default="Unknown"),
        sa.Column("points", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("wallet_type_summary", sa.Text(), nullable=True),
        sa.Column("total_wallets", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("total_accessories", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("source_metadata", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("source_order_id", name="uq_orders_source_order_id"),
        sa.UniqueConstraint("order_number", name="uq_orders_order_number"),
        sqlite_autoincrement=True,
    )

    with op.batch_alter_table("orders", schema=None) as batch_op:
        batch_op.create_index("ix_orders_source_order_id", ["source_order_id"], unique=False)
        batch_op.create_index("ix_orders_status", ["status"], unique=False)

    op.create_table(
        "order_line_items",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("order_id", sa.Integer(), nullable=False),
        sa.Column("order_number", sa.String(64), nullable=False),
        sa.Column("item_type", sa.String(16), nullable=False),
        sa.Column("source_line_item_id", sa.String(64), nullable=True),
        sa.Column("product_id", sa.String(64), nullable=True),
        sa.Column("variant_id", sa.String(64), nullable=True),
        sa.Column("sku", sa.String(128), nullable=True),
        sa.Column("product_name", sa.String(255), nullable=True),
        sa.Column("variant_name", sa.String(255), nullable=True),
        sa.Column("quantity", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("price", sa.Numeric(10, 2), nullable=True),
        sa.Column("wallet_type", sa.String(64), nullable=True),
        sa.Column("points", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("wallet_attributes", sa.JSON(), nullable=True),
        sa.Column("status", sa.String(16), nullable=False, server_default="pending"),
        sa.Column("claimed_by", sa.String(64), nullable=True),
        sa.Column("claimed_by_name", sa.String(255), nullable=True),
        sa.Column("claimed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("voided_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("source_line_item", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.ForeignKeyConstraint(["order_id"], ["orders.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )

    with op.batch_alter_table("order_line_items", schema=None) as batch_op:
        batch_op.create_index("ix_order_line_items_order_id", ["order_id"], unique=False)
        batch_op.create_index("ix_order_line_items_status", ["status"], unique=False)
        batch_op.create_index("ix_order_line_items_wallet_type", ["wallet_type"], unique=False)
        batch_op.create_index("ix_line_items_order_status", ["order_id", "status"], unique=False)
        batch_op.create_index("ix_line_items_claimed_by_status", ["claimed_by", "status"], unique=False)
        batch_op.create_index("ix_line_items_type_status", ["item_type", "status"], unique=False)

    op.create_table(
        "daily_points",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("staff_id", sa.String(64), nullable=False),
        sa.Column("staff_name", sa.String(255), nullable=True),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("points", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("orders_completed", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("staff_id", "date", name="uq_daily_points_staff_date"),
        sqlite_autoincrement=True,
    )

    with op.batch_alter_table("daily_points", schema=None) as batch_op:
        batch_op.create_index("ix_daily_points_staff_id", ["staff_id"], unique=False)
        batch_op.create_index("ix_daily_points_date", ["date"], unique=False)


def downgrade():
    with op.batch_alter_table("daily_points", schema=None) as batch_op:
        batch_op.drop_index("ix_daily_points_date")
        batch_op.drop_index("ix_daily_points_staff_id")
    op.drop_table("daily_points")

    with op.batch_alter_table("order_line_items", schema=None) as batch_op:
        batch_op.drop_index("ix_line_items_type_status")
        batch_op.drop_index("ix_line_items_claimed_by_status")
        batch_op.drop_index("ix_line_items_order_status")
        batch_op.drop_index("ix_order_line_items_wallet_type")
        batch_op.drop_index("ix_order_line_items_status")
        batch_op.drop_index("ix_order_line_items_order_id")
    op.drop_table("order_line_items")

    with op.batch_alter_table("orders", schema=None) as batch_op:
        batch_op.drop_index("ix_orders_status")
        batch_op.drop_index("ix_orders_source_order_id")
    op.drop_table("orders")
