"""initial fulfilment schema

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-17 00:00:00.000000
"""

from alembic import op
import sqlalchemy as sa


revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("email", sa.String(length=255), nullable=False, unique=True),
        sa.Column("full_name", sa.String(length=200), nullable=True),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column(
            "role",
            sa.Enum("OPERATOR", "SUPERVISOR", "MANAGER", name="user_role"),
            nullable=False,
            server_default="OPERATOR",
        ),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "audit_events",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("entity_type", sa.String(length=100), nullable=False),
        sa.Column("entity_id", sa.Integer(), nullable=False),
        sa.Column("action", sa.String(length=50), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("event_metadata", sa.Text(), nullable=True),
    )

    op.create_table(
        "items",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("item_code", sa.String(length=100), nullable=False, unique=True),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("uom", sa.String(length=20), nullable=False, server_default="EA"),
        sa.Column("min_stock", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("max_stock", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("safety_stock", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "inventory",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("item_id", sa.Integer(), sa.ForeignKey("items.id"), nullable=False, unique=True),
        sa.Column("available_stock", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("reserved_stock", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("in_transit_stock", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("last_movement_at", sa.DateTime(), nullable=True),
        sa.Column("last_movement_type", sa.String(length=10), nullable=True),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint("available_stock >= 0", name="ck_inventory_available_non_negative"),
        sa.CheckConstraint("reserved_stock >= 0", name="ck_inventory_reserved_non_negative"),
        sa.CheckConstraint("in_transit_stock >= 0", name="ck_inventory_in_transit_non_negative"),
    )

    op.create_table(
        "stock_movements",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("item_id", sa.Integer(), sa.ForeignKey("items.id"), nullable=False),
        sa.Column("movement_type", sa.Enum("IN", "OUT", name="movement_type"), nullable=False),
        sa.Column("transaction_type", sa.String(length=50), nullable=False),
        sa.Column("quantity", sa.Numeric(14, 2), nullable=False),
        sa.Column("balance_after", sa.Numeric(14, 2), nullable=False),
        sa.Column("reference_type", sa.String(length=50), nullable=True),
        sa.Column("reference_id", sa.Integer(), nullable=True),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_by_user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint("quantity > 0", name="ck_stock_movement_quantity_positive"),
        sa.CheckConstraint("balance_after >= 0", name="ck_stock_movement_balance_non_negative"),
    )
    op.create_index("ix_stock_movements_item_id", "stock_movements", ["item_id"])
    op.create_index("ix_stock_movements_created_at", "stock_movements", ["created_at"])

    op.create_table(
        "blanket_orders",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("order_number", sa.String(length=50), nullable=False, unique=True),
        sa.Column("customer_name", sa.String(length=200), nullable=False),
        sa.Column("customer_code", sa.String(length=50), nullable=True),
        sa.Column("order_date", sa.Date(), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column(
            "status",
            sa.Enum("ACTIVE", "COMPLETED", "CANCELLED", name="blanket_order_status"),
            nullable=False,
            server_default="ACTIVE",
        ),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_by_user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint("start_date <= end_date", name="ck_blanket_order_date_window"),
    )

    op.create_table(
        "blanket_order_lines",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("blanket_order_id", sa.Integer(), sa.ForeignKey("blanket_orders.id"), nullable=False),
        sa.Column("line_number", sa.Integer(), nullable=False),
        sa.Column("item_id", sa.Integer(), sa.ForeignKey("items.id"), nullable=False),
        sa.Column("total_quantity", sa.Numeric(14, 2), nullable=False),
        sa.Column("released_quantity", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("delivered_quantity", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("unit_price", sa.Numeric(14, 2), nullable=True),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("blanket_order_id", "line_number", name="uq_blanket_order_line_number"),
        sa.CheckConstraint("total_quantity > 0", name="ck_blanket_line_total_positive"),
        sa.CheckConstraint(
            "delivered_quantity >= 0 AND delivered_quantity <= released_quantity "
            "AND released_quantity <= total_quantity",
            name="ck_blanket_line_quantity_bounds",
        ),
    )
    op.create_index("ix_blanket_order_lines_blanket_order_id", "blanket_order_lines", ["blanket_order_id"])

    op.create_table(
        "blanket_releases",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("release_number", sa.String(length=50), nullable=False, unique=True),
        sa.Column(
            "blanket_order_line_id",
            sa.Integer(),
            sa.ForeignKey("blanket_order_lines.id"),
            nullable=False,
        ),
        sa.Column("quantity", sa.Numeric(14, 2), nullable=False),
        sa.Column(
            "status",
            sa.Enum("PENDING", "SHIPPED", "DELIVERED", name="blanket_release_status"),
            nullable=False,
            server_default="PENDING",
        ),
        sa.Column("scheduled_delivery_date", sa.Date(), nullable=False),
        sa.Column("shipped_at", sa.DateTime(), nullable=True),
        sa.Column("actual_delivery_date", sa.DateTime(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_by_user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint("quantity > 0", name="ck_blanket_release_quantity_positive"),
    )
    op.create_index(
        "ix_blanket_releases_blanket_order_line_id", "blanket_releases", ["blanket_order_line_id"]
    )


def downgrade() -> None:
    op.drop_index("ix_blanket_releases_blanket_order_line_id", table_name="blanket_releases")
    op.drop_table("blanket_releases")
    op.drop_index("ix_blanket_order_lines_blanket_order_id", table_name="blanket_order_lines")
    op.drop_table("blanket_order_lines")
    op.drop_table("blanket_orders")
    op.drop_index("ix_stock_movements_created_at", table_name="stock_movements")
    op.drop_index("ix_stock_movements_item_id", table_name="stock_movements")
    op.drop_table("stock_movements")
    op.drop_table("inventory")
    op.drop_table("items")
    op.drop_table("audit_events")
    op.drop_table("users")
