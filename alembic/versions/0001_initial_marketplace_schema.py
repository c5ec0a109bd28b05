"""initial marketplace schema

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-18 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision: str = "0001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSONType = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")
Money = sa.Numeric(10, 2)


def _timestamps(updated: bool = True) -> list[sa.Column]:
    cols = [sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True)]
    if updated:
        cols.append(sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True))
    return cols


def upgrade() -> None:
    op.create_table(
        "principals",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("email", sa.Text(), nullable=True),
        sa.Column("signup_metadata", JSONType, nullable=False),
        *_timestamps(updated=False),
    )

    op.create_table(
        "profiles",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("principals.id", ondelete="CASCADE"), nullable=False, unique=True),
        sa.Column("full_name", sa.Text(), nullable=True),
        sa.Column("phone", sa.Text(), nullable=True),
        sa.Column("address", sa.Text(), nullable=True),
        sa.Column("date_of_birth", sa.Date(), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        "user_roles",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("principals.id", ondelete="CASCADE"), nullable=False),
        sa.Column("role", sa.Text(), nullable=False),
        *_timestamps(updated=False),
        sa.UniqueConstraint("user_id", "role", name="uq_user_roles_user_role"),
        sa.CheckConstraint("role IN ('admin', 'pharmacy', 'customer', 'delivery_agent')", name="ck_user_roles_role"),
    )

    op.create_table(
        "pharmacies",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("principals.id", ondelete="CASCADE"), nullable=False, unique=True),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("license_number", sa.Text(), nullable=False, unique=True),
        sa.Column("regulatory_number", sa.Text(), nullable=True),
        sa.Column("phone", sa.Text(), nullable=False),
        sa.Column("email", sa.Text(), nullable=False),
        sa.Column("address", sa.Text(), nullable=False),
        sa.Column("city", sa.Text(), nullable=False),
        sa.Column("state", sa.Text(), nullable=False),
        sa.Column("verification_status", sa.Text(), nullable=False, server_default="pending"),
        sa.Column("verified_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "verification_status IN ('pending', 'approved', 'rejected')", name="ck_pharmacies_verification_status"
        ),
    )

    op.create_table(
        "products",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("pharmacy_id", sa.Uuid(), sa.ForeignKey("pharmacies.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("category", sa.Text(), nullable=False),
        sa.Column("brand", sa.Text(), nullable=True),
        sa.Column("dosage", sa.Text(), nullable=True),
        sa.Column("price", Money, nullable=False),
        sa.Column("stock_quantity", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("expiry_date", sa.Date(), nullable=True),
        sa.Column("image_url", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.UniqueConstraint("id", "pharmacy_id", name="uq_products_id_pharmacy"),
        sa.CheckConstraint(
            "category IN ('otc', 'supplements', 'cosmetics', 'medical_devices')", name="ck_products_category"
        ),
        sa.CheckConstraint("stock_quantity >= 0", name="ck_products_stock_non_negative"),
        sa.CheckConstraint("price >= 0", name="ck_products_price_non_negative"),
    )
    op.create_index("ix_products_pharmacy_id", "products", ["pharmacy_id"])

    op.create_table(
        "orders",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("customer_id", sa.Uuid(), sa.ForeignKey("principals.id", ondelete="CASCADE"), nullable=False),
        sa.Column("pharmacy_id", sa.Uuid(), sa.ForeignKey("pharmacies.id", ondelete="CASCADE"), nullable=False),
        sa.Column("total_amount", Money, nullable=False),
        sa.Column("status", sa.Text(), nullable=False, server_default="pending"),
        sa.Column("delivery_address", sa.Text(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("id", "pharmacy_id", name="uq_orders_id_pharmacy"),
        sa.CheckConstraint(
            "status IN ('pending', 'approved', 'processing', 'shipped', 'delivered', 'cancelled')",
            name="ck_orders_status",
        ),
    )
    op.create_index("ix_orders_customer_id", "orders", ["customer_id"])
    op.create_index("ix_orders_pharmacy_id", "orders", ["pharmacy_id"])

    op.create_table(
        "order_items",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("order_id", sa.Uuid(), nullable=False),
        sa.Column("product_id", sa.Uuid(), nullable=False),
        sa.Column("pharmacy_id", sa.Uuid(), nullable=False),
        sa.Column("product_name", sa.Text(), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("unit_price", Money, nullable=False),
        sa.Column("total_price", Money, nullable=False),
        *_timestamps(updated=False),
        sa.ForeignKeyConstraint(
            ["order_id", "pharmacy_id"], ["orders.id", "orders.pharmacy_id"],
            name="fk_order_items_order_pharmacy", ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["product_id", "pharmacy_id"], ["products.id", "products.pharmacy_id"],
            name="fk_order_items_product_pharmacy",
        ),
        sa.CheckConstraint("quantity > 0", name="ck_order_items_quantity_positive"),
    )

    op.create_table(
        "order_status_history",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("order_id", sa.Uuid(), sa.ForeignKey("orders.id", ondelete="CASCADE"), nullable=False),
        sa.Column("from_status", sa.Text(), nullable=True),
        sa.Column("to_status", sa.Text(), nullable=False),
        sa.Column("actor_id", sa.Uuid(), nullable=True),
        sa.Column("actor_role", sa.Text(), nullable=True),
        sa.Column("source", sa.Text(), nullable=True),
        sa.Column("note", sa.Text(), nullable=True),
        *_timestamps(updated=False),
    )

    op.create_table(
        "deliveries",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("order_id", sa.Uuid(), sa.ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, unique=True),
        sa.Column(
            "delivery_agent_id", sa.Uuid(), sa.ForeignKey("principals.id", ondelete="SET NULL"), nullable=True
        ),
        sa.Column("status_delivery", sa.Text(), nullable=False, server_default="pending"),
        sa.Column("confirmed_by_admin", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("confirmed_by_pharmacy", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("delivered_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("status_delivery IN ('pending', 'in-transit', 'delivered')", name="ck_deliveries_status"),
        sa.CheckConstraint(
            "(status_delivery = 'delivered' AND delivered_at IS NOT NULL)"
            " OR (status_delivery <> 'delivered' AND delivered_at IS NULL)",
            name="ck_deliveries_delivered_at",
        ),
    )
    op.create_index("ix_deliveries_delivery_agent_id", "deliveries", ["delivery_agent_id"])


def downgrade() -> None:
    op.drop_index("ix_deliveries_delivery_agent_id", table_name="deliveries")
    op.drop_table("deliveries")
    op.drop_table("order_status_history")
    op.drop_table("order_items")
    op.drop_index("ix_orders_pharmacy_id", table_name="orders")
    op.drop_index("ix_orders_customer_id", table_name="orders")
    op.drop_table("orders")
    op.drop_index("ix_products_pharmacy_id", table_name="products")
    op.drop_table("products")
    op.drop_table("pharmacies")
    op.drop_table("user_roles")
    op.drop_table("profiles")
    op.drop_table("principals")
