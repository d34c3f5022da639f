"""Limited offers, preorders and badges.

Revision ID: 20261001_02
Revises: 20261001_01
Create Date: 2026-10-01
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision: str = "20261001_02"
down_revision: Union[str, None] = "20261001_01"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


offer_order_status = sa.Enum("reserved", "picked_up", "cancelled", name="offer_order_status")
preorder_unit = sa.Enum("per_100g", "per_portion", name="preorder_unit")
preorder_status = sa.Enum(
    "requested", "confirmed", "ready", "picked_up", "cancelled", name="preorder_status"
)
badge_condition_type = sa.Enum(
    "total_points", "purchase_count", "redemption_count", name="badge_condition_type"
)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "offers",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("subtitle", sa.String(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("hero_image_url", sa.String(), nullable=True),
        sa.Column("price_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("limit_total", sa.Integer(), nullable=False),
        sa.Column("sold_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("starts_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("ends_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("pickup_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.CheckConstraint("limit_total >= 0", name="ck_offers_limit_total_non_negative"),
        sa.CheckConstraint("sold_count >= 0", name="ck_offers_sold_count_non_negative"),
        sa.CheckConstraint("sold_count <= limit_total", name="ck_offers_sold_count_within_limit"),
    )

    op.create_table(
        "orders",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("customer_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("offer_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("status", offer_order_status, nullable=False, server_default="reserved"),
        sa.Column("picked_up_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["customer_id"], ["customers.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["offer_id"], ["offers.id"], ondelete="RESTRICT"),
        sa.CheckConstraint("quantity > 0", name="ck_orders_quantity_positive"),
    )
    op.create_index("ix_orders_customer_id", "orders", ["customer_id"])
    op.create_index("ix_orders_offer_id", "orders", ["offer_id"])

    op.create_table(
        "preorder_products",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("unit", preorder_unit, nullable=False, server_default="per_100g"),
        sa.Column("step", sa.Integer(), nullable=False, server_default="100"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.CheckConstraint("step >= 1", name="ck_preorder_products_step_positive"),
    )

    op.create_table(
        "preorders",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("customer_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("status", preorder_status, nullable=False, server_default="requested"),
        sa.Column("desired_pickup_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("confirmed_pickup_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("ready_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("picked_up_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["customer_id"], ["customers.id"], ondelete="RESTRICT"),
    )
    op.create_index("ix_preorders_customer_id", "preorders", ["customer_id"])

    op.create_table(
        "preorder_items",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("preorder_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("product_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("product_name", sa.String(), nullable=False),
        sa.ForeignKeyConstraint(["preorder_id"], ["preorders.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["product_id"], ["preorder_products.id"], ondelete="RESTRICT"),
        sa.CheckConstraint("quantity > 0", name="ck_preorder_items_quantity_positive"),
    )
    op.create_index("ix_preorder_items_preorder_id", "preorder_items", ["preorder_id"])

    op.create_table(
        "badges",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("icon", sa.String(length=64), nullable=False, server_default="award"),
        sa.Column("condition_type", badge_condition_type, nullable=False),
        sa.Column("condition_value", sa.Integer(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    op.create_table(
        "customer_badges",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("customer_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("badge_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("unlocked_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(["customer_id"], ["customers.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["badge_id"], ["badges.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("customer_id", "badge_id", name="uq_customer_badges_customer_badge"),
    )
    op.create_index("ix_customer_badges_customer_id", "customer_badges", ["customer_id"])


def downgrade() -> None:
    op.drop_index("ix_customer_badges_customer_id", table_name="customer_badges")
    op.drop_table("customer_badges")
    op.drop_table("badges")
    op.drop_index("ix_preorder_items_preorder_id", table_name="preorder_items")
    op.drop_table("preorder_items")
    op.drop_index("ix_preorders_customer_id", table_name="preorders")
    op.drop_table("preorders")
    op.drop_table("preorder_products")
    op.drop_index("ix_orders_offer_id", table_name="orders")
    op.drop_index("ix_orders_customer_id", table_name="orders")
    op.drop_table("orders")
    op.drop_table("offers")

    bind = op.get_bind()
    for enum_type in (badge_condition_type, preorder_status, preorder_unit, offer_order_status):
        enum_type.drop(bind, checkfirst=True)
