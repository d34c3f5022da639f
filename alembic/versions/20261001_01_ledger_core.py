"""Ledger core: customers, transactions, rewards and claims, settings.

Revision ID: 20261001_01
Revises:
Create Date: 2026-10-01
"""

from typing import Sequence, Union
from uuid import UUID

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision: str = "20261001_01"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


transaction_type = sa.Enum("purchase", "redemption", name="transaction_type")
claim_status = sa.Enum("issued", "fulfilled", name="claim_status")


def upgrade() -> None:
    op.create_table(
        "customers",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("points", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_points", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint("points >= 0", name="ck_customers_points_non_negative"),
        sa.CheckConstraint("total_points >= 0", name="ck_customers_total_points_non_negative"),
    )
    op.create_index("ix_customers_email", "customers", ["email"])

    op.create_table(
        "rewards",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("points_required", sa.Integer(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint("points_required > 0", name="ck_rewards_points_required_positive"),
    )

    op.create_table(
        "claims",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("customer_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("reward_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("code", sa.String(length=128), nullable=False),
        sa.Column("status", claim_status, nullable=False, server_default="issued"),
        sa.Column("points_redeemed", sa.Integer(), nullable=False),
        sa.Column("reward_name", sa.String(), nullable=False),
        sa.Column("reward_description", sa.Text(), nullable=False, server_default=""),
        sa.Column("fulfilled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(["customer_id"], ["customers.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["reward_id"], ["rewards.id"], ondelete="SET NULL"),
    )
    op.create_index("ix_claims_customer_id", "claims", ["customer_id"])
    op.create_index("ix_claims_code", "claims", ["code"], unique=True)

    op.create_table(
        "transactions",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("customer_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("type", transaction_type, nullable=False),
        sa.Column("points_delta", sa.Integer(), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("claim_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("reward_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("scan_token", sa.String(length=128), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(["customer_id"], ["customers.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["claim_id"], ["claims.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["reward_id"], ["rewards.id"], ondelete="SET NULL"),
        sa.UniqueConstraint("scan_token", name="uq_transactions_scan_token"),
    )
    op.create_index("ix_transactions_customer_created", "transactions", ["customer_id", "created_at"])

    op.create_table(
        "settings",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("key", sa.String(length=128), nullable=False),
        sa.Column("value", sa.String(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_settings_key", "settings", ["key"], unique=True)

    op.bulk_insert(
        sa.table(
            "settings",
            sa.column("id", postgresql.UUID(as_uuid=True)),
            sa.column("key", sa.String()),
            sa.column("value", sa.String()),
            sa.column("description", sa.Text()),
        ),
        [
            {
                "id": UUID("6f0b3c52-4bd4-4c4f-9a3e-2f0c1a9d7e01"),
                "key": "points_per_euro",
                "value": "1",
                "description": "Punkte pro Euro Einkaufswert",
            }
        ],
    )


def downgrade() -> None:
    op.drop_index("ix_settings_key", table_name="settings")
    op.drop_table("settings")
    op.drop_index("ix_transactions_customer_created", table_name="transactions")
    op.drop_table("transactions")
    op.drop_index("ix_claims_code", table_name="claims")
    op.drop_index("ix_claims_customer_id", table_name="claims")
    op.drop_table("claims")
    op.drop_table("rewards")
    op.drop_index("ix_customers_email", table_name="customers")
    op.drop_table("customers")

    bind = op.get_bind()
    claim_status.drop(bind, checkfirst=True)
    transaction_type.drop(bind, checkfirst=True)
