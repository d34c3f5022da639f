"""Customer balance and points ledger models."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from uuid import uuid4

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    Enum as SqlEnum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    func,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from dorfladen_api.db.base import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def enum_values(enum_cls: type[Enum]) -> list[str]:
    """Persist enum values (not member names) so raw SQL and migrations agree."""

    return [member.value for member in enum_cls]


class Customer(Base):
    """Loyalty customer keyed by the identity provider's user id."""

    __tablename__ = "customers"
    __table_args__ = (
        CheckConstraint("points >= 0", name="ck_customers_points_non_negative"),
        CheckConstraint("total_points >= 0", name="ck_customers_total_points_non_negative"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    email = Column(String, nullable=False, index=True)
    name = Column(String, nullable=False)
    points = Column(Integer, nullable=False, default=0, server_default="0")
    total_points = Column(Integer, nullable=False, default=0, server_default="0")
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    transactions = relationship("LedgerTransaction", back_populates="customer")
    claims = relationship("Claim", back_populates="customer")
    badges = relationship("CustomerBadge", back_populates="customer")


class TransactionType(str, Enum):
    """Balance-affecting event categories."""

    PURCHASE = "purchase"
    REDEMPTION = "redemption"


class LedgerTransaction(Base):
    """Immutable audit entry for one accepted balance change."""

    __tablename__ = "transactions"
    __table_args__ = (
        Index("ix_transactions_customer_created", "customer_id", "created_at"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    customer_id = Column(
        UUID(as_uuid=True), ForeignKey("customers.id", ondelete="RESTRICT"), nullable=False
    )
    type = Column(
        SqlEnum(TransactionType, name="transaction_type", values_callable=enum_values),
        nullable=False,
    )
    points_delta = Column(Integer, nullable=False)
    amount = Column(Numeric(12, 2), nullable=False, default=0, server_default="0")
    description = Column(Text, nullable=False)
    claim_id = Column(UUID(as_uuid=True), ForeignKey("claims.id", ondelete="SET NULL"), nullable=True)
    reward_id = Column(UUID(as_uuid=True), ForeignKey("rewards.id", ondelete="SET NULL"), nullable=True)
    # Unique index doubles as the idempotency guard for point awards.
    scan_token = Column(String(128), nullable=True, unique=True)
    # Python-side default keeps sub-second precision for cursor pagination.
    created_at = Column(DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False)

    customer = relationship("Customer", back_populates="transactions")
    claim = relationship("Claim")
