"""Reward catalog and claim (redemption) models."""

from __future__ import annotations

from enum import Enum
from uuid import uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Enum as SqlEnum,
    ForeignKey,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from dorfladen_api.db.base import Base
from dorfladen_api.models.customer import enum_values


class Reward(Base):
    """Catalog item purchasable with points."""

    __tablename__ = "rewards"
    __table_args__ = (
        CheckConstraint("points_required > 0", name="ck_rewards_points_required_positive"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=False, default="", server_default="")
    points_required = Column(Integer, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True, server_default="true")
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)


class ClaimStatus(str, Enum):
    """Lifecycle of a redeemed reward."""

    ISSUED = "issued"
    FULFILLED = "fulfilled"

    @property
    def label(self) -> str:
        return _CLAIM_STATUS_LABELS[self]


_CLAIM_STATUS_LABELS = {
    ClaimStatus.ISSUED: "EINGELÖST",
    ClaimStatus.FULFILLED: "ABGEHOLT",
}


class Claim(Base):
    """Single-use redemption voucher rendered as a QR code."""

    __tablename__ = "claims"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    customer_id = Column(
        UUID(as_uuid=True), ForeignKey("customers.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    reward_id = Column(UUID(as_uuid=True), ForeignKey("rewards.id", ondelete="SET NULL"), nullable=True)
    code = Column(String(128), nullable=False, unique=True, index=True)
    status = Column(
        SqlEnum(ClaimStatus, name="claim_status", values_callable=enum_values),
        nullable=False,
        default=ClaimStatus.ISSUED,
        server_default=ClaimStatus.ISSUED.value,
    )
    points_redeemed = Column(Integer, nullable=False)
    reward_name = Column(String, nullable=False)
    reward_description = Column(Text, nullable=False, default="", server_default="")
    fulfilled_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    customer = relationship("Customer", back_populates="claims")
    reward = relationship("Reward")
