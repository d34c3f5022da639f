"""Achievement badges unlocked by ledger activity."""

from __future__ import annotations

from enum import Enum
from uuid import uuid4

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum as SqlEnum,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from dorfladen_api.db.base import Base
from dorfladen_api.models.customer import enum_values


class BadgeConditionType(str, Enum):
    TOTAL_POINTS = "total_points"
    PURCHASE_COUNT = "purchase_count"
    REDEMPTION_COUNT = "redemption_count"


class Badge(Base):
    __tablename__ = "badges"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=False, default="", server_default="")
    icon = Column(String(64), nullable=False, default="award", server_default="award")
    condition_type = Column(
        SqlEnum(BadgeConditionType, name="badge_condition_type", values_callable=enum_values),
        nullable=False,
    )
    condition_value = Column(Integer, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True, server_default="true")
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class CustomerBadge(Base):
    __tablename__ = "customer_badges"
    __table_args__ = (
        UniqueConstraint("customer_id", "badge_id", name="uq_customer_badges_customer_badge"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    customer_id = Column(
        UUID(as_uuid=True), ForeignKey("customers.id", ondelete="CASCADE"), nullable=False, index=True
    )
    badge_id = Column(UUID(as_uuid=True), ForeignKey("badges.id", ondelete="CASCADE"), nullable=False)
    unlocked_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    customer = relationship("Customer", back_populates="badges")
    badge = relationship("Badge")
