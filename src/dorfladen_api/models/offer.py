"""Limited-quantity offers and their reservations."""

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


ORDER_PICKUP_CODE_PREFIX = "order_"


class Offer(Base):
    """Limited-run item sold against a hard stock cap."""

    __tablename__ = "offers"
    __table_args__ = (
        CheckConstraint("limit_total >= 0", name="ck_offers_limit_total_non_negative"),
        CheckConstraint("sold_count >= 0", name="ck_offers_sold_count_non_negative"),
        CheckConstraint("sold_count <= limit_total", name="ck_offers_sold_count_within_limit"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    title = Column(String, nullable=False)
    subtitle = Column(String, nullable=True)
    description = Column(Text, nullable=True)
    hero_image_url = Column(String, nullable=True)
    price_cents = Column(Integer, nullable=False, default=0, server_default="0")
    limit_total = Column(Integer, nullable=False)
    sold_count = Column(Integer, nullable=False, default=0, server_default="0")
    starts_at = Column(DateTime(timezone=True), nullable=True)
    ends_at = Column(DateTime(timezone=True), nullable=True)
    pickup_date = Column(DateTime(timezone=True), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True, server_default="true")
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    orders = relationship("OfferOrder", back_populates="offer")

    @property
    def remaining(self) -> int:
        return max(int(self.limit_total or 0) - int(self.sold_count or 0), 0)


class OfferOrderStatus(str, Enum):
    RESERVED = "reserved"
    PICKED_UP = "picked_up"
    CANCELLED = "cancelled"


class OfferOrder(Base):
    """Reservation of offer stock awaiting in-store pickup."""

    __tablename__ = "orders"
    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_orders_quantity_positive"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    customer_id = Column(
        UUID(as_uuid=True), ForeignKey("customers.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    offer_id = Column(
        UUID(as_uuid=True), ForeignKey("offers.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    quantity = Column(Integer, nullable=False, default=1, server_default="1")
    status = Column(
        SqlEnum(OfferOrderStatus, name="offer_order_status", values_callable=enum_values),
        nullable=False,
        default=OfferOrderStatus.RESERVED,
        server_default=OfferOrderStatus.RESERVED.value,
    )
    picked_up_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    offer = relationship("Offer", back_populates="orders")
    customer = relationship("Customer")

    @property
    def pickup_code(self) -> str:
        return f"{ORDER_PICKUP_CODE_PREFIX}{self.id}"
