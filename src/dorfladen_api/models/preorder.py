"""Preorders for products sold by weight or portion."""

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
    func,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from dorfladen_api.db.base import Base
from dorfladen_api.models.customer import enum_values


PREORDER_PICKUP_CODE_PREFIX = "preorder_"


class PreorderUnit(str, Enum):
    PER_100G = "per_100g"
    PER_PORTION = "per_portion"

    @property
    def default_step(self) -> int:
        return 100 if self is PreorderUnit.PER_100G else 1


class PreorderProduct(Base):
    __tablename__ = "preorder_products"
    __table_args__ = (
        CheckConstraint("step >= 1", name="ck_preorder_products_step_positive"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    name = Column(String, nullable=False)
    unit = Column(
        SqlEnum(PreorderUnit, name="preorder_unit", values_callable=enum_values),
        nullable=False,
        default=PreorderUnit.PER_100G,
        server_default=PreorderUnit.PER_100G.value,
    )
    step = Column(Integer, nullable=False, default=100, server_default="100")
    is_active = Column(Boolean, nullable=False, default=True, server_default="true")
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)


class PreorderStatus(str, Enum):
    REQUESTED = "requested"
    CONFIRMED = "confirmed"
    READY = "ready"
    PICKED_UP = "picked_up"
    CANCELLED = "cancelled"


class Preorder(Base):
    """Staff-confirmed pickup request; timestamps advance with each transition."""

    __tablename__ = "preorders"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    customer_id = Column(
        UUID(as_uuid=True), ForeignKey("customers.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    status = Column(
        SqlEnum(PreorderStatus, name="preorder_status", values_callable=enum_values),
        nullable=False,
        default=PreorderStatus.REQUESTED,
        server_default=PreorderStatus.REQUESTED.value,
    )
    desired_pickup_at = Column(DateTime(timezone=True), nullable=True)
    confirmed_pickup_at = Column(DateTime(timezone=True), nullable=True)
    ready_at = Column(DateTime(timezone=True), nullable=True)
    picked_up_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    items = relationship("PreorderItem", back_populates="preorder", cascade="all, delete-orphan")
    customer = relationship("Customer")

    @property
    def pickup_code(self) -> str:
        return f"{PREORDER_PICKUP_CODE_PREFIX}{self.id}"


class PreorderItem(Base):
    __tablename__ = "preorder_items"
    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_preorder_items_quantity_positive"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    preorder_id = Column(
        UUID(as_uuid=True), ForeignKey("preorders.id", ondelete="CASCADE"), nullable=False, index=True
    )
    product_id = Column(
        UUID(as_uuid=True), ForeignKey("preorder_products.id", ondelete="RESTRICT"), nullable=False
    )
    quantity = Column(Integer, nullable=False)
    product_name = Column(String, nullable=False)

    preorder = relationship("Preorder", back_populates="items")
    product = relationship("PreorderProduct")
