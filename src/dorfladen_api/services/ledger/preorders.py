"""Preorder creation for weight- and portion-based products."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import selectinload

from dorfladen_api.db.base import INTEGER_MAX
from dorfladen_api.models.customer import Customer
from dorfladen_api.models.preorder import Preorder, PreorderItem, PreorderProduct, PreorderStatus
from dorfladen_api.observability.tracing import ledger_span

from .base import LedgerEngine
from .errors import (
    CustomerNotFound,
    InvalidQuantity,
    LedgerError,
    ProductNotAvailable,
    ProductNotFound,
)


@dataclass(slots=True)
class PreorderItemRequest:
    product_id: UUID
    quantity: int


def validate_step(product: PreorderProduct, quantity: int) -> None:
    """Quantities must be positive multiples of the product step; never rounded."""

    step = int(product.step or 1)
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise InvalidQuantity(
            f"Quantity for {product.name} must be positive",
            product_id=product.id,
            quantity=quantity,
        )
    if quantity > INTEGER_MAX:
        raise InvalidQuantity(
            f"Quantity for {product.name} is too large",
            product_id=product.id,
            quantity=quantity,
        )
    if quantity % step != 0:
        raise InvalidQuantity(
            f"Quantity for {product.name} must be a multiple of {step}",
            product_id=product.id,
            quantity=quantity,
            step=step,
        )


class PreorderEngine(LedgerEngine):
    operation = "preorder_create"

    async def create_preorder(
        self,
        customer_id: UUID,
        desired_pickup_at: datetime | None,
        items: Iterable[PreorderItemRequest],
    ) -> Preorder:
        requested = list(items)
        with ledger_span(self.operation, customer_id=customer_id, items=len(requested)):
            try:
                preorder = await self._create(customer_id, desired_pickup_at, requested)
            except LedgerError as error:
                await self._abort(self.operation, error, customer_id=customer_id)
                raise

        self._accepted(
            self.operation,
            "Created preorder",
            customer_id=customer_id,
            preorder_id=preorder.id,
            items=len(requested),
        )
        return preorder

    async def _create(
        self,
        customer_id: UUID,
        desired_pickup_at: datetime | None,
        requested: Sequence[PreorderItemRequest],
    ) -> Preorder:
        if not requested:
            raise InvalidQuantity("A preorder needs at least one item")

        customer_exists = (
            await self._db.execute(select(Customer.id).where(Customer.id == customer_id))
        ).scalar_one_or_none()
        if customer_exists is None:
            raise CustomerNotFound("Customer not found", customer_id=customer_id)

        product_ids = {item.product_id for item in requested}
        products = {
            product.id: product
            for product in (
                await self._db.execute(select(PreorderProduct).where(PreorderProduct.id.in_(product_ids)))
            )
            .scalars()
            .all()
        }

        preorder = Preorder(
            customer_id=customer_id,
            status=PreorderStatus.REQUESTED,
            desired_pickup_at=desired_pickup_at,
        )
        for item in requested:
            product = products.get(item.product_id)
            if product is None:
                raise ProductNotFound("Product not found", product_id=item.product_id)
            if not product.is_active:
                raise ProductNotAvailable(f"{product.name} cannot be preordered right now", product_id=product.id)
            validate_step(product, item.quantity)
            preorder.items.append(
                PreorderItem(product_id=product.id, quantity=item.quantity, product_name=product.name)
            )

        self._db.add(preorder)
        await self._db.commit()
        return await self.get_preorder(preorder.id)

    async def get_preorder(self, preorder_id: UUID) -> Preorder:
        stmt = (
            select(Preorder)
            .options(selectinload(Preorder.items))
            .where(Preorder.id == preorder_id)
            .execution_options(populate_existing=True)
        )
        return (await self._db.execute(stmt)).scalar_one()

    async def list_customer_preorders(self, customer_id: UUID) -> list[Preorder]:
        stmt = (
            select(Preorder)
            .options(selectinload(Preorder.items))
            .where(Preorder.customer_id == customer_id)
            .order_by(Preorder.created_at.desc())
        )
        return list((await self._db.execute(stmt)).scalars().all())

    async def list_products(self, *, include_inactive: bool = False) -> list[PreorderProduct]:
        stmt = select(PreorderProduct).order_by(PreorderProduct.name.asc())
        if not include_inactive:
            stmt = stmt.where(PreorderProduct.is_active.is_(True))
        return list((await self._db.execute(stmt)).scalars().all())


__all__ = ["PreorderEngine", "PreorderItemRequest", "validate_step"]
