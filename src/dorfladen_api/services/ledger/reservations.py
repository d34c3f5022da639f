"""Offer stock reservations and staff cancellations."""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import case, select, update

from dorfladen_api.models.customer import Customer
from dorfladen_api.models.offer import Offer, OfferOrder, OfferOrderStatus
from dorfladen_api.observability.tracing import ledger_span

from .base import LedgerEngine, as_utc, utcnow
from .errors import (
    CustomerNotFound,
    InvalidQuantity,
    InvalidStateTransition,
    LedgerError,
    OfferNotAvailable,
    OfferNotFound,
    OrderNotFound,
    SoldOut,
)


@dataclass(slots=True)
class ReservationResult:
    order_id: UUID
    pickup_code: str
    remaining: int


@dataclass(slots=True)
class CancellationResult:
    order_id: UUID
    offer_id: UUID
    quantity: int
    remaining: int


class ReservationEngine(LedgerEngine):
    """Reserve limited offer stock with a single bounded increment.

    ``sold_count`` is only ever changed by conditional UPDATE statements, so
    two customers racing for the last unit cannot both succeed.
    """

    operation = "reserve"

    async def reserve_offer(self, customer_id: UUID, offer_id: UUID, quantity: int = 1) -> ReservationResult:
        with ledger_span(self.operation, customer_id=customer_id, offer_id=offer_id, quantity=quantity):
            try:
                result = await self._reserve(customer_id, offer_id, quantity)
            except LedgerError as error:
                await self._abort(self.operation, error, customer_id=customer_id, offer_id=offer_id, quantity=quantity)
                raise

        self._accepted(
            self.operation,
            "Reserved offer stock",
            customer_id=customer_id,
            offer_id=offer_id,
            order_id=result.order_id,
            quantity=quantity,
            remaining=result.remaining,
        )
        return result

    async def cancel_order(self, order_id: UUID) -> CancellationResult:
        with ledger_span("cancel_order", order_id=order_id):
            try:
                result = await self._cancel(order_id)
            except LedgerError as error:
                await self._abort("cancel_order", error, order_id=order_id)
                raise

        self._accepted(
            "cancel_order",
            "Cancelled offer order",
            order_id=order_id,
            offer_id=result.offer_id,
            quantity=result.quantity,
            remaining=result.remaining,
        )
        return result

    async def _reserve(self, customer_id: UUID, offer_id: UUID, quantity: int) -> ReservationResult:
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
            raise InvalidQuantity("Quantity must be a positive whole number", quantity=quantity)

        offer = await self._db.get(Offer, offer_id, populate_existing=True)
        if offer is None:
            raise OfferNotFound("Offer not found", offer_id=offer_id)
        self._ensure_on_sale(offer)
        if quantity > offer.limit_total:
            remaining = max(int(offer.limit_total) - int(offer.sold_count), 0)
            raise SoldOut(f"Only {remaining} left, {quantity} requested", offer_id=offer_id, remaining=remaining)

        customer_exists = (
            await self._db.execute(select(Customer.id).where(Customer.id == customer_id))
        ).scalar_one_or_none()
        if customer_exists is None:
            raise CustomerNotFound("Customer not found", customer_id=customer_id)

        stmt = (
            update(Offer)
            .where(
                Offer.id == offer_id,
                Offer.is_active.is_(True),
                Offer.sold_count + quantity <= Offer.limit_total,
            )
            .values(sold_count=Offer.sold_count + quantity)
            .returning(Offer.sold_count, Offer.limit_total)
            .execution_options(synchronize_session=False)
        )
        row = (await self._db.execute(stmt)).one_or_none()
        if row is None:
            current = (
                await self._db.execute(
                    select(Offer.is_active, Offer.sold_count, Offer.limit_total).where(Offer.id == offer_id)
                )
            ).one_or_none()
            if current is None:
                raise OfferNotFound("Offer not found", offer_id=offer_id)
            if not current.is_active:
                raise OfferNotAvailable("Offer is no longer active", offer_id=offer_id)
            remaining = max(int(current.limit_total) - int(current.sold_count), 0)
            raise SoldOut(
                f"Only {remaining} left, {quantity} requested",
                offer_id=offer_id,
                remaining=remaining,
            )

        order = OfferOrder(
            customer_id=customer_id,
            offer_id=offer_id,
            quantity=quantity,
            status=OfferOrderStatus.RESERVED,
        )
        self._db.add(order)
        await self._db.commit()

        return ReservationResult(
            order_id=order.id,
            pickup_code=order.pickup_code,
            remaining=max(int(row.limit_total) - int(row.sold_count), 0),
        )

    @staticmethod
    def _ensure_on_sale(offer: Offer) -> None:
        if not offer.is_active:
            raise OfferNotAvailable("Offer is no longer active", offer_id=offer.id)
        now = utcnow()
        starts_at = as_utc(offer.starts_at)
        ends_at = as_utc(offer.ends_at)
        if starts_at is not None and now < starts_at:
            raise OfferNotAvailable("Offer has not started yet", offer_id=offer.id)
        if ends_at is not None and now > ends_at:
            raise OfferNotAvailable("Offer has ended", offer_id=offer.id)

    async def _cancel(self, order_id: UUID) -> CancellationResult:
        stmt = (
            update(OfferOrder)
            .where(OfferOrder.id == order_id, OfferOrder.status == OfferOrderStatus.RESERVED)
            .values(status=OfferOrderStatus.CANCELLED, cancelled_at=utcnow())
            .returning(OfferOrder.offer_id, OfferOrder.quantity)
            .execution_options(synchronize_session=False)
        )
        row = (await self._db.execute(stmt)).one_or_none()
        if row is None:
            status = (
                await self._db.execute(select(OfferOrder.status).where(OfferOrder.id == order_id))
            ).scalar_one_or_none()
            if status is None:
                raise OrderNotFound("Order not found", order_id=order_id)
            raise InvalidStateTransition("order", status.value, OfferOrderStatus.CANCELLED.value)

        quantity = int(row.quantity)
        release = (
            update(Offer)
            .where(Offer.id == row.offer_id)
            .values(
                sold_count=case(
                    (Offer.sold_count >= quantity, Offer.sold_count - quantity),
                    else_=0,
                )
            )
            .returning(Offer.sold_count, Offer.limit_total)
            .execution_options(synchronize_session=False)
        )
        stock = (await self._db.execute(release)).one()
        await self._db.commit()

        return CancellationResult(
            order_id=order_id,
            offer_id=row.offer_id,
            quantity=quantity,
            remaining=max(int(stock.limit_total) - int(stock.sold_count), 0),
        )


__all__ = ["CancellationResult", "ReservationEngine", "ReservationResult"]
