"""Pickup and fulfillment state machine for claims, orders and preorders."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Literal
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.orm import selectinload

from dorfladen_api.models.customer import Customer
from dorfladen_api.models.offer import ORDER_PICKUP_CODE_PREFIX, Offer, OfferOrder, OfferOrderStatus
from dorfladen_api.models.preorder import PREORDER_PICKUP_CODE_PREFIX, Preorder, PreorderStatus
from dorfladen_api.models.reward import Claim, ClaimStatus
from dorfladen_api.observability.tracing import ledger_span

from .base import LedgerEngine, as_utc, utcnow
from .errors import (
    AlreadyFulfilled,
    CodeNotFound,
    InvalidStateTransition,
    LedgerError,
    OrderNotFound,
    PreorderNotFound,
)

PickupKind = Literal["claim", "order", "preorder"]
QueueFilter = Literal["open", "closed", "all"]


@dataclass(slots=True)
class PickupResult:
    kind: PickupKind
    entity_id: UUID
    customer_id: UUID
    status: str
    title: str
    occurred_at: datetime


@dataclass(slots=True)
class PickupQueueEntry:
    kind: PickupKind
    entity_id: UUID
    code: str
    customer_id: UUID
    customer_name: str | None
    title: str
    quantity: int
    status: str
    created_at: datetime
    pickup_at: datetime | None


# target -> (statuses it may be reached from, timestamp column it sets)
_ORDER_TRANSITIONS: dict[OfferOrderStatus, tuple[frozenset[OfferOrderStatus], str]] = {
    OfferOrderStatus.PICKED_UP: (frozenset({OfferOrderStatus.RESERVED}), "picked_up_at"),
    OfferOrderStatus.CANCELLED: (frozenset({OfferOrderStatus.RESERVED}), "cancelled_at"),
}

_PREORDER_TRANSITIONS: dict[PreorderStatus, tuple[frozenset[PreorderStatus], str]] = {
    PreorderStatus.CONFIRMED: (frozenset({PreorderStatus.REQUESTED}), "confirmed_pickup_at"),
    PreorderStatus.READY: (frozenset({PreorderStatus.CONFIRMED}), "ready_at"),
    PreorderStatus.PICKED_UP: (frozenset({PreorderStatus.READY}), "picked_up_at"),
    PreorderStatus.CANCELLED: (
        frozenset({PreorderStatus.REQUESTED, PreorderStatus.CONFIRMED, PreorderStatus.READY}),
        "cancelled_at",
    ),
}

_OPEN_ORDER_STATUSES = (OfferOrderStatus.RESERVED,)
_OPEN_PREORDER_STATUSES = (PreorderStatus.REQUESTED, PreorderStatus.CONFIRMED, PreorderStatus.READY)


class PickupEngine(LedgerEngine):
    """One-way status transitions, each a single conditional UPDATE on ``status``."""

    operation = "pickup"

    async def transition_pickup(self, code: str) -> PickupResult:
        """Resolve a scanned code to its entity and mark it as picked up."""

        with ledger_span("scan", code=code):
            try:
                result = await self._scan(code)
            except LedgerError as error:
                await self._abort("scan", error, code=code)
                raise
        self._accepted("scan", "Processed pickup scan", kind=result.kind, entity_id=result.entity_id)
        return result

    async def fulfill_claim(self, code: str) -> PickupResult:
        return await self._run("claim_fulfill", self._fulfill_claim(code), code=code)

    async def mark_order_picked_up(self, order_id: UUID) -> PickupResult:
        return await self._run(
            "order_pickup",
            self._transition_order(order_id, OfferOrderStatus.PICKED_UP),
            order_id=order_id,
        )

    async def confirm_preorder(self, preorder_id: UUID, confirmed_at: datetime | None = None) -> PickupResult:
        return await self._run(
            "preorder_confirm",
            self._confirm_preorder(preorder_id, confirmed_at),
            preorder_id=preorder_id,
        )

    async def mark_preorder_ready(self, preorder_id: UUID, ready_at: datetime | None = None) -> PickupResult:
        return await self._run(
            "preorder_ready",
            self._transition_preorder(preorder_id, PreorderStatus.READY, ready_at),
            preorder_id=preorder_id,
        )

    async def mark_preorder_picked_up(
        self,
        preorder_id: UUID,
        picked_up_at: datetime | None = None,
    ) -> PickupResult:
        return await self._run(
            "preorder_pickup",
            self._transition_preorder(preorder_id, PreorderStatus.PICKED_UP, picked_up_at),
            preorder_id=preorder_id,
        )

    async def cancel_preorder(self, preorder_id: UUID) -> PickupResult:
        return await self._run(
            "preorder_cancel",
            self._transition_preorder(preorder_id, PreorderStatus.CANCELLED, None),
            preorder_id=preorder_id,
        )

    async def list_queue(self, status: QueueFilter = "open") -> list[PickupQueueEntry]:
        """Staff-facing list of claims, orders and preorders awaiting (or past) pickup."""

        claims_stmt = select(Claim, Customer.name).join(Customer, Customer.id == Claim.customer_id)
        orders_stmt = (
            select(OfferOrder, Offer.title, Customer.name)
            .join(Offer, Offer.id == OfferOrder.offer_id)
            .join(Customer, Customer.id == OfferOrder.customer_id)
        )
        preorders_stmt = (
            select(Preorder, Customer.name)
            .join(Customer, Customer.id == Preorder.customer_id)
            .options(selectinload(Preorder.items))
        )
        if status == "open":
            claims_stmt = claims_stmt.where(Claim.status == ClaimStatus.ISSUED)
            orders_stmt = orders_stmt.where(OfferOrder.status.in_(_OPEN_ORDER_STATUSES))
            preorders_stmt = preorders_stmt.where(Preorder.status.in_(_OPEN_PREORDER_STATUSES))
        elif status == "closed":
            claims_stmt = claims_stmt.where(Claim.status == ClaimStatus.FULFILLED)
            orders_stmt = orders_stmt.where(OfferOrder.status.not_in(_OPEN_ORDER_STATUSES))
            preorders_stmt = preorders_stmt.where(Preorder.status.not_in(_OPEN_PREORDER_STATUSES))

        entries: list[PickupQueueEntry] = []
        for claim, customer_name in (await self._db.execute(claims_stmt)).all():
            entries.append(
                PickupQueueEntry(
                    kind="claim",
                    entity_id=claim.id,
                    code=claim.code,
                    customer_id=claim.customer_id,
                    customer_name=customer_name,
                    title=claim.reward_name,
                    quantity=1,
                    status=claim.status.label,
                    created_at=claim.created_at,
                    pickup_at=claim.fulfilled_at,
                )
            )
        for order, title, customer_name in (await self._db.execute(orders_stmt)).all():
            entries.append(
                PickupQueueEntry(
                    kind="order",
                    entity_id=order.id,
                    code=order.pickup_code,
                    customer_id=order.customer_id,
                    customer_name=customer_name,
                    title=title,
                    quantity=order.quantity,
                    status=order.status.value,
                    created_at=order.created_at,
                    pickup_at=order.picked_up_at,
                )
            )
        for preorder, customer_name in (await self._db.execute(preorders_stmt)).all():
            entries.append(
                PickupQueueEntry(
                    kind="preorder",
                    entity_id=preorder.id,
                    code=preorder.pickup_code,
                    customer_id=preorder.customer_id,
                    customer_name=customer_name,
                    title=", ".join(item.product_name for item in preorder.items) or "Vorbestellung",
                    quantity=sum(item.quantity for item in preorder.items),
                    status=preorder.status.value,
                    created_at=preorder.created_at,
                    pickup_at=preorder.confirmed_pickup_at or preorder.desired_pickup_at,
                )
            )
        entries.sort(key=lambda entry: as_utc(entry.created_at), reverse=True)
        return entries

    async def _run(self, operation: str, work, **fields) -> PickupResult:
        with ledger_span(operation, **fields):
            try:
                result = await work
            except LedgerError as error:
                await self._abort(operation, error, **fields)
                raise
        self._accepted(operation, "Pickup transition applied", entity_id=result.entity_id, status=result.status)
        return result

    async def _scan(self, code: str) -> PickupResult:
        raw = (code or "").strip()
        if not raw:
            raise CodeNotFound("Scanned code is empty")

        for prefix, handler, missing in (
            (PREORDER_PICKUP_CODE_PREFIX, self._pickup_preorder_by_code, PreorderNotFound),
            (ORDER_PICKUP_CODE_PREFIX, self._pickup_order_by_code, OrderNotFound),
        ):
            if raw.startswith(prefix):
                try:
                    entity_id = UUID(raw[len(prefix):])
                except ValueError as error:
                    raise CodeNotFound(f"Unknown code {raw}", code=raw) from error
                try:
                    return await handler(entity_id)
                except missing as error:
                    raise CodeNotFound(f"Unknown code {raw}", code=raw) from error

        return await self._fulfill_claim(raw)

    async def _pickup_order_by_code(self, order_id: UUID) -> PickupResult:
        return await self._transition_order(order_id, OfferOrderStatus.PICKED_UP)

    async def _pickup_preorder_by_code(self, preorder_id: UUID) -> PickupResult:
        return await self._transition_preorder(preorder_id, PreorderStatus.PICKED_UP, None)

    async def _fulfill_claim(self, code: str) -> PickupResult:
        now = utcnow()
        stmt = (
            update(Claim)
            .where(Claim.code == code, Claim.status == ClaimStatus.ISSUED)
            .values(status=ClaimStatus.FULFILLED, fulfilled_at=now)
            .returning(Claim.id, Claim.customer_id, Claim.reward_name)
            .execution_options(synchronize_session=False)
        )
        row = (await self._db.execute(stmt)).one_or_none()
        if row is None:
            claim_id = (await self._db.execute(select(Claim.id).where(Claim.code == code))).scalar_one_or_none()
            if claim_id is None:
                raise CodeNotFound(f"Unknown code {code}", code=code)
            raise AlreadyFulfilled("Claim has already been picked up", claim_id=claim_id)
        await self._db.commit()
        return PickupResult(
            kind="claim",
            entity_id=row.id,
            customer_id=row.customer_id,
            status=ClaimStatus.FULFILLED.label,
            title=row.reward_name,
            occurred_at=now,
        )

    async def _transition_order(self, order_id: UUID, target: OfferOrderStatus) -> PickupResult:
        allowed_from, field = _ORDER_TRANSITIONS[target]
        now = utcnow()
        stmt = (
            update(OfferOrder)
            .where(OfferOrder.id == order_id, OfferOrder.status.in_(allowed_from))
            .values({"status": target, field: now})
            .returning(OfferOrder.customer_id, OfferOrder.offer_id)
            .execution_options(synchronize_session=False)
        )
        row = (await self._db.execute(stmt)).one_or_none()
        if row is None:
            current = (
                await self._db.execute(select(OfferOrder.status).where(OfferOrder.id == order_id))
            ).scalar_one_or_none()
            if current is None:
                raise OrderNotFound("Order not found", order_id=order_id)
            if current == target == OfferOrderStatus.PICKED_UP:
                raise AlreadyFulfilled("Order has already been picked up", order_id=order_id)
            raise InvalidStateTransition("order", current.value, target.value)

        title = (await self._db.execute(select(Offer.title).where(Offer.id == row.offer_id))).scalar_one()
        await self._db.commit()
        return PickupResult(
            kind="order",
            entity_id=order_id,
            customer_id=row.customer_id,
            status=target.value,
            title=title,
            occurred_at=now,
        )

    async def _confirm_preorder(self, preorder_id: UUID, confirmed_at: datetime | None) -> PickupResult:
        if confirmed_at is None:
            desired = (
                await self._db.execute(select(Preorder.desired_pickup_at).where(Preorder.id == preorder_id))
            ).one_or_none()
            if desired is None:
                raise PreorderNotFound("Preorder not found", preorder_id=preorder_id)
            confirmed_at = as_utc(desired.desired_pickup_at)
        return await self._transition_preorder(preorder_id, PreorderStatus.CONFIRMED, confirmed_at)

    async def _transition_preorder(
        self,
        preorder_id: UUID,
        target: PreorderStatus,
        at: datetime | None,
    ) -> PickupResult:
        allowed_from, field = _PREORDER_TRANSITIONS[target]
        stamp = at or utcnow()
        stmt = (
            update(Preorder)
            .where(Preorder.id == preorder_id, Preorder.status.in_(allowed_from))
            .values({"status": target, field: stamp})
            .returning(Preorder.customer_id)
            .execution_options(synchronize_session=False)
        )
        customer_id = (await self._db.execute(stmt)).scalar_one_or_none()
        if customer_id is None:
            current = (
                await self._db.execute(select(Preorder.status).where(Preorder.id == preorder_id))
            ).scalar_one_or_none()
            if current is None:
                raise PreorderNotFound("Preorder not found", preorder_id=preorder_id)
            if current == target == PreorderStatus.PICKED_UP:
                raise AlreadyFulfilled("Preorder has already been picked up", preorder_id=preorder_id)
            raise InvalidStateTransition("preorder", current.value, target.value)

        await self._db.commit()
        return PickupResult(
            kind="preorder",
            entity_id=preorder_id,
            customer_id=customer_id,
            status=target.value,
            title="Vorbestellung",
            occurred_at=stamp,
        )


__all__ = ["PickupEngine", "PickupQueueEntry", "PickupResult", "QueueFilter"]
