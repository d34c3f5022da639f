"""Facade bundling the ledger engines around one session."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Iterable
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from dorfladen_api.models.preorder import Preorder
from dorfladen_api.observability.ledger import LedgerObservabilityStore, get_ledger_store

from .awards import AwardEngine, AwardResult
from .customers import CustomerDirectory, CustomerSnapshot
from .pickups import PickupEngine, PickupQueueEntry, PickupResult, QueueFilter
from .preorders import PreorderEngine, PreorderItemRequest
from .redemptions import RedemptionEngine, RedemptionResult
from .reservations import CancellationResult, ReservationEngine, ReservationResult


class LedgerService:
    """Coordinates points, reservation and pickup workflows."""

    def __init__(
        self,
        db_session: AsyncSession,
        *,
        badge_dispatcher=None,
        store: LedgerObservabilityStore | None = None,
    ) -> None:
        self._db = db_session
        store = store or get_ledger_store()
        self.customers = CustomerDirectory(db_session)
        self.awards = AwardEngine(db_session, badge_dispatcher=badge_dispatcher, store=store)
        self.redemptions = RedemptionEngine(db_session, store=store)
        self.reservations = ReservationEngine(db_session, store=store)
        self.pickups = PickupEngine(db_session, store=store)
        self.preorders = PreorderEngine(db_session, store=store)

    async def ensure_customer(self, customer_id: UUID, *, email: str | None = None, name: str | None = None):
        return await self.customers.ensure_customer(customer_id, email=email, name=name)

    async def snapshot_customer(self, customer_id: UUID) -> CustomerSnapshot:
        return await self.customers.snapshot_customer(customer_id)

    async def award_points(
        self,
        customer_id: UUID,
        amount: Any,
        description: str | None,
        scan_token: str,
    ) -> AwardResult:
        return await self.awards.award_points(customer_id, amount, description, scan_token)

    async def redeem_reward(self, customer_id: UUID, reward_id: UUID) -> RedemptionResult:
        return await self.redemptions.redeem_reward(customer_id, reward_id)

    async def reserve_offer(self, customer_id: UUID, offer_id: UUID, quantity: int = 1) -> ReservationResult:
        return await self.reservations.reserve_offer(customer_id, offer_id, quantity)

    async def cancel_order(self, order_id: UUID) -> CancellationResult:
        return await self.reservations.cancel_order(order_id)

    async def transition_pickup(self, code: str) -> PickupResult:
        return await self.pickups.transition_pickup(code)

    async def mark_order_picked_up(self, order_id: UUID) -> PickupResult:
        return await self.pickups.mark_order_picked_up(order_id)

    async def confirm_preorder(self, preorder_id: UUID, confirmed_at: datetime | None = None) -> PickupResult:
        return await self.pickups.confirm_preorder(preorder_id, confirmed_at)

    async def mark_preorder_ready(self, preorder_id: UUID, ready_at: datetime | None = None) -> PickupResult:
        return await self.pickups.mark_preorder_ready(preorder_id, ready_at)

    async def mark_preorder_picked_up(
        self,
        preorder_id: UUID,
        picked_up_at: datetime | None = None,
    ) -> PickupResult:
        return await self.pickups.mark_preorder_picked_up(preorder_id, picked_up_at)

    async def cancel_preorder(self, preorder_id: UUID) -> PickupResult:
        return await self.pickups.cancel_preorder(preorder_id)

    async def create_preorder(
        self,
        customer_id: UUID,
        desired_pickup_at: datetime | None,
        items: Iterable[PreorderItemRequest],
    ) -> Preorder:
        return await self.preorders.create_preorder(customer_id, desired_pickup_at, items)

    async def list_pickup_queue(self, status: QueueFilter = "open") -> list[PickupQueueEntry]:
        return await self.pickups.list_queue(status)


__all__ = ["LedgerService"]
