"""Customer provisioning, snapshots and history queries."""

from __future__ import annotations

import base64
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Sequence, Tuple
from uuid import UUID

from loguru import logger
from sqlalchemy import and_, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from dorfladen_api.models.customer import Customer, LedgerTransaction, TransactionType
from dorfladen_api.models.offer import Offer, OfferOrder, OfferOrderStatus
from dorfladen_api.models.reward import Claim, ClaimStatus

from .errors import CustomerNotFound
from .ranks import next_rank, points_to_next_rank, rank_for_points


@dataclass
class CustomerSnapshot:
    """Serializable balance overview for clients."""

    customer_id: UUID
    email: str
    name: str
    points: int
    total_points: int
    rank: str
    rank_emoji: str
    next_rank: Optional[str]
    points_to_next_rank: Optional[int]
    purchase_count: int
    redemption_count: int


@dataclass
class CustomerPickup:
    kind: str
    entity_id: UUID
    code: str
    title: str
    quantity: int
    status: str
    created_at: datetime


class CustomerDirectory:
    """Read side of the ledger: provisioning, balances and history."""

    def __init__(self, db_session: AsyncSession) -> None:
        self._db = db_session

    async def get_customer(self, customer_id: UUID) -> Customer:
        stmt = select(Customer).where(Customer.id == customer_id).execution_options(populate_existing=True)
        customer = (await self._db.execute(stmt)).scalar_one_or_none()
        if customer is None:
            raise CustomerNotFound("Customer not found", customer_id=customer_id)
        return customer

    async def ensure_customer(self, customer_id: UUID, *, email: str | None = None, name: str | None = None) -> Customer:
        """Fetch or create the customer row for an authenticated identity."""

        stmt = select(Customer).where(Customer.id == customer_id).execution_options(populate_existing=True)
        customer = (await self._db.execute(stmt)).scalar_one_or_none()
        if customer:
            return customer

        fallback_email = email or f"{customer_id}@kunden.dorfladen.local"
        customer = Customer(
            id=customer_id,
            email=fallback_email,
            name=name or fallback_email.split("@", 1)[0],
            points=0,
            total_points=0,
        )
        self._db.add(customer)
        try:
            await self._db.commit()
            logger.info("Created customer", customer_id=str(customer_id))
        except IntegrityError:
            await self._db.rollback()
            logger.warning("Detected race when creating customer", customer_id=str(customer_id))
            return await self.ensure_customer(customer_id, email=email, name=name)

        return customer

    async def snapshot_customer(self, customer_id: UUID) -> CustomerSnapshot:
        customer = await self.get_customer(customer_id)
        stmt = (
            select(LedgerTransaction.type, func.count(LedgerTransaction.id))
            .where(LedgerTransaction.customer_id == customer_id)
            .group_by(LedgerTransaction.type)
        )
        counts = {row[0]: int(row[1]) for row in (await self._db.execute(stmt)).all()}

        total = int(customer.total_points or 0)
        rank = rank_for_points(total)
        upcoming = next_rank(total)
        return CustomerSnapshot(
            customer_id=customer.id,
            email=customer.email,
            name=customer.name,
            points=int(customer.points or 0),
            total_points=total,
            rank=rank.name,
            rank_emoji=rank.emoji,
            next_rank=upcoming.name if upcoming else None,
            points_to_next_rank=points_to_next_rank(total),
            purchase_count=counts.get(TransactionType.PURCHASE, 0),
            redemption_count=counts.get(TransactionType.REDEMPTION, 0),
        )

    async def list_transactions(
        self,
        customer_id: UUID,
        *,
        limit: int = 25,
        cursor: Tuple[datetime, UUID] | None = None,
        types: Sequence[TransactionType] | None = None,
    ) -> tuple[list[LedgerTransaction], Tuple[datetime, UUID] | None]:
        """Return a paginated slice of ledger entries, newest first."""

        bounded_limit = max(1, min(limit, 100))
        stmt = (
            select(LedgerTransaction)
            .where(LedgerTransaction.customer_id == customer_id)
            .order_by(LedgerTransaction.created_at.desc(), LedgerTransaction.id.desc())
        )
        if types:
            stmt = stmt.where(LedgerTransaction.type.in_(list(types)))
        if cursor:
            cursor_time, cursor_id = cursor
            stmt = stmt.where(
                or_(
                    LedgerTransaction.created_at < cursor_time,
                    and_(
                        LedgerTransaction.created_at == cursor_time,
                        LedgerTransaction.id < cursor_id,
                    ),
                )
            )

        stmt = stmt.limit(bounded_limit + 1)
        rows = list((await self._db.execute(stmt)).scalars().all())
        has_more = len(rows) > bounded_limit
        entries = rows[:bounded_limit]
        next_cursor: Tuple[datetime, UUID] | None = None
        if has_more and entries:
            tail = entries[-1]
            next_cursor = (tail.created_at, tail.id)

        return entries, next_cursor

    async def list_pickups(self, customer_id: UUID) -> list[CustomerPickup]:
        """Issued claims and reserved orders still waiting in the shop."""

        claims = (
            await self._db.execute(
                select(Claim)
                .where(Claim.customer_id == customer_id, Claim.status == ClaimStatus.ISSUED)
                .order_by(Claim.created_at.desc())
            )
        ).scalars().all()
        orders = (
            await self._db.execute(
                select(OfferOrder, Offer.title)
                .join(Offer, Offer.id == OfferOrder.offer_id)
                .where(OfferOrder.customer_id == customer_id, OfferOrder.status == OfferOrderStatus.RESERVED)
                .order_by(OfferOrder.created_at.desc())
            )
        ).all()

        pickups = [
            CustomerPickup(
                kind="claim",
                entity_id=claim.id,
                code=claim.code,
                title=claim.reward_name,
                quantity=1,
                status=claim.status.label,
                created_at=claim.created_at,
            )
            for claim in claims
        ]
        pickups.extend(
            CustomerPickup(
                kind="order",
                entity_id=order.id,
                code=order.pickup_code,
                title=title,
                quantity=order.quantity,
                status=order.status.value,
                created_at=order.created_at,
            )
            for order, title in orders
        )
        return pickups


def encode_time_uuid_cursor(timestamp: datetime, identifier: UUID) -> str:
    """Encode pagination cursor for chronological queries."""

    payload = f"{timestamp.isoformat()}|{identifier}".encode("utf-8")
    return base64.urlsafe_b64encode(payload).decode("utf-8")


def decode_time_uuid_cursor(cursor: str) -> Tuple[datetime, UUID]:
    """Decode pagination cursor into datetime and UUID parts."""

    raw = base64.urlsafe_b64decode(cursor.encode("utf-8")).decode("utf-8")
    timestamp_str, identifier_str = raw.split("|", 1)
    return datetime.fromisoformat(timestamp_str), UUID(identifier_str)


__all__ = [
    "CustomerDirectory",
    "CustomerPickup",
    "CustomerSnapshot",
    "decode_time_uuid_cursor",
    "encode_time_uuid_cursor",
]
