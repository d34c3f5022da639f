"""Badge unlock evaluation driven by ledger activity."""

from __future__ import annotations

from uuid import UUID

from loguru import logger
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from dorfladen_api.models.badge import Badge, BadgeConditionType, CustomerBadge
from dorfladen_api.models.customer import Customer, LedgerTransaction, TransactionType


class BadgeEvaluator:
    """Unlock every active badge whose threshold the customer has reached."""

    def __init__(self, db_session: AsyncSession) -> None:
        self._db = db_session

    async def evaluate(self, customer_id: UUID) -> list[Badge]:
        customer = await self._db.get(Customer, customer_id, populate_existing=True)
        if customer is None:
            logger.warning("Badge evaluation skipped for unknown customer", customer_id=str(customer_id))
            return []

        unlocked_ids = select(CustomerBadge.badge_id).where(CustomerBadge.customer_id == customer_id)
        stmt = (
            select(Badge)
            .where(Badge.is_active.is_(True), Badge.id.not_in(unlocked_ids))
            .order_by(Badge.condition_value.asc(), Badge.name.asc())
        )
        candidates = list((await self._db.execute(stmt)).scalars().all())
        if not candidates:
            return []

        metrics = await self._collect_metrics(customer)
        earned = [badge for badge in candidates if metrics[badge.condition_type] >= badge.condition_value]
        if not earned:
            return []

        for badge in earned:
            self._db.add(CustomerBadge(customer_id=customer_id, badge_id=badge.id))
        try:
            await self._db.commit()
        except IntegrityError:
            await self._db.rollback()
            logger.warning("Detected race when unlocking badges", customer_id=str(customer_id))
            return await self.evaluate(customer_id)

        logger.info(
            "Unlocked customer badges",
            customer_id=str(customer_id),
            badges=[badge.name for badge in earned],
        )
        return earned

    async def _collect_metrics(self, customer: Customer) -> dict[BadgeConditionType, int]:
        stmt = (
            select(LedgerTransaction.type, func.count(LedgerTransaction.id))
            .where(LedgerTransaction.customer_id == customer.id)
            .group_by(LedgerTransaction.type)
        )
        counts = {row[0]: int(row[1]) for row in (await self._db.execute(stmt)).all()}
        return {
            BadgeConditionType.TOTAL_POINTS: int(customer.total_points or 0),
            BadgeConditionType.PURCHASE_COUNT: counts.get(TransactionType.PURCHASE, 0),
            BadgeConditionType.REDEMPTION_COUNT: counts.get(TransactionType.REDEMPTION, 0),
        }

    async def list_customer_badges(self, customer_id: UUID) -> list[tuple[Badge, CustomerBadge | None]]:
        """Return the active catalog paired with the customer's unlocks."""

        badges = list(
            (
                await self._db.execute(
                    select(Badge)
                    .where(Badge.is_active.is_(True))
                    .order_by(Badge.condition_value.asc(), Badge.name.asc())
                )
            )
            .scalars()
            .all()
        )
        unlocks = {
            unlock.badge_id: unlock
            for unlock in (
                await self._db.execute(select(CustomerBadge).where(CustomerBadge.customer_id == customer_id))
            )
            .scalars()
            .all()
        }
        return [(badge, unlocks.get(badge.id)) for badge in badges]


__all__ = ["BadgeEvaluator"]
