"""Point awards for in-store purchases."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any
from uuid import UUID

from loguru import logger
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from dorfladen_api.db.base import INTEGER_MAX
from dorfladen_api.models.customer import Customer, LedgerTransaction, TransactionType
from dorfladen_api.observability.ledger import LedgerObservabilityStore
from dorfladen_api.observability.tracing import ledger_span

from .base import LedgerEngine
from .errors import CustomerNotFound, DuplicateOperation, InvalidAmount, LedgerError
from .rates import compute_points, read_points_rate


CENT = Decimal("0.01")
# transactions.amount is Numeric(12, 2)
MAX_AMOUNT = Decimal("9999999999.99")


@dataclass(slots=True)
class AwardResult:
    points_awarded: int
    new_balance: int
    new_total: int
    customer_name: str
    transaction_id: UUID
    rate: Decimal


def normalize_amount(amount: Any) -> Decimal:
    try:
        value = amount if isinstance(amount, Decimal) else Decimal(str(amount))
    except (InvalidOperation, ValueError) as error:
        raise InvalidAmount(f"Amount {amount!r} is not a number") from error
    if not value.is_finite() or value <= 0:
        raise InvalidAmount("Amount must be greater than 0", amount=value)
    if value > MAX_AMOUNT:
        raise InvalidAmount(f"Amount must not exceed €{MAX_AMOUNT}", amount=value)
    if value != value.quantize(CENT):
        raise InvalidAmount("Amount must be given in whole cents", amount=value)
    return value.quantize(CENT)


def default_purchase_description(amount: Decimal) -> str:
    return f"Einkauf über €{amount.quantize(CENT)}"


class AwardEngine(LedgerEngine):
    """Credit purchase points exactly once per scan token.

    The token is checked up front for a clear error and enforced by the unique
    index on ``transactions.scan_token``; a concurrent duplicate surfaces as an
    ``IntegrityError`` on insert and the whole unit of work is rolled back.
    """

    operation = "award"

    def __init__(
        self,
        db_session: AsyncSession,
        *,
        badge_dispatcher=None,
        store: LedgerObservabilityStore | None = None,
    ) -> None:
        super().__init__(db_session, store=store)
        self._badge_dispatcher = badge_dispatcher

    async def award_points(
        self,
        customer_id: UUID,
        amount: Any,
        description: str | None,
        scan_token: str,
    ) -> AwardResult:
        with ledger_span(self.operation, customer_id=customer_id, scan_token=scan_token):
            try:
                result = await self._award(customer_id, amount, description, scan_token)
            except LedgerError as error:
                await self._abort(self.operation, error, customer_id=customer_id, scan_token=scan_token)
                raise

        self._store.record_points(awarded=result.points_awarded)
        self._accepted(
            self.operation,
            "Awarded purchase points",
            customer_id=customer_id,
            scan_token=scan_token,
            points_awarded=result.points_awarded,
            rate=result.rate,
            new_balance=result.new_balance,
        )
        await self._dispatch_badges(customer_id)
        return result

    async def _award(
        self,
        customer_id: UUID,
        amount: Any,
        description: str | None,
        scan_token: str,
    ) -> AwardResult:
        value = normalize_amount(amount)
        token = (scan_token or "").strip()
        if not token:
            raise InvalidAmount("Scan token is required")

        existing = await self._db.execute(
            select(LedgerTransaction.id).where(LedgerTransaction.scan_token == token)
        )
        if existing.scalar_one_or_none() is not None:
            raise DuplicateOperation("This scan has already been processed", scan_token=token)

        rate = await read_points_rate(self._db)
        points = compute_points(value, rate)
        if points > INTEGER_MAX:
            raise InvalidAmount("Purchase exceeds the points a single award may credit", amount=value, points=points)

        stmt = (
            update(Customer)
            .where(Customer.id == customer_id)
            .values(
                points=Customer.points + points,
                total_points=Customer.total_points + points,
            )
            .returning(Customer.points, Customer.total_points, Customer.name)
            .execution_options(synchronize_session=False)
        )
        row = (await self._db.execute(stmt)).one_or_none()
        if row is None:
            raise CustomerNotFound("Customer not found", customer_id=customer_id)

        entry = LedgerTransaction(
            customer_id=customer_id,
            type=TransactionType.PURCHASE,
            points_delta=points,
            amount=value,
            description=(description or "").strip() or default_purchase_description(value),
            scan_token=token,
        )
        self._db.add(entry)
        try:
            await self._db.commit()
        except IntegrityError as error:
            raise DuplicateOperation("This scan has already been processed", scan_token=token) from error

        return AwardResult(
            points_awarded=points,
            new_balance=int(row.points),
            new_total=int(row.total_points),
            customer_name=row.name,
            transaction_id=entry.id,
            rate=rate,
        )

    async def _dispatch_badges(self, customer_id: UUID) -> None:
        if self._badge_dispatcher is None:
            return
        try:
            await self._badge_dispatcher(customer_id)
        except Exception:  # noqa: BLE001 - points are already committed
            self._store.record_badge_dispatch("failed")
            logger.exception("Badge evaluation dispatch failed", customer_id=str(customer_id))


__all__ = ["MAX_AMOUNT", "AwardEngine", "AwardResult", "default_purchase_description", "normalize_amount"]
