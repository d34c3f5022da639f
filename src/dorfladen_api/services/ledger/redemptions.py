"""Reward redemption: atomic debit, claim issuance and audit entry."""

from __future__ import annotations

import secrets
from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import select, update

from dorfladen_api.core.settings import settings
from dorfladen_api.models.customer import Customer, LedgerTransaction, TransactionType
from dorfladen_api.models.reward import Claim, ClaimStatus, Reward
from dorfladen_api.observability.tracing import ledger_span

from .base import LedgerEngine
from .errors import (
    CustomerNotFound,
    InsufficientPoints,
    LedgerError,
    RewardInactive,
    RewardNotFound,
)

CLAIM_CODE_PREFIX = "claim_"


def generate_claim_code() -> str:
    """Unguessable single-use voucher code."""

    return f"{CLAIM_CODE_PREFIX}{secrets.token_urlsafe(settings.claim_code_bytes)}"


@dataclass(slots=True)
class RedemptionResult:
    claim_id: UUID
    claim_code: str
    new_balance: int
    points_redeemed: int


class RedemptionEngine(LedgerEngine):
    """Convert points into an issued claim without ever overdrawing a balance."""

    operation = "redeem"

    async def redeem_reward(self, customer_id: UUID, reward_id: UUID) -> RedemptionResult:
        with ledger_span(self.operation, customer_id=customer_id, reward_id=reward_id):
            try:
                result = await self._redeem(customer_id, reward_id)
            except LedgerError as error:
                await self._abort(self.operation, error, customer_id=customer_id, reward_id=reward_id)
                raise

        self._store.record_points(redeemed=result.points_redeemed)
        self._accepted(
            self.operation,
            "Redeemed reward",
            customer_id=customer_id,
            reward_id=reward_id,
            claim_id=result.claim_id,
            points_redeemed=result.points_redeemed,
            new_balance=result.new_balance,
        )
        return result

    async def _redeem(self, customer_id: UUID, reward_id: UUID) -> RedemptionResult:
        reward = await self._db.get(Reward, reward_id, populate_existing=True)
        if reward is None:
            raise RewardNotFound("Reward not found", reward_id=reward_id)
        if not reward.is_active:
            raise RewardInactive(f"Reward {reward.name} is no longer available", reward_id=reward_id)

        cost = int(reward.points_required)
        stmt = (
            update(Customer)
            .where(Customer.id == customer_id, Customer.points >= cost)
            .values(points=Customer.points - cost)
            .returning(Customer.points)
            .execution_options(synchronize_session=False)
        )
        new_balance = (await self._db.execute(stmt)).scalar_one_or_none()
        if new_balance is None:
            balance = (
                await self._db.execute(select(Customer.points).where(Customer.id == customer_id))
            ).scalar_one_or_none()
            if balance is None:
                raise CustomerNotFound("Customer not found", customer_id=customer_id)
            raise InsufficientPoints(
                f"Not enough points: {balance} available, {cost} required",
                balance=balance,
                required=cost,
            )

        claim = Claim(
            customer_id=customer_id,
            reward_id=reward.id,
            code=generate_claim_code(),
            status=ClaimStatus.ISSUED,
            points_redeemed=cost,
            reward_name=reward.name,
            reward_description=reward.description or "",
        )
        self._db.add(claim)
        await self._db.flush()

        self._db.add(
            LedgerTransaction(
                customer_id=customer_id,
                type=TransactionType.REDEMPTION,
                points_delta=-cost,
                amount=0,
                description=f"Eingelöst: {reward.name}",
                claim_id=claim.id,
                reward_id=reward.id,
            )
        )
        await self._db.commit()

        return RedemptionResult(
            claim_id=claim.id,
            claim_code=claim.code,
            new_balance=int(new_balance),
            points_redeemed=cost,
        )


__all__ = ["CLAIM_CODE_PREFIX", "RedemptionEngine", "RedemptionResult", "generate_claim_code"]
