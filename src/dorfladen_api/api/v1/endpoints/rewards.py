"""Reward catalog and redemption endpoints."""

from __future__ import annotations

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from dorfladen_api.api.dependencies.ledger import get_ledger_service
from dorfladen_api.api.dependencies.session import CustomerIdentity, require_customer_session
from dorfladen_api.db.session import get_session
from dorfladen_api.models.reward import Reward
from dorfladen_api.services.ledger import LedgerService


router = APIRouter(prefix="/rewards", tags=["rewards"])


class RewardResponse(BaseModel):
    id: UUID
    name: str
    description: str
    pointsRequired: int
    isActive: bool


class RedemptionResponse(BaseModel):
    claimId: UUID
    claimCode: str
    pointsRedeemed: int
    newBalance: int


def serialize_reward(reward: Reward) -> RewardResponse:
    return RewardResponse(
        id=reward.id,
        name=reward.name,
        description=reward.description or "",
        pointsRequired=reward.points_required,
        isActive=reward.is_active,
    )


@router.get("", response_model=List[RewardResponse])
async def list_active_rewards(db: AsyncSession = Depends(get_session)) -> List[RewardResponse]:
    stmt = select(Reward).where(Reward.is_active.is_(True)).order_by(Reward.points_required.asc())
    rewards = (await db.execute(stmt)).scalars().all()
    return [serialize_reward(reward) for reward in rewards]


@router.post(
    "/{reward_id}/redeem",
    response_model=RedemptionResponse,
    status_code=status.HTTP_201_CREATED,
)
async def redeem_reward(
    reward_id: UUID,
    identity: CustomerIdentity = Depends(require_customer_session),
    service: LedgerService = Depends(get_ledger_service),
) -> RedemptionResponse:
    """Spend points on a reward and receive a single-use claim code."""

    result = await service.redeem_reward(identity.customer_id, reward_id)
    return RedemptionResponse(
        claimId=result.claim_id,
        claimCode=result.claim_code,
        pointsRedeemed=result.points_redeemed,
        newBalance=result.new_balance,
    )
