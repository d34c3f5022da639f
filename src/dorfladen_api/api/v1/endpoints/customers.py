"""Customer-facing balance, history, badges and pickups."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from dorfladen_api.api.dependencies.session import CustomerIdentity, require_customer_session
from dorfladen_api.db.session import get_session
from dorfladen_api.models.customer import LedgerTransaction, TransactionType
from dorfladen_api.services.badges import BadgeEvaluator
from dorfladen_api.services.ledger import (
    CustomerDirectory,
    decode_time_uuid_cursor,
    encode_time_uuid_cursor,
)


router = APIRouter(prefix="/customers", tags=["customers"])


class CustomerResponse(BaseModel):
    id: UUID
    email: str
    name: str
    points: int
    totalPoints: int
    rank: str
    rankEmoji: str
    nextRank: Optional[str]
    pointsToNextRank: Optional[int]
    purchaseCount: int
    redemptionCount: int


class TransactionResponse(BaseModel):
    id: UUID
    type: str
    pointsDelta: int
    amount: Decimal
    description: str
    claimId: Optional[UUID]
    rewardId: Optional[UUID]
    createdAt: datetime


class TransactionWindowResponse(BaseModel):
    entries: List[TransactionResponse]
    nextCursor: Optional[str]


class BadgeResponse(BaseModel):
    id: UUID
    name: str
    description: str
    icon: str
    conditionType: str
    conditionValue: int
    unlocked: bool
    unlockedAt: Optional[datetime]


class PickupResponse(BaseModel):
    kind: str
    id: UUID
    code: str
    title: str
    quantity: int
    status: str
    createdAt: datetime


def _serialize_transaction(entry: LedgerTransaction) -> TransactionResponse:
    return TransactionResponse(
        id=entry.id,
        type=entry.type.value,
        pointsDelta=entry.points_delta,
        amount=Decimal(entry.amount or 0),
        description=entry.description,
        claimId=entry.claim_id,
        rewardId=entry.reward_id,
        createdAt=entry.created_at,
    )


@router.get("/me", response_model=CustomerResponse)
async def get_current_customer(
    identity: CustomerIdentity = Depends(require_customer_session),
    db: AsyncSession = Depends(get_session),
) -> CustomerResponse:
    """Return the caller's balance, provisioning the customer on first access."""

    directory = CustomerDirectory(db)
    await directory.ensure_customer(identity.customer_id, email=identity.email, name=identity.name)
    snapshot = await directory.snapshot_customer(identity.customer_id)
    return CustomerResponse(
        id=snapshot.customer_id,
        email=snapshot.email,
        name=snapshot.name,
        points=snapshot.points,
        totalPoints=snapshot.total_points,
        rank=snapshot.rank,
        rankEmoji=snapshot.rank_emoji,
        nextRank=snapshot.next_rank,
        pointsToNextRank=snapshot.points_to_next_rank,
        purchaseCount=snapshot.purchase_count,
        redemptionCount=snapshot.redemption_count,
    )


@router.get("/me/transactions", response_model=TransactionWindowResponse)
async def list_current_customer_transactions(
    limit: int = Query(25, ge=1, le=100),
    cursor: str | None = Query(None, description="Opaque cursor for pagination"),
    types: list[str] | None = Query(None, description="Filter transaction types"),
    identity: CustomerIdentity = Depends(require_customer_session),
    db: AsyncSession = Depends(get_session),
) -> TransactionWindowResponse:
    directory = CustomerDirectory(db)
    await directory.get_customer(identity.customer_id)

    entry_types: list[TransactionType] | None = None
    if types:
        entry_types = []
        for value in types:
            try:
                entry_types.append(TransactionType(value))
            except ValueError as exc:
                raise HTTPException(status_code=400, detail=f"Unsupported transaction type: {value}") from exc

    decoded_cursor = None
    if cursor:
        try:
            decoded_cursor = decode_time_uuid_cursor(cursor)
        except (ValueError, UnicodeDecodeError) as exc:
            raise HTTPException(status_code=400, detail="Invalid transaction cursor") from exc

    entries, next_cursor = await directory.list_transactions(
        identity.customer_id,
        limit=limit,
        cursor=decoded_cursor,
        types=entry_types,
    )
    return TransactionWindowResponse(
        entries=[_serialize_transaction(entry) for entry in entries],
        nextCursor=encode_time_uuid_cursor(*next_cursor) if next_cursor else None,
    )


@router.get("/me/badges", response_model=List[BadgeResponse])
async def list_current_customer_badges(
    identity: CustomerIdentity = Depends(require_customer_session),
    db: AsyncSession = Depends(get_session),
) -> List[BadgeResponse]:
    await CustomerDirectory(db).get_customer(identity.customer_id)
    pairs = await BadgeEvaluator(db).list_customer_badges(identity.customer_id)
    return [
        BadgeResponse(
            id=badge.id,
            name=badge.name,
            description=badge.description,
            icon=badge.icon,
            conditionType=badge.condition_type.value,
            conditionValue=badge.condition_value,
            unlocked=unlock is not None,
            unlockedAt=unlock.unlocked_at if unlock else None,
        )
        for badge, unlock in pairs
    ]


@router.get("/me/pickups", response_model=List[PickupResponse])
async def list_current_customer_pickups(
    identity: CustomerIdentity = Depends(require_customer_session),
    db: AsyncSession = Depends(get_session),
) -> List[PickupResponse]:
    """Issued claims and reserved orders waiting to be collected."""

    directory = CustomerDirectory(db)
    await directory.get_customer(identity.customer_id)
    pickups = await directory.list_pickups(identity.customer_id)
    return [
        PickupResponse(
            kind=pickup.kind,
            id=pickup.entity_id,
            code=pickup.code,
            title=pickup.title,
            quantity=pickup.quantity,
            status=pickup.status,
            createdAt=pickup.created_at,
        )
        for pickup in pickups
    ]
