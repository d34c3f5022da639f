"""Limited offer listing and reservation endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from dorfladen_api.api.dependencies.ledger import get_ledger_service
from dorfladen_api.api.dependencies.session import CustomerIdentity, require_customer_session
from dorfladen_api.db.session import get_session
from dorfladen_api.models.offer import Offer
from dorfladen_api.services.ledger import LedgerService


router = APIRouter(prefix="/offers", tags=["offers"])


class OfferResponse(BaseModel):
    id: UUID
    title: str
    subtitle: Optional[str]
    description: Optional[str]
    heroImageUrl: Optional[str]
    priceCents: int
    limitTotal: int
    soldCount: int
    remaining: int
    startsAt: Optional[datetime]
    endsAt: Optional[datetime]
    pickupDate: Optional[datetime]
    isActive: bool


class ReservationRequest(BaseModel):
    quantity: int = Field(1, description="Units to reserve")


class ReservationResponse(BaseModel):
    orderId: UUID
    pickupCode: str
    remaining: int


def serialize_offer(offer: Offer) -> OfferResponse:
    return OfferResponse(
        id=offer.id,
        title=offer.title,
        subtitle=offer.subtitle,
        description=offer.description,
        heroImageUrl=offer.hero_image_url,
        priceCents=offer.price_cents,
        limitTotal=offer.limit_total,
        soldCount=offer.sold_count,
        remaining=offer.remaining,
        startsAt=offer.starts_at,
        endsAt=offer.ends_at,
        pickupDate=offer.pickup_date,
        isActive=offer.is_active,
    )


@router.get("", response_model=List[OfferResponse])
async def list_active_offers(db: AsyncSession = Depends(get_session)) -> List[OfferResponse]:
    stmt = select(Offer).where(Offer.is_active.is_(True)).order_by(Offer.created_at.desc())
    offers = (await db.execute(stmt)).scalars().all()
    return [serialize_offer(offer) for offer in offers]


@router.post(
    "/{offer_id}/reserve",
    response_model=ReservationResponse,
    status_code=status.HTTP_201_CREATED,
)
async def reserve_offer(
    offer_id: UUID,
    request: ReservationRequest | None = None,
    identity: CustomerIdentity = Depends(require_customer_session),
    service: LedgerService = Depends(get_ledger_service),
) -> ReservationResponse:
    quantity = request.quantity if request else 1
    result = await service.reserve_offer(identity.customer_id, offer_id, quantity)
    return ReservationResponse(
        orderId=result.order_id,
        pickupCode=result.pickup_code,
        remaining=result.remaining,
    )
