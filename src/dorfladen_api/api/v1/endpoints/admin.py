"""Staff dashboard: customer and catalog overviews, catalog management, settings and manual point credits."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID, uuid4

from fastapi import APIRouter, Depends, Header, HTTPException, Query, status
from loguru import logger
from pydantic import BaseModel, Field, model_validator
from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from dorfladen_api.api.dependencies.ledger import get_ledger_service
from dorfladen_api.api.dependencies.security import require_staff_api_key
from dorfladen_api.core.settings import settings
from dorfladen_api.db.base import INTEGER_MAX
from dorfladen_api.db.session import get_session
from dorfladen_api.models.customer import Customer, LedgerTransaction
from dorfladen_api.models.offer import Offer
from dorfladen_api.models.preorder import PreorderProduct, PreorderUnit
from dorfladen_api.models.reward import Reward
from dorfladen_api.models.setting import Setting
from dorfladen_api.services.ledger import LedgerService
from dorfladen_api.services.ledger.errors import SettingsUnavailable
from dorfladen_api.services.ledger.ranks import rank_for_points
from dorfladen_api.services.ledger.rates import parse_rate

from .ledger import AwardResponse, serialize_award
from .offers import OfferResponse, serialize_offer
from .preorders import PreorderProductResponse, serialize_product
from .rewards import RewardResponse, serialize_reward


router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_staff_api_key)])


class RewardCreateRequest(BaseModel):
    name: str = Field(..., min_length=1)
    description: str = ""
    pointsRequired: int = Field(..., gt=0, le=INTEGER_MAX)
    isActive: bool = True


class RewardUpdateRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    pointsRequired: Optional[int] = Field(None, gt=0, le=INTEGER_MAX)
    isActive: Optional[bool] = None


class OfferCreateRequest(BaseModel):
    title: str = Field(..., min_length=1)
    subtitle: Optional[str] = None
    description: Optional[str] = None
    heroImageUrl: Optional[str] = None
    priceCents: int = Field(0, ge=0, le=INTEGER_MAX)
    limitTotal: int = Field(..., ge=0, le=INTEGER_MAX)
    startsAt: Optional[datetime] = None
    endsAt: Optional[datetime] = None
    pickupDate: Optional[datetime] = None
    isActive: bool = True

    @model_validator(mode="after")
    def validate_window(self) -> "OfferCreateRequest":
        if self.startsAt and self.endsAt and self.endsAt < self.startsAt:
            raise ValueError("endsAt must not be before startsAt")
        return self


class OfferUpdateRequest(BaseModel):
    title: Optional[str] = Field(None, min_length=1)
    subtitle: Optional[str] = None
    description: Optional[str] = None
    heroImageUrl: Optional[str] = None
    priceCents: Optional[int] = Field(None, ge=0, le=INTEGER_MAX)
    limitTotal: Optional[int] = Field(None, ge=0, le=INTEGER_MAX)
    startsAt: Optional[datetime] = None
    endsAt: Optional[datetime] = None
    pickupDate: Optional[datetime] = None
    isActive: Optional[bool] = None


class PreorderProductCreateRequest(BaseModel):
    name: str = Field(..., min_length=1)
    unit: PreorderUnit = PreorderUnit.PER_100G
    step: Optional[int] = Field(None, ge=1, le=INTEGER_MAX)
    isActive: bool = True


class PreorderProductUpdateRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    step: Optional[int] = Field(None, ge=1, le=INTEGER_MAX)
    isActive: Optional[bool] = None


class SettingUpdateRequest(BaseModel):
    value: str
    description: Optional[str] = None


class SettingResponse(BaseModel):
    key: str
    value: str
    description: Optional[str]


class ManualPointsRequest(BaseModel):
    amount: Decimal = Field(..., description="Purchase total in euro")
    description: Optional[str] = None


class AdminCustomerResponse(BaseModel):
    id: UUID
    email: str
    name: str
    points: int
    totalPoints: int
    rank: str
    createdAt: datetime


class AdminStatsResponse(BaseModel):
    totalCustomers: int
    totalPoints: int
    totalTransactions: int


_OFFER_FIELDS = {
    "title": "title",
    "subtitle": "subtitle",
    "description": "description",
    "heroImageUrl": "hero_image_url",
    "priceCents": "price_cents",
    "limitTotal": "limit_total",
    "startsAt": "starts_at",
    "endsAt": "ends_at",
    "pickupDate": "pickup_date",
    "isActive": "is_active",
}
_OFFER_NOT_NULL = frozenset({"title", "priceCents", "limitTotal", "isActive"})


def _search_pattern(search: str | None) -> str | None:
    term = (search or "").strip()
    return f"%{term}%" if term else None


@router.get("/customers", response_model=List[AdminCustomerResponse])
async def list_customers(
    search: str | None = Query(None, description="Match against name or email"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_session),
) -> List[AdminCustomerResponse]:
    """Newest customers first; used to pick the target of a manual points credit."""

    stmt = select(Customer).order_by(Customer.created_at.desc(), Customer.name.asc())
    pattern = _search_pattern(search)
    if pattern:
        stmt = stmt.where(or_(Customer.name.ilike(pattern), Customer.email.ilike(pattern)))
    customers = (await db.execute(stmt.limit(limit).offset(offset))).scalars().all()
    return [
        AdminCustomerResponse(
            id=customer.id,
            email=customer.email,
            name=customer.name,
            points=customer.points,
            totalPoints=customer.total_points,
            rank=rank_for_points(customer.total_points or 0).name,
            createdAt=customer.created_at,
        )
        for customer in customers
    ]


@router.get("/stats", response_model=AdminStatsResponse)
async def get_stats(db: AsyncSession = Depends(get_session)) -> AdminStatsResponse:
    customers, points = (
        await db.execute(select(func.count(Customer.id), func.coalesce(func.sum(Customer.points), 0)))
    ).one()
    transactions = (await db.execute(select(func.count(LedgerTransaction.id)))).scalar_one()
    return AdminStatsResponse(
        totalCustomers=int(customers),
        totalPoints=int(points),
        totalTransactions=int(transactions),
    )


@router.get("/rewards", response_model=List[RewardResponse])
async def list_all_rewards(db: AsyncSession = Depends(get_session)) -> List[RewardResponse]:
    """Every reward, inactive ones included, cheapest first."""

    stmt = select(Reward).order_by(Reward.points_required.asc(), Reward.name.asc())
    return [serialize_reward(reward) for reward in (await db.execute(stmt)).scalars().all()]


@router.get("/offers", response_model=List[OfferResponse])
async def list_all_offers(
    search: str | None = Query(None, description="Match against title or subtitle"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_session),
) -> List[OfferResponse]:
    stmt = select(Offer).order_by(Offer.created_at.desc(), Offer.title.asc())
    pattern = _search_pattern(search)
    if pattern:
        stmt = stmt.where(or_(Offer.title.ilike(pattern), Offer.subtitle.ilike(pattern)))
    offers = (await db.execute(stmt.limit(limit).offset(offset))).scalars().all()
    return [serialize_offer(offer) for offer in offers]


@router.get("/preorder-products", response_model=List[PreorderProductResponse])
async def list_all_preorder_products(
    search: str | None = Query(None, description="Match against the product name"),
    db: AsyncSession = Depends(get_session),
) -> List[PreorderProductResponse]:
    stmt = select(PreorderProduct).order_by(PreorderProduct.created_at.desc(), PreorderProduct.name.asc())
    pattern = _search_pattern(search)
    if pattern:
        stmt = stmt.where(PreorderProduct.name.ilike(pattern))
    return [serialize_product(product) for product in (await db.execute(stmt)).scalars().all()]


@router.post("/rewards", response_model=RewardResponse, status_code=status.HTTP_201_CREATED)
async def create_reward(request: RewardCreateRequest, db: AsyncSession = Depends(get_session)) -> RewardResponse:
    reward = Reward(
        name=request.name,
        description=request.description,
        points_required=request.pointsRequired,
        is_active=request.isActive,
    )
    db.add(reward)
    await db.commit()
    logger.info("Created reward", reward_id=str(reward.id), points_required=reward.points_required)
    return serialize_reward(reward)


@router.patch("/rewards/{reward_id}", response_model=RewardResponse)
async def update_reward(
    reward_id: UUID,
    request: RewardUpdateRequest,
    db: AsyncSession = Depends(get_session),
) -> RewardResponse:
    reward = await db.get(Reward, reward_id)
    if reward is None:
        raise HTTPException(status_code=404, detail="Reward not found")
    updates = request.model_dump(exclude_unset=True)
    if "name" in updates:
        reward.name = updates["name"]
    if "description" in updates:
        reward.description = updates["description"] or ""
    if "pointsRequired" in updates:
        reward.points_required = updates["pointsRequired"]
    if "isActive" in updates:
        reward.is_active = updates["isActive"]
    await db.commit()
    await db.refresh(reward)
    logger.info("Updated reward", reward_id=str(reward_id), fields=sorted(updates))
    return serialize_reward(reward)


@router.post("/offers", response_model=OfferResponse, status_code=status.HTTP_201_CREATED)
async def create_offer(request: OfferCreateRequest, db: AsyncSession = Depends(get_session)) -> OfferResponse:
    offer = Offer(
        title=request.title,
        subtitle=request.subtitle,
        description=request.description,
        hero_image_url=request.heroImageUrl,
        price_cents=request.priceCents,
        limit_total=request.limitTotal,
        sold_count=0,
        starts_at=request.startsAt,
        ends_at=request.endsAt,
        pickup_date=request.pickupDate,
        is_active=request.isActive,
    )
    db.add(offer)
    await db.commit()
    logger.info("Created offer", offer_id=str(offer.id), limit_total=offer.limit_total)
    return serialize_offer(offer)


@router.patch("/offers/{offer_id}", response_model=OfferResponse)
async def update_offer(
    offer_id: UUID,
    request: OfferUpdateRequest,
    db: AsyncSession = Depends(get_session),
) -> OfferResponse:
    offer = await db.get(Offer, offer_id)
    if offer is None:
        raise HTTPException(status_code=404, detail="Offer not found")
    updates = {
        field: value
        for field, value in request.model_dump(exclude_unset=True).items()
        if value is not None or field not in _OFFER_NOT_NULL
    }
    if "limitTotal" in updates:
        # Guarded in SQL: a reservation may have committed since the offer was loaded.
        resized = await db.execute(
            update(Offer)
            .where(Offer.id == offer_id, Offer.sold_count <= updates["limitTotal"])
            .values(limit_total=updates["limitTotal"])
            .returning(Offer.id)
            .execution_options(synchronize_session=False)
        )
        if resized.one_or_none() is None:
            await db.rollback()
            sold_count = (await db.execute(select(Offer.sold_count).where(Offer.id == offer_id))).scalar_one()
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"limitTotal cannot drop below {sold_count} units already sold",
            )
    for field, column in _OFFER_FIELDS.items():
        if field in updates and field != "limitTotal":
            setattr(offer, column, updates[field])
    await db.commit()
    await db.refresh(offer)
    logger.info("Updated offer", offer_id=str(offer_id), fields=sorted(updates))
    return serialize_offer(offer)


@router.post(
    "/preorder-products",
    response_model=PreorderProductResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_preorder_product(
    request: PreorderProductCreateRequest,
    db: AsyncSession = Depends(get_session),
) -> PreorderProductResponse:
    product = PreorderProduct(
        name=request.name,
        unit=request.unit,
        step=request.step or request.unit.default_step,
        is_active=request.isActive,
    )
    db.add(product)
    await db.commit()
    logger.info("Created preorder product", product_id=str(product.id), unit=product.unit.value, step=product.step)
    return serialize_product(product)


@router.patch("/preorder-products/{product_id}", response_model=PreorderProductResponse)
async def update_preorder_product(
    product_id: UUID,
    request: PreorderProductUpdateRequest,
    db: AsyncSession = Depends(get_session),
) -> PreorderProductResponse:
    product = await db.get(PreorderProduct, product_id)
    if product is None:
        raise HTTPException(status_code=404, detail="Preorder product not found")
    updates = request.model_dump(exclude_unset=True)
    if "name" in updates:
        product.name = updates["name"]
    if "step" in updates:
        product.step = updates["step"]
    if "isActive" in updates:
        product.is_active = updates["isActive"]
    await db.commit()
    await db.refresh(product)
    return serialize_product(product)


@router.put("/settings/{key}", response_model=SettingResponse)
async def upsert_setting(
    key: str,
    request: SettingUpdateRequest,
    db: AsyncSession = Depends(get_session),
) -> SettingResponse:
    if key == settings.points_rate_setting_key:
        try:
            parse_rate(request.value)
        except SettingsUnavailable as error:
            raise HTTPException(status_code=422, detail=error.message) from error

    setting = (await db.execute(select(Setting).where(Setting.key == key))).scalar_one_or_none()
    if setting is None:
        setting = Setting(key=key, value=request.value, description=request.description)
        db.add(setting)
    else:
        setting.value = request.value
        if request.description is not None:
            setting.description = request.description
    await db.commit()
    logger.info("Updated setting", key=key, value=request.value)
    return SettingResponse(key=setting.key, value=setting.value, description=setting.description)


@router.post(
    "/customers/{customer_id}/points",
    response_model=AwardResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_points_manually(
    customer_id: UUID,
    request: ManualPointsRequest,
    idempotency_key: str | None = Header(None, alias="Idempotency-Key"),
    service: LedgerService = Depends(get_ledger_service),
) -> AwardResponse:
    """Quick-add from the staff dashboard; goes through the same award path as scans."""

    scan_token = (idempotency_key or "").strip() or f"admin_{uuid4()}"
    result = await service.award_points(customer_id, request.amount, request.description, scan_token)
    return serialize_award(result)
