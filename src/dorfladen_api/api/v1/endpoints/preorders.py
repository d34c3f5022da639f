"""Preorder products and customer preorders."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field

from dorfladen_api.api.dependencies.ledger import get_ledger_service
from dorfladen_api.api.dependencies.session import CustomerIdentity, require_customer_session
from dorfladen_api.models.preorder import Preorder, PreorderProduct
from dorfladen_api.services.ledger import LedgerService, PreorderItemRequest


router = APIRouter(prefix="/preorders", tags=["preorders"])


class PreorderProductResponse(BaseModel):
    id: UUID
    name: str
    unit: str
    step: int
    isActive: bool


class PreorderItemPayload(BaseModel):
    productId: UUID
    quantity: int = Field(..., description="Grams for per_100g products, portions otherwise")


class PreorderCreateRequest(BaseModel):
    desiredPickupAt: Optional[datetime] = None
    items: List[PreorderItemPayload]


class PreorderItemResponse(BaseModel):
    productId: UUID
    productName: str
    quantity: int


class PreorderResponse(BaseModel):
    id: UUID
    status: str
    pickupCode: str
    desiredPickupAt: Optional[datetime]
    confirmedPickupAt: Optional[datetime]
    readyAt: Optional[datetime]
    pickedUpAt: Optional[datetime]
    cancelledAt: Optional[datetime]
    createdAt: datetime
    items: List[PreorderItemResponse]


def serialize_product(product: PreorderProduct) -> PreorderProductResponse:
    return PreorderProductResponse(
        id=product.id,
        name=product.name,
        unit=product.unit.value,
        step=product.step,
        isActive=product.is_active,
    )


def serialize_preorder(preorder: Preorder) -> PreorderResponse:
    return PreorderResponse(
        id=preorder.id,
        status=preorder.status.value,
        pickupCode=preorder.pickup_code,
        desiredPickupAt=preorder.desired_pickup_at,
        confirmedPickupAt=preorder.confirmed_pickup_at,
        readyAt=preorder.ready_at,
        pickedUpAt=preorder.picked_up_at,
        cancelledAt=preorder.cancelled_at,
        createdAt=preorder.created_at,
        items=[
            PreorderItemResponse(
                productId=item.product_id,
                productName=item.product_name,
                quantity=item.quantity,
            )
            for item in preorder.items
        ],
    )


@router.get("/products", response_model=List[PreorderProductResponse])
async def list_preorder_products(
    service: LedgerService = Depends(get_ledger_service),
) -> List[PreorderProductResponse]:
    products = await service.preorders.list_products()
    return [serialize_product(product) for product in products]


@router.get("", response_model=List[PreorderResponse])
async def list_current_customer_preorders(
    identity: CustomerIdentity = Depends(require_customer_session),
    service: LedgerService = Depends(get_ledger_service),
) -> List[PreorderResponse]:
    preorders = await service.preorders.list_customer_preorders(identity.customer_id)
    return [serialize_preorder(preorder) for preorder in preorders]


@router.post("", response_model=PreorderResponse, status_code=status.HTTP_201_CREATED)
async def create_preorder(
    request: PreorderCreateRequest,
    identity: CustomerIdentity = Depends(require_customer_session),
    service: LedgerService = Depends(get_ledger_service),
) -> PreorderResponse:
    preorder = await service.create_preorder(
        identity.customer_id,
        request.desiredPickupAt,
        [PreorderItemRequest(product_id=item.productId, quantity=item.quantity) for item in request.items],
    )
    return serialize_preorder(preorder)
