"""Staff pickup desk: code scans, order and preorder transitions."""

from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from dorfladen_api.api.dependencies.ledger import get_ledger_service
from dorfladen_api.api.dependencies.security import require_staff_api_key
from dorfladen_api.services.ledger import LedgerService, PickupResult


router = APIRouter(prefix="/admin", tags=["pickups"], dependencies=[Depends(require_staff_api_key)])


class ScanRequest(BaseModel):
    code: str


class PickupTransitionResponse(BaseModel):
    kind: str
    id: UUID
    customerId: UUID
    status: str
    title: str
    occurredAt: datetime


class OrderCancellationResponse(BaseModel):
    orderId: UUID
    offerId: UUID
    quantity: int
    remaining: int
    status: str


class PreorderTimeRequest(BaseModel):
    at: Optional[datetime] = None


class PickupQueueEntryResponse(BaseModel):
    kind: str
    id: UUID
    code: str
    customerId: UUID
    customerName: Optional[str]
    title: str
    quantity: int
    status: str
    createdAt: datetime
    pickupAt: Optional[datetime]


def _serialize(result: PickupResult) -> PickupTransitionResponse:
    return PickupTransitionResponse(
        kind=result.kind,
        id=result.entity_id,
        customerId=result.customer_id,
        status=result.status,
        title=result.title,
        occurredAt=result.occurred_at,
    )


@router.get("/pickups", response_model=List[PickupQueueEntryResponse])
async def list_pickup_queue(
    status: Literal["open", "closed", "all"] = Query("open"),
    service: LedgerService = Depends(get_ledger_service),
) -> List[PickupQueueEntryResponse]:
    entries = await service.list_pickup_queue(status)
    return [
        PickupQueueEntryResponse(
            kind=entry.kind,
            id=entry.entity_id,
            code=entry.code,
            customerId=entry.customer_id,
            customerName=entry.customer_name,
            title=entry.title,
            quantity=entry.quantity,
            status=entry.status,
            createdAt=entry.created_at,
            pickupAt=entry.pickup_at,
        )
        for entry in entries
    ]


@router.post("/pickups/scan", response_model=PickupTransitionResponse)
async def scan_pickup_code(
    request: ScanRequest,
    service: LedgerService = Depends(get_ledger_service),
) -> PickupTransitionResponse:
    """Resolve a scanned claim, order or preorder code and hand it out."""

    return _serialize(await service.transition_pickup(request.code))


@router.post("/orders/{order_id}/cancel", response_model=OrderCancellationResponse)
async def cancel_order(
    order_id: UUID,
    service: LedgerService = Depends(get_ledger_service),
) -> OrderCancellationResponse:
    result = await service.cancel_order(order_id)
    return OrderCancellationResponse(
        orderId=result.order_id,
        offerId=result.offer_id,
        quantity=result.quantity,
        remaining=result.remaining,
        status="cancelled",
    )


@router.post("/orders/{order_id}/pickup", response_model=PickupTransitionResponse)
async def mark_order_picked_up(
    order_id: UUID,
    service: LedgerService = Depends(get_ledger_service),
) -> PickupTransitionResponse:
    return _serialize(await service.mark_order_picked_up(order_id))


@router.post("/preorders/{preorder_id}/confirm", response_model=PickupTransitionResponse)
async def confirm_preorder(
    preorder_id: UUID,
    request: PreorderTimeRequest | None = None,
    service: LedgerService = Depends(get_ledger_service),
) -> PickupTransitionResponse:
    """Confirm a requested preorder; defaults to the customer's desired pickup time."""

    confirmed_at = request.at if request else None
    return _serialize(await service.confirm_preorder(preorder_id, confirmed_at))


@router.post("/preorders/{preorder_id}/ready", response_model=PickupTransitionResponse)
async def mark_preorder_ready(
    preorder_id: UUID,
    request: PreorderTimeRequest | None = None,
    service: LedgerService = Depends(get_ledger_service),
) -> PickupTransitionResponse:
    return _serialize(await service.mark_preorder_ready(preorder_id, request.at if request else None))


@router.post("/preorders/{preorder_id}/pickup", response_model=PickupTransitionResponse)
async def mark_preorder_picked_up(
    preorder_id: UUID,
    request: PreorderTimeRequest | None = None,
    service: LedgerService = Depends(get_ledger_service),
) -> PickupTransitionResponse:
    return _serialize(await service.mark_preorder_picked_up(preorder_id, request.at if request else None))


@router.post("/preorders/{preorder_id}/cancel", response_model=PickupTransitionResponse)
async def cancel_preorder(
    preorder_id: UUID,
    service: LedgerService = Depends(get_ledger_service),
) -> PickupTransitionResponse:
    return _serialize(await service.cancel_preorder(preorder_id))
