"""Staff scan flow: award purchase points to a customer."""

from __future__ import annotations

from decimal import Decimal
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field

from dorfladen_api.api.dependencies.ledger import get_ledger_service
from dorfladen_api.api.dependencies.security import require_staff_api_key
from dorfladen_api.services.ledger import AwardResult, LedgerService


router = APIRouter(prefix="/ledger", tags=["ledger"], dependencies=[Depends(require_staff_api_key)])


class AwardRequest(BaseModel):
    customerId: UUID
    amount: Decimal = Field(..., description="Purchase total in euro")
    description: Optional[str] = Field(None, description="Shown in the customer's history")
    scanToken: str = Field(..., description="Unique token of the scanned customer QR code")


class AwardResponse(BaseModel):
    pointsAwarded: int
    newBalance: int
    newTotal: int
    customerName: str
    transactionId: UUID


def serialize_award(result: AwardResult) -> AwardResponse:
    return AwardResponse(
        pointsAwarded=result.points_awarded,
        newBalance=result.new_balance,
        newTotal=result.new_total,
        customerName=result.customer_name,
        transactionId=result.transaction_id,
    )


@router.post("/awards", response_model=AwardResponse, status_code=status.HTTP_201_CREATED)
async def award_purchase_points(
    request: AwardRequest,
    service: LedgerService = Depends(get_ledger_service),
) -> AwardResponse:
    """Credit points for a scanned purchase; each scan token is accepted once."""

    result = await service.award_points(
        request.customerId,
        request.amount,
        request.description,
        request.scanToken,
    )
    return serialize_award(result)
