from __future__ import annotations

from typing import Dict, Literal

from fastapi import APIRouter, Depends, Request
from loguru import logger
from pydantic import BaseModel, Field
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from dorfladen_api.core.settings import settings
from dorfladen_api.db.session import get_session
from dorfladen_api.services.badges import CeleryBadgeDispatcher, InProcessBadgeDispatcher


router = APIRouter()


class ComponentStatus(BaseModel):
    status: Literal["ready", "starting", "disabled", "error", "degraded"]
    detail: str | None = Field(default=None, description="Human readable status detail")


class ReadinessPayload(BaseModel):
    status: Literal["ready", "degraded", "error"]
    components: Dict[str, ComponentStatus]


@router.get("/healthz", summary="Service health check")
async def service_health() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/readyz", summary="Service readiness", response_model=ReadinessPayload)
async def service_readiness(
    request: Request,
    session: AsyncSession = Depends(get_session),
) -> ReadinessPayload:
    components: Dict[str, ComponentStatus] = {}
    status: Literal["ready", "degraded", "error"] = "ready"

    try:
        await session.execute(text("SELECT 1"))
    except SQLAlchemyError as error:
        logger.exception("Database readiness check failed")
        components["database"] = ComponentStatus(status="error", detail=str(error))
        status = "error"
    else:
        components["database"] = ComponentStatus(status="ready")

    dispatcher = getattr(request.app.state, "badge_dispatcher", None)
    if not settings.badge_evaluation_enabled:
        components["badge_evaluation"] = ComponentStatus(
            status="disabled",
            detail="Badge evaluation disabled via settings",
        )
    elif isinstance(dispatcher, CeleryBadgeDispatcher):
        components["badge_evaluation"] = ComponentStatus(
            status="ready",
            detail=f"Celery queue {settings.badge_task_queue}",
        )
    elif isinstance(dispatcher, InProcessBadgeDispatcher):
        components["badge_evaluation"] = ComponentStatus(
            status="ready",
            detail=f"In-process ({dispatcher.pending} pending)",
        )
    else:
        components["badge_evaluation"] = ComponentStatus(status="starting", detail="Dispatcher not initialised")
        if status == "ready":
            status = "degraded"

    return ReadinessPayload(status=status, components=components)
