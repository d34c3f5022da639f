"""Badge evaluation helpers shared by Celery and the in-process dispatcher."""

from __future__ import annotations

import asyncio
from typing import Any, Callable
from uuid import UUID

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from dorfladen_api.core.settings import settings
from dorfladen_api.services.badges.evaluator import BadgeEvaluator

SessionFactory = Callable[[], Any]


async def process_badge_evaluation(
    customer_id: UUID,
    *,
    session_factory: SessionFactory,
) -> dict[str, Any]:
    """Evaluate badges for one customer and return the summary payload."""

    async with session_factory() as session:
        unlocked = await BadgeEvaluator(session).evaluate(customer_id)
    logger.info(
        "Badge evaluation finished",
        customer_id=str(customer_id),
        unlocked=len(unlocked),
    )
    return {
        "customerId": str(customer_id),
        "unlocked": [str(badge.id) for badge in unlocked],
    }


async def _evaluate_with_fresh_engine(customer_id: UUID) -> dict[str, Any]:
    # Each asyncio.run gets its own loop, so pooled connections cannot be reused.
    engine = create_async_engine(settings.database_url, echo=settings.database_echo)
    factory = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)
    try:
        return await process_badge_evaluation(customer_id, session_factory=factory)
    finally:
        await engine.dispose()


def process_badge_evaluation_sync(customer_id: str | UUID) -> dict[str, Any]:
    """Convenience wrapper so Celery/cron integrations can call the async evaluator."""

    return asyncio.run(_evaluate_with_fresh_engine(UUID(str(customer_id))))


__all__ = ["process_badge_evaluation", "process_badge_evaluation_sync"]
