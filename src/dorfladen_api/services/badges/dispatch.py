"""Fire-and-forget dispatch of badge evaluation after committed awards."""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Protocol
from uuid import UUID

from loguru import logger

from dorfladen_api.core.settings import settings
from dorfladen_api.observability.ledger import get_ledger_store
from .evaluator import BadgeEvaluator

SessionFactory = Callable[[], object]


class BadgeDispatcher(Protocol):
    def __call__(self, customer_id: UUID) -> Awaitable[None]:
        ...


class NullBadgeDispatcher:
    """Used when badge evaluation is switched off."""

    async def __call__(self, customer_id: UUID) -> None:
        logger.debug("Badge evaluation disabled", customer_id=str(customer_id))


class InProcessBadgeDispatcher:
    """Run the evaluator as a background asyncio task with its own session."""

    def __init__(self, session_factory: SessionFactory) -> None:
        self._session_factory = session_factory
        self._tasks: set[asyncio.Task] = set()

    async def __call__(self, customer_id: UUID) -> None:
        task = asyncio.create_task(self._run(customer_id))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run(self, customer_id: UUID) -> None:
        store = get_ledger_store()
        try:
            async with self._session_factory() as session:
                await BadgeEvaluator(session).evaluate(customer_id)
        except Exception:  # noqa: BLE001 - badge evaluation is best-effort
            store.record_badge_dispatch("failed")
            logger.exception("Badge evaluation failed", customer_id=str(customer_id))
            return
        store.record_badge_dispatch("completed")

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait for in-flight evaluations (shutdown and tests)."""

        if self._tasks:
            await asyncio.gather(*list(self._tasks))


class CeleryBadgeDispatcher:
    """Enqueue the evaluator on the Celery badge queue."""

    def __init__(self, queue: str | None = None) -> None:
        self._queue = queue or settings.badge_task_queue

    async def __call__(self, customer_id: UUID) -> None:
        from dorfladen_api.celery_tasks.badges import evaluate_customer_badges

        await asyncio.to_thread(
            evaluate_customer_badges.apply_async,
            args=[str(customer_id)],
            queue=self._queue,
        )
        get_ledger_store().record_badge_dispatch("enqueued")


def build_badge_dispatcher(session_factory: SessionFactory) -> BadgeDispatcher:
    if not settings.badge_evaluation_enabled:
        logger.info("Badge evaluation disabled", reason="badge_evaluation_enabled is false")
        return NullBadgeDispatcher()
    if settings.celery_broker_url:
        logger.info("Badge evaluation via Celery", queue=settings.badge_task_queue)
        return CeleryBadgeDispatcher()
    logger.info("Badge evaluation in-process")
    return InProcessBadgeDispatcher(session_factory)


__all__ = [
    "BadgeDispatcher",
    "CeleryBadgeDispatcher",
    "InProcessBadgeDispatcher",
    "NullBadgeDispatcher",
    "build_badge_dispatcher",
]
