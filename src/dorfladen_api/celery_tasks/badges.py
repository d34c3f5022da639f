from __future__ import annotations

from celery.exceptions import SoftTimeLimitExceeded
from loguru import logger

from dorfladen_api.celery_app import celery_app
from dorfladen_api.core.settings import settings
from dorfladen_api.tasks.badges import process_badge_evaluation_sync


@celery_app.task(
    name="badges.evaluate_customer_badges",
    queue=settings.badge_task_queue,
)
def evaluate_customer_badges(customer_id: str) -> dict[str, object]:
    """Celery entrypoint for unlocking badges after a committed award."""

    try:
        return process_badge_evaluation_sync(customer_id)
    except SoftTimeLimitExceeded:
        logger.warning(
            "Badge evaluation hit the soft time limit",
            customer_id=customer_id,
            soft_time_limit=settings.badge_task_soft_time_limit,
        )
        return {"customerId": customer_id, "unlocked": [], "timedOut": True}
    except Exception as exc:  # pragma: no cover - Celery handles retries/logging
        logger.exception("Badge evaluation task failed", customer_id=customer_id)
        raise exc
