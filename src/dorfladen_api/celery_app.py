"""Celery application for badge evaluation after committed ledger awards."""

from __future__ import annotations

from celery import Celery

from dorfladen_api.core.settings import settings


def _resolve_backend_url() -> str:
    if settings.celery_result_backend:
        return settings.celery_result_backend
    return settings.redis_url


def _resolve_broker_url() -> str:
    if settings.celery_broker_url:
        return settings.celery_broker_url
    return settings.redis_url


celery_app = Celery(
    "dorfladen_api",
    broker=_resolve_broker_url(),
    backend=_resolve_backend_url(),
)

celery_app.conf.update(
    task_default_queue=settings.celery_default_queue,
    task_routes={"badges.*": {"queue": settings.badge_task_queue}},
    # Evaluation is idempotent; a run cut off here is repeated on the next award.
    task_annotations={
        "badges.evaluate_customer_badges": {
            "soft_time_limit": settings.badge_task_soft_time_limit,
            "time_limit": settings.badge_task_time_limit,
        }
    },
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    result_expires=settings.badge_task_result_expires,
    task_serializer="json",
    accept_content=["json"],
    timezone="UTC",
    broker_connection_retry_on_startup=True,
)

celery_app.autodiscover_tasks(["dorfladen_api.celery_tasks"])

__all__ = ["celery_app"]
