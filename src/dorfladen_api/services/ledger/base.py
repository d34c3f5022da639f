"""Shared plumbing for ledger engines."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from dorfladen_api.observability.ledger import LedgerObservabilityStore, get_ledger_store

from .errors import LedgerError


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    """Normalise naive timestamps (SQLite drops tzinfo) to UTC."""

    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class LedgerEngine:
    """Base for engines that mutate the ledger inside one session transaction."""

    def __init__(
        self,
        db_session: AsyncSession,
        *,
        store: LedgerObservabilityStore | None = None,
    ) -> None:
        self._db = db_session
        self._store = store or get_ledger_store()

    async def _abort(self, operation: str, error: LedgerError, **fields: Any) -> None:
        """Roll back the unit of work and record the rejection."""

        await self._db.rollback()
        self._store.record_rejection(operation, error.code)
        context = {key: str(value) for key, value in {**error.context, **fields}.items()}
        logger.warning(
            "Ledger operation rejected",
            operation=operation,
            code=error.code,
            reason=error.message,
            **context,
        )

    def _accepted(self, operation: str, message: str, **fields: Any) -> None:
        self._store.record_operation(operation)
        logger.info(message, operation=operation, **{key: str(value) for key, value in fields.items()})


__all__ = ["LedgerEngine", "as_utc", "utcnow"]
