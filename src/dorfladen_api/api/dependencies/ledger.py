"""Ledger service wiring for request handlers."""

from __future__ import annotations

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from dorfladen_api.db.session import get_session
from dorfladen_api.services.badges import BadgeDispatcher, NullBadgeDispatcher
from dorfladen_api.services.ledger import LedgerService


def get_badge_dispatcher(request: Request) -> BadgeDispatcher:
    dispatcher = getattr(request.app.state, "badge_dispatcher", None)
    return dispatcher or NullBadgeDispatcher()


def get_ledger_service(
    db: AsyncSession = Depends(get_session),
    badge_dispatcher: BadgeDispatcher = Depends(get_badge_dispatcher),
) -> LedgerService:
    return LedgerService(db, badge_dispatcher=badge_dispatcher)
