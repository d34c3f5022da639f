"""Shared-secret guard for staff endpoints (POS scanner, shop dashboard)."""

import secrets

from fastapi import Header, HTTPException, status
from loguru import logger

from dorfladen_api.core.settings import settings


async def require_staff_api_key(x_api_key: str = Header("", alias="X-API-Key")) -> None:
    expected = settings.staff_api_key
    if not expected:
        return

    if not secrets.compare_digest(x_api_key.encode("utf-8"), expected.encode("utf-8")):
        logger.warning("Rejected staff request with invalid API key")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid staff API key",
        )
