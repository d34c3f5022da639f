"""Points conversion rate lookup."""

from __future__ import annotations

from decimal import ROUND_FLOOR, Decimal, InvalidOperation

from loguru import logger
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from dorfladen_api.core.settings import settings
from dorfladen_api.models.setting import Setting
from dorfladen_api.observability.ledger import get_ledger_store

from .errors import SettingsUnavailable


def parse_rate(raw: str | None) -> Decimal:
    """Parse a stored rate string, raising ``SettingsUnavailable`` when unusable."""

    if raw is None:
        raise SettingsUnavailable("Conversion rate is not configured")
    try:
        rate = Decimal(raw.strip())
    except (InvalidOperation, AttributeError) as error:
        raise SettingsUnavailable(f"Conversion rate {raw!r} is not a number") from error
    if not rate.is_finite() or rate <= 0:
        raise SettingsUnavailable(f"Conversion rate {raw!r} must be positive")
    return rate


async def read_points_rate(session: AsyncSession) -> Decimal:
    """Return the current points-per-euro rate.

    Read inside the caller's session on every award; the value is never cached
    so staff edits apply to the next scan. A missing or malformed value falls
    back to the configured default.
    """

    key = settings.points_rate_setting_key
    result = await session.execute(select(Setting.value).where(Setting.key == key))
    raw = result.scalar_one_or_none()
    try:
        return parse_rate(raw)
    except SettingsUnavailable as error:
        default = Decimal(str(settings.default_points_per_euro))
        get_ledger_store().record_rejection("rate_lookup", error.code)
        logger.warning(
            "Conversion rate unavailable; applying default",
            setting_key=key,
            raw_value=raw,
            default_rate=str(default),
            reason=error.message,
        )
        return default


def compute_points(amount: Decimal, rate: Decimal) -> int:
    """Points for a purchase: ``floor(amount * rate)``."""

    return int((amount * rate).to_integral_value(rounding=ROUND_FLOOR))


__all__ = ["compute_points", "parse_rate", "read_points_rate"]
