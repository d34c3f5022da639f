"""Session-aware dependencies for customer-facing APIs."""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from fastapi import Header, HTTPException, status


@dataclass(frozen=True)
class CustomerIdentity:
    """Identity forwarded by the auth proxy; trusted as-is."""

    customer_id: UUID
    email: str | None
    name: str | None


async def require_customer_session(
    session_user: str | None = Header(None, alias="X-Session-User"),
    session_email: str | None = Header(None, alias="X-Session-Email"),
    session_name: str | None = Header(None, alias="X-Session-Name"),
) -> CustomerIdentity:
    """Resolve the authenticated customer from forwarded session headers."""

    if not session_user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing session user context",
        )

    try:
        customer_id = UUID(session_user)
    except ValueError as error:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid session user identifier",
        ) from error

    return CustomerIdentity(
        customer_id=customer_id,
        email=(session_email or "").strip() or None,
        name=(session_name or "").strip() or None,
    )
