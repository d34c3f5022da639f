"""Async engine and session factory shared by the API and background tasks."""

from __future__ import annotations

from typing import AsyncIterator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from dorfladen_api.core.settings import settings


def _engine_kwargs(database_url: str) -> dict:
    kwargs: dict = {"future": True, "echo": settings.database_echo}
    if database_url.startswith("sqlite"):
        # Writers wait on the database lock instead of failing immediately.
        kwargs["connect_args"] = {"timeout": 30}
    else:
        kwargs["pool_pre_ping"] = True
    return kwargs


engine = create_async_engine(settings.database_url, **_engine_kwargs(settings.database_url))

async_session = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


async def get_session() -> AsyncIterator[AsyncSession]:
    """FastAPI dependency yielding a request-scoped session."""

    async with async_session() as session:
        yield session
