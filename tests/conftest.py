import sys
from pathlib import Path
from uuid import UUID

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine


def _configure_path() -> None:
    src_path = Path(__file__).resolve().parents[1] / "src"
    if src_path.exists():
        sys.path.insert(0, str(src_path))


_configure_path()

from dorfladen_api import models  # noqa: E402,F401
from dorfladen_api.api.dependencies.ledger import get_badge_dispatcher  # noqa: E402
from dorfladen_api.app import create_app  # noqa: E402
from dorfladen_api.db.base import Base  # noqa: E402
from dorfladen_api.db.session import get_session  # noqa: E402
from dorfladen_api.observability.ledger import get_ledger_store  # noqa: E402


class RecordingBadgeDispatcher:
    """Stands in for the background dispatcher; remembers who was queued."""

    def __init__(self) -> None:
        self.calls: list[UUID] = []

    async def __call__(self, customer_id: UUID) -> None:
        self.calls.append(customer_id)


@pytest.fixture(autouse=True)
def reset_ledger_store():
    store = get_ledger_store()
    store.reset()
    yield store
    store.reset()


@pytest_asyncio.fixture
async def session_factory():
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", future=True)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)

    try:
        yield factory
    finally:
        await engine.dispose()


@pytest_asyncio.fixture
async def file_session_factory(tmp_path):
    """File-backed database so concurrent sessions use separate connections."""

    database = tmp_path / "ledger.db"
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{database}",
        future=True,
        connect_args={"timeout": 30},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)

    try:
        yield factory
    finally:
        await engine.dispose()


@pytest.fixture
def badge_dispatcher() -> RecordingBadgeDispatcher:
    return RecordingBadgeDispatcher()


@pytest_asyncio.fixture
async def app_with_db(session_factory, badge_dispatcher):
    app = create_app()

    async def override_get_session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_badge_dispatcher] = lambda: badge_dispatcher

    try:
        yield app, session_factory
    finally:
        app.dependency_overrides.clear()
