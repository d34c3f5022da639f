from datetime import datetime, timedelta, timezone
from uuid import UUID, uuid4

import pytest
from sqlalchemy import select, update

from dorfladen_api.models.customer import Customer
from dorfladen_api.models.offer import Offer, OfferOrder, OfferOrderStatus
from dorfladen_api.services.ledger import (
    InvalidQuantity,
    InvalidStateTransition,
    OfferNotAvailable,
    OfferNotFound,
    ReservationEngine,
    SoldOut,
)


async def _seed(session, **offer_fields) -> tuple[UUID, UUID]:
    customer = Customer(email="clara@example.com", name="Clara")
    offer = Offer(title="Spargel aus Eggenthal", limit_total=offer_fields.pop("limit_total", 5), **offer_fields)
    session.add_all([customer, offer])
    await session.commit()
    return customer.id, offer.id


async def _sold_count(session, offer_id) -> int:
    return (await session.execute(select(Offer.sold_count).where(Offer.id == offer_id))).scalar_one()


@pytest.mark.asyncio
async def test_reserve_increments_sold_count_and_returns_pickup_code(session_factory) -> None:
    async with session_factory() as session:
        customer_id, offer_id = await _seed(session, limit_total=5)

        result = await ReservationEngine(session).reserve_offer(customer_id, offer_id, 2)

        assert result.remaining == 3
        assert result.pickup_code == f"order_{result.order_id}"
        assert await _sold_count(session, offer_id) == 2

        order = (await session.execute(select(OfferOrder))).scalar_one()
        assert order.status == OfferOrderStatus.RESERVED
        assert order.quantity == 2


@pytest.mark.asyncio
async def test_reserve_rejects_more_than_remaining(session_factory, reset_ledger_store) -> None:
    async with session_factory() as session:
        customer_id, offer_id = await _seed(session, limit_total=3)
        engine = ReservationEngine(session)
        await engine.reserve_offer(customer_id, offer_id, 2)

        with pytest.raises(SoldOut) as excinfo:
            await engine.reserve_offer(customer_id, offer_id, 2)

        assert excinfo.value.context["remaining"] == 1
        assert await _sold_count(session, offer_id) == 2

        await engine.reserve_offer(customer_id, offer_id, 1)
        assert await _sold_count(session, offer_id) == 3

        with pytest.raises(SoldOut):
            await engine.reserve_offer(customer_id, offer_id, 1)

    assert reset_ledger_store.snapshot().rejections["reserve"]["sold_out"] == 2


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "window",
    [
        {"starts_at": datetime.now(timezone.utc) + timedelta(days=1)},
        {"ends_at": datetime.now(timezone.utc) - timedelta(minutes=1)},
        {"is_active": False},
    ],
)
async def test_reserve_outside_sales_window_is_rejected(session_factory, window) -> None:
    async with session_factory() as session:
        customer_id, offer_id = await _seed(session, **window)

        with pytest.raises(OfferNotAvailable):
            await ReservationEngine(session).reserve_offer(customer_id, offer_id, 1)

        assert await _sold_count(session, offer_id) == 0


@pytest.mark.asyncio
async def test_reserve_within_open_window(session_factory) -> None:
    now = datetime.now(timezone.utc)
    async with session_factory() as session:
        customer_id, offer_id = await _seed(
            session,
            starts_at=now - timedelta(hours=1),
            ends_at=now + timedelta(hours=1),
        )

        result = await ReservationEngine(session).reserve_offer(customer_id, offer_id, 1)

        assert result.remaining == 4


@pytest.mark.asyncio
@pytest.mark.parametrize("quantity", [0, -1, True])
async def test_reserve_rejects_invalid_quantity(session_factory, quantity) -> None:
    async with session_factory() as session:
        customer_id, offer_id = await _seed(session)

        with pytest.raises(InvalidQuantity):
            await ReservationEngine(session).reserve_offer(customer_id, offer_id, quantity)


@pytest.mark.asyncio
async def test_reserve_unknown_offer(session_factory) -> None:
    async with session_factory() as session:
        customer_id, _ = await _seed(session)

        with pytest.raises(OfferNotFound):
            await ReservationEngine(session).reserve_offer(customer_id, uuid4(), 1)


@pytest.mark.asyncio
async def test_cancel_releases_stock_once(session_factory) -> None:
    async with session_factory() as session:
        customer_id, offer_id = await _seed(session, limit_total=4)
        engine = ReservationEngine(session)
        reservation = await engine.reserve_offer(customer_id, offer_id, 3)

        cancelled = await engine.cancel_order(reservation.order_id)

        assert cancelled.quantity == 3
        assert cancelled.remaining == 4
        assert await _sold_count(session, offer_id) == 0

        with pytest.raises(InvalidStateTransition):
            await engine.cancel_order(reservation.order_id)
        assert await _sold_count(session, offer_id) == 0

        order = await session.get(OfferOrder, reservation.order_id, populate_existing=True)
        assert order.status == OfferOrderStatus.CANCELLED
        assert order.cancelled_at is not None


@pytest.mark.asyncio
async def test_cancel_never_drives_sold_count_negative(session_factory) -> None:
    async with session_factory() as session:
        customer_id, offer_id = await _seed(session, limit_total=5)
        engine = ReservationEngine(session)
        reservation = await engine.reserve_offer(customer_id, offer_id, 3)

        # Stock corrected by hand after the reservation was made.
        await session.execute(update(Offer).where(Offer.id == offer_id).values(sold_count=1))
        await session.commit()

        cancelled = await engine.cancel_order(reservation.order_id)

        assert cancelled.remaining == 5
        assert await _sold_count(session, offer_id) == 0


@pytest.mark.asyncio
async def test_reserve_quantity_beyond_offer_limit_is_sold_out(session_factory, reset_ledger_store) -> None:
    async with session_factory() as session:
        customer_id, offer_id = await _seed(session, limit_total=3)

        with pytest.raises(SoldOut) as excinfo:
            await ReservationEngine(session).reserve_offer(customer_id, offer_id, 10**20)

        assert excinfo.value.context["remaining"] == 3
        assert await _sold_count(session, offer_id) == 0
        assert (await session.execute(select(OfferOrder))).scalars().all() == []

    assert reset_ledger_store.snapshot().rejections["reserve"]["sold_out"] == 1
