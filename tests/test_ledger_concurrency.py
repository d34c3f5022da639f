import asyncio
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from dorfladen_api.models.customer import Customer, LedgerTransaction, TransactionType
from dorfladen_api.models.offer import Offer, OfferOrder
from dorfladen_api.models.reward import Claim, Reward
from dorfladen_api.services.ledger import (
    DuplicateOperation,
    InsufficientPoints,
    LedgerError,
    LedgerService,
    SoldOut,
)


async def _run_isolated(session_factory, operation):
    """Run one ledger call on its own session, returning the result or the ledger error."""

    async with session_factory() as session:
        try:
            return await operation(LedgerService(session))
        except LedgerError as error:
            return error


@pytest.mark.asyncio
async def test_last_unit_goes_to_exactly_one_customer(file_session_factory) -> None:
    async with file_session_factory() as session:
        first = Customer(email="f@example.com", name="Franz")
        second = Customer(email="g@example.com", name="Greta")
        offer = Offer(title="Letzter Laib", limit_total=1)
        session.add_all([first, second, offer])
        await session.commit()
        customer_ids = [first.id, second.id]
        offer_id = offer.id

    outcomes = await asyncio.gather(
        *(
            _run_isolated(file_session_factory, lambda service, cid=cid: service.reserve_offer(cid, offer_id, 1))
            for cid in customer_ids
        )
    )

    errors = [outcome for outcome in outcomes if isinstance(outcome, LedgerError)]
    assert len(errors) == 1
    assert isinstance(errors[0], SoldOut)

    async with file_session_factory() as session:
        sold = (await session.execute(select(Offer.sold_count).where(Offer.id == offer_id))).scalar_one()
        orders = (await session.execute(select(func.count(OfferOrder.id)))).scalar_one()
    assert sold == 1
    assert orders == 1


@pytest.mark.asyncio
async def test_concurrent_reservations_never_oversell(file_session_factory) -> None:
    async with file_session_factory() as session:
        customers = [Customer(email=f"c{index}@example.com", name=f"Kunde {index}") for index in range(6)]
        offer = Offer(title="Maibock", limit_total=4)
        session.add_all([*customers, offer])
        await session.commit()
        customer_ids = [customer.id for customer in customers]
        offer_id = offer.id

    outcomes = await asyncio.gather(
        *(
            _run_isolated(file_session_factory, lambda service, cid=cid: service.reserve_offer(cid, offer_id, 1))
            for cid in customer_ids
        )
    )

    successes = [outcome for outcome in outcomes if not isinstance(outcome, LedgerError)]
    assert len(successes) == 4
    assert sum(isinstance(outcome, SoldOut) for outcome in outcomes) == 2

    async with file_session_factory() as session:
        sold = (await session.execute(select(Offer.sold_count).where(Offer.id == offer_id))).scalar_one()
    assert sold == 4


@pytest.mark.asyncio
async def test_same_scan_token_is_credited_once(file_session_factory) -> None:
    async with file_session_factory() as session:
        customer = Customer(email="h@example.com", name="Hanna")
        session.add(customer)
        await session.commit()
        customer_id = customer.id

    outcomes = await asyncio.gather(
        *(
            _run_isolated(
                file_session_factory,
                lambda service: service.award_points(customer_id, Decimal("20"), None, "scan-race"),
            )
            for _ in range(3)
        )
    )

    assert sum(isinstance(outcome, DuplicateOperation) for outcome in outcomes) == 2

    async with file_session_factory() as session:
        stored = await session.get(Customer, customer_id)
        entries = (await session.execute(select(func.count(LedgerTransaction.id)))).scalar_one()
    assert stored.points == 20
    assert stored.total_points == 20
    assert entries == 1


@pytest.mark.asyncio
async def test_concurrent_redemptions_never_overdraw(file_session_factory) -> None:
    async with file_session_factory() as session:
        customer = Customer(email="i@example.com", name="Ida", points=500, total_points=500)
        reward = Reward(name="Käseplatte", points_required=300)
        session.add_all([customer, reward])
        await session.commit()
        customer_id, reward_id = customer.id, reward.id

    outcomes = await asyncio.gather(
        *(
            _run_isolated(file_session_factory, lambda service: service.redeem_reward(customer_id, reward_id))
            for _ in range(2)
        )
    )

    assert sum(isinstance(outcome, InsufficientPoints) for outcome in outcomes) == 1

    async with file_session_factory() as session:
        stored = await session.get(Customer, customer_id)
        claims = (await session.execute(select(func.count(Claim.id)))).scalar_one()
    assert stored.points == 200
    assert claims == 1


@pytest.mark.asyncio
async def test_balance_always_matches_transaction_history(file_session_factory) -> None:
    async with file_session_factory() as session:
        customer = Customer(email="j@example.com", name="Jakob")
        reward = Reward(name="Apfelsaft", points_required=15)
        session.add_all([customer, reward])
        await session.commit()
        customer_id, reward_id = customer.id, reward.id

    awards = [
        _run_isolated(
            file_session_factory,
            lambda service, index=index: service.award_points(
                customer_id, Decimal("10.50"), None, f"scan-{index}"
            ),
        )
        for index in range(5)
    ]
    redemptions = [
        _run_isolated(file_session_factory, lambda service: service.redeem_reward(customer_id, reward_id))
        for _ in range(4)
    ]
    await asyncio.gather(*awards, *redemptions)

    async with file_session_factory() as session:
        stored = await session.get(Customer, customer_id)
        delta_sum = (
            await session.execute(
                select(func.coalesce(func.sum(LedgerTransaction.points_delta), 0)).where(
                    LedgerTransaction.customer_id == customer_id
                )
            )
        ).scalar_one()
        earned = (
            await session.execute(
                select(func.coalesce(func.sum(LedgerTransaction.points_delta), 0)).where(
                    LedgerTransaction.customer_id == customer_id,
                    LedgerTransaction.type == TransactionType.PURCHASE,
                )
            )
        ).scalar_one()

    assert stored.points >= 0
    assert stored.points == delta_sum
    assert stored.total_points == earned == 50
