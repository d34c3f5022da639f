from decimal import Decimal

import pytest
from sqlalchemy import select

from dorfladen_api.models.customer import Customer, LedgerTransaction, TransactionType
from dorfladen_api.models.setting import Setting
from dorfladen_api.services.ledger import (
    AwardEngine,
    CustomerNotFound,
    DuplicateOperation,
    InvalidAmount,
)
from dorfladen_api.services.ledger.awards import MAX_AMOUNT, normalize_amount
from dorfladen_api.services.ledger.rates import compute_points, parse_rate
from dorfladen_api.services.ledger.errors import SettingsUnavailable


async def _customer(session, *, points: int = 0, total_points: int = 0) -> Customer:
    customer = Customer(email="anna@example.com", name="Anna", points=points, total_points=total_points)
    session.add(customer)
    await session.commit()
    return customer


@pytest.mark.asyncio
async def test_award_credits_balance_and_lifetime_total(session_factory, reset_ledger_store) -> None:
    async with session_factory() as session:
        customer = await _customer(session)
        session.add(Setting(key="points_per_euro", value="1"))
        await session.commit()

        result = await AwardEngine(session).award_points(customer.id, Decimal("25.00"), None, "scan-1")

        assert result.points_awarded == 25
        assert result.new_balance == 25
        assert result.new_total == 25
        assert result.customer_name == "Anna"

        entries = (await session.execute(select(LedgerTransaction))).scalars().all()
        assert len(entries) == 1
        assert entries[0].type == TransactionType.PURCHASE
        assert entries[0].points_delta == 25
        assert entries[0].scan_token == "scan-1"
        assert entries[0].description == "Einkauf über €25.00"

    snapshot = reset_ledger_store.snapshot()
    assert snapshot.operations["award"] == 1
    assert snapshot.points["awarded"] == 25


@pytest.mark.asyncio
async def test_award_floors_fractional_points(session_factory) -> None:
    async with session_factory() as session:
        customer = await _customer(session, points=10, total_points=40)
        session.add(Setting(key="points_per_euro", value="1.5"))
        await session.commit()

        result = await AwardEngine(session).award_points(customer.id, "9.99", "Wochenmarkt", "scan-2")

        # 9.99 * 1.5 = 14.985
        assert result.points_awarded == 14
        assert result.new_balance == 24
        assert result.new_total == 54
        assert result.rate == Decimal("1.5")


@pytest.mark.asyncio
async def test_award_rejects_reused_scan_token(session_factory, reset_ledger_store) -> None:
    async with session_factory() as session:
        customer_id = (await _customer(session)).id
        engine = AwardEngine(session)

        await engine.award_points(customer_id, Decimal("10"), None, "scan-dup")
        with pytest.raises(DuplicateOperation):
            await engine.award_points(customer_id, Decimal("10"), None, "scan-dup")

        refreshed = await session.get(Customer, customer_id, populate_existing=True)
        assert refreshed.points == 10
        count = len((await session.execute(select(LedgerTransaction))).scalars().all())
        assert count == 1

    assert reset_ledger_store.snapshot().rejections["award"]["duplicate_operation"] == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-5"), "abc", "NaN"])
async def test_award_rejects_non_positive_amounts(session_factory, amount) -> None:
    async with session_factory() as session:
        customer_id = (await _customer(session)).id

        with pytest.raises(InvalidAmount):
            await AwardEngine(session).award_points(customer_id, amount, None, "scan-bad")

        refreshed = await session.get(Customer, customer_id, populate_existing=True)
        assert refreshed.points == 0


@pytest.mark.asyncio
@pytest.mark.parametrize("amount", ["1e20", Decimal("10000000000"), "2.999", Decimal("0.001")])
async def test_award_rejects_oversized_and_sub_cent_amounts(session_factory, amount, reset_ledger_store) -> None:
    async with session_factory() as session:
        customer_id = (await _customer(session)).id

        with pytest.raises(InvalidAmount):
            await AwardEngine(session).award_points(customer_id, amount, None, "scan-odd")

        refreshed = await session.get(Customer, customer_id, populate_existing=True)
        assert refreshed.points == 0
        assert (await session.execute(select(LedgerTransaction))).scalars().all() == []

    assert reset_ledger_store.snapshot().rejections["award"]["invalid_amount"] == 1


@pytest.mark.asyncio
async def test_award_rejects_points_beyond_column_range(session_factory) -> None:
    async with session_factory() as session:
        customer_id = (await _customer(session)).id

        with pytest.raises(InvalidAmount) as excinfo:
            await AwardEngine(session).award_points(customer_id, MAX_AMOUNT, None, "scan-max")

        assert excinfo.value.context["points"] == 9999999999


@pytest.mark.asyncio
async def test_stored_amount_matches_points_delta(session_factory) -> None:
    async with session_factory() as session:
        customer_id = (await _customer(session)).id
        session.add(Setting(key="points_per_euro", value="1.5"))
        await session.commit()

        result = await AwardEngine(session).award_points(customer_id, "2.990", None, "scan-cents")

        entry = (await session.execute(select(LedgerTransaction))).scalar_one()
        assert entry.amount == Decimal("2.99")
        assert entry.points_delta == result.points_awarded == compute_points(entry.amount, Decimal("1.5")) == 4
        assert entry.description == "Einkauf über €2.99"


def test_normalize_amount_quantizes_to_cents() -> None:
    assert normalize_amount("7") == Decimal("7.00")
    assert normalize_amount(Decimal("12.50")) == Decimal("12.50")
    assert normalize_amount("9999999999.99") == MAX_AMOUNT
    with pytest.raises(InvalidAmount):
        normalize_amount("12.505")


@pytest.mark.asyncio
async def test_award_for_unknown_customer_leaves_no_transaction(session_factory) -> None:
    from uuid import uuid4

    async with session_factory() as session:
        with pytest.raises(CustomerNotFound):
            await AwardEngine(session).award_points(uuid4(), Decimal("5"), None, "scan-ghost")

        entries = (await session.execute(select(LedgerTransaction))).scalars().all()
        assert entries == []


@pytest.mark.asyncio
async def test_award_falls_back_to_default_rate_when_setting_is_invalid(session_factory, reset_ledger_store) -> None:
    async with session_factory() as session:
        customer = await _customer(session)
        session.add(Setting(key="points_per_euro", value="kaputt"))
        await session.commit()

        result = await AwardEngine(session).award_points(customer.id, Decimal("12.40"), None, "scan-3")

        assert result.points_awarded == 12
        assert result.rate == Decimal("1.0")

    assert reset_ledger_store.snapshot().rejections["rate_lookup"]["settings_unavailable"] == 1


@pytest.mark.asyncio
async def test_award_reads_rate_changes_without_restart(session_factory) -> None:
    async with session_factory() as session:
        customer = await _customer(session)
        setting = Setting(key="points_per_euro", value="1")
        session.add(setting)
        await session.commit()

        engine = AwardEngine(session)
        first = await engine.award_points(customer.id, Decimal("10"), None, "scan-a")

        setting.value = "2"
        await session.commit()
        second = await engine.award_points(customer.id, Decimal("10"), None, "scan-b")

        assert first.points_awarded == 10
        assert second.points_awarded == 20
        assert second.new_balance == 30


@pytest.mark.asyncio
async def test_award_dispatches_badge_evaluation_after_commit(session_factory, badge_dispatcher) -> None:
    async with session_factory() as session:
        customer = await _customer(session)

        await AwardEngine(session, badge_dispatcher=badge_dispatcher).award_points(
            customer.id, Decimal("3"), None, "scan-badge"
        )

    assert badge_dispatcher.calls == [customer.id]


@pytest.mark.asyncio
async def test_badge_dispatch_failure_does_not_undo_award(session_factory, reset_ledger_store) -> None:
    async def broken_dispatcher(customer_id):
        raise RuntimeError("broker unreachable")

    async with session_factory() as session:
        customer = await _customer(session)

        result = await AwardEngine(session, badge_dispatcher=broken_dispatcher).award_points(
            customer.id, Decimal("7"), None, "scan-broken"
        )
        refreshed = await session.get(Customer, customer.id, populate_existing=True)

    assert result.points_awarded == 7
    assert refreshed.points == 7
    assert reset_ledger_store.snapshot().badge_dispatch["failed"] == 1


def test_compute_points_floors_the_product() -> None:
    assert compute_points(Decimal("25"), Decimal("1")) == 25
    assert compute_points(Decimal("0.99"), Decimal("1")) == 0
    assert compute_points(Decimal("19.99"), Decimal("2.5")) == 49


@pytest.mark.parametrize("raw", [None, "", "0", "-1", "zwei", "inf"])
def test_parse_rate_rejects_unusable_values(raw) -> None:
    with pytest.raises(SettingsUnavailable):
        parse_rate(raw)


def test_parse_rate_accepts_decimal_strings() -> None:
    assert parse_rate(" 1.25 ") == Decimal("1.25")
