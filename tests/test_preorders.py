from uuid import uuid4

import pytest
from sqlalchemy import select

from dorfladen_api.models.customer import Customer
from dorfladen_api.models.preorder import Preorder, PreorderItem, PreorderProduct, PreorderStatus, PreorderUnit
from dorfladen_api.services.ledger import (
    CustomerNotFound,
    InvalidQuantity,
    PreorderEngine,
    PreorderItemRequest,
    ProductNotAvailable,
    ProductNotFound,
)
from dorfladen_api.services.ledger.preorders import validate_step


async def _seed(session) -> tuple[Customer, PreorderProduct, PreorderProduct]:
    customer = Customer(email="emil@example.com", name="Emil")
    cheese = PreorderProduct(name="Bergkäse", unit=PreorderUnit.PER_100G, step=100)
    soup = PreorderProduct(name="Gulaschsuppe", unit=PreorderUnit.PER_PORTION, step=1)
    session.add_all([customer, cheese, soup])
    await session.commit()
    return customer, cheese, soup


@pytest.mark.asyncio
async def test_create_preorder_snapshots_product_names(session_factory) -> None:
    async with session_factory() as session:
        customer, cheese, soup = await _seed(session)

        preorder = await PreorderEngine(session).create_preorder(
            customer.id,
            None,
            [
                PreorderItemRequest(product_id=cheese.id, quantity=200),
                PreorderItemRequest(product_id=soup.id, quantity=3),
            ],
        )

        assert preorder.status == PreorderStatus.REQUESTED
        assert preorder.pickup_code == f"preorder_{preorder.id}"
        assert sorted((item.product_name, item.quantity) for item in preorder.items) == [
            ("Bergkäse", 200),
            ("Gulaschsuppe", 3),
        ]


@pytest.mark.asyncio
async def test_quantity_must_be_a_multiple_of_the_step(session_factory, reset_ledger_store) -> None:
    async with session_factory() as session:
        customer, cheese, _ = await _seed(session)
        engine = PreorderEngine(session)

        with pytest.raises(InvalidQuantity) as excinfo:
            await engine.create_preorder(customer.id, None, [PreorderItemRequest(product_id=cheese.id, quantity=150)])
        assert excinfo.value.context["step"] == 100

        assert (await session.execute(select(Preorder))).scalars().all() == []
        assert (await session.execute(select(PreorderItem))).scalars().all() == []

    assert reset_ledger_store.snapshot().rejections["preorder_create"]["invalid_quantity"] == 1


@pytest.mark.asyncio
async def test_one_bad_item_rejects_the_whole_preorder(session_factory) -> None:
    async with session_factory() as session:
        customer, cheese, soup = await _seed(session)

        with pytest.raises(InvalidQuantity):
            await PreorderEngine(session).create_preorder(
                customer.id,
                None,
                [
                    PreorderItemRequest(product_id=soup.id, quantity=2),
                    PreorderItemRequest(product_id=cheese.id, quantity=0),
                ],
            )

        assert (await session.execute(select(PreorderItem))).scalars().all() == []


@pytest.mark.asyncio
async def test_preorder_requires_items_and_known_products(session_factory) -> None:
    async with session_factory() as session:
        customer, cheese, _ = await _seed(session)
        cheese.is_active = False
        await session.commit()
        customer_id, cheese_id = customer.id, cheese.id
        engine = PreorderEngine(session)

        with pytest.raises(InvalidQuantity):
            await engine.create_preorder(customer_id, None, [])
        with pytest.raises(ProductNotFound):
            await engine.create_preorder(customer_id, None, [PreorderItemRequest(product_id=uuid4(), quantity=1)])
        with pytest.raises(ProductNotAvailable):
            await engine.create_preorder(customer_id, None, [PreorderItemRequest(product_id=cheese_id, quantity=100)])
        with pytest.raises(CustomerNotFound):
            await engine.create_preorder(uuid4(), None, [PreorderItemRequest(product_id=cheese_id, quantity=100)])


@pytest.mark.asyncio
async def test_product_listing_hides_inactive_products(session_factory) -> None:
    async with session_factory() as session:
        _, cheese, _ = await _seed(session)
        cheese.is_active = False
        await session.commit()
        engine = PreorderEngine(session)

        assert [product.name for product in await engine.list_products()] == ["Gulaschsuppe"]
        assert len(await engine.list_products(include_inactive=True)) == 2


def test_validate_step_accepts_exact_multiples() -> None:
    product = PreorderProduct(name="Speck", unit=PreorderUnit.PER_100G, step=100)

    validate_step(product, 100)
    validate_step(product, 1200)
    with pytest.raises(InvalidQuantity):
        validate_step(product, 50)
    with pytest.raises(InvalidQuantity):
        validate_step(product, -100)
    with pytest.raises(InvalidQuantity):
        validate_step(product, 10**20)


def test_unit_default_steps() -> None:
    assert PreorderUnit.PER_100G.default_step == 100
    assert PreorderUnit.PER_PORTION.default_step == 1


@pytest.mark.asyncio
async def test_oversized_item_quantity_is_rejected_before_insert(session_factory) -> None:
    async with session_factory() as session:
        customer, _, soup = await _seed(session)
        customer_id, soup_id = customer.id, soup.id

        with pytest.raises(InvalidQuantity):
            await PreorderEngine(session).create_preorder(
                customer_id, None, [PreorderItemRequest(product_id=soup_id, quantity=10**20)]
            )

        assert (await session.execute(select(Preorder))).scalars().all() == []
