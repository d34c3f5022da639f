from uuid import uuid4

import pytest
from httpx import ASGITransport, AsyncClient

from dorfladen_api.models.customer import Customer
from dorfladen_api.models.offer import Offer
from dorfladen_api.models.preorder import PreorderProduct, PreorderUnit
from dorfladen_api.models.reward import Reward


def _session_headers(customer_id, name: str = "Paula") -> dict[str, str]:
    return {
        "X-Session-User": str(customer_id),
        "X-Session-Email": "paula@example.com",
        "X-Session-Name": name,
    }


def _client(app) -> AsyncClient:
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


@pytest.mark.asyncio
async def test_customer_is_provisioned_on_first_visit(app_with_db) -> None:
    app, _ = app_with_db
    customer_id = uuid4()

    async with _client(app) as client:
        response = await client.get("/api/v1/customers/me", headers=_session_headers(customer_id))

    assert response.status_code == 200
    payload = response.json()
    assert payload["id"] == str(customer_id)
    assert payload["name"] == "Paula"
    assert payload["points"] == 0
    assert payload["rank"] == "Dorfladen-Neuling"
    assert payload["nextRank"] == "Stammkunde von Eggenthal"
    assert payload["pointsToNextRank"] == 500


@pytest.mark.asyncio
async def test_customer_endpoints_require_session(app_with_db) -> None:
    app, _ = app_with_db

    async with _client(app) as client:
        missing = await client.get("/api/v1/customers/me")
        invalid = await client.get("/api/v1/customers/me", headers={"X-Session-User": "nope"})

    assert missing.status_code == 401
    assert invalid.status_code == 400


@pytest.mark.asyncio
async def test_award_redeem_and_scan_round_trip(app_with_db, badge_dispatcher) -> None:
    app, session_factory = app_with_db

    async with session_factory() as session:
        customer = Customer(email="paula@example.com", name="Paula")
        reward = Reward(name="Bienenwachstuch", description="Handgemacht", points_required=30)
        session.add_all([customer, reward])
        await session.commit()
        customer_id, reward_id = customer.id, reward.id

    async with _client(app) as client:
        award = await client.post(
            "/api/v1/ledger/awards",
            json={"customerId": str(customer_id), "amount": "42.80", "scanToken": "pos-0001"},
        )
        assert award.status_code == 201
        assert award.json()["pointsAwarded"] == 42
        assert award.json()["newBalance"] == 42

        duplicate = await client.post(
            "/api/v1/ledger/awards",
            json={"customerId": str(customer_id), "amount": "42.80", "scanToken": "pos-0001"},
        )
        assert duplicate.status_code == 409
        assert duplicate.json()["detail"]["code"] == "duplicate_operation"

        rewards = await client.get("/api/v1/rewards")
        assert [item["name"] for item in rewards.json()] == ["Bienenwachstuch"]

        redeem = await client.post(
            f"/api/v1/rewards/{reward_id}/redeem",
            headers=_session_headers(customer_id),
        )
        assert redeem.status_code == 201
        claim_code = redeem.json()["claimCode"]
        assert redeem.json()["newBalance"] == 12

        pickups = await client.get("/api/v1/customers/me/pickups", headers=_session_headers(customer_id))
        assert [(item["kind"], item["status"]) for item in pickups.json()] == [("claim", "EINGELÖST")]

        scan = await client.post("/api/v1/admin/pickups/scan", json={"code": claim_code})
        assert scan.status_code == 200
        assert scan.json()["status"] == "ABGEHOLT"

        rescan = await client.post("/api/v1/admin/pickups/scan", json={"code": claim_code})
        assert rescan.status_code == 409
        assert rescan.json()["detail"]["code"] == "already_fulfilled"

        again = await client.post(
            f"/api/v1/rewards/{reward_id}/redeem",
            headers=_session_headers(customer_id),
        )
        assert again.status_code == 409
        assert again.json()["detail"]["code"] == "insufficient_points"

        history = await client.get(
            "/api/v1/customers/me/transactions",
            headers=_session_headers(customer_id),
        )
        entries = history.json()["entries"]
        assert [entry["type"] for entry in entries] == ["redemption", "purchase"]
        assert sum(entry["pointsDelta"] for entry in entries) == 12

    assert badge_dispatcher.calls == [customer_id]


@pytest.mark.asyncio
async def test_award_validation_errors(app_with_db) -> None:
    app, session_factory = app_with_db

    async with session_factory() as session:
        customer = Customer(email="q@example.com", name="Quirin")
        session.add(customer)
        await session.commit()
        customer_id = customer.id

    async with _client(app) as client:
        negative = await client.post(
            "/api/v1/ledger/awards",
            json={"customerId": str(customer_id), "amount": "-3", "scanToken": "pos-neg"},
        )
        unknown = await client.post(
            "/api/v1/ledger/awards",
            json={"customerId": str(uuid4()), "amount": "3", "scanToken": "pos-ghost"},
        )

    assert negative.status_code == 422
    assert negative.json()["detail"]["code"] == "invalid_amount"
    assert unknown.status_code == 404
    assert unknown.json()["detail"]["code"] == "customer_not_found"


@pytest.mark.asyncio
async def test_transaction_history_paginates_with_cursor(app_with_db) -> None:
    app, session_factory = app_with_db

    async with session_factory() as session:
        customer = Customer(email="r@example.com", name="Rosa")
        session.add(customer)
        await session.commit()
        customer_id = customer.id

    async with _client(app) as client:
        for index in range(5):
            response = await client.post(
                "/api/v1/ledger/awards",
                json={"customerId": str(customer_id), "amount": "1", "scanToken": f"pos-page-{index}"},
            )
            assert response.status_code == 201

        first = await client.get(
            "/api/v1/customers/me/transactions",
            params={"limit": 2},
            headers=_session_headers(customer_id),
        )
        first_page = first.json()
        assert len(first_page["entries"]) == 2
        assert first_page["nextCursor"]

        seen = [entry["id"] for entry in first_page["entries"]]
        cursor = first_page["nextCursor"]
        while cursor:
            page = await client.get(
                "/api/v1/customers/me/transactions",
                params={"limit": 2, "cursor": cursor},
                headers=_session_headers(customer_id),
            )
            body = page.json()
            seen.extend(entry["id"] for entry in body["entries"])
            cursor = body["nextCursor"]

        bad_cursor = await client.get(
            "/api/v1/customers/me/transactions",
            params={"cursor": "not-a-cursor"},
            headers=_session_headers(customer_id),
        )

    assert len(seen) == 5
    assert len(set(seen)) == 5
    assert bad_cursor.status_code == 400


@pytest.mark.asyncio
async def test_offer_reservation_flow(app_with_db) -> None:
    app, session_factory = app_with_db

    async with session_factory() as session:
        customer = Customer(email="s@example.com", name="Sepp")
        offer = Offer(title="Ofenfrische Brezen", limit_total=2, price_cents=120)
        session.add_all([customer, offer])
        await session.commit()
        customer_id, offer_id = customer.id, offer.id

    async with _client(app) as client:
        listing = await client.get("/api/v1/offers")
        assert listing.json()[0]["remaining"] == 2

        reserved = await client.post(
            f"/api/v1/offers/{offer_id}/reserve",
            json={"quantity": 2},
            headers=_session_headers(customer_id),
        )
        assert reserved.status_code == 201
        assert reserved.json()["remaining"] == 0

        sold_out = await client.post(
            f"/api/v1/offers/{offer_id}/reserve",
            headers=_session_headers(customer_id),
        )
        assert sold_out.status_code == 409
        assert sold_out.json()["detail"]["code"] == "sold_out"

        order_id = reserved.json()["orderId"]
        cancelled = await client.post(f"/api/v1/admin/orders/{order_id}/cancel")
        assert cancelled.status_code == 200
        assert cancelled.json()["remaining"] == 2

        twice = await client.post(f"/api/v1/admin/orders/{order_id}/cancel")
        assert twice.status_code == 409
        assert twice.json()["detail"]["code"] == "invalid_state_transition"

        missing = await client.post(f"/api/v1/offers/{uuid4()}/reserve", headers=_session_headers(customer_id))
        assert missing.status_code == 404


@pytest.mark.asyncio
async def test_preorder_flow_through_pickup_desk(app_with_db) -> None:
    app, session_factory = app_with_db

    async with session_factory() as session:
        customer = Customer(email="t@example.com", name="Toni")
        product = PreorderProduct(name="Leberkäse", unit=PreorderUnit.PER_100G, step=100)
        session.add_all([customer, product])
        await session.commit()
        customer_id, product_id = customer.id, product.id

    async with _client(app) as client:
        products = await client.get("/api/v1/preorders/products")
        assert products.json()[0]["step"] == 100

        rejected = await client.post(
            "/api/v1/preorders",
            json={"items": [{"productId": str(product_id), "quantity": 150}]},
            headers=_session_headers(customer_id),
        )
        assert rejected.status_code == 422
        assert rejected.json()["detail"]["code"] == "invalid_quantity"

        oversized = await client.post(
            "/api/v1/preorders",
            json={"items": [{"productId": str(product_id), "quantity": 10**20}]},
            headers=_session_headers(customer_id),
        )
        assert oversized.status_code == 422
        assert oversized.json()["detail"]["code"] == "invalid_quantity"

        created = await client.post(
            "/api/v1/preorders",
            json={
                "desiredPickupAt": "2026-06-05T10:00:00+00:00",
                "items": [{"productId": str(product_id), "quantity": 200}],
            },
            headers=_session_headers(customer_id),
        )
        assert created.status_code == 201
        preorder = created.json()
        assert preorder["status"] == "requested"
        assert preorder["items"][0]["productName"] == "Leberkäse"

        premature = await client.post(f"/api/v1/admin/preorders/{preorder['id']}/ready")
        assert premature.status_code == 409

        confirmed = await client.post(f"/api/v1/admin/preorders/{preorder['id']}/confirm")
        assert confirmed.status_code == 200
        assert confirmed.json()["occurredAt"].startswith("2026-06-05T10:00:00")

        ready = await client.post(
            f"/api/v1/admin/preorders/{preorder['id']}/ready",
            json={"at": "2026-06-05T08:00:00+00:00"},
        )
        assert ready.status_code == 200

        queue = await client.get("/api/v1/admin/pickups", params={"status": "open"})
        assert [entry["code"] for entry in queue.json()] == [preorder["pickupCode"]]

        picked = await client.post("/api/v1/admin/pickups/scan", json={"code": preorder["pickupCode"]})
        assert picked.status_code == 200
        assert picked.json()["kind"] == "preorder"

        listing = await client.get("/api/v1/preorders", headers=_session_headers(customer_id))
        assert listing.json()[0]["status"] == "picked_up"

        unknown = await client.post("/api/v1/admin/pickups/scan", json={"code": "claim_unbekannt"})
        assert unknown.status_code == 404
        assert unknown.json()["detail"]["code"] == "code_not_found"


@pytest.mark.asyncio
async def test_admin_manages_catalog_and_rate(app_with_db) -> None:
    app, session_factory = app_with_db

    async with session_factory() as session:
        customer = Customer(email="u@example.com", name="Ursula")
        session.add(customer)
        await session.commit()
        customer_id = customer.id

    async with _client(app) as client:
        reward = await client.post("/api/v1/admin/rewards", json={"name": "Eis", "pointsRequired": 25})
        assert reward.status_code == 201
        reward_id = reward.json()["id"]

        deactivated = await client.patch(f"/api/v1/admin/rewards/{reward_id}", json={"isActive": False})
        assert deactivated.json()["isActive"] is False
        assert (await client.get("/api/v1/rewards")).json() == []

        offer = await client.post("/api/v1/admin/offers", json={"title": "Kürbis", "limitTotal": 3})
        offer_id = offer.json()["id"]
        await client.post(
            f"/api/v1/offers/{offer_id}/reserve",
            json={"quantity": 2},
            headers=_session_headers(customer_id),
        )
        shrink = await client.patch(f"/api/v1/admin/offers/{offer_id}", json={"limitTotal": 1})
        assert shrink.status_code == 409
        grow = await client.patch(f"/api/v1/admin/offers/{offer_id}", json={"limitTotal": 10})
        assert grow.json()["remaining"] == 8

        product = await client.post(
            "/api/v1/admin/preorder-products",
            json={"name": "Suppe", "unit": "per_portion"},
        )
        assert product.json()["step"] == 1

        bad_rate = await client.put("/api/v1/admin/settings/points_per_euro", json={"value": "0"})
        assert bad_rate.status_code == 422
        rate = await client.put("/api/v1/admin/settings/points_per_euro", json={"value": "2"})
        assert rate.status_code == 200

        manual = await client.post(
            f"/api/v1/admin/customers/{customer_id}/points",
            json={"amount": "5", "description": "Nachtrag"},
            headers={"Idempotency-Key": "desk-1"},
        )
        assert manual.status_code == 201
        assert manual.json()["pointsAwarded"] == 10

        repeat = await client.post(
            f"/api/v1/admin/customers/{customer_id}/points",
            json={"amount": "5"},
            headers={"Idempotency-Key": "desk-1"},
        )
        assert repeat.status_code == 409


@pytest.mark.asyncio
async def test_staff_endpoints_require_api_key_when_configured(app_with_db, monkeypatch) -> None:
    from dorfladen_api.core.settings import settings

    app, _ = app_with_db
    monkeypatch.setattr(settings, "staff_api_key", "ladentheke")

    async with _client(app) as client:
        denied = await client.post("/api/v1/admin/pickups/scan", json={"code": "claim_x"})
        allowed = await client.post(
            "/api/v1/admin/pickups/scan",
            json={"code": "claim_x"},
            headers={"X-API-Key": "ladentheke"},
        )

    assert denied.status_code == 401
    assert allowed.status_code == 404


@pytest.mark.asyncio
async def test_award_rejects_huge_and_sub_cent_amounts(app_with_db) -> None:
    app, session_factory = app_with_db

    async with session_factory() as session:
        customer = Customer(email="v@example.com", name="Vroni")
        session.add(customer)
        await session.commit()
        customer_id = customer.id

    async with _client(app) as client:
        huge = await client.post(
            "/api/v1/ledger/awards",
            json={"customerId": str(customer_id), "amount": "1e20", "scanToken": "pos-huge"},
        )
        fraction = await client.post(
            "/api/v1/ledger/awards",
            json={"customerId": str(customer_id), "amount": "2.999", "scanToken": "pos-fraction"},
        )
        oversized_offer = await client.post(
            "/api/v1/admin/offers",
            json={"title": "Honig", "limitTotal": 10**20},
        )

    assert huge.status_code == 422
    assert huge.json()["detail"]["code"] == "invalid_amount"
    assert fraction.status_code == 422
    assert fraction.json()["detail"]["code"] == "invalid_amount"
    assert oversized_offer.status_code == 422


@pytest.mark.asyncio
async def test_reserving_more_than_the_offer_holds_is_sold_out(app_with_db) -> None:
    app, session_factory = app_with_db

    async with session_factory() as session:
        customer = Customer(email="w@example.com", name="Wastl")
        offer = Offer(title="Bauernbrot", limit_total=3)
        session.add_all([customer, offer])
        await session.commit()
        customer_id, offer_id = customer.id, offer.id

    async with _client(app) as client:
        response = await client.post(
            f"/api/v1/offers/{offer_id}/reserve",
            json={"quantity": 10**20},
            headers=_session_headers(customer_id),
        )

    assert response.status_code == 409
    assert response.json()["detail"]["code"] == "sold_out"


@pytest.mark.asyncio
async def test_admin_overviews_include_inactive_entries(app_with_db) -> None:
    app, session_factory = app_with_db

    async with session_factory() as session:
        anton = Customer(email="anton@example.com", name="Anton", points=120, total_points=600)
        berta = Customer(email="berta@example.com", name="Berta", points=30, total_points=30)
        session.add_all(
            [
                anton,
                berta,
                Reward(name="Kaffee", points_required=50),
                Reward(name="Torte", points_required=400, is_active=False),
                Offer(title="Erdbeeren", subtitle="Vom Hof", limit_total=5),
                Offer(title="Rhabarber", limit_total=5, is_active=False),
                PreorderProduct(name="Bratwurst", unit=PreorderUnit.PER_PORTION, step=1),
                PreorderProduct(name="Schinken", unit=PreorderUnit.PER_100G, step=100, is_active=False),
            ]
        )
        await session.commit()
        anton_id = anton.id

    async with _client(app) as client:
        await client.post(
            "/api/v1/ledger/awards",
            json={"customerId": str(anton_id), "amount": "10", "scanToken": "pos-stats"},
        )
        customers = (await client.get("/api/v1/admin/customers")).json()
        searched = (await client.get("/api/v1/admin/customers", params={"search": "BERTA"})).json()
        stats = (await client.get("/api/v1/admin/stats")).json()
        rewards = (await client.get("/api/v1/admin/rewards")).json()
        offers = (await client.get("/api/v1/admin/offers")).json()
        offers_searched = (await client.get("/api/v1/admin/offers", params={"search": "hof"})).json()
        products = (await client.get("/api/v1/admin/preorder-products")).json()

    assert sorted(customer["name"] for customer in customers) == ["Anton", "Berta"]
    assert [customer["email"] for customer in searched] == ["berta@example.com"]
    anton_row = next(customer for customer in customers if customer["name"] == "Anton")
    assert anton_row["points"] == 130
    assert anton_row["rank"] == "Stammkunde von Eggenthal"

    assert stats == {"totalCustomers": 2, "totalPoints": 160, "totalTransactions": 1}

    assert [(reward["name"], reward["isActive"]) for reward in rewards] == [("Kaffee", True), ("Torte", False)]
    assert sorted((offer["title"], offer["isActive"]) for offer in offers) == [
        ("Erdbeeren", True),
        ("Rhabarber", False),
    ]
    assert [offer["title"] for offer in offers_searched] == ["Erdbeeren"]
    assert sorted(product["name"] for product in products) == ["Bratwurst", "Schinken"]


@pytest.mark.asyncio
async def test_admin_overviews_require_api_key_when_configured(app_with_db, monkeypatch) -> None:
    from dorfladen_api.core.settings import settings

    app, _ = app_with_db
    monkeypatch.setattr(settings, "staff_api_key", "ladentheke")

    async with _client(app) as client:
        denied = await client.get("/api/v1/admin/stats")
        allowed = await client.get("/api/v1/admin/stats", headers={"X-API-Key": "ladentheke"})

    assert denied.status_code == 401
    assert allowed.json()["totalCustomers"] == 0


@pytest.mark.asyncio
async def test_offer_limit_respects_units_sold_after_loading(file_session_factory) -> None:
    from fastapi import HTTPException

    from dorfladen_api.api.v1.endpoints.admin import OfferUpdateRequest, update_offer
    from dorfladen_api.services.ledger import LedgerService

    async with file_session_factory() as session:
        customer = Customer(email="x@example.com", name="Xaver")
        offer = Offer(title="Kirschen", limit_total=5)
        session.add_all([customer, offer])
        await session.commit()
        customer_id, offer_id = customer.id, offer.id

    async with file_session_factory() as staff_session:
        # the dashboard still holds the offer with nothing sold
        assert (await staff_session.get(Offer, offer_id)).sold_count == 0

        async with file_session_factory() as shop_session:
            await LedgerService(shop_session).reserve_offer(customer_id, offer_id, 3)

        with pytest.raises(HTTPException) as excinfo:
            await update_offer(offer_id, OfferUpdateRequest(limitTotal=1), db=staff_session)

    assert excinfo.value.status_code == 409
    assert "3 units" in excinfo.value.detail

    async with file_session_factory() as session:
        stored = await session.get(Offer, offer_id)
    assert (stored.limit_total, stored.sold_count) == (5, 3)
