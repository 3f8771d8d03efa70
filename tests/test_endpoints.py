from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from httpx import ASGITransport, AsyncClient

from points_ledger.models import Event, Promotion, PromotionType


def _client(app) -> AsyncClient:
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


def _as(account_id: int) -> dict[str, str]:
    return {"X-Session-User": str(account_id)}


@pytest.mark.asyncio
async def test_health_endpoint(app_with_db) -> None:
    app, _ = app_with_db
    async with _client(app) as client:
        response = await client.get("/healthz")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


@pytest.mark.asyncio
async def test_purchase_endpoint_applies_promotion(app_with_db, accounts) -> None:
    app, session_factory = app_with_db
    async with session_factory() as session:
        now = datetime.now(timezone.utc)
        promotion = Promotion(
            name="Weekend",
            description="Weekend bonus",
            type=PromotionType.AUTOMATIC,
            start_time=now - timedelta(days=1),
            end_time=now + timedelta(days=1),
            rate=Decimal("0.02"),
            points=5,
        )
        session.add(promotion)
        await session.commit()
        promotion_id = promotion.id

    async with _client(app) as client:
        response = await client.post(
            "/api/v1/transactions",
            headers=_as(accounts["cashier"]),
            json={
                "type": "purchase",
                "utorid": "alice001",
                "spent": "10.00",
                "promotionIds": [promotion_id],
                "remark": "lunch",
            },
        )

    assert response.status_code == 201
    body = response.json()
    assert body["type"] == "purchase"
    assert body["amount"] == 65
    assert body["earned"] == 65
    assert body["promotionIds"] == [promotion_id]
    assert body["remark"] == "lunch"
    assert body["createdBy"] == accounts["cashier"]
    assert Decimal(str(body["spent"])) == Decimal("10.00")


@pytest.mark.asyncio
async def test_transaction_endpoint_enforces_roles(app_with_db, accounts) -> None:
    app, _ = app_with_db
    async with _client(app) as client:
        missing = await client.post("/api/v1/transactions", json={"type": "purchase", "utorid": "alice001", "spent": 1})
        regular = await client.post(
            "/api/v1/transactions",
            headers=_as(accounts["alice"]),
            json={"type": "purchase", "utorid": "bob00002", "spent": 1},
        )
        cashier_adjustment = await client.post(
            "/api/v1/transactions",
            headers=_as(accounts["cashier"]),
            json={"type": "adjustment", "utorid": "bob00002", "amount": 5, "relatedId": 1},
        )

    assert missing.status_code == 401
    assert regular.status_code == 403
    assert cashier_adjustment.status_code == 403


@pytest.mark.asyncio
async def test_transaction_endpoint_validates_body(app_with_db, accounts) -> None:
    app, _ = app_with_db
    async with _client(app) as client:
        unknown_type = await client.post(
            "/api/v1/transactions",
            headers=_as(accounts["cashier"]),
            json={"type": "refund", "utorid": "alice001", "spent": 1},
        )
        negative = await client.post(
            "/api/v1/transactions",
            headers=_as(accounts["cashier"]),
            json={"type": "purchase", "utorid": "alice001", "spent": -3},
        )
        unknown_user = await client.post(
            "/api/v1/transactions",
            headers=_as(accounts["cashier"]),
            json={"type": "purchase", "utorid": "nobody99", "spent": 3},
        )
        bad_promotion = await client.post(
            "/api/v1/transactions",
            headers=_as(accounts["cashier"]),
            json={"type": "purchase", "utorid": "alice001", "spent": 3, "promotionIds": [4242]},
        )

    assert unknown_type.status_code == 422
    assert negative.status_code == 422
    assert unknown_user.status_code == 404
    assert bad_promotion.status_code == 400
    assert bad_promotion.json()["code"] == "invalid_promotion"


@pytest.mark.asyncio
async def test_adjustment_and_lookup(app_with_db, accounts) -> None:
    app, _ = app_with_db
    async with _client(app) as client:
        purchase = await client.post(
            "/api/v1/transactions",
            headers=_as(accounts["cashier"]),
            json={"type": "purchase", "utorid": "alice001", "spent": 5},
        )
        purchase_id = purchase.json()["id"]

        adjustment = await client.post(
            "/api/v1/transactions",
            headers=_as(accounts["manager"]),
            json={"type": "adjustment", "utorid": "alice001", "amount": -5, "relatedId": purchase_id},
        )
        missing_related = await client.post(
            "/api/v1/transactions",
            headers=_as(accounts["manager"]),
            json={"type": "adjustment", "utorid": "alice001", "amount": -5, "relatedId": 9999},
        )
        lookup = await client.get(f"/api/v1/transactions/{purchase_id}", headers=_as(accounts["manager"]))
        lookup_forbidden = await client.get(f"/api/v1/transactions/{purchase_id}", headers=_as(accounts["cashier"]))
        lookup_missing = await client.get("/api/v1/transactions/9999", headers=_as(accounts["manager"]))

    assert adjustment.status_code == 201
    assert adjustment.json()["relatedId"] == purchase_id
    assert adjustment.json()["balance"] == 15
    assert missing_related.status_code == 409
    assert lookup.status_code == 200
    assert lookup.json()["amount"] == 20
    assert lookup_forbidden.status_code == 403
    assert lookup_missing.status_code == 404


@pytest.mark.asyncio
async def test_suspicious_toggle_endpoint(app_with_db, accounts) -> None:
    app, _ = app_with_db
    async with _client(app) as client:
        purchase = await client.post(
            "/api/v1/transactions",
            headers=_as(accounts["cashier"]),
            json={"type": "purchase", "utorid": "alice001", "spent": 5},
        )
        purchase_id = purchase.json()["id"]

        flagged = await client.patch(
            f"/api/v1/transactions/{purchase_id}/suspicious",
            headers=_as(accounts["manager"]),
            json={"suspicious": True},
        )
        points = await client.get(f"/api/v1/users/{accounts['alice']}/points", headers=_as(accounts["alice"]))

    assert flagged.status_code == 200
    assert flagged.json()["suspicious"] is True
    assert flagged.json()["earned"] == 0
    assert points.json() == {"accountId": accounts["alice"], "points": 0, "reserved": 0, "available": 0}


@pytest.mark.asyncio
async def test_redemption_flow_over_http(app_with_db, accounts) -> None:
    app, _ = app_with_db
    async with _client(app) as client:
        await client.post(
            "/api/v1/transactions",
            headers=_as(accounts["cashier"]),
            json={"type": "purchase", "utorid": "alice001", "spent": "12.50"},
        )
        redemption = await client.post(
            "/api/v1/users/me/transactions",
            headers=_as(accounts["alice"]),
            json={"type": "redemption", "amount": 30},
        )
        too_much = await client.post(
            "/api/v1/users/me/transactions",
            headers=_as(accounts["alice"]),
            json={"type": "redemption", "amount": 50},
        )
        unverified = await client.post(
            "/api/v1/users/me/transactions",
            headers=_as(accounts["carol"]),
            json={"type": "redemption", "amount": 1},
        )
        redemption_id = redemption.json()["id"]

        regular_settle = await client.patch(
            f"/api/v1/transactions/{redemption_id}/processed",
            headers=_as(accounts["alice"]),
            json={"processed": True},
        )
        settle = await client.patch(
            f"/api/v1/transactions/{redemption_id}/processed",
            headers=_as(accounts["cashier"]),
            json={"processed": True},
        )
        settle_again = await client.patch(
            f"/api/v1/transactions/{redemption_id}/processed",
            headers=_as(accounts["cashier"]),
            json={"processed": True},
        )
        points = await client.get("/api/v1/users/me/points", headers=_as(accounts["alice"]))

    assert redemption.status_code == 201
    assert redemption.json()["processed"] is False
    assert redemption.json()["amount"] == -30
    assert too_much.status_code == 400
    assert too_much.json()["code"] == "insufficient_balance"
    assert unverified.status_code == 403
    assert regular_settle.status_code == 403
    assert settle.status_code == 200
    assert settle.json()["processed"] is True
    assert settle.json()["processedBy"] == accounts["cashier"]
    assert settle_again.status_code == 409
    assert points.json()["points"] == 20


@pytest.mark.asyncio
async def test_transfer_over_http(app_with_db, accounts) -> None:
    app, _ = app_with_db
    async with _client(app) as client:
        await client.post(
            "/api/v1/transactions",
            headers=_as(accounts["cashier"]),
            json={"type": "purchase", "utorid": "alice001", "spent": "37.50"},
        )
        transfer = await client.post(
            f"/api/v1/users/{accounts['bob']}/transactions",
            headers=_as(accounts["alice"]),
            json={"type": "transfer", "amount": 100, "remark": "thanks"},
        )
        bob_points = await client.get(f"/api/v1/users/{accounts['bob']}/points", headers=_as(accounts["manager"]))
        snooping = await client.get(f"/api/v1/users/{accounts['bob']}/points", headers=_as(accounts["alice"]))

    assert transfer.status_code == 201
    body = transfer.json()
    assert body["sender"]["amount"] == -100
    assert body["recipient"]["amount"] == 100
    assert body["sender"]["relatedId"] == body["recipient"]["id"]
    assert body["recipient"]["relatedId"] == body["sender"]["id"]
    assert body["sender"]["balance"] == 50
    assert bob_points.json()["points"] == 100
    assert snooping.status_code == 403


@pytest.mark.asyncio
async def test_event_reward_endpoint(app_with_db, accounts) -> None:
    app, session_factory = app_with_db
    async with session_factory() as session:
        event = Event(name="Trivia night", points_remain=10)
        session.add(event)
        await session.commit()
        event_id = event.id

    async with _client(app) as client:
        granted = await client.post(
            f"/api/v1/events/{event_id}/transactions",
            headers=_as(accounts["manager"]),
            json={"type": "event", "utorid": "bob00002", "amount": 10},
        )
        exhausted = await client.post(
            f"/api/v1/events/{event_id}/transactions",
            headers=_as(accounts["manager"]),
            json={"type": "event", "utorid": "bob00002", "amount": 1},
        )

    assert granted.status_code == 201
    assert granted.json()["eventId"] == event_id
    assert exhausted.status_code == 400


@pytest.mark.asyncio
async def test_promotion_crud(app_with_db, accounts) -> None:
    app, _ = app_with_db
    start = datetime.now(timezone.utc) + timedelta(days=1)
    payload = {
        "name": "Spring",
        "description": "Spring promotion",
        "type": "one-time",
        "startTime": start.isoformat(),
        "endTime": (start + timedelta(days=7)).isoformat(),
        "points": 10,
    }

    async with _client(app) as client:
        forbidden = await client.post("/api/v1/promotions", headers=_as(accounts["cashier"]), json=payload)
        created = await client.post("/api/v1/promotions", headers=_as(accounts["manager"]), json=payload)
        promotion_id = created.json()["id"]
        updated = await client.patch(
            f"/api/v1/promotions/{promotion_id}",
            headers=_as(accounts["manager"]),
            json={"minSpending": "20.00"},
        )
        empty_update = await client.patch(
            f"/api/v1/promotions/{promotion_id}", headers=_as(accounts["manager"]), json={}
        )
        fetched = await client.get(f"/api/v1/promotions/{promotion_id}", headers=_as(accounts["manager"]))
        deleted = await client.delete(f"/api/v1/promotions/{promotion_id}", headers=_as(accounts["manager"]))
        gone = await client.get(f"/api/v1/promotions/{promotion_id}", headers=_as(accounts["manager"]))

    assert forbidden.status_code == 403
    assert created.status_code == 201
    assert created.json()["type"] == "one-time"
    assert updated.status_code == 200
    assert Decimal(str(updated.json()["minSpending"])) == Decimal("20")
    assert empty_update.status_code == 400
    assert fetched.json()["points"] == 10
    assert deleted.status_code == 204
    assert gone.status_code == 404


@pytest.mark.asyncio
async def test_observability_snapshot(app_with_db, accounts) -> None:
    app, _ = app_with_db
    async with _client(app) as client:
        await client.post(
            "/api/v1/transactions",
            headers=_as(accounts["cashier"]),
            json={"type": "purchase", "utorid": "alice001", "spent": 1},
        )
        await client.post(
            "/api/v1/users/me/transactions",
            headers=_as(accounts["alice"]),
            json={"type": "redemption", "amount": 500},
        )
        snapshot = await client.get("/api/v1/observability/ledger", headers=_as(accounts["manager"]))
        metrics = await client.get("/api/v1/observability/prometheus", headers=_as(accounts["manager"]))

    assert snapshot.status_code == 200
    body = snapshot.json()
    assert body["transactions"] == {"purchase": 1}
    assert body["rejections"] == {"redemption:insufficient_balance": 1}
    assert 'points_ledger_transactions_total{kind="purchase"} 1' in metrics.text
