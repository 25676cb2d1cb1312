"""Tests for health and offer endpoints."""

from contextlib import asynccontextmanager

import pytest
from httpx import ASGITransport, AsyncClient
from redis.exceptions import ConnectionError as RedisConnectionError

from conftest import NOW, FakeStore, make_offer
from promo_engine.main import app
from promo_engine.services.offer_model import OfferCode
from promo_engine.services.offer_processing import OfferProcessingService
from promo_engine.services.offer_processor import OfferProcessor


@pytest.fixture
async def client():
    """Create test client."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


@pytest.fixture
def store(monkeypatch: pytest.MonkeyPatch) -> FakeStore:
    """Route the order/offer endpoints to an in-memory store (no DB)."""
    from promo_engine.routes import offers as offers_routes
    from promo_engine.routes import orders as orders_routes

    fake = FakeStore(
        offers=[make_offer(id=1)],
        codes=[OfferCode(id=5, offer_id=1, code="SAVE10")],
    )

    @asynccontextmanager
    async def fake_scope():
        yield OfferProcessingService(fake, processor=OfferProcessor(clock=lambda: NOW))

    monkeypatch.setattr(orders_routes, "offer_service_scope", fake_scope)
    monkeypatch.setattr(offers_routes, "offer_service_scope", fake_scope)
    return fake


ORDER_BODY = {
    "orderSubtotal": "70.00",
    "orderTotal": "70.00",
    "customerId": "cust-1",
    "items": [
        {"itemId": "a", "skuId": "SKU-A", "price": "20.00", "quantity": 2},
        {"itemId": "b", "skuId": "SKU-B", "price": "30.00", "quantity": 1},
    ],
}


@pytest.mark.asyncio
async def test_health_check(client: AsyncClient):
    """Test health endpoint returns ok."""
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"ok": True}


@pytest.mark.asyncio
async def test_process_offers_endpoint(client: AsyncClient, store: FakeStore):
    response = await client.post("/v1/orders/42/process-offers", json=ORDER_BODY)
    assert response.status_code == 200
    data = response.json()

    assert data["orderId"] == 42
    assert data["totalDiscount"] == "7.00"
    assert data["adjustedSubtotal"] == "63.00"
    assert [o["offerId"] for o in data["appliedOffers"]] == [1]
    assert len(data["itemAdjustments"]) == 2
    assert data["skippedOffers"] == []


@pytest.mark.asyncio
async def test_process_offers_validates_body(client: AsyncClient, store: FakeStore):
    body = {**ORDER_BODY, "orderSubtotal": "-1"}
    response = await client.post("/v1/orders/42/process-offers", json=body)
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_apply_code_endpoint(client: AsyncClient, store: FakeStore):
    body = {**ORDER_BODY, "offerCode": "SAVE10"}
    response = await client.post("/v1/orders/42/apply-code", json=body)
    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["discountAmount"] == "7.00"
    assert data["offer"]["id"] == 1
    assert store.incremented == [5]


@pytest.mark.asyncio
async def test_apply_unknown_code_is_not_an_http_error(client: AsyncClient, store: FakeStore):
    body = {**ORDER_BODY, "offerCode": "NOPE"}
    response = await client.post("/v1/orders/42/apply-code", json=body)
    assert response.status_code == 200
    assert response.json()["success"] is False


@pytest.mark.asyncio
async def test_remove_offer_endpoint(client: AsyncClient, store: FakeStore):
    response = await client.delete("/v1/orders/42/offers/1")
    assert response.status_code == 204
    assert store.deleted == [(42, 1)]


@pytest.mark.asyncio
async def test_offer_by_code_endpoint(client: AsyncClient, store: FakeStore):
    response = await client.get("/v1/offers/by-code/SAVE10")
    assert response.status_code == 200
    assert response.json()["discountType"] == "PERCENT_DISCOUNT"

    response = await client.get("/v1/offers/by-code/NOPE")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_rule_evaluate_endpoint(client: AsyncClient):
    response = await client.post(
        "/v1/admin/rules/evaluate",
        json={
            "expression": "item.Quantity >= 2 and item.CategoryID == 'SHOES'",
            "item": {"itemId": "a", "skuId": "S", "price": "10", "quantity": 3, "categoryId": "SHOES"},
        },
    )
    assert response.status_code == 200
    assert response.json() == {
        "expression": "item.Quantity >= 2 and item.CategoryID == 'SHOES'",
        "result": True,
    }


@pytest.mark.asyncio
async def test_rule_evaluate_rejects_broken_rule(client: AsyncClient):
    response = await client.post("/v1/admin/rules/evaluate", json={"expression": "item.Price >"})
    assert response.status_code == 400
    assert response.json()["detail"].startswith("Invalid rule:")


@pytest.mark.asyncio
async def test_cache_invalidate_with_redis_down(client: AsyncClient, monkeypatch: pytest.MonkeyPatch):
    from promo_engine.routes import admin as admin_routes

    async def unreachable():
        raise RedisConnectionError("Connection refused")

    monkeypatch.setattr(admin_routes, "invalidate_offer_catalog_cache", unreachable)
    response = await client.post("/v1/admin/offers/cache/invalidate")
    assert response.status_code == 200
    assert response.json() == {"invalidated": False}


@pytest.mark.asyncio
async def test_cache_invalidate_without_redis(client: AsyncClient):
    response = await client.post("/v1/admin/offers/cache/invalidate")
    assert response.status_code == 200
    assert response.json() == {"invalidated": False}
