"""
HTTP API поверх тестовой БД: коды ответов и формат тела.
"""

from decimal import Decimal

import httpx
import pytest
import pytest_asyncio

from order_checkout.database import get_session_factory
from order_checkout.domain.models import NotificationKind
from order_checkout.main import app
from order_checkout.presentation.api import get_notification_sink

from tests.conftest import CUSTOMER_ID, PAYMENT_METHOD_ID, SILVER, assign_tier, product_stock


@pytest_asyncio.fixture
async def client(session_factory, sink, seeded):
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_notification_sink] = lambda: sink
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


def checkout_body(**overrides):
    body = {
        "customer_id": CUSTOMER_ID,
        "customer_name": "Иван Петров",
        "shipping_address": "Москва, ул. Ленина, 1",
        "payment_method_id": PAYMENT_METHOD_ID,
        "items": [{"product_ref": "prod-1", "quantity": 2, "unit_price": "100"}],
    }
    body.update(overrides)
    return body


async def place_order(client, **overrides):
    response = await client.post("/api/orders/checkout", json=checkout_body(**overrides))
    assert response.status_code == 201, response.text
    return response.json()


@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


@pytest.mark.asyncio
async def test_checkout_response(client, session_factory, sink):
    await assign_tier(session_factory, CUSTOMER_ID, SILVER)

    data = await place_order(client, voucher_code="SAVE10")

    assert Decimal(data["summary"]["subtotal"]) == Decimal("200")
    assert Decimal(data["summary"]["ranking_discount"]) == Decimal("20")
    assert Decimal(data["summary"]["voucher_discount"]) == Decimal("18")
    assert Decimal(data["summary"]["tax"]) == Decimal("20")
    assert Decimal(data["summary"]["total"]) == Decimal("182")
    assert Decimal(data["order"]["order_total"]) == Decimal("182")
    assert data["orderInfo"]["of_state"] == "ORDER_SUCCESS"
    assert data["productOrders"][0]["sku"] == "SKU-1"
    assert data["voucher"]["code"] == "SAVE10"
    assert data["ranking"]["customer_id"] == CUSTOMER_ID
    assert await product_stock(session_factory, "prod-1") == 8
    assert [kind for _, _, kind, _ in sink.order_statuses] == [NotificationKind.CONFIRMED]


@pytest.mark.asyncio
async def test_checkout_idempotent_replay(client):
    first = await place_order(client, idempotency_key="cart-1")
    second = await place_order(client, idempotency_key="cart-1")

    assert second["order"]["id"] == first["order"]["id"]
    assert second["ranking"] is None


@pytest.mark.asyncio
async def test_checkout_errors(client):
    response = await client.post("/api/orders/checkout", json=checkout_body(items=[]))
    assert response.status_code == 400
    assert response.json()["message"]

    response = await client.post("/api/orders/checkout", json=checkout_body(customer_id="nobody"))
    assert response.status_code == 400
    assert "nobody" in response.json()["message"]

    response = await client.post(
        "/api/orders/checkout",
        json=checkout_body(items=[{"product_ref": "missing", "quantity": 1, "unit_price": "100"}])
    )
    assert response.status_code == 400

    response = await client.post("/api/orders/checkout", json=checkout_body(voucher_code="USED1"))
    assert response.status_code == 400

    response = await client.post(
        "/api/orders/checkout",
        json=checkout_body(items=[{"product_ref": "prod-last", "quantity": 2, "unit_price": "100"}])
    )
    assert response.status_code == 400
    assert "prod-last" in response.json()["message"]


@pytest.mark.asyncio
async def test_checkout_request_validation(client):
    response = await client.post("/api/orders/checkout", json={"customer_id": CUSTOMER_ID})
    assert response.status_code == 400
    assert "items" in response.json()["message"]

    response = await client.post(
        "/api/orders/checkout",
        json=checkout_body(items=[{"product_ref": "prod-1", "quantity": 1.5, "unit_price": "100"}])
    )
    assert response.status_code == 400
    assert "quantity" in response.json()["message"]


@pytest.mark.asyncio
async def test_request_validation_outside_checkout(client):
    response = await client.post("/api/orders/validate-voucher", json={"subtotal": "100"})

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_get_order(client):
    created = await place_order(client)

    response = await client.get(f"/api/orders/{created['order']['id']}")

    assert response.status_code == 200
    data = response.json()
    assert data["order"]["id"] == created["order"]["id"]
    assert data["orderInfo"]["of_state"] == "ORDER_SUCCESS"
    assert Decimal(data["summary"]["total"]) == Decimal("220")
    assert len(data["productOrders"]) == 1


@pytest.mark.asyncio
async def test_get_missing_order(client):
    response = await client.get("/api/orders/missing")

    assert response.status_code == 404
    assert response.json()["message"]


@pytest.mark.asyncio
async def test_status_update(client, sink):
    created = await place_order(client)
    order_id = created["order"]["id"]

    response = await client.put(f"/api/orders/{order_id}/status", json={"of_state": "SHIPPING"})
    assert response.status_code == 200
    assert response.json()["of_state"] == "SHIPPING"

    response = await client.put(f"/api/orders/{order_id}/status", json={"of_state": "ORDER_SUCCESS"})
    assert response.status_code == 400

    response = await client.put(f"/api/orders/{order_id}/status", json={"of_state": "UNKNOWN"})
    assert response.status_code == 400

    response = await client.put("/api/orders/missing/status", json={"of_state": "SHIPPING"})
    assert response.status_code == 404

    assert [kind for _, _, kind, _ in sink.order_statuses] == [
        NotificationKind.CONFIRMED, NotificationKind.SHIPPED
    ]


@pytest.mark.asyncio
async def test_cancel_order(client, session_factory):
    created = await place_order(client, voucher_code="SAVE10")
    order_id = created["order"]["id"]

    response = await client.post(f"/api/orders/{order_id}/cancel", json={"reason": "Передумал"})

    assert response.status_code == 200
    data = response.json()
    assert data["orderInfo"]["of_state"] == "CANCELLED"
    assert data["voucher_released"] is True
    assert data["restored_items"] == 1
    assert await product_stock(session_factory, "prod-1") == 10

    again = await client.post(f"/api/orders/{order_id}/cancel", json={})
    assert again.status_code == 200
    assert again.json()["already_cancelled"] is True


@pytest.mark.asyncio
async def test_validate_voucher(client):
    response = await client.post(
        "/api/orders/validate-voucher", json={"voucher_code": "FIXED50", "subtotal": "200"}
    )

    assert response.status_code == 200
    data = response.json()
    assert Decimal(data["voucher_discount"]) == Decimal("50")
    assert Decimal(data["final_amount"]) == Decimal("150")

    response = await client.post(
        "/api/orders/validate-voucher", json={"voucher_code": "MIN500", "subtotal": "100"}
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_recompute_rankings(client, sink):
    await place_order(client, items=[{"product_ref": "prod-1", "quantity": 10, "unit_price": "100"}])

    response = await client.post(f"/api/customers/{CUSTOMER_ID}/ranking/recompute")
    assert response.status_code == 200
    data = response.json()
    assert data["new_tier"] == "Silver"
    assert data["upgraded"] is False
    assert Decimal(data["total_spending"]) == Decimal("1100")

    response = await client.post("/api/customers/nobody/ranking/recompute")
    assert response.status_code == 404

    response = await client.post("/api/rankings/recompute")
    assert response.status_code == 200
    assert response.json()["processed"] == 2

    assert [name for _, name, _ in sink.rank_upgrades] == ["Silver"]
