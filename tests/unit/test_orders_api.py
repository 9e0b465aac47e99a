"""Unit tests for order endpoints."""

import json

import pytest
from httpx import AsyncClient

SHIPPING = {
    "shipping_name": "Alice Doe",
    "shipping_address": "1 Main St",
    "shipping_city": "Springfield",
    "shipping_zip": "12345",
    "shipping_country_code": "US",
}


@pytest.mark.asyncio
async def test_create_order_from_cart(async_client: AsyncClient, user, make_product) -> None:
    lamp = await make_product(name="Lamp", price_cents=2000)
    await async_client.post(
        f"/api/v1/users/{user.id}/cart", json={"product_id": lamp.id, "quantity": 2}
    )

    response = await async_client.post("/api/v1/orders", json={"user_id": user.id, **SHIPPING})
    assert response.status_code == 201

    order = response.json()
    assert order["status"] == "pending"
    assert order["total_cents"] == 4000
    assert [(i["product_id"], i["quantity"]) for i in order["items"]] == [(lamp.id, 2)]

    response = await async_client.get(f"/api/v1/users/{user.id}/cart")
    assert response.json()["items"] == []


@pytest.mark.asyncio
async def test_create_order_with_empty_cart(async_client: AsyncClient, user) -> None:
    response = await async_client.post("/api/v1/orders", json={"user_id": user.id})
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_update_order_status(async_client: AsyncClient, user, make_product) -> None:
    lamp = await make_product()
    response = await async_client.post(
        "/api/v1/orders",
        json={"user_id": user.id, "items": [{"product_id": lamp.id, "quantity": 1}]},
    )
    order_id = response.json()["id"]

    response = await async_client.patch(
        f"/api/v1/orders/{order_id}/status", json={"status": "cancelled"}
    )
    assert response.status_code == 200

    response = await async_client.get("/api/v1/orders", params={"status": "cancelled"})
    assert [o["id"] for o in response.json()] == [order_id]


@pytest.mark.asyncio
async def test_place_order_with_cj(
    async_client: AsyncClient, fake_cj, user, make_cj_product
) -> None:
    """The preview and the placed order carry the same CJ variants."""
    fake_cj.routes["/shopping/order/createOrderV2"] = {"orderId": "CJ-77", "orderStatus": "CREATED"}
    product = await make_cj_product(pid="PID-1", vid="VID-1")
    response = await async_client.post(
        "/api/v1/orders",
        json={"user_id": user.id, "items": [{"product_id": product.id, "quantity": 2}], **SHIPPING},
    )
    order_id = response.json()["id"]

    response = await async_client.get(
        f"/api/v1/orders/{order_id}/cj/preview", params={"logistic_name": "CJPacket"}
    )
    preview = response.json()
    assert preview["ready"] is True
    assert preview["has_cj_products"] is True
    assert preview["payload"]["products"] == [{"vid": "VID-1", "quantity": 2}]

    response = await async_client.post(
        f"/api/v1/orders/{order_id}/cj", json={"logistic_name": "CJPacket"}
    )
    assert response.status_code == 201
    assert response.json()["cj_order_id"] == "CJ-77"

    body = json.loads(fake_cj.calls("/shopping/order/createOrderV2")[0].content)
    assert body["products"] == [{"vid": "VID-1", "quantity": 2}]

    response = await async_client.get(f"/api/v1/orders/{order_id}")
    assert response.json()["status"] == "confirmed"

    response = await async_client.post(
        f"/api/v1/orders/{order_id}/cj", json={"logistic_name": "CJPacket"}
    )
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_place_order_when_integration_disabled(
    async_client: AsyncClient, fake_cj, user, make_cj_product
) -> None:
    product = await make_cj_product()
    response = await async_client.post(
        "/api/v1/orders",
        json={"user_id": user.id, "items": [{"product_id": product.id, "quantity": 1}], **SHIPPING},
    )
    order_id = response.json()["id"]
    await async_client.put("/api/v1/cj/config", json={"enabled": False})

    response = await async_client.post(
        f"/api/v1/orders/{order_id}/cj", json={"logistic_name": "CJPacket"}
    )
    assert response.status_code == 503
    assert fake_cj.calls("/shopping/order/createOrderV2") == []


@pytest.mark.asyncio
async def test_unplaced_order_has_no_cj_mapping(
    async_client: AsyncClient, user, make_product
) -> None:
    lamp = await make_product()
    response = await async_client.post(
        "/api/v1/orders",
        json={"user_id": user.id, "items": [{"product_id": lamp.id, "quantity": 1}]},
    )

    response = await async_client.get(f"/api/v1/orders/{response.json()['id']}/cj")
    assert response.status_code == 404
