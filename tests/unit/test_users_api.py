"""Unit tests for user, cart and wishlist endpoints."""

import pytest
from httpx import AsyncClient

from dropship_service.infrastructure.database.models import ProductStatus


@pytest.mark.asyncio
async def test_create_user(async_client: AsyncClient) -> None:
    response = await async_client.post(
        "/api/v1/users", json={"email": "Bob@Example.com", "name": "Bob"}
    )
    assert response.status_code == 201
    assert response.json()["email"] == "bob@example.com"

    response = await async_client.post("/api/v1/users", json={"email": "bob@example.com"})
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_create_user_rejects_invalid_email(async_client: AsyncClient) -> None:
    response = await async_client.post("/api/v1/users", json={"email": "not-an-email"})
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_cart_flow(async_client: AsyncClient, user, make_product) -> None:
    """Lines merge, totals follow quantities and zero removes the line."""
    lamp = await make_product(name="Lamp", price_cents=2000)
    cart_url = f"/api/v1/users/{user.id}/cart"

    response = await async_client.post(cart_url, json={"product_id": lamp.id, "quantity": 1})
    assert response.status_code == 201

    response = await async_client.post(cart_url, json={"product_id": lamp.id, "quantity": 2})
    cart = response.json()
    assert cart["user_id"] == user.id
    assert cart["item_count"] == 3
    assert cart["total_cents"] == 6000
    assert len(cart["items"]) == 1

    item_id = cart["items"][0]["id"]
    response = await async_client.patch(f"{cart_url}/items/{item_id}", json={"quantity": 0})
    assert response.status_code == 200
    assert response.json()["items"] == []


@pytest.mark.asyncio
async def test_cart_rejects_draft_product(async_client: AsyncClient, user, make_product) -> None:
    draft = await make_product(status=ProductStatus.DRAFT)

    response = await async_client.post(
        f"/api/v1/users/{user.id}/cart", json={"product_id": draft.id}
    )
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_clear_cart(async_client: AsyncClient, user, make_product) -> None:
    cart_url = f"/api/v1/users/{user.id}/cart"
    for name in ("A", "B"):
        product = await make_product(name=name)
        await async_client.post(cart_url, json={"product_id": product.id})

    response = await async_client.delete(cart_url)
    assert response.json() == {"removed": 2}


@pytest.mark.asyncio
async def test_wishlist_add_is_idempotent(async_client: AsyncClient, user, make_product) -> None:
    product = await make_product()
    url = f"/api/v1/users/{user.id}/wishlist"

    response = await async_client.post(url, json={"product_id": product.id})
    assert response.status_code == 201
    assert response.json()["created"] is True

    response = await async_client.post(url, json={"product_id": product.id})
    assert response.status_code == 200
    assert response.json()["created"] is False

    response = await async_client.get(url)
    assert [entry["product_id"] for entry in response.json()] == [product.id]

    response = await async_client.delete(f"{url}/{product.id}")
    assert response.status_code == 204

    response = await async_client.delete(f"{url}/{product.id}")
    assert response.status_code == 404
