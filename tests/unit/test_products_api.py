"""Unit tests for product and category endpoints."""

import pytest
from httpx import AsyncClient

from dropship_service.infrastructure.database.models import ProductStatus


@pytest.mark.asyncio
async def test_storefront_lists_only_active_products(
    async_client: AsyncClient, make_product
) -> None:
    """Drafts never reach the storefront listing."""
    active = await make_product(name="Desk Lamp")
    await make_product(name="Draft Lamp", status=ProductStatus.DRAFT)

    response = await async_client.get("/api/v1/products")
    assert response.status_code == 200

    data = response.json()
    assert data["total"] == 1
    assert data["page"] == 1
    assert [item["id"] for item in data["items"]] == [active.id]


@pytest.mark.asyncio
async def test_storefront_hides_draft_detail(async_client: AsyncClient, make_product) -> None:
    draft = await make_product(status=ProductStatus.DRAFT)

    response = await async_client.get(f"/api/v1/products/{draft.id}")
    assert response.status_code == 404
    assert response.json()["error"] == "NotFoundError"

    response = await async_client.get(f"/api/v1/products/admin/{draft.id}")
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_product_detail_includes_variants(
    async_client: AsyncClient, make_cj_product
) -> None:
    product = await make_cj_product(vid="VID-9")

    response = await async_client.get(f"/api/v1/products/{product.id}")
    assert response.status_code == 200

    data = response.json()
    assert data["source"] == "cj-dropshipping"
    assert [v["cj_variant_id"] for v in data["variants"]] == ["VID-9"]


@pytest.mark.asyncio
async def test_create_and_delete_product(async_client: AsyncClient, category) -> None:
    response = await async_client.post(
        "/api/v1/products",
        json={"name": "Ceramic Mug", "price_cents": 900, "category_id": category.id},
    )
    assert response.status_code == 201

    data = response.json()
    assert data["status"] == "active"
    assert data["source"] == "manual"
    assert data["stock"] == 0

    response = await async_client.delete(f"/api/v1/products/{data['id']}")
    assert response.status_code == 204

    response = await async_client.get(f"/api/v1/products/admin/{data['id']}")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_create_product_validates_price(async_client: AsyncClient) -> None:
    response = await async_client.post(
        "/api/v1/products", json={"name": "Ceramic Mug", "price_cents": -1}
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_draft_review_flow(async_client: AsyncClient, category, make_cj_product) -> None:
    """A draft is edited, refused without a category, then published."""
    draft = await make_cj_product(status=ProductStatus.DRAFT)

    response = await async_client.patch(
        f"/api/v1/products/{draft.id}/draft", json={"margin_percent": 80}
    )
    assert response.status_code == 200
    assert response.json()["price_cents"] == 1800
    assert response.json()["is_edited"] is True

    response = await async_client.post(f"/api/v1/products/{draft.id}/publish")
    assert response.status_code == 400
    assert response.json()["error"] == "DomainValidationError"

    response = await async_client.put(
        f"/api/v1/products/{draft.id}/category", json={"category_id": category.id}
    )
    assert response.status_code == 200
    assert response.json()["is_manually_mapped"] is True

    response = await async_client.post(f"/api/v1/products/{draft.id}/publish")
    assert response.status_code == 200
    assert response.json()["status"] == "active"


@pytest.mark.asyncio
async def test_reject_draft(async_client: AsyncClient, make_cj_product) -> None:
    draft = await make_cj_product(status=ProductStatus.DRAFT)

    response = await async_client.post(
        f"/api/v1/products/{draft.id}/reject", json={"reason": "poor images"}
    )
    assert response.status_code == 200
    assert response.json()["status"] == "rejected"

    response = await async_client.get("/api/v1/products/drafts")
    assert response.json()["total"] == 0


@pytest.mark.asyncio
async def test_create_category(async_client: AsyncClient) -> None:
    response = await async_client.post("/api/v1/categories", json={"name": "Home Audio"})
    assert response.status_code == 201

    data = response.json()
    assert data["slug"] == "home-audio"
    assert data["product_count"] == 0


@pytest.mark.asyncio
async def test_create_mapping_categorizes_drafts(
    async_client: AsyncClient, cj_supplier, category, make_product
) -> None:
    """A new mapping is applied to waiting drafts straight away."""
    await make_product(
        status=ProductStatus.DRAFT, supplier_id=cj_supplier.id, external_category="Earphones"
    )
    body = {
        "supplier_id": cj_supplier.id,
        "external_category": "Earphones",
        "category_id": category.id,
    }

    response = await async_client.post("/api/v1/categories/mappings", json=body)
    assert response.status_code == 201

    data = response.json()
    assert data["status"] == "active"
    assert data["drafts_updated"] == 1

    response = await async_client.post("/api/v1/categories/mappings", json=body)
    assert response.status_code == 409

    response = await async_client.get("/api/v1/categories/mappings")
    assert len(response.json()) == 1


@pytest.mark.asyncio
async def test_mapping_for_unknown_category(async_client: AsyncClient, cj_supplier) -> None:
    response = await async_client.post(
        "/api/v1/categories/mappings",
        json={"supplier_id": cj_supplier.id, "external_category": "Earphones", "category_id": 404},
    )
    assert response.status_code == 404
