"""Unit tests for duplicate prevention on CJ imports."""

import pytest

from dropship_service.infrastructure.database.models import (
    ImportStatus,
    Product,
    ProductSource,
    ProductStatus,
)
from dropship_service.services.deduplication import DuplicatePreventionService, ImportAction


@pytest.fixture
def service(session) -> DuplicatePreventionService:
    return DuplicatePreventionService(session)


class TestDuplicateCheck:
    @pytest.mark.asyncio
    async def test_new_product(self, service) -> None:
        check = await service.check_cj_product_duplicate("PID-NEW", "SKU-NEW")

        assert check.is_duplicate is False
        assert check.action == ImportAction.CREATE

    @pytest.mark.asyncio
    async def test_match_by_cj_id(self, service, make_cj_product) -> None:
        product = await make_cj_product(pid="PID-1")

        check = await service.check_cj_product_duplicate("PID-1")

        assert check.is_duplicate is True
        assert check.action == ImportAction.UPDATE
        assert check.existing_product.id == product.id

    @pytest.mark.asyncio
    async def test_match_by_sku(self, service, make_cj_product) -> None:
        product = await make_cj_product(pid="PID-1")

        check = await service.check_cj_product_duplicate("PID-OTHER", product.product_sku)

        assert check.is_duplicate is True
        assert check.existing_product.id == product.id

    @pytest.mark.asyncio
    async def test_sku_of_manual_product_ignored(self, service, make_product) -> None:
        await make_product(product_sku="SKU-1")

        check = await service.check_cj_product_duplicate("PID-1", "SKU-1")

        assert check.is_duplicate is False


class TestUpsert:
    @pytest.mark.asyncio
    async def test_creates_draft(self, service, session) -> None:
        result = await service.upsert_cj_product(
            {"cj_product_id": "PID-1", "name": "Lamp", "price_cents": 1500, "stock": 3}
        )

        assert result.status == ImportStatus.NEW
        product = await session.get(Product, result.product_id)
        assert product.status == ProductStatus.DRAFT
        assert product.source == ProductSource.CJ_DROPSHIPPING
        assert product.import_status == ImportStatus.NEW

    @pytest.mark.asyncio
    async def test_updates_in_place(self, service, make_cj_product) -> None:
        product = await make_cj_product(pid="PID-1", stock=5)

        result = await service.upsert_cj_product(
            {"cj_product_id": "PID-1", "price_cents": 1800, "stock": 5, "description": "New"}
        )

        assert result.status == ImportStatus.UPDATED
        assert result.product_id == product.id
        assert result.changes == ["price: 1500 -> 1800", "description updated"]
        assert product.price_cents == 1800
        assert product.import_status == ImportStatus.UPDATED

    @pytest.mark.asyncio
    async def test_stats(self, service, make_cj_product) -> None:
        await make_cj_product(pid="PID-1", vid="VID-1")
        await service.upsert_cj_product({"cj_product_id": "PID-2", "name": "Other"})
        await service.upsert_cj_product({"cj_product_id": "PID-1", "price_cents": 999})

        stats = await service.get_duplicate_stats()

        assert stats == {"total_cj_products": 2, "new_products": 1, "updated_products": 1}
