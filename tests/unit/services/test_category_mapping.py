"""Unit tests for supplier category mapping."""

import pytest
from sqlalchemy import select

from dropship_service.exceptions import ConflictError, NotFoundError
from dropship_service.infrastructure.database.models import (
    Category,
    MappingStatus,
    ProductStatus,
    UnmappedExternalCategory,
)
from dropship_service.services.category_mapping import CategoryMappingService


@pytest.fixture
def service(session) -> CategoryMappingService:
    return CategoryMappingService(session)


class TestResolveCategory:
    @pytest.mark.asyncio
    async def test_mapped_category(self, service, cj_supplier, category) -> None:
        await service.create_mapping(cj_supplier.id, "Earphones", category.id)

        assert await service.resolve_category(cj_supplier.id, " Earphones ") == category.id

    @pytest.mark.asyncio
    async def test_unmapped_is_recorded_and_counted(self, service, session, cj_supplier) -> None:
        assert await service.resolve_category(cj_supplier.id, "Phone Cases") is None
        assert await service.resolve_category(cj_supplier.id, "Phone Cases") is None

        unmapped = (await session.execute(select(UnmappedExternalCategory))).scalars().all()
        assert len(unmapped) == 1
        assert unmapped[0].external_category == "Phone Cases"
        assert unmapped[0].product_count == 2

    @pytest.mark.asyncio
    async def test_blank_category_ignored(self, service, session, cj_supplier) -> None:
        assert await service.resolve_category(cj_supplier.id, "  ") is None
        assert await service.resolve_category(None, "Earphones") is None
        assert (await session.execute(select(UnmappedExternalCategory))).first() is None

    @pytest.mark.asyncio
    async def test_inactive_mapping_not_used(self, service, cj_supplier, category) -> None:
        mapping, _ = await service.create_mapping(cj_supplier.id, "Earphones", category.id)
        await service.update_mapping(mapping.id, status=MappingStatus.INACTIVE)

        assert await service.resolve_category(cj_supplier.id, "Earphones") is None


class TestMappingCrud:
    @pytest.mark.asyncio
    async def test_create_removes_unmapped_and_applies_to_drafts(
        self, service, session, cj_supplier, category, make_product
    ) -> None:
        await service.record_unmapped(cj_supplier.id, "Earphones")
        draft = await make_product(
            status=ProductStatus.DRAFT, supplier_id=cj_supplier.id, external_category="Earphones"
        )
        other = await make_product(
            status=ProductStatus.DRAFT, supplier_id=cj_supplier.id, external_category="Lamps"
        )

        mapping, updated = await service.create_mapping(cj_supplier.id, "Earphones", category.id)

        assert mapping.status == MappingStatus.ACTIVE
        assert updated == 1
        assert draft.category_id == category.id
        assert other.category_id is None
        assert await service.list_unmapped() == []

    @pytest.mark.asyncio
    async def test_duplicate_mapping_conflicts(self, service, cj_supplier, category) -> None:
        await service.create_mapping(cj_supplier.id, "Earphones", category.id)

        with pytest.raises(ConflictError):
            await service.create_mapping(cj_supplier.id, "Earphones", category.id)

    @pytest.mark.asyncio
    async def test_unknown_category(self, service, cj_supplier) -> None:
        with pytest.raises(NotFoundError):
            await service.create_mapping(cj_supplier.id, "Earphones", 999)

    @pytest.mark.asyncio
    async def test_update_and_delete(self, service, session, cj_supplier, category) -> None:
        audio = Category(name="Audio", slug="audio")
        session.add(audio)
        await session.flush()
        mapping, _ = await service.create_mapping(cj_supplier.id, "Earphones", category.id)

        updated = await service.update_mapping(mapping.id, category_id=audio.id)
        assert updated.category_id == audio.id

        await service.delete_mapping(mapping.id)
        assert await service.list_mappings() == []
        with pytest.raises(NotFoundError):
            await service.get_mapping_by_id(mapping.id)


class TestApplyMappings:
    @pytest.mark.asyncio
    async def test_skips_manual_and_published(
        self, service, cj_supplier, category, make_product
    ) -> None:
        manual = await make_product(
            status=ProductStatus.DRAFT,
            supplier_id=cj_supplier.id,
            external_category="Earphones",
            is_manually_mapped=True,
        )
        active = await make_product(
            status=ProductStatus.ACTIVE, supplier_id=cj_supplier.id, external_category="Earphones"
        )
        draft = await make_product(
            status=ProductStatus.DRAFT, supplier_id=cj_supplier.id, external_category="Earphones"
        )
        await service.create_mapping(cj_supplier.id, "Earphones", category.id)

        result = await service.apply_mappings_to_drafts()

        assert draft.category_id == category.id
        assert manual.category_id is None
        assert active.category_id is None
        # the draft was already categorized when the mapping was created
        assert result == {"total": 0, "updated": 0}

    @pytest.mark.asyncio
    async def test_counts_unmatched_drafts(self, service, cj_supplier, make_product) -> None:
        await make_product(
            status=ProductStatus.DRAFT, supplier_id=cj_supplier.id, external_category="Lamps"
        )

        assert await service.apply_mappings_to_drafts() == {"total": 1, "updated": 0}


class TestManualCorrection:
    @pytest.mark.asyncio
    async def test_correction_marks_manual(self, service, category, make_product) -> None:
        product = await make_product()

        corrected = await service.correct_product_category(product.id, category.id, reason="wrong")

        assert corrected.category_id == category.id
        assert corrected.is_manually_mapped is True

    @pytest.mark.asyncio
    async def test_unknown_product(self, service, category) -> None:
        with pytest.raises(NotFoundError):
            await service.correct_product_category(404, category.id)

    @pytest.mark.asyncio
    async def test_stats(self, service, category, make_product) -> None:
        await make_product(category_id=category.id)
        await make_product(name="Manual", category_id=category.id, is_manually_mapped=True)
        await make_product(name="Loose")
        await make_product(name="Looser")

        stats = await service.get_categorization_stats()

        assert stats["total_products"] == 4
        assert stats["categorized"] == 2
        assert stats["manually_mapped"] == 1
        assert stats["auto_mapped"] == 1
        assert stats["uncategorized"] == 2
        assert stats["categorization_rate"] == 50.0
        assert len(await service.list_uncategorized_products()) == 2
