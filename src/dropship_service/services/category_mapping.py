"""Category mapping service.

Translates supplier category names into internal categories through the
``category_mappings`` table and keeps track of supplier categories that
have no mapping yet, so an admin can map the most common ones first.
"""

from typing import Any

import structlog
from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from dropship_service.exceptions import ConflictError, NotFoundError
from dropship_service.infrastructure.database.models import (
    Category,
    CategoryMapping,
    MappingStatus,
    Product,
    ProductStatus,
    Supplier,
    UnmappedExternalCategory,
    utcnow,
)

logger = structlog.get_logger()


def _normalize(external_category: str | None) -> str:
    return (external_category or "").strip()


class CategoryMappingService:
    """Resolve, record and apply supplier category mappings."""

    def __init__(self, session: AsyncSession):
        self.session = session

    # -------------------------------------------------------------------------
    # Resolution
    # -------------------------------------------------------------------------

    async def get_mapping(
        self, supplier_id: int, external_category: str, active_only: bool = True
    ) -> CategoryMapping | None:
        query = select(CategoryMapping).where(
            CategoryMapping.supplier_id == supplier_id,
            CategoryMapping.external_category == external_category,
        )
        if active_only:
            query = query.where(CategoryMapping.status == MappingStatus.ACTIVE)
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def resolve_category(
        self, supplier_id: int | None, external_category: str | None
    ) -> int | None:
        """Return the mapped category id, or record the category as unmapped.

        Each miss increments the unmapped category's product count.
        """
        name = _normalize(external_category)
        if supplier_id is None or not name:
            return None

        mapping = await self.get_mapping(supplier_id, name)
        if mapping is not None:
            return mapping.category_id

        await self.record_unmapped(supplier_id, name)
        return None

    async def record_unmapped(self, supplier_id: int, external_category: str) -> UnmappedExternalCategory:
        result = await self.session.execute(
            select(UnmappedExternalCategory).where(
                UnmappedExternalCategory.supplier_id == supplier_id,
                UnmappedExternalCategory.external_category == external_category,
            )
        )
        unmapped = result.scalar_one_or_none()

        if unmapped is None:
            unmapped = UnmappedExternalCategory(
                supplier_id=supplier_id,
                external_category=external_category,
                product_count=1,
            )
            self.session.add(unmapped)
            logger.info(
                "Unmapped external category recorded",
                supplier_id=supplier_id,
                external_category=external_category,
            )
        else:
            unmapped.product_count += 1
            unmapped.last_seen_at = utcnow()

        await self.session.flush()
        return unmapped

    # -------------------------------------------------------------------------
    # Mapping CRUD
    # -------------------------------------------------------------------------

    async def list_mappings(self, supplier_id: int | None = None) -> list[CategoryMapping]:
        query = select(CategoryMapping).order_by(
            CategoryMapping.supplier_id, CategoryMapping.external_category
        )
        if supplier_id is not None:
            query = query.where(CategoryMapping.supplier_id == supplier_id)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def list_unmapped(self, supplier_id: int | None = None) -> list[UnmappedExternalCategory]:
        query = select(UnmappedExternalCategory).order_by(
            UnmappedExternalCategory.product_count.desc(),
            UnmappedExternalCategory.external_category,
        )
        if supplier_id is not None:
            query = query.where(UnmappedExternalCategory.supplier_id == supplier_id)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def get_mapping_by_id(self, mapping_id: int) -> CategoryMapping:
        mapping = await self.session.get(CategoryMapping, mapping_id)
        if mapping is None:
            raise NotFoundError(f"Category mapping {mapping_id} not found")
        return mapping

    async def _require_category(self, category_id: int) -> Category:
        category = await self.session.get(Category, category_id)
        if category is None:
            raise NotFoundError(f"Category {category_id} not found")
        return category

    async def create_mapping(
        self, supplier_id: int, external_category: str, category_id: int
    ) -> tuple[CategoryMapping, int]:
        """Create a mapping and apply it to waiting drafts.

        Returns the mapping and the number of draft products categorized.
        """
        name = _normalize(external_category)
        if await self.session.get(Supplier, supplier_id) is None:
            raise NotFoundError(f"Supplier {supplier_id} not found")
        await self._require_category(category_id)

        if await self.get_mapping(supplier_id, name, active_only=False) is not None:
            raise ConflictError(
                f"Mapping for '{name}' already exists for supplier {supplier_id}"
            )

        mapping = CategoryMapping(
            supplier_id=supplier_id,
            external_category=name,
            category_id=category_id,
            status=MappingStatus.ACTIVE,
        )
        self.session.add(mapping)
        await self.session.execute(
            delete(UnmappedExternalCategory).where(
                UnmappedExternalCategory.supplier_id == supplier_id,
                UnmappedExternalCategory.external_category == name,
            )
        )
        await self.session.flush()

        applied = await self.apply_mappings_to_drafts(supplier_id=supplier_id, external_category=name)
        logger.info(
            "Category mapping created",
            supplier_id=supplier_id,
            external_category=name,
            category_id=category_id,
            drafts_updated=applied["updated"],
        )
        return mapping, applied["updated"]

    async def update_mapping(
        self,
        mapping_id: int,
        category_id: int | None = None,
        status: MappingStatus | None = None,
    ) -> CategoryMapping:
        mapping = await self.get_mapping_by_id(mapping_id)
        if category_id is not None:
            await self._require_category(category_id)
            mapping.category_id = category_id
        if status is not None:
            mapping.status = status
        await self.session.flush()

        if mapping.status == MappingStatus.ACTIVE:
            await self.apply_mappings_to_drafts(
                supplier_id=mapping.supplier_id, external_category=mapping.external_category
            )
        return mapping

    async def delete_mapping(self, mapping_id: int) -> None:
        mapping = await self.get_mapping_by_id(mapping_id)
        await self.session.delete(mapping)
        await self.session.flush()

    # -------------------------------------------------------------------------
    # Application
    # -------------------------------------------------------------------------

    async def apply_mappings_to_drafts(
        self,
        supplier_id: int | None = None,
        external_category: str | None = None,
    ) -> dict[str, int]:
        """Categorize draft products that are still waiting for a mapping.

        Only drafts without a category and not manually mapped are touched.
        """
        query = select(Product).where(
            Product.status == ProductStatus.DRAFT,
            Product.category_id.is_(None),
            Product.is_manually_mapped.is_(False),
            Product.supplier_id.is_not(None),
            Product.external_category.is_not(None),
        )
        if supplier_id is not None:
            query = query.where(Product.supplier_id == supplier_id)
        if external_category is not None:
            query = query.where(Product.external_category == external_category)
        drafts = list((await self.session.execute(query)).scalars().all())

        if not drafts:
            return {"total": 0, "updated": 0}

        mapping_query = select(CategoryMapping).where(CategoryMapping.status == MappingStatus.ACTIVE)
        if supplier_id is not None:
            mapping_query = mapping_query.where(CategoryMapping.supplier_id == supplier_id)
        mappings = {
            (m.supplier_id, m.external_category): m.category_id
            for m in (await self.session.execute(mapping_query)).scalars().all()
        }

        updated = 0
        for product in drafts:
            category_id = mappings.get((product.supplier_id, _normalize(product.external_category)))
            if category_id is not None:
                product.category_id = category_id
                updated += 1

        await self.session.flush()
        if updated:
            logger.info("Mappings applied to drafts", total=len(drafts), updated=updated)
        return {"total": len(drafts), "updated": updated}

    async def correct_product_category(
        self, product_id: int, category_id: int, reason: str | None = None
    ) -> Product:
        """Manually set a product's category; automatic passes skip it afterwards."""
        product = await self.session.get(Product, product_id)
        if product is None:
            raise NotFoundError(f"Product {product_id} not found")
        await self._require_category(category_id)

        previous = product.category_id
        product.category_id = category_id
        product.is_manually_mapped = True
        await self.session.flush()

        logger.info(
            "Product category corrected",
            product_id=product_id,
            previous_category_id=previous,
            category_id=category_id,
            reason=reason,
        )
        return product

    async def list_uncategorized_products(self, limit: int = 50) -> list[Product]:
        result = await self.session.execute(
            select(Product)
            .where(Product.category_id.is_(None))
            .order_by(Product.created_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def get_categorization_stats(self) -> dict[str, Any]:
        total = await self.session.scalar(select(func.count()).select_from(Product)) or 0
        manual = await self.session.scalar(
            select(func.count()).select_from(Product).where(Product.is_manually_mapped.is_(True))
        ) or 0
        categorized = await self.session.scalar(
            select(func.count()).select_from(Product).where(Product.category_id.is_not(None))
        ) or 0
        unmapped = await self.session.scalar(
            select(func.count()).select_from(UnmappedExternalCategory)
        ) or 0
        mappings = await self.session.scalar(select(func.count()).select_from(CategoryMapping)) or 0

        auto = max(categorized - manual, 0)
        uncategorized = total - categorized

        def rate(count: int) -> float:
            return round(count / total * 100, 2) if total else 0.0

        return {
            "total_products": total,
            "categorized": categorized,
            "manually_mapped": manual,
            "auto_mapped": auto,
            "uncategorized": uncategorized,
            "mappings": mappings,
            "unmapped_external_categories": unmapped,
            "categorization_rate": rate(categorized),
            "manual_rate": rate(manual),
            "auto_rate": rate(auto),
        }
