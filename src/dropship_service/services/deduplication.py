"""Duplicate prevention for supplier product imports."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from dropship_service.infrastructure.database.models import (
    ImportStatus,
    Product,
    ProductSource,
    ProductStatus,
    utcnow,
)

logger = structlog.get_logger()


class ImportAction(str, Enum):
    CREATE = "create"
    UPDATE = "update"


@dataclass
class DuplicateCheckResult:
    is_duplicate: bool
    action: ImportAction
    existing_product: Product | None = None
    reason: str | None = None


@dataclass
class ImportStatusResult:
    status: ImportStatus
    product_id: int
    changes: list[str] = field(default_factory=list)


class DuplicatePreventionService:
    """Match incoming CJ products to existing ones before writing."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def check_cj_product_duplicate(
        self, cj_product_id: str, product_sku: str | None = None
    ) -> DuplicateCheckResult:
        """Look up an existing product by CJ id first, then by SKU."""
        result = await self.session.execute(
            select(Product).where(Product.cj_product_id == cj_product_id)
        )
        existing = result.scalar_one_or_none()
        if existing is not None:
            return DuplicateCheckResult(
                is_duplicate=True,
                action=ImportAction.UPDATE,
                existing_product=existing,
                reason=f"Product with CJ id {cj_product_id} already exists",
            )

        if product_sku:
            result = await self.session.execute(
                select(Product)
                .where(
                    Product.product_sku == product_sku,
                    Product.source == ProductSource.CJ_DROPSHIPPING,
                )
                .limit(1)
            )
            existing = result.scalar_one_or_none()
            if existing is not None:
                return DuplicateCheckResult(
                    is_duplicate=True,
                    action=ImportAction.UPDATE,
                    existing_product=existing,
                    reason=f"Product with SKU {product_sku} already exists",
                )

        return DuplicateCheckResult(is_duplicate=False, action=ImportAction.CREATE)

    async def upsert_cj_product(
        self, data: dict[str, Any], check: DuplicateCheckResult | None = None
    ) -> ImportStatusResult:
        """Insert a CJ product or update price, stock and description in place.

        ``data`` holds Product column values and must include ``cj_product_id``.
        """
        if check is None:
            check = await self.check_cj_product_duplicate(
                data["cj_product_id"], data.get("product_sku")
            )

        now = utcnow()
        if check.action == ImportAction.UPDATE and check.existing_product is not None:
            product = check.existing_product
            changes: list[str] = []

            new_price = data.get("price_cents")
            if new_price is not None and new_price != product.price_cents:
                changes.append(f"price: {product.price_cents} -> {new_price}")
                product.price_cents = new_price
            new_original = data.get("original_price_cents")
            if new_original is not None and new_original != product.original_price_cents:
                product.original_price_cents = new_original

            new_stock = data.get("stock")
            if new_stock is not None and new_stock != product.stock:
                changes.append(f"stock: {product.stock} -> {new_stock}")
                product.stock = new_stock

            new_description = data.get("description")
            if new_description is not None and new_description != product.description:
                changes.append("description updated")
                product.description = new_description

            if not product.cj_product_id:
                product.cj_product_id = data["cj_product_id"]
            product.import_status = ImportStatus.UPDATED
            product.last_import_at = now
            await self.session.flush()

            logger.info("CJ product updated", product_id=product.id, changes=changes)
            return ImportStatusResult(ImportStatus.UPDATED, product.id, changes)

        values = {
            "status": ProductStatus.DRAFT,
            "source": ProductSource.CJ_DROPSHIPPING,
            **data,
            "import_status": ImportStatus.NEW,
            "last_import_at": now,
        }
        product = Product(**values)
        self.session.add(product)
        await self.session.flush()

        logger.info("CJ product created", product_id=product.id, cj_product_id=product.cj_product_id)
        return ImportStatusResult(ImportStatus.NEW, product.id)

    async def get_duplicate_stats(self) -> dict[str, int]:
        cj_filter = Product.source == ProductSource.CJ_DROPSHIPPING
        total = await self.session.scalar(select(func.count()).select_from(Product).where(cj_filter))
        new = await self.session.scalar(
            select(func.count())
            .select_from(Product)
            .where(cj_filter, Product.import_status == ImportStatus.NEW)
        )
        updated = await self.session.scalar(
            select(func.count())
            .select_from(Product)
            .where(cj_filter, Product.import_status == ImportStatus.UPDATED)
        )
        return {
            "total_cj_products": total or 0,
            "new_products": new or 0,
            "updated_products": updated or 0,
        }
