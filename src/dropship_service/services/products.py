"""Product catalog service: listings, CRUD, draft review and notifications."""

from typing import Any

import structlog
from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from dropship_service.exceptions import DomainValidationError, NotFoundError
from dropship_service.infrastructure.database.models import (
    Category,
    Product,
    ProductSource,
    ProductStatus,
    ProductUpdateNotification,
    ProductVariant,
    utcnow,
)
from dropship_service.services.normalization import (
    calculate_price_with_margin,
    clean_product_description,
    clean_product_name,
)

logger = structlog.get_logger()

PRODUCT_FIELDS = (
    "name",
    "description",
    "price_cents",
    "original_price_cents",
    "image",
    "images",
    "stock",
    "badge",
    "status",
    "category_id",
    "supplier_id",
)

DRAFT_FIELDS = ("image", "images", "badge", "stock", "category_id")


class ProductService:
    """Storefront and admin operations on products."""

    def __init__(self, session: AsyncSession):
        self.session = session

    # -------------------------------------------------------------------------
    # Listings
    # -------------------------------------------------------------------------

    async def _paginate(self, query, page: int, limit: int) -> tuple[list[Product], int]:
        total = await self.session.scalar(select(func.count()).select_from(query.subquery())) or 0
        result = await self.session.execute(
            query.order_by(Product.created_at.desc(), Product.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return list(result.scalars().all()), total

    async def list_public(
        self,
        category_id: int | None = None,
        search: str | None = None,
        page: int = 1,
        limit: int = 20,
    ) -> tuple[list[Product], int]:
        """Only active products are visible to shoppers."""
        query = select(Product).where(Product.status == ProductStatus.ACTIVE)
        if category_id is not None:
            query = query.where(Product.category_id == category_id)
        if search:
            pattern = f"%{search}%"
            query = query.where(or_(Product.name.ilike(pattern), Product.description.ilike(pattern)))
        return await self._paginate(query, page, limit)

    async def list_admin(
        self,
        status: ProductStatus | None = None,
        source: ProductSource | None = None,
        category_id: int | None = None,
        search: str | None = None,
        page: int = 1,
        limit: int = 20,
    ) -> tuple[list[Product], int]:
        query = select(Product)
        if status is not None:
            query = query.where(Product.status == status)
        if source is not None:
            query = query.where(Product.source == source)
        if category_id is not None:
            query = query.where(Product.category_id == category_id)
        if search:
            query = query.where(Product.name.ilike(f"%{search}%"))
        return await self._paginate(query, page, limit)

    async def list_drafts(self, page: int = 1, limit: int = 20) -> tuple[list[Product], int]:
        return await self.list_admin(status=ProductStatus.DRAFT, page=page, limit=limit)

    # -------------------------------------------------------------------------
    # CRUD
    # -------------------------------------------------------------------------

    async def get_product(self, product_id: int) -> Product:
        product = await self.session.get(Product, product_id)
        if product is None:
            raise NotFoundError(f"Product {product_id} not found")
        return product

    async def get_public_product(self, product_id: int) -> Product:
        product = await self.get_product(product_id)
        if product.status != ProductStatus.ACTIVE:
            raise NotFoundError(f"Product {product_id} not found")
        return product

    async def get_variants(self, product_id: int) -> list[ProductVariant]:
        result = await self.session.execute(
            select(ProductVariant)
            .where(ProductVariant.product_id == product_id)
            .order_by(ProductVariant.id)
        )
        return list(result.scalars().all())

    async def _validate_category(self, category_id: int | None) -> None:
        if category_id is not None and await self.session.get(Category, category_id) is None:
            raise NotFoundError(f"Category {category_id} not found")

    async def create_product(self, **fields: Any) -> Product:
        """Create a manually managed product."""
        await self._validate_category(fields.get("category_id"))
        values = {key: fields[key] for key in PRODUCT_FIELDS if fields.get(key) is not None}
        values.setdefault("status", ProductStatus.ACTIVE)
        values.setdefault("stock", 0)
        values.setdefault("images", [])
        product = Product(source=ProductSource.MANUAL, **values)
        self.session.add(product)
        await self.session.flush()
        logger.info("Product created", product_id=product.id)
        return product

    async def update_product(self, product_id: int, **fields: Any) -> Product:
        product = await self.get_product(product_id)
        await self._validate_category(fields.get("category_id"))
        for key in PRODUCT_FIELDS:
            if fields.get(key) is not None:
                setattr(product, key, fields[key])
        await self.session.flush()
        return product

    async def delete_product(self, product_id: int) -> None:
        product = await self.get_product(product_id)
        await self.session.delete(product)
        await self.session.flush()
        logger.info("Product deleted", product_id=product_id)

    # -------------------------------------------------------------------------
    # Draft review
    # -------------------------------------------------------------------------

    async def _get_draft(self, product_id: int) -> Product:
        product = await self.get_product(product_id)
        if product.status != ProductStatus.DRAFT:
            raise DomainValidationError(
                f"Product {product_id} is {product.status.value}, only drafts can be changed"
            )
        return product

    async def edit_draft(self, product_id: int, **fields: Any) -> Product:
        """Edit a draft before publication.

        A margin recomputes the selling price from the supplier cost.
        """
        product = await self._get_draft(product_id)
        await self._validate_category(fields.get("category_id"))

        if fields.get("name") is not None:
            product.name = clean_product_name(fields["name"])
        if fields.get("description") is not None:
            product.description = clean_product_description(fields["description"])

        margin = fields.get("margin_percent")
        if margin is not None:
            product.margin_percent = margin
            product.price_cents = calculate_price_with_margin(
                product.original_price_cents or 0, margin
            )
        elif fields.get("price_cents") is not None:
            product.price_cents = fields["price_cents"]

        for key in DRAFT_FIELDS:
            if fields.get(key) is not None:
                setattr(product, key, fields[key])
        if fields.get("category_id") is not None:
            product.is_manually_mapped = True

        product.is_edited = True
        product.edited_at = utcnow()
        await self.session.flush()
        logger.info("Draft edited", product_id=product_id)
        return product

    async def publish(self, product_id: int) -> Product:
        product = await self._get_draft(product_id)

        if product.category_id is None:
            raise DomainValidationError("A category is required before publishing")
        if not (product.name or "").strip():
            raise DomainValidationError("A name is required before publishing")
        if product.price_cents <= 0:
            raise DomainValidationError("Price must be greater than zero")

        product.status = ProductStatus.ACTIVE
        await self.session.flush()
        logger.info("Product published", product_id=product_id)
        return product

    async def reject(self, product_id: int, reason: str | None = None) -> Product:
        product = await self._get_draft(product_id)
        product.status = ProductStatus.REJECTED
        await self.session.flush()
        logger.info("Draft rejected", product_id=product_id, reason=reason)
        return product

    # -------------------------------------------------------------------------
    # Update notifications
    # -------------------------------------------------------------------------

    async def list_notifications(
        self, unread_only: bool = False, limit: int = 50
    ) -> list[ProductUpdateNotification]:
        query = select(ProductUpdateNotification)
        if unread_only:
            query = query.where(ProductUpdateNotification.is_read.is_(False))
        result = await self.session.execute(
            query.order_by(
                ProductUpdateNotification.created_at.desc(), ProductUpdateNotification.id.desc()
            ).limit(limit)
        )
        return list(result.scalars().all())

    async def mark_notification_read(self, notification_id: int) -> ProductUpdateNotification:
        notification = await self.session.get(ProductUpdateNotification, notification_id)
        if notification is None:
            raise NotFoundError(f"Notification {notification_id} not found")
        notification.is_read = True
        notification.read_at = utcnow()
        await self.session.flush()
        return notification

    async def mark_all_notifications_read(self) -> int:
        result = await self.session.execute(
            update(ProductUpdateNotification)
            .where(ProductUpdateNotification.is_read.is_(False))
            .values(is_read=True, read_at=utcnow())
        )
        return result.rowcount or 0
