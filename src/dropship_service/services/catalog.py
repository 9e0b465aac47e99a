"""CJ catalog service.

Covers the path from the CJ catalog to storefront drafts: taxonomy sync,
cached product search, staging products in the local store, preparing
drafts for publication, and refreshing variants and inventory.
"""

from typing import Any

import structlog
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from dropship_service.config import Settings, get_settings
from dropship_service.exceptions import (
    CJAPIError,
    ConflictError,
    DomainValidationError,
    NotFoundError,
)
from dropship_service.infrastructure.database.models import (
    ExternalCategory,
    Product,
    ProductSource,
    ProductStatus,
    ProductVariant,
    StoreProduct,
    StoreProductStatus,
    Supplier,
    SyncStatus,
    utcnow,
)
from dropship_service.infrastructure.redis import CacheService, params_key
from dropship_service.integrations.cj import CJClient
from dropship_service.services.category_mapping import CategoryMappingService
from dropship_service.services.deduplication import DuplicatePreventionService
from dropship_service.services.normalization import (
    calculate_price_with_margin,
    clean_product_description,
    clean_product_name,
    flatten_category_tree,
    normalize_cj_variant,
    parse_image_list,
    parse_price_cents,
    summarize_cj_product,
    total_storage,
)
from dropship_service.services.suppliers import SupplierService
from shared.constants import (
    CJ_CATEGORY_TREE_CACHE_KEY,
    CJ_SEARCH_CACHE_PREFIX,
    SYNC_BATCH_SIZE,
)

logger = structlog.get_logger()

STORE_EDITABLE_FIELDS = (
    "name",
    "description",
    "suggested_price_cents",
    "image",
    "category",
    "is_favorite",
)


class CJCatalogService:
    """Service for synchronizing the CJ catalog into the local schema."""

    def __init__(
        self,
        session: AsyncSession,
        client: CJClient,
        cache: CacheService | None = None,
        settings: Settings | None = None,
    ):
        self.session = session
        self.client = client
        self.cache = cache or CacheService(None)
        self.settings = settings or get_settings()
        self.mappings = CategoryMappingService(session)
        self.duplicates = DuplicatePreventionService(session)

    async def get_cj_supplier(self) -> Supplier:
        return await SupplierService(self.session).get_or_create_by_name(
            self.settings.cj_supplier_name,
            description="CJ Dropshipping supplier API",
            api_url=self.settings.cj_api_base_url,
        )

    # -------------------------------------------------------------------------
    # Taxonomy
    # -------------------------------------------------------------------------

    async def get_category_tree(self, refresh: bool = False) -> list[dict[str, Any]]:
        """CJ category tree, cached in Redis."""
        return await self.cache.get_or_load(
            CJ_CATEGORY_TREE_CACHE_KEY,
            self.client.get_categories,
            ttl_seconds=self.settings.category_tree_cache_ttl_seconds,
            refresh=refresh,
        )

    async def sync_categories(self) -> dict[str, int]:
        """Upsert the CJ taxonomy into external_categories."""
        sync_id = "cj_categories"
        await self._update_sync_status(sync_id, status="running")

        try:
            tree = await self.get_category_tree(refresh=True)
            nodes = flatten_category_tree(tree)
            supplier = await self.get_cj_supplier()

            result = await self.session.execute(
                select(ExternalCategory).where(ExternalCategory.supplier_id == supplier.id)
            )
            existing = {c.external_id: c for c in result.scalars().all()}

            created = 0
            updated = 0
            for processed, node in enumerate(nodes, start=1):
                category = existing.get(node.external_id)
                if category is None:
                    category = ExternalCategory(
                        supplier_id=supplier.id,
                        external_id=node.external_id,
                        name=node.name,
                        parent_external_id=node.parent_external_id,
                        level=node.level,
                    )
                    self.session.add(category)
                    existing[node.external_id] = category
                    created += 1
                elif (
                    category.name != node.name
                    or category.parent_external_id != node.parent_external_id
                    or category.level != node.level
                ):
                    category.name = node.name
                    category.parent_external_id = node.parent_external_id
                    category.level = node.level
                    updated += 1

                if processed % SYNC_BATCH_SIZE == 0:
                    await self.session.flush()

            supplier.last_sync_at = utcnow()
            await self.session.flush()
            await self._update_sync_status(sync_id, status="idle", records_synced=len(nodes))
            # Cached searches may reference renamed or removed category ids
            await self.cache.invalidate_prefix(CJ_SEARCH_CACHE_PREFIX)

            logger.info(
                "CJ categories synced", total=len(nodes), created=created, updated=updated
            )
            return {"total": len(nodes), "created": created, "updated": updated}

        except Exception as e:
            logger.error("CJ category sync failed", error=str(e))
            await self.session.rollback()
            await self._update_sync_status(sync_id, status="error", error_message=str(e))
            raise

    async def list_external_categories(
        self, level: int | None = None, search: str | None = None
    ) -> list[ExternalCategory]:
        query = select(ExternalCategory).order_by(ExternalCategory.level, ExternalCategory.name)
        if level is not None:
            query = query.where(ExternalCategory.level == level)
        if search:
            query = query.where(ExternalCategory.name.ilike(f"%{search}%"))
        result = await self.session.execute(query)
        return list(result.scalars().all())

    # -------------------------------------------------------------------------
    # Search
    # -------------------------------------------------------------------------

    async def search_products(self, **params: Any) -> dict[str, Any]:
        """Search the CJ catalog; results are cached per parameter set."""
        clean = {k: v for k, v in params.items() if v is not None}

        async def load() -> dict[str, Any]:
            data = await self.client.search_products(**clean)
            return {
                "page": data["page"],
                "size": data["size"],
                "total": data["total"],
                "products": [summarize_cj_product(raw) for raw in data["list"]],
            }

        return await self.cache.get_or_load(
            params_key(CJ_SEARCH_CACHE_PREFIX, clean),
            load,
            ttl_seconds=self.settings.search_cache_ttl_seconds,
        )

    async def get_product_details(self, pid: str) -> dict[str, Any]:
        return await self.client.get_product(pid)

    # -------------------------------------------------------------------------
    # Store (staged products)
    # -------------------------------------------------------------------------

    @staticmethod
    def _store_values(raw: dict[str, Any]) -> dict[str, Any]:
        images = parse_image_list(raw.get("productImageSet") or raw.get("productImage"))
        return {
            "name": raw.get("productNameEn") or raw.get("productName") or raw.get("pid"),
            "description": raw.get("description"),
            "cost_price_cents": parse_price_cents(raw.get("sellPrice")),
            "suggested_price_cents": parse_price_cents(raw.get("suggestSellPrice")) or None,
            "image": images[0] if images else None,
            "images": images,
            "category": raw.get("categoryName"),
            "cj_category_id": raw.get("categoryId"),
            "product_sku": raw.get("productSku"),
            "product_weight": _as_float(raw.get("productWeight")),
            "variants": raw.get("variants") or [],
        }

    async def get_store_product(self, store_product_id: int) -> StoreProduct:
        store_product = await self.session.get(StoreProduct, store_product_id)
        if store_product is None:
            raise NotFoundError(f"Store product {store_product_id} not found")
        return store_product

    async def get_store_product_by_pid(self, pid: str) -> StoreProduct | None:
        result = await self.session.execute(
            select(StoreProduct).where(StoreProduct.cj_product_id == pid)
        )
        return result.scalar_one_or_none()

    async def add_to_store(self, pids: list[str]) -> dict[str, Any]:
        """Fetch CJ products and stage them in the store, one row per pid."""
        created = 0
        updated = 0
        errors: list[dict[str, str]] = []

        for pid in dict.fromkeys(pids):
            try:
                raw = await self.client.get_product(pid)
            except CJAPIError as e:
                logger.warning("CJ product fetch failed", pid=pid, error=e.message)
                errors.append({"pid": pid, "error": e.message})
                continue

            values = self._store_values(raw)
            store_product = await self.get_store_product_by_pid(pid)
            if store_product is None:
                self.session.add(
                    StoreProduct(cj_product_id=pid, status=StoreProductStatus.AVAILABLE, **values)
                )
                created += 1
            else:
                for key, value in values.items():
                    setattr(store_product, key, value)
                updated += 1
            await self.session.flush()

        logger.info("Products added to store", created=created, updated=updated, errors=len(errors))
        return {"created": created, "updated": updated, "errors": errors}

    async def list_store_products(
        self,
        status: StoreProductStatus | None = None,
        category: str | None = None,
        search: str | None = None,
        page: int = 1,
        limit: int = 20,
    ) -> dict[str, Any]:
        query = select(StoreProduct)
        if status is not None:
            query = query.where(StoreProduct.status == status)
        if category:
            query = query.where(StoreProduct.category == category)
        if search:
            pattern = f"%{search}%"
            query = query.where(
                or_(StoreProduct.name.ilike(pattern), StoreProduct.product_sku.ilike(pattern))
            )

        total = await self.session.scalar(select(func.count()).select_from(query.subquery())) or 0
        result = await self.session.execute(
            query.order_by(StoreProduct.created_at.desc(), StoreProduct.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        categories = await self.session.execute(
            select(StoreProduct.category)
            .where(StoreProduct.category.is_not(None))
            .distinct()
            .order_by(StoreProduct.category)
        )
        return {
            "items": list(result.scalars().all()),
            "total": total,
            "page": page,
            "limit": limit,
            "pages": (total + limit - 1) // limit if limit else 0,
            "categories": [c for c in categories.scalars().all()],
        }

    async def toggle_selection(self, store_product_id: int) -> StoreProduct:
        store_product = await self.get_store_product(store_product_id)
        if store_product.status == StoreProductStatus.IMPORTED:
            raise DomainValidationError("Imported products cannot be re-selected")

        store_product.status = (
            StoreProductStatus.AVAILABLE
            if store_product.status == StoreProductStatus.SELECTED
            else StoreProductStatus.SELECTED
        )
        await self.session.flush()
        return store_product

    async def update_store_product(self, store_product_id: int, **fields: Any) -> StoreProduct:
        store_product = await self.get_store_product(store_product_id)
        for key in STORE_EDITABLE_FIELDS:
            if fields.get(key) is not None:
                setattr(store_product, key, fields[key])
        await self.session.flush()
        return store_product

    async def get_store_stats(self) -> dict[str, int]:
        rows = await self.session.execute(
            select(StoreProduct.status, func.count()).group_by(StoreProduct.status)
        )
        counts = dict(rows.all())
        return {
            "total": sum(counts.values()),
            "available": counts.get(StoreProductStatus.AVAILABLE, 0),
            "selected": counts.get(StoreProductStatus.SELECTED, 0),
            "imported": counts.get(StoreProductStatus.IMPORTED, 0),
        }

    # -------------------------------------------------------------------------
    # Import
    # -------------------------------------------------------------------------

    async def prepare_for_publication(
        self,
        store_product_id: int,
        supplier_id: int | None = None,
        category_id: int | None = None,
        margin_percent: float | None = None,
    ) -> Product:
        """Turn a staged CJ product into a storefront draft.

        The mapping table wins over the supplied category. Unmapped CJ
        categories are recorded for later mapping.
        """
        store_product = await self.get_store_product(store_product_id)

        check = await self.duplicates.check_cj_product_duplicate(store_product.cj_product_id)
        if check.is_duplicate:
            raise ConflictError(
                f"CJ product {store_product.cj_product_id} has already been imported"
            )

        if supplier_id is None:
            supplier_id = (await self.get_cj_supplier()).id
        elif await self.session.get(Supplier, supplier_id) is None:
            raise NotFoundError(f"Supplier {supplier_id} not found")

        mapped_category_id = await self.mappings.resolve_category(supplier_id, store_product.category)
        margin = self.settings.default_margin_percent if margin_percent is None else margin_percent

        product = Product(
            name=clean_product_name(store_product.name) or store_product.cj_product_id,
            description=clean_product_description(store_product.description),
            price_cents=calculate_price_with_margin(store_product.cost_price_cents, margin),
            original_price_cents=store_product.cost_price_cents,
            margin_percent=margin,
            image=store_product.image,
            images=list(store_product.images or []),
            stock=0,
            status=ProductStatus.DRAFT,
            category_id=mapped_category_id or category_id,
            supplier_id=supplier_id,
            source=ProductSource.CJ_DROPSHIPPING,
            external_category=store_product.category,
            cj_product_id=store_product.cj_product_id,
            product_sku=store_product.product_sku,
            is_manually_mapped=False,
            is_edited=False,
        )
        self.session.add(product)
        await self.session.flush()

        stock = 0
        for raw in store_product.variants or []:
            values = normalize_cj_variant(raw)
            if not values["cj_variant_id"]:
                continue
            variant_stock = int(raw.get("inventoryNum") or raw.get("stock") or 0)
            self.session.add(ProductVariant(product_id=product.id, stock=variant_stock, **values))
            stock += variant_stock
        product.stock = stock

        store_product.status = StoreProductStatus.IMPORTED
        await self.session.flush()

        logger.info(
            "Draft prepared from CJ product",
            product_id=product.id,
            cj_product_id=product.cj_product_id,
            category_id=product.category_id,
            mapped=mapped_category_id is not None,
        )
        return product

    async def import_selected(
        self, supplier_id: int | None = None, margin_percent: float | None = None
    ) -> dict[str, Any]:
        result = await self.session.execute(
            select(StoreProduct.id).where(StoreProduct.status == StoreProductStatus.SELECTED)
        )
        ids = list(result.scalars().all())

        imported: list[int] = []
        errors: list[dict[str, Any]] = []
        for store_product_id in ids:
            try:
                product = await self.prepare_for_publication(
                    store_product_id, supplier_id=supplier_id, margin_percent=margin_percent
                )
                imported.append(product.id)
            except (ConflictError, NotFoundError) as e:
                errors.append({"store_product_id": store_product_id, "error": e.message})

        logger.info("Selected products imported", imported=len(imported), errors=len(errors))
        return {"total": len(ids), "imported": imported, "errors": errors}

    # -------------------------------------------------------------------------
    # Variants & Inventory
    # -------------------------------------------------------------------------

    async def sync_variants(self, product_id: int) -> dict[str, int]:
        """Refresh a product's variants from CJ, upserting by vid."""
        product = await self.session.get(Product, product_id)
        if product is None:
            raise NotFoundError(f"Product {product_id} not found")
        if not product.cj_product_id:
            raise DomainValidationError(f"Product {product_id} is not a CJ product")

        raw_variants = await self.client.get_variants(product.cj_product_id)
        result = await self.session.execute(
            select(ProductVariant).where(ProductVariant.product_id == product.id)
        )
        existing = {v.cj_variant_id: v for v in result.scalars().all() if v.cj_variant_id}

        created = 0
        updated = 0
        for raw in raw_variants:
            values = normalize_cj_variant(raw)
            vid = values["cj_variant_id"]
            if not vid:
                continue
            variant = existing.get(vid)
            if variant is None:
                self.session.add(ProductVariant(product_id=product.id, **values))
                created += 1
            else:
                for key, value in values.items():
                    setattr(variant, key, value)
                updated += 1

        await self.session.flush()
        logger.info("CJ variants synced", product_id=product_id, created=created, updated=updated)
        return {"created": created, "updated": updated}

    async def sync_inventory(self, product_ids: list[int] | None = None) -> dict[str, int]:
        """Refresh variant and product stock from CJ warehouses."""
        query = select(ProductVariant).join(Product, Product.id == ProductVariant.product_id).where(
            Product.source == ProductSource.CJ_DROPSHIPPING,
            ProductVariant.cj_variant_id.is_not(None),
        )
        if product_ids:
            query = query.where(Product.id.in_(product_ids))
        variants = list((await self.session.execute(query)).scalars().all())

        updated = 0
        errors = 0
        touched: set[int] = set()
        for variant in variants:
            try:
                entries = await self.client.get_variant_stock(variant.cj_variant_id)
            except CJAPIError as e:
                logger.warning("CJ stock query failed", vid=variant.cj_variant_id, error=e.message)
                errors += 1
                continue
            stock = total_storage(entries)
            if stock != variant.stock:
                variant.stock = stock
                updated += 1
            touched.add(variant.product_id)

        await self.session.flush()
        for product_id in touched:
            await recompute_product_stock(self.session, product_id)

        logger.info("CJ inventory synced", variants=len(variants), updated=updated, errors=errors)
        return {"variants": len(variants), "updated": updated, "errors": errors}

    async def _update_sync_status(
        self,
        sync_id: str,
        status: str,
        records_synced: int | None = None,
        error_message: str | None = None,
    ) -> None:
        """Update and commit the sync status record."""
        sync_status = await self.session.get(SyncStatus, sync_id)
        if sync_status is None:
            sync_status = SyncStatus(id=sync_id, records_synced=0)
            self.session.add(sync_status)

        sync_status.status = status
        sync_status.error_message = error_message
        if records_synced is not None:
            sync_status.records_synced = records_synced
            sync_status.last_sync_at = utcnow()
        await self.session.commit()


async def recompute_product_stock(session: AsyncSession, product_id: int) -> int:
    """Set a product's stock to the sum of its active variants."""
    total = await session.scalar(
        select(func.coalesce(func.sum(ProductVariant.stock), 0)).where(
            ProductVariant.product_id == product_id,
            ProductVariant.is_active.is_(True),
        )
    )
    product = await session.get(Product, product_id)
    if product is not None:
        product.stock = int(total or 0)
        await session.flush()
    return int(total or 0)


def _as_float(value: Any) -> float | None:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return parse_price_cents(value) / 100 or None
