"""CJ Dropshipping integration endpoints: catalog browsing, staging and import."""

from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from dropship_service.api.v1.schemas import (
    CJConfigResponse,
    ORMModel,
    ProductResponse,
    StoreProductResponse,
)
from dropship_service.config import Settings, get_settings
from dropship_service.exceptions import DomainValidationError
from dropship_service.infrastructure.database.connection import get_session
from dropship_service.infrastructure.database.models import StoreProductStatus, SyncStatus
from dropship_service.infrastructure.redis import CacheService, get_cache
from dropship_service.integrations.cj import CJClient, get_cj_client
from dropship_service.services.catalog import CJCatalogService
from dropship_service.services.cj_config import CJConfigService
from dropship_service.services.deduplication import DuplicatePreventionService
from dropship_service.services.webhooks import WebhookService
from shared.constants import CJ_MAX_PAGE_SIZE, DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE

router = APIRouter()


# =============================================================================
# Models
# =============================================================================


class CJConfigUpdate(BaseModel):
    enabled: bool | None = None
    tier: str | None = Field(None, description="free, plus, prime or advanced")
    webhooks_enabled: bool | None = None


class SyncStatusResponse(ORMModel):
    id: str
    status: str | None = None
    records_synced: int | None = None
    last_sync_at: datetime | None = None
    error_message: str | None = None


class CJStatusResponse(BaseModel):
    config: CJConfigResponse
    connected: bool
    webhook_url: str | None = None
    syncs: list[SyncStatusResponse]


class ExternalCategoryResponse(ORMModel):
    id: int
    supplier_id: int
    external_id: str
    name: str
    parent_external_id: str | None = None
    level: int


class CategorySyncResponse(BaseModel):
    total: int
    created: int
    updated: int


class CJProductSummary(BaseModel):
    pid: str | None = None
    name: str
    sku: str | None = None
    image: str | None = None
    sell_price_cents: int
    category: str | None = None
    category_id: str | None = None
    weight: float | str | None = None


class CJSearchResponse(BaseModel):
    page: int
    size: int
    total: int
    products: list[CJProductSummary]


class StoreAddRequest(BaseModel):
    pids: list[str] = Field(..., min_length=1, max_length=100)


class StoreAddResponse(BaseModel):
    created: int
    updated: int
    errors: list[dict[str, str]] = []


class StorePage(BaseModel):
    items: list[StoreProductResponse]
    total: int
    page: int
    limit: int
    pages: int
    categories: list[str]


class StoreProductUpdate(BaseModel):
    name: str | None = Field(None, min_length=1)
    description: str | None = None
    suggested_price_cents: int | None = Field(None, ge=0)
    image: str | None = None
    category: str | None = None
    is_favorite: bool | None = None


class StoreStats(BaseModel):
    total: int
    available: int
    selected: int
    imported: int


class PrepareRequest(BaseModel):
    """Options for turning a staged product into a storefront draft."""

    supplier_id: int | None = None
    category_id: int | None = Field(None, description="Used only when no mapping exists")
    margin_percent: float | None = Field(None, ge=0, le=1000)


class ImportSelectedRequest(BaseModel):
    supplier_id: int | None = None
    margin_percent: float | None = Field(None, ge=0, le=1000)


class ImportSelectedResponse(BaseModel):
    total: int
    imported: list[int]
    errors: list[dict[str, Any]] = []


class InventorySyncRequest(BaseModel):
    product_ids: list[int] | None = None


class InventorySyncResponse(BaseModel):
    variants: int
    updated: int
    errors: int


class WebhookConfigureRequest(BaseModel):
    enable: bool = True
    callback_url: str | None = Field(None, description="Defaults to CJ_WEBHOOK_BASE_URL + webhook path")


class WebhookConfigureResponse(BaseModel):
    enabled: bool
    callback_url: str


class FreightProduct(BaseModel):
    vid: str
    quantity: int = Field(1, ge=1)


class FreightRequest(BaseModel):
    start_country_code: str = Field("CN", min_length=2, max_length=2)
    end_country_code: str = Field(..., min_length=2, max_length=2)
    products: list[FreightProduct] = Field(..., min_length=1)


class IntegrationStats(BaseModel):
    store: StoreStats
    imports: dict[str, int]
    webhooks: dict[str, Any]


def _catalog(
    session: AsyncSession, client: CJClient, cache: CacheService, settings: Settings
) -> CJCatalogService:
    return CJCatalogService(session, client, cache=cache, settings=settings)


# =============================================================================
# Config & Status
# =============================================================================


@router.get("/config", response_model=CJConfigResponse)
async def get_config(
    session: AsyncSession = Depends(get_session),
) -> CJConfigResponse:
    return CJConfigResponse.model_validate(await CJConfigService(session).get_config())


@router.put("/config", response_model=CJConfigResponse)
async def update_config(
    request: CJConfigUpdate,
    session: AsyncSession = Depends(get_session),
) -> CJConfigResponse:
    config = await CJConfigService(session).update_config(**request.model_dump(exclude_unset=True))
    return CJConfigResponse.model_validate(config)


@router.get("/status", response_model=CJStatusResponse)
async def get_status(
    session: AsyncSession = Depends(get_session),
    client: CJClient = Depends(get_cj_client),
    settings: Settings = Depends(get_settings),
) -> CJStatusResponse:
    """
    Integration status.

    Includes the stored switches, whether CJ accepts our credentials, and
    the last run of every background sync.
    """
    config = await CJConfigService(session).get_config()
    connected = await client.test_connection() if config.enabled else False

    result = await session.execute(select(SyncStatus).order_by(SyncStatus.id))
    return CJStatusResponse(
        config=CJConfigResponse.model_validate(config),
        connected=connected,
        webhook_url=settings.cj_webhook_url,
        syncs=[SyncStatusResponse.model_validate(s) for s in result.scalars().all()],
    )


@router.get("/stats", response_model=IntegrationStats)
async def get_stats(
    session: AsyncSession = Depends(get_session),
    client: CJClient = Depends(get_cj_client),
    cache: CacheService = Depends(get_cache),
    settings: Settings = Depends(get_settings),
) -> IntegrationStats:
    catalog = _catalog(session, client, cache, settings)
    return IntegrationStats(
        store=StoreStats(**await catalog.get_store_stats()),
        imports=await DuplicatePreventionService(session).get_duplicate_stats(),
        webhooks=await WebhookService(session).get_stats(),
    )


# =============================================================================
# Taxonomy
# =============================================================================


@router.get("/categories")
async def get_category_tree(
    refresh: bool = Query(False),
    session: AsyncSession = Depends(get_session),
    client: CJClient = Depends(get_cj_client),
    cache: CacheService = Depends(get_cache),
    settings: Settings = Depends(get_settings),
) -> list[dict[str, Any]]:
    """CJ's three-level category tree as returned by CJ (cached)."""
    await CJConfigService(session).require_enabled()
    return await _catalog(session, client, cache, settings).get_category_tree(refresh=refresh)


@router.post("/categories/sync", response_model=CategorySyncResponse)
async def sync_categories(
    session: AsyncSession = Depends(get_session),
    client: CJClient = Depends(get_cj_client),
    cache: CacheService = Depends(get_cache),
    settings: Settings = Depends(get_settings),
) -> CategorySyncResponse:
    await CJConfigService(session).require_enabled()
    result = await _catalog(session, client, cache, settings).sync_categories()
    return CategorySyncResponse(**result)


@router.get("/categories/external", response_model=list[ExternalCategoryResponse])
async def list_external_categories(
    level: int | None = Query(None, ge=1, le=3),
    search: str | None = Query(None, max_length=200),
    session: AsyncSession = Depends(get_session),
    client: CJClient = Depends(get_cj_client),
    cache: CacheService = Depends(get_cache),
    settings: Settings = Depends(get_settings),
) -> list[ExternalCategoryResponse]:
    categories = await _catalog(session, client, cache, settings).list_external_categories(
        level=level, search=search
    )
    return [ExternalCategoryResponse.model_validate(c) for c in categories]


# =============================================================================
# Catalog
# =============================================================================


@router.get("/products/search", response_model=CJSearchResponse)
async def search_products(
    keyword: str | None = Query(None, max_length=200),
    category_id: str | None = Query(None),
    min_price: float | None = Query(None, ge=0),
    max_price: float | None = Query(None, ge=0),
    country_code: str | None = Query(None, min_length=2, max_length=2),
    page: int = Query(1, ge=1),
    size: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=CJ_MAX_PAGE_SIZE),
    session: AsyncSession = Depends(get_session),
    client: CJClient = Depends(get_cj_client),
    cache: CacheService = Depends(get_cache),
    settings: Settings = Depends(get_settings),
) -> CJSearchResponse:
    """
    Search the CJ catalog.

    **Parameters:**
    - **keyword**: English product name search
    - **category_id**: CJ category id
    - **min_price** / **max_price**: price range in USD

    Results are cached per parameter set.
    """
    if min_price is not None and max_price is not None and min_price > max_price:
        raise DomainValidationError("min_price cannot exceed max_price")
    await CJConfigService(session).require_enabled()
    result = await _catalog(session, client, cache, settings).search_products(
        page=page,
        size=size,
        keyword=keyword,
        category_id=category_id,
        min_price=min_price,
        max_price=max_price,
        country_code=country_code,
    )
    return CJSearchResponse(**result)


@router.get("/products/{pid}")
async def get_product_details(
    pid: str,
    session: AsyncSession = Depends(get_session),
    client: CJClient = Depends(get_cj_client),
    cache: CacheService = Depends(get_cache),
    settings: Settings = Depends(get_settings),
) -> dict[str, Any]:
    """Raw CJ product detail, including variants."""
    await CJConfigService(session).require_enabled()
    return await _catalog(session, client, cache, settings).get_product_details(pid)


@router.post("/freight")
async def calculate_freight(
    request: FreightRequest,
    session: AsyncSession = Depends(get_session),
    client: CJClient = Depends(get_cj_client),
) -> list[dict[str, Any]]:
    """Shipping options and costs for a set of CJ variants."""
    await CJConfigService(session).require_enabled()
    return await client.calculate_freight(
        start_country_code=request.start_country_code,
        end_country_code=request.end_country_code,
        products=[p.model_dump() for p in request.products],
    )


@router.get("/tracking/{track_number}")
async def get_tracking(
    track_number: str,
    session: AsyncSession = Depends(get_session),
    client: CJClient = Depends(get_cj_client),
) -> list[dict[str, Any]]:
    await CJConfigService(session).require_enabled()
    return await client.get_tracking(track_number)


# =============================================================================
# Store (staged products)
# =============================================================================


@router.post("/store", response_model=StoreAddResponse)
async def add_to_store(
    request: StoreAddRequest,
    session: AsyncSession = Depends(get_session),
    client: CJClient = Depends(get_cj_client),
    cache: CacheService = Depends(get_cache),
    settings: Settings = Depends(get_settings),
) -> StoreAddResponse:
    """Fetch CJ products by pid and stage them for review."""
    await CJConfigService(session).require_enabled()
    result = await _catalog(session, client, cache, settings).add_to_store(request.pids)
    return StoreAddResponse(**result)


@router.get("/store", response_model=StorePage)
async def list_store_products(
    status: StoreProductStatus | None = Query(None),
    category: str | None = Query(None),
    search: str | None = Query(None, max_length=200),
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    session: AsyncSession = Depends(get_session),
    client: CJClient = Depends(get_cj_client),
    cache: CacheService = Depends(get_cache),
    settings: Settings = Depends(get_settings),
) -> StorePage:
    result = await _catalog(session, client, cache, settings).list_store_products(
        status=status, category=category, search=search, page=page, limit=limit
    )
    result["items"] = [StoreProductResponse.model_validate(s) for s in result["items"]]
    return StorePage(**result)


@router.get("/store/stats", response_model=StoreStats)
async def store_stats(
    session: AsyncSession = Depends(get_session),
    client: CJClient = Depends(get_cj_client),
    cache: CacheService = Depends(get_cache),
    settings: Settings = Depends(get_settings),
) -> StoreStats:
    return StoreStats(**await _catalog(session, client, cache, settings).get_store_stats())


@router.post("/store/import-selected", response_model=ImportSelectedResponse)
async def import_selected(
    request: ImportSelectedRequest | None = None,
    session: AsyncSession = Depends(get_session),
    client: CJClient = Depends(get_cj_client),
    cache: CacheService = Depends(get_cache),
    settings: Settings = Depends(get_settings),
) -> ImportSelectedResponse:
    """Prepare every selected store product as a draft; duplicates are reported, not imported."""
    request = request or ImportSelectedRequest()
    result = await _catalog(session, client, cache, settings).import_selected(
        supplier_id=request.supplier_id, margin_percent=request.margin_percent
    )
    return ImportSelectedResponse(**result)


@router.post("/store/{store_product_id}/toggle", response_model=StoreProductResponse)
async def toggle_selection(
    store_product_id: int,
    session: AsyncSession = Depends(get_session),
    client: CJClient = Depends(get_cj_client),
    cache: CacheService = Depends(get_cache),
    settings: Settings = Depends(get_settings),
) -> StoreProductResponse:
    store_product = await _catalog(session, client, cache, settings).toggle_selection(
        store_product_id
    )
    return StoreProductResponse.model_validate(store_product)


@router.patch("/store/{store_product_id}", response_model=StoreProductResponse)
async def update_store_product(
    store_product_id: int,
    request: StoreProductUpdate,
    session: AsyncSession = Depends(get_session),
    client: CJClient = Depends(get_cj_client),
    cache: CacheService = Depends(get_cache),
    settings: Settings = Depends(get_settings),
) -> StoreProductResponse:
    store_product = await _catalog(session, client, cache, settings).update_store_product(
        store_product_id, **request.model_dump(exclude_unset=True)
    )
    return StoreProductResponse.model_validate(store_product)


@router.post("/store/{store_product_id}/prepare", response_model=ProductResponse, status_code=201)
async def prepare_for_publication(
    store_product_id: int,
    request: PrepareRequest | None = None,
    session: AsyncSession = Depends(get_session),
    client: CJClient = Depends(get_cj_client),
    cache: CacheService = Depends(get_cache),
    settings: Settings = Depends(get_settings),
) -> ProductResponse:
    """
    Create a storefront draft from a staged CJ product.

    - The category comes from the mapping table when one exists
    - Unmapped CJ categories are recorded for later mapping
    - Variants are copied and stock is summed from active variants

    **Errors:**
    - 409 if the CJ product was already imported
    """
    request = request or PrepareRequest()
    product = await _catalog(session, client, cache, settings).prepare_for_publication(
        store_product_id,
        supplier_id=request.supplier_id,
        category_id=request.category_id,
        margin_percent=request.margin_percent,
    )
    return ProductResponse.model_validate(product)


# =============================================================================
# Inventory & Webhooks
# =============================================================================


@router.post("/inventory/sync", response_model=InventorySyncResponse)
async def sync_inventory(
    request: InventorySyncRequest | None = None,
    session: AsyncSession = Depends(get_session),
    client: CJClient = Depends(get_cj_client),
    cache: CacheService = Depends(get_cache),
    settings: Settings = Depends(get_settings),
) -> InventorySyncResponse:
    await CJConfigService(session).require_enabled()
    product_ids = request.product_ids if request else None
    result = await _catalog(session, client, cache, settings).sync_inventory(product_ids)
    return InventorySyncResponse(**result)


@router.post("/webhooks/configure", response_model=WebhookConfigureResponse)
async def configure_webhooks(
    request: WebhookConfigureRequest,
    session: AsyncSession = Depends(get_session),
    client: CJClient = Depends(get_cj_client),
    settings: Settings = Depends(get_settings),
) -> WebhookConfigureResponse:
    """Register (or cancel) our callback URL with CJ for every webhook topic."""
    await CJConfigService(session).require_enabled()
    callback_url = request.callback_url or settings.cj_webhook_url
    if not callback_url:
        raise DomainValidationError("callback_url is required when CJ_WEBHOOK_BASE_URL is not set")

    await client.set_webhooks(callback_url, enable=request.enable)
    await CJConfigService(session).update_config(webhooks_enabled=request.enable)
    return WebhookConfigureResponse(enabled=request.enable, callback_url=callback_url)
