"""Product API endpoints: storefront listing, admin CRUD and draft review."""

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from dropship_service.api.v1.schemas import (
    NotificationResponse,
    ProductPage,
    ProductResponse,
    VariantResponse,
)
from dropship_service.infrastructure.database.connection import get_session
from dropship_service.infrastructure.database.models import ProductSource, ProductStatus
from dropship_service.integrations.cj import CJClient, get_cj_client
from dropship_service.services.catalog import CJCatalogService
from dropship_service.services.category_mapping import CategoryMappingService
from dropship_service.services.products import ProductService
from shared.constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE

router = APIRouter()


# =============================================================================
# Models
# =============================================================================


class ProductCreate(BaseModel):
    """Request model for a manually created product."""

    name: str = Field(..., min_length=1, max_length=500)
    description: str | None = None
    price_cents: int = Field(..., ge=0)
    original_price_cents: int | None = Field(None, ge=0)
    image: str | None = None
    images: list[str] | None = None
    stock: int = Field(0, ge=0)
    badge: str | None = None
    status: ProductStatus = ProductStatus.ACTIVE
    category_id: int | None = None
    supplier_id: int | None = None


class ProductUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=500)
    description: str | None = None
    price_cents: int | None = Field(None, ge=0)
    original_price_cents: int | None = Field(None, ge=0)
    image: str | None = None
    images: list[str] | None = None
    stock: int | None = Field(None, ge=0)
    badge: str | None = None
    status: ProductStatus | None = None
    category_id: int | None = None


class DraftUpdate(BaseModel):
    """Edits allowed on a draft before publication."""

    name: str | None = Field(None, min_length=1)
    description: str | None = None
    margin_percent: float | None = Field(None, ge=0, le=1000, description="Recomputes price from cost")
    price_cents: int | None = Field(None, ge=0)
    image: str | None = None
    images: list[str] | None = None
    badge: str | None = None
    stock: int | None = Field(None, ge=0)
    category_id: int | None = None


class RejectRequest(BaseModel):
    reason: str | None = None


class CategoryCorrection(BaseModel):
    category_id: int
    reason: str | None = None


class ProductDetailResponse(ProductResponse):
    variants: list[VariantResponse] = []


class ApplyMappingsResponse(BaseModel):
    total: int
    updated: int


class VariantSyncResponse(BaseModel):
    created: int
    updated: int


class ReadAllResponse(BaseModel):
    updated: int


# =============================================================================
# Storefront
# =============================================================================


@router.get("", response_model=ProductPage)
async def list_products(
    category_id: int | None = Query(None),
    search: str | None = Query(None, max_length=200),
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    session: AsyncSession = Depends(get_session),
) -> ProductPage:
    """
    List products visible in the storefront.

    Only **active** products are returned. Drafts, rejected and inactive
    products are never exposed here.
    """
    items, total = await ProductService(session).list_public(
        category_id=category_id, search=search, page=page, limit=limit
    )
    return ProductPage(
        items=[ProductResponse.model_validate(p) for p in items],
        total=total,
        page=page,
        limit=limit,
    )


# =============================================================================
# Admin
# =============================================================================


@router.get("/admin", response_model=ProductPage)
async def list_products_admin(
    status: ProductStatus | None = Query(None),
    source: ProductSource | None = Query(None),
    category_id: int | None = Query(None),
    search: str | None = Query(None, max_length=200),
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    session: AsyncSession = Depends(get_session),
) -> ProductPage:
    """List every product regardless of status."""
    items, total = await ProductService(session).list_admin(
        status=status, source=source, category_id=category_id, search=search, page=page, limit=limit
    )
    return ProductPage(
        items=[ProductResponse.model_validate(p) for p in items],
        total=total,
        page=page,
        limit=limit,
    )


@router.get("/drafts", response_model=ProductPage)
async def list_drafts(
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    session: AsyncSession = Depends(get_session),
) -> ProductPage:
    items, total = await ProductService(session).list_drafts(page=page, limit=limit)
    return ProductPage(
        items=[ProductResponse.model_validate(p) for p in items],
        total=total,
        page=page,
        limit=limit,
    )


@router.post("/drafts/apply-mappings", response_model=ApplyMappingsResponse)
async def apply_mappings_to_drafts(
    session: AsyncSession = Depends(get_session),
) -> ApplyMappingsResponse:
    """
    Categorize waiting drafts from the category mapping table.

    Only drafts without a category that were never manually categorized
    are updated.
    """
    result = await CategoryMappingService(session).apply_mappings_to_drafts()
    return ApplyMappingsResponse(**result)


@router.get("/notifications", response_model=list[NotificationResponse])
async def list_notifications(
    unread_only: bool = Query(False),
    limit: int = Query(50, ge=1, le=200),
    session: AsyncSession = Depends(get_session),
) -> list[NotificationResponse]:
    """Supplier-side changes detected on imported products."""
    notifications = await ProductService(session).list_notifications(
        unread_only=unread_only, limit=limit
    )
    return [NotificationResponse.model_validate(n) for n in notifications]


@router.post("/notifications/read-all", response_model=ReadAllResponse)
async def mark_all_notifications_read(
    session: AsyncSession = Depends(get_session),
) -> ReadAllResponse:
    updated = await ProductService(session).mark_all_notifications_read()
    return ReadAllResponse(updated=updated)


@router.post("/notifications/{notification_id}/read", response_model=NotificationResponse)
async def mark_notification_read(
    notification_id: int,
    session: AsyncSession = Depends(get_session),
) -> NotificationResponse:
    notification = await ProductService(session).mark_notification_read(notification_id)
    return NotificationResponse.model_validate(notification)


@router.get("/admin/{product_id}", response_model=ProductDetailResponse)
async def get_product_admin(
    product_id: int,
    session: AsyncSession = Depends(get_session),
) -> ProductDetailResponse:
    service = ProductService(session)
    return await _detail(service, await service.get_product(product_id))


@router.post("", response_model=ProductResponse, status_code=201)
async def create_product(
    request: ProductCreate,
    session: AsyncSession = Depends(get_session),
) -> ProductResponse:
    product = await ProductService(session).create_product(**request.model_dump())
    return ProductResponse.model_validate(product)


@router.patch("/{product_id}", response_model=ProductResponse)
async def update_product(
    product_id: int,
    request: ProductUpdate,
    session: AsyncSession = Depends(get_session),
) -> ProductResponse:
    product = await ProductService(session).update_product(
        product_id, **request.model_dump(exclude_unset=True)
    )
    return ProductResponse.model_validate(product)


@router.delete("/{product_id}", status_code=204)
async def delete_product(
    product_id: int,
    session: AsyncSession = Depends(get_session),
) -> None:
    await ProductService(session).delete_product(product_id)


@router.patch("/{product_id}/draft", response_model=ProductResponse)
async def edit_draft(
    product_id: int,
    request: DraftUpdate,
    session: AsyncSession = Depends(get_session),
) -> ProductResponse:
    """
    Edit a draft product.

    - `margin_percent` recomputes the price from the supplier cost
    - Name and description are cleaned
    - The product is flagged as edited so supplier updates keep the admin text
    """
    product = await ProductService(session).edit_draft(
        product_id, **request.model_dump(exclude_unset=True)
    )
    return ProductResponse.model_validate(product)


@router.post("/{product_id}/publish", response_model=ProductResponse)
async def publish_product(
    product_id: int,
    session: AsyncSession = Depends(get_session),
) -> ProductResponse:
    """
    Publish a draft.

    **Requirements:** a category, a non-blank name and a price above zero.
    """
    product = await ProductService(session).publish(product_id)
    return ProductResponse.model_validate(product)


@router.post("/{product_id}/reject", response_model=ProductResponse)
async def reject_product(
    product_id: int,
    request: RejectRequest | None = None,
    session: AsyncSession = Depends(get_session),
) -> ProductResponse:
    product = await ProductService(session).reject(
        product_id, reason=request.reason if request else None
    )
    return ProductResponse.model_validate(product)


@router.put("/{product_id}/category", response_model=ProductResponse)
async def correct_category(
    product_id: int,
    request: CategoryCorrection,
    session: AsyncSession = Depends(get_session),
) -> ProductResponse:
    """Manually set the category; automatic mapping will leave it alone."""
    product = await CategoryMappingService(session).correct_product_category(
        product_id, request.category_id, reason=request.reason
    )
    return ProductResponse.model_validate(product)


@router.post("/{product_id}/sync-variants", response_model=VariantSyncResponse)
async def sync_variants(
    product_id: int,
    session: AsyncSession = Depends(get_session),
    client: CJClient = Depends(get_cj_client),
) -> VariantSyncResponse:
    result = await CJCatalogService(session, client).sync_variants(product_id)
    return VariantSyncResponse(**result)


@router.get("/{product_id}", response_model=ProductDetailResponse)
async def get_product(
    product_id: int,
    session: AsyncSession = Depends(get_session),
) -> ProductDetailResponse:
    service = ProductService(session)
    return await _detail(service, await service.get_public_product(product_id))


async def _detail(service: ProductService, product) -> ProductDetailResponse:
    variants = await service.get_variants(product.id)
    detail = ProductDetailResponse.model_validate(product)
    detail.variants = [VariantResponse.model_validate(v) for v in variants]
    return detail
