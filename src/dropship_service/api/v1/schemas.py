"""Response models shared by several routers."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict

from dropship_service.infrastructure.database.models import (
    ImportStatus,
    MappingStatus,
    OrderStatus,
    ProductSource,
    ProductStatus,
    StoreProductStatus,
    SupplierStatus,
    UserRole,
    UserStatus,
    WebhookStatus,
)


class ORMModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class Page(BaseModel):
    total: int
    page: int
    limit: int


# =============================================================================
# Catalog
# =============================================================================


class CategoryResponse(ORMModel):
    id: int
    name: str
    slug: str
    description: str | None = None
    image: str | None = None
    is_active: bool
    product_count: int = 0


class SupplierResponse(ORMModel):
    id: int
    name: str
    description: str | None = None
    api_url: str | None = None
    status: SupplierStatus
    last_sync_at: datetime | None = None


class ProductResponse(ORMModel):
    id: int
    name: str
    description: str | None = None
    price_cents: int
    original_price_cents: int | None = None
    margin_percent: float | None = None
    image: str | None = None
    images: list[str] | None = None
    stock: int
    badge: str | None = None
    status: ProductStatus
    category_id: int | None = None
    supplier_id: int | None = None
    source: ProductSource
    external_category: str | None = None
    cj_product_id: str | None = None
    product_sku: str | None = None
    is_manually_mapped: bool
    is_edited: bool
    import_status: ImportStatus | None = None
    created_at: datetime
    updated_at: datetime


class ProductPage(Page):
    items: list[ProductResponse]


class VariantResponse(ORMModel):
    id: int
    product_id: int
    cj_variant_id: str | None = None
    name: str | None = None
    sku: str | None = None
    price_cents: int
    stock: int
    weight: float | None = None
    dimensions: dict[str, Any] | None = None
    image: str | None = None
    properties: dict[str, Any] | None = None
    is_active: bool


class StoreProductResponse(ORMModel):
    id: int
    cj_product_id: str
    name: str
    description: str | None = None
    cost_price_cents: int
    suggested_price_cents: int | None = None
    image: str | None = None
    images: list[str] | None = None
    category: str | None = None
    cj_category_id: str | None = None
    product_sku: str | None = None
    product_weight: float | None = None
    status: StoreProductStatus
    is_favorite: bool


class MappingResponse(ORMModel):
    id: int
    supplier_id: int
    external_category: str
    category_id: int
    status: MappingStatus


class UnmappedCategoryResponse(ORMModel):
    id: int
    supplier_id: int
    external_category: str
    product_count: int
    first_seen_at: datetime
    last_seen_at: datetime


class NotificationResponse(ORMModel):
    id: int
    product_id: int
    cj_product_id: str | None = None
    product_name: str
    changes: list[str]
    is_read: bool
    created_at: datetime


# =============================================================================
# Users & Orders
# =============================================================================


class UserResponse(ORMModel):
    id: int
    email: str
    name: str | None = None
    role: UserRole
    status: UserStatus
    created_at: datetime


class OrderItemResponse(ORMModel):
    id: int
    product_id: int
    variant_id: int | None = None
    quantity: int
    unit_price_cents: int


class OrderResponse(ORMModel):
    id: int
    user_id: int
    status: OrderStatus
    total_cents: int
    shipping_name: str | None = None
    shipping_address: str | None = None
    shipping_city: str | None = None
    shipping_province: str | None = None
    shipping_zip: str | None = None
    shipping_country_code: str | None = None
    shipping_phone: str | None = None
    tracking_number: str | None = None
    logistic_name: str | None = None
    tracking_status: str | None = None
    items: list[OrderItemResponse]
    created_at: datetime


class CJOrderMappingResponse(ORMModel):
    id: int
    order_id: int
    cj_order_id: str
    cj_order_number: str | None = None
    status: str | None = None
    track_number: str | None = None


# =============================================================================
# Integration
# =============================================================================


class WebhookLogResponse(ORMModel):
    id: int
    message_id: str
    type: str
    status: WebhookStatus
    error: str | None = None
    result: dict[str, Any] | None = None
    processing_time_ms: int | None = None
    received_at: datetime
    processed_at: datetime | None = None


class CJConfigResponse(ORMModel):
    enabled: bool
    tier: str
    webhooks_enabled: bool
