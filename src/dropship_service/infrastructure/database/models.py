"""SQLAlchemy models for the dropshipping catalog and order system.

Tables cover the storefront (products, categories, users, cart, wishlist,
orders) and the CJ Dropshipping integration (external taxonomy, category
mappings, staged store products, webhook logs, order mappings).
"""

from datetime import datetime, timezone
from enum import Enum as PyEnum
from typing import Optional

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def utcnow() -> datetime:
    """Naive UTC timestamp, matching the DateTime columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Base(DeclarativeBase):
    """Base class for all models."""


# =============================================================================
# Enums
# =============================================================================


class SupplierStatus(str, PyEnum):
    """Supplier connection state."""

    CONNECTED = "connected"
    DISCONNECTED = "disconnected"


class MappingStatus(str, PyEnum):
    """Category mapping state."""

    ACTIVE = "active"
    INACTIVE = "inactive"


class ProductStatus(str, PyEnum):
    """Product lifecycle status."""

    DRAFT = "draft"
    ACTIVE = "active"
    INACTIVE = "inactive"
    REJECTED = "rejected"


class ProductSource(str, PyEnum):
    """Where a product came from."""

    MANUAL = "manual"
    CJ_DROPSHIPPING = "cj-dropshipping"


class ImportStatus(str, PyEnum):
    """Last import outcome for supplier products."""

    NEW = "new"
    UPDATED = "updated"


class StoreProductStatus(str, PyEnum):
    """Staged CJ product status."""

    AVAILABLE = "available"
    SELECTED = "selected"
    IMPORTED = "imported"


class UserRole(str, PyEnum):
    CUSTOMER = "customer"
    ADMIN = "admin"


class UserStatus(str, PyEnum):
    ACTIVE = "active"
    SUSPENDED = "suspended"


class OrderStatus(str, PyEnum):
    """Order lifecycle status."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class WebhookStatus(str, PyEnum):
    """Webhook message processing state."""

    RECEIVED = "received"
    PROCESSED = "processed"
    ERROR = "error"


# =============================================================================
# Suppliers & Categories
# =============================================================================


class Supplier(Base):
    """External product supplier."""

    __tablename__ = "suppliers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    api_url: Mapped[Optional[str]] = mapped_column(String(500))
    status: Mapped[SupplierStatus] = mapped_column(
        Enum(SupplierStatus), default=SupplierStatus.DISCONNECTED, nullable=False
    )
    last_sync_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, server_default=func.now(), onupdate=utcnow, nullable=False
    )


class Category(Base):
    """Internal storefront category."""

    __tablename__ = "categories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    slug: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    description: Mapped[Optional[str]] = mapped_column(Text)
    image: Mapped[Optional[str]] = mapped_column(String(1000))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, server_default=func.now(), onupdate=utcnow, nullable=False
    )


class ExternalCategory(Base):
    """Supplier taxonomy node (CJ has three levels)."""

    __tablename__ = "external_categories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    supplier_id: Mapped[int] = mapped_column(
        ForeignKey("suppliers.id", ondelete="CASCADE"), nullable=False
    )
    external_id: Mapped[str] = mapped_column(String(255), nullable=False)
    name: Mapped[str] = mapped_column(String(500), nullable=False)
    parent_external_id: Mapped[Optional[str]] = mapped_column(String(255))
    level: Mapped[int] = mapped_column(Integer, default=1, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, server_default=func.now(), onupdate=utcnow, nullable=False
    )

    __table_args__ = (
        UniqueConstraint("supplier_id", "external_id", name="uq_external_categories_supplier_ext"),
        Index("ix_external_categories_name", "name"),
    )


class CategoryMapping(Base):
    """Declarative mapping of a supplier category name to an internal category."""

    __tablename__ = "category_mappings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    supplier_id: Mapped[int] = mapped_column(
        ForeignKey("suppliers.id", ondelete="CASCADE"), nullable=False
    )
    external_category: Mapped[str] = mapped_column(String(500), nullable=False)
    category_id: Mapped[int] = mapped_column(
        ForeignKey("categories.id", ondelete="CASCADE"), nullable=False
    )
    status: Mapped[MappingStatus] = mapped_column(
        Enum(MappingStatus), default=MappingStatus.ACTIVE, nullable=False
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, server_default=func.now(), onupdate=utcnow, nullable=False
    )

    __table_args__ = (
        UniqueConstraint(
            "supplier_id", "external_category", name="uq_category_mappings_supplier_ext"
        ),
    )


class UnmappedExternalCategory(Base):
    """Supplier categories seen during import with no mapping yet."""

    __tablename__ = "unmapped_external_categories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    supplier_id: Mapped[int] = mapped_column(
        ForeignKey("suppliers.id", ondelete="CASCADE"), nullable=False
    )
    external_category: Mapped[str] = mapped_column(String(500), nullable=False)
    product_count: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    first_seen_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, server_default=func.now(), nullable=False
    )
    last_seen_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, server_default=func.now(), nullable=False
    )

    __table_args__ = (
        UniqueConstraint(
            "supplier_id", "external_category", name="uq_unmapped_categories_supplier_ext"
        ),
    )


# =============================================================================
# Staged CJ Catalog
# =============================================================================


class StoreProduct(Base):
    """CJ product added to the local store for review before import."""

    __tablename__ = "store_products"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    cj_product_id: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    cost_price_cents: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    suggested_price_cents: Mapped[Optional[int]] = mapped_column(Integer)
    image: Mapped[Optional[str]] = mapped_column(String(1000))
    images: Mapped[Optional[list]] = mapped_column(JSON, default=list)
    category: Mapped[Optional[str]] = mapped_column(String(500))
    cj_category_id: Mapped[Optional[str]] = mapped_column(String(255))
    product_sku: Mapped[Optional[str]] = mapped_column(String(255))
    product_weight: Mapped[Optional[float]] = mapped_column(Float)
    variants: Mapped[Optional[list]] = mapped_column(JSON, default=list)
    status: Mapped[StoreProductStatus] = mapped_column(
        Enum(StoreProductStatus), default=StoreProductStatus.AVAILABLE, nullable=False
    )
    is_favorite: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, server_default=func.now(), onupdate=utcnow, nullable=False
    )

    __table_args__ = (Index("ix_store_products_status", "status"),)


# =============================================================================
# Products
# =============================================================================


class Product(Base):
    """Storefront product, either created manually or imported from a supplier."""

    __tablename__ = "products"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    price_cents: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    original_price_cents: Mapped[Optional[int]] = mapped_column(Integer)
    margin_percent: Mapped[Optional[float]] = mapped_column(Float)
    image: Mapped[Optional[str]] = mapped_column(String(1000))
    images: Mapped[Optional[list]] = mapped_column(JSON, default=list)
    stock: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    badge: Mapped[Optional[str]] = mapped_column(String(100))
    status: Mapped[ProductStatus] = mapped_column(
        Enum(ProductStatus), default=ProductStatus.DRAFT, nullable=False
    )

    category_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("categories.id", ondelete="SET NULL")
    )
    supplier_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("suppliers.id", ondelete="SET NULL")
    )
    source: Mapped[ProductSource] = mapped_column(
        Enum(ProductSource), default=ProductSource.MANUAL, nullable=False
    )
    external_category: Mapped[Optional[str]] = mapped_column(String(500))

    # Supplier identity
    cj_product_id: Mapped[Optional[str]] = mapped_column(String(255), unique=True)
    product_sku: Mapped[Optional[str]] = mapped_column(String(255))

    # Review/import tracking
    is_manually_mapped: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_edited: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    edited_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    import_status: Mapped[Optional[ImportStatus]] = mapped_column(Enum(ImportStatus))
    last_import_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, server_default=func.now(), onupdate=utcnow, nullable=False
    )

    __table_args__ = (
        Index("ix_products_status", "status"),
        Index("ix_products_category", "category_id"),
        Index("ix_products_sku", "product_sku"),
        Index("ix_products_draft_mapping", "status", "category_id", "supplier_id"),
    )


class ProductVariant(Base):
    """Purchasable variant of a product (CJ 'vid')."""

    __tablename__ = "product_variants"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    product_id: Mapped[int] = mapped_column(
        ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True
    )
    cj_variant_id: Mapped[Optional[str]] = mapped_column(String(255), unique=True)
    name: Mapped[Optional[str]] = mapped_column(String(500))
    sku: Mapped[Optional[str]] = mapped_column(String(255))
    price_cents: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    stock: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    weight: Mapped[Optional[float]] = mapped_column(Float)
    dimensions: Mapped[Optional[dict]] = mapped_column(JSON)
    image: Mapped[Optional[str]] = mapped_column(String(1000))
    properties: Mapped[Optional[dict]] = mapped_column(JSON)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, server_default=func.now(), onupdate=utcnow, nullable=False
    )


class ProductUpdateNotification(Base):
    """Admin notification raised when a supplier changes an imported product."""

    __tablename__ = "product_update_notifications"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    product_id: Mapped[int] = mapped_column(
        ForeignKey("products.id", ondelete="CASCADE"), nullable=False
    )
    cj_product_id: Mapped[Optional[str]] = mapped_column(String(255))
    product_name: Mapped[str] = mapped_column(String(500), nullable=False)
    changes: Mapped[list] = mapped_column(JSON, default=list)
    is_read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    read_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, server_default=func.now(), nullable=False, index=True
    )


# =============================================================================
# Users, Cart & Wishlist
# =============================================================================


class User(Base):
    """Storefront user."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    name: Mapped[Optional[str]] = mapped_column(String(255))
    role: Mapped[UserRole] = mapped_column(
        Enum(UserRole), default=UserRole.CUSTOMER, nullable=False
    )
    status: Mapped[UserStatus] = mapped_column(
        Enum(UserStatus), default=UserStatus.ACTIVE, nullable=False
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, server_default=func.now(), onupdate=utcnow, nullable=False
    )


class CartItem(Base):
    """A line in a user's cart."""

    __tablename__ = "cart_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    product_id: Mapped[int] = mapped_column(
        ForeignKey("products.id", ondelete="CASCADE"), nullable=False
    )
    variant_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("product_variants.id", ondelete="SET NULL")
    )
    quantity: Mapped[int] = mapped_column(Integer, default=1, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, server_default=func.now(), nullable=False
    )


class WishlistItem(Base):
    """A product saved to a user's wishlist."""

    __tablename__ = "wishlist_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    product_id: Mapped[int] = mapped_column(
        ForeignKey("products.id", ondelete="CASCADE"), nullable=False
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, server_default=func.now(), nullable=False
    )

    __table_args__ = (
        UniqueConstraint("user_id", "product_id", name="uq_wishlist_items_user_product"),
    )


# =============================================================================
# Orders
# =============================================================================


class Order(Base):
    """Customer order."""

    __tablename__ = "orders"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    status: Mapped[OrderStatus] = mapped_column(
        Enum(OrderStatus), default=OrderStatus.PENDING, nullable=False
    )
    total_cents: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # Shipping
    shipping_name: Mapped[Optional[str]] = mapped_column(String(255))
    shipping_address: Mapped[Optional[str]] = mapped_column(String(500))
    shipping_city: Mapped[Optional[str]] = mapped_column(String(255))
    shipping_province: Mapped[Optional[str]] = mapped_column(String(255))
    shipping_zip: Mapped[Optional[str]] = mapped_column(String(50))
    shipping_country_code: Mapped[Optional[str]] = mapped_column(String(10))
    shipping_phone: Mapped[Optional[str]] = mapped_column(String(50))

    # Tracking
    tracking_number: Mapped[Optional[str]] = mapped_column(String(255))
    logistic_name: Mapped[Optional[str]] = mapped_column(String(255))
    tracking_status: Mapped[Optional[str]] = mapped_column(String(255))
    tracking_events: Mapped[Optional[list]] = mapped_column(JSON)

    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, server_default=func.now(), onupdate=utcnow, nullable=False
    )

    items: Mapped[list["OrderItem"]] = relationship(
        back_populates="order", cascade="all, delete-orphan", lazy="selectin"
    )


class OrderItem(Base):
    """A product line in an order, with the unit price at checkout."""

    __tablename__ = "order_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    order_id: Mapped[int] = mapped_column(
        ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True
    )
    product_id: Mapped[int] = mapped_column(ForeignKey("products.id"), nullable=False)
    variant_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("product_variants.id", ondelete="SET NULL")
    )
    quantity: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    unit_price_cents: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    order: Mapped[Order] = relationship(back_populates="items")


class CJOrderMapping(Base):
    """Links a local order to the order placed at CJ."""

    __tablename__ = "cj_order_mappings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    order_id: Mapped[int] = mapped_column(
        ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True
    )
    cj_order_id: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    cj_order_number: Mapped[Optional[str]] = mapped_column(String(255))
    status: Mapped[Optional[str]] = mapped_column(String(50))
    track_number: Mapped[Optional[str]] = mapped_column(String(255))

    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, server_default=func.now(), onupdate=utcnow, nullable=False
    )


class SourcingRequest(Base):
    """CJ product sourcing request status."""

    __tablename__ = "sourcing_requests"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    cj_sourcing_id: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    cj_product_id: Mapped[Optional[str]] = mapped_column(String(255))
    cj_variant_id: Mapped[Optional[str]] = mapped_column(String(255))
    sku: Mapped[Optional[str]] = mapped_column(String(255))
    status: Mapped[Optional[str]] = mapped_column(String(50))
    fail_reason: Mapped[Optional[str]] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, server_default=func.now(), onupdate=utcnow, nullable=False
    )


# =============================================================================
# Integration Bookkeeping
# =============================================================================


class WebhookLog(Base):
    """Every webhook message received from CJ, keyed by its message id."""

    __tablename__ = "webhook_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    message_id: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    type: Mapped[str] = mapped_column(String(50), nullable=False)
    payload: Mapped[dict] = mapped_column(JSON, nullable=False)
    status: Mapped[WebhookStatus] = mapped_column(
        Enum(WebhookStatus), default=WebhookStatus.RECEIVED, nullable=False
    )
    error: Mapped[Optional[str]] = mapped_column(Text)
    result: Mapped[Optional[dict]] = mapped_column(JSON)
    processing_time_ms: Mapped[Optional[int]] = mapped_column(Integer)
    received_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, server_default=func.now(), nullable=False
    )
    processed_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    __table_args__ = (
        Index("ix_webhook_logs_type_status", "type", "status"),
        Index("ix_webhook_logs_received", "received_at"),
    )


class CJConfig(Base):
    """Runtime switches for the CJ integration (single row)."""

    __tablename__ = "cj_config"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    tier: Mapped[str] = mapped_column(String(20), default="free", nullable=False)
    webhooks_enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, server_default=func.now(), onupdate=utcnow, nullable=False
    )


class SyncStatus(Base):
    """Track data synchronization status."""

    __tablename__ = "sync_status"

    id: Mapped[str] = mapped_column(String(50), primary_key=True)  # 'cj_categories', 'cj_orders', etc.
    last_sync_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    last_sync_cursor: Mapped[Optional[str]] = mapped_column(String(255))
    records_synced: Mapped[int] = mapped_column(Integer, default=0)
    status: Mapped[str] = mapped_column(String(50), default="idle")  # idle, running, error
    error_message: Mapped[Optional[str]] = mapped_column(Text)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, server_default=func.now(), onupdate=utcnow, nullable=False
    )
