"""Business logic services."""

from dropship_service.services.catalog import CJCatalogService
from dropship_service.services.categories import CategoryService
from dropship_service.services.category_mapping import CategoryMappingService
from dropship_service.services.cj_config import CJConfigService
from dropship_service.services.deduplication import DuplicatePreventionService
from dropship_service.services.orders import OrderFulfillmentService, OrderService
from dropship_service.services.products import ProductService
from dropship_service.services.suppliers import SupplierService
from dropship_service.services.users import CartService, UserService, WishlistService
from dropship_service.services.webhooks import WebhookService

__all__ = [
    "CJCatalogService",
    "CJConfigService",
    "CartService",
    "CategoryMappingService",
    "CategoryService",
    "DuplicatePreventionService",
    "OrderFulfillmentService",
    "OrderService",
    "ProductService",
    "SupplierService",
    "UserService",
    "WebhookService",
    "WishlistService",
]
