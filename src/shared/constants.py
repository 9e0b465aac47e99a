"""Shared constants across the application."""

# CJ supplier name used for imported products
CJ_SOURCE = "cj-dropshipping"

# CJ API requests per second by account tier
CJ_TIER_RATE_LIMITS = {
    "free": 1.0,
    "plus": 2.0,
    "prime": 4.0,
    "advanced": 6.0,
}

# CJ response envelope codes
CJ_SUCCESS_CODE = 200
CJ_AUTH_ERROR_CODES = frozenset({1600001, 1600003})
CJ_RATE_LIMIT_CODE = 1600200

# CJ product status meaning "on shelf"
CJ_PRODUCT_STATUS_ON_SHELF = 3
CJ_VARIANT_STATUS_ACTIVE = 1

# CJ order status -> local order status
CJ_ORDER_STATUS_MAP = {
    "CREATED": "pending",
    "IN_CART": "pending",
    "UNPAID": "pending",
    "UNSHIPPED": "confirmed",
    "PAID": "confirmed",
    "PROCESSING": "processing",
    "SHIPPED": "shipped",
    "DELIVERED": "delivered",
    "CANCELLED": "cancelled",
}

TERMINAL_ORDER_STATUSES = frozenset({"delivered", "cancelled"})

# Webhook message types
WEBHOOK_TYPES = [
    "PRODUCT",
    "VARIANT",
    "STOCK",
    "ORDER",
    "ORDERSPLIT",
    "SOURCINGCREATE",
    "LOGISTICS",
]

# Catalog
MAX_PRODUCT_NAME_LENGTH = 200
DEFAULT_MARGIN_PERCENT = 30.0
CJ_MAX_PAGE_SIZE = 200

# Default limits
DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100
DEFAULT_WEBHOOK_LOG_LIMIT = 50

# Batch sizes
SYNC_BATCH_SIZE = 100

# Cache keys
CJ_TOKEN_CACHE_KEY = "cj:tokens"
CJ_CATEGORY_TREE_CACHE_KEY = "cj:categories:tree"
CJ_SEARCH_CACHE_PREFIX = "cj:search:"
