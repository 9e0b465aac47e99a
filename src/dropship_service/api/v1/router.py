"""API v1 router that aggregates all endpoint routers."""

from fastapi import APIRouter

from dropship_service.api.v1 import (
    categories,
    cj,
    health,
    orders,
    products,
    suppliers,
    users,
    webhooks,
)

api_router = APIRouter()

# Include all routers
api_router.include_router(
    health.router,
    tags=["Health"],
)

api_router.include_router(
    products.router,
    prefix="/products",
    tags=["Products"],
)

api_router.include_router(
    categories.router,
    prefix="/categories",
    tags=["Categories"],
)

api_router.include_router(
    suppliers.router,
    prefix="/suppliers",
    tags=["Suppliers"],
)

api_router.include_router(
    users.router,
    prefix="/users",
    tags=["Users"],
)

api_router.include_router(
    orders.router,
    prefix="/orders",
    tags=["Orders"],
)

api_router.include_router(
    cj.router,
    prefix="/cj",
    tags=["CJ Dropshipping"],
)

api_router.include_router(
    webhooks.router,
    prefix="/webhooks",
    tags=["Webhooks"],
)
