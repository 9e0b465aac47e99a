"""Order API endpoints and CJ fulfillment."""

from typing import Any

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from dropship_service.api.v1.schemas import CJOrderMappingResponse, OrderResponse
from dropship_service.exceptions import NotFoundError
from dropship_service.infrastructure.database.connection import get_session
from dropship_service.infrastructure.database.models import OrderStatus
from dropship_service.integrations.cj import CJClient, get_cj_client
from dropship_service.services.cj_config import CJConfigService
from dropship_service.services.orders import OrderFulfillmentService, OrderService

router = APIRouter()


# =============================================================================
# Models
# =============================================================================


class ShippingDetails(BaseModel):
    shipping_name: str | None = Field(None, max_length=255)
    shipping_address: str | None = None
    shipping_city: str | None = Field(None, max_length=255)
    shipping_province: str | None = Field(None, max_length=255)
    shipping_zip: str | None = Field(None, max_length=50)
    shipping_country_code: str | None = Field(None, min_length=2, max_length=2)
    shipping_phone: str | None = Field(None, max_length=50)


class OrderLine(BaseModel):
    product_id: int
    variant_id: int | None = None
    quantity: int = Field(1, ge=1, le=999)


class OrderCreate(ShippingDetails):
    """
    Create an order.

    When `items` is omitted the user's cart is used and then cleared.
    """

    user_id: int
    items: list[OrderLine] | None = None


class StatusUpdate(BaseModel):
    status: OrderStatus


class CJPlaceRequest(BaseModel):
    logistic_name: str = Field(..., min_length=1, max_length=100, description="CJ shipping method")


class CJOrderPreview(BaseModel):
    order_id: int
    has_cj_products: bool
    ready: bool
    payload: dict[str, Any] | None = None
    errors: list[str] = []


class OrderSyncResponse(BaseModel):
    checked: int
    updated: int
    errors: int


# =============================================================================
# Orders
# =============================================================================


@router.post("", response_model=OrderResponse, status_code=201)
async def create_order(
    request: OrderCreate,
    session: AsyncSession = Depends(get_session),
) -> OrderResponse:
    """
    Create an order.

    Line prices are copied from the products at creation time, so later
    price changes do not affect the order total. Only active products can
    be ordered.
    """
    shipping = request.model_dump(include=set(ShippingDetails.model_fields))
    items = [line.model_dump() for line in request.items] if request.items is not None else None
    order = await OrderService(session).create_order(request.user_id, shipping=shipping, items=items)
    return OrderResponse.model_validate(order)


@router.get("", response_model=list[OrderResponse])
async def list_orders(
    user_id: int | None = Query(None),
    status: OrderStatus | None = Query(None),
    session: AsyncSession = Depends(get_session),
) -> list[OrderResponse]:
    orders = await OrderService(session).list_orders(user_id=user_id, status=status)
    return [OrderResponse.model_validate(o) for o in orders]


@router.post("/sync-status", response_model=OrderSyncResponse)
async def sync_order_statuses(
    session: AsyncSession = Depends(get_session),
    client: CJClient = Depends(get_cj_client),
) -> OrderSyncResponse:
    """Poll CJ for the status of every open order placed with CJ."""
    await CJConfigService(session).require_enabled()
    result = await OrderFulfillmentService(session, client).sync_order_statuses()
    return OrderSyncResponse(**result)


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(
    order_id: int,
    session: AsyncSession = Depends(get_session),
) -> OrderResponse:
    return OrderResponse.model_validate(await OrderService(session).get_order(order_id))


@router.patch("/{order_id}/status", response_model=OrderResponse)
async def update_order_status(
    order_id: int,
    request: StatusUpdate,
    session: AsyncSession = Depends(get_session),
) -> OrderResponse:
    order = await OrderService(session).update_status(order_id, request.status)
    return OrderResponse.model_validate(order)


# =============================================================================
# CJ Fulfillment
# =============================================================================


@router.get("/{order_id}/cj/preview", response_model=CJOrderPreview)
async def preview_cj_order(
    order_id: int,
    logistic_name: str = Query("CJPacket Ordinary", min_length=1),
    session: AsyncSession = Depends(get_session),
    client: CJClient = Depends(get_cj_client),
) -> CJOrderPreview:
    """Show the payload that would be sent to CJ, with any blocking problems."""
    order = await OrderService(session).get_order(order_id)
    fulfillment = OrderFulfillmentService(session, client)
    draft = await fulfillment.build_cj_order(order, logistic_name)
    return CJOrderPreview(
        order_id=order.id,
        has_cj_products=await fulfillment.has_cj_products(order),
        ready=draft.ok,
        payload=draft.payload,
        errors=draft.errors,
    )


@router.post("/{order_id}/cj", response_model=CJOrderMappingResponse, status_code=201)
async def place_cj_order(
    order_id: int,
    request: CJPlaceRequest,
    session: AsyncSession = Depends(get_session),
    client: CJClient = Depends(get_cj_client),
) -> CJOrderMappingResponse:
    """
    Place an order with CJ.

    **Errors:**
    - 400 if the order has no orderable CJ variants or lacks shipping details
    - 409 if the order was already placed
    - 503 if the CJ integration is disabled
    """
    await CJConfigService(session).require_enabled()
    mapping = await OrderFulfillmentService(session, client).place_order(
        order_id, request.logistic_name
    )
    return CJOrderMappingResponse.model_validate(mapping)


@router.get("/{order_id}/cj", response_model=CJOrderMappingResponse)
async def get_cj_order(
    order_id: int,
    session: AsyncSession = Depends(get_session),
    client: CJClient = Depends(get_cj_client),
) -> CJOrderMappingResponse:
    mapping = await OrderFulfillmentService(session, client).get_mapping(order_id)
    if mapping is None:
        raise NotFoundError(f"Order {order_id} has not been placed with CJ")
    return CJOrderMappingResponse.model_validate(mapping)
