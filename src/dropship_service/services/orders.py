"""Order creation and CJ fulfillment services."""

import re
from dataclasses import dataclass, field
from typing import Any

import structlog
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from dropship_service.config import Settings, get_settings
from dropship_service.exceptions import (
    CJAPIError,
    ConflictError,
    DomainValidationError,
    NotFoundError,
)
from dropship_service.infrastructure.database.models import (
    CartItem,
    CJOrderMapping,
    Order,
    OrderItem,
    OrderStatus,
    Product,
    ProductSource,
    ProductStatus,
    ProductVariant,
    SyncStatus,
    utcnow,
)
from dropship_service.integrations.cj import CJClient
from dropship_service.integrations.cj.schemas import CJOrderRequest
from dropship_service.services.users import UserService
from shared.constants import CJ_ORDER_STATUS_MAP, TERMINAL_ORDER_STATUSES

logger = structlog.get_logger()

VID_PATTERN = re.compile(r"^[a-zA-Z0-9\-]+$")

SHIPPING_FIELDS = (
    "shipping_name",
    "shipping_address",
    "shipping_city",
    "shipping_province",
    "shipping_zip",
    "shipping_country_code",
    "shipping_phone",
)


def map_cj_order_status(cj_status: str | int | None, current: OrderStatus) -> OrderStatus:
    """Translate a CJ order status without moving terminal orders.

    Unknown CJ statuses keep the current status.
    """
    if current.value in TERMINAL_ORDER_STATUSES:
        return current
    mapped = CJ_ORDER_STATUS_MAP.get(str(cj_status or "").upper())
    if mapped is None:
        return current
    return OrderStatus(mapped)


class OrderService:
    """Customer orders."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create_order(
        self,
        user_id: int,
        shipping: dict[str, Any] | None = None,
        items: list[dict[str, Any]] | None = None,
    ) -> Order:
        """Create an order from explicit items or from the user's cart.

        Prices are snapshotted per line. The cart is cleared when it was used.
        """
        await UserService(self.session).get_user(user_id)

        from_cart = items is None
        if from_cart:
            result = await self.session.execute(
                select(CartItem).where(CartItem.user_id == user_id).order_by(CartItem.id)
            )
            items = [
                {"product_id": c.product_id, "variant_id": c.variant_id, "quantity": c.quantity}
                for c in result.scalars().all()
            ]

        if not items:
            raise DomainValidationError("Cannot create an order without items")

        order = Order(user_id=user_id, status=OrderStatus.PENDING, total_cents=0)
        for key in SHIPPING_FIELDS:
            if shipping and shipping.get(key) is not None:
                setattr(order, key, shipping[key])

        total = 0
        for line in items:
            quantity = int(line.get("quantity") or 0)
            if quantity < 1:
                raise DomainValidationError("Quantity must be at least 1")

            product = await self.session.get(Product, line["product_id"])
            if product is None or product.status != ProductStatus.ACTIVE:
                raise DomainValidationError(f"Product {line['product_id']} is not available")

            unit_price = product.price_cents
            variant_id = line.get("variant_id")
            if variant_id is not None:
                variant = await self.session.get(ProductVariant, variant_id)
                if variant is None or variant.product_id != product.id:
                    raise DomainValidationError(f"Variant {variant_id} not found for product {product.id}")

            order.items.append(
                OrderItem(
                    product_id=product.id,
                    variant_id=variant_id,
                    quantity=quantity,
                    unit_price_cents=unit_price,
                )
            )
            total += unit_price * quantity

        order.total_cents = total
        self.session.add(order)

        if from_cart:
            await self.session.execute(delete(CartItem).where(CartItem.user_id == user_id))
        await self.session.flush()

        logger.info("Order created", order_id=order.id, user_id=user_id, total_cents=total)
        return order

    async def get_order(self, order_id: int) -> Order:
        result = await self.session.execute(select(Order).where(Order.id == order_id))
        order = result.scalar_one_or_none()
        if order is None:
            raise NotFoundError(f"Order {order_id} not found")
        return order

    async def list_orders(self, user_id: int | None = None, status: OrderStatus | None = None) -> list[Order]:
        query = select(Order).order_by(Order.created_at.desc(), Order.id.desc())
        if user_id is not None:
            query = query.where(Order.user_id == user_id)
        if status is not None:
            query = query.where(Order.status == status)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def update_status(self, order_id: int, status: OrderStatus) -> Order:
        order = await self.get_order(order_id)
        order.status = status
        await self.session.flush()
        logger.info("Order status updated", order_id=order_id, status=status.value)
        return order


@dataclass
class CJOrderDraft:
    """Payload for CJ plus per-item problems found while building it."""

    payload: dict[str, Any] | None
    errors: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.payload is not None and not self.errors


class OrderFulfillmentService:
    """Place orders containing CJ products with CJ and follow their status."""

    def __init__(self, session: AsyncSession, client: CJClient, settings: Settings | None = None):
        self.session = session
        self.client = client
        self.settings = settings or get_settings()

    async def _cj_lines(self, order: Order) -> list[tuple[OrderItem, Product]]:
        lines = []
        for item in order.items:
            product = await self.session.get(Product, item.product_id)
            if product is not None and product.source == ProductSource.CJ_DROPSHIPPING:
                lines.append((item, product))
        return lines

    async def has_cj_products(self, order: Order) -> bool:
        return bool(await self._cj_lines(order))

    async def _resolve_vid(self, item: OrderItem, product: Product) -> str | None:
        if item.variant_id is not None:
            variant = await self.session.get(ProductVariant, item.variant_id)
            if variant is not None and variant.cj_variant_id:
                return variant.cj_variant_id

        result = await self.session.execute(
            select(ProductVariant)
            .where(ProductVariant.product_id == product.id)
            .order_by(ProductVariant.id)
        )
        variants = list(result.scalars().all())
        for variant in variants:
            if variant.is_active and variant.cj_variant_id:
                return variant.cj_variant_id
        # Fall back to the first variant that has a CJ id at all
        for variant in variants:
            if variant.cj_variant_id:
                return variant.cj_variant_id
        return None

    async def build_cj_order(self, order: Order, logistic_name: str) -> CJOrderDraft:
        lines = await self._cj_lines(order)
        if not lines:
            return CJOrderDraft(None, ["Order contains no CJ products"])

        products: list[dict[str, Any]] = []
        errors: list[str] = []
        for item, product in lines:
            vid = await self._resolve_vid(item, product)
            if vid is None:
                errors.append(f"Product {product.id} ({product.name}) has no CJ variant")
                continue
            if not VID_PATTERN.match(vid):
                errors.append(f"Product {product.id} has an invalid CJ variant id: {vid}")
                continue
            products.append({"vid": vid, "quantity": item.quantity})

        if not products:
            return CJOrderDraft(None, errors)

        payload = {
            "orderNumber": f"ORDER-{order.id}",
            "shippingCountryCode": order.shipping_country_code or self.settings.default_country_code,
            "shippingProvince": order.shipping_province,
            "shippingCity": order.shipping_city,
            "shippingAddress": order.shipping_address,
            "shippingCustomerName": order.shipping_name,
            "shippingPhone": order.shipping_phone,
            "shippingZip": order.shipping_zip,
            "logisticName": logistic_name,
            "fromCountryCode": "CN",
            "products": products,
        }
        return CJOrderDraft(payload, errors)

    async def get_mapping(self, order_id: int) -> CJOrderMapping | None:
        result = await self.session.execute(
            select(CJOrderMapping).where(CJOrderMapping.order_id == order_id).order_by(CJOrderMapping.id)
        )
        return result.scalars().first()

    async def place_order(self, order_id: int, logistic_name: str) -> CJOrderMapping:
        """Submit an order to CJ and record the CJ order id."""
        order = await OrderService(self.session).get_order(order_id)

        if await self.get_mapping(order.id) is not None:
            raise ConflictError(f"Order {order_id} has already been placed with CJ")
        if order.status in (OrderStatus.CANCELLED, OrderStatus.DELIVERED):
            raise DomainValidationError(f"Order {order_id} is {order.status.value}")

        draft = await self.build_cj_order(order, logistic_name)
        if not draft.ok:
            raise DomainValidationError(
                "Order cannot be placed with CJ: " + "; ".join(draft.errors)
            )
        for field_name in ("shippingAddress", "shippingCity", "shippingCustomerName"):
            if not draft.payload.get(field_name):
                raise DomainValidationError(f"Order {order_id} is missing {field_name}")

        payload = CJOrderRequest.model_validate(draft.payload).model_dump(
            by_alias=True, exclude_none=True
        )
        data = await self.client.create_order(payload)
        cj_order_id = data.get("orderId") or data.get("cjOrderId")
        if not cj_order_id:
            raise CJAPIError("CJ did not return an order id")

        mapping = CJOrderMapping(
            order_id=order.id,
            cj_order_id=str(cj_order_id),
            cj_order_number=data.get("orderNumber") or draft.payload["orderNumber"],
            status=data.get("orderStatus") or "CREATED",
        )
        self.session.add(mapping)
        if order.status == OrderStatus.PENDING:
            order.status = OrderStatus.CONFIRMED
        order.logistic_name = logistic_name
        await self.session.flush()

        logger.info("Order placed with CJ", order_id=order.id, cj_order_id=mapping.cj_order_id)
        return mapping

    async def sync_order_statuses(self) -> dict[str, int]:
        """Poll CJ for every non-terminal mapped order."""
        result = await self.session.execute(
            select(CJOrderMapping, Order)
            .join(Order, Order.id == CJOrderMapping.order_id)
            .where(Order.status.not_in([OrderStatus.DELIVERED, OrderStatus.CANCELLED]))
        )
        rows = result.all()

        updated = 0
        errors = 0
        for mapping, order in rows:
            try:
                data = await self.client.get_order(mapping.cj_order_id)
            except CJAPIError as e:
                logger.warning("CJ order status query failed", cj_order_id=mapping.cj_order_id, error=e.message)
                errors += 1
                continue

            cj_status = data.get("orderStatus")
            mapping.status = cj_status or mapping.status
            track_number = data.get("trackNumber")
            if track_number:
                mapping.track_number = track_number
                order.tracking_number = track_number

            new_status = map_cj_order_status(cj_status, order.status)
            if new_status != order.status:
                order.status = new_status
                updated += 1

        await self.session.flush()

        sync_status = await self.session.get(SyncStatus, "cj_orders")
        if sync_status is None:
            sync_status = SyncStatus(id="cj_orders")
            self.session.add(sync_status)
        sync_status.status = "idle"
        sync_status.records_synced = len(rows)
        sync_status.last_sync_at = utcnow()
        await self.session.flush()

        logger.info("CJ order statuses synced", checked=len(rows), updated=updated, errors=errors)
        return {"checked": len(rows), "updated": updated, "errors": errors}
