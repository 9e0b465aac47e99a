"""Unit tests for orders and CJ fulfillment."""

import json

import httpx
import pytest
from sqlalchemy import select

from dropship_service.exceptions import CJAPIError, ConflictError, DomainValidationError
from dropship_service.infrastructure.database.models import (
    CartItem,
    CJOrderMapping,
    OrderStatus,
    ProductStatus,
    ProductVariant,
    SyncStatus,
)
from dropship_service.services.orders import (
    OrderFulfillmentService,
    OrderService,
    map_cj_order_status,
)
from dropship_service.services.users import CartService
from tests.conftest import cj_envelope

SHIPPING = {
    "shipping_name": "Alice Doe",
    "shipping_address": "1 Main St",
    "shipping_city": "Springfield",
    "shipping_zip": "12345",
    "shipping_country_code": "US",
}


class TestMapCJOrderStatus:
    @pytest.mark.parametrize(
        "cj_status, expected",
        [
            ("CREATED", OrderStatus.PENDING),
            ("unshipped", OrderStatus.CONFIRMED),
            ("SHIPPED", OrderStatus.SHIPPED),
            ("DELIVERED", OrderStatus.DELIVERED),
            ("CANCELLED", OrderStatus.CANCELLED),
            ("MYSTERY", OrderStatus.PROCESSING),
            (None, OrderStatus.PROCESSING),
        ],
    )
    def test_from_processing(self, cj_status, expected) -> None:
        assert map_cj_order_status(cj_status, OrderStatus.PROCESSING) == expected

    def test_terminal_statuses_stay(self) -> None:
        assert map_cj_order_status("SHIPPED", OrderStatus.DELIVERED) == OrderStatus.DELIVERED
        assert map_cj_order_status("PAID", OrderStatus.CANCELLED) == OrderStatus.CANCELLED


class TestCreateOrder:
    @pytest.mark.asyncio
    async def test_from_cart_snapshots_prices(self, session, user, make_product) -> None:
        lamp = await make_product(name="Lamp", price_cents=2000)
        mug = await make_product(name="Mug", price_cents=500)
        carts = CartService(session)
        await carts.add_item(user.id, lamp.id, 2)
        await carts.add_item(user.id, mug.id, 1)

        order = await OrderService(session).create_order(user.id, SHIPPING)
        lamp.price_cents = 9999

        assert order.status == OrderStatus.PENDING
        assert order.total_cents == 4500
        assert [(i.product_id, i.unit_price_cents) for i in order.items] == [
            (lamp.id, 2000),
            (mug.id, 500),
        ]
        assert order.shipping_city == "Springfield"
        assert (await session.execute(select(CartItem))).first() is None

    @pytest.mark.asyncio
    async def test_explicit_items_keep_cart(self, session, user, make_product) -> None:
        lamp = await make_product(price_cents=2000)
        await CartService(session).add_item(user.id, lamp.id)

        order = await OrderService(session).create_order(
            user.id, items=[{"product_id": lamp.id, "quantity": 3}]
        )

        assert order.total_cents == 6000
        assert len((await session.execute(select(CartItem))).scalars().all()) == 1

    @pytest.mark.asyncio
    async def test_empty_cart_rejected(self, session, user) -> None:
        with pytest.raises(DomainValidationError):
            await OrderService(session).create_order(user.id)

    @pytest.mark.asyncio
    async def test_inactive_product_rejected(self, session, user, make_product) -> None:
        draft = await make_product(status=ProductStatus.DRAFT)

        with pytest.raises(DomainValidationError):
            await OrderService(session).create_order(
                user.id, items=[{"product_id": draft.id, "quantity": 1}]
            )

    @pytest.mark.asyncio
    async def test_list_and_update_status(self, session, user, make_product) -> None:
        lamp = await make_product()
        service = OrderService(session)
        order = await service.create_order(user.id, items=[{"product_id": lamp.id, "quantity": 1}])

        await service.update_status(order.id, OrderStatus.CANCELLED)

        assert [o.id for o in await service.list_orders(status=OrderStatus.CANCELLED)] == [order.id]
        assert await service.list_orders(user_id=user.id + 1) == []


class TestPlaceOrder:
    async def _order(self, session, user, make_cj_product, **shipping):
        product = await make_cj_product(pid="PID-1", vid="VID-1")
        return await OrderService(session).create_order(
            user.id,
            {**SHIPPING, **shipping},
            items=[{"product_id": product.id, "quantity": 2}],
        )

    @pytest.mark.asyncio
    async def test_places_with_cj(self, session, user, cj_client, fake_cj, make_cj_product) -> None:
        fake_cj.routes["/shopping/order/createOrderV2"] = {"orderId": "CJ-77", "orderStatus": "CREATED"}
        order = await self._order(session, user, make_cj_product)

        mapping = await OrderFulfillmentService(session, cj_client).place_order(order.id, "CJPacket")

        assert mapping.cj_order_id == "CJ-77"
        assert order.status == OrderStatus.CONFIRMED
        assert order.logistic_name == "CJPacket"
        body = json.loads(fake_cj.calls("/shopping/order/createOrderV2")[0].content)
        assert body["orderNumber"] == f"ORDER-{order.id}"
        assert body["shippingCustomerName"] == "Alice Doe"
        assert body["logisticName"] == "CJPacket"
        assert body["products"] == [{"vid": "VID-1", "quantity": 2}]
        assert "shippingPhone" not in body

    @pytest.mark.asyncio
    async def test_already_placed(self, session, user, cj_client, fake_cj, make_cj_product) -> None:
        fake_cj.routes["/shopping/order/createOrderV2"] = {"orderId": "CJ-77"}
        order = await self._order(session, user, make_cj_product)
        service = OrderFulfillmentService(session, cj_client)
        await service.place_order(order.id, "CJPacket")

        with pytest.raises(ConflictError):
            await service.place_order(order.id, "CJPacket")

    @pytest.mark.asyncio
    async def test_missing_address(self, session, user, cj_client, fake_cj, make_cj_product) -> None:
        order = await self._order(session, user, make_cj_product, shipping_address=None)

        with pytest.raises(DomainValidationError):
            await OrderFulfillmentService(session, cj_client).place_order(order.id, "CJPacket")
        assert fake_cj.calls("/shopping/order/createOrderV2") == []

    @pytest.mark.asyncio
    async def test_no_cj_products(self, session, user, cj_client, make_product) -> None:
        product = await make_product()
        order = await OrderService(session).create_order(
            user.id, SHIPPING, items=[{"product_id": product.id, "quantity": 1}]
        )

        service = OrderFulfillmentService(session, cj_client)
        assert await service.has_cj_products(order) is False
        with pytest.raises(DomainValidationError):
            await service.place_order(order.id, "CJPacket")

    @pytest.mark.asyncio
    async def test_preview_reports_missing_variant(
        self, session, user, cj_client, make_cj_product
    ) -> None:
        product = await make_cj_product(pid="PID-1", vid="")
        order = await OrderService(session).create_order(
            user.id, SHIPPING, items=[{"product_id": product.id, "quantity": 1}]
        )

        draft = await OrderFulfillmentService(session, cj_client).build_cj_order(order, "CJPacket")

        assert draft.ok is False
        assert "has no CJ variant" in draft.errors[0]

    @pytest.mark.asyncio
    async def test_prefers_active_variant(self, session, user, cj_client, make_cj_product) -> None:
        product = await make_cj_product(pid="PID-1", vid="VID-OLD")
        old = (await session.execute(select(ProductVariant))).scalar_one()
        old.is_active = False
        session.add(ProductVariant(product_id=product.id, cj_variant_id="VID-NEW"))
        await session.flush()
        order = await OrderService(session).create_order(
            user.id, SHIPPING, items=[{"product_id": product.id, "quantity": 1}]
        )

        draft = await OrderFulfillmentService(session, cj_client).build_cj_order(order, "CJPacket")

        assert draft.payload["products"] == [{"vid": "VID-NEW", "quantity": 1}]

    @pytest.mark.asyncio
    async def test_missing_order_id_in_response(
        self, session, user, cj_client, fake_cj, make_cj_product
    ) -> None:
        fake_cj.routes["/shopping/order/createOrderV2"] = {}
        order = await self._order(session, user, make_cj_product)

        with pytest.raises(CJAPIError):
            await OrderFulfillmentService(session, cj_client).place_order(order.id, "CJPacket")


class TestSyncOrderStatuses:
    @pytest.mark.asyncio
    async def test_updates_open_orders(self, session, user, cj_client, fake_cj, make_product) -> None:
        product = await make_product()
        service = OrderService(session)
        shipped = await service.create_order(user.id, items=[{"product_id": product.id, "quantity": 1}])
        failing = await service.create_order(user.id, items=[{"product_id": product.id, "quantity": 1}])
        delivered = await service.create_order(user.id, items=[{"product_id": product.id, "quantity": 1}])
        delivered.status = OrderStatus.DELIVERED
        session.add_all(
            [
                CJOrderMapping(order_id=shipped.id, cj_order_id="CJ-1"),
                CJOrderMapping(order_id=failing.id, cj_order_id="CJ-2"),
                CJOrderMapping(order_id=delivered.id, cj_order_id="CJ-3"),
            ]
        )
        await session.flush()

        def order_detail(request: httpx.Request) -> httpx.Response:
            if request.url.params["orderId"] == "CJ-1":
                return httpx.Response(
                    200, json=cj_envelope({"orderStatus": "SHIPPED", "trackNumber": "TRK1"})
                )
            return httpx.Response(200, json=cj_envelope(code=1600100, message="Order not found"))

        fake_cj.routes["/shopping/order/getOrderDetail"] = order_detail

        result = await OrderFulfillmentService(session, cj_client).sync_order_statuses()

        assert result == {"checked": 2, "updated": 1, "errors": 1}
        assert shipped.status == OrderStatus.SHIPPED
        assert shipped.tracking_number == "TRK1"
        assert failing.status == OrderStatus.PENDING
        status = await session.get(SyncStatus, "cj_orders")
        assert status.records_synced == 2
