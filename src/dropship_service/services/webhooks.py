"""CJ webhook ingestion.

Every message is logged by its ``messageId``; a message that was already
processed successfully is not applied twice. Product updates are gated on
the local product's current status and category so that supplier changes
never override admin decisions.
"""

import time
from datetime import datetime
from typing import Any

import structlog
from pydantic import BaseModel, ValidationError
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from dropship_service.infrastructure.database.models import (
    CJOrderMapping,
    Order,
    Product,
    ProductStatus,
    ProductUpdateNotification,
    ProductVariant,
    SourcingRequest,
    StoreProduct,
    WebhookLog,
    WebhookStatus,
    utcnow,
)
from dropship_service.integrations.cj.schemas import (
    CJLogisticsParams,
    CJOrderParams,
    CJOrderSplitParams,
    CJProductParams,
    CJSourcingParams,
    CJStockEntry,
    CJVariantParams,
    CJWebhookMessage,
)
from dropship_service.services.catalog import recompute_product_stock
from dropship_service.services.category_mapping import CategoryMappingService
from dropship_service.services.cj_config import CJConfigService
from dropship_service.services.deduplication import (
    DuplicateCheckResult,
    DuplicatePreventionService,
    ImportAction,
)
from dropship_service.services.normalization import (
    calculate_price_with_margin,
    parse_image_list,
    parse_price_cents,
)
from dropship_service.services.orders import map_cj_order_status
from shared.constants import CJ_PRODUCT_STATUS_ON_SHELF, CJ_VARIANT_STATUS_ACTIVE

logger = structlog.get_logger()


class WebhookResult(BaseModel):
    """Outcome of processing one webhook message."""

    success: bool
    message_id: str
    type: str
    changes: list[str] = []
    error: str | None = None
    duplicate: bool = False
    processing_time_ms: int = 0


class _Unprocessable(Exception):
    """Message is well-formed but cannot be applied."""


class WebhookService:
    """Process CJ webhook messages against already imported records."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.mappings = CategoryMappingService(session)
        self.duplicates = DuplicatePreventionService(session)
        self._handlers = {
            "PRODUCT": self._handle_product,
            "VARIANT": self._handle_variant,
            "STOCK": self._handle_stock,
            "ORDER": self._handle_order,
            "ORDERSPLIT": self._handle_order_split,
            "SOURCINGCREATE": self._handle_sourcing,
            "LOGISTICS": self._handle_logistics,
        }

    async def process(self, payload: dict[str, Any]) -> WebhookResult:
        start = time.perf_counter()
        message = CJWebhookMessage.model_validate(payload)
        message_type = message.type.upper()

        log = await self._get_log(message.message_id)
        if log is not None and log.status == WebhookStatus.PROCESSED:
            logger.info("Duplicate webhook ignored", message_id=message.message_id, type=message_type)
            stored = dict(log.result or {})
            stored.update(duplicate=True, message_id=message.message_id, type=log.type)
            stored.setdefault("success", True)
            return WebhookResult.model_validate(stored)

        if log is None:
            log = WebhookLog(message_id=message.message_id, type=message_type, payload=payload)
            self.session.add(log)
        else:
            log.payload = payload
            log.error = None
        log.status = WebhookStatus.RECEIVED
        log.received_at = utcnow()
        await self.session.flush()

        logger.info("Webhook received", message_id=message.message_id, type=message_type)

        config = await CJConfigService(self.session).get_config()
        handler = self._handlers.get(message_type)
        error: str | None = None
        changes: list[str] = []

        if not config.enabled:
            error = "CJ integration is disabled"
        elif not config.webhooks_enabled:
            error = "CJ webhooks are disabled"
        elif handler is None:
            error = f"Unsupported webhook type: {message_type}"
        else:
            try:
                changes = await handler(message.params)
            except (_Unprocessable, ValidationError) as e:
                error = str(e)

        elapsed_ms = int((time.perf_counter() - start) * 1000)
        result = WebhookResult(
            success=error is None,
            message_id=message.message_id,
            type=message_type,
            changes=changes,
            error=error,
            processing_time_ms=elapsed_ms,
        )

        log.status = WebhookStatus.PROCESSED if error is None else WebhookStatus.ERROR
        log.error = error
        log.result = result.model_dump(exclude={"duplicate"})
        log.processing_time_ms = elapsed_ms
        log.processed_at = utcnow()
        await self.session.flush()

        if error is None:
            logger.info("Webhook processed", message_id=message.message_id, type=message_type, changes=len(changes))
        else:
            logger.warning("Webhook not applied", message_id=message.message_id, type=message_type, error=error)
        return result

    async def _get_log(self, message_id: str) -> WebhookLog | None:
        result = await self.session.execute(
            select(WebhookLog).where(WebhookLog.message_id == message_id)
        )
        return result.scalar_one_or_none()

    # -------------------------------------------------------------------------
    # Handlers
    # -------------------------------------------------------------------------

    async def _handle_product(self, params: Any) -> list[str]:
        data = CJProductParams.model_validate(params)
        changes: list[str] = []

        store_product = (
            await self.session.execute(
                select(StoreProduct).where(StoreProduct.cj_product_id == data.pid)
            )
        ).scalar_one_or_none()
        if store_product is not None:
            if data.product_name:
                store_product.name = data.product_name
            if data.product_description is not None:
                store_product.description = data.product_description
            if data.product_sell_price is not None:
                store_product.cost_price_cents = parse_price_cents(data.product_sell_price)
            if data.product_image:
                images = parse_image_list(data.product_image)
                store_product.image = images[0] if images else store_product.image
            if data.category_name:
                store_product.category = data.category_name
            if data.category_id:
                store_product.cj_category_id = data.category_id
            changes.append("store product refreshed")

        product = (
            await self.session.execute(select(Product).where(Product.cj_product_id == data.pid))
        ).scalar_one_or_none()
        if product is None:
            await self.session.flush()
            return changes

        product_changes: list[str] = []
        # Price and description go through the import upsert
        imported: dict[str, Any] = {"cj_product_id": data.pid}

        if data.product_sell_price is not None:
            cost = parse_price_cents(data.product_sell_price)
            if cost and cost != product.original_price_cents:
                product_changes.append(f"cost: {product.original_price_cents} -> {cost}")
                imported["original_price_cents"] = cost
                if product.margin_percent is not None:
                    imported["price_cents"] = calculate_price_with_margin(
                        cost, product.margin_percent
                    )

        if not product.is_edited:
            if data.product_name and data.product_name != product.name:
                product.name = data.product_name
                product_changes.append("name updated")
            if data.product_description is not None and data.product_description != product.description:
                imported["description"] = data.product_description

        if data.product_image:
            images = parse_image_list(data.product_image)
            if images and images[0] != product.image:
                product.image = images[0]
                product.images = images
                product_changes.append("image updated")

        if data.product_sku and data.product_sku != product.product_sku:
            product.product_sku = data.product_sku
            product_changes.append("sku updated")

        if data.product_status is not None:
            on_shelf = data.product_status == CJ_PRODUCT_STATUS_ON_SHELF
            if product.status == ProductStatus.ACTIVE and not on_shelf:
                product.status = ProductStatus.INACTIVE
                product_changes.append("status: active -> inactive (removed by supplier)")
            elif (
                product.status == ProductStatus.INACTIVE
                and on_shelf
                and product.category_id is not None
            ):
                product.status = ProductStatus.ACTIVE
                product_changes.append("status: inactive -> active (back on shelf)")

        if data.category_name and data.category_name != product.external_category:
            product_changes.append(
                f"supplier category: {product.external_category} -> {data.category_name}"
            )
            product.external_category = data.category_name
            if (
                product.status == ProductStatus.DRAFT
                and product.category_id is None
                and not product.is_manually_mapped
            ):
                category_id = await self.mappings.resolve_category(
                    product.supplier_id, data.category_name
                )
                if category_id is not None:
                    product.category_id = category_id
                    product_changes.append(f"category mapped to {category_id}")

        if product_changes or len(imported) > 1:
            outcome = await self.duplicates.upsert_cj_product(
                imported,
                check=DuplicateCheckResult(
                    is_duplicate=True,
                    action=ImportAction.UPDATE,
                    existing_product=product,
                ),
            )
            product_changes.extend(outcome.changes)

        if product_changes:
            self.session.add(
                ProductUpdateNotification(
                    product_id=product.id,
                    cj_product_id=data.pid,
                    product_name=product.name,
                    changes=product_changes,
                )
            )
        await self.session.flush()
        return changes + product_changes

    async def _handle_variant(self, params: Any) -> list[str]:
        data = CJVariantParams.model_validate(params)

        variant = (
            await self.session.execute(
                select(ProductVariant).where(ProductVariant.cj_variant_id == data.vid)
            )
        ).scalar_one_or_none()

        if variant is None:
            product = None
            if data.pid:
                product = (
                    await self.session.execute(
                        select(Product).where(Product.cj_product_id == data.pid)
                    )
                ).scalar_one_or_none()
            if product is None:
                raise _Unprocessable(f"No imported product for variant {data.vid}")
            variant = ProductVariant(product_id=product.id, cj_variant_id=data.vid, stock=0)
            self.session.add(variant)
            change = "variant created"
        else:
            change = "variant updated"

        if data.variant_name is not None:
            variant.name = data.variant_name
        if data.variant_sku is not None:
            variant.sku = data.variant_sku
        if data.variant_sell_price is not None:
            variant.price_cents = parse_price_cents(data.variant_sell_price)
        if data.variant_weight is not None:
            variant.weight = data.variant_weight
        dimensions = {
            key: value
            for key, value in (
                ("length", data.variant_length),
                ("width", data.variant_width),
                ("height", data.variant_height),
            )
            if value is not None
        }
        if dimensions:
            variant.dimensions = dimensions
        if data.variant_image is not None:
            variant.image = data.variant_image
        if data.variant_key is not None:
            variant.properties = {
                "key": data.variant_key,
                "values": [
                    v for v in (data.variant_value1, data.variant_value2, data.variant_value3) if v
                ],
            }
        if data.variant_status is not None:
            variant.is_active = data.variant_status == CJ_VARIANT_STATUS_ACTIVE

        await self.session.flush()
        return [f"{change}: {data.vid}"]

    async def _handle_stock(self, params: Any) -> list[str]:
        if not isinstance(params, dict):
            raise _Unprocessable("STOCK params must map variant ids to warehouse entries")

        totals = {
            vid: sum(CJStockEntry.model_validate(e).storage_num for e in (entries or []))
            for vid, entries in params.items()
        }

        changes: list[str] = []
        touched: set[int] = set()
        for vid, total in totals.items():
            result = await self.session.execute(
                select(ProductVariant).where(ProductVariant.cj_variant_id == vid)
            )
            variants = list(result.scalars().all())
            for variant in variants:
                if variant.stock != total:
                    changes.append(f"stock {vid}: {variant.stock} -> {total}")
                    variant.stock = total
                touched.add(variant.product_id)

        await self.session.flush()
        for product_id in touched:
            await recompute_product_stock(self.session, product_id)
        return changes

    async def _get_order_mapping(self, cj_order_id: str) -> CJOrderMapping | None:
        result = await self.session.execute(
            select(CJOrderMapping).where(CJOrderMapping.cj_order_id == cj_order_id)
        )
        return result.scalar_one_or_none()

    async def _handle_order(self, params: Any) -> list[str]:
        data = CJOrderParams.model_validate(params)
        mapping = await self._get_order_mapping(data.cj_order_id)
        if mapping is None:
            raise _Unprocessable(f"No local order for CJ order {data.cj_order_id}")

        order = await self.session.get(Order, mapping.order_id)
        changes: list[str] = []

        if data.order_status:
            mapping.status = data.order_status
        if data.track_number:
            mapping.track_number = data.track_number
            if order.tracking_number != data.track_number:
                order.tracking_number = data.track_number
                changes.append(f"tracking number: {data.track_number}")
        if data.logistic_name:
            order.logistic_name = data.logistic_name

        new_status = map_cj_order_status(data.order_status, order.status)
        if new_status != order.status:
            changes.append(f"status: {order.status.value} -> {new_status.value}")
            order.status = new_status

        await self.session.flush()
        return changes

    async def _handle_order_split(self, params: Any) -> list[str]:
        data = CJOrderSplitParams.model_validate(params)
        original = await self._get_order_mapping(data.original_order_id)
        if original is None:
            raise _Unprocessable(f"No local order for CJ order {data.original_order_id}")

        created: list[str] = []
        for split in data.split_order_list:
            if await self._get_order_mapping(split.order_code) is not None:
                continue
            self.session.add(
                CJOrderMapping(
                    order_id=original.order_id,
                    cj_order_id=split.order_code,
                    cj_order_number=split.order_code,
                    status=str(split.order_status) if split.order_status is not None else None,
                )
            )
            created.append(split.order_code)

        await self.session.flush()
        return [f"split order mapped: {code}" for code in created]

    async def _handle_sourcing(self, params: Any) -> list[str]:
        data = CJSourcingParams.model_validate(params)
        result = await self.session.execute(
            select(SourcingRequest).where(SourcingRequest.cj_sourcing_id == data.cj_sourcing_id)
        )
        request = result.scalar_one_or_none()
        if request is None:
            request = SourcingRequest(cj_sourcing_id=data.cj_sourcing_id)
            self.session.add(request)
            change = "sourcing request created"
        else:
            change = "sourcing request updated"

        request.cj_product_id = data.cj_product_id or request.cj_product_id
        request.cj_variant_id = data.cj_variant_id or request.cj_variant_id
        request.sku = data.cj_variant_sku or request.sku
        request.status = data.status
        request.fail_reason = data.fail_reason
        await self.session.flush()
        return [f"{change}: {data.cj_sourcing_id}"]

    async def _handle_logistics(self, params: Any) -> list[str]:
        data = CJLogisticsParams.model_validate(params)
        mapping = await self._get_order_mapping(data.order_id)
        if mapping is None:
            raise _Unprocessable(f"No local order for CJ order {data.order_id}")

        order = await self.session.get(Order, mapping.order_id)
        if data.logistic_name:
            order.logistic_name = data.logistic_name
        if data.tracking_number:
            order.tracking_number = data.tracking_number
            mapping.track_number = data.tracking_number
        if data.tracking_status is not None:
            order.tracking_status = str(data.tracking_status)
        if data.logistics_track_events is not None:
            events = data.logistics_track_events
            order.tracking_events = events if isinstance(events, list) else [events]

        await self.session.flush()
        return [f"tracking updated for order {order.id}"]

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    async def get_logs(
        self,
        type: str | None = None,
        status: WebhookStatus | None = None,
        since: datetime | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[WebhookLog], int]:
        query = select(WebhookLog)
        if type:
            query = query.where(WebhookLog.type == type.upper())
        if status is not None:
            query = query.where(WebhookLog.status == status)
        if since is not None:
            query = query.where(WebhookLog.received_at >= since)

        total = await self.session.scalar(select(func.count()).select_from(query.subquery())) or 0
        result = await self.session.execute(
            query.order_by(WebhookLog.received_at.desc(), WebhookLog.id.desc())
            .offset(offset)
            .limit(limit)
        )
        return list(result.scalars().all()), total

    async def get_stats(self) -> dict[str, Any]:
        by_status = dict(
            (
                await self.session.execute(
                    select(WebhookLog.status, func.count()).group_by(WebhookLog.status)
                )
            ).all()
        )
        by_type = dict(
            (
                await self.session.execute(
                    select(WebhookLog.type, func.count()).group_by(WebhookLog.type)
                )
            ).all()
        )
        avg_ms = await self.session.scalar(select(func.avg(WebhookLog.processing_time_ms)))
        return {
            "total": sum(by_status.values()),
            "processed": by_status.get(WebhookStatus.PROCESSED, 0),
            "errors": by_status.get(WebhookStatus.ERROR, 0),
            "received": by_status.get(WebhookStatus.RECEIVED, 0),
            "by_type": by_type,
            "avg_processing_time_ms": round(float(avg_ms), 2) if avg_ms is not None else 0.0,
        }
