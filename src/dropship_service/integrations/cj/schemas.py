"""Typed CJ Dropshipping payloads (webhook messages and order requests)."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CJModel(BaseModel):
    """CJ uses camelCase keys and adds fields freely."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        coerce_numbers_to_str=True,
    )


# =============================================================================
# Webhooks
# =============================================================================


class CJWebhookMessage(CJModel):
    message_id: str = Field(..., min_length=1)
    type: str
    params: Any = None


class CJProductParams(CJModel):
    pid: str
    product_name: str | None = None
    product_description: str | None = None
    product_image: str | None = None
    product_sell_price: float | str | None = None
    product_status: int | None = None
    product_sku: str | None = None
    category_id: str | None = None
    category_name: str | None = None
    fields: list[str] | None = None


class CJVariantParams(CJModel):
    vid: str
    pid: str | None = None
    variant_name: str | None = None
    variant_sku: str | None = None
    variant_sell_price: float | str | None = None
    variant_weight: float | None = None
    variant_length: float | None = None
    variant_width: float | None = None
    variant_height: float | None = None
    variant_image: str | None = None
    variant_key: str | None = None
    variant_value1: str | None = None
    variant_value2: str | None = None
    variant_value3: str | None = None
    variant_status: int | None = None


class CJStockEntry(CJModel):
    area_id: str | int | None = None
    area_en: str | None = None
    country_code: str | None = None
    storage_num: int = 0


class CJOrderParams(CJModel):
    cj_order_id: str
    order_number: str | None = None
    order_status: str | None = None
    logistic_name: str | None = None
    track_number: str | None = None


class CJSplitOrder(CJModel):
    order_code: str
    order_status: str | int | None = None


class CJOrderSplitParams(CJModel):
    original_order_id: str
    split_order_list: list[CJSplitOrder] = Field(default_factory=list)


class CJSourcingParams(CJModel):
    cj_sourcing_id: str
    cj_product_id: str | None = None
    cj_variant_id: str | None = None
    cj_variant_sku: str | None = None
    status: str | None = None
    fail_reason: str | None = None


class CJLogisticsParams(CJModel):
    order_id: str
    logistic_name: str | None = None
    tracking_number: str | None = None
    tracking_status: str | int | None = None
    logistics_track_events: Any = None


# =============================================================================
# Orders
# =============================================================================


class CJOrderProduct(CJModel):
    vid: str = Field(..., pattern=r"^[a-zA-Z0-9\-]+$")
    quantity: int = Field(..., ge=1)


class CJOrderRequest(CJModel):
    """Body of shopping/order/createOrderV2."""

    order_number: str
    shipping_country_code: str
    shipping_country: str | None = None
    shipping_province: str | None = None
    shipping_city: str
    shipping_address: str
    shipping_customer_name: str
    shipping_phone: str | None = None
    shipping_zip: str | None = None
    logistic_name: str
    from_country_code: str = "CN"
    products: list[CJOrderProduct]
