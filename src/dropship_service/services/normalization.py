"""Pure helpers translating CJ catalog data into the storefront schema."""

import json
import re
from dataclasses import dataclass
from typing import Any

from shared.constants import MAX_PRODUCT_NAME_LENGTH

_WHITESPACE_RE = re.compile(r"\s+")
_NAME_STRIP_RE = re.compile(r"[^\w\s-]")
_HTML_TAG_RE = re.compile(r"<[^>]*>")
_NUMBER_RE = re.compile(r"\d+(?:\.\d+)?")
_SLUG_RE = re.compile(r"[^a-z0-9]+")

_HTML_ENTITIES = {
    "&nbsp;": " ",
    "&amp;": "&",
    "&lt;": "<",
    "&gt;": ">",
    "&quot;": '"',
}


@dataclass(frozen=True)
class CategoryNode:
    """A flattened CJ category tree node."""

    external_id: str
    name: str
    parent_external_id: str | None
    level: int


def parse_price_cents(value: Any) -> int:
    """Convert a CJ price (number, "12.5" or range "2.45 -- 3.10") to cents.

    Ranges resolve to their lower bound. Anything unparseable is 0.
    """
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        return max(int(round(value * 100)), 0)
    match = _NUMBER_RE.search(str(value))
    if not match:
        return 0
    return int(round(float(match.group()) * 100))


def parse_image_list(value: Any) -> list[str]:
    """Normalize CJ image fields into a list of URLs."""
    if not value:
        return []
    if isinstance(value, list):
        return [str(v).strip() for v in value if v and str(v).strip()]

    text = str(value).strip()
    if text.startswith("["):
        try:
            parsed = json.loads(text)
        except ValueError:
            parsed = None
        if isinstance(parsed, list):
            return [str(v).strip() for v in parsed if v and str(v).strip()]
    return [part.strip() for part in text.split(",") if part.strip()]


def clean_product_name(name: str | None) -> str:
    if not name:
        return ""
    cleaned = _WHITESPACE_RE.sub(" ", name.strip())
    cleaned = _NAME_STRIP_RE.sub("", cleaned)
    cleaned = _WHITESPACE_RE.sub(" ", cleaned).strip()
    return cleaned[:MAX_PRODUCT_NAME_LENGTH]


def clean_product_description(text: str | None) -> str:
    if not text:
        return ""
    cleaned = _HTML_TAG_RE.sub(" ", text)
    for entity, replacement in _HTML_ENTITIES.items():
        cleaned = cleaned.replace(entity, replacement)
    return _WHITESPACE_RE.sub(" ", cleaned).strip()


def calculate_price_with_margin(cost_cents: int, margin_percent: float) -> int:
    """Selling price in cents for a cost and a percentage margin."""
    if cost_cents <= 0:
        return 0
    return int(round(cost_cents * (1 + margin_percent / 100)))


def slugify(name: str) -> str:
    return _SLUG_RE.sub("-", name.lower()).strip("-")


def flatten_category_tree(tree: list[dict[str, Any]]) -> list[CategoryNode]:
    """Flatten CJ's first/second/third level category tree.

    CJ returns::

        [{"categoryFirstId", "categoryFirstName", "categoryFirstList": [
            {"categorySecondId", "categorySecondName", "categorySecondList": [
                {"categoryId", "categoryName"}]}]}]
    """
    nodes: list[CategoryNode] = []
    for first in tree or []:
        first_id = first.get("categoryFirstId")
        if first_id:
            nodes.append(
                CategoryNode(str(first_id), first.get("categoryFirstName") or "", None, 1)
            )
        for second in first.get("categoryFirstList") or []:
            second_id = second.get("categorySecondId")
            if second_id:
                nodes.append(
                    CategoryNode(
                        str(second_id),
                        second.get("categorySecondName") or "",
                        str(first_id) if first_id else None,
                        2,
                    )
                )
            for third in second.get("categorySecondList") or []:
                third_id = third.get("categoryId")
                if third_id:
                    nodes.append(
                        CategoryNode(
                            str(third_id),
                            third.get("categoryName") or "",
                            str(second_id) if second_id else None,
                            3,
                        )
                    )
    return nodes


def summarize_cj_product(raw: dict[str, Any]) -> dict[str, Any]:
    """Compact search result for a CJ product listing entry."""
    images = parse_image_list(raw.get("productImage"))
    return {
        "pid": raw.get("pid"),
        "name": raw.get("productNameEn") or raw.get("productName") or "",
        "sku": raw.get("productSku"),
        "image": images[0] if images else None,
        "sell_price_cents": parse_price_cents(raw.get("sellPrice")),
        "category": raw.get("categoryName"),
        "category_id": raw.get("categoryId"),
        "weight": raw.get("productWeight"),
    }


def normalize_cj_variant(raw: dict[str, Any]) -> dict[str, Any]:
    """Map a CJ variant payload to ProductVariant column values."""
    dimensions = {
        key: raw.get(f"variant{key.capitalize()}")
        for key in ("length", "width", "height")
        if raw.get(f"variant{key.capitalize()}") is not None
    }
    return {
        "cj_variant_id": raw.get("vid"),
        "name": raw.get("variantNameEn") or raw.get("variantName"),
        "sku": raw.get("variantSku"),
        "price_cents": parse_price_cents(raw.get("variantSellPrice")),
        "weight": raw.get("variantWeight"),
        "dimensions": dimensions or None,
        "image": raw.get("variantImage"),
        "properties": {"key": raw.get("variantKey")} if raw.get("variantKey") else None,
    }


def total_storage(entries: list[dict[str, Any]] | None) -> int:
    """Sum warehouse quantities from a CJ stock response."""
    total = 0
    for entry in entries or []:
        value = entry.get("storageNum", entry.get("totalInventoryNum", 0))
        try:
            total += int(value or 0)
        except (TypeError, ValueError):
            continue
    return total
