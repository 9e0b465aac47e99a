"""Unit tests for CJ catalog normalization helpers."""

import pytest

from dropship_service.services.normalization import (
    CategoryNode,
    calculate_price_with_margin,
    clean_product_description,
    clean_product_name,
    flatten_category_tree,
    normalize_cj_variant,
    parse_image_list,
    parse_price_cents,
    slugify,
    summarize_cj_product,
    total_storage,
)


class TestParsePriceCents:
    @pytest.mark.parametrize(
        "value, expected",
        [
            (12.5, 1250),
            (3, 300),
            ("19.99", 1999),
            ("2.45 -- 3.10", 245),
            ("", 0),
            ("n/a", 0),
            (None, 0),
            (True, 0),
        ],
    )
    def test_values(self, value, expected) -> None:
        assert parse_price_cents(value) == expected

    def test_negative_number_clamped(self) -> None:
        assert parse_price_cents(-4.0) == 0


class TestParseImageList:
    def test_list(self) -> None:
        assert parse_image_list(["a.jpg", " ", "b.jpg"]) == ["a.jpg", "b.jpg"]

    def test_json_string(self) -> None:
        assert parse_image_list('["a.jpg", "b.jpg"]') == ["a.jpg", "b.jpg"]

    def test_comma_separated(self) -> None:
        assert parse_image_list("a.jpg, b.jpg,") == ["a.jpg", "b.jpg"]

    def test_empty(self) -> None:
        assert parse_image_list(None) == []
        assert parse_image_list("") == []


class TestCleaning:
    def test_name_strips_symbols_and_whitespace(self) -> None:
        assert clean_product_name("  Smart   Watch™ (2024)!  ") == "Smart Watch 2024"

    def test_name_keeps_hyphens(self) -> None:
        assert clean_product_name("USB-C Cable") == "USB-C Cable"

    def test_name_truncated(self) -> None:
        assert len(clean_product_name("a" * 500)) == 200

    def test_name_empty(self) -> None:
        assert clean_product_name(None) == ""

    def test_description_strips_html(self) -> None:
        html = "<p>Soft&nbsp;cotton</p><br/><b>Size:</b> M &amp; L"
        assert clean_product_description(html) == "Soft cotton Size: M & L"


class TestPricing:
    def test_margin_applied(self) -> None:
        assert calculate_price_with_margin(1000, 30) == 1300

    def test_fractional_margin_rounds(self) -> None:
        assert calculate_price_with_margin(999, 12.5) == 1124

    def test_zero_cost(self) -> None:
        assert calculate_price_with_margin(0, 50) == 0


def test_slugify() -> None:
    assert slugify("Home & Office") == "home-office"
    assert slugify("  Phones / Tablets ") == "phones-tablets"


class TestFlattenCategoryTree:
    def test_three_levels(self) -> None:
        tree = [
            {
                "categoryFirstId": "1",
                "categoryFirstName": "Electronics",
                "categoryFirstList": [
                    {
                        "categorySecondId": "11",
                        "categorySecondName": "Audio",
                        "categorySecondList": [
                            {"categoryId": "111", "categoryName": "Earphones"},
                            {"categoryId": "112", "categoryName": "Speakers"},
                        ],
                    }
                ],
            }
        ]

        nodes = flatten_category_tree(tree)

        assert nodes == [
            CategoryNode("1", "Electronics", None, 1),
            CategoryNode("11", "Audio", "1", 2),
            CategoryNode("111", "Earphones", "11", 3),
            CategoryNode("112", "Speakers", "11", 3),
        ]

    def test_empty(self) -> None:
        assert flatten_category_tree([]) == []


class TestCJPayloads:
    def test_summarize_product(self) -> None:
        summary = summarize_cj_product(
            {
                "pid": "P1",
                "productNameEn": "Desk Lamp",
                "productSku": "CJ-1",
                "productImage": '["https://img/1.jpg", "https://img/2.jpg"]',
                "sellPrice": "4.20 -- 5.00",
                "categoryName": "Lamps",
                "categoryId": "C9",
                "productWeight": 350,
            }
        )
        assert summary["pid"] == "P1"
        assert summary["name"] == "Desk Lamp"
        assert summary["image"] == "https://img/1.jpg"
        assert summary["sell_price_cents"] == 420
        assert summary["category"] == "Lamps"

    def test_normalize_variant(self) -> None:
        variant = normalize_cj_variant(
            {
                "vid": "V1",
                "variantNameEn": "Desk Lamp Black",
                "variantSku": "CJ-1-BK",
                "variantSellPrice": 4.2,
                "variantLength": 10,
                "variantWidth": 5,
                "variantKey": "Black",
            }
        )
        assert variant["cj_variant_id"] == "V1"
        assert variant["price_cents"] == 420
        assert variant["dimensions"] == {"length": 10, "width": 5}
        assert variant["properties"] == {"key": "Black"}

    def test_total_storage(self) -> None:
        entries = [{"storageNum": 5}, {"storageNum": "7"}, {"storageNum": None}, {"storageNum": "x"}]
        assert total_storage(entries) == 12
        assert total_storage(None) == 0
