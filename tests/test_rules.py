"""
Tests for business rules (price calculation and size handling).
"""

import pytest
from decimal import Decimal
from sneaker_sync.processor.rules import (
    calculate_markup,
    calculate_markup_price,
    format_price,
    price_changed,
    parse_ask,
    normalize_size,
    resolve_sizes,
    parse_size_number,
    sort_size_values,
    variant_sku,
    base_sku_from_variant_sku,
)


class TestCalculateMarkupPrice:
    """Tests for calculate_markup_price function."""

    def test_lowest_tier(self):
        """100 + 40 = 140, minus 0.10."""
        assert calculate_markup_price(Decimal("100")) == Decimal("139.90")

    def test_second_tier(self):
        """150 + 55 = 205, minus 0.10."""
        assert calculate_markup_price(Decimal("150")) == Decimal("204.90")

    def test_rounds_to_nearest_five(self):
        """120 + 55 = 175; 101 + 55 = 156 rounds down to 155."""
        assert calculate_markup_price(Decimal("120")) == Decimal("174.90")
        assert calculate_markup_price(Decimal("101")) == Decimal("154.90")

    def test_halfway_rounds_up(self):
        """102.50 + 55 = 157.50, exactly between 155 and 160."""
        assert calculate_markup_price(Decimal("102.50")) == Decimal("159.90")

    def test_tier_boundaries_are_inclusive(self):
        assert calculate_markup(Decimal("100")) == Decimal("40")
        assert calculate_markup(Decimal("100.01")) == Decimal("55")
        assert calculate_markup(Decimal("200")) == Decimal("55")
        assert calculate_markup(Decimal("400")) == Decimal("75")
        assert calculate_markup(Decimal("400.01")) == Decimal("110")

    def test_upper_tiers(self):
        assert calculate_markup_price(Decimal("300")) == Decimal("374.90")
        assert calculate_markup_price(Decimal("500")) == Decimal("609.90")

    def test_alternative_price_ending(self):
        assert calculate_markup_price(Decimal("100"), offset=Decimal("0.01")) == Decimal("139.99")

    def test_result_has_two_decimals(self):
        assert str(calculate_markup_price(Decimal("99.99"))) == "139.90"


class TestPriceHelpers:
    """Tests for price formatting, comparison and ask parsing."""

    def test_format_price(self):
        assert format_price("29.9") == "29.90"
        assert format_price(Decimal("10")) == "10.00"
        assert format_price(None) is None
        assert format_price("abc") is None

    def test_price_changed(self):
        assert not price_changed("174.9", Decimal("174.90"))
        assert price_changed("170.00", Decimal("174.90"))
        assert price_changed(None, Decimal("174.90"))

    @pytest.mark.parametrize("raw, expected", [
        ("120", Decimal("120")),
        (95.5, Decimal("95.5")),
        (None, None),
        ("", None),
        ("0", None),
        (-5, None),
        ("abc", None),
        ("NaN", None),
    ])
    def test_parse_ask(self, raw, expected):
        assert parse_ask(raw) == expected


class TestSizes:
    """Tests for size normalization, parsing and sorting."""

    def test_normalize_strips_us_prefix(self):
        assert normalize_size("US 9") == "9"
        assert normalize_size("us  10.5") == "10.5"
        assert normalize_size("EU 42") == "EU 42"

    def test_normalize_missing(self):
        assert normalize_size(None) == "N/A"
        assert normalize_size("") == "N/A"

    def test_resolve_prefers_eu_conversion(self):
        variant = {
            "sizeChart": {
                "defaultConversion": {"size": "US 9", "type": "us m"},
                "availableConversions": [
                    {"size": "UK 8", "type": "uk"},
                    {"size": "42.5", "type": "eu"},
                ],
            }
        }
        assert resolve_sizes(variant) == ("42.5", "9")

    def test_resolve_falls_back_to_default_conversion(self):
        variant = {"sizeChart": {"defaultConversion": {"size": "US 9"}, "availableConversions": []}}
        assert resolve_sizes(variant) == ("9", "9")

    def test_resolve_without_size_chart(self):
        assert resolve_sizes({}) == ("N/A", "N/A")

    @pytest.mark.parametrize("value, expected", [
        ("42", 42.0),
        ("42.5", 42.5),
        ("42,5", 42.5),
        ("EU 42", 42.0),
        ("XS", 0.0),
    ])
    def test_parse_size_number(self, value, expected):
        assert parse_size_number(value) == expected

    def test_sort_size_values(self):
        assert sort_size_values(["43", "40", "42.5"]) == ["40", "42.5", "43"]

    def test_sort_is_stable_for_unparsable_values(self):
        assert sort_size_values(["M", "41", "S"]) == ["M", "S", "41"]


class TestSkus:
    """Tests for variant SKU construction and recovery."""

    def test_variant_sku_drops_whitespace(self):
        assert variant_sku("FV5029-100", "42") == "FV5029-100-42"
        assert variant_sku("FV5029-100", "42 1/2") == "FV5029-100-421/2"

    def test_base_sku_from_variant_sku(self):
        assert base_sku_from_variant_sku("FV5029-100-42.5") == "FV5029-100"
        assert base_sku_from_variant_sku(None) == ""
