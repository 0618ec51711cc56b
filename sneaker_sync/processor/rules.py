"""
Business rules for pricing and sizing marketplace variants.
"""

import re
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import List, Optional


# Markup tiers: (upper bound of ask price, flat markup added)
MARKUP_TIERS = (
    (Decimal("100"), Decimal("40")),
    (Decimal("200"), Decimal("55")),
    (Decimal("400"), Decimal("75")),
)
TOP_TIER_MARKUP = Decimal("110")

PRICE_STEP = Decimal("5")
# Subtracted after rounding so prices end in .90
DEFAULT_PRICE_ENDING_OFFSET = Decimal("0.10")

SIZE_OPTION_NAME = "Size (EU)"
UNKNOWN_SIZE = "N/A"

_US_PREFIX = re.compile(r"^US\s+", re.IGNORECASE)
_SIZE_NUMBER = re.compile(r"(\d+[.,]?\d*)")
_CENTS = Decimal("0.01")


def calculate_markup(base_price: Decimal) -> Decimal:
    """Flat markup for the tier ``base_price`` falls into."""
    for upper_bound, markup in MARKUP_TIERS:
        if base_price <= upper_bound:
            return markup
    return TOP_TIER_MARKUP


def calculate_markup_price(
    base_price: Decimal,
    offset: Decimal = DEFAULT_PRICE_ENDING_OFFSET,
) -> Decimal:
    """
    Calculate the storefront sale price for a marketplace ask.

    Rules:
    1. Add the tier markup (<=100: +40, <=200: +55, <=400: +75, else +110)
    2. Round to the nearest multiple of 5 (halves round up)
    3. Subtract ``offset`` for a psychological ending (.90 or .99)

    Args:
        base_price: Lowest ask on the marketplace
        offset: Amount subtracted after rounding

    Returns:
        Sale price with two decimal places
    """
    price = Decimal(base_price) + calculate_markup(Decimal(base_price))
    steps = (price / PRICE_STEP).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    rounded = steps * PRICE_STEP
    return (rounded - Decimal(offset)).quantize(_CENTS, rounding=ROUND_HALF_UP)


def format_price(value) -> Optional[str]:
    """
    Format a price to standard format (2 decimal places).

    Args:
        value: Price as string or Decimal

    Returns:
        Formatted price or None
    """
    if value is None:
        return None

    try:
        decimal_value = Decimal(str(value))
        return str(decimal_value.quantize(_CENTS, rounding=ROUND_HALF_UP))
    except InvalidOperation:
        return None


def price_changed(current: Optional[str], target: Decimal) -> bool:
    """Determine if a stored price differs from the target price."""
    return format_price(current) != format_price(target)


def parse_ask(value) -> Optional[Decimal]:
    """Parse a marketplace ask amount; None for missing, zero or garbage."""
    if value is None or value == "":
        return None
    try:
        amount = Decimal(str(value))
    except InvalidOperation:
        return None
    if not amount.is_finite() or amount <= 0:
        return None
    return amount


def normalize_size(size: Optional[str]) -> str:
    """Strip a leading "US " and default missing sizes to N/A."""
    if not size:
        return UNKNOWN_SIZE
    cleaned = _US_PREFIX.sub("", str(size).strip())
    return cleaned or UNKNOWN_SIZE


def resolve_sizes(variant: dict) -> tuple:
    """
    Work out (EU size, US size) for a marketplace variant descriptor.

    EU comes from the "eu" typed conversion; apparel usually only has the
    default (US) conversion, which then stands in for both.
    """
    size_chart = variant.get("sizeChart")
    if not isinstance(size_chart, dict):
        size_chart = {}
    conversions = size_chart.get("availableConversions")
    if not isinstance(conversions, list):
        conversions = []
    default = size_chart.get("defaultConversion") or {}

    eu_size = None
    for conversion in conversions:
        if isinstance(conversion, dict) and conversion.get("type") == "eu":
            eu_size = conversion.get("size")
            break

    us_size = default.get("size") if isinstance(default, dict) else None
    if not eu_size and us_size:
        eu_size = us_size

    return normalize_size(eu_size), normalize_size(us_size)


def parse_size_number(value: str) -> float:
    """
    Leading numeric token of a size value, accepting a comma decimal.

    "42" -> 42.0, "42.5" -> 42.5, "42,5" -> 42.5, "EU 42" -> 42.0, "XS" -> 0.0
    """
    match = _SIZE_NUMBER.search(str(value))
    if not match:
        return 0.0
    return float(match.group(1).replace(",", "."))


def sort_size_values(values: List[str]) -> List[str]:
    """Sort size option values ascending by their numeric token (stable)."""
    return sorted(values, key=parse_size_number)


def variant_sku(product_sku: str, size: str) -> str:
    """Inventory SKU for one size, e.g. FV5029-100-42.5"""
    compact_size = re.sub(r"\s", "", size)
    return f"{product_sku}-{compact_size}"


def base_sku_from_variant_sku(sku: Optional[str]) -> str:
    """Recover the product SKU from a variant SKU by dropping the size suffix."""
    if not sku:
        return ""
    return re.sub(r"-[^-]+$", "", sku)
