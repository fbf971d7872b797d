from storefront.pricing.calculator import (  # noqa: F401
    METAL_TYPE_NAMES, PriceBreakdown, ZERO_BREAKDOWN, calculate_price, rate_for_metal, round_money,
)
