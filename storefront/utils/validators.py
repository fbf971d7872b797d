"""
storefront/utils/validators.py
------------------------------
Validation shared by the product and cart endpoints.
"""
from decimal import Decimal, InvalidOperation

from storefront.errors import InvalidQuantity


def parse_quantity(quantity) -> int:
    """
    Whole-number quantity from a JSON body value.

    2, "2" and 2.0 are accepted; 2.9, "two", true and null are rejected
    rather than truncated. Range checks are left to the caller.
    """
    if isinstance(quantity, bool) or quantity is None:
        raise InvalidQuantity('Quantity must be a whole number.')
    try:
        value = Decimal(str(quantity).strip())
    except (InvalidOperation, ValueError):
        raise InvalidQuantity('Quantity must be a whole number.')
    if not value.is_finite() or value != value.to_integral_value():
        raise InvalidQuantity('Quantity must be a whole number.')
    return int(value)
