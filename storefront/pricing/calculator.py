"""
storefront/pricing/calculator.py
--------------------------------
Pure-Python price engine: product attributes + rate snapshot → breakdown.

No DB access, no app context. Safe to call once per row when listing
products, and again per cart line when totals are rendered (the rate
may have moved in between).

Rounding: every money field is rounded half-up to a whole rupee on its
own, and `total` is built from the *rounded* subtotal and GST so the
displayed figures always add up.
"""
from __future__ import annotations
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Optional

WHOLE = Decimal('1')   # whole currency units

DEFAULT_MAKING_CHARGE_PERCENT = Decimal('12')
DEFAULT_GST_PERCENT           = Decimal('3')

# 18k is approximated from 22k when no 18k rate is published.
# Not a market-accurate purity derivation.
RATE_18K_FROM_22K = Decimal('0.75')

METAL_TYPE_NAMES = {
    'gold_24k': '24K Gold',
    'gold_22k': '22K Gold',
    'gold_18k': '18K Gold',
    'silver':   'Silver',
    'platinum': 'Platinum',
}


@dataclass(frozen=True)
class PriceBreakdown:
    gold_value:     Decimal
    making_charges: Decimal
    subtotal:       Decimal
    gst_amount:     Decimal
    total:          Decimal
    rate_applied:   Decimal

    def to_dict(self) -> dict:
        return {
            'gold_value':     int(self.gold_value),
            'making_charges': int(self.making_charges),
            'subtotal':       int(self.subtotal),
            'gst_amount':     int(self.gst_amount),
            'total':          int(self.total),
            'rate_applied':   str(self.rate_applied),
        }


ZERO_BREAKDOWN = PriceBreakdown(
    gold_value=Decimal('0'),
    making_charges=Decimal('0'),
    subtotal=Decimal('0'),
    gst_amount=Decimal('0'),
    total=Decimal('0'),
    rate_applied=Decimal('0'),
)


def round_money(value: Decimal) -> Decimal:
    return value.quantize(WHOLE, rounding=ROUND_HALF_UP)


def _dec(value, default: Optional[Decimal] = None) -> Optional[Decimal]:
    """Lenient Decimal conversion for legacy rows (None, '', NaN, junk → default)."""
    if value is None or value == '':
        return default
    try:
        dec = Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        return default
    return dec if dec.is_finite() else default


def rate_for_metal(metal_type: str, rate) -> Optional[Decimal]:
    """
    Per-gram rate for a purity, or None when the snapshot has no usable
    rate for it. Unknown purities price as 22k, like legacy rows always have.
    """
    if metal_type == 'gold_24k':
        return _dec(rate.rate_24k)
    if metal_type == 'gold_18k':
        rate_18k = _dec(rate.rate_18k)
        if rate_18k:
            return rate_18k
        rate_22k = _dec(rate.rate_22k)
        return rate_22k * RATE_18K_FROM_22K if rate_22k is not None else None
    if metal_type == 'silver':
        return _dec(getattr(rate, 'silver_rate', None))
    if metal_type == 'platinum':
        return None
    return _dec(rate.rate_22k)


def calculate_price(product, rate, category_making_charge=None, gst_percent=None,
                    weight_adjustment=0, price_adjustment=0) -> PriceBreakdown:
    """
    Price one unit of `product` against `rate` (a RateSnapshot or None).

    weight_adjustment is added to the base weight *before* gold value is
    computed, so it flows through making charges and GST. price_adjustment
    is a flat amount added to the subtotal before GST.

    Never raises: a missing rate or unusable product data yields
    ZERO_BREAKDOWN, because "rate still loading" is a normal state.
    """
    if rate is None:
        return ZERO_BREAKDOWN

    rate_per_gram = rate_for_metal(getattr(product, 'metal_type', None), rate)
    base_weight   = _dec(getattr(product, 'weight_grams', None))
    if rate_per_gram is None or base_weight is None:
        return ZERO_BREAKDOWN

    weight = base_weight + _dec(weight_adjustment, Decimal('0'))
    if weight < 0:
        weight = Decimal('0')

    making_pct = _dec(getattr(product, 'making_charge_percent', None))
    if making_pct is None:
        making_pct = _dec(category_making_charge, DEFAULT_MAKING_CHARGE_PERCENT)

    gst_pct = _dec(gst_percent, DEFAULT_GST_PERCENT)

    gold_value     = weight * rate_per_gram
    making_charges = gold_value * making_pct / Decimal('100')
    subtotal = (
        gold_value
        + making_charges
        + _dec(getattr(product, 'diamond_cost', None), Decimal('0'))
        + _dec(getattr(product, 'stone_cost', None), Decimal('0'))
        + _dec(price_adjustment, Decimal('0'))
    )
    gst = subtotal * gst_pct / Decimal('100')

    try:
        subtotal_r = round_money(subtotal)
        gst_r      = round_money(gst)
        return PriceBreakdown(
            gold_value=round_money(gold_value),
            making_charges=round_money(making_charges),
            subtotal=subtotal_r,
            gst_amount=gst_r,
            total=subtotal_r + gst_r,
            rate_applied=rate_per_gram,
        )
    except InvalidOperation:
        # amounts too large to quantize to whole units
        return ZERO_BREAKDOWN
