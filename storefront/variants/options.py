"""
storefront/variants/options.py
------------------------------
Turns raw VariationRecords into displayable options, per dimension.

Handles incomplete catalogs: a product without metal rows gets the
generic metal list, and one without size rows gets the static size
list for its category, so the selector is never empty.
"""
from __future__ import annotations
import re
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, List, Optional

from storefront.pricing import METAL_TYPE_NAMES

# ── Dimensions ───────────────────────────────────────────────────
METAL       = 'metal_type'
SIZE        = 'size'
GEMSTONE    = 'gemstone_quality'
CARAT       = 'carat_weight'
CERTIFICATE = 'certificate'
CUSTOM      = 'custom'

DIMENSIONS = (METAL, SIZE, GEMSTONE, CARAT, CERTIFICATE, CUSTOM)

# Only these dimensions change the piece's weight
WEIGHT_DIMENSIONS = (METAL, SIZE)

SINGLE = 'single'
MULTI  = 'multi'

DEFAULT_MODES = {
    METAL:       SINGLE,
    SIZE:        SINGLE,
    GEMSTONE:    SINGLE,
    CARAT:       SINGLE,
    CERTIFICATE: SINGLE,
    CUSTOM:      MULTI,
}

DEFAULT_GROUP_LABELS = {
    METAL:       'Metal',
    SIZE:        'Size',
    GEMSTONE:    'Gemstone Quality',
    CARAT:       'Total Carat Weight',
    CERTIFICATE: 'Add Certificate',
    CUSTOM:      'Add Ons',
}

# Used when a product has no metal_type variation rows
GENERIC_METALS = [
    ('gold_24k', '24K Yellow Gold'),
    ('gold_22k', '22K Yellow Gold'),
    ('gold_18k', '18K White Gold'),
    ('silver',   'Sterling Silver'),
    ('platinum', 'Platinum'),
]

# Used when a product has no size variation rows
CATEGORY_SIZE_OPTIONS = {
    'rings':     ('Ring Size',       ['5', '6', '7', '8', '9', '10', '11', '12', '13',
                                      '14', '15', '16', '17', '18']),
    'bangles':   ('Bangle Size',     ['2.2', '2.4', '2.6', '2.8', '3.0']),
    'bracelets': ('Bracelet Length', ['6"', '6.5"', '7"', '7.5"', '8"', '8.5"']),
    'necklaces': ('Chain Length',    ['16"', '18"', '20"', '22"', '24"', '26"', '28"', '30"']),
    'chains':    ('Chain Length',    ['16"', '18"', '20"', '22"', '24"', '26"', '28"', '30"']),
}

ENGRAVING_FONTS = ('script', 'block')

_UUID_RE = re.compile(r'^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$', re.I)
_URL_RE  = re.compile(r'^https?://', re.I)


def looks_like_uuid(value: Optional[str]) -> bool:
    return bool(value) and bool(_UUID_RE.match(value))


def looks_like_url(value: Optional[str]) -> bool:
    return bool(value) and bool(_URL_RE.match(value))


def normalize_label(label: Optional[str], value: Optional[str], placeholder: str = 'Option') -> str:
    """
    Shopper-facing label. A blank label falls back to the value, unless
    the value is an opaque id or a URL, in which case the placeholder
    is used. Ids and URLs never reach the shopper.
    """
    trimmed = (label or '').strip()
    if trimmed:
        return trimmed
    value = (value or '').strip()
    if value and not looks_like_uuid(value) and not looks_like_url(value):
        return value
    return placeholder


def infer_image(explicit: Optional[str], *candidates: Optional[str]) -> Optional[str]:
    if explicit:
        return explicit
    for candidate in candidates:
        if looks_like_url(candidate):
            return candidate
    return None


@dataclass(frozen=True)
class VariantOption:
    value:             str
    label:             str
    price_adjustment:  Decimal = Decimal('0')
    weight_adjustment: Decimal = Decimal('0')
    image_url:         Optional[str] = None
    is_default:        bool = False
    stock:             Optional[int] = None   # None = not tracked
    metal_type:        Optional[str] = None

    @property
    def in_stock(self) -> bool:
        return self.stock is None or self.stock > 0

    @property
    def is_engraving(self) -> bool:
        return 'engraving' in self.label.lower() or 'engraving' in self.value.lower()

    def to_dict(self) -> dict:
        return {
            'value':             self.value,
            'label':             self.label,
            'price_adjustment':  str(self.price_adjustment),
            'weight_adjustment': str(self.weight_adjustment),
            'image_url':         self.image_url,
            'is_default':        self.is_default,
            'stock':             self.stock,
            'in_stock':          self.in_stock,
        }


@dataclass(frozen=True)
class DimensionOptions:
    dimension:   str
    mode:        str
    group_label: str
    options:     List[VariantOption]
    is_fallback: bool = False

    def find(self, value: str) -> Optional[VariantOption]:
        for option in self.options:
            if option.value == value:
                return option
        return None

    @property
    def engraving_option(self) -> Optional[VariantOption]:
        if self.dimension != CUSTOM:
            return None
        return next((o for o in self.options if o.is_engraving), None)


# ── Builders ─────────────────────────────────────────────────────

def _metal_option(record) -> VariantOption:
    return VariantOption(
        value=record.id,
        label=normalize_label(record.label or METAL_TYPE_NAMES.get(record.metal_type or ''),
                              record.value, placeholder='Metal'),
        price_adjustment=record.price_adjustment,
        weight_adjustment=record.weight_adjustment,
        image_url=record.image_url,
        is_default=record.is_default,
        stock=record.stock_quantity,
        metal_type=record.metal_type,
    )


def _size_option(record) -> VariantOption:
    return VariantOption(
        value=record.value or record.label or record.id,
        label=normalize_label(record.label, record.value),
        price_adjustment=record.price_adjustment,
        weight_adjustment=record.weight_adjustment,
        image_url=record.image_url,
        is_default=record.is_default,
        stock=record.stock_quantity,
    )


def _grade_option(record) -> VariantOption:
    """Gemstone quality / carat weight: keyed by value, weight never applies."""
    value = record.value or record.label or record.id
    return VariantOption(
        value=value,
        label=normalize_label(record.label, record.value),
        price_adjustment=record.price_adjustment,
        image_url=infer_image(record.image_url, record.value, record.label),
        is_default=record.is_default,
    )


def _addon_option(record) -> VariantOption:
    """Certificates / custom add-ons: keyed by record id."""
    return VariantOption(
        value=record.id,
        label=normalize_label(record.label, record.value),
        price_adjustment=record.price_adjustment,
        image_url=infer_image(record.image_url, record.value, record.label),
        is_default=record.is_default,
    )


_BUILDERS = {
    METAL:       _metal_option,
    SIZE:        _size_option,
    GEMSTONE:    _grade_option,
    CARAT:       _grade_option,
    CERTIFICATE: _addon_option,
    CUSTOM:      _addon_option,
}


def _mode_for(dimension: str, records) -> str:
    # Metal and size always resolve to exactly one choice
    if dimension in WEIGHT_DIMENSIONS:
        return SINGLE
    for record in records:
        if record.selection_mode in (SINGLE, MULTI):
            return record.selection_mode
    return DEFAULT_MODES[dimension]


def _group_label_for(dimension: str, records, category: Optional[str]) -> str:
    for record in records:
        if record.group_label and record.group_label.strip():
            return record.group_label.strip()
    if dimension == SIZE and category in CATEGORY_SIZE_OPTIONS:
        return CATEGORY_SIZE_OPTIONS[category][0]
    return DEFAULT_GROUP_LABELS[dimension]


def _fallback_metals(base_metal_type: str) -> List[VariantOption]:
    return [
        VariantOption(value=metal, label=label, is_default=(metal == base_metal_type),
                      metal_type=metal)
        for metal, label in GENERIC_METALS
    ]


def _fallback_sizes(category: Optional[str]) -> List[VariantOption]:
    if category not in CATEGORY_SIZE_OPTIONS:
        return []
    _, sizes = CATEGORY_SIZE_OPTIONS[category]
    return [VariantOption(value=s, label=s) for s in sizes]


def build_dimension_options(records, base_metal_type: str,
                            category: Optional[str] = None) -> Dict[str, DimensionOptions]:
    """
    Group records by dimension and convert them to options.
    Unavailable records are dropped; out-of-stock ones are kept (shown
    but not selectable). Dimensions with no options are omitted.
    """
    grouped: Dict[str, list] = {d: [] for d in DIMENSIONS}
    for record in records:
        if record.dimension in grouped and record.is_available:
            grouped[record.dimension].append(record)

    result: Dict[str, DimensionOptions] = {}
    for dimension in DIMENSIONS:
        dim_records = grouped[dimension]
        options = [_BUILDERS[dimension](r) for r in dim_records]
        is_fallback = False

        if not options and dimension == METAL:
            options, is_fallback = _fallback_metals(base_metal_type), True
        elif not options and dimension == SIZE:
            options, is_fallback = _fallback_sizes(category), True

        if not options:
            continue

        result[dimension] = DimensionOptions(
            dimension=dimension,
            mode=_mode_for(dimension, dim_records),
            group_label=_group_label_for(dimension, dim_records, category),
            options=options,
            is_fallback=is_fallback,
        )
    return result
