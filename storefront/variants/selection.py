"""
storefront/variants/selection.py
--------------------------------
Value types for a shopper's variation choices, and the signature that
de-duplicates cart lines.

Inside the resolver each dimension holds one of:
    SingleChoice(value)          — single-mode dimension
    MultiChoice(values)          — multi-mode dimension (frozenset)
and engraving is carried separately as an EngravingPayload.

Only at the boundary (VariationSelection.summary) do these become a
plain label map, which is what cart lines store and what the
signature is computed from.
"""
from __future__ import annotations
import hashlib
import json
from dataclasses import dataclass, field
from decimal import Decimal
from typing import FrozenSet, Optional, Tuple, Union


@dataclass(frozen=True)
class SingleChoice:
    value: str


@dataclass(frozen=True)
class MultiChoice:
    values: FrozenSet[str] = frozenset()


Choice = Union[SingleChoice, MultiChoice]


@dataclass(frozen=True)
class EngravingPayload:
    text: str
    font: str = 'script'

    def to_dict(self) -> dict:
        return {'text': self.text, 'font': self.font}


# ── Signature ────────────────────────────────────────────────────

def _canonical_number(value) -> str:
    """'500', '500.00' and Decimal('5E+2') all canonicalise to '500'."""
    dec = Decimal(str(value or 0))
    if dec == 0:
        return '0'
    return format(dec.normalize(), 'f')


def _canonical(value):
    """
    Recursively normalise a summary so that key order, list order and
    empty entries cannot change the serialised form.
    """
    if isinstance(value, dict):
        out = {}
        for key, item in value.items():
            item = _canonical(item)
            if item is None or item == [] or item == {}:
                continue
            out[str(key)] = item
        return out
    if isinstance(value, (list, tuple, set, frozenset)):
        items = [_canonical(v) for v in value]
        items = [v for v in items if v is not None]
        return sorted(items, key=lambda v: json.dumps(v, sort_keys=True))
    if isinstance(value, Decimal):
        return _canonical_number(value)
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


def variation_signature(summary: dict, price_adjustment, weight_adjustment) -> str:
    """
    Stable fingerprint of a selection: sha256 over canonical JSON of the
    label summary plus both deltas. Pure function of content.
    """
    payload = {
        'options':           _canonical(summary or {}),
        'price_adjustment':  _canonical_number(price_adjustment),
        'weight_adjustment': _canonical_number(weight_adjustment),
    }
    blob = json.dumps(payload, sort_keys=True, separators=(',', ':'), ensure_ascii=False)
    return hashlib.sha256(blob.encode('utf-8')).hexdigest()


# ── Resolver output ──────────────────────────────────────────────

@dataclass(frozen=True)
class VariationSelection:
    """
    Everything the cart needs from a configured product view.

    `summary` maps dimension → label (single) or sorted labels (multi),
    plus an optional 'engraving' → {text, font}. `missing` lists
    single-mode dimensions that have options but nothing selected.
    """
    metal_label:       str
    size:              Optional[str] = None
    price_adjustment:  Decimal = Decimal('0')
    weight_adjustment: Decimal = Decimal('0')
    display_image:     Optional[str] = None
    summary:           dict = field(default_factory=dict)
    engraving_pending: bool = False
    missing:           Tuple[str, ...] = ()

    @property
    def signature(self) -> str:
        return variation_signature(self.summary, self.price_adjustment, self.weight_adjustment)

    @property
    def is_complete(self) -> bool:
        return not self.missing

    @property
    def engraving(self) -> Optional[dict]:
        return self.summary.get('engraving')

    def to_dict(self) -> dict:
        return {
            'metal_label':       self.metal_label,
            'size':              self.size,
            'price_adjustment':  str(self.price_adjustment),
            'weight_adjustment': str(self.weight_adjustment),
            'display_image':     self.display_image,
            'selected_options':  self.summary,
            'engraving_pending': self.engraving_pending,
            'missing':           list(self.missing),
            'signature':         self.signature,
        }

    @classmethod
    def from_captured(cls, selected_options: dict, price_adjustment,
                      weight_adjustment) -> 'VariationSelection':
        """
        Rebuild a selection from what a cart line captured. The signature
        matches the original because it depends only on these three values.
        """
        options = dict(selected_options or {})
        return cls(
            metal_label=options.get('metal_type') or '',
            size=options.get('size'),
            price_adjustment=Decimal(str(price_adjustment or 0)),
            weight_adjustment=Decimal(str(weight_adjustment or 0)),
            summary=options,
        )
