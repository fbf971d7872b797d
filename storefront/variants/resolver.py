"""
storefront/variants/resolver.py
-------------------------------
Per-product-view selection state across every variation dimension.

One VariantResolver lives as long as a product detail view. Each
mutation recomputes the combined price/weight delta, display image and
label summary, and notifies subscribers with a VariationSelection.

Rules:
  • single-mode dimension → exactly one active option; clicking the
    active option again does nothing.
  • multi-mode dimension → clicking toggles membership.
  • certificates and custom add-ons are optional: they start with only
    their marked defaults, and in single mode hold at most one option
    (clicking the active one clears it).
  • engraving (a custom add-on whose label/value mentions "engraving")
    is added tentatively when clicked and only kept once non-empty text
    is saved. Until then it is "selected" but not part of the summary.
  • out-of-stock metal/size options are listed but cannot be selected.
  • weight deltas come only from metal and size; images only from
    metal (then size). Other dimensions' images are swatches.
"""
from __future__ import annotations
from decimal import Decimal
from typing import Callable, Dict, List, Optional

from storefront.pricing import METAL_TYPE_NAMES
from storefront.errors import InvalidSelection
from storefront.variants.options import (
    CERTIFICATE, CUSTOM, DIMENSIONS, ENGRAVING_FONTS, GEMSTONE, CARAT, METAL, MULTI, SINGLE, SIZE,
    WEIGHT_DIMENSIONS, DimensionOptions, VariantOption, build_dimension_options,
)
from storefront.variants.selection import (
    Choice, EngravingPayload, MultiChoice, SingleChoice, VariationSelection,
)


ENGRAVING_MAX_LENGTH = 15

# Multi-mode grades are pre-filled like single ones
_PREFILL_MULTI = (GEMSTONE, CARAT)

# Never required, never pre-filled beyond marked defaults
OPTIONAL_DIMENSIONS = (CERTIFICATE, CUSTOM)

Listener = Callable[[VariationSelection], None]


class VariantResolver:

    def __init__(self, records, base_metal_type: str, category: Optional[str] = None,
                 engraving_max_length: int = ENGRAVING_MAX_LENGTH):
        self.base_metal_type = base_metal_type
        self.category = category
        self.engraving_max_length = engraving_max_length
        self.dimensions: Dict[str, DimensionOptions] = build_dimension_options(
            records, base_metal_type, category
        )
        self._choices: Dict[str, Choice] = {}
        self._engraving: Optional[EngravingPayload] = None
        self._listeners: List[Listener] = []
        self._apply_defaults()

    @classmethod
    def for_product(cls, product, records, **kwargs) -> 'VariantResolver':
        return cls(records, base_metal_type=product.metal_type, category=product.category, **kwargs)

    # ── Defaults ──────────────────────────────────────────────────

    def _apply_defaults(self) -> None:
        for dimension, dim in self.dimensions.items():
            selectable = [o for o in dim.options if o.in_stock and not o.is_engraving]
            defaults = [o for o in selectable if o.is_default]

            if dimension in OPTIONAL_DIMENSIONS:
                if dim.mode == SINGLE:
                    defaults = defaults[:1]
                self._choices[dimension] = MultiChoice(frozenset(o.value for o in defaults))
            elif dim.mode == SINGLE:
                pick = defaults[0] if defaults else (selectable[0] if selectable else None)
                if pick is not None:
                    self._choices[dimension] = SingleChoice(pick.value)
            else:
                if not defaults and dimension in _PREFILL_MULTI and selectable:
                    defaults = [selectable[0]]
                self._choices[dimension] = MultiChoice(frozenset(o.value for o in defaults))

    # ── Subscriptions ─────────────────────────────────────────────

    def subscribe(self, listener: Listener) -> None:
        """Register a callback; it immediately receives the current state."""
        self._listeners.append(listener)
        listener(self.current())

    def _emit(self) -> VariationSelection:
        selection = self.current()
        for listener in self._listeners:
            listener(selection)
        return selection

    # ── Queries ───────────────────────────────────────────────────

    def _dimension(self, dimension: str) -> DimensionOptions:
        dim = self.dimensions.get(dimension)
        if dim is None:
            raise InvalidSelection(f'This product has no "{dimension}" options.')
        return dim

    def _option(self, dimension: str, value) -> VariantOption:
        dim = self._dimension(dimension)
        option = dim.find(str(value))
        if option is None:
            raise InvalidSelection(f'"{value}" is not a valid {dim.group_label} option.')
        return option

    def selected_values(self, dimension: str) -> List[str]:
        """Raw selected values, including a tentative engraving."""
        choice = self._choices.get(dimension)
        if isinstance(choice, SingleChoice):
            return [choice.value]
        if isinstance(choice, MultiChoice):
            return sorted(choice.values)
        return []

    def is_selected(self, dimension: str, value: str) -> bool:
        return str(value) in self.selected_values(dimension)

    def _active_options(self, dimension: str) -> List[VariantOption]:
        """Options that count towards price and summary."""
        dim = self.dimensions.get(dimension)
        if dim is None:
            return []
        active = []
        for value in self.selected_values(dimension):
            option = dim.find(value)
            if option is None:
                continue
            if option.is_engraving and self._engraving is None:
                continue   # tentative, not yet billable
            active.append(option)
        return active

    @property
    def engraving_option(self) -> Optional[VariantOption]:
        dim = self.dimensions.get(CUSTOM)
        return dim.engraving_option if dim else None

    @property
    def engraving_pending(self) -> bool:
        option = self.engraving_option
        return (option is not None
                and self.is_selected(CUSTOM, option.value)
                and self._engraving is None)

    # ── Mutations ─────────────────────────────────────────────────

    def select(self, dimension: str, value) -> VariationSelection:
        """Apply one shopper click on an option."""
        dim = self._dimension(dimension)
        option = self._option(dimension, value)

        if option.is_engraving:
            return self.begin_engraving()

        if not option.in_stock:
            raise InvalidSelection(f'{option.label} is out of stock.')

        if dimension in OPTIONAL_DIMENSIONS:
            values = set(self.selected_values(dimension))
            if option.value in values:
                values.discard(option.value)
            elif dim.mode == SINGLE:
                values = {option.value} | self._kept_engraving(dimension)
            else:
                values.add(option.value)
            self._choices[dimension] = MultiChoice(frozenset(values))
        elif dim.mode == SINGLE:
            current = self._choices.get(dimension)
            if isinstance(current, SingleChoice) and current.value == option.value:
                return self.current()
            self._choices[dimension] = SingleChoice(option.value)
        else:
            values = set(self.selected_values(dimension))
            values.symmetric_difference_update({option.value})
            self._choices[dimension] = MultiChoice(frozenset(values))

        return self._emit()

    def set_values(self, dimension: str, values) -> VariationSelection:
        """
        Replace the whole set of a multi-mode or optional dimension.
        Engraving is left as it is; use the engraving methods for that.
        """
        dim = self._dimension(dimension)
        if dim.mode != MULTI and dimension not in OPTIONAL_DIMENSIONS:
            raise InvalidSelection(f'Choose a single {dim.group_label} option.')
        chosen = set()
        for value in values:
            option = self._option(dimension, value)
            if option.is_engraving:
                continue
            if not option.in_stock:
                raise InvalidSelection(f'{option.label} is out of stock.')
            chosen.add(option.value)
        if dim.mode == SINGLE and len(chosen) > 1:
            raise InvalidSelection(f'Choose at most one {dim.group_label} option.')
        self._choices[dimension] = MultiChoice(frozenset(chosen | self._kept_engraving(dimension)))
        return self._emit()

    def _kept_engraving(self, dimension: str) -> set:
        engraving = self.engraving_option
        if engraving is not None and self.is_selected(dimension, engraving.value):
            return {engraving.value}
        return set()

    def begin_engraving(self) -> VariationSelection:
        """Open the engraving flow; the option is added tentatively."""
        option = self.engraving_option
        if option is None:
            raise InvalidSelection('This product does not offer engraving.')
        values = set(self.selected_values(CUSTOM))
        values.add(option.value)
        self._choices[CUSTOM] = MultiChoice(frozenset(values))
        return self._emit()

    def save_engraving(self, text: str, font: str = 'script') -> VariationSelection:
        """
        Confirm engraving text. Empty text strips the engraving option;
        text longer than the limit is rejected without changing state.
        """
        option = self.engraving_option
        if option is None:
            raise InvalidSelection('This product does not offer engraving.')
        text = (text or '').strip()
        if len(text) > self.engraving_max_length:
            raise InvalidSelection(
                f'Engraving text can be at most {self.engraving_max_length} characters.'
            )
        if font not in ENGRAVING_FONTS:
            raise InvalidSelection(f'Unknown engraving font "{font}".')

        if not text:
            return self.remove_engraving()

        if not self.is_selected(CUSTOM, option.value):
            values = set(self.selected_values(CUSTOM)) | {option.value}
            self._choices[CUSTOM] = MultiChoice(frozenset(values))
        self._engraving = EngravingPayload(text=text, font=font)
        return self._emit()

    def cancel_engraving(self) -> VariationSelection:
        """Close the flow; keeps previously saved text, otherwise strips."""
        if self._engraving is None:
            return self.remove_engraving()
        return self.current()

    def remove_engraving(self) -> VariationSelection:
        option = self.engraving_option
        self._engraving = None
        if option is not None and self.is_selected(CUSTOM, option.value):
            values = set(self.selected_values(CUSTOM)) - {option.value}
            self._choices[CUSTOM] = MultiChoice(frozenset(values))
        return self._emit()

    def apply_choices(self, choices: dict) -> VariationSelection:
        """
        Apply an explicit choice map, e.g. from a JSON request body:
            {"size": "7", "certificate": ["12"], "engraving": {"text": "A&B"}}
        Single-mode dimensions take a value; multi-mode and optional ones
        take a list (an empty list clears an optional dimension).
        Unmentioned dimensions keep their defaults.
        """
        if not isinstance(choices, dict):
            raise InvalidSelection('Selection must be an object of dimension choices.')

        for dimension, raw in choices.items():
            if dimension == 'engraving':
                continue
            if dimension not in DIMENSIONS:
                raise InvalidSelection(f'Unknown option type "{dimension}".')
            if raw is None:
                continue
            dim = self._dimension(dimension)
            if dim.mode == SINGLE and dimension not in OPTIONAL_DIMENSIONS:
                if isinstance(raw, (list, tuple)):
                    if len(raw) != 1:
                        raise InvalidSelection(f'Choose a single {dim.group_label} option.')
                    raw = raw[0]
                self.select(dimension, raw)
            else:
                if not isinstance(raw, (list, tuple)):
                    raw = [raw]
                self.set_values(dimension, raw)

        engraving = choices.get('engraving')
        if engraving:
            if isinstance(engraving, str):
                engraving = {'text': engraving}
            if not isinstance(engraving, dict):
                raise InvalidSelection('Engraving must include text.')
            text = engraving.get('text') or ''
            font = engraving.get('font') or 'script'
            if not isinstance(text, str) or not isinstance(font, str):
                raise InvalidSelection('Engraving text and font must be text.')
            self.begin_engraving()
            self.save_engraving(text, font)

        return self.current()

    # ── Output ────────────────────────────────────────────────────

    def current(self) -> VariationSelection:
        price_adjustment  = Decimal('0')
        weight_adjustment = Decimal('0')
        summary: dict = {}
        missing = []

        for dimension in DIMENSIONS:
            dim = self.dimensions.get(dimension)
            if dim is None:
                continue
            active = self._active_options(dimension)
            for option in active:
                price_adjustment += option.price_adjustment
                if dimension in WEIGHT_DIMENSIONS:
                    weight_adjustment += option.weight_adjustment

            if dim.mode == SINGLE and dimension not in OPTIONAL_DIMENSIONS:
                summary[dimension] = active[0].label if active else None
                if not active:
                    missing.append(dimension)
            else:
                summary[dimension] = sorted(o.label for o in active)

        if self._engraving is not None:
            summary['engraving'] = self._engraving.to_dict()

        metal = self._active_options(METAL)
        size  = self._active_options(SIZE)
        metal_label = (
            metal[0].label if metal
            else METAL_TYPE_NAMES.get(self.base_metal_type, self.base_metal_type or 'Metal')
        )
        if not metal:
            summary[METAL] = metal_label
            if METAL in missing:
                missing.remove(METAL)   # base purity is always a valid metal

        display_image = (
            (metal[0].image_url if metal else None)
            or (size[0].image_url if size else None)
        )

        return VariationSelection(
            metal_label=metal_label,
            size=size[0].value if size else None,
            price_adjustment=price_adjustment,
            weight_adjustment=weight_adjustment,
            display_image=display_image,
            summary=summary,
            engraving_pending=self.engraving_pending,
            missing=tuple(missing),
        )

    def describe(self) -> dict:
        """Options per dimension with current selection flags, for rendering."""
        return {
            dimension: {
                'mode':        dim.mode,
                'group_label': dim.group_label,
                'is_fallback': dim.is_fallback,
                'options': [
                    dict(o.to_dict(),
                         selected=self.is_selected(dimension, o.value),
                         selectable=o.in_stock,
                         is_engraving=o.is_engraving)
                    for o in dim.options
                ],
            }
            for dimension, dim in self.dimensions.items()
        }
