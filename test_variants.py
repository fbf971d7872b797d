"""
test_variants.py — Tests for option building, the variant resolver and
variation signatures.

Run: pytest test_variants.py -v
"""
import json
from decimal import Decimal

import pytest

from storefront.catalog.reader import VariationRecord
from storefront.errors import InvalidSelection
from storefront.variants import VariantResolver, VariationSelection, variation_signature
from storefront.variants.options import normalize_label


def rec(id, dimension, label=None, value=None, price='0', weight='0', stock=None,
        default=False, available=True, image=None, mode=None, metal=None, group=None):
    return VariationRecord(
        id=str(id), dimension=dimension, label=label, value=value, metal_type=metal,
        group_label=group, selection_mode=mode,
        price_adjustment=Decimal(price), weight_adjustment=Decimal(weight),
        stock_quantity=stock, is_available=available, is_default=default, image_url=image,
    )


RING_RECORDS = [
    rec(1,  'metal_type', '18K White Gold', 'white', metal='gold_18k', default=True,
        image='https://img.example/white.jpg'),
    rec(2,  'metal_type', '18K Rose Gold', 'rose', metal='gold_18k', price='800', weight='0.2',
        image='https://img.example/rose.jpg'),
    rec(3,  'metal_type', '22K Yellow Gold', 'yellow', metal='gold_22k', stock=0),
    rec(4,  'size', None, '6', weight='-0.1'),
    rec(5,  'size', None, '7', default=True),
    rec(6,  'size', None, '8', price='500', weight='0.5'),
    rec(7,  'gemstone_quality', 'VS1 / F', 'vs1', image='https://img.example/vs1.jpg'),
    rec(8,  'gemstone_quality', 'VVS1 / E', 'vvs1', price='1200', weight='0.3'),
    rec(9,  'certificate', 'IGI Certificate', 'igi', price='1000'),
    rec(10, 'custom', 'Engraving', 'engraving'),
    rec(11, 'custom', 'Gift Box', 'gift', price='350'),
]


@pytest.fixture
def ring():
    return VariantResolver(RING_RECORDS, base_metal_type='gold_18k', category='rings')


# ── 1. Defaults and fallbacks ───────────────────────────────────────────────

def test_defaults(ring):
    sel = ring.current()

    assert sel.metal_label == '18K White Gold'
    assert sel.size == '7'
    assert sel.summary['gemstone_quality'] == 'VS1 / F'   # first option, no default marked
    assert sel.summary['certificate'] == []                # optional, nothing marked default
    assert sel.summary['custom'] == []
    assert sel.price_adjustment == Decimal('0')
    assert sel.weight_adjustment == Decimal('0')
    assert sel.display_image == 'https://img.example/white.jpg'
    assert sel.is_complete


def test_default_skips_out_of_stock_option():
    records = [rec(1, 'metal_type', 'A', 'a', stock=0), rec(2, 'metal_type', 'B', 'b')]
    resolver = VariantResolver(records, base_metal_type='gold_22k', category='rings')
    assert resolver.current().metal_label == 'B'


def test_generic_metals_when_product_has_none():
    resolver = VariantResolver([], base_metal_type='gold_22k', category='necklaces')

    metals = resolver.dimensions['metal_type']
    assert metals.is_fallback
    assert len(metals.options) == 5
    assert resolver.current().metal_label == '22K Yellow Gold'


def test_category_sizes_when_product_has_none():
    resolver = VariantResolver([], base_metal_type='gold_22k', category='necklaces')

    sizes = resolver.dimensions['size']
    assert sizes.is_fallback
    assert sizes.group_label == 'Chain Length'
    assert resolver.current().size == '16"'


def test_no_size_dimension_for_unknown_category():
    resolver = VariantResolver([], base_metal_type='gold_22k', category='pendants')
    sel = resolver.current()
    assert 'size' not in resolver.dimensions
    assert sel.size is None
    assert sel.is_complete


def test_unavailable_records_are_dropped():
    records = [rec(1, 'size', None, '21', available=False)]
    resolver = VariantResolver(records, base_metal_type='gold_22k', category='rings')
    sizes = resolver.dimensions['size']
    assert sizes.is_fallback
    assert sizes.find('21') is None


def test_unresolved_single_dimension_is_reported_missing():
    records = [rec(1, 'size', None, '6', stock=0), rec(2, 'size', None, '7', stock=0)]
    resolver = VariantResolver(records, base_metal_type='gold_22k', category='rings')
    sel = resolver.current()
    assert sel.missing == ('size',)
    assert not sel.is_complete


# ── 2. Labels and images ────────────────────────────────────────────────────

def test_normalize_label():
    assert normalize_label('  Rose Gold ', 'x') == 'Rose Gold'
    assert normalize_label(None, '7') == '7'
    assert normalize_label('', '3f2b8c1e-9a4d-4b7e-8f21-0c6d5e4a3b2f') == 'Option'
    assert normalize_label(None, 'https://cdn.example/a.png') == 'Option'


def test_metal_label_from_purity_when_blank():
    records = [rec(1, 'metal_type', None, None, metal='gold_24k')]
    resolver = VariantResolver(records, base_metal_type='gold_22k')
    assert resolver.current().metal_label == '24K Gold'


def test_display_image_falls_back_to_size():
    records = [rec(1, 'size', None, '6', image='https://img.example/six.jpg'),
               rec(2, 'size', None, '7', default=True)]
    resolver = VariantResolver(records, base_metal_type='gold_22k', category='rings')

    assert resolver.current().display_image is None
    assert resolver.select('size', '6').display_image == 'https://img.example/six.jpg'


def test_gemstone_image_is_swatch_only():
    records = [r for r in RING_RECORDS if r.dimension != 'metal_type']
    resolver = VariantResolver(records, base_metal_type='gold_18k', category='rings')
    assert resolver.current().display_image is None


# ── 3. Selection rules ──────────────────────────────────────────────────────

def test_reselecting_single_option_is_a_no_op(ring):
    seen = []
    ring.subscribe(seen.append)
    assert len(seen) == 1

    ring.select('metal_type', '1')
    assert len(seen) == 1

    ring.select('metal_type', '2')
    assert len(seen) == 2
    assert seen[-1].metal_label == '18K Rose Gold'


def test_multi_click_toggles(ring):
    assert ring.select('custom', '11').summary['custom'] == ['Gift Box']
    assert ring.select('custom', '11').summary['custom'] == []


def test_optional_single_clears_on_second_click(ring):
    assert ring.select('certificate', '9').summary['certificate'] == ['IGI Certificate']
    assert ring.select('certificate', '9').summary['certificate'] == []


def test_out_of_stock_option_cannot_be_selected(ring):
    with pytest.raises(InvalidSelection):
        ring.select('metal_type', '3')
    yellow = [o for o in ring.describe()['metal_type']['options'] if o['value'] == '3'][0]
    assert yellow['selectable'] is False


def test_adjustments_combine(ring):
    ring.select('size', '8')
    sel = ring.select('gemstone_quality', 'vvs1')

    assert sel.price_adjustment == Decimal('1700')
    assert sel.weight_adjustment == Decimal('0.5')   # gemstone weight never counts


def test_metal_and_size_weights_add_up(ring):
    ring.select('metal_type', '2')
    sel = ring.select('size', '6')
    assert sel.weight_adjustment == Decimal('0.1')
    assert sel.price_adjustment == Decimal('800')


def test_apply_choices(ring):
    sel = ring.apply_choices({
        'size': '8',
        'gemstone_quality': 'vvs1',
        'certificate': ['9'],
        'engraving': {'text': 'Love', 'font': 'block'},
    })
    assert sel.price_adjustment == Decimal('2700')
    assert sel.summary['certificate'] == ['IGI Certificate']
    assert sel.engraving == {'text': 'Love', 'font': 'block'}


def test_apply_choices_rejects_unknown_dimension(ring):
    with pytest.raises(InvalidSelection):
        ring.apply_choices({'colour': 'red'})


def test_apply_choices_rejects_two_values_for_single_dimension(ring):
    with pytest.raises(InvalidSelection):
        ring.apply_choices({'size': ['7', '8']})


# ── 4. Engraving ────────────────────────────────────────────────────────────

def test_engraving_is_tentative_until_saved(ring):
    sel = ring.select('custom', '10')
    assert sel.engraving_pending
    assert 'engraving' not in sel.summary
    assert sel.summary['custom'] == []

    sel = ring.save_engraving('A&B')
    assert not sel.engraving_pending
    assert sel.summary['engraving'] == {'text': 'A&B', 'font': 'script'}
    assert sel.summary['custom'] == ['Engraving']
    assert sel.price_adjustment == Decimal('0')


def test_engraving_changes_signature(ring):
    plain = ring.current().signature
    ring.select('custom', '10')
    assert ring.save_engraving('A&B').signature != plain


def test_engraving_too_long_is_rejected(ring):
    ring.select('custom', '10')
    ring.save_engraving('A&B')

    with pytest.raises(InvalidSelection):
        ring.save_engraving('x' * 16)
    assert ring.current().engraving == {'text': 'A&B', 'font': 'script'}


def test_empty_engraving_strips_option(ring):
    ring.select('custom', '10')
    sel = ring.save_engraving('   ')
    assert not sel.engraving_pending
    assert not ring.is_selected('custom', '10')


def test_cancel_without_text_strips_option(ring):
    ring.select('custom', '10')
    sel = ring.cancel_engraving()
    assert not sel.engraving_pending
    assert not ring.is_selected('custom', '10')


def test_cancel_keeps_saved_text(ring):
    ring.select('custom', '10')
    ring.save_engraving('Forever')
    ring.select('custom', '10')
    assert ring.cancel_engraving().engraving == {'text': 'Forever', 'font': 'script'}


# ── 5. Signatures ───────────────────────────────────────────────────────────

def test_signature_ignores_order_and_number_format():
    a = variation_signature({'custom': ['Gift Box', 'Engraving'], 'size': '7'}, Decimal('350'), 0)
    b = variation_signature({'size': '7', 'custom': ['Engraving', 'Gift Box']}, '350.00', '0.000')
    assert a == b


def test_signature_differs_on_content():
    base = variation_signature({'size': '7'}, 0, 0)
    assert variation_signature({'size': '8'}, 0, 0) != base
    assert variation_signature({'size': '7'}, 100, 0) != base
    assert variation_signature({'size': '7'}, 0, '0.5') != base


def test_signature_ignores_empty_entries():
    assert (variation_signature({'size': '7', 'certificate': [], 'custom': None}, 0, 0)
            == variation_signature({'size': '7'}, 0, 0))


def test_captured_selection_keeps_signature(ring):
    ring.select('size', '8')
    ring.select('custom', '11')
    sel = ring.current()

    captured = json.loads(json.dumps(sel.summary))
    rebuilt = VariationSelection.from_captured(
        captured, str(sel.price_adjustment), str(sel.weight_adjustment)
    )
    assert rebuilt.signature == sel.signature
