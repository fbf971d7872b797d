"""
test_cart.py — Tests for CartStore on both backends, cart totals and the
guest → account merge.

Run: pytest test_cart.py -v
"""
from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from storefront import create_app, db
from storefront.auth.models import User, RoleEnum
from storefront.cart.migration import merge_guest_cart
from storefront.cart.repository import SessionCartRepository, SqlCartRepository
from storefront.cart.store import CartStore
from storefront.catalog.models import Product
from storefront.errors import (
    BackendUnavailable, InsufficientStock, InvalidQuantity, InvalidSelection, NotFound,
)
from storefront.rates.provider import publish_rate
from storefront.settings import FREE_SHIPPING_KEY, set_setting
from storefront.variants import VariationSelection


@pytest.fixture(scope='function')
def app():
    app = create_app('testing')
    with app.app_context():
        db.create_all()
        publish_rate(rate_22k='6000', rate_24k='6550', source='test')

        user = User(name='Asha', username='asha', role=RoleEnum.customer)
        user.set_password('secret1')
        db.session.add(user)

        db.session.add_all([
            Product(slug='band', name='Plain Band', category='rings', metal_type='gold_22k',
                    weight_grams=Decimal('10'), making_charge_percent=Decimal('12'),
                    stock_quantity=5),
            Product(slug='chain', name='Rope Chain', category='chains', metal_type='gold_22k',
                    weight_grams=Decimal('8'), stock_quantity=None),
            Product(slug='retired', name='Retired Ring', category='rings', metal_type='gold_22k',
                    weight_grams=Decimal('5'), stock_quantity=10, is_active=False),
        ])
        db.session.commit()
        yield app
        db.session.remove()
        db.drop_all()


def product_id(slug):
    return Product.query.filter_by(slug=slug).first().id


def user_id():
    return User.query.filter_by(username='asha').first().id


@pytest.fixture(params=['session', 'sql'])
def store(request, app):
    with app.test_request_context():
        if request.param == 'session':
            repository = SessionCartRepository('local')
        else:
            repository = SqlCartRepository(user_id())
        yield CartStore(repository)


SIZE_7 = VariationSelection(metal_label='22K Gold', summary={'metal_type': '22K Gold', 'size': '7'})
SIZE_8 = VariationSelection(
    metal_label='22K Gold',
    summary={'metal_type': '22K Gold', 'size': '8', 'gemstone_quality': 'VVS1 / E'},
    price_adjustment=Decimal('1700'),
    weight_adjustment=Decimal('0.5'),
)


# ── 1. Adding ───────────────────────────────────────────────────────────────

def test_same_selection_increments_one_line(store):
    store.add(product_id('band'), 1, SIZE_7)
    store.add(product_id('band'), 1, SIZE_7)

    lines = store.lines()
    assert len(lines) == 1
    assert lines[0].quantity == 2
    assert lines[0].variation_signature == SIZE_7.signature


def test_different_selection_gets_its_own_line(store):
    store.add(product_id('band'), 1, SIZE_7)
    store.add(product_id('band'), 1, SIZE_8)

    lines = store.lines()
    assert len(lines) == 2
    captured = [line for line in lines if line.variation_signature == SIZE_8.signature][0]
    assert captured.price_adjustment == Decimal('1700')
    assert captured.weight_adjustment == Decimal('0.5')
    assert captured.selected_options['gemstone_quality'] == 'VVS1 / E'


def test_stock_ceiling(store):
    band = product_id('band')
    store.add(band, 3, SIZE_7)

    with pytest.raises(InsufficientStock) as exc:
        store.add(band, 3, SIZE_7)
    assert exc.value.available == 5
    assert exc.value.already_in_cart == 3
    assert exc.value.message == 'Only 5 items available. You already have 3 in your cart.'
    assert store.lines()[0].quantity == 3   # nothing applied

    store.add(band, 2, SIZE_7)
    assert store.lines()[0].quantity == 5


def test_untracked_stock_is_unlimited(store):
    store.add(product_id('chain'), 1000, SIZE_7)
    assert store.lines()[0].quantity == 1000


def test_missing_or_inactive_product(store):
    with pytest.raises(NotFound):
        store.add(9999, 1, SIZE_7)
    with pytest.raises(NotFound):
        store.add(product_id('retired'), 1, SIZE_7)
    assert store.lines() == []


def test_invalid_quantity(store):
    with pytest.raises(InvalidQuantity):
        store.add(product_id('band'), 0, SIZE_7)
    with pytest.raises(InvalidQuantity):
        store.add(product_id('band'), 'two', SIZE_7)
    with pytest.raises(InvalidQuantity):
        store.add(product_id('band'), 2.9, SIZE_7)
    with pytest.raises(InvalidQuantity):
        store.add(product_id('band'), None, SIZE_7)
    assert store.lines() == []

    store.add(product_id('band'), '2', SIZE_7)
    store.add(product_id('band'), 1.0, SIZE_7)
    assert store.lines()[0].quantity == 3


def test_incomplete_selection_is_rejected(store):
    pending = VariationSelection(metal_label='22K Gold', engraving_pending=True)
    missing = VariationSelection(metal_label='22K Gold', missing=('size',))
    too_long = VariationSelection(metal_label='22K Gold',
                                  summary={'engraving': {'text': 'x' * 16, 'font': 'script'}})

    for selection in (pending, missing, too_long):
        with pytest.raises(InvalidSelection):
            store.add(product_id('band'), 1, selection)
    assert store.lines() == []


# ── 2. Quantity changes ─────────────────────────────────────────────────────

def test_set_quantity_overwrites_without_stock_check(store):
    line = store.add(product_id('band'), 1, SIZE_7)
    store.set_quantity(line.id, 9)
    assert store.get(line.id).quantity == 9


def test_set_quantity_below_one_removes(store):
    line = store.add(product_id('band'), 2, SIZE_7)
    store.set_quantity(line.id, 0)
    assert store.lines() == []


def test_set_quantity_on_missing_line(store):
    with pytest.raises(NotFound):
        store.set_quantity('nope', 2)


def test_remove_and_clear(store):
    first = store.add(product_id('band'), 1, SIZE_7)
    store.add(product_id('chain'), 1, SIZE_7)

    store.remove(first.id)
    assert [line.product_id for line in store.lines()] == [product_id('chain')]

    store.clear()
    assert store.lines() == []


# ── 3. Totals ───────────────────────────────────────────────────────────────

def test_totals(store):
    store.add(product_id('band'), 2, SIZE_8)
    totals = store.totals()

    # per unit: 10.5 g × 6000 = 63000, making 7560, +1700 → 72260, GST 2168
    assert totals.subtotal == Decimal('144520')
    assert totals.gst_total == Decimal('4336')
    assert totals.total == Decimal('148856')
    assert totals.item_count == 2
    assert totals.free_shipping is True


def test_totals_follow_latest_rate(store):
    store.add(product_id('band'), 1, SIZE_7)
    before = store.totals().subtotal

    publish_rate(rate_22k='7000', rate_24k='7600', source='test')
    after = store.totals().subtotal

    assert before == Decimal('67200')
    assert after == Decimal('78400')


def test_free_shipping_can_be_disabled(store):
    set_setting(FREE_SHIPPING_KEY, {'amount': 50000, 'enabled': False})
    store.add(product_id('band'), 1, SIZE_7)
    assert store.totals().free_shipping is False


def test_empty_cart_totals(store):
    totals = store.totals()
    assert totals.total == Decimal('0')
    assert totals.item_count == 0
    assert totals.free_shipping is False


# ── 4. Backends ─────────────────────────────────────────────────────────────

def test_session_cart_keeps_money_as_strings(app):
    with app.test_request_context():
        from flask import session
        CartStore(SessionCartRepository('local')).add(product_id('band'), 1, SIZE_8)

        raw = list(session['cart:local'].values())[0]
        assert raw['price_adjustment'] == '1700'
        assert raw['quantity'] == 1


def test_signature_is_the_same_on_both_backends(app):
    with app.test_request_context():
        guest = CartStore(SessionCartRepository('local')).add(product_id('band'), 1, SIZE_8)
        saved = CartStore(SqlCartRepository(user_id())).add(product_id('band'), 1, SIZE_8)
        assert guest.variation_signature == saved.variation_signature


def test_database_failure_leaves_cart_unchanged(app, monkeypatch):
    with app.test_request_context():
        store = CartStore(SqlCartRepository(user_id()))
        store.add(product_id('band'), 1, SIZE_7)

        def broken_commit():
            raise OperationalError('COMMIT', {}, Exception('disk I/O error'))

        monkeypatch.setattr(db.session, 'commit', broken_commit)
        with pytest.raises(BackendUnavailable):
            store.add(product_id('chain'), 1, SIZE_7)
        monkeypatch.undo()

        lines = store.lines()
        assert len(lines) == 1
        assert lines[0].product_id == product_id('band')


# ── 5. Guest cart merge ─────────────────────────────────────────────────────

@pytest.fixture
def carts(app):
    with app.test_request_context():
        yield CartStore(SessionCartRepository('local')), CartStore(SqlCartRepository(user_id()))


def test_merge_moves_guest_lines(carts):
    guest, user = carts
    guest.add(product_id('band'), 2, SIZE_7)
    guest.add(product_id('chain'), 1, SIZE_8)

    report = merge_guest_cart(guest, user)

    assert len(report.merged) == 2
    assert not report.changed
    assert guest.lines() == []
    assert sorted(line.quantity for line in user.lines()) == [1, 2]


def test_merge_increments_matching_line(carts):
    guest, user = carts
    user.add(product_id('band'), 1, SIZE_7)
    guest.add(product_id('band'), 2, SIZE_7)

    merge_guest_cart(guest, user)

    lines = user.lines()
    assert len(lines) == 1
    assert lines[0].quantity == 3


def test_merge_clamps_to_stock(carts):
    guest, user = carts
    user.add(product_id('band'), 4, SIZE_7)
    guest.add(product_id('band'), 3, SIZE_7)

    report = merge_guest_cart(guest, user)

    assert report.clamped[0]['quantity'] == 1
    assert report.clamped[0]['requested'] == 3
    assert user.lines()[0].quantity == 5


def test_merge_drops_when_no_stock_left(carts):
    guest, user = carts
    user.add(product_id('band'), 5, SIZE_7)
    guest.add(product_id('band'), 1, SIZE_7)

    report = merge_guest_cart(guest, user)

    assert report.dropped[0]['reason'] == 'out_of_stock'
    assert user.lines()[0].quantity == 5
    assert guest.lines() == []


def test_merge_drops_retired_products(carts):
    guest, user = carts
    guest.add(product_id('band'), 1, SIZE_7)

    band = db.session.get(Product, product_id('band'))
    band.is_active = False
    db.session.commit()

    report = merge_guest_cart(guest, user)

    assert report.dropped[0]['reason'] == 'unavailable'
    assert user.lines() == []
