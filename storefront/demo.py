"""
storefront/demo.py
------------------
Demo catalog for local development (`flask seed-demo`).

Idempotent: products are keyed by slug, the user by username, and a
rate is only published when none is current.
"""
from decimal import Decimal

from storefront import db
from storefront.auth.models import User, RoleEnum
from storefront.catalog.models import CategoryMakingCharge, Product, ProductVariation
from storefront.rates.provider import DatabaseRateProvider, publish_rate
from storefront.settings import FREE_SHIPPING_KEY, GST_KEY, set_setting

DEMO_CATEGORY_CHARGES = {
    'rings':     Decimal('12'),
    'necklaces': Decimal('14'),
    'bangles':   Decimal('10'),
}

# (slug, name, category, metal_type, weight, making %, diamond, stone, stock)
DEMO_PRODUCTS = [
    ('solitaire-ring',  'Solitaire Ring',   'rings',     'gold_18k', '4.200', None, '25000', '0',    8),
    ('temple-necklace', 'Temple Necklace',  'necklaces', 'gold_22k', '32.500', '16', '0',    '4500', 2),
    ('classic-bangle',  'Classic Bangle',   'bangles',   'gold_22k', '18.000', None, '0',    '0',    None),
]

# variation_type, label, value, metal_type, price adj, weight adj, stock, default, sort
SOLITAIRE_VARIATIONS = [
    ('metal_type',       '18K White Gold',  'white-18k', 'gold_18k', '0',    '0',     None, True,  1),
    ('metal_type',       '18K Rose Gold',   'rose-18k',  'gold_18k', '0',    '0',     3,    False, 2),
    ('metal_type',       '22K Yellow Gold', 'yellow-22k', 'gold_22k', '1500', '0.300', 0,    False, 3),
    ('size',             None,              '6',         None,       '0',    '-0.100', None, False, 1),
    ('size',             None,              '7',         None,       '0',    '0',     None, True,  2),
    ('size',             None,              '8',         None,       '200',  '0.150', None, False, 3),
    ('gemstone_quality', 'VS1 / F',         'vs1-f',     None,       '0',    '0',     None, True,  1),
    ('gemstone_quality', 'VVS1 / E',        'vvs1-e',    None,       '6500', '0',     None, False, 2),
    ('certificate',      'IGI Certificate', 'igi',       None,       '1200', '0',     None, False, 1),
    ('custom',           'Engraving',       'engraving', None,       '0',    '0',     None, False, 1),
    ('custom',           'Gift Box',        'gift-box',  None,       '350',  '0',     None, False, 2),
]


def _seed_products():
    for slug, name, category, metal, weight, making, diamond, stone, stock in DEMO_PRODUCTS:
        if Product.query.filter_by(slug=slug).first():
            continue
        product = Product(
            slug=slug, name=name, category=category, metal_type=metal,
            weight_grams=Decimal(weight),
            making_charge_percent=Decimal(making) if making else None,
            diamond_cost=Decimal(diamond), stone_cost=Decimal(stone),
            stock_quantity=stock,
        )
        product.specifications_dict = {'hallmark': 'BIS 916' if metal == 'gold_22k' else 'BIS 750'}
        db.session.add(product)
        db.session.flush()

        if slug == 'solitaire-ring':
            for vtype, label, value, vmetal, price, wt, vstock, default, sort in SOLITAIRE_VARIATIONS:
                db.session.add(ProductVariation(
                    product_id=product.id, variation_type=vtype, label=label, value=value,
                    metal_type=vmetal, price_adjustment=Decimal(price),
                    weight_adjustment=Decimal(wt), stock_quantity=vstock,
                    is_default=default, sort_order=sort,
                ))
    db.session.commit()


def seed_demo_data():
    """Create the demo rows; yields one progress message per step."""
    for category, pct in DEMO_CATEGORY_CHARGES.items():
        if not CategoryMakingCharge.query.filter_by(category=category).first():
            db.session.add(CategoryMakingCharge(category=category, making_charge_percent=pct))
    db.session.commit()
    yield 'Category making charges set.'

    set_setting(GST_KEY, {'rate': 3}, 'GST on jewellery, percent')
    set_setting(FREE_SHIPPING_KEY, {'amount': 50000, 'enabled': True}, 'Free shipping threshold')
    yield 'Site settings saved.'

    if DatabaseRateProvider().get_current_rate() is None:
        publish_rate(rate_22k='6000', rate_24k='6550', rate_18k='4910', silver_rate='78',
                     source='demo')
        yield 'Demo rate published (22K 6000 / 24K 6550).'

    _seed_products()
    yield 'Products seeded.'

    if not User.query.filter_by(username='demo').first():
        user = User(name='Demo Shopper', username='demo', role=RoleEnum.customer)
        user.set_password('demo123')
        db.session.add(user)
        db.session.commit()
        yield 'Shopper created (demo/demo123).'
