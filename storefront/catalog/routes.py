from flask import jsonify, request, current_app
from storefront.catalog import catalog
from storefront.catalog.reader import category_making_charge, get_active_product, get_variations
from storefront.errors import InvalidQuantity, NotFound, StorefrontError
from storefront.pricing import calculate_price
from storefront.rates.provider import DatabaseRateProvider
from storefront.settings import get_gst_percent
from storefront.utils.validators import parse_quantity
from storefront.variants import VariantResolver


def load_product(product_id):
    """Active product or NotFound."""
    product = get_active_product(product_id)
    if product is None:
        raise NotFound('This product is no longer available.')
    return product


def load_resolver(product) -> VariantResolver:
    """Fresh resolver with the product's variations and defaults applied."""
    return VariantResolver.for_product(
        product,
        get_variations(product.id),
        engraving_max_length=current_app.config['ENGRAVING_MAX_LENGTH'],
    )


def price_product(product, weight_adjustment=0, price_adjustment=0):
    """Breakdown for one unit against the current rate and settings."""
    return calculate_price(
        product,
        DatabaseRateProvider().get_current_rate(),
        category_making_charge=category_making_charge(product.category),
        gst_percent=get_gst_percent(),
        weight_adjustment=weight_adjustment,
        price_adjustment=price_adjustment,
    )


# ── Errors ────────────────────────────────────────────────────────

@catalog.errorhandler(StorefrontError)
def storefront_error(e):
    current_app.logger.info(f"Catalog request rejected: {e.message}")
    return jsonify(e.to_dict()), e.status_code


# ── Product ───────────────────────────────────────────────────────

@catalog.route('/<int:product_id>')
def product_detail(product_id):
    product = load_product(product_id)
    return jsonify({
        'id':                    product.id,
        'name':                  product.name,
        'slug':                  product.slug,
        'category':              product.category,
        'metal_type':            product.metal_type,
        'metal_label':           product.metal_label,
        'weight_grams':          str(product.weight_grams),
        'making_charge_percent': (str(product.making_charge_percent)
                                  if product.making_charge_percent is not None else None),
        'stock_quantity':        product.stock_quantity,
        'specifications':        product.specifications_dict,
        'calculated_price':      price_product(product).to_dict(),
    })


# ── Variants ──────────────────────────────────────────────────────

@catalog.route('/<int:product_id>/variants')
def variants(product_id):
    """Options per dimension plus the default selection."""
    product  = load_product(product_id)
    resolver = load_resolver(product)
    return jsonify({
        'product_id': product.id,
        'dimensions': resolver.describe(),
        'selection':  resolver.current().to_dict(),
    })


@catalog.route('/<int:product_id>/variants/resolve', methods=['POST'])
def resolve(product_id):
    """
    Apply explicit choices on top of the defaults and price the result.

    Body: {"selection": {"size": "7", "engraving": {"text": "A&B"}}, "quantity": 1}
    """
    product  = load_product(product_id)
    data     = request.get_json(silent=True) or {}
    resolver = load_resolver(product)
    selection = resolver.apply_choices(data.get('selection') or {})

    quantity = parse_quantity(data.get('quantity', 1))
    if quantity < 1:
        raise InvalidQuantity('Quantity must be at least 1.')

    unit = price_product(product, selection.weight_adjustment, selection.price_adjustment)
    return jsonify({
        'product_id': product.id,
        'selection':  selection.to_dict(),
        'unit_price': unit.to_dict(),
        'quantity':   quantity,
        'line_total': int(unit.total * quantity),
    })
