from flask import jsonify, request, current_app
from storefront.cart import cart
from storefront.cart.store import cart_for_current_shopper
from storefront.catalog.routes import load_product, load_resolver
from storefront.errors import StorefrontError


def _payload() -> dict:
    return request.get_json(silent=True) or {}


def _cart_response(store, status=200, **extra):
    priced = store.priced_lines()
    body = {
        'lines':  [p.to_dict() for p in priced],
        'totals': store.totals(priced).to_dict(),
    }
    body.update(extra)
    return jsonify(body), status


# ── Errors ────────────────────────────────────────────────────────

@cart.errorhandler(StorefrontError)
def storefront_error(e):
    if e.status_code >= 500:
        current_app.logger.error(f"Cart request failed: {e.message}")
    else:
        current_app.logger.info(f"Cart request rejected: {e.message}")
    return jsonify(e.to_dict()), e.status_code


# ── Read ──────────────────────────────────────────────────────────

@cart.route('/')
def view():
    """Lines priced at the current rate, plus cart totals."""
    return _cart_response(cart_for_current_shopper())


# ── Write ─────────────────────────────────────────────────────────

@cart.route('/add', methods=['POST'])
def add():
    """
    Body: {"product_id": 1, "quantity": 1, "selection": {...}}

    The selection is resolved here against the product's own
    variations; adjustments sent by the client are ignored.
    """
    data = _payload()
    if 'product_id' not in data:
        raise StorefrontError('product_id is required.')

    product   = load_product(data['product_id'])
    selection = load_resolver(product).apply_choices(data.get('selection') or {})

    store = cart_for_current_shopper()
    line  = store.add(product.id, data.get('quantity', 1), selection)
    return _cart_response(store, status=201, line_id=line.id)


@cart.route('/update', methods=['POST'])
def update():
    """Body: {"line_id": "...", "quantity": 3}. Quantity below 1 removes the line."""
    data  = _payload()
    store = cart_for_current_shopper()
    store.set_quantity(data.get('line_id'), data.get('quantity'))
    return _cart_response(store)


@cart.route('/remove', methods=['POST'])
def remove():
    data  = _payload()
    store = cart_for_current_shopper()
    store.remove(data.get('line_id'))
    return _cart_response(store)


@cart.route('/clear', methods=['POST'])
def clear():
    store = cart_for_current_shopper()
    store.clear()
    return _cart_response(store)
