"""
storefront/cart/store.py
------------------------
Cart operations on top of a CartRepository.

CartStore owns the rules; the repository only stores lines:
  • a line is identified by (product_id, variation_signature). Adding
    the same configuration twice increments the existing line.
  • add() checks the freshest product stock against what is already in
    the cart. On rejection nothing is written.
  • set_quantity() below 1 removes the line and never checks stock.
  • totals are recomputed on every call from the current rate, never
    stored.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, List, Optional

from flask import current_app, session
from sqlalchemy.exc import SQLAlchemyError

from storefront import db
from storefront.cart.repository import CartLine, CartRepository, repository_for
from storefront.catalog.models import Product
from storefront.catalog.reader import category_making_charge, get_active_product
from storefront.errors import (
    BackendUnavailable, InsufficientStock, InvalidQuantity, InvalidSelection, NotFound,
)
from storefront.pricing import ZERO_BREAKDOWN, PriceBreakdown, calculate_price
from storefront.rates.provider import DatabaseRateProvider, RateProvider
from storefront.settings import get_free_shipping, get_gst_percent
from storefront.variants.options import DEFAULT_GROUP_LABELS
from storefront.variants.selection import VariationSelection
from storefront.utils.validators import parse_quantity

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PricedLine:
    line:      CartLine
    product:   Optional[Product]
    unit:      PriceBreakdown

    @property
    def available(self) -> bool:
        return self.product is not None and bool(self.product.is_active)

    @property
    def line_subtotal(self) -> Decimal:
        return self.unit.subtotal * self.line.quantity

    @property
    def line_gst(self) -> Decimal:
        return self.unit.gst_amount * self.line.quantity

    @property
    def line_total(self) -> Decimal:
        return self.line_subtotal + self.line_gst

    def to_dict(self) -> dict:
        data = self.line.to_dict()
        data.update({
            'name':          self.product.name if self.product else None,
            'available':     self.available,
            'unit_price':    self.unit.to_dict(),
            'line_subtotal': int(self.line_subtotal),
            'line_gst':      int(self.line_gst),
            'line_total':    int(self.line_total),
        })
        return data


@dataclass(frozen=True)
class CartTotals:
    subtotal:      Decimal
    gst_total:     Decimal
    total:         Decimal
    item_count:    int
    free_shipping: bool

    def to_dict(self) -> dict:
        return {
            'subtotal':      int(self.subtotal),
            'gst_total':     int(self.gst_total),
            'total':         int(self.total),
            'item_count':    self.item_count,
            'free_shipping': self.free_shipping,
        }


class CartStore:

    def __init__(self, repository: CartRepository, rate_provider: RateProvider = None):
        self.repository    = repository
        self.rate_provider = rate_provider or DatabaseRateProvider()

    @property
    def identity(self) -> str:
        return self.repository.identity

    # ── Read ──────────────────────────────────────────────────────

    def lines(self) -> List[CartLine]:
        return self.repository.lines()

    def get(self, line_id) -> Optional[CartLine]:
        return self.repository.get(line_id)

    def quantity_of(self, product_id: int) -> int:
        """Units of a product across all of its configurations."""
        return sum(line.quantity for line in self.lines() if line.product_id == int(product_id))

    # ── Write ─────────────────────────────────────────────────────

    def add(self, product_id, quantity, selection: Optional[VariationSelection] = None) -> CartLine:
        """
        Add `quantity` units of a configured product.

        Raises InvalidQuantity, InvalidSelection, NotFound or
        InsufficientStock before anything is written; BackendUnavailable
        if storage fails (the cart is left as it was).
        """
        quantity = parse_quantity(quantity)
        if quantity < 1:
            raise InvalidQuantity('Quantity must be at least 1.')

        selection = selection or VariationSelection(metal_label='')
        _check_selection(selection)

        product = self._fresh_product(product_id)
        if product is None:
            raise NotFound('This product is no longer available.')

        signature = selection.signature
        existing  = self.repository.find(product.id, signature)
        already   = existing.quantity if existing else 0

        stock = product.stock_quantity
        if stock is not None and already + quantity > stock:
            logger.warning(
                f"Stock check failed for {self.identity}: product={product.id} "
                f"requested={quantity} in_cart={already} stock={stock}"
            )
            raise InsufficientStock(available=stock, already_in_cart=already)

        if existing is not None:
            self.repository.set_quantity(existing.id, already + quantity)
            line = existing.with_quantity(already + quantity)
        else:
            line = self.repository.insert(CartLine(
                id=None,
                product_id=product.id,
                quantity=quantity,
                variation_signature=signature,
                price_adjustment=selection.price_adjustment,
                weight_adjustment=selection.weight_adjustment,
                selected_options=dict(selection.summary),
            ))

        logger.info(f"Cart {self.identity}: +{quantity} × product {product.id} (line {line.id}, qty {line.quantity})")
        return line

    def set_quantity(self, line_id, quantity) -> None:
        """Overwrite a line's quantity; anything below 1 removes it."""
        quantity = parse_quantity(quantity)
        if quantity < 1:
            self.remove(line_id)
            return
        if self.repository.get(line_id) is None:
            raise NotFound('That item is no longer in your cart.')
        self.repository.set_quantity(line_id, quantity)
        logger.info(f"Cart {self.identity}: line {line_id} set to {quantity}")

    def remove(self, line_id) -> None:
        self.repository.delete(line_id)
        logger.info(f"Cart {self.identity}: line {line_id} removed")

    def clear(self) -> None:
        self.repository.delete_all()
        logger.info(f"Cart {self.identity}: cleared")

    # ── Pricing ───────────────────────────────────────────────────

    def priced_lines(self) -> List[PricedLine]:
        """Every line priced per unit against one rate snapshot."""
        lines = self.lines()
        if not lines:
            return []

        rate = self.rate_provider.get_current_rate()
        gst  = get_gst_percent()
        making: Dict[str, Decimal] = {}
        priced = []

        for line in lines:
            product = db.session.get(Product, line.product_id)
            if product is None or not product.is_active:
                priced.append(PricedLine(line=line, product=product, unit=ZERO_BREAKDOWN))
                continue
            if product.category not in making:
                making[product.category] = category_making_charge(product.category)
            unit = calculate_price(
                product, rate,
                category_making_charge=making[product.category],
                gst_percent=gst,
                weight_adjustment=line.weight_adjustment,
                price_adjustment=line.price_adjustment,
            )
            priced.append(PricedLine(line=line, product=product, unit=unit))
        return priced

    def totals(self, priced: List[PricedLine] = None) -> CartTotals:
        if priced is None:
            priced = self.priced_lines()

        subtotal  = sum((p.line_subtotal for p in priced), Decimal('0'))
        gst_total = sum((p.line_gst for p in priced), Decimal('0'))
        total     = subtotal + gst_total

        return CartTotals(
            subtotal=subtotal,
            gst_total=gst_total,
            total=total,
            item_count=sum(p.line.quantity for p in priced),
            free_shipping=bool(priced) and get_free_shipping().applies_to(total),
        )

    # ── Helpers ───────────────────────────────────────────────────

    def _fresh_product(self, product_id) -> Optional[Product]:
        try:
            return get_active_product(product_id)
        except SQLAlchemyError as exc:
            db.session.rollback()
            logger.error(f"Stock lookup failed for product {product_id}: {exc}")
            raise BackendUnavailable() from exc


def _check_selection(selection: VariationSelection) -> None:
    if selection.missing:
        label = DEFAULT_GROUP_LABELS.get(selection.missing[0], selection.missing[0])
        raise InvalidSelection(f'Please choose a {label.lower()} before adding to cart.')
    if selection.engraving_pending:
        raise InvalidSelection('Save or remove your engraving before adding to cart.')

    engraving = selection.engraving
    if engraving:
        limit = current_app.config.get('ENGRAVING_MAX_LENGTH', 15)
        if len(engraving.get('text') or '') > limit:
            raise InvalidSelection(f'Engraving text can be at most {limit} characters.')


def cart_for_current_shopper() -> CartStore:
    """Durable cart when signed in, session cart otherwise."""
    return CartStore(repository_for(
        session.get('user_id'),
        current_app.config['GUEST_CART_IDENTITY'],
    ))


def guest_cart() -> CartStore:
    return CartStore(repository_for(None, current_app.config['GUEST_CART_IDENTITY']))
