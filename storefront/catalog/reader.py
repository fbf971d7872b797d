"""
storefront/catalog/reader.py
----------------------------
Read side of the catalog used by pricing and the variant resolver.

Rows are copied into frozen VariationRecord values so the resolver
works on plain data and can be exercised without a database.
"""
from __future__ import annotations
from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional

from flask import current_app

from storefront import db
from storefront.catalog.models import Product, ProductVariation, CategoryMakingCharge


@dataclass(frozen=True)
class VariationRecord:
    id:                str
    dimension:         str
    label:             Optional[str] = None
    value:             Optional[str] = None
    metal_type:        Optional[str] = None
    group_label:       Optional[str] = None
    selection_mode:    Optional[str] = None
    price_adjustment:  Decimal = Decimal('0')
    weight_adjustment: Decimal = Decimal('0')
    stock_quantity:    Optional[int] = None
    is_available:      bool = True
    is_default:        bool = False
    image_url:         Optional[str] = None

    @classmethod
    def from_row(cls, row: ProductVariation) -> 'VariationRecord':
        return cls(
            id=str(row.id),
            dimension=row.variation_type,
            label=row.label,
            value=row.value,
            metal_type=row.metal_type,
            group_label=row.variation_group,
            selection_mode=row.selection_mode,
            price_adjustment=Decimal(str(row.price_adjustment or 0)),
            weight_adjustment=Decimal(str(row.weight_adjustment or 0)),
            stock_quantity=row.stock_quantity,
            is_available=bool(row.is_available),
            is_default=bool(row.is_default),
            image_url=row.image_url,
        )


def get_variations(product_id: int) -> List[VariationRecord]:
    """All variation records of a product. An empty list is valid."""
    rows = (
        ProductVariation.query
        .filter_by(product_id=product_id)
        .order_by(ProductVariation.variation_type,
                  ProductVariation.sort_order,
                  ProductVariation.id)
        .all()
    )
    return [VariationRecord.from_row(r) for r in rows]


def get_active_product(product_id) -> Optional[Product]:
    """
    Product by id, re-read from the database so stock is current.
    Inactive products are treated as missing.
    """
    try:
        pid = int(product_id)
    except (TypeError, ValueError):
        return None
    product = db.session.get(Product, pid, populate_existing=True)
    if product is None or not product.is_active:
        return None
    return product


def category_making_charge(category: str) -> Decimal:
    """Making-charge % for a category, else the configured store default."""
    row = CategoryMakingCharge.query.filter_by(category=category).first()
    if row is None:
        return Decimal(str(current_app.config['DEFAULT_MAKING_CHARGE_PERCENT']))
    return Decimal(str(row.making_charge_percent))
