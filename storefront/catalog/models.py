import json
from datetime import datetime
from storefront import db
from storefront.pricing import METAL_TYPE_NAMES

# ── Variation dimensions ─────────────────────────────────────────
VARIATION_TYPES = (
    'metal_type', 'size', 'gemstone_quality',
    'carat_weight', 'certificate', 'custom',
)


class Product(db.Model):
    """
    A made-to-order piece. Price is never stored: it is derived from
    weight, purity and the current rate each time it is read.
    """
    __tablename__ = 'products'

    id                    = db.Column(db.Integer, primary_key=True)
    name                  = db.Column(db.String(200), nullable=False, index=True)
    slug                  = db.Column(db.String(220), unique=True, nullable=False, index=True)
    category              = db.Column(db.String(40), nullable=False, default='rings', index=True)
    metal_type            = db.Column(db.String(20), nullable=False, default='gold_22k')
    weight_grams          = db.Column(db.Numeric(10, 3), nullable=False, default=0)
    making_charge_percent = db.Column(db.Numeric(5, 2), nullable=True)   # NULL = category default
    diamond_cost          = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    stone_cost            = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    stock_quantity        = db.Column(db.Integer, nullable=True)         # NULL = not tracked
    is_active             = db.Column(db.Boolean, nullable=False, default=True, index=True)
    specifications        = db.Column(db.Text, nullable=True)            # free-form JSON
    created_at            = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at            = db.Column(db.DateTime, nullable=False, default=datetime.utcnow,
                                      onupdate=datetime.utcnow)

    variations = db.relationship('ProductVariation', backref='product', lazy='select',
                                 cascade='all, delete-orphan')

    __table_args__ = (
        db.CheckConstraint('weight_grams >= 0', name='check_weight_non_negative'),
        db.CheckConstraint('stock_quantity IS NULL OR stock_quantity >= 0',
                           name='check_stock_quantity_non_negative'),
    )

    # ── Helpers ───────────────────────────────────────────────────
    @property
    def specifications_dict(self) -> dict:
        """Parsed specifications; legacy rows may hold anything."""
        try:
            parsed = json.loads(self.specifications or '{}')
        except (ValueError, TypeError):
            return {}
        return parsed if isinstance(parsed, dict) else {}

    @specifications_dict.setter
    def specifications_dict(self, value: dict):
        self.specifications = json.dumps(value)

    @property
    def metal_label(self) -> str:
        return METAL_TYPE_NAMES.get(self.metal_type, self.metal_type)

    def __repr__(self):
        return f"<Product {self.slug!r} {self.metal_type} {self.weight_grams}g>"


class ProductVariation(db.Model):
    """
    One selectable option of a product, in exactly one dimension
    (see VARIATION_TYPES). Adjustments are signed deltas on the base
    product; weight_adjustment is only meaningful for metal/size.
    """
    __tablename__ = 'product_variations'

    id                = db.Column(db.Integer, primary_key=True)
    product_id        = db.Column(db.Integer, db.ForeignKey('products.id', ondelete='CASCADE'),
                                  nullable=False, index=True)
    variation_type    = db.Column(db.String(30), nullable=False)
    label             = db.Column(db.String(120), nullable=True)
    value             = db.Column(db.String(255), nullable=True)
    metal_type        = db.Column(db.String(20), nullable=True)      # metal_type rows only
    variation_group   = db.Column(db.String(120), nullable=True)     # display title override
    selection_mode    = db.Column(db.String(10), nullable=True)      # 'single' | 'multi'
    price_adjustment  = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    weight_adjustment = db.Column(db.Numeric(10, 3), nullable=False, default=0)
    stock_quantity    = db.Column(db.Integer, nullable=True)
    is_available      = db.Column(db.Boolean, nullable=False, default=True)
    is_default        = db.Column(db.Boolean, nullable=False, default=False)
    image_url         = db.Column(db.String(500), nullable=True)
    sort_order        = db.Column(db.Integer, nullable=False, default=0)
    created_at        = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    def __repr__(self):
        return f"<Variation {self.variation_type} {self.label or self.value!r} P:{self.product_id}>"


class CategoryMakingCharge(db.Model):
    """Default making-charge % for products that carry no override."""
    __tablename__ = 'category_making_charges'

    id                    = db.Column(db.Integer, primary_key=True)
    category              = db.Column(db.String(40), unique=True, nullable=False)
    making_charge_percent = db.Column(db.Numeric(5, 2), nullable=False)
    updated_at            = db.Column(db.DateTime, nullable=False, default=datetime.utcnow,
                                      onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<CategoryMakingCharge {self.category} {self.making_charge_percent}%>"
