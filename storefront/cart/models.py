import json
from datetime import datetime
from storefront import db


class CartItem(db.Model):
    """
    Durable cart line for a signed-in shopper.

    One row per (user, product, variation_signature). Adjustments and the
    selected-options label map are captured when the line is created, so
    later catalog edits don't change what the shopper configured.
    """
    __tablename__ = 'cart_items'

    id                          = db.Column(db.Integer, primary_key=True)
    user_id                     = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'),
                                            nullable=False, index=True)
    product_id                  = db.Column(db.Integer, db.ForeignKey('products.id', ondelete='CASCADE'),
                                            nullable=False)
    quantity                    = db.Column(db.Integer, nullable=False, default=1)
    variation_signature         = db.Column(db.String(64), nullable=False)
    variation_price_adjustment  = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    variation_weight_adjustment = db.Column(db.Numeric(10, 3), nullable=False, default=0)
    selected_variations         = db.Column(db.Text, nullable=False, default='{}')   # JSON label map
    created_at                  = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    product = db.relationship('Product', lazy='select')

    __table_args__ = (
        db.UniqueConstraint('user_id', 'product_id', 'variation_signature',
                            name='uq_cart_line_signature'),
        db.CheckConstraint('quantity >= 1', name='check_cart_quantity_positive'),
    )

    @property
    def selected_options_dict(self) -> dict:
        try:
            parsed = json.loads(self.selected_variations or '{}')
        except (ValueError, TypeError):
            return {}
        return parsed if isinstance(parsed, dict) else {}

    @selected_options_dict.setter
    def selected_options_dict(self, value: dict):
        self.selected_variations = json.dumps(value, sort_keys=True)

    def __repr__(self):
        return f"<CartItem user={self.user_id} product={self.product_id} qty={self.quantity}>"
