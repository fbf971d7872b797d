"""
storefront/settings
-------------------
Site-settings lookups. Each one falls back to the configured default
when the key is missing or its JSON is malformed.
"""
from __future__ import annotations
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

from flask import current_app

from storefront import db
from storefront.settings.models import SiteSetting

GST_KEY           = 'gst_rate_percent'
FREE_SHIPPING_KEY = 'free_shipping_threshold'


@dataclass(frozen=True)
class FreeShipping:
    amount:  Decimal
    enabled: bool

    def applies_to(self, order_total: Decimal) -> bool:
        return self.enabled and order_total >= self.amount


def _setting(key: str) -> dict:
    row = SiteSetting.query.filter_by(key=key).first()
    return row.value_dict if row else {}


def _decimal(value, default) -> Decimal:
    if value is None:
        return Decimal(str(default))
    try:
        dec = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return Decimal(str(default))
    return dec if dec.is_finite() else Decimal(str(default))


def get_gst_percent() -> Decimal:
    return _decimal(_setting(GST_KEY).get('rate'), current_app.config['DEFAULT_GST_PERCENT'])


def get_free_shipping() -> FreeShipping:
    value = _setting(FREE_SHIPPING_KEY)
    amount  = _decimal(value.get('amount'), current_app.config['FREE_SHIPPING_THRESHOLD'])
    enabled = value.get('enabled', current_app.config['FREE_SHIPPING_ENABLED'])
    return FreeShipping(amount=amount, enabled=bool(enabled))


def set_setting(key: str, value: dict, description: str = None) -> SiteSetting:
    """Insert or overwrite one setting."""
    row = SiteSetting.query.filter_by(key=key).first()
    if row is None:
        row = SiteSetting(key=key, description=description)
        db.session.add(row)
    row.value_dict = value
    if description:
        row.description = description
    db.session.commit()
    return row
