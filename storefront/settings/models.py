"""
storefront/settings/models.py
-----------------------------
Key → JSON value store for site-wide settings.

Known keys:
  gst_rate_percent         → {"rate": 3}
  free_shipping_threshold  → {"amount": 50000, "enabled": true}
"""
import json
from datetime import datetime
from storefront import db


class SiteSetting(db.Model):
    __tablename__ = 'site_settings'

    id          = db.Column(db.Integer, primary_key=True)
    key         = db.Column(db.String(80), unique=True, nullable=False, index=True)
    value       = db.Column(db.Text, nullable=False, default='{}')   # JSON string
    description = db.Column(db.String(255), nullable=True)
    updated_at  = db.Column(db.DateTime, nullable=False, default=datetime.utcnow,
                            onupdate=datetime.utcnow)

    @property
    def value_dict(self) -> dict:
        try:
            parsed = json.loads(self.value or '{}')
        except (ValueError, TypeError):
            return {}
        return parsed if isinstance(parsed, dict) else {}

    @value_dict.setter
    def value_dict(self, value: dict):
        self.value = json.dumps(value)

    def __repr__(self):
        return f'<SiteSetting {self.key!r}>'
