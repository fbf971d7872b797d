from datetime import datetime, date
from storefront import db


class GoldRate(db.Model):
    """
    One published set of per-gram metal rates.

    Rows are never edited after insert. Publishing a new rate inserts a
    row with is_current=True and clears the flag on the previous one, so
    history stays intact for charting.
    """
    __tablename__ = 'gold_rates'

    id             = db.Column(db.Integer, primary_key=True)
    rate_24k       = db.Column(db.Numeric(12, 2), nullable=False)
    rate_22k       = db.Column(db.Numeric(12, 2), nullable=False)
    rate_18k       = db.Column(db.Numeric(12, 2), nullable=True)    # NULL = derive from 22k
    silver_rate    = db.Column(db.Numeric(12, 2), nullable=True)
    effective_date = db.Column(db.Date, nullable=False, default=date.today, index=True)
    is_current     = db.Column(db.Boolean, nullable=False, default=True, index=True)
    source         = db.Column(db.String(60), nullable=False, default='manual')
    created_at     = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        db.CheckConstraint('rate_24k > 0 AND rate_22k > 0', name='check_rates_positive'),
    )

    def __repr__(self):
        return f"<GoldRate {self.effective_date} 22k={self.rate_22k} current={self.is_current}>"
