"""
storefront/rates/provider.py
----------------------------
Read-only access to published metal rates.

Pricing code only ever sees RateSnapshot, a frozen copy of one
GoldRate row, so a rate published mid-request can never mutate a
snapshot that is already being used to price a cart.
"""
from __future__ import annotations
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError

from storefront import db
from storefront.rates.models import GoldRate

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateSnapshot:
    """Per-gram rates effective on one date."""
    rate_24k:       Decimal
    rate_22k:       Decimal
    rate_18k:       Optional[Decimal]
    silver_rate:    Optional[Decimal]
    effective_date: date
    source:         str

    @classmethod
    def from_row(cls, row: GoldRate) -> 'RateSnapshot':
        def _dec(value):
            return Decimal(str(value)) if value is not None else None

        return cls(
            rate_24k=_dec(row.rate_24k),
            rate_22k=_dec(row.rate_22k),
            rate_18k=_dec(row.rate_18k),
            silver_rate=_dec(row.silver_rate),
            effective_date=row.effective_date,
            source=row.source,
        )

    def to_dict(self) -> dict:
        return {
            'rate_24k':       str(self.rate_24k),
            'rate_22k':       str(self.rate_22k),
            'rate_18k':       str(self.rate_18k) if self.rate_18k is not None else None,
            'silver_rate':    str(self.silver_rate) if self.silver_rate is not None else None,
            'effective_date': self.effective_date.isoformat(),
            'source':         self.source,
        }


class RateProvider(ABC):

    @abstractmethod
    def get_current_rate(self) -> Optional[RateSnapshot]:
        """Latest published snapshot, or None if nothing is available."""
        raise NotImplementedError

    @abstractmethod
    def get_rate_history(self, days: int) -> List[RateSnapshot]:
        """Snapshots from the last `days` days, oldest first."""
        raise NotImplementedError


class DatabaseRateProvider(RateProvider):
    """Reads the gold_rates table through the app's SQLAlchemy session."""

    def get_current_rate(self) -> Optional[RateSnapshot]:
        try:
            row = (
                GoldRate.query
                .filter_by(is_current=True)
                .order_by(GoldRate.effective_date.desc(), GoldRate.id.desc())
                .first()
            )
        except SQLAlchemyError as exc:
            db.session.rollback()
            # "Rate not loaded" is a normal pricing state; prices degrade to zero
            logger.error(f"Rate lookup failed: {exc}")
            return None
        return RateSnapshot.from_row(row) if row else None

    def get_rate_history(self, days: int) -> List[RateSnapshot]:
        start = date.today() - timedelta(days=max(days, 0))
        try:
            rows = (
                GoldRate.query
                .filter(GoldRate.effective_date >= start)
                .order_by(GoldRate.effective_date.asc(), GoldRate.id.asc())
                .all()
            )
        except SQLAlchemyError as exc:
            db.session.rollback()
            logger.error(f"Rate history lookup failed: {exc}")
            return []
        return [RateSnapshot.from_row(r) for r in rows]


def publish_rate(rate_22k, rate_24k, rate_18k=None, silver_rate=None,
                 source: str = 'manual', effective_date: date = None) -> GoldRate:
    """
    Insert a new current rate and retire the previous current row(s).
    Both writes happen in one commit.
    """
    GoldRate.query.filter_by(is_current=True).update({'is_current': False})
    row = GoldRate(
        rate_22k=Decimal(str(rate_22k)),
        rate_24k=Decimal(str(rate_24k)),
        rate_18k=Decimal(str(rate_18k)) if rate_18k is not None else None,
        silver_rate=Decimal(str(silver_rate)) if silver_rate is not None else None,
        effective_date=effective_date or date.today(),
        is_current=True,
        source=source,
    )
    db.session.add(row)
    db.session.commit()
    logger.info(f"Published rate {row.effective_date}: 22k={row.rate_22k} 24k={row.rate_24k} ({source})")
    return row
