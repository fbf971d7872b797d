"""
storefront/cart/migration.py
----------------------------
Moves the pre-login session cart into a shopper's durable cart at login.

Each guest line goes through the normal stock-checked CartStore.add(),
so a merged cart can never hold more than stock allows:

  fits            → merged as-is
  would oversell  → clamped to what stock still allows, dropped if nothing
  product gone    → dropped

A guest line is removed from the session as soon as it has been handled,
so a storage failure half-way leaves only the unprocessed lines behind
and a retry never double-counts.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass, field
from typing import List

from storefront.cart.store import CartStore
from storefront.errors import InsufficientStock, InvalidSelection, NotFound
from storefront.variants.selection import VariationSelection

logger = logging.getLogger(__name__)


@dataclass
class MergeReport:
    merged:  List[dict] = field(default_factory=list)
    clamped: List[dict] = field(default_factory=list)
    dropped: List[dict] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        """True when the shopper should be told something was adjusted."""
        return bool(self.clamped or self.dropped)

    def to_dict(self) -> dict:
        return {
            'merged':  self.merged,
            'clamped': self.clamped,
            'dropped': self.dropped,
        }


def merge_guest_cart(guest: CartStore, user: CartStore) -> MergeReport:
    report = MergeReport()

    for line in guest.lines():
        selection = VariationSelection.from_captured(
            line.selected_options, line.price_adjustment, line.weight_adjustment
        )
        entry = {'product_id': line.product_id, 'requested': line.quantity}

        try:
            user.add(line.product_id, line.quantity, selection)
            report.merged.append(dict(entry, quantity=line.quantity))
        except InsufficientStock as exc:
            headroom = exc.available - exc.already_in_cart
            if headroom > 0:
                user.add(line.product_id, headroom, selection)
                report.clamped.append(dict(entry, quantity=headroom, message=exc.message))
            else:
                report.dropped.append(dict(entry, reason='out_of_stock', message=exc.message))
        except (NotFound, InvalidSelection) as exc:
            report.dropped.append(dict(entry, reason='unavailable', message=exc.message))

        guest.remove(line.id)

    guest.clear()
    logger.info(
        f"Merged guest cart into {user.identity}: {len(report.merged)} merged, "
        f"{len(report.clamped)} clamped, {len(report.dropped)} dropped"
    )
    return report
