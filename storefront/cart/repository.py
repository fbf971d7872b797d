"""
storefront/cart/repository.py
-----------------------------
Cart line storage behind one interface, two implementations:

  SessionCartRepository — pre-login cart, kept in the Flask session
                          under a fixed local identity. Lives only in
                          this browser.
  SqlCartRepository     — signed-in cart, rows in cart_items keyed by
                          user id.

Both return the same CartLine records, so CartStore never needs to know
which one it is talking to.

Session layout (key 'cart:<identity>'):
{
    "<line_id>": {
        "product_id":          int,
        "quantity":            int,
        "variation_signature": str,
        "price_adjustment":    str,   ← strings survive JSON serialisation
        "weight_adjustment":   str,
        "selected_options":    dict,
        "created_at":          str    ← ISO-8601
    },
    ...
}
"""
from __future__ import annotations
import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from flask import session
from sqlalchemy.exc import SQLAlchemyError

from storefront import db
from storefront.cart.models import CartItem
from storefront.errors import BackendUnavailable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CartLine:
    id:                  Optional[str]
    product_id:          int
    quantity:            int
    variation_signature: str
    price_adjustment:    Decimal = Decimal('0')
    weight_adjustment:   Decimal = Decimal('0')
    selected_options:    dict = field(default_factory=dict)
    created_at:          datetime = field(default_factory=datetime.utcnow)

    def with_quantity(self, quantity: int) -> 'CartLine':
        return replace(self, quantity=quantity)

    def to_dict(self) -> dict:
        return {
            'id':                  self.id,
            'product_id':          self.product_id,
            'quantity':            self.quantity,
            'variation_signature': self.variation_signature,
            'price_adjustment':    str(self.price_adjustment),
            'weight_adjustment':   str(self.weight_adjustment),
            'selected_options':    self.selected_options,
            'created_at':          self.created_at.isoformat(),
        }


class CartRepository(ABC):
    """Storage capability for one shopper's cart lines."""

    identity: str

    @abstractmethod
    def lines(self) -> List[CartLine]:
        raise NotImplementedError

    @abstractmethod
    def get(self, line_id) -> Optional[CartLine]:
        raise NotImplementedError

    @abstractmethod
    def find(self, product_id: int, signature: str) -> Optional[CartLine]:
        raise NotImplementedError

    @abstractmethod
    def insert(self, line: CartLine) -> CartLine:
        """Store a new line; returns it with its id assigned."""
        raise NotImplementedError

    @abstractmethod
    def set_quantity(self, line_id, quantity: int) -> None:
        raise NotImplementedError

    @abstractmethod
    def delete(self, line_id) -> None:
        raise NotImplementedError

    @abstractmethod
    def delete_all(self) -> None:
        raise NotImplementedError


# ── Ephemeral (session) ──────────────────────────────────────────

class SessionCartRepository(CartRepository):

    def __init__(self, identity: str = 'local'):
        self.identity = identity
        self.key = f'cart:{identity}'

    def _load(self) -> dict:
        return session.get(self.key, {})

    def _save(self, data: dict) -> None:
        session[self.key] = data
        session.modified  = True

    @staticmethod
    def _to_line(line_id: str, raw: dict) -> CartLine:
        return CartLine(
            id=line_id,
            product_id=int(raw['product_id']),
            quantity=int(raw['quantity']),
            variation_signature=raw['variation_signature'],
            price_adjustment=Decimal(raw.get('price_adjustment', '0')),
            weight_adjustment=Decimal(raw.get('weight_adjustment', '0')),
            selected_options=dict(raw.get('selected_options') or {}),
            created_at=datetime.fromisoformat(raw['created_at']),
        )

    def lines(self) -> List[CartLine]:
        items = [self._to_line(k, v) for k, v in self._load().items()]
        return sorted(items, key=lambda line: line.created_at)

    def get(self, line_id) -> Optional[CartLine]:
        raw = self._load().get(str(line_id))
        return self._to_line(str(line_id), raw) if raw else None

    def find(self, product_id: int, signature: str) -> Optional[CartLine]:
        for line_id, raw in self._load().items():
            if int(raw['product_id']) == int(product_id) and raw['variation_signature'] == signature:
                return self._to_line(line_id, raw)
        return None

    def insert(self, line: CartLine) -> CartLine:
        line_id = uuid.uuid4().hex
        data = dict(self._load())
        data[line_id] = {
            'product_id':          line.product_id,
            'quantity':            line.quantity,
            'variation_signature': line.variation_signature,
            'price_adjustment':    str(line.price_adjustment),
            'weight_adjustment':   str(line.weight_adjustment),
            'selected_options':    line.selected_options,
            'created_at':          line.created_at.isoformat(),
        }
        self._save(data)
        return replace(line, id=line_id)

    def set_quantity(self, line_id, quantity: int) -> None:
        data = dict(self._load())
        if str(line_id) in data:
            data[str(line_id)] = dict(data[str(line_id)], quantity=quantity)
            self._save(data)

    def delete(self, line_id) -> None:
        data = dict(self._load())
        if data.pop(str(line_id), None) is not None:
            self._save(data)

    def delete_all(self) -> None:
        session.pop(self.key, None)
        session.modified = True


# ── Durable (database) ───────────────────────────────────────────

class SqlCartRepository(CartRepository):

    def __init__(self, user_id: int):
        self.user_id  = user_id
        self.identity = f'user:{user_id}'

    @staticmethod
    def _to_line(item: CartItem) -> CartLine:
        return CartLine(
            id=str(item.id),
            product_id=item.product_id,
            quantity=item.quantity,
            variation_signature=item.variation_signature,
            price_adjustment=Decimal(str(item.variation_price_adjustment or 0)),
            weight_adjustment=Decimal(str(item.variation_weight_adjustment or 0)),
            selected_options=item.selected_options_dict,
            created_at=item.created_at,
        )

    def _failed(self, action: str, exc: Exception) -> BackendUnavailable:
        db.session.rollback()
        logger.error(f"Cart {action} failed for {self.identity}: {exc}")
        return BackendUnavailable()

    def _item(self, line_id) -> Optional[CartItem]:
        try:
            item_id = int(line_id)
        except (TypeError, ValueError):
            return None
        return CartItem.query.filter_by(id=item_id, user_id=self.user_id).first()

    def lines(self) -> List[CartLine]:
        try:
            items = (
                CartItem.query
                .filter_by(user_id=self.user_id)
                .order_by(CartItem.created_at, CartItem.id)
                .all()
            )
        except SQLAlchemyError as exc:
            raise self._failed('read', exc) from exc
        return [self._to_line(i) for i in items]

    def get(self, line_id) -> Optional[CartLine]:
        try:
            item = self._item(line_id)
        except SQLAlchemyError as exc:
            raise self._failed('read', exc) from exc
        return self._to_line(item) if item else None

    def find(self, product_id: int, signature: str) -> Optional[CartLine]:
        try:
            item = CartItem.query.filter_by(
                user_id=self.user_id,
                product_id=product_id,
                variation_signature=signature,
            ).first()
        except SQLAlchemyError as exc:
            raise self._failed('read', exc) from exc
        return self._to_line(item) if item else None

    def insert(self, line: CartLine) -> CartLine:
        item = CartItem(
            user_id=self.user_id,
            product_id=line.product_id,
            quantity=line.quantity,
            variation_signature=line.variation_signature,
            variation_price_adjustment=line.price_adjustment,
            variation_weight_adjustment=line.weight_adjustment,
            created_at=line.created_at,
        )
        item.selected_options_dict = line.selected_options
        try:
            db.session.add(item)
            db.session.commit()
        except SQLAlchemyError as exc:
            raise self._failed('insert', exc) from exc
        return self._to_line(item)

    def set_quantity(self, line_id, quantity: int) -> None:
        try:
            item = self._item(line_id)
            if item is not None:
                item.quantity = quantity
                db.session.commit()
        except SQLAlchemyError as exc:
            raise self._failed('update', exc) from exc

    def delete(self, line_id) -> None:
        try:
            item = self._item(line_id)
            if item is not None:
                db.session.delete(item)
                db.session.commit()
        except SQLAlchemyError as exc:
            raise self._failed('delete', exc) from exc

    def delete_all(self) -> None:
        try:
            CartItem.query.filter_by(user_id=self.user_id).delete()
            db.session.commit()
        except SQLAlchemyError as exc:
            raise self._failed('clear', exc) from exc


def repository_for(user_id: Optional[int], guest_identity: str = 'local') -> CartRepository:
    """Durable cart for a signed-in shopper, session cart otherwise."""
    if user_id:
        return SqlCartRepository(user_id)
    return SessionCartRepository(guest_identity)
