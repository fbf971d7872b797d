"""
storefront/errors.py
--------------------
Error taxonomy shared by the cart, variant and catalog layers.

Every error carries a shopper-facing `message` (never raw backend text)
and the HTTP status the JSON views answer with.
"""


class StorefrontError(Exception):
    """Base class — `message` is safe to show to the shopper."""
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {'error': self.message}


class NotFound(StorefrontError):
    """Referenced product (or cart line) does not exist."""
    status_code = 404


class InsufficientStock(StorefrontError):
    """
    Requested quantity plus what is already in the cart exceeds stock.
    Recoverable: the shopper can retry with a smaller quantity.
    """
    status_code = 409

    def __init__(self, available: int, already_in_cart: int):
        self.available       = available
        self.already_in_cart = already_in_cart
        super().__init__(
            f'Only {available} items available. '
            f'You already have {already_in_cart} in your cart.'
        )

    def to_dict(self) -> dict:
        return {
            'error':           self.message,
            'available':       self.available,
            'already_in_cart': self.already_in_cart,
        }


class BackendUnavailable(StorefrontError):
    """Storage I/O failed. Cart state is unchanged; safe to retry."""
    status_code = 503

    def __init__(self, message: str = 'Your cart could not be updated right now. Please try again.'):
        super().__init__(message)


class InvalidSelection(StorefrontError):
    """Variation choices are incomplete or malformed."""
    status_code = 400


class InvalidQuantity(StorefrontError):
    status_code = 400
