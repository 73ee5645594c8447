"""Error taxonomy shared by every storefront component."""
from typing import Optional


class StorefrontError(Exception):
    """Base class for all client-side storefront failures."""


class AuthenticationRequired(StorefrontError):
    """Token missing, expired, or rejected by the server. The caller must log in again."""

    def __init__(self, message: str = "Authentication required. Please log in again."):
        super().__init__(message)
        self.message = message


class StockConflict(StorefrontError):
    """Requested quantity exceeds what the server has in stock."""

    def __init__(
        self,
        message: str,
        available_stock: Optional[int] = None,
        cart_quantity: Optional[int] = None,
        requested_quantity: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        self.available_stock = available_stock
        self.cart_quantity = cart_quantity
        self.requested_quantity = requested_quantity

    def to_dict(self) -> dict:
        return {
            "message": self.message,
            "available_stock": self.available_stock,
            "cart_quantity": self.cart_quantity,
            "requested_quantity": self.requested_quantity,
        }


class ValidationFailed(StorefrontError):
    """Field-level validation failure. Raised before any request is sent."""

    def __init__(self, field_errors: dict[str, str]):
        super().__init__("; ".join(field_errors.values()) or "Validation failed")
        self.field_errors = field_errors


class RequestFailed(StorefrontError):
    """Generic HTTP or network failure. Never retried automatically."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class CartBusy(StorefrontError):
    """Another cart mutation is still in flight."""


class CheckoutBusy(StorefrontError):
    """An order submission is in flight or has already completed."""


class EmptyCart(StorefrontError):
    """Checkout cannot start with an empty cart."""


class InvalidTransition(StorefrontError):
    """Checkout step change not allowed from the current step."""
