"""Async storefront client: session, cart, checkout, orders, and support chat."""
from .context import StorefrontContext
from .errors import (
    AuthenticationRequired,
    CartBusy,
    CheckoutBusy,
    EmptyCart,
    InvalidTransition,
    RequestFailed,
    StockConflict,
    StorefrontError,
    ValidationFailed,
)

__all__ = [
    "StorefrontContext",
    "StorefrontError",
    "AuthenticationRequired",
    "StockConflict",
    "ValidationFailed",
    "RequestFailed",
    "CartBusy",
    "CheckoutBusy",
    "EmptyCart",
    "InvalidTransition",
]
