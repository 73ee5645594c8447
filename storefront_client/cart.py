"""
Cart store — client copy of the server-authoritative shopping cart.

Every mutation is a full request/response round trip whose response replaces
the whole local cart. Nothing is merged or summed locally, so the displayed
total is always the server's arithmetic.
"""
import asyncio
import logging
from contextlib import asynccontextmanager
from enum import Enum
from typing import AsyncIterator, Optional

from pydantic import ValidationError

from .api import StorefrontAPI
from .errors import AuthenticationRequired, CartBusy, RequestFailed, StorefrontError
from .models import Cart
from .session import TokenHolder

logger = logging.getLogger(__name__)


class CartState(str, Enum):
    EMPTY = "empty"
    LOADED = "loaded"


class CartStore:
    """Holds one cart per authenticated customer. Admin accounts have no cart."""

    def __init__(self, api: StorefrontAPI, session: TokenHolder):
        self._api = api
        self._session = session
        self._lock = asyncio.Lock()
        self.cart = Cart()
        self.state = CartState.EMPTY
        self.error: Optional[str] = None
        session.on_logout(self.reset)

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    @property
    def subtotal(self) -> float:
        return self.cart.total_amount

    @property
    def item_count(self) -> int:
        return sum(item.quantity for item in self.cart.items)

    def reset(self) -> None:
        """Drop local state back to an empty cart."""
        self.cart = Cart()
        self.state = CartState.EMPTY

    def _replace(self, data: dict) -> Cart:
        try:
            cart = Cart.model_validate(data or {})
        except ValidationError as e:
            logger.error("Malformed cart response: %s", e)
            self.reset()
            self.error = "Failed to load cart. Please refresh or try again later."
            raise RequestFailed(self.error) from e
        self.cart = cart
        self.state = CartState.LOADED
        self.error = None
        return self.cart

    @asynccontextmanager
    async def _mutation(self) -> AsyncIterator[None]:
        # Reject instead of queueing: at most one mutation in flight.
        if self._lock.locked():
            raise CartBusy("Another cart update is still in progress")
        async with self._lock:
            yield

    async def _require_customer(self, action: str) -> None:
        try:
            await self._session.require_token()
        except AuthenticationRequired:
            self.error = f"Please login to {action}"
            raise
        if self._session.is_admin:
            self.error = "Admin accounts do not have a cart"
            raise StorefrontError(self.error)

    async def load(self) -> Cart:
        """Fetch the authoritative cart. Any failure leaves an empty cart and an error."""
        if self._session.token and self._session.is_valid() and self._session.is_admin:
            self.reset()
            return self.cart
        try:
            await self._session.require_token()
            data = await self._api.get("users/cart")
        except AuthenticationRequired:
            self.reset()
            self.error = "Authentication required to access cart"
            raise AuthenticationRequired(self.error)
        except StorefrontError:
            self.reset()
            self.error = "Failed to load cart. Please refresh or try again later."
            raise
        logger.info("Cart loaded: %d items", len((data or {}).get("items", [])))
        return self._replace(data)

    async def add_item(
        self,
        product_id: str,
        quantity: int = 1,
        price: float | None = None,
        size: str | None = None,
        color: str | None = None,
    ) -> Cart:
        """Add a product line. Raises StockConflict with available/cart quantities on shortage."""
        await self._require_customer("add items to cart")
        async with self._mutation():
            body = {
                "productId": product_id,
                "quantity": quantity,
                "price": price,
                "size": size,
                "color": color,
            }
            data = await self._guarded(self._api.post("users/cart", body), "Failed to add item to cart")
            logger.info("Added %dx %s to cart", quantity, product_id)
            return self._replace(data)

    async def update_item(self, item_id: str, quantity: int) -> Cart:
        """Set a line's quantity. Values below 1 are sent as 1; removal is ``remove_item``."""
        await self._require_customer("update cart")
        quantity = max(1, quantity)
        async with self._mutation():
            data = await self._guarded(
                self._api.put(f"users/cart/{item_id}", {"quantity": quantity}),
                "Failed to update cart",
            )
            return self._replace(data)

    async def remove_item(self, item_id: str) -> Cart:
        await self._require_customer("remove items from cart")
        async with self._mutation():
            data = await self._guarded(
                self._api.delete(f"users/cart/{item_id}"),
                "Failed to remove item from cart",
            )
            return self._replace(data)

    async def clear(self) -> Cart:
        """
        Remove every line, one request per item.

        Not atomic: if a delete fails, the lines removed so far stay removed,
        the local cart reflects the last server response and the error is raised.
        """
        await self._require_customer("clear cart")
        async with self._mutation():
            for item_id in [item.id for item in self.cart.items]:
                data = await self._guarded(
                    self._api.delete(f"users/cart/{item_id}"),
                    "Failed to clear cart",
                )
                self._replace(data)
            logger.info("Cart cleared")
            return self.cart

    async def _guarded(self, call, fallback: str):
        try:
            return await call
        except StorefrontError as e:
            self.error = getattr(e, "message", None) or fallback
            raise
