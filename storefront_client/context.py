"""Application context — one object per session owning every client component."""
import logging
from typing import Optional

import httpx

from .api import StorefrontAPI
from .cart import CartStore
from .catalog import Catalog
from .checkout import CheckoutOrchestrator
from .config import Settings
from .orders import OrderView
from .session import TokenCrypto, TokenHolder
from .support import FaqBot, SupportChat

logger = logging.getLogger(__name__)


class StorefrontContext:
    """
    Wires the components together through their constructors.

    Created at session start; ``logout`` tears down session state and
    ``aclose`` releases the HTTP client.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.settings = settings or Settings()
        self.api = StorefrontAPI(self.settings, transport=transport)
        self.session = TokenHolder(
            self.api,
            token_path=self.settings.token_path,
            crypto=TokenCrypto(key_path=self.settings.key_path),
        )
        self.catalog = Catalog(self.api)
        self.cart = CartStore(self.api, self.session)
        self.orders = OrderView(self.api, self.session)
        self.chat = SupportChat(self.api, self.session, poll_seconds=self.settings.chat_poll_seconds)
        self.faq = FaqBot()
        self.checkout: Optional[CheckoutOrchestrator] = None

        self.session.on_logout(self._end_session)

    def new_checkout(self) -> CheckoutOrchestrator:
        self.checkout = CheckoutOrchestrator(self.api, self.session, self.cart)
        return self.checkout

    async def _end_session(self) -> None:
        self.checkout = None
        await self.chat.close()

    async def restore(self) -> bool:
        """Resume a persisted session and load its cart."""
        if not self.session.restore():
            return False
        if not self.session.is_admin:
            await self.cart.load()
        return True

    async def aclose(self) -> None:
        await self.chat.close()
        await self.api.aclose()
        logger.info("Storefront context closed")
