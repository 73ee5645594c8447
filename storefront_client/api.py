"""
REST transport — one shared httpx client for every storefront endpoint.

Maps HTTP failures onto the error taxonomy in ``errors`` so callers can tell
an expired session apart from a stock conflict or a plain server failure.
"""
import logging
from typing import Any, Callable, Optional

import httpx

from .config import Settings
from .errors import AuthenticationRequired, RequestFailed, StockConflict

logger = logging.getLogger(__name__)

TokenProvider = Callable[[], Optional[str]]


def _error_payload(response: httpx.Response) -> dict:
    """Server errors are JSON ``{"msg": ...}`` or a bare text body."""
    try:
        data = response.json()
    except ValueError:
        return {"msg": response.text.strip() or None}
    return data if isinstance(data, dict) else {"msg": None}


class StorefrontAPI:
    """Thin async client over the storefront REST surface."""

    def __init__(
        self,
        settings: Settings | None = None,
        token_provider: TokenProvider | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._settings = settings or Settings()
        self._token_provider = token_provider
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def base_url(self) -> str:
        return self._settings.base_url

    def set_token_provider(self, provider: TokenProvider) -> None:
        self._token_provider = provider

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self._settings.base_url + "/",
                timeout=self._settings.timeout,
                headers={"Content-Type": "application/json"},
                transport=self._transport,
            )
        return self._client

    def _auth_headers(self) -> dict[str, str]:
        token = self._token_provider() if self._token_provider else None
        if not token:
            return {}
        return {"Authorization": f"Bearer {token}"}

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: dict | None = None,
    ) -> Any:
        """Send a request and return the decoded JSON body, or raise a StorefrontError."""
        client = self._ensure_client()
        url = path.lstrip("/")
        try:
            response = await client.request(
                method, url, json=json, params=params, headers=self._auth_headers(),
            )
        except httpx.HTTPError as e:
            logger.error("%s %s failed: %s", method, path, e)
            raise RequestFailed(f"Network error: {e}") from e

        if response.is_success:
            logger.debug("%s %s -> %d", method, path, response.status_code)
            return response.json() if response.content else None

        payload = _error_payload(response)
        message = payload.get("msg")
        logger.warning("%s %s -> %d: %s", method, path, response.status_code, message)

        if response.status_code in (401, 403):
            raise AuthenticationRequired(message or "Authentication required. Please log in again.")
        if response.status_code == 400 and "availableStock" in payload:
            raise StockConflict(
                message or "Insufficient stock",
                available_stock=payload.get("availableStock"),
                cart_quantity=payload.get("cartQuantity"),
                requested_quantity=payload.get("requestedQuantity"),
            )
        raise RequestFailed(message or f"Request failed ({response.status_code})", response.status_code)

    async def get(self, path: str, params: dict | None = None) -> Any:
        return await self.request("GET", path, params=params)

    async def post(self, path: str, json: Any = None) -> Any:
        return await self.request("POST", path, json=json)

    async def put(self, path: str, json: Any = None) -> Any:
        return await self.request("PUT", path, json=json)

    async def delete(self, path: str) -> Any:
        return await self.request("DELETE", path)

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
