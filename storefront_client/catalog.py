"""Catalog — product listing, detail, featured picks, and stock lookups."""
import logging
from typing import Optional

from .api import StorefrontAPI
from .models import Product

logger = logging.getLogger(__name__)


class Catalog:
    """Read-only access to the public product endpoints."""

    def __init__(self, api: StorefrontAPI):
        self._api = api

    async def list_products(
        self,
        query: Optional[str] = None,
        category: Optional[str] = None,
        min_price: Optional[float] = None,
        max_price: Optional[float] = None,
    ) -> list[Product]:
        """
        List products, filtered client-side.

        The products endpoint returns the whole catalog, so text, category and
        price filters are applied here.
        """
        data = await self._api.get("products")
        products = [Product.model_validate(p) for p in data or []]

        if query:
            q = query.lower()
            products = [
                p for p in products
                if q in p.name.lower() or q in p.description.lower()
            ]
        if category:
            products = [p for p in products if (p.category or "").lower() == category.lower()]
        if min_price is not None:
            products = [p for p in products if p.price >= min_price]
        if max_price is not None:
            products = [p for p in products if p.price <= max_price]

        logger.info("Catalog query=%r category=%r -> %d products", query, category, len(products))
        return products

    async def featured(self) -> list[Product]:
        data = await self._api.get("products/featured")
        return [Product.model_validate(p) for p in data or []]

    async def get(self, product_id: str) -> Product:
        data = await self._api.get(f"products/{product_id}")
        return Product.model_validate(data)

    async def stock(self, product_id: str) -> int:
        data = await self._api.get(f"products/{product_id}/stock")
        return int((data or {}).get("stock", 0))

    async def filter_options(self) -> dict:
        """Distinct categories, sizes and colors across the catalog."""
        products = await self.list_products()
        return {
            "categories": sorted({p.category for p in products if p.category}),
            "sizes": sorted({s for p in products for s in p.sizes}),
            "colors": sorted({c for p in products for c in p.colors}),
        }
