"""Tests for catalog listing and filtering."""
import pytest

from storefront_client.errors import RequestFailed

from conftest import product


@pytest.fixture
def catalog_backend(backend):
    backend.on("GET", "products", (200, [
        product("p1", "Barong Tagalog", 1200, category="Men", sizes=["M", "L"], colors=["White"]),
        product("p2", "Filipiniana Dress", 2500, category="Women", sizes=["S"], colors=["Red", "White"]),
        product("p3", "Abaca Tote", 600, category="Accessories", description="Handwoven barong-style pattern"),
    ]))
    return backend


async def test_text_search_matches_description(ctx, catalog_backend):
    products = await ctx.catalog.list_products(query="BARONG")
    assert [p.id for p in products] == ["p1", "p3"]


async def test_category_and_price_filters(ctx, catalog_backend):
    products = await ctx.catalog.list_products(category="women", max_price=3000)
    assert [p.id for p in products] == ["p2"]
    products = await ctx.catalog.list_products(min_price=1000, max_price=2000)
    assert [p.id for p in products] == ["p1"]


async def test_filter_options(ctx, catalog_backend):
    options = await ctx.catalog.filter_options()
    assert options["categories"] == ["Accessories", "Men", "Women"]
    assert options["colors"] == ["Red", "White"]


async def test_stock_lookup(ctx, backend):
    backend.on("GET", "products/p1/stock", (200, {"stock": 4}))
    assert await ctx.catalog.stock("p1") == 4


async def test_missing_product(ctx, backend):
    with pytest.raises(RequestFailed, match="Not found"):
        await ctx.catalog.get("missing")
