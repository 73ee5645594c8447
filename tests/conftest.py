"""Shared test fixtures."""
import json
import time

import httpx
import pytest
from jose import jwt

from storefront_client.config import Settings
from storefront_client.context import StorefrontContext


def make_token(role: str = "customer", expires_in: int = 3600) -> str:
    claims = {
        "user": {"id": "u1", "role": role},
        "exp": int(time.time()) + expires_in,
    }
    return jwt.encode(claims, "test-secret", algorithm="HS256")


def product(pid: str, name: str, price: float, stock: int = 10, **extra) -> dict:
    return {"_id": pid, "name": name, "price": price, "stock": stock, **extra}


def cart_item(iid: str, pid: str, price: float, quantity: int) -> dict:
    return {
        "_id": iid,
        "product": product(pid, f"Product {pid}", price),
        "price": price,
        "quantity": quantity,
    }


def cart_body(*items: dict) -> dict:
    total = sum(i["price"] * i["quantity"] for i in items)
    return {"items": list(items), "totalAmount": total}


class FakeBackend:
    """
    Routes requests to canned responses and records every call.

    Routes are keyed by ``"METHOD path"`` (path relative to the API base); a
    value is either a ``(status, body)`` tuple or a callable taking the request.
    """

    def __init__(self):
        self.routes: dict = {}
        self.calls: list[tuple[str, str, object]] = []

    def on(self, method: str, path: str, response):
        self.routes[f"{method} {path}"] = response

    def paths(self, method: str | None = None) -> list[str]:
        return [p for m, p, _ in self.calls if method is None or m == method]

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path.split("/api/", 1)[-1]
        body = json.loads(request.content) if request.content else None
        self.calls.append((request.method, path, body))

        route = self.routes.get(f"{request.method} {path}")
        if route is None:
            return httpx.Response(404, json={"msg": "Not found"})
        if callable(route):
            route = route(request)
        status, payload = route
        return httpx.Response(status, json=payload)


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def settings(tmp_path):
    return Settings(
        base_url="http://test.local/api",
        timeout=5,
        token_path=tmp_path / "token.enc",
        key_path=tmp_path / "token.key",
        debug_dir=tmp_path / "debug",
        chat_poll_seconds=0.01,
    )


@pytest.fixture
async def ctx(settings, backend):
    context = StorefrontContext(settings, transport=httpx.MockTransport(backend.handler))
    yield context
    await context.aclose()


@pytest.fixture
async def logged_in(ctx, backend):
    """Context with a customer session."""
    backend.on("POST", "auth/login", (200, {
        "token": make_token(),
        "user": {"id": "u1", "name": "Jane Cruz", "email": "jane@example.com", "role": "customer"},
    }))
    await ctx.session.login("jane@example.com", "secret")
    return ctx
