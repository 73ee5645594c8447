"""Tests for order lookup and the progress indicator."""
import pytest

from storefront_client.errors import AuthenticationRequired
from storefront_client.models import UNAVAILABLE_PRODUCT, Order
from storefront_client.orders import order_progress, render_timeline


def order(status: str, **extra) -> dict:
    return {
        "_id": "o1",
        "items": [{"product": "p1", "quantity": 1, "price": 100}],
        "paymentMethod": "cash_on_delivery",
        "totalAmount": 250,
        "deliveryFee": 150,
        "orderStatus": status,
        **extra,
    }


@pytest.mark.parametrize("status, stage", [
    ("pending", 0),
    ("processing", 1),
    ("shipped", 2),
    ("delivered", 3),
    ("something-new", 0),
])
def test_order_progress(status, stage):
    assert order_progress(status) == stage


def test_cancelled_has_no_stage():
    assert order_progress("cancelled") is None
    timeline = render_timeline(Order.model_validate(order("cancelled")))
    assert timeline["cancelled"] is True
    assert "stages" not in timeline


def test_timeline_marks_done_stages():
    timeline = render_timeline(Order.model_validate(order("processing")))
    assert [s["done"] for s in timeline["stages"]] == [True, True, False, False]
    assert [s["current"] for s in timeline["stages"]] == [False, True, False, False]
    assert "delivery" not in timeline


def test_shipped_order_shows_tracking():
    data = order("shipped", deliveryInfo={
        "service": "LBC",
        "trackingNumber": "LBC-42",
        "estimatedDelivery": "2024-05-03T00:00:00Z",
    })
    timeline = render_timeline(Order.model_validate(data))
    assert timeline["delivery"]["service"] == "LBC"
    assert timeline["delivery"]["tracking_number"] == "LBC-42"
    assert timeline["delivery"]["estimated_delivery"].startswith("2024-05-03")


class TestOrderView:
    async def test_list_mine(self, logged_in, backend):
        backend.on("GET", "orders/myorders", (200, [order("pending"), order("delivered", _id="o2")]))
        orders = await logged_in.orders.list_mine()
        assert [o.id for o in orders] == ["o1", "o2"]

    async def test_progress(self, logged_in, backend):
        backend.on("GET", "orders/o1", (200, order("shipped")))
        timeline = await logged_in.orders.progress("o1")
        assert timeline["stage"] == 2
        assert timeline["status"] == "Shipped"

    async def test_requires_login(self, ctx, backend):
        with pytest.raises(AuthenticationRequired):
            await ctx.orders.get("o1")
        assert backend.calls == []

    async def test_order_with_deleted_product(self, logged_in, backend):
        backend.on("GET", "orders/myorders", (200, [
            order("delivered", items=[{"product": None, "quantity": 1, "price": 100}]),
        ]))
        orders = await logged_in.orders.list_mine()
        assert orders[0].items[0].product_name == UNAVAILABLE_PRODUCT
