"""Order record view — read-only order lookup and progress mapping."""
import logging
from typing import Optional

from .api import StorefrontAPI
from .models import Order
from .session import TokenHolder

logger = logging.getLogger(__name__)

PROGRESS_STAGES = ["Order Placed", "Processing", "Shipped", "Delivered"]

_STAGE_BY_STATUS = {
    "pending": 0,
    "processing": 1,
    "shipped": 2,
    "delivered": 3,
}

CANCELLED = "cancelled"


def order_progress(status: str) -> Optional[int]:
    """
    Map an order status onto the four-stage progress bar.

    ``cancelled`` is absorbing and has no stage at all (None). Unknown
    statuses show as just placed.
    """
    if status == CANCELLED:
        return None
    return _STAGE_BY_STATUS.get(status, 0)


def render_timeline(order: Order) -> dict:
    """Progress indicator data for one order."""
    stage = order_progress(order.order_status)
    timeline = {
        "order_id": order.id,
        "status": order.order_status.title(),
        "payment_status": order.payment_status.title(),
        "cancelled": stage is None,
    }
    if stage is None:
        timeline["message"] = "This order has been cancelled."
        return timeline

    timeline["stage"] = stage
    timeline["stages"] = [
        {"label": label, "done": i <= stage, "current": i == stage}
        for i, label in enumerate(PROGRESS_STAGES)
    ]
    if order.order_status == "shipped" and order.delivery_info is not None:
        info = order.delivery_info
        timeline["delivery"] = {
            "service": info.service,
            "tracking_number": info.tracking_number,
            "tracking_link": info.tracking_link,
            "estimated_delivery": info.estimated_delivery.isoformat() if info.estimated_delivery else None,
        }
    return timeline


class OrderView:
    def __init__(self, api: StorefrontAPI, session: TokenHolder):
        self._api = api
        self._session = session

    async def get(self, order_id: str) -> Order:
        await self._session.require_token()
        data = await self._api.get(f"orders/{order_id}")
        return Order.model_validate(data)

    async def list_mine(self) -> list[Order]:
        await self._session.require_token()
        data = await self._api.get("orders/myorders")
        orders = [Order.model_validate(o) for o in data or []]
        logger.info("Fetched %d orders", len(orders))
        return orders

    async def progress(self, order_id: str) -> dict:
        return render_timeline(await self.get(order_id))
