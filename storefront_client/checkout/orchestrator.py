"""
Checkout orchestrator — the four-step wizard that turns the cart into one order.

    ADDRESS -> DELIVERY -> PAYMENT -> REVIEW -> place_order()

The wizard never computes an authoritative subtotal: it reads the server's
cart total and only adds the delivery fee on top.
"""
import asyncio
import logging
from datetime import date
from typing import Optional

from ..api import StorefrontAPI
from ..cart import CartState, CartStore
from ..errors import (
    AuthenticationRequired,
    CheckoutBusy,
    EmptyCart,
    InvalidTransition,
    StorefrontError,
    ValidationFailed,
)
from ..models import Address, DeliveryMethod, Order, PaymentDetails, PaymentMethod
from ..session import TokenHolder
from .steps import (
    AddressStep,
    CheckoutForm,
    CheckoutStep,
    DeliveryStep,
    PaymentStep,
    ReviewStep,
    Step,
)

logger = logging.getLogger(__name__)


class CheckoutOrchestrator:
    """Drives one checkout session. Create a new one per checkout."""

    def __init__(self, api: StorefrontAPI, session: TokenHolder, cart: CartStore):
        self._api = api
        self._session = session
        self._cart = cart
        self.form = CheckoutForm()
        self.step = Step.ADDRESS
        self.notice: Optional[str] = None
        self.order: Optional[Order] = None
        self._steps: dict[Step, CheckoutStep] = {
            Step.ADDRESS: AddressStep(on_new_address=self._save_address_in_background),
            Step.DELIVERY: DeliveryStep(),
            Step.PAYMENT: PaymentStep(),
            Step.REVIEW: ReviewStep(),
        }
        self._submitting = False
        self._background: set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # Entry
    # ------------------------------------------------------------------

    async def start(self) -> dict:
        """Entry guard: a valid session and a non-empty cart, then the saved address."""
        await self._session.require_token()
        if self._cart.state is CartState.EMPTY:
            await self._cart.load()
        if self._cart.cart.is_empty:
            raise EmptyCart("Your cart is empty")
        await self._load_saved_address()
        return self.view()

    async def _load_saved_address(self) -> None:
        try:
            data = await self._api.get("users/profile")
        except AuthenticationRequired:
            raise
        except StorefrontError as e:
            logger.warning("Could not load saved addresses: %s", e)
            self.notice = "Failed to load your saved addresses. You can enter a new one."
            self.form.selected_address = None
            return

        address = (data or {}).get("address") or {}
        if address.get("street"):
            self.form.saved_addresses = [Address.model_validate(address)]
            self.form.selected_address = 0
        else:
            self.form.selected_address = None

    # ------------------------------------------------------------------
    # Form input
    # ------------------------------------------------------------------

    def select_saved_address(self, index: int) -> None:
        if not 0 <= index < len(self.form.saved_addresses):
            raise ValidationFailed({"address": f"No saved address at index {index}"})
        self.form.selected_address = index

    def use_new_address(self) -> None:
        self.form.selected_address = None

    def set_region(self, region: str) -> None:
        """Choose the region on the new-address form. The city list changes, so the city resets."""
        self.form.selected_address = None
        if region != self.form.address_form.state:
            self.form.address_form.city = ""
        self.form.address_form.state = region

    def enter_address(
        self,
        street: str | None = None,
        city: str | None = None,
        state: str | None = None,
        zip_code: str | None = None,
        country: str | None = None,
    ) -> None:
        self.form.selected_address = None
        address = self.form.address_form
        if state is not None:
            self.set_region(state)
        if street is not None:
            address.street = street
        if city is not None:
            address.city = city
        if zip_code is not None:
            address.zip_code = zip_code
        if country is not None:
            address.country = country

    def set_delivery_method(self, method: DeliveryMethod | str) -> None:
        self.form.delivery_method = DeliveryMethod(method)

    def set_payment_method(self, method: PaymentMethod | str) -> None:
        self.form.payment_method = PaymentMethod(method)

    def set_payment_details(
        self,
        account_name: str | None = None,
        account_number: str | None = None,
        reference_number: str | None = None,
        date_created: date | str | None = None,
    ) -> None:
        details = self.form.payment_details
        update = {
            "account_name": account_name,
            "account_number": account_number,
            "reference_number": reference_number,
            "date_created": date_created,
        }
        merged = {**details.model_dump(), **{k: v for k, v in update.items() if v is not None}}
        if date_created == "":
            merged["date_created"] = None
        self.form.payment_details = PaymentDetails.model_validate(merged)

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    @property
    def delivery_fee(self) -> int:
        # Always derived from the current region and method, never cached
        return self.form.delivery_fee

    def summary(self) -> dict:
        subtotal = self._cart.subtotal
        fee = self.delivery_fee
        return {
            "subtotal": subtotal,
            "delivery_fee": fee,
            "total": round(subtotal + fee, 2),
        }

    def view(self) -> dict:
        """Current step plus what it renders, for display."""
        current = self._steps[self.step]
        return {
            "step": int(self.step),
            "label": current.label,
            "data": current.render(self.form),
            "summary": self.summary(),
            "notice": self.notice,
        }

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def next(self) -> dict:
        """Validate the current step and advance. Blocked steps raise ValidationFailed."""
        if self.step is Step.REVIEW:
            raise InvalidTransition("Review is the last step; use place_order")
        current = self._steps[self.step]
        errors = current.validate(self.form)
        if errors:
            raise ValidationFailed(errors)
        current.commit(self.form)
        self.step = Step(self.step + 1)
        return self.view()

    def back(self) -> dict:
        if self.step is Step.ADDRESS:
            raise InvalidTransition("Already at the first step")
        self.step = Step(self.step - 1)
        return self.view()

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    def build_order_payload(self) -> dict:
        """Order request built from the live cart snapshot plus the collected form."""
        cart = self._cart.cart
        fee = self.delivery_fee
        payload = {
            "items": [
                {
                    "product": item.product_id,
                    "quantity": item.quantity,
                    "price": item.price,
                    "size": item.size,
                    "color": item.color,
                }
                for item in cart.items
            ],
            "totalAmount": round(cart.total_amount + fee, 2),
            "shippingAddress": self.form.shipping_address.to_wire(),
            "paymentMethod": self.form.payment_method.api_value,
            "deliveryFee": fee,
        }
        if self.form.payment_method.requires_details:
            details = self.form.payment_details
            payload["paymentInfo"] = {
                "accountName": details.account_name,
                "accountNumber": details.account_number,
                "referenceNumber": details.reference_number,
                "dateCreated": details.date_created.isoformat(),
            }
        return payload

    async def place_order(self) -> Order:
        """
        Submit exactly one order.

        Re-checks the token first (checkout can be long-lived). A second call
        while a submission is in flight, or after one succeeded, raises
        CheckoutBusy instead of creating a duplicate order.
        """
        if self.order is not None:
            raise CheckoutBusy(f"Order {self.order.id} was already placed")
        if self._submitting:
            raise CheckoutBusy("Order submission already in progress")
        if self.step is not Step.REVIEW:
            raise InvalidTransition("Orders can only be placed from the review step")

        self._submitting = True
        try:
            try:
                await self._session.require_token()
            except AuthenticationRequired:
                raise AuthenticationRequired("Your session has expired. Please log in again.")

            errors = self._steps[Step.REVIEW].validate(self.form)
            if errors:
                raise ValidationFailed(errors)

            payload = self.build_order_payload()
            try:
                data = await self._api.post("orders", payload)
            except AuthenticationRequired:
                await self._session.logout()
                raise AuthenticationRequired("Authentication required. Please log in again.")

            self.order = Order.model_validate(data)
            logger.info("Order %s placed (total=%s)", self.order.id, self.order.total_amount)
        finally:
            self._submitting = False

        try:
            await self._cart.clear()
        except StorefrontError as e:
            # The order stands; the server empties the cart on its side too
            logger.warning("Cart clear after order %s failed: %s", self.order.id, e)
        return self.order

    # ------------------------------------------------------------------
    # Background work
    # ------------------------------------------------------------------

    def _save_address_in_background(self, address: Address) -> None:
        task = asyncio.get_running_loop().create_task(self._save_address(address))
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _save_address(self, address: Address) -> None:
        try:
            await self._api.put("users/profile", {"address": address.to_wire()})
            logger.info("Saved new address to profile")
        except StorefrontError as e:
            # Checkout continues either way
            logger.warning("Saving address to profile failed: %s", e)

    async def drain(self) -> None:
        """Wait for pending background saves."""
        if self._background:
            await asyncio.gather(*self._background)
