"""
Checkout steps — a closed set of step classes driven by the orchestrator.

Each step validates the collected form before the wizard may leave it,
renders a summary of what it collected, and commits its side effects once
validation has passed.
"""
from abc import ABC
from dataclasses import dataclass, field
from datetime import date
from enum import IntEnum
from typing import Callable, Optional

from ..models import Address, DeliveryMethod, PaymentDetails, PaymentMethod
from .delivery import delivery_fee, delivery_options


class Step(IntEnum):
    ADDRESS = 0
    DELIVERY = 1
    PAYMENT = 2
    REVIEW = 3


PAYMENT_LABELS = {
    PaymentMethod.CASH_ON_DELIVERY: "Cash on Delivery",
    PaymentMethod.GCASH: "GCash",
    PaymentMethod.PAYMAYA: "PayMaya",
}


@dataclass
class CheckoutForm:
    """Everything the wizard collects before an order is submitted."""
    saved_addresses: list[Address] = field(default_factory=list)
    selected_address: Optional[int] = None  # None means the new-address form
    address_form: Address = field(default_factory=Address)
    delivery_method: DeliveryMethod = DeliveryMethod.STANDARD
    payment_method: PaymentMethod = PaymentMethod.CASH_ON_DELIVERY
    payment_details: PaymentDetails = field(
        default_factory=lambda: PaymentDetails(date_created=date.today())
    )

    @property
    def shipping_address(self) -> Address:
        if self.selected_address is None:
            return self.address_form
        return self.saved_addresses[self.selected_address]

    @property
    def region(self) -> str:
        return self.shipping_address.state

    @property
    def delivery_fee(self) -> int:
        return delivery_fee(self.region, self.delivery_method)


def address_errors(address: Address) -> dict[str, str]:
    errors = {}
    if not address.street.strip():
        errors["street"] = "Street address is required"
    if not address.city.strip():
        errors["city"] = "City is required"
    if not address.state.strip():
        errors["state"] = "State/Region is required"
    if not address.zip_code.strip():
        errors["zip_code"] = "ZIP code is required"
    return errors


def payment_errors(method: PaymentMethod, details: PaymentDetails) -> dict[str, str]:
    """E-wallet payments need every detail field; cash on delivery needs none."""
    if not method.requires_details:
        return {}
    errors = {}
    if not details.account_name.strip():
        errors["account_name"] = "Account name is required"
    if not details.account_number.strip():
        errors["account_number"] = "Account number is required"
    if not details.reference_number.strip():
        errors["reference_number"] = "Reference number is required"
    if details.date_created is None:
        errors["date_created"] = "Payment date is required"
    return errors


class CheckoutStep(ABC):
    step: Step
    label: str

    def validate(self, form: CheckoutForm) -> dict[str, str]:
        return {}

    def render(self, form: CheckoutForm) -> dict:
        return {}

    def commit(self, form: CheckoutForm) -> None:
        pass


class AddressStep(CheckoutStep):
    step = Step.ADDRESS
    label = "Shipping Address"

    def __init__(self, on_new_address: Callable[[Address], None] | None = None):
        self._on_new_address = on_new_address

    def validate(self, form: CheckoutForm) -> dict[str, str]:
        if form.selected_address is not None:
            return {}
        return address_errors(form.address_form)

    def render(self, form: CheckoutForm) -> dict:
        return {
            "saved_addresses": [a.display() for a in form.saved_addresses],
            "selected": form.selected_address if form.selected_address is not None else "new",
            "address": form.shipping_address.model_dump(),
        }

    def commit(self, form: CheckoutForm) -> None:
        if form.selected_address is not None:
            return
        # A fresh address joins the saved list and is persisted to the profile
        new_address = form.address_form.model_copy()
        form.saved_addresses.append(new_address)
        form.selected_address = len(form.saved_addresses) - 1
        if self._on_new_address is not None:
            self._on_new_address(new_address)


class DeliveryStep(CheckoutStep):
    step = Step.DELIVERY
    label = "Delivery Method"

    def render(self, form: CheckoutForm) -> dict:
        return {
            "region": form.region,
            "method": form.delivery_method.value,
            "options": delivery_options(form.region),
            "fee": form.delivery_fee,
        }


class PaymentStep(CheckoutStep):
    step = Step.PAYMENT
    label = "Payment Method"

    def validate(self, form: CheckoutForm) -> dict[str, str]:
        return payment_errors(form.payment_method, form.payment_details)

    def render(self, form: CheckoutForm) -> dict:
        rendered = {
            "method": form.payment_method.value,
            "label": PAYMENT_LABELS[form.payment_method],
        }
        if form.payment_method.requires_details:
            rendered["details"] = form.payment_details.model_dump(mode="json")
        return rendered


class ReviewStep(CheckoutStep):
    step = Step.REVIEW
    label = "Review Order"

    def validate(self, form: CheckoutForm) -> dict[str, str]:
        return payment_errors(form.payment_method, form.payment_details)

    def render(self, form: CheckoutForm) -> dict:
        return {
            "shipping_to": form.shipping_address.display(),
            "delivery": form.delivery_method.value,
            "delivery_fee": form.delivery_fee,
            "payment": PAYMENT_LABELS[form.payment_method],
        }
