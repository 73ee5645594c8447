"""Checkout wizard: address, delivery, payment, review, then one order."""
from .delivery import REGIONS, CITIES_BY_REGION, delivery_fee, delivery_options
from .orchestrator import CheckoutOrchestrator
from .steps import CheckoutForm, Step

__all__ = [
    "CheckoutOrchestrator",
    "CheckoutForm",
    "Step",
    "REGIONS",
    "CITIES_BY_REGION",
    "delivery_fee",
    "delivery_options",
]
