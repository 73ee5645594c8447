"""Delivery fee table. Fees are in PHP; the shop ships from Navotas, Metro Manila."""
from typing import Optional, Union

from ..models import DeliveryMethod

DELIVERY_LABELS = {
    DeliveryMethod.STANDARD: "Standard Delivery (3-5 days)",
    DeliveryMethod.PRIORITY: "Priority Delivery (1-2 days)",
}

BASE_FEES = {
    DeliveryMethod.STANDARD: 100,
    DeliveryMethod.PRIORITY: 300,
}

# Regions with a flat fee that replaces the base fee
FIXED_FEES = {
    "Calabarzon": {
        DeliveryMethod.STANDARD: 75,
        DeliveryMethod.PRIORITY: 150,
    },
}

# Added on top of the base fee; unlisted regions pay DEFAULT_SURCHARGE
REGION_SURCHARGES = {
    "Metro Manila": 0,
}
DEFAULT_SURCHARGE = 250

REGIONS = [
    "Metro Manila", "Calabarzon", "Central Luzon",
    "Bicol Region", "Western Visayas", "Central Visayas",
    "Eastern Visayas", "Zamboanga Peninsula", "Northern Mindanao",
    "Davao Region", "Soccsksargen", "Caraga",
]

CITIES_BY_REGION = {
    "Metro Manila": [
        "Manila", "Quezon City", "Makati", "Pasig", "Taguig",
        "Parañaque", "Las Piñas", "Muntinlupa", "Marikina",
        "Pasay", "Valenzuela", "Navotas", "Malabon", "Caloocan",
        "San Juan", "Pateros", "Mandaluyong",
    ],
    "Calabarzon": [
        "Batangas City", "Calamba", "Lucena", "Lipa", "Tagaytay",
        "Antipolo", "Bacoor", "Dasmariñas", "Imus", "San Pablo",
    ],
    "Central Luzon": [
        "Angeles", "Olongapo", "San Fernando", "Tarlac City", "Malolos",
        "Cabanatuan", "Balanga", "Meycauayan", "San Jose del Monte",
    ],
}


def delivery_fee(region: Optional[str], method: Union[DeliveryMethod, str]) -> int:
    """Fee for shipping to ``region`` with ``method``. Pure: same inputs, same fee."""
    method = DeliveryMethod(method)
    region = region or ""
    if region in FIXED_FEES:
        return FIXED_FEES[region][method]
    return BASE_FEES[method] + REGION_SURCHARGES.get(region, DEFAULT_SURCHARGE)


def delivery_options(region: Optional[str]) -> list[dict]:
    """Every delivery method with its fee for ``region``."""
    return [
        {"id": method.value, "label": DELIVERY_LABELS[method], "fee": delivery_fee(region, method)}
        for method in DeliveryMethod
    ]
