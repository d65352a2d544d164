# This project was developed with assistance from AI tools.
"""Shipping charge calculation.

Pure math, no I/O. Shared by the checkout orchestrator and the public
shipping-rate route.
"""

from decimal import Decimal
from typing import NamedTuple

from tasheel_db.enums import DeliveryType, ShippingLocation


class ShippingRate(NamedTuple):
    single: Decimal
    per_delivery: Decimal


# ILS. International is a flat rate regardless of delivery type.
SHIPPING_RATES: dict[ShippingLocation, ShippingRate] = {
    ShippingLocation.WEST_BANK: ShippingRate(Decimal("20"), Decimal("15")),
    ShippingLocation.JERUSALEM: ShippingRate(Decimal("30"), Decimal("50")),
    ShippingLocation.AREA_48: ShippingRate(Decimal("70"), Decimal("65")),
    ShippingLocation.INTERNATIONAL: ShippingRate(Decimal("200"), Decimal("200")),
}

MIN_MULTIPLE_DELIVERIES = 2


def effective_delivery_count(delivery_type: DeliveryType, delivery_count: int = 1) -> int:
    """Number of deliveries actually billed.

    A single delivery is always one; "multiple" means at least two.
    """
    if delivery_count < 1:
        raise ValueError("delivery_count must be at least 1")
    if delivery_type == DeliveryType.SINGLE:
        return 1
    return max(MIN_MULTIPLE_DELIVERIES, delivery_count)


def calculate_shipping_amount(
    location: ShippingLocation,
    delivery_type: DeliveryType,
    delivery_count: int = 1,
) -> Decimal:
    """Return the shipping charge for a location/delivery combination."""
    count = effective_delivery_count(delivery_type, delivery_count)
    rate = SHIPPING_RATES[ShippingLocation(location)]
    if delivery_type == DeliveryType.SINGLE:
        return rate.single
    return rate.per_delivery * count
