# This project was developed with assistance from AI tools.
"""Public shipping-rate schemas."""

from decimal import Decimal

from pydantic import BaseModel
from tasheel_db.enums import DeliveryType, ShippingLocation


class ShippingRateResponse(BaseModel):
    location: ShippingLocation
    delivery_type: DeliveryType
    delivery_count: int
    amount: Decimal
    currency: str
