# This project was developed with assistance from AI tools.
"""Checkout and quote-request form schemas.

Form submissions are captured with every field optional so the orchestrator
can report all missing fields at once in its own response envelope instead
of a framework 422.
"""

from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

CHECKOUT_FORM_FIELDS = (
    "name",
    "email",
    "phone",
    "service",
    "urgency",
    "details",
    "shipping_location",
    "delivery_type",
    "delivery_count",
    "application_id",
)

QUOTE_REQUEST_FORM_FIELDS = ("name", "email", "phone", "service", "urgency", "details", "message")


class CheckoutSubmission(BaseModel):
    """Raw checkout form values plus any service-specific fields."""

    name: str | None = None
    email: str | None = None
    phone: str | None = None
    service: str | None = None
    urgency: str | None = "standard"
    details: str | None = None
    shipping_location: str | None = None
    delivery_type: str | None = None
    delivery_count: str | None = None
    application_id: str | None = None
    service_fields: dict[str, str] = Field(default_factory=dict)

    @classmethod
    def from_form(cls, form: dict[str, str]) -> "CheckoutSubmission":
        known = {k: v for k, v in form.items() if k in CHECKOUT_FORM_FIELDS and v != ""}
        extra = {k: v for k, v in form.items() if k not in CHECKOUT_FORM_FIELDS}
        return cls(**known, service_fields=extra)


class QuoteRequestSubmission(BaseModel):
    name: str | None = None
    email: str | None = None
    phone: str | None = None
    service: str | None = None
    urgency: str | None = None
    details: str | None = None
    message: str | None = None

    @classmethod
    def from_form(cls, form: dict[str, str]) -> "QuoteRequestSubmission":
        return cls(**{k: v for k, v in form.items() if k in QUOTE_REQUEST_FORM_FIELDS and v != ""})


class FormResult(BaseModel):
    """Envelope returned by the form endpoints for both outcomes."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    type: Literal["success", "error"]
    message: str
    application_id: int | None = None
    invoice_id: int | None = None
    invoice_number: str | None = None
    order_number: str | None = None
    amount: Decimal | None = None
    missing_fields: list[str] | None = None
