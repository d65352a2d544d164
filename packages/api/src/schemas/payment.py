# This project was developed with assistance from AI tools.
"""Payment session and webhook schemas. JSON field names are camelCase."""

from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CreateSessionRequest(_CamelModel):
    invoice_id: str = Field(min_length=1)
    amount: Decimal = Field(gt=0)
    currency: str | None = None
    order_number: str | None = None


class CreateSessionResponse(_CamelModel):
    success: bool
    payment_url: str
    session_id: str
    placeholder: bool = False


class PlaceholderCompleteRequest(_CamelModel):
    """Placeholder-mode completion of an invoice without a live gateway."""

    invoice_id: str = Field(min_length=1)
    transaction_id: str | None = None


class WebhookResponse(BaseModel):
    success: bool
    status: str
    duplicate: bool = False
