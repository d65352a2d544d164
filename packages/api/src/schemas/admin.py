# This project was developed with assistance from AI tools.
"""Pydantic request/response models for admin endpoints."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field
from tasheel_db.enums import ApplicationStatus, InvoiceStatus


class QuoteCreate(BaseModel):
    """Request body for POST /api/admin/quotes."""

    application_id: int
    amount: Decimal = Field(gt=0, max_digits=12, decimal_places=2)
    notes: str | None = None


class InvoiceCreate(BaseModel):
    """Request body for POST /api/admin/invoices."""

    application_id: int
    amount: Decimal = Field(gt=0, max_digits=12, decimal_places=2)
    due_date: datetime | None = None
    notes: str | None = None


class InvoiceAmountOverride(BaseModel):
    """Request body for PATCH /api/admin/invoices/{id}/amount."""

    amount: Decimal = Field(gt=0, max_digits=12, decimal_places=2)
    reason: str = Field(min_length=1)


class StatusUpdate(BaseModel):
    """Request body for PATCH /api/admin/applications/{id}/status."""

    status: ApplicationStatus
    notes: str | None = None


class InvoiceResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    application_id: int
    invoice_number: str
    amount: Decimal
    currency: str
    status: InvoiceStatus
    due_date: datetime | None = None
    notes: str | None = None
    payment_link: str | None = None
    transaction_id: str | None = None
    paid_at: datetime | None = None
    created_at: datetime | None = None


class StatusUpdateResponse(BaseModel):
    """Response for PATCH /api/admin/applications/{id}/status."""

    id: int
    previous_status: ApplicationStatus
    status: ApplicationStatus
