# This project was developed with assistance from AI tools.
"""Application request/response schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from tasheel_db.enums import ApplicationStatus


class DraftCreate(BaseModel):
    """Start a draft application for a catalog service."""

    service_slug: str = Field(min_length=1, max_length=100)


class AttachmentCreate(BaseModel):
    """Metadata for a file already stored by the upload service."""

    file_name: str = Field(min_length=1, max_length=255)
    storage_path: str = Field(min_length=1, max_length=500)
    file_size: int | None = Field(default=None, ge=0)
    content_type: str | None = None


class AttachmentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    file_name: str
    storage_path: str
    file_size: int | None = None
    content_type: str | None = None
    created_at: datetime | None = None


class ApplicationResponse(BaseModel):
    """Single application response."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    service_slug: str
    status: ApplicationStatus
    order_number: str | None = None
    applicant_email: str | None = None
    customer_name: str | None = None
    customer_phone: str | None = None
    urgency: str | None = None
    payload: dict | None = None
    submitted_at: datetime | None = None
    last_event_at: datetime | None = None
    created_at: datetime
    updated_at: datetime
    attachments: list[AttachmentResponse] = []


class EventResponse(BaseModel):
    """One entry of the application timeline."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    event_type: str
    notes: str | None = None
    data: dict | None = None
    actor: str | None = None
    created_at: datetime


class TrackingEvent(BaseModel):
    """Timeline entry as shown publicly: no actor, no internal data."""

    model_config = ConfigDict(from_attributes=True)

    event_type: str
    notes: str | None = None
    created_at: datetime


class TrackingResponse(BaseModel):
    """Public order-tracking view."""

    order_number: str
    status: ApplicationStatus
    service_slug: str
    submitted_at: datetime | None = None
    last_event_at: datetime | None = None
    events: list[TrackingEvent] = []
