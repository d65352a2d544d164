# This project was developed with assistance from AI tools.
"""Public API routes -- no authentication required."""

from decimal import Decimal

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from tasheel_db import get_db
from tasheel_db.enums import DeliveryType, ShippingLocation

from ..core.config import settings
from ..schemas.application import TrackingEvent, TrackingResponse
from ..schemas.checkout import FormResult, QuoteRequestSubmission
from ..schemas.shipping import ShippingRateResponse
from ..services.application import get_application_by_order_number
from ..services.checkout import CheckoutError, submit_quote_request
from ..services.notifications import Notifier, get_notifier
from ..services.shipping import calculate_shipping_amount, effective_delivery_count
from ._forms import form_error, read_form_fields

router = APIRouter()


@router.get("/shipping-rate", response_model=ShippingRateResponse)
async def shipping_rate(
    location: ShippingLocation,
    delivery_type: DeliveryType = DeliveryType.SINGLE,
    delivery_count: int = Query(default=1, ge=1),
) -> ShippingRateResponse:
    """Shipping cost for a location and delivery plan, in the default currency."""
    amount: Decimal = calculate_shipping_amount(location, delivery_type, delivery_count)
    return ShippingRateResponse(
        location=location,
        delivery_type=delivery_type,
        delivery_count=effective_delivery_count(delivery_type, delivery_count),
        amount=amount,
        currency=settings.DEFAULT_CURRENCY,
    )


@router.post(
    "/quote-requests",
    response_model=FormResult,
    response_model_exclude_none=True,
    status_code=status.HTTP_201_CREATED,
)
async def create_quote_request(
    request: Request,
    session: AsyncSession = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
):
    """Website quote-request form. Creates a submitted application, no invoice."""
    submission = QuoteRequestSubmission.from_form(await read_form_fields(request))
    try:
        application = await submit_quote_request(session, notifier, submission)
    except CheckoutError as exc:
        return form_error(exc)
    return FormResult(
        type="success",
        message="Thank you! We received your request and will send you a quote shortly.",
        application_id=application.id,
        order_number=application.order_number,
    )


@router.get("/track/{order_number}", response_model=TrackingResponse)
async def track_order(
    order_number: str,
    session: AsyncSession = Depends(get_db),
) -> TrackingResponse:
    """Order status and timeline by order number. Internal event data is omitted."""
    application = await get_application_by_order_number(session, order_number.strip().upper())
    if application is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Order not found")
    events = sorted(application.events, key=lambda e: (e.created_at, e.id))
    return TrackingResponse(
        order_number=application.order_number,
        status=application.status,
        service_slug=application.service_slug,
        submitted_at=application.submitted_at,
        last_event_at=application.last_event_at,
        events=[TrackingEvent.model_validate(e) for e in events],
    )
