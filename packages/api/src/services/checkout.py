# This project was developed with assistance from AI tools.
"""Checkout orchestration and direct quote requests.

Checkout validates the form, prices the order (catalog price plus shipping),
moves the application to ``submitted`` and issues an invoice. The
application update is committed before the invoice is issued: if issuance
then fails, the caller gets an InvoiceIssueError naming the submitted
application, and an admin re-issues a quote for it.
"""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from tasheel_db import Application
from tasheel_db.enums import ApplicationStatus, DeliveryType, ShippingLocation

from ..schemas.auth import UserContext
from ..schemas.checkout import CheckoutSubmission, QuoteRequestSubmission
from .application import (
    InvalidTransitionError,
    get_application,
    list_attachments,
    record_event,
    transition_status,
)
from .catalog import get_service_by_slug, service_form_field_names
from .notifications import Notifier
from .phone import is_valid_phone_number
from .quotes import issue_invoice, quantize_amount
from .sequence import next_order_number
from .shipping import calculate_shipping_amount, effective_delivery_count

logger = logging.getLogger(__name__)

CHECKOUT_REQUIRED_FIELDS = (
    "name",
    "email",
    "phone",
    "service",
    "urgency",
    "shipping_location",
    "delivery_type",
)
QUOTE_REQUEST_REQUIRED_FIELDS = ("name", "email", "phone", "service", "urgency", "details")


class CheckoutError(Exception):
    """Base for checkout failures. ``status_code`` is the HTTP status to report."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class MissingFieldsError(CheckoutError):
    def __init__(self, fields: list[str]):
        super().__init__("Please fill in all required fields.")
        self.fields = fields


class InvalidFieldError(CheckoutError):
    pass


class ServiceNotFoundError(CheckoutError):
    status_code = 404


class ApplicationNotFoundError(CheckoutError):
    status_code = 404


class CheckoutStateError(CheckoutError):
    status_code = 409


class InvoiceIssueError(CheckoutError):
    """The application is submitted but no invoice could be issued."""

    status_code = 500

    def __init__(self, application_id: int, order_number: str | None):
        super().__init__(
            f"Order {order_number} was submitted but the invoice could not be created. "
            "Our team will send you a quote shortly."
        )
        self.application_id = application_id
        self.order_number = order_number


@dataclass
class CheckoutResult:
    application_id: int
    order_number: str
    invoice_id: int
    invoice_number: str
    amount: Decimal
    currency: str


def _missing(submission, fields) -> list[str]:
    return [f for f in fields if not (getattr(submission, f) or "").strip()]


def _parse_shipping(submission: CheckoutSubmission) -> tuple[ShippingLocation, DeliveryType, int]:
    try:
        location = ShippingLocation(submission.shipping_location)
    except ValueError as exc:
        raise InvalidFieldError(f"Unknown shipping location '{submission.shipping_location}'.") from exc
    try:
        delivery_type = DeliveryType(submission.delivery_type)
    except ValueError as exc:
        raise InvalidFieldError(f"Unknown delivery type '{submission.delivery_type}'.") from exc
    try:
        count = int(submission.delivery_count or 1)
        count = effective_delivery_count(delivery_type, count)
    except ValueError as exc:
        raise InvalidFieldError("Delivery count must be a whole number of at least 1.") from exc
    return location, delivery_type, count


async def _resolve_application(
    session: AsyncSession,
    user: UserContext,
    submission: CheckoutSubmission,
) -> Application:
    """Load the caller's draft, or start a fresh one when none is given."""
    if submission.application_id:
        try:
            application_id = int(submission.application_id)
        except ValueError as exc:
            raise InvalidFieldError("Invalid application id.") from exc
        app = await get_application(session, user, application_id)
        if app is None:
            raise ApplicationNotFoundError("Application not found.")
        if app.status != ApplicationStatus.DRAFT:
            raise CheckoutStateError(
                f"Application {app.id} is already {app.status.value} and cannot be checked out again."
            )
        if app.service_slug != submission.service:
            raise InvalidFieldError("Service does not match the draft application.")
        return app

    app = Application(
        service_slug=submission.service,
        customer_id=user.customer_id,
        status=ApplicationStatus.DRAFT,
        payload={},
    )
    session.add(app)
    await session.flush()
    return app


async def submit_checkout(
    session: AsyncSession,
    user: UserContext,
    submission: CheckoutSubmission,
) -> CheckoutResult:
    """Validate, price, submit and invoice a checkout form.

    Raises a CheckoutError subclass on any failure; nothing is written
    unless validation and pricing succeed.
    """
    missing = _missing(submission, CHECKOUT_REQUIRED_FIELDS)
    if missing:
        raise MissingFieldsError(missing)
    if not is_valid_phone_number(submission.phone):
        raise InvalidFieldError("Invalid phone number.")
    location, delivery_type, delivery_count = _parse_shipping(submission)

    service = await get_service_by_slug(session, submission.service)
    if service is None or service.price_amount is None:
        raise ServiceNotFoundError("Service not found or not available for direct checkout.")

    service_amount = quantize_amount(service.price_amount)
    shipping_amount = quantize_amount(
        calculate_shipping_amount(location, delivery_type, delivery_count)
    )
    total = service_amount + shipping_amount

    app = await _resolve_application(session, user, submission)
    attachments = await list_attachments(session, app.id)

    declared = service_form_field_names(service)
    service_specific = {
        k: v for k, v in submission.service_fields.items() if not declared or k in declared
    }

    app.applicant_email = submission.email.strip()
    app.customer_name = submission.name.strip()
    app.customer_phone = submission.phone.strip()
    app.urgency = submission.urgency
    app.customer_id = app.customer_id or user.customer_id
    app.payload = {
        "urgency": submission.urgency,
        "details": submission.details,
        "shipping": {
            "location": location.value,
            "delivery_type": delivery_type.value,
            "delivery_count": delivery_count,
            "amount": str(shipping_amount),
        },
        "service_amount": str(service_amount),
        "total_amount": str(total),
        "service_specific": service_specific,
        "attachments": [
            {
                "id": a.id,
                "file_name": a.file_name,
                "storage_path": a.storage_path,
                "file_size": a.file_size,
                "content_type": a.content_type,
            }
            for a in attachments
        ],
    }
    app.submitted_at = datetime.now(UTC)
    if app.order_number is None:
        app.order_number = await next_order_number(session)

    try:
        await transition_status(session, app, ApplicationStatus.SUBMITTED, actor=user.user_id)
    except InvalidTransitionError as exc:
        # A concurrent checkout submitted this draft first
        application_id = app.id
        await session.rollback()
        logger.warning("Checkout of application %s lost to a concurrent submit", application_id)
        raise CheckoutStateError(
            f"Application {application_id} was already submitted and cannot be checked out again."
        ) from exc
    record_event(
        session,
        app,
        "submitted",
        actor=user.user_id,
        notes="Checkout submitted by customer",
        data={"source": "checkout", "total_amount": str(total)},
    )
    await session.commit()
    application_id, order_number = app.id, app.order_number

    try:
        invoice = await issue_invoice(session, app, total, currency=service.currency)
        record_event(
            session,
            app,
            "invoice_created",
            actor=user.user_id,
            data={
                "invoice_id": invoice.id,
                "invoice_number": invoice.invoice_number,
                "amount": str(invoice.amount),
            },
        )
        await session.commit()
    except SQLAlchemyError as exc:
        await session.rollback()
        logger.error(
            "Invoice issuance failed for submitted application %s (order %s): %s",
            application_id,
            order_number,
            exc,
        )
        raise InvoiceIssueError(application_id, order_number) from exc

    logger.info(
        "Checkout complete: application=%s order=%s invoice=%s amount=%s",
        application_id,
        order_number,
        invoice.invoice_number,
        invoice.amount,
    )
    return CheckoutResult(
        application_id=application_id,
        order_number=order_number,
        invoice_id=invoice.id,
        invoice_number=invoice.invoice_number,
        amount=invoice.amount,
        currency=invoice.currency,
    )


async def submit_quote_request(
    session: AsyncSession,
    notifier: Notifier,
    request: QuoteRequestSubmission,
) -> Application:
    """Create a ``submitted`` application straight from the quote-request form.

    No invoice is issued; an admin prices the request later via a quote.
    """
    missing = _missing(request, QUOTE_REQUEST_REQUIRED_FIELDS)
    if missing:
        raise MissingFieldsError(missing)
    if not is_valid_phone_number(request.phone):
        raise InvalidFieldError("Invalid phone number.")

    app = Application(
        service_slug=request.service,
        status=ApplicationStatus.SUBMITTED,
        applicant_email=request.email.strip(),
        customer_name=request.name.strip(),
        customer_phone=request.phone.strip(),
        urgency=request.urgency,
        payload={
            "urgency": request.urgency,
            "details": request.details,
            "additional_notes": request.message,
        },
        order_number=await next_order_number(session),
        submitted_at=datetime.now(UTC),
    )
    session.add(app)
    await session.flush()
    record_event(
        session,
        app,
        "submitted",
        notes="Quote request submitted by customer",
        data={"source": "website_form"},
    )
    await session.commit()

    await notifier.new_request_alert(app)
    await notifier.order_received(app)
    return app
