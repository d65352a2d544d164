# This project was developed with assistance from AI tools.
"""Invoice issuance, admin quotes and amount overrides.

An invoice's amount is fixed once issued. The only sanctioned mutation is
``override_invoice_amount``, an explicit admin action limited to invoices
nobody has paid yet and always recorded on the event trail.
"""

import logging
from datetime import UTC, datetime, timedelta
from decimal import Decimal

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlalchemy.orm.attributes import set_committed_value
from tasheel_db import Application, Invoice
from tasheel_db.enums import ApplicationStatus, InvoiceStatus

from ..core.config import settings
from ..schemas.auth import UserContext
from .application import (
    ApplicationClosedError,
    check_transition,
    record_event,
    transition_status,
)
from .notifications import Notifier
from .scope import apply_data_scope
from .sequence import next_invoice_number

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


class InvoiceNotOpenError(ValueError):
    """Raised when a paid, failed or cancelled invoice is modified."""

    pass


def quantize_amount(amount) -> Decimal:
    return Decimal(str(amount)).quantize(CENT)


async def issue_invoice(
    session: AsyncSession,
    application: Application,
    amount: Decimal,
    *,
    status: InvoiceStatus = InvoiceStatus.PENDING,
    due_date: datetime | None = None,
    notes: str | None = None,
    currency: str | None = None,
) -> Invoice:
    """Insert an invoice with the next ``INV-`` number. Caller commits."""
    invoice = Invoice(
        application_id=application.id,
        invoice_number=await next_invoice_number(session),
        amount=quantize_amount(amount),
        currency=currency or settings.DEFAULT_CURRENCY,
        status=status,
        due_date=due_date,
        notes=notes,
    )
    session.add(invoice)
    await session.flush()
    logger.info(
        "Issued invoice %s (%s %s, status=%s) for application %s",
        invoice.invoice_number,
        invoice.amount,
        invoice.currency,
        status.value,
        application.id,
    )
    return invoice


async def get_invoice(
    session: AsyncSession,
    invoice_ref: int | str,
    user: UserContext | None = None,
) -> Invoice | None:
    """Look up an invoice by numeric id or ``INV-`` number.

    Gateways echo whichever reference they were handed, so both forms are
    accepted. When ``user`` is given the lookup is restricted to their data
    scope.
    """
    stmt = select(Invoice).options(selectinload(Invoice.application))
    ref = str(invoice_ref).strip()
    if ref.upper().startswith("INV-"):
        stmt = stmt.where(Invoice.invoice_number == ref.upper())
    elif ref.isdigit():
        stmt = stmt.where(Invoice.id == int(ref))
    else:
        return None
    if user is not None:
        stmt = apply_data_scope(stmt, user.data_scope, join_to_application=Invoice.application)
    result = await session.execute(stmt)
    return result.unique().scalar_one_or_none()


async def get_application_for_admin(session: AsyncSession, application_id: int):
    stmt = select(Application).where(Application.id == application_id)
    result = await session.execute(stmt)
    return result.unique().scalar_one_or_none()


async def create_quote(
    session: AsyncSession,
    notifier: Notifier,
    application_id: int,
    amount: Decimal,
    *,
    notes: str | None = None,
    actor: str | None = None,
) -> Invoice | None:
    """Issue a ``quote`` invoice and move the application to ``quote_sent``.

    Returns None if the application does not exist. Raises
    InvalidTransitionError when the application cannot receive a quote.
    """
    app = await get_application_for_admin(session, application_id)
    if app is None:
        return None

    if app.status != ApplicationStatus.QUOTE_SENT:
        check_transition(app.status, ApplicationStatus.QUOTE_SENT)

    invoice = await issue_invoice(
        session,
        app,
        amount,
        status=InvoiceStatus.QUOTE,
        due_date=datetime.now(UTC) + timedelta(days=settings.QUOTE_VALIDITY_DAYS),
        notes=notes,
    )
    if app.status != ApplicationStatus.QUOTE_SENT:
        await transition_status(session, app, ApplicationStatus.QUOTE_SENT, actor=actor)

    record_event(
        session,
        app,
        "quote_created",
        actor=actor,
        notes=f"Quote created: {invoice.amount} {invoice.currency}" + (f" - {notes}" if notes else ""),
        data={
            "invoice_id": invoice.id,
            "invoice_number": invoice.invoice_number,
            "amount": str(invoice.amount),
        },
    )
    await session.commit()
    await session.refresh(invoice, attribute_names=["created_at", "updated_at"])

    await notifier.quote_ready(app, invoice)
    return invoice


async def create_invoice(
    session: AsyncSession,
    application_id: int,
    amount: Decimal,
    *,
    due_date: datetime | None = None,
    notes: str | None = None,
    actor: str | None = None,
) -> Invoice | None:
    """Issue a ``pending`` invoice without touching application status."""
    app = await get_application_for_admin(session, application_id)
    if app is None:
        return None
    if app.status in ApplicationStatus.terminal_statuses():
        raise ApplicationClosedError(
            f"Application {application_id} is {app.status.value}; cannot invoice."
        )

    invoice = await issue_invoice(session, app, amount, due_date=due_date, notes=notes)
    record_event(
        session,
        app,
        "invoice_created",
        actor=actor,
        notes=notes,
        data={
            "invoice_id": invoice.id,
            "invoice_number": invoice.invoice_number,
            "amount": str(invoice.amount),
        },
    )
    await session.commit()
    await session.refresh(invoice, attribute_names=["created_at", "updated_at"])
    return invoice


async def override_invoice_amount(
    session: AsyncSession,
    invoice_id: int,
    amount: Decimal,
    *,
    reason: str | None = None,
    actor: str | None = None,
) -> Invoice | None:
    """Admin correction of an unpaid invoice's amount.

    The UPDATE only matches pending/quote rows, so a payment that lands
    between the read and the write wins and the override is refused.
    """
    invoice = await get_invoice(session, invoice_id)
    if invoice is None:
        return None

    new_amount = quantize_amount(amount)
    previous = invoice.amount
    open_statuses = InvoiceStatus.open_statuses()
    if invoice.status not in open_statuses:
        raise InvoiceNotOpenError(
            f"Invoice {invoice.invoice_number} is {invoice.status.value}; amount is locked."
        )

    stmt = (
        update(Invoice)
        .where(Invoice.id == invoice.id, Invoice.status.in_(list(open_statuses)))
        .values(amount=new_amount)
        .returning(Invoice.id)
        .execution_options(synchronize_session=False)
    )
    if (await session.execute(stmt)).scalar_one_or_none() is None:
        raise InvoiceNotOpenError(f"Invoice {invoice.invoice_number} was settled concurrently.")
    set_committed_value(invoice, "amount", new_amount)

    record_event(
        session,
        invoice.application,
        "invoice_amount_overridden",
        actor=actor,
        notes=reason,
        data={
            "invoice_id": invoice.id,
            "invoice_number": invoice.invoice_number,
            "previous_amount": str(previous),
            "amount": str(new_amount),
        },
    )
    await session.commit()
    logger.info(
        "Invoice %s amount overridden %s -> %s by %s",
        invoice.invoice_number,
        previous,
        new_amount,
        actor,
    )
    return invoice
