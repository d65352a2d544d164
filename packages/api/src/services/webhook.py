# This project was developed with assistance from AI tools.
"""Payment webhook processing.

Callbacks arrive from an untrusted caller and may be delivered more than
once, concurrently. Processing is strictly ordered:

    signature -> parse -> invoice lookup -> amount check -> settle -> notify

Settlement is exactly-once. The Payment insert is keyed on
``(gateway, transaction_id)`` and the invoice update only matches rows that
are still settleable (``InvoiceStatus.settleable_statuses``); if
either finds the work already done, the transaction is rolled back and the
delivery is reported as a duplicate. A failed callback only closes an open
invoice, and cancelled invoices refuse every callback. Notifications are
sent only after the financial state has been committed, and their failure
never changes the response.
"""

import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value
from tasheel_db import Invoice, Payment
from tasheel_db.enums import ApplicationStatus, InvoiceStatus

from .application import InvalidTransitionError, record_event, transition_status
from .gateways import CallbackStatus, GatewayStrategy, NormalizedCallback
from .notifications import Notifier
from .quotes import get_invoice

logger = logging.getLogger(__name__)

AMOUNT_TOLERANCE = Decimal("0.01")
GATEWAY_ACTOR = "payment_gateway"


class WebhookError(Exception):
    """Base for rejected callbacks. ``status_code`` is the HTTP status to report."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class WebhookSignatureError(WebhookError):
    status_code = 401


class WebhookPayloadError(WebhookError):
    status_code = 400


class InvoiceNotFoundError(WebhookError):
    status_code = 404


class AmountMismatchError(WebhookError):
    status_code = 400


class InvoiceClosedError(WebhookError):
    status_code = 409


@dataclass(frozen=True)
class WebhookOutcome:
    status: CallbackStatus
    invoice_id: int | None = None
    duplicate: bool = False
    application_status: ApplicationStatus | None = None


def authenticate_webhook(
    gateway: GatewayStrategy,
    headers: Mapping[str, str],
    raw_body: bytes,
    *,
    secret: str | None,
    hardened: bool,
) -> None:
    """Verify the callback signature or raise WebhookSignatureError.

    With a secret configured, a missing or wrong signature is refused. Without
    one, hardened deployments refuse everything; development accepts the
    callback unsigned.
    """
    if secret:
        signature = gateway.extract_signature(headers)
        if not gateway.verify_signature(raw_body, signature, secret):
            logger.warning(
                "Rejected %s webhook: %s signature",
                gateway.name.value,
                "invalid" if signature else "missing",
            )
            raise WebhookSignatureError("Invalid webhook signature")
        return

    if hardened:
        logger.error("Rejected webhook: PAYMENT_GATEWAY_WEBHOOK_SECRET is not configured")
        raise WebhookSignatureError("Webhook signature verification is not configured")

    logger.warning("Accepting unsigned %s webhook (development mode)", gateway.name.value)


def parse_callback(gateway: GatewayStrategy, raw_body: bytes) -> NormalizedCallback:
    """Decode the raw body and normalize it with the gateway's field mapping."""
    try:
        body = json.loads(raw_body)
    except ValueError as exc:
        raise WebhookPayloadError("Malformed JSON body") from exc
    if not isinstance(body, dict):
        raise WebhookPayloadError("Webhook body must be a JSON object")

    callback = gateway.normalize_callback(body)
    if not callback.invoice_ref:
        raise WebhookPayloadError("Invoice ID not found in webhook")
    if callback.status == CallbackStatus.PAID:
        if callback.amount is None:
            raise WebhookPayloadError("Amount missing or invalid")
        if not callback.transaction_id:
            raise WebhookPayloadError("Transaction ID required for a paid callback")
    return callback


def _check_amount(invoice: Invoice, amount: Decimal | None) -> None:
    if amount is None:
        return
    if abs(amount - invoice.amount) > AMOUNT_TOLERANCE:
        logger.warning(
            "Amount mismatch on invoice %s: expected %s, callback %s",
            invoice.invoice_number,
            invoice.amount,
            amount,
        )
        raise AmountMismatchError("Amount does not match invoice")


async def apply_settlement(
    session: AsyncSession,
    notifier: Notifier,
    invoice: Invoice,
    *,
    gateway: str,
    transaction_id: str,
    amount: Decimal,
    raw: dict | None = None,
    actor: str = GATEWAY_ACTOR,
) -> WebhookOutcome:
    """Mark ``invoice`` paid, record the Payment, advance the application.

    Shared by the gateway webhook and the placeholder test-completion path.
    """
    invoice_id = invoice.id
    payment_stmt = (
        pg_insert(Payment)
        .values(
            invoice_id=invoice.id,
            gateway=gateway,
            transaction_id=transaction_id,
            amount=amount,
            status="completed",
            gateway_response=raw,
        )
        .on_conflict_do_nothing(index_elements=["gateway", "transaction_id"])
        .returning(Payment.id)
    )
    payment_id = (await session.execute(payment_stmt)).scalar_one_or_none()
    if payment_id is None:
        await session.rollback()
        logger.info(
            "Duplicate %s transaction %s for invoice %s ignored",
            gateway,
            transaction_id,
            invoice_id,
        )
        return WebhookOutcome(CallbackStatus.PAID, invoice_id, duplicate=True)

    paid_at = datetime.now(UTC)
    invoice_stmt = (
        update(Invoice)
        .where(
            Invoice.id == invoice.id,
            Invoice.status.in_(list(InvoiceStatus.settleable_statuses())),
        )
        .values(status=InvoiceStatus.PAID, transaction_id=transaction_id, paid_at=paid_at)
        .returning(Invoice.id)
        .execution_options(synchronize_session=False)
    )
    if (await session.execute(invoice_stmt)).scalar_one_or_none() is None:
        # Settled or cancelled by a concurrent request
        await session.rollback()
        logger.info(
            "Invoice %s no longer settleable; transaction %s ignored", invoice_id, transaction_id
        )
        return WebhookOutcome(CallbackStatus.PAID, invoice_id, duplicate=True)

    set_committed_value(invoice, "status", InvoiceStatus.PAID)
    set_committed_value(invoice, "transaction_id", transaction_id)
    set_committed_value(invoice, "paid_at", paid_at)

    application = invoice.application
    if application.status in ApplicationStatus.payable_statuses():
        try:
            await transition_status(
                session,
                application,
                ApplicationStatus.IN_PROGRESS,
                actor=actor,
                notes="Payment confirmed",
            )
        except InvalidTransitionError as exc:
            logger.warning("Paid invoice %s but application not advanced: %s", invoice.id, exc)
    else:
        logger.warning(
            "Paid invoice %s for application %s in status %s; status left unchanged",
            invoice.id,
            application.id,
            application.status.value,
        )

    record_event(
        session,
        application,
        "payment_received",
        actor=actor,
        notes=f"Payment received: {transaction_id}",
        data={
            "invoice_id": invoice.id,
            "invoice_number": invoice.invoice_number,
            "payment_id": payment_id,
            "transaction_id": transaction_id,
            "amount": str(amount),
            "currency": invoice.currency,
            "gateway": gateway,
        },
    )
    await session.commit()
    logger.info(
        "Invoice %s settled via %s transaction %s; application %s now %s",
        invoice.invoice_number,
        gateway,
        transaction_id,
        application.id,
        application.status.value,
    )

    try:
        await notifier.payment_confirmed(application, invoice)
    except Exception:
        logger.exception(
            "Payment confirmation dispatch failed (order=%s invoice=%s)",
            application.order_number,
            invoice.id,
        )
    return WebhookOutcome(
        CallbackStatus.PAID, invoice.id, application_status=application.status
    )


async def _apply_failure(
    session: AsyncSession,
    invoice: Invoice,
    callback: NormalizedCallback,
) -> WebhookOutcome:
    invoice_id = invoice.id
    stmt = (
        update(Invoice)
        .where(Invoice.id == invoice.id, Invoice.status.in_(list(InvoiceStatus.open_statuses())))
        .values(status=InvoiceStatus.FAILED, transaction_id=callback.transaction_id, paid_at=None)
        .returning(Invoice.id)
        .execution_options(synchronize_session=False)
    )
    if (await session.execute(stmt)).scalar_one_or_none() is None:
        # Settled or closed by a concurrent delivery
        await session.rollback()
        logger.info("Invoice %s no longer open; failed callback ignored", invoice_id)
        return WebhookOutcome(CallbackStatus.FAILED, invoice_id, duplicate=True)

    set_committed_value(invoice, "status", InvoiceStatus.FAILED)
    record_event(
        session,
        invoice.application,
        "payment_failed",
        actor=GATEWAY_ACTOR,
        notes=f"Payment failed: {callback.transaction_id or 'no transaction id'}",
        data={
            "invoice_id": invoice.id,
            "invoice_number": invoice.invoice_number,
            "transaction_id": callback.transaction_id,
            "amount": str(callback.amount) if callback.amount is not None else None,
        },
    )
    await session.commit()
    logger.info("Invoice %s marked failed", invoice.invoice_number)
    return WebhookOutcome(CallbackStatus.FAILED, invoice.id)


async def process_payment_webhook(
    session: AsyncSession,
    notifier: Notifier,
    gateway: GatewayStrategy,
    callback: NormalizedCallback,
) -> WebhookOutcome:
    """Apply an authenticated, parsed callback to the invoice it names."""
    invoice = await get_invoice(session, callback.invoice_ref)
    if invoice is None:
        logger.warning("Webhook for unknown invoice %s", callback.invoice_ref)
        raise InvoiceNotFoundError("Invoice not found")

    if invoice.status == InvoiceStatus.PAID:
        logger.info(
            "Webhook for already-paid invoice %s (transaction %s) acknowledged",
            invoice.invoice_number,
            callback.transaction_id,
        )
        return WebhookOutcome(CallbackStatus.PAID, invoice.id, duplicate=True)

    if invoice.status == InvoiceStatus.CANCELLED:
        logger.warning(
            "%s callback for cancelled invoice %s (transaction %s) refused",
            callback.status.value,
            invoice.invoice_number,
            callback.transaction_id,
        )
        raise InvoiceClosedError(f"Invoice {invoice.invoice_number} is cancelled")

    if invoice.status == InvoiceStatus.FAILED and callback.status != CallbackStatus.PAID:
        logger.info(
            "Repeated %s callback for failed invoice %s acknowledged",
            callback.status.value,
            invoice.invoice_number,
        )
        return WebhookOutcome(callback.status, invoice.id, duplicate=True)

    _check_amount(invoice, callback.amount)

    if callback.status == CallbackStatus.PAID:
        return await apply_settlement(
            session,
            notifier,
            invoice,
            gateway=gateway.name.value,
            transaction_id=callback.transaction_id,
            amount=callback.amount,
            raw=callback.raw,
        )
    if callback.status == CallbackStatus.FAILED:
        return await _apply_failure(session, invoice, callback)

    logger.info("Pending callback for invoice %s; no state change", invoice.invoice_number)
    return WebhookOutcome(CallbackStatus.PENDING, invoice.id)
