# This project was developed with assistance from AI tools.
"""Hosted payment session creation.

Without gateway credentials (or with ``PAYMENT_USE_PLACEHOLDER``) a local
placeholder session is synthesized so the whole lifecycle can be exercised
end to end. Otherwise the configured gateway strategy is called once with a
bounded timeout; any failure is terminal and never retried here.
"""

import logging
import time
from collections.abc import AsyncGenerator
from dataclasses import dataclass
from decimal import Decimal

import httpx
from sqlalchemy.ext.asyncio import AsyncSession
from tasheel_db import Invoice
from tasheel_db.enums import InvoiceStatus

from ..core.config import Settings, settings
from .gateways import GatewayResponseError, SessionRequest, get_gateway

logger = logging.getLogger(__name__)

AMOUNT_TOLERANCE = Decimal("0.01")


class PaymentRequestError(Exception):
    """Rejected before any gateway call. ``status_code`` is the HTTP status."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvoiceNotPayableError(PaymentRequestError):
    status_code = 409


class PaymentSessionError(PaymentRequestError):
    """Gateway call failed (HTTP error, timeout, or unusable response)."""

    status_code = 502

    def __init__(self, message: str = "Failed to create payment session"):
        super().__init__(message)


@dataclass(frozen=True)
class PaymentSessionResult:
    payment_url: str
    session_id: str
    placeholder: bool = False


def placeholder_session(invoice_id: int, site_url: str) -> PaymentSessionResult:
    url = f"{site_url}/payment/success?invoice={invoice_id}&placeholder=true"
    session_id = f"PLACEHOLDER-{int(time.time() * 1000)}-{invoice_id}"
    return PaymentSessionResult(payment_url=url, session_id=session_id, placeholder=True)


async def create_payment_session(
    session: AsyncSession,
    client: httpx.AsyncClient,
    invoice: Invoice,
    *,
    amount: Decimal,
    currency: str | None = None,
    order_number: str | None = None,
    config: Settings = settings,
) -> PaymentSessionResult:
    """Open a payment session for ``invoice`` and persist its reference.

    The invoice must already be loaded with its application.
    """
    if invoice.status == InvoiceStatus.PAID:
        raise InvoiceNotPayableError(f"Invoice {invoice.invoice_number} is already paid.")
    if invoice.status not in InvoiceStatus.open_statuses():
        raise InvoiceNotPayableError(
            f"Invoice {invoice.invoice_number} is {invoice.status.value} and cannot be paid."
        )
    if abs(Decimal(str(amount)) - invoice.amount) > AMOUNT_TOLERANCE:
        raise PaymentRequestError("Amount does not match invoice.")
    if currency and currency.upper() != invoice.currency.upper():
        raise PaymentRequestError("Currency does not match invoice.")

    application = invoice.application
    customer_email = application.applicant_email if application is not None else None
    if not customer_email:
        raise PaymentRequestError("Customer email not found.")

    site_url = config.SITE_URL.rstrip("/")
    if config.payment_placeholder_mode:
        result = placeholder_session(invoice.id, site_url)
        logger.info("Placeholder payment session %s for invoice %s", result.session_id, invoice.id)
    else:
        gateway = get_gateway(
            config.PAYMENT_GATEWAY_TYPE,
            api_key=config.PAYMENT_GATEWAY_API_KEY,
            merchant_id=config.PAYMENT_GATEWAY_MERCHANT_ID,
            mode=config.PAYMENT_GATEWAY_MODE,
        )
        if not gateway.supports_live_sessions:
            raise PaymentRequestError("Invalid payment gateway type.")

        headers, body = gateway.build_session_request(
            SessionRequest(
                invoice_id=invoice.id,
                invoice_number=invoice.invoice_number,
                amount=invoice.amount,
                currency=invoice.currency,
                order_number=order_number or application.order_number,
                customer_email=customer_email,
                customer_name=application.customer_name,
                customer_phone=application.customer_phone,
                site_url=site_url,
            )
        )
        try:
            response = await client.post(gateway.endpoint, json=body, headers=headers)
            response.raise_for_status()
            data = response.json()
            if not isinstance(data, dict):
                raise GatewayResponseError("Gateway response is not a JSON object")
            gateway_session = gateway.parse_session_response(data)
        except (httpx.HTTPError, ValueError) as exc:
            logger.error(
                "%s session creation failed for invoice %s: %s",
                gateway.name.value,
                invoice.invoice_number,
                exc,
            )
            raise PaymentSessionError() from exc
        result = PaymentSessionResult(
            payment_url=gateway_session.payment_url,
            session_id=gateway_session.session_id,
        )
        logger.info(
            "%s session %s opened for invoice %s",
            gateway.name.value,
            result.session_id,
            invoice.invoice_number,
        )

    invoice.payment_session_id = result.session_id
    invoice.payment_link = result.payment_url
    await session.commit()
    return result


async def get_gateway_client() -> AsyncGenerator[httpx.AsyncClient, None]:
    """FastAPI dependency: HTTP client with the gateway timeout applied."""
    async with httpx.AsyncClient(timeout=settings.PAYMENT_GATEWAY_TIMEOUT_SECONDS) as client:
        yield client
