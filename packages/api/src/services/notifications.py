# This project was developed with assistance from AI tools.
"""Customer and staff notifications over email (Resend) and WhatsApp (Twilio).

Every send is best-effort. Senders never raise: a missing credential yields
a ``skipped`` result, a transport or API error a ``failed`` one. Callers
log the outcome and carry on, so a dead mail provider can never fail a
checkout or a payment webhook.
"""

import enum
import logging
from collections.abc import AsyncGenerator
from dataclasses import dataclass

import httpx
from tasheel_db import Application, Invoice
from tasheel_db.enums import ApplicationStatus

from ..core.config import Settings, settings
from .phone import format_phone_number, is_valid_phone_number

logger = logging.getLogger(__name__)

TWILIO_MESSAGES_URL = "https://api.twilio.com/2010-04-01/Accounts/{sid}/Messages.json"


class NotificationChannel(str, enum.Enum):
    EMAIL = "email"
    WHATSAPP = "whatsapp"


class NotificationStatus(str, enum.Enum):
    SENT = "sent"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class NotificationResult:
    """Outcome of one send on one channel. Inspected for logging only."""

    channel: NotificationChannel
    status: NotificationStatus
    recipient: str | None = None
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.status == NotificationStatus.SENT


STATUS_MESSAGES: dict[ApplicationStatus, tuple[str, str]] = {
    ApplicationStatus.DRAFT: ("Order Draft Created", "Your order draft has been created."),
    ApplicationStatus.SUBMITTED: (
        "Order Received",
        "We have received your order and will review it shortly.",
    ),
    ApplicationStatus.SCOPING: (
        "Order Under Review",
        "We are reviewing your order requirements and will get back to you soon.",
    ),
    ApplicationStatus.QUOTE_SENT: ("Quote Ready", "Your quote is ready."),
    ApplicationStatus.IN_PROGRESS: (
        "Order Processing Started",
        "We have started processing your order.",
    ),
    ApplicationStatus.REVIEW: (
        "Order Under Review",
        "Your order is currently under review. We will update you soon.",
    ),
    ApplicationStatus.COMPLETED: (
        "Order Completed",
        "Your order has been completed and is ready for pickup or delivery.",
    ),
    ApplicationStatus.ARCHIVED: ("Order Archived", "Your order has been archived."),
    ApplicationStatus.REJECTED: (
        "Order Update",
        "There has been an update regarding your order. Please contact us for more information.",
    ),
    ApplicationStatus.CANCELLED: ("Order Cancelled", "Your order has been cancelled."),
}


class EmailSender:
    """Sends transactional email through the Resend HTTP API."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        api_key: str | None,
        from_email: str,
        from_name: str,
        api_url: str = "https://api.resend.com/emails",
    ):
        self._client = client
        self._api_key = api_key
        self._from = f"{from_name} <{from_email}>"
        self._api_url = api_url

    async def send(self, to: str | None, subject: str, body: str) -> NotificationResult:
        if not self._api_key:
            return NotificationResult(
                NotificationChannel.EMAIL, NotificationStatus.SKIPPED, to, "email not configured"
            )
        if not to:
            return NotificationResult(
                NotificationChannel.EMAIL, NotificationStatus.SKIPPED, to, "no recipient"
            )
        try:
            response = await self._client.post(
                self._api_url,
                headers={"Authorization": f"Bearer {self._api_key}"},
                json={"from": self._from, "to": [to], "subject": subject, "text": body},
            )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            return NotificationResult(
                NotificationChannel.EMAIL, NotificationStatus.FAILED, to, str(exc)
            )
        return NotificationResult(NotificationChannel.EMAIL, NotificationStatus.SENT, to)


class WhatsAppSender:
    """Sends WhatsApp messages through the Twilio Messages API."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        account_sid: str | None,
        auth_token: str | None,
        from_number: str | None,
    ):
        self._client = client
        self._account_sid = account_sid
        self._auth_token = auth_token
        self._from_number = from_number

    @property
    def configured(self) -> bool:
        return bool(self._account_sid and self._auth_token and self._from_number)

    async def send(self, to: str | None, body: str) -> NotificationResult:
        if not self.configured:
            return NotificationResult(
                NotificationChannel.WHATSAPP,
                NotificationStatus.SKIPPED,
                to,
                "whatsapp not configured",
            )
        if not to or not is_valid_phone_number(to):
            return NotificationResult(
                NotificationChannel.WHATSAPP, NotificationStatus.SKIPPED, to, "invalid phone"
            )
        recipient = format_phone_number(to)
        try:
            response = await self._client.post(
                TWILIO_MESSAGES_URL.format(sid=self._account_sid),
                auth=(self._account_sid, self._auth_token),
                data={
                    "From": f"whatsapp:{self._from_number}",
                    "To": f"whatsapp:{recipient}",
                    "Body": body,
                },
            )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            return NotificationResult(
                NotificationChannel.WHATSAPP, NotificationStatus.FAILED, recipient, str(exc)
            )
        return NotificationResult(NotificationChannel.WHATSAPP, NotificationStatus.SENT, recipient)


class Notifier:
    """Lifecycle notifications. Each method returns one result per channel tried."""

    def __init__(
        self,
        email: EmailSender,
        whatsapp: WhatsAppSender,
        *,
        contact_email: str,
        site_url: str,
    ):
        self.email = email
        self.whatsapp = whatsapp
        self.contact_email = contact_email
        self.site_url = site_url.rstrip("/")

    async def _email(self, to, subject, body, *, order_number=None, invoice_id=None):
        try:
            result = await self.email.send(to, subject, body)
        except Exception as exc:
            result = NotificationResult(
                NotificationChannel.EMAIL, NotificationStatus.FAILED, to, str(exc)
            )
        _log_result(result, order_number, invoice_id)
        return result

    async def _whatsapp(self, to, body, *, order_number=None, invoice_id=None):
        try:
            result = await self.whatsapp.send(to, body)
        except Exception as exc:
            result = NotificationResult(
                NotificationChannel.WHATSAPP, NotificationStatus.FAILED, to, str(exc)
            )
        _log_result(result, order_number, invoice_id)
        return result

    async def _both(self, application: Application, subject: str, body: str, invoice_id=None):
        ctx = {"order_number": application.order_number, "invoice_id": invoice_id}
        results = [await self._email(application.applicant_email, subject, body, **ctx)]
        if application.customer_phone:
            results.append(await self._whatsapp(application.customer_phone, body, **ctx))
        return results

    def _track_url(self, order_number: str | None) -> str:
        return f"{self.site_url}/track?order={order_number}"

    async def order_received(
        self, application: Application, invoice: Invoice | None = None
    ) -> list[NotificationResult]:
        name = application.customer_name or "there"
        body = (
            f"Hello {name},\n\nThank you for choosing Tasheel. We have received your request.\n\n"
            f"Order number: {application.order_number}\n"
            f"Service: {application.service_slug}\n"
        )
        if invoice is not None:
            body += f"Invoice: {invoice.invoice_number} ({invoice.amount} {invoice.currency})\n"
        body += f"\nTrack: {self._track_url(application.order_number)}"
        return await self._both(
            application,
            f"Order Received - {application.order_number}",
            body,
            invoice.id if invoice is not None else None,
        )

    async def new_request_alert(self, application: Application) -> NotificationResult:
        """Tell the business inbox a new request arrived."""
        payload = application.payload or {}
        body = (
            f"New request {application.order_number}\n"
            f"Service: {application.service_slug}\n"
            f"Name: {application.customer_name}\n"
            f"Email: {application.applicant_email}\n"
            f"Phone: {application.customer_phone}\n"
            f"Urgency: {application.urgency}\n"
            f"Details: {payload.get('details', '')}"
        )
        return await self._email(
            self.contact_email,
            f"New Quote Request - {application.order_number}",
            body,
            order_number=application.order_number,
        )

    async def quote_ready(
        self, application: Application, invoice: Invoice
    ) -> list[NotificationResult]:
        due = invoice.due_date.date().isoformat() if invoice.due_date else "-"
        body = (
            f"Your quote for order {application.order_number} is ready.\n\n"
            f"Invoice: {invoice.invoice_number}\n"
            f"Amount: {invoice.amount} {invoice.currency}\n"
            f"Valid until: {due}\n\n"
            f"Pay: {self.site_url}/payment?invoice={invoice.id}"
        )
        return await self._both(
            application, f"Quote Ready - {application.order_number}", body, invoice.id
        )

    async def payment_confirmed(
        self, application: Application, invoice: Invoice
    ) -> list[NotificationResult]:
        body = (
            f"Payment received for order {application.order_number}.\n\n"
            f"Invoice: {invoice.invoice_number}\n"
            f"Amount: {invoice.amount} {invoice.currency}\n"
            f"Transaction: {invoice.transaction_id}\n\n"
            f"Track: {self._track_url(application.order_number)}"
        )
        return await self._both(
            application, f"Payment Confirmed - {application.order_number}", body, invoice.id
        )

    async def status_changed(
        self, application: Application, new_status: ApplicationStatus
    ) -> list[NotificationResult]:
        subject, message = STATUS_MESSAGES[new_status]
        body = (
            f"{message}\n\nOrder number: {application.order_number}\n"
            f"Track: {self._track_url(application.order_number)}"
        )
        return await self._both(application, f"{subject} - {application.order_number}", body)

    async def send_otp(self, phone: str, code: str, ttl_minutes: int) -> NotificationResult:
        body = (
            f"رمز التحقق الخاص بك: {code}\n"
            f"Your Tasheel verification code is {code}. It expires in {ttl_minutes} minutes."
        )
        return await self._whatsapp(phone, body)


def _log_result(result: NotificationResult, order_number, invoice_id) -> None:
    if result.status == NotificationStatus.FAILED:
        logger.warning(
            "Notification failed: channel=%s recipient=%s order=%s invoice=%s detail=%s",
            result.channel.value,
            result.recipient,
            order_number,
            invoice_id,
            result.detail,
        )
    elif result.status == NotificationStatus.SKIPPED:
        logger.info(
            "Notification skipped: channel=%s recipient=%s order=%s reason=%s",
            result.channel.value,
            result.recipient,
            order_number,
            result.detail,
        )
    else:
        logger.debug(
            "Notification sent: channel=%s recipient=%s order=%s",
            result.channel.value,
            result.recipient,
            order_number,
        )


def build_notifier(client: httpx.AsyncClient, config: Settings = settings) -> Notifier:
    return Notifier(
        EmailSender(
            client,
            api_key=config.RESEND_API_KEY,
            from_email=config.CONTACT_EMAIL,
            from_name=config.CONTACT_NAME,
            api_url=config.RESEND_API_URL,
        ),
        WhatsAppSender(
            client,
            account_sid=config.WHATSAPP_ACCOUNT_SID,
            auth_token=config.WHATSAPP_AUTH_TOKEN,
            from_number=config.WHATSAPP_FROM_NUMBER,
        ),
        contact_email=config.CONTACT_EMAIL,
        site_url=config.SITE_URL,
    )


async def get_notifier() -> AsyncGenerator[Notifier, None]:
    """FastAPI dependency: a notifier bound to a per-request HTTP client."""
    async with httpx.AsyncClient(timeout=settings.NOTIFICATION_TIMEOUT_SECONDS) as client:
        yield build_notifier(client)
