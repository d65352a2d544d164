# This project was developed with assistance from AI tools.
"""Payment gateway strategies.

One class per supported gateway, all honouring the same contract:

* where and how to open a hosted payment session,
* how to read the session response,
* which header carries the webhook signature and how to verify it,
* how to map the gateway's callback payload onto
  ``{invoice_ref, transaction_id, amount, status}``.

The active strategy is picked from ``PAYMENT_GATEWAY_TYPE``.
"""

import enum
import hashlib
import hmac
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation

from tasheel_db.enums import PaymentGateway

logger = logging.getLogger(__name__)


class CallbackStatus(str, enum.Enum):
    PAID = "paid"
    FAILED = "failed"
    PENDING = "pending"


class GatewayResponseError(ValueError):
    """The gateway answered, but not with something we can use."""

    pass


@dataclass(frozen=True)
class NormalizedCallback:
    invoice_ref: str | None
    transaction_id: str | None
    amount: Decimal | None
    status: CallbackStatus
    raw: dict = field(default_factory=dict)


@dataclass(frozen=True)
class SessionRequest:
    invoice_id: int
    invoice_number: str
    amount: Decimal
    currency: str
    order_number: str | None
    customer_email: str
    customer_name: str | None
    customer_phone: str | None
    site_url: str

    @property
    def success_url(self) -> str:
        return f"{self.site_url}/payment/success?invoice={self.invoice_id}"

    @property
    def cancel_url(self) -> str:
        return f"{self.site_url}/payment/cancel?invoice={self.invoice_id}"

    @property
    def webhook_url(self) -> str:
        return f"{self.site_url}/api/payment/webhook"


@dataclass(frozen=True)
class GatewaySession:
    payment_url: str
    session_id: str


def _first(*values):
    for value in values:
        if value not in (None, ""):
            return value
    return None


def _to_decimal(value) -> Decimal | None:
    if value in (None, ""):
        return None
    try:
        amount = Decimal(str(value))
    except InvalidOperation:
        return None
    return amount if amount.is_finite() else None


def _as_str(value) -> str | None:
    return None if value is None else str(value)


def _as_dict(value) -> dict:
    """Nested callback objects; anything that is not a JSON object reads as empty."""
    return value if isinstance(value, dict) else {}


class GatewayStrategy:
    """Shared behaviour; subclasses fill in the gateway-specific shapes."""

    name: PaymentGateway
    signature_headers: tuple[str, ...] = ("x-signature", "signature")
    supports_live_sessions = True
    endpoints: Mapping[str, str] = {}

    def __init__(
        self,
        api_key: str | None = None,
        merchant_id: str | None = None,
        mode: str = "sandbox",
    ):
        self.api_key = api_key
        self.merchant_id = merchant_id
        self.mode = mode

    @property
    def endpoint(self) -> str:
        return self.endpoints["production" if self.mode == "production" else "sandbox"]

    def build_session_request(self, req: SessionRequest) -> tuple[dict, dict]:
        """Return ``(headers, json_body)`` for the session-creation call."""
        raise NotImplementedError

    def parse_session_response(self, data: dict) -> GatewaySession:
        raise NotImplementedError

    def normalize_callback(self, body: dict) -> NormalizedCallback:
        raise NotImplementedError

    def extract_signature(self, headers: Mapping[str, str]) -> str | None:
        for name in self.signature_headers:
            value = headers.get(name)
            if value:
                return value
        return None

    def verify_signature(self, raw_body: bytes, signature: str | None, secret: str) -> bool:
        """HMAC-SHA256 over the raw body, hex encoded, optional ``sha256=`` prefix."""
        if not signature:
            return False
        provided = signature.strip()
        if provided.lower().startswith("sha256="):
            provided = provided[7:]
        expected = hmac.new(secret.encode("utf-8"), raw_body, hashlib.sha256).hexdigest()
        return hmac.compare_digest(provided.lower(), expected)


class PalPayGateway(GatewayStrategy):
    name = PaymentGateway.PALPAY
    signature_headers = ("x-palpay-signature", "x-signature", "signature")
    endpoints = {
        "production": "https://api.palpay.ps/v1/payments",
        "sandbox": "https://sandbox.palpay.ps/v1/payments",
    }

    def build_session_request(self, req: SessionRequest) -> tuple[dict, dict]:
        headers = {"Authorization": f"Bearer {self.api_key}"}
        body = {
            "merchant_id": self.merchant_id,
            "amount": str(req.amount),
            "currency": req.currency,
            "order_id": req.invoice_number,
            "customer_email": req.customer_email,
            "customer_name": req.customer_name or "Customer",
            "return_url": req.success_url,
            "cancel_url": req.cancel_url,
            "webhook_url": req.webhook_url,
            "metadata": {"invoice_id": req.invoice_id, "order_number": req.order_number},
        }
        return headers, body

    def parse_session_response(self, data: dict) -> GatewaySession:
        url = _first(data.get("payment_url"), data.get("url"))
        session_id = _first(data.get("session_id"), data.get("id"))
        if not url or not session_id:
            raise GatewayResponseError("PalPay response missing payment_url/session_id")
        return GatewaySession(payment_url=str(url), session_id=str(session_id))

    def normalize_callback(self, body: dict) -> NormalizedCallback:
        metadata = _as_dict(body.get("metadata"))
        raw_status = str(body.get("status") or "").lower()
        if raw_status in ("success", "completed"):
            status = CallbackStatus.PAID
        elif raw_status == "failed":
            status = CallbackStatus.FAILED
        else:
            status = CallbackStatus.PENDING
        return NormalizedCallback(
            invoice_ref=_as_str(_first(metadata.get("invoice_id"), body.get("order_id"))),
            transaction_id=_as_str(_first(body.get("transaction_id"), body.get("id"))),
            amount=_to_decimal(_first(body.get("amount"), body.get("total_amount"))),
            status=status,
            raw=body,
        )


class PayTabsGateway(GatewayStrategy):
    name = PaymentGateway.PAYTABS
    signature_headers = ("signature", "x-paytabs-signature", "x-signature")
    endpoints = {
        "production": "https://secure.paytabs.com/payment/request",
        "sandbox": "https://secure-egypt.paytabs.com/payment/request",
    }

    def build_session_request(self, req: SessionRequest) -> tuple[dict, dict]:
        # PayTabs takes the server key as-is, no scheme
        headers = {"Authorization": self.api_key or ""}
        body = {
            "profile_id": self.merchant_id,
            "tran_type": "sale",
            "tran_class": "ecom",
            "cart_id": req.invoice_number,
            "cart_currency": req.currency,
            "cart_amount": str(req.amount),
            "cart_description": f"Payment for order {req.order_number or req.invoice_number}",
            "customer_details": {
                "name": req.customer_name or "Customer",
                "email": req.customer_email,
                "phone": req.customer_phone or "",
            },
            "callback": req.webhook_url,
            "return": req.success_url,
            "hide_shipping": True,
        }
        return headers, body

    def parse_session_response(self, data: dict) -> GatewaySession:
        url = _first(data.get("redirect_url"), data.get("payment_url"))
        session_id = _first(data.get("tran_ref"), data.get("session_id"))
        if not url or not session_id:
            raise GatewayResponseError("PayTabs response missing redirect_url/tran_ref")
        return GatewaySession(payment_url=str(url), session_id=str(session_id))

    def normalize_callback(self, body: dict) -> NormalizedCallback:
        result = _as_dict(body.get("payment_result"))
        code = result.get("response_status")
        if code == "A":
            status = CallbackStatus.PAID
        elif code == "D":
            status = CallbackStatus.FAILED
        else:
            status = CallbackStatus.PENDING
        return NormalizedCallback(
            invoice_ref=_as_str(_first(body.get("cart_id"), body.get("invoice_id"))),
            transaction_id=_as_str(_first(body.get("tran_ref"), body.get("transaction_id"))),
            amount=_to_decimal(_first(body.get("cart_amount"), body.get("amount"))),
            status=status,
            raw=body,
        )


class GenericGateway(GatewayStrategy):
    """Flat payload used by local tooling and integration tests. Callback-only."""

    name = PaymentGateway.GENERIC
    supports_live_sessions = False

    def normalize_callback(self, body: dict) -> NormalizedCallback:
        raw_status = str(body.get("status") or "").lower()
        if raw_status in ("paid", "success"):
            status = CallbackStatus.PAID
        elif raw_status == "failed":
            status = CallbackStatus.FAILED
        else:
            status = CallbackStatus.PENDING
        return NormalizedCallback(
            invoice_ref=_as_str(_first(body.get("invoice_id"), body.get("invoiceId"))),
            transaction_id=_as_str(_first(body.get("transaction_id"), body.get("transactionId"))),
            amount=_to_decimal(body.get("amount")),
            status=status,
            raw=body,
        )


_GATEWAYS: dict[PaymentGateway, type[GatewayStrategy]] = {
    PaymentGateway.PALPAY: PalPayGateway,
    PaymentGateway.PAYTABS: PayTabsGateway,
    PaymentGateway.GENERIC: GenericGateway,
}


def get_gateway(
    kind: PaymentGateway | str,
    *,
    api_key: str | None = None,
    merchant_id: str | None = None,
    mode: str = "sandbox",
) -> GatewayStrategy:
    """Instantiate the strategy for ``kind``. Unknown kinds raise ValueError."""
    return _GATEWAYS[PaymentGateway(kind)](api_key=api_key, merchant_id=merchant_id, mode=mode)
