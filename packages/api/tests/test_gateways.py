# This project was developed with assistance from AI tools.
"""Tests for the payment gateway strategies."""

import hashlib
import hmac
from decimal import Decimal

import pytest
from tasheel_db.enums import PaymentGateway

from tasheel_api.services.gateways import (
    CallbackStatus,
    GatewayResponseError,
    GenericGateway,
    PalPayGateway,
    PayTabsGateway,
    SessionRequest,
    get_gateway,
)

SECRET = "whsec_test"
BODY = b'{"invoice_id": 501, "status": "paid"}'


def _sign(body: bytes, secret: str = SECRET) -> str:
    return hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()


def _session_request():
    return SessionRequest(
        invoice_id=501,
        invoice_number="INV-20260314-001",
        amount=Decimal("125.00"),
        currency="ILS",
        order_number="ORD-20260314-001",
        customer_email="sarah@example.com",
        customer_name="Sarah Haddad",
        customer_phone="+970599123456",
        site_url="https://tasheel.test",
    )


def test_get_gateway_by_name():
    gateway = get_gateway("paytabs", api_key="k", merchant_id="m", mode="production")
    assert isinstance(gateway, PayTabsGateway)
    assert gateway.endpoint == "https://secure.paytabs.com/payment/request"


def test_get_gateway_unknown_kind():
    with pytest.raises(ValueError):
        get_gateway("stripe")


def test_sandbox_is_default_endpoint():
    assert get_gateway(PaymentGateway.PALPAY).endpoint == "https://sandbox.palpay.ps/v1/payments"


# ---------------------------------------------------------------------------
# Signatures
# ---------------------------------------------------------------------------


class TestSignatures:
    def test_valid_hex_signature(self):
        assert GenericGateway().verify_signature(BODY, _sign(BODY), SECRET)

    def test_prefixed_signature(self):
        assert GenericGateway().verify_signature(BODY, f"sha256={_sign(BODY)}", SECRET)

    def test_wrong_secret(self):
        assert not GenericGateway().verify_signature(BODY, _sign(BODY, "other"), SECRET)

    def test_tampered_body(self):
        signature = _sign(BODY)
        assert not GenericGateway().verify_signature(BODY + b" ", signature, SECRET)

    def test_missing_signature(self):
        assert not GenericGateway().verify_signature(BODY, None, SECRET)

    def test_palpay_header_preferred(self):
        headers = {"x-palpay-signature": "aaa", "x-signature": "bbb"}
        assert PalPayGateway().extract_signature(headers) == "aaa"

    def test_paytabs_signature_header(self):
        assert PayTabsGateway().extract_signature({"signature": "ccc"}) == "ccc"

    def test_no_signature_header(self):
        assert GenericGateway().extract_signature({"content-type": "application/json"}) is None


# ---------------------------------------------------------------------------
# Callback normalization
# ---------------------------------------------------------------------------


class TestPalPayCallback:
    def test_success_with_metadata_invoice(self):
        callback = PalPayGateway().normalize_callback(
            {
                "status": "SUCCESS",
                "transaction_id": "PP-778",
                "amount": "125.00",
                "order_id": "INV-20260314-001",
                "metadata": {"invoice_id": 501},
            }
        )
        assert callback.status == CallbackStatus.PAID
        assert callback.invoice_ref == "501"
        assert callback.transaction_id == "PP-778"
        assert callback.amount == Decimal("125.00")

    def test_falls_back_to_order_id(self):
        callback = PalPayGateway().normalize_callback(
            {
                "status": "completed",
                "id": "PP-1",
                "total_amount": 90,
                "order_id": "INV-20260314-002",
            }
        )
        assert callback.invoice_ref == "INV-20260314-002"
        assert callback.transaction_id == "PP-1"
        assert callback.amount == Decimal("90")

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("failed", CallbackStatus.FAILED),
            ("processing", CallbackStatus.PENDING),
            (None, CallbackStatus.PENDING),
        ],
    )
    def test_status_mapping(self, raw, expected):
        assert PalPayGateway().normalize_callback({"status": raw}).status == expected

    @pytest.mark.parametrize("metadata", ["x", [501], 501, None])
    def test_non_object_metadata_ignored(self, metadata):
        callback = PalPayGateway().normalize_callback(
            {"status": "failed", "order_id": "INV-20260314-003", "metadata": metadata}
        )
        assert callback.invoice_ref == "INV-20260314-003"
        assert callback.status == CallbackStatus.FAILED


class TestPayTabsCallback:
    def test_approved(self):
        callback = PayTabsGateway().normalize_callback(
            {
                "tran_ref": "TST2207300123",
                "cart_id": "INV-20260314-001",
                "cart_amount": "125.00",
                "payment_result": {"response_status": "A"},
            }
        )
        assert callback.status == CallbackStatus.PAID
        assert callback.invoice_ref == "INV-20260314-001"
        assert callback.transaction_id == "TST2207300123"

    def test_declined(self):
        callback = PayTabsGateway().normalize_callback({"payment_result": {"response_status": "D"}})
        assert callback.status == CallbackStatus.FAILED

    def test_missing_result_is_pending(self):
        assert PayTabsGateway().normalize_callback({}).status == CallbackStatus.PENDING

    @pytest.mark.parametrize("result", ["A", ["A"], 1])
    def test_non_object_result_is_pending(self, result):
        callback = PayTabsGateway().normalize_callback(
            {"cart_id": "INV-20260314-001", "payment_result": result}
        )
        assert callback.status == CallbackStatus.PENDING
        assert callback.invoice_ref == "INV-20260314-001"


class TestGenericCallback:
    def test_camel_case_fields(self):
        callback = GenericGateway().normalize_callback(
            {"invoiceId": 501, "transactionId": "T-1", "amount": 125, "status": "success"}
        )
        assert callback.invoice_ref == "501"
        assert callback.transaction_id == "T-1"
        assert callback.status == CallbackStatus.PAID

    def test_unparseable_amount_is_none(self):
        callback = GenericGateway().normalize_callback({"invoice_id": 1, "amount": "lots"})
        assert callback.amount is None

    def test_non_finite_amount_is_none(self):
        assert GenericGateway().normalize_callback({"amount": "NaN"}).amount is None

    def test_raw_body_kept(self):
        body = {"invoice_id": 1, "status": "failed", "extra": True}
        assert GenericGateway().normalize_callback(body).raw == body


# ---------------------------------------------------------------------------
# Session requests
# ---------------------------------------------------------------------------


class TestSessionRequests:
    def test_palpay_request(self):
        headers, body = PalPayGateway(api_key="pk_live", merchant_id="M-1").build_session_request(
            _session_request()
        )
        assert headers == {"Authorization": "Bearer pk_live"}
        assert body["merchant_id"] == "M-1"
        assert body["amount"] == "125.00"
        assert body["order_id"] == "INV-20260314-001"
        assert body["webhook_url"] == "https://tasheel.test/api/payment/webhook"
        assert body["return_url"] == "https://tasheel.test/payment/success?invoice=501"
        assert body["metadata"] == {"invoice_id": 501, "order_number": "ORD-20260314-001"}

    def test_paytabs_request(self):
        headers, body = PayTabsGateway(api_key="sk", merchant_id="P-9").build_session_request(
            _session_request()
        )
        assert headers == {"Authorization": "sk"}
        assert body["profile_id"] == "P-9"
        assert body["cart_id"] == "INV-20260314-001"
        assert body["cart_description"] == "Payment for order ORD-20260314-001"
        assert body["customer_details"]["phone"] == "+970599123456"
        assert body["callback"] == "https://tasheel.test/api/payment/webhook"

    def test_palpay_response_parsed(self):
        parsed = PalPayGateway().parse_session_response({"url": "https://pay/1", "id": "S-1"})
        assert parsed.payment_url == "https://pay/1"
        assert parsed.session_id == "S-1"

    def test_paytabs_response_missing_fields(self):
        with pytest.raises(GatewayResponseError):
            PayTabsGateway().parse_session_response({"tran_ref": "T-1"})

    def test_generic_gateway_has_no_live_sessions(self):
        assert GenericGateway.supports_live_sessions is False
