# This project was developed with assistance from AI tools.
"""Functional tests: paying an invoice and receiving gateway callbacks."""

import hashlib
import hmac
import json

import httpx
import pytest
from tasheel_db.enums import InvoiceStatus

from ..factories import make_invoice, make_result, make_session
from .mock_db import make_settings
from .personas import customer_omar, customer_sarah

pytestmark = pytest.mark.functional

SECRET = "whsec_functional"

def _webhook_body(**overrides) -> bytes:
    data = {"invoice_id": 501, "transaction_id": "TX-42", "amount": "125.00", "status": "paid"}
    data.update(overrides)
    return json.dumps(data).encode()


def _signed(raw: bytes) -> dict:
    return {
        "content-type": "application/json",
        "x-signature": hmac.new(SECRET.encode(), raw, hashlib.sha256).hexdigest(),
    }


def _settlement_results(invoice):
    return [
        make_result(scalar=invoice),
        make_result(scalar=77),
        make_result(scalar=invoice.id),
        make_result(scalar=invoice.application.id),
    ]


class TestCreateSession:
    def test_placeholder_session(self, make_client):
        invoice = make_invoice()
        session = make_session(make_result(scalar=invoice))
        client, _ = make_client(customer_sarah(), session)

        resp = client.post(
            "/api/payment/create-session",
            json={"invoiceId": "501", "amount": "125.00", "currency": "ILS"},
        )

        assert resp.status_code == 200
        body = resp.json()
        assert body["success"] is True
        assert body["placeholder"] is True
        assert body["paymentUrl"].startswith("https://tasheel.test/payment/success?invoice=501")
        assert body["sessionId"].startswith("PLACEHOLDER-")

    def test_live_session(self, make_client):
        invoice = make_invoice()
        config = make_settings(
            PAYMENT_GATEWAY_TYPE="paytabs",
            PAYMENT_GATEWAY_API_KEY="server-key",
            PAYMENT_GATEWAY_MERCHANT_ID="98765",
        )

        def gateway(request: httpx.Request) -> httpx.Response:
            assert request.headers["Authorization"] == "server-key"
            return httpx.Response(
                200, json={"redirect_url": "https://secure.paytabs.com/pay/X1", "tran_ref": "X1"}
            )

        client, _ = make_client(
            customer_sarah(),
            make_session(make_result(scalar=invoice)),
            settings=config,
            gateway_handler=gateway,
        )

        resp = client.post("/api/payment/create-session", json={"invoiceId": "501", "amount": 125})

        assert resp.status_code == 200
        assert resp.json()["sessionId"] == "X1"
        assert resp.json()["placeholder"] is False

    def test_gateway_outage_is_502(self, make_client):
        config = make_settings(
            PAYMENT_GATEWAY_TYPE="palpay",
            PAYMENT_GATEWAY_API_KEY="pk",
            PAYMENT_GATEWAY_MERCHANT_ID="M-1",
        )
        client, _ = make_client(
            customer_sarah(),
            make_session(make_result(scalar=make_invoice())),
            settings=config,
        )

        resp = client.post("/api/payment/create-session", json={"invoiceId": "501", "amount": 125})

        assert resp.status_code == 502
        assert resp.json()["detail"] == "Failed to create payment session"

    def test_other_customers_invoice_is_404(self, make_client):
        client, _ = make_client(customer_omar(), make_session(make_result(scalar=None)))
        resp = client.post("/api/payment/create-session", json={"invoiceId": "501", "amount": 125})
        assert resp.status_code == 404

    def test_paid_invoice_is_409(self, make_client):
        invoice = make_invoice(status=InvoiceStatus.PAID)
        client, _ = make_client(customer_sarah(), make_session(make_result(scalar=invoice)))
        resp = client.post("/api/payment/create-session", json={"invoiceId": "501", "amount": 125})
        assert resp.status_code == 409

    def test_wrong_amount_is_400(self, make_client):
        client, _ = make_client(customer_sarah(), make_session(make_result(scalar=make_invoice())))
        resp = client.post("/api/payment/create-session", json={"invoiceId": "501", "amount": 99})
        assert resp.status_code == 400


class TestWebhook:
    def test_signed_paid_callback(self, make_client):
        invoice = make_invoice()
        session = make_session(*_settlement_results(invoice))
        client, notifier = make_client(
            None, session, settings=make_settings(PAYMENT_GATEWAY_WEBHOOK_SECRET=SECRET)
        )
        raw = _webhook_body()

        resp = client.post("/api/payment/webhook", content=raw, headers=_signed(raw))

        assert resp.status_code == 200
        assert resp.json() == {"success": True, "status": "paid", "duplicate": False}
        assert invoice.status == InvoiceStatus.PAID
        notifier.payment_confirmed.assert_awaited_once()

    def test_bad_signature_rejected_before_any_read(self, make_client):
        session = make_session()
        client, _ = make_client(
            None, session, settings=make_settings(PAYMENT_GATEWAY_WEBHOOK_SECRET=SECRET)
        )
        raw = _webhook_body()
        headers = {**_signed(raw), "x-signature": "0" * 64}

        resp = client.post("/api/payment/webhook", content=raw, headers=headers)

        assert resp.status_code == 401
        session.execute.assert_not_awaited()

    def test_reencoded_body_fails_signature(self, make_client):
        client, _ = make_client(
            None, make_session(), settings=make_settings(PAYMENT_GATEWAY_WEBHOOK_SECRET=SECRET)
        )
        raw = _webhook_body()
        reencoded = json.dumps(json.loads(raw), separators=(",", ":")).encode()

        resp = client.post("/api/payment/webhook", content=reencoded, headers=_signed(raw))

        assert resp.status_code == 401

    def test_production_without_secret_rejects(self, make_client):
        client, _ = make_client(None, make_session(), settings=make_settings(APP_ENV="production"))
        resp = client.post("/api/payment/webhook", content=_webhook_body())
        assert resp.status_code == 401

    def test_development_accepts_unsigned(self, make_client):
        invoice = make_invoice()
        client, _ = make_client(None, make_session(*_settlement_results(invoice)))
        resp = client.post("/api/payment/webhook", content=_webhook_body())
        assert resp.status_code == 200

    def test_replay_is_acknowledged_as_duplicate(self, make_client):
        invoice = make_invoice(status=InvoiceStatus.PAID)
        session = make_session(make_result(scalar=invoice))
        client, notifier = make_client(None, session)

        resp = client.post("/api/payment/webhook", content=_webhook_body())

        assert resp.status_code == 200
        assert resp.json()["duplicate"] is True
        notifier.payment_confirmed.assert_not_awaited()

    def test_malformed_body(self, make_client):
        client, _ = make_client(None, make_session())
        resp = client.post("/api/payment/webhook", content=b"not-json")
        assert resp.status_code == 400

    def test_unknown_invoice(self, make_client):
        client, _ = make_client(None, make_session(make_result(scalar=None)))
        resp = client.post("/api/payment/webhook", content=_webhook_body(invoice_id=999))
        assert resp.status_code == 404

    def test_amount_mismatch(self, make_client):
        client, _ = make_client(None, make_session(make_result(scalar=make_invoice())))
        resp = client.post("/api/payment/webhook", content=_webhook_body(amount="1.00"))
        assert resp.status_code == 400
        assert resp.json()["detail"] == "Amount does not match invoice"

    def test_cancelled_invoice_is_conflict(self, make_client):
        invoice = make_invoice(status=InvoiceStatus.CANCELLED)
        client, notifier = make_client(None, make_session(make_result(scalar=invoice)))

        resp = client.post("/api/payment/webhook", content=_webhook_body(status="failed"))

        assert resp.status_code == 409
        assert invoice.status == InvoiceStatus.CANCELLED
        notifier.payment_confirmed.assert_not_awaited()

    def test_paytabs_scalar_payment_result_is_bad_request(self, make_client):
        session = make_session()
        client, _ = make_client(
            None, session, settings=make_settings(PAYMENT_GATEWAY_TYPE="paytabs")
        )
        raw = json.dumps({"tran_ref": "TST-1", "payment_result": "A"}).encode()

        resp = client.post("/api/payment/webhook", content=raw)

        assert resp.status_code == 400
        session.execute.assert_not_awaited()


class TestPlaceholderCompletion:
    def test_completes_invoice(self, make_client):
        invoice = make_invoice()
        session = make_session(*_settlement_results(invoice))
        client, _ = make_client(customer_sarah(), session)

        resp = client.post("/api/payment/test-complete", json={"invoiceId": "501"})

        assert resp.status_code == 200
        assert resp.json()["status"] == "paid"
        assert invoice.transaction_id.startswith("TEST-")

    def test_refused_in_production(self, make_client):
        session = make_session()
        client, _ = make_client(
            customer_sarah(), session, settings=make_settings(APP_ENV="production")
        )
        resp = client.post("/api/payment/test-complete", json={"invoiceId": "501"})
        assert resp.status_code == 403
        session.execute.assert_not_awaited()

    def test_refused_with_live_credentials(self, make_client):
        config = make_settings(PAYMENT_GATEWAY_API_KEY="pk", PAYMENT_GATEWAY_MERCHANT_ID="M-1")
        client, _ = make_client(customer_sarah(), make_session(), settings=config)
        resp = client.post("/api/payment/test-complete", json={"invoiceId": "501"})
        assert resp.status_code == 403

    def test_already_paid_is_duplicate(self, make_client):
        invoice = make_invoice(status=InvoiceStatus.PAID)
        client, _ = make_client(customer_sarah(), make_session(make_result(scalar=invoice)))
        resp = client.post("/api/payment/test-complete", json={"invoiceId": "501"})
        assert resp.json() == {"success": True, "status": "paid", "duplicate": True}

    def test_cancelled_invoice_is_conflict(self, make_client):
        invoice = make_invoice(status=InvoiceStatus.CANCELLED)
        client, _ = make_client(customer_sarah(), make_session(make_result(scalar=invoice)))
        resp = client.post("/api/payment/test-complete", json={"invoiceId": "501"})
        assert resp.status_code == 409
