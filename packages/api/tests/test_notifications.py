# This project was developed with assistance from AI tools.
"""Tests for best-effort email and WhatsApp notifications."""

import json
from urllib.parse import parse_qs

import httpx
from tasheel_db.enums import ApplicationStatus

from tasheel_api.services.notifications import (
    STATUS_MESSAGES,
    NotificationChannel,
    NotificationStatus,
    build_notifier,
)

from .factories import make_application, make_invoice
from .functional.mock_db import make_settings


def _configured_settings(**overrides):
    values = {
        "RESEND_API_KEY": "re_test",
        "WHATSAPP_ACCOUNT_SID": "AC123",
        "WHATSAPP_AUTH_TOKEN": "token",
        "WHATSAPP_FROM_NUMBER": "+14155238886",
        "CONTACT_EMAIL": "info@tasheel.ps",
    }
    values.update(overrides)
    return make_settings(**values)


class _Recorder:
    def __init__(self, status_code=200):
        self.requests: list[httpx.Request] = []
        self.status_code = status_code

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status_code, json={"id": "msg_1"})


def test_every_status_has_a_message():
    assert set(STATUS_MESSAGES) == set(ApplicationStatus)


async def test_unconfigured_channels_are_skipped():
    recorder = _Recorder()
    async with httpx.AsyncClient(transport=httpx.MockTransport(recorder)) as client:
        notifier = build_notifier(client, make_settings())
        results = await notifier.order_received(make_application())

    assert [r.status for r in results] == [NotificationStatus.SKIPPED, NotificationStatus.SKIPPED]
    assert recorder.requests == []


async def test_order_received_sends_email_and_whatsapp():
    recorder = _Recorder()
    async with httpx.AsyncClient(transport=httpx.MockTransport(recorder)) as client:
        notifier = build_notifier(client, _configured_settings())
        results = await notifier.order_received(make_application(), make_invoice())

    assert all(r.ok for r in results)
    email_request, whatsapp_request = recorder.requests
    email = json.loads(email_request.content)
    assert email["to"] == ["sarah@example.com"]
    assert email["subject"] == "Order Received - ORD-20260314-001"
    assert "INV-20260314-001" in email["text"]
    assert "https://tasheel.test/track?order=ORD-20260314-001" in email["text"]

    assert whatsapp_request.url.path == "/2010-04-01/Accounts/AC123/Messages.json"
    form = parse_qs(whatsapp_request.content.decode())
    assert form["To"] == ["whatsapp:+970599123456"]
    assert form["From"] == ["whatsapp:+14155238886"]


async def test_provider_failure_reported_not_raised():
    recorder = _Recorder(status_code=500)
    async with httpx.AsyncClient(transport=httpx.MockTransport(recorder)) as client:
        notifier = build_notifier(client, _configured_settings())
        results = await notifier.payment_confirmed(make_application(), make_invoice())

    assert [r.status for r in results] == [NotificationStatus.FAILED, NotificationStatus.FAILED]


async def test_transport_error_reported_not_raised():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        notifier = build_notifier(client, _configured_settings())
        result = await notifier.new_request_alert(make_application())

    assert result.channel == NotificationChannel.EMAIL
    assert result.status == NotificationStatus.FAILED
    assert "connection refused" in result.detail


async def test_application_without_phone_gets_email_only():
    recorder = _Recorder()
    async with httpx.AsyncClient(transport=httpx.MockTransport(recorder)) as client:
        notifier = build_notifier(client, _configured_settings())
        results = await notifier.status_changed(
            make_application(customer_phone=None), ApplicationStatus.COMPLETED
        )

    assert [r.channel for r in results] == [NotificationChannel.EMAIL]
    assert json.loads(recorder.requests[0].content)["subject"].startswith("Order Completed")


async def test_new_request_alert_goes_to_business_inbox():
    recorder = _Recorder()
    async with httpx.AsyncClient(transport=httpx.MockTransport(recorder)) as client:
        notifier = build_notifier(client, _configured_settings())
        await notifier.new_request_alert(make_application(payload={"details": "12 pages"}))

    email = json.loads(recorder.requests[0].content)
    assert email["to"] == ["info@tasheel.ps"]
    assert "Details: 12 pages" in email["text"]


async def test_otp_message_contains_code():
    recorder = _Recorder()
    async with httpx.AsyncClient(transport=httpx.MockTransport(recorder)) as client:
        notifier = build_notifier(client, _configured_settings())
        result = await notifier.send_otp("0599123456", "482913", 5)

    assert result.ok
    form = parse_qs(recorder.requests[0].content.decode())
    assert "482913" in form["Body"][0]
    assert form["To"] == ["whatsapp:+970599123456"]


async def test_invalid_phone_skipped():
    recorder = _Recorder()
    async with httpx.AsyncClient(transport=httpx.MockTransport(recorder)) as client:
        notifier = build_notifier(client, _configured_settings())
        result = await notifier.send_otp("12", "482913", 5)

    assert result.status == NotificationStatus.SKIPPED
    assert recorder.requests == []
