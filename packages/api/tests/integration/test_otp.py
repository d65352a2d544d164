# This project was developed with assistance from AI tools.
"""OTP issuance, lockout and phone sign-in against real PostgreSQL."""

from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy import select
from tasheel_db import Account, Customer, OTPCode

from tasheel_api.schemas.auth import LinkPhoneAccountRequest
from tasheel_api.services.accounts import link_phone_account, sign_in_with_phone, verify_password
from tasheel_api.services.otp import (
    OTPPolicy,
    OTPRateLimitError,
    OTPVerificationError,
    consume_otp,
    issue_otp,
)

from ..factories import make_notifier

pytestmark = pytest.mark.integration

PHONE = "0599123456"
NORMALIZED = "+970599123456"
POLICY = OTPPolicy()


async def _issue(db_session, now=None):
    notifier = make_notifier()
    await issue_otp(db_session, notifier, PHONE, POLICY, now=now)
    _, code, _ = notifier.send_otp.await_args.args
    return code


async def test_code_is_single_use(db_session):
    code = await _issue(db_session)

    assert await consume_otp(db_session, PHONE, code, POLICY) == NORMALIZED
    with pytest.raises(OTPVerificationError):
        await consume_otp(db_session, PHONE, code, POLICY)


async def test_resend_inside_cooldown_is_refused(db_session):
    now = datetime.now(UTC)
    await _issue(db_session, now)

    with pytest.raises(OTPRateLimitError) as exc_info:
        await _issue(db_session, now + timedelta(seconds=20))
    assert exc_info.value.retry_after == 40


async def test_three_wrong_codes_lock_the_number(db_session):
    code = await _issue(db_session)
    wrong = "000000" if code != "000000" else "111111"

    for _ in range(POLICY.max_attempts - 1):
        with pytest.raises(OTPVerificationError):
            await consume_otp(db_session, PHONE, wrong, POLICY)
    with pytest.raises(OTPRateLimitError):
        await consume_otp(db_session, PHONE, wrong, POLICY)

    # The right code no longer helps while locked
    with pytest.raises(OTPRateLimitError):
        await consume_otp(db_session, PHONE, code, POLICY)

    record = await db_session.scalar(
        select(OTPCode)
        .where(OTPCode.phone == NORMALIZED)
        .execution_options(populate_existing=True)
    )
    assert record.attempts == POLICY.max_attempts
    assert record.blocked_until is not None


async def test_new_code_after_lock_expires_resets_attempts(db_session):
    now = datetime.now(UTC)
    code = await _issue(db_session, now)
    wrong = "000000" if code != "000000" else "111111"
    for _ in range(POLICY.max_attempts):
        with pytest.raises((OTPVerificationError, OTPRateLimitError)):
            await consume_otp(db_session, PHONE, wrong, POLICY, now=now)

    later = now + POLICY.block_duration + timedelta(seconds=1)
    fresh = await _issue(db_session, later)
    assert await consume_otp(db_session, PHONE, fresh, POLICY, now=later) == NORMALIZED


async def test_phone_sign_in_then_link_email(db_session):
    code = await _issue(db_session)
    signed_in = await sign_in_with_phone(db_session, PHONE, code, name="Sarah", policy=POLICY)
    assert signed_in.is_new_account is True
    assert signed_in.account.email == "970599123456@tasheel.ps"

    later = datetime.now(UTC) + POLICY.resend_cooldown + timedelta(seconds=1)
    link_code = await _issue(db_session, later)
    result = await link_phone_account(
        db_session,
        LinkPhoneAccountRequest(
            phone=PHONE,
            otp=link_code,
            email="Sarah@Example.com",
            password="correct-horse",
        ),
        POLICY,
    )

    assert result.linked is True
    account = await db_session.get(Account, signed_in.account.id)
    assert account.email == "sarah@example.com"
    assert verify_password("correct-horse", account.password_hash)
    customer = await db_session.scalar(select(Customer).where(Customer.account_id == account.id))
    assert customer.email == "sarah@example.com"
