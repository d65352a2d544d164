# This project was developed with assistance from AI tools.
"""Phone verification and account-linking routes. No bearer token required."""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from tasheel_db import get_db

from ..schemas.auth import (
    LinkPhoneAccountRequest,
    LinkPhoneAccountResponse,
    SendOTPRequest,
    SendOTPResponse,
    VerifyOTPRequest,
    VerifyOTPResponse,
)
from ..services.accounts import AccountLinkError, link_phone_account, sign_in_with_phone
from ..services.notifications import Notifier, get_notifier
from ..services.otp import OTPError, OTPPolicy, OTPRateLimitError, get_otp_policy, issue_otp

router = APIRouter()


def _otp_http_error(exc: OTPError) -> HTTPException:
    headers = None
    if isinstance(exc, OTPRateLimitError):
        headers = {"Retry-After": str(exc.retry_after)}
    return HTTPException(status_code=exc.status_code, detail=exc.message, headers=headers)


@router.post("/send-otp", response_model=SendOTPResponse)
async def send_otp(
    body: SendOTPRequest,
    session: AsyncSession = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
    policy: OTPPolicy = Depends(get_otp_policy),
) -> SendOTPResponse:
    try:
        await issue_otp(session, notifier, body.phone, policy)
    except OTPError as exc:
        raise _otp_http_error(exc) from exc
    return SendOTPResponse(success=True, message="Verification code sent via WhatsApp.")


@router.post("/verify-otp", response_model=VerifyOTPResponse)
async def verify_otp(
    body: VerifyOTPRequest,
    session: AsyncSession = Depends(get_db),
    policy: OTPPolicy = Depends(get_otp_policy),
) -> VerifyOTPResponse:
    """Phone sign-in. Creates the phone-only account on first use."""
    try:
        result = await sign_in_with_phone(session, body.phone, body.otp, body.name, policy)
    except OTPError as exc:
        raise _otp_http_error(exc) from exc
    return VerifyOTPResponse(
        success=True,
        message="Phone number verified.",
        account_id=result.account.id,
        customer_id=result.customer.id,
        is_new_account=result.is_new_account,
    )


@router.post("/link-phone-account", response_model=LinkPhoneAccountResponse)
async def link_phone(
    body: LinkPhoneAccountRequest,
    session: AsyncSession = Depends(get_db),
    policy: OTPPolicy = Depends(get_otp_policy),
) -> LinkPhoneAccountResponse:
    """Attach email/password credentials to a phone-only account after OTP proof."""
    try:
        result = await link_phone_account(session, body, policy)
    except OTPError as exc:
        raise _otp_http_error(exc) from exc
    except AccountLinkError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.message) from exc
    return LinkPhoneAccountResponse(success=True, linked=result.linked, message=result.message)
