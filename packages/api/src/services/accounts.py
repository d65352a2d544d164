# This project was developed with assistance from AI tools.
"""Phone sign-in and phone-to-email account linking.

A customer who first signs in with only a phone number gets an account with
a synthetic email (``{digits}@tasheel.ps``). When they later register with a
real email and password, the existing phone-only account is upgraded in
place, but only after they prove ownership of the phone with a fresh OTP.
"""

import logging
from dataclasses import dataclass

from passlib.context import CryptContext
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from tasheel_db import Account, Customer

from ..schemas.auth import LinkPhoneAccountRequest
from .otp import OTPPolicy, consume_otp
from .phone import is_synthetic_email, synthetic_email_for_phone

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

MIN_PASSWORD_LENGTH = 8


class AccountLinkError(Exception):
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class MissingLinkFieldsError(AccountLinkError):
    pass


class EmailConflictError(AccountLinkError):
    status_code = 409


@dataclass(frozen=True)
class LinkResult:
    linked: bool
    message: str
    account_id: int | None = None


@dataclass(frozen=True)
class PhoneSignIn:
    account: Account
    customer: Customer
    is_new_account: bool


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str | None) -> bool:
    if not password_hash:
        return False
    return pwd_context.verify(password, password_hash)


async def _get_account_by_email(session: AsyncSession, email: str) -> Account | None:
    result = await session.execute(select(Account).where(Account.email == email))
    return result.scalar_one_or_none()


async def _get_customer(session: AsyncSession, account_id: int) -> Customer | None:
    result = await session.execute(select(Customer).where(Customer.account_id == account_id))
    return result.scalar_one_or_none()


async def link_phone_account(
    session: AsyncSession,
    request: LinkPhoneAccountRequest,
    policy: OTPPolicy | None = None,
) -> LinkResult:
    """Upgrade a phone-only account to email/password credentials.

    The OTP is checked and consumed before any account row is read, so a
    request without proof of phone ownership learns nothing and changes
    nothing. OTP failures propagate as OTPError.
    """
    if not (request.otp or "").strip():
        raise MissingLinkFieldsError("Verification code is required to link accounts.")
    if not (request.phone or "").strip():
        raise MissingLinkFieldsError("Phone number is required.")
    if not (request.email or "").strip() or not request.password:
        raise MissingLinkFieldsError("Email and password are required.")
    if len(request.password) < MIN_PASSWORD_LENGTH:
        raise MissingLinkFieldsError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters."
        )

    phone = await consume_otp(session, request.phone, request.otp, policy)
    email = request.email.strip().lower()

    account = await _get_account_by_email(session, synthetic_email_for_phone(phone))
    if account is None:
        account_by_phone = (
            await session.execute(select(Account).where(Account.phone == phone))
        ).scalar_one_or_none()
        if account_by_phone is not None and not is_synthetic_email(account_by_phone.email):
            return LinkResult(
                linked=False,
                message="This phone number is already linked to an email account.",
                account_id=account_by_phone.id,
            )
        return LinkResult(linked=False, message="No phone-only account found; no linking needed.")

    if not is_synthetic_email(account.email):
        return LinkResult(
            linked=False,
            message="This phone number is already linked to an email account.",
            account_id=account.id,
        )

    account_id = account.id
    account.email = email
    account.password_hash = hash_password(request.password)
    account.email_confirmed = False
    metadata = dict(account.user_metadata or {})
    metadata.update({"phone": phone, "is_phone_only": False, "linked_email": email})
    if request.name:
        metadata["name"] = request.name.strip()
    account.user_metadata = metadata

    customer = await _get_customer(session, account_id)
    if customer is not None:
        customer.email = email
        if request.name:
            customer.name = request.name.strip()

    try:
        await session.commit()
    except IntegrityError as exc:
        await session.rollback()
        logger.warning("Account link for %s failed: email %s already in use", phone, email)
        raise EmailConflictError(
            "This email is already registered. Please sign in with it instead."
        ) from exc

    logger.info("Linked phone-only account %s to email %s", account_id, email)
    return LinkResult(
        linked=True,
        message="Phone account linked. Please confirm your email address.",
        account_id=account_id,
    )


async def sign_in_with_phone(
    session: AsyncSession,
    phone: str,
    code: str,
    name: str | None = None,
    policy: OTPPolicy | None = None,
) -> PhoneSignIn:
    """Verify ``code`` and return the phone's account, creating it on first sign-in."""
    phone = await consume_otp(session, phone, code, policy)

    account = (
        await session.execute(select(Account).where(Account.phone == phone))
    ).scalar_one_or_none()
    if account is not None:
        if not account.phone_confirmed:
            account.phone_confirmed = True
        customer = await _get_customer(session, account.id)
        is_new = False
        if customer is None:
            customer = Customer(account_id=account.id, email=account.email, name=name, phone=phone)
            session.add(customer)
            is_new = True
        elif customer.phone != phone:
            customer.phone = phone
        await session.commit()
        return PhoneSignIn(account=account, customer=customer, is_new_account=is_new)

    account = Account(
        email=synthetic_email_for_phone(phone),
        phone=phone,
        phone_confirmed=True,
        email_confirmed=False,
        user_metadata={
            "phone": phone,
            "phone_verified": True,
            "is_phone_only": True,
            "email_verification_required": True,
            **({"name": name} if name else {}),
        },
    )
    session.add(account)
    await session.flush()
    customer = Customer(account_id=account.id, email=account.email, name=name, phone=phone)
    session.add(customer)
    await session.commit()
    logger.info("Created phone-only account %s for %s", account.id, phone)
    return PhoneSignIn(account=account, customer=customer, is_new_account=True)
