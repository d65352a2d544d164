# This project was developed with assistance from AI tools.
"""One-time codes for phone verification.

One ``otp_codes`` row per phone number holds the live code together with
its rate-limit state. Every write is a single conditional statement (upsert,
increment, delete-returning) so concurrent requests for the same number
cannot lose updates or both succeed.

Policy: a code lives 5 minutes, a new one may be requested once a minute,
and 3 wrong guesses lock the number for an hour. Requesting a fresh code
after the lock expires starts the count over.
"""

import hmac
import logging
import math
import secrets
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from sqlalchemy import and_, case, delete, or_, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession
from tasheel_db import OTPCode

from ..core.config import Settings, settings
from .notifications import NotificationResult, Notifier
from .phone import format_phone_number, is_valid_phone_number

logger = logging.getLogger(__name__)

CODE_LENGTH = 6


class OTPError(Exception):
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidPhoneError(OTPError):
    pass


class OTPVerificationError(OTPError):
    pass


class OTPRateLimitError(OTPError):
    status_code = 429

    def __init__(self, message: str, retry_after: int):
        super().__init__(message)
        self.retry_after = retry_after


@dataclass(frozen=True)
class OTPPolicy:
    ttl: timedelta = timedelta(minutes=5)
    resend_cooldown: timedelta = timedelta(seconds=60)
    max_attempts: int = 3
    block_duration: timedelta = timedelta(minutes=60)

    @classmethod
    def from_settings(cls, config: Settings = settings) -> "OTPPolicy":
        return cls(
            ttl=timedelta(seconds=config.OTP_TTL_SECONDS),
            resend_cooldown=timedelta(seconds=config.OTP_RESEND_COOLDOWN_SECONDS),
            max_attempts=config.OTP_MAX_ATTEMPTS,
            block_duration=timedelta(minutes=config.OTP_BLOCK_MINUTES),
        )


def get_otp_policy() -> OTPPolicy:
    """FastAPI dependency: the lockout policy from current settings."""
    return OTPPolicy.from_settings()


@dataclass(frozen=True)
class OTPIssueResult:
    phone: str
    expires_at: datetime
    delivery: NotificationResult


def generate_code() -> str:
    return f"{secrets.randbelow(10**CODE_LENGTH):0{CODE_LENGTH}d}"


def normalize_phone(phone: str) -> str:
    if not is_valid_phone_number(phone):
        raise InvalidPhoneError("Invalid phone number.")
    return format_phone_number(phone)


def _blocked_error(blocked_until: datetime, now: datetime) -> OTPRateLimitError:
    seconds = max(1, math.ceil((blocked_until - now).total_seconds()))
    minutes = math.ceil(seconds / 60)
    return OTPRateLimitError(
        f"Too many attempts. Please try again in {minutes} minute{'s' if minutes != 1 else ''}.",
        retry_after=seconds,
    )


def _cooldown_error(last_sent_at: datetime, policy: OTPPolicy, now: datetime) -> OTPRateLimitError:
    seconds = max(1, math.ceil((last_sent_at + policy.resend_cooldown - now).total_seconds()))
    return OTPRateLimitError(
        f"Please wait {seconds} seconds before requesting a new code.",
        retry_after=seconds,
    )


async def _get_record(session: AsyncSession, phone: str) -> OTPCode | None:
    stmt = (
        select(OTPCode)
        .where(OTPCode.phone == phone)
        .execution_options(populate_existing=True)
    )
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def issue_otp(
    session: AsyncSession,
    notifier: Notifier,
    phone: str,
    policy: OTPPolicy | None = None,
    *,
    now: datetime | None = None,
) -> OTPIssueResult:
    """Store a fresh code for ``phone`` and send it over WhatsApp.

    Raises OTPRateLimitError while the number is locked or inside the
    resend cooldown. A delivery failure is logged, not raised: the stored
    code stays valid.
    """
    policy = policy or OTPPolicy.from_settings()
    now = now or datetime.now(UTC)
    phone = normalize_phone(phone)

    existing = await _get_record(session, phone)
    if existing is not None:
        if existing.blocked_until is not None and existing.blocked_until > now:
            raise _blocked_error(existing.blocked_until, now)
        if existing.last_sent_at is not None and existing.last_sent_at > now - policy.resend_cooldown:
            raise _cooldown_error(existing.last_sent_at, policy, now)

    code = generate_code()
    expires_at = now + policy.ttl
    insert_stmt = pg_insert(OTPCode).values(
        phone=phone,
        code=code,
        expires_at=expires_at,
        created_at=now,
        attempts=0,
        blocked_until=None,
        last_sent_at=now,
        last_attempt_at=None,
    )
    stmt = insert_stmt.on_conflict_do_update(
        index_elements=[OTPCode.phone],
        set_={
            "code": insert_stmt.excluded.code,
            "expires_at": insert_stmt.excluded.expires_at,
            "created_at": insert_stmt.excluded.created_at,
            "attempts": 0,
            "blocked_until": None,
            "last_sent_at": insert_stmt.excluded.last_sent_at,
            "last_attempt_at": None,
        },
        where=and_(
            OTPCode.last_sent_at <= now - policy.resend_cooldown,
            or_(OTPCode.blocked_until.is_(None), OTPCode.blocked_until <= now),
        ),
    ).returning(OTPCode.phone)
    if (await session.execute(stmt)).scalar_one_or_none() is None:
        # A concurrent request issued a code between our read and write
        await session.rollback()
        raise _cooldown_error(now, policy, now)
    await session.commit()

    delivery = await notifier.send_otp(phone, code, math.ceil(policy.ttl.total_seconds() / 60))
    if not delivery.ok:
        logger.warning("OTP for %s stored but not delivered (%s)", phone, delivery.status.value)
    return OTPIssueResult(phone=phone, expires_at=expires_at, delivery=delivery)


async def consume_otp(
    session: AsyncSession,
    phone: str,
    code: str,
    policy: OTPPolicy | None = None,
    *,
    now: datetime | None = None,
) -> str:
    """Verify and consume ``code`` for ``phone``. Returns the normalized phone.

    A matching code is deleted in the same statement that proves the match,
    so it can be used once. Expired codes are deleted on sight. Wrong codes
    increment the attempt counter and lock the number once the limit is hit.
    """
    policy = policy or OTPPolicy.from_settings()
    now = now or datetime.now(UTC)
    phone = normalize_phone(phone)
    code = (code or "").strip()

    record = await _get_record(session, phone)
    if record is None:
        raise OTPVerificationError("No verification code found. Please request a new code.")

    if record.blocked_until is not None and record.blocked_until > now:
        raise _blocked_error(record.blocked_until, now)

    if now > record.expires_at:
        await session.execute(
            delete(OTPCode).where(OTPCode.phone == phone, OTPCode.code == record.code)
        )
        await session.commit()
        raise OTPVerificationError("Verification code has expired. Please request a new code.")

    if not hmac.compare_digest(record.code.encode(), code.encode()):
        new_attempts = OTPCode.attempts + 1
        stmt = (
            update(OTPCode)
            .where(OTPCode.phone == phone)
            .values(
                attempts=new_attempts,
                last_attempt_at=now,
                blocked_until=case(
                    (new_attempts >= policy.max_attempts, now + policy.block_duration),
                    else_=OTPCode.blocked_until,
                ),
            )
            .returning(OTPCode.attempts, OTPCode.blocked_until)
        )
        row = (await session.execute(stmt)).one_or_none()
        await session.commit()
        if row is None:
            raise OTPVerificationError("No verification code found. Please request a new code.")
        attempts, blocked_until = row
        if blocked_until is not None and blocked_until > now:
            logger.warning("Phone %s locked after %s failed OTP attempts", phone, attempts)
            raise _blocked_error(blocked_until, now)
        remaining = max(0, policy.max_attempts - attempts)
        raise OTPVerificationError(
            f"Invalid verification code. {remaining} attempt{'s' if remaining != 1 else ''} remaining."
        )

    stmt = (
        delete(OTPCode)
        .where(OTPCode.phone == phone, OTPCode.code == code, OTPCode.expires_at >= now)
        .returning(OTPCode.phone)
    )
    consumed = (await session.execute(stmt)).scalar_one_or_none()
    await session.commit()
    if consumed is None:
        raise OTPVerificationError("Verification code has already been used.")
    logger.info("OTP verified for %s", phone)
    return phone
