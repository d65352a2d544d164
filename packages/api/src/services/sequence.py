# This project was developed with assistance from AI tools.
"""Date-scoped document numbers (``INV-20260314-007``, ``ORD-20260314-012``).

Each (prefix, UTC day) pair owns one counter row in ``document_sequences``.
The counter is bumped with a single ``INSERT ... ON CONFLICT DO UPDATE ...
RETURNING`` so two concurrent checkouts can never draw the same number; the
unique constraints on ``invoices.invoice_number`` and
``applications.order_number`` remain as the backstop.
"""

import logging
from datetime import UTC, datetime

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession
from tasheel_db import DocumentSequence

logger = logging.getLogger(__name__)

INVOICE_PREFIX = "INV"
ORDER_PREFIX = "ORD"


def day_key(now: datetime | None = None) -> str:
    """UTC calendar day as ``YYYYMMDD``."""
    now = now or datetime.now(UTC)
    if now.tzinfo is not None:
        now = now.astimezone(UTC)
    return now.strftime("%Y%m%d")


def format_document_number(prefix: str, key: str, value: int) -> str:
    return f"{prefix}-{key}-{value:03d}"


async def next_document_number(
    session: AsyncSession,
    prefix: str,
    now: datetime | None = None,
) -> str:
    """Atomically draw the next number for ``prefix`` on the current UTC day."""
    key = day_key(now)
    stmt = (
        pg_insert(DocumentSequence)
        .values(prefix=prefix, day_key=key, last_value=1)
        .on_conflict_do_update(
            index_elements=[DocumentSequence.prefix, DocumentSequence.day_key],
            set_={"last_value": DocumentSequence.last_value + 1},
        )
        .returning(DocumentSequence.last_value)
    )
    value = (await session.execute(stmt)).scalar_one()
    number = format_document_number(prefix, key, value)
    logger.debug("Issued document number %s", number)
    return number


async def next_invoice_number(session: AsyncSession, now: datetime | None = None) -> str:
    return await next_document_number(session, INVOICE_PREFIX, now)


async def next_order_number(session: AsyncSession, now: datetime | None = None) -> str:
    return await next_document_number(session, ORDER_PREFIX, now)
