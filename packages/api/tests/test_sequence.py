# This project was developed with assistance from AI tools.
"""Tests for date-scoped document numbering."""

from datetime import UTC, datetime, timedelta, timezone

from sqlalchemy.dialects import postgresql

from tasheel_api.services.sequence import (
    day_key,
    format_document_number,
    next_invoice_number,
    next_order_number,
)

from .factories import make_result, make_session


def test_day_key_uses_utc():
    """23:30 in Gaza (UTC+2) on the 14th is still the 14th in UTC; 01:00 local is the 13th."""
    gaza = timezone(timedelta(hours=2))
    assert day_key(datetime(2026, 3, 14, 23, 30, tzinfo=gaza)) == "20260314"
    assert day_key(datetime(2026, 3, 14, 1, 0, tzinfo=gaza)) == "20260313"


def test_format_pads_to_three_digits():
    assert format_document_number("INV", "20260314", 7) == "INV-20260314-007"
    assert format_document_number("INV", "20260314", 1234) == "INV-20260314-1234"


async def test_next_invoice_number_uses_counter_value():
    session = make_session(make_result(scalar=12))
    now = datetime(2026, 3, 14, 12, 0, tzinfo=UTC)

    number = await next_invoice_number(session, now)

    assert number == "INV-20260314-012"
    session.execute.assert_awaited_once()


async def test_counter_is_a_single_upsert():
    """The increment happens in one INSERT ... ON CONFLICT DO UPDATE ... RETURNING."""
    session = make_session(make_result(scalar=1))

    await next_order_number(session, datetime(2026, 3, 14, tzinfo=UTC))

    stmt = session.execute.await_args.args[0]
    sql = str(stmt.compile(dialect=postgresql.dialect()))
    assert "ON CONFLICT (prefix, day_key) DO UPDATE" in sql
    assert "RETURNING document_sequences.last_value" in sql
