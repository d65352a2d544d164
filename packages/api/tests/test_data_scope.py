# This project was developed with assistance from AI tools.
"""Unit tests for data scope filtering (services.scope.apply_data_scope).

Customers only reach rows whose application carries their customer_id;
admins see everything; a customer token with no profile sees nothing.
"""

from sqlalchemy import select
from sqlalchemy.dialects import postgresql
from tasheel_db import Application, Invoice

from tasheel_api.schemas.auth import DataScope
from tasheel_api.services.scope import apply_data_scope


def _sql(stmt) -> str:
    return str(stmt.compile(dialect=postgresql.dialect(), compile_kwargs={"literal_binds": True}))


def test_full_access_leaves_query_untouched():
    stmt = select(Application)
    assert apply_data_scope(stmt, DataScope(full_access=True)) is stmt


def test_customer_scope_filters_by_customer_id():
    sql = _sql(apply_data_scope(select(Application), DataScope(own_data_only=True, customer_id=7)))
    assert "applications.customer_id = 7" in sql


def test_customer_without_profile_sees_nothing():
    sql = _sql(apply_data_scope(select(Application), DataScope(own_data_only=True)))
    assert "false" in sql.lower()


def test_invoice_query_joins_application():
    stmt = apply_data_scope(
        select(Invoice),
        DataScope(own_data_only=True, customer_id=8),
        join_to_application=Invoice.application,
    )
    sql = _sql(stmt)
    assert "JOIN applications" in sql
    assert "applications.customer_id = 8" in sql


def test_admin_invoice_query_has_no_join():
    sql = _sql(
        apply_data_scope(
            select(Invoice), DataScope(full_access=True), join_to_application=Invoice.application
        )
    )
    assert "JOIN" not in sql
