# This project was developed with assistance from AI tools.
"""Shared data scope filtering for service queries.

Customers only ever see applications (and the invoices hanging off them)
whose ``customer_id`` matches the claim on their token.
"""

from sqlalchemy import false
from tasheel_db import Application

from ..schemas.auth import DataScope


def apply_data_scope(stmt, scope: DataScope, *, join_to_application=None):
    """Restrict a select to rows the caller may see.

    Args:
        stmt: A SQLAlchemy select statement.
        scope: The caller's DataScope.
        join_to_application: ORM relationship attribute to join to reach
            Application (e.g. ``Invoice.application``). ``None`` when the
            statement already selects from Application.
    """
    if scope.full_access:
        return stmt
    if join_to_application is not None:
        stmt = stmt.join(join_to_application)
    if scope.customer_id is None:
        return stmt.where(false())
    return stmt.where(Application.customer_id == scope.customer_id)
