# This project was developed with assistance from AI tools.
"""Persona factories for functional tests.

Each function returns a UserContext matching the DataScope built by
``middleware/auth.py:build_data_scope()`` for that role. Fixed IDs ensure
cross-test consistency.
"""

from tasheel_db.enums import UserRole

from tasheel_api.schemas.auth import DataScope, UserContext

SARAH_USER_ID = "sarah-haddad-001"
SARAH_CUSTOMER_ID = 7
OMAR_USER_ID = "omar-khalil-002"
OMAR_CUSTOMER_ID = 8
ADMIN_USER_ID = "admin-user"


def customer_sarah() -> UserContext:
    return UserContext(
        user_id=SARAH_USER_ID,
        role=UserRole.CUSTOMER,
        email="sarah@example.com",
        name="Sarah Haddad",
        customer_id=SARAH_CUSTOMER_ID,
        data_scope=DataScope(own_data_only=True, customer_id=SARAH_CUSTOMER_ID),
    )


def customer_omar() -> UserContext:
    return UserContext(
        user_id=OMAR_USER_ID,
        role=UserRole.CUSTOMER,
        email="omar@example.com",
        name="Omar Khalil",
        customer_id=OMAR_CUSTOMER_ID,
        data_scope=DataScope(own_data_only=True, customer_id=OMAR_CUSTOMER_ID),
    )


def admin() -> UserContext:
    return UserContext(
        user_id=ADMIN_USER_ID,
        role=UserRole.ADMIN,
        email="admin@tasheel.ps",
        name="Admin User",
        data_scope=DataScope(full_access=True),
    )
