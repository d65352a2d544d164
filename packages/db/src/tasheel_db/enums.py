# This project was developed with assistance from AI tools.
"""
Domain enums for the service-request lifecycle.

Shared domain types used by both SQLAlchemy models (tasheel_db package)
and Pydantic schemas (tasheel_api package).
"""

import enum


class ApplicationStatus(str, enum.Enum):
    DRAFT = "draft"
    SUBMITTED = "submitted"
    SCOPING = "scoping"
    QUOTE_SENT = "quote_sent"
    IN_PROGRESS = "in_progress"
    REVIEW = "review"
    COMPLETED = "completed"
    REJECTED = "rejected"
    CANCELLED = "cancelled"
    ARCHIVED = "archived"

    @classmethod
    def terminal_statuses(cls) -> frozenset["ApplicationStatus"]:
        """Statuses where an application is no longer being worked on."""
        return frozenset({cls.COMPLETED, cls.REJECTED, cls.CANCELLED, cls.ARCHIVED})

    @classmethod
    def payable_statuses(cls) -> frozenset["ApplicationStatus"]:
        """Statuses a confirmed payment may advance to in_progress."""
        return frozenset({cls.SUBMITTED, cls.QUOTE_SENT})

    @classmethod
    def valid_transitions(cls) -> dict["ApplicationStatus", frozenset["ApplicationStatus"]]:
        """Allowed status transitions in the request lifecycle."""
        side = frozenset({cls.REJECTED, cls.CANCELLED, cls.ARCHIVED})
        return {
            cls.DRAFT: frozenset({cls.SUBMITTED}) | side,
            cls.SUBMITTED: frozenset({cls.SCOPING, cls.QUOTE_SENT, cls.IN_PROGRESS}) | side,
            cls.SCOPING: frozenset({cls.QUOTE_SENT}) | side,
            cls.QUOTE_SENT: frozenset({cls.IN_PROGRESS}) | side,
            cls.IN_PROGRESS: frozenset({cls.REVIEW, cls.COMPLETED}) | side,
            cls.REVIEW: frozenset({cls.COMPLETED}) | side,
            cls.COMPLETED: frozenset({cls.ARCHIVED}),
            cls.REJECTED: frozenset({cls.ARCHIVED}),
            cls.CANCELLED: frozenset({cls.ARCHIVED}),
            cls.ARCHIVED: frozenset(),
        }


class InvoiceStatus(str, enum.Enum):
    PENDING = "pending"
    QUOTE = "quote"
    PAID = "paid"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @classmethod
    def terminal_statuses(cls) -> frozenset["InvoiceStatus"]:
        return frozenset({cls.PAID, cls.FAILED, cls.CANCELLED})

    @classmethod
    def open_statuses(cls) -> frozenset["InvoiceStatus"]:
        """Statuses whose amount may still be overridden by an admin."""
        return frozenset({cls.PENDING, cls.QUOTE})

    @classmethod
    def settleable_statuses(cls) -> frozenset["InvoiceStatus"]:
        """Statuses a paid callback may settle. A declined attempt can be retried."""
        return cls.open_statuses() | {cls.FAILED}


class PaymentGateway(str, enum.Enum):
    PALPAY = "palpay"
    PAYTABS = "paytabs"
    GENERIC = "generic"


class PricingType(str, enum.Enum):
    FIXED = "fixed"
    QUOTE = "quote"


class ShippingLocation(str, enum.Enum):
    WEST_BANK = "west_bank"
    JERUSALEM = "jerusalem"
    AREA_48 = "area_48"
    INTERNATIONAL = "international"


class DeliveryType(str, enum.Enum):
    SINGLE = "single"
    MULTIPLE = "multiple"


class UserRole(str, enum.Enum):
    ADMIN = "admin"
    CUSTOMER = "customer"
