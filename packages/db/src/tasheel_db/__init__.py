# This project was developed with assistance from AI tools.
__version__ = "0.1.0"

from .database import Base, DatabaseService, SessionLocal, get_db, get_db_service
from .enums import (
    ApplicationStatus,
    DeliveryType,
    InvoiceStatus,
    PaymentGateway,
    PricingType,
    ShippingLocation,
    UserRole,
)
from .models import (
    Account,
    Application,
    ApplicationAttachment,
    ApplicationEvent,
    Customer,
    DocumentSequence,
    Invoice,
    OTPCode,
    Payment,
    Service,
)

__all__ = [
    "Base",
    "DatabaseService",
    "SessionLocal",
    "get_db",
    "get_db_service",
    "__version__",
    # Enums
    "ApplicationStatus",
    "InvoiceStatus",
    "PaymentGateway",
    "PricingType",
    "ShippingLocation",
    "DeliveryType",
    "UserRole",
    # Models
    "Account",
    "Application",
    "ApplicationAttachment",
    "ApplicationEvent",
    "Customer",
    "DocumentSequence",
    "Invoice",
    "OTPCode",
    "Payment",
    "Service",
]
