# This project was developed with assistance from AI tools.
"""
Tasheel -- domain models

Service-request lifecycle models covering customers and their login
accounts, the service catalog, applications, invoices, payments, the
application event trail, OTP codes, and date-scoped document counters.
"""

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    PrimaryKeyConstraint,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import relationship

from .database import Base
from .enums import ApplicationStatus, InvoiceStatus, PricingType


class Account(Base):
    """Login identity. Phone-only accounts carry a synthetic email."""

    __tablename__ = "accounts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    phone = Column(String(20), unique=True, nullable=True, index=True)
    password_hash = Column(String(255), nullable=True)
    email_confirmed = Column(Boolean, nullable=False, default=False)
    phone_confirmed = Column(Boolean, nullable=False, default=False)
    user_metadata = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    customer = relationship("Customer", back_populates="account", uselist=False)

    def __repr__(self):
        return f"<Account(id={self.id}, email='{self.email}')>"


class Customer(Base):
    """Customer profile attached to an account."""

    __tablename__ = "customers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    account_id = Column(
        Integer, ForeignKey("accounts.id", ondelete="CASCADE"), unique=True, nullable=False,
    )
    email = Column(String(255), nullable=True, index=True)
    name = Column(String(255), nullable=True)
    phone = Column(String(20), nullable=True, index=True)
    language_preference = Column(String(5), nullable=False, default="ar")
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    account = relationship("Account", back_populates="customer")
    applications = relationship("Application", back_populates="customer")

    def __repr__(self):
        return f"<Customer(id={self.id}, email='{self.email}')>"


class Service(Base):
    """Catalog entry. Only the fields the order lifecycle reads are modelled."""

    __tablename__ = "services"

    id = Column(Integer, primary_key=True, autoincrement=True)
    slug = Column(String(100), unique=True, nullable=False, index=True)
    title = Column(String(255), nullable=False)
    pricing_type = Column(
        Enum(PricingType, name="pricing_type", native_enum=False),
        nullable=False,
        default=PricingType.FIXED,
    )
    price_amount = Column(Numeric(12, 2), nullable=True)
    currency = Column(String(3), nullable=False, default="ILS")
    form_fields = Column(JSON, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<Service(slug='{self.slug}', price={self.price_amount})>"


class Application(Base):
    """A customer service request."""

    __tablename__ = "applications"

    id = Column(Integer, primary_key=True, autoincrement=True)
    service_slug = Column(String(100), nullable=False, index=True)
    customer_id = Column(
        Integer, ForeignKey("customers.id", ondelete="SET NULL"), nullable=True, index=True,
    )
    status = Column(
        Enum(ApplicationStatus, name="application_status", native_enum=False),
        nullable=False,
        default=ApplicationStatus.DRAFT,
        index=True,
    )
    applicant_email = Column(String(255), nullable=True)
    customer_name = Column(String(255), nullable=True)
    customer_phone = Column(String(20), nullable=True)
    urgency = Column(String(20), nullable=True)
    payload = Column(JSON, nullable=True)
    order_number = Column(String(32), unique=True, nullable=True)
    submitted_at = Column(DateTime(timezone=True), nullable=True)
    last_event_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    customer = relationship("Customer", back_populates="applications")
    attachments = relationship(
        "ApplicationAttachment", back_populates="application", cascade="all, delete-orphan",
    )
    invoices = relationship("Invoice", back_populates="application")
    events = relationship("ApplicationEvent", back_populates="application")

    def __repr__(self):
        return f"<Application(id={self.id}, status='{self.status}')>"


class ApplicationAttachment(Base):
    """Metadata for a file uploaded against an application."""

    __tablename__ = "application_attachments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    application_id = Column(
        Integer, ForeignKey("applications.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    file_name = Column(String(500), nullable=False)
    storage_path = Column(String(500), nullable=False)
    file_size = Column(Integer, nullable=True)
    content_type = Column(String(100), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    application = relationship("Application", back_populates="attachments")

    def __repr__(self):
        return f"<ApplicationAttachment(app_id={self.application_id}, file='{self.file_name}')>"


class Invoice(Base):
    """Billable document tied to one payment attempt cycle."""

    __tablename__ = "invoices"

    id = Column(Integer, primary_key=True, autoincrement=True)
    application_id = Column(
        Integer, ForeignKey("applications.id", ondelete="RESTRICT"), nullable=False, index=True,
    )
    invoice_number = Column(String(32), unique=True, nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="ILS")
    status = Column(
        Enum(InvoiceStatus, name="invoice_status", native_enum=False),
        nullable=False,
        default=InvoiceStatus.PENDING,
        index=True,
    )
    due_date = Column(DateTime(timezone=True), nullable=True)
    notes = Column(Text, nullable=True)
    payment_session_id = Column(String(255), nullable=True)
    payment_link = Column(Text, nullable=True)
    transaction_id = Column(String(255), nullable=True)
    paid_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    application = relationship("Application", back_populates="invoices")
    payments = relationship("Payment", back_populates="invoice")

    def __repr__(self):
        return f"<Invoice(number='{self.invoice_number}', status='{self.status}')>"


class Payment(Base):
    """Settlement record, one per confirmed gateway transaction. Insert-only."""

    __tablename__ = "payments"
    __table_args__ = (
        UniqueConstraint("gateway", "transaction_id", name="uq_payment_gateway_transaction"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    invoice_id = Column(
        Integer, ForeignKey("invoices.id", ondelete="RESTRICT"), nullable=False, index=True,
    )
    gateway = Column(String(50), nullable=False)
    transaction_id = Column(String(255), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    status = Column(String(50), nullable=False)
    gateway_response = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    invoice = relationship("Invoice", back_populates="payments")

    def __repr__(self):
        return f"<Payment(invoice_id={self.invoice_id}, txn='{self.transaction_id}')>"


class ApplicationEvent(Base):
    """Append-only audit trail entry for an application."""

    __tablename__ = "application_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    application_id = Column(
        Integer, ForeignKey("applications.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    event_type = Column(String(100), nullable=False, index=True)
    notes = Column(Text, nullable=True)
    data = Column(JSON, nullable=True)
    actor = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    application = relationship("Application", back_populates="events")

    def __repr__(self):
        return f"<ApplicationEvent(app_id={self.application_id}, type='{self.event_type}')>"


class OTPCode(Base):
    """One row per phone number holding the live code and rate-limit state."""

    __tablename__ = "otp_codes"

    phone = Column(String(20), primary_key=True)
    code = Column(String(6), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False)
    attempts = Column(Integer, nullable=False, default=0)
    blocked_until = Column(DateTime(timezone=True), nullable=True)
    last_sent_at = Column(DateTime(timezone=True), nullable=False)
    last_attempt_at = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self):
        return f"<OTPCode(phone='{self.phone}', attempts={self.attempts})>"


class DocumentSequence(Base):
    """Per-day counter backing invoice and order numbers."""

    __tablename__ = "document_sequences"
    __table_args__ = (PrimaryKeyConstraint("prefix", "day_key", name="pk_document_sequences"),)

    prefix = Column(String(8), nullable=False)
    day_key = Column(String(8), nullable=False)
    last_value = Column(Integer, nullable=False, default=0)

    def __repr__(self):
        return f"<DocumentSequence({self.prefix}-{self.day_key}: {self.last_value})>"
