from sqlalchemy import Column, String, Boolean, DateTime, Numeric, Text, ForeignKey
from datetime import datetime
from database import Base

# Subscription status values
STATUS_TRIAL = "trial"
STATUS_ACTIVE = "active"
STATUS_EXPIRED = "expired"
STATUS_CANCELLED = "cancelled"

# Invoice status values
INVOICE_PENDING = "pending"
INVOICE_SENT = "sent"


class User(Base):
    """
    Registered account. Identified by an opaque string id.
    """
    __tablename__ = "users"

    id = Column(String, primary_key=True, index=True)
    username = Column(String, unique=True, nullable=False, index=True)
    password_hash = Column(String, nullable=False)
    email = Column(String, nullable=True, index=True)
    email_verified = Column(Boolean, default=False, nullable=False)
    email_verification_token = Column(String, nullable=True, index=True)
    trial_active = Column(Boolean, default=False, nullable=False)
    subscription_id = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class CV(Base):
    """
    Structured CV document. `data` holds the client's JSON payload verbatim.
    """
    __tablename__ = "cvs"

    id = Column(String, primary_key=True, index=True)
    user_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    name = Column(String, nullable=True)
    data = Column(Text, nullable=False, default="{}")
    slug = Column(String, unique=True, nullable=False, index=True)
    is_public = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class Lead(Base):
    """
    Prospective customer captured by the sales form.
    """
    __tablename__ = "leads"

    id = Column(String, primary_key=True, index=True)
    user_id = Column(String, ForeignKey("users.id"), nullable=True, index=True)
    name = Column(String, nullable=False)
    email = Column(String, nullable=False)
    phone = Column(String, nullable=True)
    company = Column(String, nullable=True)
    plan = Column(String, nullable=False)
    requires_invoice = Column(Boolean, default=False, nullable=False)
    tax_id = Column(String, nullable=True)
    business_name = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class Subscription(Base):
    """
    Lifecycle-bearing record. Status moves trial -> active/expired and
    active -> expired; expired and cancelled are terminal.
    """
    __tablename__ = "subscriptions"

    id = Column(String, primary_key=True, index=True)
    user_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    lead_id = Column(String, ForeignKey("leads.id"), nullable=True)
    plan = Column(String, nullable=False)
    base_price = Column(Numeric(10, 2), nullable=False)
    requires_invoice = Column(Boolean, default=False, nullable=False)
    tax_amount = Column(Numeric(10, 2), nullable=False)
    total = Column(Numeric(10, 2), nullable=False)
    status = Column(String, nullable=False, default=STATUS_TRIAL, index=True)
    trial_start = Column(DateTime, nullable=False)
    trial_end = Column(DateTime, nullable=False, index=True)
    subscription_start = Column(DateTime, nullable=True)
    subscription_end = Column(DateTime, nullable=True)
    payment_verified = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class Invoice(Base):
    """
    Invoice mirrored from a subscription at intake time. Amounts are never re-derived.
    """
    __tablename__ = "invoices"

    id = Column(String, primary_key=True, index=True)
    subscription_id = Column(String, ForeignKey("subscriptions.id"), nullable=False, index=True)
    user_id = Column(String, ForeignKey("users.id"), nullable=False)
    tax_id = Column(String, nullable=True)
    business_name = Column(String, nullable=True)
    subtotal = Column(Numeric(10, 2), nullable=False)
    tax = Column(Numeric(10, 2), nullable=False)
    total = Column(Numeric(10, 2), nullable=False)
    status = Column(String, nullable=False, default=INVOICE_PENDING)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    sent_at = Column(DateTime, nullable=True)
