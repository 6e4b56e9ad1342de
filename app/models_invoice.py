"""
Invoice Models for booking-driven billing
"""

from sqlalchemy import Column, Date, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import deferred, relationship
from sqlalchemy.sql import func

from .database import Base


class Invoice(Base):
    """Billing document, one per booking"""

    __tablename__ = "invoices"

    id = Column(Integer, primary_key=True, index=True)
    business_id = Column(
        String(36), ForeignKey("business.id", ondelete="CASCADE"), index=True, nullable=False
    )
    invoice_number = Column(String(50), nullable=False, index=True)
    client_name = Column(String(255), nullable=True)

    # Dates
    issue_date = Column(Date, nullable=True)
    due_date = Column(Date, nullable=True)

    status = Column(String(20), default="draft", nullable=False)  # draft, sent, paid, overdue, void

    # Pricing (major units)
    subtotal = Column(Float, default=0, nullable=False)
    tax = Column(Float, default=0, nullable=False)
    total = Column(Float, default=0, nullable=False)
    # Missing on older deployments, see SchemaCapabilities
    amount_paid = deferred(Column(Float, nullable=False, server_default="0"))

    notes = Column(Text, nullable=True)
    source = Column(String(20), default="manual", nullable=False)  # manual, booking
    # Plain column (no FK) so bookings <-> invoices stay acyclic
    booking_id = Column(Integer, nullable=True, index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    items = relationship("InvoiceItem", back_populates="invoice", cascade="all, delete-orphan")

    __mapper_args__ = {"eager_defaults": False}


class InvoiceItem(Base):
    __tablename__ = "invoice_items"

    id = Column(Integer, primary_key=True, index=True)
    invoice_id = Column(Integer, ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False)
    description = Column(String(500), nullable=False)
    quantity = Column(Float, default=1, nullable=False)
    unit_price = Column(Float, default=0, nullable=False)

    invoice = relationship("Invoice", back_populates="items")
