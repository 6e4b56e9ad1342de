"""
Booking and Calendar Event Models
"""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import deferred, relationship
from sqlalchemy.sql import func

from .database import Base


class Booking(Base):
    """A scheduled appointment for a service"""

    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    business_id = Column(
        String(36), ForeignKey("business.id", ondelete="CASCADE"), index=True, nullable=False
    )
    service_id = Column(String(36), ForeignKey("services.id", ondelete="SET NULL"), nullable=True)

    # Customer fields are stored directly on the booking (no FK)
    customer_name = Column(String(255), nullable=True)
    customer_email = Column(String(255), nullable=True)
    customer_phone = Column(String(50), nullable=True)

    start_at = Column(DateTime(timezone=True), nullable=False, index=True)
    end_at = Column(DateTime(timezone=True), nullable=False)

    # Price snapshot at booking time. Missing on older deployments, see SchemaCapabilities.
    price_cents = deferred(Column(Integer, nullable=False, server_default="0"))

    status = Column(String(50), default="scheduled", nullable=False)
    notes = Column(Text, nullable=True)
    invoice_id = Column(Integer, ForeignKey("invoices.id", ondelete="SET NULL"), nullable=True)

    # Payment tracking
    payment_status = Column(String(20), default="unpaid", nullable=False)  # unpaid, paid
    is_paid = Column(Boolean, default=False, nullable=False)
    paid_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    service = relationship("Service")

    __mapper_args__ = {"eager_defaults": False}


class CalendarEvent(Base):
    """Display/export projection of a booking's time window"""

    __tablename__ = "calendar_events"

    id = Column(Integer, primary_key=True, index=True)
    business_id = Column(
        String(36), ForeignKey("business.id", ondelete="CASCADE"), index=True, nullable=False
    )
    booking_id = Column(Integer, ForeignKey("bookings.id", ondelete="CASCADE"), nullable=True)
    title = Column(String(500), nullable=False)
    start_at = Column(DateTime(timezone=True), nullable=False, index=True)
    end_at = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
