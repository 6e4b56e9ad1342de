"""
Ledger transaction model
"""

from sqlalchemy import Column, Date, DateTime, Float, Integer, String, Text, UniqueConstraint
from sqlalchemy.sql import func

from .database import Base


class Transaction(Base):
    """Ledger entry. Revenue rows are linked 1:1 to a paid invoice."""

    __tablename__ = "transactions"
    __table_args__ = (
        # Idempotent upsert key for invoice-linked revenue
        UniqueConstraint("business_id", "invoice_id", name="transactions_business_invoice_id_uniq"),
    )

    id = Column(Integer, primary_key=True, index=True)
    business_id = Column(String(36), index=True, nullable=False)
    invoice_id = Column(Integer, nullable=True)
    booking_id = Column(String(64), nullable=True)

    date = Column(Date, nullable=False)
    amount = Column(Float, nullable=False)  # signed, positive = income
    amount_cents = Column(Integer, nullable=True)
    type = Column(String(20), default="income", nullable=False)  # income, expense
    category = Column(String(100), nullable=True)
    description = Column(Text, nullable=True)
    merchant = Column(String(255), nullable=True)
    customer_name = Column(String(255), nullable=True)
    source = Column(String(50), nullable=True)  # booking, manual, bank_feed

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
