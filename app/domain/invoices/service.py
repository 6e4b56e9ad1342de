"""Invoice service - Business logic for booking-driven invoices"""

import logging
import re
from datetime import date, datetime, timezone
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...models_invoice import Invoice
from ...schema_capabilities import SchemaCapabilities
from ...shared.validators import isoformat_utc
from .repository import InvoiceRepository

logger = logging.getLogger(__name__)


def _parse_sequence(prefix: str, invoice_number: Optional[str]) -> Optional[int]:
    raw = str(invoice_number or "").strip()
    if not raw.startswith(prefix):
        return None
    tail = raw[len(prefix) :]
    if not re.fullmatch(r"\d+", tail):
        return None
    sequence = int(tail)
    return sequence if sequence > 0 else None


class InvoiceService:
    """Service layer for invoice business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = InvoiceRepository()

    def get_invoice(self, business_id: str, invoice_id: int) -> Invoice:
        invoice = self.repo.get_invoice(self.db, business_id, invoice_id)
        if not invoice:
            raise HTTPException(status_code=404, detail="Invoice not found")
        return invoice

    def generate_invoice_number(self, business_id: str, now: Optional[datetime] = None) -> str:
        """
        Next invoice number for the business, e.g. INV-2026-007.

        The sequence is one past the highest numeric suffix for the current year,
        padded to at least three digits (it grows past 999 as needed).
        """
        now = now or datetime.now(timezone.utc)
        prefix = f"INV-{now.year}-"

        max_sequence = 0
        for number in self.repo.get_recent_invoice_numbers(self.db, business_id, prefix):
            sequence = _parse_sequence(prefix, number)
            if sequence and sequence > max_sequence:
                max_sequence = sequence

        next_sequence = max_sequence + 1
        width = max(3, len(str(next_sequence)))
        return f"{prefix}{str(next_sequence).zfill(width)}"

    def create_invoice_for_booking(
        self,
        business_id: str,
        booking_id: int,
        client_name: str,
        service_name: str,
        price: float,
        notes: Optional[str] = None,
        start_at: Optional[datetime] = None,
        end_at: Optional[datetime] = None,
        status: str = "sent",
    ) -> Invoice:
        """Create the invoice for a booking with a single line item"""
        issue_date = date.today()
        safe_price = round(float(price or 0), 2)

        booking_line = None
        if start_at:
            booking_line = f"Booking: {isoformat_utc(start_at)}"
            if end_at:
                booking_line += f" → {isoformat_utc(end_at)}"
        invoice_notes = "\n".join(
            line for line in [(notes or "").strip() or None, booking_line] if line
        )

        invoice = self.repo.create_invoice(
            self.db,
            business_id,
            invoice_number=self.generate_invoice_number(business_id),
            client_name=client_name,
            issue_date=issue_date,
            due_date=issue_date,
            status=status,
            subtotal=safe_price,
            tax=0,
            total=safe_price,
            notes=invoice_notes or None,
            source="booking",
            booking_id=booking_id,
        )
        logger.info(f"✅ Invoice {invoice.invoice_number} created for booking {booking_id}")

        try:
            self.repo.create_invoice_item(
                self.db, invoice.id, description=service_name, quantity=1, unit_price=safe_price
            )
        except SQLAlchemyError as e:
            # Invoice stands without its line item
            self.db.rollback()
            logger.error(f"⚠️ Failed to create line item for invoice {invoice.id}: {str(e)}")

        return invoice

    def append_note(self, business_id: str, invoice_id: int, line: str) -> Invoice:
        """Append a line to the invoice's notes"""
        invoice = self.get_invoice(business_id, invoice_id)
        previous = (invoice.notes or "").strip()
        combined = "\n".join(part for part in [previous or None, (line or "").strip()] if part)
        return self.repo.update_invoice(self.db, invoice, notes=combined)

    def set_status(self, invoice: Invoice, status: str) -> Invoice:
        return self.repo.update_invoice(self.db, invoice, status=status)

    def record_partial_payment(
        self, invoice: Invoice, amount: float, capabilities: SchemaCapabilities
    ) -> Invoice:
        """
        Add a payment to invoices.amount_paid when the deployment has that column.

        The invoice flips to paid once the running total covers it.
        """
        if not capabilities.invoice_amount_paid:
            logger.info(
                f"ℹ️ invoices.amount_paid not available; partial payment on invoice {invoice.id} not recorded"
            )
            return invoice

        amount_paid = round(float(invoice.amount_paid or 0) + float(amount), 2)
        updates = {"amount_paid": amount_paid}
        total = float(invoice.total or 0)
        if total > 0 and amount_paid >= total and invoice.status != "void":
            updates["status"] = "paid"
        return self.repo.update_invoice(self.db, invoice, **updates)
