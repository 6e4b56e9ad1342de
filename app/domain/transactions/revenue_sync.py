"""
Invoice -> revenue transaction sync.

A revenue transaction exists only while its invoice is paid. Rows are keyed
by (business_id, invoice_id), so repeated upserts update one row instead of
adding more.
"""

import logging
from datetime import date
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...models_booking import Booking
from ...models_invoice import Invoice
from ...models_transaction import Transaction
from .repository import TransactionRepository

logger = logging.getLogger(__name__)

UNKNOWN_CUSTOMER = "Unknown Customer (Needs Review)"


def _linked_service_name(db: Session, business_id: str, invoice_id: int) -> Optional[str]:
    booking = (
        db.query(Booking)
        .filter(Booking.business_id == business_id, Booking.invoice_id == invoice_id)
        .order_by(Booking.id.desc())
        .first()
    )
    if booking and booking.service and booking.service.name:
        return booking.service.name
    return None


def _revenue_fields(
    db: Session,
    invoice: Invoice,
    description_override: Optional[str] = None,
    source_override: Optional[str] = None,
    booking_id_override=None,
) -> dict:
    invoice_number = (invoice.invoice_number or "").strip() or f"INV-{invoice.id}"
    amount = abs(float(invoice.total or invoice.subtotal or 0))
    description = (
        (description_override or "").strip()
        or _linked_service_name(db, invoice.business_id, invoice.id)
        or f"Invoice {invoice_number}"
    )
    if booking_id_override is not None:
        booking_id = str(booking_id_override)
    elif invoice.booking_id is not None:
        booking_id = str(invoice.booking_id)
    else:
        booking_id = None

    return {
        "date": invoice.issue_date or date.today(),
        "amount": amount,
        "amount_cents": int(round(amount * 100)),
        "type": "income",
        "category": "Services",
        "description": description,
        "customer_name": (invoice.client_name or "").strip() or UNKNOWN_CUSTOMER,
        "source": (source_override or invoice.source or "").strip() or None,
        "booking_id": booking_id,
    }


def upsert_revenue_transaction_for_invoice(
    db: Session,
    invoice: Invoice,
    description_override: Optional[str] = None,
    source_override: Optional[str] = None,
    booking_id_override=None,
) -> Optional[Transaction]:
    """Create or update the single revenue transaction for a paid invoice"""
    if invoice is None or not invoice.id:
        return None

    repo = TransactionRepository()
    business_id = invoice.business_id
    invoice_id = invoice.id
    fields = _revenue_fields(
        db, invoice, description_override, source_override, booking_id_override
    )

    rows = repo.get_invoice_transactions(db, business_id, invoice_id)
    if len(rows) > 1:
        # Historical duplicates: keep the lowest id
        extras = [row.id for row in rows[1:]]
        repo.delete_transactions(db, business_id, extras)
        logger.warning(f"⚠️ Removed {len(extras)} duplicate transactions for invoice {invoice_id}")

    if rows:
        transaction = repo.update_transaction(db, rows[0], **fields)
        logger.info(f"✅ Revenue transaction {transaction.id} updated for invoice {invoice_id}")
        return transaction

    try:
        transaction = repo.create_transaction(db, business_id, invoice_id=invoice_id, **fields)
    except IntegrityError:
        # Another request inserted the row between our select and insert
        db.rollback()
        existing = repo.get_invoice_transactions(db, business_id, invoice_id)
        if not existing:
            raise
        transaction = repo.update_transaction(db, existing[0], **fields)

    logger.info(f"✅ Revenue transaction {transaction.id} recorded for invoice {invoice_id}")
    return transaction


def delete_invoice_linked_transactions(db: Session, business_id: str, invoice_id: int) -> int:
    """Remove revenue transactions for an invoice. No-op when none exist."""
    if not invoice_id:
        return 0
    deleted = TransactionRepository.delete_invoice_transactions(db, business_id, invoice_id)
    if deleted:
        logger.info(f"🗑️ Deleted {deleted} transaction(s) linked to invoice {invoice_id}")
    return deleted


def sync_revenue_transaction(db: Session, invoice: Invoice) -> Optional[Transaction]:
    """Make transaction existence match the invoice status"""
    if invoice.status == "paid":
        return upsert_revenue_transaction_for_invoice(db, invoice)
    delete_invoice_linked_transactions(db, invoice.business_id, invoice.id)
    return None
