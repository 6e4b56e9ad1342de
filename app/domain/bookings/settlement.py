"""
Settlement job - closes out bookings whose time has passed.

Every ended booking that is still open gets a paid invoice, is marked paid
itself, and gets its revenue transaction. Meant to be driven by an external
scheduler hitting /cron/bookings/settle.
"""

import hmac
import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import HTTPException, Request
from sqlalchemy.orm import Session

from ...config import CRON_SECRET
from ...models_booking import Booking
from ...models_invoice import Invoice
from ...schema_capabilities import SchemaCapabilities
from ...shared.validators import isoformat_utc, to_utc
from ..invoices.service import InvoiceService
from ..transactions.revenue_sync import upsert_revenue_transaction_for_invoice
from .repository import BookingRepository

logger = logging.getLogger(__name__)

OPEN_STATUSES = ("pending", "scheduled", "confirmed")
BATCH_LIMIT = 200


def verify_cron_secret(request: Request, secret: Optional[str] = None) -> None:
    """Accept the shared secret from x-cron-secret, x-cron-key or a Bearer token"""
    expected = secret if secret is not None else CRON_SECRET
    if not expected:
        logger.error("❌ CRON_SECRET not configured")
        raise HTTPException(status_code=500, detail="Missing CRON_SECRET")

    provided = request.headers.get("x-cron-secret") or request.headers.get("x-cron-key") or ""
    if not provided:
        auth_header = request.headers.get("authorization") or ""
        if auth_header.lower().startswith("bearer "):
            provided = auth_header[7:].strip()

    if not provided or not hmac.compare_digest(provided.encode(), expected.encode()):
        logger.warning(f"⚠️ Invalid cron secret from {request.client.host if request.client else 'unknown'}")
        raise HTTPException(status_code=401, detail="Unauthorized")


def _ensure_invoice(
    db: Session,
    invoices: InvoiceService,
    booking: Booking,
    capabilities: SchemaCapabilities,
) -> tuple[Invoice, bool]:
    """Linked invoice for the booking, creating a paid one if none exists"""
    business_id = booking.business_id
    invoice = None
    if booking.invoice_id:
        invoice = invoices.repo.get_invoice(db, business_id, booking.invoice_id)
    if invoice is None:
        invoice = invoices.repo.get_invoice_for_booking(db, business_id, booking.id)
    if invoice is not None:
        if booking.invoice_id != invoice.id:
            BookingRepository.update_booking(db, booking, invoice_id=invoice.id)
        return invoice, False

    service = booking.service
    price_cents = 0
    if capabilities.booking_price_snapshot and booking.price_cents:
        price_cents = int(booking.price_cents)
    elif service is not None:
        price_cents = int(service.price_cents or 0)

    invoice = invoices.create_invoice_for_booking(
        business_id=business_id,
        booking_id=booking.id,
        client_name=booking.customer_name or "Customer",
        service_name=(service.name if service else None) or "Service",
        price=round(max(0, price_cents) / 100, 2),
        notes=booking.notes,
        start_at=booking.start_at,
        end_at=booking.end_at,
        status="paid",
    )
    BookingRepository.update_booking(db, booking, invoice_id=invoice.id)
    return invoice, True


def settle_ended_bookings(
    db: Session,
    capabilities: SchemaCapabilities,
    now: Optional[datetime] = None,
) -> dict:
    """Settle up to BATCH_LIMIT ended bookings, oldest first"""
    now = to_utc(now) if now else datetime.now(timezone.utc)
    invoices = InvoiceService(db)

    bookings = BookingRepository.get_unsettled_ended(db, now, OPEN_STATUSES, limit=BATCH_LIMIT)
    logger.info(f"🕐 Settlement run at {isoformat_utc(now)}: {len(bookings)} ended bookings")

    processed = 0
    created_invoices = 0
    upserted_transactions = 0
    errors = []

    for booking in bookings:
        booking_id = booking.id
        try:
            invoice, created = _ensure_invoice(db, invoices, booking, capabilities)
            if created:
                created_invoices += 1

            if invoice.status != "paid":
                invoice = invoices.set_status(invoice, "paid")

            BookingRepository.update_booking(
                db,
                booking,
                status="paid",
                payment_status="paid",
                is_paid=True,
                paid_at=now,
            )

            service_name = booking.service.name if booking.service else None
            transaction = upsert_revenue_transaction_for_invoice(
                db,
                invoice,
                description_override=service_name,
                source_override="booking",
                booking_id_override=booking_id,
            )
            if transaction is not None:
                upserted_transactions += 1
            processed += 1
        except Exception as e:
            db.rollback()
            logger.error(f"⚠️ Failed to settle booking {booking_id}: {str(e)}")
            errors.append({"bookingId": booking_id, "error": str(e)})

    logger.info(
        f"✅ Settlement done: processed={processed} createdInvoices={created_invoices} "
        f"upsertedTransactions={upserted_transactions} errors={len(errors)}"
    )
    return {
        "ok": True,
        "nowIso": isoformat_utc(now),
        "found": len(bookings),
        "processed": processed,
        "createdInvoices": created_invoices,
        "upsertedTransactions": upserted_transactions,
        "errors": errors,
    }
