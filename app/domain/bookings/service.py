"""
Booking service - booking, calendar event, invoice and revenue consistency.

No database transaction spans the steps below; every repository call commits
on its own. Creation is therefore a saga: steps run in a fixed order and a
failure deletes what was already committed, newest first. Reschedule, cancel,
payment and delete only guarantee the primary booking write; the follow-up
calendar/invoice/transaction writes are best-effort and logged on failure.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from fastapi import HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...auth import AuthUser, require_business_access
from ...models_booking import Booking, CalendarEvent
from ...models_invoice import Invoice
from ...schema_capabilities import SchemaCapabilities
from ...shared.validators import isoformat_utc, to_utc
from ..calendar.repository import CalendarEventRepository
from ..invoices.service import InvoiceService
from ..transactions.revenue_sync import (
    delete_invoice_linked_transactions,
    sync_revenue_transaction,
    upsert_revenue_transaction_for_invoice,
)
from .repository import BookingRepository
from .schemas import BookingCreate, BookingPatch
from .slots import compute_open_slots

logger = logging.getLogger(__name__)

SLOT_TAKEN = "That time is no longer available."
DEFAULT_DURATION_MINUTES = 60
MIN_DURATION_MINUTES = 5


def booking_duration(minutes: Optional[int]) -> timedelta:
    return timedelta(minutes=max(MIN_DURATION_MINUTES, int(minutes or DEFAULT_DURATION_MINUTES)))


class BookingService:
    """Service layer for booking business logic"""

    def __init__(self, db: Session, capabilities: SchemaCapabilities):
        self.db = db
        self.capabilities = capabilities
        self.repo = BookingRepository()
        self.events = CalendarEventRepository()
        self.invoices = InvoiceService(db)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def get_booking(self, business_id: str, booking_id: int) -> Booking:
        booking = self.repo.get_booking(self.db, business_id, booking_id)
        if not booking:
            raise HTTPException(status_code=404, detail="Booking not found")
        return booking

    def booking_price_cents(self, booking: Booking, fallback_cents: int = 0) -> int:
        if self.capabilities.booking_price_snapshot and booking.price_cents:
            return max(0, int(booking.price_cents))
        return max(0, int(fallback_cents or 0))

    def _ensure_slot_free(
        self,
        business_id: str,
        start_at: datetime,
        end_at: datetime,
        exclude_booking_id: Optional[int] = None,
    ) -> None:
        conflicts = self.repo.find_conflicts(
            self.db, business_id, start_at, end_at, exclude_booking_id=exclude_booking_id
        )
        if conflicts:
            logger.info(
                f"⛔ Slot {isoformat_utc(start_at)} → {isoformat_utc(end_at)} overlaps booking {conflicts[0].id}"
            )
            raise HTTPException(status_code=409, detail=SLOT_TAKEN)

    def _database_error(self, action: str, error: Exception) -> HTTPException:
        self.db.rollback()
        logger.error(f"❌ Failed to {action}: {str(error)}")
        return HTTPException(status_code=500, detail=str(error))

    def _compensate(self, steps: list[tuple[str, Callable[[], object]]]) -> None:
        """Run rollback deletes in the given order; each one runs even if an earlier one fails"""
        for description, undo in steps:
            try:
                undo()
                logger.info(f"↩️ Rolled back {description}")
            except Exception as e:
                self.db.rollback()
                logger.error(f"⚠️ Failed to roll back {description}: {str(e)}")

    def _best_effort(self, action: str, fn: Callable, *args, **kwargs):
        try:
            return fn(*args, **kwargs)
        except Exception as e:
            self.db.rollback()
            logger.error(f"⚠️ Failed to {action}: {str(e)}")
            return None

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def create_booking(
        self, data: BookingCreate, user: AuthUser
    ) -> tuple[Booking, CalendarEvent, Invoice]:
        """
        Create booking, calendar event and invoice together.

        Either all of them exist and are linked afterwards, or none do.
        """
        business_id = data.businessId
        require_business_access(self.db, user, business_id, write=True)

        service = self.repo.get_service(self.db, business_id, data.serviceId)
        if not service:
            raise HTTPException(status_code=400, detail="Service not found")

        start_at = to_utc(data.startAt)
        end_at = start_at + booking_duration(service.duration_minutes)
        service_price_cents = max(0, int(service.price_cents or 0))
        service_name = service.name or "Service"

        self._ensure_slot_free(business_id, start_at, end_at)

        client_name = data.customer_name or "Customer"
        booking_data = {
            "service_id": service.id,
            "start_at": start_at,
            "end_at": end_at,
            "status": data.status,
            "notes": data.notes or "",
            "customer_name": data.customer_name or "",
            "customer_email": data.customer_email or "",
            "customer_phone": data.customer_phone or "",
        }
        if self.capabilities.booking_price_snapshot:
            booking_data["price_cents"] = service_price_cents

        logger.info(f"📥 Creating booking for business {business_id} at {isoformat_utc(start_at)}")
        try:
            booking = self.repo.create_booking(self.db, business_id, **booking_data)
        except SQLAlchemyError as e:
            raise self._database_error("create booking", e) from e
        booking_id = booking.id

        def undo_booking():
            self.repo.delete_booking(self.db, business_id, booking_id)

        try:
            event = self.events.create_event(
                self.db,
                business_id,
                booking_id=booking_id,
                title=f"{service_name} • {client_name}",
                start_at=start_at,
                end_at=end_at,
            )
        except Exception as e:
            error = self._database_error("create calendar event", e)
            self._compensate([(f"booking {booking_id}", undo_booking)])
            raise error from e
        event_id = event.id

        def undo_event():
            self.events.delete_event(self.db, business_id, event_id)

        invoice_id = None
        try:
            price_cents = self.booking_price_cents(booking, service_price_cents)
            invoice = self.invoices.create_invoice_for_booking(
                business_id=business_id,
                booking_id=booking_id,
                client_name=client_name,
                service_name=service_name,
                price=round(price_cents / 100, 2),
                notes=data.notes,
                start_at=start_at,
                end_at=end_at,
            )
            invoice_id = invoice.id
            booking = self.repo.update_booking(self.db, booking, invoice_id=invoice_id)
        except Exception as e:
            error = self._database_error("create invoice for booking", e)
            steps = [(f"calendar event {event_id}", undo_event), (f"booking {booking_id}", undo_booking)]
            if invoice_id is not None:
                steps.insert(0, (f"invoice {invoice_id}", lambda: self._delete_invoice(business_id, invoice_id)))
            self._compensate(steps)
            raise error from e

        logger.info(f"✅ Booking {booking_id} created with event {event_id} and invoice {invoice_id}")
        return booking, event, invoice

    def _delete_invoice(self, business_id: str, invoice_id: int) -> None:
        invoice = self.invoices.repo.get_invoice(self.db, business_id, invoice_id)
        if invoice:
            self.invoices.repo.delete_invoice(self.db, invoice)

    # ------------------------------------------------------------------
    # Patch: reschedule / cancel / payment
    # ------------------------------------------------------------------

    def patch_booking(self, booking_id: int, data: BookingPatch, user: AuthUser) -> Booking:
        business_id = data.businessId
        require_business_access(self.db, user, business_id, write=True)
        booking = self.get_booking(business_id, booking_id)

        updates = {}
        if data.status:
            updates["status"] = data.status

        cancelling = data.status == "cancelled"
        new_start = new_end = None
        if data.startAt is not None:
            duration_minutes = booking.service.duration_minutes if booking.service else None
            new_start = to_utc(data.startAt)
            new_end = new_start + booking_duration(duration_minutes)
            self._ensure_slot_free(business_id, new_start, new_end, exclude_booking_id=booking.id)
            updates["start_at"] = new_start
            updates["end_at"] = new_end

        stays_cancelled = booking.status == "cancelled" and data.status in (None, "cancelled")
        paid = data.payment_intent()
        partial = data.is_partial_payment
        if (paid is not None or partial) and (cancelling or stays_cancelled):
            if not cancelling:
                logger.warning(f"⚠️ Booking {booking_id} is cancelled; payment change ignored")
            paid = None
            partial = False

        if paid is True:
            updates.update(payment_status="paid", is_paid=True, paid_at=datetime.now(timezone.utc))
        elif paid is False:
            updates.update(payment_status="unpaid", is_paid=False, paid_at=None)

        if updates:
            try:
                booking = self.repo.update_booking(self.db, booking, **updates)
            except SQLAlchemyError as e:
                raise self._database_error(f"update booking {booking_id}", e) from e
            logger.info(f"✅ Booking {booking_id} updated: {sorted(updates)}")

        invoice_id = booking.invoice_id

        if cancelling:
            self._sync_cancellation(business_id, booking_id, invoice_id)
            return booking

        if new_start is not None:
            self._best_effort(
                f"move calendar event for booking {booking_id}",
                self.events.update_booking_times,
                self.db,
                business_id,
                booking_id,
                new_start,
                new_end,
            )
            if invoice_id:
                self._best_effort(
                    f"append reschedule note to invoice {invoice_id}",
                    self.invoices.append_note,
                    business_id,
                    invoice_id,
                    f"Rescheduled: {isoformat_utc(new_start)} → {isoformat_utc(new_end)}",
                )

        if paid is not None or partial:
            if not invoice_id:
                logger.warning(f"⚠️ Booking {booking_id} has no invoice; payment change not synced")
            elif paid is True:
                self._sync_marked_paid(business_id, invoice_id)
            elif paid is False:
                self._sync_marked_unpaid(business_id, invoice_id)
            else:
                invoice = self._sync_partial_payment(business_id, invoice_id, data.paymentAmount)
                if invoice is not None and invoice.status == "paid" and not booking.is_paid:
                    booking = self._best_effort(
                        f"mark booking {booking_id} paid",
                        self.repo.update_booking,
                        self.db,
                        booking,
                        payment_status="paid",
                        is_paid=True,
                        paid_at=datetime.now(timezone.utc),
                    ) or booking

        return booking

    def _sync_cancellation(self, business_id: str, booking_id: int, invoice_id: Optional[int]) -> None:
        self._best_effort(
            f"delete calendar event for booking {booking_id}",
            self.events.delete_booking_events,
            self.db,
            business_id,
            booking_id,
        )
        if invoice_id:
            self._void_invoice(business_id, invoice_id, "Booking cancelled; invoice voided.")

    def _void_invoice(self, business_id: str, invoice_id: int, note: str) -> None:
        invoice = self._best_effort(
            f"load invoice {invoice_id}", self.invoices.get_invoice, business_id, invoice_id
        )
        if invoice is not None:
            self._best_effort(
                f"void invoice {invoice_id}", self.invoices.set_status, invoice, "void"
            )
        self._best_effort(
            f"delete transactions for invoice {invoice_id}",
            delete_invoice_linked_transactions,
            self.db,
            business_id,
            invoice_id,
        )
        self._best_effort(
            f"append note to invoice {invoice_id}", self.invoices.append_note, business_id, invoice_id, note
        )

    def _sync_marked_paid(self, business_id: str, invoice_id: int) -> None:
        invoice = self._best_effort(
            f"load invoice {invoice_id}", self.invoices.get_invoice, business_id, invoice_id
        )
        if invoice is None:
            return
        if invoice.status == "void":
            logger.warning(f"⚠️ Invoice {invoice_id} is void; not marking paid")
            return
        invoice = self._best_effort(
            f"mark invoice {invoice_id} paid", self.invoices.set_status, invoice, "paid"
        )
        if invoice is None:
            return
        self._best_effort(
            f"upsert revenue transaction for invoice {invoice_id}",
            upsert_revenue_transaction_for_invoice,
            self.db,
            invoice,
        )
        self._best_effort(
            f"append note to invoice {invoice_id}",
            self.invoices.append_note,
            business_id,
            invoice_id,
            "Marked paid from booking.",
        )

    def _sync_marked_unpaid(self, business_id: str, invoice_id: int) -> None:
        invoice = self._best_effort(
            f"load invoice {invoice_id}", self.invoices.get_invoice, business_id, invoice_id
        )
        if invoice is not None and invoice.status == "void":
            logger.warning(f"⚠️ Invoice {invoice_id} is void; not marking unpaid")
            return
        if invoice is not None:
            self._best_effort(
                f"mark invoice {invoice_id} unpaid", self.invoices.set_status, invoice, "sent"
            )
        self._best_effort(
            f"delete transactions for invoice {invoice_id}",
            delete_invoice_linked_transactions,
            self.db,
            business_id,
            invoice_id,
        )
        self._best_effort(
            f"append note to invoice {invoice_id}",
            self.invoices.append_note,
            business_id,
            invoice_id,
            "Marked unpaid from booking.",
        )

    def _sync_partial_payment(self, business_id: str, invoice_id: int, amount: float) -> Optional[Invoice]:
        invoice = self._best_effort(
            f"load invoice {invoice_id}", self.invoices.get_invoice, business_id, invoice_id
        )
        if invoice is None:
            return None
        invoice = self._best_effort(
            f"record payment on invoice {invoice_id}",
            self.invoices.record_partial_payment,
            invoice,
            amount,
            self.capabilities,
        )
        if invoice is None:
            return None
        self._best_effort(
            f"sync revenue transaction for invoice {invoice_id}",
            sync_revenue_transaction,
            self.db,
            invoice,
        )
        self._best_effort(
            f"append note to invoice {invoice_id}",
            self.invoices.append_note,
            business_id,
            invoice_id,
            f"Payment recorded: ${amount:.2f}",
        )
        return invoice

    # ------------------------------------------------------------------
    # Delete
    # ------------------------------------------------------------------

    def delete_booking(self, booking_id: int, business_id: str, user: AuthUser) -> dict:
        """Void the linked invoice, then remove the booking and its calendar event"""
        require_business_access(self.db, user, business_id, write=True)
        booking = self.get_booking(business_id, booking_id)
        invoice_id = booking.invoice_id

        if invoice_id:
            self._void_invoice(business_id, invoice_id, "Booking deleted; invoice voided.")

        try:
            self.repo.delete_booking(self.db, business_id, booking_id)
        except SQLAlchemyError as e:
            # Invoice may already be void at this point
            raise self._database_error(f"delete booking {booking_id}", e) from e

        self._best_effort(
            f"delete calendar event for booking {booking_id}",
            self.events.delete_booking_events,
            self.db,
            business_id,
            booking_id,
        )
        logger.info(f"🗑️ Booking {booking_id} deleted")
        return {"ok": True}

    # ------------------------------------------------------------------
    # Availability
    # ------------------------------------------------------------------

    def get_open_slots(
        self,
        business_id: str,
        start: datetime,
        end: datetime,
        service_id: Optional[str],
        user: AuthUser,
    ) -> tuple[list[dict], int]:
        require_business_access(self.db, user, business_id)

        start = to_utc(start)
        end = to_utc(end)
        duration_minutes = DEFAULT_DURATION_MINUTES
        if service_id:
            service = self.repo.get_service(self.db, business_id, service_id)
            if service and service.duration_minutes:
                duration_minutes = int(service.duration_minutes)

        rules = self.repo.get_availability_rules(self.db, business_id)
        bookings = self.repo.get_bookings_overlapping(self.db, business_id, start, end)
        slots = compute_open_slots(start, end, rules, bookings, duration_minutes)
        return slots, duration_minutes
