from datetime import datetime, timezone

import pytest
from sqlalchemy.exc import OperationalError

from app.domain.bookings.repository import BookingRepository
from app.domain.calendar.repository import CalendarEventRepository
from app.domain.invoices.service import InvoiceService
from app.models_booking import Booking, CalendarEvent
from app.models_invoice import Invoice
from app.models_transaction import Transaction
from app.schema_capabilities import SchemaCapabilities

START = "2030-01-07T10:00:00Z"
CONFLICT = "That time is no longer available."


def create_booking(client, business, service, start=START, **extra):
    payload = {
        "businessId": business.id,
        "serviceId": service.id,
        "startAt": start,
        "customer_name": "Jane Doe",
        "customer_email": "jane@example.com",
    }
    payload.update(extra)
    return client.post("/booking/create", json=payload)


def patch_booking(client, business, booking_id, **body):
    return client.patch(f"/booking/{booking_id}", json={"businessId": business.id, **body})


def counts(fresh):
    return (
        fresh(Booking).count(),
        fresh(CalendarEvent).count(),
        fresh(Invoice).count(),
    )


def _fail(*args, **kwargs):
    raise OperationalError("INSERT", {}, Exception("connection lost"))


class TestBookingCreate:
    """Booking + calendar event + invoice creation."""

    def test_create_links_all_three_records(self, client, business, service, fresh):
        """Test a successful create returns a linked booking, event and invoice."""
        response = create_booking(client, business, service, notes="Gate code 1234")

        assert response.status_code == 200
        data = response.json()
        booking = data["booking"]
        event = data["calendar_event"]
        invoice = data["invoice"]

        assert booking["start_at"] == "2030-01-07T10:00:00Z"
        assert booking["end_at"] == "2030-01-07T11:00:00Z"
        assert booking["status"] == "scheduled"
        assert booking["price_cents"] == 15000
        assert booking["invoice_id"] == invoice["id"]
        assert event["booking_id"] == booking["id"]
        assert event["title"] == "Deep Clean • Jane Doe"
        assert invoice["booking_id"] == booking["id"]
        assert invoice["status"] == "sent"
        assert invoice["source"] == "booking"
        assert invoice["total"] == 150.0
        assert invoice["invoice_number"].endswith("-001")
        assert "Gate code 1234" in invoice["notes"]
        assert "Booking: 2030-01-07T10:00:00Z → 2030-01-07T11:00:00Z" in invoice["notes"]
        assert counts(fresh) == (1, 1, 1)

    def test_invoice_has_single_line_item(self, client, business, service, fresh):
        """Test the booking invoice carries one item for the service."""
        invoice_id = create_booking(client, business, service).json()["invoice"]["id"]

        invoice = fresh(Invoice).filter(Invoice.id == invoice_id).one()
        assert len(invoice.items) == 1
        assert invoice.items[0].description == "Deep Clean"
        assert invoice.items[0].unit_price == 150.0

    def test_invoice_numbers_increment(self, client, business, service):
        """Test consecutive bookings get consecutive invoice numbers."""
        first = create_booking(client, business, service).json()["invoice"]["invoice_number"]
        second = create_booking(
            client, business, service, start="2030-01-07T12:00:00Z"
        ).json()["invoice"]["invoice_number"]

        assert first.endswith("-001")
        assert second.endswith("-002")

    def test_overlap_rejected_without_records(self, client, business, service, fresh):
        """Test an overlapping booking fails with 409 and creates nothing."""
        assert create_booking(client, business, service).status_code == 200

        response = create_booking(client, business, service, start="2030-01-07T10:30:00Z")

        assert response.status_code == 409
        assert response.json() == {"error": CONFLICT}
        assert counts(fresh) == (1, 1, 1)

    def test_adjacent_booking_allowed(self, client, business, service):
        """Test a booking starting exactly when another ends does not conflict."""
        create_booking(client, business, service)
        response = create_booking(client, business, service, start="2030-01-07T11:00:00Z")

        assert response.status_code == 200

    def test_cancelled_booking_frees_slot(self, client, business, service):
        """Test cancelled bookings are ignored by the overlap check."""
        booking_id = create_booking(client, business, service).json()["booking"]["id"]
        patch_booking(client, business, booking_id, status="cancelled")

        response = create_booking(client, business, service)

        assert response.status_code == 200

    def test_calendar_failure_removes_booking(self, client, business, service, fresh, monkeypatch):
        """Test a calendar event failure deletes the committed booking."""
        monkeypatch.setattr(CalendarEventRepository, "create_event", staticmethod(_fail))

        response = create_booking(client, business, service)

        assert response.status_code == 500
        assert "error" in response.json()
        assert counts(fresh) == (0, 0, 0)

    def test_invoice_failure_removes_event_and_booking(
        self, client, business, service, fresh, monkeypatch
    ):
        """Test an invoice failure deletes the event and booking."""
        monkeypatch.setattr(InvoiceService, "create_invoice_for_booking", _fail)

        response = create_booking(client, business, service)

        assert response.status_code == 500
        assert counts(fresh) == (0, 0, 0)

    def test_link_failure_removes_invoice_too(self, client, business, service, fresh, monkeypatch):
        """Test a failure linking the invoice back deletes invoice, event and booking."""
        monkeypatch.setattr(BookingRepository, "update_booking", staticmethod(_fail))

        response = create_booking(client, business, service)

        assert response.status_code == 500
        assert counts(fresh) == (0, 0, 0)

    def test_unknown_service(self, client, business, service):
        """Test a service outside the business is rejected."""
        response = create_booking(
            client, business, service, serviceId="00000000-0000-4000-8000-000000000000"
        )

        assert response.status_code == 400
        assert response.json() == {"error": "Service not found"}

    def test_invalid_start(self, client, business, service):
        """Test a non-ISO start time is a 400."""
        response = create_booking(client, business, service, start="next tuesday")

        assert response.status_code == 400
        assert response.json() == {"error": "startAt must be an ISO timestamp"}

    def test_invalid_business_id(self, client, business, service):
        """Test a malformed businessId is a 400."""
        response = client.post(
            "/booking/create",
            json={"businessId": "abc", "serviceId": service.id, "startAt": START},
        )

        assert response.status_code == 400
        assert response.json() == {"error": "businessId must be a valid UUID"}

    def test_without_price_snapshot_column(self, client, business, service, capabilities):
        """Test creation works on a schema without bookings.price_cents."""
        capabilities["value"] = SchemaCapabilities(
            {"bookings": {"id", "start_at", "end_at"}, "invoices": {"id", "total"}}
        )

        response = create_booking(client, business, service)

        assert response.status_code == 200
        data = response.json()
        assert data["booking"]["price_cents"] is None
        assert data["invoice"]["total"] == 150.0
        assert data["invoice"]["amount_paid"] is None


class TestBookingPatch:
    """Reschedule, cancel and payment changes."""

    @pytest.fixture
    def booked(self, client, business, service):
        return create_booking(client, business, service).json()

    def test_reschedule_moves_event(self, client, business, booked, fresh):
        """Test rescheduling moves the booking and its calendar event."""
        booking_id = booked["booking"]["id"]

        response = patch_booking(client, business, booking_id, startAt="2030-01-08T14:00:00Z")

        assert response.status_code == 200
        assert response.json()["booking"]["start_at"] == "2030-01-08T14:00:00Z"
        assert response.json()["booking"]["end_at"] == "2030-01-08T15:00:00Z"
        event = fresh(CalendarEvent).filter(CalendarEvent.booking_id == booking_id).one()
        assert event.start_at.replace(tzinfo=timezone.utc) == datetime(
            2030, 1, 8, 14, 0, tzinfo=timezone.utc
        )
        invoice = fresh(Invoice).filter(Invoice.id == booked["invoice"]["id"]).one()
        assert "Rescheduled: 2030-01-08T14:00:00Z → 2030-01-08T15:00:00Z" in invoice.notes

    def test_reschedule_overlapping_itself(self, client, business, booked):
        """Test a booking can shift within its own window."""
        response = patch_booking(
            client, business, booked["booking"]["id"], startAt="2030-01-07T10:30:00Z"
        )

        assert response.status_code == 200

    def test_reschedule_conflict_changes_nothing(self, client, business, service, booked, fresh):
        """Test rescheduling onto another booking is a 409 with no changes."""
        other = create_booking(client, business, service, start="2030-01-07T12:00:00Z").json()
        booking_id = booked["booking"]["id"]

        response = patch_booking(client, business, booking_id, startAt="2030-01-07T12:30:00Z")

        assert response.status_code == 409
        assert response.json() == {"error": CONFLICT}
        booking = fresh(Booking).filter(Booking.id == booking_id).one()
        assert booking.start_at.replace(tzinfo=timezone.utc) == datetime(
            2030, 1, 7, 10, 0, tzinfo=timezone.utc
        )
        assert other["booking"]["id"] != booking_id

    def test_reschedule_survives_calendar_failure(
        self, client, business, booked, fresh, monkeypatch
    ):
        """Test a calendar sync failure does not fail the reschedule."""
        monkeypatch.setattr(CalendarEventRepository, "update_booking_times", staticmethod(_fail))

        response = patch_booking(
            client, business, booked["booking"]["id"], startAt="2030-01-09T09:00:00Z"
        )

        assert response.status_code == 200
        assert response.json()["booking"]["start_at"] == "2030-01-09T09:00:00Z"

    def test_mark_paid_creates_one_transaction(self, client, business, booked, fresh):
        """Test marking paid pays the invoice and records revenue once."""
        booking_id = booked["booking"]["id"]
        invoice_id = booked["invoice"]["id"]

        first = patch_booking(client, business, booking_id, markPaid=True)
        second = patch_booking(client, business, booking_id, markPaid=True)

        assert first.status_code == 200 and second.status_code == 200
        booking = first.json()["booking"]
        assert booking["payment_status"] == "paid"
        assert booking["is_paid"] is True
        assert booking["paid_at"]
        assert fresh(Invoice).filter(Invoice.id == invoice_id).one().status == "paid"
        rows = fresh(Transaction).filter(Transaction.invoice_id == invoice_id).all()
        assert len(rows) == 1
        assert rows[0].amount == 150.0
        assert rows[0].description == "Deep Clean"
        assert rows[0].customer_name == "Jane Doe"
        assert rows[0].type == "income"

    def test_pay_unpay_pay_round_trip(self, client, business, booked, fresh):
        """Test paid → unpaid → paid leaves exactly one transaction."""
        booking_id = booked["booking"]["id"]
        invoice_id = booked["invoice"]["id"]

        patch_booking(client, business, booking_id, paid=True)
        unpaid = patch_booking(client, business, booking_id, paid=False)
        assert unpaid.json()["booking"]["is_paid"] is False
        assert fresh(Invoice).filter(Invoice.id == invoice_id).one().status == "sent"
        assert fresh(Transaction).filter(Transaction.invoice_id == invoice_id).count() == 0

        patch_booking(client, business, booking_id, paid=True)

        assert fresh(Invoice).filter(Invoice.id == invoice_id).one().status == "paid"
        assert fresh(Transaction).filter(Transaction.invoice_id == invoice_id).count() == 1

    def test_cancel_paid_booking_voids_invoice(self, client, business, booked, fresh):
        """Test cancelling a paid booking voids the invoice and removes revenue."""
        booking_id = booked["booking"]["id"]
        invoice_id = booked["invoice"]["id"]
        patch_booking(client, business, booking_id, markPaid=True)

        response = patch_booking(client, business, booking_id, status="cancelled")

        assert response.status_code == 200
        assert response.json()["booking"]["status"] == "cancelled"
        invoice = fresh(Invoice).filter(Invoice.id == invoice_id).one()
        assert invoice.status == "void"
        assert "Booking cancelled; invoice voided." in invoice.notes
        assert fresh(Transaction).filter(Transaction.invoice_id == invoice_id).count() == 0
        assert fresh(CalendarEvent).filter(CalendarEvent.booking_id == booking_id).count() == 0

    def test_payment_after_cancel_keeps_invoice_void(self, client, business, booked, fresh):
        """Test payment toggles on a cancelled booking leave the void invoice alone."""
        booking_id = booked["booking"]["id"]
        invoice_id = booked["invoice"]["id"]
        patch_booking(client, business, booking_id, status="cancelled")

        paid = patch_booking(client, business, booking_id, markPaid=True)
        unpaid = patch_booking(client, business, booking_id, paid=False)
        partial = patch_booking(client, business, booking_id, paymentAmount=150)

        for response in (paid, unpaid, partial):
            assert response.status_code == 200
            assert response.json()["booking"]["status"] == "cancelled"
            assert response.json()["booking"]["is_paid"] is False
        invoice = fresh(Invoice).filter(Invoice.id == invoice_id).one()
        assert invoice.status == "void"
        assert invoice.amount_paid == 0
        assert fresh(Transaction).filter(Transaction.invoice_id == invoice_id).count() == 0

    def test_reopened_booking_does_not_unvoid_invoice(self, client, business, booked, fresh):
        """Test marking a reopened booking paid does not revive its void invoice."""
        booking_id = booked["booking"]["id"]
        invoice_id = booked["invoice"]["id"]
        patch_booking(client, business, booking_id, status="cancelled")

        response = patch_booking(client, business, booking_id, status="scheduled", markPaid=True)

        assert response.status_code == 200
        assert fresh(Invoice).filter(Invoice.id == invoice_id).one().status == "void"
        assert fresh(Transaction).filter(Transaction.invoice_id == invoice_id).count() == 0

    def test_partial_payments_accumulate(self, client, business, booked, fresh):
        """Test partial payments add up and flip the invoice to paid when covered."""
        booking_id = booked["booking"]["id"]
        invoice_id = booked["invoice"]["id"]

        patch_booking(client, business, booking_id, paymentAmount=50)
        invoice = fresh(Invoice).filter(Invoice.id == invoice_id).one()
        assert invoice.amount_paid == 50.0
        assert invoice.status == "sent"
        assert fresh(Transaction).filter(Transaction.invoice_id == invoice_id).count() == 0

        response = patch_booking(client, business, booking_id, paymentAmount=100)
        invoice = fresh(Invoice).filter(Invoice.id == invoice_id).one()
        assert invoice.amount_paid == 150.0
        assert invoice.status == "paid"
        assert fresh(Transaction).filter(Transaction.invoice_id == invoice_id).count() == 1
        assert response.json()["booking"]["is_paid"] is True
        assert response.json()["booking"]["payment_status"] == "paid"
        booking = fresh(Booking).filter(Booking.id == booking_id).one()
        assert booking.is_paid is True
        assert booking.paid_at is not None

    def test_partial_payment_without_amount_paid_column(
        self, client, business, booked, fresh, capabilities
    ):
        """Test partial payments are skipped when invoices.amount_paid is missing."""
        capabilities["value"] = SchemaCapabilities(
            {"bookings": {"id", "price_cents"}, "invoices": {"id", "total"}}
        )

        response = patch_booking(client, business, booked["booking"]["id"], paymentAmount=50)

        assert response.status_code == 200
        invoice = fresh(Invoice).filter(Invoice.id == booked["invoice"]["id"]).one()
        assert invoice.amount_paid == 0
        assert invoice.status == "sent"

    def test_unknown_booking(self, client, business, booked):
        """Test patching a missing booking is a 404."""
        response = patch_booking(client, business, 9999, status="confirmed")

        assert response.status_code == 404
        assert response.json() == {"error": "Booking not found"}


class TestBookingDelete:
    """Booking deletion."""

    def test_delete_voids_invoice_and_removes_event(self, client, business, service, fresh):
        """Test deleting a paid booking voids its invoice and drops revenue and events."""
        booked = create_booking(client, business, service).json()
        booking_id = booked["booking"]["id"]
        invoice_id = booked["invoice"]["id"]
        patch_booking(client, business, booking_id, markPaid=True)

        response = client.request(
            "DELETE", f"/booking/{booking_id}", json={"businessId": business.id}
        )

        assert response.status_code == 200
        assert response.json() == {"ok": True}
        assert fresh(Booking).filter(Booking.id == booking_id).count() == 0
        assert fresh(CalendarEvent).filter(CalendarEvent.booking_id == booking_id).count() == 0
        invoice = fresh(Invoice).filter(Invoice.id == invoice_id).one()
        assert invoice.status == "void"
        assert "Booking deleted; invoice voided." in invoice.notes
        assert fresh(Transaction).filter(Transaction.invoice_id == invoice_id).count() == 0

    def test_delete_unknown_booking(self, client, business):
        """Test deleting a missing booking is a 404."""
        response = client.request("DELETE", "/booking/4242", json={"businessId": business.id})

        assert response.status_code == 404
