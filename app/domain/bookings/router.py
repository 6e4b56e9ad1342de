"""Booking router - FastAPI endpoints for bookings, availability and settlement"""

import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from ...auth import AuthUser, get_current_user
from ...database import get_db
from ...models_booking import Booking, CalendarEvent
from ...models_invoice import Invoice
from ...schema_capabilities import SchemaCapabilities, get_schema_capabilities
from ...shared.validators import isoformat_utc
from .schemas import (
    AvailabilityRequest,
    AvailabilityResponse,
    BookingCreate,
    BookingCreateResponse,
    BookingDelete,
    BookingPatch,
    BookingPatchResponse,
    BookingResponse,
    CalendarEventResponse,
    InvoiceResponse,
)
from .service import BookingService
from .settlement import settle_ended_bookings, verify_cron_secret

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/booking", tags=["Bookings"])
cron_router = APIRouter(prefix="/cron", tags=["Cron"])


def get_capabilities() -> SchemaCapabilities:
    return get_schema_capabilities()


def get_booking_service(
    db: Session = Depends(get_db),
    capabilities: SchemaCapabilities = Depends(get_capabilities),
) -> BookingService:
    """Dependency injection for BookingService"""
    return BookingService(db, capabilities)


def _booking_response(booking: Booking, capabilities: SchemaCapabilities) -> BookingResponse:
    return BookingResponse(
        id=booking.id,
        business_id=booking.business_id,
        service_id=booking.service_id,
        customer_name=booking.customer_name,
        customer_email=booking.customer_email,
        customer_phone=booking.customer_phone,
        start_at=isoformat_utc(booking.start_at),
        end_at=isoformat_utc(booking.end_at),
        status=booking.status,
        price_cents=booking.price_cents if capabilities.booking_price_snapshot else None,
        notes=booking.notes,
        invoice_id=booking.invoice_id,
        payment_status=booking.payment_status or "unpaid",
        is_paid=bool(booking.is_paid),
        paid_at=isoformat_utc(booking.paid_at),
    )


def _event_response(event: CalendarEvent) -> CalendarEventResponse:
    return CalendarEventResponse(
        id=event.id,
        business_id=event.business_id,
        booking_id=event.booking_id,
        title=event.title,
        start_at=isoformat_utc(event.start_at),
        end_at=isoformat_utc(event.end_at),
    )


def _invoice_response(invoice: Invoice, capabilities: SchemaCapabilities) -> InvoiceResponse:
    return InvoiceResponse(
        id=invoice.id,
        business_id=invoice.business_id,
        invoice_number=invoice.invoice_number,
        client_name=invoice.client_name,
        status=invoice.status,
        subtotal=float(invoice.subtotal or 0),
        tax=float(invoice.tax or 0),
        total=float(invoice.total or 0),
        amount_paid=float(invoice.amount_paid or 0) if capabilities.invoice_amount_paid else None,
        notes=invoice.notes,
        source=invoice.source,
        booking_id=invoice.booking_id,
        issue_date=invoice.issue_date.isoformat() if invoice.issue_date else None,
        due_date=invoice.due_date.isoformat() if invoice.due_date else None,
    )


# ============================================================================
# BOOKINGS
# ============================================================================


@router.post("/create", response_model=BookingCreateResponse)
async def create_booking(
    data: BookingCreate,
    current_user: AuthUser = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    """Create a booking together with its calendar event and invoice"""
    booking, event, invoice = service.create_booking(data, current_user)
    return BookingCreateResponse(
        booking=_booking_response(booking, service.capabilities),
        calendar_event=_event_response(event),
        invoice=_invoice_response(invoice, service.capabilities),
    )


@router.post("/availability", response_model=AvailabilityResponse)
async def get_availability(
    data: AvailabilityRequest,
    current_user: AuthUser = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    """Open slots for a business in a time range"""
    slots, duration_minutes = service.get_open_slots(
        data.businessId, data.from_, data.to, data.serviceId, current_user
    )
    return AvailabilityResponse(slots=slots, durationMinutes=duration_minutes)


@router.patch("/{booking_id}", response_model=BookingPatchResponse)
async def patch_booking(
    booking_id: int,
    data: BookingPatch,
    current_user: AuthUser = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    """Reschedule, cancel or change payment state of a booking"""
    booking = service.patch_booking(booking_id, data, current_user)
    return BookingPatchResponse(booking=_booking_response(booking, service.capabilities))


@router.delete("/{booking_id}")
async def delete_booking(
    booking_id: int,
    data: BookingDelete,
    current_user: AuthUser = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    return service.delete_booking(booking_id, data.businessId, current_user)


# ============================================================================
# SCHEDULED JOBS
# ============================================================================


@cron_router.api_route("/bookings/settle", methods=["GET", "POST"])
async def settle_bookings(
    request: Request,
    db: Session = Depends(get_db),
    capabilities: SchemaCapabilities = Depends(get_capabilities),
):
    """Settle ended bookings (shared-secret auth, for an external scheduler)"""
    verify_cron_secret(request)
    return settle_ended_bookings(db, capabilities)
