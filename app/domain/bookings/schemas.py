"""Booking domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ...shared.validators import parse_iso_datetime, validate_uuid

BookingStatus = Literal["pending", "scheduled", "confirmed", "completed", "paid", "cancelled"]


def _uuid_field(value, field_name: str) -> str:
    value = str(value or "").strip()
    if not validate_uuid(value):
        raise ValueError(f"{field_name} must be a valid UUID")
    return value


def _iso_field(value, field_name: str) -> datetime:
    if isinstance(value, datetime):
        return value
    parsed = parse_iso_datetime(value)
    if parsed is None:
        raise ValueError(f"{field_name} must be an ISO timestamp")
    return parsed


class BookingCreate(BaseModel):
    """Schema for creating a booking"""

    businessId: str
    serviceId: str
    startAt: datetime
    customer_name: Optional[str] = None
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None
    notes: Optional[str] = None
    status: BookingStatus = "scheduled"

    @field_validator("businessId", "serviceId", mode="before")
    @classmethod
    def validate_ids(cls, v, info):
        return _uuid_field(v, info.field_name)

    @field_validator("startAt", mode="before")
    @classmethod
    def validate_start(cls, v):
        return _iso_field(v, "startAt")

    @field_validator("customer_name", "customer_email", "customer_phone", "notes")
    @classmethod
    def strip_text(cls, v):
        if v is None:
            return v
        return v.strip() or None


class BookingPatch(BaseModel):
    """Schema for rescheduling, cancelling or toggling payment on a booking"""

    businessId: str
    status: Optional[BookingStatus] = None
    startAt: Optional[datetime] = None
    markPaid: Optional[bool] = None
    paid: Optional[bool] = None
    paymentAmount: Optional[float] = Field(default=None, gt=0)

    @field_validator("businessId", mode="before")
    @classmethod
    def validate_business(cls, v):
        return _uuid_field(v, "businessId")

    @field_validator("startAt", mode="before")
    @classmethod
    def validate_start(cls, v):
        if v is None or v == "":
            return None
        return _iso_field(v, "startAt")

    def payment_intent(self) -> Optional[bool]:
        """True/False for an explicit paid toggle, None when no toggle was requested"""
        if self.paid is not None:
            return self.paid
        if self.markPaid:
            return True
        return None

    @property
    def is_partial_payment(self) -> bool:
        return self.paymentAmount is not None and self.payment_intent() is None


class BookingDelete(BaseModel):
    businessId: str

    @field_validator("businessId", mode="before")
    @classmethod
    def validate_business(cls, v):
        return _uuid_field(v, "businessId")


class AvailabilityRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    businessId: str
    from_: datetime = Field(alias="from")
    to: datetime
    serviceId: Optional[str] = None

    @field_validator("businessId", mode="before")
    @classmethod
    def validate_business(cls, v):
        return _uuid_field(v, "businessId")

    @field_validator("from_", "to", mode="before")
    @classmethod
    def validate_range(cls, v):
        if isinstance(v, datetime):
            return v
        parsed = parse_iso_datetime(v)
        if parsed is None:
            raise ValueError("from/to must be ISO timestamps")
        return parsed


class BookingResponse(BaseModel):
    id: int
    business_id: str
    service_id: Optional[str]
    customer_name: Optional[str]
    customer_email: Optional[str]
    customer_phone: Optional[str]
    start_at: str
    end_at: str
    status: str
    price_cents: Optional[int] = None
    notes: Optional[str]
    invoice_id: Optional[int]
    payment_status: str
    is_paid: bool
    paid_at: Optional[str] = None


class CalendarEventResponse(BaseModel):
    id: int
    business_id: str
    booking_id: Optional[int]
    title: str
    start_at: str
    end_at: str


class InvoiceResponse(BaseModel):
    id: int
    business_id: str
    invoice_number: str
    client_name: Optional[str]
    status: str
    subtotal: float
    tax: float
    total: float
    amount_paid: Optional[float] = None
    notes: Optional[str]
    source: str
    booking_id: Optional[int]
    issue_date: Optional[str]
    due_date: Optional[str]


class BookingCreateResponse(BaseModel):
    booking: BookingResponse
    calendar_event: CalendarEventResponse
    invoice: InvoiceResponse


class BookingPatchResponse(BaseModel):
    booking: BookingResponse


class Slot(BaseModel):
    start_at: str
    end_at: str


class AvailabilityResponse(BaseModel):
    slots: list[Slot]
    durationMinutes: int
