"""Booking repository - Database operations for bookings and services"""

from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from ...models import AvailabilityRule, Service
from ...models_booking import Booking


class BookingRepository:
    """Repository for booking database operations"""

    @staticmethod
    def get_booking(db: Session, business_id: str, booking_id: int) -> Optional[Booking]:
        """Get a specific booking"""
        return (
            db.query(Booking)
            .filter(Booking.business_id == business_id, Booking.id == booking_id)
            .first()
        )

    @staticmethod
    def get_service(db: Session, business_id: str, service_id: str) -> Optional[Service]:
        return (
            db.query(Service)
            .filter(Service.business_id == business_id, Service.id == service_id)
            .first()
        )

    @staticmethod
    def find_conflicts(
        db: Session,
        business_id: str,
        start_at: datetime,
        end_at: datetime,
        exclude_booking_id: Optional[int] = None,
        limit: int = 1,
    ) -> list[Booking]:
        """Non-cancelled bookings overlapping [start_at, end_at)"""
        query = db.query(Booking).filter(
            Booking.business_id == business_id,
            Booking.status != "cancelled",
            Booking.start_at < end_at,
            Booking.end_at > start_at,
        )
        if exclude_booking_id is not None:
            query = query.filter(Booking.id != exclude_booking_id)
        return query.limit(limit).all()

    @staticmethod
    def get_bookings_overlapping(
        db: Session, business_id: str, start_at: datetime, end_at: datetime
    ) -> list[Booking]:
        """All bookings (any status) touching a range, for slot computation"""
        return (
            db.query(Booking)
            .filter(
                Booking.business_id == business_id,
                Booking.start_at <= end_at,
                Booking.end_at >= start_at,
            )
            .order_by(Booking.start_at.asc())
            .all()
        )

    @staticmethod
    def get_unsettled_ended(
        db: Session, now: datetime, statuses: tuple[str, ...], limit: int = 200
    ) -> list[Booking]:
        """Bookings that have ended but are still open, oldest first"""
        return (
            db.query(Booking)
            .filter(Booking.end_at < now, Booking.status.in_(statuses))
            .order_by(Booking.end_at.asc())
            .limit(limit)
            .all()
        )

    @staticmethod
    def get_availability_rules(db: Session, business_id: str) -> list[AvailabilityRule]:
        return db.query(AvailabilityRule).filter(AvailabilityRule.business_id == business_id).all()

    @staticmethod
    def create_booking(db: Session, business_id: str, **booking_data) -> Booking:
        """Create a new booking"""
        booking = Booking(business_id=business_id, **booking_data)
        db.add(booking)
        db.commit()
        db.refresh(booking)
        return booking

    @staticmethod
    def update_booking(db: Session, booking: Booking, **updates) -> Booking:
        """Update a booking with provided fields"""
        for key, value in updates.items():
            if hasattr(booking, key):
                setattr(booking, key, value)

        db.commit()
        db.refresh(booking)
        return booking

    @staticmethod
    def delete_booking(db: Session, business_id: str, booking_id: int) -> int:
        """Delete a booking by id. Returns the number of rows removed."""
        deleted = (
            db.query(Booking)
            .filter(Booking.business_id == business_id, Booking.id == booking_id)
            .delete(synchronize_session=False)
        )
        db.commit()
        return deleted
