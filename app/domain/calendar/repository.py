"""Calendar repository - Database operations for calendar events"""

from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from ...models_booking import CalendarEvent


class CalendarEventRepository:
    """Repository for calendar event database operations"""

    @staticmethod
    def create_event(db: Session, business_id: str, **event_data) -> CalendarEvent:
        """Create a calendar event"""
        event = CalendarEvent(business_id=business_id, **event_data)
        db.add(event)
        db.commit()
        db.refresh(event)
        return event

    @staticmethod
    def update_booking_times(
        db: Session, business_id: str, booking_id: int, start_at: datetime, end_at: datetime
    ) -> int:
        """Move every event of a booking to the new window"""
        updated = (
            db.query(CalendarEvent)
            .filter(CalendarEvent.business_id == business_id, CalendarEvent.booking_id == booking_id)
            .update({"start_at": start_at, "end_at": end_at}, synchronize_session=False)
        )
        db.commit()
        return updated

    @staticmethod
    def delete_event(db: Session, business_id: str, event_id: int) -> int:
        deleted = (
            db.query(CalendarEvent)
            .filter(CalendarEvent.business_id == business_id, CalendarEvent.id == event_id)
            .delete(synchronize_session=False)
        )
        db.commit()
        return deleted

    @staticmethod
    def delete_booking_events(db: Session, business_id: str, booking_id: int) -> int:
        deleted = (
            db.query(CalendarEvent)
            .filter(CalendarEvent.business_id == business_id, CalendarEvent.booking_id == booking_id)
            .delete(synchronize_session=False)
        )
        db.commit()
        return deleted

    @staticmethod
    def list_events(
        db: Session,
        business_id: str,
        start_from: Optional[datetime] = None,
        start_to: Optional[datetime] = None,
    ) -> list[CalendarEvent]:
        """Events ordered by start, optionally bounded on start_at (inclusive)"""
        query = db.query(CalendarEvent).filter(CalendarEvent.business_id == business_id)
        if start_from:
            query = query.filter(CalendarEvent.start_at >= start_from)
        if start_to:
            query = query.filter(CalendarEvent.start_at <= start_to)
        return query.order_by(CalendarEvent.start_at.asc(), CalendarEvent.id.asc()).all()
