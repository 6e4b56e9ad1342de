"""Calendar domain - Booking calendar events and ICS export"""

from .repository import CalendarEventRepository
from .router import router

__all__ = ["router", "CalendarEventRepository"]
