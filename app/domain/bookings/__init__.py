"""Bookings domain - Booking lifecycle, availability and settlement"""

from .router import cron_router, router
from .service import BookingService
from .settlement import settle_ended_bookings
from .slots import compute_open_slots

__all__ = ["router", "cron_router", "BookingService", "settle_ended_bookings", "compute_open_slots"]
