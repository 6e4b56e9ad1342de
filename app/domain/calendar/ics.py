"""iCalendar (RFC 5545) rendering for booking calendar events"""

from datetime import datetime, timezone
from typing import Iterable, Optional

from ...config import ICS_PRODID, ICS_UID_DOMAIN
from ...models_booking import CalendarEvent
from ...shared.validators import to_utc


def escape_ics_text(value: Optional[str]) -> str:
    """Escape a TEXT property value"""
    return (
        str(value or "")
        .replace("\\", "\\\\")
        .replace("\n", "\\n")
        .replace(",", "\\,")
        .replace(";", "\\;")
    )


def fold_ics_line(line: str, limit: int = 75) -> str:
    """
    Fold a content line so no physical line exceeds 75 octets.

    Continuation lines start with a single space, which counts toward the limit.
    Multi-byte UTF-8 characters are never split.
    """
    if len(line.encode("utf-8")) <= limit:
        return line

    parts = []
    current = ""
    size = 0
    budget = limit
    for char in line:
        width = len(char.encode("utf-8"))
        if size + width > budget:
            parts.append(current)
            current = ""
            size = 0
            budget = limit - 1
        current += char
        size += width
    parts.append(current)
    return "\r\n ".join(parts)


def format_ics_utc(value: Optional[datetime]) -> str:
    if value is None:
        return ""
    return to_utc(value).strftime("%Y%m%dT%H%M%SZ")


def build_ics(
    business_id: str, events: Iterable[CalendarEvent], now: Optional[datetime] = None
) -> str:
    """Render calendar events as a VCALENDAR with one VEVENT per event"""
    stamp = format_ics_utc(now or datetime.now(timezone.utc))
    lines = [
        "BEGIN:VCALENDAR",
        "VERSION:2.0",
        f"PRODID:{ICS_PRODID}",
        "CALSCALE:GREGORIAN",
    ]

    for event in events:
        booking_ref = event.booking_id if event.booking_id is not None else ""
        lines.extend(
            [
                "BEGIN:VEVENT",
                f"UID:{ICS_UID_DOMAIN}-{business_id}-{event.id}@{ICS_UID_DOMAIN}",
                f"DTSTAMP:{stamp}",
                f"DTSTART:{format_ics_utc(event.start_at)}",
                f"DTEND:{format_ics_utc(event.end_at)}",
                f"SUMMARY:{escape_ics_text(event.title or 'Booking')}",
                f"DESCRIPTION:{escape_ics_text(f'Booking {booking_ref}')}",
                "END:VEVENT",
            ]
        )

    lines.append("END:VCALENDAR")
    return "\r\n".join(fold_ics_line(line) for line in lines)
