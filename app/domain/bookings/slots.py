"""Open booking slot computation from weekly availability rules"""

from datetime import datetime, timedelta
from typing import Iterable

from ...shared.validators import (
    isoformat_utc,
    parse_iso_datetime,
    parse_time_to_minutes,
    to_utc,
)


def _get(row, key):
    if isinstance(row, dict):
        return row.get(key)
    return getattr(row, key, None)


def _as_utc(value):
    if value is None:
        return None
    if isinstance(value, datetime):
        return to_utc(value)
    return parse_iso_datetime(value)


def _day_of_week(day: datetime) -> int:
    """0=Sunday .. 6=Saturday"""
    return (day.weekday() + 1) % 7


def compute_open_slots(
    start: datetime,
    end: datetime,
    rules: Iterable,
    bookings: Iterable,
    duration_minutes: int = 60,
) -> list[dict]:
    """
    Free slots between start and end.

    Every UTC day in range is walked against the rules for its weekday; each
    rule yields slots of `duration_minutes` stepping by its `slot_minutes`.
    Slots outside the range or overlapping a non-cancelled booking are dropped.
    Rules and bookings may be ORM rows or dicts.
    """
    start = to_utc(start)
    end = to_utc(end)
    if end < start:
        return []

    duration = timedelta(minutes=max(5, int(duration_minutes or 60)))
    rules = list(rules or [])

    busy = []
    for booking in bookings or []:
        if str(_get(booking, "status") or "").lower() == "cancelled":
            continue
        b_start = _as_utc(_get(booking, "start_at"))
        b_end = _as_utc(_get(booking, "end_at"))
        if b_start and b_end:
            busy.append((b_start, b_end))

    slots = []
    day = start.replace(hour=0, minute=0, second=0, microsecond=0)
    last_day = end.replace(hour=0, minute=0, second=0, microsecond=0)

    while day <= last_day:
        weekday = _day_of_week(day)
        for rule in rules:
            try:
                rule_day = int(_get(rule, "day_of_week"))
            except (TypeError, ValueError):
                continue
            if rule_day != weekday:
                continue

            start_min = parse_time_to_minutes(_get(rule, "start_time"))
            end_min = parse_time_to_minutes(_get(rule, "end_time"))
            if start_min is None or end_min is None or end_min <= start_min:
                continue
            step = timedelta(minutes=max(5, int(_get(rule, "slot_minutes") or 30)))

            window_end = day + timedelta(minutes=end_min)
            slot_start = day + timedelta(minutes=start_min)
            while slot_start + duration <= window_end:
                slot_end = slot_start + duration
                in_range = not (slot_end < start or slot_start > end)
                conflict = any(slot_start < b_end and b_start < slot_end for b_start, b_end in busy)
                if in_range and not conflict:
                    slots.append((slot_start, slot_end))
                slot_start += step
        day += timedelta(days=1)

    unique = sorted(set(slots))
    return [{"start_at": isoformat_utc(s), "end_at": isoformat_utc(e)} for s, e in unique]
