from datetime import datetime, time, timezone

from app.domain.bookings.slots import compute_open_slots
from app.models import AvailabilityRule

# 2030-01-07 is a Monday (day_of_week 1)
MONDAY = datetime(2030, 1, 7, tzinfo=timezone.utc)
MONDAY_END = datetime(2030, 1, 7, 23, 59, tzinfo=timezone.utc)
MORNING = {"day_of_week": 1, "start_time": "09:00", "end_time": "12:00", "slot_minutes": 30}


def starts(slots):
    return [slot["start_at"] for slot in slots]


class TestComputeOpenSlots:
    """Slot generation from weekly rules."""

    def test_walks_rule_window(self):
        """Test slots step by slot_minutes and must fit the window."""
        slots = compute_open_slots(MONDAY, MONDAY_END, [MORNING], [], 60)

        assert starts(slots) == [
            "2030-01-07T09:00:00Z",
            "2030-01-07T09:30:00Z",
            "2030-01-07T10:00:00Z",
            "2030-01-07T10:30:00Z",
            "2030-01-07T11:00:00Z",
        ]
        assert slots[-1]["end_at"] == "2030-01-07T12:00:00Z"

    def test_booked_time_removed(self):
        """Test slots overlapping an active booking are dropped."""
        bookings = [
            {"start_at": "2030-01-07T10:00:00Z", "end_at": "2030-01-07T11:00:00Z", "status": "confirmed"}
        ]

        slots = compute_open_slots(MONDAY, MONDAY_END, [MORNING], bookings, 60)

        assert starts(slots) == ["2030-01-07T09:00:00Z", "2030-01-07T11:00:00Z"]

    def test_cancelled_bookings_ignored(self):
        """Test cancelled bookings do not block slots."""
        bookings = [
            {"start_at": "2030-01-07T10:00:00Z", "end_at": "2030-01-07T11:00:00Z", "status": "cancelled"}
        ]

        slots = compute_open_slots(MONDAY, MONDAY_END, [MORNING], bookings, 60)

        assert len(slots) == 5

    def test_other_weekdays_skipped(self):
        """Test rules only apply to their weekday."""
        sunday_rule = dict(MORNING, day_of_week=0)

        assert compute_open_slots(MONDAY, MONDAY_END, [sunday_rule], [], 60) == []

    def test_slots_outside_range_dropped(self):
        """Test slots ending before the range start are dropped."""
        start = datetime(2030, 1, 7, 10, 15, tzinfo=timezone.utc)

        slots = compute_open_slots(start, MONDAY_END, [MORNING], [], 60)

        assert "2030-01-07T09:00:00Z" not in starts(slots)
        assert "2030-01-07T09:30:00Z" in starts(slots)

    def test_malformed_rules_skipped(self):
        """Test bad times and empty windows produce nothing."""
        rules = [
            dict(MORNING, start_time="25:00"),
            dict(MORNING, start_time="12:00", end_time="09:00"),
            dict(MORNING, day_of_week="monday"),
        ]

        assert compute_open_slots(MONDAY, MONDAY_END, rules, [], 60) == []

    def test_duplicate_rules_deduplicated(self):
        """Test overlapping rules do not repeat slots."""
        slots = compute_open_slots(MONDAY, MONDAY_END, [MORNING, dict(MORNING)], [], 60)

        assert len(slots) == len(set(starts(slots))) == 5

    def test_minimum_step_and_duration(self):
        """Test step and duration are floored at five minutes."""
        rule = dict(MORNING, end_time="09:10", slot_minutes=1)

        slots = compute_open_slots(MONDAY, MONDAY_END, [rule], [], 1)

        assert starts(slots) == ["2030-01-07T09:00:00Z", "2030-01-07T09:05:00Z"]

    def test_orm_rows_accepted(self):
        """Test rules may be ORM rows with time columns."""
        rule = AvailabilityRule(
            day_of_week=1, start_time=time(9, 0), end_time=time(10, 0), slot_minutes=30
        )

        slots = compute_open_slots(MONDAY, MONDAY_END, [rule], [], 60)

        assert starts(slots) == ["2030-01-07T09:00:00Z"]

    def test_inverted_range(self):
        """Test an empty range yields no slots."""
        assert compute_open_slots(MONDAY_END, MONDAY, [MORNING], [], 60) == []


class TestAvailabilityEndpoint:
    """POST /booking/availability."""

    def test_returns_open_slots(self, client, db_session, business, service):
        """Test the endpoint excludes booked time and reports the service duration."""
        db_session.add(
            AvailabilityRule(
                business_id=business.id,
                day_of_week=1,
                start_time=time(9, 0),
                end_time=time(12, 0),
                slot_minutes=60,
            )
        )
        db_session.commit()
        client.post(
            "/booking/create",
            json={
                "businessId": business.id,
                "serviceId": service.id,
                "startAt": "2030-01-07T10:00:00Z",
            },
        )

        response = client.post(
            "/booking/availability",
            json={
                "businessId": business.id,
                "serviceId": service.id,
                "from": "2030-01-07T00:00:00Z",
                "to": "2030-01-07T23:59:00Z",
            },
        )

        assert response.status_code == 200
        data = response.json()
        assert data["durationMinutes"] == 60
        assert starts(data["slots"]) == ["2030-01-07T09:00:00Z", "2030-01-07T11:00:00Z"]

    def test_invalid_range(self, client, business):
        """Test non-ISO bounds are a 400."""
        response = client.post(
            "/booking/availability",
            json={"businessId": business.id, "from": "soon", "to": "later"},
        )

        assert response.status_code == 400
        assert response.json() == {"error": "from/to must be ISO timestamps"}
