"""
Tests for domain models.
"""

import pendulum
import pytest

from slotbooking.domain.models import (
    BookingRequest,
    BookingResult,
    BusyInterval,
    FailureKind,
    TimeSlot,
)

TZ = "America/Denver"


class TestBusyInterval:
    """Tests for BusyInterval model."""

    def test_invalid_interval_raises_error(self):
        """Test that an interval ending before it starts is rejected."""
        start = pendulum.parse("2025-12-15 17:00", tz=TZ)
        end = pendulum.parse("2025-12-15 09:00", tz=TZ)

        with pytest.raises(ValueError, match="Start time .* must be before end time"):
            BusyInterval(start=start, end=end)

    def test_overlaps(self):
        """Test open-interval overlap detection."""
        busy = BusyInterval(
            start=pendulum.parse("2025-12-15 10:00", tz=TZ),
            end=pendulum.parse("2025-12-15 11:00", tz=TZ),
        )

        assert busy.overlaps(
            pendulum.parse("2025-12-15 10:30", tz=TZ),
            pendulum.parse("2025-12-15 11:00", tz=TZ),
        )
        assert not busy.overlaps(
            pendulum.parse("2025-12-15 11:00", tz=TZ),
            pendulum.parse("2025-12-15 11:30", tz=TZ),
        )
        assert not busy.overlaps(
            pendulum.parse("2025-12-15 09:30", tz=TZ),
            pendulum.parse("2025-12-15 10:00", tz=TZ),
        )

    def test_overlap_across_timezones(self):
        """Instants compare by absolute time, not wall clock."""
        busy = BusyInterval(
            start=pendulum.parse("2025-12-15T17:00:00Z"),
            end=pendulum.parse("2025-12-15T18:00:00Z"),
        )

        # 10:00 MST == 17:00 UTC
        assert busy.overlaps(
            pendulum.parse("2025-12-15 10:00", tz=TZ),
            pendulum.parse("2025-12-15 10:30", tz=TZ),
        )


class TestTimeSlot:
    """Tests for TimeSlot model."""

    def test_duration_and_default_availability(self):
        start = pendulum.parse("2025-12-15 07:00", tz=TZ)
        slot = TimeSlot(start=start, end=start.add(minutes=30))

        assert slot.available is True
        assert slot.duration_minutes() == 30

    def test_format_display(self):
        start = pendulum.parse("2025-12-15 07:00", tz=TZ)
        slot = TimeSlot(start=start, end=start.add(minutes=30))

        assert slot.format_display(TZ) == "Mon 15 Dec 2025 | 07:00 AM – 07:30 AM MST"

    def test_to_dict_uses_utc(self):
        start = pendulum.parse("2025-12-15 07:00", tz=TZ)
        slot = TimeSlot(start=start, end=start.add(minutes=30), available=False)

        data = slot.to_dict()

        assert data["start"].startswith("2025-12-15T14:00:00")
        assert data["end"].startswith("2025-12-15T14:30:00")
        assert data["available"] is False


class TestBookingRequest:
    """Tests for BookingRequest construction."""

    def test_from_mapping_ignores_unknown_keys(self):
        request = BookingRequest.from_mapping({
            "attendee_email": "visitor@example.com",
            "meeting_datetime": "2025-12-15T10:00:00",
            "recording_consent": False,
            "unexpected": "value",
        })

        assert request.attendee_email == "visitor@example.com"
        assert request.recording_consent is False
        assert request.attendee_phone is None

    def test_from_mapping_keeps_missing_fields_empty(self):
        request = BookingRequest.from_mapping({})

        assert request.attendee_email is None
        assert request.meeting_datetime is None
        assert request.recording_consent is None


class TestBookingResult:
    """Tests for HTTP-equivalent status mapping."""

    def test_http_status(self):
        assert BookingResult(success=False, failure=FailureKind.VALIDATION).http_status == 400
        assert BookingResult(success=False, failure=FailureKind.SLOT_UNAVAILABLE).http_status == 409
        assert BookingResult(success=False, failure=FailureKind.PERSISTENCE).http_status == 500
