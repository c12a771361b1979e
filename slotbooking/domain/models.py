"""
Domain models for slots, busy intervals and bookings.
"""

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from pendulum import DateTime


@dataclass(frozen=True)
class BusyInterval:
    """
    An existing commitment reported by the remote calendar.

    Invariant: start must be before end.
    """
    start: DateTime
    end: DateTime

    def __post_init__(self):
        if self.start >= self.end:
            raise ValueError(f"Start time {self.start} must be before end time {self.end}")

    def overlaps(self, start: DateTime, end: DateTime) -> bool:
        """Open-interval overlap; touching boundaries do not count."""
        return start < self.end and end > self.start


@dataclass(frozen=True)
class TimeSlot:
    """
    A bookable half-hour candidate.

    ``available`` defaults to True and is only ever replaced by the
    availability resolver.
    """
    start: DateTime
    end: DateTime
    available: bool = True

    def duration_minutes(self) -> int:
        """Return the duration in minutes."""
        return int((self.end - self.start).total_seconds() / 60)

    def format_display(self, timezone: str) -> str:
        """
        Format the slot for display in the business time zone.
        Format: Mon 15 Dec 2025 | 07:00 AM – 07:30 AM MST
        """
        start = self.start.in_timezone(timezone)
        end = self.end.in_timezone(timezone)
        return (
            f"{start.format('ddd DD MMM YYYY')} | "
            f"{start.format('hh:mm A')} – {end.format('hh:mm A')} {start.tzname()}"
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "start": self.start.in_timezone("UTC").to_iso8601_string(),
            "end": self.end.in_timezone("UTC").to_iso8601_string(),
            "available": self.available,
        }


@dataclass(frozen=True)
class Holiday:
    """A public holiday on which no meetings are offered."""
    date: date
    name: str


@dataclass(frozen=True)
class ConferenceRef:
    """Reference to a video-conference room created for a booking."""
    id: str
    join_url: str
    password: Optional[str] = None


class BookingStatus(str, Enum):
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


@dataclass
class BookingRequest:
    """
    Raw booking input as received from a caller.

    Fields are deliberately loose; BookingValidator decides what is acceptable.
    """
    attendee_email: Any = None
    meeting_datetime: Any = None
    recording_consent: Any = None
    attendee_phone: Any = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "BookingRequest":
        """Build a request from a JSON-like mapping, ignoring unknown keys."""
        return cls(
            attendee_email=data.get("attendee_email"),
            meeting_datetime=data.get("meeting_datetime"),
            recording_consent=data.get("recording_consent"),
            attendee_phone=data.get("attendee_phone"),
        )


@dataclass(frozen=True)
class NewBooking:
    """A validated booking that has not been persisted yet."""
    attendee_email: str
    meeting_datetime: DateTime
    recording_consent: bool
    attendee_phone: Optional[str] = None
    duration_minutes: int = 30
    status: BookingStatus = BookingStatus.CONFIRMED
    conference_ref: Optional[ConferenceRef] = None


@dataclass
class Booking:
    """A persisted booking, owned by the booking store."""
    id: int
    attendee_email: str
    meeting_datetime: DateTime
    recording_consent: bool
    created_at: DateTime
    updated_at: DateTime
    attendee_phone: Optional[str] = None
    duration_minutes: int = 30
    status: BookingStatus = BookingStatus.CONFIRMED
    conference_ref: Optional[ConferenceRef] = None
    calendar_event_ref: Optional[str] = None

    @property
    def end(self) -> DateTime:
        return self.meeting_datetime.add(minutes=self.duration_minutes)

    def to_dict(self) -> Dict[str, Any]:
        conference = None
        if self.conference_ref is not None:
            conference = {
                "id": self.conference_ref.id,
                "join_url": self.conference_ref.join_url,
                "password": self.conference_ref.password,
            }
        return {
            "id": self.id,
            "attendee_email": self.attendee_email,
            "attendee_phone": self.attendee_phone,
            "meeting_datetime": self.meeting_datetime.in_timezone("UTC").to_iso8601_string(),
            "duration_minutes": self.duration_minutes,
            "recording_consent": self.recording_consent,
            "status": self.status.value,
            "conference": conference,
            "calendar_event_ref": self.calendar_event_ref,
            "created_at": self.created_at.to_iso8601_string(),
            "updated_at": self.updated_at.to_iso8601_string(),
        }


@dataclass(frozen=True)
class ExternalServiceDegraded:
    """
    A best-effort step that did not complete.

    Recorded on the booking result for later reconciliation; never fatal.
    """
    service: str
    step: str
    reason: str
    reference: Optional[str] = None


class FailureKind(str, Enum):
    VALIDATION = "validation"
    SLOT_UNAVAILABLE = "slot_unavailable"
    PERSISTENCE = "persistence"


_HTTP_STATUS = {
    FailureKind.VALIDATION: 400,
    FailureKind.SLOT_UNAVAILABLE: 409,
    FailureKind.PERSISTENCE: 500,
}


@dataclass
class BookingResult:
    """Outcome of a booking attempt."""
    success: bool
    booking: Optional[Booking] = None
    failure: Optional[FailureKind] = None
    error: Optional[str] = None
    errors: List[str] = field(default_factory=list)
    degradations: List[ExternalServiceDegraded] = field(default_factory=list)

    @property
    def http_status(self) -> int:
        """HTTP-equivalent status code for callers that expose this over HTTP."""
        if self.success:
            return 201
        return _HTTP_STATUS[self.failure]
