"""
Validation of incoming booking requests.

Every check runs and every failure is collected, so a caller can show the
visitor all problems at once. Messages are user-facing and stable.
"""

import re
from dataclasses import dataclass, field
from typing import List, Optional

import pendulum
from pendulum import DateTime

from .business_calendar import BusinessCalendar
from .business_time import Clock, parse_instant
from .models import BookingRequest

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

EMAIL_REQUIRED = "Email address is required"
DATETIME_REQUIRED = "Meeting date and time is required"
CONSENT_REQUIRED = "Recording consent is required"
INVALID_EMAIL = "Invalid email address"
INVALID_DATETIME = "Invalid meeting date and time"
INVALID_CONSENT = "Recording consent must be true or false"
PAST_MEETING = "Meeting time cannot be in the past"
MISALIGNED_MEETING = "Meeting time must start on the hour or half hour"
NOT_BUSINESS_DAY = "Meeting date must be a business day"


def is_valid_email(email: str) -> bool:
    """Simple ``local@domain.tld`` shape check."""
    return bool(EMAIL_PATTERN.match(email))


def _format_hour(hour: int) -> str:
    suffix = "AM" if hour < 12 else "PM"
    display = hour % 12 or 12
    return f"{display} {suffix}"


@dataclass
class ValidationResult:
    """Result of validating a BookingRequest."""
    valid: bool
    errors: List[str] = field(default_factory=list)
    meeting_datetime: Optional[DateTime] = None


class BookingValidator:
    """
    Checks booking requests against field rules and the business window.

    Order of reported errors: missing fields, then malformed fields, then
    temporal policy (past, business hours, slot alignment, business day).
    """

    def __init__(
        self,
        timezone: str,
        open_hour: int,
        close_hour: int,
        slot_minutes: int = 30,
        calendar: Optional[BusinessCalendar] = None,
        clock: Clock = pendulum.now,
    ):
        self.timezone = timezone
        self.open_hour = open_hour
        self.close_hour = close_hour
        self.slot_minutes = slot_minutes
        self.calendar = calendar or BusinessCalendar()
        self._clock = clock

    @property
    def business_hours_message(self) -> str:
        return (
            "Meeting time must be during business hours "
            f"({_format_hour(self.open_hour)} - {_format_hour(self.close_hour)} {self.timezone})"
        )

    def validate(self, request: BookingRequest) -> ValidationResult:
        """
        Validate ``request`` and collect all applicable errors.

        Returns:
            ValidationResult; ``meeting_datetime`` holds the parsed instant
            whenever the datetime field was parseable
        """
        errors: List[str] = []

        email = request.attendee_email
        raw_datetime = request.meeting_datetime
        consent = request.recording_consent

        email_present = not _is_blank(email)
        datetime_present = not _is_blank(raw_datetime)

        # Required fields
        if not email_present:
            errors.append(EMAIL_REQUIRED)
        if not datetime_present:
            errors.append(DATETIME_REQUIRED)
        if consent is None:
            errors.append(CONSENT_REQUIRED)

        # Formats
        if email_present and not (isinstance(email, str) and is_valid_email(email.strip())):
            errors.append(INVALID_EMAIL)

        meeting: Optional[DateTime] = None
        if datetime_present:
            try:
                meeting = parse_instant(raw_datetime, self.timezone)
            except ValueError:
                errors.append(INVALID_DATETIME)

        if consent is not None and not isinstance(consent, bool):
            errors.append(INVALID_CONSENT)

        # Temporal policy
        if meeting is not None:
            errors.extend(self._temporal_errors(meeting))

        return ValidationResult(valid=not errors, errors=errors, meeting_datetime=meeting)

    def _temporal_errors(self, meeting: DateTime) -> List[str]:
        errors: List[str] = []
        local = meeting.in_timezone(self.timezone)

        if meeting <= self._clock():
            errors.append(PAST_MEETING)

        if not self.open_hour <= local.hour < self.close_hour:
            errors.append(self.business_hours_message)
        elif local.minute % self.slot_minutes or local.second or local.microsecond:
            errors.append(MISALIGNED_MEETING)

        if not self.calendar.is_business_day(local.date()):
            holiday = self.calendar.holiday_name(local.date())
            errors.append(f"{NOT_BUSINESS_DAY} ({holiday})" if holiday else NOT_BUSINESS_DAY)

        return errors


def _is_blank(value) -> bool:
    if value is None:
        return True
    return isinstance(value, str) and not value.strip()
