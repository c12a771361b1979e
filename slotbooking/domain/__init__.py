"""
Domain layer - Pure business logic without external dependencies.
"""

from .availability import AvailabilityResolver
from .business_calendar import BusinessCalendar
from .models import (
    Booking,
    BookingRequest,
    BookingResult,
    BookingStatus,
    BusyInterval,
    ConferenceRef,
    ExternalServiceDegraded,
    FailureKind,
    Holiday,
    NewBooking,
    TimeSlot,
)
from .slot_generator import SlotGenerator
from .validation import BookingValidator, ValidationResult

__all__ = [
    "AvailabilityResolver",
    "Booking",
    "BookingRequest",
    "BookingResult",
    "BookingStatus",
    "BookingValidator",
    "BusinessCalendar",
    "BusyInterval",
    "ConferenceRef",
    "ExternalServiceDegraded",
    "FailureKind",
    "Holiday",
    "NewBooking",
    "SlotGenerator",
    "TimeSlot",
    "ValidationResult",
]
