"""
Service layer helpers that orchestrate adapters and domain logic.
"""

from .availability import AvailabilityService
from .booking import BookingOrchestrator
from .ports import BookingStore, BusyIntervalReader, CalendarEventCreator, ConferenceRoomCreator

__all__ = [
    "AvailabilityService",
    "BookingOrchestrator",
    "BookingStore",
    "BusyIntervalReader",
    "CalendarEventCreator",
    "ConferenceRoomCreator",
]
