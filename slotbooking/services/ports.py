"""
Protocols describing the external collaborators the services depend on.

Adapters in ``slotbooking.adapters`` implement these; tests plug in stubs.
"""

from __future__ import annotations

from typing import List, Protocol

from pendulum import DateTime

from ..domain.models import Booking, BusyInterval, ConferenceRef, NewBooking


class BusyIntervalReader(Protocol):
    """Reads existing commitments from the remote calendar."""

    async def get_busy_intervals(self, start: DateTime, end: DateTime) -> List[BusyInterval]:
        """Return busy intervals overlapping ``[start, end)``."""


class ConferenceRoomCreator(Protocol):
    """Creates and releases video-conference rooms."""

    async def create_room(
        self,
        topic: str,
        start: DateTime,
        duration_minutes: int,
        recording: bool,
    ) -> ConferenceRef:
        """Create a room; ``recording`` maps to the provider's recording mode."""

    async def delete_room(self, room_id: str) -> None:
        """Release a room that is no longer needed."""


class CalendarEventCreator(Protocol):
    """Writes booked meetings to the business calendar."""

    async def create_event(
        self,
        attendee_email: str,
        start: DateTime,
        end: DateTime,
        summary: str,
        description: str,
    ) -> str:
        """Create an event and return its opaque identifier."""


class BookingStore(Protocol):
    """Persistence sink for bookings."""

    async def insert(self, booking: NewBooking) -> Booking:
        """
        Persist a new booking.

        Raises:
            SlotUnavailableError: If an active booking holds the same meeting time
            PersistenceError: On any other storage failure
        """

    async def attach_calendar_event(self, booking_id: int, event_id: str) -> Booking:
        """Record the calendar event id on an existing booking."""
