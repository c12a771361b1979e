"""
In-memory collaborators for running without Zoom, Graph or a database.
"""

from __future__ import annotations

import itertools
import json
import logging
from dataclasses import replace
from pathlib import Path
from typing import Any, Dict, List, Optional

import pendulum
from pendulum import DateTime

from ..domain.exceptions import PersistenceError, SlotUnavailableError
from ..domain.models import Booking, BookingStatus, BusyInterval, ConferenceRef, NewBooking

logger = logging.getLogger(__name__)


class MockCalendarClient:
    """
    Calendar that keeps events in memory.

    Seed events can be loaded from a JSON file holding a list of
    ``{"start": "...", "end": "..."}`` objects; naive timestamps are read in
    ``timezone``. Events created through ``create_event`` become busy time.
    """

    def __init__(self, events: Optional[List[Dict[str, Any]]] = None, timezone: str = "UTC"):
        self.timezone = timezone
        self.busy: List[BusyInterval] = []
        self.created_events: Dict[str, Dict[str, Any]] = {}
        self._ids = itertools.count(1)

        for event in events or []:
            try:
                self.busy.append(
                    BusyInterval(
                        start=pendulum.parse(event["start"], tz=timezone),
                        end=pendulum.parse(event["end"], tz=timezone),
                    )
                )
            except (KeyError, ValueError) as exc:
                logger.warning("Skipping invalid mock event %r: %s", event, exc)

    @classmethod
    def from_file(cls, data_file: Path, timezone: str = "UTC") -> "MockCalendarClient":
        with open(data_file, "r", encoding="utf-8") as f:
            return cls(events=json.load(f), timezone=timezone)

    async def get_busy_intervals(self, start: DateTime, end: DateTime) -> List[BusyInterval]:
        return [interval for interval in self.busy if interval.overlaps(start, end)]

    async def create_event(
        self,
        attendee_email: str,
        start: DateTime,
        end: DateTime,
        summary: str,
        description: str,
    ) -> str:
        event_id = f"mock-event-{next(self._ids)}"
        self.created_events[event_id] = {
            "attendee_email": attendee_email,
            "summary": summary,
            "description": description,
        }
        self.busy.append(BusyInterval(start=start, end=end))
        return event_id


class MockConferenceClient:
    """Conference provider that hands out fake meeting rooms."""

    def __init__(self):
        self.rooms: Dict[str, ConferenceRef] = {}
        self.recording: Dict[str, bool] = {}
        self._ids = itertools.count(1)

    async def create_room(
        self,
        topic: str,
        start: DateTime,
        duration_minutes: int,
        recording: bool,
    ) -> ConferenceRef:
        room_id = str(next(self._ids))
        room = ConferenceRef(
            id=room_id,
            join_url=f"https://meet.example.com/j/{room_id}",
            password="mock",
        )
        self.rooms[room_id] = room
        self.recording[room_id] = recording
        return room

    async def delete_room(self, room_id: str) -> None:
        self.rooms.pop(room_id, None)
        self.recording.pop(room_id, None)


class InMemoryBookingStore:
    """Booking store with the same uniqueness rule as the SQL store."""

    def __init__(self):
        self.bookings: Dict[int, Booking] = {}
        self._ids = itertools.count(1)

    async def insert(self, booking: NewBooking) -> Booking:
        for existing in self.bookings.values():
            if (
                existing.status != BookingStatus.CANCELLED
                and existing.meeting_datetime == booking.meeting_datetime
            ):
                raise SlotUnavailableError(
                    f"A booking already exists at {booking.meeting_datetime.to_iso8601_string()}"
                )

        now = pendulum.now("UTC")
        stored = Booking(
            id=next(self._ids),
            attendee_email=booking.attendee_email,
            attendee_phone=booking.attendee_phone,
            meeting_datetime=booking.meeting_datetime,
            duration_minutes=booking.duration_minutes,
            recording_consent=booking.recording_consent,
            status=booking.status,
            conference_ref=booking.conference_ref,
            created_at=now,
            updated_at=now,
        )
        self.bookings[stored.id] = stored
        return stored

    async def attach_calendar_event(self, booking_id: int, event_id: str) -> Booking:
        if booking_id not in self.bookings:
            raise PersistenceError(f"Booking {booking_id} not found")
        updated = replace(
            self.bookings[booking_id],
            calendar_event_ref=event_id,
            updated_at=pendulum.now("UTC"),
        )
        self.bookings[booking_id] = updated
        return updated
