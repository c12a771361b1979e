"""
Booking orchestration.

Turns an accepted slot into a persisted booking:

1. validate the request (no side effects on failure)
2. create a conference room (best effort)
3. insert the booking (authoritative commit point)
4. create and link a calendar event (best effort)

Only step 3 can fail the operation. When it does, a conference room created
in step 2 is released again.

Blocking adapters run in worker threads, which keep running when a wait times
out. Store writes are therefore awaited until their real outcome is known, and
rooms or events that arrive after a timeout are released or linked in the
background; see ``wait_for_cleanup``.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Coroutine, List, Optional, Set, TypeVar

from pendulum import DateTime

from ..domain.exceptions import SlotUnavailableError
from ..domain.models import (
    Booking,
    BookingRequest,
    BookingResult,
    ConferenceRef,
    ExternalServiceDegraded,
    FailureKind,
    NewBooking,
)
from ..domain.validation import BookingValidator
from .ports import BookingStore, CalendarEventCreator, ConferenceRoomCreator

logger = logging.getLogger(__name__)

T = TypeVar("T")

CONFERENCE_SERVICE = "conference"
CALENDAR_SERVICE = "calendar"

VALIDATION_FAILED = "Validation failed"
SLOT_NO_LONGER_AVAILABLE = "The selected time slot is no longer available"


def _describe(exc: BaseException) -> str:
    return str(exc) or type(exc).__name__


class BookingOrchestrator:
    """
    Sequences the side effects of a booking and reconciles partial failures.

    Collaborators are injected; ``conference_client`` and ``calendar_client``
    are optional and their steps are recorded as skipped when absent.
    """

    def __init__(
        self,
        validator: BookingValidator,
        store: BookingStore,
        conference_client: Optional[ConferenceRoomCreator] = None,
        calendar_client: Optional[CalendarEventCreator] = None,
        timeout_seconds: float = 10.0,
        duration_minutes: int = 30,
    ) -> None:
        self._validator = validator
        self._store = store
        self._conference_client = conference_client
        self._calendar_client = calendar_client
        self._timeout_seconds = timeout_seconds
        self._duration_minutes = duration_minutes
        self._background: Set[asyncio.Future] = set()

    async def create_booking(self, request: BookingRequest) -> BookingResult:
        """
        Validate and book ``request``.

        Returns:
            BookingResult; ``success`` is True once the booking row exists,
            regardless of the conference and calendar outcomes
        """
        validation = self._validator.validate(request)
        if not validation.valid:
            logger.info("Booking request rejected: %s", "; ".join(validation.errors))
            return BookingResult(
                success=False,
                failure=FailureKind.VALIDATION,
                error=VALIDATION_FAILED,
                errors=validation.errors,
            )

        degradations: List[ExternalServiceDegraded] = []
        meeting = validation.meeting_datetime.in_timezone("UTC")
        email = request.attendee_email.strip()

        conference = await self._create_conference(
            email, meeting, request.recording_consent, degradations
        )

        draft = NewBooking(
            attendee_email=email,
            attendee_phone=_clean_phone(request.attendee_phone),
            meeting_datetime=meeting,
            duration_minutes=self._duration_minutes,
            recording_consent=request.recording_consent,
            conference_ref=conference,
        )

        try:
            booking = await self._store_outcome(self._store.insert(draft), "insert")
        except SlotUnavailableError as exc:
            logger.warning("Slot %s already taken: %s", meeting, _describe(exc))
            await self._release_conference(conference, degradations)
            return BookingResult(
                success=False,
                failure=FailureKind.SLOT_UNAVAILABLE,
                error=SLOT_NO_LONGER_AVAILABLE,
                degradations=degradations,
            )
        except Exception as exc:
            logger.error("Booking insert failed for %s at %s: %s", email, meeting, _describe(exc))
            await self._release_conference(conference, degradations)
            return BookingResult(
                success=False,
                failure=FailureKind.PERSISTENCE,
                error=f"Database error: {_describe(exc)}",
                degradations=degradations,
            )

        logger.info("Booking %s confirmed for %s at %s", booking.id, email, meeting)

        booking = await self._link_calendar_event(booking, degradations)

        return BookingResult(success=True, booking=booking, degradations=degradations)

    async def wait_for_cleanup(self) -> None:
        """Wait until late conference rooms and calendar events have been handled."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    async def _bounded(self, awaitable: Awaitable[T]) -> T:
        return await asyncio.wait_for(awaitable, timeout=self._timeout_seconds)

    async def _store_outcome(self, awaitable: Awaitable[T], operation: str) -> T:
        """
        Await a store write past the deadline.

        A write running in a worker thread can still commit after a timeout, so
        the reported result is always the write's own. The store bounds its
        database calls with driver-level timeouts.
        """
        task = asyncio.ensure_future(awaitable)
        try:
            return await asyncio.wait_for(asyncio.shield(task), timeout=self._timeout_seconds)
        except asyncio.TimeoutError:
            if task.done():
                raise
            logger.warning(
                "Booking %s still running after %ss, waiting for its outcome",
                operation,
                self._timeout_seconds,
            )
            return await task

    def _in_background(self, coro: Coroutine) -> None:
        task = asyncio.ensure_future(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    def _timed_out(self) -> str:
        return f"timed out after {self._timeout_seconds:g}s"

    async def _create_conference(
        self,
        email: str,
        meeting: DateTime,
        recording: bool,
        degradations: List[ExternalServiceDegraded],
    ) -> Optional[ConferenceRef]:
        if self._conference_client is None:
            degradations.append(
                ExternalServiceDegraded(CONFERENCE_SERVICE, "create_room", "not configured")
            )
            return None

        request = asyncio.ensure_future(
            self._conference_client.create_room(
                topic=f"Meeting with {email}",
                start=meeting,
                duration_minutes=self._duration_minutes,
                recording=recording,
            )
        )
        try:
            conference = await asyncio.wait_for(
                asyncio.shield(request), timeout=self._timeout_seconds
            )
        except asyncio.TimeoutError:
            logger.warning("Conference room creation timed out, continuing without")
            degradations.append(
                ExternalServiceDegraded(CONFERENCE_SERVICE, "create_room", self._timed_out())
            )
            if not request.done():
                self._in_background(self._release_late_room(request))
            return None
        except Exception as exc:
            logger.warning("Conference room creation failed, continuing without: %s", _describe(exc))
            degradations.append(
                ExternalServiceDegraded(CONFERENCE_SERVICE, "create_room", _describe(exc))
            )
            return None

        logger.info("Conference room %s created", conference.id)
        return conference

    async def _release_conference(
        self,
        conference: Optional[ConferenceRef],
        degradations: List[ExternalServiceDegraded],
    ) -> None:
        if conference is None:
            return

        try:
            await self._bounded(self._conference_client.delete_room(conference.id))
        except Exception as exc:
            logger.error("Could not release orphaned conference room %s: %s", conference.id, _describe(exc))
            degradations.append(
                ExternalServiceDegraded(
                    CONFERENCE_SERVICE, "delete_room", _describe(exc), reference=conference.id
                )
            )
            return

        logger.info("Released orphaned conference room %s", conference.id)

    async def _release_late_room(self, request: Awaitable[ConferenceRef]) -> None:
        try:
            conference = await request
        except Exception as exc:
            logger.info("Timed-out conference room request failed: %s", _describe(exc))
            return

        try:
            await self._bounded(self._conference_client.delete_room(conference.id))
        except Exception as exc:
            logger.error(
                "Could not release late conference room %s: %s", conference.id, _describe(exc)
            )
            return

        logger.info("Released conference room %s created after timeout", conference.id)

    async def _link_calendar_event(
        self,
        booking: Booking,
        degradations: List[ExternalServiceDegraded],
    ) -> Booking:
        if self._calendar_client is None:
            degradations.append(
                ExternalServiceDegraded(CALENDAR_SERVICE, "create_event", "not configured")
            )
            return booking

        request = asyncio.ensure_future(
            self._calendar_client.create_event(
                attendee_email=booking.attendee_email,
                start=booking.meeting_datetime,
                end=booking.end,
                summary=f"Meeting with {booking.attendee_email}",
                description=_event_description(booking),
            )
        )
        try:
            event_id = await asyncio.wait_for(
                asyncio.shield(request), timeout=self._timeout_seconds
            )
        except asyncio.TimeoutError:
            logger.warning("Calendar event creation for booking %s timed out", booking.id)
            degradations.append(
                ExternalServiceDegraded(CALENDAR_SERVICE, "create_event", self._timed_out())
            )
            if not request.done():
                self._in_background(self._link_late_event(request, booking.id))
            return booking
        except Exception as exc:
            logger.warning(
                "Calendar event creation failed for booking %s: %s", booking.id, _describe(exc)
            )
            degradations.append(
                ExternalServiceDegraded(CALENDAR_SERVICE, "create_event", _describe(exc))
            )
            return booking

        try:
            return await self._store_outcome(
                self._store.attach_calendar_event(booking.id, event_id), "update"
            )
        except Exception as exc:
            logger.error(
                "Calendar event %s created but not linked to booking %s: %s",
                event_id,
                booking.id,
                _describe(exc),
            )
            degradations.append(
                ExternalServiceDegraded(
                    CALENDAR_SERVICE, "attach_event", _describe(exc), reference=event_id
                )
            )
            return booking

    async def _link_late_event(self, request: Awaitable[str], booking_id: int) -> None:
        try:
            event_id = await request
        except Exception as exc:
            logger.info("Timed-out calendar event request failed: %s", _describe(exc))
            return

        try:
            await self._store.attach_calendar_event(booking_id, event_id)
        except Exception as exc:
            logger.error(
                "Calendar event %s created after timeout but not linked to booking %s: %s",
                event_id,
                booking_id,
                _describe(exc),
            )
            return

        logger.info(
            "Linked calendar event %s created after timeout to booking %s", event_id, booking_id
        )


def _clean_phone(phone) -> Optional[str]:
    if phone is None:
        return None
    cleaned = str(phone).strip()
    return cleaned or None


def _event_description(booking: Booking) -> str:
    lines = [
        "Meeting scheduled via booking system.",
        f"Attendee: {booking.attendee_email}",
        f"Phone: {booking.attendee_phone or 'Not provided'}",
        f"Recording consent: {'Yes' if booking.recording_consent else 'No'}",
    ]
    if booking.conference_ref is not None:
        lines.append(f"Join URL: {booking.conference_ref.join_url}")
    return "\n".join(lines)
