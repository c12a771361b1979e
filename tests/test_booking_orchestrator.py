"""
Tests for BookingOrchestrator.
"""

import asyncio
import time

import pendulum
import pytest

from slotbooking.adapters.database import SqlBookingStore, create_db_engine
from slotbooking.adapters.mock_clients import InMemoryBookingStore
from slotbooking.adapters.zoom_client import ZoomClient
from slotbooking.domain.business_calendar import BusinessCalendar
from slotbooking.domain.exceptions import (
    CalendarAPIError,
    ConferenceAPIError,
    PersistenceError,
    SlotUnavailableError,
)
from slotbooking.domain.models import BookingRequest, ConferenceRef, FailureKind
from slotbooking.domain.validation import BookingValidator
from slotbooking.services.booking import BookingOrchestrator

TZ = "America/Denver"
NOW = pendulum.datetime(2025, 12, 1, 8, 0, tz=TZ)
MEETING_UTC = pendulum.datetime(2025, 12, 15, 17, 0, tz="UTC")


class StubConference:
    """Conference client recording creates and deletes."""

    def __init__(self, fail_create=False, fail_delete=False, delay=0.0):
        self.fail_create = fail_create
        self.fail_delete = fail_delete
        self.delay = delay
        self.created = []
        self.deleted = []

    async def create_room(self, topic, start, duration_minutes, recording):
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_create:
            raise ConferenceAPIError("Zoom API returned 503")
        self.created.append({
            "topic": topic,
            "start": start,
            "duration_minutes": duration_minutes,
            "recording": recording,
        })
        return ConferenceRef(id="room-1", join_url="https://zoom.example/j/1", password="pw")

    async def delete_room(self, room_id):
        self.deleted.append(room_id)
        if self.fail_delete:
            raise ConferenceAPIError("Zoom API returned 500")


class StubCalendar:
    """Calendar client recording created events."""

    def __init__(self, fail=False, delay=0.0):
        self.fail = fail
        self.delay = delay
        self.events = []

    async def create_event(self, attendee_email, start, end, summary, description):
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise CalendarAPIError("Graph request failed")
        self.events.append({
            "attendee_email": attendee_email,
            "start": start,
            "end": end,
            "summary": summary,
            "description": description,
        })
        return "evt-1"


class FailingStore:
    """Store whose insert always raises."""

    def __init__(self, error):
        self.error = error
        self.inserted = []

    async def insert(self, booking):
        self.inserted.append(booking)
        raise self.error

    async def attach_calendar_event(self, booking_id, event_id):
        raise AssertionError("attach must not be called")


class UnlinkableStore(InMemoryBookingStore):
    """Store that inserts fine but cannot attach calendar events."""

    async def attach_calendar_event(self, booking_id, event_id):
        raise PersistenceError("connection reset")


class SlowSqlBookingStore(SqlBookingStore):
    """SQL store whose inserts block the worker thread before committing."""

    def __init__(self, engine, delay):
        super().__init__(engine)
        self.delay = delay

    def insert_booking(self, booking):
        time.sleep(self.delay)
        return super().insert_booking(booking)


class SlowZoomSession:
    """requests-like session whose meeting calls block before answering."""

    def __init__(self, delay):
        self.delay = delay
        self.calls = []

    def post(self, url, **kwargs):
        return FakeResponse({"access_token": "token", "expires_in": 3599})

    def request(self, method, url, **kwargs):
        if method == "POST":
            time.sleep(self.delay)
        self.calls.append((method, url))
        if method == "POST":
            return FakeResponse({"id": 555, "join_url": "https://zoom.example/j/555"}, 201)
        return FakeResponse({}, 204)


class FakeResponse:
    def __init__(self, payload, status_code=200):
        self._payload = payload
        self.status_code = status_code
        self.ok = status_code < 400
        self.text = ""

    def json(self):
        return self._payload

    def raise_for_status(self):
        pass


def make_orchestrator(store=None, conference=None, calendar=None, timeout_seconds=10.0):
    validator = BookingValidator(
        timezone=TZ,
        open_hour=7,
        close_hour=17,
        calendar=BusinessCalendar(country="US"),
        clock=lambda: NOW,
    )
    return BookingOrchestrator(
        validator=validator,
        store=store if store is not None else InMemoryBookingStore(),
        conference_client=conference,
        calendar_client=calendar,
        timeout_seconds=timeout_seconds,
    )


def booking_request(**overrides):
    fields = {
        "attendee_email": "visitor@example.com",
        "meeting_datetime": "2025-12-15T10:00:00",
        "recording_consent": True,
        "attendee_phone": " +1 555 0100 ",
    }
    fields.update(overrides)
    return BookingRequest(**fields)


def book(orchestrator, **overrides):
    return asyncio.run(orchestrator.create_booking(booking_request(**overrides)))


def book_and_settle(orchestrator, **overrides):
    """Book, then wait for work that finished after a timeout."""
    async def scenario():
        result = await orchestrator.create_booking(booking_request(**overrides))
        await orchestrator.wait_for_cleanup()
        return result

    return asyncio.run(scenario())


class TestHappyPath:
    """All collaborators succeed."""

    def test_booking_is_created_and_linked(self):
        store = InMemoryBookingStore()
        conference = StubConference()
        calendar = StubCalendar()
        orchestrator = make_orchestrator(store, conference, calendar)

        result = book(orchestrator)

        assert result.success
        assert result.http_status == 201
        assert result.degradations == []

        booking = result.booking
        assert booking.meeting_datetime == MEETING_UTC
        assert booking.attendee_phone == "+1 555 0100"
        assert booking.conference_ref.id == "room-1"
        assert booking.calendar_event_ref == "evt-1"
        assert store.bookings[booking.id].calendar_event_ref == "evt-1"

    def test_conference_receives_recording_flag(self):
        conference = StubConference()
        orchestrator = make_orchestrator(conference=conference, calendar=StubCalendar())

        book(orchestrator, recording_consent=False)

        created = conference.created[0]
        assert created["recording"] is False
        assert created["duration_minutes"] == 30
        assert created["start"] == MEETING_UTC
        assert created["topic"] == "Meeting with visitor@example.com"

    def test_calendar_event_carries_meeting_details(self):
        calendar = StubCalendar()
        orchestrator = make_orchestrator(conference=StubConference(), calendar=calendar)

        book(orchestrator)

        event = calendar.events[0]
        assert event["start"] == MEETING_UTC
        assert event["end"] == MEETING_UTC.add(minutes=30)
        assert "Join URL: https://zoom.example/j/1" in event["description"]
        assert "Recording consent: Yes" in event["description"]
        assert "Phone: +1 555 0100" in event["description"]


class TestValidationFailure:
    """Invalid requests have no side effects."""

    def test_no_collaborator_is_called(self):
        store = InMemoryBookingStore()
        conference = StubConference()
        calendar = StubCalendar()
        orchestrator = make_orchestrator(store, conference, calendar)

        result = book(orchestrator, attendee_email="bad", recording_consent=None)

        assert not result.success
        assert result.failure == FailureKind.VALIDATION
        assert result.http_status == 400
        assert result.error == "Validation failed"
        assert result.errors == ["Recording consent is required", "Invalid email address"]
        assert store.bookings == {}
        assert conference.created == []
        assert calendar.events == []


class TestBestEffortSteps:
    """Conference and calendar failures degrade, they do not fail the booking."""

    def test_conference_failure_still_books(self):
        store = InMemoryBookingStore()
        orchestrator = make_orchestrator(store, StubConference(fail_create=True), StubCalendar())

        result = book(orchestrator)

        assert result.success
        assert result.booking.conference_ref is None
        assert len(store.bookings) == 1
        assert [(d.service, d.step) for d in result.degradations] == [("conference", "create_room")]
        assert "503" in result.degradations[0].reason

    def test_calendar_failure_still_books(self):
        conference = StubConference()
        orchestrator = make_orchestrator(conference=conference, calendar=StubCalendar(fail=True))

        result = book(orchestrator)

        assert result.success
        assert result.booking.calendar_event_ref is None
        assert result.booking.conference_ref.id == "room-1"
        assert conference.deleted == []
        assert [(d.service, d.step) for d in result.degradations] == [("calendar", "create_event")]

    def test_attach_failure_keeps_event_reference(self):
        orchestrator = make_orchestrator(
            store=UnlinkableStore(),
            conference=StubConference(),
            calendar=StubCalendar(),
        )

        result = book(orchestrator)

        assert result.success
        assert result.booking.calendar_event_ref is None
        degraded = result.degradations[0]
        assert (degraded.service, degraded.step, degraded.reference) == (
            "calendar", "attach_event", "evt-1"
        )

    def test_unconfigured_clients_are_recorded(self):
        result = book(make_orchestrator())

        assert result.success
        assert [(d.step, d.reason) for d in result.degradations] == [
            ("create_room", "not configured"),
            ("create_event", "not configured"),
        ]


class TestPersistenceFailure:
    """The insert is the only step that fails the operation."""

    def test_database_error_releases_conference(self):
        conference = StubConference()
        calendar = StubCalendar()
        orchestrator = make_orchestrator(
            FailingStore(PersistenceError("connection refused")), conference, calendar
        )

        result = book(orchestrator)

        assert not result.success
        assert result.failure == FailureKind.PERSISTENCE
        assert result.http_status == 500
        assert result.error == "Database error: connection refused"
        assert conference.deleted == ["room-1"]
        assert calendar.events == []

    def test_slot_conflict(self):
        conference = StubConference()
        orchestrator = make_orchestrator(
            FailingStore(SlotUnavailableError("duplicate")), conference, StubCalendar()
        )

        result = book(orchestrator)

        assert result.failure == FailureKind.SLOT_UNAVAILABLE
        assert result.http_status == 409
        assert result.error == "The selected time slot is no longer available"
        assert conference.deleted == ["room-1"]

    def test_failed_release_is_recorded(self):
        conference = StubConference(fail_delete=True)
        orchestrator = make_orchestrator(
            FailingStore(PersistenceError("disk full")), conference, StubCalendar()
        )

        result = book(orchestrator)

        assert not result.success
        degraded = result.degradations[0]
        assert (degraded.service, degraded.step, degraded.reference) == (
            "conference", "delete_room", "room-1"
        )

    def test_nothing_to_release_without_room(self):
        conference = StubConference(fail_create=True)
        orchestrator = make_orchestrator(
            FailingStore(PersistenceError("disk full")), conference, StubCalendar()
        )

        result = book(orchestrator)

        assert not result.success
        assert conference.deleted == []

    @pytest.mark.parametrize("when", ["2025-12-15T10:00:00", "2025-12-15T17:00:00Z"])
    def test_second_booking_for_same_instant_is_rejected(self, when):
        orchestrator = make_orchestrator(conference=StubConference(), calendar=StubCalendar())

        first = book(orchestrator)
        second = book(orchestrator, attendee_email="other@example.com", meeting_datetime=when)

        assert first.success
        assert second.failure == FailureKind.SLOT_UNAVAILABLE


class TestSlowCollaborators:
    """Work that outlives a timeout is still reconciled."""

    def test_slow_insert_reports_the_commit(self, tmp_path):
        store = SlowSqlBookingStore(
            create_db_engine(f"sqlite:///{tmp_path / 'bookings.db'}"), delay=0.3
        )
        store.create_schema()
        conference = StubConference()
        orchestrator = make_orchestrator(store, conference, StubCalendar(), timeout_seconds=0.05)

        result = book(orchestrator)

        assert result.success
        assert conference.deleted == []
        stored = store.get_booking(result.booking.id)
        assert stored.conference_ref.id == "room-1"
        assert stored.calendar_event_ref == "evt-1"

    def test_slow_conflicting_insert_is_a_slot_conflict(self, tmp_path):
        store = SlowSqlBookingStore(
            create_db_engine(f"sqlite:///{tmp_path / 'bookings.db'}"), delay=0.0
        )
        store.create_schema()
        assert book(make_orchestrator(store)).success

        store.delay = 0.3
        conference = StubConference()
        orchestrator = make_orchestrator(store, conference, StubCalendar(), timeout_seconds=0.05)

        result = book(orchestrator, attendee_email="other@example.com")

        assert result.failure == FailureKind.SLOT_UNAVAILABLE
        assert conference.deleted == ["room-1"]

    def test_late_conference_room_is_released(self):
        conference = StubConference(delay=0.2)
        orchestrator = make_orchestrator(
            conference=conference, calendar=StubCalendar(), timeout_seconds=0.05
        )

        result = book_and_settle(orchestrator)

        assert result.success
        assert result.booking.conference_ref is None
        assert result.degradations[0].step == "create_room"
        assert result.degradations[0].reason == "timed out after 0.05s"
        assert conference.deleted == ["room-1"]

    def test_late_zoom_meeting_is_deleted(self):
        session = SlowZoomSession(delay=0.3)
        zoom = ZoomClient(
            account_id="acct",
            client_id="client",
            client_secret="secret",
            session=session,
        )
        orchestrator = make_orchestrator(
            conference=zoom, calendar=StubCalendar(), timeout_seconds=0.05
        )

        result = book_and_settle(orchestrator)

        assert result.success
        assert result.booking.conference_ref is None
        assert session.calls == [
            ("POST", "https://api.zoom.us/v2/users/me/meetings"),
            ("DELETE", "https://api.zoom.us/v2/meetings/555"),
        ]

    def test_late_calendar_event_is_linked(self):
        store = InMemoryBookingStore()
        orchestrator = make_orchestrator(
            store, StubConference(), StubCalendar(delay=0.2), timeout_seconds=0.05
        )

        result = book_and_settle(orchestrator)

        assert result.success
        assert result.booking.calendar_event_ref is None
        assert [(d.service, d.step) for d in result.degradations] == [("calendar", "create_event")]
        assert store.bookings[result.booking.id].calendar_event_ref == "evt-1"
