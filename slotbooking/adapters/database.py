"""
SQLAlchemy-backed booking store.

The ``bookings`` table carries a unique index on ``meeting_datetime`` for
every booking that is not cancelled, so two concurrent requests for the same
slot cannot both commit.
"""

from __future__ import annotations

import asyncio
import logging
import math
from datetime import datetime, timezone
from typing import Callable, Optional

import pendulum
from pendulum import DateTime
from sqlalchemy import (
    Boolean,
    Column,
    DateTime as SADateTime,
    Index,
    Integer,
    String,
    Text,
    create_engine,
    text,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from ..domain.exceptions import PersistenceError, SlotUnavailableError
from ..domain.models import Booking, BookingStatus, ConferenceRef, NewBooking

logger = logging.getLogger(__name__)

Base = declarative_base()

_ACTIVE_ONLY = text("status != 'cancelled'")


class BookingRecord(Base):
    __tablename__ = "bookings"
    __table_args__ = (
        Index(
            "uq_bookings_active_meeting_datetime",
            "meeting_datetime",
            unique=True,
            sqlite_where=_ACTIVE_ONLY,
            postgresql_where=_ACTIVE_ONLY,
        ),
        Index("idx_bookings_email", "attendee_email"),
        Index("idx_bookings_status", "status"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    attendee_email = Column(String(255), nullable=False)
    attendee_phone = Column(String(50), nullable=True)
    meeting_datetime = Column(SADateTime(timezone=True), nullable=False)
    duration_minutes = Column(Integer, nullable=False, default=30)
    recording_consent = Column(Boolean, nullable=False, default=False)
    conference_id = Column(String(255), nullable=True)
    conference_join_url = Column(Text, nullable=True)
    conference_password = Column(String(255), nullable=True)
    calendar_event_id = Column(String(255), nullable=True)
    status = Column(String(50), nullable=False, default=BookingStatus.CONFIRMED.value)
    created_at = Column(SADateTime(timezone=True), nullable=False)
    updated_at = Column(SADateTime(timezone=True), nullable=False)


def create_db_engine(
    url: str,
    echo: bool = False,
    timeout_seconds: Optional[float] = None,
) -> Engine:
    """
    Create an engine for ``url``.

    SQLite connections are shared across the worker threads the async store
    methods run in; in-memory databases use a single static connection.

    ``timeout_seconds`` bounds each database call at the driver: the SQLite
    busy timeout, or the PostgreSQL connect and statement timeouts.
    """
    if url.startswith("postgresql"):
        connect_args = {}
        if timeout_seconds is not None:
            connect_args = {
                "connect_timeout": max(1, math.ceil(timeout_seconds)),
                "options": f"-c statement_timeout={int(timeout_seconds * 1000)}",
            }
        return create_engine(url, echo=echo, pool_pre_ping=True, connect_args=connect_args)

    if not url.startswith("sqlite"):
        return create_engine(url, echo=echo, pool_pre_ping=True)

    kwargs = {"connect_args": {"check_same_thread": False}}
    if timeout_seconds is not None:
        kwargs["connect_args"]["timeout"] = timeout_seconds
    if url in ("sqlite://", "sqlite:///:memory:"):
        kwargs["poolclass"] = StaticPool
    return create_engine(url, echo=echo, **kwargs)


class SqlBookingStore:
    """Booking persistence on any SQLAlchemy-supported database."""

    def __init__(self, engine: Engine, clock: Callable[[], DateTime] = lambda: pendulum.now("UTC")):
        self.engine = engine
        self._session_factory = sessionmaker(bind=engine, expire_on_commit=False)
        self._clock = clock

    @classmethod
    def from_url(
        cls,
        url: str,
        echo: bool = False,
        timeout_seconds: Optional[float] = None,
    ) -> "SqlBookingStore":
        return cls(create_db_engine(url, echo=echo, timeout_seconds=timeout_seconds))

    def create_schema(self) -> None:
        """Create the bookings table and its indexes if missing."""
        try:
            Base.metadata.create_all(self.engine)
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Could not create schema: {exc}") from exc

    def insert_booking(self, booking: NewBooking) -> Booking:
        """
        Insert ``booking`` and return the stored row.

        Raises:
            SlotUnavailableError: If an active booking holds the same meeting time
            PersistenceError: On any other database failure
        """
        now = _to_db(self._clock())
        conference = booking.conference_ref
        record = BookingRecord(
            attendee_email=booking.attendee_email,
            attendee_phone=booking.attendee_phone,
            meeting_datetime=_to_db(booking.meeting_datetime),
            duration_minutes=booking.duration_minutes,
            recording_consent=booking.recording_consent,
            conference_id=conference.id if conference else None,
            conference_join_url=conference.join_url if conference else None,
            conference_password=conference.password if conference else None,
            status=booking.status.value,
            created_at=now,
            updated_at=now,
        )

        try:
            with self._session_factory() as session:
                session.add(record)
                session.commit()
        except IntegrityError as exc:
            raise SlotUnavailableError(
                f"A booking already exists at {booking.meeting_datetime.to_iso8601_string()}"
            ) from exc
        except SQLAlchemyError as exc:
            raise PersistenceError(str(exc)) from exc

        logger.debug("Inserted booking %s", record.id)
        return _to_domain(record)

    def set_calendar_event(self, booking_id: int, event_id: str) -> Booking:
        """
        Store the calendar event id of a booking.

        Raises:
            PersistenceError: If the booking does not exist or the update fails
        """
        try:
            with self._session_factory() as session:
                record = session.get(BookingRecord, booking_id)
                if record is None:
                    raise PersistenceError(f"Booking {booking_id} not found")
                record.calendar_event_id = event_id
                record.updated_at = _to_db(self._clock())
                session.commit()
        except SQLAlchemyError as exc:
            raise PersistenceError(str(exc)) from exc

        return _to_domain(record)

    def get_booking(self, booking_id: int) -> Optional[Booking]:
        try:
            with self._session_factory() as session:
                record = session.get(BookingRecord, booking_id)
        except SQLAlchemyError as exc:
            raise PersistenceError(str(exc)) from exc

        return _to_domain(record) if record is not None else None

    async def insert(self, booking: NewBooking) -> Booking:
        return await asyncio.to_thread(self.insert_booking, booking)

    async def attach_calendar_event(self, booking_id: int, event_id: str) -> Booking:
        return await asyncio.to_thread(self.set_calendar_event, booking_id, event_id)


def _to_db(instant: DateTime) -> datetime:
    utc = instant.in_timezone("UTC")
    return datetime(
        utc.year, utc.month, utc.day,
        utc.hour, utc.minute, utc.second, utc.microsecond,
        tzinfo=timezone.utc,
    )


def _from_db(value: datetime) -> DateTime:
    # SQLite hands back naive values; they were written as UTC
    if value.tzinfo is None:
        return pendulum.instance(value, tz="UTC")
    return pendulum.instance(value).in_timezone("UTC")


def _to_domain(record: BookingRecord) -> Booking:
    conference = None
    if record.conference_id:
        conference = ConferenceRef(
            id=record.conference_id,
            join_url=record.conference_join_url or "",
            password=record.conference_password,
        )

    return Booking(
        id=record.id,
        attendee_email=record.attendee_email,
        attendee_phone=record.attendee_phone,
        meeting_datetime=_from_db(record.meeting_datetime),
        duration_minutes=record.duration_minutes,
        recording_consent=record.recording_consent,
        status=BookingStatus(record.status),
        conference_ref=conference,
        calendar_event_ref=record.calendar_event_id,
        created_at=_from_db(record.created_at),
        updated_at=_from_db(record.updated_at),
    )
