"""
Assembly of domain objects, adapters and services from configuration.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import pendulum

from .adapters.database import SqlBookingStore
from .adapters.graph_authenticator import GraphAuthenticator
from .adapters.graph_client import GraphCalendarClient
from .adapters.mock_clients import InMemoryBookingStore, MockCalendarClient, MockConferenceClient
from .adapters.zoom_client import ZoomClient
from .config import AppConfig
from .domain.business_calendar import BusinessCalendar
from .domain.business_time import Clock
from .domain.slot_generator import SlotGenerator
from .domain.validation import BookingValidator
from .services.availability import AvailabilityService
from .services.booking import BookingOrchestrator
from .services.ports import BookingStore, BusyIntervalReader, CalendarEventCreator, ConferenceRoomCreator

logger = logging.getLogger(__name__)


@dataclass
class BookingEngine:
    """The two entry points plus the calendar they share."""
    calendar: BusinessCalendar
    availability: AvailabilityService
    orchestrator: BookingOrchestrator


def build_engine(
    config: AppConfig,
    *,
    busy_reader: BusyIntervalReader,
    store: BookingStore,
    conference_client: Optional[ConferenceRoomCreator] = None,
    calendar_client: Optional[CalendarEventCreator] = None,
    clock: Clock = pendulum.now,
) -> BookingEngine:
    business = config.business
    calendar = BusinessCalendar(
        country=business.holiday_country,
        subdivision=business.holiday_subdivision,
    )
    generator = SlotGenerator(
        timezone=business.timezone,
        open_hour=business.open_hour,
        close_hour=business.close_hour,
        slot_minutes=business.slot_minutes,
        clock=clock,
    )
    validator = BookingValidator(
        timezone=business.timezone,
        open_hour=business.open_hour,
        close_hour=business.close_hour,
        slot_minutes=business.slot_minutes,
        calendar=calendar,
        clock=clock,
    )

    return BookingEngine(
        calendar=calendar,
        availability=AvailabilityService(
            busy_reader=busy_reader,
            calendar=calendar,
            generator=generator,
            timeout_seconds=config.external_timeout_seconds,
        ),
        orchestrator=BookingOrchestrator(
            validator=validator,
            store=store,
            conference_client=conference_client,
            calendar_client=calendar_client,
            timeout_seconds=config.external_timeout_seconds,
            duration_minutes=business.slot_minutes,
        ),
    )


def build_live_engine(config: AppConfig) -> BookingEngine:
    """
    Wire the Graph calendar, Zoom and the SQL store.

    Raises:
        ValueError: If the Graph calendar is not configured
    """
    if config.graph is None:
        raise ValueError("The 'graph' section is required outside mock mode.")

    timeout = config.external_timeout_seconds
    graph = GraphCalendarClient(
        authenticator=GraphAuthenticator(
            client_id=config.graph.client_id,
            tenant_id=config.graph.tenant_id,
            client_secret=config.graph.client_secret,
            authority_url=config.graph.get_authority_url(),
        ),
        calendar_user=config.graph.calendar_user,
        timeout_seconds=timeout,
    )

    zoom = None
    if config.zoom is not None:
        zoom = ZoomClient(
            account_id=config.zoom.account_id,
            client_id=config.zoom.client_id,
            client_secret=config.zoom.client_secret,
            timezone=config.business.timezone,
            base_url=config.zoom.base_url,
            token_url=config.zoom.token_url,
            timeout_seconds=timeout,
        )
    else:
        logger.warning("Zoom is not configured; bookings will have no conference room")

    store = SqlBookingStore.from_url(
        config.database.url,
        echo=config.database.echo,
        timeout_seconds=timeout,
    )
    store.create_schema()

    return build_engine(
        config,
        busy_reader=graph,
        store=store,
        conference_client=zoom,
        calendar_client=graph,
    )


def build_mock_engine(config: AppConfig, busy_file: Optional[Path] = None) -> BookingEngine:
    """Wire in-memory collaborators, optionally seeded with busy times."""
    timezone = config.business.timezone
    if busy_file is not None:
        calendar_client = MockCalendarClient.from_file(busy_file, timezone=timezone)
    else:
        calendar_client = MockCalendarClient(timezone=timezone)

    return build_engine(
        config,
        busy_reader=calendar_client,
        store=InMemoryBookingStore(),
        conference_client=MockConferenceClient(),
        calendar_client=calendar_client,
    )
