"""
Microsoft Graph API client for reading busy times and writing events.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional

import pendulum
import requests
from pendulum import DateTime

from ..domain.exceptions import CalendarAPIError
from ..domain.models import BusyInterval
from .graph_authenticator import GraphAuthenticator

logger = logging.getLogger(__name__)


class GraphCalendarClient:
    """
    Client for Microsoft Graph calendar operations on one mailbox.

    Uses /calendar/getSchedule for free/busy information and /events to create
    meetings. Requests are blocking; the async methods run them in a worker
    thread.
    """

    GRAPH_API_ENDPOINT = "https://graph.microsoft.com/v1.0"

    # Statuses that block a slot
    BUSY_STATUSES = {"busy", "tentative", "oof", "workingelsewhere"}

    def __init__(
        self,
        authenticator: GraphAuthenticator,
        calendar_user: str,
        timeout_seconds: float = 10.0,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize the Graph API client.

        Args:
            authenticator: Source of Graph access tokens
            calendar_user: Mailbox (UPN or id) whose calendar holds the bookings
            timeout_seconds: Per-request HTTP timeout
            session: Optional requests session (tests inject one)
        """
        self.authenticator = authenticator
        self.calendar_user = calendar_user
        self.timeout_seconds = timeout_seconds
        self._session = session or requests.Session()

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.authenticator.get_access_token()}",
            "Content-Type": "application/json",
            "Prefer": 'outlook.timezone="UTC"',
        }

    def _post(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        url = f"{self.GRAPH_API_ENDPOINT}/users/{self.calendar_user}{path}"

        try:
            response = self._session.post(
                url,
                headers=self._headers(),
                json=payload,
                timeout=self.timeout_seconds,
            )
            response.raise_for_status()
            return response.json()

        except requests.exceptions.RequestException as e:
            raise CalendarAPIError(f"Microsoft Graph request to {path} failed: {e}") from e

    def get_schedule(self, start_time: DateTime, end_time: DateTime) -> List[BusyInterval]:
        """
        Get busy times of the calendar user between two instants.

        Raises:
            CalendarAPIError: If the API call fails
        """
        payload = {
            "schedules": [self.calendar_user],
            "startTime": _graph_datetime(start_time),
            "endTime": _graph_datetime(end_time),
            "availabilityViewInterval": 30,
        }

        data = self._post("/calendar/getSchedule", payload)
        return self._parse_schedule_response(data)

    def _parse_schedule_response(self, response_data: Dict[str, Any]) -> List[BusyInterval]:
        """
        Parse the getSchedule API response into busy intervals.

        Response format:
        {
            "value": [
                {
                    "scheduleId": "owner@example.com",
                    "scheduleItems": [
                        {
                            "status": "busy",
                            "start": {"dateTime": "2025-12-15T16:00:00.0000000", "timeZone": "UTC"},
                            "end": {"dateTime": "2025-12-15T17:00:00.0000000", "timeZone": "UTC"}
                        }
                    ]
                }
            ]
        }
        """
        busy: List[BusyInterval] = []

        for schedule in response_data.get("value", []):
            for item in schedule.get("scheduleItems", []):
                if item.get("status", "").lower() not in self.BUSY_STATUSES:
                    continue

                try:
                    busy.append(
                        BusyInterval(
                            start=_parse_graph_datetime(item["start"]),
                            end=_parse_graph_datetime(item["end"]),
                        )
                    )
                except (KeyError, ValueError) as e:
                    logger.warning("Skipping unparseable schedule item: %s", e)

        return busy

    def create_calendar_event(
        self,
        attendee_email: str,
        start: DateTime,
        end: DateTime,
        summary: str,
        description: str,
    ) -> str:
        """
        Create an event with the attendee invited and return its id.

        Raises:
            CalendarAPIError: If the API call fails or returns no id
        """
        payload = {
            "subject": summary,
            "body": {"contentType": "text", "content": description},
            "start": _graph_datetime(start),
            "end": _graph_datetime(end),
            "attendees": [
                {"emailAddress": {"address": attendee_email}, "type": "required"}
            ],
        }

        data = self._post("/events", payload)
        event_id = data.get("id")
        if not event_id:
            raise CalendarAPIError("Microsoft Graph returned an event without id")

        logger.info("Created event %s for %s", event_id, attendee_email)
        return event_id

    async def get_busy_intervals(self, start: DateTime, end: DateTime) -> List[BusyInterval]:
        return await asyncio.to_thread(self.get_schedule, start, end)

    async def create_event(
        self,
        attendee_email: str,
        start: DateTime,
        end: DateTime,
        summary: str,
        description: str,
    ) -> str:
        return await asyncio.to_thread(
            self.create_calendar_event, attendee_email, start, end, summary, description
        )


def _graph_datetime(instant: DateTime) -> Dict[str, str]:
    return {
        "dateTime": instant.in_timezone("UTC").format("YYYY-MM-DDTHH:mm:ss"),
        "timeZone": "UTC",
    }


def _parse_graph_datetime(value: Dict[str, str]) -> DateTime:
    """
    Parse a Graph ``dateTimeTimeZone`` object.

    Graph sends seven fractional digits; only microseconds are kept.
    """
    text = value["dateTime"]
    if "." in text:
        whole, fraction = text.split(".", 1)
        text = f"{whole}.{fraction[:6]}"

    parsed = pendulum.parse(text, tz=value.get("timeZone") or "UTC")
    if not isinstance(parsed, DateTime):
        raise ValueError(f"Could not parse datetime: {value['dateTime']}")
    return parsed
