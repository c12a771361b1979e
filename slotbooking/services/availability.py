"""
Slot query service.

Coordinates holiday/weekend rules, slot generation and the remote calendar's
busy intervals. The remote calendar is an optimisation over a static
schedule: when it cannot be reached, slots are offered optimistically.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import date
from typing import List, Optional, Tuple

from ..domain.availability import AvailabilityResolver
from ..domain.business_calendar import BusinessCalendar
from ..domain.business_time import local_day_bounds
from ..domain.models import BusyInterval, TimeSlot
from ..domain.slot_generator import SlotGenerator
from .ports import BusyIntervalReader

logger = logging.getLogger(__name__)


class AvailabilityService:
    """
    Answers "which slots can be booked on this date".

    Non-business days yield an empty list; that is an answer, not an error.
    """

    def __init__(
        self,
        busy_reader: BusyIntervalReader,
        calendar: BusinessCalendar,
        generator: SlotGenerator,
        resolver: Optional[AvailabilityResolver] = None,
        timeout_seconds: float = 10.0,
    ) -> None:
        self._busy_reader = busy_reader
        self._calendar = calendar
        self._generator = generator
        self._resolver = resolver or AvailabilityResolver()
        self._timeout_seconds = timeout_seconds

    async def get_slots(self, day: date) -> List[TimeSlot]:
        """Return the day's slots with availability resolved."""
        if not self._calendar.is_business_day(day):
            logger.debug("%s is not a business day", day)
            return []

        slots = self._generator.generate_slots(day)
        if not slots:
            return []

        try:
            busy = await self.fetch_busy_intervals(day)
        except Exception as exc:
            logger.warning(
                "Busy intervals unavailable for %s, offering all slots: %s",
                day,
                str(exc) or type(exc).__name__,
            )
            if not self._calendar.is_business_day(day):
                return []
            return self._generator.generate_slots(day)

        return self._resolver.resolve(slots, busy)

    async def fetch_busy_intervals(self, day: date) -> List[BusyInterval]:
        """Fetch busy intervals for the whole local day, bounded by the timeout."""
        start, end = local_day_bounds(day, self._generator.timezone)
        return await asyncio.wait_for(
            self._busy_reader.get_busy_intervals(start, end),
            timeout=self._timeout_seconds,
        )

    async def next_available_day(
        self,
        day: date,
        max_days: int = 30,
    ) -> Optional[Tuple[date, List[TimeSlot]]]:
        """
        Find the first business day on or after ``day`` with a free slot.

        Returns:
            ``(date, slots)`` or None when nothing is free within ``max_days``
            business days
        """
        current = day
        if not self._calendar.is_business_day(current):
            current = self._calendar.next_business_day(current)

        for _ in range(max_days):
            slots = await self.get_slots(current)
            if any(slot.available for slot in slots):
                return current, slots
            current = self._calendar.next_business_day(current)

        return None
