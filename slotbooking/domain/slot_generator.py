"""
Generation of canonical half-hour slots for a business day.

Pure domain logic: the only inputs are the date and the current instant
supplied by an injectable clock.
"""

from datetime import date
from typing import List

import pendulum

from .business_time import Clock, local_business_instant, local_date
from .models import TimeSlot


class SlotGenerator:
    """
    Enumerates slot boundaries inside the business window.

    Algorithm:
    1. Walk every ``slot_minutes`` boundary in ``[open_hour:00, close_hour:00)``
    2. Resolve each local wall-clock boundary to an absolute instant for that date
    3. On the current local date, drop slots that have already started
    """

    def __init__(
        self,
        timezone: str,
        open_hour: int,
        close_hour: int,
        slot_minutes: int = 30,
        clock: Clock = pendulum.now,
    ):
        self.timezone = timezone
        self.open_hour = open_hour
        self.close_hour = close_hour
        self.slot_minutes = slot_minutes
        self._clock = clock

    @property
    def slots_per_day(self) -> int:
        return (self.close_hour - self.open_hour) * 60 // self.slot_minutes

    def generate_slots(self, day: date) -> List[TimeSlot]:
        """
        Build all slots for ``day``, all initially available.

        Args:
            day: Calendar date, interpreted in the business time zone

        Returns:
            Slots in chronological order
        """
        now = self._clock()
        is_today = local_date(now, self.timezone) == day

        slots: List[TimeSlot] = []
        for index in range(self.slots_per_day):
            offset = index * self.slot_minutes
            start = local_business_instant(
                day,
                self.open_hour + offset // 60,
                offset % 60,
                self.timezone,
            )

            if is_today and start <= now:
                continue

            slots.append(
                TimeSlot(start=start, end=start.add(minutes=self.slot_minutes))
            )

        return slots
