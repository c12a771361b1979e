"""
Merging generated slots with busy intervals from the remote calendar.
"""

from dataclasses import replace
from typing import Iterable, List, Sequence

from .models import BusyInterval, TimeSlot


class AvailabilityResolver:
    """Marks slots unavailable where they overlap a busy interval."""

    def resolve(
        self,
        slots: Sequence[TimeSlot],
        busy_intervals: Iterable[BusyInterval],
    ) -> List[TimeSlot]:
        """
        Return a copy of ``slots`` with ``available`` set from ``busy_intervals``.

        A busy interval that only touches a slot boundary does not conflict.
        """
        busy = sorted(busy_intervals, key=lambda b: b.start)

        return [
            replace(slot, available=not self._conflicts(slot, busy))
            for slot in slots
        ]

    @staticmethod
    def _conflicts(slot: TimeSlot, busy: List[BusyInterval]) -> bool:
        for interval in busy:
            if interval.start >= slot.end:
                # sorted by start, nothing later can overlap
                return False
            if interval.overlaps(slot.start, slot.end):
                return True
        return False
