"""
Business-day rules: weekends and public holidays.

Holiday tables come from the ``holidays`` package and are computed once per
year, then shared read-only.
"""

import logging
from datetime import date, timedelta
from typing import Dict, List, Optional

import holidays

from .exceptions import CalendarDataError
from .models import Holiday

logger = logging.getLogger(__name__)

# Saturday, Sunday
WEEKEND_DAYS = (5, 6)

MAX_SCAN_DAYS = 366


class BusinessCalendar:
    """
    Decides whether a calendar date can carry bookings.

    A business day is a weekday that is not a public holiday of the configured
    country (and optional subdivision). Observed holidays count as holidays.
    """

    def __init__(self, country: str = "US", subdivision: Optional[str] = None):
        self.country = country
        self.subdivision = subdivision
        self._years: Dict[int, Dict[date, str]] = {}

    def _holidays_for(self, year: int) -> Dict[date, str]:
        table = self._years.get(year)
        if table is None:
            source = holidays.country_holidays(
                self.country,
                subdiv=self.subdivision,
                years=year,
            )
            table = {day: name for day, name in source.items() if day.year == year}
            self._years[year] = table
            logger.debug("Loaded %d %s holidays for %d", len(table), self.country, year)
        return table

    def holiday_name(self, day: date) -> Optional[str]:
        """Return the holiday label for ``day``, or None."""
        return self._holidays_for(day.year).get(_as_date(day))

    def is_business_day(self, day: date) -> bool:
        if day.weekday() in WEEKEND_DAYS:
            return False
        return self.holiday_name(day) is None

    def next_business_day(self, day: date) -> date:
        """
        Return the first business day strictly after ``day``.

        Raises:
            CalendarDataError: If no business day exists within a year
        """
        current = _as_date(day)
        for _ in range(MAX_SCAN_DAYS):
            current = current + timedelta(days=1)
            if self.is_business_day(current):
                return current

        raise CalendarDataError(
            f"No business day found within {MAX_SCAN_DAYS} days after {day.isoformat()}"
        )

    def business_days_in_range(self, start: date, count: int) -> List[date]:
        """
        Collect up to ``count`` business days starting at ``start`` (inclusive).

        The scan window is bounded, so a long holiday run yields fewer days
        rather than an unbounded loop.
        """
        found: List[date] = []
        current = _as_date(start)
        for _ in range(count * 2 + 14):
            if len(found) >= count:
                break
            if self.is_business_day(current):
                found.append(current)
            current = current + timedelta(days=1)
        return found

    def holidays_for_year(self, year: int) -> List[Holiday]:
        """All holidays of ``year`` in date order."""
        return [
            Holiday(date=day, name=name)
            for day, name in sorted(self._holidays_for(year).items())
        ]


def _as_date(day: date) -> date:
    # pendulum.Date and datetime values both collapse to a plain date key
    return date(day.year, day.month, day.day)
