"""
Reference time zone helpers.

Every conversion between a local business wall-clock time and an absolute
instant goes through this module, so slot generation and booking validation
agree on UTC offsets on both sides of a daylight saving transition.
"""

from datetime import date, datetime
from typing import Any, Callable, Tuple

import pendulum
from pendulum import DateTime

Clock = Callable[[], DateTime]


def local_business_instant(day: date, hour: int, minute: int, timezone: str) -> DateTime:
    """
    Return the absolute instant of ``hour:minute`` on ``day`` in ``timezone``.

    The UTC offset comes from the tz database for that specific calendar date.
    """
    return pendulum.datetime(day.year, day.month, day.day, hour, minute, tz=timezone)


def local_day_bounds(day: date, timezone: str) -> Tuple[DateTime, DateTime]:
    """Return ``[midnight, next midnight)`` of ``day`` in ``timezone``."""
    start = local_business_instant(day, 0, 0, timezone)
    return start, start.add(days=1)


def parse_instant(value: Any, timezone: str) -> DateTime:
    """
    Parse ``value`` into an aware pendulum DateTime.

    Naive inputs are read as wall-clock time in ``timezone``; inputs that carry
    an offset keep it.

    Args:
        value: datetime instance or ISO 8601 string
        timezone: IANA timezone identifier used for naive inputs

    Returns:
        Aware pendulum DateTime

    Raises:
        ValueError: If the value cannot be interpreted as a datetime
    """
    if isinstance(value, DateTime):
        return value

    if isinstance(value, datetime):
        if value.tzinfo is None:
            return pendulum.instance(value, tz=timezone)
        return pendulum.instance(value)

    if isinstance(value, str) and value.strip():
        parsed = pendulum.parse(value.strip(), tz=timezone)
        if isinstance(parsed, DateTime):
            return parsed

    raise ValueError(f"Could not parse datetime: {value!r}")


def local_date(instant: DateTime, timezone: str) -> date:
    """Calendar date of ``instant`` as seen in ``timezone``."""
    return instant.in_timezone(timezone).date()
