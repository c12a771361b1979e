"""
Domain-specific exception hierarchy for the slot booking application.
"""


class SlotBookingError(Exception):
    """Base class for all application-level errors."""


class CalendarAPIError(SlotBookingError):
    """Raised when calendar data cannot be fetched or an event cannot be written."""


class ConferenceAPIError(SlotBookingError):
    """Raised when the video-conference provider rejects or fails a request."""


class AuthenticationError(SlotBookingError):
    """Raised when authentication or token handling fails."""


class CalendarDataError(SlotBookingError):
    """Raised when holiday reference data makes a calendar query impossible."""


class PersistenceError(SlotBookingError):
    """Raised when a booking cannot be written to or read from the store."""


class SlotUnavailableError(PersistenceError):
    """Raised when another booking already holds the requested meeting time."""
