"""Typed failures of the booking core.

Raised before the reservation commits; the HTTP layer maps them to status codes.
Calendar and notification failures are never raised through these.
"""


class BookingError(Exception):
    """Base class for booking errors reported to the caller."""


class SlotUnavailable(BookingError):
    """No available, unoccupied slot starts at the requested time."""


class DuplicateBooking(BookingError):
    """The user already holds a live booking for this service and time."""


class ServiceOrUserNotFound(BookingError):
    """The service is missing or inactive, or the user does not exist."""


class BookingNotFound(BookingError):
    """No booking with the given id."""


class BookingInPast(BookingError):
    """The requested time is not strictly in the future."""


class BookingAccessDenied(BookingError):
    """The requester does not own the booking."""
