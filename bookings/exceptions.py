"""
Booking engine error taxonomy.
"""
from contextlib import contextmanager

from django.db import DatabaseError


class BookingError(Exception):
    """Base exception for all booking engine errors."""


class InsufficientSeats(BookingError):
    """Raised when the ledger cannot cover the requested passenger count."""

    def __init__(self, requested, available):
        self.requested = requested
        self.available = available
        super().__init__(
            f"Only {available} seats available, {requested} requested."
        )


class BookingNotFound(BookingError):
    """Raised when no booking exists for the given id."""

    def __init__(self, booking_id):
        self.booking_id = booking_id
        super().__init__(f"Booking {booking_id} not found.")


class InvalidRequest(BookingError):
    """Raised for malformed booking requests, before any ledger mutation."""


class TrainNotFound(InvalidRequest):
    """Raised when the train id does not resolve to an active train."""

    def __init__(self, train_id):
        self.train_id = train_id
        super().__init__(f"Train {train_id} not found.")


class PersistenceFailure(BookingError):
    """Raised when the booking store fails. Safe to retry."""


class InvalidTransition(BookingError):
    """Raised when a lifecycle transition is not allowed from the current state."""

    def __init__(self, current, target):
        self.current = current
        self.target = target
        super().__init__(f"Invalid booking transition: {current} -> {target}")


@contextmanager
def persistence_errors(action):
    """Translate database errors raised inside the block into PersistenceFailure."""
    try:
        yield
    except DatabaseError as exc:
        raise PersistenceFailure(f"Could not {action}: {exc}") from exc
