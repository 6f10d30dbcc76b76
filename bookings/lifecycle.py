"""
Booking lifecycle state machine.

    PENDING -> CONFIRMED | WAITING -> CANCELLED

PENDING only exists while a create request is in flight and is never stored.
Payment status moves independently from PENDING to PAID, and only while the
booking is CONFIRMED.
"""
from .exceptions import InsufficientSeats, InvalidTransition

STATUS_PENDING = 'PENDING'
STATUS_CONFIRMED = 'CONFIRMED'
STATUS_WAITING = 'WAITING'
STATUS_CANCELLED = 'CANCELLED'

PAYMENT_PENDING = 'PENDING'
PAYMENT_PAID = 'PAID'

ALLOWED_TRANSITIONS = {
    STATUS_PENDING: {STATUS_CONFIRMED, STATUS_WAITING},
    STATUS_CONFIRMED: {STATUS_CANCELLED},
    STATUS_WAITING: {STATUS_CANCELLED},
    STATUS_CANCELLED: set(),
}


def validate_transition(current, target):
    """Raise InvalidTransition unless ``current -> target`` is allowed."""
    if target not in ALLOWED_TRANSITIONS.get(current, set()):
        raise InvalidTransition(current, target)


def initial_status(reserved, waitlist_enabled, requested=0, available=0):
    """
    Resolve the status a new booking leaves PENDING with.

    Seats reserved: CONFIRMED. Otherwise WAITING when the waiting list is
    enabled, else the request is rejected with InsufficientSeats.
    """
    if reserved:
        target = STATUS_CONFIRMED
    elif waitlist_enabled:
        target = STATUS_WAITING
    else:
        raise InsufficientSeats(requested=requested, available=available)
    validate_transition(STATUS_PENDING, target)
    return target


def is_cancelled(status):
    return status == STATUS_CANCELLED


def cancellation_releases_seats(status):
    """Only CONFIRMED bookings hold inventory; WAITING bookings never do."""
    validate_transition(status, STATUS_CANCELLED)
    return status == STATUS_CONFIRMED


def validate_payment(status, payment_status):
    if status != STATUS_CONFIRMED:
        raise InvalidTransition(status, PAYMENT_PAID)
    if payment_status != PAYMENT_PENDING:
        raise InvalidTransition(payment_status, PAYMENT_PAID)
