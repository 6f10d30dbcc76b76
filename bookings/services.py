"""
Booking engine: the entry point for creating, cancelling, paying for and
reading bookings.

A booking request reserves seats on the ledger first, then prices and
persists the booking outside the ledger's critical section. If anything after
the reservation fails, the seats are released before the error propagates.
"""
import logging
from collections import namedtuple
from collections.abc import Mapping
from functools import lru_cache

from django.conf import settings
from django.dispatch import receiver
from django.core.signals import setting_changed

from . import lifecycle
from .exceptions import BookingNotFound, InvalidRequest, PersistenceFailure, TrainNotFound
from .fares import get_fare_calculator
from .ledger import get_seat_ledger, make_key
from .models import Booking
from .repository import BookingRepository

logger = logging.getLogger(__name__)

PassengerInput = namedtuple('PassengerInput', ['name', 'age', 'gender'])

SEAT_GROUP = 'A'
MAX_PASSENGER_AGE = 120

GENDER_TAGS = {
    'M': 'M', 'MALE': 'M',
    'F': 'F', 'FEMALE': 'F',
    'O': 'O', 'OTHER': 'O',
}

# Accepts either the stored code or the display label.
PAYMENT_METHODS = {}
for _code, _label in Booking.PAYMENT_METHOD_CHOICES:
    PAYMENT_METHODS[_code] = _code
    PAYMENT_METHODS[_label.upper()] = _code


def assign_seat_labels(count, group=SEAT_GROUP):
    """Sequential display labels for one booking: A1, A2, ..."""
    return [f"{group}{index}" for index in range(1, count + 1)]


def normalize_passengers(passengers, max_passengers=0):
    """Validate passenger input and return plain dicts in input order."""
    if not passengers:
        raise InvalidRequest("At least one passenger is required.")
    if max_passengers and len(passengers) > max_passengers:
        raise InvalidRequest(f"Maximum {max_passengers} passengers allowed per booking.")

    cleaned = []
    for position, passenger in enumerate(passengers, start=1):
        if isinstance(passenger, PassengerInput):
            passenger = passenger._asdict()
        elif not isinstance(passenger, Mapping):
            raise InvalidRequest(f"Passenger {position}: expected name, age and gender.")

        name = str(passenger.get('name') or '').strip()
        if not name:
            raise InvalidRequest(f"Passenger {position}: name is required.")

        age = passenger.get('age')
        if isinstance(age, bool) or not isinstance(age, int) or not 0 <= age <= MAX_PASSENGER_AGE:
            raise InvalidRequest(f"Passenger {position}: age must be between 0 and {MAX_PASSENGER_AGE}.")

        gender = GENDER_TAGS.get(str(passenger.get('gender') or '').strip().upper())
        if gender is None:
            raise InvalidRequest(f"Passenger {position}: unrecognized gender {passenger.get('gender')!r}.")

        cleaned.append({'name': name, 'age': age, 'gender': gender})
    return cleaned


def normalize_payment_method(payment_method):
    if not payment_method:
        return ''
    code = PAYMENT_METHODS.get(str(payment_method).strip().upper())
    if code is None:
        raise InvalidRequest(f"Unsupported payment method {payment_method!r}.")
    return code


class BookingEngine:
    """Orchestrates the fare calculator, the seat ledger and the repository."""

    def __init__(self, repository=None, ledger=None, fare_calculator=None,
                 waitlist_enabled=None, max_passengers=None):
        self.repository = repository or BookingRepository()
        self.ledger = ledger or get_seat_ledger()
        self.fare_calculator = fare_calculator or get_fare_calculator()
        if waitlist_enabled is None:
            waitlist_enabled = settings.BOOKING_WAITLIST_ENABLED
        if max_passengers is None:
            max_passengers = settings.BOOKING_MAX_PASSENGERS
        self.waitlist_enabled = waitlist_enabled
        self.max_passengers = max_passengers

    def create_booking(self, user_id, train_id, journey_date, passengers):
        """
        Book seats for ``passengers`` on a train and date.

        Returns the persisted booking, CONFIRMED with seat labels, or WAITING
        without seats when the waiting list is enabled and capacity is short.
        Raises InsufficientSeats, InvalidRequest or PersistenceFailure; on
        any failure the ledger is left as it was.
        """
        cleaned = normalize_passengers(passengers, self.max_passengers)
        key = make_key(train_id, journey_date)
        train = self.repository.find_train(key.train_id)
        if train is None:
            raise TrainNotFound(key.train_id)
        count = len(cleaned)

        reserved = self.ledger.try_reserve(key, count)
        available = None
        if not reserved:
            available = self.ledger.available_seats(key)
            logger.info("No capacity on train %s for %s: requested=%d available=%d",
                        key.train_id, key.journey_date, count, available)
        status = lifecycle.initial_status(reserved, self.waitlist_enabled,
                                          requested=count, available=available)

        try:
            total_fare = self.fare_calculator(
                count, train=train, journey_date=key.journey_date,
                ages=[passenger['age'] for passenger in cleaned],
            )
            if reserved:
                for passenger, seat_number in zip(cleaned, assign_seat_labels(count)):
                    passenger['seat_number'] = seat_number
            booking = self.repository.save_booking(
                user_id=user_id,
                train_id=key.train_id,
                journey_date=key.journey_date,
                total_fare=total_fare,
                status=status,
                passengers=cleaned,
            )
        except Exception:
            logger.exception("Booking for user %s on train %s (%s) failed after seat check",
                             user_id, key.train_id, key.journey_date)
            if reserved:
                self.ledger.release(key, count)
                logger.warning("Released %d seats on train %s for %s", count, key.train_id, key.journey_date)
            raise

        logger.info("Booking %s %s: user=%s train=%s date=%s passengers=%d fare=%s",
                    booking.id, status, user_id, key.train_id, key.journey_date, count, total_fare)

        # The booking is committed; from here on its seats are never released.
        try:
            return self.get_booking(booking.id)
        except PersistenceFailure:
            logger.warning("Booking %s saved but could not be reloaded", booking.id, exc_info=True)
            return booking

    def cancel_booking(self, booking_id):
        """
        Cancel a CONFIRMED or WAITING booking. Cancelling an already cancelled
        booking succeeds without touching the ledger.

        The status write and the seat release commit together: if the release
        fails the booking stays as it was and the cancel can be retried.
        """
        while True:
            booking = self.get_booking(booking_id)
            if lifecycle.is_cancelled(booking.status):
                logger.info("Booking %s already cancelled", booking_id)
                return True
            releases_seats = lifecycle.cancellation_releases_seats(booking.status)
            with self.repository.atomic():
                # Only the request that wins the status write releases seats.
                if not self.repository.update_booking_status(
                    booking_id, lifecycle.STATUS_CANCELLED, expected_status=booking.status
                ):
                    continue
                if releases_seats:
                    self.ledger.release(make_key(booking.train_id, booking.journey_date),
                                        booking.num_passengers)
            break

        logger.info("Booking %s cancelled (was %s)", booking_id, booking.status)
        return True

    def record_payment(self, booking_id, payment_method=None):
        method = normalize_payment_method(payment_method)
        while True:
            booking = self.get_booking(booking_id)
            lifecycle.validate_payment(booking.status, booking.payment_status)
            if self.repository.update_payment_status(
                booking_id,
                lifecycle.PAYMENT_PAID,
                expected_status=booking.status,
                expected_payment_status=booking.payment_status,
                payment_method=method,
            ):
                break

        logger.info("Payment recorded for booking %s via %s", booking_id, method or 'unspecified')
        return self.get_booking(booking_id)

    def get_available_seats(self, train_id, journey_date):
        return self.ledger.available_seats(make_key(train_id, journey_date))

    def get_booking(self, booking_id):
        booking = self.repository.find_booking(booking_id)
        if booking is None:
            raise BookingNotFound(booking_id)
        return booking

    def get_user_bookings(self, user_id):
        return self.repository.find_bookings_by_user(user_id)


@lru_cache(maxsize=None)
def get_booking_engine():
    """Process-wide engine built from settings."""
    return BookingEngine()


@receiver(setting_changed)
def reset_booking_engine(setting, **kwargs):
    if setting.startswith('BOOKING_'):
        get_booking_engine.cache_clear()
