"""
Fare calculation.

A fare calculator is any callable ``fare(num_passengers, train=None,
journey_date=None, ages=())`` returning a ``Decimal``. It must be total for
``num_passengers >= 1`` and non-decreasing in ``num_passengers``.
"""
from decimal import Decimal

from django.conf import settings
from django.utils.module_loading import import_string

CENT = Decimal('0.01')


class FlatFareCalculator:
    """Charges the same base fare for every seat."""

    def __init__(self, base_fare_per_seat=None):
        if base_fare_per_seat is None:
            base_fare_per_seat = settings.BOOKING_BASE_FARE_PER_SEAT
        base_fare_per_seat = Decimal(str(base_fare_per_seat))
        if base_fare_per_seat < 0:
            raise ValueError("Base fare per seat cannot be negative.")
        self.base_fare_per_seat = base_fare_per_seat

    def __call__(self, num_passengers, train=None, journey_date=None, ages=()):
        if num_passengers < 1:
            raise ValueError("At least one passenger is required to price a booking.")
        return (self.base_fare_per_seat * num_passengers).quantize(CENT)


def get_fare_calculator():
    """Instantiate the fare calculator named by ``BOOKING_FARE_CALCULATOR``."""
    return import_string(settings.BOOKING_FARE_CALCULATOR)()
