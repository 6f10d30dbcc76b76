"""
Django ORM persistence for bookings.

Status writes are compare-and-set: they only apply while the row still holds
the status the caller read, and report whether they did.
"""
from contextlib import contextmanager

from django.db import transaction
from django.utils import timezone

from trains.models import Train
from . import lifecycle
from .exceptions import persistence_errors
from .models import Booking, Passenger


class BookingRepository:

    @contextmanager
    def atomic(self):
        """Writes made inside the block, ledger updates included, commit together."""
        with persistence_errors('commit booking change'):
            with transaction.atomic():
                yield

    def find_train(self, train_id):
        with persistence_errors('load train'):
            return Train.objects.filter(pk=train_id, is_active=True).first()

    def save_booking(self, *, user_id, train_id, journey_date, total_fare, status, passengers):
        """
        Insert a booking and its passengers as one unit and return the new
        booking. Once this returns the booking is committed.
        """
        with persistence_errors('save booking'):
            # Reads stay outside the write transaction.
            pnr = Booking.unused_pnr()
            with transaction.atomic():
                booking = Booking.objects.create(
                    pnr=pnr,
                    user_id=user_id,
                    train_id=train_id,
                    journey_date=journey_date,
                    num_passengers=len(passengers),
                    total_fare=total_fare,
                    status=status,
                    confirmed_at=timezone.now() if status == lifecycle.STATUS_CONFIRMED else None,
                )
                Passenger.objects.bulk_create([
                    Passenger(booking=booking, **passenger) for passenger in passengers
                ])
        return booking

    def update_booking_status(self, booking_id, status, expected_status):
        changes = {'status': status}
        if status == lifecycle.STATUS_CANCELLED:
            changes['cancelled_at'] = timezone.now()
        elif status == lifecycle.STATUS_CONFIRMED:
            changes['confirmed_at'] = timezone.now()

        with persistence_errors('update booking status'):
            updated = Booking.objects.filter(pk=booking_id, status=expected_status).update(**changes)
        return updated == 1

    def update_payment_status(self, booking_id, payment_status, *, expected_status,
                              expected_payment_status, payment_method=''):
        with persistence_errors('update payment status'):
            updated = Booking.objects.filter(
                pk=booking_id,
                status=expected_status,
                payment_status=expected_payment_status,
            ).update(
                payment_status=payment_status,
                payment_method=payment_method,
                paid_at=timezone.now(),
            )
        return updated == 1

    def _bookings(self):
        return Booking.objects.select_related('train', 'user').prefetch_related('passengers')

    def find_booking(self, booking_id):
        with persistence_errors('load booking'):
            return self._bookings().filter(pk=booking_id).first()

    def find_bookings_by_user(self, user_id):
        with persistence_errors('load bookings'):
            return list(self._bookings().filter(user_id=user_id).order_by('-booking_date', '-id'))
