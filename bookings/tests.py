"""
Tests for the bookings app.
Tests cover: Fare calculation, Lifecycle rules, Seat ledger, Booking engine,
Concurrency, and the REST API.
"""
import copy
import threading
from contextlib import nullcontext
from datetime import date, time, timedelta
from decimal import Decimal
from types import SimpleNamespace
from unittest import mock

from django.contrib.auth import get_user_model
from django.contrib import admin
from django.db import DatabaseError, connection
from django.test import RequestFactory, SimpleTestCase, TestCase, TransactionTestCase, override_settings
from rest_framework import status
from rest_framework.test import APITestCase

from trains.models import Train
from bookings import lifecycle
from bookings.exceptions import (
    BookingNotFound, InsufficientSeats, InvalidRequest, InvalidTransition,
    PersistenceFailure, TrainNotFound,
)
from bookings.fares import FlatFareCalculator, get_fare_calculator
from bookings.ledger import (
    DatabaseSeatLedger, InMemorySeatLedger, SeatInventoryKey, make_key,
)
from bookings.admin import BookingAdmin, PassengerInline, SeatInventoryAdmin
from bookings.models import Booking, Passenger, SeatInventory, generate_pnr
from bookings.repository import BookingRepository
from bookings.services import (
    BookingEngine, PassengerInput, assign_seat_labels, get_booking_engine, normalize_passengers,
)

User = get_user_model()

BASE_FARE = Decimal('50.00')


def passengers(count):
    return [
        {'name': f'Passenger {i}', 'age': 20 + i, 'gender': 'MFO'[i % 3]}
        for i in range(1, count + 1)
    ]


def create_train(number='RAJ2025', total_seats=2, **kwargs):
    defaults = {
        'train_name': 'Rajdhani Express',
        'source': 'Delhi',
        'destination': 'Mumbai',
        'departure_time': time(16, 0),
        'arrival_time': time(8, 0),
    }
    defaults.update(kwargs)
    return Train.objects.create(train_number=number, total_seats=total_seats, **defaults)


# =============================================================================
# UNIT TESTS - Fares
# =============================================================================

class FareCalculatorTests(SimpleTestCase):
    """Test the flat fare policy."""

    def test_fare_is_base_fare_times_passengers(self):
        fare = FlatFareCalculator(BASE_FARE)
        self.assertEqual(fare(2), Decimal('100.00'))

    def test_fare_is_non_decreasing(self):
        fare = FlatFareCalculator(Decimal('33.33'))
        amounts = [fare(n) for n in range(1, 8)]
        self.assertEqual(amounts, sorted(amounts))

    def test_zero_passengers_rejected(self):
        with self.assertRaises(ValueError):
            FlatFareCalculator(BASE_FARE)(0)

    def test_negative_base_fare_rejected(self):
        with self.assertRaises(ValueError):
            FlatFareCalculator(Decimal('-1'))

    @override_settings(BOOKING_BASE_FARE_PER_SEAT=Decimal('75.50'))
    def test_base_fare_from_settings(self):
        """Test the base fare comes from configuration."""
        fare = get_fare_calculator()
        self.assertIsInstance(fare, FlatFareCalculator)
        self.assertEqual(fare(3), Decimal('226.50'))


# =============================================================================
# UNIT TESTS - Lifecycle
# =============================================================================

class LifecycleTests(SimpleTestCase):
    """Test booking state machine rules."""

    def test_reserved_booking_is_confirmed(self):
        self.assertEqual(lifecycle.initial_status(True, False), lifecycle.STATUS_CONFIRMED)

    def test_unreserved_booking_waits_when_waitlist_enabled(self):
        self.assertEqual(lifecycle.initial_status(False, True), lifecycle.STATUS_WAITING)

    def test_unreserved_booking_rejected_by_default(self):
        with self.assertRaises(InsufficientSeats) as ctx:
            lifecycle.initial_status(False, False, requested=3, available=1)
        self.assertEqual(ctx.exception.requested, 3)
        self.assertEqual(ctx.exception.available, 1)

    def test_only_confirmed_cancellation_releases_seats(self):
        self.assertTrue(lifecycle.cancellation_releases_seats(lifecycle.STATUS_CONFIRMED))
        self.assertFalse(lifecycle.cancellation_releases_seats(lifecycle.STATUS_WAITING))

    def test_cancelled_is_terminal(self):
        for target in (lifecycle.STATUS_CONFIRMED, lifecycle.STATUS_WAITING, lifecycle.STATUS_CANCELLED):
            with self.assertRaises(InvalidTransition):
                lifecycle.validate_transition(lifecycle.STATUS_CANCELLED, target)

    def test_payment_requires_confirmed_and_pending(self):
        lifecycle.validate_payment(lifecycle.STATUS_CONFIRMED, lifecycle.PAYMENT_PENDING)

        for booking_status in (lifecycle.STATUS_CANCELLED, lifecycle.STATUS_WAITING):
            with self.assertRaises(InvalidTransition):
                lifecycle.validate_payment(booking_status, lifecycle.PAYMENT_PENDING)

        with self.assertRaises(InvalidTransition):
            lifecycle.validate_payment(lifecycle.STATUS_CONFIRMED, lifecycle.PAYMENT_PAID)


# =============================================================================
# UNIT TESTS - Passenger input
# =============================================================================

class PassengerInputTests(SimpleTestCase):
    """Test passenger validation and seat labels."""

    def test_empty_passenger_list_rejected(self):
        with self.assertRaises(InvalidRequest):
            normalize_passengers([])

    def test_negative_age_rejected(self):
        with self.assertRaises(InvalidRequest):
            normalize_passengers([{'name': 'A', 'age': -1, 'gender': 'M'}])

    def test_infant_age_accepted(self):
        cleaned = normalize_passengers([{'name': 'Baby', 'age': 0, 'gender': 'F'}])
        self.assertEqual(cleaned[0]['age'], 0)

    def test_unknown_gender_rejected(self):
        with self.assertRaises(InvalidRequest):
            normalize_passengers([{'name': 'A', 'age': 30, 'gender': 'X'}])

    def test_long_gender_tags_normalized(self):
        cleaned = normalize_passengers([
            PassengerInput('A', 30, 'male'),
            {'name': 'B', 'age': 31, 'gender': 'Female'},
            {'name': 'C', 'age': 32, 'gender': 'OTHER'},
        ])
        self.assertEqual([p['gender'] for p in cleaned], ['M', 'F', 'O'])
        self.assertEqual([p['name'] for p in cleaned], ['A', 'B', 'C'])

    def test_passenger_cap(self):
        with self.assertRaises(InvalidRequest):
            normalize_passengers(passengers(7), max_passengers=6)
        self.assertEqual(len(normalize_passengers(passengers(7), max_passengers=0)), 7)

    def test_seat_labels(self):
        self.assertEqual(assign_seat_labels(3), ['A1', 'A2', 'A3'])


# =============================================================================
# UNIT TESTS - In-process ledger
# =============================================================================

class InMemorySeatLedgerTests(SimpleTestCase):
    """Test the per-key locked in-process ledger."""

    def setUp(self):
        self.capacities = {1: 5, 2: 3}
        self.ledger = InMemorySeatLedger(capacity_lookup=self.capacities.__getitem__)
        self.key = SeatInventoryKey(1, date(2025, 4, 10))

    def test_missing_key_has_nothing_committed(self):
        self.assertEqual(self.ledger.committed_seats(self.key), 0)
        self.assertEqual(self.ledger.available_seats(self.key), 5)

    def test_reserve_within_capacity(self):
        self.assertTrue(self.ledger.try_reserve(self.key, 3))
        self.assertTrue(self.ledger.try_reserve(self.key, 2))
        self.assertEqual(self.ledger.available_seats(self.key), 0)

    def test_reserve_beyond_capacity_changes_nothing(self):
        self.ledger.try_reserve(self.key, 4)
        self.assertFalse(self.ledger.try_reserve(self.key, 2))
        self.assertEqual(self.ledger.committed_seats(self.key), 4)

    def test_release_floors_at_zero(self):
        self.ledger.try_reserve(self.key, 2)
        self.ledger.release(self.key, 5)
        self.assertEqual(self.ledger.committed_seats(self.key), 0)

    def test_keys_are_independent(self):
        other_date = SeatInventoryKey(1, date(2025, 4, 11))
        other_train = SeatInventoryKey(2, date(2025, 4, 10))
        self.ledger.try_reserve(self.key, 5)
        self.assertTrue(self.ledger.try_reserve(other_date, 5))
        self.assertTrue(self.ledger.try_reserve(other_train, 3))

    def test_invalid_count_rejected(self):
        with self.assertRaises(ValueError):
            self.ledger.try_reserve(self.key, 0)

    def test_concurrent_reservations_never_exceed_capacity(self):
        """50 threads race for 5 seats; exactly 5 win."""
        results = []
        barrier = threading.Barrier(50)

        def reserve():
            barrier.wait()
            results.append(self.ledger.try_reserve(self.key, 1))

        threads = [threading.Thread(target=reserve) for _ in range(50)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.assertEqual(results.count(True), 5)
        self.assertEqual(results.count(False), 45)
        self.assertEqual(self.ledger.committed_seats(self.key), 5)


# =============================================================================
# DATABASE TESTS - Ledger
# =============================================================================

class DatabaseSeatLedgerTests(TestCase):
    """Test the conditional-update ledger."""

    def setUp(self):
        self.train = create_train(total_seats=5)
        self.ledger = DatabaseSeatLedger()
        self.key = make_key(self.train.id, '2025-04-10')

    def test_missing_row_means_full_availability(self):
        self.assertFalse(SeatInventory.objects.exists())
        self.assertEqual(self.ledger.available_seats(self.key), 5)

    def test_reserve_creates_row_and_commits(self):
        self.assertTrue(self.ledger.try_reserve(self.key, 2))

        inventory = SeatInventory.objects.get(train=self.train, journey_date=date(2025, 4, 10))
        self.assertEqual(inventory.committed_seats, 2)
        self.assertEqual(inventory.version, 1)
        self.assertEqual(inventory.available_seats, 3)

    def test_reserve_beyond_capacity_changes_nothing(self):
        self.ledger.try_reserve(self.key, 4)
        self.assertFalse(self.ledger.try_reserve(self.key, 2))
        self.assertFalse(self.ledger.try_reserve(self.key, 6))
        self.assertEqual(self.ledger.committed_seats(self.key), 4)

    def test_commit_checks_current_row_not_earlier_read(self):
        """
        A request that read availability before another request committed
        still cannot overbook: the check happens inside the UPDATE.
        """
        self.assertEqual(self.ledger.available_seats(self.key), 5)
        SeatInventory.objects.create(train=self.train, journey_date=self.key.journey_date, committed_seats=4)

        self.assertFalse(self.ledger.try_reserve(self.key, 2))
        self.assertTrue(self.ledger.try_reserve(self.key, 1))
        self.assertEqual(self.ledger.available_seats(self.key), 0)

    def test_release_credits_seats_and_floors_at_zero(self):
        self.ledger.try_reserve(self.key, 3)
        self.ledger.release(self.key, 2)
        self.assertEqual(self.ledger.committed_seats(self.key), 1)

        self.ledger.release(self.key, 4)
        self.assertEqual(self.ledger.committed_seats(self.key), 0)

    def test_unknown_or_inactive_train(self):
        with self.assertRaises(TrainNotFound):
            self.ledger.available_seats(make_key(9999, '2025-04-10'))

        self.train.is_active = False
        self.train.save()
        with self.assertRaises(InvalidRequest):
            self.ledger.try_reserve(self.key, 1)

    def test_invalid_journey_date(self):
        with self.assertRaises(InvalidRequest):
            make_key(self.train.id, '10/04/2025')
        with self.assertRaises(InvalidRequest):
            make_key(self.train.id, '2025-02-30')


# =============================================================================
# DATABASE TESTS - Booking engine
# =============================================================================

class FailingBookingRepository(BookingRepository):
    def save_booking(self, **kwargs):
        raise PersistenceFailure("Could not save booking: disk full")


class BookingEngineTests(TestCase):
    """Test booking creation, cancellation and payment through the engine."""

    def setUp(self):
        self.user = User.objects.create_user(username='alice', password='test123')
        self.other_user = User.objects.create_user(username='bob', password='test123')
        self.train = create_train(total_seats=2)
        self.journey_date = '2025-04-10'
        self.engine = self.make_engine()

    def make_engine(self, **kwargs):
        options = {
            'ledger': DatabaseSeatLedger(),
            'fare_calculator': FlatFareCalculator(BASE_FARE),
            'waitlist_enabled': False,
            'max_passengers': 6,
        }
        options.update(kwargs)
        return BookingEngine(**options)

    def available(self):
        return self.engine.get_available_seats(self.train.id, self.journey_date)

    def test_full_train_scenario(self):
        """Book the whole train, get rejected, cancel, retry."""
        booking_a = self.engine.create_booking(self.user.id, self.train.id, self.journey_date, passengers(2))
        self.assertEqual(booking_a.status, lifecycle.STATUS_CONFIRMED)
        self.assertEqual(booking_a.payment_status, lifecycle.PAYMENT_PENDING)
        self.assertEqual(booking_a.total_fare, 2 * BASE_FARE)

        with self.assertRaises(InsufficientSeats) as ctx:
            self.engine.create_booking(self.other_user.id, self.train.id, self.journey_date, passengers(1))
        self.assertEqual(ctx.exception.available, 0)
        self.assertEqual(ctx.exception.requested, 1)

        self.assertTrue(self.engine.cancel_booking(booking_a.id))
        self.assertEqual(self.available(), 2)

        booking_b = self.engine.create_booking(self.other_user.id, self.train.id, self.journey_date, passengers(1))
        self.assertEqual(booking_b.status, lifecycle.STATUS_CONFIRMED)
        self.assertEqual(self.available(), 1)

    def test_empty_passenger_list_leaves_ledger_untouched(self):
        with self.assertRaises(InvalidRequest):
            self.engine.create_booking(self.user.id, self.train.id, self.journey_date, [])
        self.assertFalse(SeatInventory.objects.exists())
        self.assertFalse(Booking.objects.exists())

    def test_unknown_train_rejected(self):
        with self.assertRaises(InvalidRequest):
            self.engine.create_booking(self.user.id, 9999, self.journey_date, passengers(1))

    def test_created_booking_round_trips(self):
        created = self.engine.create_booking(self.user.id, self.train.id, date(2025, 4, 10), [
            {'name': 'John Doe', 'age': 30, 'gender': 'Male'},
            {'name': 'Jane Doe', 'age': 28, 'gender': 'F'},
        ])
        fetched = self.engine.get_booking(created.id)

        self.assertEqual(fetched.num_passengers, created.num_passengers)
        self.assertEqual(fetched.total_fare, created.total_fare)
        self.assertEqual(
            [(p.name, p.age, p.gender, p.seat_number) for p in fetched.passengers.all()],
            [('John Doe', 30, 'M', 'A1'), ('Jane Doe', 28, 'F', 'A2')],
        )
        self.assertEqual(len(fetched.pnr), 10)
        self.assertIsNotNone(fetched.confirmed_at)

    def test_cancel_twice_releases_once(self):
        train = create_train(number='SHT1050', total_seats=5)
        first = self.engine.create_booking(self.user.id, train.id, self.journey_date, passengers(2))
        self.engine.create_booking(self.other_user.id, train.id, self.journey_date, passengers(2))

        self.assertTrue(self.engine.cancel_booking(first.id))
        self.assertTrue(self.engine.cancel_booking(first.id))

        self.assertEqual(self.engine.get_available_seats(train.id, self.journey_date), 3)
        cancelled = self.engine.get_booking(first.id)
        self.assertEqual(cancelled.status, lifecycle.STATUS_CANCELLED)
        self.assertIsNotNone(cancelled.cancelled_at)

    def test_reload_failure_after_save_keeps_seats_committed(self):
        """A stored booking keeps its seats even if reading it back fails."""
        with mock.patch.object(BookingRepository, 'find_booking',
                               side_effect=PersistenceFailure('replica down')):
            booking = self.engine.create_booking(self.user.id, self.train.id, self.journey_date, passengers(2))

        self.assertEqual(booking.status, lifecycle.STATUS_CONFIRMED)
        self.assertTrue(Booking.objects.filter(pk=booking.pk).exists())
        self.assertEqual(self.available(), 0)

        with self.assertRaises(InsufficientSeats):
            self.engine.create_booking(self.other_user.id, self.train.id, self.journey_date, passengers(2))
        confirmed = Booking.objects.filter(train=self.train, status=lifecycle.STATUS_CONFIRMED)
        self.assertEqual(sum(b.num_passengers for b in confirmed), 2)

    def test_failed_release_leaves_booking_cancellable(self):
        """If freeing the seats fails the booking is untouched and a retry frees them."""
        booking = self.engine.create_booking(self.user.id, self.train.id, self.journey_date, passengers(2))

        with mock.patch.object(self.engine.ledger, 'release', side_effect=PersistenceFailure('db down')):
            with self.assertRaises(PersistenceFailure):
                self.engine.cancel_booking(booking.id)

        self.assertEqual(self.engine.get_booking(booking.id).status, lifecycle.STATUS_CONFIRMED)
        self.assertEqual(self.available(), 0)

        self.assertTrue(self.engine.cancel_booking(booking.id))
        self.assertEqual(self.engine.get_booking(booking.id).status, lifecycle.STATUS_CANCELLED)
        self.assertEqual(self.available(), 2)

    def test_persistence_failure_releases_reservation(self):
        engine = self.make_engine(repository=FailingBookingRepository())
        before = self.available()

        with self.assertRaises(PersistenceFailure):
            engine.create_booking(self.user.id, self.train.id, self.journey_date, passengers(2))

        self.assertEqual(self.available(), before)

    def test_database_error_rolls_back_booking_and_seats(self):
        with mock.patch.object(Passenger.objects, 'bulk_create', side_effect=DatabaseError('boom')):
            with self.assertRaises(PersistenceFailure):
                self.engine.create_booking(self.user.id, self.train.id, self.journey_date, passengers(1))

        self.assertFalse(Booking.objects.exists())
        self.assertEqual(self.available(), 2)

    def test_waitlisted_booking_holds_no_seats(self):
        engine = self.make_engine(waitlist_enabled=True)
        engine.create_booking(self.user.id, self.train.id, self.journey_date, passengers(2))

        waiting = engine.create_booking(self.other_user.id, self.train.id, self.journey_date, passengers(1))
        self.assertEqual(waiting.status, lifecycle.STATUS_WAITING)
        self.assertEqual([p.seat_number for p in waiting.passengers.all()], [''])
        self.assertEqual(waiting.total_fare, BASE_FARE)
        self.assertEqual(self.available(), 0)

        engine.cancel_booking(waiting.id)
        self.assertEqual(self.available(), 0)

        with self.assertRaises(InvalidTransition):
            engine.record_payment(waiting.id)

    def test_record_payment(self):
        booking = self.engine.create_booking(self.user.id, self.train.id, self.journey_date, passengers(1))

        paid = self.engine.record_payment(booking.id, 'UPI Payment')

        self.assertEqual(paid.payment_status, lifecycle.PAYMENT_PAID)
        self.assertEqual(paid.payment_method, 'UPI')
        self.assertIsNotNone(paid.paid_at)

        with self.assertRaises(InvalidTransition):
            self.engine.record_payment(booking.id)

    def test_cannot_pay_cancelled_booking(self):
        booking = self.engine.create_booking(self.user.id, self.train.id, self.journey_date, passengers(1))
        self.engine.cancel_booking(booking.id)

        with self.assertRaises(InvalidTransition):
            self.engine.record_payment(booking.id, 'CREDIT_CARD')
        self.assertEqual(self.engine.get_booking(booking.id).payment_status, lifecycle.PAYMENT_PENDING)

    def test_unsupported_payment_method(self):
        booking = self.engine.create_booking(self.user.id, self.train.id, self.journey_date, passengers(1))
        with self.assertRaises(InvalidRequest):
            self.engine.record_payment(booking.id, 'Cheque')

    def test_missing_booking(self):
        with self.assertRaises(BookingNotFound):
            self.engine.get_booking(12345)
        with self.assertRaises(BookingNotFound):
            self.engine.cancel_booking(12345)
        with self.assertRaises(BookingNotFound):
            self.engine.record_payment(12345)

    def test_user_bookings_newest_first(self):
        train = create_train(number='DUR2210', total_seats=10)
        first = self.engine.create_booking(self.user.id, train.id, self.journey_date, passengers(1))
        second = self.engine.create_booking(self.user.id, train.id, self.journey_date, passengers(2))
        self.engine.create_booking(self.other_user.id, train.id, self.journey_date, passengers(1))

        bookings = self.engine.get_user_bookings(self.user.id)

        self.assertEqual([b.id for b in bookings], [second.id, first.id])

    @override_settings(BOOKING_LEDGER_BACKEND='bookings.ledger.InMemorySeatLedger')
    def test_engine_factory_follows_settings(self):
        self.assertIsInstance(get_booking_engine().ledger, InMemorySeatLedger)

    def test_engine_factory_is_shared(self):
        self.assertIs(get_booking_engine(), get_booking_engine())


class PNRGenerationTests(SimpleTestCase):
    """Test PNR generation utility."""

    def test_pnr_format(self):
        pnr = generate_pnr()
        self.assertEqual(len(pnr), 10)
        self.assertTrue(pnr.isalnum())


# =============================================================================
# CONCURRENCY TESTS
# =============================================================================

class InMemoryBookingRepository:
    """Thread-safe stand-in for the ORM repository."""

    def __init__(self, trains):
        self.trains = trains
        self.bookings = {}
        self._lock = threading.Lock()
        self._next_id = 1

    def atomic(self):
        return nullcontext()

    def find_train(self, train_id):
        return self.trains.get(train_id)

    def save_booking(self, *, user_id, train_id, journey_date, total_fare, status, passengers):
        with self._lock:
            booking = SimpleNamespace(
                id=self._next_id, user_id=user_id, train_id=train_id, journey_date=journey_date,
                num_passengers=len(passengers), total_fare=total_fare, status=status,
                payment_status=lifecycle.PAYMENT_PENDING, passengers=[dict(p) for p in passengers],
            )
            self.bookings[booking.id] = booking
            self._next_id += 1
            return copy.copy(booking)

    def update_booking_status(self, booking_id, status, expected_status):
        with self._lock:
            booking = self.bookings.get(booking_id)
            if booking is None or booking.status != expected_status:
                return False
            booking.status = status
            return True

    def update_payment_status(self, booking_id, payment_status, *, expected_status,
                              expected_payment_status, payment_method=''):
        with self._lock:
            booking = self.bookings.get(booking_id)
            if (booking is None or booking.status != expected_status
                    or booking.payment_status != expected_payment_status):
                return False
            booking.payment_status = payment_status
            booking.payment_method = payment_method
            return True

    def find_booking(self, booking_id):
        with self._lock:
            booking = self.bookings.get(booking_id)
            return copy.copy(booking) if booking is not None else None

    def find_bookings_by_user(self, user_id):
        with self._lock:
            return [copy.copy(b) for b in reversed(list(self.bookings.values())) if b.user_id == user_id]


class BookingConcurrencyTests(SimpleTestCase):
    """Many simultaneous requests against one train/date pool."""

    THREADS = 20
    CAPACITY = 7

    def setUp(self):
        self.repository = InMemoryBookingRepository({1: SimpleNamespace(id=1, total_seats=self.CAPACITY)})
        self.ledger = InMemorySeatLedger(capacity_lookup=lambda train_id: self.repository.trains[train_id].total_seats)
        self.engine = BookingEngine(
            repository=self.repository,
            ledger=self.ledger,
            fare_calculator=FlatFareCalculator(BASE_FARE),
            waitlist_enabled=False,
            max_passengers=6,
        )
        self.key = make_key(1, '2025-04-10')

    def run_concurrently(self, target, count):
        barrier = threading.Barrier(count)

        def run(index):
            barrier.wait()
            target(index)

        threads = [threading.Thread(target=run, args=(i,)) for i in range(count)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

    def test_concurrent_bookings_dont_oversell(self):
        """N single-seat requests against capacity C: exactly C confirmed."""
        outcomes = {'confirmed': 0, 'rejected': 0, 'errors': []}
        outcome_lock = threading.Lock()

        def book(index):
            try:
                self.engine.create_booking(index, 1, '2025-04-10', passengers(1))
                outcome = 'confirmed'
            except InsufficientSeats:
                outcome = 'rejected'
            except Exception as e:
                with outcome_lock:
                    outcomes['errors'].append(e)
                return
            with outcome_lock:
                outcomes[outcome] += 1

        self.run_concurrently(book, self.THREADS)

        self.assertEqual(outcomes['errors'], [])
        self.assertEqual(outcomes['confirmed'], self.CAPACITY)
        self.assertEqual(outcomes['rejected'], self.THREADS - self.CAPACITY)
        self.assertEqual(self.ledger.committed_seats(self.key), self.CAPACITY)
        self.assertEqual(len(self.repository.bookings), self.CAPACITY)

    def test_concurrent_cancellations_release_once(self):
        booking = self.engine.create_booking(1, 1, '2025-04-10', passengers(3))
        self.engine.create_booking(2, 1, '2025-04-10', passengers(2))
        results = []

        self.run_concurrently(lambda index: results.append(self.engine.cancel_booking(booking.id)), 10)

        self.assertEqual(results, [True] * 10)
        self.assertEqual(self.ledger.committed_seats(self.key), 2)

    def test_cancel_and_pay_race_leaves_consistent_state(self):
        booking = self.engine.create_booking(1, 1, '2025-04-10', passengers(1))
        errors = []

        def act(index):
            try:
                if index % 2:
                    self.engine.cancel_booking(booking.id)
                else:
                    self.engine.record_payment(booking.id, 'UPI')
            except InvalidTransition as e:
                errors.append(e)

        self.run_concurrently(act, 6)

        final = self.engine.get_booking(booking.id)
        self.assertEqual(final.status, lifecycle.STATUS_CANCELLED)
        self.assertEqual(self.ledger.committed_seats(self.key), 0)
        # Every payment attempt either landed before the cancel or was refused.
        self.assertEqual(len(errors) + (final.payment_status == lifecycle.PAYMENT_PAID), 3)


class DatabaseLedgerConcurrencyTests(TransactionTestCase):
    """
    Threads racing on the database ledger, each on its own connection.
    Uses TransactionTestCase so every thread sees committed rows.
    """

    THREADS = 12
    CAPACITY = 4

    def setUp(self):
        self.train = create_train(number='RACE001', total_seats=self.CAPACITY)
        self.users = [User.objects.create(username=f'racer{i}') for i in range(self.THREADS)]
        self.key = make_key(self.train.id, '2025-04-10')

    def run_concurrently(self, target):
        errors = []
        barrier = threading.Barrier(self.THREADS)

        def run(index):
            try:
                barrier.wait()
                target(index)
            except Exception as e:
                errors.append(e)
            finally:
                connection.close()

        threads = [threading.Thread(target=run, args=(i,)) for i in range(self.THREADS)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        return errors

    def test_first_use_of_key_race(self):
        """Every thread hits a key with no inventory row yet; one row, exactly C seats."""
        ledger = DatabaseSeatLedger()
        results = []

        errors = self.run_concurrently(lambda index: results.append(ledger.try_reserve(self.key, 1)))

        self.assertEqual(errors, [])
        self.assertEqual(results.count(True), self.CAPACITY)
        self.assertEqual(results.count(False), self.THREADS - self.CAPACITY)
        inventory = SeatInventory.objects.get(train=self.train, journey_date=self.key.journey_date)
        self.assertEqual(inventory.committed_seats, self.CAPACITY)

    def test_concurrent_bookings_dont_oversell(self):
        engine = BookingEngine(
            ledger=DatabaseSeatLedger(),
            fare_calculator=FlatFareCalculator(BASE_FARE),
            waitlist_enabled=False,
            max_passengers=6,
        )
        rejected = []

        def book(index):
            try:
                engine.create_booking(self.users[index].id, self.train.id, '2025-04-10', passengers(1))
            except InsufficientSeats as e:
                rejected.append(e)

        errors = self.run_concurrently(book)

        self.assertEqual(errors, [])
        self.assertEqual(len(rejected), self.THREADS - self.CAPACITY)
        self.assertEqual(Booking.objects.filter(status=lifecycle.STATUS_CONFIRMED).count(), self.CAPACITY)
        self.assertEqual(engine.get_available_seats(self.train.id, '2025-04-10'), 0)
        self.assertEqual(
            sorted(Passenger.objects.values_list('seat_number', flat=True)), ['A1'] * self.CAPACITY
        )


# =============================================================================
# ADMIN
# =============================================================================

class BookingAdminTests(TestCase):
    """Bookings and seat inventory are read-only in the admin."""

    def setUp(self):
        self.superuser = User.objects.create_superuser(username='root', password='RootPass123!')
        self.request = RequestFactory().get('/admin/')
        self.request.user = self.superuser

    def test_booking_admin_cannot_add_or_delete(self):
        booking_admin = BookingAdmin(Booking, admin.site)
        self.assertFalse(booking_admin.has_add_permission(self.request))
        self.assertFalse(booking_admin.has_delete_permission(self.request))
        self.assertNotIn('delete_selected', booking_admin.get_actions(self.request))

    def test_passenger_inline_is_read_only(self):
        inline = PassengerInline(Booking, admin.site)
        self.assertFalse(inline.has_add_permission(self.request, None))
        self.assertFalse(inline.has_delete_permission(self.request, None))
        self.assertEqual(set(inline.readonly_fields), {'name', 'age', 'gender', 'seat_number'})

    def test_seat_inventory_admin_cannot_add_or_delete(self):
        inventory_admin = SeatInventoryAdmin(SeatInventory, admin.site)
        self.assertFalse(inventory_admin.has_add_permission(self.request))
        self.assertFalse(inventory_admin.has_delete_permission(self.request))

    @override_settings(MONGODB_ENABLED=False)
    def test_delete_view_refused(self):
        train = create_train(total_seats=2)
        engine = BookingEngine(ledger=DatabaseSeatLedger(), fare_calculator=FlatFareCalculator(BASE_FARE),
                               waitlist_enabled=False, max_passengers=6)
        booking = engine.create_booking(self.superuser.id, train.id, '2025-04-10', passengers(2))
        self.client.force_login(self.superuser)

        response = self.client.post(f'/admin/bookings/booking/{booking.id}/delete/', {'post': 'yes'})

        self.assertEqual(response.status_code, 403)
        self.assertTrue(Booking.objects.filter(pk=booking.id).exists())
        self.assertEqual(engine.get_available_seats(train.id, '2025-04-10'), 0)


# =============================================================================
# INTEGRATION TESTS - Booking API
# =============================================================================

@override_settings(
    MONGODB_ENABLED=False,
    BOOKING_BASE_FARE_PER_SEAT=BASE_FARE,
    BOOKING_WAITLIST_ENABLED=False,
    BOOKING_MAX_PASSENGERS=6,
    BOOKING_LEDGER_BACKEND='bookings.ledger.DatabaseSeatLedger',
    BOOKING_FARE_CALCULATOR='bookings.fares.FlatFareCalculator',
)
class BookingAPITests(APITestCase):
    """Integration tests for the booking flow."""

    def setUp(self):
        self.user = User.objects.create_user(username='user', password='UserPass123!')
        self.train = create_train(total_seats=3)
        self.journey_date = (date.today() + timedelta(days=7)).isoformat()

        # Login
        response = self.client.post('/api/token/', {
            'username': 'user',
            'password': 'UserPass123!'
        }, format='json')
        self.token = response.data['access']
        self.client.credentials(HTTP_AUTHORIZATION=f'Bearer {self.token}')

    def book(self, count=2, **overrides):
        data = {
            'train_id': self.train.id,
            'journey_date': self.journey_date,
            'passengers': passengers(count),
        }
        data.update(overrides)
        return self.client.post('/api/bookings/', data, format='json')

    def availability(self):
        response = self.client.get(
            f'/api/trains/{self.train.id}/availability/', {'date': self.journey_date}
        )
        return response.data['available_seats']

    def test_create_booking_success(self):
        response = self.book(2)

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        booking = response.data['booking']
        self.assertEqual(booking['num_passengers'], 2)
        self.assertEqual(booking['total_fare'], '100.00')
        self.assertEqual(booking['status'], 'CONFIRMED')
        self.assertEqual(booking['payment_status'], 'PENDING')
        self.assertEqual([p['seat_number'] for p in booking['passengers']], ['A1', 'A2'])
        self.assertEqual(booking['train_details']['train_number'], 'RAJ2025')
        self.assertEqual(self.availability(), 1)

    def test_booking_exceeds_availability(self):
        self.book(2)

        response = self.book(2)

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['available_seats'], 1)
        self.assertEqual(self.availability(), 1)

    def test_invalid_requests_rejected(self):
        self.assertEqual(self.book(passengers=[]).status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(self.book(1, train_id=9999).status_code, status.HTTP_400_BAD_REQUEST)

        past = (date.today() - timedelta(days=2)).isoformat()
        self.assertEqual(self.book(1, journey_date=past).status_code, status.HTTP_400_BAD_REQUEST)

        bad_gender = [{'name': 'A', 'age': 30, 'gender': 'X'}]
        self.assertEqual(self.book(passengers=bad_gender).status_code, status.HTTP_400_BAD_REQUEST)

        self.assertEqual(self.availability(), 3)

    def test_get_my_bookings(self):
        self.book(1)
        self.book(1)

        response = self.client.get('/api/bookings/my/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 2)
        ids = [b['id'] for b in response.data['results']]
        self.assertEqual(ids, sorted(ids, reverse=True))

    def test_other_users_booking_is_not_found(self):
        other = User.objects.create_user(username='other', password='OtherPass123!')
        booking = get_booking_engine().create_booking(other.id, self.train.id, self.journey_date, passengers(1))

        self.assertEqual(self.client.get(f'/api/bookings/{booking.id}/').status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(
            self.client.post(f'/api/bookings/{booking.id}/cancel/').status_code, status.HTTP_404_NOT_FOUND
        )
        self.assertEqual(self.availability(), 2)

    def test_cancel_booking_restores_availability(self):
        booking_id = self.book(3).data['booking']['id']
        self.assertEqual(self.availability(), 0)

        response = self.client.post(f'/api/bookings/{booking_id}/cancel/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['booking']['status'], 'CANCELLED')

        repeat = self.client.post(f'/api/bookings/{booking_id}/cancel/')
        self.assertEqual(repeat.status_code, status.HTTP_200_OK)
        self.assertEqual(self.availability(), 3)

    def test_pay_booking(self):
        booking_id = self.book(1).data['booking']['id']

        response = self.client.post(f'/api/bookings/{booking_id}/pay/', {'payment_method': 'NET_BANKING'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['booking']['payment_status'], 'PAID')
        self.assertEqual(response.data['booking']['payment_method'], 'NET_BANKING')

        detail = self.client.get(f'/api/bookings/{booking_id}/')
        self.assertEqual(detail.data['payment_status'], 'PAID')

    def test_pay_cancelled_booking_conflicts(self):
        booking_id = self.book(1).data['booking']['id']
        self.client.post(f'/api/bookings/{booking_id}/cancel/')

        response = self.client.post(f'/api/bookings/{booking_id}/pay/', {}, format='json')

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

    def test_booking_unauthenticated(self):
        self.client.credentials()

        response = self.book(1)

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
