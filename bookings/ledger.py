"""
Seat inventory ledger.

The ledger is the only writer of committed seat counts. Every pool is keyed by
(train, journey date) and ``try_reserve`` checks capacity and commits the debit
as a single step, so two requests racing for the last seat cannot both win.
Different keys never share a lock.
"""
import logging
import threading
from collections import namedtuple
from datetime import date, datetime

from django.conf import settings
from django.db.models import Case, F, Value, When
from django.utils import timezone
from django.utils.dateparse import parse_date
from django.utils.module_loading import import_string

from trains.models import Train
from .exceptions import InvalidRequest, TrainNotFound, persistence_errors
from .models import SeatInventory

logger = logging.getLogger(__name__)

SeatInventoryKey = namedtuple('SeatInventoryKey', ['train_id', 'journey_date'])


def coerce_journey_date(value):
    """Accept a date or an ISO ``YYYY-MM-DD`` string."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            parsed = parse_date(value.strip())
        except ValueError:
            parsed = None
        if parsed is not None:
            return parsed
    raise InvalidRequest(f"Invalid journey date: {value!r}. Use YYYY-MM-DD.")


def make_key(train_id, journey_date):
    try:
        train_id = int(train_id)
    except (TypeError, ValueError):
        raise InvalidRequest(f"Invalid train id: {train_id!r}.")
    return SeatInventoryKey(train_id, coerce_journey_date(journey_date))


def train_capacity(train_id):
    """Total seats of an active train from the catalog."""
    with persistence_errors('look up train capacity'):
        total = Train.objects.filter(
            pk=train_id, is_active=True
        ).values_list('total_seats', flat=True).first()
    if total is None:
        raise TrainNotFound(train_id)
    return total


def _check_count(count):
    if count < 1:
        raise ValueError("Seat count must be at least 1.")


class BaseSeatLedger:
    """
    Common read path for ledger backends.

    ``capacity_lookup`` maps a train id to its total seats. Capacity is read
    outside any lock: it does not change once a schedule is published.
    """

    def __init__(self, capacity_lookup=None):
        self.capacity_lookup = capacity_lookup or train_capacity

    def total_seats(self, key):
        return self.capacity_lookup(key.train_id)

    def available_seats(self, key):
        return max(self.total_seats(key) - self.committed_seats(key), 0)

    def committed_seats(self, key):
        raise NotImplementedError

    def try_reserve(self, key, count):
        raise NotImplementedError

    def release(self, key, count):
        raise NotImplementedError


class DatabaseSeatLedger(BaseSeatLedger):
    """
    Ledger backed by the ``seat_inventory`` table.

    Reservation is one conditional UPDATE (``committed + n <= total``), so the
    database row lock serializes writers on the same key and leaves other keys
    alone. Safe across processes.
    """

    def _inventory(self, key):
        return SeatInventory.objects.filter(train_id=key.train_id, journey_date=key.journey_date)

    def committed_seats(self, key):
        with persistence_errors('read seat inventory'):
            committed = self._inventory(key).values_list('committed_seats', flat=True).first()
        return committed or 0

    def try_reserve(self, key, count):
        _check_count(count)
        total = self.total_seats(key)
        if count > total:
            return False

        with persistence_errors('reserve seats'):
            inventory, _ = SeatInventory.objects.get_or_create(
                train_id=key.train_id, journey_date=key.journey_date
            )
            updated = SeatInventory.objects.filter(
                pk=inventory.pk,
                committed_seats__lte=total - count,
            ).update(
                committed_seats=F('committed_seats') + count,
                version=F('version') + 1,
                updated_at=timezone.now(),
            )

        logger.debug("try_reserve %s x%d on %s -> %s", key.train_id, count, key.journey_date, bool(updated))
        return updated == 1

    def release(self, key, count):
        _check_count(count)
        with persistence_errors('release seats'):
            updated = self._inventory(key).update(
                committed_seats=Case(
                    When(committed_seats__gte=count, then=F('committed_seats') - count),
                    default=Value(0),
                ),
                version=F('version') + 1,
                updated_at=timezone.now(),
            )
        if not updated:
            logger.warning("Released %d seats on train %s for %s but no inventory row exists",
                           count, key.train_id, key.journey_date)


class InMemorySeatLedger(BaseSeatLedger):
    """
    Single-process ledger: an owned map of key -> committed seats, each key
    guarded by its own lock. The registry lock is only held to create a key's
    lock, never while counting.

    Counts live only in this process and are never evicted: the maps grow by
    one entry per train and date ever touched, past dates included. Use it for
    single-process deployments with a bounded schedule, and for tests. Its
    releases are not rolled back with the database, so a failed commit after a
    cancellation leaves those seats free.
    """

    def __init__(self, capacity_lookup=None):
        super().__init__(capacity_lookup)
        self._committed = {}
        self._locks = {}
        self._registry_lock = threading.Lock()

    def _lock_for(self, key):
        with self._registry_lock:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock

    def committed_seats(self, key):
        return self._committed.get(key, 0)

    def try_reserve(self, key, count):
        _check_count(count)
        total = self.total_seats(key)
        with self._lock_for(key):
            committed = self._committed.get(key, 0)
            if committed + count > total:
                return False
            self._committed[key] = committed + count
        return True

    def release(self, key, count):
        _check_count(count)
        with self._lock_for(key):
            committed = self._committed.get(key, 0)
            if count > committed:
                logger.warning("Releasing %d seats on train %s for %s with only %d committed",
                               count, key.train_id, key.journey_date, committed)
            self._committed[key] = max(committed - count, 0)


def get_seat_ledger():
    """Instantiate the ledger backend named by ``BOOKING_LEDGER_BACKEND``."""
    return import_string(settings.BOOKING_LEDGER_BACKEND)()
