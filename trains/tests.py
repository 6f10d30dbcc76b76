"""
Tests for the trains app.
Tests cover: Model constraints, Train search API, Seat availability API, Seed command.
"""
from io import StringIO
from datetime import date, time, timedelta

from django.contrib.auth import get_user_model
from django.core.management import call_command
from django.db import IntegrityError
from django.test import TestCase, override_settings
from rest_framework import status
from rest_framework.test import APITestCase

from trains.models import Train
from bookings.models import Booking, SeatInventory
from bookings.services import get_booking_engine

User = get_user_model()


def create_train(number, name='Express Train', source='Delhi', destination='Mumbai', total_seats=100, **kwargs):
    return Train.objects.create(
        train_number=number,
        train_name=name,
        source=source,
        destination=destination,
        departure_time=kwargs.pop('departure_time', time(16, 0)),
        arrival_time=kwargs.pop('arrival_time', time(8, 0)),
        total_seats=total_seats,
        **kwargs
    )


# UNIT TESTS - Models

class TrainModelTests(TestCase):
    """Test Train model constraints."""

    def test_create_train(self):
        """Test creating a train is successful."""
        train = create_train('12345', total_seats=100)

        self.assertEqual(train.train_number, '12345')
        self.assertEqual(train.total_seats, 100)
        self.assertTrue(train.is_active)

    def test_train_number_unique(self):
        """Test train number must be unique."""
        create_train('UNIQUE001', name='Train 1')

        with self.assertRaises(IntegrityError):
            create_train('UNIQUE001', name='Train 2')

    def test_train_string_representation(self):
        """Test Train __str__ format."""
        train = create_train('12951', name='Mumbai Rajdhani', total_seats=500)

        self.assertEqual(str(train), '12951 - Mumbai Rajdhani')


# INTEGRATION TESTS - API

@override_settings(MONGODB_ENABLED=False)
class TrainSearchAPITests(APITestCase):
    """Test train listing and route filters."""

    def setUp(self):
        self.user = User.objects.create_user(username='traveller', password='Travel123!')
        self.client.force_authenticate(user=self.user)

        self.rajdhani = create_train('RAJ2025', 'Rajdhani Express', 'Delhi', 'Mumbai', departure_time=time(16, 0))
        self.duronto = create_train('DUR2210', 'Duronto Express', 'Kolkata', 'Delhi', departure_time=time(23, 0))
        self.garib = create_train('GR1234', 'Garib Rath', 'Delhi', 'Mumbai', departure_time=time(6, 0))
        create_train('OLD0001', 'Retired Mail', 'Delhi', 'Mumbai', is_active=False)

    def test_list_active_trains(self):
        response = self.client.get('/api/trains/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 3)

    def test_filter_by_route_is_case_insensitive(self):
        response = self.client.get('/api/trains/', {'source': 'delhi', 'destination': 'MUMBAI'})

        numbers = [train['train_number'] for train in response.data['results']]
        self.assertEqual(numbers, ['GR1234', 'RAJ2025'])

    def test_filter_with_no_matches(self):
        response = self.client.get('/api/trains/', {'source': 'Chennai'})

        self.assertEqual(response.data['count'], 0)

    def test_requires_authentication(self):
        self.client.force_authenticate(user=None)

        response = self.client.get('/api/trains/')

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)


@override_settings(MONGODB_ENABLED=False, BOOKING_LEDGER_BACKEND='bookings.ledger.DatabaseSeatLedger')
class TrainAvailabilityAPITests(APITestCase):
    """Test the seat availability endpoint."""

    def setUp(self):
        self.user = User.objects.create_user(username='traveller', password='Travel123!')
        self.client.force_authenticate(user=self.user)
        self.train = create_train('SHT1050', 'Shatabdi Express', 'Chennai', 'Bangalore', total_seats=4)
        self.journey_date = date.today() + timedelta(days=3)

    def get_availability(self, journey_date):
        return self.client.get(f'/api/trains/{self.train.id}/availability/', {'date': journey_date})

    def test_untouched_date_is_fully_available(self):
        response = self.get_availability(self.journey_date.isoformat())

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total_seats'], 4)
        self.assertEqual(response.data['available_seats'], 4)
        self.assertEqual(response.data['journey_date'], self.journey_date.isoformat())

    def test_availability_reflects_bookings_for_that_date_only(self):
        get_booking_engine().create_booking(self.user.id, self.train.id, self.journey_date, [
            {'name': 'Asha', 'age': 34, 'gender': 'F'},
            {'name': 'Ravi', 'age': 36, 'gender': 'M'},
            {'name': 'Kiran', 'age': 5, 'gender': 'O'},
        ])

        self.assertEqual(self.get_availability(self.journey_date.isoformat()).data['available_seats'], 1)
        next_day = (self.journey_date + timedelta(days=1)).isoformat()
        self.assertEqual(self.get_availability(next_day).data['available_seats'], 4)

    def test_missing_or_invalid_date(self):
        response = self.client.get(f'/api/trains/{self.train.id}/availability/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.get_availability('next tuesday')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_unknown_train(self):
        response = self.client.get('/api/trains/9999/availability/', {'date': self.journey_date.isoformat()})

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)


# MANAGEMENT COMMANDS

@override_settings(BOOKING_LEDGER_BACKEND='bookings.ledger.DatabaseSeatLedger', BOOKING_WAITLIST_ENABLED=False)
class SeedCommandTests(TestCase):
    """Test the seed_db command."""

    def test_seed_creates_catalog_and_ledger_backed_bookings(self):
        call_command('seed_db', stdout=StringIO())

        self.assertEqual(Train.objects.count(), 3)
        self.assertTrue(User.objects.filter(username='admin', is_superuser=True).exists())
        self.assertEqual(Booking.objects.count(), 2)
        self.assertEqual(
            sorted(SeatInventory.objects.values_list('committed_seats', flat=True)),
            [2, 2],
        )

    def test_seed_clear(self):
        call_command('seed_db', stdout=StringIO())
        call_command('seed_db', '--clear', stdout=StringIO())

        self.assertEqual(Train.objects.count(), 3)
        self.assertEqual(Booking.objects.count(), 2)
