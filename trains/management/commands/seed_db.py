"""
Management command to seed the database with sample data.

Usage:
    python manage.py seed_db           # Seed with default data
    python manage.py seed_db --clear   # Clear existing data first
"""
from datetime import date, time, timedelta
from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand
from django.db import transaction

from trains.models import Train
from bookings.models import Booking, Passenger, SeatInventory
from bookings.services import get_booking_engine

User = get_user_model()


class Command(BaseCommand):
    help = 'Seed the database with sample trains, users and bookings'

    def add_arguments(self, parser):
        parser.add_argument(
            '--clear',
            action='store_true',
            help='Clear existing data before seeding',
        )

    def handle(self, *args, **options):
        if options['clear']:
            self.stdout.write('Clearing existing data...')
            self.clear_data()

        self.stdout.write('Seeding database...')

        with transaction.atomic():
            users = self.create_users()
            trains = self.create_trains()

        # Bookings go through the engine so the seat ledger matches them.
        self.create_sample_bookings(users, trains)

        self.stdout.write(self.style.SUCCESS('Database seeded successfully!'))
        self.print_summary()

    def clear_data(self):
        Passenger.objects.all().delete()
        Booking.objects.all().delete()
        SeatInventory.objects.all().delete()
        Train.objects.all().delete()
        User.objects.filter(is_superuser=False).delete()
        self.stdout.write(self.style.WARNING('  Cleared all non-superuser data'))

    def create_users(self):
        users = []

        admin, created = User.objects.get_or_create(
            username='admin',
            defaults={'email': 'admin@railway.local', 'is_staff': True, 'is_superuser': True}
        )
        if created:
            admin.set_password('Admin@123')
            admin.save()
            self.stdout.write('  Created admin: admin / Admin@123')

        test_users = [
            ('john', 'john@example.com', 'User@123'),
            ('jane', 'jane@example.com', 'User@123'),
            ('raj', 'raj@example.com', 'User@123'),
        ]

        for username, email, password in test_users:
            user, created = User.objects.get_or_create(
                username=username,
                defaults={'email': email}
            )
            if created:
                user.set_password(password)
                user.save()
                self.stdout.write(f'  Created user: {username} / {password}')
            users.append(user)

        return users

    def create_trains(self):
        trains_data = [
            ('RAJ2025', 'Rajdhani Express', 'Delhi', 'Mumbai', time(16, 0), time(8, 0), 500),
            ('SHT1050', 'Shatabdi Express', 'Chennai', 'Bangalore', time(6, 0), time(10, 30), 400),
            ('DUR2210', 'Duronto Express', 'Kolkata', 'Delhi', time(23, 0), time(14, 0), 450),
        ]

        trains = []
        for number, name, source, destination, departure, arrival, seats in trains_data:
            train, created = Train.objects.get_or_create(
                train_number=number,
                defaults={
                    'train_name': name,
                    'source': source,
                    'destination': destination,
                    'departure_time': departure,
                    'arrival_time': arrival,
                    'total_seats': seats,
                }
            )
            trains.append(train)
            if created:
                self.stdout.write(f'  Created train: {number} - {name}')

        return trains

    def create_sample_bookings(self, users, trains):
        if not trains:
            return

        engine = get_booking_engine()
        journey_date = date.today() + timedelta(days=7)

        bookings_created = 0
        for i, user in enumerate(users[:2]):
            train = trains[i % len(trains)]
            engine.create_booking(
                user_id=user.id,
                train_id=train.id,
                journey_date=journey_date,
                passengers=[
                    {'name': user.username.title(), 'age': 30, 'gender': 'M'},
                    {'name': f'{user.username.title()} Jr', 'age': 8, 'gender': 'F'},
                ],
            )
            bookings_created += 1

        self.stdout.write(f'  Created {bookings_created} sample bookings')

    def print_summary(self):
        self.stdout.write('\n' + '='*50)
        self.stdout.write('Database Summary:')
        self.stdout.write(f'  Users: {User.objects.count()}')
        self.stdout.write(f'  Trains: {Train.objects.count()}')
        self.stdout.write(f'  Bookings: {Booking.objects.count()}')
        self.stdout.write('='*50)
        self.stdout.write('\nTest Credentials:')
        self.stdout.write('  Admin: admin / Admin@123')
        self.stdout.write('  User:  john / User@123')
        self.stdout.write('='*50 + '\n')
