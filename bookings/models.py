"""Booking and seat inventory models."""
import random
import string
from decimal import Decimal

from django.conf import settings
from django.db import models
from django.core.validators import MinValueValidator, MaxValueValidator

from trains.models import Train
from . import lifecycle


def generate_pnr():
    return ''.join(random.choices(string.ascii_uppercase + string.digits, k=10))


class Booking(models.Model):
    STATUS_CHOICES = [
        (lifecycle.STATUS_CONFIRMED, 'Confirmed'),
        (lifecycle.STATUS_WAITING, 'Waiting'),
        (lifecycle.STATUS_CANCELLED, 'Cancelled'),
    ]
    PAYMENT_STATUS_CHOICES = [(lifecycle.PAYMENT_PENDING, 'Pending'), (lifecycle.PAYMENT_PAID, 'Paid')]
    PAYMENT_METHOD_CHOICES = [
        ('CREDIT_CARD', 'Credit Card'),
        ('DEBIT_CARD', 'Debit Card'),
        ('NET_BANKING', 'Net Banking'),
        ('UPI', 'UPI Payment'),
    ]

    pnr = models.CharField(max_length=10, unique=True, editable=False)
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name='bookings')
    train = models.ForeignKey(Train, on_delete=models.PROTECT, related_name='bookings')
    journey_date = models.DateField()
    num_passengers = models.PositiveSmallIntegerField(validators=[MinValueValidator(1)])
    total_fare = models.DecimalField(max_digits=10, decimal_places=2, validators=[MinValueValidator(Decimal('0.00'))])
    status = models.CharField(max_length=10, choices=STATUS_CHOICES)
    payment_status = models.CharField(max_length=10, choices=PAYMENT_STATUS_CHOICES, default=lifecycle.PAYMENT_PENDING)
    payment_method = models.CharField(max_length=20, choices=PAYMENT_METHOD_CHOICES, blank=True)
    booking_date = models.DateTimeField(auto_now_add=True)
    confirmed_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    paid_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = 'bookings'
        ordering = ['-booking_date', '-id']
        indexes = [
            models.Index(fields=['user', 'booking_date'], name='bookings_user_date_idx'),
            models.Index(fields=['train', 'journey_date'], name='bookings_train_journey_idx'),
        ]

    def __str__(self):
        return f"PNR: {self.pnr} - Train {self.train_id} on {self.journey_date}"

    @classmethod
    def unused_pnr(cls):
        while True:
            pnr = generate_pnr()
            if not cls.objects.filter(pnr=pnr).exists():
                return pnr

    def save(self, *args, **kwargs):
        if not self.pnr:
            self.pnr = Booking.unused_pnr()
        super().save(*args, **kwargs)


class Passenger(models.Model):
    GENDER_CHOICES = [('M', 'Male'), ('F', 'Female'), ('O', 'Other')]

    booking = models.ForeignKey(Booking, on_delete=models.CASCADE, related_name='passengers')
    name = models.CharField(max_length=100)
    age = models.PositiveSmallIntegerField(validators=[MaxValueValidator(120)])
    gender = models.CharField(max_length=1, choices=GENDER_CHOICES)
    seat_number = models.CharField(max_length=10, blank=True)

    class Meta:
        db_table = 'passengers'
        ordering = ['id']

    def __str__(self):
        return f"{self.name} ({self.age}{self.gender})"


class SeatInventory(models.Model):
    """
    Committed seats for one (train, journey date) pool.
    Rows are created lazily on the first reservation; a missing row means
    nothing is committed. Only bookings.ledger writes to this table.
    """
    train = models.ForeignKey(Train, on_delete=models.CASCADE, related_name='seat_inventory')
    journey_date = models.DateField()
    committed_seats = models.PositiveIntegerField(default=0)
    version = models.PositiveIntegerField(default=0)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'seat_inventory'
        verbose_name_plural = 'Seat inventory'
        constraints = [
            models.UniqueConstraint(fields=['train', 'journey_date'], name='unique_seat_inventory_key'),
        ]

    def __str__(self):
        return f"Train {self.train_id} on {self.journey_date}: {self.committed_seats} committed"

    @property
    def available_seats(self):
        return self.train.total_seats - self.committed_seats
