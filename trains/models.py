"""
Train catalog models.
"""
from django.db import models
from django.core.validators import MinValueValidator


class Train(models.Model):
    """
    Train metadata, read-only to the booking engine.
    Maps to the 'trains' table.
    """
    train_number = models.CharField(max_length=20, unique=True)
    train_name = models.CharField(max_length=100)
    source = models.CharField(max_length=100)
    destination = models.CharField(max_length=100)
    departure_time = models.TimeField()
    arrival_time = models.TimeField()
    total_seats = models.PositiveIntegerField(validators=[MinValueValidator(1)])
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'trains'
        ordering = ['train_number']
        indexes = [
            models.Index(fields=['source', 'destination'], name='trains_route_idx'),
            models.Index(fields=['is_active'], name='trains_active_idx'),
        ]

    def __str__(self):
        return f"{self.train_number} - {self.train_name}"
