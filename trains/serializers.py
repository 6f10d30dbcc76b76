"""
Serializers for the train catalog.
"""
from rest_framework import serializers
from .models import Train


class TrainSerializer(serializers.ModelSerializer):
    """Serializer for Train model."""

    class Meta:
        model = Train
        fields = [
            'id', 'train_number', 'train_name', 'source', 'destination',
            'departure_time', 'arrival_time', 'total_seats'
        ]
        read_only_fields = fields


class AvailabilitySerializer(serializers.Serializer):
    """Seat availability for one train on one journey date."""
    train_id = serializers.IntegerField()
    journey_date = serializers.DateField()
    total_seats = serializers.IntegerField()
    available_seats = serializers.IntegerField()
