"""
Serializers for booking management.
"""
from rest_framework import serializers
from django.utils import timezone

from .models import Booking, Passenger
from .services import GENDER_TAGS, get_booking_engine


class PassengerSerializer(serializers.ModelSerializer):
    """Serializer for Passenger model."""

    class Meta:
        model = Passenger
        fields = ['id', 'name', 'age', 'gender', 'seat_number']
        read_only_fields = fields


class PassengerInputSerializer(serializers.Serializer):
    """Serializer for passenger input during booking."""
    name = serializers.CharField(max_length=100)
    age = serializers.IntegerField(min_value=0, max_value=120)
    gender = serializers.CharField(max_length=10, help_text="M/F/O or Male/Female/Other")

    def validate_gender(self, value):
        tag = GENDER_TAGS.get(value.strip().upper())
        if tag is None:
            raise serializers.ValidationError("Gender must be one of M, F, O.")
        return tag


class BookingSerializer(serializers.ModelSerializer):
    """Serializer for viewing bookings."""
    passengers = PassengerSerializer(many=True, read_only=True)
    train_details = serializers.SerializerMethodField()

    class Meta:
        model = Booking
        fields = [
            'id', 'pnr', 'train', 'journey_date', 'num_passengers', 'total_fare',
            'status', 'payment_status', 'payment_method', 'booking_date',
            'confirmed_at', 'cancelled_at', 'paid_at', 'passengers', 'train_details'
        ]
        read_only_fields = fields

    def get_train_details(self, obj):
        """Get train details."""
        train = obj.train
        return {
            'train_number': train.train_number,
            'train_name': train.train_name,
            'source': train.source,
            'destination': train.destination,
            'departure_time': str(train.departure_time),
            'arrival_time': str(train.arrival_time),
        }


class BookingCreateSerializer(serializers.Serializer):
    """Serializer for creating a booking through the booking engine."""
    train_id = serializers.IntegerField(min_value=1)
    journey_date = serializers.DateField()
    passengers = PassengerInputSerializer(many=True, allow_empty=False)

    def validate_journey_date(self, value):
        if value < timezone.localdate():
            raise serializers.ValidationError("Cannot book for past dates.")
        return value

    def create(self, validated_data):
        """Reserve seats and persist the booking. Engine errors propagate to the view."""
        user = self.context['request'].user
        return get_booking_engine().create_booking(
            user_id=user.id,
            train_id=validated_data['train_id'],
            journey_date=validated_data['journey_date'],
            passengers=validated_data['passengers'],
        )


class PaymentSerializer(serializers.Serializer):
    """Serializer for recording a payment."""
    payment_method = serializers.ChoiceField(
        choices=Booking.PAYMENT_METHOD_CHOICES, required=False, allow_blank=True
    )
