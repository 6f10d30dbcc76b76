"""Views for booking management."""
from rest_framework import status
from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from drf_spectacular.utils import extend_schema, OpenApiParameter, OpenApiExample, inline_serializer
from rest_framework import serializers as drf_serializers

from . import lifecycle
from .exceptions import (
    BookingNotFound, InsufficientSeats, InvalidRequest, InvalidTransition, PersistenceFailure,
)
from .serializers import BookingSerializer, BookingCreateSerializer, PaymentSerializer
from .services import get_booking_engine

ERROR_STATUS_CODES = [
    (InsufficientSeats, status.HTTP_409_CONFLICT),
    (BookingNotFound, status.HTTP_404_NOT_FOUND),
    (InvalidTransition, status.HTTP_409_CONFLICT),
    (InvalidRequest, status.HTTP_400_BAD_REQUEST),
    (PersistenceFailure, status.HTTP_503_SERVICE_UNAVAILABLE),
]


def booking_error_response(exc):
    """Render a booking engine error as an HTTP response."""
    body = {'error': str(exc)}
    if isinstance(exc, InsufficientSeats):
        body['requested'] = exc.requested
        body['available_seats'] = exc.available
    for error_class, status_code in ERROR_STATUS_CODES:
        if isinstance(exc, error_class):
            return Response(body, status=status_code)
    raise exc


def get_own_booking(request, booking_id):
    """Users only see their own bookings; anything else is reported as missing."""
    booking = get_booking_engine().get_booking(booking_id)
    if booking.user_id != request.user.id:
        raise BookingNotFound(booking_id)
    return booking


# Response serializers for Swagger
class BookingResponseSerializer(drf_serializers.Serializer):
    message = drf_serializers.CharField()
    booking = BookingSerializer()


class BookingListResponseSerializer(drf_serializers.Serializer):
    count = drf_serializers.IntegerField()
    results = BookingSerializer(many=True)


ErrorResponseSerializer = inline_serializer(name='BookingError', fields={'error': drf_serializers.CharField()})

BOOKING_ID_PARAMETER = OpenApiParameter(name='booking_id', type=int, location='path', description='Booking id')

ENGINE_ERRORS = (InsufficientSeats, BookingNotFound, InvalidTransition, InvalidRequest, PersistenceFailure)


class BookingCreateView(APIView):
    """Create a new booking."""
    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="Book seats on a train",
        description="Atomically reserves seats for a train and journey date, then stores the booking "
                    "with its passengers. Returns 409 with the available count when capacity is short.",
        request=BookingCreateSerializer,
        responses={201: BookingResponseSerializer, 400: ErrorResponseSerializer,
                   409: ErrorResponseSerializer, 503: ErrorResponseSerializer},
        examples=[
            OpenApiExample(
                "Book 2 passengers",
                value={
                    "train_id": 1,
                    "journey_date": "2026-12-10",
                    "passengers": [
                        {"name": "John Doe", "age": 30, "gender": "M"},
                        {"name": "Jane Doe", "age": 28, "gender": "F"}
                    ]
                },
                request_only=True
            )
        ],
        tags=["Bookings"]
    )
    def post(self, request):
        serializer = BookingCreateSerializer(
            data=request.data,
            context={'request': request}
        )

        if serializer.is_valid():
            try:
                booking = serializer.save()
            except ENGINE_ERRORS as e:
                return booking_error_response(e)

            if booking.status == lifecycle.STATUS_WAITING:
                message = 'Not enough seats; booking placed on the waiting list'
            else:
                message = 'Booking confirmed successfully'
            return Response({
                'message': message,
                'booking': BookingSerializer(booking).data
            }, status=status.HTTP_201_CREATED)

        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


class MyBookingsView(APIView):
    """Get user's booking history."""
    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="Get my bookings",
        description="Returns all bookings of the authenticated user, newest first",
        responses={200: BookingListResponseSerializer},
        tags=["Bookings"]
    )
    def get(self, request):
        try:
            bookings = get_booking_engine().get_user_bookings(request.user.id)
        except PersistenceFailure as e:
            return booking_error_response(e)

        return Response({
            'count': len(bookings),
            'results': BookingSerializer(bookings, many=True).data
        })


class BookingDetailView(APIView):
    """Get booking by id."""
    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="Get booking by id",
        description="Returns booking details. User can only view their own bookings.",
        parameters=[BOOKING_ID_PARAMETER],
        responses={200: BookingSerializer, 404: ErrorResponseSerializer},
        tags=["Bookings"]
    )
    def get(self, request, booking_id):
        try:
            booking = get_own_booking(request, booking_id)
        except ENGINE_ERRORS as e:
            return booking_error_response(e)
        return Response(BookingSerializer(booking).data)


class BookingCancelView(APIView):
    """Cancel a booking and free its seats."""
    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="Cancel a booking",
        description="Cancels a confirmed or waiting booking. Repeating the request is harmless.",
        request=None,
        parameters=[BOOKING_ID_PARAMETER],
        responses={200: BookingResponseSerializer, 404: ErrorResponseSerializer},
        tags=["Bookings"]
    )
    def post(self, request, booking_id):
        engine = get_booking_engine()
        try:
            get_own_booking(request, booking_id)
            engine.cancel_booking(booking_id)
            booking = engine.get_booking(booking_id)
        except ENGINE_ERRORS as e:
            return booking_error_response(e)

        return Response({
            'message': 'Booking cancelled successfully',
            'booking': BookingSerializer(booking).data
        })


class BookingPaymentView(APIView):
    """Record payment for a confirmed booking."""
    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="Pay for a booking",
        description="Marks a confirmed booking as paid. Cancelled, waiting or already paid bookings return 409.",
        request=PaymentSerializer,
        parameters=[BOOKING_ID_PARAMETER],
        responses={200: BookingResponseSerializer, 404: ErrorResponseSerializer, 409: ErrorResponseSerializer},
        examples=[
            OpenApiExample("Pay by UPI", value={"payment_method": "UPI"}, request_only=True)
        ],
        tags=["Bookings"]
    )
    def post(self, request, booking_id):
        serializer = PaymentSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        try:
            get_own_booking(request, booking_id)
            booking = get_booking_engine().record_payment(
                booking_id, serializer.validated_data.get('payment_method')
            )
        except ENGINE_ERRORS as e:
            return booking_error_response(e)

        return Response({
            'message': 'Payment recorded successfully',
            'booking': BookingSerializer(booking).data
        })
