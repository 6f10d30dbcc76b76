"""Views for train discovery and seat availability."""
from rest_framework import status
from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from drf_spectacular.utils import extend_schema, OpenApiParameter, inline_serializer
from rest_framework import serializers as drf_serializers

from bookings.exceptions import InvalidRequest, PersistenceFailure
from bookings.ledger import coerce_journey_date
from bookings.services import get_booking_engine
from .models import Train
from .serializers import TrainSerializer, AvailabilitySerializer


# Response serializers for Swagger
class TrainListResponseSerializer(drf_serializers.Serializer):
    count = drf_serializers.IntegerField()
    results = TrainSerializer(many=True)


ErrorResponseSerializer = inline_serializer(name='TrainError', fields={'error': drf_serializers.CharField()})


class TrainListView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="List trains",
        description="List active trains, optionally filtered by source and destination station.",
        parameters=[
            OpenApiParameter(name='source', type=str, required=False, description='Source station (e.g., Delhi)'),
            OpenApiParameter(name='destination', type=str, required=False, description='Destination station (e.g., Mumbai)'),
        ],
        responses={200: TrainListResponseSerializer},
        tags=["Trains"]
    )
    def get(self, request):
        source = request.query_params.get('source', '').strip()
        destination = request.query_params.get('destination', '').strip()

        queryset = Train.objects.filter(is_active=True)
        if source:
            queryset = queryset.filter(source__iexact=source)
        if destination:
            queryset = queryset.filter(destination__iexact=destination)

        trains = queryset.order_by('departure_time', 'train_number')
        return Response({'count': len(trains), 'results': TrainSerializer(trains, many=True).data})


class TrainAvailabilityView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="Seat availability",
        description="Seats still available on a train for a journey date. The figure is a snapshot; "
                    "booking re-checks capacity atomically.",
        parameters=[
            OpenApiParameter(name='train_id', type=int, location='path', description='Train id'),
            OpenApiParameter(name='date', type=str, required=True, description='Journey date (YYYY-MM-DD)'),
        ],
        responses={200: AvailabilitySerializer, 400: ErrorResponseSerializer, 404: ErrorResponseSerializer},
        tags=["Trains"]
    )
    def get(self, request, train_id):
        train = Train.objects.filter(pk=train_id, is_active=True).first()
        if train is None:
            return Response({'error': 'Train not found'}, status=status.HTTP_404_NOT_FOUND)

        journey_date = request.query_params.get('date')
        if not journey_date:
            return Response({'error': 'The date parameter is required.'}, status=status.HTTP_400_BAD_REQUEST)

        try:
            available = get_booking_engine().get_available_seats(train.id, journey_date)
        except InvalidRequest as e:
            return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
        except PersistenceFailure as e:
            return Response({'error': str(e)}, status=status.HTTP_503_SERVICE_UNAVAILABLE)

        return Response(AvailabilitySerializer({
            'train_id': train.id,
            'journey_date': coerce_journey_date(journey_date),
            'total_seats': train.total_seats,
            'available_seats': available,
        }).data)
