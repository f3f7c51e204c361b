from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated

from accounts.permissions import IsRider
from common.utils import compute_fare_quotes, great_circle_distance_km, traffic_model_from_settings
from .serializers import (
    RideSerializer,
    DriverRideSerializer,
    FareQuoteSerializer,
    RideBookSerializer,
    RiderAddonSerializer,
    LocationInputSerializer,
    RideCancelSerializer,
    RideRatingSerializer,
)

# Import from services layer
from services.ride_management import (
    RideServiceError,
    book_ride,
    cancel_ride_by_rider,
    get_ride_for_user,
    list_rider_rides,
    rate_ride,
    update_rider_addon,
    update_rider_live_location,
)


def error_response(exc: RideServiceError):
    return Response(exc.as_payload(), status=exc.status_code)


def serialize_for(user, ride, request):
    """Riders get their pickup code; everyone else gets the driver view."""
    serializer_class = RideSerializer if ride.rider_id == user.pk else DriverRideSerializer
    return serializer_class(ride, context={'request': request}).data


# ==================== Rider Ride APIs ====================

@api_view(['POST'])
@permission_classes([IsAuthenticated, IsRider])
def quote_fares(request):
    """
    Fare quotes for every ride category.

    Uses the route distance when the client sends one, otherwise the
    straight-line distance between pickup and dropoff.
    """
    serializer = FareQuoteSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data

    distance_km = data.get('distance_km')
    if distance_km is None:
        distance_km = great_circle_distance_km(data['pickup'], data['dropoff'])

    quotes = compute_fare_quotes(
        distance_km,
        data.get('duration_min'),
        data.get('rider_price_addon', 0),
        traffic_model_from_settings(),
    )
    return Response({'quotes': quotes})


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsRider])
def create_ride(request):
    """Book a ride. It stays open for nearby drivers until accepted or expired."""
    serializer = RideBookSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data

    try:
        result = book_ride(
            request.user,
            pickup=data['pickup'],
            dropoff=data['dropoff'],
            category=data['category'],
            payment_method=data['payment_method'],
            distance_km=data.get('distance_km'),
            duration_min=data.get('duration_min'),
            rider_addon=data.get('rider_price_addon', 0),
        )
    except RideServiceError as exc:
        return error_response(exc)

    return Response({
        'success': True,
        'ride': RideSerializer(result.ride, context={'request': request}).data,
        'message': result.message,
    }, status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsRider])
def my_rides(request):
    """Rider's ride history, newest first."""
    rides = list_rider_rides(request.user)
    serializer = RideSerializer(rides, many=True, context={'request': request})
    return Response({'count': len(serializer.data), 'rides': serializer.data})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def ride_detail(request, ride_id):
    """
    Single ride (POLLING ENDPOINT)

    Rider app polls this to follow status; drivers can open rides assigned
    to them or still waiting for a driver.
    """
    try:
        ride = get_ride_for_user(request.user, ride_id)
    except RideServiceError as exc:
        return error_response(exc)

    return Response({'ride': serialize_for(request.user, ride, request), 'status': ride.status})


@api_view(['PUT'])
@permission_classes([IsAuthenticated, IsRider])
def update_addon(request, ride_id):
    """Raise the add-on on a waiting request; the fare is recomputed."""
    serializer = RiderAddonSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    try:
        ride = update_rider_addon(request.user, ride_id, serializer.validated_data['rider_price_addon'])
    except RideServiceError as exc:
        return error_response(exc)

    return Response({
        'success': True,
        'ride': RideSerializer(ride, context={'request': request}).data,
        'message': f'Add-on updated. New fare: {ride.fare}',
    })


@api_view(['PUT'])
@permission_classes([IsAuthenticated, IsRider])
def update_live_location(request, ride_id):
    serializer = LocationInputSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    try:
        ride = update_rider_live_location(request.user, ride_id, serializer.validated_data)
    except RideServiceError as exc:
        return error_response(exc)

    return Response({
        'success': True,
        'rider_live_location': RideSerializer(ride).data['rider_live_location'],
    })


@api_view(['PUT'])
@permission_classes([IsAuthenticated, IsRider])
def cancel_ride(request, ride_id):
    """
    Cancel ride by rider

    Allowed while the ride is requested or accepted. A cancelled
    accepted ride frees its driver.
    """
    serializer = RideCancelSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    try:
        result = cancel_ride_by_rider(request.user, ride_id, serializer.validated_data.get('reason', ''))
    except RideServiceError as exc:
        return error_response(exc)

    return Response({
        'success': True,
        'message': result.message,
        'ride_id': result.ride.id,
        'was_assigned': result.extra['was_assigned'],
        'cancelled_at': result.ride.cancelled_at,
    })


@api_view(['PUT'])
@permission_classes([IsAuthenticated, IsRider])
def rate_completed_ride(request, ride_id):
    serializer = RideRatingSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    try:
        ride = rate_ride(request.user, ride_id, serializer.validated_data['rating'])
    except RideServiceError as exc:
        return error_response(exc)

    return Response({
        'success': True,
        'ride': RideSerializer(ride, context={'request': request}).data,
        'message': 'Thanks for rating your ride',
    })
