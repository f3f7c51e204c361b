from rest_framework import status
from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated

from accounts.permissions import IsDriver
from drivers.models import DriverProfile
from drivers.serializers import (
    DriverProfileSerializer,
    DriverAvailabilitySerializer,
    LocationUpdateSerializer,
    PickupOtpSerializer,
    RideStatusUpdateSerializer,
)
from rides.serializers import DriverRideSerializer
from services.dispatch import accept_ride, eligible_rides_for_driver
from services.ride_management import (
    RideServiceError,
    advance_ride_status,
    get_current_driver_ride,
    list_driver_rides,
    verify_pickup_otp,
)
from services.ride_management.exceptions import DriverNotFoundError

from drivers import services


# Utility: Ensure request.user has a driver profile
def require_driver(user):
    try:
        return True, user.driver_profile
    except DriverProfile.DoesNotExist:
        exc = DriverNotFoundError()
        return False, Response(exc.as_payload(), status=exc.status_code)


def error_response(exc: RideServiceError):
    return Response(exc.as_payload(), status=exc.status_code)


class DriverView(APIView):
    permission_classes = [IsAuthenticated, IsDriver]


class DriverProfileView(DriverView):

    def get(self, request):
        ok, profile = require_driver(request.user)
        if ok is False:
            return profile  # Response object

        serializer = DriverProfileSerializer(profile, context={"request": request})
        return Response(serializer.data)

    def put(self, request):
        ok, profile = require_driver(request.user)
        if ok is False:
            return profile

        serializer = DriverProfileSerializer(profile, data=request.data, partial=True, context={"request": request})
        serializer.is_valid(raise_exception=True)
        services.update_driver_vehicle(profile, serializer.validated_data)

        return Response(DriverProfileSerializer(profile, context={"request": request}).data, status=200)


class DriverAvailabilityView(DriverView):

    def get(self, request):
        ok, profile = require_driver(request.user)
        if ok is False:
            return profile

        return Response({"is_available": profile.is_available})

    def put(self, request):
        ok, profile = require_driver(request.user)
        if ok is False:
            return profile

        serializer = DriverAvailabilitySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        is_available = serializer.validated_data["is_available"]

        try:
            services.update_driver_availability(profile, is_available)
        except RideServiceError as exc:
            return error_response(exc)

        return Response({
            "message": "You are now available" if is_available else "You are now offline",
            "is_available": is_available,
        })


class DriverLocationUpdateView(DriverView):

    def get(self, request):
        ok, profile = require_driver(request.user)
        if ok is False:
            return profile

        return Response({
            "address": profile.current_address,
            "lat": profile.current_latitude,
            "lng": profile.current_longitude,
            "last_updated": profile.last_location_update,
            "is_available": profile.is_available,
        })

    def put(self, request):
        ok, profile = require_driver(request.user)
        if ok is False:
            return profile

        serializer = LocationUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            services.update_driver_location(profile, serializer.validated_data)
        except RideServiceError as exc:
            return error_response(exc)

        return Response({
            "message": "Location updated",
            "address": profile.current_address,
            "lat": profile.current_latitude,
            "lng": profile.current_longitude,
            "is_available": profile.is_available,
        })


class AvailableRidesView(DriverView):
    """
    Open requests this driver can accept, closest first.

    Query params:
        limit: maximum number of rides to return
    """

    def get(self, request):
        ok, profile = require_driver(request.user)
        if ok is False:
            return profile

        limit = request.query_params.get("limit")
        if limit is not None:
            try:
                limit = int(limit)
            except ValueError:
                limit = 0
            if limit < 1:
                return Response(
                    {"success": False, "error": "validation_error", "message": "limit must be a positive integer"},
                    status=status.HTTP_400_BAD_REQUEST,
                )

        candidates = eligible_rides_for_driver(profile, limit=limit)
        rides = []
        for candidate in candidates:
            data = DriverRideSerializer(candidate.ride, context={"request": request}).data
            data["pickup_distance_km"] = candidate.pickup_distance_km
            data["dispatch_radius_km"] = candidate.dispatch_radius_km
            rides.append(data)

        response = {"rides": rides, "count": len(rides)}
        if not profile.is_available:
            response["message"] = "Set yourself available to accept ride requests."
        return Response(response)


class AcceptRideView(DriverView):

    def put(self, request, ride_id):
        ok, profile = require_driver(request.user)
        if ok is False:
            return profile

        try:
            result = accept_ride(profile, ride_id)
        except RideServiceError as exc:
            return error_response(exc)

        return Response({
            "success": True,
            "ride": DriverRideSerializer(result.ride, context={"request": request}).data,
            "message": result.message,
            **(result.extra or {}),
        })


class VerifyPickupOtpView(DriverView):

    def put(self, request, ride_id):
        ok, profile = require_driver(request.user)
        if ok is False:
            return profile

        serializer = PickupOtpSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            ride = verify_pickup_otp(profile, ride_id, serializer.validated_data["otp"])
        except RideServiceError as exc:
            return error_response(exc)

        return Response({
            "success": True,
            "ride": DriverRideSerializer(ride, context={"request": request}).data,
            "message": "Passenger verified. You can start the trip.",
        })


class RideStatusView(DriverView):
    """Move the driver's ride to in_progress or completed."""

    def put(self, request, ride_id):
        ok, profile = require_driver(request.user)
        if ok is False:
            return profile

        serializer = RideStatusUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            result = advance_ride_status(profile, ride_id, serializer.validated_data["status"])
        except RideServiceError as exc:
            return error_response(exc)

        return Response({
            "success": True,
            "ride": DriverRideSerializer(result.ride, context={"request": request}).data,
            "message": result.message,
        })


class DriverCurrentRideView(DriverView):

    def get(self, request):
        ok, profile = require_driver(request.user)
        if ok is False:
            return profile

        ride = get_current_driver_ride(profile)
        if not ride:
            return Response({"has_active_ride": False, "message": "No active ride"})

        serializer = DriverRideSerializer(ride, context={"request": request})
        return Response({"has_active_ride": True, "ride": serializer.data})


class DriverRideHistoryView(DriverView):

    def get(self, request):
        ok, profile = require_driver(request.user)
        if ok is False:
            return profile

        rides = list_driver_rides(profile)
        serializer = DriverRideSerializer(rides, many=True, context={"request": request})

        return Response({"count": len(serializer.data), "rides": serializer.data})
