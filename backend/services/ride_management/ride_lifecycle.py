"""
Core ride lifecycle operations.

This module contains the business logic for booking, re-pricing, tracking,
cancelling and advancing rides, kept out of the views layer for
testability and reuse. Driver claims live in ``services.dispatch``.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from django.db import transaction
from django.db.models import QuerySet
from django.utils import timezone

from drivers.models import DriverProfile
from common.utils import great_circle_distance_km, is_same_point, is_valid_coordinate, normalize_point
from rides.models import ACTIVE_STATUSES, PaymentMethod, Ride, RideCategory, RideStatus
from .exceptions import (
    ActiveRideExistsError,
    RideAccessDeniedError,
    RideNotAvailableError,
    RideNotFoundError,
    PickupNotVerifiedError,
    RideStateConflictError,
    RideValidationError,
)
from .expiry import expire_stale_requests, expiry_deadline
from .settlement import settle_completed_ride
from .state_machine import ensure_transition, transition_ride

logger = logging.getLogger(__name__)

DEFAULT_RIDER_CANCEL_REASON = "Cancelled by rider"

# Rider can update live location while the ride is open or under way
LIVE_LOCATION_STATUSES = ACTIVE_STATUSES

DRIVER_ADVANCE_TARGETS = {RideStatus.IN_PROGRESS, RideStatus.COMPLETED}


@dataclass
class RideResult:
    """Result object for ride operations."""
    success: bool
    ride: Optional[Ride] = None
    message: str = ""
    extra: Optional[Dict[str, Any]] = None


def _get_ride(ride_id: int) -> Ride:
    try:
        return Ride.objects.select_related('rider', 'driver__user').get(pk=ride_id)
    except Ride.DoesNotExist:
        raise RideNotFoundError()


def _get_owned_ride(rider, ride_id: int) -> Ride:
    ride = _get_ride(ride_id)
    if ride.rider_id != rider.pk:
        raise RideAccessDeniedError()
    return ride


def _validated_point(point, label: str) -> Dict[str, Any]:
    normalized = normalize_point(point)
    if not normalized['address']:
        raise RideValidationError(f"{label} address is required")
    if not is_valid_coordinate(normalized):
        raise RideValidationError(f"{label} coordinates are invalid")
    return normalized


# ===================== Rider Operations =====================

def check_active_ride(rider) -> Optional[Ride]:
    """Return the rider's open or in-progress ride, if any."""
    return Ride.objects.filter(rider=rider, status__in=ACTIVE_STATUSES).first()


@transaction.atomic
def book_ride(
    rider,
    pickup: Dict[str, Any],
    dropoff: Dict[str, Any],
    category: str = RideCategory.ECONOMY,
    payment_method: str = PaymentMethod.CASH,
    distance_km: Optional[float] = None,
    duration_min: Optional[float] = None,
    rider_addon: int = 0,
) -> RideResult:
    """
    Create a new ride request.

    Args:
        rider: User model instance (rider)
        pickup: ``{address, lat, lng}`` resolved by the client
        dropoff: ``{address, lat, lng}`` resolved by the client
        category: Ride category
        payment_method: Payment method label
        distance_km: Client route distance; straight-line distance when omitted
        duration_min: Client route duration estimate
        rider_addon: Extra amount offered by the rider

    Returns:
        RideResult with the created ride

    Raises:
        RideValidationError: Missing address, bad coordinates or identical endpoints
        ActiveRideExistsError: If the rider already has an active ride
    """
    pickup = _validated_point(pickup, "Pickup")
    dropoff = _validated_point(dropoff, "Dropoff")
    if is_same_point(pickup, dropoff):
        raise RideValidationError("Pickup and dropoff cannot be the same")

    if category not in RideCategory.values:
        raise RideValidationError(f"Unknown ride category: {category}")
    if payment_method not in PaymentMethod.values:
        raise RideValidationError(f"Unknown payment method: {payment_method}")

    expire_stale_requests()
    if check_active_ride(rider):
        raise ActiveRideExistsError("You already have an active ride request")

    if distance_km is None:
        distance_km = great_circle_distance_km(pickup, dropoff)

    now = timezone.now()
    ride = Ride(
        rider=rider,
        pickup_address=pickup['address'],
        pickup_latitude=pickup['lat'],
        pickup_longitude=pickup['lng'],
        dropoff_address=dropoff['address'],
        dropoff_latitude=dropoff['lat'],
        dropoff_longitude=dropoff['lng'],
        category=category,
        payment_method=payment_method,
        distance_km=distance_km,
        estimated_duration_min=duration_min,
        rider_price_addon=rider_addon,
        status=RideStatus.REQUESTED,
        request_expires_at=expiry_deadline(now),
    )
    ride.save()

    logger.info("Ride %s booked by rider %s (%s, fare %s)", ride.pk, rider.pk, ride.category, ride.fare)
    return RideResult(
        success=True,
        ride=ride,
        message="Ride booked. Waiting for nearby drivers.",
    )


def update_rider_addon(rider, ride_id: int, addon) -> Ride:
    """
    Raise the add-on of an open request and re-price it.

    The add-on can only grow while the request is waiting; a bigger add-on
    widens the dispatch radius.

    Raises:
        RideValidationError: Negative, non-integer or lowered add-on
        RideNotAvailableError: Ride was claimed, cancelled or expired
    """
    try:
        addon = int(addon)
    except (TypeError, ValueError):
        raise RideValidationError("Add-on must be a whole amount")
    if addon < 0:
        raise RideValidationError("Add-on cannot be negative")

    expire_stale_requests()
    ride = _get_owned_ride(rider, ride_id)
    now = timezone.now()
    if not ride.is_open_request(now):
        raise RideNotAvailableError("Add-on can only be changed while the request is waiting for a driver")
    if addon < ride.rider_price_addon:
        raise RideValidationError("Add-on can only be increased")

    ride.rider_price_addon = addon
    ride.apply_fare()

    updated = Ride.objects.filter(
        pk=ride.pk,
        status=RideStatus.REQUESTED,
        driver__isnull=True,
        request_expires_at__gt=now,
    ).update(updated_at=now, **ride.fare_values())
    if not updated:
        raise RideNotAvailableError("Add-on can only be changed while the request is waiting for a driver")

    ride.refresh_from_db()
    logger.info("Ride %s add-on raised to %s, fare now %s", ride.pk, ride.rider_price_addon, ride.fare)
    return ride


def update_rider_live_location(rider, ride_id: int, point: Dict[str, Any]) -> Ride:
    """Store the rider's live position for the driver's pickup view."""
    location = normalize_point(point)
    if not is_valid_coordinate(location):
        raise RideValidationError("Valid lat/lng are required")

    expire_stale_requests()
    ride = _get_owned_ride(rider, ride_id)
    if ride.status not in LIVE_LOCATION_STATUSES:
        raise RideStateConflictError(f"Cannot share location for a ride that is {ride.status}")

    now = timezone.now()
    updated = Ride.objects.filter(pk=ride.pk, status__in=LIVE_LOCATION_STATUSES).update(
        rider_live_address=location['address'],
        rider_live_latitude=location['lat'],
        rider_live_longitude=location['lng'],
        rider_live_updated_at=now,
        updated_at=now,
    )
    if not updated:
        ride.refresh_from_db()
        raise RideStateConflictError(f"Cannot share location for a ride that is {ride.status}")

    ride.refresh_from_db()
    return ride


def cancel_ride_by_rider(rider, ride_id: int, reason: str = "") -> RideResult:
    """
    Cancel a ride by its rider.

    Allowed while the ride is requested or accepted. If a driver was
    assigned, the driver is made available again.
    """
    # Expired requests are cancelled by the sweep even when this call fails
    expire_stale_requests()
    return _cancel_owned_ride(rider, ride_id, reason)


@transaction.atomic
def _cancel_owned_ride(rider, ride_id: int, reason: str) -> RideResult:
    ride = _get_owned_ride(rider, ride_id)
    had_driver = ride.driver_id is not None

    ride = transition_ride(
        ride,
        RideStatus.CANCELLED,
        cancellation_reason=(reason or "").strip() or DEFAULT_RIDER_CANCEL_REASON,
    )

    from realtime.notifications import notify_driver_event, notify_ride_group
    if had_driver:
        DriverProfile.objects.filter(pk=ride.driver_id).update(is_available=True)
        notify_driver_event('ride_cancelled', ride, 'Passenger cancelled this ride.')
    notify_ride_group('ride_cancelled', ride, 'Passenger cancelled this ride.')

    logger.info("Ride %s cancelled by rider %s", ride.pk, rider.pk)
    return RideResult(
        success=True,
        ride=ride,
        message="Ride cancelled successfully",
        extra={"was_assigned": had_driver},
    )


# ===================== Driver Operations =====================

@transaction.atomic
def advance_ride_status(driver, ride_id: int, target: str) -> RideResult:
    """
    Move the driver's ride one step: accepted -> in_progress -> completed.

    Raises:
        RideNotFoundError: Unknown ride
        RideAccessDeniedError: Caller is not the assigned driver
        InvalidTransitionError: Target is not the next step
        PickupNotVerifiedError: Starting the trip before the pickup code was verified
    """
    ride = _get_ride(ride_id)
    if ride.driver_id != driver.pk:
        raise RideAccessDeniedError("Not authorized to update this ride")

    if target not in DRIVER_ADVANCE_TARGETS:
        raise RideValidationError(f"Drivers can only move rides to {', '.join(sorted(DRIVER_ADVANCE_TARGETS))}")
    ensure_transition(ride, target)

    if target == RideStatus.IN_PROGRESS and ride.requires_pickup_verification:
        raise PickupNotVerifiedError()

    ride = transition_ride(ride, target)

    from realtime.notifications import notify_rider_event, notify_ride_group
    if target == RideStatus.COMPLETED:
        settle_completed_ride(ride)
        notify_rider_event('ride_completed', ride, 'Your ride has been completed. Thank you for riding with us!')
        notify_ride_group('ride_completed', ride, 'Ride completed by driver')
    else:
        notify_rider_event('ride_status_changed', ride, 'Your trip has started.')
        notify_ride_group('ride_status_changed', ride, 'Trip started')

    logger.info("Ride %s marked as %s by driver %s", ride.pk, target, driver.pk)
    return RideResult(success=True, ride=ride, message=f"Ride marked as {target}")


# ===================== Queries =====================

def get_ride_for_user(user, ride_id: int) -> Ride:
    """
    Fetch a ride the caller is allowed to see.

    Riders see their own rides. Drivers see rides assigned to them and rides
    still waiting for a driver.
    """
    expire_stale_requests()
    ride = _get_ride(ride_id)

    if ride.rider_id == user.pk:
        return ride

    driver = getattr(user, 'driver_profile', None) if getattr(user, 'is_driver', False) else None
    if driver is not None:
        if ride.driver_id == driver.pk:
            return ride
        if ride.driver_id is None and ride.status == RideStatus.REQUESTED:
            return ride

    raise RideAccessDeniedError("Not authorized to view this ride")


def list_rider_rides(rider) -> QuerySet:
    expire_stale_requests()
    return Ride.objects.filter(rider=rider).select_related('driver__user').order_by('-requested_at', '-id')


def list_driver_rides(driver) -> QuerySet:
    return Ride.objects.filter(driver=driver).select_related('rider').order_by('-requested_at', '-id')


def get_current_driver_ride(driver) -> Optional[Ride]:
    """Get driver's current accepted or in-progress ride."""
    return (
        Ride.objects.filter(driver=driver, status__in=[RideStatus.ACCEPTED, RideStatus.IN_PROGRESS])
        .select_related('rider')
        .first()
    )
