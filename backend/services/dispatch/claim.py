"""
Atomic ride claim.

Many drivers can see the same open request. Exactly one of them gets it: the
claim is a single conditional UPDATE whose WHERE clause re-states every
precondition (still requested, still unassigned, window still open). The
database answers with the number of rows it changed, so a driver that lost
the race sees 0 and is told so; nothing is overwritten.
"""

import logging

from django.db import transaction
from django.utils import timezone

from drivers.models import DriverProfile
from rides.models import Ride, RideStatus
from services.ride_management.exceptions import (
    CategoryNotSupportedError,
    DriverNotAvailableError,
    OutsideDispatchRadiusError,
    RideAlreadyClaimedError,
    RideNotAvailableError,
    RideNotFoundError,
)
from services.ride_management.expiry import expire_stale_requests
from services.ride_management.pickup import generate_pickup_otp
from services.ride_management.ride_lifecycle import RideResult, get_current_driver_ride
from .eligibility import candidate_for_driver, is_within_radius

logger = logging.getLogger(__name__)


def load_ride(ride_id: int) -> Ride:
    try:
        return Ride.objects.select_related('rider').get(pk=ride_id)
    except Ride.DoesNotExist:
        raise RideNotFoundError()


def claim_ride(driver: DriverProfile, ride: Ride, now=None) -> int:
    """
    Compare-and-set the ride onto ``driver``.

    Returns:
        Number of rows updated: 1 if this driver won, 0 otherwise
    """
    now = now or timezone.now()
    return Ride.objects.filter(
        pk=ride.pk,
        status=RideStatus.REQUESTED,
        driver__isnull=True,
        request_expires_at__gt=now,
    ).update(
        driver=driver,
        status=RideStatus.ACCEPTED,
        accepted_at=now,
        pickup_otp=generate_pickup_otp(),
        pickup_otp_generated_at=now,
        pickup_otp_verified_at=None,
        updated_at=now,
    )


def accept_ride(driver: DriverProfile, ride_id: int) -> RideResult:
    """
    Driver accepts an open ride request.

    Args:
        driver: DriverProfile of the caller
        ride_id: ID of the ride to accept

    Returns:
        RideResult with the accepted ride

    Raises:
        DriverNotAvailableError: Driver is offline or already on a ride
        RideNotFoundError: Unknown ride
        RideNotAvailableError: Ride is no longer open
        CategoryNotSupportedError: Vehicle does not serve the ride's category
        OutsideDispatchRadiusError: Pickup is outside the ride's dispatch radius
        RideAlreadyClaimedError: Another driver won the claim
    """
    expire_stale_requests()

    with transaction.atomic():
        driver.refresh_from_db(fields=['is_available', 'current_latitude', 'current_longitude', 'vehicle_categories'])
        if not driver.is_available:
            raise DriverNotAvailableError()

        current = get_current_driver_ride(driver)
        if current is not None:
            raise DriverNotAvailableError(
                "Finish your current ride before accepting another",
                current_ride_id=current.pk,
            )

        ride = load_ride(ride_id)
        now = timezone.now()

        if ride.driver_id is not None and ride.driver_id != driver.pk:
            logger.info("Driver %s lost ride %s to driver %s", driver.pk, ride.pk, ride.driver_id)
            raise RideAlreadyClaimedError()
        if not ride.is_open_request(now):
            raise RideNotAvailableError()

        if not driver.serves_category(ride.category):
            raise CategoryNotSupportedError()

        candidate = candidate_for_driver(driver, ride)
        if not is_within_radius(driver, candidate):
            raise OutsideDispatchRadiusError(
                pickup_distance_km=round(candidate.pickup_distance_km, 2),
                dispatch_radius_km=candidate.dispatch_radius_km,
            )

        if not claim_ride(driver, ride, now):
            logger.info("Claim conflict on ride %s: driver %s was too late", ride.pk, driver.pk)
            raise RideAlreadyClaimedError()

        # Rolls the claim back too if the driver went offline meanwhile
        flipped = DriverProfile.objects.filter(pk=driver.pk, is_available=True).update(is_available=False)
        if not flipped:
            raise DriverNotAvailableError()
        driver.is_available = False

        ride.refresh_from_db()
        ride.driver = driver

        from realtime.notifications import notify_driver_event, notify_rider_event, notify_ride_group
        notify_rider_event(
            'ride_accepted',
            ride,
            'A driver accepted your ride. Share the pickup code when they arrive.',
        )
        notify_driver_event('ride_accepted', ride, 'Ride accepted. Verify the pickup code with the passenger.')
        notify_ride_group('ride_accepted', ride, 'Ride accepted')

    logger.info("Ride %s accepted by driver %s", ride.pk, driver.pk)
    return RideResult(
        success=True,
        ride=ride,
        message="Ride accepted successfully",
        extra={
            "pickup_distance_km": candidate.pickup_distance_km,
            "dispatch_radius_km": candidate.dispatch_radius_km,
        },
    )
