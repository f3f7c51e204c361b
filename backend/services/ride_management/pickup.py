"""
Pickup verification.

A 4-digit code is issued to the rider when a driver claims the ride. The
driver has to get it from the passenger in person; until it is verified the
trip cannot start.
"""

import logging
import re
import secrets

from django.db import transaction
from django.utils import timezone

from rides.models import Ride, RideStatus
from .exceptions import (
    PickupOtpMismatchError,
    RideAccessDeniedError,
    RideNotFoundError,
    RideStateConflictError,
    RideValidationError,
)

logger = logging.getLogger(__name__)

PICKUP_OTP_PATTERN = re.compile(r"^\d{4}$")


def generate_pickup_otp() -> str:
    """Fresh 4-digit numeric code (1000-9999)."""
    return str(1000 + secrets.randbelow(9000))


def verify_pickup_otp(driver, ride_id: int, submitted_code) -> Ride:
    """
    Check the code the passenger gave the driver.

    Args:
        driver: DriverProfile of the caller
        ride_id: Ride being picked up
        submitted_code: Code typed in by the driver

    Returns:
        The ride with ``pickup_otp_verified_at`` set

    Raises:
        RideValidationError: Code is not exactly 4 digits
        RideNotFoundError: Unknown ride
        RideAccessDeniedError: Caller is not the assigned driver
        RideStateConflictError: Ride is not in ``accepted``
        PickupOtpMismatchError: Code does not match
    """
    code = str(submitted_code if submitted_code is not None else "").strip()
    if not PICKUP_OTP_PATTERN.match(code):
        raise RideValidationError("Enter a valid 4-digit OTP")

    try:
        ride = Ride.objects.get(pk=ride_id)
    except Ride.DoesNotExist:
        raise RideNotFoundError()

    if ride.driver_id != driver.pk:
        raise RideAccessDeniedError("Not authorized to verify this ride")

    if ride.status != RideStatus.ACCEPTED:
        raise RideStateConflictError(f"Cannot verify pickup for a ride that is {ride.status}")

    # Already verified: idempotent, the code is gone anyway
    if ride.pickup_otp_verified_at is not None:
        return ride

    if not ride.pickup_otp or not secrets.compare_digest(ride.pickup_otp, code):
        logger.info("Pickup OTP mismatch on ride %s by driver %s", ride.pk, driver.pk)
        raise PickupOtpMismatchError()

    now = timezone.now()
    with transaction.atomic():
        updated = Ride.objects.filter(
            pk=ride.pk,
            status=RideStatus.ACCEPTED,
            driver=driver,
            pickup_otp=code,
        ).update(pickup_otp='', pickup_otp_verified_at=now, updated_at=now)

        ride.refresh_from_db()
        if not updated and ride.pickup_otp_verified_at is None:
            raise RideStateConflictError(f"Cannot verify pickup for a ride that is {ride.status}")

        from realtime.notifications import notify_rider_event, notify_driver_event
        notify_rider_event('pickup_verified', ride, 'Driver verified your pickup code.')
        notify_driver_event('pickup_verified', ride, 'Passenger verified. You can start the trip.')

    logger.info("Pickup verified for ride %s", ride.pk)
    return ride
