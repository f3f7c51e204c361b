"""
Post-trip bookkeeping: driver settlement on completion and ride rating.
"""

import logging
from typing import Tuple

from django.db import transaction
from django.db.models import F

from common.utils import round_half_up
from drivers.models import DriverProfile
from rides.models import Ride, RideStatus
from .exceptions import (
    RideAccessDeniedError,
    RideAlreadyRatedError,
    RideNotFoundError,
    RideStateConflictError,
    RideValidationError,
)

logger = logging.getLogger(__name__)


def settle_completed_ride(ride: Ride) -> None:
    """
    Driver bookkeeping for a ride that just reached ``completed``.

    Frees the driver, counts the ride and adds its fare to earnings in one
    row update.
    """
    if ride.driver_id is None:
        return

    DriverProfile.objects.filter(pk=ride.driver_id).update(
        is_available=True,
        total_rides=F('total_rides') + 1,
        earnings=F('earnings') + ride.fare,
    )
    logger.info("Settled ride %s: driver %s earned %s", ride.pk, ride.driver_id, ride.fare)


def updated_rating(average: float, count: int, rating: int) -> Tuple[float, int]:
    """
    Fold one rating into a running mean.

    Returns:
        (new_average rounded half-up to 1 dp, new_count)
    """
    new_count = count + 1
    new_average = (average * count + rating) / new_count
    return round_half_up(new_average, 1), new_count


def _validate_rating(rating) -> int:
    if isinstance(rating, bool):
        raise RideValidationError("Rating must be between 1 and 5")
    try:
        value = int(rating)
    except (TypeError, ValueError):
        raise RideValidationError("Rating must be between 1 and 5")
    if value != rating and str(value) != str(rating).strip():
        raise RideValidationError("Rating must be a whole number between 1 and 5")
    if not 1 <= value <= 5:
        raise RideValidationError("Rating must be between 1 and 5")
    return value


@transaction.atomic
def rate_ride(rider, ride_id: int, rating) -> Ride:
    """
    Record the rider's rating for a completed ride and update the driver aggregate.

    Raises:
        RideValidationError: Rating is not an integer in 1..5
        RideNotFoundError: Unknown ride
        RideAccessDeniedError: Caller is not the ride's rider
        RideStateConflictError: Ride is not completed
        RideAlreadyRatedError: Ride was rated before
    """
    rating = _validate_rating(rating)

    try:
        ride = Ride.objects.get(pk=ride_id)
    except Ride.DoesNotExist:
        raise RideNotFoundError()

    if ride.rider_id != rider.pk:
        raise RideAccessDeniedError()

    if ride.status != RideStatus.COMPLETED:
        raise RideStateConflictError("Can only rate completed rides")

    # rating IS NULL in the predicate keeps the first rating immutable
    updated = Ride.objects.filter(
        pk=ride.pk,
        status=RideStatus.COMPLETED,
        rating__isnull=True,
    ).update(rating=rating)
    if not updated:
        raise RideAlreadyRatedError()

    if ride.driver_id is not None:
        driver = DriverProfile.objects.select_for_update().get(pk=ride.driver_id)
        driver.rating_average, driver.rating_count = updated_rating(
            driver.rating_average, driver.rating_count, rating
        )
        driver.save(update_fields=['rating_average', 'rating_count'])
        logger.info(
            "Driver %s rating now %.1f over %d ride(s)",
            driver.pk, driver.rating_average, driver.rating_count,
        )

    ride.refresh_from_db()
    return ride
