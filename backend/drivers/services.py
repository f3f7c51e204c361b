import logging

from django.db import transaction
from django.utils import timezone

from common.utils import is_valid_coordinate, normalize_point
from drivers.models import DriverProfile
from services.ride_management import get_current_driver_ride
from services.ride_management.exceptions import DriverNotAvailableError, RideValidationError

logger = logging.getLogger(__name__)


# DRIVER AVAILABILITY UPDATE
def update_driver_availability(profile: DriverProfile, is_available: bool):
    """
    Go online or offline.

    Going online while still holding an accepted or in-progress ride is
    refused; availability comes back on its own when that ride ends.
    """
    if is_available:
        current = get_current_driver_ride(profile)
        if current is not None:
            raise DriverNotAvailableError(
                "Finish your current ride before going available",
                current_ride_id=current.pk,
            )

    DriverProfile.objects.filter(pk=profile.pk).update(is_available=is_available)
    profile.is_available = is_available

    logger.info("Driver %s is now %s", profile.pk, "available" if is_available else "offline")
    return profile


def update_driver_location(profile: DriverProfile, point):
    """
    Store the driver's last reported position.

    If the driver is on a ride, everyone tracking that ride gets the new
    position.
    """
    location = normalize_point(point)
    if not is_valid_coordinate(location):
        raise RideValidationError("Valid lat/lng are required")

    now = timezone.now()
    profile.current_address = location["address"]
    profile.current_latitude = location["lat"]
    profile.current_longitude = location["lng"]
    profile.last_location_update = now

    with transaction.atomic():
        DriverProfile.objects.filter(pk=profile.pk).update(
            current_address=profile.current_address,
            current_latitude=profile.current_latitude,
            current_longitude=profile.current_longitude,
            last_location_update=now,
        )

        ride = get_current_driver_ride(profile)
        if ride is not None:
            from realtime.notifications import notify_driver_location
            notify_driver_location(ride, profile)

    return profile


def update_driver_vehicle(profile: DriverProfile, validated_data: dict):
    """Apply vehicle edits from the profile screen."""
    fields = []
    for field, value in validated_data.items():
        setattr(profile, field, value)
        fields.append(field)

    if fields:
        profile.save(update_fields=fields)
        logger.info("Driver %s updated %s", profile.pk, ", ".join(sorted(fields)))
    return profile
