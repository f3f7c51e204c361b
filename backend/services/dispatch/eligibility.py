"""
Which open requests a driver may see, and in what order.

Uses the driver's last reported location and each ride's dispatch radius to
build a ranked list of candidate rides (closest first, then highest fare).
"""

import logging
import math
from dataclasses import dataclass
from typing import List, Optional

from django.conf import settings
from django.utils import timezone

from common.utils import great_circle_distance_km, is_valid_coordinate
from drivers.models import DriverProfile
from rides.models import Ride, RideStatus
from services.ride_management.expiry import expire_stale_requests

logger = logging.getLogger(__name__)


def dispatch_radius_km(rider_addon) -> int:
    """
    Radius inside which drivers see a request.

    Starts at ``DISPATCH_BASE_RADIUS_KM`` and grows one kilometre for every
    ``DISPATCH_ADDON_KM_STEP`` of add-on, capped at ``DISPATCH_MAX_RADIUS_KM``.
    """
    base = settings.DISPATCH_BASE_RADIUS_KM
    step = settings.DISPATCH_ADDON_KM_STEP
    cap = settings.DISPATCH_MAX_RADIUS_KM
    addon = max(0, int(rider_addon or 0))
    return min(cap, base + addon // step)


@dataclass
class DispatchCandidate:
    """A ride as seen by one driver."""
    ride: Ride
    pickup_distance_km: Optional[float]
    dispatch_radius_km: int

    @property
    def sort_key(self):
        distance = math.inf if self.pickup_distance_km is None else self.pickup_distance_km
        return (distance, -self.ride.fare)


def open_requests_queryset(now=None):
    """Requested, unassigned rides whose window has not closed."""
    now = now or timezone.now()
    return Ride.objects.filter(
        status=RideStatus.REQUESTED,
        driver__isnull=True,
        request_expires_at__gt=now,
    ).select_related('rider')


def candidate_for_driver(driver: DriverProfile, ride: Ride) -> DispatchCandidate:
    """Distance and radius of ``ride`` from the driver's point of view."""
    return DispatchCandidate(
        ride=ride,
        pickup_distance_km=great_circle_distance_km(driver.current_location, ride.pickup),
        dispatch_radius_km=dispatch_radius_km(ride.rider_price_addon),
    )


def is_within_radius(driver: DriverProfile, candidate: DispatchCandidate) -> bool:
    """
    Radius filter.

    A driver who never reported a usable location is not filtered out; the
    ride then ranks after every measurable one.
    """
    if not is_valid_coordinate(driver.current_location):
        return True
    if candidate.pickup_distance_km is None:
        return True
    return candidate.pickup_distance_km <= candidate.dispatch_radius_km


def eligible_rides_for_driver(driver: DriverProfile, limit: Optional[int] = None) -> List[DispatchCandidate]:
    """
    Ranked open requests the driver may accept.

    Args:
        driver: DriverProfile of the caller
        limit: Maximum number of results; ``DISPATCH_AVAILABLE_RIDES_LIMIT`` when omitted

    Returns:
        Candidates sorted by pickup distance ascending (unknown distance last),
        ties broken by fare descending
    """
    expire_stale_requests()

    if limit is None:
        limit = settings.DISPATCH_AVAILABLE_RIDES_LIMIT

    categories = list(driver.vehicle_categories or [])
    rides = open_requests_queryset().filter(category__in=categories)

    candidates = []
    for ride in rides:
        candidate = candidate_for_driver(driver, ride)
        if is_within_radius(driver, candidate):
            candidates.append(candidate)

    candidates.sort(key=lambda item: item.sort_key)

    logger.debug(
        "Driver %s sees %d open request(s) (categories=%s)",
        driver.pk, len(candidates), categories,
    )
    return candidates[:limit] if limit and limit > 0 else candidates
