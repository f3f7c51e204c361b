"""
Lazy expiry of ride requests nobody accepted.

There is no live timer: ``expire_stale_requests`` runs at the start of every
path that lists or claims pending rides (and optionally from a periodic
Celery task), so a request is cancelled no later than the next access after
its deadline.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from django.conf import settings
from django.utils import timezone

from rides.models import Ride, RideStatus

logger = logging.getLogger(__name__)

DEFAULT_REQUEST_TIMEOUT_MINUTES = 5


def request_timeout_minutes() -> int:
    return getattr(settings, "RIDE_REQUEST_TIMEOUT_MINUTES", DEFAULT_REQUEST_TIMEOUT_MINUTES)


def expiry_deadline(from_time: Optional[datetime] = None) -> datetime:
    """Deadline for a request created (or re-opened) at ``from_time``."""
    from_time = from_time or timezone.now()
    return from_time + timedelta(minutes=request_timeout_minutes())


def expiry_reason() -> str:
    return f"No driver accepted within {request_timeout_minutes()} minutes"


def expire_stale_requests(now: Optional[datetime] = None) -> int:
    """
    Cancel every requested, unassigned ride whose deadline has passed.

    Idempotent: already-cancelled rides no longer match the status filter,
    so a second call changes nothing.

    Returns:
        Number of rides cancelled by this call
    """
    now = now or timezone.now()
    stale = Ride.objects.filter(
        status=RideStatus.REQUESTED,
        driver__isnull=True,
        request_expires_at__lte=now,
    )
    stale_ids = list(stale.values_list('id', flat=True))
    if not stale_ids:
        return 0

    # Same predicate again: a ride claimed since the read above is left alone
    expired = stale.filter(id__in=stale_ids).update(
        status=RideStatus.CANCELLED,
        cancellation_reason=expiry_reason(),
        cancelled_at=now,
        updated_at=now,
    )

    if expired:
        logger.info("Expired %d stale ride request(s)", expired)
        _notify_expired(stale_ids, now)
    return expired


def _notify_expired(ride_ids, cancelled_at: datetime) -> None:
    from realtime.notifications import notify_rider_event

    expired_rides = Ride.objects.filter(
        id__in=ride_ids,
        status=RideStatus.CANCELLED,
        cancelled_at=cancelled_at,
    )
    for ride in expired_rides:
        notify_rider_event('ride_expired', ride, ride.cancellation_reason)
