"""
Ride status transition table.

Every status change goes through ``transition_ride`` so the allowed moves are
defined in exactly one place. The write itself is a conditional update on the
status the caller read: if another request moved the ride in the meantime,
zero rows match and the change is rejected instead of overwriting.
"""

import logging
from typing import Dict, FrozenSet

from django.utils import timezone

from rides.models import Ride, RideStatus
from .exceptions import InvalidTransitionError

logger = logging.getLogger(__name__)


ALLOWED_TRANSITIONS: Dict[str, FrozenSet[str]] = {
    RideStatus.REQUESTED: frozenset({RideStatus.ACCEPTED, RideStatus.CANCELLED}),
    RideStatus.ACCEPTED: frozenset({RideStatus.IN_PROGRESS, RideStatus.CANCELLED}),
    RideStatus.IN_PROGRESS: frozenset({RideStatus.COMPLETED}),
    RideStatus.COMPLETED: frozenset(),
    RideStatus.CANCELLED: frozenset(),
}

# Target status -> timestamp field stamped by the transition
TRANSITION_TIMESTAMPS = {
    RideStatus.ACCEPTED: 'accepted_at',
    RideStatus.IN_PROGRESS: 'started_at',
    RideStatus.COMPLETED: 'completed_at',
    RideStatus.CANCELLED: 'cancelled_at',
}


def can_transition(current: str, target: str) -> bool:
    """True iff ``current -> target`` is a single permitted step."""
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


def ensure_transition(ride: Ride, target: str) -> None:
    if not can_transition(ride.status, target):
        raise InvalidTransitionError(ride.status, target)


def transition_ride(ride: Ride, target: str, **changes) -> Ride:
    """
    Move ``ride`` to ``target`` with a conditional update on its current status.

    Args:
        ride: Ride instance as read by the caller
        target: New status
        **changes: Extra field values written in the same update

    Returns:
        The ride refreshed from the database

    Raises:
        InvalidTransitionError: If the move is not in the table, or the ride
            left its expected status before the write
    """
    ensure_transition(ride, target)

    now = timezone.now()
    timestamp_field = TRANSITION_TIMESTAMPS.get(target)
    if timestamp_field and timestamp_field not in changes:
        changes[timestamp_field] = now

    updated = Ride.objects.filter(pk=ride.pk, status=ride.status).update(
        status=target,
        updated_at=now,
        **changes,
    )
    if not updated:
        current = Ride.objects.filter(pk=ride.pk).values_list('status', flat=True).first()
        logger.info(
            "Stale transition on ride %s: expected %s, found %s, wanted %s",
            ride.pk, ride.status, current, target,
        )
        raise InvalidTransitionError(current or ride.status, target)

    ride.refresh_from_db()
    return ride
