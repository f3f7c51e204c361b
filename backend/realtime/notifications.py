"""
Notification helpers for sending WebSocket messages to connected clients.

Ride events go to personal groups:
    - riders:  user_<user_id>
    - drivers: driver_<user_id>
    - both parties tracking a ride: ride_<ride_id>

Messages are sent after the surrounding transaction commits, and a failing
channel layer is logged, never raised: a notification must not undo a ride
state change that already happened.
"""

from __future__ import annotations

import logging
from typing import Dict, Any

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.db import transaction

logger = logging.getLogger(__name__)


def rider_group(user_id: int) -> str:
    return f"user_{user_id}"


def driver_group(user_id: int) -> str:
    return f"driver_{user_id}"


def ride_group(ride_id: int) -> str:
    return f"ride_{ride_id}"


def _group_send(group: str, payload: Dict[str, Any]) -> bool:
    channel_layer = get_channel_layer()
    if channel_layer is None:
        logger.debug("No channel layer configured, dropping %s", payload.get("type"))
        return False

    try:
        logger.debug("WS -> %s: %s", group, payload.get("type"))
        async_to_sync(channel_layer.group_send)(group, payload)
    except Exception:
        logger.exception("Failed to send %s to %s", payload.get("type"), group)
        return False
    return True


def _send_on_commit(group: str, build_payload) -> None:
    transaction.on_commit(lambda: _group_send(group, build_payload()))


# ---------------------- Ride Event Notifications ----------------------

def notify_rider_event(
    event_type: str,
    ride,
    message: str = "",
    extra: Dict[str, Any] = None,
) -> None:
    """
    Send a ride event to the rider through user_<rider_id>.

    Args:
        event_type: Handler name in consumer (ride_accepted, ride_cancelled, ride_expired, ...)
        ride: Ride model instance
        message: Optional message to include
        extra: Additional payload data
    """
    if not ride.rider_id:
        return

    def build():
        from rides.serializers import RideSerializer

        payload = {
            "type": event_type,
            "ride_id": ride.id,
            "status": ride.status,
            "ride_data": RideSerializer(ride).data,
            **(extra or {}),
        }
        if message:
            payload["message"] = message
        return payload

    _send_on_commit(rider_group(ride.rider_id), build)


def notify_driver_event(
    event_type: str,
    ride,
    message: str = "",
    extra: Dict[str, Any] = None,
) -> None:
    """
    Send a ride event to the assigned driver through driver_<user_id>.

    The payload uses the driver serializer, so the pickup code never leaves
    the server on this path.
    """
    if ride.driver_id is None:
        return

    driver_user_id = ride.driver.user_id

    def build():
        from rides.serializers import DriverRideSerializer

        payload = {
            "type": event_type,
            "ride_id": ride.id,
            "status": ride.status,
            "ride_data": DriverRideSerializer(ride).data,
            **(extra or {}),
        }
        if message:
            payload["message"] = message
        return payload

    _send_on_commit(driver_group(driver_user_id), build)


def notify_driver_location(ride, driver) -> None:
    """Push the assigned driver's position to everyone tracking the ride."""
    payload = {
        "type": "driver_location",
        "ride_id": ride.id,
        "driver_id": driver.pk,
        "lat": driver.current_latitude,
        "lng": driver.current_longitude,
        "address": driver.current_address,
    }
    _send_on_commit(ride_group(ride.id), lambda: payload)


def notify_ride_group(event_type: str, ride, message: str = "") -> None:
    """Send a status event to everyone tracking ride_<ride_id>."""
    _send_on_commit(
        ride_group(ride.id),
        lambda: {
            "type": event_type,
            "ride_id": ride.id,
            "status": ride.status,
            "message": message,
        },
    )
