"""Ride WebSocket consumer for real-time ride updates."""

import logging
from typing import Dict, Any, Set

from channels.db import database_sync_to_async

from realtime.notifications import ride_group
from .base import BaseConsumer

logger = logging.getLogger(__name__)


class RideConsumer(BaseConsumer):
    """
    WebSocket consumer for ride events.

    Used by both riders and drivers to:
        - Receive ride status updates (accepted, verified, started, completed, cancelled, expired)
        - Follow a ride they take part in, including the driver's live position
    """

    async def on_connect(self):
        """Set up ride connection."""
        # Track which ride groups this connection has joined
        self.joined_rides: Set[str] = set()

        await self.send_json({
            "type": "connection_established",
            "user_id": self.user_id,
            "role": self.role,
            "message": "Ride connection established",
        })

    async def handle_message(self, msg_type: str, data: Dict[str, Any]):
        """Handle ride tracking messages."""

        if msg_type == "start_tracking":
            await self._handle_start_tracking(data)
        elif msg_type == "stop_tracking":
            await self._handle_stop_tracking(data)
        elif msg_type == "ping":
            await self.send_success("pong")
        else:
            await self.send_error(f"Unknown message type: {msg_type}")

    # ---------------------- Message Handlers ----------------------

    async def _handle_start_tracking(self, data: Dict[str, Any]):
        """
        Join a ride tracking group.
        Rider and assigned driver join ride_<ride_id> to share status and location updates.
        """
        ride_id = data.get("ride_id")

        if ride_id is None:
            await self.send_error("start_tracking requires ride_id")
            return

        # Validate ride exists and user is part of it
        is_valid = await self._validate_ride_participant(ride_id)
        if not is_valid:
            await self.send_error("You are not authorized to track this ride")
            return

        group = ride_group(ride_id)
        await self._join_group(group)
        self.joined_rides.add(group)

        await self.send_success("tracking_started", ride_id=ride_id)

    async def _handle_stop_tracking(self, data: Dict[str, Any]):
        """Leave a ride tracking group."""
        ride_id = data.get("ride_id")

        if ride_id is None:
            return

        group = ride_group(ride_id)
        await self._leave_group(group)
        self.joined_rides.discard(group)

        await self.send_success("tracking_stopped", ride_id=ride_id)

    # ---------------------- Event Handlers (from group_send) ----------------------

    async def driver_location(self, event):
        """Forward the assigned driver's position during a ride."""
        await self.send_json({
            "type": "driver_location",
            "ride_id": event.get("ride_id"),
            "driver_id": event.get("driver_id"),
            "lat": event.get("lat"),
            "lng": event.get("lng"),
            "address": event.get("address", ""),
        })

    # ---------------------- Database Helpers ----------------------

    @database_sync_to_async
    def _validate_ride_participant(self, ride_id) -> bool:
        """Check if user is authorized to track this ride."""
        from rides.models import Ride
        try:
            ride = Ride.objects.select_related("driver").get(id=ride_id)
        except (Ride.DoesNotExist, ValueError, TypeError):
            return False
        # User must be either the rider or the assigned driver
        if ride.rider_id == self.user_id:
            return True
        return ride.driver is not None and ride.driver.user_id == self.user_id
