"""Base WebSocket consumer: authentication, group membership and ride event forwarding."""

import logging
from typing import Dict, Any, List, Set

from channels.generic.websocket import AsyncJsonWebsocketConsumer

from realtime.notifications import driver_group, rider_group

logger = logging.getLogger(__name__)


class BaseConsumer(AsyncJsonWebsocketConsumer):
    """
    Authenticated consumer joined to the caller's personal groups.

    Every account joins user_<id>; drivers also join driver_<id>, where the
    code-stripped driver events arrive.

    Subclasses should override:
        - on_connect(): greet the client
        - handle_message(msg_type, data): handle incoming messages
    """

    async def connect(self):
        self.user = self.scope["user"]
        self.joined_groups: Set[str] = set()

        if self.user.is_anonymous:
            await self.close()
            return

        self.user_id = self.user.id
        self.role = getattr(self.user, "role", None)

        for group in self.personal_groups():
            await self._join_group(group)

        await self.accept()
        await self.on_connect()

    def personal_groups(self) -> List[str]:
        groups = [rider_group(self.user_id)]
        if self.role == "driver":
            groups.append(driver_group(self.user_id))
        return groups

    async def on_connect(self):
        await self.send_json({
            "type": "connection_established",
            "user_id": self.user_id,
            "role": self.role,
        })

    async def disconnect(self, close_code):
        for group in list(self.joined_groups):
            try:
                await self._leave_group(group)
            except Exception:
                logger.exception("Could not leave %s for user %s", group, getattr(self, "user_id", "unknown"))

    async def receive_json(self, data: Dict[str, Any]):
        msg_type = data.get("type")
        if not msg_type:
            await self.send_error("Message type is required")
            return

        try:
            await self.handle_message(msg_type, data)
        except Exception:
            logger.exception("Error handling message type %s", msg_type)
            await self.send_error(f"Error processing {msg_type}")

    async def handle_message(self, msg_type: str, data: Dict[str, Any]):
        await self.send_error(f"Unknown message type: {msg_type}")

    # ---------------------- Groups ----------------------

    async def _join_group(self, group_name: str):
        await self.channel_layer.group_add(group_name, self.channel_name)
        self.joined_groups.add(group_name)

    async def _leave_group(self, group_name: str):
        await self.channel_layer.group_discard(group_name, self.channel_name)
        self.joined_groups.discard(group_name)

    # ---------------------- Replies ----------------------

    async def send_error(self, message: str):
        await self.send_json({"type": "error", "message": message})

    async def send_success(self, event_type: str, **kwargs):
        await self.send_json({"type": event_type, **kwargs})

    # ---------------------- Ride events (from group_send) ----------------------

    async def forward_ride_event(self, event):
        """Relay a ride event; ``ride_data`` was serialized for this audience."""
        await self.send_json({
            "type": event["type"],
            "ride_id": event.get("ride_id"),
            "status": event.get("status"),
            "message": event.get("message", ""),
            "ride": event.get("ride_data"),
        })

    async def ride_accepted(self, event):
        await self.forward_ride_event(event)

    async def ride_cancelled(self, event):
        await self.forward_ride_event(event)

    async def ride_expired(self, event):
        """Nobody accepted the request in time."""
        await self.forward_ride_event(event)

    async def pickup_verified(self, event):
        await self.forward_ride_event(event)

    async def ride_status_changed(self, event):
        await self.forward_ride_event(event)

    async def ride_completed(self, event):
        await self.forward_ride_event(event)
