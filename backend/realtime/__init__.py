"""
Realtime app for WebSocket communication.

This app provides:
- The ride WebSocket consumer shared by riders and drivers
- Notification helpers for pushing ride events to connected clients
- JWT authentication middleware for WebSocket connections

Key Components:
    - consumers/: WebSocket consumers (base, ride)
    - notifications.py: Ride event notification helpers
    - middleware.py: ?token= JWT authentication

Usage:
    from realtime.consumers import RideConsumer
    from realtime.notifications import notify_driver_event, notify_rider_event
"""
