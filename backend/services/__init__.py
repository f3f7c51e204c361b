"""
Services package - Business logic layer.

This package contains all business logic services that operate on Django models
but are decoupled from the HTTP/WebSocket layer.

Modules:
    - ride_management: Ride lifecycle, expiry, pickup verification and rating
    - dispatch: Eligible-ride ranking and the atomic ride claim
"""
