"""
Ride management service - Core ride lifecycle operations.

This module handles:
    - Booking ride requests and re-pricing them
    - The status transition table
    - Lazy expiry of unaccepted requests
    - Pickup code verification
    - Trip progress, completion settlement and rating
    - Querying rides
"""

from .ride_lifecycle import (
    RideResult,
    book_ride,
    update_rider_addon,
    update_rider_live_location,
    cancel_ride_by_rider,
    advance_ride_status,
    check_active_ride,
    get_ride_for_user,
    list_rider_rides,
    list_driver_rides,
    get_current_driver_ride,
)
from .expiry import expire_stale_requests
from .pickup import verify_pickup_otp
from .settlement import rate_ride
from .state_machine import can_transition, transition_ride

from .exceptions import (
    RideServiceError,
    RideValidationError,
    RideAccessDeniedError,
    RideNotFoundError,
    DriverNotFoundError,
    RideStateConflictError,
    InvalidTransitionError,
    RideNotAvailableError,
    RideAlreadyClaimedError,
    RideAlreadyRatedError,
    PickupOtpMismatchError,
    PickupNotVerifiedError,
    ActiveRideExistsError,
    DriverNotAvailableError,
    OutsideDispatchRadiusError,
    CategoryNotSupportedError,
)

__all__ = [
    # Lifecycle operations
    "RideResult",
    "book_ride",
    "update_rider_addon",
    "update_rider_live_location",
    "cancel_ride_by_rider",
    "advance_ride_status",
    "check_active_ride",
    "get_ride_for_user",
    "list_rider_rides",
    "list_driver_rides",
    "get_current_driver_ride",
    "expire_stale_requests",
    "verify_pickup_otp",
    "rate_ride",
    "can_transition",
    "transition_ride",
    # Exceptions
    "RideServiceError",
    "RideValidationError",
    "RideAccessDeniedError",
    "RideNotFoundError",
    "DriverNotFoundError",
    "RideStateConflictError",
    "InvalidTransitionError",
    "RideNotAvailableError",
    "RideAlreadyClaimedError",
    "RideAlreadyRatedError",
    "PickupOtpMismatchError",
    "PickupNotVerifiedError",
    "ActiveRideExistsError",
    "DriverNotAvailableError",
    "OutsideDispatchRadiusError",
    "CategoryNotSupportedError",
]
