"""Custom exceptions for ride management and dispatch."""


class RideServiceError(Exception):
    """Base class for every rejected ride operation."""
    error_code = "ride_error"
    status_code = 400
    default_detail = "Ride operation failed"

    def __init__(self, message: str = "", **details):
        super().__init__(message or self.default_detail)
        self.details = details

    def as_payload(self) -> dict:
        payload = {
            "success": False,
            "error": self.error_code,
            "message": str(self),
        }
        payload.update(self.details)
        return payload


# ---------------------- Validation (400) ----------------------

class RideValidationError(RideServiceError):
    """Raised when input is rejected before any state change."""
    error_code = "validation_error"
    default_detail = "Invalid input"


# ---------------------- Authorization (403) ----------------------

class RideAccessDeniedError(RideServiceError):
    """Raised when the caller does not own the ride."""
    error_code = "not_authorized"
    status_code = 403
    default_detail = "Not authorized to access this ride"


# ---------------------- Not found (404) ----------------------

class RideNotFoundError(RideServiceError):
    """Raised when a ride cannot be found."""
    error_code = "ride_not_found"
    status_code = 404
    default_detail = "Ride not found"


class DriverNotFoundError(RideServiceError):
    """Raised when a driver profile cannot be found."""
    error_code = "driver_not_found"
    status_code = 404
    default_detail = "Driver profile not found"


# ---------------------- State conflicts (409) ----------------------

class RideStateConflictError(RideServiceError):
    """Raised when the ride is not in a state that allows the operation."""
    error_code = "state_conflict"
    status_code = 409
    default_detail = "Ride state does not allow this operation"


class InvalidTransitionError(RideStateConflictError):
    """Raised when a ride status change is not in the transition table."""
    error_code = "invalid_transition"

    def __init__(self, current, target, message: str = ""):
        current = getattr(current, "value", current)
        target = getattr(target, "value", target)
        super().__init__(
            message or f'Cannot transition from "{current}" to "{target}"',
            current_status=current,
            target_status=target,
        )


class RideNotAvailableError(RideStateConflictError):
    """Raised when a ride is no longer open for the operation."""
    error_code = "ride_not_available"
    default_detail = "Ride is no longer available"


class RideAlreadyClaimedError(RideStateConflictError):
    """Raised when another driver won the claim."""
    error_code = "ride_already_claimed"
    default_detail = "Ride claimed by another driver"


class RideAlreadyRatedError(RideStateConflictError):
    """Raised when a ride rating is submitted twice."""
    error_code = "ride_already_rated"
    default_detail = "Ride already rated"


class PickupOtpMismatchError(RideStateConflictError):
    """Raised when the submitted pickup code does not match."""
    error_code = "otp_mismatch"
    default_detail = "Invalid pickup OTP"


class PickupNotVerifiedError(RideStateConflictError):
    """Raised when a trip is started before the pickup code was verified."""
    error_code = "pickup_not_verified"
    default_detail = "Verify passenger before starting the trip"


class ActiveRideExistsError(RideStateConflictError):
    """Raised when user already has an active ride."""
    error_code = "active_ride_exists"
    default_detail = "You already have an active ride"


class DriverNotAvailableError(RideStateConflictError):
    """Raised when driver is not available to accept rides."""
    error_code = "driver_not_available"
    default_detail = "Please set your status to available before accepting rides"


class OutsideDispatchRadiusError(RideStateConflictError):
    """Raised when the pickup lies outside the ride's dispatch radius."""
    error_code = "outside_dispatch_radius"
    default_detail = "Ride pickup is outside your dispatch radius"


class CategoryNotSupportedError(RideStateConflictError):
    """Raised when the driver's vehicle does not serve the ride category."""
    error_code = "category_not_supported"
    default_detail = "Your vehicle is not registered for this ride category"
