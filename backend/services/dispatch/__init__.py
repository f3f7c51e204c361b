"""
Ride dispatch service.

This module handles:
    - Ranking open requests for a driver (distance, then fare)
    - The dispatch radius and its growth with the rider add-on
    - The atomic, single-winner ride claim
"""

from .claim import accept_ride, claim_ride
from .eligibility import DispatchCandidate, dispatch_radius_km, eligible_rides_for_driver

__all__ = [
    "accept_ride",
    "claim_ride",
    "DispatchCandidate",
    "dispatch_radius_km",
    "eligible_rides_for_driver",
]
