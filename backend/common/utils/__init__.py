"""Common utility functions."""

from .geo import (
    great_circle_distance_km,
    is_same_point,
    is_valid_coordinate,
    normalize_point,
)
from .pricing import (
    RIDE_PRICING_RULES,
    TrafficModel,
    compute_fare_breakdown,
    compute_fare_quotes,
    traffic_model_from_settings,
)
from .rounding import round_half_up

__all__ = [
    "great_circle_distance_km",
    "is_same_point",
    "is_valid_coordinate",
    "normalize_point",
    "RIDE_PRICING_RULES",
    "TrafficModel",
    "compute_fare_breakdown",
    "compute_fare_quotes",
    "traffic_model_from_settings",
    "round_half_up",
]
