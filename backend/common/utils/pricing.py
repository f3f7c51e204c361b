"""
Fare computation.

Maps (ride category, distance, duration, rider add-on) to an itemized fare.
Everything here is a pure function of its arguments: the traffic constants
are passed in as a ``TrafficModel`` instead of being read from settings, so
two calls with identical input always produce identical output.
"""

import math
from dataclasses import dataclass
from typing import Any, Dict, List

from .rounding import round_half_up


@dataclass(frozen=True)
class CategoryRates:
    base_fare: float
    per_km: float
    per_minute: float


RIDE_PRICING_RULES: Dict[str, CategoryRates] = {
    "economy": CategoryRates(base_fare=35, per_km=11, per_minute=1.2),
    "comfort": CategoryRates(base_fare=55, per_km=16, per_minute=1.8),
    "premium": CategoryRates(base_fare=90, per_km=24, per_minute=2.8),
}

# Unknown categories are priced at the lowest tier
DEFAULT_CATEGORY = "economy"

DEFAULT_DISTANCE_KM = 1
DEFAULT_DURATION_MIN = 5


@dataclass(frozen=True)
class TrafficModel:
    """Congestion model: actual duration vs. a free-flow estimate."""
    free_flow_speed_kmh: float = 35
    min_free_flow_minutes: float = 3
    min_multiplier: float = 0.9
    max_multiplier: float = 2.2


DEFAULT_TRAFFIC_MODEL = TrafficModel()


def _to_number(value: Any):
    if isinstance(value, bool):
        return None
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return None
    return parsed if math.isfinite(parsed) else None


def to_positive_number(value: Any, fallback: float) -> float:
    parsed = _to_number(value)
    if parsed is not None and parsed > 0:
        return parsed
    return fallback


def to_non_negative_number(value: Any, fallback: float = 0) -> float:
    parsed = _to_number(value)
    if parsed is not None and parsed >= 0:
        return parsed
    return fallback


def clamp(value: float, low: float, high: float) -> float:
    return min(high, max(low, value))


def compute_traffic_multiplier(
    distance_km: float,
    duration_min: float,
    traffic: TrafficModel = DEFAULT_TRAFFIC_MODEL,
) -> float:
    """
    Ratio of requested duration to the free-flow duration, clamped and rounded to 2 dp.

    Trips slower than free-flow cost more; faster trips are discounted down
    to ``traffic.min_multiplier``.
    """
    free_flow_min = max(
        traffic.min_free_flow_minutes,
        distance_km / traffic.free_flow_speed_kmh * 60,
    )
    ratio = clamp(duration_min / free_flow_min, traffic.min_multiplier, traffic.max_multiplier)
    return round_half_up(ratio, 2)


def compute_fare_breakdown(
    category: str,
    distance_km: Any,
    duration_min: Any,
    rider_addon: Any = 0,
    traffic: TrafficModel = DEFAULT_TRAFFIC_MODEL,
) -> Dict[str, Any]:
    """
    Itemized fare for one ride category.

    Args:
        category: Ride category (economy/comfort/premium); unknown values use economy rates
        distance_km: Trip distance; non-positive or missing falls back to 1 km
        duration_min: Estimated duration; non-positive or missing falls back to 5 min
        rider_addon: Extra amount offered by the rider; negative or missing falls back to 0
        traffic: Traffic model constants

    Returns:
        Dict with the itemized charges (2 dp), the normalized inputs, the
        traffic multiplier and the binding integer ``total``
    """
    distance = round_half_up(to_positive_number(distance_km, DEFAULT_DISTANCE_KM), 2)
    # Sub-minute durations would round to zero; the floor keeps duration positive
    duration = max(1, int(round_half_up(to_positive_number(duration_min, DEFAULT_DURATION_MIN))))
    addon = int(round_half_up(to_non_negative_number(rider_addon, 0)))

    rates = RIDE_PRICING_RULES.get(category) or RIDE_PRICING_RULES[DEFAULT_CATEGORY]
    multiplier = compute_traffic_multiplier(distance, duration, traffic)

    base = rates.base_fare
    distance_fare = distance * rates.per_km
    time_fare = duration * rates.per_minute
    subtotal = base + distance_fare + time_fare
    traffic_charge = subtotal * (multiplier - 1)
    total = max(0, int(round_half_up(subtotal + traffic_charge + addon)))

    return {
        "category": category,
        "base_fare": round_half_up(base, 2),
        "distance_fare": round_half_up(distance_fare, 2),
        "time_fare": round_half_up(time_fare, 2),
        "traffic_multiplier": multiplier,
        "traffic_charge": round_half_up(traffic_charge, 2),
        "rider_price_addon": addon,
        "subtotal": round_half_up(subtotal, 2),
        "total": total,
        "distance_km": distance,
        "duration_min": duration,
    }


def compute_fare_quotes(
    distance_km: Any,
    duration_min: Any,
    rider_addon: Any = 0,
    traffic: TrafficModel = DEFAULT_TRAFFIC_MODEL,
) -> List[Dict[str, Any]]:
    """One breakdown per category, for pre-booking comparison."""
    return [
        compute_fare_breakdown(category, distance_km, duration_min, rider_addon, traffic)
        for category in RIDE_PRICING_RULES
    ]


def traffic_model_from_settings() -> TrafficModel:
    """Build the traffic model from the ``PRICING_*`` Django settings."""
    from django.conf import settings

    return TrafficModel(
        free_flow_speed_kmh=getattr(settings, "PRICING_FREE_FLOW_SPEED_KMH", 35),
        min_free_flow_minutes=getattr(settings, "PRICING_MIN_FREE_FLOW_MINUTES", 3),
        min_multiplier=getattr(settings, "PRICING_TRAFFIC_MULTIPLIER_MIN", 0.9),
        max_multiplier=getattr(settings, "PRICING_TRAFFIC_MULTIPLIER_MAX", 2.2),
    )
