"""Half-up rounding on the exact binary value of a float."""

from decimal import Decimal, ROUND_HALF_UP


def round_half_up(value: float, places: int = 0) -> float:
    """
    Round ``value`` to ``places`` decimals, ties away from zero.

    ``round()`` uses banker's rounding (``round(4.25, 1) == 4.2``); fares and
    ratings are rounded half-up instead. The float is converted to Decimal
    without going through ``str`` so a value like 1.005 (stored as
    1.00499...) still rounds down.
    """
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(value).quantize(quantum, rounding=ROUND_HALF_UP))
