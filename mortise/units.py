"""Unit conversion and measurement formatting.

Parameters are stored canonically in inches; geometry is computed in
millimetres.  Labels engraved on the template are rendered either as
woodworking fractions (sixteenths) or as one-decimal millimetres.
"""

from __future__ import annotations

import math
from typing import Literal

UnitSystem = Literal["imperial", "metric"]

MM_PER_INCH = 25.4

# Sixteenths are the practical limit for woodworking rules.
FRACTION_DENOMINATORS: tuple[int, ...] = (1, 2, 4, 8, 16)

# Remainders closer than this to a whole number print as an integer.
WHOLE_EPSILON = 0.001

# If the best sixteenth is further than this from the value, a fraction would
# misstate the measurement and a decimal string is used instead.
FRACTION_TOLERANCE = 1.0 / 128.0


def to_millimeters(inches: float) -> float:
    """Convert inches to millimetres."""
    return inches * MM_PER_INCH


def to_inches(mm: float) -> float:
    """Convert millimetres to inches."""
    return mm / MM_PER_INCH


def format_imperial_fraction(value: float) -> str:
    """Render an inch value as a reduced fraction with denominator <= 16.

    Returns ``"W-N/D"`` for mixed numbers, ``"N/D"`` below one inch, a plain
    integer when the value is whole, and a three-decimal string when no
    sixteenth is close enough.

    >>> format_imperial_fraction(1.75)
    '1-3/4'
    >>> format_imperial_fraction(0.3125)
    '5/16'
    """
    if not math.isfinite(value):
        raise ValueError(f"Cannot format non-finite value: {value!r}")
    if value < 0:
        return "-" + format_imperial_fraction(-value)

    whole = int(math.floor(value))
    remainder = value - whole

    if remainder < WHOLE_EPSILON:
        return str(whole)
    if 1.0 - remainder < WHOLE_EPSILON:
        return str(whole + 1)

    best_n, best_d = 0, 1
    best_error = math.inf
    for d in FRACTION_DENOMINATORS:
        n = round(remainder * d)
        error = abs(remainder - n / d)
        if error < best_error:
            best_n, best_d, best_error = n, d, error

    if best_error > FRACTION_TOLERANCE:
        return f"{value:.3f}"
    if best_n == 0:
        return str(whole)
    if best_n == best_d:
        return str(whole + 1)

    g = math.gcd(best_n, best_d)
    n, d = best_n // g, best_d // g
    if whole > 0:
        return f"{whole}-{n}/{d}"
    return f"{n}/{d}"


def format_metric(value_mm: float) -> str:
    """Render a millimetre value with one decimal place."""
    return f"{value_mm:.1f}"


def format_measurement(value_in: float, unit_system: UnitSystem) -> str:
    """Format an inch value for display in the given unit system, with suffix."""
    if unit_system == "metric":
        return f"{format_metric(to_millimeters(value_in))}mm"
    return f'{format_imperial_fraction(value_in)}"'
