"""
Numeric helpers shared by the feature extractors.

Pure functions; no I/O. Every helper degrades to a neutral value
(0.0, or 1.0 for ``safe_ratio``) on degenerate input instead of raising.
"""

from __future__ import annotations

import math

TOLERANCE = 1e-6


def clamp(value: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, value))


def is_valid(value: float) -> bool:
    """True for finite floats (not NaN, not +/-Inf)."""
    return not (math.isnan(value) or math.isinf(value))


def finite_or_zero(value: float) -> float:
    """Coerce NaN/Inf to 0.0; every emitted feature passes through here."""
    return value if is_valid(value) else 0.0


def safe_ratio(numerator: float, denominator: float, tolerance: float = TOLERANCE) -> float:
    """numerator / denominator, or 1.0 when either is invalid or the denominator is ~0."""
    if not is_valid(numerator) or not is_valid(denominator) or abs(denominator) < tolerance:
        return 1.0
    return numerator / denominator
