"""
Circular proximity matching between compass headings.
"""

from __future__ import annotations


def circular_distance(a: float, b: float) -> float:
    """
    Minimal rotation between two headings, independent of direction.

    Returns:
        Distance in degrees within [0, 180].
    """
    d = abs(a - b) % 360.0
    return min(d, 360.0 - d)


def is_near(a: float, b: float, tolerance_deg: float) -> bool:
    """True if heading a lies within tolerance_deg of heading b."""
    return circular_distance(a, b) <= tolerance_deg
