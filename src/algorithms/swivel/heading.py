"""
Heading normalization.

Maps raw orientation samples to compass headings in [0, 360), hiding the
sign convention of device-frame rotation angles.
"""

from __future__ import annotations

import math
from typing import Any


def normalize_heading(deg: float) -> float:
    """Map any real angle in degrees to [0, 360)."""
    d = deg % 360.0
    if d >= 360.0:
        # Tiny negative inputs round up to exactly 360.0
        d = 0.0
    return d


def _is_finite_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


class HeadingNormalizer:
    """
    Converts orientation samples to compass headings.

    Prefers an absolute compass heading when the sample carries one, otherwise
    inverts the device-frame rotation (``360 - alpha``) so that headings grow
    clockwise. Samples without a usable value repeat the previous heading, so
    no discontinuity is injected downstream.
    """

    def __init__(self, initial_heading: float = 0.0):
        self._last_heading = normalize_heading(initial_heading)
        self._has_heading = False

    @property
    def last_heading(self) -> float:
        """Most recently emitted heading."""
        return self._last_heading

    @property
    def has_heading(self) -> bool:
        """True once a sample with a finite heading value has been seen."""
        return self._has_heading

    def normalize(self, sample: Any) -> float:
        """
        Derive a compass heading from a sample.

        Args:
            sample: Object with optional ``compass_heading`` and ``alpha`` attributes.

        Returns:
            Heading in [0, 360).
        """
        compass = getattr(sample, "compass_heading", None)
        alpha = getattr(sample, "alpha", None)

        if _is_finite_number(compass):
            heading = normalize_heading(compass)
        elif _is_finite_number(alpha):
            heading = normalize_heading(360.0 - alpha)
        else:
            return self._last_heading

        self._last_heading = heading
        self._has_heading = True
        return heading

    def reset(self) -> None:
        """Forget readiness; the last heading is kept for display."""
        self._has_heading = False
