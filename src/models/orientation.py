"""
OrientationSample model for raw heading sensor readings.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class OrientationSample:
    """
    One raw orientation reading from a heading source.

    Attributes:
        compass_heading: Absolute compass heading in degrees (clockwise, 0 = north).
        alpha: Device-frame rotation around the z axis in degrees
            (counter-clockwise; needs sign inversion to become a compass heading).
        timestamp_ms: Sample time in milliseconds. None (or non-finite) = place the
            sample with the receiver's clock.
    """
    compass_heading: Optional[float] = None
    alpha: Optional[float] = None
    timestamp_ms: Optional[float] = None

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "OrientationSample":
        """Adapter: Create from a JSON payload or CSV row."""
        return cls(
            compass_heading=d.get("compass_heading"),
            alpha=d.get("alpha"),
            timestamp_ms=d.get("timestamp_ms"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "compass_heading": self.compass_heading,
            "alpha": self.alpha,
            "timestamp_ms": self.timestamp_ms,
        }
