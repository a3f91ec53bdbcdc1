"""
Event models for swivel detections and counter changes.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


# Counter change kinds stored in the count_events table
KIND_SWIVEL = "swivel"
KIND_MANUAL_INCREMENT = "manual_increment"
KIND_MANUAL_DECREMENT = "manual_decrement"
KIND_RESET = "reset"


@dataclass(frozen=True)
class SwivelEvent:
    """
    A qualifying origin -> destination traversal detected by the swivel detector.

    Attributes:
        detected_at_ms: Observation time (ms) of the destination alignment.
        heading: Heading that matched the destination.
        origin_aligned_at_ms: Time (ms) the origin alignment that opened this path was seen.
        value: Counter value after the automatic increment (set by the engine).
    """
    detected_at_ms: float
    heading: float
    origin_aligned_at_ms: Optional[float] = None
    value: Optional[float] = None

    def to_dict(self) -> dict:
        return {
            "detected_at_ms": self.detected_at_ms,
            "heading": self.heading,
            "origin_aligned_at_ms": self.origin_aligned_at_ms,
            "value": self.value,
        }


@dataclass(frozen=True)
class CountEvent:
    """
    A counter change, either automatic (swivel) or manual.

    Attributes:
        kind: One of "swivel", "manual_increment", "manual_decrement", "reset".
        delta: Applied change after clamping (value - previous value).
        value: Counter value after the change.
        timestamp: Unix timestamp of the change.
        heading: Heading at detection time (swivel events only).
    """
    kind: str
    delta: float
    value: float
    timestamp: float
    heading: Optional[float] = None

    @classmethod
    def from_swivel(cls, event: SwivelEvent, delta: float, value: float, timestamp: float) -> "CountEvent":
        """Adapter: Convert a detector SwivelEvent into a persisted counter change."""
        return cls(
            kind=KIND_SWIVEL,
            delta=delta,
            value=value,
            timestamp=timestamp,
            heading=event.heading,
        )

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "kind": self.kind,
            "delta": self.delta,
            "value": self.value,
            "timestamp": self.timestamp,
            "heading": self.heading,
        }
