"""
Session status models projected to the UI.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class SessionStatus(str, Enum):
    """Detection session status levels."""
    IDLE = "idle"
    INITIALIZING = "initializing"
    READY_TO_CALIBRATE = "ready_to_calibrate"
    DETECTING = "detecting"
    PERMISSION_DENIED = "permission_denied"


@dataclass
class StatusSnapshot:
    """
    Display-only projection of a detection session.

    Attributes:
        status: Current session status.
        running: True while detection is subscribed to the heading source.
        activated: True once detection has been started at least once.
        heading: Latest normalized heading (degrees).
        origin: Calibrated origin heading, None if unset.
        destination: Calibrated destination heading, None if unset.
        waypoints: Calibrated intermediate headings (None entries are unset).
        counter: Current counter value.
        message: Transient human-readable status message.
        last_sample_ts: Unix timestamp of the last received sample.
        timestamp: Unix timestamp of this snapshot.
    """
    status: SessionStatus
    running: bool = False
    activated: bool = False
    heading: float = 0.0
    origin: Optional[float] = None
    destination: Optional[float] = None
    waypoints: List[Optional[float]] = field(default_factory=list)
    counter: float = 0.0
    message: Optional[str] = None
    last_sample_ts: Optional[float] = None
    timestamp: float = 0.0

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "StatusSnapshot":
        """Adapter: Create from dictionary (e.g., from /api/status response)."""
        status_str = d.get("status", "idle")
        try:
            status = SessionStatus(status_str)
        except ValueError:
            status = SessionStatus.IDLE

        return cls(
            status=status,
            running=d.get("running", False),
            activated=d.get("activated", False),
            heading=d.get("heading", 0.0),
            origin=d.get("origin"),
            destination=d.get("destination"),
            waypoints=list(d.get("waypoints", [])),
            counter=d.get("counter", 0.0),
            message=d.get("message"),
            last_sample_ts=d.get("last_sample_ts"),
            timestamp=d.get("timestamp", 0.0),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "status": self.status.value,
            "running": self.running,
            "activated": self.activated,
            "heading": self.heading,
            "origin": self.origin,
            "destination": self.destination,
            "waypoints": list(self.waypoints),
            "counter": self.counter,
            "message": self.message,
            "last_sample_ts": self.last_sample_ts,
            "timestamp": self.timestamp,
        }

    @property
    def is_calibrated(self) -> bool:
        """True if every reference heading is set."""
        return (
            self.origin is not None
            and self.destination is not None
            and all(w is not None for w in self.waypoints)
        )
