"""
Calibration store for operator-defined reference headings.

A swivel path runs origin -> waypoints (optional, ordered) -> destination.
Each heading is set independently; reset() clears all of them at once.
"""

from __future__ import annotations

import logging
from typing import Callable, List, Optional

from .heading import normalize_heading

# Listener signature: called with cleared=True on reset(), False on a single update
CalibrationListener = Callable[[bool], None]


class DegenerateCalibrationError(ValueError):
    """Raised when reference headings are too close to be told apart."""


class CalibrationStore:
    """
    Holds the reference headings of one detection session.

    Listeners are notified after every change so that dependent state
    (e.g. the detector's alignment memory) can be invalidated.
    """

    def __init__(self, waypoint_count: int = 0):
        self._origin: Optional[float] = None
        self._destination: Optional[float] = None
        self._waypoints: List[Optional[float]] = [None] * max(0, waypoint_count)
        self._listeners: List[CalibrationListener] = []

    @property
    def origin(self) -> Optional[float]:
        return self._origin

    @property
    def destination(self) -> Optional[float]:
        return self._destination

    @property
    def waypoints(self) -> List[Optional[float]]:
        """Copy of the intermediate headings in path order."""
        return list(self._waypoints)

    @property
    def waypoint_count(self) -> int:
        return len(self._waypoints)

    def add_listener(self, listener: CalibrationListener) -> None:
        self._listeners.append(listener)

    def is_complete(self) -> bool:
        """True iff origin, destination and every waypoint are set."""
        return (
            self._origin is not None
            and self._destination is not None
            and all(w is not None for w in self._waypoints)
        )

    def set_origin(self, heading: float) -> None:
        self._origin = normalize_heading(heading)
        logging.info(f"Origin heading set to {self._origin:.1f}")
        self._notify(cleared=False)

    def set_destination(self, heading: float) -> None:
        self._destination = normalize_heading(heading)
        logging.info(f"Destination heading set to {self._destination:.1f}")
        self._notify(cleared=False)

    def set_waypoint(self, index: int, heading: float) -> None:
        """
        Set an intermediate heading.

        Raises:
            IndexError: If index is outside [0, waypoint_count).
        """
        if not 0 <= index < len(self._waypoints):
            raise IndexError(f"Waypoint index {index} out of range (count={len(self._waypoints)})")
        self._waypoints[index] = normalize_heading(heading)
        logging.info(f"Waypoint {index} heading set to {self._waypoints[index]:.1f}")
        self._notify(cleared=False)

    def resize(self, waypoint_count: int) -> None:
        """Change the number of waypoints, keeping existing values that still fit."""
        waypoint_count = max(0, waypoint_count)
        if waypoint_count == len(self._waypoints):
            return
        kept = self._waypoints[:waypoint_count]
        self._waypoints = kept + [None] * (waypoint_count - len(kept))
        self._notify(cleared=False)

    def reset(self) -> None:
        """Clear every reference heading atomically."""
        self._origin = None
        self._destination = None
        self._waypoints = [None] * len(self._waypoints)
        logging.info("Calibration reset")
        self._notify(cleared=True)

    def _notify(self, cleared: bool) -> None:
        for listener in self._listeners:
            listener(cleared)
