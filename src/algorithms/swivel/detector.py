"""
Swivel detector: debounced state machine over normalized headings.

Counts one swivel when the heading reaches the destination after the
operator was recently aligned with the origin (and with every waypoint in
order, when waypoints are configured). Only discrete heading samples are
available, so "came from the origin" is approximated by a time-boxed
alignment memory instead of true path tracking.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from models.config import DetectionConfig
from models.count_event import SwivelEvent
from .calibration import CalibrationStore
from .proximity import is_near


class DetectorPhase(str, Enum):
    """Detector lifecycle states."""
    IDLE = "idle"            # not running
    ARMED = "armed"          # running, calibration incomplete
    DETECTING = "detecting"  # running, calibration complete


@dataclass
class DetectorState:
    """
    Mutable detector memory.

    Attributes:
        last_near_origin_at: Time (ms) the heading was last near the origin.
        last_waypoint_at: Per-waypoint time (ms) of the last in-order alignment.
        last_increment_at: Time (ms) of the last emitted swivel.
        running: Whether automatic increments are enabled.
    """
    last_near_origin_at: Optional[float] = None
    last_waypoint_at: List[Optional[float]] = field(default_factory=list)
    last_increment_at: Optional[float] = None
    running: bool = False


class SwivelDetector:
    """
    Turns "heading is near X" observations into swivel events.

    observe() emits at most one SwivelEvent per call and never raises for
    numeric input. Start/stop do not clear timestamps; only calibration
    changes (or reset_state()) do.
    """

    def __init__(self, config: DetectionConfig, calibration: CalibrationStore):
        self._config = config
        self._calibration = calibration
        self._state = DetectorState(last_waypoint_at=[None] * calibration.waypoint_count)
        calibration.add_listener(self._on_calibration_changed)

    @property
    def config(self) -> DetectionConfig:
        return self._config

    @property
    def running(self) -> bool:
        return self._state.running

    @property
    def phase(self) -> DetectorPhase:
        if not self._state.running:
            return DetectorPhase.IDLE
        if not self._calibration.is_complete():
            return DetectorPhase.ARMED
        return DetectorPhase.DETECTING

    @property
    def last_near_origin_at(self) -> Optional[float]:
        return self._state.last_near_origin_at

    @property
    def last_increment_at(self) -> Optional[float]:
        return self._state.last_increment_at

    def update_config(self, config: DetectionConfig) -> None:
        """Replace the configuration; takes effect on the next observation."""
        self._config = config

    def start(self) -> None:
        if self._state.running:
            return
        self._state.running = True
        logging.info(f"Swivel detector started ({self.phase.value})")

    def stop(self) -> None:
        if not self._state.running:
            return
        self._state.running = False
        logging.info("Swivel detector stopped")

    def reset_state(self) -> None:
        """Clear all timing memory (explicit restart)."""
        self._state.last_near_origin_at = None
        self._state.last_waypoint_at = [None] * self._calibration.waypoint_count
        self._state.last_increment_at = None

    def observe(self, heading: float, now: float) -> Optional[SwivelEvent]:
        """
        Process one normalized heading.

        Args:
            heading: Heading in degrees, [0, 360).
            now: Observation time in milliseconds.

        Returns:
            SwivelEvent if this observation completed a swivel, else None.
        """
        if self.phase is not DetectorPhase.DETECTING:
            return None

        cfg = self._config
        st = self._state
        cal = self._calibration

        if st.last_increment_at is not None and now - st.last_increment_at < cfg.debounce_ms:
            return None

        tolerance = cfg.tolerance_deg
        window = cfg.alignment_window_ms
        event = None

        if is_near(heading, cal.destination, tolerance):
            prev_at = self._last_path_alignment()
            if prev_at is not None and now - prev_at <= window:
                event = SwivelEvent(
                    detected_at_ms=now,
                    heading=heading,
                    origin_aligned_at_ms=st.last_near_origin_at,
                )
                st.last_increment_at = now

        # Walk backwards so one sample cannot advance two consecutive waypoints
        waypoints = cal.waypoints
        for i in reversed(range(len(waypoints))):
            if not is_near(heading, waypoints[i], tolerance):
                continue
            prev_at = st.last_near_origin_at if i == 0 else st.last_waypoint_at[i - 1]
            if prev_at is not None and now - prev_at <= window:
                st.last_waypoint_at[i] = now

        # Runs even after an increment in this call: one sample may close a
        # swivel and open the next alignment window.
        if is_near(heading, cal.origin, tolerance):
            st.last_near_origin_at = now

        return event

    def _last_path_alignment(self) -> Optional[float]:
        """Alignment time of the path point right before the destination."""
        if self._state.last_waypoint_at:
            return self._state.last_waypoint_at[-1]
        return self._state.last_near_origin_at

    def _on_calibration_changed(self, cleared: bool) -> None:
        self._state.last_near_origin_at = None
        self._state.last_waypoint_at = [None] * self._calibration.waypoint_count
        if cleared:
            self._state.last_increment_at = None
        if self._state.running and self._calibration.is_complete():
            logging.info("Calibration complete, swivel detection active")
