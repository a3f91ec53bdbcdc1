"""
Swivel engine: the single owned instance per detection session.

Bundles calibration, detector state and the counter behind one set of
operations so that ownership of every piece of mutable state is explicit.
"""

from __future__ import annotations

import logging
import math
from dataclasses import replace
from typing import Any, Dict, List, Optional

from models.config import CounterConfig, DetectionConfig
from models.count_event import SwivelEvent
from .calibration import CalibrationStore, DegenerateCalibrationError
from .counter import CounterStore
from .detector import DetectorPhase, SwivelDetector
from .heading import normalize_heading
from .proximity import circular_distance


class SwivelEngine:
    """
    Owns one CalibrationStore, one SwivelDetector and one CounterStore.

    Calibration changes that would place two reference headings within
    2 x tolerance of each other are rejected when
    ``config.reject_overlapping_calibration`` is set, since overlapping
    tolerance cones make the count depend on sample order.
    """

    def __init__(
        self,
        config: Optional[DetectionConfig] = None,
        counter_config: Optional[CounterConfig] = None,
        initial_count: float = 0.0,
    ):
        self._config = config or DetectionConfig()
        self._counter_config = counter_config or CounterConfig()
        self._calibration = CalibrationStore(self._config.waypoint_count)
        self._detector = SwivelDetector(self._config, self._calibration)
        self._counter = CounterStore(initial_count)

    # -------------------------------------------------------------------------
    # Read-only views
    # -------------------------------------------------------------------------

    @property
    def config(self) -> DetectionConfig:
        return self._config

    @property
    def counter_config(self) -> CounterConfig:
        return self._counter_config

    @property
    def phase(self) -> DetectorPhase:
        return self._detector.phase

    @property
    def running(self) -> bool:
        return self._detector.running

    @property
    def count(self) -> float:
        return self._counter.value

    @property
    def origin(self) -> Optional[float]:
        return self._calibration.origin

    @property
    def destination(self) -> Optional[float]:
        return self._calibration.destination

    @property
    def waypoints(self) -> List[Optional[float]]:
        return self._calibration.waypoints

    @property
    def is_calibrated(self) -> bool:
        return self._calibration.is_complete()

    @property
    def last_increment_at(self) -> Optional[float]:
        return self._detector.last_increment_at

    # -------------------------------------------------------------------------
    # Detection
    # -------------------------------------------------------------------------

    def start(self) -> None:
        self._detector.start()

    def stop(self) -> None:
        self._detector.stop()

    def restart(self) -> None:
        """Stop and forget all timing memory."""
        self._detector.stop()
        self._detector.reset_state()

    def observe(self, heading: float, now: float) -> Optional[SwivelEvent]:
        """Feed one heading; applies the automatic increment on a swivel."""
        event = self._detector.observe(heading, now)
        if event is not None:
            value = self._counter.increment(self._counter_config.auto_step)
            logging.info(
                f"[SWIVEL] heading={heading:.1f} at={now:.0f}ms count={value:g}"
            )
            event = replace(event, value=value)
        return event

    def update_config(self, config: DetectionConfig) -> None:
        """Apply a new detection config from the next observation on."""
        self._config = config
        self._detector.update_config(config)
        self._calibration.resize(config.waypoint_count)
        conflict = self._find_overlap_in_calibration()
        if conflict:
            logging.warning(f"Calibration overlaps with new tolerance: {conflict}")

    # -------------------------------------------------------------------------
    # Calibration
    # -------------------------------------------------------------------------

    def set_origin(self, heading: float) -> float:
        heading = self._reference_heading(heading)
        self._check_separation(heading, exclude="origin")
        self._calibration.set_origin(heading)
        return heading

    def set_destination(self, heading: float) -> float:
        heading = self._reference_heading(heading)
        self._check_separation(heading, exclude="destination")
        self._calibration.set_destination(heading)
        return heading

    def set_waypoint(self, index: int, heading: float) -> float:
        if not 0 <= index < self._calibration.waypoint_count:
            raise IndexError(
                f"Waypoint index {index} out of range (count={self._calibration.waypoint_count})"
            )
        heading = self._reference_heading(heading)
        self._check_separation(heading, exclude=f"waypoint {index}")
        self._calibration.set_waypoint(index, heading)
        return heading

    def reset_calibration(self) -> None:
        self._calibration.reset()

    # -------------------------------------------------------------------------
    # Counter
    # -------------------------------------------------------------------------

    def increment(self, step: Optional[float] = None) -> float:
        return self._counter.increment(self._counter_config.manual_step if step is None else step)

    def decrement(self, step: Optional[float] = None) -> float:
        return self._counter.decrement(self._counter_config.manual_step if step is None else step)

    def reset_counter(self) -> float:
        return self._counter.reset()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "phase": self.phase.value,
            "count": self.count,
            "origin": self.origin,
            "destination": self.destination,
            "waypoints": self.waypoints,
            "config": self._config.to_dict(),
        }

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _named_references(self) -> Dict[str, Optional[float]]:
        refs: Dict[str, Optional[float]] = {
            "origin": self._calibration.origin,
            "destination": self._calibration.destination,
        }
        for i, w in enumerate(self._calibration.waypoints):
            refs[f"waypoint {i}"] = w
        return refs

    @staticmethod
    def _reference_heading(heading: float) -> float:
        if not math.isfinite(heading):
            raise ValueError(f"Calibration heading must be a finite number, got {heading}")
        return normalize_heading(heading)

    def _check_separation(self, heading: float, exclude: str) -> None:
        min_separation = 2 * self._config.tolerance_deg
        for name, other in self._named_references().items():
            if name == exclude or other is None:
                continue
            distance = circular_distance(heading, other)
            if distance >= min_separation:
                continue
            message = (
                f"{exclude} heading {heading:.1f} is {distance:.1f} deg from {name} "
                f"{other:.1f} (minimum {min_separation:g})"
            )
            if self._config.reject_overlapping_calibration:
                raise DegenerateCalibrationError(message)
            logging.warning(f"Overlapping calibration accepted: {message}")

    def _find_overlap_in_calibration(self) -> Optional[str]:
        min_separation = 2 * self._config.tolerance_deg
        refs = [(n, h) for n, h in self._named_references().items() if h is not None]
        for i, (name_a, a) in enumerate(refs):
            for name_b, b in refs[i + 1:]:
                if circular_distance(a, b) < min_separation:
                    return f"{name_a} and {name_b}"
        return None


def create_engine_from_config(
    detection_cfg: Dict[str, Any],
    counter_cfg: Optional[Dict[str, Any]] = None,
    initial_count: float = 0.0,
) -> SwivelEngine:
    """
    Factory function to create a SwivelEngine from config dicts.

    Args:
        detection_cfg: ``detection`` section from YAML.
        counter_cfg: ``counter`` section from YAML.
        initial_count: Counter value to resume from.
    """
    return SwivelEngine(
        config=DetectionConfig.from_dict(detection_cfg or {}),
        counter_config=CounterConfig.from_dict(counter_cfg or {}),
        initial_count=initial_count,
    )
