"""
Swivel detection engine.

Turns a stream of compass headings into discrete swivel counts:

- heading: HeadingNormalizer, normalize_heading
- proximity: circular_distance, is_near
- calibration: CalibrationStore (origin, waypoints, destination)
- detector: SwivelDetector (debounced, time-boxed alignment state machine)
- counter: CounterStore (non-negative running count)
- engine: SwivelEngine, one owned instance per session
"""

from .heading import HeadingNormalizer, normalize_heading
from .proximity import circular_distance, is_near
from .calibration import CalibrationStore, DegenerateCalibrationError
from .detector import DetectorPhase, DetectorState, SwivelDetector
from .counter import CounterStore
from .engine import SwivelEngine, create_engine_from_config

__all__ = [
    "HeadingNormalizer",
    "normalize_heading",
    "circular_distance",
    "is_near",
    "CalibrationStore",
    "DegenerateCalibrationError",
    "DetectorPhase",
    "DetectorState",
    "SwivelDetector",
    "CounterStore",
    "SwivelEngine",
    "create_engine_from_config",
]
