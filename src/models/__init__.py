"""
Typed models for the swivel counter application.

These models provide strong typing for samples, events, status and config.
Use the adapter functions to convert from existing dicts.
"""

from .orientation import OrientationSample
from .count_event import CountEvent, SwivelEvent
from .status import SessionStatus, StatusSnapshot
from .config import (
    Config,
    DetectionConfig,
    CounterConfig,
    SensorConfig,
    StorageConfig,
    WebConfig,
)

__all__ = [
    # Samples
    "OrientationSample",
    # Counting
    "CountEvent",
    "SwivelEvent",
    # Status
    "SessionStatus",
    "StatusSnapshot",
    # Config
    "Config",
    "DetectionConfig",
    "CounterConfig",
    "SensorConfig",
    "StorageConfig",
    "WebConfig",
]
