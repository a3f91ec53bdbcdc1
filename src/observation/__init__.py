"""
Observation layer for pluggable heading sources.

This layer abstracts where orientation samples come from (phone client,
recorded file) from the detection session. Each source implements the
HeadingSource interface and delivers OrientationSample objects.
"""

from .base import (
    CalibrationTimeoutError,
    HeadingSource,
    PermissionDeniedError,
    SourceConfig,
    Subscription,
)
from .push_source import PushSource, PushSourceConfig
from .replay_source import ReplaySource, ReplaySourceConfig, load_samples, samples_from_arrays

__all__ = [
    "CalibrationTimeoutError",
    "HeadingSource",
    "PermissionDeniedError",
    "SourceConfig",
    "Subscription",
    "PushSource",
    "PushSourceConfig",
    "ReplaySource",
    "ReplaySourceConfig",
    "load_samples",
    "samples_from_arrays",
]
