"""
Typed configuration models matching the YAML config structure.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

# Allowed ranges for operator-tunable detection settings
TOLERANCE_DEG_RANGE = (2.0, 45.0)
DEBOUNCE_MS_RANGE = (250, 5000)

DEFAULT_TOLERANCE_DEG = 15.0
DEFAULT_DEBOUNCE_MS = 4000
DEFAULT_ALIGNMENT_WINDOW_MS = 4000


@dataclass
class DetectionConfig:
    """
    Swivel detection parameters.

    Attributes:
        tolerance_deg: Max circular distance for a heading to be "near" a reference.
        debounce_ms: Minimum time between two automatic increments.
        alignment_window_ms: Max time between consecutive path alignments
            (origin -> waypoints -> destination) for a swivel to qualify.
        waypoint_count: Number of intermediate headings between origin and destination.
        reject_overlapping_calibration: Refuse calibrations whose tolerance cones overlap.
    """
    tolerance_deg: float = DEFAULT_TOLERANCE_DEG
    debounce_ms: int = DEFAULT_DEBOUNCE_MS
    alignment_window_ms: int = DEFAULT_ALIGNMENT_WINDOW_MS
    waypoint_count: int = 0
    reject_overlapping_calibration: bool = True

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "DetectionConfig":
        return cls(
            tolerance_deg=float(d.get("tolerance_deg", DEFAULT_TOLERANCE_DEG)),
            debounce_ms=int(d.get("debounce_ms", DEFAULT_DEBOUNCE_MS)),
            alignment_window_ms=int(d.get("alignment_window_ms", DEFAULT_ALIGNMENT_WINDOW_MS)),
            waypoint_count=int(d.get("waypoint_count", 0)),
            reject_overlapping_calibration=bool(d.get("reject_overlapping_calibration", True)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tolerance_deg": self.tolerance_deg,
            "debounce_ms": self.debounce_ms,
            "alignment_window_ms": self.alignment_window_ms,
            "waypoint_count": self.waypoint_count,
            "reject_overlapping_calibration": self.reject_overlapping_calibration,
        }

    def validate(self) -> Optional[str]:
        """Return an error message if any value is out of range, else None."""
        lo, hi = TOLERANCE_DEG_RANGE
        if not (lo <= self.tolerance_deg <= hi):
            return f"detection.tolerance_deg must be between {lo:g} and {hi:g}"
        lo, hi = DEBOUNCE_MS_RANGE
        if not (lo <= self.debounce_ms <= hi):
            return f"detection.debounce_ms must be between {lo} and {hi}"
        if self.alignment_window_ms <= 0:
            return "detection.alignment_window_ms must be a positive integer"
        if self.waypoint_count < 0:
            return "detection.waypoint_count must be zero or positive"
        return None


@dataclass
class CounterConfig:
    """Counter step sizes for automatic and manual adjustments."""
    auto_step: float = 1.0
    manual_step: float = 0.5

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "CounterConfig":
        return cls(
            auto_step=float(d.get("auto_step", 1.0)),
            manual_step=float(d.get("manual_step", 0.5)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "auto_step": self.auto_step,
            "manual_step": self.manual_step,
        }


@dataclass
class SensorConfig:
    """Heading source configuration."""
    source: str = "push"
    calibration_timeout_ms: int = 2000
    replay_path: str = ""
    replay_speed: float = 0.0
    keep_awake: bool = True
    auto_grant: bool = True
    permission_timeout_s: float = 30.0

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "SensorConfig":
        return cls(
            source=d.get("source", "push"),
            calibration_timeout_ms=int(d.get("calibration_timeout_ms", 2000)),
            replay_path=d.get("replay_path") or "",
            replay_speed=float(d.get("replay_speed", 0.0)),
            keep_awake=bool(d.get("keep_awake", True)),
            auto_grant=bool(d.get("auto_grant", True)),
            permission_timeout_s=float(d.get("permission_timeout_s", 30.0)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source": self.source,
            "calibration_timeout_ms": self.calibration_timeout_ms,
            "replay_path": self.replay_path,
            "replay_speed": self.replay_speed,
            "keep_awake": self.keep_awake,
            "auto_grant": self.auto_grant,
            "permission_timeout_s": self.permission_timeout_s,
        }


@dataclass
class StorageConfig:
    """Storage configuration."""
    local_database_path: str = "data/swivel_counter.sqlite"
    retention_days: int = 30

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "StorageConfig":
        return cls(
            local_database_path=d.get("local_database_path", "data/swivel_counter.sqlite"),
            retention_days=d.get("retention_days", 30),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "local_database_path": self.local_database_path,
            "retention_days": self.retention_days,
        }


@dataclass
class WebConfig:
    """Web API bind address."""
    host: str = "0.0.0.0"
    port: int = 5000

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "WebConfig":
        return cls(
            host=d.get("host", "0.0.0.0"),
            port=int(d.get("port", 5000)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"host": self.host, "port": self.port}


@dataclass
class Config:
    """
    Complete application configuration.

    This is a typed representation of the YAML config structure.
    """
    detection: DetectionConfig = field(default_factory=DetectionConfig)
    counter: CounterConfig = field(default_factory=CounterConfig)
    sensor: SensorConfig = field(default_factory=SensorConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    web: WebConfig = field(default_factory=WebConfig)
    log_path: str = "logs/swivel_counter.log"
    log_level: str = "INFO"

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Config":
        """Adapter: Create Config from raw dictionary (e.g., from load_config)."""
        return cls(
            detection=DetectionConfig.from_dict(d.get("detection", {}) or {}),
            counter=CounterConfig.from_dict(d.get("counter", {}) or {}),
            sensor=SensorConfig.from_dict(d.get("sensor", {}) or {}),
            storage=StorageConfig.from_dict(d.get("storage", {}) or {}),
            web=WebConfig.from_dict(d.get("web", {}) or {}),
            log_path=d.get("log_path", "logs/swivel_counter.log"),
            log_level=d.get("log_level", "INFO"),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert back to dictionary (for saving or passing to existing code)."""
        return {
            "detection": self.detection.to_dict(),
            "counter": self.counter.to_dict(),
            "sensor": self.sensor.to_dict(),
            "storage": self.storage.to_dict(),
            "web": self.web.to_dict(),
            "log_path": self.log_path,
            "log_level": self.log_level,
        }
