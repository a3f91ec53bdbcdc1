from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class StatusResponse(BaseModel):
    """
    Session status optimized for frontend polling.
    Recomputed on every request; display only.
    """
    status: str = Field(..., description="idle|initializing|ready_to_calibrate|detecting|permission_denied")
    running: bool = Field(False, description="True while detection is subscribed to the sensor")
    activated: bool = Field(False, description="True once detection has been started")
    heading: float = Field(0.0, description="Latest normalized heading in degrees")
    origin: Optional[float] = Field(None, description="Calibrated origin heading")
    destination: Optional[float] = Field(None, description="Calibrated destination heading")
    waypoints: List[Optional[float]] = Field(default_factory=list, description="Calibrated waypoint headings")
    counter: float = Field(0.0, description="Current counter value")
    message: Optional[str] = Field(None, description="Transient status message")
    last_sample_age_s: Optional[float] = Field(None, description="Seconds since last sensor sample")
    swivels_today: int = Field(0, description="Automatic swivels since midnight")
    warnings: List[str] = Field(default_factory=list, description="Active warnings")


class OrientationRequest(BaseModel):
    compass_heading: Optional[float] = None
    alpha: Optional[float] = None
    timestamp_ms: Optional[float] = Field(None, allow_inf_nan=False)


class OrientationResponse(BaseModel):
    delivered: int
    heading: float
    counter: float


class PermissionRequest(BaseModel):
    granted: bool


class HeadingRequest(BaseModel):
    """Calibrate by explicit value instead of reading the sensor."""
    heading: Optional[float] = Field(None, allow_inf_nan=False, description="Heading in degrees; omit to read the sensor")


class CalibrationResponse(BaseModel):
    heading: float
    origin: Optional[float]
    destination: Optional[float]
    waypoints: List[Optional[float]]
    calibrated: bool
    running: bool


class CounterRequest(BaseModel):
    step: Optional[float] = Field(None, gt=0, description="Step size; defaults to counter.manual_step")


class CounterResponse(BaseModel):
    counter: float


class DetectionConfigRequest(BaseModel):
    tolerance_deg: Optional[float] = None
    debounce_ms: Optional[int] = None
    alignment_window_ms: Optional[int] = None


class DetectionConfigResponse(BaseModel):
    tolerance_deg: float
    debounce_ms: int
    alignment_window_ms: int
    waypoint_count: int
    reject_overlapping_calibration: bool


class RecentEventsResponse(BaseModel):
    events: List[Dict[str, object]]
    counts_by_kind: Dict[str, int]
