from __future__ import annotations

import logging
import time
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, HTTPException

from models.orientation import OrientationSample
from models.status import SessionStatus
from observation.base import CalibrationTimeoutError, PermissionDeniedError
from observation.push_source import PushSource

from ..api_models import (
    CalibrationResponse,
    CounterRequest,
    CounterResponse,
    DetectionConfigRequest,
    DetectionConfigResponse,
    HeadingRequest,
    OrientationRequest,
    OrientationResponse,
    PermissionRequest,
    RecentEventsResponse,
    StatusResponse,
)
from ..services.config_service import ConfigService
from ..services.logs_service import LogsService
from ..state import state

router = APIRouter()


def _compute_warnings(running: bool, last_sample_age_s: Optional[float], permission_denied: bool) -> List[str]:
    """
    Warnings shown next to the counter.
    Thresholds: >10s since last sample => sensor_offline; >2s => sensor_stale.
    Sample freshness only matters while detection is running.
    """
    warnings: List[str] = []
    if permission_denied:
        warnings.append("permission_denied")
    if running:
        if last_sample_age_s is None or last_sample_age_s > 10:
            warnings.append("sensor_offline")
        elif last_sample_age_s > 2:
            warnings.append("sensor_stale")
    return warnings


def _session():
    if state.session is None:
        raise HTTPException(status_code=503, detail="Detection session not initialized")
    return state.session


def _push_source() -> PushSource:
    source = _session().source
    if not isinstance(source, PushSource):
        raise HTTPException(status_code=409, detail=f"Source '{source.source_id}' does not accept pushed samples")
    return source


def _calibration_response(session, heading: float) -> CalibrationResponse:
    engine = session.engine
    return CalibrationResponse(
        heading=heading,
        origin=engine.origin,
        destination=engine.destination,
        waypoints=engine.waypoints,
        calibrated=engine.is_calibrated,
        running=engine.running,
    )


async def _calibrate(read_and_set, set_heading, heading: Optional[float]) -> float:
    """Run one calibration action, mapping session errors to HTTP status codes."""
    try:
        if heading is None:
            return await read_and_set()
        return await set_heading(heading)
    except PermissionDeniedError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except CalibrationTimeoutError as e:
        raise HTTPException(status_code=504, detail=str(e))
    except ValueError as e:
        # DegenerateCalibrationError or a non-finite heading
        raise HTTPException(status_code=400, detail=str(e))
    except IndexError as e:
        raise HTTPException(status_code=404, detail=str(e))


def _get_today_start_timestamp() -> float:
    now = datetime.now()
    return datetime(now.year, now.month, now.day).timestamp()


@router.get("/status", response_model=StatusResponse)
async def status():
    """
    Session status for the UI. Fields mirror StatusSnapshot plus:
    - last_sample_age_s: seconds since last sensor sample (None if never)
    - swivels_today: automatic swivels since local midnight
    - warnings: permission_denied, sensor_stale, sensor_offline
    """
    session = _session()
    snap = session.snapshot()

    last_sample_age_s = None
    if snap.last_sample_ts is not None:
        last_sample_age_s = max(0.0, time.time() - snap.last_sample_ts)

    swivels_today = 0
    if state.database is not None:
        swivels_today = state.database.get_swivel_count(start_time=_get_today_start_timestamp())

    return StatusResponse(
        status=snap.status.value,
        running=snap.running,
        activated=snap.activated,
        heading=snap.heading,
        origin=snap.origin,
        destination=snap.destination,
        waypoints=snap.waypoints,
        counter=snap.counter,
        message=snap.message,
        last_sample_age_s=last_sample_age_s,
        swivels_today=swivels_today,
        warnings=_compute_warnings(
            snap.running,
            last_sample_age_s,
            snap.status == SessionStatus.PERMISSION_DENIED,
        ),
    )


# -----------------------------------------------------------------------------
# Detection lifecycle
# -----------------------------------------------------------------------------

@router.post("/detection/start")
async def detection_start():
    running = await _session().start()
    if not running:
        raise HTTPException(status_code=403, detail="Sensor permission denied")
    return {"running": True}


@router.post("/detection/stop")
async def detection_stop():
    _session().stop()
    return {"running": False}


@router.post("/detection/toggle")
async def detection_toggle():
    running = await _session().toggle()
    return {"running": running}


@router.post("/permission/retry")
async def permission_retry():
    granted = await _session().retry_permission()
    return {"granted": granted}


# -----------------------------------------------------------------------------
# Sensor input (phone client)
# -----------------------------------------------------------------------------

@router.post("/sensor/permission")
async def sensor_permission(req: PermissionRequest):
    _push_source().set_permission(req.granted)
    return {"granted": req.granted}


@router.post("/orientation", response_model=OrientationResponse)
async def orientation(req: OrientationRequest):
    source = _push_source()
    sample = OrientationSample(
        compass_heading=req.compass_heading,
        alpha=req.alpha,
        timestamp_ms=req.timestamp_ms,
    )
    delivered = source.push(sample)
    snap = _session().snapshot()
    return OrientationResponse(delivered=delivered, heading=snap.heading, counter=snap.counter)


# -----------------------------------------------------------------------------
# Calibration
# -----------------------------------------------------------------------------

@router.post("/calibration/origin", response_model=CalibrationResponse)
async def calibration_origin(req: Optional[HeadingRequest] = None):
    session = _session()
    heading = await _calibrate(session.set_origin, session.set_origin_heading, req.heading if req else None)
    return _calibration_response(session, heading)


@router.post("/calibration/destination", response_model=CalibrationResponse)
async def calibration_destination(req: Optional[HeadingRequest] = None):
    session = _session()
    heading = await _calibrate(
        session.set_destination, session.set_destination_heading, req.heading if req else None
    )
    return _calibration_response(session, heading)


@router.post("/calibration/waypoints/{index}", response_model=CalibrationResponse)
async def calibration_waypoint(index: int, req: Optional[HeadingRequest] = None):
    session = _session()
    heading = await _calibrate(
        lambda: session.set_waypoint(index),
        lambda h: session.set_waypoint_heading(index, h),
        req.heading if req else None,
    )
    return _calibration_response(session, heading)


@router.delete("/calibration")
async def calibration_reset():
    session = _session()
    session.reset_calibration()
    return {"calibrated": session.engine.is_calibrated}


# -----------------------------------------------------------------------------
# Counter
# -----------------------------------------------------------------------------

@router.post("/counter/increment", response_model=CounterResponse)
async def counter_increment(req: Optional[CounterRequest] = None):
    value = _session().manual_increment(req.step if req else None)
    return CounterResponse(counter=value)


@router.post("/counter/decrement", response_model=CounterResponse)
async def counter_decrement(req: Optional[CounterRequest] = None):
    value = _session().manual_decrement(req.step if req else None)
    return CounterResponse(counter=value)


@router.post("/counter/reset", response_model=CounterResponse)
async def counter_reset():
    value = _session().reset_counter()
    return CounterResponse(counter=value)


@router.post("/session/new")
async def session_new():
    session = _session()
    session.new_site()
    return session.snapshot().to_dict()


# -----------------------------------------------------------------------------
# Detection settings
# -----------------------------------------------------------------------------

@router.get("/config/detection", response_model=DetectionConfigResponse)
async def get_detection_config():
    return DetectionConfigResponse(**_session().engine.config.to_dict())


@router.post("/config/detection", response_model=DetectionConfigResponse)
async def update_detection_config(req: DetectionConfigRequest):
    try:
        updated = _session().configure(
            tolerance_deg=req.tolerance_deg,
            debounce_ms=req.debounce_ms,
            alignment_window_ms=req.alignment_window_ms,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    # Persist as YAML overrides so the next start uses the same defaults
    try:
        effective = ConfigService.update_section("detection", {
            "tolerance_deg": updated.tolerance_deg,
            "debounce_ms": updated.debounce_ms,
            "alignment_window_ms": updated.alignment_window_ms,
        })
        state.update_config(effective)
    except OSError as e:
        logging.error(f"Failed to save detection overrides: {e}")

    return DetectionConfigResponse(**updated.to_dict())


# -----------------------------------------------------------------------------
# History and logs
# -----------------------------------------------------------------------------

@router.get("/events/recent", response_model=RecentEventsResponse)
async def recent_events(limit: int = 50):
    if state.database is None:
        return RecentEventsResponse(events=[], counts_by_kind={})
    limit = max(1, min(limit, 500))
    return RecentEventsResponse(
        events=state.database.get_recent_events(limit=limit),
        counts_by_kind=state.database.get_counts_by_kind(),
    )


@router.get("/stats/daily")
async def daily_counts(days: int = 30) -> Dict[str, Any]:
    if state.database is None:
        return {"days": []}
    rows = state.database.get_daily_counts(days=max(1, min(days, 365)))
    return {"days": [{"date": date, "swivels": count} for date, count in rows]}


@router.get("/logs/tail")
async def logs_tail(lines: int = 200, swivel_only: bool = False):
    cfg = state.get_config_copy() or ConfigService.load_effective_config()
    log_path = cfg.get("log_path")
    contains = "[SWIVEL]" if swivel_only else None
    return {"lines": LogsService.tail(log_path, lines=lines, contains=contains)}
