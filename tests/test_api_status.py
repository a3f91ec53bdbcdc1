"""
Tests for the /api routes: status warnings, sensor input, calibration and counter.

Route functions are called directly with the shared state patched.
"""

import asyncio
import time
from unittest.mock import MagicMock, patch

import pytest
from fastapi import HTTPException
from pydantic import ValidationError

from algorithms.swivel import SwivelEngine
from models.config import DetectionConfig
from observation.push_source import PushSource, PushSourceConfig
from runtime.session import DetectionSession
from storage.database import Database
from web.api_models import (
    CounterRequest,
    DetectionConfigRequest,
    HeadingRequest,
    OrientationRequest,
    PermissionRequest,
)
from web.routes import api
from web.routes.api import _compute_warnings, _get_today_start_timestamp


class TestComputeWarnings:
    """Tests for warning computation logic."""

    def test_no_warnings_when_healthy(self):
        assert _compute_warnings(running=True, last_sample_age_s=0.5, permission_denied=False) == []

    def test_sensor_stale_warning(self):
        """sensor_stale when last sample is > 2s but <= 10s old."""
        warnings = _compute_warnings(running=True, last_sample_age_s=5.0, permission_denied=False)
        assert warnings == ["sensor_stale"]

    def test_sensor_offline_warning(self):
        """sensor_offline when last sample is > 10s old."""
        warnings = _compute_warnings(running=True, last_sample_age_s=15.0, permission_denied=False)
        assert warnings == ["sensor_offline"]

    def test_sensor_offline_when_no_sample(self):
        warnings = _compute_warnings(running=True, last_sample_age_s=None, permission_denied=False)
        assert "sensor_offline" in warnings

    def test_thresholds_are_exclusive(self):
        assert _compute_warnings(True, 2.0, False) == []
        assert _compute_warnings(True, 10.0, False) == ["sensor_stale"]

    def test_freshness_ignored_when_stopped(self):
        assert _compute_warnings(running=False, last_sample_age_s=None, permission_denied=False) == []

    def test_permission_denied(self):
        assert _compute_warnings(running=False, last_sample_age_s=None, permission_denied=True) == [
            "permission_denied"
        ]


class TestTodayStartTimestamp:
    def test_is_in_past(self):
        assert _get_today_start_timestamp() <= time.time()

    def test_is_within_24_hours(self):
        assert time.time() - _get_today_start_timestamp() < 86400


@pytest.fixture
def source():
    return PushSource()


@pytest.fixture
def mock_state(source, temp_db, tmp_path):
    """Shared state with a real session and database."""
    db = Database(temp_db)
    db.initialize()
    engine = SwivelEngine(DetectionConfig(tolerance_deg=10.0, debounce_ms=1000))
    session = DetectionSession(engine, source, db=db, calibration_timeout_ms=20)

    mock = MagicMock()
    mock.session = session
    mock.database = db
    mock.get_config_copy.return_value = {"log_path": str(tmp_path / "test.log")}
    with patch("web.routes.api.state", mock):
        yield mock
    db.close()


def _run(coro):
    return asyncio.run(coro)


class TestStatusEndpoint:
    def test_idle_status(self, mock_state):
        response = _run(api.status())

        assert response.status == "idle"
        assert response.running is False
        assert response.counter == 0.0
        assert response.last_sample_age_s is None
        assert response.warnings == []

    def test_detecting_status_after_samples(self, mock_state):
        _run(api.calibration_origin(HeadingRequest(heading=45.0)))
        _run(api.calibration_destination(HeadingRequest(heading=200.0)))
        _run(api.orientation(OrientationRequest(compass_heading=45.0, timestamp_ms=0)))
        _run(api.orientation(OrientationRequest(compass_heading=200.0, timestamp_ms=500)))

        response = _run(api.status())

        assert response.status == "detecting"
        assert response.counter == 1.0
        assert response.swivels_today == 1
        assert response.heading == 200.0
        assert response.warnings == []

    def test_no_session_is_503(self):
        mock = MagicMock()
        mock.session = None
        with patch("web.routes.api.state", mock):
            with pytest.raises(HTTPException) as exc:
                _run(api.status())
        assert exc.value.status_code == 503


class TestSensorRoutes:
    def test_orientation_without_subscribers(self, mock_state):
        response = _run(api.orientation(OrientationRequest(alpha=90.0)))
        assert response.delivered == 0

    def test_non_finite_timestamp_rejected_by_model(self):
        with pytest.raises(ValidationError):
            OrientationRequest(compass_heading=90.0, timestamp_ms=float("inf"))

    def test_permission_denied_start_is_403(self, mock_state):
        source = PushSource(PushSourceConfig(auto_grant=False))
        mock_state.session = DetectionSession(SwivelEngine(), source)
        _run(api.sensor_permission(PermissionRequest(granted=False)))

        with pytest.raises(HTTPException) as exc:
            _run(api.detection_start())
        assert exc.value.status_code == 403

        response = _run(api.status())
        assert response.status == "permission_denied"
        assert "permission_denied" in response.warnings

    def test_start_stop_toggle(self, mock_state):
        assert _run(api.detection_start()) == {"running": True}
        assert _run(api.detection_stop()) == {"running": False}
        assert _run(api.detection_toggle()) == {"running": True}


class TestCalibrationRoutes:
    def test_calibrate_by_value(self, mock_state):
        response = _run(api.calibration_origin(HeadingRequest(heading=-10.0)))
        assert response.heading == pytest.approx(350.0)
        assert response.calibrated is False

    def test_auto_start_on_complete(self, mock_state):
        _run(api.calibration_origin(HeadingRequest(heading=45.0)))
        response = _run(api.calibration_destination(HeadingRequest(heading=200.0)))
        assert response.calibrated is True
        assert response.running is True

    def test_sensor_timeout_is_504(self, mock_state):
        with pytest.raises(HTTPException) as exc:
            _run(api.calibration_origin(None))
        assert exc.value.status_code == 504

    def test_overlap_is_400(self, mock_state):
        _run(api.calibration_origin(HeadingRequest(heading=45.0)))
        with pytest.raises(HTTPException) as exc:
            _run(api.calibration_destination(HeadingRequest(heading=50.0)))
        assert exc.value.status_code == 400

    @pytest.mark.parametrize("value", [float("nan"), float("inf"), float("-inf")])
    def test_non_finite_heading_rejected_by_model(self, value):
        with pytest.raises(ValidationError):
            HeadingRequest(heading=value)

    def test_non_finite_heading_is_400(self, mock_state):
        req = HeadingRequest.model_construct(heading=float("nan"))
        with pytest.raises(HTTPException) as exc:
            _run(api.calibration_origin(req))
        assert exc.value.status_code == 400
        assert mock_state.session.engine.origin is None

    def test_unknown_waypoint_is_404(self, mock_state):
        with pytest.raises(HTTPException) as exc:
            _run(api.calibration_waypoint(0, HeadingRequest(heading=90.0)))
        assert exc.value.status_code == 404

    def test_reset(self, mock_state):
        _run(api.calibration_origin(HeadingRequest(heading=45.0)))
        assert _run(api.calibration_reset()) == {"calibrated": False}
        assert mock_state.session.engine.origin is None


class TestCounterRoutes:
    def test_increment_decrement_reset(self, mock_state):
        assert _run(api.counter_increment(None)).counter == 0.5
        assert _run(api.counter_increment(CounterRequest(step=2.0))).counter == 2.5
        assert _run(api.counter_decrement(None)).counter == 2.0
        assert _run(api.counter_reset()).counter == 0.0

    def test_decrement_floor(self, mock_state):
        assert _run(api.counter_decrement(None)).counter == 0.0

    def test_new_session(self, mock_state):
        _run(api.counter_increment(CounterRequest(step=3.0)))
        snapshot = _run(api.session_new())
        assert snapshot["counter"] == 0.0
        assert snapshot["status"] == "idle"

    def test_recent_events(self, mock_state):
        _run(api.counter_increment(None))
        response = _run(api.recent_events(limit=10))
        assert response.events[0]["kind"] == "manual_increment"
        assert response.counts_by_kind == {"manual_increment": 1}


class TestDetectionConfigRoutes:
    def test_get(self, mock_state):
        response = _run(api.get_detection_config())
        assert response.tolerance_deg == 10.0
        assert response.debounce_ms == 1000

    def test_update_persists_overrides(self, mock_state, tmp_path):
        with patch.object(api.ConfigService, "DEFAULT_PATH", str(tmp_path / "default.yaml")), \
                patch.object(api.ConfigService, "OVERRIDES_PATH", str(tmp_path / "config.yaml")):
            response = _run(api.update_detection_config(DetectionConfigRequest(tolerance_deg=20.0)))
            overrides = api.ConfigService.load_overrides()

        assert response.tolerance_deg == 20.0
        assert overrides["detection"]["tolerance_deg"] == 20.0
        mock_state.update_config.assert_called_once()

    def test_invalid_update_is_400(self, mock_state):
        with pytest.raises(HTTPException) as exc:
            _run(api.update_detection_config(DetectionConfigRequest(debounce_ms=10)))
        assert exc.value.status_code == 400


class TestLogsRoute:
    def test_tail_filters_swivel_lines(self, mock_state, tmp_path):
        (tmp_path / "test.log").write_text("a\n[SWIVEL] heading=200.0\nb\n")

        response = _run(api.logs_tail(lines=10, swivel_only=True))

        assert response == {"lines": ["[SWIVEL] heading=200.0"]}

    def test_missing_log_file(self, mock_state):
        response = _run(api.logs_tail())
        assert response["lines"][0].startswith("(log file not found")
