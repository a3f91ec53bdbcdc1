"""
Tests for the swivel detector state machine.
"""

import pytest

from algorithms.swivel.calibration import CalibrationStore
from algorithms.swivel.detector import DetectorPhase, SwivelDetector
from models.config import DetectionConfig


def _detector(origin=45.0, destination=200.0, waypoints=None, **cfg):
    params = {"tolerance_deg": 10.0, "debounce_ms": 1000, "alignment_window_ms": 4000}
    params.update(cfg)
    waypoints = waypoints or []
    store = CalibrationStore(waypoint_count=len(waypoints))
    if origin is not None:
        store.set_origin(origin)
    if destination is not None:
        store.set_destination(destination)
    for i, w in enumerate(waypoints):
        store.set_waypoint(i, w)
    detector = SwivelDetector(DetectionConfig(waypoint_count=len(waypoints), **params), store)
    detector.start()
    return detector, store


def _count(detector, samples):
    return sum(1 for heading, t in samples if detector.observe(heading, t) is not None)


class TestScenarios:
    """Reference scenarios: origin 45, destination 200, tolerance 10, debounce 1000, window 4000."""

    def test_origin_then_destination_counts_once(self):
        detector, _ = _detector()
        assert detector.observe(45.0, 0) is None
        event = detector.observe(200.0, 500)
        assert event is not None
        assert event.detected_at_ms == 500
        assert event.origin_aligned_at_ms == 0

    def test_destination_without_origin_does_not_count(self):
        detector, _ = _detector()
        assert _count(detector, [(200.0, 0)]) == 0

    def test_destination_after_window_does_not_count(self):
        detector, _ = _detector()
        assert _count(detector, [(45.0, 0), (200.0, 5000)]) == 0

    def test_destination_within_debounce_counts_once(self):
        detector, _ = _detector()
        assert _count(detector, [(45.0, 0), (200.0, 500), (200.0, 800)]) == 1

    def test_window_boundary_is_inclusive(self):
        detector, _ = _detector()
        assert _count(detector, [(45.0, 0), (200.0, 4000)]) == 1


class TestDebounce:
    def test_second_swivel_after_debounce(self):
        detector, _ = _detector()
        samples = [(45.0, 0), (200.0, 500), (45.0, 1600), (200.0, 2000)]
        assert _count(detector, samples) == 2

    def test_debounced_samples_do_not_refresh_origin(self):
        detector, _ = _detector(alignment_window_ms=1000)
        # origin at 600 falls inside the debounce interval and is ignored
        samples = [(45.0, 0), (200.0, 500), (45.0, 600), (200.0, 1500)]
        assert _count(detector, samples) == 1

    def test_last_increment_at_tracks_event(self):
        detector, _ = _detector()
        _count(detector, [(45.0, 0), (200.0, 500)])
        assert detector.last_increment_at == 500


class TestGating:
    def test_idle_when_not_started(self):
        store = CalibrationStore()
        detector = SwivelDetector(DetectionConfig(), store)
        assert detector.phase is DetectorPhase.IDLE

    def test_armed_until_calibrated(self):
        detector, store = _detector(destination=None)
        assert detector.phase is DetectorPhase.ARMED
        assert _count(detector, [(45.0, 0), (200.0, 500)]) == 0
        store.set_destination(200.0)
        assert detector.phase is DetectorPhase.DETECTING

    def test_stopped_detector_ignores_samples(self):
        detector, _ = _detector()
        detector.stop()
        assert detector.observe(45.0, 0) is None
        detector.start()
        assert detector.observe(200.0, 500) is None

    def test_stop_keeps_alignment_memory(self):
        detector, _ = _detector()
        detector.observe(45.0, 0)
        detector.stop()
        detector.start()
        assert detector.observe(200.0, 500) is not None

    def test_calibration_change_clears_origin_memory(self):
        detector, store = _detector()
        detector.observe(45.0, 0)
        store.set_destination(210.0)
        assert detector.last_near_origin_at is None
        assert detector.observe(210.0, 500) is None

    def test_calibration_reset_clears_debounce(self):
        detector, store = _detector()
        _count(detector, [(45.0, 0), (200.0, 500)])
        store.reset()
        assert detector.last_increment_at is None
        store.set_origin(45.0)
        store.set_destination(200.0)
        assert _count(detector, [(45.0, 600), (200.0, 700)]) == 1

    def test_single_update_keeps_debounce(self):
        detector, store = _detector()
        _count(detector, [(45.0, 0), (200.0, 500)])
        store.set_origin(45.0)
        assert detector.last_increment_at == 500

    def test_reset_state(self):
        detector, _ = _detector()
        _count(detector, [(45.0, 0), (200.0, 500)])
        detector.reset_state()
        assert detector.last_near_origin_at is None
        assert detector.last_increment_at is None

    def test_config_update_applies_to_next_sample(self):
        detector, _ = _detector()
        assert detector.observe(60.0, 0) is None
        detector.update_config(DetectionConfig(tolerance_deg=20.0, debounce_ms=1000))
        detector.observe(60.0, 100)
        assert detector.last_near_origin_at == 100

    def test_origin_near_north_wraps(self):
        detector, _ = _detector(origin=355.0, destination=180.0)
        assert _count(detector, [(3.0, 0), (175.0, 200)]) == 1


class TestWaypoints:
    def test_full_path_counts(self):
        detector, _ = _detector(origin=0.0, destination=180.0, waypoints=[90.0])
        assert _count(detector, [(0.0, 0), (90.0, 1000), (180.0, 2000)]) == 1

    def test_skipping_waypoint_does_not_count(self):
        detector, _ = _detector(origin=0.0, destination=180.0, waypoints=[90.0])
        assert _count(detector, [(0.0, 0), (180.0, 1000)]) == 0

    def test_waypoint_needs_recent_origin(self):
        detector, _ = _detector(origin=0.0, destination=180.0, waypoints=[90.0])
        assert _count(detector, [(0.0, 0), (90.0, 5000), (180.0, 5500)]) == 0

    def test_each_leg_has_its_own_window(self):
        detector, _ = _detector(origin=0.0, destination=270.0, waypoints=[90.0, 180.0])
        samples = [(0.0, 0), (90.0, 3000), (180.0, 6000), (270.0, 9000)]
        assert _count(detector, samples) == 1

    def test_one_sample_advances_one_waypoint(self):
        """Overlapping waypoint cones: a single sample must not satisfy two legs."""
        detector, _ = _detector(origin=0.0, destination=180.0, waypoints=[90.0, 95.0])
        assert _count(detector, [(0.0, 0), (92.0, 100), (180.0, 200)]) == 0

    def test_overlapping_legs_need_two_samples(self):
        detector, _ = _detector(origin=0.0, destination=180.0, waypoints=[90.0, 95.0])
        assert _count(detector, [(0.0, 0), (92.0, 100), (93.0, 150), (180.0, 200)]) == 1


class TestObserveEdgeCases:
    @pytest.mark.parametrize("heading", [0.0, 359.999, 123.0])
    def test_never_raises_for_valid_headings(self, heading):
        detector, _ = _detector()
        detector.observe(heading, 0)

    def test_same_sample_can_close_and_reopen(self):
        """Origin alignment is recorded even on the sample that completes a swivel."""
        detector, _ = _detector(origin=45.0, destination=50.0, tolerance_deg=10.0)
        detector.observe(45.0, 0)
        assert detector.observe(48.0, 500) is not None
        assert detector.last_near_origin_at == 500
