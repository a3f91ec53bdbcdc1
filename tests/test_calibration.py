"""
Tests for CalibrationStore.
"""

import pytest

from algorithms.swivel.calibration import CalibrationStore


class TestCalibrationStore:
    def test_starts_empty(self):
        store = CalibrationStore()
        assert store.origin is None
        assert store.destination is None
        assert store.is_complete() is False

    def test_complete_with_origin_and_destination(self):
        store = CalibrationStore()
        store.set_origin(45.0)
        assert store.is_complete() is False
        store.set_destination(200.0)
        assert store.is_complete() is True

    def test_headings_are_normalized(self):
        store = CalibrationStore()
        store.set_origin(-15.0)
        store.set_destination(400.0)
        assert store.origin == pytest.approx(345.0)
        assert store.destination == pytest.approx(40.0)

    def test_waypoints_required_for_completeness(self):
        store = CalibrationStore(waypoint_count=2)
        store.set_origin(0.0)
        store.set_destination(180.0)
        store.set_waypoint(0, 60.0)
        assert store.is_complete() is False
        store.set_waypoint(1, 120.0)
        assert store.is_complete() is True
        assert store.waypoints == [60.0, 120.0]

    def test_waypoint_index_out_of_range(self):
        store = CalibrationStore(waypoint_count=1)
        with pytest.raises(IndexError):
            store.set_waypoint(1, 10.0)
        with pytest.raises(IndexError):
            store.set_waypoint(-1, 10.0)

    def test_waypoints_property_is_a_copy(self):
        store = CalibrationStore(waypoint_count=1)
        store.waypoints[0] = 99.0
        assert store.waypoints == [None]

    def test_reset_clears_everything(self):
        store = CalibrationStore(waypoint_count=1)
        store.set_origin(0.0)
        store.set_destination(180.0)
        store.set_waypoint(0, 90.0)
        store.reset()
        assert store.origin is None
        assert store.destination is None
        assert store.waypoints == [None]
        assert store.waypoint_count == 1

    def test_resize_keeps_existing_values(self):
        store = CalibrationStore(waypoint_count=2)
        store.set_waypoint(0, 30.0)
        store.resize(3)
        assert store.waypoints == [30.0, None, None]
        store.resize(1)
        assert store.waypoints == [30.0]

    def test_listeners_see_cleared_flag(self):
        store = CalibrationStore()
        calls = []
        store.add_listener(calls.append)
        store.set_origin(10.0)
        store.reset()
        assert calls == [False, True]
