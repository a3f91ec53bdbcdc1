"""
Tests for heading normalization and circular proximity.
"""

import math

import pytest

from algorithms.swivel.heading import HeadingNormalizer, normalize_heading
from algorithms.swivel.proximity import circular_distance, is_near
from models.orientation import OrientationSample


class TestNormalizeHeading:
    def test_in_range_unchanged(self):
        assert normalize_heading(45.0) == 45.0
        assert normalize_heading(0.0) == 0.0

    def test_wraps_above_360(self):
        assert normalize_heading(360.0) == 0.0
        assert normalize_heading(725.0) == pytest.approx(5.0)

    def test_wraps_negative(self):
        assert normalize_heading(-10.0) == pytest.approx(350.0)
        assert normalize_heading(-370.0) == pytest.approx(350.0)

    def test_tiny_negative_never_returns_360(self):
        """Float rounding of -1e-15 % 360 must not leak 360.0."""
        result = normalize_heading(-1e-15)
        assert 0.0 <= result < 360.0


class TestHeadingNormalizer:
    def test_prefers_compass_heading(self):
        n = HeadingNormalizer()
        heading = n.normalize(OrientationSample(compass_heading=90.0, alpha=10.0))
        assert heading == 90.0

    def test_inverts_alpha(self):
        """Device-frame alpha grows counter-clockwise, so heading = 360 - alpha."""
        n = HeadingNormalizer()
        assert n.normalize(OrientationSample(alpha=90.0)) == 270.0
        assert n.normalize(OrientationSample(alpha=0.0)) == 0.0

    def test_missing_values_repeat_last_heading(self):
        n = HeadingNormalizer()
        n.normalize(OrientationSample(compass_heading=120.0))
        assert n.normalize(OrientationSample()) == 120.0

    def test_nan_is_treated_as_missing(self):
        n = HeadingNormalizer()
        n.normalize(OrientationSample(compass_heading=30.0))
        assert n.normalize(OrientationSample(compass_heading=math.nan, alpha=math.nan)) == 30.0

    def test_has_heading_only_after_valid_sample(self):
        n = HeadingNormalizer()
        assert n.has_heading is False
        n.normalize(OrientationSample())
        assert n.has_heading is False
        n.normalize(OrientationSample(alpha=10.0))
        assert n.has_heading is True

    def test_reset_keeps_last_heading(self):
        n = HeadingNormalizer()
        n.normalize(OrientationSample(compass_heading=200.0))
        n.reset()
        assert n.has_heading is False
        assert n.last_heading == 200.0


class TestCircularDistance:
    def test_wraps_around_north(self):
        assert circular_distance(350.0, 10.0) == pytest.approx(20.0)
        assert circular_distance(10.0, 350.0) == pytest.approx(20.0)

    def test_opposite_headings(self):
        assert circular_distance(0.0, 180.0) == 180.0

    def test_identical(self):
        assert circular_distance(123.4, 123.4) == 0.0

    def test_range(self):
        for a in range(0, 360, 37):
            for b in range(0, 360, 41):
                assert 0.0 <= circular_distance(a, b) <= 180.0


class TestIsNear:
    def test_boundary_is_inclusive(self):
        assert is_near(55.0, 45.0, 10.0) is True
        assert is_near(55.1, 45.0, 10.0) is False

    def test_across_north(self):
        assert is_near(355.0, 5.0, 10.0) is True


class TestProperties:
    @pytest.mark.parametrize("deg", [-720.5, -1.0, 0.0, 45.0, 359.9, 360.0, 1000.25])
    def test_normalize_is_idempotent(self, deg):
        once = normalize_heading(deg)
        assert 0.0 <= once < 360.0
        assert normalize_heading(once) == once

    def test_distance_is_symmetric(self):
        for a, b in [(0, 90), (350, 20), (123.4, 301.2)]:
            assert circular_distance(a, b) == circular_distance(b, a)

    def test_is_near_monotone_in_tolerance(self):
        a, b = 10.0, 40.0
        results = [is_near(a, b, t) for t in range(0, 60, 5)]
        # Once near, any larger tolerance stays near
        first = results.index(True)
        assert all(results[first:])
