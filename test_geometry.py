"""Tests for grid snapping and canvas bounds."""

import pytest

from flowsketch.constants import CANVAS_MAX_X, CANVAS_MAX_Y, CANVAS_MIN_X, CANVAS_MIN_Y
from flowsketch.geometry import clamp, is_within_bounds, snap, snap_and_clamp, snap_position
from flowsketch.types import Dimensions, Position


class TestSnap:
    @pytest.mark.parametrize(
        "value,expected",
        [(0, 0), (9, 0), (10, 20), (11, 20), (29.9, 20), (30, 40), (-9, 0), (-11, -20), (1234.5, 1240)],
    )
    def test_snap_to_nearest_grid_line(self, value, expected):
        assert snap(value) == expected

    @pytest.mark.parametrize("value", [-37.2, 0.0, 13.0, 99.99, 512.3, 2949.0])
    def test_snap_is_idempotent(self, value):
        assert snap(snap(value)) == snap(value)

    def test_snap_position(self):
        assert snap_position(Position(101, 189)) == Position(100, 180)


class TestClamp:
    def test_inside_is_untouched(self):
        position = Position(200, 300)
        assert clamp(position, Dimensions(100, 50)) == position

    def test_clamps_low_bounds(self):
        assert clamp(Position(-500, 10), Dimensions(100, 50)) == Position(CANVAS_MIN_X, CANVAS_MIN_Y)

    def test_clamps_high_bounds(self):
        clamped = clamp(Position(5000, 5000), Dimensions(100, 50))
        assert clamped == Position(CANVAS_MAX_X - 100, CANVAS_MAX_Y - 50)

    def test_oversized_shape_sits_on_min_bound(self):
        clamped = clamp(Position(400, 400), Dimensions(4000, 4000))
        assert clamped == Position(CANVAS_MIN_X, CANVAS_MIN_Y)

    @pytest.mark.parametrize(
        "x,y", [(-100, -100), (0, 3000), (1500, 1500), (2990, 10), (60, 2999)]
    )
    def test_clamped_shape_fits_canvas(self, x, y):
        dimensions = Dimensions(180, 80)
        assert is_within_bounds(clamp(Position(x, y), dimensions), dimensions)


def test_snap_and_clamp_snaps_then_clamps():
    assert snap_and_clamp(Position(13, 2990), Dimensions(100, 60)) == Position(50, 2890)
    assert snap_and_clamp(Position(111, 189), Dimensions(100, 60)) == Position(120, 180)
