"""Tests for connector collision detection and line drift."""

from types import SimpleNamespace

import pytest

from drawio_lanes.collision import (
    CONFLICT_REASON,
    apply_drift_to_waypoints,
    apply_segment_drift,
    check_interval_overlap,
    check_segment_collision,
    compute_resolved_waypoints,
    detect_collisions,
    extract_segments,
    find_connection_overlap,
    get_orientation,
    is_parallel,
    parallel_offset_for,
)
from drawio_lanes.layout_types import LayoutConstants, Orientation, Segment
from drawio_lanes.models import Point


def _seg(x1: float, y1: float, x2: float, y2: float, cid: str = "c") -> Segment:
    p1, p2 = Point(x1, y1), Point(x2, y2)
    return Segment(cid, p1, p2, get_orientation(p1, p2))


def _shape(sid: str):
    return SimpleNamespace(id=sid)


def _conn(cid: str, points: list[tuple[float, float]], source: str = "S", target: str = "T"):
    return SimpleNamespace(
        id=cid,
        waypoints=[Point(x, y) for x, y in points],
        source=_shape(source),
        target=_shape(target),
    )


Z_ROUTE = [(100, 40), (150, 40), (150, 140), (200, 140)]


class TestOrientation:

    @pytest.mark.parametrize(("p1", "p2", "expected"), [
        ((0, 0), (0, 5), Orientation.VERTICAL),
        ((0, 0), (5, 0), Orientation.HORIZONTAL),
        ((0, 0), (5, 5), Orientation.DIAGONAL),
        ((0, 0), (10, 1.5), Orientation.HORIZONTAL),
        ((0, 0), (1, 1), Orientation.VERTICAL),
        ((0, 0), (10, 10), Orientation.DIAGONAL),
    ])
    def test_orientation(self, p1, p2, expected) -> None:
        assert get_orientation(Point(*p1), Point(*p2)) == expected


class TestIntervalOverlap:

    def test_touching_ends_do_not_overlap(self) -> None:
        assert not check_interval_overlap(0, 10, 10, 20)

    def test_sliver_within_deadband(self) -> None:
        assert not check_interval_overlap(0, 10, 8, 20)

    def test_real_overlap(self) -> None:
        assert check_interval_overlap(0, 10, 5, 20)
        assert check_interval_overlap(5, 20, 0, 10)

    def test_containment(self) -> None:
        assert check_interval_overlap(0, 100, 20, 30)


class TestSegmentCollision:

    def test_close_horizontal_segments_collide(self) -> None:
        assert check_segment_collision(_seg(0, 0, 100, 0), _seg(50, 4, 150, 4))

    def test_beyond_threshold(self) -> None:
        assert not check_segment_collision(_seg(0, 0, 100, 0), _seg(50, 6, 150, 6))

    def test_custom_threshold(self) -> None:
        assert check_segment_collision(_seg(0, 0, 100, 0), _seg(50, 6, 150, 6), threshold=10)

    def test_vertical_segments(self) -> None:
        assert check_segment_collision(_seg(10, 0, 10, 100), _seg(12, 90, 12, 30))
        assert not check_segment_collision(_seg(10, 0, 10, 100), _seg(10, 100, 10, 200))

    def test_mixed_orientation_never_collides(self) -> None:
        assert not check_segment_collision(_seg(0, 0, 100, 0), _seg(50, -50, 50, 50))

    def test_diagonals_never_collide(self) -> None:
        assert not check_segment_collision(_seg(0, 0, 100, 100), _seg(0, 0, 100, 100))

    def test_symmetric(self) -> None:
        pairs = [
            (_seg(0, 0, 100, 0), _seg(50, 4, 150, 4)),
            (_seg(0, 0, 100, 0), _seg(100, 0, 200, 0)),
            (_seg(10, 0, 10, 100), _seg(12, 90, 12, 30)),
        ]
        for a, b in pairs:
            assert check_segment_collision(a, b) == check_segment_collision(b, a)


class TestDetectCollisions:

    def test_extract_segments(self) -> None:
        segments = extract_segments("c1", [Point(x, y) for x, y in Z_ROUTE])
        assert [s.orientation for s in segments] == [
            Orientation.HORIZONTAL, Orientation.VERTICAL, Orientation.HORIZONTAL,
        ]
        assert all(s.connection_id == "c1" for s in segments)

    def test_extract_segments_short_route(self) -> None:
        assert extract_segments("c1", [Point(0, 0)]) == []

    def test_same_connection_skipped(self) -> None:
        segments = [_seg(0, 0, 100, 0, "c1"), _seg(50, 2, 150, 2, "c1")]
        assert detect_collisions(segments) == []

    def test_reports_each_pair_once(self) -> None:
        segments = [_seg(0, 0, 100, 0, "c1"), _seg(50, 2, 150, 2, "c2"),
                    _seg(0, 300, 100, 300, "c3")]
        conflicts = detect_collisions(segments)
        assert len(conflicts) == 1
        assert conflicts[0].connections == ("c1", "c2")
        assert conflicts[0].reason == CONFLICT_REASON
        data = conflicts[0].to_dict()
        assert data["connections"] == ["c1", "c2"]
        assert data["segment1"]["orientation"] == "horizontal"


class TestDrift:

    def test_segment_drift_horizontal(self) -> None:
        wps = [Point(0, 0), Point(100, 0), Point(100, 50)]
        apply_segment_drift(wps, 0, 18, Orientation.HORIZONTAL)
        assert wps == [Point(0, 18), Point(100, 18), Point(100, 50)]

    def test_segment_drift_vertical(self) -> None:
        wps = [Point(0, 0), Point(100, 0), Point(100, 50)]
        apply_segment_drift(wps, 1, -18, Orientation.VERTICAL)
        assert wps == [Point(0, 0), Point(82, 0), Point(82, 50)]

    def test_segment_drift_out_of_range(self) -> None:
        wps = [Point(0, 0), Point(100, 0)]
        apply_segment_drift(wps, 1, 18, Orientation.HORIZONTAL)
        apply_segment_drift(wps, -1, 18, Orientation.HORIZONTAL)
        assert wps == [Point(0, 0), Point(100, 0)]

    def test_drift_keeps_ends_attached(self) -> None:
        wps = [Point(x, y) for x, y in Z_ROUTE]
        assert apply_drift_to_waypoints(wps, 9) == 1
        assert wps == [Point(100, 40), Point(150, 40), Point(150, 149), Point(200, 140)]


class TestParallel:

    def test_is_parallel_either_direction(self) -> None:
        a = _conn("a", Z_ROUTE, "S", "T")
        assert is_parallel(a, _conn("b", Z_ROUTE, "S", "T"))
        assert is_parallel(a, _conn("b", Z_ROUTE, "T", "S"))
        assert not is_parallel(a, _conn("b", Z_ROUTE, "S", "U"))

    def test_fan_out_offsets(self) -> None:
        group = [_conn(cid, Z_ROUTE) for cid in ("c2", "c1", "c3")]
        offsets = {
            c.id: parallel_offset_for(c, [o for o in group if o is not c], 18)
            for c in group
        }
        assert offsets == {"c1": -18, "c2": 0, "c3": 18}

    def test_pair_fan_out(self) -> None:
        a, b = _conn("a", Z_ROUTE), _conn("b", Z_ROUTE)
        assert parallel_offset_for(a, [b], 18) == -9
        assert parallel_offset_for(b, [a], 18) == 9


class TestResolvedWaypoints:

    def test_parallel_connectors_fan_out(self) -> None:
        a, b = _conn("a", Z_ROUTE), _conn("b", Z_ROUTE)
        waypoints, updated = compute_resolved_waypoints(a, [b])
        assert updated
        assert waypoints[2] == Point(150, 131)
        assert waypoints[0] == Point(100, 40)
        assert waypoints[-1] == Point(200, 140)

    def test_input_not_mutated(self) -> None:
        a, b = _conn("a", Z_ROUTE), _conn("b", Z_ROUTE)
        compute_resolved_waypoints(a, [b])
        assert a.waypoints == [Point(x, y) for x, y in Z_ROUTE]

    def test_overlap_nudged_away(self) -> None:
        target = _conn("x", [(0, 0), (100, 0)], "S1", "T1")
        other = _conn("y", [(50, 3), (150, 3)], "S2", "T2")
        waypoints, updated = compute_resolved_waypoints(target, [other])
        assert updated
        # The other line is below, so this one moves up.
        assert waypoints == [Point(0, -18), Point(100, -18)]

    def test_overlap_nudged_positive(self) -> None:
        target = _conn("x", [(0, 0), (0, 100)], "S1", "T1")
        other = _conn("y", [(-3, 50), (-3, 150)], "S2", "T2")
        waypoints, updated = compute_resolved_waypoints(target, [other])
        assert updated
        assert waypoints == [Point(18, 0), Point(18, 100)]

    def test_clear_routes_unchanged(self) -> None:
        target = _conn("x", [(0, 0), (100, 0)], "S1", "T1")
        other = _conn("y", [(0, 100), (100, 100)], "S2", "T2")
        waypoints, updated = compute_resolved_waypoints(target, [other])
        assert not updated
        assert waypoints == target.waypoints
        assert waypoints[0] is not target.waypoints[0]

    def test_diagonal_routes_unchanged(self) -> None:
        target = _conn("x", [(0, 0), (100, 100)], "S1", "T1")
        other = _conn("y", [(0, 0), (100, 100)], "S2", "T2")
        assert not compute_resolved_waypoints(target, [other])[1]

    def test_single_point_route(self) -> None:
        target = _conn("x", [(0, 0)], "S1", "T1")
        assert compute_resolved_waypoints(target, []) == ([Point(0, 0)], False)

    def test_constants_drive_step(self) -> None:
        constants = LayoutConstants(parallel_offset=10)
        target = _conn("x", [(0, 0), (100, 0)], "S1", "T1")
        other = _conn("y", [(50, 3), (150, 3)], "S2", "T2")
        waypoints, _ = compute_resolved_waypoints(target, [other], constants)
        assert waypoints[0].y == -10

    def test_find_overlap_reports_first_segment(self) -> None:
        wps = [Point(x, y) for x, y in Z_ROUTE]
        other = _conn("y", [(140, 100), (160, 100)], "S2", "T2")
        vertical_other = _conn("z", [(152, 60), (152, 120)], "S2", "T2")
        assert find_connection_overlap(wps, other, check_segment_collision) is None
        overlap = find_connection_overlap(wps, vertical_other, check_segment_collision)
        assert overlap is not None
        assert overlap.segment_index == 1
        assert overlap.orientation == Orientation.VERTICAL
        assert not overlap.positive
