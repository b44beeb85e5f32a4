"""
Connector collision detection and "line drift" resolution.

Two connector segments collide when they run the same way, lie within the
collision threshold of each other and share more than a sliver of their
extent. Resolution drifts waypoints apart in small steps: parallel
connectors between the same pair of shapes are fanned out around their
common route, and any other overlap is nudged one segment at a time.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Optional, Sequence

from drawio_lanes.host import ConnectionLike
from drawio_lanes.layout_types import (
    DEFAULT_LAYOUT_CONSTANTS,
    CollisionConflict,
    LayoutConstants,
    Orientation,
    Segment,
)
from drawio_lanes.models import Point

# Coordinates closer than this on one axis count as aligned on it
ALIGN_EPSILON = 2
# Shared extent a segment pair must exceed to count as overlapping
OVERLAP_DEADBAND = 2

CONFLICT_REASON = "Overlap or near-collision detected"


# ---------------------------------------------------------------------------
# Detection
# ---------------------------------------------------------------------------

def get_orientation(p1: Point, p2: Point) -> Orientation:
    # Vertical wins when both axes are within the epsilon.
    if abs(p1.x - p2.x) < ALIGN_EPSILON:
        return Orientation.VERTICAL
    if abs(p1.y - p2.y) < ALIGN_EPSILON:
        return Orientation.HORIZONTAL
    return Orientation.DIAGONAL


def check_interval_overlap(min1: float, max1: float, min2: float, max2: float) -> bool:
    """Strict interval overlap; touching ends do not count."""
    return max(min1, min2) < min(max1, max2) - OVERLAP_DEADBAND


def check_segment_collision(
    seg1: Segment,
    seg2: Segment,
    threshold: float = DEFAULT_LAYOUT_CONSTANTS.collision_threshold,
) -> bool:
    if seg1.orientation != seg2.orientation:
        return False

    if seg1.orientation == Orientation.HORIZONTAL:
        if abs(seg1.p1.y - seg2.p1.y) > threshold:
            return False
        return check_interval_overlap(
            min(seg1.p1.x, seg1.p2.x), max(seg1.p1.x, seg1.p2.x),
            min(seg2.p1.x, seg2.p2.x), max(seg2.p1.x, seg2.p2.x),
        )

    if seg1.orientation == Orientation.VERTICAL:
        if abs(seg1.p1.x - seg2.p1.x) > threshold:
            return False
        return check_interval_overlap(
            min(seg1.p1.y, seg1.p2.y), max(seg1.p1.y, seg1.p2.y),
            min(seg2.p1.y, seg2.p2.y), max(seg2.p1.y, seg2.p2.y),
        )

    return False


def extract_segments(connection_id: str, waypoints: Sequence[Point]) -> list[Segment]:
    return [
        Segment(
            connection_id=connection_id,
            p1=waypoints[i],
            p2=waypoints[i + 1],
            orientation=get_orientation(waypoints[i], waypoints[i + 1]),
        )
        for i in range(len(waypoints) - 1)
    ]


def detect_collisions(
    all_segments: Sequence[Segment],
    threshold: float = DEFAULT_LAYOUT_CONSTANTS.collision_threshold,
) -> list[CollisionConflict]:
    """Report every colliding segment pair from different connectors."""
    conflicts: list[CollisionConflict] = []
    for i, seg1 in enumerate(all_segments):
        for seg2 in all_segments[i + 1:]:
            if seg1.connection_id == seg2.connection_id:
                continue
            if check_segment_collision(seg1, seg2, threshold):
                conflicts.append(CollisionConflict(
                    connections=(seg1.connection_id, seg2.connection_id),
                    reason=CONFLICT_REASON,
                    segment1=seg1,
                    segment2=seg2,
                ))
    return conflicts


# ---------------------------------------------------------------------------
# Drift
# ---------------------------------------------------------------------------

def apply_segment_drift(
    waypoints: list[Point],
    segment_index: int,
    offset: float,
    orientation: Orientation,
) -> None:
    """Shift both ends of one segment across its own direction."""
    if segment_index < 0 or segment_index >= len(waypoints) - 1:
        return
    p1 = waypoints[segment_index]
    p2 = waypoints[segment_index + 1]
    if orientation == Orientation.HORIZONTAL:
        p1.y += offset
        p2.y += offset
    else:
        p1.x += offset
        p2.x += offset


def apply_drift_to_waypoints(waypoints: list[Point], offset: float) -> int:
    """Shift the inner waypoints in Y and return how many moved.

    The first two points and the last one stay put so the route keeps
    touching both shapes.
    """
    inner = waypoints[2:-1]
    for point in inner:
        point.y += offset
    return len(inner)


@dataclass
class SegmentOverlap:
    """Where a route first collides with another, and which way to push."""
    segment_index: int
    orientation: Orientation
    positive: bool


def find_connection_overlap(
    waypoints: Sequence[Point],
    other: ConnectionLike,
    check_collision: Callable[[Segment, Segment], bool],
) -> Optional[SegmentOverlap]:
    """Find the first segment of *waypoints* colliding with *other*'s route."""
    other_waypoints = other.waypoints
    for i in range(len(waypoints) - 1):
        p1, p2 = waypoints[i], waypoints[i + 1]
        orientation = get_orientation(p1, p2)
        if orientation == Orientation.DIAGONAL:
            continue
        seg1 = Segment("", p1, p2, orientation)

        for j in range(len(other_waypoints) - 1):
            q1, q2 = other_waypoints[j], other_waypoints[j + 1]
            if get_orientation(q1, q2) != orientation:
                continue
            seg2 = Segment("", q1, q2, orientation)
            if not check_collision(seg1, seg2):
                continue

            if orientation == Orientation.HORIZONTAL:
                positive = (p1.y + p2.y) / 2 >= (q1.y + q2.y) / 2
            else:
                positive = (p1.x + p2.x) / 2 >= (q1.x + q2.x) / 2
            return SegmentOverlap(i, orientation, positive)
    return None


def _endpoint_id(endpoint: Any) -> Optional[str]:
    return getattr(endpoint, "id", None)


def is_parallel(a: ConnectionLike, b: ConnectionLike) -> bool:
    """Whether two connectors join the same pair of shapes, in either direction."""
    a_src, a_tgt = _endpoint_id(a.source), _endpoint_id(a.target)
    b_src, b_tgt = _endpoint_id(b.source), _endpoint_id(b.target)
    return (a_src == b_src and a_tgt == b_tgt) or (a_src == b_tgt and a_tgt == b_src)


def parallel_offset_for(
    connection: ConnectionLike,
    group: Sequence[ConnectionLike],
    parallel_offset: float,
) -> float:
    """Fan-out offset of *connection* within its parallel *group*.

    The group (plus the connection itself) is ordered by id and spread
    symmetrically around zero.
    """
    ordered = sorted([connection, *group], key=lambda c: c.id)
    index = next(i for i, c in enumerate(ordered) if c.id == connection.id)
    return (index - (len(ordered) - 1) / 2) * parallel_offset


def compute_resolved_waypoints(
    target_connection: ConnectionLike,
    other_connections: Sequence[ConnectionLike],
    constants: LayoutConstants = DEFAULT_LAYOUT_CONSTANTS,
) -> tuple[list[Point], bool]:
    """One line-drift step for *target_connection*.

    Returns a drifted copy of its waypoints and whether anything moved; the
    connection itself is left untouched.
    """
    waypoints = [p.copy() for p in target_connection.waypoints]
    if len(waypoints) < 2:
        return waypoints, False

    def check(s1: Segment, s2: Segment) -> bool:
        return check_segment_collision(s1, s2, constants.collision_threshold)

    updated = False

    parallel_group = [o for o in other_connections if is_parallel(target_connection, o)]
    if parallel_group:
        offset = parallel_offset_for(
            target_connection, parallel_group, constants.parallel_offset
        )
        if abs(offset) > 1 and apply_drift_to_waypoints(waypoints, offset):
            updated = True

    for other in other_connections:
        if is_parallel(target_connection, other):
            continue
        overlap = find_connection_overlap(waypoints, other, check)
        if overlap is None:
            continue
        direction = 1 if overlap.positive else -1
        apply_segment_drift(
            waypoints,
            overlap.segment_index,
            constants.parallel_offset * direction,
            overlap.orientation,
        )
        updated = True

    return waypoints, updated
