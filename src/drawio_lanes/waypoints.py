"""Orthogonal connector routes between two shapes."""

from __future__ import annotations

from drawio_lanes.host import ShapeLike
from drawio_lanes.models import Point

# Minimum horizontal room in front of the target before a route bends
BEND_CLEARANCE = 20


def compute_manhattan_waypoints(source: ShapeLike, target: ShapeLike) -> list[Point]:
    """Route right-center of *source* to left-center of *target*.

    The route is a single Z: horizontal, vertical, horizontal. When the
    target lies far enough ahead the vertical leg sits halfway across the
    gap; otherwise it sits just in front of the target.
    """
    source_right = source.x + source.width
    source_cy = source.y + source.height / 2
    target_cy = target.y + target.height / 2

    if target.x > source_right + BEND_CLEARANCE:
        bend_x = (source_right + target.x) / 2
    else:
        bend_x = target.x - BEND_CLEARANCE

    return [
        Point(source_right, source_cy),
        Point(bend_x, source_cy),
        Point(bend_x, target_cy),
        Point(target.x, target_cy),
    ]
