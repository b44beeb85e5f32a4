"""
Auto-arrange and line-drift operations against a diagram host.

These are the only functions that change the host model, and they change
it only through the host's ``modeling`` commands:

- ``auto_layout``: rank flow nodes, grow and re-stack lanes, move the
  nodes into their columns and re-route their connectors.
- ``resolve_edge_collisions``: drift connector waypoints apart until a
  pass finds nothing to change, or the pass cap is reached.
- ``detect_collisions``: report overlapping connector segments without
  touching anything.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Any

from drawio_lanes.collision import (
    compute_resolved_waypoints,
    detect_collisions as detect_segment_collisions,
    extract_segments,
)
from drawio_lanes.geometry import (
    build_lane_data,
    compute_lane_heights,
    compute_layout,
    compute_rank_widths,
)
from drawio_lanes.graph import assign_ranks, build_graph
from drawio_lanes.host import (
    LANE,
    NON_FLOW_TYPES,
    PARTICIPANT,
    PROCESS,
    SEQUENCE_FLOW,
    ElementLike,
    ElementRegistry,
    LayoutContext,
)
from drawio_lanes.layout_types import (
    DEFAULT_LAYOUT_CONSTANTS,
    CollisionConflict,
    LayoutConstants,
    Segment,
)
from drawio_lanes.models import Point
from drawio_lanes.waypoints import compute_manhattan_waypoints

logger = logging.getLogger("drawio-lanes")

DEFAULT_MAX_PASSES = 5


@dataclass
class LayoutReport:
    """What an auto-arrange run changed."""
    ranks: dict[str, int] = field(default_factory=dict)
    moved_nodes: list[str] = field(default_factory=list)
    resized_lanes: list[str] = field(default_factory=list)
    moved_lanes: list[str] = field(default_factory=list)
    rerouted_connections: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "ranks": self.ranks,
            "moved_nodes": self.moved_nodes,
            "resized_lanes": self.resized_lanes,
            "moved_lanes": self.moved_lanes,
            "rerouted_connections": self.rerouted_connections,
        }


# ---------------------------------------------------------------------------
# Element queries
# ---------------------------------------------------------------------------

def get_lanes(registry: ElementRegistry) -> list[Any]:
    """Lanes, else pools, else the bare process."""
    for lane_type in (LANE, PARTICIPANT, PROCESS):
        lanes = registry.filter(lambda e, t=lane_type: e.type == t)
        if lanes:
            return lanes
    return []


def get_flow_elements(registry: ElementRegistry) -> list[ElementLike]:
    return registry.filter(lambda e: e.type not in NON_FLOW_TYPES and not e.hidden)


def get_sequence_flows(registry: ElementRegistry) -> list[Any]:
    return registry.filter(lambda e: e.type == SEQUENCE_FLOW)


# ---------------------------------------------------------------------------
# Auto-arrange
# ---------------------------------------------------------------------------

def auto_layout(
    context: LayoutContext,
    constants: LayoutConstants = DEFAULT_LAYOUT_CONSTANTS,
) -> LayoutReport:
    """Arrange flow nodes into rank columns inside their lanes."""
    report = LayoutReport()
    registry = context.element_registry
    modeling = context.modeling

    lanes = get_lanes(registry)
    elements = get_flow_elements(registry)
    if not lanes or not elements:
        logger.debug("auto_layout: nothing to arrange (%d lanes, %d elements)",
                     len(lanes), len(elements))
        return report

    node_map, adjacency, _ = build_graph(elements)
    report.ranks = assign_ranks(node_map, adjacency)

    lane_data, max_global_rank = build_lane_data(lanes, node_map)
    compute_lane_heights(lane_data, max_global_rank, constants)
    rank_widths = compute_rank_widths(lane_data, max_global_rank)

    # Process-level containers (the canvas root and any other layer) are
    # never moved or resized.
    root = context.canvas.get_root_element()
    root_ids = {lane.id for lane in lanes if lane.type == PROCESS}
    if root is not None:
        root_ids.add(root.id)
    node_positions, lane_resizes = compute_layout(
        lane_data, node_map, rank_widths, constants, root_ids
    )

    for resize in lane_resizes:
        lane = resize.handle
        if resize.resized:
            modeling.resize_shape(lane, {
                "x": resize.x,
                "y": resize.y,
                "width": resize.width,
                "height": resize.height,
            })
            report.resized_lanes.append(resize.lane_id)
        elif resize.moved:
            modeling.move_elements([lane], Point(0, resize.y - (lane.y or 0)))
            report.moved_lanes.append(resize.lane_id)

    lane_by_id = {lane.id: lane for lane in lanes}
    for pos in node_positions:
        node = node_map[pos.node_id]
        # Lane commands above may already have carried the node along.
        pos = replace(pos, dx=pos.x - node.handle.x, dy=pos.y - node.handle.y)
        if pos.is_move:
            modeling.move_elements(
                [node.handle], Point(pos.dx, pos.dy), lane_by_id.get(pos.lane_id)
            )
            report.moved_nodes.append(pos.node_id)

    report.rerouted_connections = reroute_connections(context, elements)
    logger.debug(
        "auto_layout: %d nodes moved, %d lanes resized, %d lanes moved, %d flows rerouted",
        len(report.moved_nodes), len(report.resized_lanes),
        len(report.moved_lanes), len(report.rerouted_connections),
    )
    return report


def reroute_connections(context: LayoutContext, elements: list[ElementLike]) -> list[str]:
    """Give every outgoing connector of *elements* a fresh Z route."""
    connections: dict[str, Any] = {}
    for el in elements:
        for conn in getattr(el, "outgoing", None) or []:
            connections.setdefault(conn.id, conn)

    rerouted: list[str] = []
    for conn in connections.values():
        source, target = conn.source, conn.target
        if source is None or target is None:
            continue
        context.modeling.update_waypoints(conn, compute_manhattan_waypoints(source, target))
        rerouted.append(conn.id)
    return rerouted


# ---------------------------------------------------------------------------
# Line drift
# ---------------------------------------------------------------------------

def resolve_edge_collisions(
    context: LayoutContext,
    max_passes: int = DEFAULT_MAX_PASSES,
    constants: LayoutConstants = DEFAULT_LAYOUT_CONSTANTS,
) -> int:
    """Drift overlapping connectors apart.

    Every changed connector is written back at once, so later connectors
    in the same pass see the new route. Stops after a pass without changes
    or after *max_passes*. Returns the number of waypoint updates issued.
    """
    registry = context.element_registry
    if not get_sequence_flows(registry):
        return 0

    total_updates = 0
    for pass_no in range(1, max_passes + 1):
        pass_updates = 0
        # Views are live, so later connectors still read earlier writes.
        flows = get_sequence_flows(registry)
        for conn in flows:
            others = [c for c in flows if c.id != conn.id]
            waypoints, updated = compute_resolved_waypoints(conn, others, constants)
            if updated:
                context.modeling.update_waypoints(conn, waypoints)
                pass_updates += 1
        total_updates += pass_updates
        logger.debug("line drift pass %d: %d connectors updated", pass_no, pass_updates)
        if not pass_updates:
            break
    return total_updates


def collect_segments(context: LayoutContext) -> list[Segment]:
    segments: list[Segment] = []
    for conn in get_sequence_flows(context.element_registry):
        segments.extend(extract_segments(conn.id, conn.waypoints))
    return segments


def detect_collisions(
    context: LayoutContext,
    constants: LayoutConstants = DEFAULT_LAYOUT_CONSTANTS,
) -> list[CollisionConflict]:
    """List overlapping segment pairs between different connectors."""
    return detect_segment_collisions(collect_segments(context), constants.collision_threshold)
