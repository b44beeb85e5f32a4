"""
Lane-partitioned geometry for ranked flow nodes.

Columns are shared by all lanes (one width per rank); each lane grows to
fit its tallest rank stack, lanes are re-stacked top to bottom, and every
node is centred in its rank's stack inside its lane.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Collection, Iterable

from drawio_lanes.layout_types import LaneMeta, LayoutConstants, LayoutNode

MIN_RANK_WIDTH = 100


@dataclass
class NodePosition:
    """Target absolute position of a node and its offset from where it is."""
    node_id: str
    lane_id: str
    x: float
    y: float
    dx: float
    dy: float

    @property
    def is_move(self) -> bool:
        """Whether the offset is large enough to be worth a move command."""
        return abs(self.dx) > 1 or abs(self.dy) > 1


@dataclass
class LaneResize:
    """A lane whose vertical extent changed during the pass."""
    lane_id: str
    handle: Any
    x: float
    y: float
    width: float
    height: float
    resized: bool
    moved: bool


def build_lane_data(
    lanes: Iterable[Any],
    node_map: dict[str, LayoutNode],
) -> tuple[dict[str, LaneMeta], int]:
    """Bucket every node into its lane by rank.

    Nodes whose lane is not among *lanes* are left out. Returns the lane
    data keyed by lane id and the highest rank seen on any node.
    """
    lane_data: dict[str, LaneMeta] = {}
    for lane in lanes:
        lane_data[lane.id] = LaneMeta(
            id=lane.id,
            handle=lane,
            y=lane.y or 0,
            height=lane.height or 0,
        )

    max_global_rank = 0
    for node in node_map.values():
        max_global_rank = max(max_global_rank, node.rank)
        meta = lane_data.get(node.lane_id)
        if meta is None:
            continue
        meta.nodes_by_rank.setdefault(node.rank, []).append(node)

    return lane_data, max_global_rank


def stack_height(nodes: list[LayoutNode], row_spacing: float) -> float:
    """Height of a vertical stack of nodes with *row_spacing* between them."""
    if not nodes:
        return 0
    return sum(n.height for n in nodes) + (len(nodes) - 1) * row_spacing


def compute_rank_widths(
    lane_data: dict[str, LaneMeta],
    max_global_rank: int,
) -> dict[int, float]:
    rank_widths: dict[int, float] = {}
    for rank in range(max_global_rank + 1):
        widest: float = MIN_RANK_WIDTH
        for meta in lane_data.values():
            for node in meta.stack(rank):
                widest = max(widest, node.width)
        rank_widths[rank] = widest
    return rank_widths


def compute_lane_heights(
    lane_data: dict[str, LaneMeta],
    max_global_rank: int,
    constants: LayoutConstants,
) -> None:
    """Grow each lane to fit its tallest rank stack plus padding.

    A lane never ends up shorter than it currently is.
    """
    for meta in lane_data.values():
        tallest = max(
            (stack_height(meta.stack(r), constants.row_spacing)
             for r in range(max_global_rank + 1)),
            default=0,
        )
        required = tallest + constants.lane_padding * 2
        meta.height = max(meta.handle.height or 0, required)


def compute_layout(
    lane_data: dict[str, LaneMeta],
    node_map: dict[str, LayoutNode],
    rank_widths: dict[int, float],
    constants: LayoutConstants,
    root_ids: Collection[str],
) -> tuple[list[NodePosition], list[LaneResize]]:
    """Stack the lanes and place every node.

    Lanes are ordered by their current Y and laid out contiguously from the
    first lane's Y. Lanes in *root_ids* stand for the root container or a
    layer: they stay at Y=0 with their size untouched and are never
    reported.
    """
    node_positions: list[NodePosition] = []
    lane_resizes: list[LaneResize] = []

    lane_list = sorted(lane_data.values(), key=lambda m: m.handle.y or 0)
    current_y = (lane_list[0].handle.y or 0) if lane_list else 0

    for meta in lane_list:
        lane = meta.handle
        if lane.id in root_ids:
            meta.y = 0
            continue
        meta.y = current_y
        resized = meta.height != lane.height
        moved = meta.y != lane.y
        if resized or moved:
            lane_resizes.append(LaneResize(
                lane_id=meta.id,
                handle=lane,
                x=lane.x or 0,
                y=meta.y,
                width=lane.width or 0,
                height=meta.height,
                resized=resized,
                moved=moved and not resized,
            ))
        current_y += meta.height

    for node in node_map.values():
        meta = lane_data.get(node.lane_id)
        if meta is None:
            continue
        if meta.handle.id in root_ids:
            start_x = constants.start_x_offset
        else:
            start_x = (meta.handle.x or 0) + constants.lane_padding

        new_x = start_x
        for rank in range(node.rank):
            new_x += rank_widths.get(rank, MIN_RANK_WIDTH) + constants.col_spacing

        siblings = meta.stack(node.rank)
        index = siblings.index(node)
        lane_center_y = meta.y + meta.height / 2
        new_y = lane_center_y - stack_height(siblings, constants.row_spacing) / 2
        for sibling in siblings[:index]:
            new_y += sibling.height + constants.row_spacing

        node_positions.append(NodePosition(
            node_id=node.id,
            lane_id=node.lane_id,
            x=new_x,
            y=new_y,
            dx=new_x - node.handle.x,
            dy=new_y - node.handle.y,
        ))

    return node_positions, lane_resizes
