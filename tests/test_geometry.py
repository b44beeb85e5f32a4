"""Tests for lane sizing, lane stacking and node placement."""

from types import SimpleNamespace

from drawio_lanes.geometry import (
    MIN_RANK_WIDTH,
    NodePosition,
    build_lane_data,
    compute_lane_heights,
    compute_layout,
    compute_rank_widths,
    stack_height,
)
from drawio_lanes.layout_types import DEFAULT_LAYOUT_CONSTANTS, LayoutNode


def _lane(lane_id: str, x: float = 0, y: float = 0, width: float = 800, height: float = 200):
    return SimpleNamespace(id=lane_id, x=x, y=y, width=width, height=height)


def _node(node_id: str, lane_id: str, rank: int, width: float = 100, height: float = 80,
          x: float = 0, y: float = 0) -> LayoutNode:
    handle = SimpleNamespace(id=node_id, x=x, y=y, width=width, height=height)
    return LayoutNode(node_id, handle, lane_id, width, height, rank)


def _run(lanes, nodes, root_ids=("1",), constants=DEFAULT_LAYOUT_CONSTANTS):
    node_map = {n.id: n for n in nodes}
    lane_data, max_rank = build_lane_data(lanes, node_map)
    compute_lane_heights(lane_data, max_rank, constants)
    widths = compute_rank_widths(lane_data, max_rank)
    positions, resizes = compute_layout(lane_data, node_map, widths, constants, root_ids)
    return lane_data, widths, {p.node_id: p for p in positions}, resizes


class TestStackHeight:

    def test_empty(self) -> None:
        assert stack_height([], 30) == 0

    def test_single(self) -> None:
        assert stack_height([_node("A", "L", 0, height=50)], 30) == 50

    def test_spacing_between_nodes(self) -> None:
        nodes = [_node("A", "L", 0, height=50), _node("B", "L", 0, height=70)]
        assert stack_height(nodes, 30) == 150


class TestBuildLaneData:

    def test_buckets_by_rank_and_skips_foreign_lanes(self) -> None:
        nodes = {n.id: n for n in [
            _node("A", "L1", 0), _node("B", "L1", 2), _node("C", "elsewhere", 4),
        ]}
        lane_data, max_rank = build_lane_data([_lane("L1")], nodes)
        assert max_rank == 4
        assert lane_data["L1"].ranks() == [0, 2]
        assert [n.id for n in lane_data["L1"].stack(2)] == ["B"]
        assert lane_data["L1"].stack(1) == []


class TestRankWidths:

    def test_minimum_width(self) -> None:
        _, widths, _, _ = _run([_lane("L1")], [_node("A", "L1", 0, width=40)])
        assert widths == {0: MIN_RANK_WIDTH}

    def test_widest_across_lanes(self) -> None:
        lanes = [_lane("L1"), _lane("L2", y=200)]
        nodes = [_node("A", "L1", 0, width=160), _node("B", "L2", 0, width=120),
                 _node("C", "L2", 1, width=90)]
        _, widths, _, _ = _run(lanes, nodes)
        assert widths == {0: 160, 1: 100}

    def test_empty_rank_keeps_minimum(self) -> None:
        nodes = [_node("A", "L1", 0), _node("B", "L1", 2)]
        _, widths, _, _ = _run([_lane("L1")], nodes)
        assert widths[1] == MIN_RANK_WIDTH


class TestLaneHeights:

    def test_grows_to_fit_padding(self) -> None:
        lane_data, _, _, _ = _run([_lane("L1", height=200)], [_node("A", "L1", 0, height=80)])
        assert lane_data["L1"].height == 80 + 2 * 80

    def test_never_shrinks(self) -> None:
        lane_data, _, _, _ = _run([_lane("L1", height=500)], [_node("A", "L1", 0, height=80)])
        assert lane_data["L1"].height == 500

    def test_tallest_stack_counts(self) -> None:
        nodes = [_node("A", "L1", 0), _node("B", "L1", 1), _node("C", "L1", 1)]
        lane_data, _, _, _ = _run([_lane("L1", height=100)], nodes)
        assert lane_data["L1"].height == (80 + 30 + 80) + 160

    def test_empty_lane_needs_only_padding(self) -> None:
        lane_data, _, _, _ = _run([_lane("L1", height=100)], [])
        assert lane_data["L1"].height == 160


class TestComputeLayout:

    def test_single_lane_chain(self) -> None:
        lanes = [_lane("L1")]
        nodes = [_node("A", "L1", 0), _node("B", "L1", 1), _node("C", "L1", 2)]
        _, _, pos, resizes = _run(lanes, nodes)

        assert (pos["A"].x, pos["B"].x, pos["C"].x) == (80, 260, 440)
        # Lane grows to 240; nodes are centred around y=120.
        assert {p.y for p in pos.values()} == {80}
        assert len(resizes) == 1
        assert resizes[0].resized and not resizes[0].moved
        assert (resizes[0].x, resizes[0].y, resizes[0].width, resizes[0].height) == (0, 0, 800, 240)

    def test_x_respects_lane_x(self) -> None:
        _, _, pos, _ = _run([_lane("L1", x=30)], [_node("A", "L1", 0)])
        assert pos["A"].x == 30 + 80

    def test_stacked_siblings_are_centred(self) -> None:
        nodes = [_node("A", "L1", 0, height=60), _node("B", "L1", 0, height=60)]
        _, _, pos, _ = _run([_lane("L1", height=400)], nodes)
        # stack = 60 + 30 + 60 = 150 centred on 200
        assert pos["A"].y == 125
        assert pos["B"].y == 125 + 60 + 30

    def test_lanes_restacked_by_current_y(self) -> None:
        lanes = [_lane("L2", y=500), _lane("L1", y=100)]
        nodes = [_node("A", "L1", 0), _node("B", "L2", 1)]
        lane_data, _, pos, resizes = _run(lanes, nodes)

        assert lane_data["L1"].y == 100
        assert lane_data["L2"].y == 100 + 240
        by_id = {r.lane_id: r for r in resizes}
        assert by_id["L2"].y == 340
        assert by_id["L2"].resized
        assert pos["B"].y == 340 + 120 - 40

    def test_moved_only_lane(self) -> None:
        lanes = [_lane("L1", y=0, height=200), _lane("L2", y=200, height=200)]
        _, _, _, resizes = _run(lanes, [_node("A", "L1", 0)])
        by_id = {r.lane_id: r for r in resizes}
        assert by_id["L2"].moved and not by_id["L2"].resized
        assert by_id["L2"].y == 240
        assert by_id["L2"].height == 200

    def test_unchanged_lane_not_reported(self) -> None:
        _, _, _, resizes = _run([_lane("L1", height=300)], [_node("A", "L1", 0)])
        assert resizes == []

    def test_root_lane_pinned(self) -> None:
        lanes = [_lane("1", y=0, height=0)]
        nodes = [_node("A", "1", 0), _node("B", "1", 1)]
        lane_data, _, pos, resizes = _run(lanes, nodes, root_ids={"1"})

        assert resizes == []
        assert lane_data["1"].y == 0
        assert pos["A"].x == DEFAULT_LAYOUT_CONSTANTS.start_x_offset
        assert pos["B"].x == 150 + 100 + 80
        assert pos["A"].y == 120 - 40

    def test_every_root_lane_pinned(self) -> None:
        lanes = [_lane("1", height=0), _lane("layer2", height=0)]
        nodes = [_node("A", "layer2", 0), _node("B", "layer2", 1)]
        lane_data, _, pos, resizes = _run(lanes, nodes, root_ids={"1", "layer2"})

        assert resizes == []
        assert lane_data["layer2"].y == 0
        assert pos["A"].x == DEFAULT_LAYOUT_CONSTANTS.start_x_offset

    def test_deltas_against_current_position(self) -> None:
        nodes = [_node("A", "L1", 0, x=80, y=60)]
        _, _, pos, _ = _run([_lane("L1", height=200)], nodes)
        assert (pos["A"].x, pos["A"].y) == (80, 80)
        assert pos["A"].dx == 0
        assert pos["A"].dy == 20
        assert pos["A"].is_move

    def test_orphan_nodes_not_placed(self) -> None:
        _, _, pos, _ = _run([_lane("L1")], [_node("A", "L1", 0), _node("X", "gone", 0)])
        assert "X" not in pos


class TestNodePosition:

    def test_small_offsets_are_not_moves(self) -> None:
        assert not NodePosition("A", "L", 0, 0, 1, -1).is_move
        assert not NodePosition("A", "L", 0, 0, 0.5, 0).is_move

    def test_large_offsets_are_moves(self) -> None:
        assert NodePosition("A", "L", 0, 0, 1.5, 0).is_move
        assert NodePosition("A", "L", 0, 0, 0, -3).is_move
