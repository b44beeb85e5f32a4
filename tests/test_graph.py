"""Tests for flow graph construction and rank assignment."""

from types import SimpleNamespace

from drawio_lanes.context import DiagramLayoutContext
from drawio_lanes.graph import assign_ranks, build_graph
from drawio_lanes.models import Diagram
from drawio_lanes.service import get_flow_elements


def _element(eid: str, lane: str = "L1", width: float = 100, height: float = 80):
    return SimpleNamespace(
        id=eid,
        parent=SimpleNamespace(id=lane),
        width=width,
        height=height,
        outgoing=[],
    )


def _connect(source, target) -> None:
    source.outgoing.append(SimpleNamespace(target=target))


def _chain(*ids: str):
    elements = [_element(i) for i in ids]
    for a, b in zip(elements, elements[1:]):
        _connect(a, b)
    return elements


class TestBuildGraph:

    def test_nodes_adjacency_and_in_degree(self) -> None:
        a, b, c = _chain("A", "B", "C")
        _connect(a, c)
        node_map, adjacency, in_degree = build_graph([a, b, c])

        assert list(node_map) == ["A", "B", "C"]
        assert adjacency == {"A": ["B", "C"], "B": ["C"], "C": []}
        assert in_degree == {"A": 0, "B": 1, "C": 2}
        assert node_map["B"].lane_id == "L1"
        assert node_map["B"].handle is b
        assert node_map["A"].rank == 0

    def test_builds_from_diagram_elements(self) -> None:
        d = Diagram()
        d.add_lane("Sales", 0, 0, cell_id="sales")
        d.add_vertex("A", 40, 40, 100, 80, parent="sales", cell_id="A")
        d.add_vertex("B", 300, 40, parent="sales", cell_id="B")
        d.add_edge("A", "B")
        elements = get_flow_elements(DiagramLayoutContext(d).element_registry)

        node_map, adjacency, _ = build_graph(elements)
        assert adjacency == {"A": ["B"], "B": []}
        assert node_map["A"].lane_id == "sales"
        assert (node_map["A"].width, node_map["A"].height) == (100, 80)

    def test_dangling_target_dropped(self) -> None:
        a = _element("A")
        _connect(a, _element("ghost"))
        node_map, adjacency, in_degree = build_graph([a])
        assert adjacency == {"A": []}
        assert in_degree == {"A": 0}

    def test_size_copied_from_element(self) -> None:
        node_map, _, _ = build_graph([_element("A", width=140, height=50)])
        assert (node_map["A"].width, node_map["A"].height) == (140, 50)

    def test_empty_input(self) -> None:
        assert build_graph([]) == ({}, {}, {})


class TestAssignRanks:

    def test_chain_ranks(self) -> None:
        node_map, adjacency, _ = build_graph(_chain("A", "B", "C"))
        ranks = assign_ranks(node_map, adjacency)
        assert ranks == {"A": 0, "B": 1, "C": 2}
        assert node_map["C"].rank == 2

    def test_longest_path_wins(self) -> None:
        """A->B->C->D and A->D: D sits after C, not right after A."""
        a, b, c, d = _chain("A", "B", "C", "D")
        _connect(a, d)
        node_map, adjacency, _ = build_graph([a, b, c, d])
        ranks = assign_ranks(node_map, adjacency)
        assert ranks["D"] == 3

    def test_monotonic_on_dag(self) -> None:
        elements = [_element(i) for i in "ABCDEFG"]
        by_id = {e.id: e for e in elements}
        edges = [("A", "B"), ("A", "C"), ("B", "D"), ("C", "D"),
                 ("D", "E"), ("F", "E"), ("E", "G"), ("C", "G")]
        for s, t in edges:
            _connect(by_id[s], by_id[t])
        node_map, adjacency, _ = build_graph(elements)
        ranks = assign_ranks(node_map, adjacency)
        for s, t in edges:
            assert ranks[t] > ranks[s], f"{s}->{t}: {ranks[s]} !< {ranks[t]}"
        assert ranks["F"] == 0

    def test_pure_cycle_terminates_with_bounded_ranks(self) -> None:
        a, b, c = _chain("A", "B", "C")
        _connect(c, a)
        node_map, adjacency, _ = build_graph([a, b, c])
        ranks = assign_ranks(node_map, adjacency)
        assert all(0 <= r <= 2 for r in ranks.values())
        # The first node seeds the walk.
        assert ranks == {"A": 0, "B": 1, "C": 2}

    def test_two_node_cycle(self) -> None:
        a, b = _chain("A", "B")
        _connect(b, a)
        node_map, adjacency, _ = build_graph([a, b])
        assert assign_ranks(node_map, adjacency) == {"A": 0, "B": 1}

    def test_cycle_behind_source(self) -> None:
        """S->A->B->A: the back edge cannot push ranks past the node count."""
        s, a, b = _chain("S", "A", "B")
        _connect(b, a)
        node_map, adjacency, _ = build_graph([s, a, b])
        ranks = assign_ranks(node_map, adjacency)
        assert ranks["S"] == 0
        assert ranks["A"] > ranks["S"]
        assert max(ranks.values()) <= len(node_map) - 1

    def test_large_cycle_terminates(self) -> None:
        elements = _chain(*[f"N{i}" for i in range(40)])
        _connect(elements[-1], elements[0])
        _connect(elements[20], elements[5])
        node_map, adjacency, _ = build_graph(elements)
        ranks = assign_ranks(node_map, adjacency)
        assert max(ranks.values()) <= 39

    def test_isolated_nodes_stay_at_zero(self) -> None:
        node_map, adjacency, _ = build_graph([_element("A"), _element("B")])
        assert assign_ranks(node_map, adjacency) == {"A": 0, "B": 0}

    def test_empty_graph(self) -> None:
        assert assign_ranks({}, {}) == {}
