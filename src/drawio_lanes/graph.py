"""
Flow graph construction and rank assignment.

Ranks become the horizontal columns of the lane layout: every edge should
point from a lower rank to a higher one.
"""

from __future__ import annotations

from collections import deque
from typing import Iterable

from drawio_lanes.host import ElementLike
from drawio_lanes.layout_types import LayoutNode


def build_graph(
    elements: Iterable[ElementLike],
) -> tuple[dict[str, LayoutNode], dict[str, list[str]], dict[str, int]]:
    """Build node map, adjacency list and in-degree map from flow elements.

    Each element needs ``id``, ``parent.id`` (its lane), ``width``,
    ``height`` and an ``outgoing`` sequence of connectors carrying
    ``target.id``. Connectors to elements outside the set are dropped.
    """
    elements = list(elements)
    node_map: dict[str, LayoutNode] = {}
    adjacency: dict[str, list[str]] = {}
    in_degree: dict[str, int] = {}

    for el in elements:
        parent = getattr(el, "parent", None)
        node_map[el.id] = LayoutNode(
            id=el.id,
            handle=el,
            lane_id=parent.id if parent is not None else "",
            width=el.width,
            height=el.height,
        )
        adjacency[el.id] = []
        in_degree[el.id] = 0

    for el in elements:
        for conn in getattr(el, "outgoing", None) or []:
            target = getattr(conn, "target", None)
            if target is None or target.id not in node_map:
                continue
            adjacency[el.id].append(target.id)
            in_degree[target.id] += 1

    return node_map, adjacency, in_degree


def assign_ranks(
    node_map: dict[str, LayoutNode],
    adjacency: dict[str, list[str]],
) -> dict[str, int]:
    """Longest-path layering by breadth-first relaxation.

    Sources start at rank 0; a successor is pushed to ``rank + 1`` whenever
    it does not already sit further right, and re-queued. With no source
    (every node on a cycle) the first node seeds the walk.

    Ranks are capped at ``len(node_map) - 1``, the longest possible simple
    path, so cycles cannot raise them forever. Ranks are written to the
    nodes and returned as a mapping.
    """
    in_degree: dict[str, int] = {nid: 0 for nid in node_map}
    for neighbors in adjacency.values():
        for to_id in neighbors:
            if to_id in in_degree:
                in_degree[to_id] += 1

    queue: deque[str] = deque(nid for nid, deg in in_degree.items() if deg == 0)
    if not queue and node_map:
        queue.append(next(iter(node_map)))

    max_rank = max(len(node_map) - 1, 0)
    while queue:
        curr = node_map[queue.popleft()]
        for next_id in adjacency.get(curr.id, []):
            nxt = node_map.get(next_id)
            if nxt is None:
                continue
            new_rank = curr.rank + 1
            if nxt.rank <= curr.rank and new_rank <= max_rank:
                nxt.rank = new_rank
                queue.append(next_id)

    return {nid: node.rank for nid, node in node_map.items()}
