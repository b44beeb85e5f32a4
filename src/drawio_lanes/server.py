"""
drawio-lanes MCP Server — lane auto-arrange and connector line drift for
draw.io diagrams via Model Context Protocol.

Tools:
  1. diagram  — lifecycle: create, import_xml, load, save, get_xml, list
  2. draw     — content:  lanes, flow nodes, sequence flows
  3. layout   — arrange:  auto_arrange, resolve_collisions, watch, unwatch
  4. inspect  — read-only: collisions, cells
"""

from __future__ import annotations

import json
import logging
import threading
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from mcp.server.fastmcp import FastMCP

from drawio_lanes.context import DiagramLayoutContext
from drawio_lanes.events import CollisionWatcher
from drawio_lanes.host import CONNECTION_CHANGED, ELEMENTS_CHANGED
from drawio_lanes.layout_types import LayoutConstants
from drawio_lanes.models import DEFAULT_LAYER_ID, Diagram, DrawioFile, parse_drawio_xml
from drawio_lanes.service import auto_layout, detect_collisions, resolve_edge_collisions
from drawio_lanes.validation import (
    ValidationError,
    validate_action,
    validate_file_path,
    validate_flow_dict,
    validate_list,
    validate_max_passes,
    validate_node_dict,
    validate_non_empty_string,
    validate_non_negative_number,
    validate_positive_number,
    _DIAGRAM_ACTIONS,
    _DRAW_ACTIONS,
    _INSPECT_ACTIONS,
    _LAYOUT_ACTIONS,
)
from drawio_lanes.waypoints import compute_manhattan_waypoints

# ---------------------------------------------------------------------------
# Logging: suppress routine FastMCP INFO messages that clients show
# as warnings (they go to stderr).
# ---------------------------------------------------------------------------
logging.getLogger("mcp.server").setLevel(logging.WARNING)
logger = logging.getLogger("drawio-lanes")

# ---------------------------------------------------------------------------
# MCP Server
# ---------------------------------------------------------------------------
mcp = FastMCP(
    "drawio-lanes",
    instructions=(
        "MCP server that arranges swimlane flow diagrams in draw.io files.\n\n"
        "1. diagram(action, ...) — create, import_xml, load, save, get_xml, list.\n"
        "2. draw(action, ...) — add_lane (pool or lane), add_nodes, add_flows.\n"
        "3. layout(action, ...) — auto_arrange ranks nodes into columns inside\n"
        "   their lanes and re-routes flows; resolve_collisions drifts\n"
        "   overlapping flows apart; watch/unwatch toggle automatic drift\n"
        "   after every edit.\n"
        "4. inspect(action, ...) — collisions, cells.\n\n"
        "ALL coordinates (x, y) are ABSOLUTE page positions.\n"
    ),
)


@dataclass
class DiagramSession:
    """An in-memory diagram and the layout host bound to its first page."""
    file: DrawioFile
    context: DiagramLayoutContext
    lock: threading.RLock
    watcher: Optional[CollisionWatcher] = None

    @property
    def diagram(self) -> Diagram:
        return self.context.diagram


# In-memory registry: name -> DiagramSession
# Guarded by _sessions_lock for thread-safety.
_sessions: dict[str, DiagramSession] = {}
_sessions_lock = threading.Lock()


def _register(name: str, df: DrawioFile) -> DiagramSession:
    session = DiagramSession(
        file=df,
        context=DiagramLayoutContext(df.active_diagram),
        lock=threading.RLock(),
    )
    with _sessions_lock:
        old = _sessions.get(name)
        if old is not None and old.watcher is not None:
            old.watcher.detach()
        _sessions[name] = session
    return session


def _get_session(name: Any) -> DiagramSession:
    name = validate_non_empty_string(name, "diagram_name")
    session = _sessions.get(name)
    if session is None:
        raise ValidationError(f"diagram '{name}' not found.")
    return session


def _constants(options: dict[str, Any] | None) -> LayoutConstants:
    return LayoutConstants.from_options(options)


# ===================================================================
# TOOL 1: diagram: lifecycle
# ===================================================================

@mcp.tool()
def diagram(
    action: str,
    name: str = "",
    file_path: str = "",
    xml_content: str = "",
) -> str:
    """Diagram lifecycle management.

    Actions:
      create     — Create a new empty diagram. Params: name.
      import_xml — Import draw.io XML string. Params: name, xml_content.
      load       — Load a .drawio file from disk. Params: name, file_path.
      save       — Save diagram to a .drawio file. Params: name, file_path.
      get_xml    — Get the raw XML of a diagram. Params: name.
      list       — List all in-memory diagrams.

    Returns:
        Result string or JSON depending on action.
    """
    try:
        action = validate_action(action, "diagram", _DIAGRAM_ACTIONS)
    except ValidationError as exc:
        return f"Error: {exc.message}"

    if action == "list":
        result: list[dict[str, Any]] = []
        for n, session in _sessions.items():
            d = session.diagram
            result.append({
                "name": n,
                "vertices": sum(1 for c in d.cells if c.vertex),
                "edges": sum(1 for c in d.cells if c.edge),
                "watching": bool(session.watcher and session.watcher.attached),
            })
        return json.dumps(result, indent=2)

    try:
        name = validate_non_empty_string(name, "name")
    except ValidationError as exc:
        return f"Error: {exc.message}"

    if action == "create":
        df = DrawioFile()
        df.active_diagram.name = name
        _register(name, df)
        return f"Diagram '{name}' created."

    elif action == "import_xml":
        try:
            validate_non_empty_string(xml_content, "xml_content")
        except ValidationError as exc:
            return f"Error: {exc.message}"
        return _import_xml_impl(name, xml_content)

    elif action == "load":
        try:
            validate_file_path(file_path, "file_path")
        except ValidationError as exc:
            return f"Error: {exc.message}"
        path = Path(file_path)
        if not path.exists():
            return f"Error: file '{file_path}' not found."
        return _import_xml_impl(name, path.read_text(encoding="utf-8"))

    session = _sessions.get(name)
    if session is None:
        return f"Error: diagram '{name}' not found."

    if action == "save":
        try:
            validate_file_path(file_path, "file_path")
        except ValidationError as exc:
            return f"Error: {exc.message}"
        path = Path(file_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with session.lock:
            xml = session.file.to_xml()
        path.write_text(xml, encoding="utf-8")
        return f"Diagram saved to {path.resolve()}"

    # get_xml
    with session.lock:
        return session.file.to_xml()


def _import_xml_impl(name: str, xml_content: str) -> str:
    try:
        df = parse_drawio_xml(xml_content, name)
    except ET.ParseError as exc:
        return f"Error parsing XML: {exc}"
    except ValueError as exc:
        return f"Error: {exc}"
    session = _register(name, df)
    return (
        f"Imported '{name}' with {len(df.diagrams)} page(s); "
        f"page '{session.diagram.name}' has {len(session.diagram.cells)} cells."
    )


# ===================================================================
# TOOL 2: draw: content creation
# ===================================================================

@mcp.tool()
def draw(
    action: str,
    diagram_name: str = "",
    label: str = "",
    x: float = 0,
    y: float = 0,
    width: float = 800,
    height: float = 200,
    parent_id: str = DEFAULT_LAYER_ID,
    nodes: list[dict[str, Any]] | None = None,
    flows: list[dict[str, Any]] | None = None,
) -> str:
    """Add lanes, flow nodes and sequence flows.

    Actions:
      add_lane  — Add a swimlane. With parent_id of a layer it is a pool,
                  with parent_id of a pool it is a lane of that pool.
                  Params: label, x, y, width, height, parent_id.
      add_nodes — Add flow nodes. Params: nodes (list of {label, lane_id?,
                  x?, y?, width?, height?, cell_id?}). Without x/y a node
                  is placed near its lane's top-left corner.
      add_flows — Connect nodes with sequence flows routed as a Z.
                  Params: flows (list of {source_id, target_id, label?,
                  cell_id?}).

    Returns:
        JSON result with created cell IDs.
    """
    try:
        action = validate_action(action, "draw", _DRAW_ACTIONS)
        session = _get_session(diagram_name)
    except ValidationError as exc:
        return f"Error: {exc.message}"
    d = session.diagram

    if action == "add_lane":
        try:
            validate_non_empty_string(label, "label")
            validate_positive_number(width, "width")
            validate_positive_number(height, "height")
            if d.get_cell(parent_id) is None:
                raise ValidationError(f"parent '{parent_id}' not found.")
        except ValidationError as exc:
            return f"Error: {exc.message}"
        with session.lock:
            px, py = d.absolute_origin(parent_id)
            lane_id = d.add_lane(label, x - px, y - py, width, height, parent=parent_id)
            session.context.bus.emit(
                ELEMENTS_CHANGED, {"elements": [session.context.element(lane_id)]}
            )
        return json.dumps({"lane_id": lane_id})

    elif action == "add_nodes":
        node_list = nodes or []
        try:
            validate_list(node_list, "nodes", min_length=1)
            for i, v in enumerate(node_list):
                validate_node_dict(v, i)
                lane_id = v.get("lane_id", DEFAULT_LAYER_ID)
                if d.get_cell(lane_id) is None:
                    raise ValidationError(f"Node at index {i}: lane '{lane_id}' not found.")
        except ValidationError as exc:
            return f"Error: {exc.message}"
        ids: list[str] = []
        with session.lock:
            for v in node_list:
                lane_id = v.get("lane_id", DEFAULT_LAYER_ID)
                px, py = d.absolute_origin(lane_id)
                nx = v.get("x", px + 40)
                ny = v.get("y", py + 40)
                ids.append(d.add_vertex(
                    v["label"], nx - px, ny - py,
                    v.get("width", 120), v.get("height", 60),
                    parent=lane_id, cell_id=v.get("cell_id") or None,
                ))
            session.context.bus.emit(
                ELEMENTS_CHANGED,
                {"elements": [session.context.element(cid) for cid in ids]},
            )
        return json.dumps(ids)

    # add_flows
    flow_list = flows or []
    try:
        validate_list(flow_list, "flows", min_length=1)
        for i, e in enumerate(flow_list):
            validate_flow_dict(e, i)
            for key in ("source_id", "target_id"):
                if d.absolute_bounds(e[key]) is None:
                    raise ValidationError(f"Flow at index {i}: node '{e[key]}' not found.")
    except ValidationError as exc:
        return f"Error: {exc.message}"
    ids = []
    with session.lock:
        for e in flow_list:
            src = d.absolute_bounds(e["source_id"])
            tgt = d.absolute_bounds(e["target_id"])
            ids.append(d.add_edge(
                e["source_id"], e["target_id"], e.get("label", ""),
                cell_id=e.get("cell_id") or None,
                waypoints=compute_manhattan_waypoints(src, tgt),
            ))
        session.context.bus.emit(CONNECTION_CHANGED, {"connections": ids})
    return json.dumps(ids)


# ===================================================================
# TOOL 3: layout: auto-arrange and line drift
# ===================================================================

@mcp.tool()
def layout(
    action: str,
    diagram_name: str = "",
    options: dict[str, float] | None = None,
    max_passes: int = 5,
    debounce: float = 0.3,
) -> str:
    """Arrange lanes and untangle flows.

    Actions:
      auto_arrange       — Rank nodes left to right, grow and stack lanes,
                           move nodes into their columns, re-route flows.
      resolve_collisions — Drift overlapping flows apart (up to max_passes).
      watch              — Resolve collisions automatically after edits,
                           once they have been quiet for `debounce` seconds.
      unwatch            — Stop automatic resolution.

    Args:
        options: Optional overrides of col_spacing, row_spacing,
                 lane_padding, start_x_offset, collision_threshold,
                 parallel_offset.

    Returns:
        JSON report.
    """
    try:
        action = validate_action(action, "layout", _LAYOUT_ACTIONS)
        session = _get_session(diagram_name)
        constants = _constants(options)
        max_passes = validate_max_passes(max_passes)
        debounce = validate_non_negative_number(debounce, "debounce")
    except ValidationError as exc:
        return f"Error: {exc.message}"

    if action == "auto_arrange":
        with session.lock:
            report = auto_layout(session.context, constants)
        return json.dumps(report.to_dict())

    elif action == "resolve_collisions":
        with session.lock:
            updates = resolve_edge_collisions(session.context, max_passes, constants)
        return json.dumps({"updates": updates})

    elif action == "watch":
        if session.watcher is not None:
            session.watcher.detach()
        session.watcher = CollisionWatcher(
            session.context,
            session.context.bus,
            max_passes=max_passes,
            constants=constants,
            debounce=debounce,
            lock=session.lock,
        )
        session.watcher.attach()
        return json.dumps({"watching": True})

    # unwatch
    if session.watcher is not None:
        session.watcher.detach()
        session.watcher = None
    return json.dumps({"watching": False})


# ===================================================================
# TOOL 4: inspect: read-only
# ===================================================================

@mcp.tool()
def inspect(
    action: str,
    diagram_name: str = "",
    options: dict[str, float] | None = None,
) -> str:
    """Read-only inspection of diagrams.

    Actions:
      collisions — List overlapping flow segments. Params: options
                   (collision_threshold override).
      cells      — List lanes, nodes and flows with absolute geometry.

    Returns:
        JSON data.
    """
    try:
        action = validate_action(action, "inspect", _INSPECT_ACTIONS)
        session = _get_session(diagram_name)
        constants = _constants(options)
    except ValidationError as exc:
        return f"Error: {exc.message}"

    with session.lock:
        if action == "collisions":
            conflicts = detect_collisions(session.context, constants)
            return json.dumps([c.to_dict() for c in conflicts], indent=2)

        cells: list[dict[str, Any]] = []
        for el in session.context.element_registry.filter(lambda e: True):
            entry: dict[str, Any] = {"id": el.id, "type": el.type, "label": el.label}
            if el.cell.edge:
                entry["source"] = el.cell.source
                entry["target"] = el.cell.target
                entry["waypoints"] = [{"x": p.x, "y": p.y} for p in el.waypoints]
            elif el.cell.geometry is not None:
                entry.update(x=el.x, y=el.y, width=el.width, height=el.height,
                             parent=el.cell.parent)
            cells.append(entry)
        return json.dumps(cells, indent=2)


# ===================================================================
# Entry point
# ===================================================================

def main() -> None:
    """Run the MCP server."""
    mcp.run()


if __name__ == "__main__":
    main()
