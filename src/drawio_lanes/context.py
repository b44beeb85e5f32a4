"""
Host adapter: exposes a draw.io ``Diagram`` through the layout host contract.

Element views are live: every coordinate is read from the underlying cell
when asked for, so a command issued by the engine is visible to the very
next read. Views report absolute page coordinates; commands convert them
back to draw.io's parent-relative geometry.
"""

from __future__ import annotations

from typing import Any, Callable, Optional, Sequence

from drawio_lanes.events import EventBus
from drawio_lanes.host import (
    ASSOCIATION,
    ELEMENTS_CHANGED,
    LABEL,
    LANE,
    PARTICIPANT,
    PROCESS,
    SEQUENCE_FLOW,
    TASK,
)
from drawio_lanes.models import (
    DEFAULT_LAYER_ID,
    ROOT_CELL_ID,
    CellBounds,
    Diagram,
    Geometry,
    MxCell,
    Point,
)


# ---------------------------------------------------------------------------
# Element views
# ---------------------------------------------------------------------------

class DiagramElement:
    """Live view of one cell."""

    def __init__(self, context: DiagramLayoutContext, cell: MxCell) -> None:
        self._context = context
        self.cell = cell

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.id} ({self.type})>"

    @property
    def id(self) -> str:
        return self.cell.id

    @property
    def type(self) -> str:
        return self._context.classify(self.cell)

    @property
    def label(self) -> str:
        return self.cell.value

    @property
    def hidden(self) -> bool:
        return not self.cell.visible

    @property
    def parent(self) -> Optional[DiagramElement]:
        return self._context.element(self.cell.parent)

    def _bounds(self) -> CellBounds:
        bounds = self._context.diagram.absolute_bounds(self.id)
        return bounds or CellBounds(0, 0, 0, 0)

    @property
    def x(self) -> float:
        return self._bounds().x

    @property
    def y(self) -> float:
        return self._bounds().y

    @property
    def width(self) -> float:
        return self._bounds().width

    @property
    def height(self) -> float:
        return self._bounds().height

    @property
    def outgoing(self) -> list[DiagramConnection]:
        return [
            DiagramConnection(self._context, c)
            for c in self._context.diagram.cells
            if c.edge and c.source == self.id
        ]

    @property
    def incoming(self) -> list[DiagramConnection]:
        return [
            DiagramConnection(self._context, c)
            for c in self._context.diagram.cells
            if c.edge and c.target == self.id
        ]


class DiagramConnection(DiagramElement):
    """Live view of an edge cell."""

    @property
    def source(self) -> Optional[DiagramElement]:
        return self._context.element(self.cell.source) if self.cell.source else None

    @property
    def target(self) -> Optional[DiagramElement]:
        return self._context.element(self.cell.target) if self.cell.target else None

    @property
    def waypoints(self) -> list[Point]:
        """Full absolute route: start point, bends, end point.

        A missing start or end point falls back to the centre of the
        connected shape.
        """
        geom = self.cell.geometry or Geometry(relative=True)
        ox, oy = self._context.diagram.absolute_origin(self.cell.parent)
        route = [Point(p.x + ox, p.y + oy) for p in geom.points]

        start = self._terminal_point(geom.source_point, self.cell.source, ox, oy)
        end = self._terminal_point(geom.target_point, self.cell.target, ox, oy)
        if start is not None:
            route.insert(0, start)
        if end is not None:
            route.append(end)
        return route

    def _terminal_point(
        self,
        point: Optional[Point],
        cell_id: Optional[str],
        ox: float,
        oy: float,
    ) -> Optional[Point]:
        if point is not None:
            return Point(point.x + ox, point.y + oy)
        if cell_id:
            bounds = self._context.diagram.absolute_bounds(cell_id)
            if bounds is not None:
                return Point(bounds.cx, bounds.cy)
        return None


# ---------------------------------------------------------------------------
# Host capabilities
# ---------------------------------------------------------------------------

class DiagramElementRegistry:
    def __init__(self, context: DiagramLayoutContext) -> None:
        self._context = context

    def filter(self, predicate: Callable[[Any], bool]) -> list[DiagramElement]:
        views = (self._context.element(c.id) for c in self._context.diagram.cells
                 if c.id != ROOT_CELL_ID)
        return [v for v in views if v is not None and predicate(v)]

    def get(self, cell_id: str) -> Optional[DiagramElement]:
        return self._context.element(cell_id)


class DiagramModeling:
    """The three mutation commands, applied to the diagram's cells."""

    def __init__(self, context: DiagramLayoutContext) -> None:
        self._context = context

    @property
    def _diagram(self) -> Diagram:
        return self._context.diagram

    def move_elements(
        self,
        elements: Sequence[DiagramElement],
        delta: Point,
        target: Optional[DiagramElement] = None,
    ) -> None:
        """Move shapes by *delta*, re-parenting them into *target* if given."""
        for el in elements:
            geom = el.cell.geometry
            if geom is None or geom.relative:
                continue
            if target is not None and target.id != el.cell.parent:
                ax, ay = self._diagram.absolute_origin(el.id)
                px, py = self._diagram.absolute_origin(target.id)
                el.cell.parent = target.id
                geom.x = ax + delta.x - px
                geom.y = ay + delta.y - py
            else:
                geom.x += delta.x
                geom.y += delta.y
            self._fit_ancestors(el.cell)
        self._context.bus.emit(ELEMENTS_CHANGED, {"elements": list(elements)})

    def resize_shape(self, shape: DiagramElement, bounds: dict[str, float]) -> None:
        """Set a shape's absolute bounds (keys ``x``, ``y``, ``width``, ``height``)."""
        geom = shape.cell.geometry
        if geom is None:
            geom = shape.cell.geometry = Geometry()
        px, py = self._diagram.absolute_origin(shape.cell.parent)
        geom.x = bounds["x"] - px
        geom.y = bounds["y"] - py
        geom.width = bounds["width"]
        geom.height = bounds["height"]
        self._fit_ancestors(shape.cell)
        self._context.bus.emit(ELEMENTS_CHANGED, {"elements": [shape]})

    def update_waypoints(self, connection: DiagramConnection, waypoints: list[Point]) -> None:
        """Replace a connector's route with absolute *waypoints*."""
        cell = connection.cell
        geom = cell.geometry
        if geom is None:
            geom = cell.geometry = Geometry(relative=True)
        ox, oy = self._diagram.absolute_origin(cell.parent)
        relative = [Point(p.x - ox, p.y - oy) for p in waypoints]
        if len(relative) >= 2:
            geom.source_point = relative[0]
            geom.target_point = relative[-1]
            geom.points = relative[1:-1]
        else:
            geom.points = relative
        self._context.bus.emit(ELEMENTS_CHANGED, {"elements": [connection]})

    def _fit_ancestors(self, cell: MxCell) -> None:
        """Grow enclosing swimlanes so they still contain *cell*."""
        child = cell
        parent = self._diagram.get_cell(child.parent)
        while parent is not None and parent.is_swimlane and parent.geometry is not None:
            cg = child.geometry
            pg = parent.geometry
            if cg is None or cg.relative:
                break
            pg.height = max(pg.height, cg.y + cg.height)
            pg.width = max(pg.width, cg.x + cg.width)
            child = parent
            parent = self._diagram.get_cell(child.parent)


class DiagramCanvas:
    def __init__(self, context: DiagramLayoutContext) -> None:
        self._context = context

    def get_root_element(self) -> DiagramElement:
        return self._context.element(DEFAULT_LAYER_ID)


# ---------------------------------------------------------------------------
# Context
# ---------------------------------------------------------------------------

class DiagramLayoutContext:
    """Everything the layout engine needs from one diagram page."""

    def __init__(self, diagram: Diagram, bus: Optional[EventBus] = None) -> None:
        self.diagram = diagram
        self.bus = bus or EventBus()
        self.element_registry = DiagramElementRegistry(self)
        self.modeling = DiagramModeling(self)
        self.canvas = DiagramCanvas(self)

    def element(self, cell_id: Optional[str]) -> Optional[DiagramElement]:
        if not cell_id or cell_id == ROOT_CELL_ID:
            return None
        cell = self.diagram.get_cell(cell_id)
        if cell is None:
            return None
        if cell.edge:
            return DiagramConnection(self, cell)
        return DiagramElement(self, cell)

    def classify(self, cell: MxCell) -> str:
        """Map a cell onto the host's element type tags."""
        if cell.parent == ROOT_CELL_ID:
            return PROCESS
        if cell.edge:
            if cell.source and cell.target and "dashed=1" not in cell.style:
                return SEQUENCE_FLOW
            return ASSOCIATION
        parent = self.diagram.get_cell(cell.parent)
        if parent is not None and parent.edge:
            return LABEL
        if cell.style.startswith("text;") or cell.style.startswith("edgeLabel;"):
            return LABEL
        if cell.is_swimlane:
            if parent is not None and parent.is_swimlane:
                return LANE
            return PARTICIPANT
        return TASK
