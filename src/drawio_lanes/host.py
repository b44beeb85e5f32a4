"""
The boundary between the layout engine and the diagram host.

The engine never touches host-owned objects directly: it reads identity,
position and size through the accessor protocols below and asks for
changes only through the three ``Modeling`` commands.
"""

from __future__ import annotations

from typing import Any, Callable, Optional, Protocol, Sequence

from drawio_lanes.models import Point


# ---------------------------------------------------------------------------
# Element type tags
# ---------------------------------------------------------------------------

LANE = "lane"
PARTICIPANT = "participant"
PROCESS = "process"
SEQUENCE_FLOW = "sequence_flow"
ASSOCIATION = "association"
LABEL = "label"
TASK = "task"

CONTAINER_TYPES = frozenset({LANE, PARTICIPANT, PROCESS})
NON_FLOW_TYPES = CONTAINER_TYPES | {SEQUENCE_FLOW, ASSOCIATION, LABEL}


# ---------------------------------------------------------------------------
# Change notification event names
# ---------------------------------------------------------------------------

CONNECTION_CHANGED = "connection.changed"
ELEMENTS_CHANGED = "elements.changed"
SHAPE_MOVE_END = "shape.move.end"
BENDPOINT_MOVE_END = "bendpoint.move.end"
SEGMENT_MOVE_END = "connectionSegment.move.end"

WATCHED_EVENTS = (
    CONNECTION_CHANGED,
    ELEMENTS_CHANGED,
    SHAPE_MOVE_END,
    BENDPOINT_MOVE_END,
    SEGMENT_MOVE_END,
)


# ---------------------------------------------------------------------------
# Accessor protocols
# ---------------------------------------------------------------------------

class Identified(Protocol):
    id: str


class ShapeLike(Protocol):
    """Absolute bounds of a host shape."""
    id: str
    x: float
    y: float
    width: float
    height: float


class ConnectionLike(Protocol):
    """A connector with its full route, endpoints included."""
    id: str
    waypoints: list[Point]
    source: Optional[Identified]
    target: Optional[Identified]


class ElementLike(ShapeLike, Protocol):
    type: str
    parent: Optional[Identified]
    hidden: bool
    outgoing: Sequence[ConnectionLike]


# ---------------------------------------------------------------------------
# Host capabilities
# ---------------------------------------------------------------------------

class ElementRegistry(Protocol):
    def filter(self, predicate: Callable[[Any], bool]) -> list[Any]: ...


class Modeling(Protocol):
    def move_elements(
        self,
        elements: Sequence[Any],
        delta: Point,
        target: Optional[Any] = None,
    ) -> None: ...

    def resize_shape(self, shape: Any, bounds: dict[str, float]) -> None: ...

    def update_waypoints(self, connection: Any, waypoints: list[Point]) -> None: ...


class Canvas(Protocol):
    def get_root_element(self) -> Identified: ...


class LayoutContext(Protocol):
    element_registry: ElementRegistry
    modeling: Modeling
    canvas: Canvas
