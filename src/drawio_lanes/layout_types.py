"""
Shared data types for the lane layout and line-drift engine.

Everything here is transient: rebuilt from the diagram snapshot on each
auto-arrange or collision pass and discarded afterwards.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from enum import Enum
from typing import Any, Mapping

from drawio_lanes.models import Point
from drawio_lanes.validation import validate_layout_options


class Orientation(Enum):
    HORIZONTAL = "horizontal"
    VERTICAL = "vertical"
    DIAGONAL = "diagonal"


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class LayoutConstants:
    """Spacing and tolerance settings for auto-arrange and line drift."""
    col_spacing: float = 80           # Horizontal gap between rank columns
    row_spacing: float = 30           # Vertical gap between stacked nodes
    lane_padding: float = 80          # Inner padding of a lane around its content
    start_x_offset: float = 150       # First column X when arranging on the bare canvas
    collision_threshold: float = 5    # Max perpendicular distance of colliding segments
    parallel_offset: float = 18       # Drift step between parallel connectors

    @classmethod
    def from_options(cls, options: Mapping[str, Any] | None = None) -> LayoutConstants:
        """Build constants from a partial override mapping.

        Raises ``ValidationError`` for unknown keys or negative values.
        """
        if not options:
            return DEFAULT_LAYOUT_CONSTANTS
        names = {f.name for f in fields(cls)}
        return cls(**validate_layout_options(dict(options), names))

    def to_dict(self) -> dict[str, float]:
        return asdict(self)


DEFAULT_LAYOUT_CONSTANTS = LayoutConstants()


# ---------------------------------------------------------------------------
# Graph / lane data
# ---------------------------------------------------------------------------

@dataclass
class LayoutNode:
    """A flow node taking part in one layout pass."""
    id: str
    handle: Any          # host shape; only x/y/width/height/id are read
    lane_id: str
    width: float
    height: float
    rank: int = 0


@dataclass
class LaneMeta:
    """A lane and the nodes it holds, bucketed by rank."""
    id: str
    handle: Any
    y: float
    height: float
    nodes_by_rank: dict[int, list[LayoutNode]] = field(default_factory=dict)

    def ranks(self) -> list[int]:
        return sorted(self.nodes_by_rank)

    def stack(self, rank: int) -> list[LayoutNode]:
        return self.nodes_by_rank.get(rank, [])


# ---------------------------------------------------------------------------
# Segments and conflicts
# ---------------------------------------------------------------------------

@dataclass
class Segment:
    """One straight piece of a connector route."""
    connection_id: str
    p1: Point
    p2: Point
    orientation: Orientation

    def to_dict(self) -> dict[str, Any]:
        return {
            "connection_id": self.connection_id,
            "p1": {"x": self.p1.x, "y": self.p1.y},
            "p2": {"x": self.p2.x, "y": self.p2.y},
            "orientation": self.orientation.value,
        }


@dataclass
class CollisionConflict:
    """A reported pair of overlapping segments from different connectors."""
    connections: tuple[str, str]
    reason: str
    segment1: Segment
    segment2: Segment

    def to_dict(self) -> dict[str, Any]:
        return {
            "connections": list(self.connections),
            "reason": self.reason,
            "segment1": self.segment1.to_dict(),
            "segment2": self.segment2.to_dict(),
        }
