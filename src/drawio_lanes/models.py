"""
Core XML model classes for draw.io diagrams.

This is the document the layout engine arranges: a flat list of mxCells
(vertices, edges, swimlane containers) with parent-relative geometry,
plus XML export and import of the mxGraphModel schema.
"""

from __future__ import annotations

import html as _html
import uuid
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from typing import Optional


ROOT_CELL_ID = "0"
DEFAULT_LAYER_ID = "1"

LANE_STYLE = "swimlane;horizontal=0;startSize=30;html=1;whiteSpace=wrap;"
POOL_STYLE = "swimlane;horizontal=0;startSize=30;html=1;whiteSpace=wrap;fontStyle=1;"
TASK_STYLE = "rounded=1;whiteSpace=wrap;html=1;"
FLOW_STYLE = "edgeStyle=orthogonalEdgeStyle;rounded=0;html=1;endArrow=block;"


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------

@dataclass
class Point:
    """A 2-D coordinate."""
    x: float
    y: float

    def copy(self) -> Point:
        return Point(self.x, self.y)

    def to_element(self, role: Optional[str] = None) -> ET.Element:
        el = ET.Element("mxPoint", attrib={"x": _fmt(self.x), "y": _fmt(self.y)})
        if role:
            el.set("as", role)
        return el


@dataclass
class Geometry:
    """Geometry of an mxCell (position + size for vertices, relative for edges)."""
    x: float = 0
    y: float = 0
    width: float = 120
    height: float = 60
    relative: bool = False
    source_point: Optional[Point] = None
    target_point: Optional[Point] = None
    offset: Optional[Point] = None
    points: list[Point] = field(default_factory=list)

    def to_element(self) -> ET.Element:
        attrib: dict[str, str] = {"as": "geometry"}
        if self.relative:
            attrib["relative"] = "1"
        else:
            attrib["x"] = _fmt(self.x)
            attrib["y"] = _fmt(self.y)
            attrib["width"] = _fmt(self.width)
            attrib["height"] = _fmt(self.height)
        el = ET.Element("mxGeometry", attrib=attrib)
        if self.source_point:
            el.append(self.source_point.to_element("sourcePoint"))
        if self.target_point:
            el.append(self.target_point.to_element("targetPoint"))
        if self.points:
            arr = ET.SubElement(el, "Array", attrib={"as": "points"})
            for pt in self.points:
                arr.append(pt.to_element())
        if self.offset:
            el.append(self.offset.to_element("offset"))
        return el


@dataclass
class MxCell:
    """A single mxCell element — vertex, edge, or structural cell."""
    id: str
    value: str = ""
    style: str = ""
    parent: str = DEFAULT_LAYER_ID
    vertex: bool = False
    edge: bool = False
    source: Optional[str] = None
    target: Optional[str] = None
    connectable: Optional[bool] = None
    visible: bool = True
    geometry: Optional[Geometry] = None

    @property
    def is_swimlane(self) -> bool:
        return self.vertex and self.style.split(";", 1)[0].strip() == "swimlane"

    def to_element(self) -> ET.Element:
        attrib: dict[str, str] = {"id": self.id}
        if self.value:
            # Unescape pre-escaped HTML (e.g. &lt;b&gt; → <b>) so that
            # ET.tostring produces correct single-level escaping.
            attrib["value"] = _html.unescape(self.value)
        if self.style:
            attrib["style"] = self.style
        if self.parent:
            attrib["parent"] = self.parent
        if self.vertex:
            attrib["vertex"] = "1"
        if self.edge:
            attrib["edge"] = "1"
        if self.source:
            attrib["source"] = self.source
        if self.target:
            attrib["target"] = self.target
        if self.connectable is not None and not self.connectable:
            attrib["connectable"] = "0"
        if not self.visible:
            attrib["visible"] = "0"
        el = ET.Element("mxCell", attrib=attrib)
        if self.geometry:
            el.append(self.geometry.to_element())
        return el


@dataclass
class Diagram:
    """A single diagram page inside an mxfile."""
    name: str = "Page-1"
    id: str = field(default_factory=lambda: _uid())
    cells: list[MxCell] | None = None
    # mxGraphModel settings
    dx: int = 1354
    dy: int = 981
    grid: bool = True
    grid_size: int = 10
    page: bool = True
    page_width: int = 1169
    page_height: int = 827
    background: str = "none"

    # internal counter
    _next_id: int = field(default=2, init=False, repr=False)
    _index: dict[str, MxCell] = field(default_factory=dict, init=False, repr=False,
                                      compare=False)

    def __post_init__(self) -> None:
        # Ensure structural cells 0 and 1 always exist
        if self.cells is None:
            self.cells = [
                MxCell(id=ROOT_CELL_ID, parent=""),
                MxCell(id=DEFAULT_LAYER_ID, parent=ROOT_CELL_ID),
            ]

    def next_id(self) -> str:
        """Generate a sequential cell ID."""
        cid = str(self._next_id)
        self._next_id += 1
        return cid

    def get_cell(self, cell_id: str) -> MxCell | None:
        """Look up a cell by id; the first cell wins on duplicate ids.

        Cells are only ever appended, so the index is rebuilt on a miss.
        """
        cell = self._index.get(cell_id)
        if cell is not None and cell.id == cell_id:
            return cell
        self._index = {}
        for c in self.cells:
            self._index.setdefault(c.id, c)
        return self._index.get(cell_id)

    def is_layer(self, cell_id: str) -> bool:
        """Whether *cell_id* is the root cell or a layer (its direct child)."""
        if cell_id in ("", ROOT_CELL_ID):
            return True
        cell = self.get_cell(cell_id)
        return cell is not None and cell.parent == ROOT_CELL_ID

    def absolute_origin(self, cell_id: str) -> tuple[float, float]:
        """Absolute page position of a cell's top-left corner.

        Walks the parent chain, since child geometry in draw.io is relative
        to its container. Layers and the root cell sit at the origin.
        """
        x = y = 0.0
        seen: set[str] = set()
        current = cell_id
        while current and not self.is_layer(current) and current not in seen:
            seen.add(current)
            cell = self.get_cell(current)
            if cell is None or cell.geometry is None or cell.geometry.relative:
                break
            x += cell.geometry.x
            y += cell.geometry.y
            current = cell.parent
        return x, y

    def absolute_bounds(self, cell_id: str) -> CellBounds | None:
        cell = self.get_cell(cell_id)
        if cell is None or cell.geometry is None or cell.geometry.relative:
            return None
        x, y = self.absolute_origin(cell_id)
        return CellBounds(x, y, cell.geometry.width, cell.geometry.height)

    # ----- builder helpers -----

    def add_vertex(
        self,
        value: str,
        x: float,
        y: float,
        width: float = 120,
        height: float = 60,
        style: str = TASK_STYLE,
        parent: str = DEFAULT_LAYER_ID,
        cell_id: Optional[str] = None,
    ) -> str:
        cid = cell_id or self.next_id()
        cell = MxCell(
            id=cid,
            value=value,
            style=style,
            parent=parent,
            vertex=True,
            geometry=Geometry(x=x, y=y, width=width, height=height),
        )
        self.cells.append(cell)
        return cid

    def add_lane(
        self,
        value: str,
        x: float,
        y: float,
        width: float = 800,
        height: float = 200,
        parent: str = DEFAULT_LAYER_ID,
        cell_id: Optional[str] = None,
    ) -> str:
        """Add a swimlane container.

        Parented to a layer it acts as a pool; parented to another swimlane
        it is a lane of that pool.
        """
        style = POOL_STYLE if self.is_layer(parent) else LANE_STYLE
        return self.add_vertex(value, x, y, width, height, style=style,
                               parent=parent, cell_id=cell_id)

    def add_edge(
        self,
        source: str,
        target: str,
        value: str = "",
        style: str = FLOW_STYLE,
        parent: str = DEFAULT_LAYER_ID,
        cell_id: Optional[str] = None,
        waypoints: Optional[list[Point]] = None,
    ) -> str:
        """Add an edge; *waypoints* holds the full route, endpoints included."""
        cid = cell_id or self.next_id()
        geom = Geometry(relative=True)
        if waypoints and len(waypoints) >= 2:
            geom.source_point = waypoints[0]
            geom.target_point = waypoints[-1]
            geom.points = list(waypoints[1:-1])
        cell = MxCell(
            id=cid,
            value=value,
            style=style,
            parent=parent,
            edge=True,
            source=source,
            target=target,
            geometry=geom,
        )
        self.cells.append(cell)
        return cid

    def to_element(self) -> ET.Element:
        graph_attrs: dict[str, str] = {
            "dx": str(self.dx),
            "dy": str(self.dy),
            "grid": "1" if self.grid else "0",
            "gridSize": str(self.grid_size),
            "page": "1" if self.page else "0",
            "pageWidth": str(self.page_width),
            "pageHeight": str(self.page_height),
            "background": self.background,
        }
        model = ET.Element("mxGraphModel", attrib=graph_attrs)
        root = ET.SubElement(model, "root")
        for cell in self.cells:
            root.append(cell.to_element())

        diagram = ET.Element("diagram", attrib={"name": self.name, "id": self.id})
        diagram.append(model)
        return diagram


@dataclass
class DrawioFile:
    """Top-level mxfile container — holds one or more diagram pages."""
    diagrams: list[Diagram] | None = None
    host: str = "drawio-lanes"
    agent: str = "drawio-lanes/0.1"
    version: str = "24.7.17"

    def __post_init__(self) -> None:
        if self.diagrams is None:
            self.diagrams = [Diagram()]

    @property
    def active_diagram(self) -> Diagram:
        return self.diagrams[0]

    def to_xml(self, pretty: bool = True) -> str:
        import datetime
        mxfile = ET.Element(
            "mxfile",
            attrib={
                "host": self.host,
                "modified": datetime.datetime.now(datetime.timezone.utc).strftime(
                    "%Y-%m-%dT%H:%M:%S.000Z"
                ),
                "agent": self.agent,
                "version": self.version,
                "type": "device",
                "compressed": "false",
            },
        )
        for d in self.diagrams:
            mxfile.append(d.to_element())
        if pretty:
            ET.indent(mxfile, space="  ")
        return '<?xml version="1.0" encoding="UTF-8"?>\n' + ET.tostring(
            mxfile, encoding="unicode"
        )


# ---------------------------------------------------------------------------
# XML import
# ---------------------------------------------------------------------------

def parse_drawio_xml(xml_content: str, name: str = "Page-1") -> DrawioFile:
    """Parse an ``mxfile`` or bare ``mxGraphModel`` document.

    Raises ``ET.ParseError`` for malformed XML and ``ValueError`` when the
    document holds no usable diagram page. Compressed pages are not
    supported.
    """
    root = ET.fromstring(xml_content)
    if root.tag == "mxfile":
        diagram_elements = root.findall("diagram")
    elif root.tag == "mxGraphModel":
        diag_el = ET.Element("diagram", attrib={"name": name, "id": "imported"})
        diag_el.append(root)
        diagram_elements = [diag_el]
    else:
        raise ValueError("unrecognized root element.")

    parsed: list[Diagram] = []
    for diag_el in diagram_elements:
        model_el = diag_el.find("mxGraphModel")
        if model_el is None:
            continue
        root_el = model_el.find("root")
        if root_el is None:
            continue
        d = Diagram(
            name=diag_el.get("name", "Page"),
            id=diag_el.get("id", "imported"),
            cells=[],
        )
        d.grid = model_el.get("grid", "1") == "1"
        d.grid_size = int(model_el.get("gridSize", "10"))
        d.page_width = int(model_el.get("pageWidth", "1169"))
        d.page_height = int(model_el.get("pageHeight", "827"))
        d.background = model_el.get("background", "none")

        max_id = 1
        for child_el in root_el:
            if child_el.tag == "mxCell":
                cell = _parse_cell_element(child_el)
            elif child_el.tag in ("object", "UserObject"):
                inner = child_el.find("mxCell")
                if inner is None:
                    continue
                cell = _parse_cell_element(
                    inner,
                    cell_id=child_el.get("id", ""),
                    label=child_el.get("label", ""),
                )
            else:
                continue
            d.cells.append(cell)
            if cell.id.isdigit():
                max_id = max(max_id, int(cell.id))
        d._next_id = max_id + 1
        parsed.append(d)

    if not parsed:
        raise ValueError("no valid diagram pages found.")
    return DrawioFile(diagrams=parsed)


def _parse_point(el: ET.Element) -> Point:
    return Point(float(el.get("x", "0")), float(el.get("y", "0")))


def _parse_cell_element(cell_el: ET.Element, cell_id: str = "", label: str = "") -> MxCell:
    geom_el = cell_el.find("mxGeometry")
    geometry = None
    if geom_el is not None:
        geometry = Geometry(
            x=float(geom_el.get("x", "0")),
            y=float(geom_el.get("y", "0")),
            width=float(geom_el.get("width", "0")),
            height=float(geom_el.get("height", "0")),
            relative=geom_el.get("relative", "0") == "1",
        )
        arr_el = geom_el.find("Array[@as='points']")
        if arr_el is not None:
            geometry.points = [_parse_point(p) for p in arr_el.findall("mxPoint")]
        for role, attr in (("sourcePoint", "source_point"),
                           ("targetPoint", "target_point"),
                           ("offset", "offset")):
            pt_el = geom_el.find(f"mxPoint[@as='{role}']")
            if pt_el is not None:
                setattr(geometry, attr, _parse_point(pt_el))

    connectable = cell_el.get("connectable")
    return MxCell(
        id=cell_id or cell_el.get("id", ""),
        value=label or cell_el.get("value", ""),
        style=cell_el.get("style", ""),
        parent=cell_el.get("parent", ""),
        vertex=cell_el.get("vertex", "0") == "1",
        edge=cell_el.get("edge", "0") == "1",
        source=cell_el.get("source"),
        target=cell_el.get("target"),
        connectable=None if connectable is None else connectable == "1",
        visible=cell_el.get("visible", "1") != "0",
        geometry=geometry,
    )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _uid() -> str:
    return uuid.uuid4().hex[:12]


def _fmt(value: float) -> str:
    """Render a coordinate without a trailing ``.0`` for whole numbers."""
    if float(value).is_integer():
        return str(int(value))
    return str(round(value, 2))


@dataclass
class CellBounds:
    """Axis-aligned bounding box for a cell."""
    x: float
    y: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    @property
    def cx(self) -> float:
        return self.x + self.width / 2

    @property
    def cy(self) -> float:
        return self.y + self.height / 2
