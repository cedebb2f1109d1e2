from __future__ import annotations

from dataclasses import dataclass
from typing import Any, ClassVar

from .models import Circuit, Component, ComponentRole, GridPosition


BITLINE_COLOR = "#3b82f6"
WORDLINE_COLOR = "#ef4444"
SOURCELINE_COLOR = "#10b981"
CELL_COLOR = "#334155"

VERTICAL = "vertical"
HORIZONTAL = "horizontal"

# Zig-zag body of a resistor, drawn along +y and centered on the origin.
_ZIGZAG: tuple[tuple[float, float], ...] = (
    (0, -8),
    (-4, -5),
    (4, -2),
    (-4, 1),
    (4, 4),
    (-4, 7),
    (0, 8),
)


@dataclass(frozen=True, slots=True)
class LayoutGeometry:
    cell_width: int = 80
    cell_height: int = 60
    gap_x: int = 60
    gap_y: int = 60
    margin_top: int = 100
    margin_left: int = 100
    bitline_inset: int = 20
    wordline_inset: int = 10
    sourceline_inset: int = 10
    driver_offset: int = 60
    driver_lead: int = 20
    ground_drop: int = 40
    canvas_padding: int = 100

    @property
    def pitch_x(self) -> int:
        return self.cell_width + self.gap_x

    @property
    def pitch_y(self) -> int:
        return self.cell_height + self.gap_y

    def cell_left(self, col: int) -> float:
        return self.margin_left + (col - 1) * self.pitch_x

    def cell_top(self, row: int) -> float:
        return self.margin_top + (row - 1) * self.pitch_y

    def cell_center(self, row: int, col: int) -> tuple[float, float]:
        return (
            self.cell_left(col) + self.cell_width / 2,
            self.cell_top(row) + self.cell_height / 2,
        )

    def bitline_x(self, col: int) -> float:
        return self.cell_left(col) + self.bitline_inset

    def wordline_y(self, row: int) -> float:
        return self.cell_top(row) + self.wordline_inset

    def sourceline_y(self, row: int) -> float:
        return self.cell_top(row) + self.cell_height - self.sourceline_inset


DEFAULT_GEOMETRY = LayoutGeometry()


@dataclass(frozen=True, slots=True)
class Anchor:
    role: str
    node: str | None
    x: float
    y: float
    color: str

    def as_dict(self) -> dict[str, Any]:
        return {"role": self.role, "node": self.node, "x": self.x, "y": self.y, "color": self.color}


@dataclass(frozen=True, slots=True)
class CellPrimitive:
    kind: ClassVar[str] = "cell"

    component_id: str
    row: int
    col: int
    x: float
    y: float
    width: float
    height: float
    anchors: tuple[Anchor, ...]
    color: str = CELL_COLOR

    def as_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "component_id": self.component_id,
            "row": self.row,
            "col": self.col,
            "x": self.x,
            "y": self.y,
            "width": self.width,
            "height": self.height,
            "anchors": [anchor.as_dict() for anchor in self.anchors],
            "color": self.color,
        }


@dataclass(frozen=True, slots=True)
class WirePrimitive:
    kind: ClassVar[str] = "wire"

    x1: float
    y1: float
    x2: float
    y2: float
    color: str
    dashed: bool = False
    component_id: str | None = None

    def as_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "component_id": self.component_id,
            "x1": self.x1,
            "y1": self.y1,
            "x2": self.x2,
            "y2": self.y2,
            "color": self.color,
            "dashed": self.dashed,
        }


@dataclass(frozen=True, slots=True)
class ResistorSegment:
    kind: ClassVar[str] = "resistor"

    component_id: str
    orientation: str
    x: float
    y: float
    length: float
    points: tuple[tuple[float, float], ...]
    label: str
    color: str

    def as_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "component_id": self.component_id,
            "orientation": self.orientation,
            "x": self.x,
            "y": self.y,
            "length": self.length,
            "points": [list(point) for point in self.points],
            "label": self.label,
            "color": self.color,
        }


@dataclass(frozen=True, slots=True)
class VoltageGlyph:
    kind: ClassVar[str] = "source"

    component_id: str
    orientation: str
    x: float
    y: float
    radius: float
    label: str
    color: str

    def as_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "component_id": self.component_id,
            "orientation": self.orientation,
            "x": self.x,
            "y": self.y,
            "radius": self.radius,
            "label": self.label,
            "color": self.color,
        }


@dataclass(frozen=True, slots=True)
class GroundSourceGlyph:
    kind: ClassVar[str] = "ground_source"

    component_id: str
    row: int
    col: int
    x: float
    y: float
    radius: float
    label: str
    color: str = SOURCELINE_COLOR

    def as_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "component_id": self.component_id,
            "row": self.row,
            "col": self.col,
            "x": self.x,
            "y": self.y,
            "radius": self.radius,
            "label": self.label,
            "color": self.color,
        }


Primitive = CellPrimitive | WirePrimitive | ResistorSegment | VoltageGlyph | GroundSourceGlyph


def _zigzag_points(
    x: float,
    y: float,
    length: float,
    orientation: str,
) -> tuple[tuple[float, float], ...]:
    half = length / 2
    local = [(0.0, -half), *_ZIGZAG, (0.0, half)]
    if orientation == HORIZONTAL:
        return tuple((x + along, y + across) for across, along in local)
    return tuple((x + across, y + along) for across, along in local)


def _cell_primitive(component: Component, position: GridPosition, geometry: LayoutGeometry) -> CellPrimitive:
    left = geometry.cell_left(position.col)
    top = geometry.cell_top(position.row)
    bitline, wordline, sourceline = (list(component.nodes) + [None, None, None])[:3]
    anchors = (
        Anchor("bitline", bitline, left + geometry.bitline_inset, top, BITLINE_COLOR),
        Anchor("wordline", wordline, left, top + geometry.wordline_inset, WORDLINE_COLOR),
        Anchor(
            "sourceline",
            sourceline,
            left + geometry.cell_width,
            top + geometry.cell_height - geometry.sourceline_inset,
            SOURCELINE_COLOR,
        ),
    )
    return CellPrimitive(
        component_id=component.id,
        row=position.row,
        col=position.col,
        x=left,
        y=top,
        width=geometry.cell_width,
        height=geometry.cell_height,
        anchors=anchors,
    )


def _resistor_segment(
    component: Component,
    position: GridPosition,
    geometry: LayoutGeometry,
) -> ResistorSegment:
    label = component.params.get("value", "R")
    if component.role is ComponentRole.BITLINE_RESISTOR:
        x = geometry.bitline_x(position.col)
        start = geometry.cell_top(position.row) + geometry.cell_height
        end = geometry.cell_top(position.row + 1)
        y = (start + end) / 2
        length = end - start
        return ResistorSegment(
            component_id=component.id,
            orientation=VERTICAL,
            x=x,
            y=y,
            length=length,
            points=_zigzag_points(x, y, length, VERTICAL),
            label=label,
            color=BITLINE_COLOR,
        )

    y = geometry.sourceline_y(position.row)
    start = geometry.cell_left(position.col) + geometry.cell_width
    end = geometry.cell_left(position.col + 1)
    x = (start + end) / 2
    length = end - start
    return ResistorSegment(
        component_id=component.id,
        orientation=HORIZONTAL,
        x=x,
        y=y,
        length=length,
        points=_zigzag_points(x, y, length, HORIZONTAL),
        label=label,
        color=SOURCELINE_COLOR,
    )


def _driver_primitives(component: Component, geometry: LayoutGeometry) -> list[Primitive]:
    role = component.role
    if role is ComponentRole.BITLINE_DRIVER and component.track is not None:
        x = geometry.bitline_x(component.track)
        y = geometry.margin_top - geometry.driver_offset
        return [
            VoltageGlyph(
                component_id=component.id,
                orientation=VERTICAL,
                x=x,
                y=y,
                radius=16,
                label=f"Vbl{component.track}",
                color=BITLINE_COLOR,
            ),
            WirePrimitive(
                x1=x,
                y1=y + geometry.driver_lead,
                x2=x,
                y2=geometry.margin_top,
                color=BITLINE_COLOR,
                dashed=True,
            ),
        ]

    if role is ComponentRole.WORDLINE_DRIVER and component.track is not None:
        x = geometry.margin_left - geometry.driver_offset
        y = geometry.wordline_y(component.track)
        return [
            VoltageGlyph(
                component_id=component.id,
                orientation=HORIZONTAL,
                x=x,
                y=y,
                radius=16,
                label=f"Vwl{component.track}",
                color=WORDLINE_COLOR,
            ),
            WirePrimitive(
                x1=x + geometry.driver_lead,
                y1=y,
                x2=geometry.margin_left,
                y2=y,
                color=WORDLINE_COLOR,
                dashed=True,
            ),
        ]

    if role is ComponentRole.SOURCELINE_DRIVER and component.grid_position is not None:
        position = component.grid_position
        center_x, center_y = geometry.cell_center(position.row, position.col)
        bottom = center_y + geometry.cell_height / 2
        y = bottom + geometry.ground_drop
        return [
            GroundSourceGlyph(
                component_id=component.id,
                row=position.row,
                col=position.col,
                x=center_x,
                y=y,
                radius=12,
                label="Vsl",
            ),
            WirePrimitive(
                x1=center_x,
                y1=y - geometry.driver_lead,
                x2=center_x,
                y2=bottom - geometry.sourceline_inset,
                color=SOURCELINE_COLOR,
                dashed=True,
            ),
        ]
    return []


def layout_component(component: Component, geometry: LayoutGeometry = DEFAULT_GEOMETRY) -> list[Primitive]:
    """Primitives for one component; empty when it has no placeable role."""
    role = component.role
    position = component.grid_position
    if role is ComponentRole.CELL and position is not None:
        return [_cell_primitive(component, position, geometry)]
    if role in {ComponentRole.BITLINE_RESISTOR, ComponentRole.SOURCELINE_RESISTOR} and position is not None:
        return [_resistor_segment(component, position, geometry)]
    return _driver_primitives(component, geometry)


def layout_circuit(circuit: Circuit, geometry: LayoutGeometry = DEFAULT_GEOMETRY) -> list[Primitive]:
    """Place every component of ``circuit``, in declaration order.

    The result depends only on the arguments; calling it twice on the same
    circuit yields equal lists.
    """
    primitives: list[Primitive] = []
    for component in circuit.components:
        primitives.extend(layout_component(component, geometry))
    return primitives


def canvas_size(circuit: Circuit, geometry: LayoutGeometry = DEFAULT_GEOMETRY) -> tuple[int, int]:
    dims = circuit.grid_dimensions
    width = geometry.margin_left + dims.cols * geometry.pitch_x + geometry.canvas_padding
    height = geometry.margin_top + dims.rows * geometry.pitch_y + geometry.canvas_padding
    return width, height


def layout_payload(circuit: Circuit, geometry: LayoutGeometry = DEFAULT_GEOMETRY) -> dict[str, Any]:
    width, height = canvas_size(circuit, geometry)
    primitives = layout_circuit(circuit, geometry)
    return {
        "width": width,
        "height": height,
        "grid_dimensions": circuit.grid_dimensions.as_dict(),
        "primitive_count": len(primitives),
        "primitives": [primitive.as_dict() for primitive in primitives],
    }
