from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any


def is_ground_name(name: str) -> bool:
    return name == "0" or name.lower() == "gnd"


class ComponentType(str, Enum):
    ARRAY_CELL = "ArrayCell"
    RESISTOR = "Resistor"
    CAPACITOR = "Capacitor"
    VOLTAGE_SOURCE = "VoltageSource"


class ComponentRole(str, Enum):
    """Placement role of a component inside the crossbar drawing."""

    CELL = "cell"
    BITLINE_RESISTOR = "bitline_resistor"
    SOURCELINE_RESISTOR = "sourceline_resistor"
    BITLINE_DRIVER = "bitline_driver"
    WORDLINE_DRIVER = "wordline_driver"
    SOURCELINE_DRIVER = "sourceline_driver"


@dataclass(frozen=True, slots=True)
class GridPosition:
    row: int
    col: int

    def as_dict(self) -> dict[str, int]:
        return {"row": self.row, "col": self.col}


@dataclass(frozen=True, slots=True)
class PwlPoint:
    time: float
    voltage: float

    def as_dict(self) -> dict[str, float]:
        return {"time": self.time, "voltage": self.voltage}


@dataclass(slots=True)
class Node:
    name: str
    capacitance: float = 0.0
    is_ground: bool = False

    def add_capacitance(self, farads: float) -> None:
        self.capacitance += farads

    def as_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "capacitance": self.capacitance,
            "is_ground": self.is_ground,
        }


@dataclass(frozen=True, slots=True)
class Component:
    id: str
    type: ComponentType
    nodes: tuple[str, ...]
    params: Mapping[str, str] = field(default_factory=dict)
    raw_line: str = ""
    line_number: int = 0
    value: float | None = None
    waveform: tuple[PwlPoint, ...] | None = None
    grid_position: GridPosition | None = None
    role: ComponentRole | None = None
    track: int | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "params", MappingProxyType(dict(self.params)))

    @property
    def is_waveform(self) -> bool:
        return self.waveform is not None

    @property
    def linked_position(self) -> GridPosition | None:
        """Second cell joined by an internal line resistor."""
        if self.grid_position is None:
            return None
        row, col = self.grid_position.row, self.grid_position.col
        if self.role is ComponentRole.BITLINE_RESISTOR:
            return GridPosition(row + 1, col)
        if self.role is ComponentRole.SOURCELINE_RESISTOR:
            return GridPosition(row, col + 1)
        return None

    def as_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "id": self.id,
            "type": self.type.value,
            "nodes": list(self.nodes),
            "params": dict(self.params),
            "raw_line": self.raw_line,
            "line_number": self.line_number,
            "role": self.role.value if self.role else None,
        }
        if self.value is not None:
            payload["value"] = self.value
        if self.waveform is not None:
            payload["waveform"] = [point.as_dict() for point in self.waveform]
        if self.grid_position is not None:
            payload["grid_position"] = self.grid_position.as_dict()
        linked = self.linked_position
        if linked is not None:
            payload["linked_position"] = linked.as_dict()
        if self.track is not None:
            payload["track"] = self.track
        return payload


@dataclass(slots=True)
class ParseWarning:
    line_number: int
    reason: str
    text: str

    def as_dict(self) -> dict[str, Any]:
        return {"line_number": self.line_number, "reason": self.reason, "text": self.text}


@dataclass(frozen=True, slots=True)
class GridDimensions:
    rows: int = 0
    cols: int = 0

    @property
    def is_empty(self) -> bool:
        return self.rows == 0 or self.cols == 0

    def as_dict(self) -> dict[str, int]:
        return {"rows": self.rows, "cols": self.cols}


@dataclass(slots=True)
class Circuit:
    components: list[Component] = field(default_factory=list)
    nodes: dict[str, Node] = field(default_factory=dict)
    grid_dimensions: GridDimensions = field(default_factory=GridDimensions)
    parameters: dict[str, str] = field(default_factory=dict)
    warnings: list[ParseWarning] = field(default_factory=list)

    def get_component(self, component_id: str) -> Component:
        for component in self.components:
            if component.id == component_id:
                return component
        raise KeyError(f"Unknown component '{component_id}'")

    def get_node(self, name: str) -> Node:
        node = self.nodes.get(name)
        if node is None:
            raise KeyError(f"Unknown node '{name}'")
        return node

    def components_of_type(self, component_type: ComponentType) -> list[Component]:
        return [component for component in self.components if component.type is component_type]

    def summary(self) -> dict[str, Any]:
        counts: dict[str, int] = {kind.value: 0 for kind in ComponentType}
        for component in self.components:
            counts[component.type.value] += 1
        return {
            "component_count": len(self.components),
            "node_count": len(self.nodes),
            "grid_dimensions": self.grid_dimensions.as_dict(),
            "component_counts": counts,
            "parameter_count": len(self.parameters),
            "warning_count": len(self.warnings),
        }

    def as_dict(self) -> dict[str, Any]:
        return {
            "components": [component.as_dict() for component in self.components],
            "nodes": {name: node.as_dict() for name, node in self.nodes.items()},
            "grid_dimensions": self.grid_dimensions.as_dict(),
            "parameters": dict(self.parameters),
            "warnings": [warning.as_dict() for warning in self.warnings],
        }
