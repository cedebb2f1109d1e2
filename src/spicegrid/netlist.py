from __future__ import annotations

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from .models import (
    Circuit,
    Component,
    ComponentRole,
    ComponentType,
    GridDimensions,
    GridPosition,
    Node,
    ParseWarning,
    is_ground_name,
)
from .textio import read_text_auto
from .values import SuffixPolicy, parse_literal, parse_value
from .waveform import extract_pwl, find_pwl_tokens, first_unparsed_token, resolve_parameters, substitute_parameters


_LOGGER = logging.getLogger(__name__)

COMMENT_MARKER = "*"
CELL_NODE_COUNT = 4

LINE_EMPTY = "empty"
LINE_COMMENT = "comment"
LINE_PARAM = "param"
LINE_CONTROL = "control"
LINE_ELEMENT = "element"

_INLINE_COMMENT_RE = re.compile(r"[$;]")
# A quoted or braced value is one binding even when it contains spaces.
_PARAM_BINDING_RE = re.compile(r"""([^\s=]+)\s*=\s*('[^']*'?|\{[^}]*\}?|"[^"]*"?|[^\s'"{]+)""")
_CELL_ID_RE = re.compile(r"^X(\d+)_(\d+)$", re.IGNORECASE)
_BL_RESISTOR_RE = re.compile(r"^Rint_bl_(\d+)_(\d+)$", re.IGNORECASE)
_SL_RESISTOR_RE = re.compile(r"^Rint_sl_(\d+)_(\d+)$", re.IGNORECASE)
_BL_DRIVER_RE = re.compile(r"^Vbl(\d+)", re.IGNORECASE)
_WL_DRIVER_RE = re.compile(r"^Vwl(\d+)", re.IGNORECASE)
_SL_DRIVER_PREFIX = "vsl"
# sl<row><col>: the final digit is the column.
_SL_NODE_RE = re.compile(r"^sl(\d+)(\d)$", re.IGNORECASE)
_RESISTANCE_KEYS = {"r", "res", "resistance"}


@dataclass(slots=True)
class ClassifiedLine:
    kind: str
    text: str
    tokens: list[str]

    @property
    def lead(self) -> str:
        if not self.tokens:
            return ""
        return self.tokens[0][:1].upper()


def classify_line(raw_line: str) -> ClassifiedLine:
    line = raw_line.strip()
    if not line:
        return ClassifiedLine(kind=LINE_EMPTY, text="", tokens=[])
    if line.startswith(COMMENT_MARKER):
        return ClassifiedLine(kind=LINE_COMMENT, text=line, tokens=[])

    cleaned = _INLINE_COMMENT_RE.split(line, maxsplit=1)[0].strip()
    if not cleaned:
        return ClassifiedLine(kind=LINE_COMMENT, text=line, tokens=[])
    tokens = cleaned.split()
    if cleaned.startswith("."):
        kind = LINE_PARAM if tokens[0].lower() == ".param" else LINE_CONTROL
        return ClassifiedLine(kind=kind, text=cleaned, tokens=tokens)
    return ClassifiedLine(kind=LINE_ELEMENT, text=cleaned, tokens=tokens)


def parse_param_card(text: str) -> dict[str, str]:
    """Bindings of one ``.PARAM`` card; ``a = 1`` and ``a=1 b=2`` are both accepted."""
    body = text.strip()
    if body.lower().startswith(".param"):
        body = body[len(".param") :]
    matches = list(_PARAM_BINDING_RE.finditer(body))
    bindings: dict[str, str] = {}
    for index, match in enumerate(matches):
        # Anything up to the next binding belongs to this value, e.g. `a + b`.
        end = matches[index + 1].start() if index + 1 < len(matches) else len(body)
        bindings[match.group(1)] = body[match.start(2) : end].strip()
    return bindings


def _parse_key_values(tokens: list[str]) -> dict[str, str]:
    params: dict[str, str] = {}
    for token in tokens:
        if "=" not in token or token.upper().startswith("PARAMS:"):
            continue
        key, value = token.split("=", 1)
        if key:
            params[key] = value
    return params


class _CircuitBuilder:
    def __init__(self, *, policy: SuffixPolicy) -> None:
        self.policy = policy
        self.components: list[Component] = []
        self.nodes: dict[str, Node] = {}
        self.parameters: dict[str, str] = {}
        self.warnings: list[ParseWarning] = []
        self.constants: dict[str, float] = {}
        self._max_row = 0
        self._max_col = 0

    def node(self, name: str) -> Node:
        node = self.nodes.get(name)
        if node is None:
            node = Node(name=name, is_ground=is_ground_name(name))
            self.nodes[name] = node
        return node

    def register_nodes(self, names: list[str]) -> None:
        for name in names:
            self.node(name)

    def add(self, component: Component) -> None:
        self.components.append(component)

    def warn(self, line_number: int, reason: str, text: str) -> None:
        self.warnings.append(ParseWarning(line_number=line_number, reason=reason, text=text))

    def observe_cell(self, position: GridPosition) -> None:
        self._max_row = max(self._max_row, position.row)
        self._max_col = max(self._max_col, position.col)

    def build(self) -> Circuit:
        return Circuit(
            components=self.components,
            nodes=self.nodes,
            grid_dimensions=GridDimensions(rows=self._max_row, cols=self._max_col),
            parameters=self.parameters,
            warnings=self.warnings,
        )


def _decode_array_cell(builder: _CircuitBuilder, line: ClassifiedLine, line_number: int) -> None:
    tokens = line.tokens
    name = tokens[0]
    if len(tokens) < 1 + CELL_NODE_COUNT:
        builder.warn(line_number, f"array cell '{name}' needs {CELL_NODE_COUNT} nodes", line.text)
        return

    nodes = tokens[1 : 1 + CELL_NODE_COUNT]
    builder.register_nodes(nodes)
    rest = tokens[1 + CELL_NODE_COUNT :]
    params = _parse_key_values(rest)
    if rest and "=" not in rest[0]:
        params["model"] = rest[0]

    position: GridPosition | None = None
    match = _CELL_ID_RE.match(name)
    if match:
        position = GridPosition(row=int(match.group(1)), col=int(match.group(2)))
        builder.observe_cell(position)
    else:
        builder.warn(line_number, f"array cell '{name}' does not encode a grid position", line.text)

    builder.add(
        Component(
            id=name,
            type=ComponentType.ARRAY_CELL,
            nodes=tuple(nodes),
            params=params,
            raw_line=line.text,
            line_number=line_number,
            grid_position=position,
            role=ComponentRole.CELL if position else None,
        )
    )


def _resistor_role(name: str) -> tuple[ComponentRole | None, GridPosition | None, int | None]:
    match = _BL_RESISTOR_RE.match(name)
    if match:
        row, col = int(match.group(1)), int(match.group(2))
        return ComponentRole.BITLINE_RESISTOR, GridPosition(row, col), col
    match = _SL_RESISTOR_RE.match(name)
    if match:
        row, col = int(match.group(1)), int(match.group(2))
        return ComponentRole.SOURCELINE_RESISTOR, GridPosition(row, col), row
    return None, None, None


def _decode_resistor(builder: _CircuitBuilder, line: ClassifiedLine, line_number: int) -> None:
    tokens = line.tokens
    name = tokens[0]
    if len(tokens) < 3:
        builder.warn(line_number, f"resistor '{name}' needs 2 nodes", line.text)
        return

    nodes = tokens[1:3]
    builder.register_nodes(nodes)
    rest = tokens[3:]
    params = _parse_key_values(rest)
    bare = [token for token in rest if "=" not in token]
    value_text: str | None = bare[0] if bare else None
    if value_text is None:
        for key, raw in params.items():
            if key.lower() in _RESISTANCE_KEYS:
                value_text = raw
                break
    if value_text is None:
        builder.warn(line_number, f"resistor '{name}' has no value", line.text)
    else:
        params["value"] = value_text

    role, position, track = _resistor_role(name)
    builder.add(
        Component(
            id=name,
            type=ComponentType.RESISTOR,
            nodes=tuple(nodes),
            params=params,
            raw_line=line.text,
            line_number=line_number,
            value=(
                parse_value(value_text, resistance=True, policy=builder.policy)
                if value_text is not None
                else None
            ),
            grid_position=position,
            role=role,
            track=track,
        )
    )


def _decode_capacitor(builder: _CircuitBuilder, line: ClassifiedLine, line_number: int) -> None:
    tokens = line.tokens
    name = tokens[0]
    if len(tokens) < 3:
        builder.warn(line_number, f"capacitor '{name}' needs 2 nodes", line.text)
        return

    first = builder.node(tokens[1])
    second = builder.node(tokens[2])
    value_text = tokens[3] if len(tokens) > 3 else None
    farads = parse_value(value_text, policy=builder.policy)

    if first.is_ground and second.is_ground:
        builder.warn(line_number, f"capacitor '{name}' has both terminals grounded", line.text)
        return
    if second.is_ground:
        first.add_capacitance(farads)
        return
    if first.is_ground:
        second.add_capacitance(farads)
        return

    params = _parse_key_values(tokens[4:])
    if value_text is not None:
        params["value"] = value_text
    builder.add(
        Component(
            id=name,
            type=ComponentType.CAPACITOR,
            nodes=(first.name, second.name),
            params=params,
            raw_line=line.text,
            line_number=line_number,
            value=farads,
        )
    )


def _source_role(
    builder: _CircuitBuilder,
    name: str,
    nodes: list[str],
    line: ClassifiedLine,
    line_number: int,
) -> tuple[ComponentRole | None, GridPosition | None, int | None]:
    match = _BL_DRIVER_RE.match(name)
    if match:
        return ComponentRole.BITLINE_DRIVER, None, int(match.group(1))
    match = _WL_DRIVER_RE.match(name)
    if match:
        return ComponentRole.WORDLINE_DRIVER, None, int(match.group(1))
    if name.lower().startswith(_SL_DRIVER_PREFIX):
        node_match = _SL_NODE_RE.match(nodes[0])
        if node_match:
            position = GridPosition(row=int(node_match.group(1)), col=int(node_match.group(2)))
            return ComponentRole.SOURCELINE_DRIVER, position, None
        builder.warn(
            line_number,
            f"source-line driver '{name}' node '{nodes[0]}' does not encode a cell",
            line.text,
        )
    return None, None, None


def _decode_voltage_source(builder: _CircuitBuilder, line: ClassifiedLine, line_number: int) -> None:
    tokens = line.tokens
    name = tokens[0]
    if len(tokens) < 3:
        builder.warn(line_number, f"voltage source '{name}' needs 2 nodes", line.text)
        return

    nodes = tokens[1:3]
    builder.register_nodes(nodes)
    rest = tokens[3:]
    params = _parse_key_values(rest)
    value: float | None = None
    waveform = None

    pwl_tokens = find_pwl_tokens(rest)
    if pwl_tokens is not None:
        resolved = substitute_parameters(pwl_tokens, builder.constants)
        points = extract_pwl(resolved)
        stopped_at = first_unparsed_token(resolved, points)
        if stopped_at is not None:
            builder.warn(
                line_number,
                f"pwl waveform of '{name}' truncated at unresolved token '{stopped_at}'",
                line.text,
            )
        params["type"] = "PWL"
        waveform = tuple(points)
    else:
        params["type"] = "DC"
        bare = [token for token in rest if "=" not in token]
        if bare and bare[0].lower() == "dc":
            bare = bare[1:]
        if bare:
            level = parse_literal(bare[0], policy=builder.policy)
            if level is not None:
                params["value"] = bare[0]
                value = level

    role, position, track = _source_role(builder, name, nodes, line, line_number)
    builder.add(
        Component(
            id=name,
            type=ComponentType.VOLTAGE_SOURCE,
            nodes=tuple(nodes),
            params=params,
            raw_line=line.text,
            line_number=line_number,
            value=value,
            waveform=waveform,
            grid_position=position,
            role=role,
            track=track,
        )
    )


def _skip_behavioral_source(builder: _CircuitBuilder, line: ClassifiedLine, line_number: int) -> None:
    builder.warn(line_number, f"behavioral source '{line.tokens[0]}' is not supported", line.text)


_Decoder = Callable[[_CircuitBuilder, ClassifiedLine, int], None]

_DECODERS: dict[str, _Decoder] = {
    "X": _decode_array_cell,
    "R": _decode_resistor,
    "C": _decode_capacitor,
    "V": _decode_voltage_source,
    "G": _skip_behavioral_source,
}


def parse_netlist(
    text: str,
    *,
    suffix_policy: SuffixPolicy | str = SuffixPolicy.CONTEXT,
) -> Circuit:
    """Parse crossbar netlist text into a :class:`Circuit`.

    Parsing never aborts on bad input: lines that cannot be decoded are
    skipped and reported in ``Circuit.warnings``. ``.PARAM`` cards are read
    before any element so waveform breakpoints can refer to constants declared
    later in the file.
    """
    policy = SuffixPolicy.parse(suffix_policy)
    builder = _CircuitBuilder(policy=policy)
    classified = [
        (line_number, classify_line(raw_line))
        for line_number, raw_line in enumerate(text.splitlines(), start=1)
    ]

    for _, line in classified:
        if line.kind == LINE_PARAM:
            builder.parameters.update(parse_param_card(line.text))
    builder.constants = resolve_parameters(builder.parameters, policy=policy)

    for line_number, line in classified:
        if line.kind != LINE_ELEMENT:
            continue
        decoder = _DECODERS.get(line.lead)
        if decoder is None:
            builder.warn(line_number, f"unsupported element '{line.tokens[0]}'", line.text)
            continue
        decoder(builder, line, line_number)

    circuit = builder.build()
    _LOGGER.debug(
        "parsed netlist: %s components, %s nodes, grid %sx%s, %s warnings",
        len(circuit.components),
        len(circuit.nodes),
        circuit.grid_dimensions.rows,
        circuit.grid_dimensions.cols,
        len(circuit.warnings),
    )
    return circuit


def parse_netlist_file(
    path: str | Path,
    *,
    suffix_policy: SuffixPolicy | str = SuffixPolicy.CONTEXT,
) -> Circuit:
    netlist_path = Path(path).expanduser().resolve()
    if not netlist_path.exists():
        raise FileNotFoundError(f"Netlist not found: {netlist_path}")
    return parse_netlist(read_text_auto(netlist_path), suffix_policy=suffix_policy)
