from __future__ import annotations

import argparse
import base64
import json
import logging
import os
from pathlib import Path
from typing import Any

import mcp.types as types
from mcp.server.fastmcp import FastMCP

from .layout import layout_payload
from .models import Circuit, Component, ComponentType, Node
from .netlist import parse_netlist
from .textio import read_text_auto
from .values import SuffixPolicy, format_engineering
from .visualization import render_schematic_svg
from .waveform import sample_waveform, waveform_bounds


_LOGGER = logging.getLogger(__name__)

mcp = FastMCP("spicegrid")


def _read_env_policy(name: str, default: SuffixPolicy = SuffixPolicy.CONTEXT) -> SuffixPolicy:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return SuffixPolicy.parse(raw)
    except ValueError:
        _LOGGER.warning("Ignoring invalid %s=%r; using '%s'", name, raw, default.value)
        return default


_DEFAULT_WORKDIR = Path(os.getenv("SPICEGRID_WORKDIR", os.getcwd()))
_DEFAULT_NETLIST = os.getenv("SPICEGRID_NETLIST")
_DEFAULT_SUFFIX_POLICY = _read_env_policy("SPICEGRID_SUFFIX_POLICY")

_workdir: Path = _DEFAULT_WORKDIR
_suffix_policy: SuffixPolicy = _DEFAULT_SUFFIX_POLICY
_circuit: Circuit | None = None
_circuit_source: str | None = None
_last_error: str | None = None


def _resolve_circuit() -> Circuit:
    if _circuit is None:
        raise ValueError("No netlist has been loaded yet. Call loadNetlist first.")
    return _circuit


def _resolve_component(component_id: str) -> Component:
    try:
        return _resolve_circuit().get_component(component_id)
    except KeyError as exc:
        raise ValueError(f"Unknown component_id '{component_id}'") from exc


def _resolve_node(name: str) -> Node:
    try:
        return _resolve_circuit().get_node(name)
    except KeyError as exc:
        raise ValueError(f"Unknown node '{name}'") from exc


def _state_payload() -> dict[str, Any]:
    return {
        "source": _circuit_source,
        "suffix_policy": _suffix_policy.value,
        "last_error": _last_error,
        "summary": _circuit.summary() if _circuit is not None else None,
    }


def _load_into_state(text: str, *, source: str, policy: SuffixPolicy) -> dict[str, Any]:
    """Parse ``text`` and swap it in; on failure the previous model stays active."""
    global _circuit, _circuit_source, _last_error
    try:
        circuit = parse_netlist(text, suffix_policy=policy)
    except Exception as exc:
        _last_error = f"{type(exc).__name__}: {exc}"
        _LOGGER.exception("Netlist parse failed for %s; keeping previous model", source)
        return {
            "loaded": False,
            "error": _last_error,
            "kept_previous": _circuit is not None,
            **_state_payload(),
        }

    _circuit = circuit
    _circuit_source = source
    _last_error = None
    _LOGGER.info(
        "Loaded netlist %s: %s components, %s nodes, %s warnings",
        source,
        len(circuit.components),
        len(circuit.nodes),
        len(circuit.warnings),
    )
    return {
        "loaded": True,
        "kept_previous": False,
        **_state_payload(),
        "warnings": [warning.as_dict() for warning in circuit.warnings],
    }


def _image_tool_result(payload: dict[str, Any]) -> types.CallToolResult:
    image_path = payload.get("image_path")
    if not image_path:
        raise ValueError("image payload missing image_path")
    path = Path(str(image_path)).expanduser().resolve()
    if not path.exists():
        raise FileNotFoundError(f"image_path does not exist: {path}")

    data_b64 = base64.b64encode(path.read_bytes()).decode("ascii")
    content: list[types.TextContent | types.ImageContent] = [
        types.ImageContent(type="image", mimeType="image/svg+xml", data=data_b64),
        types.TextContent(type="text", text=json.dumps(payload, indent=2)),
    ]
    return types.CallToolResult(content=content, structuredContent=payload, isError=False)


@mcp.tool()
def getSpicegridStatus() -> dict[str, Any]:
    """Report the active netlist, suffix policy and last load error."""
    return {"workdir": str(_workdir), **_state_payload()}


@mcp.tool()
def loadNetlist(
    netlist_content: str | None = None,
    netlist_path: str | None = None,
    suffix_policy: str | None = None,
) -> dict[str, Any]:
    """Parse a crossbar netlist from inline text or a file and make it the active model.

    If parsing fails the previously loaded model is kept and the error is
    reported in the result.
    """
    if (netlist_content is None) == (netlist_path is None):
        raise ValueError("Provide exactly one of netlist_content or netlist_path.")
    policy = _suffix_policy if suffix_policy is None else SuffixPolicy.parse(suffix_policy)

    if netlist_path is not None:
        path = Path(netlist_path).expanduser()
        if not path.is_absolute():
            path = _workdir / path
        path = path.resolve()
        if not path.exists():
            raise FileNotFoundError(f"Netlist not found: {path}")
        return _load_into_state(read_text_auto(path), source=str(path), policy=policy)
    return _load_into_state(str(netlist_content), source="<inline>", policy=policy)


@mcp.tool()
def getCircuitSummary() -> dict[str, Any]:
    """Counts, grid dimensions and .PARAM table of the active model."""
    circuit = _resolve_circuit()
    return {
        "source": _circuit_source,
        **circuit.summary(),
        "parameters": dict(circuit.parameters),
    }


@mcp.tool()
def listComponents(component_type: str | None = None, placed_only: bool = False) -> dict[str, Any]:
    """List components in declaration order, optionally filtered by type."""
    circuit = _resolve_circuit()
    components = circuit.components
    if component_type:
        valid = {kind.value.lower(): kind for kind in ComponentType}
        kind = valid.get(component_type.strip().lower())
        if kind is None:
            raise ValueError(f"component_type must be one of: {', '.join(item.value for item in ComponentType)}")
        components = circuit.components_of_type(kind)
    if placed_only:
        components = [component for component in components if component.role is not None]
    return {
        "count": len(components),
        "components": [
            {
                "id": component.id,
                "type": component.type.value,
                "role": component.role.value if component.role else None,
                "nodes": list(component.nodes),
            }
            for component in components
        ],
    }


@mcp.tool()
def inspectComponent(component_id: str) -> dict[str, Any]:
    """Full record of one component, including its connected nodes."""
    component = _resolve_component(component_id)
    circuit = _resolve_circuit()
    payload = component.as_dict()
    payload["connected_nodes"] = [circuit.nodes[name].as_dict() for name in component.nodes]
    return payload


@mcp.tool()
def inspectNode(name: str) -> dict[str, Any]:
    """Parasitic capacitance to ground and the components touching a node."""
    node = _resolve_node(name)
    circuit = _resolve_circuit()
    return {
        **node.as_dict(),
        "capacitance_ff": node.capacitance / 1e-15,
        "capacitance_display": format_engineering(node.capacitance, "F"),
        "connected_components": [
            component.id for component in circuit.components if name in component.nodes
        ],
    }


@mcp.tool()
def getWaveform(component_id: str, sample_points: int | None = None) -> dict[str, Any]:
    """Breakpoints of a voltage source, optionally resampled on a uniform time grid."""
    component = _resolve_component(component_id)
    if component.type is not ComponentType.VOLTAGE_SOURCE:
        raise ValueError(f"'{component_id}' is a {component.type.value}, not a VoltageSource")

    if not component.is_waveform:
        return {
            "component_id": component.id,
            "type": "DC",
            "value": component.value,
            "points": [],
        }

    points = list(component.waveform)
    payload: dict[str, Any] = {
        "component_id": component.id,
        "type": "PWL",
        "points": [point.as_dict() for point in points],
        "bounds": waveform_bounds(points),
    }
    if sample_points is not None:
        payload["samples"] = [point.as_dict() for point in sample_waveform(points, sample_points)]
    return payload


@mcp.tool()
def listParseWarnings(limit: int = 200) -> dict[str, Any]:
    """Lines that were skipped or only partly decoded in the active netlist."""
    circuit = _resolve_circuit()
    warnings = circuit.warnings[: max(0, limit)]
    return {
        "total": len(circuit.warnings),
        "warnings": [warning.as_dict() for warning in warnings],
    }


@mcp.tool()
def getLayout(include_primitives: bool = True) -> dict[str, Any]:
    """Placed schematic primitives and canvas size for the active model."""
    payload = layout_payload(_resolve_circuit())
    if not include_primitives:
        payload.pop("primitives")
    return payload


@mcp.tool()
def renderSchematicImage(
    selected_id: str | None = None,
    output_path: str | None = None,
    downscale_factor: float = 1.0,
) -> types.CallToolResult:
    """Render the crossbar schematic to SVG, highlighting selected_id when given."""
    circuit = _resolve_circuit()
    if selected_id is not None:
        _resolve_component(selected_id)
    name = Path(_circuit_source).stem if _circuit_source and _circuit_source != "<inline>" else "crossbar"
    payload = render_schematic_svg(
        workdir=_workdir,
        circuit=circuit,
        name=name,
        selected_id=selected_id,
        output_path=output_path,
        downscale_factor=downscale_factor,
    )
    return _image_tool_result(payload)


def _configure_server(
    *,
    workdir: Path,
    suffix_policy: SuffixPolicy | str | None = None,
    netlist_path: str | None = None,
) -> None:
    global _workdir, _suffix_policy, _circuit, _circuit_source, _last_error
    _workdir = workdir
    _suffix_policy = (
        _DEFAULT_SUFFIX_POLICY if suffix_policy is None else SuffixPolicy.parse(suffix_policy)
    )
    _circuit = None
    _circuit_source = None
    _last_error = None
    if not netlist_path:
        return
    path = Path(netlist_path).expanduser().resolve()
    if not path.exists():
        _LOGGER.warning("Preload netlist not found: %s", path)
        _last_error = f"Netlist not found: {path}"
        return
    _load_into_state(read_text_auto(path), source=str(path), policy=_suffix_policy)


_configure_server(workdir=_DEFAULT_WORKDIR, netlist_path=_DEFAULT_NETLIST)


def main() -> None:
    parser = argparse.ArgumentParser(description="MCP server for crossbar netlist inspection and layout")
    parser.add_argument(
        "--workdir",
        default=os.getenv("SPICEGRID_WORKDIR", os.getcwd()),
        help="Directory for relative netlist paths and rendered images",
    )
    parser.add_argument(
        "--netlist",
        default=_DEFAULT_NETLIST,
        help="Netlist file to load at startup",
    )
    parser.add_argument(
        "--suffix-policy",
        default=_DEFAULT_SUFFIX_POLICY.value,
        choices=[policy.value for policy in SuffixPolicy],
        help="How a bare 'm' suffix is read: milli, mega, or context (mega for resistances)",
    )
    parser.add_argument(
        "--log-level",
        default=os.getenv("SPICEGRID_LOG_LEVEL", "WARNING"),
        help="Python logging level",
    )
    parser.add_argument(
        "--transport",
        default="stdio",
        choices=["stdio", "sse"],
        help="MCP transport",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    _configure_server(
        workdir=Path(args.workdir).expanduser().resolve(),
        suffix_policy=args.suffix_policy,
        netlist_path=args.netlist,
    )
    mcp.run(transport=args.transport)


if __name__ == "__main__":
    main()
