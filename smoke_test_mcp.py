#!/usr/bin/env python3
from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any

import anyio
from mcp.client.session import ClientSession
from mcp.client.stdio import StdioServerParameters, stdio_client


DEFAULT_NETLIST = Path(__file__).resolve().parent / "tests" / "fixtures" / "netlists" / "crossbar_4x4.sp"


def _extract_call_result(payload: Any) -> Any:
    structured = getattr(payload, "structuredContent", None)
    if structured is not None:
        if isinstance(structured, dict) and "result" in structured:
            return structured["result"]
        return structured

    content = getattr(payload, "content", None) or []
    for item in content:
        text = getattr(item, "text", None)
        if text is None:
            continue
        try:
            return json.loads(text)
        except json.JSONDecodeError:
            return text
    return None


def _require(condition: bool, message: str) -> None:
    if not condition:
        raise AssertionError(message)


async def _run_smoke_test(args: argparse.Namespace) -> None:
    workdir = Path(args.workdir).expanduser().resolve()
    workdir.mkdir(parents=True, exist_ok=True)
    netlist_path = Path(args.netlist).expanduser().resolve()
    _require(netlist_path.exists(), f"Netlist not found: {netlist_path}")

    server_params = StdioServerParameters(
        command=args.server_command,
        args=["--transport", "stdio", "--workdir", str(workdir)],
        cwd=str(Path(args.server_cwd).expanduser().resolve()),
    )

    async with stdio_client(server_params) as (read_stream, write_stream):
        async with ClientSession(read_stream, write_stream) as session:
            init = await session.initialize()
            print(f"Connected to {init.serverInfo.name} {init.serverInfo.version}")

            tools_result = await session.list_tools()
            tool_names = {tool.name for tool in tools_result.tools}
            required_tools = {
                "loadNetlist",
                "getCircuitSummary",
                "inspectComponent",
                "inspectNode",
                "getWaveform",
                "getLayout",
                "renderSchematicImage",
            }
            missing_tools = required_tools - tool_names
            _require(not missing_tools, f"Missing required tools: {sorted(missing_tools)}")
            print(f"Tool check passed ({len(tool_names)} tools)")

            loaded = _extract_call_result(
                await session.call_tool("loadNetlist", {"netlist_path": str(netlist_path)})
            )
            _require(isinstance(loaded, dict), "loadNetlist did not return an object")
            _require(loaded.get("loaded") is True, f"Load failed: {loaded}")
            print(f"Load passed ({len(loaded.get('warnings', []))} warnings)")

            summary = _extract_call_result(await session.call_tool("getCircuitSummary", {}))
            _require(isinstance(summary, dict), "getCircuitSummary did not return an object")
            dims = summary.get("grid_dimensions", {})
            _require(dims.get("rows", 0) > 0 and dims.get("cols", 0) > 0, f"Empty grid: {dims}")
            print(f"Summary passed ({dims['rows']}x{dims['cols']}, {summary['component_count']} components)")

            cell = _extract_call_result(await session.call_tool("inspectComponent", {"component_id": "X1_1"}))
            _require(isinstance(cell, dict) and cell.get("type") == "ArrayCell", f"Unexpected X1_1: {cell}")
            node = _extract_call_result(await session.call_tool("inspectNode", {"name": cell["nodes"][0]}))
            _require(isinstance(node, dict), "inspectNode did not return an object")
            print(f"Node {node['name']} capacitance: {node['capacitance_display']}")

            waveform = _extract_call_result(
                await session.call_tool("getWaveform", {"component_id": "Vwl1", "sample_points": 8})
            )
            _require(isinstance(waveform, dict) and waveform.get("type") == "PWL", f"Unexpected Vwl1: {waveform}")
            _require(len(waveform.get("samples", [])) == 8, "Expected 8 waveform samples")
            print(f"Waveform passed ({len(waveform['points'])} breakpoints)")

            layout = _extract_call_result(await session.call_tool("getLayout", {"include_primitives": False}))
            _require(isinstance(layout, dict) and layout.get("primitive_count", 0) > 0, "Layout is empty")
            print(f"Layout passed ({layout['primitive_count']} primitives)")

            image = await session.call_tool("renderSchematicImage", {"selected_id": "X1_1"})
            _require(not image.isError, f"renderSchematicImage failed: {image}")
            image_payload = _extract_call_result(image)
            _require(isinstance(image_payload, dict), "renderSchematicImage returned no payload")
            image_path = Path(str(image_payload.get("image_path", "")))
            _require(image_path.exists(), f"Rendered image missing: {image_path}")
            print(f"Render passed ({image_path})")

    print("MCP smoke test passed")


def main() -> int:
    parser = argparse.ArgumentParser(
        description="End-to-end smoke test for spicegrid via MCP stdio transport"
    )
    parser.add_argument(
        "--server-command",
        default="spicegrid-mcp",
        help="Command used to launch the MCP server",
    )
    parser.add_argument(
        "--server-cwd",
        default=str(Path(__file__).resolve().parent),
        help="Working directory for launching the server",
    )
    parser.add_argument(
        "--workdir",
        default=str((Path(__file__).resolve().parent / ".tmp_smoke").resolve()),
        help="Server workdir used during the smoke test",
    )
    parser.add_argument(
        "--netlist",
        default=str(DEFAULT_NETLIST),
        help="Crossbar netlist to load",
    )
    args = parser.parse_args()

    try:
        anyio.run(_run_smoke_test, args)
        return 0
    except Exception as exc:
        print(f"Smoke test failed: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
