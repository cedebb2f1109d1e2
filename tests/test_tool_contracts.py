from __future__ import annotations

import inspect
import unittest

import mcp.types as types
from pydantic import ValidationError

from spicegrid import server


TOOL_NAMES = (
    "getSpicegridStatus",
    "loadNetlist",
    "getCircuitSummary",
    "listComponents",
    "inspectComponent",
    "inspectNode",
    "getWaveform",
    "listParseWarnings",
    "getLayout",
    "renderSchematicImage",
)


class TestToolContracts(unittest.TestCase):
    def _tool(self, name: str):
        tool = server.mcp._tool_manager.get_tool(name)  # type: ignore[attr-defined]
        self.assertIsNotNone(tool, name)
        return tool

    def test_all_tools_registered(self) -> None:
        for name in TOOL_NAMES:
            self._tool(name)

    def test_render_tool_returns_calltoolresult(self) -> None:
        sig = inspect.signature(server.renderSchematicImage)
        self.assertIn(sig.return_annotation, (types.CallToolResult, "types.CallToolResult"))

    def test_load_schema_exposes_both_sources(self) -> None:
        props = self._tool("loadNetlist").parameters.get("properties", {})
        self.assertEqual(set(props), {"netlist_content", "netlist_path", "suffix_policy"})

    def test_arguments_are_validated(self) -> None:
        tool = self._tool("getWaveform")
        with self.assertRaises(ValidationError):
            tool.fn_metadata.arg_model.model_validate({"component_id": "Vbl1", "sample_points": "many"})
        with self.assertRaises(ValidationError):
            tool.fn_metadata.arg_model.model_validate({})


if __name__ == "__main__":
    unittest.main()
