from __future__ import annotations

import tempfile
import unittest
from pathlib import Path

from spicegrid import server


NETLIST = """X1_1 bl11 wl1 sl11 m11 CELL
Rint_bl_1_1 bl11 bl21 200
C_bl11 bl11 0 1f
Vwl1 wl1 0 pwl 0 0 1n 1.2 2n 1.2
Vbl1 bl10 0 0.3
G1 0 out CUR = 'I(Vwl1)'
"""


class TestServerState(unittest.TestCase):
    def setUp(self) -> None:
        self.temp_dir = Path(tempfile.mkdtemp(prefix="spicegrid_state_test_"))
        server._configure_server(workdir=self.temp_dir)

    def test_tools_require_a_loaded_netlist(self) -> None:
        with self.assertRaises(ValueError):
            server.getCircuitSummary()
        with self.assertRaises(ValueError):
            server.loadNetlist()
        with self.assertRaises(ValueError):
            server.loadNetlist(netlist_content=NETLIST, netlist_path="a.sp")

    def test_load_inline_and_inspect(self) -> None:
        result = server.loadNetlist(netlist_content=NETLIST)
        self.assertTrue(result["loaded"])
        self.assertEqual(len(result["warnings"]), 1)

        summary = server.getCircuitSummary()
        self.assertEqual(summary["grid_dimensions"], {"rows": 1, "cols": 1})
        self.assertEqual(summary["component_counts"]["VoltageSource"], 2)

        listed = server.listComponents(component_type="resistor")
        self.assertEqual([item["id"] for item in listed["components"]], ["Rint_bl_1_1"])
        with self.assertRaises(ValueError):
            server.listComponents(component_type="inductor")

        node = server.inspectNode("bl11")
        self.assertAlmostEqual(node["capacitance_ff"], 1.0)
        self.assertEqual(node["capacitance_display"], "1fF")
        self.assertEqual(node["connected_components"], ["X1_1", "Rint_bl_1_1"])

        component = server.inspectComponent("Rint_bl_1_1")
        self.assertEqual(component["linked_position"], {"row": 2, "col": 1})
        self.assertEqual([item["name"] for item in component["connected_nodes"]], ["bl11", "bl21"])
        with self.assertRaises(ValueError):
            server.inspectComponent("R404")

    def test_waveforms(self) -> None:
        server.loadNetlist(netlist_content=NETLIST)
        dc = server.getWaveform("Vbl1")
        self.assertEqual(dc["type"], "DC")
        self.assertAlmostEqual(dc["value"], 0.3)
        pwl = server.getWaveform("Vwl1", sample_points=3)
        self.assertEqual(pwl["type"], "PWL")
        self.assertEqual(len(pwl["points"]), 3)
        self.assertEqual(pwl["samples"][1], {"time": 1e-9, "voltage": 1.2})
        with self.assertRaises(ValueError):
            server.getWaveform("X1_1")

    def test_failed_parse_keeps_previous_model(self) -> None:
        server.loadNetlist(netlist_content=NETLIST)
        original = server.parse_netlist

        def explode(text: str, **_: object) -> None:
            raise RuntimeError("boom")

        try:
            server.parse_netlist = explode
            result = server.loadNetlist(netlist_content="R1 a b 1\n")
        finally:
            server.parse_netlist = original

        self.assertFalse(result["loaded"])
        self.assertTrue(result["kept_previous"])
        self.assertIn("boom", result["error"])
        self.assertEqual(server.getCircuitSummary()["component_count"], 4)
        self.assertIn("boom", server.getSpicegridStatus()["last_error"])

    def test_load_relative_path_and_render(self) -> None:
        (self.temp_dir / "array.sp").write_text(NETLIST, encoding="utf-8")
        result = server.loadNetlist(netlist_path="array.sp", suffix_policy="milli")
        self.assertTrue(result["loaded"])
        with self.assertRaises(FileNotFoundError):
            server.loadNetlist(netlist_path="missing.sp")

        layout = server.getLayout(include_primitives=False)
        self.assertNotIn("primitives", layout)
        self.assertEqual(layout["primitive_count"], 6)

        image = server.renderSchematicImage(selected_id="X1_1")
        self.assertFalse(image.isError)
        self.assertEqual(image.content[0].mimeType, "image/svg+xml")
        self.assertTrue(Path(image.structuredContent["image_path"]).name.endswith("_array.svg"))
        with self.assertRaises(ValueError):
            server.renderSchematicImage(selected_id="nope")

    def test_configure_preloads_netlist(self) -> None:
        path = self.temp_dir / "boot.sp"
        path.write_text(NETLIST, encoding="utf-8")
        server._configure_server(workdir=self.temp_dir, suffix_policy="mega", netlist_path=str(path))
        status = server.getSpicegridStatus()
        self.assertEqual(status["source"], str(path.resolve()))
        self.assertEqual(status["suffix_policy"], "mega")

        server._configure_server(workdir=self.temp_dir, netlist_path=str(self.temp_dir / "gone.sp"))
        self.assertIsNone(server.getSpicegridStatus()["summary"])
        self.assertIn("not found", server.getSpicegridStatus()["last_error"])


if __name__ == "__main__":
    unittest.main()
