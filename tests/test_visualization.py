from __future__ import annotations

import tempfile
import unittest
from pathlib import Path

from spicegrid.layout import layout_circuit
from spicegrid.netlist import parse_netlist
from spicegrid.visualization import render_layout_svg, render_schematic_svg


NETLIST = """* 2x2 crossbar
X1_1 bl11 wl1 sl11 m11 CELL
X1_2 bl12 wl1 sl12 m12 CELL
X2_1 bl21 wl2 sl21 m21 CELL
X2_2 bl22 wl2 sl22 m22 CELL
Rint_bl_1_1 bl11 bl21 200
Rint_sl_1_1 sl11 sl12 200
Vbl1 bl10 0 pwl 0 0 1n 0.3
Vwl1 wl1 0 1.2
Vsl1 sl21 0 0
"""


class TestVisualization(unittest.TestCase):
    def setUp(self) -> None:
        self.temp_dir = Path(tempfile.mkdtemp(prefix="spicegrid_visual_test_"))
        self.circuit = parse_netlist(NETLIST)

    def test_render_layout_svg_groups_by_component(self) -> None:
        svg = render_layout_svg(layout_circuit(self.circuit), width=480, height=440)
        self.assertTrue(svg.startswith("<svg"))
        for component in self.circuit.components:
            self.assertIn(f'<g id="{component.id}">', svg)
        self.assertIn('data-node="bl11"', svg)
        self.assertIn("stroke-dasharray", svg)

    def test_selected_component_is_highlighted(self) -> None:
        primitives = layout_circuit(self.circuit)
        plain = render_layout_svg(primitives, width=480, height=440)
        selected = render_layout_svg(primitives, width=480, height=440, selected_id="X2_2")
        self.assertNotEqual(plain, selected)
        self.assertIn('stroke="#3b82f6" stroke-width="3"', selected)

    def test_render_schematic_svg_writes_file(self) -> None:
        result = render_schematic_svg(workdir=self.temp_dir, circuit=self.circuit, name="demo crossbar")
        path = Path(result["image_path"])
        self.assertTrue(path.exists())
        self.assertEqual(path.parent, (self.temp_dir / "images" / "schematics").resolve())
        self.assertTrue(path.name.endswith("_demo_crossbar.svg"))
        self.assertEqual(result["format"], "svg")
        self.assertEqual((result["canvas_width"], result["canvas_height"]), (480, 440))
        self.assertEqual(result["grid_dimensions"], {"rows": 2, "cols": 2})
        self.assertIn("<svg", path.read_text(encoding="utf-8"))

    def test_downscale_and_explicit_output(self) -> None:
        target = self.temp_dir / "out" / "small.svg"
        result = render_schematic_svg(
            workdir=self.temp_dir,
            circuit=self.circuit,
            output_path=str(target),
            downscale_factor=0.5,
        )
        self.assertEqual(Path(result["image_path"]), target.resolve())
        self.assertEqual((result["width"], result["height"]), (240, 220))
        with self.assertRaises(ValueError):
            render_schematic_svg(workdir=self.temp_dir, circuit=self.circuit, downscale_factor=0)


if __name__ == "__main__":
    unittest.main()
