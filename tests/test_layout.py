from __future__ import annotations

import unittest
from pathlib import Path

from spicegrid.layout import (
    BITLINE_COLOR,
    HORIZONTAL,
    VERTICAL,
    CellPrimitive,
    GroundSourceGlyph,
    ResistorSegment,
    VoltageGlyph,
    WirePrimitive,
    canvas_size,
    layout_circuit,
    layout_payload,
)
from spicegrid.netlist import parse_netlist, parse_netlist_file


FIXTURE = Path(__file__).parent / "fixtures" / "netlists" / "crossbar_4x4.sp"


class TestLayout(unittest.TestCase):
    def test_cell_position_and_anchors(self) -> None:
        circuit = parse_netlist("X1_1 bl11 wl1 sl11 m CELL\nX2_3 bl23 wl2 sl23 m2 CELL\n")
        first, second = layout_circuit(circuit)
        self.assertIsInstance(first, CellPrimitive)
        self.assertEqual((first.x, first.y, first.width, first.height), (100, 100, 80, 60))
        anchors = {anchor.role: anchor for anchor in first.anchors}
        self.assertEqual((anchors["bitline"].x, anchors["bitline"].y), (120, 100))
        self.assertEqual((anchors["wordline"].x, anchors["wordline"].y), (100, 110))
        self.assertEqual((anchors["sourceline"].x, anchors["sourceline"].y), (180, 150))
        self.assertEqual(anchors["bitline"].node, "bl11")
        self.assertEqual((second.x, second.y), (380, 220))

    def test_line_resistors_bridge_neighbouring_cells(self) -> None:
        circuit = parse_netlist("Rint_bl_1_1 bl11 bl21 200\nRint_sl_1_1 sl11 sl12 200\n")
        bitline, sourceline = layout_circuit(circuit)
        self.assertIsInstance(bitline, ResistorSegment)
        self.assertEqual(bitline.orientation, VERTICAL)
        self.assertEqual((bitline.x, bitline.y, bitline.length), (120, 190, 60))
        self.assertEqual(bitline.points[0], (120, 160))
        self.assertEqual(bitline.points[-1], (120, 220))
        self.assertEqual(bitline.label, "200")
        self.assertEqual(bitline.color, BITLINE_COLOR)
        self.assertEqual(sourceline.orientation, HORIZONTAL)
        self.assertEqual((sourceline.x, sourceline.y), (210, 150))
        self.assertEqual(sourceline.points[0], (180, 150))
        self.assertEqual(sourceline.points[-1], (240, 150))

    def test_drivers_emit_glyph_then_wire(self) -> None:
        circuit = parse_netlist("Vbl1 bl10 0 0\nVwl2 wl2 0 1\nVsl1 sl41 0 0\n")
        primitives = layout_circuit(circuit)
        self.assertEqual(
            [type(primitive) for primitive in primitives],
            [VoltageGlyph, WirePrimitive, VoltageGlyph, WirePrimitive, GroundSourceGlyph, WirePrimitive],
        )
        vbl, vbl_wire, vwl, vwl_wire, vsl, vsl_wire = primitives
        self.assertEqual((vbl.x, vbl.y), (120, 40))
        self.assertEqual((vbl_wire.y1, vbl_wire.y2), (60, 100))
        self.assertTrue(vbl_wire.dashed)
        self.assertEqual((vwl.x, vwl.y), (40, 230))
        self.assertEqual((vwl_wire.x1, vwl_wire.x2), (60, 100))
        self.assertEqual((vsl.row, vsl.col, vsl.x, vsl.y), (4, 1, 140, 560))
        self.assertEqual((vsl_wire.y1, vsl_wire.y2), (540, 510))

    def test_inert_components_produce_nothing(self) -> None:
        circuit = parse_netlist("Rload a b 1k\nCc a b 1p\nVdd vdd 0 1\nXcell a b c d M\n")
        self.assertEqual(layout_circuit(circuit), [])

    def test_fixture_layout_is_deterministic(self) -> None:
        circuit = parse_netlist_file(FIXTURE)
        first = layout_circuit(circuit)
        self.assertEqual(first, layout_circuit(circuit))
        # 16 cells, 32 resistors, 12 drivers with a wire each.
        self.assertEqual(len(first), 16 + 32 + 24)
        self.assertEqual(canvas_size(circuit), (760, 680))

    def test_payload(self) -> None:
        payload = layout_payload(parse_netlist("X1_1 a b c d M\n"))
        self.assertEqual(payload["width"], 100 + 140 + 100)
        self.assertEqual(payload["primitive_count"], 1)
        self.assertEqual(payload["primitives"][0]["kind"], "cell")
        self.assertEqual(payload["primitives"][0]["component_id"], "X1_1")


if __name__ == "__main__":
    unittest.main()
