from __future__ import annotations

import tempfile
import unittest
from pathlib import Path

from spicegrid.textio import decode_netlist_bytes, read_text_auto


class TestTextIO(unittest.TestCase):
    def test_utf16_without_bom(self) -> None:
        text = "R1 a b 10k\n"
        self.assertEqual(decode_netlist_bytes(text.encode("utf-16le")), text)

    def test_boms(self) -> None:
        text = "* crossbar\n"
        self.assertEqual(decode_netlist_bytes(b"\xef\xbb\xbf" + text.encode("utf-8")), text)
        self.assertEqual(decode_netlist_bytes(text.encode("utf-16")), text)

    def test_latin1_fallback(self) -> None:
        self.assertEqual(decode_netlist_bytes("* r\xe9sistance\n".encode("latin-1")), "* r\xe9sistance\n")

    def test_read_text_auto_normalizes_newlines(self) -> None:
        temp_dir = Path(tempfile.mkdtemp(prefix="spicegrid_textio_test_"))
        path = temp_dir / "a.sp"
        path.write_bytes(b"R1 a b 1\r\nR2 b c 2\r\n")
        self.assertEqual(read_text_auto(path), "R1 a b 1\nR2 b c 2\n")


if __name__ == "__main__":
    unittest.main()
