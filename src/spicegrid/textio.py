from __future__ import annotations

from pathlib import Path


_BOMS: tuple[tuple[bytes, str], ...] = (
    (b"\xef\xbb\xbf", "utf-8-sig"),
    (b"\xff\xfe", "utf-16"),
    (b"\xfe\xff", "utf-16"),
)


def _guess_utf16(blob: bytes) -> str:
    # Netlists exported by LTspice are UTF-16LE and usually carry no BOM.
    candidates = [blob.decode(codec, errors="replace") for codec in ("utf-16le", "utf-16be")]

    def score(text: str) -> int:
        readable = sum(1 for ch in text if ch.isprintable() or ch in "\n\r\t")
        return readable - 10 * text.count("\ufffd")

    return max(candidates, key=score)


def decode_netlist_bytes(blob: bytes) -> str:
    for bom, codec in _BOMS:
        if blob.startswith(bom):
            return blob.decode(codec, errors="replace")
    if blob.count(b"\x00") > len(blob) // 10:
        return _guess_utf16(blob)
    try:
        return blob.decode("utf-8")
    except UnicodeDecodeError:
        # HSPICE decks from older tools are often Latin-1.
        return blob.decode("latin-1")


def read_text_auto(path: str | Path) -> str:
    text = decode_netlist_bytes(Path(path).read_bytes())
    return text.replace("\x00", "").replace("\r\n", "\n")
