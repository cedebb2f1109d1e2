from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Any

from .layout import (
    DEFAULT_GEOMETRY,
    CellPrimitive,
    GroundSourceGlyph,
    LayoutGeometry,
    Primitive,
    ResistorSegment,
    VoltageGlyph,
    WirePrimitive,
    canvas_size,
    layout_circuit,
)
from .models import Circuit


BACKGROUND = "#0f1115"
CELL_FILL = "#1e293b"
LABEL_COLOR = "#94a3b8"
SELECTED_STROKE = "#3b82f6"


def _svg_escape(text: str) -> str:
    return (
        text.replace("&", "&amp;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace('"', "&quot;")
        .replace("'", "&#39;")
    )


def _sanitize_name(name: str) -> str:
    cleaned = "".join(ch if (ch.isalnum() or ch in "_-") else "_" for ch in name)
    return cleaned.strip("_") or "schematic"


def _resolve_image_output_path(*, workdir: Path, name: str, output_path: str | None) -> Path:
    if output_path:
        return Path(output_path).expanduser().resolve()
    stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    return (workdir / "images" / "schematics" / f"{stamp}_{_sanitize_name(name)}.svg").resolve()


def _apply_downscale(width: int, height: int, downscale_factor: float) -> tuple[int, int]:
    if downscale_factor <= 0:
        raise ValueError("downscale_factor must be > 0")
    if downscale_factor > 1.0:
        downscale_factor = 1.0
    return (
        max(100, int(round(width * downscale_factor))),
        max(100, int(round(height * downscale_factor))),
    )


def _render_cell(cell: CellPrimitive, selected: bool) -> list[str]:
    stroke = SELECTED_STROKE if selected else cell.color
    stroke_width = 3 if selected else 1
    right = cell.x + cell.width
    lines = [
        f'<g id="{_svg_escape(cell.component_id)}">',
        f'<rect x="{cell.x:.2f}" y="{cell.y:.2f}" width="{cell.width:.2f}" height="{cell.height:.2f}" '
        f'rx="4" fill="{CELL_FILL}" stroke="{stroke}" stroke-width="{stroke_width}"/>',
        f'<text x="{cell.x + cell.width / 2:.2f}" y="{cell.y + cell.height / 2:.2f}" text-anchor="middle" '
        f'dy=".3em" fill="{LABEL_COLOR}" font-size="10" font-weight="bold">{_svg_escape(cell.component_id)}</text>',
    ]
    for anchor in cell.anchors:
        # Track stub through the cell, then the clickable node marker.
        if anchor.role == "bitline":
            x1, y1, x2, y2 = anchor.x, cell.y, anchor.x, cell.y + cell.height
        else:
            x1, y1, x2, y2 = cell.x, anchor.y, right, anchor.y
        lines.append(
            f'<line x1="{x1:.2f}" y1="{y1:.2f}" x2="{x2:.2f}" y2="{y2:.2f}" '
            f'stroke="{anchor.color}" stroke-width="1.5" opacity="0.3"/>'
        )
        node_attr = f' data-node="{_svg_escape(anchor.node)}"' if anchor.node else ""
        lines.append(
            f'<circle cx="{anchor.x:.2f}" cy="{anchor.y:.2f}" r="3" fill="{anchor.color}"{node_attr}/>'
        )
    lines.append("</g>")
    return lines


def _render_resistor(segment: ResistorSegment, selected: bool) -> list[str]:
    points = " ".join(f"{x:.2f},{y:.2f}" for x, y in segment.points)
    stroke_width = 3 if selected else 2
    lines = [
        f'<g id="{_svg_escape(segment.component_id)}">',
        f'<polyline points="{points}" fill="none" stroke="{segment.color}" stroke-width="{stroke_width}"/>',
    ]
    if segment.orientation == "vertical":
        lines.append(
            f'<text x="{segment.x + 8:.2f}" y="{segment.y:.2f}" dy=".3em" fill="{segment.color}" '
            f'font-size="9" opacity="0.7">{_svg_escape(segment.label)}</text>'
        )
    lines.append("</g>")
    return lines


def _render_source(glyph: VoltageGlyph, selected: bool) -> list[str]:
    x, y = glyph.x, glyph.y
    stroke_width = 3 if selected else 2
    return [
        f'<g id="{_svg_escape(glyph.component_id)}">',
        f'<circle cx="{x:.2f}" cy="{y:.2f}" r="{glyph.radius:.2f}" fill="{CELL_FILL}" '
        f'stroke="{glyph.color}" stroke-width="{stroke_width}"/>',
        f'<polyline points="{x - 8:.2f},{y:.2f} {x - 4:.2f},{y - 5:.2f} {x:.2f},{y + 5:.2f} '
        f'{x + 4:.2f},{y - 5:.2f} {x + 8:.2f},{y:.2f}" fill="none" stroke="{glyph.color}" stroke-width="1.5"/>',
        f'<text x="{x:.2f}" y="{y - glyph.radius - 6:.2f}" text-anchor="middle" fill="{glyph.color}" '
        f'font-size="11" font-weight="bold">{_svg_escape(glyph.label)}</text>',
        "</g>",
    ]


def _render_ground_source(glyph: GroundSourceGlyph, selected: bool) -> list[str]:
    stroke_width = 3 if selected else 2
    return [
        f'<g id="{_svg_escape(glyph.component_id)}">',
        f'<circle cx="{glyph.x:.2f}" cy="{glyph.y:.2f}" r="{glyph.radius:.2f}" fill="{CELL_FILL}" '
        f'stroke="{glyph.color}" stroke-width="{stroke_width}"/>',
        f'<text x="{glyph.x:.2f}" y="{glyph.y:.2f}" dy=".3em" text-anchor="middle" fill="{glyph.color}" '
        f'font-size="10">{_svg_escape(glyph.label)}</text>',
        "</g>",
    ]


def _render_wire(wire: WirePrimitive) -> list[str]:
    dash = ' stroke-dasharray="4 2"' if wire.dashed else ""
    return [
        f'<line x1="{wire.x1:.2f}" y1="{wire.y1:.2f}" x2="{wire.x2:.2f}" y2="{wire.y2:.2f}" '
        f'stroke="{wire.color}" stroke-width="2" opacity="0.6"{dash}/>'
    ]


def render_layout_svg(
    primitives: list[Primitive],
    *,
    width: int,
    height: int,
    selected_id: str | None = None,
    output_width: int | None = None,
    output_height: int | None = None,
) -> str:
    """SVG document for placed primitives; ``selected_id`` gets the highlight stroke."""
    out_w = output_width or width
    out_h = output_height or height
    lines: list[str] = [
        f'<svg xmlns="http://www.w3.org/2000/svg" width="{out_w}" height="{out_h}" viewBox="0 0 {width} {height}">',
        f'<rect x="0" y="0" width="{width}" height="{height}" fill="{BACKGROUND}"/>',
        '<g font-family="Menlo,Monaco,monospace">',
    ]
    for primitive in primitives:
        if isinstance(primitive, WirePrimitive):
            lines.extend(_render_wire(primitive))
            continue
        selected = selected_id is not None and primitive.component_id == selected_id
        if isinstance(primitive, CellPrimitive):
            lines.extend(_render_cell(primitive, selected))
        elif isinstance(primitive, ResistorSegment):
            lines.extend(_render_resistor(primitive, selected))
        elif isinstance(primitive, VoltageGlyph):
            lines.extend(_render_source(primitive, selected))
        elif isinstance(primitive, GroundSourceGlyph):
            lines.extend(_render_ground_source(primitive, selected))
    lines.append("</g>")
    lines.append("</svg>")
    return "\n".join(lines) + "\n"


def render_schematic_svg(
    *,
    workdir: Path,
    circuit: Circuit,
    name: str = "crossbar",
    selected_id: str | None = None,
    output_path: str | None = None,
    downscale_factor: float = 1.0,
    geometry: LayoutGeometry = DEFAULT_GEOMETRY,
) -> dict[str, Any]:
    width, height = canvas_size(circuit, geometry)
    out_w, out_h = _apply_downscale(width, height, downscale_factor)
    primitives = layout_circuit(circuit, geometry)
    document = render_layout_svg(
        primitives,
        width=width,
        height=height,
        selected_id=selected_id,
        output_width=out_w,
        output_height=out_h,
    )

    target = _resolve_image_output_path(workdir=workdir, name=name, output_path=output_path)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(document, encoding="utf-8")

    return {
        "image_path": str(target),
        "format": "svg",
        "width": out_w,
        "height": out_h,
        "canvas_width": width,
        "canvas_height": height,
        "downscale_factor": min(1.0, float(downscale_factor)),
        "primitive_count": len(primitives),
        "selected_id": selected_id,
        "grid_dimensions": circuit.grid_dimensions.as_dict(),
    }
