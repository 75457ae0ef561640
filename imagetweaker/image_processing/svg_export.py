"""Vector export: turns a rendered frame into an SVG document.

AIDEV-NOTE: Three paths, tried in order:
1. cached   - the GeometryRecord from the raster render, emitted verbatim
2. recomputed - halftone placement re-run on the halftone input, with the
   per-shape area corrections below
3. raster   - the composited bitmap embedded as a PNG data URL
Every problem on the way is recovered by falling through to the next path.
"""

import base64
import json
import math
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from datetime import datetime, timezone

import numpy as np
import svgwrite
from PIL import Image

from ..models import (
    TOOL_NAME,
    DotInfo,
    EffectSettings,
    GeometryMismatchError,
    GeometryRecord,
    HalftoneShape,
    StageId,
)
from .halftone import compute_dots, shape_polygons
from .utils import encode_png

# AIDEV-NOTE: Heuristic size factors for recomputed (uncached) halftone
# geometry. They were tuned by eye so vector outlines cover about the same
# ink as the anti-aliased raster dots; they are not a geometric identity.
SHAPE_AREA_CORRECTION: "dict[HalftoneShape, float]" = {
    HalftoneShape.CIRCLE: 1.0,
    HalftoneShape.SQUARE: 0.85,
    HalftoneShape.DIAMOND: 0.95,
    HalftoneShape.LINE: 1.0,
    HalftoneShape.CROSS: 1.0,
    HalftoneShape.ELLIPSE: 1.0,
    HalftoneShape.TRIANGLE: 0.95,
    HalftoneShape.HEXAGON: 0.95,
}

# Seed used when recomputing geometry without a caller-supplied generator
RECOMPUTE_SEED = 0

MODE_CACHED = "cached"
MODE_RECOMPUTED = "recomputed"
MODE_RASTER = "raster"


@dataclass
class SvgExport:
    """Result of one SVG export."""

    svg: str
    mode: str  # cached, recomputed or raster
    primitives: int = 0  # dots/cells emitted as vectors
    skipped: int = 0  # malformed primitives dropped


def build_metadata(
    settings: EffectSettings | None,
    tool_name: str = TOOL_NAME,
    created: datetime | None = None,
) -> "dict[str, str]":
    """Creation timestamp, tool identifier and effect parameters as strings."""
    created = created or datetime.now(timezone.utc)
    parameters = settings.to_dict() if settings is not None else {}
    return {
        "created": created.isoformat(),
        "tool": tool_name,
        "parameters": json.dumps(parameters, sort_keys=True),
    }


def png_data_url(image: Image.Image) -> str:
    return "data:image/png;base64," + base64.b64encode(encode_png(image)).decode("ascii")


def _hex(color) -> str:
    if color is None:
        return "#000000"
    r, g, b = (int(c) for c in color[:3])
    return f"#{r:02x}{g:02x}{b:02x}"


def _n(value: float) -> float:
    return round(float(value), 3)


def _valid(dot: DotInfo) -> bool:
    values = [dot.x, dot.y, dot.size]
    if dot.height is not None:
        values.append(dot.height)
    if not all(math.isfinite(v) for v in values):
        return False
    return dot.size > 0 and (dot.height is None or dot.height > 0)


def resolve_geometry(
    geometry: GeometryRecord | None,
    width: int,
    height: int,
    settings: EffectSettings,
) -> GeometryRecord | None:
    """Return the cached record if it still describes this canvas, else None."""
    if geometry is None or geometry.is_empty:
        return None
    try:
        geometry.check_compatible(width, height, settings.for_stage(geometry.source))
    except GeometryMismatchError as e:
        print(f"Discarding cached geometry: {e}")
        return None
    return geometry


def recompute_dots(
    halftone_input: Image.Image,
    settings: EffectSettings,
    rng: np.random.Generator | None = None,
) -> "list[DotInfo]":
    """Re-run halftone placement with the per-shape size correction applied."""
    rng = rng if rng is not None else np.random.default_rng(RECOMPUTE_SEED)
    halftone = settings.halftone
    factor = SHAPE_AREA_CORRECTION.get(HalftoneShape(halftone.shape), 1.0)
    dots = compute_dots(halftone_input, halftone, rng)
    return [
        DotInfo(d.x, d.y, d.size * factor, d.color, d.channel, d.angle, d.height)
        for d in dots
    ]


def export_svg(
    image: Image.Image,
    settings: EffectSettings,
    geometry: GeometryRecord | None = None,
    halftone_input: Image.Image | None = None,
    rng: np.random.Generator | None = None,
    tool_name: str = TOOL_NAME,
    recompute: bool = True,
    raster_fallback: bool = True,
) -> SvgExport:
    """Export the composited frame as SVG.

    Args:
        image: Final composited image (defines the canvas size)
        settings: Settings the frame was rendered with (written as metadata)
        geometry: Geometry recorded by the last raster render, if any
        halftone_input: Halftone stage input, when halftone ran last
        rng: Random generator for recomputed placement
        tool_name: Tool identifier for the metadata block
        recompute: Whether to re-run halftone placement when no cache matches
        raster_fallback: Whether to embed the bitmap when no vectors exist

    Returns:
        SvgExport with the document text and the path that produced it
    """
    width, height = image.size
    metadata = build_metadata(settings, tool_name)

    record = resolve_geometry(geometry, width, height, settings)
    if record is not None:
        print(f"Exporting {len(record)} cached primitives as SVG...")
        return _vector_svg(
            width,
            height,
            record.dots,
            record.source,
            settings,
            metadata,
            MODE_CACHED,
            underlay=record.underlay,
        )

    if (
        recompute
        and halftone_input is not None
        and halftone_input.size == (width, height)
        and settings.halftone.enabled
    ):
        dots = recompute_dots(halftone_input, settings, rng)
        if dots:
            print(f"Exporting {len(dots)} recomputed halftone dots as SVG...")
            underlay = halftone_input if settings.halftone.mix < 100 else None
            return _vector_svg(
                width,
                height,
                dots,
                StageId.HALFTONE,
                settings,
                metadata,
                MODE_RECOMPUTED,
                underlay=underlay,
            )

    print("No vector geometry available, embedding raster image in SVG.")
    dwg = _drawing(width, height)
    if raster_fallback:
        dwg.add(dwg.image(href=png_data_url(image), insert=(0, 0), size=(width, height)))
    return SvgExport(svg=_serialize(dwg, metadata), mode=MODE_RASTER)


def _drawing(width: int, height: int) -> svgwrite.Drawing:
    return svgwrite.Drawing(
        size=(width, height),
        viewBox=f"0 0 {width} {height}",
        profile="full",
        debug=False,
    )


def _vector_svg(
    width: int,
    height: int,
    dots,
    source: StageId,
    settings: EffectSettings,
    metadata: "dict[str, str]",
    mode: str,
    underlay: Image.Image | None = None,
) -> SvgExport:
    dwg = _drawing(width, height)
    dwg.add(dwg.rect(insert=(0, 0), size=(width, height), fill="#ffffff"))

    valid = [d for d in dots if _valid(d)]
    skipped = len(dots) - len(valid)
    if skipped:
        print(f"Skipped {skipped} malformed primitives.")

    if source == StageId.DITHER:
        _add_cells(dwg, valid)
    else:
        _add_dots(dwg, valid, HalftoneShape(settings.halftone.shape))
        mix = max(0.0, min(100.0, float(settings.halftone.mix)))
        if underlay is not None and mix < 100:
            dwg.add(
                dwg.image(
                    href=png_data_url(underlay.convert("RGB")),
                    insert=(0, 0),
                    size=(width, height),
                    opacity=_n(1.0 - mix / 100.0),
                )
            )

    return SvgExport(
        svg=_serialize(dwg, metadata),
        mode=mode,
        primitives=len(valid),
        skipped=skipped,
    )


def _groups(dots) -> "dict[tuple[str | None, str], list[DotInfo]]":
    """Group by (channel, fill), keeping first-seen order."""
    groups: "dict[tuple[str | None, str], list[DotInfo]]" = {}
    for dot in dots:
        groups.setdefault((dot.channel, _hex(dot.color)), []).append(dot)
    return groups


def _add_dots(dwg: svgwrite.Drawing, dots, shape: HalftoneShape) -> None:
    for (channel, fill), members in _groups(dots).items():
        attrs = {"fill": fill}
        if channel is not None:
            attrs["id"] = f"channel-{channel}"
            # Overprint like the raster multiply composite
            attrs["style"] = "mix-blend-mode:multiply"
        group = dwg.g(**attrs)
        for dot in members:
            polygons = shape_polygons(shape, dot.x, dot.y, dot.size, dot.angle)
            if not polygons:
                group.add(dwg.circle(center=(_n(dot.x), _n(dot.y)), r=_n(dot.size / 2.0)))
                continue
            for poly in polygons:
                group.add(dwg.polygon([(_n(x), _n(y)) for x, y in poly]))
        dwg.add(group)


def _add_cells(dwg: svgwrite.Drawing, cells) -> None:
    for (_, fill), members in _groups(cells).items():
        group = dwg.g(fill=fill, shape_rendering="crispEdges")
        for cell in members:
            group.add(
                dwg.rect(
                    insert=(_n(cell.x), _n(cell.y)),
                    size=(_n(cell.size), _n(cell.height if cell.height is not None else cell.size)),
                )
            )
        dwg.add(group)


def _serialize(dwg: svgwrite.Drawing, metadata: "dict[str, str]") -> str:
    """Render the drawing to text with a <metadata> block first."""
    root = dwg.get_xml()
    block = ET.Element("metadata")
    for key, value in metadata.items():
        child = ET.SubElement(block, key)
        child.text = value
    root.insert(0, block)
    return '<?xml version="1.0" encoding="utf-8" ?>\n' + ET.tostring(root, encoding="unicode")
