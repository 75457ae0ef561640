"""Grid splitting and displacement stages.

AIDEV-NOTE: Both stages move pixels, so unlike the color stages they are
allowed to change coverage: grid rotation leaves transparent corners and
displacement carries the alpha of the pixel it samples.
"""

from dataclasses import dataclass, field

import numpy as np
from PIL import Image

from ..models import DisplacementSettings, GridSettings, Resample
from .utils import (
    composite_clipped,
    hsl_to_rgb,
    merge_alpha,
    pil_resample,
    rgb_to_hsl,
    split_alpha,
)

# Rec.709 weights used by the displacement field
REC709 = (0.2126, 0.7152, 0.0722)

# Spacing of the pseudo-noise lattice in pixels
NOISE_CELL = 50


@dataclass
class GridCell:
    """One rectangle of the grid, possibly split into two children."""

    x: float
    y: float
    width: float
    height: float
    rotation: float = 0.0  # degrees, clockwise
    children: "list[GridCell]" = field(default_factory=list)

    def leaves(self) -> "list[GridCell]":
        if not self.children:
            return [self]
        return [leaf for child in self.children for leaf in child.leaves()]


def _rotation(settings: GridSettings, rng: np.random.Generator) -> float:
    if not settings.apply_rotation:
        return 0.0
    return (rng.random() - 0.5) * settings.max_rotation


def create_grid(width: int, height: int, settings: GridSettings, rng: np.random.Generator) -> "list[GridCell]":
    """Partition the canvas into columns x rows cells, splitting if enabled.

    Args:
        width: Canvas width
        height: Canvas height
        settings: Grid settings
        rng: Random generator for rotations and splits

    Returns:
        Top-level cells in row-major order
    """
    columns = max(1, int(settings.columns))
    rows = max(1, int(settings.rows))
    cw = width / columns
    ch = height / rows
    cells = []
    for row in range(rows):
        for col in range(columns):
            cell = GridCell(col * cw, row * ch, cw, ch, _rotation(settings, rng))
            if settings.split_enabled:
                split_cell(cell, settings, rng)
            cells.append(cell)
    return cells


def split_cell(cell: GridCell, settings: GridSettings, rng: np.random.Generator, level: int = 0) -> None:
    """Recursively split a cell in place.

    Each level is less likely to split than the one above it, and a cell
    stops splitting once either half would fall below ``min_cell_size``.
    """
    max_levels = max(0, int(settings.max_split_levels))
    min_size = max(1.0, float(settings.min_cell_size))
    if level >= max_levels or cell.width < min_size * 2 or cell.height < min_size * 2:
        return

    probability = settings.split_probability * (max_levels - level + 1) / max_levels
    if rng.random() > probability:
        return

    horizontal = rng.random() < 0.5
    extent = cell.height if horizontal else cell.width
    # split point stays in [0.3, 0.7] and leaves both halves at least min_size
    low = max(0.3, min_size / extent)
    high = min(0.7, 1.0 - min_size / extent)
    point = low + rng.random() * (high - low)
    cut = min(max(extent * point, min_size), extent - min_size)
    if horizontal:
        first = GridCell(cell.x, cell.y, cell.width, cut, _rotation(settings, rng))
        second = GridCell(cell.x, cell.y + cut, cell.width, cell.height - cut, _rotation(settings, rng))
    else:
        first = GridCell(cell.x, cell.y, cut, cell.height, _rotation(settings, rng))
        second = GridCell(cell.x + cut, cell.y, cell.width - cut, cell.height, _rotation(settings, rng))

    cell.children = [first, second]
    split_cell(first, settings, rng, level + 1)
    split_cell(second, settings, rng, level + 1)


def _box(cell: GridCell) -> "tuple[int, int, int, int]":
    return (
        int(round(cell.x)),
        int(round(cell.y)),
        int(round(cell.x + cell.width)),
        int(round(cell.y + cell.height)),
    )


def _is_plain(cell: GridCell) -> bool:
    """True when neither the cell nor any descendant is rotated."""
    return not cell.rotation and all(_is_plain(child) for child in cell.children)


def _place(base: Image.Image, tile: Image.Image, pos: "tuple[int, int]", cell: GridCell) -> None:
    """Draw a rendered tile onto base.

    Unrotated tiles cover their box exactly and are copied as-is; rotated
    ones are composited source-over, clipped to the base.
    """
    if _is_plain(cell):
        base.paste(tile, pos)
        return
    composite_clipped(base, tile, *pos)


def _render_cell(source: Image.Image, cell: GridCell, resample: int) -> "tuple[Image.Image, tuple[int, int]]":
    """Render a cell to a tile and the canvas position of its top-left corner."""
    left, top, right, bottom = _box(cell)
    if cell.children:
        tile = Image.new("RGBA", (max(1, right - left), max(1, bottom - top)), (0, 0, 0, 0))
        for child in cell.children:
            child_tile, (cx, cy) = _render_cell(source, child, resample)
            _place(tile, child_tile, (cx - left, cy - top), child)
    else:
        tile = source.crop((left, top, max(left + 1, right), max(top + 1, bottom)))

    if not cell.rotation:
        return tile, (left, top)

    # Children rotate inside their parent's frame, like nested transforms
    rotated = tile.rotate(-cell.rotation, resample=resample, expand=True)
    cx = left + tile.width / 2.0
    cy = top + tile.height / 2.0
    return rotated, (int(round(cx - rotated.width / 2.0)), int(round(cy - rotated.height / 2.0)))


def apply_grid(image: Image.Image, settings: GridSettings, rng: np.random.Generator) -> Image.Image:
    """Redraw the image cell by cell on a transparent canvas.

    Returns:
        New RGBA image of the same size
    """
    source = image.convert("RGBA") if image.mode != "RGBA" else image
    resample = pil_resample(Resample(settings.resample).value)
    result = Image.new("RGBA", source.size, (0, 0, 0, 0))
    for cell in create_grid(source.width, source.height, settings, rng):
        tile, pos = _render_cell(source, cell, resample)
        _place(result, tile, pos, cell)
    return result


def pseudo_noise(x: np.ndarray, y: np.ndarray, scale: float) -> np.ndarray:
    """Hash-style noise in [0, scale) from lattice coordinates."""
    v = np.sin(x * 12.9898 + y * 78.233) * 43758.5453123
    return (v - np.floor(v)) * scale


def _ramp(bright: np.ndarray, low, mid, high) -> np.ndarray:
    low = np.array(low[:3], dtype=np.float64)
    mid = np.array(mid[:3], dtype=np.float64)
    high = np.array(high[:3], dtype=np.float64)
    b = bright[..., None]
    lower = (1 - b / 0.5) * low + (b / 0.5) * mid
    upper = (1 - (b - 0.5) / 0.5) * mid + ((b - 0.5) / 0.5) * high
    return np.where(b < 0.5, lower, upper)


def displace(image: Image.Image, settings: DisplacementSettings) -> Image.Image:
    """Shift pixels by a brightness and noise field, then recolor.

    Args:
        image: Input image (any mode)
        settings: Displacement settings

    Returns:
        New RGBA image; each pixel takes the alpha of the pixel it samples
    """
    rgb, alpha = split_alpha(image)
    h, w = rgb.shape[:2]
    ys, xs = np.mgrid[0:h, 0:w]

    r, g, b = REC709
    bright = (rgb[..., 0] * r + rgb[..., 1] * g + rgb[..., 2] * b) / 255.0
    cells_x = (xs // NOISE_CELL) * NOISE_CELL
    cells_y = (ys // NOISE_CELL) * NOISE_CELL
    noise = pseudo_noise(cells_x, cells_y, settings.noise_scale)

    dx = (bright - 0.5) * settings.amount_x + noise * 10
    dy = (bright - 0.5) * settings.amount_y + noise * 10
    sx = np.clip(np.rint(xs + dx), 0, w - 1).astype(np.intp)
    sy = np.clip(np.rint(ys + dy), 0, h - 1).astype(np.intp)
    out = rgb[sy, sx].astype(np.float64)
    out_alpha = alpha[sy, sx]

    if not settings.colorize and (settings.color_shift or settings.saturation_variation):
        hue, sat, light = rgb_to_hsl(out)
        hue = np.mod(hue + (bright - 0.5) * settings.color_shift + 360.0, 360.0)
        sat = np.clip(sat * (1 + settings.saturation_variation * (bright - 0.5) * 2), 0.0, 1.0)
        out = np.rint(hsl_to_rgb(hue, sat, light))

    if settings.posterize:
        levels = max(2, int(settings.posterize_levels))
        b2 = (out[..., 0] * r + out[..., 1] * g + out[..., 2] * b) / 255.0
        q = np.round(b2 * (levels - 1)) / (levels - 1)
        out = np.rint(_ramp(q, settings.low_color, settings.mid_color, settings.high_color))

    if settings.colorize:
        b3 = (out[..., 0] * r + out[..., 1] * g + out[..., 2] * b) / 255.0
        out = np.rint(_ramp(b3, settings.low_color, settings.mid_color, settings.high_color))

    return merge_alpha(out, out_alpha)
