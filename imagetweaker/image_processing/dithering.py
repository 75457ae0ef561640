"""Ordered and error-diffusion dithering.

AIDEV-NOTE: The image is first reduced to ``resolution`` percent with
nearest-neighbor sampling, quantized there, and scaled back up with
nearest-neighbor so each low-res pixel becomes a hard-edged cell. The cells
that are not white are also returned as geometry for vector export.
"""

import math

import numpy as np
from PIL import Image

from ..models import DitherAlgorithm, DitherColorMode, DitherSettings, DotInfo
from .quantization import kmeans_palette, nearest_palette_index
from .utils import clamp, luminance, split_alpha

# Error-diffusion kernels. Row 0 is the current row, centered on the current
# pixel; only entries to the right of it (and every entry on later rows) are
# used, so finalized pixels are never revisited.
KERNELS: "dict[str, tuple[tuple[float, ...], ...]]" = {
    "floyd-steinberg": (
        (0, 0, 7 / 16),
        (3 / 16, 5 / 16, 1 / 16),
    ),
    "jarvis": (
        (0, 0, 0, 7 / 48, 5 / 48),
        (3 / 48, 5 / 48, 7 / 48, 5 / 48, 3 / 48),
        (1 / 48, 3 / 48, 5 / 48, 3 / 48, 1 / 48),
    ),
    "stucki": (
        (0, 0, 0, 8 / 42, 4 / 42),
        (2 / 42, 4 / 42, 8 / 42, 4 / 42, 2 / 42),
        (1 / 42, 2 / 42, 4 / 42, 2 / 42, 1 / 42),
    ),
    "burkes": (
        (0, 0, 0, 8 / 32, 4 / 32),
        (2 / 32, 4 / 32, 8 / 32, 4 / 32, 2 / 32),
    ),
}
# Judice-Ninke is the same matrix published under a second name
KERNELS["judice-ninke"] = KERNELS["jarvis"]

BAYER_MATRICES: "dict[int, np.ndarray]" = {
    1: np.array([[0]]),
    2: np.array([[0, 2], [3, 1]]),
    4: np.array(
        [
            [0, 8, 2, 10],
            [12, 4, 14, 6],
            [3, 11, 1, 9],
            [15, 7, 13, 5],
        ]
    ),
    8: np.array(
        [
            [0, 32, 8, 40, 2, 34, 10, 42],
            [48, 16, 56, 24, 50, 18, 58, 26],
            [12, 44, 4, 36, 14, 46, 6, 38],
            [60, 28, 52, 20, 62, 30, 54, 22],
            [3, 35, 11, 43, 1, 33, 9, 41],
            [51, 19, 59, 27, 49, 17, 57, 25],
            [15, 47, 7, 39, 13, 45, 5, 37],
            [63, 31, 55, 23, 61, 29, 53, 21],
        ]
    ),
}

WHITE = (255, 255, 255)


def kernel_offsets(name: str) -> "list[tuple[int, int, float]]":
    """Expand a named kernel into forward (dy, dx, weight) triples.

    Raises:
        KeyError: If the kernel name is unknown
    """
    matrix = KERNELS[name]
    offsets = []
    for dy, row in enumerate(matrix):
        half = len(row) // 2
        for i, weight in enumerate(row):
            dx = i - half
            if dy == 0 and dx <= 0:
                continue
            if weight:
                offsets.append((dy, dx, float(weight)))
    return offsets


def bayer_size_for(resolution: int) -> int:
    """Pick the ordered matrix size from the resolution percent."""
    if resolution < 33:
        return 2
    if resolution < 66:
        return 4
    return 8


def bayer_thresholds(width: int, height: int, size: int) -> np.ndarray:
    """Tile a Bayer matrix over the image as offsets in [0, 1)."""
    if size not in BAYER_MATRICES:
        size = 8
    matrix = (BAYER_MATRICES[size] + 0.5) / (size * size)
    reps = (math.ceil(height / size), math.ceil(width / size))
    return np.tile(matrix, reps)[:height, :width]


def scaled_size(width: int, height: int, resolution: int) -> "tuple[int, int]":
    res = clamp(resolution, 1, 100)
    return max(1, int(width * res / 100)), max(1, int(height * res / 100))


def dither(
    image: Image.Image,
    settings: DitherSettings,
    rng: np.random.Generator,
    record: bool = False,
) -> "tuple[Image.Image, list[DotInfo]]":
    """Dither an image.

    Args:
        image: Input image (any mode)
        settings: Dither settings
        rng: Random generator for palette seeding in color mode
        record: Whether to return the visible cells as geometry

    Returns:
        Tuple of (dithered RGBA image at the input size, list of cells)
    """
    image = image.convert("RGBA") if image.mode != "RGBA" else image
    width, height = image.size
    sw, sh = scaled_size(width, height, settings.resolution)
    small = image.resize((sw, sh), Image.Resampling.NEAREST) if (sw, sh) != (width, height) else image

    rgb, _ = split_alpha(small)
    forced = luminance(rgb) < clamp(settings.threshold, 0, 255)
    levels = int(clamp(settings.color_depth, 2, 256))
    algorithm = DitherAlgorithm(settings.algorithm)
    mode = DitherColorMode(settings.color_mode)

    if mode == DitherColorMode.COLOR:
        palette = kmeans_palette(rgb[~forced], levels, rng)
        if algorithm == DitherAlgorithm.ORDERED:
            out = _ordered_palette(rgb, palette, _matrix_size(settings), forced)
        else:
            out = _diffuse_palette(rgb, palette, kernel_offsets(algorithm.value), forced)
    else:
        if mode == DitherColorMode.TWO_COLOR:
            levels = 2
        gray = luminance(rgb)
        if algorithm == DitherAlgorithm.ORDERED:
            q = _ordered_gray(gray, levels, _matrix_size(settings), forced)
        else:
            q = _diffuse_gray(gray, levels, kernel_offsets(algorithm.value), forced)
        if mode == DitherColorMode.TWO_COLOR:
            dark = np.array(settings.dark_color[:3], dtype=np.float64)
            light = np.array(settings.light_color[:3], dtype=np.float64)
            out = np.where((q > 127.5)[..., None], light, dark)
        else:
            out = np.repeat(q[..., None], 3, axis=2)

    out = np.clip(np.rint(out), 0, 255).astype(np.uint8)
    result = Image.fromarray(out, "RGB")
    if (sw, sh) != (width, height):
        result = result.resize((width, height), Image.Resampling.NEAREST)
    result = result.convert("RGBA")
    # AIDEV-NOTE: coverage comes from the full-resolution input
    result.putalpha(image.getchannel("A"))

    cells = _cells(out, width, height) if record else []
    return result, cells


def _matrix_size(settings: DitherSettings) -> int:
    if settings.bayer_size in BAYER_MATRICES:
        return settings.bayer_size
    return bayer_size_for(settings.resolution)


def _ordered_gray(gray: np.ndarray, levels: int, size: int, forced: np.ndarray) -> np.ndarray:
    step = 255.0 / (levels - 1)
    t = bayer_thresholds(gray.shape[1], gray.shape[0], size)
    q = np.clip(np.floor(gray / step + t), 0, levels - 1) * step
    q[forced] = 0.0
    return q


def _ordered_palette(rgb: np.ndarray, palette: np.ndarray, size: int, forced: np.ndarray) -> np.ndarray:
    t = bayer_thresholds(rgb.shape[1], rgb.shape[0], size)
    spread = 255.0 / max(1, len(palette))
    biased = rgb + ((t - 0.5) * spread)[..., None]
    out = palette[nearest_palette_index(biased, palette)]
    out[forced] = 0.0
    return out


def _diffuse_gray(
    gray: np.ndarray,
    levels: int,
    offsets: "list[tuple[int, int, float]]",
    forced: np.ndarray,
) -> np.ndarray:
    """Sequential error diffusion on a single channel."""
    h, w = gray.shape
    pad = max(abs(dx) for _, dx, _ in offsets)
    depth = max(dy for dy, _, _ in offsets)
    # Padded work rows absorb error pushed past the edges
    work = np.zeros((h + depth, w + 2 * pad))
    work[:h, pad : pad + w] = gray
    work = work.tolist()
    forced_rows = forced.tolist()
    step = 255.0 / (levels - 1)
    out = np.empty((h, w))

    for y in range(h):
        row = work[y]
        out_row = out[y]
        forced_row = forced_rows[y]
        for x in range(w):
            old = row[x + pad]
            old = 0.0 if old < 0.0 else 255.0 if old > 255.0 else old
            new = 0.0 if forced_row[x] else round(old / step) * step
            out_row[x] = new
            err = old - new
            if err:
                for dy, dx, weight in offsets:
                    work[y + dy][x + pad + dx] += err * weight
    return out


def _diffuse_palette(
    rgb: np.ndarray,
    palette: np.ndarray,
    offsets: "list[tuple[int, int, float]]",
    forced: np.ndarray,
) -> np.ndarray:
    """Sequential error diffusion against a color palette."""
    h, w, _ = rgb.shape
    pad = max(abs(dx) for _, dx, _ in offsets)
    depth = max(dy for dy, _, _ in offsets)
    work = np.zeros((h + depth, w + 2 * pad, 3))
    work[:h, pad : pad + w] = rgb
    work = work.tolist()
    forced_rows = forced.tolist()
    colors = [tuple(c) for c in np.asarray(palette, dtype=np.float64).tolist()]
    black = (0.0, 0.0, 0.0)
    out = []

    for y in range(h):
        row = work[y]
        forced_row = forced_rows[y]
        out_row = []
        for x in range(w):
            r, g, b = row[x + pad]
            r = 0.0 if r < 0.0 else 255.0 if r > 255.0 else r
            g = 0.0 if g < 0.0 else 255.0 if g > 255.0 else g
            b = 0.0 if b < 0.0 else 255.0 if b > 255.0 else b
            if forced_row[x]:
                new = black
            else:
                new = min(colors, key=lambda c: (c[0] - r) ** 2 + (c[1] - g) ** 2 + (c[2] - b) ** 2)
            out_row.append(new)
            er, eg, eb = r - new[0], g - new[1], b - new[2]
            if er or eg or eb:
                for dy, dx, weight in offsets:
                    cell = work[y + dy][x + pad + dx]
                    cell[0] += er * weight
                    cell[1] += eg * weight
                    cell[2] += eb * weight
        out.append(out_row)
    return np.array(out, dtype=np.float64).reshape(h, w, 3)


def _cells(out: np.ndarray, width: int, height: int) -> "list[DotInfo]":
    """One rect per low-res pixel that is not white, in canvas coordinates."""
    sh, sw = out.shape[:2]
    cw = width / sw
    ch = height / sh
    cells = []
    ys, xs = np.nonzero(np.any(out != 255, axis=2))
    for y, x in zip(ys.tolist(), xs.tolist()):
        color = tuple(int(c) for c in out[y, x])
        cells.append(DotInfo(x=x * cw, y=y * ch, size=cw, height=ch, color=color))
    return cells
