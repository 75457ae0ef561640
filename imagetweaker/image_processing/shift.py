"""Tile and strip displacement: mosaic shift and slice shift.

AIDEV-NOTE: Both stages redraw the image onto a fresh canvas that is
transparent or filled with the background color, so areas uncovered by a
moved tile or strip show through. A ``seed`` in the settings gives a
layout independent of the run's generator; without one the run's
generator is used.
"""

import math

import numpy as np
from PIL import Image

from ..models import (
    MosaicShiftSettings,
    RearrangeMode,
    ShiftPattern,
    SliceDirection,
    SliceMode,
    SliceShiftSettings,
)
from .utils import composite_clipped


def _generator(seed, rng: np.random.Generator) -> np.random.Generator:
    return rng if seed is None else np.random.default_rng(seed)


def _canvas(size, settings) -> Image.Image:
    if settings.use_background_color:
        return Image.new("RGBA", size, tuple(settings.background_color[:3]) + (255,))
    return Image.new("RGBA", size, (0, 0, 0, 0))


# ----------------------------------------------------------------------
# Mosaic shift
# ----------------------------------------------------------------------


def tile_offset(
    col: int,
    row: int,
    settings: MosaicShiftSettings,
    rng: np.random.Generator,
) -> "tuple[float, float]":
    """Offset in pixels for one tile under the configured pattern."""
    cols = max(1, int(settings.columns))
    rows = max(1, int(settings.rows))
    factor = settings.intensity / 100.0
    pattern = ShiftPattern(settings.pattern)

    if pattern == ShiftPattern.WAVE:
        phase = col / cols * math.pi * 4.0
        return (
            math.sin(phase) * settings.max_offset_x * factor,
            math.cos(phase + row / 2.0) * settings.max_offset_y * factor,
        )
    if pattern in (ShiftPattern.RADIAL, ShiftPattern.SPIRAL):
        cx, cy = cols / 2.0, rows / 2.0
        dx = (col - cx) / cx
        dy = (row - cy) / cy
        dist = math.hypot(dx, dy)
        if pattern == ShiftPattern.RADIAL:
            reach = min(1.0, dist)
            return dx * settings.max_offset_x * reach * factor, dy * settings.max_offset_y * reach * factor
        angle = math.atan2(dy, dx) + dist * 5.0
        return (
            math.cos(angle) * dist * settings.max_offset_x * factor,
            math.sin(angle) * dist * settings.max_offset_y * factor,
        )
    return (
        (rng.random() * 2.0 - 1.0) * settings.max_offset_x * factor,
        (rng.random() * 2.0 - 1.0) * settings.max_offset_y * factor,
    )


def edge_damping(col: int, row: int, cols: int, rows: int) -> float:
    """1 in the interior, falling to 0 on the outermost ring of tiles."""
    near_x = min(col, cols - col - 1) / (cols / 4.0)
    near_y = min(row, rows - row - 1) / (rows / 4.0)
    return min(1.0, near_x, near_y)


def mosaic_shift(
    image: Image.Image,
    settings: MosaicShiftSettings,
    rng: np.random.Generator,
) -> Image.Image:
    """Cut the image into a grid of tiles and move each one.

    Args:
        image: Input image (any mode)
        settings: Grid, pattern and rotation settings
        rng: Run generator, used when settings.seed is None

    Returns:
        New RGBA image of the same size
    """
    source = image.convert("RGBA") if image.mode != "RGBA" else image
    width, height = source.size
    cols = max(1, int(settings.columns))
    rows = max(1, int(settings.rows))
    tile_w = math.ceil(width / cols)
    tile_h = math.ceil(height / rows)
    gen = _generator(settings.seed, rng)
    factor = settings.intensity / 100.0

    result = _canvas(source.size, settings)
    for row in range(rows):
        for col in range(cols):
            left, top = col * tile_w, row * tile_h
            right, bottom = min(width, left + tile_w), min(height, top + tile_h)
            if right <= left or bottom <= top:
                continue
            ox, oy = tile_offset(col, row, settings, gen)
            rotation = 0.0
            if settings.random_rotation:
                rotation = (gen.random() * 2.0 - 1.0) * settings.max_rotation * factor
            if settings.preserve_edges:
                damping = edge_damping(col, row, cols, rows)
                ox, oy, rotation = ox * damping, oy * damping, rotation * damping

            tile = source.crop((left, top, right, bottom))
            x, y = left + ox, top + oy
            if rotation:
                rotated = tile.rotate(-rotation, resample=Image.Resampling.BICUBIC, expand=True)
                x += (tile.width - rotated.width) / 2.0
                y += (tile.height - rotated.height) / 2.0
                tile = rotated
            composite_clipped(result, tile, int(round(x)), int(round(y)))
    return result


# ----------------------------------------------------------------------
# Slice shift
# ----------------------------------------------------------------------


def rearrange_order(count: int, mode: RearrangeMode, rng: np.random.Generator) -> "list[int]":
    """Source slice index for each target slice."""
    indices = list(range(count))
    mode = RearrangeMode(mode)
    if mode == RearrangeMode.REVERSE:
        return indices[::-1]
    if mode == RearrangeMode.ALTERNATE:
        return indices[0::2] + indices[1::2]
    if mode == RearrangeMode.SHUFFLE:
        # Fisher-Yates, drawn from the same stream as the other modes
        for i in range(count - 1, 0, -1):
            j = int(rng.random() * (i + 1))
            indices[i], indices[j] = indices[j], indices[i]
        return indices
    return [min(count - 1, int(rng.random() * count)) for _ in indices]


def slice_offsets(settings: SliceShiftSettings, rng: np.random.Generator) -> "list[tuple[int, int]]":
    """(source index, pixel offset) for every slice in order."""
    count = max(1, int(settings.slices))
    factor = settings.intensity / 100.0
    mode = SliceMode(settings.mode)
    order = rearrange_order(count, settings.rearrange_mode, rng) if mode == SliceMode.REARRANGE else None

    plan = []
    for i in range(count):
        source, offset = i, 0.0
        if mode == SliceMode.RANDOM:
            offset = (rng.random() * 2.0 - 1.0) * settings.max_offset * factor
        elif mode == SliceMode.ALTERNATING:
            offset = (1.0 if i % 2 == 0 else -1.0) * settings.max_offset * factor
        elif mode == SliceMode.WAVE:
            offset = math.sin(i / count * math.pi * 6.0) * settings.max_offset * factor
        elif mode == SliceMode.REARRANGE:
            source = order[i]
        elif mode == SliceMode.REPEAT and i % 2 == 1:
            previous = rng.random() > 0.5
            if previous and i > 0:
                source = i - 1
            elif not previous and i < count - 1:
                source = i + 1
        plan.append((source, int(round(offset))))
    return plan


def _feather(strip: Image.Image, size: float, vertical: bool, first: bool, last: bool) -> Image.Image:
    """Fade the strip's alpha to zero over ``size`` px on its inner edges."""
    if size < 1:
        return strip
    data = np.asarray(strip).astype(np.float64)
    length = data.shape[1] if vertical else data.shape[0]
    pos = np.arange(length, dtype=np.float64)
    ramp = np.ones(length)
    if not first:
        ramp = np.minimum(ramp, pos / size)
    if not last:
        ramp = np.minimum(ramp, (length - pos) / size)
    ramp = np.clip(ramp, 0.0, 1.0)
    data[..., 3] *= ramp[None, :] if vertical else ramp[:, None]
    return Image.fromarray(np.clip(np.rint(data), 0, 255).astype(np.uint8), "RGBA")


def _shift_pass(
    source: Image.Image,
    settings: SliceShiftSettings,
    vertical: bool,
    rng: np.random.Generator,
) -> Image.Image:
    width, height = source.size
    extent = width if vertical else height
    count = max(1, int(settings.slices))
    size = extent / count
    bounds = [int(round(i * size)) for i in range(count)] + [extent]

    result = _canvas(source.size, settings)
    for i, (index, offset) in enumerate(slice_offsets(settings, rng)):
        span = bounds[i + 1] - bounds[i]
        if span <= 0:
            continue
        start = bounds[index]
        end = min(extent, start + span)
        if vertical:
            strip = source.crop((start, 0, end, height))
        else:
            strip = source.crop((0, start, width, end))
        if settings.feathering and settings.feather_amount > 0:
            strip = _feather(strip, settings.feather_amount / 100.0 * size / 2.0, vertical, i == 0, i == count - 1)
        target = bounds[i] + offset
        if vertical:
            composite_clipped(result, strip, target, 0)
        else:
            composite_clipped(result, strip, 0, target)
    return result


def slice_shift(
    image: Image.Image,
    settings: SliceShiftSettings,
    rng: np.random.Generator,
) -> Image.Image:
    """Cut the image into strips and offset, repeat or reorder them.

    Args:
        image: Input image (any mode)
        settings: Slice count, direction and mode
        rng: Run generator, used when settings.seed is None

    Returns:
        New RGBA image of the same size
    """
    source = image.convert("RGBA") if image.mode != "RGBA" else image
    gen = _generator(settings.seed, rng)
    direction = SliceDirection(settings.direction)
    if direction == SliceDirection.BOTH:
        return _shift_pass(_shift_pass(source, settings, True, gen), settings, False, gen)
    return _shift_pass(source, settings, direction == SliceDirection.VERTICAL, gen)
