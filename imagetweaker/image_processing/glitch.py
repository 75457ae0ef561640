"""Glitch stage: stackable pixel-sort, channel-shift, scan-line, noise and
block-displacement sub-effects, followed by the general line-shift glitch.

AIDEV-NOTE: Sub-effects run in a fixed order on one working RGB array.
Only color channels move; alpha is copied from the input.
"""

import math

import numpy as np
from PIL import Image

from ..models import ChannelShiftMode, GlitchSettings, SortDirection
from .utils import luminance, merge_alpha, split_alpha

# Channel index pairs pulled apart by the channel shift (forward, backward)
CHANNEL_PAIRS = {
    ChannelShiftMode.RED_BLUE: (0, 2),
    ChannelShiftMode.RED_GREEN: (0, 1),
    ChannelShiftMode.GREEN_BLUE: (1, 2),
}


def pixel_sort(rgb: np.ndarray, threshold: float, direction: SortDirection) -> np.ndarray:
    """Sort runs of pixels brighter than ``threshold`` (0-1) by brightness."""
    direction = SortDirection(direction)
    out = rgb
    if direction in (SortDirection.HORIZONTAL, SortDirection.BOTH):
        out = _sort_rows(out, threshold)
    if direction in (SortDirection.VERTICAL, SortDirection.BOTH):
        out = _sort_rows(out.transpose(1, 0, 2), threshold).transpose(1, 0, 2)
    return out


def _sort_rows(rgb: np.ndarray, threshold: float) -> np.ndarray:
    out = rgb.copy()
    bright = luminance(rgb) / 255.0
    mask = bright > threshold
    for y in np.nonzero(mask.any(axis=1))[0]:
        row_mask = mask[y].astype(np.int8)
        edges = np.diff(np.concatenate(([0], row_mask, [0])))
        starts = np.nonzero(edges == 1)[0]
        ends = np.nonzero(edges == -1)[0]
        for start, end in zip(starts, ends):
            if end - start < 2:
                continue
            order = np.argsort(bright[y, start:end], kind="stable")
            out[y, start:end] = rgb[y, start:end][order]
    return out


def channel_shift(rgb: np.ndarray, amount: int, mode: ChannelShiftMode) -> np.ndarray:
    """Roll one channel right and another left by ``amount`` pixels, wrapping."""
    if not amount:
        return rgb
    forward, backward = CHANNEL_PAIRS[ChannelShiftMode(mode)]
    out = rgb.copy()
    out[..., forward] = np.roll(rgb[..., forward], int(amount), axis=1)
    out[..., backward] = np.roll(rgb[..., backward], -int(amount), axis=1)
    return out


def scan_lines(rgb: np.ndarray, count: int, intensity: float) -> np.ndarray:
    """Darken the first half of each of ``count`` horizontal bands."""
    height = rgb.shape[0]
    line_height = max(1, height // max(1, int(count)))
    factor = 1.0 - max(0.0, min(100.0, intensity)) / 100.0
    rows = np.arange(height) % line_height < line_height / 2.0
    out = rgb.copy()
    out[rows] *= factor
    return out


def noise(rgb: np.ndarray, amount: float, rng: np.random.Generator) -> np.ndarray:
    """Add +/-25 to a random ``amount`` percent of the pixels."""
    h, w = rgb.shape[:2]
    hit = rng.random((h, w)) < max(0.0, min(100.0, amount)) / 100.0
    delta = rng.integers(-25, 25, size=(h, w)).astype(np.float32)
    out = rgb + np.where(hit, delta, 0.0)[..., None]
    return np.clip(out, 0.0, 255.0)


def block_displace(
    rgb: np.ndarray,
    size: int,
    offset: int,
    density: float,
    rng: np.random.Generator,
) -> np.ndarray:
    """Copy random blocks from a randomly offset source position.

    Args:
        rgb: Working RGB array
        size: Block edge length in pixels (at least 5)
        offset: Maximum source displacement in pixels
        density: Fraction of the block grid that is moved
        rng: Random generator

    Returns:
        New RGB array
    """
    h, w = rgb.shape[:2]
    block = max(5, int(size))
    nx = math.ceil(w / block)
    ny = math.ceil(h / block)
    count = max(1, math.floor(nx * ny * max(0.0, density)))
    offset = max(0, int(offset))
    out = rgb.copy()

    for _ in range(count):
        bx = int(rng.integers(0, max(1, w - block + 1)))
        by = int(rng.integers(0, max(1, h - block + 1)))
        dx = int(rng.integers(-offset, offset + 1))
        dy = int(rng.integers(-offset, offset + 1))
        bw = min(block, w - bx)
        bh = min(block, h - by)
        sx = min(max(0, bx + dx), w - bw)
        sy = min(max(0, by + dy), h - bh)
        out[by : by + bh, bx : bx + bw] = rgb[sy : sy + bh, sx : sx + bw]
    return out


def line_glitch(rgb: np.ndarray, intensity: float, rng: np.random.Generator) -> np.ndarray:
    """Shift random horizontal strips and tint random patches.

    ``intensity`` is 0-100; color patches are added above 40.
    """
    level = max(0.0, min(100.0, intensity)) / 100.0
    if level <= 0:
        return rgb
    h, w = rgb.shape[:2]
    out = rgb.copy()

    for _ in range(max(1, math.floor(h * level * 0.2))):
        y = int(rng.integers(0, h))
        line_height = max(1, int(rng.integers(0, 10)))
        shift = int(rng.random() * w * 0.1)
        out[y : y + line_height] = np.roll(out[y : y + line_height], -shift, axis=1)

    if level > 0.4:
        for _ in range(max(1, math.floor(w * h * 0.001 * level))):
            x = int(rng.integers(0, w))
            y = int(rng.integers(0, h))
            pw = min(int(rng.integers(5, 35)), w - x)
            ph = min(int(rng.integers(5, 35)), h - y)
            channel = int(rng.integers(0, 3))
            amount = float(rng.integers(-50, 50))
            patch = out[y : y + ph, x : x + pw, channel]
            out[y : y + ph, x : x + pw, channel] = np.clip(patch + amount, 0.0, 255.0)
    return out


def glitch(image: Image.Image, settings: GlitchSettings, rng: np.random.Generator) -> Image.Image:
    """Apply every enabled glitch sub-effect in order.

    Args:
        image: Input image (any mode)
        settings: Glitch settings
        rng: Random generator for noise, blocks and line glitches

    Returns:
        New RGBA image with the input's alpha
    """
    rgb, alpha = split_alpha(image)

    if settings.pixel_sort_enabled:
        rgb = pixel_sort(rgb, settings.pixel_sort_threshold, settings.pixel_sort_direction)
    if settings.channel_shift_enabled:
        rgb = channel_shift(rgb, settings.channel_shift_amount, settings.channel_shift_mode)
    if settings.scan_lines_enabled:
        rgb = scan_lines(rgb, settings.scan_lines_count, settings.scan_lines_intensity)
    if settings.noise_enabled:
        rgb = noise(rgb, settings.noise_amount, rng)
    if settings.blocks_enabled:
        rgb = block_displace(
            rgb,
            settings.blocks_size,
            settings.blocks_offset,
            settings.blocks_density,
            rng,
        )
    if settings.intensity > 0:
        rgb = line_glitch(rgb, settings.intensity, rng)

    return merge_alpha(rgb, alpha)
