"""Gradient noise and the stages built on it: noise overlay and linocut.

AIDEV-NOTE: gradient_noise() is classic Perlin noise over a random gradient
lattice drawn from the generator it is given, so a fixed seed always gives
the same field. Both stages seed their own generator and never touch the
run's generator.
"""

import numpy as np
from PIL import Image

from ..models import BlendMode, LinocutSettings, NoiseChannel, NoiseSettings, Orientation
from .blend import blend
from .utils import luminance, merge_alpha, split_alpha

# Linocut wobble is fixed so the same image always carves the same way
LINOCUT_NOISE_SEED = 42

# Phase advance of the linocut wave per pixel along a line
LINOCUT_WAVE_STEP = 0.08


def _fade(t: np.ndarray) -> np.ndarray:
    return t * t * t * (t * (t * 6.0 - 15.0) + 10.0)


def gradient_noise(x: np.ndarray, y: np.ndarray, rng: np.random.Generator) -> np.ndarray:
    """Perlin noise sampled at non-negative lattice coordinates.

    Args:
        x: Horizontal coordinates in lattice units (broadcastable with y)
        y: Vertical coordinates in lattice units
        rng: Generator for the gradient lattice

    Returns:
        Noise values in [-1, 1], zero on every lattice point
    """
    x, y = np.broadcast_arrays(np.asarray(x, dtype=np.float64), np.asarray(y, dtype=np.float64))
    if x.size == 0:
        return np.zeros(x.shape)
    gx = int(np.floor(x.max())) + 2
    gy = int(np.floor(y.max())) + 2
    angles = rng.random((gy, gx)) * 2.0 * np.pi
    grads = np.stack([np.cos(angles), np.sin(angles)], axis=-1)

    xi = np.floor(x).astype(np.intp)
    yi = np.floor(y).astype(np.intp)
    xf = x - xi
    yf = y - yi

    def corner(dy, dx):
        g = grads[yi + dy, xi + dx]
        return g[..., 0] * (xf - dx) + g[..., 1] * (yf - dy)

    u = _fade(xf)
    v = _fade(yf)
    top = corner(0, 0) + u * (corner(0, 1) - corner(0, 0))
    bottom = corner(1, 0) + u * (corner(1, 1) - corner(1, 0))
    # 2D Perlin peaks at sqrt(0.5); rescale to the full range
    return np.clip((top + v * (bottom - top)) * np.sqrt(2.0), -1.0, 1.0)


def apply_noise(image: Image.Image, settings: NoiseSettings) -> Image.Image:
    """Blend gradient noise into the image.

    Args:
        image: Input image (any mode)
        settings: Noise settings; ``scale`` is the feature size in pixels

    Returns:
        New RGBA image; alpha is unchanged
    """
    rgb, alpha = split_alpha(image)
    h, w = rgb.shape[:2]
    intensity = min(1.0, max(0.0, float(settings.intensity)))
    freq = 1.0 / max(float(settings.scale), 1e-4)
    rng = np.random.default_rng(settings.seed)

    ys, xs = np.mgrid[0:h, 0:w]
    if settings.monochrome:
        field = gradient_noise(xs * freq, ys * freq, rng)[..., None]
    else:
        field = np.stack([gradient_noise(xs * freq, ys * freq, rng) for _ in range(3)], axis=-1)
    noise = (field + 1.0) * 127.5

    channel = NoiseChannel(settings.channel)
    selected = np.ones(3, dtype=bool)
    if channel != NoiseChannel.ALL:
        selected = np.array([channel == c for c in (NoiseChannel.RED, NoiseChannel.GREEN, NoiseChannel.BLUE)])

    base = rgb.astype(np.float64)
    top = np.where(selected, np.rint(base * (1.0 - intensity) + noise * intensity), base)
    out = blend(base, top, BlendMode(settings.blend_mode))
    out = np.where(selected, out, base)
    return merge_alpha(out, alpha)


def linocut(image: Image.Image, settings: LinocutSettings) -> Image.Image:
    """Carve the image into wavy lines whose thickness follows darkness.

    Lines run every ``line_spacing`` pixels. Along each line a ribbon is
    inked whose width grows from ``min_line`` in light areas to
    ``stroke_width`` in dark ones, and which wobbles by a sine wave plus
    gradient noise. Pixels brighter than ``threshold`` get no ink.

    Args:
        image: Input image (any mode)
        settings: Linocut settings

    Returns:
        New black-and-white RGBA image; alpha is unchanged
    """
    rgb, alpha = split_alpha(image)
    bright = luminance(rgb) / 255.0
    horizontal = Orientation(settings.orientation) == Orientation.HORIZONTAL
    if not horizontal:
        bright = bright.T
    rows, length = bright.shape

    spacing = max(1, int(settings.line_spacing))
    stroke = max(0.0, float(settings.stroke_width))
    thinnest = max(0.0, float(settings.min_line))
    center = settings.center_x if horizontal else settings.center_y
    rng = np.random.default_rng(LINOCUT_NOISE_SEED)

    ink = np.zeros((rows, length), dtype=bool)
    positions = np.arange(length, dtype=np.float64)
    lines = np.arange(0, rows if length else 0, spacing)
    if lines.size:
        scale = max(0.0, float(settings.noise_scale))
        wobble = gradient_noise(positions[None, :] * scale, lines[:, None] * scale, rng)
    for index, line in enumerate(lines):
        level = bright[line]
        if settings.invert:
            band = thinnest + (stroke - thinnest) * level
        else:
            band = thinnest + (stroke - thinnest) * (1.0 - level)
        band = np.where(level > settings.threshold, 0.0, band)

        phase = positions * LINOCUT_WAVE_STEP + (center - 0.5) * 2.0 * np.pi
        offset = np.sin(phase) * spacing * 0.5 + wobble[index] * spacing * 0.2
        reach = int(np.ceil(spacing * 0.7 + stroke / 2.0)) + 1
        lo, hi = max(0, line - reach), min(rows, line + reach + 1)
        ys = np.arange(lo, hi, dtype=np.float64)[:, None]
        hit = (np.abs(ys - (line + offset)) <= band / 2.0) & (band > 0.1)
        ink[lo:hi] |= hit

    if not horizontal:
        ink = ink.T
    paper, line_color = (0.0, 255.0) if settings.invert else (255.0, 0.0)
    out = np.where(ink, line_color, paper)
    return merge_alpha(np.repeat(out[..., None], 3, axis=2), alpha)
