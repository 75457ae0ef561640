"""Pixelate stage: square cells filled with their average color."""

import numpy as np
from PIL import Image

from ..models import PixelateSettings, PixelVariant
from .utils import clamp, luminance, merge_alpha, split_alpha


def block_means(rgb: np.ndarray, cell: int) -> np.ndarray:
    """Average each cell x cell block; edge blocks average what they cover.

    Returns:
        Array the same shape as ``rgb`` with every block set to its mean
    """
    h, w = rgb.shape[:2]
    rows = np.arange(0, h, cell)
    cols = np.arange(0, w, cell)
    sums = np.add.reduceat(np.add.reduceat(rgb.astype(np.float64), rows, axis=0), cols, axis=1)
    heights = np.diff(np.append(rows, h))
    widths = np.diff(np.append(cols, w))
    means = sums / (heights[:, None] * widths[None, :])[..., None]
    return np.repeat(np.repeat(means, heights, axis=0), widths, axis=1)


def _steps(values: np.ndarray, levels: int) -> np.ndarray:
    steps = levels - 1
    return np.round(values / 255.0 * steps) * (255.0 / steps)


def pixelate(image: Image.Image, settings: PixelateSettings) -> Image.Image:
    """Pixelate an image on a square grid.

    Args:
        image: Input image (any mode)
        settings: Cell size and variant. ``posterized`` snaps each cell to
            a few levels per channel, ``grayscale`` uses the cell's luma.

    Returns:
        New RGBA image; alpha is unchanged
    """
    rgb, alpha = split_alpha(image)
    cell = max(1, int(settings.cell_size))
    if rgb.size == 0:
        return merge_alpha(rgb, alpha)

    out = block_means(rgb, cell)
    variant = PixelVariant(settings.variant)
    if variant == PixelVariant.POSTERIZED:
        out = _steps(out, int(clamp(settings.posterize_levels, 2, 8)))
    elif variant == PixelVariant.GRAYSCALE:
        gray = _steps(luminance(out), int(clamp(settings.grayscale_levels, 2, 256)))
        out = np.repeat(gray[..., None], 3, axis=2)
    return merge_alpha(out, alpha)
