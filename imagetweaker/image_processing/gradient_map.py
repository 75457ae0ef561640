"""Gradient map: recolor by luminance through a list of color stops."""

import numpy as np
from PIL import Image

from ..models import BlendMode, GradientMapSettings
from .blend import blend, mix
from .utils import luminance, merge_alpha, split_alpha


def gradient_lut(stops) -> np.ndarray:
    """Build a 256-entry RGB lookup table from gradient stops.

    Args:
        stops: GradientStop sequence; positions are percents and need not
            be sorted

    Returns:
        (256, 3) float array indexed by rounded luminance. Luminance outside
        the first and last stop takes that stop's color.
    """
    ordered = sorted(stops, key=lambda s: s.position)
    if not ordered:
        return np.repeat(np.arange(256, dtype=np.float64)[:, None], 3, axis=1)

    positions = np.array([min(100.0, max(0.0, s.position)) for s in ordered])
    colors = np.array([s.color[:3] for s in ordered], dtype=np.float64)
    axis = np.arange(256) / 255.0 * 100.0
    # np.interp holds the end values past the outer stops
    lut = np.stack([np.interp(axis, positions, colors[:, c]) for c in range(3)], axis=-1)
    return np.rint(lut)


def apply_gradient_map(image: Image.Image, settings: GradientMapSettings) -> Image.Image:
    """Map each pixel's luminance onto the gradient and blend it back in.

    Args:
        image: Input image (any mode)
        settings: Gradient stops, blend mode and opacity

    Returns:
        New RGBA image; alpha is unchanged
    """
    rgb, alpha = split_alpha(image)
    lut = gradient_lut(settings.stops)
    index = np.clip(np.rint(luminance(rgb)), 0, 255).astype(np.intp)
    mapped = lut[index]
    layer = blend(rgb, mapped, BlendMode(settings.blend_mode))
    return merge_alpha(mix(rgb, layer, settings.opacity), alpha)
