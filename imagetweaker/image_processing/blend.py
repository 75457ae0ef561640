"""Layer blend modes shared by the gradient map and noise stages.

AIDEV-NOTE: Every function takes a base and a top layer as float arrays on
the 0-255 scale, broadcastable against each other, and returns the blended
layer on the same scale. Opacity is applied by the caller with mix().
"""

import numpy as np

from ..models import BlendMode
from .utils import hsl_to_rgb, rgb_to_hsl


def _multiply(a, b):
    return a * b / 255.0


def _screen(a, b):
    return 255.0 - (255.0 - a) * (255.0 - b) / 255.0


def _overlay(a, b):
    return np.where(a < 128, 2.0 * a * b / 255.0, 255.0 - 2.0 * (255.0 - a) * (255.0 - b) / 255.0)


def _hard_light(a, b):
    return _overlay(b, a)


def _soft_light(a, b):
    dark = a - (255.0 - 2.0 * b) * a * (255.0 - a) / (255.0 * 255.0)
    light = a + (2.0 * b - 255.0) * (np.sqrt(a / 255.0) * 255.0 - a) / 255.0
    return np.where(b < 128, dark, light)


def _color_dodge(a, b):
    with np.errstate(divide="ignore", invalid="ignore"):
        dodged = np.minimum(255.0, a / (255.0 - b) * 255.0)
    return np.where(a == 0, 0.0, np.where(b >= 255, 255.0, dodged))


def _color_burn(a, b):
    with np.errstate(divide="ignore", invalid="ignore"):
        burned = 255.0 - np.minimum(255.0, (255.0 - a) / b * 255.0)
    return np.where(a >= 255, 255.0, np.where(b == 0, 0.0, burned))


def _exclusion(a, b):
    return a + b - 2.0 * a * b / 255.0


def _color(a, b):
    _, _, light = rgb_to_hsl(a)
    hue, sat, _ = rgb_to_hsl(b)
    return hsl_to_rgb(hue, sat, light)


def _luminosity(a, b):
    hue, sat, _ = rgb_to_hsl(a)
    _, _, light = rgb_to_hsl(b)
    return hsl_to_rgb(hue, sat, light)


BLEND_FUNCTIONS = {
    BlendMode.NORMAL: lambda a, b: b,
    BlendMode.MULTIPLY: _multiply,
    BlendMode.SCREEN: _screen,
    BlendMode.OVERLAY: _overlay,
    BlendMode.DARKEN: np.minimum,
    BlendMode.LIGHTEN: np.maximum,
    BlendMode.COLOR_DODGE: _color_dodge,
    BlendMode.COLOR_BURN: _color_burn,
    BlendMode.HARD_LIGHT: _hard_light,
    BlendMode.SOFT_LIGHT: _soft_light,
    BlendMode.DIFFERENCE: lambda a, b: np.abs(a - b),
    BlendMode.EXCLUSION: _exclusion,
    BlendMode.COLOR: _color,
    BlendMode.LUMINOSITY: _luminosity,
}

# Modes that need whole RGB triples rather than single channels
HSL_MODES = (BlendMode.COLOR, BlendMode.LUMINOSITY)


def blend(base: np.ndarray, top: np.ndarray, mode: BlendMode) -> np.ndarray:
    """Blend ``top`` over ``base`` with a layer blend mode.

    Args:
        base: Base layer, 0-255 floats
        top: Top layer, 0-255 floats; must be RGB triples for color and
            luminosity
        mode: Blend mode

    Returns:
        Blended layer as float64, not yet clipped
    """
    a = np.asarray(base, dtype=np.float64)
    b = np.broadcast_to(np.asarray(top, dtype=np.float64), a.shape)
    return np.asarray(BLEND_FUNCTIONS[BlendMode(mode)](a, b), dtype=np.float64)


def mix(base: np.ndarray, layer: np.ndarray, opacity: float) -> np.ndarray:
    """Fade from ``base`` to ``layer`` by opacity (0-1)."""
    opacity = min(1.0, max(0.0, float(opacity)))
    return base + (layer - base) * opacity
