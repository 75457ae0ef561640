"""Color/tone stages: HSL adjustment, levels, duotone threshold and posterize.

All four are pointwise maps. Alpha is copied through unchanged.
"""

import math
from dataclasses import replace

import numpy as np
from PIL import Image

from ..models import (
    ColorSettings,
    LevelsSettings,
    PosterizeMode,
    PosterizeSettings,
    ThresholdSettings,
)
from .utils import clamp, hsl_to_rgb, luminance, merge_alpha, rgb_to_hsl, split_alpha

# Floyd-Steinberg weights used to spread posterize error: (dy, dx, weight)
POSTERIZE_DIFFUSION = ((0, 1, 7 / 16), (1, -1, 3 / 16), (1, 0, 5 / 16), (1, 1, 1 / 16))


def _finite(value, neutral):
    """Return value, or the neutral setting when value is NaN or infinite."""
    try:
        return value if math.isfinite(value) else neutral
    except TypeError:
        return neutral


def sanitize(settings: ColorSettings) -> ColorSettings:
    """Replace non-finite adjustments with their no-op values."""
    return replace(
        settings,
        hue_shift=_finite(settings.hue_shift, 0.0),
        saturation=_finite(settings.saturation, 100.0),
        brightness=_finite(settings.brightness, 100.0),
        contrast=_finite(settings.contrast, 100.0),
        posterize=_finite(settings.posterize, 0),
    )


def _hsl_neutral(settings: ColorSettings) -> bool:
    return (
        settings.hue_shift % 360 == 0
        and settings.saturation == 100
        and settings.brightness == 100
        and settings.contrast == 100
        and settings.posterize <= 1
    )


def is_neutral(settings: ColorSettings) -> bool:
    """True when the adjustment leaves every pixel as it is."""
    settings = sanitize(settings)
    return _hsl_neutral(settings) and not settings.invert


def apply_color(image: Image.Image, settings: ColorSettings) -> Image.Image:
    """Apply hue/saturation/brightness/contrast/posterize, then invert.

    Args:
        image: Input image (any mode)
        settings: Color adjustment settings

    Returns:
        New RGBA image of the same size
    """
    settings = sanitize(settings)
    if is_neutral(settings):
        return image.convert("RGBA") if image.mode != "RGBA" else image.copy()

    rgb, alpha = split_alpha(image)

    if not _hsl_neutral(settings):
        h, s, l = rgb_to_hsl(rgb)
        h = np.mod(h + settings.hue_shift, 360.0)
        s = np.clip(s * max(0.0, settings.saturation) / 100.0, 0.0, 1.0)
        l = np.clip(l * max(0.0, settings.brightness) / 100.0, 0.0, 1.0)
        l = np.clip((l - 0.5) * max(0.0, settings.contrast) / 100.0 + 0.5, 0.0, 1.0)

        # AIDEV-NOTE: 0 or 1 bands is the identity, never a divide by zero
        if settings.posterize > 1:
            steps = int(settings.posterize) - 1
            l = np.round(l * steps) / steps

        rgb = np.clip(np.rint(hsl_to_rgb(h, s, l)), 0, 255)

    if settings.invert:
        rgb = 255.0 - rgb

    return merge_alpha(rgb, alpha)


def apply_levels(image: Image.Image, settings: LevelsSettings) -> Image.Image:
    """Remap [black, white] to [0, 255] per channel, then apply the gamma curve."""
    black = clamp(_finite(settings.black, 0), 0, 255)
    white = clamp(_finite(settings.white, 255), 0, 255)
    if white <= black:
        white = min(255, black + 1)
        black = white - 1
    gamma = max(0.1, _finite(settings.gamma, 1.0))
    if black == 0 and white == 255 and gamma == 1.0:
        return image.convert("RGBA") if image.mode != "RGBA" else image.copy()

    rgb, alpha = split_alpha(image)
    norm = np.clip((rgb - black) / (white - black), 0.0, 1.0)
    out = np.power(norm, 1.0 / gamma) * 255.0
    return merge_alpha(out, alpha)


def apply_threshold(image: Image.Image, settings: ThresholdSettings) -> Image.Image:
    """Map every pixel to the dark or light color by its luminance."""
    rgb, alpha = split_alpha(image)
    lum = luminance(rgb)
    dark = np.array(settings.dark_color[:3], dtype=np.float32)
    light = np.array(settings.light_color[:3], dtype=np.float32)
    out = np.where((lum < clamp(settings.threshold, 0, 255))[..., None], dark, light)
    return merge_alpha(out, alpha)


def _bands(values: np.ndarray, levels: int) -> np.ndarray:
    """Snap 0-255 values to ``levels`` evenly spaced bands."""
    steps = levels - 1
    return np.round(values / 255.0 * steps) * (255.0 / steps)


def _scale_to(rgb: np.ndarray, current: np.ndarray, target: np.ndarray) -> np.ndarray:
    """Scale RGB so a per-pixel measure moves from ``current`` to ``target``."""
    ratio = np.divide(target, current, out=np.zeros_like(current), where=current > 0)
    return np.minimum(255.0, rgb * ratio[..., None])


def _diffuse_error(out: np.ndarray, error: np.ndarray) -> np.ndarray:
    """Push each pixel's error onto its forward neighbors in one pass."""
    h, w = out.shape[:2]
    spread = np.zeros_like(out)
    for dy, dx, weight in POSTERIZE_DIFFUSION:
        ys = slice(dy, h)
        xs = slice(max(0, dx), w + min(0, dx))
        src_x = slice(max(0, -dx), w - max(0, dx))
        spread[ys, xs] += error[: h - dy, src_x] * weight
    return out + spread


def apply_posterize(image: Image.Image, settings: PosterizeSettings) -> Image.Image:
    """Reduce the image to a few tone bands.

    Args:
        image: Input image (any mode)
        settings: Posterize settings. ``rgb`` bands the channel mean and
            rescales the pixel so hues survive, ``hsv`` bands hue, saturation
            and value, ``lab`` bands luminance only.

    Returns:
        New RGBA image of the same size
    """
    rgb, alpha = split_alpha(image)
    levels = int(clamp(_finite(settings.levels, 256), 2, 256))
    mode = PosterizeMode(settings.color_mode)

    if mode == PosterizeMode.RGB:
        mean = rgb.mean(axis=-1)
        out = _scale_to(rgb, mean, _bands(mean, levels))
    elif mode == PosterizeMode.HSV:
        rgb8 = np.clip(np.rint(rgb), 0, 255).astype(np.uint8)
        hsv = np.asarray(Image.fromarray(rgb8, "RGB").convert("HSV")).astype(np.float64)
        hue_step = 256.0 / levels
        hsv[..., 0] = np.mod(np.round(hsv[..., 0] / hue_step) * hue_step, 256.0)
        hsv[..., 1:] = _bands(hsv[..., 1:], levels)
        hsv8 = np.clip(np.rint(hsv), 0, 255).astype(np.uint8)
        out = np.asarray(Image.fromarray(hsv8, "HSV").convert("RGB")).astype(np.float64)
    else:
        lum = luminance(rgb)
        banded = _bands(lum, levels)
        if settings.preserve_luminance:
            out = _scale_to(rgb, lum, banded)
        else:
            out = np.repeat(banded[..., None], 3, axis=2)

    if settings.dithering and settings.dither_amount > 0:
        amount = clamp(_finite(settings.dither_amount, 0.0), 0, 100) / 100.0
        out = _diffuse_error(out, (rgb - out) * amount)

    return merge_alpha(out, alpha)
