"""Text dithering: stamps characters whose color follows local brightness."""

import math

import numpy as np
from PIL import Image, ImageDraw, ImageFont

from ..models import TextColorMode, TextDitherSettings
from .utils import luminance, split_alpha

# Upper bound on stamped glyphs per render
MAX_GLYPHS = 250_000


def glyph_count(width: int, height: int, settings: TextDitherSettings) -> int:
    """Number of glyphs stamped on a canvas of the given size."""
    font_size = max(1, int(settings.font_size))
    resolution = settings.resolution if settings.resolution > 0 else 1.0
    pixels_per_char = max(1, math.floor(font_size * font_size / resolution))
    return min(MAX_GLYPHS, (width * height) // pixels_per_char)


def adjust(values: np.ndarray, settings: TextDitherSettings) -> np.ndarray:
    """Apply brightness, contrast and inversion to 0-255 values."""
    out = values * settings.brightness
    out = (out - 128.0) * settings.contrast + 128.0
    out = np.clip(out, 0.0, 255.0)
    if settings.invert:
        out = 255.0 - out
    return out


def text_dither(
    image: Image.Image,
    settings: TextDitherSettings,
    rng: np.random.Generator,
) -> Image.Image:
    """Stamp the text's characters at random positions.

    Args:
        image: Input image (any mode)
        settings: Text dither settings
        rng: Random generator for glyph positions

    Returns:
        RGBA image on a transparent background
    """
    width, height = image.size
    rgb, _ = split_alpha(image)
    result = Image.new("RGBA", (width, height), (0, 0, 0, 0))

    text = settings.text or " "
    count = glyph_count(width, height, settings)
    if count == 0 or not text.strip():
        return result

    font = ImageFont.load_default(size=max(1, int(settings.font_size)))
    draw = ImageDraw.Draw(result)

    xs = rng.integers(0, width, size=count)
    ys = rng.integers(0, height, size=count)
    local = rgb[ys, xs]
    if TextColorMode(settings.color_mode) == TextColorMode.COLORED:
        colors = np.rint(adjust(local, settings)).astype(np.uint8)
    else:
        lum = adjust(luminance(local), settings)
        mono = np.where(lum > 128, 255, 0).astype(np.uint8)
        colors = np.repeat(mono[:, None], 3, axis=1)

    # Glyph boxes are measured once per distinct character
    offsets = {}
    for ch in set(text):
        left, top, right, bottom = draw.textbbox((0, 0), ch, font=font)
        offsets[ch] = ((left + right) / 2.0, (top + bottom) / 2.0)

    for i, (x, y, color) in enumerate(zip(xs.tolist(), ys.tolist(), colors.tolist())):
        ch = text[i % len(text)]
        ox, oy = offsets[ch]
        draw.text((x - ox, y - oy), ch, fill=tuple(color) + (255,), font=font)
    return result
