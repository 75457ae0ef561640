"""Shared pixel helpers used throughout the effects pipeline.

AIDEV-NOTE: Stages work on float32 numpy arrays in the 0-255 range and
convert back to PIL RGBA images at their boundary. Alpha is carried through
untouched unless a stage says otherwise.
"""

from io import BytesIO

import numpy as np
from PIL import Image
from PIL.PngImagePlugin import PngInfo

from ..models import LUMA_WEIGHTS


def to_rgba(image: Image.Image) -> Image.Image:
    """Return the image in RGBA mode (no copy when already RGBA)."""
    if image.mode != "RGBA":
        return image.convert("RGBA")
    return image


def split_alpha(image: Image.Image) -> "tuple[np.ndarray, np.ndarray]":
    """Split an image into a float RGB array (H, W, 3) and a uint8 alpha (H, W)."""
    arr = np.asarray(to_rgba(image))
    return arr[..., :3].astype(np.float32), arr[..., 3].copy()


def merge_alpha(rgb: np.ndarray, alpha: np.ndarray) -> Image.Image:
    """Round and clamp an RGB array and rejoin it with its alpha channel."""
    out = np.empty(rgb.shape[:2] + (4,), dtype=np.uint8)
    out[..., :3] = np.clip(np.rint(rgb), 0, 255).astype(np.uint8)
    out[..., 3] = alpha
    return Image.fromarray(out, "RGBA")


def luminance(rgb: np.ndarray) -> np.ndarray:
    """Rec.601 luma of an (..., 3) array, same scale as the input."""
    r, g, b = LUMA_WEIGHTS
    return rgb[..., 0] * r + rgb[..., 1] * g + rgb[..., 2] * b


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def rgb_to_hsl(rgb: np.ndarray) -> "tuple[np.ndarray, np.ndarray, np.ndarray]":
    """Convert a 0-255 RGB array to hue (degrees), saturation and lightness (0-1)."""
    c = rgb / 255.0
    r, g, b = c[..., 0], c[..., 1], c[..., 2]
    cmax = c.max(axis=-1)
    cmin = c.min(axis=-1)
    delta = cmax - cmin
    l = (cmax + cmin) / 2.0

    s = np.zeros_like(l)
    chroma = delta > 1e-12
    denom = 1.0 - np.abs(2.0 * l - 1.0)
    np.divide(delta, denom, out=s, where=chroma & (denom > 1e-12))

    h = np.zeros_like(l)
    safe = np.where(chroma, delta, 1.0)
    hr = ((g - b) / safe) % 6.0
    hg = (b - r) / safe + 2.0
    hb = (r - g) / safe + 4.0
    h = np.where(cmax == r, hr, np.where(cmax == g, hg, hb))
    h = np.where(chroma, h * 60.0, 0.0)
    return h, s, l


def hsl_to_rgb(h: np.ndarray, s: np.ndarray, l: np.ndarray) -> np.ndarray:
    """Inverse of rgb_to_hsl, returning a 0-255 float RGB array."""
    h = np.mod(h, 360.0)
    s = np.clip(s, 0.0, 1.0)
    l = np.clip(l, 0.0, 1.0)
    c = (1.0 - np.abs(2.0 * l - 1.0)) * s
    hp = h / 60.0
    x = c * (1.0 - np.abs(hp % 2.0 - 1.0))
    m = l - c / 2.0
    zero = np.zeros_like(c)

    sector = np.floor(hp).astype(np.int32) % 6
    r = np.choose(sector, [c, x, zero, zero, x, c])
    g = np.choose(sector, [x, c, c, x, zero, zero])
    b = np.choose(sector, [zero, zero, x, c, c, x])
    return np.stack([r + m, g + m, b + m], axis=-1) * 255.0


def pil_resample(name: str) -> int:
    """Map a resample name to the PIL constant."""
    return {
        "nearest": Image.Resampling.NEAREST,
        "bilinear": Image.Resampling.BILINEAR,
        "bicubic": Image.Resampling.BICUBIC,
    }.get(name, Image.Resampling.BILINEAR)


def encode_png(
    image: Image.Image,
    metadata: "dict[str, str] | None" = None,
    compress_level: int = 6,
) -> bytes:
    """Serialize an image as PNG bytes, writing metadata as tEXt chunks."""
    info = None
    if metadata:
        info = PngInfo()
        for key, value in metadata.items():
            info.add_text(key, str(value))
    buffer = BytesIO()
    image.save(buffer, format="PNG", pnginfo=info, compress_level=int(clamp(compress_level, 0, 9)))
    return buffer.getvalue()


def composite_clipped(base: Image.Image, tile: Image.Image, x: int, y: int) -> None:
    """Composite tile source-over onto base at (x, y), clipped to base."""
    left, top = max(0, -x), max(0, -y)
    right = min(tile.width, base.width - x)
    bottom = min(tile.height, base.height - y)
    if right <= left or bottom <= top:
        return
    base.alpha_composite(tile, dest=(x + left, y + top), source=(left, top, right, bottom))
