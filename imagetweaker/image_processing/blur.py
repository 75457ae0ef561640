"""Blur stage: gaussian, box, motion, radial (zoom), spin and tilt-shift.

Gaussian and box run through Pillow's filters. The directional blurs
average samples along a line or arc per pixel, vectorized one sample
offset at a time. All four channels are blurred, alpha included.
"""

import math

import numpy as np
from PIL import Image, ImageFilter

from ..models import BlurSettings, BlurType


def _tent(samples: int) -> "list[tuple[float, float]]":
    """(t - 0.5, weight) pairs peaking at the middle sample."""
    if samples < 2:
        return [(0.0, 1.0)]
    out = []
    for i in range(samples):
        t = i / (samples - 1) - 0.5
        out.append((t, 1.0 - abs(t) * 2.0))
    return out


def _gather(data: np.ndarray, sx: np.ndarray, sy: np.ndarray, weight, total, acc) -> None:
    """Add weighted samples at (sx, sy) into acc, skipping ones off the canvas."""
    h, w = data.shape[:2]
    valid = (sx >= 0) & (sx < w) & (sy >= 0) & (sy < h)
    px = np.clip(sx, 0, w - 1)
    py = np.clip(sy, 0, h - 1)
    wt = np.where(valid, weight, 0.0)
    acc += data[py, px] * wt[..., None]
    total += wt


def _finish(data: np.ndarray, acc: np.ndarray, total: np.ndarray) -> np.ndarray:
    """Normalize accumulated samples, keeping pixels that got no weight."""
    out = data.copy()
    hit = total > 0
    out[hit] = acc[hit] / total[hit][:, None]
    return out


def _line_blur(data: np.ndarray, radius: float, angle: float) -> np.ndarray:
    h, w = data.shape[:2]
    ys, xs = np.mgrid[0:h, 0:w]
    cos_a, sin_a = math.cos(math.radians(angle)), math.sin(math.radians(angle))
    acc = np.zeros_like(data)
    total = np.zeros((h, w))
    for t, weight in _tent(math.ceil(radius * 2)):
        offset = t * radius
        sx = np.floor(xs + offset * cos_a).astype(np.intp)
        sy = np.floor(ys + offset * sin_a).astype(np.intp)
        _gather(data, sx, sy, weight, total, acc)
    return _finish(data, acc, total)


def motion_blur(data: np.ndarray, radius: float, angle: float) -> np.ndarray:
    """Average along a straight line through each pixel at ``angle`` degrees."""
    if radius <= 0:
        return data.copy()
    return _line_blur(data, radius, angle)


def radial_blur(data: np.ndarray, radius: float, cx: float, cy: float) -> np.ndarray:
    """Zoom blur: average along the ray from (cx, cy) through each pixel."""
    if radius <= 0:
        return data.copy()
    h, w = data.shape[:2]
    ys, xs = np.mgrid[0:h, 0:w]
    dx, dy = xs - cx, ys - cy
    dist = np.hypot(dx, dy)
    theta = np.arctan2(dy, dx)
    acc = np.zeros_like(data)
    total = np.zeros((h, w))
    for t, weight in _tent(math.ceil(radius * 2)):
        reach = dist + t * radius
        sx = np.floor(cx + reach * np.cos(theta)).astype(np.intp)
        sy = np.floor(cy + reach * np.sin(theta)).astype(np.intp)
        _gather(data, sx, sy, weight, total, acc)
    return _finish(data, acc, total)


def spin_blur(
    data: np.ndarray,
    degrees: float,
    cx: float,
    cy: float,
    center_radius: float = 0.0,
    center_gradient: float = 20.0,
) -> np.ndarray:
    """Rotational blur over an arc of ``degrees`` around (cx, cy).

    Pixels within ``center_radius`` stay sharp and the next
    ``center_gradient`` pixels fade from sharp to fully blurred.
    """
    if degrees <= 0:
        return data.copy()
    h, w = data.shape[:2]
    ys, xs = np.mgrid[0:h, 0:w]
    dx, dy = xs - cx, ys - cy
    dist = np.hypot(dx, dy)
    theta = np.arctan2(dy, dx)
    arc = math.radians(degrees)
    samples = max(3, math.ceil(degrees))
    acc = np.zeros_like(data)
    total = np.zeros((h, w))
    for i in range(samples):
        angle = theta + (i / (samples - 1) - 0.5) * arc
        sx = np.rint(cx + dist * np.cos(angle)).astype(np.intp)
        sy = np.rint(cy + dist * np.sin(angle)).astype(np.intp)
        _gather(data, sx, sy, 1.0, total, acc)
    blurred = _finish(data, acc, total)

    core = max(0.0, center_radius)
    if center_gradient > 0:
        fade = np.clip((dist - core) / center_gradient, 0.0, 1.0)
    else:
        fade = (dist > core).astype(np.float64)
    fade = np.where(dist <= core, 0.0, fade)[..., None]
    return data + (blurred - data) * fade


def tilt_shift_blur(data: np.ndarray, settings: BlurSettings) -> np.ndarray:
    """Directional blur that grows with distance from a sharp focus band."""
    h, w = data.shape[:2]
    longest = max(w, h)
    band = settings.focus_width / 100.0 * longest
    ramp = max(1.0, settings.gradient / 100.0 * longest)
    a = math.radians(settings.angle)
    cos_a, sin_a = math.cos(a), math.sin(a)

    shift = (settings.focus_position - 50.0) / 50.0 * min(w, h) / 2.0
    fx = w / 2.0 + shift * sin_a
    fy = h / 2.0 - shift * cos_a
    ys, xs = np.mgrid[0:h, 0:w]
    distance = np.abs((xs - fx) * -sin_a + (ys - fy) * cos_a)
    amount = np.clip((distance - band / 2.0) / ramp, 0.0, 1.0)
    radii = np.floor(settings.radius * amount).astype(np.intp)

    out = data.copy()
    # AIDEV-NOTE: one line blur per distinct radius, applied where it is used
    for radius in np.unique(radii):
        if radius <= 0:
            continue
        mask = radii == radius
        out[mask] = _line_blur(data, float(radius), settings.angle)[mask]
    return out


def apply_blur(image: Image.Image, settings: BlurSettings) -> Image.Image:
    """Blur an image.

    Args:
        image: Input image (any mode)
        settings: Blur type and its parameters. ``radius`` is in pixels,
            except for spin where it is the arc in degrees.

    Returns:
        New RGBA image of the same size
    """
    image = image.convert("RGBA") if image.mode != "RGBA" else image
    radius = float(settings.radius)
    if not math.isfinite(radius) or radius <= 0:
        return image.copy()

    blur_type = BlurType(settings.blur_type)
    if blur_type == BlurType.GAUSSIAN:
        return image.filter(ImageFilter.GaussianBlur(radius / 2.0))
    if blur_type == BlurType.BOX:
        return image.filter(ImageFilter.BoxBlur(math.floor(radius)))

    data = np.asarray(image).astype(np.float64)
    w, h = image.size
    cx = settings.center_x / 100.0 * w
    cy = settings.center_y / 100.0 * h
    if blur_type == BlurType.MOTION:
        out = motion_blur(data, radius, settings.angle)
    elif blur_type == BlurType.RADIAL:
        out = radial_blur(data, radius, cx, cy)
    elif blur_type == BlurType.SPIN:
        out = spin_blur(data, radius, cx, cy, settings.center_radius, settings.center_gradient)
    else:
        out = tilt_shift_blur(data, settings)
    return Image.fromarray(np.clip(np.rint(out), 0, 255).astype(np.uint8), "RGBA")
