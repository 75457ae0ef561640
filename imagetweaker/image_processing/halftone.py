"""Halftone stage: brightness to dot size at arranged sample points.

AIDEV-NOTE: Dot placement (compute_dots) is kept separate from drawing
(render_dots) so the SVG exporter can rebuild the same geometry without
touching pixels. Every drawn dot is returned to the caller for caching.
"""

import math

import numpy as np
from PIL import Image, ImageChops, ImageDraw

from ..models import DotInfo, HalftoneArrangement, HalftoneSettings, HalftoneShape
from .utils import split_alpha

# Dots smaller than this diameter are neither drawn nor recorded
MIN_DOT_SIZE = 0.5

# Raster dots are drawn at this multiple of the canvas size and reduced
SUPERSAMPLE = 2

# Vertices used for ellipse outlines
ELLIPSE_SEGMENTS = 32

# Ink colors and channel tags, in the order layers are composited
CMYK_INKS: "dict[str, tuple[int, int, int]]" = {
    "c": (0, 255, 255),
    "m": (255, 0, 255),
    "y": (255, 255, 0),
    "k": (0, 0, 0),
}
CHANNEL_FIELDS = {"c": "cyan", "m": "magenta", "y": "yellow", "k": "black"}


def rgb_to_cmyk(rgb: np.ndarray) -> np.ndarray:
    """Convert a 0-255 RGB array to CMYK fractions (..., 4)."""
    c = np.asarray(rgb, dtype=np.float64) / 255.0
    k = 1.0 - c.max(axis=-1)
    denom = 1.0 - k
    safe = np.where(denom > 1e-12, denom, 1.0)
    cmy = np.where((denom > 1e-12)[..., None], (1.0 - c - k[..., None]) / safe[..., None], 0.0)
    return np.concatenate([np.clip(cmy, 0.0, 1.0), k[..., None]], axis=-1)


def sample_points(
    width: int,
    height: int,
    settings: HalftoneSettings,
    rng: np.random.Generator,
    angle: float = 0.0,
) -> "list[tuple[float, float]]":
    """Lay out sample points for the configured arrangement.

    Args:
        width: Canvas width in pixels
        height: Canvas height in pixels
        settings: Halftone settings (cell size and arrangement parameters)
        rng: Random generator for the random arrangement
        angle: Screen angle in degrees; the layout is rotated about the
            canvas center and clipped to the canvas

    Returns:
        List of (x, y) centers in canvas coordinates
    """
    cell = max(1.0, float(settings.cell_size))
    arrangement = HalftoneArrangement(settings.arrangement)

    if angle % 360:
        # Cover the rotated canvas with a square the size of its diagonal
        span = math.ceil(math.hypot(width, height))
        x0, y0 = (width - span) / 2.0, (height - span) / 2.0
        region = (x0, y0, span, span)
    else:
        region = (0.0, 0.0, width, height)

    if arrangement == HalftoneArrangement.HEXAGONAL:
        points = _hexagonal(region, cell, settings.hexagonal_row_offset)
    else:
        points = _lattice(region, cell)

    if arrangement == HalftoneArrangement.RANDOM:
        jitter = rng.uniform(-cell / 2.0, cell / 2.0, size=(len(points), 2))
        points = [(x + jx, y + jy) for (x, y), (jx, jy) in zip(points, jitter.tolist())]
    elif arrangement == HalftoneArrangement.SPIRAL:
        points = _spiral(points, width, height, settings)
    elif arrangement == HalftoneArrangement.CONCENTRIC:
        points = _concentric(points, width, height, cell, settings)

    clip = bool(angle % 360) or arrangement in (
        HalftoneArrangement.SPIRAL,
        HalftoneArrangement.CONCENTRIC,
    )
    if angle % 360:
        points = _rotate(points, width / 2.0, height / 2.0, angle)
    if clip:
        points = [(x, y) for x, y in points if 0 <= x < width and 0 <= y < height]
        if not points and width > 0 and height > 0:
            # canvas smaller than one cell: keep a single dot at its center
            points = [(width / 2.0, height / 2.0)]
    return points


def _lattice(region, cell: float) -> "list[tuple[float, float]]":
    x0, y0, w, h = region
    cols = math.ceil(w / cell)
    rows = math.ceil(h / cell)
    return [
        (x0 + x * cell + cell / 2.0, y0 + y * cell + cell / 2.0)
        for y in range(rows)
        for x in range(cols)
    ]


def _hexagonal(region, cell: float, row_offset: float) -> "list[tuple[float, float]]":
    x0, y0, w, h = region
    cols = math.ceil(w / cell)
    rows = math.ceil(h / cell)
    points = []
    for y in range(rows + 1):
        shift = cell * row_offset if y % 2 == 0 else 0.0
        for x in range(cols + 1):
            px = x * cell + shift
            py = y * cell
            if px > w + cell or py > h + cell:
                continue
            points.append((x0 + px, y0 + py))
    return points


def _spiral(points, width: int, height: int, settings: HalftoneSettings):
    cx = width / 2.0 + settings.spiral_center_x
    cy = height / 2.0 + settings.spiral_center_y
    tightness = 0.001 + settings.spiral_tightness * 0.009
    expansion = settings.spiral_expansion or 1.0
    rotation = math.radians(settings.spiral_rotation)
    out = []
    for x, y in points:
        dx, dy = x - cx, y - cy
        dist = math.hypot(dx, dy)
        theta = math.atan2(dy, dx) + rotation + dist * tightness * expansion
        # Spread slightly so the twisted layout still reaches the corners
        r = dist / 0.8
        out.append((cx + math.cos(theta) * r, cy + math.sin(theta) * r))
    return out


def _concentric(points, width: int, height: int, cell: float, settings: HalftoneSettings):
    cx = width / 2.0 + settings.concentric_center_x
    cy = height / 2.0 + settings.concentric_center_y
    spacing = cell * max(0.01, settings.concentric_ring_spacing or 1.0)
    seen = set()
    out = []
    for x, y in points:
        dx, dy = x - cx, y - cy
        radius = round(math.hypot(dx, dy) / spacing) * spacing
        theta = math.atan2(dy, dx)
        p = (cx + math.cos(theta) * radius, cy + math.sin(theta) * radius)
        key = (round(p[0], 3), round(p[1], 3))
        if key in seen:
            continue
        seen.add(key)
        out.append(p)
    return out


def _rotate(points, cx: float, cy: float, angle: float):
    a = math.radians(angle)
    cos_a, sin_a = math.cos(a), math.sin(a)
    return [
        (cx + (x - cx) * cos_a - (y - cy) * sin_a, cy + (x - cx) * sin_a + (y - cy) * cos_a)
        for x, y in points
    ]


def compute_dots(
    image: Image.Image,
    settings: HalftoneSettings,
    rng: np.random.Generator,
) -> "list[DotInfo]":
    """Place halftone dots for an image without drawing them.

    Args:
        image: Halftone input image
        settings: Halftone settings
        rng: Random generator (random arrangement and size variation)

    Returns:
        Dots in draw order. CMYK dots carry their channel tag and ink color
        and are ordered channel by channel, largest first within a channel.
    """
    width, height = image.size
    rgb, _ = split_alpha(image)
    lum = (rgb[..., 0] * 0.299 + rgb[..., 1] * 0.587 + rgb[..., 2] * 0.114) / 255.0
    cell = max(1.0, float(settings.cell_size))
    channels = _enabled_channels(settings)

    if settings.enable_cmyk and channels:
        cmyk = rgb_to_cmyk(rgb)
        dots = []
        for index, tag in enumerate("cmyk"):
            if tag not in channels:
                continue
            angle = getattr(settings.cmyk_angles, CHANNEL_FIELDS[tag])
            layer = []
            for x, y in sample_points(width, height, settings, rng, angle):
                px, py = _pixel(x, y, width, height)
                strength = float(cmyk[py, px, index])
                if settings.invert_brightness:
                    strength = 1.0 - strength
                dot = _make_dot(x, y, cell, strength, settings, rng)
                if dot is not None:
                    layer.append(
                        DotInfo(
                            x=x,
                            y=y,
                            size=dot,
                            color=CMYK_INKS[tag],
                            channel=tag,
                            angle=angle + settings.angle_offset,
                        )
                    )
            # AIDEV-NOTE: stable sort keeps placement order among equal sizes
            layer.sort(key=lambda d: d.size, reverse=True)
            dots.extend(layer)
        return dots

    dots = []
    for x, y in sample_points(width, height, settings, rng):
        px, py = _pixel(x, y, width, height)
        brightness = float(lum[py, px])
        if not settings.invert_brightness:
            brightness = 1.0 - brightness
        dot = _make_dot(x, y, cell, brightness, settings, rng)
        if dot is None:
            continue
        color = tuple(int(round(c)) for c in rgb[py, px]) if settings.colored else None
        dots.append(DotInfo(x=x, y=y, size=dot, color=color, angle=settings.angle_offset))
    return dots


def _enabled_channels(settings: HalftoneSettings) -> "list[str]":
    return [tag for tag, name in CHANNEL_FIELDS.items() if getattr(settings.channels, name)]


def _pixel(x: float, y: float, width: int, height: int) -> "tuple[int, int]":
    px = min(width - 1, max(0, int(math.floor(x))))
    py = min(height - 1, max(0, int(math.floor(y))))
    return px, py


def _make_dot(x, y, cell, strength, settings: HalftoneSettings, rng) -> "float | None":
    variation = 1.0
    if settings.size_variation:
        variation = 1.0 + (rng.random() - 0.5) * settings.size_variation
    size = cell * settings.dot_scale_factor * variation * strength
    if not (math.isfinite(size) and math.isfinite(x) and math.isfinite(y)):
        return None
    if size < MIN_DOT_SIZE:
        return None
    return size


def shape_polygons(
    shape: HalftoneShape,
    x: float,
    y: float,
    size: float,
    angle: float = 0.0,
) -> "list[list[tuple[float, float]]]":
    """Outline polygons for a non-circle shape, rotated by ``angle`` degrees.

    Returns an empty list for circles, which are drawn natively.
    """
    shape = HalftoneShape(shape)
    half = size / 2.0

    if shape == HalftoneShape.CIRCLE:
        return []
    if shape == HalftoneShape.SQUARE:
        local = [[(-half, -half), (half, -half), (half, half), (-half, half)]]
    elif shape == HalftoneShape.DIAMOND:
        local = [[(0.0, -half), (half, 0.0), (0.0, half), (-half, 0.0)]]
    elif shape == HalftoneShape.LINE:
        t = size / 4.0  # half of the size/2 stroke
        local = [[(-half, -t), (half, -t), (half, t), (-half, t)]]
    elif shape == HalftoneShape.CROSS:
        t = size / 8.0  # half of the size/4 stroke
        reach = half * math.sqrt(2.0)
        bar = [(-reach, -t), (reach, -t), (reach, t), (-reach, t)]
        local = [_rotate_local(bar, 45.0), _rotate_local(bar, -45.0)]
    elif shape == HalftoneShape.ELLIPSE:
        ry = size / 3.0
        local = [
            [
                (half * math.cos(2 * math.pi * i / ELLIPSE_SEGMENTS), ry * math.sin(2 * math.pi * i / ELLIPSE_SEGMENTS))
                for i in range(ELLIPSE_SEGMENTS)
            ]
        ]
    elif shape == HalftoneShape.TRIANGLE:
        local = [[(0.0, -half), (half, half), (-half, half)]]
    else:  # hexagon
        local = [[(half * math.cos(i * math.pi / 3), half * math.sin(i * math.pi / 3)) for i in range(6)]]

    return [[(x + px, y + py) for px, py in _rotate_local(poly, angle)] for poly in local]


def _rotate_local(poly, angle: float):
    if not angle % 360:
        return list(poly)
    a = math.radians(angle)
    cos_a, sin_a = math.cos(a), math.sin(a)
    return [(px * cos_a - py * sin_a, px * sin_a + py * cos_a) for px, py in poly]


def render_dots(
    size: "tuple[int, int]",
    dots: "list[DotInfo]",
    shape: HalftoneShape,
) -> Image.Image:
    """Draw dots on white, multiplying CMYK channel layers together.

    Args:
        size: (width, height) of the canvas
        dots: Dots in draw order
        shape: Shape drawn for every dot

    Returns:
        RGB image of the given size
    """
    width, height = size
    s = SUPERSAMPLE
    big = (width * s, height * s)

    layers: "dict[str | None, list[DotInfo]]" = {}
    for dot in dots:
        layers.setdefault(dot.channel, []).append(dot)

    result = None
    for dots_in_layer in layers.values():
        layer = Image.new("RGB", big, (255, 255, 255))
        draw = ImageDraw.Draw(layer)
        for dot in dots_in_layer:
            fill = dot.color or (0, 0, 0)
            polygons = shape_polygons(shape, dot.x * s, dot.y * s, dot.size * s, dot.angle)
            if polygons:
                for poly in polygons:
                    draw.polygon(poly, fill=fill)
            else:
                r = dot.size * s / 2.0
                draw.ellipse((dot.x * s - r, dot.y * s - r, dot.x * s + r, dot.y * s + r), fill=fill)
        result = layer if result is None else ImageChops.multiply(result, layer)

    if result is None:
        return Image.new("RGB", size, (255, 255, 255))
    return result.resize(size, Image.Resampling.BOX)


def halftone(
    image: Image.Image,
    settings: HalftoneSettings,
    rng: np.random.Generator,
) -> "tuple[Image.Image, list[DotInfo]]":
    """Render the halftone stage.

    Args:
        image: Input image (any mode)
        settings: Halftone settings
        rng: Random generator for jitter and size variation

    Returns:
        Tuple of (RGBA image with the input's alpha, list of drawn dots)
    """
    image = image.convert("RGBA") if image.mode != "RGBA" else image
    dots = compute_dots(image, settings, rng)
    result = render_dots(image.size, dots, HalftoneShape(settings.shape))

    mix = max(0.0, min(100.0, float(settings.mix)))
    if mix < 100:
        result = Image.blend(result, image.convert("RGB"), 1.0 - mix / 100.0)

    result = result.convert("RGBA")
    result.putalpha(image.getchannel("A"))
    return result, dots
