"""Data models and constants for the imagetweaker effects pipeline."""

import math
import time
import typing
from dataclasses import asdict, dataclass, field, fields, is_dataclass, replace
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    from PIL import Image

# Tool identifier written into exported PNG/SVG metadata
TOOL_NAME = "imagetweaker"

# Configuration file path
CONFIG_FILE = Path.home() / ".imagetweaker_config.json"

# AIDEV-NOTE: Rec.601 luma weights, shared by every stage that reads brightness
LUMA_WEIGHTS = (0.299, 0.587, 0.114)


class GeometryMismatchError(ValueError):
    """Cached geometry does not describe the canvas it is being exported for."""


class StageId(Enum):
    """Pipeline stage identifiers."""

    COLOR = "color"
    LEVELS = "levels"
    THRESHOLD = "threshold"
    DITHER = "dither"
    HALFTONE = "halftone"
    TEXT_DITHER = "text_dither"
    GLITCH = "glitch"
    GRID = "grid"
    DISPLACEMENT = "displacement"
    POSTERIZE = "posterize"
    GRADIENT_MAP = "gradient_map"
    BLUR = "blur"
    FIND_EDGES = "find_edges"
    NOISE = "noise"
    PIXELATE = "pixelate"
    MOSAIC_SHIFT = "mosaic_shift"
    SLICE_SHIFT = "slice_shift"
    LINOCUT = "linocut"


class DitherAlgorithm(Enum):
    """Dithering algorithms (ordered or one of the error-diffusion kernels)."""

    ORDERED = "ordered"
    FLOYD_STEINBERG = "floyd-steinberg"
    JARVIS = "jarvis"
    JUDICE_NINKE = "judice-ninke"
    STUCKI = "stucki"
    BURKES = "burkes"


class DitherColorMode(Enum):
    GRAYSCALE = "grayscale"
    COLOR = "color"
    TWO_COLOR = "two-color"


class HalftoneShape(Enum):
    CIRCLE = "circle"
    SQUARE = "square"
    DIAMOND = "diamond"
    LINE = "line"
    CROSS = "cross"
    ELLIPSE = "ellipse"
    TRIANGLE = "triangle"
    HEXAGON = "hexagon"


class HalftoneArrangement(Enum):
    """Spatial layout of halftone sample points.

    AIDEV-NOTE: grid and random share the plain lattice, hexagonal offsets
    alternate rows, spiral and concentric remap lattice points around a center.
    """

    GRID = "grid"
    HEXAGONAL = "hexagonal"
    SPIRAL = "spiral"
    CONCENTRIC = "concentric"
    RANDOM = "random"


class TextColorMode(Enum):
    MONOCHROME = "monochrome"
    COLORED = "colored"


class SortDirection(Enum):
    HORIZONTAL = "horizontal"
    VERTICAL = "vertical"
    BOTH = "both"


class ChannelShiftMode(Enum):
    """Which channel pair is pulled apart by the glitch channel shift."""

    RED_BLUE = "red-blue"
    RED_GREEN = "red-green"
    GREEN_BLUE = "green-blue"


class Resample(Enum):
    NEAREST = "nearest"
    BILINEAR = "bilinear"
    BICUBIC = "bicubic"


class BlendMode(Enum):
    """Per-channel blend of a computed layer over the stage input."""

    NORMAL = "normal"
    MULTIPLY = "multiply"
    SCREEN = "screen"
    OVERLAY = "overlay"
    DARKEN = "darken"
    LIGHTEN = "lighten"
    COLOR_DODGE = "color-dodge"
    COLOR_BURN = "color-burn"
    HARD_LIGHT = "hard-light"
    SOFT_LIGHT = "soft-light"
    DIFFERENCE = "difference"
    EXCLUSION = "exclusion"
    COLOR = "color"
    LUMINOSITY = "luminosity"


class PosterizeMode(Enum):
    RGB = "rgb"
    HSV = "hsv"
    LAB = "lab"  # luminance only


class BlurType(Enum):
    GAUSSIAN = "gaussian"
    BOX = "box"
    MOTION = "motion"
    RADIAL = "radial"
    SPIN = "spin"
    TILT_SHIFT = "tiltshift"


class EdgeAlgorithm(Enum):
    SOBEL = "sobel"
    PREWITT = "prewitt"
    LAPLACIAN = "laplacian"
    CANNY = "canny"  # Sobel magnitude, no hysteresis


class EdgeColorMode(Enum):
    GRAYSCALE = "grayscale"
    COLOR = "color"
    INVERTED = "inverted"


class NoiseChannel(Enum):
    ALL = "all"
    RED = "r"
    GREEN = "g"
    BLUE = "b"


class PixelVariant(Enum):
    CLASSIC = "classic"
    POSTERIZED = "posterized"
    GRAYSCALE = "grayscale"


class ShiftPattern(Enum):
    """Tile offset pattern for the mosaic shift."""

    RANDOM = "random"
    WAVE = "wave"
    RADIAL = "radial"
    SPIRAL = "spiral"


class SliceDirection(Enum):
    VERTICAL = "vertical"
    HORIZONTAL = "horizontal"
    BOTH = "both"


class SliceMode(Enum):
    RANDOM = "random"
    ALTERNATING = "alternating"
    WAVE = "wave"
    REARRANGE = "rearrange"
    REPEAT = "repeat"


class RearrangeMode(Enum):
    RANDOM = "random"
    REVERSE = "reverse"
    ALTERNATE = "alternate"
    SHUFFLE = "shuffle"


class Orientation(Enum):
    HORIZONTAL = "horizontal"
    VERTICAL = "vertical"


# --- Per-stage settings ---


@dataclass(frozen=True)
class ColorSettings:
    """Hue/saturation/brightness/contrast/posterize/invert adjustment."""

    enabled: bool = False
    hue_shift: float = 0.0  # degrees, wraps mod 360
    saturation: float = 100.0  # percent, 100 = unchanged
    brightness: float = 100.0  # percent, 100 = unchanged
    contrast: float = 100.0  # percent, 100 = unchanged
    posterize: int = 0  # luminance bands, 0 or 1 = disabled
    invert: bool = False


@dataclass(frozen=True)
class LevelsSettings:
    enabled: bool = False
    black: int = 0  # input black point (0-255)
    white: int = 255  # input white point (0-255)
    gamma: float = 1.0  # output curve v^(1/gamma)


@dataclass(frozen=True)
class ThresholdSettings:
    enabled: bool = False
    threshold: int = 128  # luminance cut (0-255)
    dark_color: "tuple[int, int, int]" = (0, 0, 0)
    light_color: "tuple[int, int, int]" = (255, 255, 255)


@dataclass(frozen=True)
class DitherSettings:
    """Configuration for the dithering stage."""

    enabled: bool = False
    algorithm: DitherAlgorithm = DitherAlgorithm.FLOYD_STEINBERG
    threshold: int = 0  # luminance below this is forced to black (0-255)
    color_mode: DitherColorMode = DitherColorMode.GRAYSCALE
    resolution: int = 100  # percent of full resolution (1-100)
    color_depth: int = 2  # gray steps or palette size (2-256)
    bayer_size: Optional[int] = None  # 1, 2, 4 or 8; None picks by resolution

    # Two-color mode
    dark_color: "tuple[int, int, int]" = (0, 0, 0)
    light_color: "tuple[int, int, int]" = (255, 255, 255)


@dataclass(frozen=True)
class CMYKChannels:
    cyan: bool = True
    magenta: bool = True
    yellow: bool = True
    black: bool = True


@dataclass(frozen=True)
class CMYKAngles:
    """Screen angles in degrees, traditional print defaults."""

    cyan: float = 15.0
    magenta: float = 75.0
    yellow: float = 0.0
    black: float = 45.0


@dataclass(frozen=True)
class HalftoneSettings:
    """Configuration for the halftone stage."""

    enabled: bool = False
    cell_size: float = 10.0  # sample spacing in pixels (>= 1)
    mix: float = 100.0  # percent of halftone kept over the original
    colored: bool = False  # dots take the source color instead of black
    enable_cmyk: bool = False
    arrangement: HalftoneArrangement = HalftoneArrangement.GRID
    shape: HalftoneShape = HalftoneShape.CIRCLE
    angle_offset: float = 0.0  # shape rotation in degrees
    size_variation: float = 0.0  # random +/- size jitter (0-1)
    dot_scale_factor: float = 1.0
    invert_brightness: bool = False  # large dots in light areas when True

    # Spiral arrangement
    spiral_tightness: float = 0.1
    spiral_expansion: float = 1.0
    spiral_rotation: float = 0.0  # degrees
    spiral_center_x: float = 0.0  # pixels from canvas center
    spiral_center_y: float = 0.0

    # Concentric arrangement
    concentric_center_x: float = 0.0
    concentric_center_y: float = 0.0
    concentric_ring_spacing: float = 1.0  # multiples of cell_size

    # Hexagonal arrangement
    hexagonal_row_offset: float = 0.5  # fraction of a cell

    channels: CMYKChannels = field(default_factory=CMYKChannels)
    cmyk_angles: CMYKAngles = field(default_factory=CMYKAngles)


@dataclass(frozen=True)
class TextDitherSettings:
    enabled: bool = False
    text: str = "MATRIX"
    font_size: int = 12
    color_mode: TextColorMode = TextColorMode.MONOCHROME
    contrast: float = 1.0  # multiplier around mid-gray, 1 = unchanged
    brightness: float = 1.0  # multiplier, 1 = unchanged
    invert: bool = False
    resolution: float = 1.0  # glyph density multiplier


@dataclass(frozen=True)
class GlitchSettings:
    """Master flag plus independently togglable glitch sub-effects."""

    enabled: bool = False
    intensity: float = 0.0  # general line-shift glitch (0-100)

    pixel_sort_enabled: bool = False
    pixel_sort_threshold: float = 0.5  # luminance 0-1 above which runs sort
    pixel_sort_direction: SortDirection = SortDirection.HORIZONTAL

    channel_shift_enabled: bool = False
    channel_shift_amount: int = 10  # pixels
    channel_shift_mode: ChannelShiftMode = ChannelShiftMode.RED_BLUE

    scan_lines_enabled: bool = False
    scan_lines_count: int = 100
    scan_lines_intensity: float = 30.0  # percent darkening

    noise_enabled: bool = False
    noise_amount: float = 10.0  # percent of pixels perturbed

    blocks_enabled: bool = False
    blocks_size: int = 20  # pixels
    blocks_offset: int = 20  # max displacement in pixels
    blocks_density: float = 0.05  # fraction of blocks moved


@dataclass(frozen=True)
class GridSettings:
    enabled: bool = False
    columns: int = 2
    rows: int = 2
    apply_rotation: bool = False
    max_rotation: float = 0.0  # degrees
    split_enabled: bool = False
    split_probability: float = 0.5
    max_split_levels: int = 2
    min_cell_size: float = 20.0  # pixels
    resample: Resample = Resample.BILINEAR


@dataclass(frozen=True)
class DisplacementSettings:
    """Brightness/noise driven displacement with color post-passes."""

    enabled: bool = False
    amount_x: float = 0.0  # pixels at full brightness swing
    amount_y: float = 0.0
    noise_scale: float = 0.0
    color_shift: float = 0.0  # hue degrees at full brightness swing
    saturation_variation: float = 0.0
    posterize: bool = False
    posterize_levels: int = 2
    colorize: bool = False
    low_color: "tuple[int, int, int]" = (0, 0, 0)
    mid_color: "tuple[int, int, int]" = (128, 128, 128)
    high_color: "tuple[int, int, int]" = (255, 255, 255)


@dataclass(frozen=True)
class PosterizeSettings:
    """Band reduction in RGB, HSV or luminance space."""

    enabled: bool = False
    levels: int = 4  # 2-256
    color_mode: PosterizeMode = PosterizeMode.RGB
    preserve_luminance: bool = False  # lab mode keeps hue by scaling RGB
    dithering: bool = False
    dither_amount: float = 50.0  # percent of residual error diffused


@dataclass(frozen=True)
class GradientStop:
    position: float = 0.0  # percent along the brightness axis (0-100)
    color: "tuple[int, int, int]" = (0, 0, 0)


@dataclass(frozen=True)
class GradientMapSettings:
    """Maps luminance onto a color gradient, blended over the input."""

    enabled: bool = False
    stops: "tuple[GradientStop, ...]" = (
        GradientStop(0.0, (0, 0, 0)),
        GradientStop(100.0, (255, 255, 255)),
    )
    blend_mode: BlendMode = BlendMode.NORMAL
    opacity: float = 1.0  # 0-1


@dataclass(frozen=True)
class BlurSettings:
    enabled: bool = False
    blur_type: BlurType = BlurType.GAUSSIAN
    radius: float = 5.0  # pixels; max arc in degrees for spin
    center_x: float = 50.0  # percent of width (radial, spin)
    center_y: float = 50.0  # percent of height
    angle: float = 0.0  # degrees (motion, tilt-shift)
    focus_position: float = 50.0  # percent across the frame (tilt-shift)
    focus_width: float = 25.0  # percent of the longer side
    gradient: float = 12.5  # percent of the longer side
    center_radius: float = 0.0  # unblurred core for spin, pixels
    center_gradient: float = 20.0  # spin falloff width, pixels


@dataclass(frozen=True)
class FindEdgesSettings:
    enabled: bool = False
    algorithm: EdgeAlgorithm = EdgeAlgorithm.SOBEL
    intensity: float = 100.0  # percent gain on the gradient magnitude
    threshold: float = 50.0  # 0-255 after gain
    invert: bool = False  # grayscale mode only
    color_mode: EdgeColorMode = EdgeColorMode.GRAYSCALE
    blur_radius: float = 0.0  # pre-blur in pixels


@dataclass(frozen=True)
class NoiseSettings:
    """Gradient noise blended over the image."""

    enabled: bool = False
    intensity: float = 0.5  # 0-1 mix toward the noise value
    scale: float = 20.0  # noise feature size in pixels
    seed: int = 0
    blend_mode: BlendMode = BlendMode.NORMAL
    monochrome: bool = False  # one noise value for every channel
    channel: NoiseChannel = NoiseChannel.ALL


@dataclass(frozen=True)
class PixelateSettings:
    enabled: bool = False
    cell_size: int = 8  # pixels
    variant: PixelVariant = PixelVariant.CLASSIC
    posterize_levels: int = 4  # per channel, posterized variant (2-8)
    grayscale_levels: int = 256  # grayscale variant (2-256)


@dataclass(frozen=True)
class MosaicShiftSettings:
    """Grid of tiles pushed off their home positions."""

    enabled: bool = False
    columns: int = 8
    rows: int = 8
    max_offset_x: float = 20.0  # pixels
    max_offset_y: float = 20.0
    pattern: ShiftPattern = ShiftPattern.RANDOM
    intensity: float = 100.0  # percent
    seed: Optional[int] = None  # None draws from the run's generator
    preserve_edges: bool = False  # damp tiles near the border
    random_rotation: bool = False
    max_rotation: float = 10.0  # degrees
    use_background_color: bool = False  # otherwise exposed areas are transparent
    background_color: "tuple[int, int, int]" = (0, 0, 0)


@dataclass(frozen=True)
class SliceShiftSettings:
    """Strips of the image offset, repeated or reordered."""

    enabled: bool = False
    slices: int = 10
    direction: SliceDirection = SliceDirection.VERTICAL
    max_offset: float = 20.0  # pixels
    mode: SliceMode = SliceMode.RANDOM
    intensity: float = 100.0  # percent
    seed: Optional[int] = None  # None draws from the run's generator
    feathering: bool = False
    feather_amount: float = 20.0  # percent of half a slice
    rearrange_mode: RearrangeMode = RearrangeMode.RANDOM
    use_background_color: bool = False
    background_color: "tuple[int, int, int]" = (0, 0, 0)


@dataclass(frozen=True)
class LinocutSettings:
    """Brightness-modulated carved lines in black and white."""

    enabled: bool = False
    line_spacing: int = 10  # pixels between lines
    stroke_width: float = 8.0  # thickest band in pixels
    min_line: float = 1.0  # thinnest band in pixels
    noise_scale: float = 0.015  # wobble frequency
    center_x: float = 0.5  # 0-1, shifts the wave phase
    center_y: float = 0.5
    invert: bool = False  # white lines on black
    orientation: Orientation = Orientation.HORIZONTAL
    threshold: float = 0.5  # brightness above this leaves paper showing


# --- Pipeline models ---

DEFAULT_EFFECTS_ORDER = tuple(StageId)


@dataclass(frozen=True)
class EffectsOrder:
    """Execution order of pipeline stages.

    AIDEV-NOTE: Every known stage appears exactly once. Reordering returns a
    new instance; the orchestrator never sees a partially edited order.
    """

    stages: "tuple[StageId, ...]" = DEFAULT_EFFECTS_ORDER

    def __post_init__(self):
        stages = tuple(StageId(s) for s in self.stages)
        object.__setattr__(self, "stages", stages)
        if len(set(stages)) != len(stages):
            raise ValueError(f"Duplicate stage in effects order: {stages}")
        missing = set(StageId) - set(stages)
        if missing:
            names = ", ".join(sorted(s.value for s in missing))
            raise ValueError(f"Effects order is missing stages: {names}")

    @classmethod
    def from_names(cls, names: "list[str]") -> "EffectsOrder":
        """Build an order from stage names, appending any that were left out."""
        stages = [StageId(n) for n in names]
        stages += [s for s in DEFAULT_EFFECTS_ORDER if s not in stages]
        return cls(tuple(stages))

    def __iter__(self):
        return iter(self.stages)

    def __len__(self) -> int:
        return len(self.stages)

    def index(self, stage: StageId) -> int:
        return self.stages.index(stage)

    def swap(self, stage: StageId, offset: int) -> "EffectsOrder":
        """Swap a stage with its neighbor (offset -1 or +1)."""
        i = self.index(stage)
        j = i + offset
        if offset not in (-1, 1) or not 0 <= j < len(self.stages):
            return self
        stages = list(self.stages)
        stages[i], stages[j] = stages[j], stages[i]
        return EffectsOrder(tuple(stages))

    def move_up(self, stage: StageId) -> "EffectsOrder":
        return self.swap(stage, -1)

    def move_down(self, stage: StageId) -> "EffectsOrder":
        return self.swap(stage, 1)


@dataclass(frozen=True)
class EffectSettings:
    """Immutable snapshot of every stage's settings plus the stage order."""

    color: ColorSettings = field(default_factory=ColorSettings)
    levels: LevelsSettings = field(default_factory=LevelsSettings)
    threshold: ThresholdSettings = field(default_factory=ThresholdSettings)
    dither: DitherSettings = field(default_factory=DitherSettings)
    halftone: HalftoneSettings = field(default_factory=HalftoneSettings)
    text_dither: TextDitherSettings = field(default_factory=TextDitherSettings)
    glitch: GlitchSettings = field(default_factory=GlitchSettings)
    grid: GridSettings = field(default_factory=GridSettings)
    displacement: DisplacementSettings = field(default_factory=DisplacementSettings)
    posterize: PosterizeSettings = field(default_factory=PosterizeSettings)
    gradient_map: GradientMapSettings = field(default_factory=GradientMapSettings)
    blur: BlurSettings = field(default_factory=BlurSettings)
    find_edges: FindEdgesSettings = field(default_factory=FindEdgesSettings)
    noise: NoiseSettings = field(default_factory=NoiseSettings)
    pixelate: PixelateSettings = field(default_factory=PixelateSettings)
    mosaic_shift: MosaicShiftSettings = field(default_factory=MosaicShiftSettings)
    slice_shift: SliceShiftSettings = field(default_factory=SliceShiftSettings)
    linocut: LinocutSettings = field(default_factory=LinocutSettings)
    order: EffectsOrder = field(default_factory=EffectsOrder)

    def for_stage(self, stage: StageId):
        """Return the settings object of one stage."""
        return getattr(self, stage.value)

    def enabled_stages(self) -> "list[StageId]":
        return [s for s in self.order if self.for_stage(s).enabled]

    def to_dict(self) -> "dict[str, Any]":
        """Plain JSON-friendly representation (enums as their values)."""
        data = _plain(asdict(self))
        data["order"] = [s.value for s in self.order]
        return data

    @classmethod
    def from_dict(cls, data: "dict[str, Any]") -> "EffectSettings":
        order = data.get("order")
        if isinstance(order, dict):
            order = order.get("stages")
        values = {k: v for k, v in data.items() if k != "order"}
        settings = settings_from_dict(cls, values)
        if order:
            settings = replace(settings, order=EffectsOrder.from_names(list(order)))
        return settings


# --- Geometry cache ---


@dataclass(frozen=True)
class DotInfo:
    """One vector primitive drawn during a raster render.

    Halftone dots are centered on (x, y) with diameter ``size``. Dither cells
    have their top-left corner at (x, y), width ``size`` and ``height``.
    """

    x: float
    y: float
    size: float
    color: "Optional[tuple[int, int, int]]" = None  # None means black
    channel: Optional[str] = None  # "c", "m", "y" or "k" for CMYK layers
    angle: float = 0.0  # shape rotation in degrees
    height: Optional[float] = None  # dither cells only


@dataclass(frozen=True)
class GeometryRecord:
    """Exact primitives emitted by one raster render of a geometric stage.

    AIDEV-NOTE: Passed by value from the renderer to the exporter so the SVG
    reuses the raster's random draws instead of re-rolling them.
    """

    source: StageId
    dots: "tuple[DotInfo, ...]"
    width: int
    height: int
    settings: Any  # HalftoneSettings or DitherSettings snapshot
    version: int = 0
    created_at: float = field(default_factory=time.time)
    # Pre-halftone image, kept only when the halftone mix shows it through
    underlay: "Optional[Image.Image]" = field(default=None, compare=False, repr=False)

    def __len__(self) -> int:
        return len(self.dots)

    @property
    def is_empty(self) -> bool:
        return not self.dots

    def check_compatible(self, width: int, height: int, settings: Any = None) -> None:
        """Raise GeometryMismatchError if this record is stale for the canvas."""
        if (self.width, self.height) != (width, height):
            raise GeometryMismatchError(
                f"Geometry recorded for {self.width}x{self.height}, "
                f"canvas is {width}x{height}"
            )
        if settings is not None and settings != self.settings:
            raise GeometryMismatchError("Geometry recorded with different settings")


@dataclass
class RenderResult:
    """Output of one pipeline run."""

    image: "Image.Image"
    settings: EffectSettings
    version: int = 0

    # Stages that actually ran, in order
    applied: "tuple[StageId, ...]" = ()

    # Present only when the recording stage was the last stage applied
    geometry: Optional[GeometryRecord] = None

    # Halftone stage input, kept when halftone was the last stage applied
    halftone_input: "Optional[Image.Image]" = None


@dataclass
class EditorConfig:
    """Application-level defaults for rendering and export."""

    tool_name: str = TOOL_NAME
    seed: Optional[int] = None  # None = fresh randomness every run

    # Export
    png_compress_level: int = 6  # 0-9
    embed_png_metadata: bool = True
    svg_raster_fallback: bool = True  # embed bitmap when no vectors available
    svg_recompute_geometry: bool = True  # re-run placement when cache is stale


# --- Settings parsing ---


def parse_color(value: Any, default: "tuple[int, int, int]") -> "tuple[int, int, int]":
    """Parse '#rgb', '#rrggbb' or an RGB sequence into an RGB tuple."""
    if isinstance(value, str):
        h = value.strip().lstrip("#")
        if len(h) == 3:
            h = "".join(c * 2 for c in h)
        if len(h) != 6:
            return default
        try:
            return (int(h[0:2], 16), int(h[2:4], 16), int(h[4:6], 16))
        except ValueError:
            return default
    if isinstance(value, (list, tuple)) and len(value) >= 3:
        return tuple(max(0, min(255, int(c))) for c in value[:3])  # type: ignore[return-value]
    return default


def settings_from_dict(cls, data: "dict[str, Any] | None"):
    """Build a settings dataclass from a mapping.

    Unknown keys are ignored and missing or unparseable keys keep their
    defaults, so partial payloads from older or newer UIs still load.
    """
    defaults = cls()
    if not data:
        return defaults

    hints = typing.get_type_hints(cls)
    values = {}
    for f in fields(cls):
        if f.name not in data:
            continue
        default = getattr(defaults, f.name)
        try:
            values[f.name] = _coerce(data[f.name], hints.get(f.name), default)
        except (TypeError, ValueError):
            print(f"Warning: ignoring invalid value for {cls.__name__}.{f.name}")
    return replace(defaults, **values)


def _coerce(value: Any, hint: Any, default: Any) -> Any:
    if isinstance(default, EffectsOrder):
        return EffectsOrder.from_names(list(value))
    if is_dataclass(default):
        if isinstance(value, type(default)):
            return value
        return settings_from_dict(type(default), value)
    if isinstance(default, Enum):
        return type(default)(value.value if isinstance(value, Enum) else value)
    if isinstance(default, bool):
        if isinstance(value, str):
            return value.strip().lower() in ("1", "true", "yes", "on")
        return bool(value)
    if isinstance(default, (int, float)):
        number = float(value)
        # NaN and infinities would poison every pixel downstream
        if not math.isfinite(number):
            raise ValueError(f"non-finite value: {value!r}")
        return int(number) if isinstance(default, int) else number
    if isinstance(default, tuple) and default and is_dataclass(default[0]):
        item_type = type(default[0])
        return tuple(
            v if isinstance(v, item_type) else settings_from_dict(item_type, v)
            for v in value
        )
    if isinstance(default, tuple):
        return parse_color(value, default)
    if default is None and hint is not None:
        if value is None:
            return None
        # Optional[int] / Optional[float]
        args = [a for a in typing.get_args(hint) if a is not type(None)]
        return args[0](value) if args else value
    return value


def _plain(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    return value
