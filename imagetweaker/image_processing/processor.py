"""Pipeline orchestrator: runs enabled stages in order and hands results to
the exporters.

AIDEV-NOTE: Each render is tagged with a version from submit(). A render
gives up between stages once a newer version exists, and only the newest
version is ever published, so a slow stale run cannot overwrite a newer
result no matter when it finishes.
"""

import threading
from datetime import datetime
from pathlib import Path

import numpy as np
from PIL import Image, ImageOps

from ..models import (
    EditorConfig,
    EffectSettings,
    GeometryRecord,
    RenderResult,
    StageId,
)
from .blur import apply_blur
from .color import apply_color, apply_levels, apply_posterize, apply_threshold
from .dithering import dither
from .edges import find_edges
from .glitch import glitch
from .gradient_map import apply_gradient_map
from .grid import apply_grid, displace
from .halftone import halftone
from .noise_field import apply_noise, linocut
from .pixelate import pixelate
from .shift import mosaic_shift, slice_shift
from .svg_export import SvgExport, build_metadata, export_svg
from .text_dither import text_dither
from .utils import encode_png

# Stages that can record vector geometry during their raster render
GEOMETRY_STAGES = (StageId.HALFTONE, StageId.DITHER)


class ImageProcessor:
    """Runs the effects pipeline and exports its results."""

    def __init__(self, config: EditorConfig | None = None):
        self.config = config or EditorConfig()
        self._lock = threading.Lock()
        self._latest_version = 0
        self._published: RenderResult | None = None

    # ------------------------------------------------------------------
    # Input
    # ------------------------------------------------------------------

    def load_image(self, file_path: str | Path) -> Image.Image:
        """Load and validate an image file.

        Args:
            file_path: Path to image file (PNG, JPG, etc.)

        Returns:
            PIL Image in RGBA mode

        Raises:
            ValueError: If file cannot be loaded or is invalid
        """
        try:
            image = Image.open(file_path)
            image.load()
            # AIDEV-NOTE: Always convert to RGBA for consistent processing
            if image.mode != "RGBA":
                image = image.convert("RGBA")
            return image
        except Exception as e:
            raise ValueError(f"Failed to load image: {e}") from e

    def fit_to_canvas(self, image: Image.Image, width: int, height: int) -> Image.Image:
        """Scale and center-crop an image so it covers the canvas exactly."""
        size = (max(1, int(width)), max(1, int(height)))
        if image.size == size:
            return image.copy()
        return ImageOps.fit(image, size, method=Image.Resampling.LANCZOS, centering=(0.5, 0.5))

    def make_rng(self) -> np.random.Generator:
        """Random generator for one run, seeded from the config when set."""
        return np.random.default_rng(self.config.seed)

    # ------------------------------------------------------------------
    # Versioning
    # ------------------------------------------------------------------

    def submit(self) -> int:
        """Register a new run and return its version."""
        with self._lock:
            self._latest_version += 1
            return self._latest_version

    @property
    def latest_version(self) -> int:
        with self._lock:
            return self._latest_version

    def is_stale(self, version: int) -> bool:
        return version < self.latest_version

    @property
    def result(self) -> RenderResult | None:
        """The newest published render."""
        with self._lock:
            return self._published

    def _publish(self, result: RenderResult) -> bool:
        with self._lock:
            if result.version < self._latest_version:
                return False
            if self._published is not None and self._published.version > result.version:
                return False
            self._published = result
            return True

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    def apply_stage(
        self,
        stage: StageId,
        image: Image.Image,
        settings: EffectSettings,
        rng: np.random.Generator,
        record: bool = False,
    ) -> "tuple[Image.Image, list | None]":
        """Run one stage.

        Args:
            stage: Stage to run
            image: Stage input
            settings: Full settings bundle
            rng: Random generator shared by the run
            record: Whether geometric stages should return their primitives

        Returns:
            Tuple of (stage output, recorded primitives or None)
        """
        if stage == StageId.COLOR:
            return apply_color(image, settings.color), None
        if stage == StageId.LEVELS:
            return apply_levels(image, settings.levels), None
        if stage == StageId.THRESHOLD:
            return apply_threshold(image, settings.threshold), None
        if stage == StageId.DITHER:
            out, cells = dither(image, settings.dither, rng, record=record)
            return out, cells if record else None
        if stage == StageId.HALFTONE:
            out, dots = halftone(image, settings.halftone, rng)
            return out, dots
        if stage == StageId.TEXT_DITHER:
            return text_dither(image, settings.text_dither, rng), None
        if stage == StageId.GLITCH:
            return glitch(image, settings.glitch, rng), None
        if stage == StageId.GRID:
            return apply_grid(image, settings.grid, rng), None
        if stage == StageId.DISPLACEMENT:
            return displace(image, settings.displacement), None
        if stage == StageId.POSTERIZE:
            return apply_posterize(image, settings.posterize), None
        if stage == StageId.GRADIENT_MAP:
            return apply_gradient_map(image, settings.gradient_map), None
        if stage == StageId.BLUR:
            return apply_blur(image, settings.blur), None
        if stage == StageId.FIND_EDGES:
            return find_edges(image, settings.find_edges), None
        if stage == StageId.NOISE:
            return apply_noise(image, settings.noise), None
        if stage == StageId.PIXELATE:
            return pixelate(image, settings.pixelate), None
        if stage == StageId.MOSAIC_SHIFT:
            return mosaic_shift(image, settings.mosaic_shift, rng), None
        if stage == StageId.SLICE_SHIFT:
            return slice_shift(image, settings.slice_shift, rng), None
        if stage == StageId.LINOCUT:
            return linocut(image, settings.linocut), None
        raise ValueError(f"Unknown stage: {stage}")

    def render(
        self,
        source: Image.Image,
        settings: EffectSettings,
        version: int | None = None,
        rng: np.random.Generator | None = None,
    ) -> RenderResult | None:
        """Run the pipeline from the untouched source image.

        Args:
            source: Source image, already fitted to the canvas
            settings: Settings snapshot for this run
            version: Version from submit(); a new one is taken if None
            rng: Random generator; derived from the config if None

        Returns:
            The RenderResult, or None if a newer run superseded this one
        """
        if version is None:
            version = self.submit()
        rng = rng if rng is not None else self.make_rng()

        image = source.convert("RGBA") if source.mode != "RGBA" else source.copy()
        enabled = settings.enabled_stages()
        last = enabled[-1] if enabled else None

        applied: "list[StageId]" = []
        geometry = None
        halftone_input = None

        for stage in enabled:
            if self.is_stale(version):
                print(f"Render {version} superseded, stopping before {stage.value}.")
                return None

            print(f"Applying {stage.value}...")
            stage_input = image
            image, primitives = self.apply_stage(stage, image, settings, rng, record=stage == last)
            applied.append(stage)

            if stage == last and stage in GEOMETRY_STAGES and primitives is not None:
                stage_settings = settings.for_stage(stage)
                keep_underlay = stage == StageId.HALFTONE and settings.halftone.mix < 100
                geometry = GeometryRecord(
                    source=stage,
                    dots=tuple(primitives),
                    width=image.width,
                    height=image.height,
                    settings=stage_settings,
                    version=version,
                    underlay=stage_input if keep_underlay else None,
                )
            if stage == last and stage == StageId.HALFTONE:
                halftone_input = stage_input

        result = RenderResult(
            image=image,
            settings=settings,
            version=version,
            applied=tuple(applied),
            geometry=geometry,
            halftone_input=halftone_input,
        )
        if not self._publish(result):
            print(f"Render {version} finished after a newer run, discarding.")
            return None

        if geometry is not None:
            print(f"Recorded {len(geometry)} {geometry.source.value} primitives.")
        return result

    def process(
        self,
        file_path: str | Path,
        settings: EffectSettings | None = None,
        canvas_size: "tuple[int, int] | None" = None,
    ) -> RenderResult | None:
        """Load an image, fit it to the canvas and render it.

        Args:
            file_path: Path to input image
            settings: Settings snapshot, defaults to everything disabled
            canvas_size: Target (width, height); the image size if None

        Returns:
            RenderResult, or None if superseded
        """
        print("Starting image processing pipeline...")
        settings = settings or EffectSettings()

        print("Loading image...")
        image = self.load_image(file_path)
        print(f"Loaded image with size: {image.width}x{image.height} pixels.")

        if canvas_size is not None:
            image = self.fit_to_canvas(image, *canvas_size)
            print(f"Fitted image to {image.width}x{image.height} canvas.")

        result = self.render(image, settings)
        if result is not None:
            applied = ", ".join(s.value for s in result.applied) or "none"
            print(f"Image processing complete. Stages applied: {applied}")
        return result

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------

    def _require_result(self, result: RenderResult | None) -> RenderResult:
        result = result or self.result
        if result is None:
            raise ValueError("Nothing has been rendered yet")
        return result

    def export_png(self, result: RenderResult | None = None) -> bytes:
        """Serialize the composited image as PNG bytes."""
        result = self._require_result(result)
        metadata = None
        if self.config.embed_png_metadata:
            metadata = build_metadata(result.settings, self.config.tool_name)
        return encode_png(result.image, metadata, self.config.png_compress_level)

    def export_svg(
        self,
        result: RenderResult | None = None,
        rng: np.random.Generator | None = None,
    ) -> SvgExport:
        """Export the composited image as SVG, preferring cached geometry."""
        result = self._require_result(result)
        export = export_svg(
            result.image,
            result.settings,
            geometry=result.geometry,
            halftone_input=result.halftone_input,
            rng=rng,
            tool_name=self.config.tool_name,
            recompute=self.config.svg_recompute_geometry,
            raster_fallback=self.config.svg_raster_fallback,
        )
        print(f"SVG export path: {export.mode}")
        return export

    def default_filename(self, suffix: str) -> str:
        """Export name like ``imagetweaker-2024-05-01-120000.png``."""
        stamp = datetime.now().strftime("%Y-%m-%d-%H%M%S")
        return f"{self.config.tool_name}-{stamp}.{suffix.lstrip('.')}"

    def save(self, file_path: str | Path, result: RenderResult | None = None) -> Path:
        """Write the result as .svg or .png depending on the suffix."""
        path = Path(file_path)
        if path.suffix.lower() == ".svg":
            path.write_text(self.export_svg(result).svg, encoding="utf-8")
        else:
            path.write_bytes(self.export_png(result))
        print(f"Saved {path}")
        return path
