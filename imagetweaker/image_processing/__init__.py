"""Raster effects pipeline and vector export.

AIDEV-NOTE: Organized into one module per stage plus the orchestrator:
- processor: Main ImageProcessor orchestrator
- color: Color/tone, levels, threshold and posterize stages
- gradient_map: Luminance to gradient recoloring
- blend: Layer blend modes shared by gradient map and noise
- blur: Gaussian, box, motion, radial, spin and tilt-shift blur
- edges: Gradient-magnitude edge detection
- noise_field: Gradient noise, noise overlay and linocut
- pixelate: Square-cell pixelation
- shift: Mosaic shift and slice shift
- dithering: Ordered and error-diffusion dithering
- quantization: K-means palettes for color dithering
- halftone: Dot placement, CMYK separation and dot rendering
- text_dither: Glyph stamping
- glitch: Pixel sort, channel shift, scan lines, noise, blocks
- grid: Grid splitting and displacement
- svg_export: Vector export translator
- utils: Pixel and color-space helpers
"""

from .processor import ImageProcessor
from .svg_export import SvgExport, export_svg

__all__ = ["ImageProcessor", "SvgExport", "export_svg"]
