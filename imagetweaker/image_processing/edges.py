"""Find-edges stage: gradient magnitude on luma, thresholded."""

import numpy as np
from PIL import Image, ImageFilter

from ..models import EdgeAlgorithm, EdgeColorMode, FindEdgesSettings
from .utils import luminance, merge_alpha, split_alpha

SOBEL_X = np.array([[-1, 0, 1], [-2, 0, 2], [-1, 0, 1]], dtype=np.float64)
PREWITT_X = np.array([[-1, 0, 1], [-1, 0, 1], [-1, 0, 1]], dtype=np.float64)
LAPLACIAN = np.array([[0, 1, 0], [1, -4, 1], [0, 1, 0]], dtype=np.float64)


def convolve3(gray: np.ndarray, kernel: np.ndarray) -> np.ndarray:
    """3x3 correlation with edge-replicated borders."""
    h, w = gray.shape
    padded = np.pad(gray, 1, mode="edge")
    out = np.zeros((h, w))
    for dy in range(3):
        for dx in range(3):
            if kernel[dy, dx]:
                out += kernel[dy, dx] * padded[dy : dy + h, dx : dx + w]
    return out


def edge_magnitude(gray: np.ndarray, algorithm: EdgeAlgorithm) -> np.ndarray:
    """Gradient magnitude of a luma array.

    Canny is approximated by the Sobel magnitude (no non-maximum
    suppression or hysteresis). Laplacian has no direction, so its single
    response counts for both axes.
    """
    algorithm = EdgeAlgorithm(algorithm)
    if algorithm == EdgeAlgorithm.LAPLACIAN:
        gx = gy = convolve3(gray, LAPLACIAN)
    else:
        kernel = PREWITT_X if algorithm == EdgeAlgorithm.PREWITT else SOBEL_X
        gx = convolve3(gray, kernel)
        gy = convolve3(gray, kernel.T)
    return np.sqrt(gx * gx + gy * gy)


def find_edges(image: Image.Image, settings: FindEdgesSettings) -> Image.Image:
    """Mark pixels whose gradient is above the threshold.

    Args:
        image: Input image (any mode)
        settings: Edge settings

    Returns:
        New RGBA image; alpha is unchanged. Grayscale mode gives white edges
        on black (swapped by ``invert``), color mode keeps the source color
        on edges and black elsewhere, inverted mode gives the inverted
        source on edges and white elsewhere.
    """
    image = image.convert("RGBA") if image.mode != "RGBA" else image
    source = image
    if settings.blur_radius > 0:
        source = image.filter(ImageFilter.GaussianBlur(settings.blur_radius))

    rgb, alpha = split_alpha(image)
    blurred, _ = split_alpha(source)
    magnitude = edge_magnitude(luminance(blurred), settings.algorithm)
    strength = np.minimum(255.0, magnitude * max(0.0, settings.intensity) / 100.0)
    edge = strength > settings.threshold

    mode = EdgeColorMode(settings.color_mode)
    if mode == EdgeColorMode.COLOR:
        out = np.where(edge[..., None], rgb, 0.0)
    elif mode == EdgeColorMode.INVERTED:
        out = np.where(edge[..., None], 255.0 - rgb, 255.0)
    else:
        value = np.where(edge, 255.0, 0.0)
        if settings.invert:
            value = 255.0 - value
        out = np.repeat(value[..., None], 3, axis=2)
    return merge_alpha(out, alpha)
