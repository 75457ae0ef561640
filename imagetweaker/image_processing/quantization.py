"""Palette generation for color dithering.

AIDEV-NOTE: K-means runs through scikit-learn with an explicit init drawn
from the caller's random generator, so a seeded generator gives the same
palette every time.
"""

import numpy as np
from sklearn.cluster import KMeans

# Iteration cap for palette clustering
MAX_ITERATIONS = 10

# Pixels sampled for clustering on large images
MAX_SAMPLES = 20000


def kmeans_palette(
    pixels: np.ndarray,
    num_colors: int,
    rng: np.random.Generator,
) -> np.ndarray:
    """Derive a palette of representative colors with k-means.

    Args:
        pixels: (N, 3) array of RGB values
        num_colors: Target palette size
        rng: Random generator used for sampling and centroid seeding

    Returns:
        (K, 3) float array of palette colors, K <= num_colors
    """
    pixels = np.asarray(pixels, dtype=np.float64).reshape(-1, 3)
    if len(pixels) == 0:
        return np.zeros((1, 3))

    if len(pixels) > MAX_SAMPLES:
        pixels = pixels[rng.choice(len(pixels), MAX_SAMPLES, replace=False)]

    unique = np.unique(pixels, axis=0)
    k = max(1, min(num_colors, len(unique)))
    if k == len(unique):
        return unique

    # Seed centroids from random distinct sample colors
    init = unique[rng.choice(len(unique), k, replace=False)]
    kmeans = KMeans(n_clusters=k, init=init, n_init=1, max_iter=MAX_ITERATIONS, tol=0.0)
    kmeans.fit(pixels)
    return kmeans.cluster_centers_


def nearest_palette_index(pixels: np.ndarray, palette: np.ndarray) -> np.ndarray:
    """Index of the closest palette entry (squared RGB distance) for each pixel."""
    flat = np.asarray(pixels, dtype=np.float64).reshape(-1, 3)
    palette = np.asarray(palette, dtype=np.float64)
    out = np.empty(len(flat), dtype=np.intp)
    chunk = max(1, 2_000_000 // max(1, len(palette)))
    for start in range(0, len(flat), chunk):
        part = flat[start : start + chunk]
        dist = ((part[:, None, :] - palette[None, :, :]) ** 2).sum(axis=-1)
        out[start : start + chunk] = dist.argmin(axis=1)
    return out.reshape(np.shape(pixels)[:-1])
