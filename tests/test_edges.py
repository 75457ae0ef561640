"""Tests for the find-edges stage."""

import numpy as np
import pytest
from PIL import Image

from imagetweaker.image_processing.edges import SOBEL_X, convolve3, edge_magnitude, find_edges
from imagetweaker.models import EdgeAlgorithm, EdgeColorMode, FindEdgesSettings


@pytest.fixture
def step_image() -> Image.Image:
    """16x8: left half dark red, right half white."""
    arr = np.empty((8, 16, 4), dtype=np.uint8)
    arr[:, :8, :3] = (120, 0, 0)
    arr[:, 8:, :3] = 255
    arr[..., 3] = 200
    return Image.fromarray(arr, "RGBA")


def test_constant_image_has_no_edges_even_at_borders():
    gray = np.full((6, 7), 90.0)
    for algorithm in EdgeAlgorithm:
        assert np.all(edge_magnitude(gray, algorithm) == 0)


def test_convolve_matches_sobel_on_ramp():
    gray = np.tile(np.arange(8, dtype=np.float64) * 10, (5, 1))
    # interior columns see a slope of 10 per pixel: (1 + 2 + 1) * 2 * 10
    assert convolve3(gray, SOBEL_X)[2, 3] == pytest.approx(80.0)


@pytest.mark.parametrize("algorithm", list(EdgeAlgorithm))
def test_step_is_found_by_every_algorithm(algorithm, step_image):
    out = np.asarray(find_edges(step_image, FindEdgesSettings(algorithm=algorithm)))
    assert out[4, 7, 0] == 255 or out[4, 8, 0] == 255
    assert out[4, 0, 0] == 0
    assert out[4, 15, 0] == 0


def test_invert_swaps_grayscale_output(step_image):
    out = np.asarray(find_edges(step_image, FindEdgesSettings(invert=True)))
    assert out[4, 0, :3].tolist() == [255, 255, 255]
    assert out[4, 7, :3].tolist() == [0, 0, 0]


def test_color_mode_keeps_source_color_on_edges(step_image):
    out = np.asarray(find_edges(step_image, FindEdgesSettings(color_mode=EdgeColorMode.COLOR)))
    assert out[4, 7, :3].tolist() == [120, 0, 0]
    assert out[4, 0, :3].tolist() == [0, 0, 0]


def test_inverted_mode_inverts_edges_on_white(step_image):
    out = np.asarray(find_edges(step_image, FindEdgesSettings(color_mode=EdgeColorMode.INVERTED)))
    assert out[4, 7, :3].tolist() == [135, 255, 255]
    assert out[4, 0, :3].tolist() == [255, 255, 255]


def test_high_threshold_hides_weak_edges(step_image):
    out = np.asarray(find_edges(step_image, FindEdgesSettings(threshold=255)))
    assert out[..., :3].max() == 0


def test_intensity_scales_the_response(step_image):
    out = np.asarray(find_edges(step_image, FindEdgesSettings(intensity=1, threshold=50)))
    assert out[..., :3].max() == 0


def test_alpha_is_preserved_with_pre_blur(step_image):
    out = find_edges(step_image, FindEdgesSettings(blur_radius=2))
    assert np.array_equal(np.asarray(out)[..., 3], np.asarray(step_image)[..., 3])
