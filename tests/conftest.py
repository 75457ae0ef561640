"""Shared fixtures: small synthetic images built with numpy."""

import numpy as np
import pytest
from PIL import Image


def solid(width: int, height: int, color, alpha: int = 255) -> Image.Image:
    arr = np.empty((height, width, 4), dtype=np.uint8)
    arr[..., :3] = color
    arr[..., 3] = alpha
    return Image.fromarray(arr, "RGBA")


@pytest.fixture
def rng() -> np.random.Generator:
    return np.random.default_rng(1234)


@pytest.fixture
def noise_image() -> Image.Image:
    """64x48 random RGBA image with varied alpha."""
    gen = np.random.default_rng(7)
    arr = gen.integers(0, 256, size=(48, 64, 4), dtype=np.uint8)
    return Image.fromarray(arr, "RGBA")


@pytest.fixture
def gradient_image() -> Image.Image:
    """Horizontal black-to-white gradient, 100x40."""
    ramp = np.linspace(0, 255, 100).round().astype(np.uint8)
    arr = np.empty((40, 100, 4), dtype=np.uint8)
    arr[..., :3] = ramp[None, :, None]
    arr[..., 3] = 255
    return Image.fromarray(arr, "RGBA")


@pytest.fixture
def black_image() -> Image.Image:
    return solid(100, 100, (0, 0, 0))


@pytest.fixture
def gray_image() -> Image.Image:
    return solid(60, 60, (128, 128, 128))


@pytest.fixture
def checker_image() -> Image.Image:
    """2x2 image: white, black / black, white."""
    arr = np.array(
        [
            [[255, 255, 255, 255], [0, 0, 0, 255]],
            [[0, 0, 0, 255], [255, 255, 255, 255]],
        ],
        dtype=np.uint8,
    )
    return Image.fromarray(arr, "RGBA")


@pytest.fixture
def make_solid():
    """Factory for solid-color RGBA images."""
    return solid
