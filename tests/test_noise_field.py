"""Tests for gradient noise, the noise overlay and linocut."""

import numpy as np
import pytest

from imagetweaker.image_processing.noise_field import apply_noise, gradient_noise, linocut
from imagetweaker.models import (
    BlendMode,
    LinocutSettings,
    NoiseChannel,
    NoiseSettings,
    Orientation,
)


def test_gradient_noise_is_zero_on_lattice_points():
    ys, xs = np.mgrid[0:5, 0:5].astype(np.float64)
    assert np.allclose(gradient_noise(xs, ys, np.random.default_rng(0)), 0.0)


def test_gradient_noise_is_bounded_and_seeded():
    ys, xs = np.mgrid[0:40, 0:40] / 7.3
    a = gradient_noise(xs, ys, np.random.default_rng(5))
    b = gradient_noise(xs, ys, np.random.default_rng(5))
    assert np.array_equal(a, b)
    assert a.min() >= -1.0 and a.max() <= 1.0
    assert a.std() > 0.05


def test_gradient_noise_on_empty_input():
    assert gradient_noise(np.empty((0, 3)), np.empty((0, 3)), np.random.default_rng(0)).shape == (0, 3)


def test_zero_intensity_is_identity(noise_image):
    out = apply_noise(noise_image, NoiseSettings(enabled=True, intensity=0.0))
    assert np.array_equal(np.asarray(out), np.asarray(noise_image))


def test_seed_controls_the_pattern(gray_image):
    a = apply_noise(gray_image, NoiseSettings(intensity=1.0, scale=8, seed=1))
    b = apply_noise(gray_image, NoiseSettings(intensity=1.0, scale=8, seed=1))
    c = apply_noise(gray_image, NoiseSettings(intensity=1.0, scale=8, seed=2))
    assert a.tobytes() == b.tobytes()
    assert a.tobytes() != c.tobytes()


def test_single_channel_leaves_others_alone(noise_image):
    out = np.asarray(apply_noise(noise_image, NoiseSettings(intensity=1.0, scale=6, channel=NoiseChannel.GREEN)))
    src = np.asarray(noise_image)
    assert np.array_equal(out[..., [0, 2, 3]], src[..., [0, 2, 3]])
    assert not np.array_equal(out[..., 1], src[..., 1])


def test_monochrome_noise_keeps_gray_gray(gray_image):
    out = np.asarray(apply_noise(gray_image, NoiseSettings(intensity=0.8, scale=5, monochrome=True)))
    assert np.array_equal(out[..., 0], out[..., 1])
    assert np.array_equal(out[..., 1], out[..., 2])
    assert len(np.unique(out[..., 0])) > 1


@pytest.mark.parametrize("mode", list(BlendMode))
def test_every_blend_mode_stays_in_range(mode, noise_image):
    out = np.asarray(apply_noise(noise_image, NoiseSettings(intensity=0.7, scale=4, blend_mode=mode)))
    assert out.dtype == np.uint8
    assert np.array_equal(out[..., 3], np.asarray(noise_image)[..., 3])


def test_linocut_is_black_and_white(noise_image):
    out = np.asarray(linocut(noise_image, LinocutSettings(enabled=True)))
    assert set(np.unique(out[..., :3])) <= {0, 255}
    assert np.array_equal(out[..., 0], out[..., 2])
    assert np.array_equal(out[..., 3], np.asarray(noise_image)[..., 3])


def test_linocut_leaves_bright_areas_as_paper(make_solid):
    out = np.asarray(linocut(make_solid(30, 30, (255, 255, 255)), LinocutSettings()))
    assert (out[..., :3] == 255).all()


def test_linocut_carves_dark_areas(black_image):
    out = np.asarray(linocut(black_image, LinocutSettings(line_spacing=10, stroke_width=6)))
    inked = out[..., 0] == 0
    assert 0.2 < inked.mean() < 1.0


def test_linocut_invert_draws_light_lines_on_black(black_image):
    out = np.asarray(linocut(black_image, LinocutSettings(invert=True, threshold=1.0)))
    assert (out[..., 0] == 0).mean() > 0.5
    assert (out[..., 0] == 255).any()


def test_linocut_vertical_orientation_runs_lines_down(black_image):
    horizontal = np.asarray(linocut(black_image, LinocutSettings()))
    vertical = np.asarray(linocut(black_image, LinocutSettings(orientation=Orientation.VERTICAL)))
    assert vertical.shape == horizontal.shape
    assert np.array_equal(vertical[..., 0], horizontal[..., 0].T)


def test_linocut_is_deterministic(noise_image):
    a = linocut(noise_image, LinocutSettings())
    b = linocut(noise_image, LinocutSettings())
    assert a.tobytes() == b.tobytes()
