"""Tests for blend modes and the gradient map stage."""

import numpy as np
import pytest

from imagetweaker.image_processing.blend import blend, mix
from imagetweaker.image_processing.gradient_map import apply_gradient_map, gradient_lut
from imagetweaker.models import BlendMode, GradientMapSettings, GradientStop


def test_default_gradient_keeps_gray_ramp(gradient_image):
    out = np.asarray(apply_gradient_map(gradient_image, GradientMapSettings(enabled=True))).astype(int)
    assert np.abs(out - np.asarray(gradient_image)).max() <= 1


def test_stops_are_sorted_before_interpolating():
    lut = gradient_lut((GradientStop(100, (255, 0, 0)), GradientStop(0, (0, 0, 255))))
    assert lut[0].tolist() == [0, 0, 255]
    assert lut[255].tolist() == [255, 0, 0]
    assert lut[128].tolist() == [128, 0, 127]


def test_luminance_outside_the_stops_takes_the_end_colors():
    lut = gradient_lut((GradientStop(25, (255, 0, 0)), GradientStop(75, (0, 255, 0))))
    assert lut[0].tolist() == [255, 0, 0]
    assert lut[255].tolist() == [0, 255, 0]


def test_zero_opacity_leaves_image_unchanged(noise_image):
    settings = GradientMapSettings(stops=(GradientStop(0, (255, 0, 0)), GradientStop(100, (0, 0, 255))), opacity=0.0)
    out = apply_gradient_map(noise_image, settings)
    assert np.array_equal(np.asarray(out), np.asarray(noise_image))


def test_alpha_is_preserved(noise_image):
    out = apply_gradient_map(noise_image, GradientMapSettings(blend_mode=BlendMode.OVERLAY))
    assert np.array_equal(np.asarray(out)[..., 3], np.asarray(noise_image)[..., 3])


def test_half_opacity_mixes_halfway(make_solid):
    image = make_solid(2, 2, (200, 200, 200))
    settings = GradientMapSettings(stops=(GradientStop(0, (0, 0, 0)), GradientStop(100, (0, 0, 0))), opacity=0.5)
    out = np.asarray(apply_gradient_map(image, settings))
    assert out[0, 0, :3].tolist() == [100, 100, 100]


@pytest.mark.parametrize(
    "mode, base, top, expected",
    [
        (BlendMode.NORMAL, 10, 200, 200),
        (BlendMode.MULTIPLY, 255, 90, 90),
        (BlendMode.SCREEN, 0, 90, 90),
        (BlendMode.DARKEN, 30, 90, 30),
        (BlendMode.LIGHTEN, 30, 90, 90),
        (BlendMode.DIFFERENCE, 30, 90, 60),
        (BlendMode.EXCLUSION, 0, 90, 90),
        (BlendMode.COLOR_DODGE, 0, 200, 0),
        (BlendMode.COLOR_BURN, 255, 10, 255),
        (BlendMode.OVERLAY, 0, 200, 0),
        (BlendMode.HARD_LIGHT, 200, 0, 0),
        (BlendMode.SOFT_LIGHT, 0, 200, 0),
    ],
)
def test_channel_blend_modes(mode, base, top, expected):
    out = blend(np.array([[float(base)] * 3]), np.array([[float(top)] * 3]), mode)
    assert out[0].tolist() == pytest.approx([expected] * 3)


def test_color_dodge_and_burn_guard_division():
    a = np.array([[100.0, 100.0, 100.0]])
    assert blend(a, np.full((1, 3), 255.0), BlendMode.COLOR_DODGE)[0].tolist() == [255.0] * 3
    assert blend(a, np.zeros((1, 3)), BlendMode.COLOR_BURN)[0].tolist() == [0.0] * 3


def test_luminosity_keeps_base_hue():
    base = np.array([[255.0, 0.0, 0.0]])
    top = np.array([[64.0, 64.0, 64.0]])
    out = blend(base, top, BlendMode.LUMINOSITY)[0]
    assert out[0] > out[1] == pytest.approx(out[2])


def test_color_mode_keeps_base_lightness():
    base = np.array([[128.0, 128.0, 128.0]])
    top = np.array([[0.0, 0.0, 255.0]])
    out = blend(base, top, BlendMode.COLOR)[0]
    assert out[2] > out[0]
    assert (out.max() + out.min()) / 2 == pytest.approx(128.0, abs=1)


def test_mix_clamps_opacity():
    base = np.array([0.0])
    layer = np.array([100.0])
    assert mix(base, layer, 2.0).tolist() == [100.0]
    assert mix(base, layer, -1.0).tolist() == [0.0]
