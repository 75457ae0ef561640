"""Tests for the color/tone, levels, threshold and posterize stages."""

import warnings

import numpy as np
import pytest

from imagetweaker.image_processing.color import (
    apply_color,
    apply_levels,
    apply_posterize,
    apply_threshold,
)
from imagetweaker.models import (
    ColorSettings,
    LevelsSettings,
    PosterizeMode,
    PosterizeSettings,
    ThresholdSettings,
)


def test_neutral_settings_are_identity(noise_image):
    settings = ColorSettings(enabled=True)
    out = apply_color(noise_image, settings)
    assert out is not noise_image
    assert np.array_equal(np.asarray(out), np.asarray(noise_image))


@pytest.mark.parametrize("posterize", [0, 1])
def test_posterize_zero_or_one_is_identity(noise_image, posterize):
    out = apply_color(noise_image, ColorSettings(enabled=True, posterize=posterize))
    assert np.array_equal(np.asarray(out), np.asarray(noise_image))


def test_invert_twice_round_trips(noise_image):
    settings = ColorSettings(enabled=True, invert=True)
    once = apply_color(noise_image, settings)
    twice = apply_color(once, settings)
    assert not np.array_equal(np.asarray(once), np.asarray(noise_image))
    assert np.array_equal(np.asarray(twice), np.asarray(noise_image))


def test_invert_keeps_alpha(noise_image):
    out = np.asarray(apply_color(noise_image, ColorSettings(invert=True)))
    src = np.asarray(noise_image)
    assert np.array_equal(out[..., 3], src[..., 3])
    assert np.array_equal(out[..., :3], 255 - src[..., :3])


def test_zero_saturation_gives_gray(noise_image):
    out = np.asarray(apply_color(noise_image, ColorSettings(saturation=0))).astype(int)
    assert np.all(np.abs(out[..., 0] - out[..., 1]) <= 1)
    assert np.all(np.abs(out[..., 1] - out[..., 2]) <= 1)


def test_hue_shift_rotates_primaries(make_solid):
    red = make_solid(4, 4, (255, 0, 0))
    out = np.asarray(apply_color(red, ColorSettings(hue_shift=120)))
    assert tuple(out[0, 0, :3]) == (0, 255, 0)

    out = np.asarray(apply_color(red, ColorSettings(hue_shift=-120)))
    assert tuple(out[0, 0, :3]) == (0, 0, 255)


@pytest.mark.parametrize("field", ["hue_shift", "saturation", "brightness", "contrast"])
@pytest.mark.parametrize("value", [float("nan"), float("inf"), float("-inf")])
def test_non_finite_adjustments_are_ignored(make_solid, field, value):
    image = make_solid(3, 3, (200, 30, 30))
    settings = ColorSettings(enabled=True, **{field: value})
    with warnings.catch_warnings():
        warnings.simplefilter("error")
        out = np.asarray(apply_color(image, settings))
    assert tuple(out[1, 1, :3]) == (200, 30, 30)


def test_non_finite_value_does_not_mask_other_adjustments(make_solid):
    red = make_solid(2, 2, (255, 0, 0))
    out = np.asarray(apply_color(red, ColorSettings(hue_shift=120, contrast=float("nan"))))
    assert tuple(out[0, 0, :3]) == (0, 255, 0)


def test_posterize_limits_distinct_values(gradient_image):
    out = np.asarray(apply_color(gradient_image, ColorSettings(posterize=3)))
    assert set(np.unique(out[..., 0])) <= {0, 128, 255}


def test_output_never_out_of_range(noise_image):
    settings = ColorSettings(hue_shift=33, saturation=400, brightness=250, contrast=900)
    out = np.asarray(apply_color(noise_image, settings))
    assert out.dtype == np.uint8
    assert out.shape == np.asarray(noise_image).shape


def test_levels_default_is_identity(noise_image):
    out = apply_levels(noise_image, LevelsSettings(enabled=True))
    assert np.array_equal(np.asarray(out), np.asarray(noise_image))


def test_levels_remaps_black_and_white_points(gradient_image):
    out = np.asarray(apply_levels(gradient_image, LevelsSettings(black=64, white=192)))
    src = np.asarray(gradient_image)
    assert np.all(out[src[..., 0] <= 64, 0] == 0)
    assert np.all(out[src[..., 0] >= 192, 0] == 255)


def test_levels_gamma_brightens_midtones(make_solid):
    gray = make_solid(2, 2, (128, 128, 128))
    out = np.asarray(apply_levels(gray, LevelsSettings(gamma=2.0)))
    assert out[0, 0, 0] == round((128 / 255) ** 0.5 * 255)


def test_levels_guards_degenerate_range(noise_image):
    out = np.asarray(apply_levels(noise_image, LevelsSettings(black=200, white=100, gamma=0)))
    assert out.dtype == np.uint8
    assert np.array_equal(out[..., 3], np.asarray(noise_image)[..., 3])


def test_threshold_makes_duotone(gradient_image):
    settings = ThresholdSettings(
        enabled=True,
        threshold=128,
        dark_color=(10, 20, 30),
        light_color=(200, 210, 220),
    )
    out = np.asarray(apply_threshold(gradient_image, settings))
    colors = {tuple(c) for c in out[..., :3].reshape(-1, 3)}
    assert colors == {(10, 20, 30), (200, 210, 220)}
    assert tuple(out[0, 0, :3]) == (10, 20, 30)
    assert tuple(out[0, -1, :3]) == (200, 210, 220)


def test_rgb_posterize_bands_the_channel_mean(gradient_image):
    out = np.asarray(apply_posterize(gradient_image, PosterizeSettings(enabled=True, levels=2)))
    assert set(np.unique(out[..., :3])) == {0, 255}
    assert np.array_equal(out[..., 3], np.asarray(gradient_image)[..., 3])


def test_rgb_posterize_keeps_hue(make_solid):
    out = np.asarray(apply_posterize(make_solid(2, 2, (180, 60, 0)), PosterizeSettings(levels=2)))
    r, g, b = (int(v) for v in out[0, 0, :3])
    # mean 80 bands down to black
    assert (r, g, b) == (0, 0, 0)

    out = np.asarray(apply_posterize(make_solid(2, 2, (200, 120, 40)), PosterizeSettings(levels=3)))
    r, g, b = (int(v) for v in out[0, 0, :3])
    assert r > g > b


def test_lab_posterize_without_luminance_gives_gray(noise_image):
    settings = PosterizeSettings(levels=4, color_mode=PosterizeMode.LAB)
    out = np.asarray(apply_posterize(noise_image, settings))
    assert np.array_equal(out[..., 0], out[..., 1])
    assert np.array_equal(out[..., 1], out[..., 2])
    assert set(np.unique(out[..., 0])) <= {0, 85, 170, 255}


def test_lab_posterize_preserving_luminance_keeps_color(make_solid):
    settings = PosterizeSettings(levels=4, color_mode=PosterizeMode.LAB, preserve_luminance=True)
    out = np.asarray(apply_posterize(make_solid(2, 2, (200, 40, 40)), settings))
    r, g, b = (int(v) for v in out[0, 0, :3])
    assert r > g and g == b


def test_hsv_posterize_limits_values(noise_image):
    settings = PosterizeSettings(levels=2, color_mode=PosterizeMode.HSV)
    out = apply_posterize(noise_image, settings)
    hsv = np.asarray(out.convert("RGB").convert("HSV"))
    assert set(np.unique(hsv[..., 2])) <= {0, 255}


def test_posterize_dithering_adds_texture(gradient_image):
    plain = np.asarray(apply_posterize(gradient_image, PosterizeSettings(levels=2)))
    dithered = np.asarray(
        apply_posterize(gradient_image, PosterizeSettings(levels=2, dithering=True, dither_amount=100))
    )
    assert len(np.unique(dithered[..., 0])) > len(np.unique(plain[..., 0]))
