"""Tests for the text dither stage."""

import numpy as np

from imagetweaker.image_processing.text_dither import adjust, glyph_count, text_dither
from imagetweaker.models import TextColorMode, TextDitherSettings


def test_glyph_count_scales_with_resolution():
    base = TextDitherSettings(font_size=10, resolution=1.0)
    dense = TextDitherSettings(font_size=10, resolution=2.0)
    assert glyph_count(100, 100, base) == 100
    assert glyph_count(100, 100, dense) == 200


def test_glyph_count_guards_bad_values():
    assert glyph_count(10, 10, TextDitherSettings(font_size=0, resolution=0)) == 100


def test_adjust_invert_and_contrast():
    values = np.array([0.0, 128.0, 255.0])
    assert adjust(values, TextDitherSettings()).tolist() == [0.0, 128.0, 255.0]
    assert adjust(values, TextDitherSettings(invert=True)).tolist() == [255.0, 127.0, 0.0]
    assert adjust(values, TextDitherSettings(contrast=2.0)).tolist() == [0.0, 128.0, 255.0]


def test_monochrome_glyphs_follow_brightness(make_solid):
    settings = TextDitherSettings(font_size=8, text="#")
    dark = np.asarray(text_dither(make_solid(40, 40, (10, 10, 10)), settings, np.random.default_rng(0)))
    light = np.asarray(text_dither(make_solid(40, 40, (240, 240, 240)), settings, np.random.default_rng(0)))
    dark_ink = dark[dark[..., 3] > 0][:, :3]
    light_ink = light[light[..., 3] > 0][:, :3]
    assert len(dark_ink) and len(light_ink)
    assert dark_ink.max() == 0
    assert light_ink.max() > 0


def test_background_is_transparent(noise_image):
    out = np.asarray(text_dither(noise_image, TextDitherSettings(font_size=20), np.random.default_rng(1)))
    assert out.shape[:2] == (48, 64)
    assert (out[..., 3] == 0).any()


def test_colored_mode_uses_source_color(make_solid):
    settings = TextDitherSettings(font_size=8, text="M", color_mode=TextColorMode.COLORED)
    out = np.asarray(text_dither(make_solid(30, 30, (200, 30, 30)), settings, np.random.default_rng(2)))
    ink = out[out[..., 3] > 0][:, :3].astype(int)
    assert len(ink)
    assert ink[:, 0].max() <= 200
    assert np.all(ink[:, 0] >= ink[:, 1])
    assert np.any(ink[:, 0] > ink[:, 1])


def test_empty_text_stamps_nothing(noise_image, rng):
    out = np.asarray(text_dither(noise_image, TextDitherSettings(text="   "), rng))
    assert not out[..., 3].any()
