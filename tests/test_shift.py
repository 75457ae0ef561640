"""Tests for the mosaic shift and slice shift stages."""

import numpy as np
import pytest

from imagetweaker.image_processing.shift import (
    edge_damping,
    mosaic_shift,
    rearrange_order,
    slice_offsets,
    slice_shift,
    tile_offset,
)
from imagetweaker.models import (
    MosaicShiftSettings,
    RearrangeMode,
    ShiftPattern,
    SliceDirection,
    SliceMode,
    SliceShiftSettings,
)


def test_mosaic_without_offsets_is_identity(gradient_image, rng):
    out = mosaic_shift(gradient_image, MosaicShiftSettings(enabled=True, intensity=0), rng)
    assert np.array_equal(np.asarray(out), np.asarray(gradient_image))


def test_mosaic_seed_overrides_run_generator(noise_image):
    settings = MosaicShiftSettings(seed=9, random_rotation=True)
    a = mosaic_shift(noise_image, settings, np.random.default_rng(1))
    b = mosaic_shift(noise_image, settings, np.random.default_rng(2))
    assert a.tobytes() == b.tobytes()


def test_mosaic_uses_run_generator_without_seed(noise_image):
    a = mosaic_shift(noise_image, MosaicShiftSettings(), np.random.default_rng(1))
    b = mosaic_shift(noise_image, MosaicShiftSettings(), np.random.default_rng(2))
    assert a.tobytes() != b.tobytes()


def test_mosaic_background_fills_exposed_area(gradient_image, rng):
    settings = MosaicShiftSettings(
        pattern=ShiftPattern.WAVE,
        max_offset_x=0,
        max_offset_y=10,
        use_background_color=True,
        background_color=(10, 200, 30),
    )
    out = np.asarray(mosaic_shift(gradient_image, settings, rng))
    assert out[0, 0].tolist() == [10, 200, 30, 255]


def test_mosaic_exposed_area_is_transparent_by_default(gradient_image, rng):
    settings = MosaicShiftSettings(pattern=ShiftPattern.WAVE, max_offset_x=0, max_offset_y=10)
    out = np.asarray(mosaic_shift(gradient_image, settings, rng))
    assert out[0, 0, 3] == 0


def test_radial_pattern_leaves_center_tile_in_place(rng):
    settings = MosaicShiftSettings(columns=8, rows=8, pattern=ShiftPattern.RADIAL)
    assert tile_offset(4, 4, settings, rng) == (0.0, 0.0)
    ox, oy = tile_offset(0, 4, settings, rng)
    assert ox == pytest.approx(-20.0) and oy == 0.0


def test_edge_damping():
    assert edge_damping(0, 3, 8, 8) == 0.0
    assert edge_damping(4, 4, 8, 8) == 1.0
    assert edge_damping(1, 4, 8, 8) == pytest.approx(0.5)


def test_rearrange_orders(rng):
    assert rearrange_order(5, RearrangeMode.REVERSE, rng) == [4, 3, 2, 1, 0]
    assert rearrange_order(5, RearrangeMode.ALTERNATE, rng) == [0, 2, 4, 1, 3]
    assert sorted(rearrange_order(7, RearrangeMode.SHUFFLE, rng)) == list(range(7))
    assert all(0 <= i < 7 for i in rearrange_order(7, RearrangeMode.RANDOM, rng))


def test_alternating_and_wave_offsets(rng):
    alternating = slice_offsets(SliceShiftSettings(slices=4, mode=SliceMode.ALTERNATING, max_offset=6), rng)
    assert alternating == [(0, 6), (1, -6), (2, 6), (3, -6)]
    wave = slice_offsets(SliceShiftSettings(slices=12, mode=SliceMode.WAVE, max_offset=10, intensity=50), rng)
    assert [index for index, _ in wave] == list(range(12))
    assert max(abs(offset) for _, offset in wave) == 5


def test_repeat_mode_copies_neighbours(rng):
    plan = slice_offsets(SliceShiftSettings(slices=9, mode=SliceMode.REPEAT), rng)
    for i, (index, offset) in enumerate(plan):
        assert offset == 0
        if i % 2 == 0:
            assert index == i
        else:
            assert index in (i - 1, i + 1)


def test_reverse_rearrange_mirrors_one_pixel_slices(gradient_image, rng):
    settings = SliceShiftSettings(slices=100, mode=SliceMode.REARRANGE, rearrange_mode=RearrangeMode.REVERSE)
    out = np.asarray(slice_shift(gradient_image, settings, rng))
    assert np.array_equal(out, np.asarray(gradient_image)[:, ::-1])


def test_slice_offset_exposes_background(gradient_image, rng):
    settings = SliceShiftSettings(
        slices=5,
        mode=SliceMode.ALTERNATING,
        max_offset=4,
        use_background_color=True,
        background_color=(1, 2, 3),
    )
    out = np.asarray(slice_shift(gradient_image, settings, rng))
    assert out[10, 0].tolist() == [1, 2, 3, 255]


def test_both_directions_without_offset_is_identity(gradient_image, rng):
    settings = SliceShiftSettings(direction=SliceDirection.BOTH, mode=SliceMode.WAVE, intensity=0)
    out = slice_shift(gradient_image, settings, rng)
    assert np.array_equal(np.asarray(out), np.asarray(gradient_image))


def test_feathering_fades_inner_edges_only(gradient_image, rng):
    settings = SliceShiftSettings(slices=2, mode=SliceMode.WAVE, intensity=0, feathering=True, feather_amount=100)
    out = np.asarray(slice_shift(gradient_image, settings, rng))
    assert out[5, 0, 3] == 255
    assert out[5, 49, 3] < 128
    assert out[5, 99, 3] == 255


def test_slice_seed_is_reproducible(noise_image):
    settings = SliceShiftSettings(seed=4, direction=SliceDirection.HORIZONTAL)
    a = slice_shift(noise_image, settings, np.random.default_rng(1))
    b = slice_shift(noise_image, settings, np.random.default_rng(2))
    assert a.tobytes() == b.tobytes()
