"""Tests for grid splitting and displacement."""

import numpy as np
import pytest

from imagetweaker.image_processing.grid import (
    GridCell,
    apply_grid,
    create_grid,
    displace,
    pseudo_noise,
    split_cell,
)
from imagetweaker.models import DisplacementSettings, GridSettings


def test_grid_without_rotation_or_split_is_identity(noise_image, rng):
    settings = GridSettings(enabled=True, columns=4, rows=3)
    out = apply_grid(noise_image, settings, rng)
    assert np.array_equal(np.asarray(out), np.asarray(noise_image))


def test_create_grid_tiles_canvas(rng):
    cells = create_grid(100, 60, GridSettings(columns=4, rows=3), rng)
    assert len(cells) == 12
    assert sum(c.width * c.height for c in cells) == pytest.approx(6000)
    assert all(c.rotation == 0 for c in cells)


def test_rotation_is_bounded(rng):
    settings = GridSettings(columns=5, rows=5, apply_rotation=True, max_rotation=40)
    cells = create_grid(100, 100, settings, rng)
    assert all(-20 <= c.rotation <= 20 for c in cells)
    assert any(c.rotation != 0 for c in cells)


def test_split_respects_depth_and_minimum_size():
    settings = GridSettings(split_enabled=True, split_probability=1.0, max_split_levels=3, min_cell_size=5)
    cell = GridCell(0, 0, 200, 200)
    split_cell(cell, settings, np.random.default_rng(0))

    def depth(c):
        return 0 if not c.children else 1 + max(depth(ch) for ch in c.children)

    assert 1 <= depth(cell) <= 3
    leaves = cell.leaves()
    assert sum(c.width * c.height for c in leaves) == pytest.approx(200 * 200)
    assert all(c.width >= 5 and c.height >= 5 for c in leaves)


@pytest.mark.parametrize("seed", range(50))
def test_split_never_produces_cells_below_minimum(seed):
    settings = GridSettings(split_enabled=True, split_probability=1.0, max_split_levels=4, min_cell_size=20)
    cell = GridCell(0, 0, 45, 45)
    split_cell(cell, settings, np.random.default_rng(seed))
    for leaf in cell.leaves():
        assert leaf.width >= 20
        assert leaf.height >= 20


def test_small_cells_do_not_split(rng):
    settings = GridSettings(split_enabled=True, split_probability=1.0, max_split_levels=4, min_cell_size=30)
    cell = GridCell(0, 0, 50, 50)
    split_cell(cell, settings, rng)
    assert cell.children == []


def test_rotated_grid_leaves_transparent_gaps(make_solid, rng):
    image = make_solid(80, 80, (200, 100, 50))
    settings = GridSettings(columns=2, rows=2, apply_rotation=True, max_rotation=60)
    out = np.asarray(apply_grid(image, settings, rng))
    assert out.shape == (80, 80, 4)
    assert (out[..., 3] < 255).any()


def test_split_grid_keeps_content(noise_image):
    settings = GridSettings(columns=1, rows=1, split_enabled=True, split_probability=1.0, max_split_levels=2, min_cell_size=5)
    out = apply_grid(noise_image, settings, np.random.default_rng(3))
    # Without rotation the leaves tile the canvas exactly
    assert np.array_equal(np.asarray(out), np.asarray(noise_image))


def test_pseudo_noise_range():
    xs, ys = np.meshgrid(np.arange(0, 500, 50), np.arange(0, 500, 50))
    values = pseudo_noise(xs.astype(float), ys.astype(float), 3.0)
    assert values.min() >= 0 and values.max() < 3.0


def test_displacement_defaults_are_identity(noise_image):
    out = displace(noise_image, DisplacementSettings(enabled=True))
    assert np.array_equal(np.asarray(out), np.asarray(noise_image))


def test_displacement_moves_pixels(gradient_image):
    out = np.asarray(displace(gradient_image, DisplacementSettings(amount_x=40)))
    src = np.asarray(gradient_image)
    # Dark pixels sample from the left, light pixels from the right
    assert out[0, 10, 0] <= src[0, 10, 0]
    assert out[0, 90, 0] >= src[0, 90, 0]
    assert not np.array_equal(out, src)


def test_displacement_colorize_uses_ramp(gradient_image):
    settings = DisplacementSettings(colorize=True, low_color=(255, 0, 0), mid_color=(0, 255, 0), high_color=(0, 0, 255))
    out = np.asarray(displace(gradient_image, settings))
    assert tuple(out[0, 0, :3]) == (255, 0, 0)
    assert tuple(out[0, -1, :3]) == (0, 0, 255)


def test_displacement_posterize_limits_levels(gradient_image):
    settings = DisplacementSettings(posterize=True, posterize_levels=3)
    out = np.asarray(displace(gradient_image, settings))
    assert {tuple(c) for c in out[..., :3].reshape(-1, 3)} <= {(0, 0, 0), (128, 128, 128), (255, 255, 255)}
