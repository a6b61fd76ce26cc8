"""Tests for the spiral galaxy particle generator."""

import math

import numpy as np
import pytest

from aether.errors import ConfigurationError
from aether.field_generator import (
    VERTICAL_FLATTENING,
    GalaxyParams,
    branch_index,
    generate,
    parse_color,
)


class TestGenerate:
    """Shape, bounds and determinism of generated fields."""

    def test_returns_requested_count(self, params, rng):
        field = generate(params, 1234, rng=rng)

        assert len(field) == 1234
        assert field.positions.shape == (1234, 3)
        assert field.colors.shape == (1234, 3)
        assert field.positions.dtype == np.float32
        assert field.colors.dtype == np.float32

    def test_colors_within_unit_range(self, small_field):
        assert np.all(small_field.colors >= 0.0)
        assert np.all(small_field.colors <= 1.0)

    def test_horizontal_offsets_bounded_by_randomness(self, small_field, params):
        limit = params.radius * (1.0 + params.randomness) + 1e-4
        assert np.all(np.abs(small_field.positions[:, 0]) <= limit)
        assert np.all(np.abs(small_field.positions[:, 2]) <= limit)
        planar = np.hypot(small_field.positions[:, 0], small_field.positions[:, 2])
        assert np.all(planar <= params.radius * (1.0 + math.sqrt(2.0) * params.randomness) + 1e-4)

    def test_radii_drawn_below_radius(self, small_field, params):
        assert np.all(small_field.radii >= 0.0)
        assert np.all(small_field.radii < params.radius)

    def test_vertical_axis_is_flattened(self, small_field, params):
        bound = VERTICAL_FLATTENING * params.randomness * small_field.radii + 1e-5
        assert np.all(np.abs(small_field.positions[:, 1]) <= bound)

    def test_buffers_are_read_only(self, small_field):
        with pytest.raises(ValueError):
            small_field.positions[0, 0] = 1.0
        with pytest.raises(ValueError):
            small_field.colors[0, 0] = 1.0

    def test_same_seed_same_field(self, params):
        a = generate(params, 500, rng=np.random.default_rng(7))
        b = generate(params, 500, rng=np.random.default_rng(7))

        assert np.array_equal(a.positions, b.positions)
        assert np.array_equal(a.colors, b.colors)

    def test_unseeded_fields_differ(self, params):
        a = generate(params, 500)
        b = generate(params, 500)

        assert not np.array_equal(a.positions, b.positions)

    def test_color_is_radial_gradient(self, small_field, params):
        inner = np.asarray(params.inner_color)
        outer = np.asarray(params.outer_color)
        t = (small_field.radii / params.radius)[:, None]
        expected = inner + (outer - inner) * t

        assert np.allclose(small_field.colors, expected, atol=1e-6)


class TestBranches:
    """Arm assignment is decided by particle index."""

    def test_branch_buckets_are_exactly_uniform(self):
        counts = np.bincount(branch_index(100, 5), minlength=5)

        assert counts.tolist() == [20, 20, 20, 20, 20]

    def test_points_lie_on_branch_angle_without_jitter(self, rng):
        params = GalaxyParams(branches=4, spin=0.0, randomness=0.0)
        field = generate(params, 400, rng=rng)

        keep = field.radii > 1e-3
        expected = branch_index(400, 4)[keep] / 4 * 2 * math.pi
        x = field.positions[keep, 0] / field.radii[keep]
        z = field.positions[keep, 2] / field.radii[keep]

        assert np.allclose(x, np.cos(expected), atol=1e-4)
        assert np.allclose(z, np.sin(expected), atol=1e-4)
        assert np.all(field.positions[:, 1] == 0.0)

    def test_spin_twists_with_distance(self, rng):
        params = GalaxyParams(branches=1, spin=1.0, randomness=0.0)
        field = generate(params, 50, rng=rng)

        keep = field.radii > 1e-3
        radii = field.radii[keep]
        assert np.allclose(field.positions[keep, 0] / radii, np.cos(radii), atol=1e-4)
        assert np.allclose(field.positions[keep, 2] / radii, np.sin(radii), atol=1e-4)


class TestValidation:
    """Invalid parameters are rejected before anything is generated."""

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"radius": 0.0},
            {"radius": -3.0},
            {"branches": 0},
            {"branches": -2},
            {"branches": 2.5},
            {"randomness": -0.1},
            {"randomness_power": 0.0},
            {"inner_color": "#12345"},
            {"outer_color": (1.0, 0.5)},
            {"outer_color": (1.0, 0.5, 2.0)},
        ],
    )
    def test_invalid_params_rejected(self, kwargs):
        with pytest.raises(ConfigurationError):
            GalaxyParams(**kwargs)

    @pytest.mark.parametrize("count", [0, -5, 2.5])
    def test_invalid_count_rejected(self, params, count):
        with pytest.raises(ConfigurationError):
            generate(params, count)

    def test_from_config_reads_camel_case_keys(self):
        params = GalaxyParams.from_config(
            {"radius": 10, "branches": 3, "randomnessPower": 2, "innerColor": "#000000"}
        )

        assert params.radius == 10.0
        assert params.branches == 3
        assert params.randomness_power == 2.0
        assert params.inner_color == (0.0, 0.0, 0.0)


class TestParseColor:
    """Hex strings and triples are both accepted."""

    def test_hex(self):
        assert parse_color("#ffbb33") == pytest.approx((1.0, 0xBB / 255, 0x33 / 255))

    def test_short_hex(self):
        assert parse_color("#fff") == (1.0, 1.0, 1.0)

    def test_triple(self):
        assert parse_color([0.1, 0.2, 0.3]) == (0.1, 0.2, 0.3)

    def test_garbage(self):
        with pytest.raises(ConfigurationError):
            parse_color("#zzzzzz")
