"""Tests for the leapfrog integrator, boundary damping and gradient derivation."""

import warnings

import numpy as np
import pytest

from field_grid import create_grid, place_seed
from integrator import (
    BOUNDARY_ABSORPTION, DivergencePolicy, absorb_boundary, derive_gradient, field_energy,
    laplacian, step, structured_noise,
)
from lab_errors import FieldDivergence, UnsupportedVariant


# =============================================================================
# Spatial operators
# =============================================================================


class TestLaplacian:

    def test_quadratic(self):
        i = np.arange(8)[:, None] * np.ones((1, 6))
        lap = laplacian(i**2)
        assert lap.shape == (6, 4)
        np.testing.assert_allclose(lap, 2.0)

    def test_linear_is_zero(self):
        ii, jj = np.meshgrid(np.arange(7), np.arange(9), indexing='ij')
        np.testing.assert_allclose(laplacian(3.0 * ii - 2.0 * jj), 0.0, atol=1e-12)


class TestDeriveGradient:

    def test_linear_ramp(self):
        ii, jj = np.meshgrid(np.arange(10), np.arange(8), indexing='ij')
        phi = 2.0 * ii + 3.0 * jj
        out = np.full(phi.shape, -1.0)
        derive_gradient(phi, out=out)
        np.testing.assert_allclose(out[1:-1, 1:-1], np.sqrt(13.0))

    def test_boundary_left_untouched(self):
        phi = np.random.default_rng(3).normal(size=(6, 6))
        out = np.full(phi.shape, -1.0)
        derive_gradient(phi, out=out)
        assert np.all(out[0, :] == -1.0) and np.all(out[-1, :] == -1.0)
        assert np.all(out[:, 0] == -1.0) and np.all(out[:, -1] == -1.0)
        assert np.all(out[1:-1, 1:-1] >= 0.0)


class TestAbsorbBoundary:

    def test_edges_scaled_once(self):
        field = np.random.default_rng(4).normal(size=(7, 5))
        before = field.copy()
        absorb_boundary(field)

        edge = np.zeros(field.shape, dtype=bool)
        edge[0, :] = edge[-1, :] = edge[:, 0] = edge[:, -1] = True
        np.testing.assert_allclose(field[edge], BOUNDARY_ABSORPTION * before[edge])
        np.testing.assert_array_equal(field[~edge], before[~edge])


class TestStructuredNoise:

    def test_bounded_by_half_level(self):
        noise = structured_noise((4, 4), 0.0, 1.0, np.random.default_rng(0))
        assert noise.shape == (4, 4)
        assert np.all(np.abs(noise) <= 0.5)

    def test_scales_with_level(self):
        a = structured_noise((5, 3), 1.5, 1.0, np.random.default_rng(7))
        b = structured_noise((5, 3), 1.5, 0.2, np.random.default_rng(7))
        np.testing.assert_allclose(b, 0.2 * a)


# =============================================================================
# Stepping
# =============================================================================


class TestStep:

    def test_zero_field_stays_zero(self):
        grid = create_grid(20, 15, family='mexican_hat')
        for _ in range(10):
            step(grid, 0.02, 0.0)
        assert not grid.phi.any()
        assert not grid.phi_prev.any()
        assert not grid.gradient.any()

    def test_clock_advances(self):
        grid = create_grid(10, 10, family='harmonic', seed=0)
        n, dt = 37, 0.02
        for _ in range(n):
            step(grid, dt, 0.1)
        assert grid.step_count == n
        assert grid.time == pytest.approx(n * dt)

    def test_phi_prev_holds_previous_phi(self):
        grid = create_grid(20, 20, family='sinusoidal', seed=5)
        place_seed(grid, 'sech', 10, 10)
        step(grid, 0.05, 0.2)
        previous = grid.phi.copy()
        step(grid, 0.05, 0.2)
        np.testing.assert_array_equal(grid.phi_prev, previous)

    def test_potential_not_mutated(self):
        grid = create_grid(20, 20, family='spiral', seed=5)
        before = grid.potential.copy()
        place_seed(grid, 'gaussian', 10, 10)
        for _ in range(5):
            step(grid, 0.05, 0.5)
        np.testing.assert_array_equal(grid.potential, before)

    def test_leapfrog_update(self):
        grid = create_grid(12, 12, family='harmonic')
        rng = np.random.default_rng(11)
        grid.phi[...] = rng.normal(size=grid.shape)
        grid.phi_prev[...] = rng.normal(size=grid.shape)
        phi, prev, V = grid.phi.copy(), grid.phi_prev.copy(), grid.potential
        dt = 0.03

        step(grid, dt, 0.0)

        core = phi[1:-1, 1:-1]
        force = laplacian(phi) - V[1:-1, 1:-1] * core - 0.1 * core**3
        expected = 2 * core - prev[1:-1, 1:-1] + dt**2 * force
        np.testing.assert_allclose(grid.phi[1:-1, 1:-1], expected)

    def test_boundary_damping(self):
        grid = create_grid(10, 8)
        grid.phi[...] = 2.0
        grid.phi_prev[...] = 2.0
        before = grid.phi.copy()

        step(grid, 0.02, 0.0)

        np.testing.assert_array_equal(grid.phi[0, :], BOUNDARY_ABSORPTION * before[0, :])
        np.testing.assert_array_equal(grid.phi[-1, :], BOUNDARY_ABSORPTION * before[-1, :])
        np.testing.assert_array_equal(grid.phi[:, 0], BOUNDARY_ABSORPTION * before[:, 0])
        np.testing.assert_array_equal(grid.phi[:, -1], BOUNDARY_ABSORPTION * before[:, -1])

    def test_gradient_derived_after_step(self):
        grid = create_grid(20, 20, family='harmonic')
        place_seed(grid, 'gaussian', 10, 10)
        step(grid, 0.02, 0.0)
        np.testing.assert_array_equal(grid.gradient, derive_gradient(grid.phi))

    def test_gaussian_seed_on_harmonic(self):
        dt = 0.02
        grid = create_grid(10, 10, family='harmonic')
        free = create_grid(10, 10)
        place_seed(grid, 'gaussian', 5, 5)
        place_seed(free, 'gaussian', 5, 5)

        step(grid, dt, 0.0)
        step(free, dt, 0.0)

        centre = grid.phi[5, 5]
        neighbours = [grid.phi[4, 5], grid.phi[6, 5], grid.phi[5, 4], grid.phi[5, 6]]
        assert 0.0 < centre < 1.0
        assert all(centre > n for n in neighbours)
        # the harmonic potential is zero at the centre and restoring around it
        assert grid.phi[5, 5] == free.phi[5, 5]
        for i, j in [(4, 5), (6, 5), (5, 4), (5, 6)]:
            assert grid.phi[i, j] < free.phi[i, j]


class TestStepNoise:

    def test_same_seed_same_result(self):
        grids = [create_grid(16, 16, family='ripple', seed=123) for _ in range(2)]
        for grid in grids:
            place_seed(grid, 'ring', 8, 8)
            for _ in range(4):
                step(grid, 0.05, 0.8)
        np.testing.assert_array_equal(grids[0].phi, grids[1].phi)

    def test_explicit_rng_overrides_grid_rng(self):
        a = create_grid(16, 16, seed=1)
        b = create_grid(16, 16, seed=2)
        step(a, 0.05, 1.0, rng=np.random.default_rng(9))
        step(b, 0.05, 1.0, rng=np.random.default_rng(9))
        np.testing.assert_array_equal(a.phi, b.phi)
        assert a.phi.any()

    def test_forcing_uses_interior_indices_and_pre_step_time(self):
        grid = create_grid(9, 7)
        grid.clock.time = 1.3
        dt, level = 0.1, 0.7

        step(grid, dt, level, rng=np.random.default_rng(21))

        u = np.random.default_rng(21).random((7, 5))
        i = np.arange(1, 8)[:, None]
        j = np.arange(1, 6)[None, :]
        eta = level * (u - 0.5) * np.sin(0.1 * 1.3 + 0.1 * i + 0.1 * j)
        np.testing.assert_allclose(grid.phi[1:-1, 1:-1], dt**2 * eta, rtol=0, atol=1e-15)
        assert not grid.phi[0, :].any() and not grid.phi[:, 0].any()

    def test_no_draws_without_noise(self):
        grid = create_grid(16, 16, family='harmonic')
        rng = np.random.default_rng(4)
        state = rng.bit_generator.state
        step(grid, 0.05, 0.0, rng=rng)
        assert rng.bit_generator.state == state

    def test_invalid_arguments(self):
        grid = create_grid(8, 8)
        with pytest.raises(ValueError):
            step(grid, 0.0, 0.1)
        with pytest.raises(ValueError):
            step(grid, 0.02, -1.0)
        with pytest.raises(UnsupportedVariant):
            step(grid, 0.02, 0.1, on_divergence='explode')
        assert grid.step_count == 0


# =============================================================================
# Divergence policy
# =============================================================================


def blown_up_grid():
    grid = create_grid(8, 8, family='mexican_hat')
    grid.phi[...] = 1e200
    grid.phi_prev[...] = 1e200
    return grid


class TestDivergencePolicy:

    def test_halt_leaves_state(self):
        grid = blown_up_grid()
        phi, prev = grid.phi.copy(), grid.phi_prev.copy()
        with pytest.raises(FieldDivergence) as excinfo:
            step(grid, 0.02, 0.0, on_divergence='halt')
        assert excinfo.value.step == 1
        assert excinfo.value.n_bad > 0
        np.testing.assert_array_equal(grid.phi, phi)
        np.testing.assert_array_equal(grid.phi_prev, prev)
        assert grid.step_count == 0

    def test_warn(self):
        grid = blown_up_grid()
        with pytest.warns(RuntimeWarning, match="diverged"):
            step(grid, 0.02, 0.0)
        assert grid.step_count == 1
        assert not np.all(np.isfinite(grid.phi))

    def test_ignore(self):
        grid = blown_up_grid()
        with warnings.catch_warnings():
            warnings.simplefilter('error')
            step(grid, 0.02, 0.0, on_divergence=DivergencePolicy.IGNORE)
        assert not np.all(np.isfinite(grid.phi))

    def test_clamp(self):
        grid = blown_up_grid()
        step(grid, 0.02, 0.0, on_divergence='clamp', clamp_limit=10.0)
        assert np.all(np.isfinite(grid.phi))
        assert np.max(np.abs(grid.phi)) <= 10.0


# =============================================================================
# Energy diagnostic
# =============================================================================


class TestFieldEnergy:

    def test_zero_field(self):
        grid = create_grid(10, 10, family='harmonic')
        assert field_energy(grid, 0.02) == (0.0, 0.0, 0.0, 0.0)

    def test_components(self):
        grid = create_grid(30, 30, family='harmonic')
        place_seed(grid, 'gaussian', 15, 15)
        total, kinetic, gradient, potential = field_energy(grid, 0.02)
        assert kinetic == 0.0
        assert gradient > 0.0 and potential > 0.0
        assert total == pytest.approx(gradient + potential)

        step(grid, 0.02, 0.0)
        assert field_energy(grid, 0.02)[1] > 0.0
