"""
Leapfrog time stepping for the instanton growth lab

Equation on the interior cells:
    φ_tt = ∇²φ - V(x, y) φ - 0.1 φ³ + η(x, y, t)
with a 5-point Laplacian (dx = 1), spatially modulated noise η and a soft
absorbing boundary that scales every edge cell by 0.9 each step.
"""

import warnings
from enum import Enum

import numpy as np

from lab_errors import FieldDivergence, UnsupportedVariant

DX = 1.0
SELF_COUPLING = 0.1
NOISE_PHASE_RATE = 0.1
BOUNDARY_ABSORPTION = 0.9
DEFAULT_CLAMP_LIMIT = 1e6


class DivergencePolicy(str, Enum):
    """What step() does when the updated field holds inf or NaN"""
    IGNORE = 'ignore'
    WARN = 'warn'
    HALT = 'halt'
    CLAMP = 'clamp'

    @classmethod
    def coerce(cls, value):
        try:
            return cls(value)
        except ValueError:
            raise UnsupportedVariant('divergence policy', value,
                                     [p.value for p in cls]) from None


# --- Spatial operators ---

def laplacian(phi, dx=DX):
    """5-point Laplacian of the interior cells, shape (W-2, H-2)."""
    return (
        phi[2:, 1:-1] + phi[:-2, 1:-1] +
        phi[1:-1, 2:] + phi[1:-1, :-2] -
        4 * phi[1:-1, 1:-1]
    ) / (dx * dx)


def derive_gradient(phi, out=None):
    """
    Central-difference gradient magnitude of the interior cells

    Boundary cells of `out` keep whatever they held before.
    """
    if out is None:
        out = np.zeros_like(phi)
    grad_x = (phi[2:, 1:-1] - phi[:-2, 1:-1]) / 2
    grad_y = (phi[1:-1, 2:] - phi[1:-1, :-2]) / 2
    out[1:-1, 1:-1] = np.sqrt(grad_x**2 + grad_y**2)
    return out


def absorb_boundary(field, factor=BOUNDARY_ABSORPTION):
    """Scale every edge cell of `field` by `factor` in place (corners once)."""
    field[0, :] *= factor
    field[-1, :] *= factor
    field[1:-1, 0] *= factor
    field[1:-1, -1] *= factor
    return field


def structured_noise(shape, time, noise_level, rng):
    """
    Noise for the interior cells: uniform jitter modulated by a travelling phase

    η[i, j] = noise_level * (U - 0.5) * sin(0.1 t + 0.1 i + 0.1 j), with i, j
    the grid indices of the interior cells (starting at 1).
    """
    w, h = shape
    i = np.arange(1, w + 1)[:, None]
    j = np.arange(1, h + 1)[None, :]
    phase = np.sin(NOISE_PHASE_RATE * time + 0.1 * i + 0.1 * j)
    return noise_level * (rng.random((w, h)) - 0.5) * phase


# --- Time stepping ---

def _apply_divergence_policy(phi_new, policy, step_index, clamp_limit):
    if policy is DivergencePolicy.CLAMP:
        phi_new = np.nan_to_num(phi_new, nan=0.0, posinf=clamp_limit, neginf=-clamp_limit)
        return np.clip(phi_new, -clamp_limit, clamp_limit)

    bad = ~np.isfinite(phi_new)
    if not bad.any():
        return phi_new

    n_bad = int(bad.sum())
    if policy is DivergencePolicy.HALT:
        raise FieldDivergence(step_index, n_bad)
    if policy is DivergencePolicy.WARN:
        warnings.warn(f"Field diverged at step {step_index}: {n_bad} non-finite cells",
                      RuntimeWarning, stacklevel=3)
    return phi_new


def step(grid, dt, noise_level, rng=None, on_divergence=DivergencePolicy.WARN,
         clamp_limit=DEFAULT_CLAMP_LIMIT):
    """
    Advance the grid by one leapfrog step

    Parameters:
    -----------
    grid : FieldGrid
        State to advance in place
    dt : float
        Time step (the growth rate)
    noise_level : float
        Amplitude of the stochastic forcing (0 disables it, no draws are made)
    rng : numpy.random.Generator
        Random source; defaults to grid.rng
    on_divergence : DivergencePolicy or str
        'ignore', 'warn', 'halt' or 'clamp'
    clamp_limit : float
        Bound applied to |phi| under the 'clamp' policy
    """
    if dt <= 0:
        raise ValueError(f"dt must be positive, got {dt}")
    if noise_level < 0:
        raise ValueError(f"noise_level must be non-negative, got {noise_level}")
    policy = DivergencePolicy.coerce(on_divergence)
    if rng is None:
        rng = grid.rng

    phi = grid.phi
    core = phi[1:-1, 1:-1]

    with np.errstate(over='ignore', invalid='ignore'):
        force = laplacian(phi)
        force -= grid.potential[1:-1, 1:-1] * core
        force -= SELF_COUPLING * core**3
        if noise_level > 0:
            force += structured_noise(core.shape, grid.clock.time, noise_level, rng)

        # Edge cells are not stencil-updated; they carry their value into the damping
        phi_new = phi.copy()
        phi_new[1:-1, 1:-1] = 2 * core - grid.phi_prev[1:-1, 1:-1] + dt * dt * force
        absorb_boundary(phi_new)

    phi_new = _apply_divergence_policy(phi_new, policy, grid.clock.step + 1, clamp_limit)

    grid.phi_prev[...] = phi
    grid.phi[...] = phi_new
    grid.clock.advance(dt)

    with np.errstate(over='ignore', invalid='ignore'):
        derive_gradient(grid.phi, out=grid.gradient)


# --- Diagnostics ---

def field_energy(grid, dt):
    """
    Discrete energy of the current state

    Returns:
    --------
    E_total, E_kinetic, E_gradient, E_potential : float
    """
    velocity = (grid.phi - grid.phi_prev) / dt
    E_kinetic = 0.5 * np.sum(velocity**2)

    grad_x, grad_y = np.gradient(grid.phi)
    E_gradient = 0.5 * np.sum(grad_x**2 + grad_y**2)

    E_potential = np.sum(0.5 * grid.potential * grid.phi**2 +
                         0.25 * SELF_COUPLING * grid.phi**4)

    E_total = E_kinetic + E_gradient + E_potential
    return float(E_total), float(E_kinetic), float(E_gradient), float(E_potential)
