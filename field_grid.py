"""
Simulation state for the instanton growth lab

FieldGrid owns the current and previous field, the static potential, the
derived gradient magnitude, the seed history and the simulation clock.
All arrays have shape (width, height) and are indexed [i, j].
"""

from collections import namedtuple

import numpy as np

from potential_field import generate_potential
from seed_profile import SEED_AMPLITUDE, SeedShape, seed_profile

Instanton = namedtuple(
    'Instanton',
    ['center_x', 'center_y', 'birth_step', 'birth_time', 'shape_kind', 'amplitude'],
)


class SimulationClock:
    """Simulated time and step counter"""

    def __init__(self):
        self.time = 0.0
        self.step = 0

    def advance(self, dt):
        self.time += dt
        self.step += 1

    def reset(self):
        self.time = 0.0
        self.step = 0

    def __repr__(self):
        return f"SimulationClock(time={self.time:.4f}, step={self.step})"


class FieldGrid:
    """
    Mutable state of one simulation session

    Parameters:
    -----------
    width, height : int
        Grid dimensions (fixed for the lifetime of the grid, both >= 3)
    rng : numpy.random.Generator
        Default random source for the stochastic forcing
    """

    def __init__(self, width, height, rng=None):
        if width < 3 or height < 3:
            raise ValueError(f"Grid must be at least 3x3, got {width}x{height}")

        self.width = int(width)
        self.height = int(height)

        shape = (self.width, self.height)
        self.phi = np.zeros(shape)
        self.phi_prev = np.zeros(shape)
        self.potential = np.zeros(shape)
        self.gradient = np.zeros(shape)

        self.instantons = []
        self.clock = SimulationClock()
        self.family = None
        self.rng = rng if rng is not None else np.random.default_rng()

    @property
    def shape(self):
        return (self.width, self.height)

    @property
    def time(self):
        return self.clock.time

    @property
    def step_count(self):
        return self.clock.step

    def __repr__(self):
        family = self.family.value if self.family is not None else None
        return (f"FieldGrid({self.width}x{self.height}, family={family}, "
                f"seeds={len(self.instantons)}, {self.clock})")


def create_grid(width, height, family=None, seed=None):
    """
    Create a zero-filled grid, generating the potential if a family is given

    `seed` initializes the grid's default random generator.
    """
    grid = FieldGrid(width, height, rng=np.random.default_rng(seed))
    if family is not None:
        generate_potential(grid, family)
    return grid


def place_seed(grid, shape, center_x, center_y):
    """
    Superpose an instanton onto phi at (center_x, center_y)

    phi_prev is overwritten with the updated phi so the new seed starts
    with zero velocity. Centers outside the grid contribute only their
    in-grid tail.
    """
    shape = SeedShape.coerce(shape)
    center_x = int(center_x)
    center_y = int(center_y)

    grid.phi += seed_profile(shape, grid.width, grid.height, center_x, center_y,
                             amplitude=SEED_AMPLITUDE)
    grid.phi_prev[...] = grid.phi

    record = Instanton(center_x, center_y, grid.clock.step, grid.clock.time,
                       shape, SEED_AMPLITUDE)
    grid.instantons.append(record)
    return record


def reset(grid):
    """Zero the field, seeds and clock; regenerate the potential."""
    grid.phi.fill(0.0)
    grid.phi_prev.fill(0.0)
    grid.gradient.fill(0.0)
    grid.instantons.clear()
    grid.clock.reset()
    if grid.family is not None:
        generate_potential(grid, grid.family)
