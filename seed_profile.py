"""
Localized instanton profiles added into the field when a seed is placed.
"""

from enum import Enum

import numpy as np

from lab_errors import UnsupportedVariant

SEED_AMPLITUDE = 1.0
SEED_RADIUS = 15.0
RING_WIDTH = 5.0


class SeedShape(str, Enum):
    GAUSSIAN = 'gaussian'
    SECH = 'sech'
    TOPHAT = 'tophat'
    RING = 'ring'
    SPIRAL_SEED = 'spiral_seed'

    @classmethod
    def coerce(cls, value):
        """Return the member for `value` (member or tag string)."""
        try:
            return cls(value)
        except ValueError:
            raise UnsupportedVariant('seed shape', value,
                                     [s.value for s in cls]) from None


def seed_profile(shape, width, height, center_x, center_y,
                 amplitude=SEED_AMPLITUDE, radius=SEED_RADIUS):
    """
    Additive contribution of one seed on a width x height grid

    Parameters:
    -----------
    shape : SeedShape or str
        Profile kind
    center_x, center_y : int
        Seed centre in grid indices; may lie outside the grid
    amplitude : float
        Peak value (1.0 for every placed seed)
    radius : float
        Characteristic radius in cells

    Returns:
    --------
    profile : ndarray, shape (width, height)
    """
    shape = SeedShape.coerce(shape)

    ii, jj = np.meshgrid(np.arange(width), np.arange(height), indexing='ij')
    dx = ii - center_x
    dy = jj - center_y
    dist = np.sqrt(dx**2 + dy**2)

    if shape is SeedShape.GAUSSIAN:
        return amplitude * np.exp(-dist**2 / (2 * radius**2))
    if shape is SeedShape.SECH:
        return amplitude / np.cosh(dist / radius)
    if shape is SeedShape.TOPHAT:
        return np.where(dist < radius, amplitude, 0.0)
    if shape is SeedShape.RING:
        return np.where(np.abs(dist - radius) < RING_WIDTH, amplitude, 0.0)
    # spiral_seed
    angle = np.arctan2(dy, dx)
    return amplitude * np.exp(-dist / radius) * np.sin(3 * angle + dist * 0.1)
