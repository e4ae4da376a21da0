"""
Static potential landscapes for the instanton growth lab.

Each family is an analytic formula evaluated on continuous coordinates
x = (i/W - 0.5) * S, y = (j/H - 0.5) * S with S = POTENTIAL_SCALE.
"""

from enum import Enum

import numpy as np

from lab_errors import UnsupportedVariant

POTENTIAL_SCALE = 4.0
RIPPLE_CORE = 0.1


class PotentialFamily(str, Enum):
    MEXICAN_HAT = 'mexican_hat'
    HARMONIC = 'harmonic'
    DOUBLE_WELL = 'double_well'
    SINUSOIDAL = 'sinusoidal'
    RIPPLE = 'ripple'
    SPIRAL = 'spiral'

    @classmethod
    def coerce(cls, value):
        """Return the member for `value` (member or tag string)."""
        try:
            return cls(value)
        except ValueError:
            raise UnsupportedVariant('potential family', value,
                                     [f.value for f in cls]) from None


def grid_coordinates(width, height, scale=POTENTIAL_SCALE):
    """Continuous (x, y, r) arrays of shape (width, height) centred on the grid."""
    i = np.arange(width)
    j = np.arange(height)
    ii, jj = np.meshgrid(i, j, indexing='ij')
    x = (ii / width - 0.5) * scale
    y = (jj / height - 0.5) * scale
    r = np.sqrt(x**2 + y**2)
    return x, y, r


# --- Potential formulas ---

def _mexican_hat(x, y, r):
    # V(r) = 0.5*r² - 0.25*r⁴
    return 0.5 * r**2 - 0.25 * r**4


def _harmonic(x, y, r):
    return 0.5 * r**2


def _double_well(x, y, r):
    # V(x) = (x² - 1)²
    return (x**2 - 1)**2


def _sinusoidal(x, y, r):
    return np.sin(2 * np.pi * x) + np.sin(2 * np.pi * y)


def _ripple(x, y, r):
    # sin(3r)/r, flattened to 0 inside the core to drop the singularity
    out = np.zeros_like(r)
    np.divide(np.sin(3 * r), r, out=out, where=r > RIPPLE_CORE)
    return out


def _spiral(x, y, r):
    theta = np.arctan2(y, x)
    return r * np.sin(3 * theta)


_FORMULAS = {
    PotentialFamily.MEXICAN_HAT: _mexican_hat,
    PotentialFamily.HARMONIC: _harmonic,
    PotentialFamily.DOUBLE_WELL: _double_well,
    PotentialFamily.SINUSOIDAL: _sinusoidal,
    PotentialFamily.RIPPLE: _ripple,
    PotentialFamily.SPIRAL: _spiral,
}


def potential_values(family, width, height):
    """
    Evaluate a potential family on a width x height grid

    Parameters:
    -----------
    family : PotentialFamily or str
        One of the PotentialFamily tags
    width, height : int
        Grid dimensions

    Returns:
    --------
    potential : ndarray, shape (width, height)
    """
    family = PotentialFamily.coerce(family)
    x, y, r = grid_coordinates(width, height)
    return _FORMULAS[family](x, y, r)


def generate_potential(grid, family):
    """Fill grid.potential in place; an unknown family leaves it untouched."""
    family = PotentialFamily.coerce(family)
    grid.potential[...] = potential_values(family, grid.width, grid.height)
    grid.family = family
