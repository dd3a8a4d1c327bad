"""
Allowed beta-decay energy spectrum with Coulomb (Fermi) correction.

    N(T_e) = C · p_e · E_e · (Q - T_e) · sqrt((Q - T_e)² - m_ν²) · F(Z, T_e)

with p_e = sqrt(T_e² + 2 T_e m_e), E_e = T_e + m_e and all energies in eV.

Both functions are vectorized over T_e (scalar in → float out) so they can be
used by the sampler, by numpy histogram builders and as an lmfit model.
Outside the kinematic domain the density is exactly 0, never NaN.
"""

from typing import Tuple, Optional
import numpy as np
from scipy.optimize import minimize_scalar  # type: ignore[import]

from NuMass.core.config import PhysicalParameters, ALPHA, M_ELECTRON


# ============================================================================
# FERMI FUNCTION
# ============================================================================

def _x_over_one_minus_exp(x: np.ndarray) -> np.ndarray:
    """x / (1 - exp(-x)), stable for x → 0 and for large |x|."""
    out = np.ones_like(x)
    pos = x > 0
    neg = x < 0
    out[pos] = x[pos] / -np.expm1(-x[pos])
    # multiply through by exp(x) so nothing overflows for x ≪ 0
    out[neg] = x[neg] * np.exp(x[neg]) / np.expm1(x[neg])
    return out


def fermi_factor(Z: int, T_e, charge: int,
                 m_e: float = M_ELECTRON, alpha: float = ALPHA):
    """
    Non-relativistic Fermi function F = 2πη / (1 - exp(-2πη)).

    η = (T_e + m_e) · charge · α · Z / sqrt(2 T_e m_e)

    Args:
        Z: Atomic number entering the Coulomb correction
        T_e: Electron kinetic energy [eV], scalar or array
        charge: -1 or +1
        m_e: Electron mass [eV]
        alpha: Fine-structure constant

    Returns:
        F (same shape as T_e). NaN where T_e <= 0, where η is undefined.
        The η → 0 limit returns exactly 1.
    """
    T = np.asarray(T_e, dtype=np.float64)
    scalar = T.ndim == 0
    T = np.atleast_1d(T)

    out = np.full(T.shape, np.nan)
    ok = T > 0
    eta = (T[ok] + m_e) * charge * alpha * Z / np.sqrt(2 * T[ok] * m_e)
    out[ok] = _x_over_one_minus_exp(2 * np.pi * eta)

    return float(out[0]) if scalar else out


# ============================================================================
# DECAY RATE DENSITY
# ============================================================================

def decay_density(T_e, m_nu: float, C: float, physics: PhysicalParameters):
    """
    Unnormalized dΓ/dT_e of an allowed beta decay.

    Args:
        T_e: Electron kinetic energy [eV], scalar or array
        m_nu: Neutrino mass [eV]
        C: Overall scale
        physics: Decay constants (Q, m_e, Z, charge, α)

    Returns:
        Density values, 0 wherever T_e <= 0 or (Q - T_e)² < m_nu²
        (kinematically forbidden).
    """
    T = np.asarray(T_e, dtype=np.float64)
    scalar = T.ndim == 0
    T = np.atleast_1d(T)

    m_e = physics.m_e
    d = physics.Q - T
    ok = (T > 0) & (d > 0) & (d * d >= m_nu * m_nu)

    out = np.zeros(T.shape)
    t, dq = T[ok], d[ok]
    out[ok] = (C
               * np.sqrt(t**2 + 2 * t * m_e)
               * (t + m_e)
               * dq
               * np.sqrt(dq**2 - m_nu**2)
               * fermi_factor(physics.coulomb_Z, t, physics.charge, m_e=m_e, alpha=physics.alpha))

    return float(out[0]) if scalar else out


def density_maximum(physics: PhysicalParameters,
                    lower: float, upper: float,
                    m_nu: Optional[float] = None,
                    n_grid: int = 512) -> Tuple[float, float]:
    """
    Locate the maximum of N(T_e) on [lower, upper].

    Coarse grid first, then a bounded scalar refinement around the best grid
    point.

    Returns:
        (T_e at maximum, N at maximum) with C = 1
    """
    m_nu = physics.m_nu if m_nu is None else m_nu
    grid = np.linspace(lower, upper, n_grid)
    values = decay_density(grid, m_nu, 1.0, physics)
    i = int(np.argmax(values))

    a = grid[max(i - 1, 0)]
    b = grid[min(i + 1, n_grid - 1)]
    if b <= a:
        return float(grid[i]), float(values[i])

    res = minimize_scalar(lambda t: -decay_density(t, m_nu, 1.0, physics),
                          bounds=(a, b), method="bounded")
    if res.success and -res.fun > values[i]:
        return float(res.x), float(-res.fun)
    return float(grid[i]), float(values[i])
