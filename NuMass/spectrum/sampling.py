"""
Von Neumann acceptance-rejection sampling of the beta spectrum.

Candidates T_e are drawn uniformly in (limit, Q) and accepted with
probability N(T_e) / M, where the envelope M = h · N(Q/2) is the density at
the middle of the full spectrum scaled by a tunable factor h.

M is a heuristic, not a proven bound. If max N over the window exceeds M
the generated spectrum is silently truncated there; a large h only costs
efficiency. check_envelope() reports the ratio so callers can warn.

Every loop is bounded: after max_attempts consecutive rejections a
SamplingStallError is raised with a SamplingStall diagnostic.
"""

import time
from typing import Callable, Optional, Tuple
import numpy as np

from NuMass.core.config import ConfigurationError, PhysicalParameters, SamplingWindow
from NuMass.core.datatypes import SamplingStall
from NuMass.spectrum.beta_spectrum import decay_density, density_maximum


class SamplingStallError(RuntimeError):
    """
    Rejection loop reached its attempt cap without an acceptance.

    Carries the samples accepted by the failing call and the candidates it
    consumed.
    """

    def __init__(self, stall: SamplingStall,
                 samples: Optional[np.ndarray] = None,
                 n_candidates: Optional[int] = None):
        super().__init__(f"Rejection sampling stalled: {stall}")
        self.stall = stall
        self.samples = np.empty(0) if samples is None else samples
        self.n_candidates = stall.attempts if n_candidates is None else n_candidates


# ============================================================================
# RANDOM STREAMS AND ENVELOPE
# ============================================================================

def make_rng(seed: Optional[int] = None) -> Tuple[np.random.Generator, int]:
    """One generator per run; wall-clock seed when none is given."""
    if seed is None:
        seed = int(time.time())
    return np.random.default_rng(seed), seed


def envelope_height(physics: PhysicalParameters, h: float) -> float:
    """M = h · N(Q/2, m_ν, C=1)."""
    M = h * decay_density(physics.Q / 2, physics.m_nu, 1.0, physics)
    if not M > 0:
        raise ConfigurationError(f"envelope height is {M} (h={h}, Q={physics.Q}, m_nu={physics.m_nu})")
    return M


def check_envelope(physics: PhysicalParameters, window: SamplingWindow, h: float) -> float:
    """
    Ratio max N / M over the window. Values above 1 mean the top of the
    spectrum will be cut off.
    """
    _, n_max = density_maximum(physics, window.limit, window.Q)
    return n_max / envelope_height(physics, h)


def _stall(physics: PhysicalParameters, window: SamplingWindow, h: float,
           attempts: int, n_accepted: int) -> SamplingStall:
    _, n_max = density_maximum(physics, window.limit, window.Q)
    return SamplingStall(envelope_h=h,
                         limit=window.limit,
                         Q=window.Q,
                         envelope_height=envelope_height(physics, h),
                         max_density_estimate=n_max,
                         attempts=attempts,
                         n_accepted=n_accepted)


# ============================================================================
# SAMPLERS
# ============================================================================

def sample_energy(rng: np.random.Generator,
                  physics: PhysicalParameters,
                  window: SamplingWindow,
                  h: float,
                  max_attempts: int = 1_000_000) -> float:
    """
    Draw one electron kinetic energy [eV] in (limit, Q).

    Args:
        rng: Random stream owned by the caller
        physics: Decay constants (Q, m_ν, ...)
        window: Sampling support
        h: Envelope scale
        max_attempts: Candidates allowed before giving up

    Returns:
        Accepted T_e

    Raises:
        SamplingStallError: no acceptance within max_attempts
    """
    M = envelope_height(physics, h)
    for _ in range(max_attempts):
        T_e = rng.uniform(window.limit, window.Q)
        u = 1.0 - rng.random()                      # (0, 1]
        if T_e > window.limit and u <= decay_density(T_e, physics.m_nu, 1.0, physics) / M:
            return T_e
    raise SamplingStallError(_stall(physics, window, h, max_attempts, 0))


def sample_energies(rng: np.random.Generator,
                    physics: PhysicalParameters,
                    window: SamplingWindow,
                    h: float,
                    n: int,
                    batch_size: int = 100_000,
                    max_attempts: int = 1_000_000,
                    progress: Optional[Callable[[int], None]] = None) -> Tuple[np.ndarray, int]:
    """
    Vectorized rejection sampling of n accepted energies.

    Candidates are processed in batches; acceptance follows the same rule as
    sample_energy(). The stall cap counts consecutive rejected candidates.

    Args:
        rng, physics, window, h: as in sample_energy()
        n: Number of accepted samples wanted
        batch_size: Candidates per batch (capped at max_attempts)
        max_attempts: Consecutive rejections before a stall
        progress: Optional callback receiving the number accepted so far

    Returns:
        (samples, n_candidates): exactly n samples and the candidates consumed

    Raises:
        SamplingStallError: carrying the samples accepted so far and the
            candidates consumed, misses included
    """
    M = envelope_height(physics, h)
    batch = min(batch_size, max_attempts)

    samples = np.empty(n)
    filled = 0
    n_candidates = 0
    misses = 0

    while filled < n:
        T = rng.uniform(window.limit, window.Q, size=batch)
        u = 1.0 - rng.random(batch)
        accepted = np.flatnonzero((T > window.limit)
                                  & (u <= decay_density(T, physics.m_nu, 1.0, physics) / M))

        if accepted.size == 0:
            n_candidates += batch
            misses += batch
            if misses >= max_attempts:
                raise SamplingStallError(_stall(physics, window, h, misses, filled),
                                         samples=samples[:filled].copy(),
                                         n_candidates=n_candidates)
            continue

        take = accepted[:n - filled]
        samples[filled:filled + take.size] = T[take]
        filled += take.size

        if filled == n:
            n_candidates += int(take[-1]) + 1
        else:
            n_candidates += batch
            misses = batch - 1 - int(accepted[-1])

        if progress is not None:
            progress(filled)

    return samples, n_candidates


# ============================================================================
# DETECTOR RESOLUTION
# ============================================================================

def smear_energy(rng: np.random.Generator, T_e, resolution: float):
    """Gaussian detector response: Normal(T_e, resolution)."""
    if resolution == 0:
        return np.array(T_e, dtype=np.float64, copy=True) if np.ndim(T_e) else float(T_e)
    return rng.normal(T_e, resolution)
