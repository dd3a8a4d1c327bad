"""
Accumulation of sampled energies into the true and smeared spectra.

Smeared values have three treatments (SamplingConfig.smear_policy):
- "fill":   fill unconditionally, the histogram range is the only bound
- "window": keep only lower <= x <= upper before filling
- "clamp":  clip into [lower, upper] before filling (edge bins absorb the tails)

"fill" and "window" give the same bin contents and differ only in the
underflow/overflow bookkeeping.
"""

from functools import reduce
from typing import Iterable, Tuple
import numpy as np

from NuMass.core.config import (ConfigurationError, SamplingWindow, SMEAR_POLICIES,
                                TRUE_SPECTRUM, SMEARED_SPECTRUM)
from NuMass.core.datatypes import Histogram
from NuMass.spectrum.sampling import smear_energy

SPECTRUM_TITLE = ";E_{e} [eV];Intensity"


def new_histogram(name: str, lower: float, upper: float, nbins: int,
                  title: str = SPECTRUM_TITLE) -> Histogram:
    """Empty fixed-width histogram."""
    if nbins <= 0:
        raise ConfigurationError(f"nbins must be positive, got {nbins}")
    return Histogram(name=name, lower=lower, upper=upper,
                     counts=np.zeros(nbins), title=title)


def accumulate(hist: Histogram, value: float) -> None:
    """Add one value; out-of-range values are dropped from the bins."""
    hist.fill(value)


def new_spectra(window: SamplingWindow, nbins: int) -> Tuple[Histogram, Histogram]:
    """True and smeared spectra over the sampling window."""
    return (new_histogram(TRUE_SPECTRUM, window.limit, window.Q, nbins),
            new_histogram(SMEARED_SPECTRUM, window.limit, window.Q, nbins))


def apply_smear_policy(values: np.ndarray, lower: float, upper: float,
                       policy: str = "fill") -> np.ndarray:
    """Prepare smeared values for filling according to the policy."""
    values = np.asarray(values, dtype=np.float64)
    if policy == "fill":
        return values
    if policy == "window":
        return values[(values >= lower) & (values <= upper)]
    if policy == "clamp":
        return np.clip(values, lower, upper)
    raise ConfigurationError(f"smear_policy must be one of {SMEAR_POLICIES}, got {policy!r}")


def fill_spectra(true_hist: Histogram,
                 smeared_hist: Histogram,
                 samples: np.ndarray,
                 rng: np.random.Generator,
                 resolution: float,
                 policy: str = "fill") -> None:
    """
    Fill both spectra from one batch of accepted samples.

    Each sample goes to true_hist as is and, after an independent Gaussian
    smear, to smeared_hist.
    """
    true_hist.fill_many(samples)
    smeared = smear_energy(rng, samples, resolution)
    smeared_hist.fill_many(apply_smear_policy(smeared, smeared_hist.lower, smeared_hist.upper, policy))


def merge_histograms(parts: Iterable[Histogram]) -> Histogram:
    """Bin-wise sum of partial histograms (e.g. from parallel workers)."""
    parts = list(parts)
    if not parts:
        raise ValueError("Nothing to merge")
    return reduce(lambda a, b: a.merge(b), parts[1:], parts[0].copy())
