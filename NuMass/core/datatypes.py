from __future__ import annotations
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Optional

import numpy as np
from scipy import stats  # type: ignore[import]

from .config import ConfigurationError, PhysicalParameters, SamplingConfig, FitConfig

# -------------------------------#
# Binned energy spectra        --#
# -------------------------------#

@dataclass
class Histogram:
    """
    Fixed-width 1D histogram over [lower, upper].

    Values outside the range are not bin content: they only increment the
    underflow/overflow counters. The upper edge belongs to the last bin.
    Filling is the only mutation.
    """
    name: str
    lower: float
    upper: float
    counts: np.ndarray
    title: str = ""
    underflow: float = 0.0
    overflow: float = 0.0

    def __post_init__(self):
        self.counts = np.asarray(self.counts, dtype=np.float64)
        if self.counts.ndim != 1 or len(self.counts) == 0:
            raise ConfigurationError(f"Histogram '{self.name}' needs a non-empty 1D counts array")
        if not self.lower < self.upper:
            raise ConfigurationError(f"Histogram '{self.name}' range inverted: [{self.lower}, {self.upper}]")

    def __len__(self):
        return len(self.counts)

    @property
    def nbins(self) -> int:
        return len(self.counts)

    @property
    def bin_width(self) -> float:
        return (self.upper - self.lower) / self.nbins

    @property
    def edges(self) -> np.ndarray:
        return np.linspace(self.lower, self.upper, self.nbins + 1)

    @property
    def centers(self) -> np.ndarray:
        edges = self.edges
        return 0.5 * (edges[1:] + edges[:-1])

    @property
    def entries(self) -> float:
        """Everything filled, in range or not."""
        return float(self.counts.sum() + self.underflow + self.overflow)

    def integral(self, x_min: Optional[float] = None, x_max: Optional[float] = None) -> float:
        """Sum of bins whose centre lies in [x_min, x_max]."""
        if x_min is None and x_max is None:
            return float(self.counts.sum())
        c = self.centers
        lo = self.lower if x_min is None else x_min
        hi = self.upper if x_max is None else x_max
        return float(self.counts[(c >= lo) & (c <= hi)].sum())

    def find_bins(self, values) -> np.ndarray:
        """Bin index per value: -1 for underflow, nbins for overflow."""
        v = np.asarray(values, dtype=np.float64)
        idx = np.clip(np.floor((v - self.lower) / self.bin_width), -1, self.nbins).astype(np.int64)
        # rounding at the upper edge must not push in-range values to overflow
        idx = np.where((v <= self.upper) & (idx >= self.nbins), self.nbins - 1, idx)
        idx = np.where(v < self.lower, -1, idx)
        return np.where(v > self.upper, self.nbins, idx)

    def fill(self, value: float, weight: float = 1.0) -> None:
        """Increment the bin containing value."""
        if not np.isfinite(value):
            return
        i = int(self.find_bins(value))
        if i < 0:
            self.underflow += weight
        elif i >= self.nbins:
            self.overflow += weight
        else:
            self.counts[i] += weight

    def fill_many(self, values, weight: float = 1.0) -> None:
        """Vectorized fill with the same binning rule as fill()."""
        v = np.asarray(values, dtype=np.float64).ravel()
        v = v[np.isfinite(v)]
        if v.size == 0:
            return
        idx = self.find_bins(v)
        inside = (idx >= 0) & (idx < self.nbins)
        self.counts += weight * np.bincount(idx[inside], minlength=self.nbins)
        self.underflow += weight * float(np.count_nonzero(idx < 0))
        self.overflow += weight * float(np.count_nonzero(idx >= self.nbins))

    def same_binning(self, other: "Histogram") -> bool:
        return (self.nbins == other.nbins
                and np.isclose(self.lower, other.lower)
                and np.isclose(self.upper, other.upper))

    def merge(self, other: "Histogram") -> "Histogram":
        """Bin-wise sum of two histograms with identical binning."""
        if not self.same_binning(other):
            raise ValueError(f"Cannot merge '{self.name}' and '{other.name}': binning differs")
        return replace(self,
                       counts=self.counts + other.counts,
                       underflow=self.underflow + other.underflow,
                       overflow=self.overflow + other.overflow)

    def copy(self) -> "Histogram":
        return replace(self, counts=self.counts.copy())

    def __repr__(self) -> str:
        return (f"Histogram(name={self.name}, nbins={self.nbins}, "
                f"range=[{self.lower:.3f}, {self.upper:.3f}], integral={self.integral():.6g})")


# -------------------------------
# Generation bookkeeping
# -------------------------------

@dataclass(frozen=True)
class SamplingStall:
    """Diagnostic of a rejection loop that hit its attempt cap."""
    envelope_h: float
    limit: float
    Q: float
    envelope_height: float            # M = h·N(Q/2)
    max_density_estimate: float       # max of N over the window
    attempts: int
    n_accepted: int = 0

    def __str__(self) -> str:
        return (f"no acceptance in {self.attempts} candidates "
                f"(h={self.envelope_h:g}, window=({self.limit:g}, {self.Q:g}) eV, "
                f"M={self.envelope_height:.4e}, max N={self.max_density_estimate:.4e}, "
                f"accepted so far={self.n_accepted})")


@dataclass(frozen=True)
class GenerationSummary:
    n_events: int                     # accepted
    n_candidates: int                 # drawn
    seed: int
    envelope_ratio: Optional[float] = None   # max N / M; > 1 means truncation
    stall: Optional[SamplingStall] = None

    @property
    def success(self) -> bool:
        return self.stall is None

    @property
    def efficiency(self) -> float:
        return self.n_events / self.n_candidates if self.n_candidates else 0.0


# -------------------------------
# Fit results
# -------------------------------

@dataclass(frozen=True)
class FitResult:
    name: str
    m_nu: float
    scale: float
    chisqr: float
    ndof: int
    n_bins: int
    fit_window: tuple[float, float]
    m_nu_err: Optional[float] = None
    scale_err: Optional[float] = None
    fixed: tuple[str, ...] = ()
    success: bool = False
    message: str = ""
    model_result: Any = field(default=None, repr=False, compare=False)

    @property
    def redchi(self) -> float:
        return self.chisqr / self.ndof if self.ndof > 0 else float("nan")

    @property
    def p_value(self) -> float:
        if self.ndof <= 0 or not np.isfinite(self.chisqr):
            return float("nan")
        return float(stats.chi2.sf(self.chisqr, self.ndof))

    def to_dict(self) -> dict:
        """JSON-friendly view (no lmfit objects)."""
        return {
            "name": self.name,
            "m_nu": float(self.m_nu),
            "m_nu_err": float(self.m_nu_err) if self.m_nu_err is not None else None,
            "scale": float(self.scale),
            "scale_err": float(self.scale_err) if self.scale_err is not None else None,
            "chisqr": float(self.chisqr),
            "ndof": int(self.ndof),
            "redchi": float(self.redchi),
            "p_value": self.p_value,
            "n_bins": int(self.n_bins),
            "fit_min": float(self.fit_window[0]),
            "fit_max": float(self.fit_window[1]),
            "fixed": list(self.fixed),
            "success": bool(self.success),
            "message": self.message,
        }

    def __str__(self) -> str:
        err = f" ± {self.m_nu_err:.4f}" if self.m_nu_err is not None else ""
        status = "ok" if self.success else f"FAILED: {self.message}"
        return (f"{self.name}: m_nu = {self.m_nu:.4f}{err} eV, "
                f"ChiSq = {self.chisqr:.2f} / {self.ndof} [{status}]")


# -------------------------------
# Runs
# -------------------------------

@dataclass(frozen=True)
class SimulationRun:
    """
    One generate/analyze run. Workflows take a run and return an updated
    copy; the histograms travel between the two halves through the container
    at output_dir/basename.npz.
    """
    run_id: str
    output_dir: Path
    basename: str
    physics: PhysicalParameters = field(default_factory=PhysicalParameters)
    sampling: SamplingConfig = field(default_factory=SamplingConfig)
    fit: FitConfig = field(default_factory=FitConfig)
    description: str = ""

    # Results
    spectra: Dict[str, Histogram] = field(default_factory=dict)
    generation: Optional[GenerationSummary] = None
    fit_results: Dict[str, FitResult] = field(default_factory=dict)

    @property
    def container(self) -> Path:
        return Path(self.output_dir) / self.basename

    def __str__(self):
        return (f"SimulationRun(run_id={self.run_id}, container={self.container}.npz, "
                f"spectra={list(self.spectra)}, fits={list(self.fit_results)})")
