"""
Fit of the beta spectrum model to binned energy spectra.

The model for bin i is C · N(x_i; m_ν) · Δx evaluated at the bin centre,
with two parameters:
    m_nu : neutrino mass [eV], fixed or bounded
    C    : overall scale, free unless fixed

Fits run on bins whose centre lies in the fit window and that are not
empty, with weights 1/sqrt(n) (chi-square fit of a histogram). Parameter
errors come from the curvature of χ² without rescaling by χ²/ndof.

Numerical failure never raises: it is reported through FitResult.success
and FitResult.message.

Data flow:
    container → Histogram → fit_spectrum → FitResult
"""

from dataclasses import replace
from typing import Dict, Iterable, Optional, Tuple
import numpy as np
import lmfit
from lmfit.model import ModelResult

from NuMass.core.config import FitConfig, PhysicalParameters
from NuMass.core.datatypes import FitResult, Histogram
from NuMass.spectrum.beta_spectrum import decay_density


# ============================================================================
# MODEL
# ============================================================================

def make_spectrum_model(physics: PhysicalParameters, bin_width: float) -> lmfit.Model:
    """lmfit model of expected counts per bin, with parameters m_nu and C."""

    def beta_spectrum(x, m_nu, C):
        return decay_density(x, m_nu, C, physics) * bin_width

    return lmfit.Model(beta_spectrum)


def make_fit_params(model: lmfit.Model, config: FitConfig, scale_init: float) -> lmfit.Parameters:
    """Initial values and constraints from the fit configuration."""
    params = model.make_params()

    if config.fix_m_nu:
        params['m_nu'].set(value=config.m_nu_init, vary=False)
    else:
        m_min, m_max = config.m_nu_bounds
        params['m_nu'].set(value=config.m_nu_init, min=m_min, max=m_max, vary=True)

    # C is left unbounded: a bound transform loses precision for C ≪ 1
    params['C'].set(value=scale_init, vary=not config.fix_scale)
    return params


# ============================================================================
# FITTING HELPERS
# ============================================================================

def select_fit_bins(hist: Histogram, fit_window: Tuple[float, float]) -> Tuple[np.ndarray, np.ndarray]:
    """Non-empty bins with centre in [fit_min, fit_max]. Returns (x, y)."""
    fit_min, fit_max = fit_window
    x = hist.centers
    y = hist.counts
    mask = (x >= fit_min) & (x <= fit_max) & (y > 0)
    return x[mask], y[mask].astype(float)


def estimate_scale(x: np.ndarray, y: np.ndarray, physics: PhysicalParameters,
                   m_nu: float, bin_width: float) -> Optional[float]:
    """C such that the model has the same total as the data in the window."""
    shape = decay_density(x, m_nu, 1.0, physics) * bin_width
    total = shape.sum()
    if not total > 0:
        return None
    return float(y.sum() / total)


def _failed(name: str, config: FitConfig, fit_window: Tuple[float, float],
            n_bins: int, message: str, scale: float = float("nan"),
            model_result: Optional[ModelResult] = None) -> FitResult:
    return FitResult(name=name,
                     m_nu=config.m_nu_init,
                     scale=scale,
                     chisqr=float("nan"),
                     ndof=0,
                     n_bins=n_bins,
                     fit_window=fit_window,
                     fixed=_fixed_names(config),
                     success=False,
                     message=message,
                     model_result=model_result)


def _fixed_names(config: FitConfig) -> tuple[str, ...]:
    return tuple(n for n, fixed in (("m_nu", config.fix_m_nu), ("C", config.fix_scale)) if fixed)


def _bound_span(param: lmfit.Parameter) -> float:
    span = param.max - param.min
    return float(span) if np.isfinite(span) else 1.0


def _at_bound(param: lmfit.Parameter) -> Optional[float]:
    """
    Bound value the parameter sits on, if any.

    The bound transform of the minimizer leaves a pinned parameter close to,
    not exactly on, its bound: anything within 0.1% of the allowed range counts.
    """
    tol = max(1e-3 * _bound_span(param), 1e-9)
    for bound in (param.min, param.max):
        if np.isfinite(bound) and abs(param.value - bound) <= tol:
            return float(bound)
    return None


# ============================================================================
# FIT
# ============================================================================

def fit_spectrum(hist: Histogram,
                 physics: PhysicalParameters,
                 config: FitConfig = FitConfig()) -> FitResult:
    """
    Fit the spectrum model to one histogram.

    Args:
        hist: Binned spectrum (not modified)
        physics: Decay constants; physics.m_nu is ignored, m_nu is a fit parameter
        config: Window, initial values and constraints

    Returns:
        FitResult. success=False with a message when there are too few usable
        bins, the minimizer does not converge, errors cannot be estimated,
        m_nu ends on a bound or its uncertainty is wider than its bounds.

    Example:
        >>> result = fit_spectrum(load_spectrum("b_decay_histo", "E_e"), PhysicalParameters())
        >>> print(result)
    """
    fit_window = config.window(physics.Q)
    x, y = select_fit_bins(hist, fit_window)
    n_free = int(not config.fix_m_nu) + int(not config.fix_scale)

    if len(x) <= n_free:
        return _failed(hist.name, config, fit_window, len(x),
                       f"only {len(x)} non-empty bins in [{fit_window[0]:.3f}, {fit_window[1]:.3f}] eV "
                       f"for {n_free} free parameters")

    scale_init = config.scale_init
    if scale_init is None:
        scale_init = estimate_scale(x, y, physics, config.m_nu_init, hist.bin_width)
    if scale_init is None or not np.isfinite(scale_init):
        return _failed(hist.name, config, fit_window, len(x),
                       f"model vanishes in the fit window for m_nu={config.m_nu_init}")

    model = make_spectrum_model(physics, hist.bin_width)
    params = make_fit_params(model, config, scale_init)

    try:
        result = model.fit(y, params, x=x, weights=1.0 / np.sqrt(y),
                           method=config.method, scale_covar=False, nan_policy='raise')
    except (ValueError, TypeError, RuntimeError, ArithmeticError) as e:
        return _failed(hist.name, config, fit_window, len(x), f"minimizer error: {e}", scale=scale_init)

    m_nu = result.params['m_nu']
    C = result.params['C']

    success = bool(result.success)
    message = str(result.message)
    if success and not result.errorbars:
        success, message = False, "parameter uncertainties could not be estimated"
    if success and m_nu.vary:
        bound = _at_bound(m_nu)
        if bound is not None:
            success, message = False, f"m_nu at bound {bound} eV"
        elif m_nu.stderr is not None and m_nu.stderr > _bound_span(m_nu):
            success, message = False, (f"m_nu uncertainty {m_nu.stderr:.3g} eV exceeds the allowed "
                                       f"range {m_nu.min}..{m_nu.max} eV")

    return FitResult(name=hist.name,
                     m_nu=float(m_nu.value),
                     scale=float(C.value),
                     chisqr=float(result.chisqr),
                     ndof=int(result.nfree),
                     n_bins=len(x),
                     fit_window=fit_window,
                     m_nu_err=float(m_nu.stderr) if m_nu.vary and m_nu.stderr is not None else None,
                     scale_err=float(C.stderr) if C.vary and C.stderr is not None else None,
                     fixed=_fixed_names(config),
                     success=success,
                     message=message,
                     model_result=result)


def fit_spectra(spectra: Dict[str, Histogram],
                physics: PhysicalParameters,
                config: FitConfig = FitConfig(),
                names: Optional[Iterable[str]] = None) -> Dict[str, FitResult]:
    """Fit each histogram independently."""
    names = list(spectra) if names is None else list(names)
    return {name: fit_spectrum(spectra[name], physics, config) for name in names}


# ============================================================================
# SYNTHETIC SPECTRA
# ============================================================================

def expected_spectrum(physics: PhysicalParameters,
                      name: str,
                      lower: float,
                      upper: float,
                      nbins: int,
                      n_events: float,
                      m_nu: Optional[float] = None) -> Histogram:
    """
    Noise-free spectrum: bin-centre density, normalized to n_events in range.

    Uses the same bin-centre evaluation as the fit model, so a fit to it
    returns the generating parameters.
    """
    m_nu = physics.m_nu if m_nu is None else m_nu
    edges = np.linspace(lower, upper, nbins + 1)
    centers = 0.5 * (edges[1:] + edges[:-1])
    shape = decay_density(centers, m_nu, 1.0, physics)
    counts = n_events * shape / shape.sum()
    return Histogram(name=name, lower=lower, upper=upper, counts=counts,
                     title=f";E_{{e}} [eV];Expected (m_nu={m_nu:g} eV)")


def poisson_fluctuate(hist: Histogram, rng: np.random.Generator) -> Histogram:
    """Independent Poisson draw per bin around the histogram contents."""
    return replace(hist, counts=rng.poisson(hist.counts).astype(np.float64))
