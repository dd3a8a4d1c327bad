"""
Beta spectrum visualization functions.

This module provides plotting utilities for:
1. Generated spectra (true and smeared) over the sampling window
2. Spectrum fits with residuals in the fit window

All functions return matplotlib figure/axis objects for further customization.
"""

from typing import Dict, Optional, Tuple
import numpy as np
import matplotlib.pyplot as plt

from NuMass.core.config import PhysicalParameters
from NuMass.core.datatypes import FitResult, Histogram
from NuMass.spectrum.beta_spectrum import decay_density


# ============================================================================
# PLOTTING HELPERS
# ============================================================================

def draw_histogram(ax, hist: Histogram, color='black', label=None, **kwargs):
    """Step plot of the bin contents."""
    ax.stairs(hist.counts, hist.edges, color=color, label=label or hist.name, **kwargs)


def mark_endpoint(ax, Q: float, color='gray'):
    """Vertical line at the spectrum endpoint."""
    ax.axvline(Q, color=color, linestyle='--', linewidth=1, alpha=0.7)
    ax.text(Q, ax.get_ylim()[1] * 0.95, 'Q', rotation=90, ha='right', va='top',
            fontsize=10, color=color)


def _axis_labels(hist: Histogram) -> Tuple[str, str]:
    """x/y labels from a ';x;y' style title, with defaults."""
    parts = hist.title.split(';') if hist.title else []
    xlabel = parts[1] if len(parts) > 1 and parts[1] else r'$E_e$ [eV]'
    ylabel = parts[2] if len(parts) > 2 and parts[2] else 'Counts / bin'
    return xlabel.replace('E_{e}', r'$E_e$'), ylabel


# ============================================================================
# SPECTRA
# ============================================================================

def plot_generated_spectra(spectra: Dict[str, Histogram],
                           Q: Optional[float] = None,
                           figsize: Tuple[float, float] = (10, 6),
                           log: bool = False):
    """
    Overlay all generated spectra.

    Args:
        spectra: name → histogram, typically E_e and E_e_sm
        Q: Endpoint to mark (optional)
        figsize: Figure size
        log: Log y axis

    Returns:
        (fig, ax)
    """
    fig, ax = plt.subplots(figsize=figsize)
    colors = plt.rcParams['axes.prop_cycle'].by_key()['color']

    for i, (name, hist) in enumerate(spectra.items()):
        draw_histogram(ax, hist, color=colors[i % len(colors)],
                       label=f'{name} ({hist.integral():.0f} entries)', linewidth=1.5)

    if spectra:
        xlabel, ylabel = _axis_labels(next(iter(spectra.values())))
        ax.set_xlabel(xlabel, fontsize=12)
        ax.set_ylabel(ylabel, fontsize=12)
    if log:
        ax.set_yscale('log')
    if Q is not None:
        mark_endpoint(ax, Q)

    ax.set_title('Generated beta spectra', fontsize=13)
    ax.legend(fontsize=10)
    ax.grid(True, alpha=0.3)
    fig.tight_layout()
    return fig, ax


# ============================================================================
# FITS
# ============================================================================

def plot_spectrum_fit(hist: Histogram,
                      result: FitResult,
                      physics: PhysicalParameters,
                      figsize: Tuple[float, float] = (10, 7),
                      n_points: int = 400):
    """
    Histogram with the fitted model and normalized residuals.

    The model curve is evaluated on a fine grid (as counts per bin width);
    residuals (data - model)/sqrt(data) are shown for the bins used by the fit.

    Returns:
        (fig, (ax_main, ax_resid))
    """
    fig, (ax, ax_res) = plt.subplots(2, 1, figsize=figsize, sharex=True,
                                     gridspec_kw={'height_ratios': [3, 1]})

    draw_histogram(ax, hist, color='black', label=f'{hist.name} data', linewidth=1.2)

    fit_min, fit_max = result.fit_window
    ax.axvspan(fit_min, fit_max, color='C0', alpha=0.08, label='Fit window')

    if np.isfinite(result.scale):
        E_fine = np.linspace(max(fit_min, hist.lower), min(fit_max, hist.upper), n_points)
        model = decay_density(E_fine, result.m_nu, result.scale, physics) * hist.bin_width
        err = f' ± {result.m_nu_err:.3f}' if result.m_nu_err is not None else ''
        ax.plot(E_fine, model, color='red', linewidth=2,
                label=f'Fit: $m_\\nu$ = {result.m_nu:.3f}{err} eV')

        x = hist.centers
        y = hist.counts
        used = (x >= fit_min) & (x <= fit_max) & (y > 0)
        expected = decay_density(x[used], result.m_nu, result.scale, physics) * hist.bin_width
        ax_res.errorbar(x[used], (y[used] - expected) / np.sqrt(y[used]), yerr=1.0,
                        fmt='o', color='black', markersize=3, capsize=0)

    ax_res.axhline(0, color='red', linewidth=1)
    ax_res.set_ylabel('(data-fit)/σ', fontsize=11)

    xlabel, ylabel = _axis_labels(hist)
    ax_res.set_xlabel(xlabel, fontsize=12)
    ax.set_ylabel(ylabel, fontsize=12)

    status = '' if result.success else f'  [FAILED: {result.message}]'
    ax.set_title(f'{hist.name}: χ²/ndof = {result.chisqr:.1f}/{result.ndof}{status}', fontsize=12)
    ax.legend(fontsize=10)
    ax.grid(True, alpha=0.3)
    ax_res.grid(True, alpha=0.3)

    fig.tight_layout()
    return fig, (ax, ax_res)
