"""
Beta spectrum simulation pipelines.

Two halves, decoupled through the spectrum container:
1. generation_pipeline: sample → fill E_e / E_e_sm → store <basename>.npz
2. analysis_pipeline: load → fit each histogram → summarize (→ plot)

Structure mirrors the other pipelines:
- Declarative composition using functools.partial
- No iteration logic (handled by workflow functions)
- Single-purpose, composable stages
"""

from functools import partial
from dataclasses import replace
from typing import Optional

from NuMass.core.datatypes import SimulationRun
from NuMass.core.config import FitConfig, SamplingConfig
from NuMass.core.functional import pipe_run, with_persistence
from NuMass.workflows.generation import generate_spectra_in_run, store_spectra_in_run
from NuMass.workflows.analysis import (
    load_spectra_in_run,
    fit_spectra_in_run,
    summarize_fits_in_run,
    plot_spectra_in_run,
    plot_fits_in_run,
)


# ============================================================================
# FUNCTIONAL PIPELINE COMPOSITION
# ============================================================================

def generation_pipeline(run: SimulationRun,
                        sampling: Optional[SamplingConfig] = None,
                        verbose: bool = True,
                        plot: bool = False) -> SimulationRun:
    """
    Generate and store the true and smeared spectra of a run.

    Pipeline stages:
    1. generate_spectra_in_run: rejection sampling + histogram filling
    2. store_spectra_in_run: write <output_dir>/<basename>.npz
    3. plot_spectra_in_run (optional): overlay of both spectra

    Args:
        run: SimulationRun with physics and output location
        sampling: Overrides run.sampling when given
        verbose: Progress output during sampling
        plot: Also save the spectra overlay

    Returns:
        Run with .spectra and .generation

    Example:
        >>> run = SimulationRun(run_id="tritium", output_dir=Path("out"), basename="b_decay_histo")
        >>> run = generation_pipeline(run, SamplingConfig(n_events=100_000, seed=1))
    """
    print("\n" + "="*60)
    print(f"BETA SPECTRUM GENERATION: {run.run_id}")
    print("="*60)

    if sampling is not None:
        run = replace(run, sampling=sampling)

    steps = [
        with_persistence(partial(generate_spectra_in_run, verbose=verbose),
                         store_spectra_in_run),
    ]
    if plot:
        steps.append(plot_spectra_in_run)

    return pipe_run(run, *steps)


def analysis_pipeline(run: SimulationRun,
                      fit: Optional[FitConfig] = None,
                      plot: bool = False) -> SimulationRun:
    """
    Fit the stored spectra of a run.

    Prerequisites:
    - <output_dir>/<basename>.npz written by generation_pipeline

    Pipeline stages:
    1. load_spectra_in_run: histograms named in fit.histograms
    2. fit_spectra_in_run: independent fit per histogram
    3. summarize_fits_in_run: JSON + CSV + printed summary
    4. plot_fits_in_run (optional)

    Returns:
        Run with .fit_results
    """
    print("\n" + "="*60)
    print(f"BETA SPECTRUM ANALYSIS: {run.run_id}")
    print("="*60)

    if fit is not None:
        run = replace(run, fit=fit)

    steps = [
        load_spectra_in_run,
        fit_spectra_in_run,
        summarize_fits_in_run,
    ]
    if plot:
        steps.append(plot_fits_in_run)

    return pipe_run(run, *steps)


def simulation_pipeline(run: SimulationRun, plot: bool = False) -> SimulationRun:
    """Generate, store, reload and fit in one go."""
    run = generation_pipeline(run, plot=plot)
    if run.generation is not None and not run.generation.success:
        print("  ⚠ Skipping analysis: generation stalled")
        return run
    return analysis_pipeline(run, plot=plot)
