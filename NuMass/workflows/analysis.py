"""
Spectrum analysis workflows.

This module provides the analysis half of a run:
1. load_spectra_in_run: Read E_e / E_e_sm back from the container
2. fit_spectra_in_run: Fit the spectrum model to each histogram
3. summarize_fits_in_run: Print results, store JSON and CSV summaries
4. plot_spectra_in_run / plot_fits_in_run: QC figures

The analysis only depends on the container written by the generation step,
so both halves can run in separate invocations.
"""

from dataclasses import replace
from pathlib import Path
from typing import Optional
import pandas as pd

from NuMass.core.datatypes import SimulationRun
from NuMass.core.dataIO import load_spectra, load_spectra_metadata, store_fit_results, save_figure
from NuMass.spectrum.spectrum_fitting import fit_spectra
from NuMass.spectrum.spectrum_plotting import plot_generated_spectra, plot_spectrum_fit


# ============================================================================
# HELPER FUNCTIONS
# ============================================================================

def _setup_output_directories(run: SimulationRun) -> tuple[Path, Path]:
    """Plot and fit-result directories under the run's output directory."""
    plots_dir = Path(run.output_dir) / "plots"
    plots_dir.mkdir(parents=True, exist_ok=True)

    data_dir = Path(run.output_dir) / "fits"
    data_dir.mkdir(parents=True, exist_ok=True)

    return plots_dir, data_dir


def fits_to_dataframe(run: SimulationRun) -> pd.DataFrame:
    """One row per fitted histogram."""
    rows = [res.to_dict() for res in run.fit_results.values()]
    df = pd.DataFrame(rows)
    if len(df):
        df.insert(0, 'run_id', run.run_id)
        df['fixed'] = df['fixed'].apply(lambda f: ",".join(f))
    return df


# ============================================================================
# WORKFLOW STEP 1: LOAD
# ============================================================================

def load_spectra_in_run(run: SimulationRun) -> SimulationRun:
    """
    Load the histograms to analyze from the run's container.

    Raises:
        PersistenceError: container missing or a requested histogram absent
    """
    print("\n[2/2] Analyzing beta spectra...")
    spectra = load_spectra(run.container, names=run.fit.histograms)
    meta = load_spectra_metadata(run.container)

    print(f"  ✓ Loaded {', '.join(spectra)} from {run.container}.npz")
    if 'seed' in meta:
        print(f"    generated with seed {meta['seed']}, m_nu = {meta.get('m_nu')} eV")

    return replace(run, spectra=spectra)


# ============================================================================
# WORKFLOW STEP 2: FIT
# ============================================================================

def fit_spectra_in_run(run: SimulationRun) -> SimulationRun:
    """
    Fit every requested histogram of the run.

    Failed fits are kept in run.fit_results with success=False.

    Returns:
        Run with .fit_results = {name: FitResult}
    """
    if not run.spectra:
        raise RuntimeError("Run has no spectra - run load_spectra_in_run first")

    fit_min, fit_max = run.fit.window(run.physics.Q)
    print(f"  • Fit window [{fit_min:.3f}, {fit_max:.3f}] eV, "
          f"m_nu {'fixed' if run.fit.fix_m_nu else 'free'} (init {run.fit.m_nu_init} eV)")

    names = [n for n in run.fit.histograms if n in run.spectra]
    results = fit_spectra(run.spectra, run.physics, run.fit, names=names)

    for res in results.values():
        marker = "✓" if res.success else "⚠"
        print(f"  {marker} {res}")

    return replace(run, fit_results=results)


# ============================================================================
# WORKFLOW STEP 3: SUMMARY
# ============================================================================

def summarize_fits_in_run(run: SimulationRun) -> SimulationRun:
    """
    Store fit results (JSON with run metadata, CSV table) and print a summary.

    Side Effects:
        Creates: <output_dir>/fits/<basename>_fits.json
                 <output_dir>/fits/<basename>_fits.csv
    """
    print("\n" + "="*60)
    print("FIT SUMMARY")
    print("="*60)

    if not run.fit_results:
        print("  ⚠ No fit results to summarize")
        return run

    _, data_dir = _setup_output_directories(run)

    json_file = store_fit_results(run.fit_results, data_dir / f"{run.basename}_fits.json",
                                  metadata={'run_id': run.run_id,
                                            'container': str(run.container) + ".npz",
                                            'Q': run.physics.Q,
                                            'm_nu_true': run.physics.m_nu})
    print(f"  💾 Saved fit results to {json_file.name}")

    df = fits_to_dataframe(run)
    csv_file = data_dir / f"{run.basename}_fits.csv"
    df.to_csv(csv_file, index=False, float_format='%.6g')
    print(f"  💾 Saved summary to {csv_file.name}")

    print(f"\n  Summary (true m_nu = {run.physics.m_nu} eV):")
    for res in run.fit_results.values():
        err = f" ± {res.m_nu_err:.4f}" if res.m_nu_err is not None else ""
        print(f"    • {res.name}: m_nu = {res.m_nu:.4f}{err} eV, "
              f"χ²/ndof = {res.chisqr:.2f}/{res.ndof}, p = {res.p_value:.3f}"
              + ("" if res.success else f"  [FAILED: {res.message}]"))

    return run


# ============================================================================
# WORKFLOW STEP 4: PLOTS
# ============================================================================

def plot_spectra_in_run(run: SimulationRun, log: bool = False) -> SimulationRun:
    """Overlay of the run's spectra."""
    if not run.spectra:
        print("  ⚠ No spectra to plot")
        return run

    plots_dir, _ = _setup_output_directories(run)
    fig, _ = plot_generated_spectra(run.spectra, Q=run.physics.Q, log=log)
    save_figure(fig, plots_dir / f"{run.basename}_spectra.png")
    return run


def plot_fits_in_run(run: SimulationRun, names: Optional[list[str]] = None) -> SimulationRun:
    """One fit figure per fitted histogram."""
    if not run.fit_results:
        print("  ⚠ No fits to plot")
        return run

    plots_dir, _ = _setup_output_directories(run)
    for name in names or list(run.fit_results):
        fig, _ = plot_spectrum_fit(run.spectra[name], run.fit_results[name], run.physics)
        save_figure(fig, plots_dir / f"{run.basename}_{name}_fit.png")
    return run
