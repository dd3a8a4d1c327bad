"""
NuMass workflows module.

Workflow functions for coordinating low-level operations.
Workflows take a SimulationRun and return an updated copy.
"""

from .run_construction import (
    load_config,
    create_run_from_config,
)
from .generation import (
    generate_spectra,
    generate_spectra_in_run,
    store_spectra_in_run,
)
from .analysis import (
    load_spectra_in_run,
    fit_spectra_in_run,
    summarize_fits_in_run,
    plot_spectra_in_run,
    plot_fits_in_run,
)

__all__ = [
    'load_config',
    'create_run_from_config',
    'generate_spectra',
    'generate_spectra_in_run',
    'store_spectra_in_run',
    'load_spectra_in_run',
    'fit_spectra_in_run',
    'summarize_fits_in_run',
    'plot_spectra_in_run',
    'plot_fits_in_run',
]
