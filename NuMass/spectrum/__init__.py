"""
Beta spectrum package.

Modules:
- beta_spectrum: Fermi function and decay rate density
- sampling: Acceptance-rejection generator and detector smearing
- histogramming: True and smeared energy histograms
- spectrum_fitting: lmfit model of the spectrum and histogram fits
- spectrum_plotting: Visualization of generated spectra and fits
"""

# Physics model
from NuMass.spectrum.beta_spectrum import (
    fermi_factor,
    decay_density,
    density_maximum,
)

# Generation
from NuMass.spectrum.sampling import (
    SamplingStallError,
    make_rng,
    envelope_height,
    check_envelope,
    sample_energy,
    sample_energies,
    smear_energy,
)
from NuMass.spectrum.histogramming import (
    new_histogram,
    new_spectra,
    accumulate,
    apply_smear_policy,
    fill_spectra,
    merge_histograms,
)

# Fitting
from NuMass.spectrum.spectrum_fitting import (
    make_spectrum_model,
    fit_spectrum,
    fit_spectra,
    expected_spectrum,
    poisson_fluctuate,
)

# Visualization functions
from NuMass.spectrum.spectrum_plotting import (
    plot_generated_spectra,
    plot_spectrum_fit,
)

__all__ = [
    'fermi_factor', 'decay_density', 'density_maximum',
    'SamplingStallError', 'make_rng', 'envelope_height', 'check_envelope',
    'sample_energy', 'sample_energies', 'smear_energy',
    'new_histogram', 'new_spectra', 'accumulate', 'apply_smear_policy',
    'fill_spectra', 'merge_histograms',
    'make_spectrum_model', 'fit_spectrum', 'fit_spectra', 'expected_spectrum', 'poisson_fluctuate',
    'plot_generated_spectra', 'plot_spectrum_fit',
]
