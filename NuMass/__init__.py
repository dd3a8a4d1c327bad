"""
NuMass: toy Monte Carlo generator and fitter for beta-decay energy spectra.

Subpackages:
- core: Configuration, data types, units, I/O and composition helpers
- spectrum: Physics model, sampler, histogramming, fitting and plotting
- workflows: Single-purpose steps acting on a SimulationRun
- pipelines: Generation and analysis compositions
"""

__version__ = "0.1.0"
