"""
Construction of SimulationRun objects from YAML configuration.

YAML sections map field by field onto the frozen config dataclasses:
    physics  → PhysicalParameters
    sampling → SamplingConfig
    fit      → FitConfig
    output   → SimulationRun.output_dir / basename
Unknown keys are rejected so typos do not silently fall back to defaults.
"""

from dataclasses import fields, replace
from pathlib import Path
from typing import Optional
import yaml

from NuMass.core.config import ConfigurationError, FitConfig, PhysicalParameters, SamplingConfig
from NuMass.core.datatypes import SimulationRun

DEFAULT_BASENAME = "b_decay_histo"


def load_config(config_path: Path) -> dict:
    """Load YAML configuration file."""
    with open(config_path, 'r') as f:
        return yaml.safe_load(f) or {}


def _section(config: dict, name: str, cls) -> dict:
    section = config.get(name) or {}
    allowed = {f.name for f in fields(cls)}
    unknown = set(section) - allowed
    if unknown:
        raise ConfigurationError(f"Unknown keys in '{name}' section: {sorted(unknown)}")
    return dict(section)


def physics_from_config(config: dict) -> PhysicalParameters:
    """PhysicalParameters; q_source='mass_difference' derives Q from m_1 - m_2."""
    section = _section(config, 'physics', PhysicalParameters)
    if section.get('q_source') == 'mass_difference':
        if 'Q' in section:
            raise ConfigurationError("Give either Q or q_source='mass_difference', not both")
        section.pop('q_source')
        base = PhysicalParameters()
        return PhysicalParameters.from_mass_difference(Z_1=section.pop('Z_1', base.Z_1),
                                                       m_1=section.pop('m_1', base.m_1),
                                                       Z_2=section.pop('Z_2', base.Z_2),
                                                       m_2=section.pop('m_2', base.m_2),
                                                       charge=section.pop('charge', base.charge),
                                                       **section)
    return PhysicalParameters(**section)


def sampling_from_config(config: dict) -> SamplingConfig:
    return SamplingConfig(**_section(config, 'sampling', SamplingConfig))


def fit_from_config(config: dict) -> FitConfig:
    section = _section(config, 'fit', FitConfig)
    if 'm_nu_bounds' in section:
        section['m_nu_bounds'] = tuple(section['m_nu_bounds'])
    if 'histograms' in section:
        section['histograms'] = tuple(section['histograms'])
    return FitConfig(**section)


def create_run_from_config(config: dict,
                           seed: Optional[int] = None,
                           basename: Optional[str] = None) -> SimulationRun:
    """
    Create a SimulationRun from a configuration dictionary.

    Args:
        config: Parsed YAML
        seed: Overrides sampling.seed
        basename: Overrides output.basename

    Raises:
        ConfigurationError: invalid or unknown configuration values
    """
    output = config.get('output') or {}
    sampling = sampling_from_config(config)
    if seed is not None:
        sampling = replace(sampling, seed=seed)

    return SimulationRun(run_id=str(config.get('run_id', 'beta_decay')),
                         output_dir=Path(output.get('output_dir', '.')),
                         basename=basename or output.get('basename', DEFAULT_BASENAME),
                         physics=physics_from_config(config),
                         sampling=sampling,
                         fit=fit_from_config(config),
                         description=config.get('description', ''))
