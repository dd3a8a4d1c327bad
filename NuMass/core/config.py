from dataclasses import dataclass, replace
from typing import Optional

from .units import q_from_mass_difference

# -------------------------------
# Physical constants (eV)
# -------------------------------
ALPHA = 1. / 137                  # fine-structure constant
M_ELECTRON = 0.510998910e6        # electron rest mass

Q_TRITIUM = 18590.0               # KATRIN endpoint of 3H → 3He
M_TRITIUM = 3.0160492             # u
M_HELIUM3 = 3.0160293             # u

# -------------------------------
# Histogram names in the spectrum container
# -------------------------------
TRUE_SPECTRUM = "E_e"
SMEARED_SPECTRUM = "E_e_sm"

SMEAR_POLICIES = ("fill", "window", "clamp")
Q_SOURCES = ("literature", "mass_difference")
FERMI_Z_CHOICES = ("parent", "daughter")


class ConfigurationError(ValueError):
    """Invalid run configuration, detected before any sampling starts."""


# -------------------------------
# Physics of the decay
# -------------------------------

@dataclass(frozen=True)
class PhysicalParameters:
    """
    Constants of one beta decay, all energies in eV.

    Q is either the literature value (q_source="literature") or derived from
    the isotope masses (q_source="mass_difference"); use the classmethods
    rather than mixing both by hand.

    fermi_Z picks which nucleus enters the Coulomb correction. "parent"
    reproduces the reference spectra (Z_1 in η); "daughter" is the textbook
    choice.
    """
    Z_1: int = 1                      # parent (3H)
    m_1: float = M_TRITIUM            # u
    Z_2: int = 2                      # daughter (3He)
    m_2: float = M_HELIUM3            # u
    charge: int = -1
    Q: float = Q_TRITIUM
    m_e: float = M_ELECTRON
    m_nu: float = 0.2
    alpha: float = ALPHA
    fermi_Z: str = "parent"
    q_source: str = "literature"

    def __post_init__(self):
        if self.charge == 0:
            raise ConfigurationError("charge=0 is not a beta decay (expected -1 or +1)")
        if self.charge not in (-1, 1):
            raise ConfigurationError(f"charge must be -1 or +1, got {self.charge}")
        if not self.Q > 0:
            raise ConfigurationError(f"Q must be positive, got {self.Q} eV")
        if self.Z_1 < 1 or self.Z_2 < 1:
            raise ConfigurationError(f"atomic numbers must be >= 1, got Z_1={self.Z_1}, Z_2={self.Z_2}")
        if self.m_nu < 0:
            raise ConfigurationError(f"neutrino mass must be >= 0, got {self.m_nu} eV")
        if not self.m_e > 0:
            raise ConfigurationError(f"electron mass must be positive, got {self.m_e} eV")
        if self.fermi_Z not in FERMI_Z_CHOICES:
            raise ConfigurationError(f"fermi_Z must be one of {FERMI_Z_CHOICES}, got {self.fermi_Z!r}")
        if self.q_source not in Q_SOURCES:
            raise ConfigurationError(f"q_source must be one of {Q_SOURCES}, got {self.q_source!r}")

    @property
    def coulomb_Z(self) -> int:
        """Atomic number used in the Fermi function."""
        return self.Z_1 if self.fermi_Z == "parent" else self.Z_2

    @classmethod
    def tritium(cls, **overrides) -> "PhysicalParameters":
        """3H → 3He + e⁻ + ν̄ with the literature endpoint."""
        return cls(**overrides)

    @classmethod
    def from_mass_difference(cls, Z_1: int, m_1: float, Z_2: int, m_2: float,
                             charge: int = -1, **overrides) -> "PhysicalParameters":
        """Build parameters with Q = (m_1 - m_2)·u [eV]."""
        Q = q_from_mass_difference(m_1, m_2)
        return cls(Z_1=Z_1, m_1=m_1, Z_2=Z_2, m_2=m_2, charge=charge, Q=Q,
                   q_source="mass_difference", **overrides)

    def with_neutrino_mass(self, m_nu: float) -> "PhysicalParameters":
        return replace(self, m_nu=m_nu)


@dataclass(frozen=True)
class SamplingWindow:
    """Support (limit, Q) of the sampled kinetic energy [eV]."""
    limit: float
    Q: float

    def __post_init__(self):
        if not 0 <= self.limit < self.Q:
            raise ConfigurationError(f"sampling window needs 0 <= limit < Q, got limit={self.limit}, Q={self.Q}")

    @property
    def width(self) -> float:
        return self.Q - self.limit

    def contains(self, T_e: float) -> bool:
        return self.limit < T_e < self.Q


# -------------------------------
# Generation parameters
# -------------------------------

@dataclass(frozen=True)
class SamplingConfig:
    n_events: int = 100_000           # accepted events to generate
    resolution: float = 1.0           # (eV) detector Gaussian sigma
    envelope_h: float = 2e-5          # envelope scale h: M = h·N(Q/2)
    limit_fraction: Optional[float] = None   # limit = fraction·Q (takes precedence)
    limit_offset: float = 25.0        # (eV) limit = Q - offset otherwise
    nbins: int = 100                  # bins of the energy histograms
    max_attempts: int = 1_000_000     # candidates without acceptance before declaring a stall
    batch_size: int = 100_000         # candidates drawn per vectorized batch
    seed: Optional[int] = None        # None → wall-clock seed
    smear_policy: str = "fill"        # "fill" | "window" | "clamp"
    n_workers: int = 1

    def __post_init__(self):
        if self.nbins <= 0:
            raise ConfigurationError(f"nbins must be positive, got {self.nbins}")
        if self.n_events < 0:
            raise ConfigurationError(f"n_events must be >= 0, got {self.n_events}")
        if self.resolution < 0:
            raise ConfigurationError(f"resolution must be >= 0, got {self.resolution}")
        if not self.envelope_h > 0:
            raise ConfigurationError(f"envelope_h must be positive, got {self.envelope_h}")
        if self.limit_fraction is not None and not 0 <= self.limit_fraction < 1:
            raise ConfigurationError(f"limit_fraction must be in [0, 1), got {self.limit_fraction}")
        if self.max_attempts <= 0 or self.batch_size <= 0:
            raise ConfigurationError("max_attempts and batch_size must be positive")
        if self.smear_policy not in SMEAR_POLICIES:
            raise ConfigurationError(f"smear_policy must be one of {SMEAR_POLICIES}, got {self.smear_policy!r}")
        if self.n_workers < 1:
            raise ConfigurationError(f"n_workers must be >= 1, got {self.n_workers}")

    def window(self, physics: PhysicalParameters) -> SamplingWindow:
        """Sampling window for the given endpoint."""
        if self.limit_fraction is not None:
            limit = self.limit_fraction * physics.Q
        else:
            limit = physics.Q - self.limit_offset
        return SamplingWindow(limit=limit, Q=physics.Q)


# -------------------------------
# Fit parameters
# -------------------------------

@dataclass(frozen=True)
class FitConfig:
    fit_min: Optional[float] = None   # (eV) absolute window, overrides the offsets
    fit_max: Optional[float] = None
    fit_min_offset: float = 25.0      # (eV) fit_min = Q - offset
    fit_max_offset: float = 0.2       # (eV) fit_max = Q - offset
    m_nu_init: float = 0.2
    fix_m_nu: bool = False
    m_nu_bounds: tuple[float, float] = (0.0, 2.0)
    scale_init: Optional[float] = None   # None → from the counts in the window
    fix_scale: bool = False
    histograms: tuple[str, ...] = (TRUE_SPECTRUM, SMEARED_SPECTRUM)
    method: str = "leastsq"

    def __post_init__(self):
        lo, hi = self.m_nu_bounds
        if lo > hi:
            raise ConfigurationError(f"m_nu_bounds inverted: {self.m_nu_bounds}")
        if not self.fix_m_nu and not lo <= self.m_nu_init <= hi:
            raise ConfigurationError(f"m_nu_init={self.m_nu_init} outside bounds {self.m_nu_bounds}")
        if self.fix_m_nu and self.fix_scale:
            raise ConfigurationError("at least one of m_nu and C must be free")

    def window(self, Q: float) -> tuple[float, float]:
        """Fit window [eV] for the given endpoint."""
        fit_min = self.fit_min if self.fit_min is not None else Q - self.fit_min_offset
        fit_max = self.fit_max if self.fit_max is not None else Q - self.fit_max_offset
        if not fit_min < fit_max:
            raise ConfigurationError(f"fit window inverted: [{fit_min}, {fit_max}]")
        return fit_min, fit_max
