# units.py
"""
Unit conversions applied when a configuration is built.
All energies and masses are carried in eV inside the package; isotope masses
are given in atomic mass units and converted once, to derive Q.
"""

AMU_TO_EV = 931.494095e6          # eV per atomic mass unit


# -------------------------------
# Derived physics quantities
# -------------------------------

def amu_to_eV(mass_amu: float) -> float:
    """
    Convert an isotope mass [u] to rest-mass energy [eV].
    """
    return mass_amu * AMU_TO_EV


def q_from_mass_difference(m_parent: float, m_daughter: float) -> float:
    """
    Endpoint energy [eV] from the atomic mass difference [u] of the parent
    and daughter isotopes.
    """
    return amu_to_eV(m_parent - m_daughter)
