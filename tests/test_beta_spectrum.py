"""
Tests for the Fermi function and the beta decay density.
"""

import pytest
import numpy as np

from NuMass.core.config import PhysicalParameters
from NuMass.spectrum.beta_spectrum import fermi_factor, decay_density, density_maximum


class TestFermiFactor:
    """Coulomb correction F = 2πη / (1 - exp(-2πη))."""

    @pytest.mark.parametrize("charge", [-1, 1])
    @pytest.mark.parametrize("Z", [1, 2, 10, 80])
    def test_finite_for_positive_energies(self, Z, charge):
        """F is finite and positive from sub-meV to the MeV range."""
        T = np.array([1e-9, 1e-3, 1.0, 18590.0, 1e6])
        F = fermi_factor(Z, T, charge)
        assert np.all(np.isfinite(F))
        assert np.all(F >= 0)

    def test_limit_eta_to_zero_is_one(self):
        """With α = 0 the removable singularity gives exactly 1."""
        assert fermi_factor(1, 1000.0, -1, alpha=0.0) == 1.0
        assert fermi_factor(1, 1000.0, 1, alpha=0.0) == 1.0

    def test_small_eta_close_to_one(self):
        """At MeV energies and Z=1 the correction is small."""
        assert fermi_factor(1, 1e7, -1) == pytest.approx(1.0, abs=0.1)

    def test_sign_of_charge(self):
        """Swapping the charge moves F to the other side of 1."""
        F_minus = fermi_factor(2, 1000.0, -1)
        F_plus = fermi_factor(2, 1000.0, 1)
        assert F_minus < 1.0 < F_plus

    def test_nonpositive_energy_is_nan(self):
        """η is undefined for T_e <= 0."""
        F = fermi_factor(1, np.array([-5.0, 0.0, 5.0]), -1)
        assert np.isnan(F[0]) and np.isnan(F[1])
        assert np.isfinite(F[2])

    def test_scalar_in_scalar_out(self):
        assert isinstance(fermi_factor(1, 100.0, -1), float)


class TestDecayDensity:
    """Unnormalized dΓ/dT_e with kinematic clamping."""

    def test_clamped_outside_domain(self, tritium):
        """Zero above Q - m_nu, at and above Q and for T_e <= 0."""
        Q, m_nu = tritium.Q, 0.2
        T = np.array([-10.0, 0.0, Q - 0.1, Q - m_nu / 2, Q, Q + 1.0, Q + 1e4])
        N = decay_density(T, m_nu, 1.0, tritium)
        np.testing.assert_array_equal(N, np.zeros_like(T))

    def test_never_nan(self, tritium):
        """A grid across and beyond the domain contains no NaN."""
        T = np.linspace(-100.0, tritium.Q + 100.0, 10_001)
        N = decay_density(T, 2.0, 1.0, tritium)
        assert not np.any(np.isnan(N))
        assert np.all(N >= 0)

    def test_positive_inside_domain(self, tritium):
        T = np.array([1.0, 1000.0, tritium.Q / 2, tritium.Q - 1.0])
        assert np.all(decay_density(T, 0.2, 1.0, tritium) > 0)

    def test_neutrino_mass_shifts_endpoint(self, tritium):
        """Between Q - m_nu and Q only the massless spectrum is populated."""
        T = tritium.Q - 0.1
        assert decay_density(T, 0.0, 1.0, tritium) > 0
        assert decay_density(T, 0.2, 1.0, tritium) == 0.0

    def test_linear_in_scale(self, tritium):
        T = np.linspace(100.0, tritium.Q - 1.0, 50)
        np.testing.assert_allclose(decay_density(T, 0.2, 3.5, tritium),
                                   3.5 * decay_density(T, 0.2, 1.0, tritium))

    def test_scalar_in_scalar_out(self, tritium):
        assert isinstance(decay_density(5000.0, 0.2, 1.0, tritium), float)

    def test_fermi_Z_selection(self):
        """'parent' and 'daughter' use different Coulomb charges."""
        parent = PhysicalParameters(fermi_Z="parent")
        daughter = PhysicalParameters(fermi_Z="daughter")
        assert parent.coulomb_Z == 1 and daughter.coulomb_Z == 2
        assert decay_density(5000.0, 0.2, 1.0, parent) != decay_density(5000.0, 0.2, 1.0, daughter)


class TestDensityMaximum:

    def test_maximum_inside_window(self, tritium):
        T_max, N_max = density_maximum(tritium, 1000.0, tritium.Q)
        assert 1000.0 < T_max < tritium.Q
        grid = np.linspace(1000.0, tritium.Q, 2000)
        assert N_max >= decay_density(grid, tritium.m_nu, 1.0, tritium).max() * (1 - 1e-9)

    def test_monotonic_window_maximum_at_edge(self, tritium):
        """Close to the endpoint the density falls, so the maximum is at the lower edge."""
        lower = tritium.Q - 25.0
        T_max, _ = density_maximum(tritium, lower, tritium.Q)
        assert T_max == pytest.approx(lower, abs=0.1)
