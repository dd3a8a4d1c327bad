"""
Tests for histogram filling, smear policies and merging.
"""

import pytest
import numpy as np

from NuMass.core.config import ConfigurationError, TRUE_SPECTRUM, SMEARED_SPECTRUM
from NuMass.core.datatypes import Histogram
from NuMass.spectrum.sampling import sample_energies
from NuMass.spectrum.histogramming import (new_histogram, new_spectra, accumulate, apply_smear_policy,
                                           fill_spectra, merge_histograms)


class TestHistogram:
    """Fixed-width binning with underflow/overflow bookkeeping."""

    def test_out_of_range_values_not_counted(self):
        h = new_histogram("h", 0.0, 10.0, 10)
        for v in (-1.0, 0.0, 4.5, 10.0, 11.0):
            accumulate(h, v)
        assert h.integral() == 3
        assert h.underflow == 1 and h.overflow == 1
        assert h.entries == 5

    def test_edges_go_to_first_and_last_bin(self):
        h = new_histogram("h", 0.0, 10.0, 10)
        accumulate(h, 0.0)
        accumulate(h, 10.0)
        assert h.counts[0] == 1 and h.counts[-1] == 1

    def test_non_finite_values_ignored(self):
        h = new_histogram("h", 0.0, 10.0, 10)
        h.fill_many([np.nan, np.inf, 5.0])
        accumulate(h, np.nan)
        assert h.entries == 1

    def test_fill_many_matches_fill(self, rng):
        values = rng.uniform(-2.0, 12.0, 5000)
        a = new_histogram("a", 0.0, 10.0, 37)
        b = new_histogram("b", 0.0, 10.0, 37)
        for v in values:
            a.fill(v)
        b.fill_many(values)
        np.testing.assert_array_equal(a.counts, b.counts)
        assert (a.underflow, a.overflow) == (b.underflow, b.overflow)

    def test_derived_binning(self):
        h = new_histogram("h", 18565.0, 18590.0, 100)
        assert h.bin_width == pytest.approx(0.25)
        assert h.edges[0] == 18565.0 and h.edges[-1] == 18590.0
        assert h.centers[0] == pytest.approx(18565.125)

    def test_integral_by_bin_centres(self):
        h = Histogram("h", 0.0, 10.0, np.ones(10))
        assert h.integral(2.0, 5.0) == 3

    @pytest.mark.parametrize("nbins", [0, -5])
    def test_invalid_nbins(self, nbins):
        with pytest.raises(ConfigurationError):
            new_histogram("h", 0.0, 10.0, nbins)

    def test_inverted_range(self):
        with pytest.raises(ConfigurationError):
            new_histogram("h", 10.0, 0.0, 10)


class TestFillSpectra:

    def test_names_and_range(self, endpoint_window):
        true_hist, smeared_hist = new_spectra(endpoint_window, 100)
        assert (true_hist.name, smeared_hist.name) == (TRUE_SPECTRUM, SMEARED_SPECTRUM)
        assert (true_hist.lower, true_hist.upper) == (endpoint_window.limit, endpoint_window.Q)

    def test_mass_conservation(self, tritium, endpoint_window, rng):
        """Every accepted sample ends up in a bin of the true spectrum."""
        samples, _ = sample_energies(rng, tritium, endpoint_window, 2e-5, 20_000)
        true_hist, smeared_hist = new_spectra(endpoint_window, 100)
        fill_spectra(true_hist, smeared_hist, samples, rng, 1.0, "fill")
        assert true_hist.integral() == 20_000
        assert smeared_hist.entries == 20_000

    def test_smeared_spectrum_leaks_past_edges(self, tritium, endpoint_window, rng):
        samples, _ = sample_energies(rng, tritium, endpoint_window, 2e-5, 20_000)
        true_hist, smeared_hist = new_spectra(endpoint_window, 100)
        fill_spectra(true_hist, smeared_hist, samples, rng, 1.0, "fill")
        assert smeared_hist.underflow > 0
        assert smeared_hist.integral() < 20_000

    def test_zero_resolution_spectra_identical(self, tritium, endpoint_window, rng):
        samples, _ = sample_energies(rng, tritium, endpoint_window, 2e-5, 5000)
        true_hist, smeared_hist = new_spectra(endpoint_window, 100)
        fill_spectra(true_hist, smeared_hist, samples, rng, 0.0, "fill")
        np.testing.assert_array_equal(true_hist.counts, smeared_hist.counts)


class TestSmearPolicies:
    """Treatment of smeared values outside the histogram range."""

    values = np.array([-1.0, 0.5, 5.0, 10.0, 10.5])

    def test_fill_keeps_everything(self):
        np.testing.assert_array_equal(apply_smear_policy(self.values, 0.0, 10.0, "fill"), self.values)

    def test_window_two_sided(self):
        np.testing.assert_array_equal(apply_smear_policy(self.values, 0.0, 10.0, "window"),
                                      [0.5, 5.0, 10.0])

    def test_clamp(self):
        np.testing.assert_array_equal(apply_smear_policy(self.values, 0.0, 10.0, "clamp"),
                                      [0.0, 0.5, 5.0, 10.0, 10.0])

    def test_unknown_policy(self):
        with pytest.raises(ConfigurationError):
            apply_smear_policy(self.values, 0.0, 10.0, "reflect")

    def test_fill_and_window_same_bin_contents(self, tritium, endpoint_window):
        """The two readings of the range guard differ only in the overflow counters."""
        results = {}
        for policy in ("fill", "window"):
            rng = np.random.default_rng(3)
            samples, _ = sample_energies(rng, tritium, endpoint_window, 2e-5, 10_000)
            true_hist, smeared_hist = new_spectra(endpoint_window, 100)
            fill_spectra(true_hist, smeared_hist, samples, rng, 2.0, policy)
            results[policy] = smeared_hist

        np.testing.assert_array_equal(results["fill"].counts, results["window"].counts)
        assert results["fill"].underflow > 0
        assert results["window"].overflow == 0 and results["window"].underflow == 0

    def test_clamp_conserves_events(self, tritium, endpoint_window, rng):
        samples, _ = sample_energies(rng, tritium, endpoint_window, 2e-5, 10_000)
        true_hist, smeared_hist = new_spectra(endpoint_window, 100)
        fill_spectra(true_hist, smeared_hist, samples, rng, 2.0, "clamp")
        assert smeared_hist.integral() == 10_000


class TestMerge:

    def test_merge_sums_bins(self):
        a = Histogram("E_e", 0.0, 10.0, np.arange(10.0), overflow=1.0)
        b = Histogram("E_e", 0.0, 10.0, np.ones(10), underflow=2.0)
        merged = merge_histograms([a, b])
        np.testing.assert_array_equal(merged.counts, np.arange(10.0) + 1)
        assert (merged.underflow, merged.overflow) == (2.0, 1.0)
        np.testing.assert_array_equal(a.counts, np.arange(10.0))

    def test_merge_binning_mismatch(self):
        a = Histogram("E_e", 0.0, 10.0, np.zeros(10))
        b = Histogram("E_e", 0.0, 10.0, np.zeros(20))
        with pytest.raises(ValueError):
            merge_histograms([a, b])

    def test_merge_nothing(self):
        with pytest.raises(ValueError):
            merge_histograms([])
