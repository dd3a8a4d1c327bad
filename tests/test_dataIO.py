"""
Tests for spectrum container persistence and fit result storage.
"""

import pytest
import numpy as np

from NuMass.core.datatypes import FitResult, Histogram
from NuMass.core.dataIO import (PersistenceError, container_path, save_spectra, load_spectrum,
                                load_spectra, list_spectra, load_spectra_metadata,
                                store_fit_results, load_fit_results)


@pytest.fixture
def spectra(rng):
    true_hist = Histogram("E_e", 18565.0, 18590.0, rng.poisson(50.0, 100).astype(float),
                          title=";E_{e} [eV];Intensity")
    smeared_hist = Histogram("E_e_sm", 18565.0, 18590.0, rng.poisson(50.0, 100).astype(float),
                             title=";E_{e} [eV];Intensity", underflow=12.0, overflow=3.0)
    return {"E_e": true_hist, "E_e_sm": smeared_hist}


class TestSpectrumContainer:

    def test_round_trip_bit_identical(self, tmp_path, spectra):
        base = tmp_path / "b_decay_histo"
        path = save_spectra(base, spectra)
        assert path == tmp_path / "b_decay_histo.npz"
        assert path.exists()

        for name, original in spectra.items():
            loaded = load_spectrum(base, name)
            assert loaded.counts.tobytes() == original.counts.tobytes()
            assert (loaded.lower, loaded.upper) == (original.lower, original.upper)
            assert (loaded.underflow, loaded.overflow) == (original.underflow, original.overflow)
            assert loaded.title == original.title
            assert loaded.name == name

    def test_names_and_metadata(self, tmp_path, spectra):
        base = tmp_path / "run"
        save_spectra(base, spectra, metadata={"seed": 42, "m_nu": 0.2})
        assert list_spectra(base) == ["E_e", "E_e_sm"]
        assert load_spectra_metadata(base) == {"seed": 42, "m_nu": 0.2}
        assert set(load_spectra(base)) == {"E_e", "E_e_sm"}

    def test_suffix_added_once(self, tmp_path):
        assert container_path(tmp_path / "histo") == tmp_path / "histo.npz"
        assert container_path(tmp_path / "histo.npz") == tmp_path / "histo.npz"

    def test_missing_name(self, tmp_path, spectra):
        base = tmp_path / "run"
        save_spectra(base, spectra)
        with pytest.raises(PersistenceError):
            load_spectrum(base, "E_e_missing")

    def test_missing_container(self, tmp_path):
        with pytest.raises(PersistenceError):
            load_spectrum(tmp_path / "does_not_exist", "E_e")

    def test_unreadable_container(self, tmp_path):
        (tmp_path / "broken.npz").write_bytes(b"not a numpy archive")
        with pytest.raises(PersistenceError):
            load_spectrum(tmp_path / "broken", "E_e")

    def test_persistence_error_is_os_error(self, tmp_path):
        with pytest.raises(OSError):
            list_spectra(tmp_path / "nothing")

    def test_reserved_separator_in_name(self, tmp_path):
        h = Histogram("E__e", 0.0, 1.0, np.zeros(3))
        with pytest.raises(ValueError):
            save_spectra(tmp_path / "run", {"E__e": h})

    def test_overwrite_replaces_container(self, tmp_path, spectra):
        base = tmp_path / "run"
        save_spectra(base, spectra)
        save_spectra(base, {"E_e": spectra["E_e"]})
        assert list_spectra(base) == ["E_e"]


class TestFitResultStorage:

    def test_store_and_load(self, tmp_path):
        results = {
            "E_e": FitResult(name="E_e", m_nu=0.21, scale=1e-9, chisqr=95.0, ndof=97, n_bins=99,
                             fit_window=(18565.0, 18589.8), m_nu_err=0.05, scale_err=1e-12,
                             success=True, message="ok"),
            "E_e_sm": FitResult(name="E_e_sm", m_nu=0.2, scale=float("nan"), chisqr=float("nan"),
                                ndof=0, n_bins=1, fit_window=(18565.0, 18589.8),
                                success=False, message="too few bins"),
        }
        path = store_fit_results(results, tmp_path / "fits" / "run_fits.json", metadata={"run_id": "t"})
        loaded = load_fit_results(path)

        assert loaded["E_e"]["m_nu"] == pytest.approx(0.21)
        assert loaded["E_e"]["m_nu_err"] == pytest.approx(0.05)
        assert loaded["E_e"]["fit_min"] == 18565.0
        assert loaded["E_e_sm"]["success"] is False
        assert loaded["E_e_sm"]["m_nu_err"] is None

    def test_missing_results_file(self, tmp_path):
        with pytest.raises(PersistenceError):
            load_fit_results(tmp_path / "missing.json")
